"""
地牢快速战斗

Unlogged fight-to-the-end loop used by dungeon runs.
"""
import logging

from .dice import DiceRoller
from .models.combat_result import EncounterSimulation
from .models.combatant import EffectiveStats
from .models.monster import Monster
from .models.style import AttackStyleProfile, SpeedProfile
from .rules import DEFAULT_MAX_DUNGEON_ROUNDS
from .strike import monster_strike, player_strike

logger = logging.getLogger(__name__)


def simulate_encounter(
    stats: EffectiveStats,
    player_hp: int,
    monster: Monster,
    style: AttackStyleProfile,
    speed: SpeedProfile,
    effectiveness: float,
    dice: DiceRoller,
    max_rounds: int = DEFAULT_MAX_DUNGEON_ROUNDS,
) -> EncounterSimulation:
    """
    Fight until one side drops or max_rounds is reached.

    Reaching the cap with the monster still standing counts as a loss.
    damage_dealt is capped at monster.max_hp.
    """
    monster_hp = monster.max_hp
    damage_dealt = 0
    damage_taken = 0
    rounds = 0

    while rounds < max_rounds:
        rounds += 1

        for _ in range(speed.hits_per_round):
            strike = player_strike(stats, monster, style, speed, effectiveness, dice)
            monster_hp -= strike.damage
            damage_dealt += strike.damage
            if monster_hp <= 0:
                break

        if monster_hp <= 0:
            return EncounterSimulation(
                player_won=True,
                rounds=rounds,
                player_hp_remaining=max(0, player_hp),
                damage_dealt=min(damage_dealt, monster.max_hp),
                damage_taken=damage_taken,
            )

        strike = monster_strike(monster, stats, dice)
        player_hp -= strike.damage
        damage_taken += strike.damage
        if player_hp <= 0:
            return EncounterSimulation(
                player_won=False,
                rounds=rounds,
                player_hp_remaining=0,
                damage_dealt=min(damage_dealt, monster.max_hp),
                damage_taken=damage_taken,
            )

    logger.info("encounter with %s hit the %s-round cap", monster.monster_id, max_rounds)
    return EncounterSimulation(
        player_won=False,
        rounds=rounds,
        player_hp_remaining=max(0, player_hp),
        damage_dealt=min(damage_dealt, monster.max_hp),
        damage_taken=damage_taken,
        hit_round_cap=True,
    )
