"""
交互式战斗会话

One persisted, logged fight against a single monster. States:

    ACTIVE -> VICTORY | DEFEAT | FLED

Terminal states are final. A player has at most one ACTIVE session; the
unique marker players/{id}/active/encounter is created together with the
session and deleted in the transaction that leaves ACTIVE.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from realm.combat.models.combat_result import ActionResult
from realm.combat.models.combat_session import (
    CombatLogEntry,
    EncounterSession,
    EncounterStatus,
    LogAction,
    LogActor,
)
from realm.combat.models.monster import Monster
from realm.combat.stats import sum_equipment
from realm.combat.strike import monster_strike, player_strike
from realm.models.player import Inventory, PlayerState, utcnow

from .combat_base import CombatServiceBase, CombatSetup
from .document_store import Transaction
from .exceptions import CombatStateError
from .player_repository import (
    DUNGEON_FLOW,
    ENCOUNTER_FLOW,
    active_marker_path,
    encounter_log_path,
    encounter_logs_collection,
    encounter_path,
    to_document,
)

logger = logging.getLogger(__name__)

ALREADY_IN_COMBAT = "You are already in combat."
NOT_IN_COMBAT = "You are not in combat."


class EncounterService(CombatServiceBase):
    """战斗会话状态机"""

    # ============================================
    # 读取
    # ============================================

    def _load_session(self, txn: Transaction, player_id: str) -> Optional[EncounterSession]:
        """Active session via the marker. Marker without session is corrupt state."""
        marker = txn.get(active_marker_path(player_id, ENCOUNTER_FLOW))
        if marker is None:
            return None
        session_id = marker.get("session_id", "")
        data = txn.get(encounter_path(player_id, session_id))
        return self._check_session(player_id, session_id, data)

    def _check_session(self, player_id: str, session_id: str, data: Optional[Dict[str, Any]]) -> EncounterSession:
        if data is None:
            logger.error("active encounter marker for %s points at missing session %s", player_id, session_id)
            raise CombatStateError(f"active session {session_id} not found", player_id=player_id)
        session = EncounterSession(**data)
        if not session.is_active:
            logger.error("active encounter marker for %s points at %s session %s", player_id, session.status.value, session_id)
            raise CombatStateError(f"session {session_id} is {session.status.value} but still marked active", player_id=player_id)
        return session

    def _monster_for(self, session: EncounterSession) -> Monster:
        monster = self.catalog.get_monster(session.monster_id)
        if monster is None:
            raise CombatStateError(f"monster {session.monster_id} missing from catalog", player_id=session.player_id)
        return monster

    # ============================================
    # 写入
    # ============================================

    def _persist(
        self,
        txn: Transaction,
        player: PlayerState,
        inventory: Inventory,
        session: EncounterSession,
        logs: List[CombatLogEntry],
    ) -> None:
        session.updated_at = utcnow()
        self.repository.save_player(txn, player)
        self.repository.save_inventory(txn, inventory)
        txn.set(encounter_path(player.player_id, session.session_id), to_document(session))
        for entry in logs:
            txn.set(encounter_log_path(player.player_id, session.session_id, entry.seq), to_document(entry))
        if not session.is_active:
            txn.delete(active_marker_path(player.player_id, ENCOUNTER_FLOW))

    # ============================================
    # 回合步骤
    # ============================================

    def _monster_turn(
        self,
        player: PlayerState,
        session: EncounterSession,
        monster: Monster,
        setup: CombatSetup,
        logs: List[CombatLogEntry],
        now: datetime,
    ) -> Optional[Dict[str, Any]]:
        """Monster strikes once. Returns the defeat payload if the player died."""
        strike = monster_strike(monster, setup.stats, self.dice)
        session.player_hp = max(0, session.player_hp - strike.damage)
        player.hp = session.player_hp
        logs.append(session.append_log(LogActor.MONSTER, LogAction.ATTACK, hit=strike.hit, damage=strike.damage))
        if session.is_player_dead():
            return self._defeat(player, session, now)
        session.round += 1
        return None

    def _victory(
        self,
        player: PlayerState,
        inventory: Inventory,
        session: EncounterSession,
        monster: Monster,
        setup: CombatSetup,
    ) -> Dict[str, Any]:
        session.status = EncounterStatus.VICTORY
        xp = monster.xp_reward_for_kill(self.config.xp_per_damage)
        gain = self.skills.add_xp(player, session.training_style, xp)
        session.xp_gained = xp
        loot = self.loot.roll_and_give_loot(player, inventory, monster)
        logger.info("%s defeated %s in session %s", player.player_id, monster.monster_id, session.session_id)
        return {
            "xp": xp,
            "skill": session.training_style,
            "levels_gained": gain.levels_gained,
            "current_level": gain.new_level,
            "gold": loot.gold,
            "items": [item.to_dict() for item in loot.items],
            "attack_style": setup.style.to_dict(),
        }

    def _defeat(self, player: PlayerState, session: EncounterSession, now: datetime) -> Dict[str, Any]:
        session.status = EncounterStatus.DEFEAT
        session.player_hp = 0
        player.hp = 0
        self._apply_death(player, now)
        logger.info("%s was defeated in session %s", player.player_id, session.session_id)
        return {"energy": player.energy, "infirmary": self.infirmary.status(player)}

    def _result(self, session: EncounterSession, logs: List[CombatLogEntry], extra: Optional[Dict[str, Any]] = None) -> ActionResult:
        data = {
            "session": session.to_view(),
            "log": [entry.model_dump(mode="json") for entry in logs],
        }
        if session.status == EncounterStatus.VICTORY:
            data["rewards"] = extra or {}
            return ActionResult(success=True, message="Victory!", status=session.status.value, data=data)
        if session.status == EncounterStatus.DEFEAT:
            data["defeat"] = extra or {}
            return ActionResult(
                success=False,
                message="You were defeated and taken to the infirmary.",
                status=session.status.value,
                data=data,
            )
        data.update(extra or {})
        return ActionResult(success=True, message=f"Round {session.round}.", status=session.status.value, data=data)

    # ============================================
    # 公共接口
    # ============================================

    async def start_combat(self, player_id: str, monster_id: str, style_index: int = 0) -> ActionResult:
        """开始战斗: consume energy once, create the session and the active marker."""

        def _start(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            encounter_marker = txn.get(active_marker_path(player_id, ENCOUNTER_FLOW))
            dungeon_marker = txn.get(active_marker_path(player_id, DUNGEON_FLOW))
            now = self.clock()

            blocker = self._fight_blocker(player, now, "fight")
            if blocker:
                return ActionResult.rejected_with(blocker)
            if encounter_marker is not None:
                return ActionResult.rejected_with(ALREADY_IN_COMBAT)
            if dungeon_marker is not None:
                return ActionResult.rejected_with("You cannot start a fight while in a dungeon.")

            monster = self.catalog.get_monster(monster_id)
            if monster is None:
                return ActionResult.rejected_with("Monster not found.")
            if not monster.can_be_attacked_by(self.skills.combat_level(player)):
                return ActionResult.rejected_with(
                    f"You need combat level {monster.min_player_combat_level} to fight {monster.name}."
                )
            cost = self.config.combat_energy_cost
            if not self.energy.consume_energy(player, cost):
                return ActionResult.rejected_with(f"You need {cost} energy to fight.")

            weapon_subtype = self.inventory.weapon_subtype(inventory)
            index = self.styles.clamp_index(weapon_subtype, style_index)
            style = self.styles.resolve(weapon_subtype, index)
            session = EncounterSession(
                session_id=f"enc_{uuid.uuid4().hex[:12]}",
                player_id=player_id,
                monster_id=monster.monster_id,
                player_hp=player.hp,
                monster_hp=monster.max_hp,
                training_style=style.training_style,
                attack_style_index=index,
                weapon_subtype=weapon_subtype,
                location=player.location,
                created_at=now,
                updated_at=now,
            )

            self.repository.save_player(txn, player)
            txn.set(encounter_path(player_id, session.session_id), to_document(session))
            txn.create(
                active_marker_path(player_id, ENCOUNTER_FLOW),
                {"session_id": session.session_id, "created_at": now.isoformat()},
            )
            logger.info("%s started combat with %s (%s)", player_id, monster.monster_id, session.session_id)
            return ActionResult(
                success=True,
                message=f"You engage {monster.name}!",
                status=session.status.value,
                data={
                    "session": session.to_view(),
                    "monster": monster.model_dump(mode="json", exclude={"loot_table"}),
                    "attack_style": style.to_dict(),
                    "energy": player.energy,
                },
            )

        return await self._run_action(player_id, "start_combat", _start, ALREADY_IN_COMBAT)

    async def attack(self, player_id: str) -> ActionResult:
        """
        攻击一回合

        The player strikes hits_per_round times (death check after each),
        then the surviving monster strikes back once.
        """

        def _attack(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            session = self._load_session(txn, player_id)
            if session is None:
                return ActionResult.rejected_with(NOT_IN_COMBAT)
            monster = self._monster_for(session)
            now = self.clock()

            setup = self._setup(player, inventory, session.weapon_subtype, session.attack_style_index)
            effectiveness = setup.effectiveness_against(monster)
            logs: List[CombatLogEntry] = []

            for _ in range(setup.speed.hits_per_round):
                strike = player_strike(setup.stats, monster, setup.style, setup.speed, effectiveness, self.dice)
                session.monster_hp = max(0, session.monster_hp - strike.damage)
                logs.append(session.append_log(LogActor.PLAYER, LogAction.ATTACK, hit=strike.hit, damage=strike.damage))
                if session.is_monster_dead():
                    break

            if session.is_monster_dead():
                extra = self._victory(player, inventory, session, monster, setup)
            else:
                extra = self._monster_turn(player, session, monster, setup, logs, now)

            self._persist(txn, player, inventory, session, logs)
            return self._result(session, logs, extra)

        return await self._run_action(player_id, "attack", _attack, NOT_IN_COMBAT)

    async def eat(self, player_id: str, item_id: str) -> ActionResult:
        """进食: heal (capped), then the monster strikes once regardless."""

        def _eat(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            session = self._load_session(txn, player_id)
            if session is None:
                return ActionResult.rejected_with(NOT_IN_COMBAT)
            monster = self._monster_for(session)
            now = self.clock()

            player.hp = session.player_hp
            rejection, item, hp_restored = self._eat(player, inventory, item_id)
            if rejection:
                return ActionResult.rejected_with(rejection)
            session.player_hp = player.hp

            logs = [session.append_log(LogActor.PLAYER, LogAction.EAT, item_id=item_id, hp_restored=hp_restored)]
            setup = self._setup(player, inventory, session.weapon_subtype, session.attack_style_index)
            extra = self._monster_turn(player, session, monster, setup, logs, now)

            self._persist(txn, player, inventory, session, logs)
            if extra is None:
                extra = {"hp_restored": hp_restored, "item": item.name}
            return self._result(session, logs, extra)

        return await self._run_action(player_id, "eat", _eat, NOT_IN_COMBAT)

    async def flee(self, player_id: str) -> ActionResult:
        """逃跑: d100 <= flee chance ends the fight; failure costs a monster strike."""

        def _flee(txn: Transaction) -> ActionResult:
            player = self.repository.load_player(txn, player_id)
            inventory = self.repository.load_inventory(txn, player_id)
            session = self._load_session(txn, player_id)
            if session is None:
                return ActionResult.rejected_with(NOT_IN_COMBAT)
            monster = self._monster_for(session)
            now = self.clock()

            if self.dice.chance(self.config.flee_success_chance):
                session.status = EncounterStatus.FLED
                logs = [session.append_log(LogActor.PLAYER, LogAction.FLEE, hit=True)]
                self._persist(txn, player, inventory, session, logs)
                logger.info("%s fled from %s", player_id, monster.monster_id)
                return ActionResult(
                    success=True,
                    message="You escaped!",
                    status=session.status.value,
                    data={"session": session.to_view(), "log": [e.model_dump(mode="json") for e in logs]},
                )

            logs = [session.append_log(LogActor.PLAYER, LogAction.FLEE, hit=False)]
            setup = self._setup(player, inventory, session.weapon_subtype, session.attack_style_index)
            extra = self._monster_turn(player, session, monster, setup, logs, now)
            self._persist(txn, player, inventory, session, logs)
            result = self._result(session, logs, extra)
            if session.is_active:
                result.success = False
                result.message = "You failed to escape!"
            return result

        return await self._run_action(player_id, "flee", _flee, NOT_IN_COMBAT)

    # ============================================
    # 查询
    # ============================================

    def _active_session_view(self, player_id: str) -> Optional[EncounterSession]:
        marker = self.store.get(active_marker_path(player_id, ENCOUNTER_FLOW))
        if marker is None:
            return None
        session_id = marker.get("session_id", "")
        return self._check_session(player_id, session_id, self.store.get(encounter_path(player_id, session_id)))

    async def get_active_combat(self, player_id: str) -> Optional[Dict[str, Any]]:
        session = await self._read(lambda: self._active_session_view(player_id))
        if session is None:
            return None
        monster = self._monster_for(session)
        return {
            "session": session.to_view(),
            "monster": monster.model_dump(mode="json", exclude={"loot_table"}),
            "attack_style": self.styles.resolve(session.weapon_subtype, session.attack_style_index).to_dict(),
        }

    async def get_combat_log(self, player_id: str, session_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Replay log for a session (defaults to the active one)."""

        def _load() -> List[Dict[str, Any]]:
            target = session_id
            if target is None:
                session = self._active_session_view(player_id)
                if session is None:
                    return []
                target = session.session_id
            docs = self.store.list(encounter_logs_collection(player_id, target))
            entries = [CombatLogEntry(**data) for _, data in docs]
            entries.sort(key=lambda e: e.seq)
            return [entry.model_dump(mode="json") for entry in entries]

        return await self._read(_load)

    async def get_combat_info(self, player_id: str) -> Dict[str, Any]:
        def _load() -> Dict[str, Any]:
            player = self.repository.get_player(player_id)
            inventory = self.repository.get_inventory(player_id)
            session = self._active_session_view(player_id)
            subtype = session.weapon_subtype if session else self.inventory.weapon_subtype(inventory)
            equipped = self.inventory.equipped_items(inventory)
            speed_class = self.styles.speed_class(subtype)
            speed = self.styles.speed_profile(subtype)
            return {
                "in_combat": session is not None,
                "session": session.to_view() if session else None,
                "player_stats": {
                    "hp": player.hp,
                    "max_hp": player.max_hp,
                    "combat_level": self.skills.combat_level(player),
                    "attack": player.skill_level("attack"),
                    "strength": player.skill_level("strength"),
                    "defense": player.skill_level("defense"),
                },
                "equipment": sum_equipment(equipped).to_dict(),
                "weapon_subtype": subtype,
                "weapon_speed": {
                    "class": speed_class.value,
                    "hits_per_round": speed.hits_per_round,
                    "damage_multiplier": speed.damage_multiplier,
                },
                "attack_styles": self.styles.describe(subtype),
                "energy": {"current": player.energy, "cost": self.config.combat_energy_cost},
                "infirmary": self.infirmary.status(player),
            }

        return await self._read(_load)

    async def get_available_monsters(self, player_id: str, biome: Optional[str] = None) -> List[Dict[str, Any]]:
        """Monsters the player may fight: level gate, then biome (player's own if not given)."""

        def _load() -> List[Dict[str, Any]]:
            player = self.repository.get_player(player_id)
            level = self.skills.combat_level(player)
            wanted_biome = biome or player.location.biome
            monsters = [
                m for m in self.catalog.monsters()
                if not m.is_boss
                and m.can_be_attacked_by(level)
                and (wanted_biome is None or m.biome in (None, wanted_biome))
            ]
            monsters.sort(key=lambda m: (m.combat_level, m.name))
            return [m.model_dump(mode="json", exclude={"loot_table"}) for m in monsters]

        return await self._read(_load)

    async def get_available_food(self, player_id: str) -> List[Dict[str, Any]]:
        return await self._read(lambda: self.inventory.food(self.repository.get_inventory(player_id)))

