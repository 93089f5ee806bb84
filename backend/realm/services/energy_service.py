"""
体力服务
"""
import math

from realm.config import settings
from realm.models.player import PlayerState


class EnergyService:
    def __init__(self, death_energy_percent: int = settings.death_energy_percent) -> None:
        self.death_energy_percent = death_energy_percent

    def has_energy(self, player: PlayerState, amount: int) -> bool:
        return player.energy >= amount

    def consume_energy(self, player: PlayerState, amount: int) -> bool:
        if not self.has_energy(player, amount):
            return False
        player.energy -= amount
        return True

    def set_energy_on_death(self, player: PlayerState) -> int:
        """Energy drops to floor(energy * percent / 100). Returns the new value."""
        player.energy = max(0, math.floor(player.energy * self.death_energy_percent / 100))
        return player.energy
