"""Persistent player state used by the combat engine."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    # Firestore hands back aware datetimes; JSON fixtures may not.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PlayerLocation(BaseModel):
    type: str = "village"
    id: str = ""
    kingdom_id: Optional[str] = None
    biome: Optional[str] = None


class SkillRecord(BaseModel):
    level: int = 1
    xp: int = 0


class PlayerState(BaseModel):
    """Player document: players/{player_id}."""

    player_id: str
    name: str = ""

    hp: int = 10
    max_hp: int = 10
    energy: int = 100
    max_energy: int = 100
    gold: int = 0

    skills: Dict[str, SkillRecord] = Field(default_factory=dict)
    location: PlayerLocation = Field(default_factory=PlayerLocation)

    traveling_until: Optional[datetime] = None

    is_in_infirmary: bool = False
    infirmary_started_at: Optional[datetime] = None
    infirmary_heals_at: Optional[datetime] = None

    updated_at: datetime = Field(default_factory=utcnow)

    def is_alive(self) -> bool:
        return self.hp > 0

    def is_traveling(self, now: Optional[datetime] = None) -> bool:
        if self.traveling_until is None:
            return False
        return as_aware(self.traveling_until) > (now or utcnow())

    def is_in_infirmary_at(self, now: Optional[datetime] = None) -> bool:
        if not self.is_in_infirmary or self.infirmary_heals_at is None:
            return False
        return as_aware(self.infirmary_heals_at) > (now or utcnow())

    def skill_level(self, skill: str) -> int:
        record = self.skills.get(skill)
        return record.level if record else 1


class InventorySlot(BaseModel):
    slot_id: str
    item_id: str
    quantity: int = 1
    equipped: bool = False


class Inventory(BaseModel):
    """Inventory document: players/{player_id}/inventory/main."""

    player_id: str
    slots: List[InventorySlot] = Field(default_factory=list)
    max_slots: int = 28
    next_slot_seq: int = 0

    def find_slot(self, item_id: str) -> Optional[InventorySlot]:
        for slot in self.slots:
            if slot.item_id == item_id and not slot.equipped:
                return slot
        return None

    def quantity_of(self, item_id: str) -> int:
        return sum(s.quantity for s in self.slots if s.item_id == item_id and not s.equipped)

    def free_slots(self) -> int:
        return max(0, self.max_slots - len(self.slots))

    def new_slot_id(self) -> str:
        self.next_slot_seq += 1
        return f"slot_{self.next_slot_seq}"
