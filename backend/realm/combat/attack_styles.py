"""
攻击风格表

Static, read-only configuration: weapon subtype -> ordered attack styles,
weapon subtype -> speed class, speed class -> speed profile, and weapon
style -> stance bonus. The engine receives an AttackStyleTable instance
instead of reading module constants, so tests can inject their own table.
"""
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models.style import (
    AttackStyleProfile,
    AttackType,
    SpeedClass,
    SpeedProfile,
    StanceBonus,
    WeaponStyle,
)

UNARMED = "unarmed"

STAB, SLASH, CRUSH = AttackType.STAB, AttackType.SLASH, AttackType.CRUSH
ACCURATE = WeaponStyle.ACCURATE
AGGRESSIVE = WeaponStyle.AGGRESSIVE
DEFENSIVE = WeaponStyle.DEFENSIVE
CONTROLLED = WeaponStyle.CONTROLLED

_SHARED = ("attack", "strength", "defense")


def _style(name: str, attack_type: AttackType, weapon_style: WeaponStyle) -> AttackStyleProfile:
    skills = {
        ACCURATE: ("attack",),
        AGGRESSIVE: ("strength",),
        DEFENSIVE: ("defense",),
        CONTROLLED: _SHARED,
    }[weapon_style]
    return AttackStyleProfile(name=name, attack_type=attack_type, weapon_style=weapon_style, xp_skills=skills)


_STABBING = (
    _style("Stab", STAB, ACCURATE),
    _style("Lunge", STAB, AGGRESSIVE),
    _style("Slash", SLASH, AGGRESSIVE),
    _style("Block", STAB, DEFENSIVE),
)
_SLASHING = (
    _style("Chop", SLASH, ACCURATE),
    _style("Slash", SLASH, AGGRESSIVE),
    _style("Lunge", STAB, CONTROLLED),
    _style("Block", SLASH, DEFENSIVE),
)
_AXES = (
    _style("Chop", SLASH, ACCURATE),
    _style("Hack", SLASH, AGGRESSIVE),
    _style("Smash", CRUSH, AGGRESSIVE),
    _style("Block", SLASH, DEFENSIVE),
)

DEFAULT_WEAPON_STYLES: Dict[str, Tuple[AttackStyleProfile, ...]] = {
    "dagger": _STABBING,
    "sword": _STABBING,
    "scimitar": _SLASHING,
    "longsword": _SLASHING,
    "claws": _SLASHING,
    "axe": _AXES,
    "battleaxe": _AXES,
    "2hsword": (
        _style("Chop", SLASH, ACCURATE),
        _style("Slash", SLASH, AGGRESSIVE),
        _style("Smash", CRUSH, AGGRESSIVE),
        _style("Block", SLASH, DEFENSIVE),
    ),
    "mace": (
        _style("Pound", CRUSH, ACCURATE),
        _style("Pummel", CRUSH, AGGRESSIVE),
        _style("Spike", STAB, CONTROLLED),
        _style("Block", CRUSH, DEFENSIVE),
    ),
    "warhammer": (
        _style("Pound", CRUSH, ACCURATE),
        _style("Pummel", CRUSH, AGGRESSIVE),
        _style("Block", CRUSH, DEFENSIVE),
    ),
    "spear": (
        _style("Lunge", STAB, CONTROLLED),
        _style("Swipe", SLASH, CONTROLLED),
        _style("Pound", CRUSH, CONTROLLED),
        _style("Block", STAB, DEFENSIVE),
    ),
    "throwing": (
        _style("Accurate", STAB, ACCURATE),
        _style("Rapid", STAB, AGGRESSIVE),
        _style("Longrange", STAB, DEFENSIVE),
    ),
    UNARMED: (
        _style("Punch", CRUSH, ACCURATE),
        _style("Kick", CRUSH, AGGRESSIVE),
        _style("Block", CRUSH, DEFENSIVE),
    ),
}

DEFAULT_WEAPON_SPEED: Dict[str, SpeedClass] = {
    "dagger": SpeedClass.FAST,
    "claws": SpeedClass.FAST,
    "scimitar": SpeedClass.FAST,
    "sword": SpeedClass.FAST,
    UNARMED: SpeedClass.FAST,
    "mace": SpeedClass.NORMAL,
    "axe": SpeedClass.NORMAL,
    "longsword": SpeedClass.NORMAL,
    "spear": SpeedClass.NORMAL,
    "throwing": SpeedClass.NORMAL,
    "battleaxe": SpeedClass.SLOW,
    "warhammer": SpeedClass.SLOW,
    "2hsword": SpeedClass.VERY_SLOW,
}

# Slow weapons hit harder to make up for striking once.
DEFAULT_SPEED_PROFILES: Dict[SpeedClass, SpeedProfile] = {
    SpeedClass.FAST: SpeedProfile(hits_per_round=2, damage_multiplier=1.0),
    SpeedClass.NORMAL: SpeedProfile(hits_per_round=1, damage_multiplier=1.0),
    SpeedClass.SLOW: SpeedProfile(hits_per_round=1, damage_multiplier=1.15),
    SpeedClass.VERY_SLOW: SpeedProfile(hits_per_round=1, damage_multiplier=1.3),
}

DEFAULT_STANCE_BONUSES: Dict[WeaponStyle, StanceBonus] = {
    ACCURATE: StanceBonus(attack=3),
    AGGRESSIVE: StanceBonus(strength=3),
    DEFENSIVE: StanceBonus(defense=3),
    CONTROLLED: StanceBonus(attack=1, strength=1, defense=1),
}


class AttackStyleTable:
    """Immutable lookup tables for attack styles, speed and stance."""

    def __init__(
        self,
        weapon_styles: Optional[Mapping[str, Sequence[AttackStyleProfile]]] = None,
        weapon_speed: Optional[Mapping[str, SpeedClass]] = None,
        speed_profiles: Optional[Mapping[SpeedClass, SpeedProfile]] = None,
        stance_bonuses: Optional[Mapping[WeaponStyle, StanceBonus]] = None,
        default_speed: SpeedClass = SpeedClass.NORMAL,
    ) -> None:
        styles = weapon_styles if weapon_styles is not None else DEFAULT_WEAPON_STYLES
        if UNARMED not in styles:
            raise ValueError("attack style table must define an 'unarmed' entry")
        for subtype, profiles in styles.items():
            if not profiles:
                raise ValueError(f"weapon subtype '{subtype}' has no attack styles")

        self._styles = MappingProxyType({k: tuple(v) for k, v in styles.items()})
        self._speed = MappingProxyType(dict(weapon_speed if weapon_speed is not None else DEFAULT_WEAPON_SPEED))
        self._profiles = MappingProxyType(
            dict(speed_profiles if speed_profiles is not None else DEFAULT_SPEED_PROFILES)
        )
        self._stances = MappingProxyType(
            dict(stance_bonuses if stance_bonuses is not None else DEFAULT_STANCE_BONUSES)
        )
        self._default_speed = default_speed

    def styles_for(self, weapon_subtype: Optional[str]) -> Tuple[AttackStyleProfile, ...]:
        """Styles for a subtype; unknown subtypes fall back to unarmed."""
        return self._styles.get(weapon_subtype or UNARMED, self._styles[UNARMED])

    def clamp_index(self, weapon_subtype: Optional[str], index: int) -> int:
        styles = self.styles_for(weapon_subtype)
        return max(0, min(int(index), len(styles) - 1))

    def resolve(self, weapon_subtype: Optional[str], index: int) -> AttackStyleProfile:
        styles = self.styles_for(weapon_subtype)
        return styles[self.clamp_index(weapon_subtype, index)]

    def speed_class(self, weapon_subtype: Optional[str]) -> SpeedClass:
        return self._speed.get(weapon_subtype or UNARMED, self._default_speed)

    def speed_profile(self, weapon_subtype: Optional[str]) -> SpeedProfile:
        return self._profiles.get(self.speed_class(weapon_subtype), SpeedProfile())

    def stance_bonus(self, weapon_style: WeaponStyle) -> StanceBonus:
        return self._stances.get(weapon_style, StanceBonus())

    def subtypes(self) -> List[str]:
        return list(self._styles.keys())

    def describe(self, weapon_subtype: Optional[str]) -> List[Dict]:
        """Style list for display, index-aligned with resolve()."""
        return [
            {"index": index, **profile.to_dict()}
            for index, profile in enumerate(self.styles_for(weapon_subtype))
        ]


DEFAULT_ATTACK_STYLES = AttackStyleTable()
