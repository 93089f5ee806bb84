import pytest

from realm.combat.attack_styles import DEFAULT_ATTACK_STYLES, UNARMED, AttackStyleTable
from realm.combat.models.combatant import CombatantSnapshot, EquipmentBonuses
from realm.combat.models.style import AttackStyleProfile, AttackType, SpeedClass, WeaponStyle
from realm.combat.stats import aggregate_stats, build_snapshot, sum_equipment
from realm.models.catalog import Item

from conftest import make_player


def test_every_subtype_has_a_speed_class():
    for subtype in DEFAULT_ATTACK_STYLES.subtypes():
        assert DEFAULT_ATTACK_STYLES.speed_class(subtype) in SpeedClass


@pytest.mark.parametrize(
    "subtype,speed,hits,multiplier",
    [
        ("dagger", SpeedClass.FAST, 2, 1.0),
        ("unarmed", SpeedClass.FAST, 2, 1.0),
        ("mace", SpeedClass.NORMAL, 1, 1.0),
        ("battleaxe", SpeedClass.SLOW, 1, 1.15),
        ("2hsword", SpeedClass.VERY_SLOW, 1, 1.3),
        ("boomerang", SpeedClass.NORMAL, 1, 1.0),
    ],
)
def test_speed_profiles(subtype, speed, hits, multiplier):
    assert DEFAULT_ATTACK_STYLES.speed_class(subtype) == speed
    profile = DEFAULT_ATTACK_STYLES.speed_profile(subtype)
    assert profile.hits_per_round == hits
    assert profile.damage_multiplier == multiplier


def test_style_index_is_clamped():
    styles = DEFAULT_ATTACK_STYLES.styles_for("warhammer")
    assert DEFAULT_ATTACK_STYLES.clamp_index("warhammer", 99) == len(styles) - 1
    assert DEFAULT_ATTACK_STYLES.clamp_index("warhammer", -3) == 0
    assert DEFAULT_ATTACK_STYLES.resolve("warhammer", 99) == styles[-1]


def test_unknown_subtype_falls_back_to_unarmed_styles():
    assert DEFAULT_ATTACK_STYLES.styles_for("boomerang") == DEFAULT_ATTACK_STYLES.styles_for(UNARMED)
    assert DEFAULT_ATTACK_STYLES.styles_for(None) == DEFAULT_ATTACK_STYLES.styles_for(UNARMED)


def test_controlled_style_trains_three_skills():
    spike = DEFAULT_ATTACK_STYLES.resolve("mace", 2)
    assert spike.weapon_style == WeaponStyle.CONTROLLED
    assert spike.xp_skills == ("attack", "strength", "defense")
    assert spike.training_style == "attack"
    assert spike.is_split


def test_describe_is_index_aligned():
    rows = DEFAULT_ATTACK_STYLES.describe("dagger")
    assert [row["index"] for row in rows] == list(range(len(rows)))
    assert rows[1]["name"] == DEFAULT_ATTACK_STYLES.resolve("dagger", 1).name


def test_custom_table_requires_unarmed_entry():
    jab = AttackStyleProfile(name="Jab", attack_type=AttackType.STAB, weapon_style=WeaponStyle.ACCURATE, xp_skills=("attack",))
    with pytest.raises(ValueError, match="unarmed"):
        AttackStyleTable(weapon_styles={"dagger": [jab]})

    table = AttackStyleTable(weapon_styles={UNARMED: [jab]}, weapon_speed={})
    assert table.resolve("dagger", 5) == jab
    assert table.speed_class("dagger") == SpeedClass.NORMAL


@pytest.mark.parametrize(
    "index,attack,strength,defense",
    [
        (0, 13, 10, 10),
        (1, 10, 13, 10),
        (2, 11, 11, 11),
        (3, 10, 10, 13),
    ],
)
def test_stance_bonus_applies_to_levels(index, attack, strength, defense):
    snapshot = CombatantSnapshot(attack_level=10, strength_level=10, defense_level=10, hp=10, max_hp=10)
    stats = aggregate_stats(snapshot, DEFAULT_ATTACK_STYLES.resolve("mace", index))
    assert (stats.attack, stats.strength, stats.defense) == (attack, strength, defense)


def test_equipment_is_carried_separately_from_levels():
    items = [
        Item(item_id="sword", name="Sword", type="weapon", atk_bonus=6, str_bonus=5),
        Item(item_id="vest", name="Vest", type="armor", def_bonus=3),
        Item(item_id="helm", name="Helm", type="armor", def_bonus=2, hp_bonus=1),
    ]
    assert sum_equipment(items) == EquipmentBonuses(attack=6, strength=5, defense=5, hp=1)

    snapshot = build_snapshot(make_player(), items)
    stats = aggregate_stats(snapshot, DEFAULT_ATTACK_STYLES.resolve("sword", 3))
    assert stats.defense == 13
    assert stats.total_defense == 18
    assert stats.total_attack == 16
    assert stats.total_strength == 15


def test_snapshot_clamps_hp_and_defaults_missing_skills():
    player = make_player(hp=80, max_hp=50, skills={})
    snapshot = build_snapshot(player)
    assert snapshot.hp == 50
    assert snapshot.attack_level == 1
    assert snapshot.equipment == EquipmentBonuses()
