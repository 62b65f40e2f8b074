"""Tests for D&D 5e combat math."""

import logging
import random

import pytest

from engine.rules import (
    ability_modifier,
    action_range_ft,
    apply_damage,
    attack_bonus,
    can_use_action,
    check_action_resources,
    is_unconscious,
    is_within_action_range,
    offerable_actions,
    proficiency_bonus_for_level,
    resolve_attack,
    resolve_damage,
)
from models.actions import RejectionCode
from models.characters import (
    Ability,
    AbilityScores,
    ActionDefinition,
    ActionType,
    CharacterView,
    DamageRoll,
    DiceSpec,
    MonsterView,
    SpellSlot,
)


class _ScriptedRng(random.Random):
    """Random whose randint() replays a fixed script, then falls back to a seed."""

    def __init__(self, script):
        super().__init__(0)
        self._script = list(script)

    def randint(self, a, b):
        if self._script:
            return self._script.pop(0)
        return super().randint(a, b)


LONGSWORD = ActionDefinition(
    name="Longsword",
    type=ActionType.MELEE_ATTACK,
    damage_rolls=(DamageRoll(dice=DiceSpec(count=1, faces=8), modifier=3, damage_type="SLASHING"),),
    attack_ability=Ability.STRENGTH,
    is_proficient=True,
)

MAGIC_MISSILE = ActionDefinition(
    name="Magic Missile",
    type=ActionType.SPELL,
    range="120 feet",
    damage_rolls=(DamageRoll(dice=DiceSpec(count=3, faces=4), modifier=3, damage_type="FORCE"),),
    spell_level=1,
)


def _make_character(
    entity_id: str = "c1",
    position: tuple[int, int] = (0, 0),
    level: int = 5,
    strength: int = 16,
    hp: int = 20,
    ac: int = 15,
    spell_slots: tuple[SpellSlot, ...] = (),
    actions: tuple[ActionDefinition, ...] = (LONGSWORD,),
) -> CharacterView:
    """Helper to create a test character."""
    return CharacterView(
        entity_id=entity_id,
        name=f"Char_{entity_id}",
        position=position,
        level=level,
        current_hp=hp,
        max_hp=hp,
        armor_class=ac,
        ability_scores=AbilityScores(strength=strength),
        spell_slots=spell_slots,
        actions=actions,
    )


def _make_monster(
    entity_id: str = "m1",
    position: tuple[int, int] = (1, 0),
    hp: int = 15,
    ac: int = 13,
) -> MonsterView:
    """Helper to create a test monster."""
    return MonsterView(
        entity_id=entity_id,
        name=f"Goblin_{entity_id}",
        position=position,
        current_hp=hp,
        max_hp=hp,
        armor_class=ac,
        ability_scores=AbilityScores(strength=8, dexterity=14),
    )


class TestAbilityModifier:
    """Tests for ability_modifier()."""

    @pytest.mark.parametrize("score,expected", [
        (1, -5), (8, -1), (9, -1), (10, 0), (11, 0), (16, 3), (20, 5),
    ])
    def test_scores(self, score, expected):
        assert ability_modifier(score) == expected


class TestProficiency:
    """Tests for proficiency and attack bonus."""

    @pytest.mark.parametrize("level,expected", [
        (1, 2), (4, 2), (5, 3), (8, 3), (9, 4), (13, 5), (17, 6), (20, 6),
    ])
    def test_by_level(self, level, expected):
        assert proficiency_bonus_for_level(level) == expected

    def test_level_5_melee(self):
        """STR 16 (+3) plus the level 5 proficiency bonus (+3)."""
        assert attack_bonus(_make_character(level=5), LONGSWORD) == 6

    def test_level_4_melee(self):
        assert attack_bonus(_make_character(level=4), LONGSWORD) == 5

    def test_not_proficient(self):
        action = LONGSWORD.model_copy(update={"is_proficient": False})
        assert attack_bonus(_make_character(), action) == 3

    def test_no_ability(self):
        """An action without an ability adds only proficiency."""
        action = LONGSWORD.model_copy(update={"attack_ability": None})
        assert attack_bonus(_make_character(level=1), action) == 2

    def test_sheet_modifier_override(self):
        char = _make_character().model_copy(
            update={"ability_modifiers": {Ability.STRENGTH: 5}}
        )
        assert attack_bonus(char, LONGSWORD) == 8

    def test_monster_default_proficiency(self):
        monster = _make_monster()
        action = LONGSWORD.model_copy(update={"attack_ability": Ability.DEXTERITY})
        assert attack_bonus(monster, action) == 2 + 2

    def test_each_variant_supplies_proficiency(self):
        assert _make_character(level=9).proficiency_bonus_value() == 4
        assert _make_monster().model_copy(update={"proficiency_bonus": 5}).proficiency_bonus_value() == 5


class TestResolveDamage:
    """Tests for resolve_damage()."""

    def test_components_summed(self):
        action = LONGSWORD.model_copy(update={"damage_rolls": (
            DamageRoll(dice=DiceSpec(count=1, faces=8), modifier=3, damage_type="SLASHING"),
            DamageRoll(dice=DiceSpec(count=1, faces=6), damage_type="FIRE"),
        )})
        result = resolve_damage(action, rng=random.Random(42))
        assert len(result.per_roll) == 2
        assert result.per_roll[1].damage_type == "FIRE"
        assert result.total_damage == sum(r.total for r in result.per_roll)

    def test_no_components(self):
        action = ActionDefinition(name="Shove")
        assert resolve_damage(action).total_damage == 0

    def test_flat_component(self):
        nip = ActionDefinition(
            name="Nip",
            damage_rolls=(DamageRoll(dice=DiceSpec(count=0, faces=1), modifier=1),),
        )
        result = resolve_damage(nip, critical=True, rng=random.Random(1))
        assert result.total_damage == 1
        assert result.per_roll[0].rolls == []

    def test_critical_doubles_dice(self):
        result = resolve_damage(MAGIC_MISSILE, critical=True, rng=random.Random(1))
        assert len(result.per_roll[0].rolls) == 6
        assert result.per_roll[0].total == sum(result.per_roll[0].rolls) + 3

    def test_bounds(self):
        rng = random.Random(9)
        for _ in range(100):
            assert 4 <= resolve_damage(LONGSWORD, rng=rng).total_damage <= 11


class TestResources:
    """Tests for spell slot checks."""

    def test_non_spell_always_usable(self):
        assert can_use_action(_make_character(), LONGSWORD)

    def test_slot_available(self):
        char = _make_character(spell_slots=(SpellSlot(level=1, total=2, used=1),))
        assert can_use_action(char, MAGIC_MISSILE)

    def test_slot_exhausted(self):
        char = _make_character(spell_slots=(SpellSlot(level=1, total=2, used=2),))
        assert not can_use_action(char, MAGIC_MISSILE)
        result = check_action_resources(char, MAGIC_MISSILE)
        assert result.code == RejectionCode.RESOURCE_EXHAUSTED
        assert "level 1" in result.reason

    def test_missing_level_counts_as_exhausted(self):
        fireball = MAGIC_MISSILE.model_copy(update={"name": "Fireball", "spell_level": 3})
        char = _make_character(spell_slots=(SpellSlot(level=1, total=2, used=0),))
        assert not can_use_action(char, fireball)
        assert check_action_resources(char, fireball).code == RejectionCode.RESOURCE_EXHAUSTED

    def test_no_tracked_slots_allowed(self):
        assert can_use_action(_make_character(), MAGIC_MISSILE)

    def test_monster_spells_not_limited(self):
        lich = MonsterView(entity_id="m1", name="Lich", position=(0, 0), current_hp=135, max_hp=135)
        assert can_use_action(lich, MAGIC_MISSILE)

    def test_cantrip_needs_no_slot(self):
        cantrip = MAGIC_MISSILE.model_copy(update={"spell_level": 0})
        char = _make_character(spell_slots=(SpellSlot(level=1, total=0, used=0),))
        assert can_use_action(char, cantrip)


class TestActionRange:
    """Tests for action_range_ft() and is_within_action_range()."""

    @pytest.mark.parametrize("text,expected", [
        ("30 feet", 30),
        ("120 ft.", 120),
        ("Touch", 5),
        ("Self (15-foot cone)", 5),
        (60, 60),
        ("Sight", None),
    ])
    def test_parsed(self, text, expected):
        action = ActionDefinition(name="X", type=ActionType.SPELL, range=text)
        assert action_range_ft(action) == expected

    @pytest.mark.parametrize("action_type,expected", [
        (ActionType.MELEE_ATTACK, 5),
        (ActionType.RANGED_ATTACK, 150),
        (ActionType.SPELL, 60),
        (ActionType.OTHER, 5),
    ])
    def test_defaults(self, action_type, expected):
        assert action_range_ft(ActionDefinition(name="X", type=action_type)) == expected

    def test_within_range(self):
        bow = ActionDefinition(name="Bow", type=ActionType.RANGED_ATTACK, range="30 feet")
        attacker = _make_character(position=(0, 0))
        assert is_within_action_range(attacker, _make_monster(position=(6, 0)), bow)
        assert not is_within_action_range(attacker, _make_monster(position=(7, 0)), bow)

    def test_unparseable_is_out_of_range(self):
        odd = ActionDefinition(name="Gaze", type=ActionType.SPELL, range="Sight")
        assert not is_within_action_range(_make_character(), _make_monster(), odd)


class TestResolveAttack:
    """Tests for resolve_attack()."""

    def test_hit(self):
        rng = _ScriptedRng([12, 5])
        result = resolve_attack(_make_character(), _make_monster(ac=13), LONGSWORD, rng=rng)
        assert result.roll == 12
        assert result.total == 18
        assert result.hit
        assert not result.critical
        assert result.damage.total_damage == 8
        assert result.target_hp_remaining == 7
        assert "HIT" in result.description

    def test_miss(self):
        rng = _ScriptedRng([2])
        result = resolve_attack(_make_character(), _make_monster(ac=13), LONGSWORD, rng=rng)
        assert not result.hit
        assert result.damage is None
        assert result.target_hp_remaining == 15
        assert "MISS" in result.description

    def test_natural_20_always_hits(self):
        rng = _ScriptedRng([20, 4, 4])
        result = resolve_attack(_make_character(), _make_monster(ac=30), LONGSWORD, rng=rng)
        assert result.hit
        assert result.critical
        assert result.damage.per_roll[0].rolls == [4, 4]
        assert "CRITICAL HIT" in result.description

    def test_natural_1_always_misses(self):
        rng = _ScriptedRng([1])
        result = resolve_attack(_make_character(), _make_monster(ac=1), LONGSWORD, rng=rng)
        assert not result.hit

    def test_advantage_recorded(self):
        rng = _ScriptedRng([3, 15, 5])
        result = resolve_attack(
            _make_character(), _make_monster(), LONGSWORD, advantage=True, rng=rng,
        )
        assert result.roll == 15
        assert result.used_advantage

    def test_target_not_modified(self):
        target = _make_monster()
        resolve_attack(_make_character(), target, LONGSWORD, rng=_ScriptedRng([20, 8, 8]))
        assert target.current_hp == 15


class TestApplyDamage:
    """Tests for apply_damage() and is_unconscious()."""

    def test_basic_damage(self):
        char = _make_character(hp=20)
        damaged = apply_damage(char, 5)
        assert damaged.current_hp == 15
        assert char.current_hp == 20

    def test_overkill_floors_at_zero(self):
        damaged = apply_damage(_make_character(hp=20), 50)
        assert damaged.current_hp == 0
        assert is_unconscious(damaged)

    def test_zero_damage(self):
        assert apply_damage(_make_character(hp=20), 0).current_hp == 20


class TestOfferableActions:
    """Tests for offerable_actions()."""

    def test_all_offered(self):
        char = _make_character(actions=(LONGSWORD, MAGIC_MISSILE))
        assert [a.name for a in offerable_actions(char)] == ["Longsword", "Magic Missile"]

    def test_exhausted_spell_dropped(self):
        char = _make_character(
            actions=(LONGSWORD, MAGIC_MISSILE),
            spell_slots=(SpellSlot(level=1, total=1, used=1),),
        )
        assert [a.name for a in offerable_actions(char)] == ["Longsword"]

    def test_flat_damage_offered(self):
        bite = ActionDefinition(
            name="Nip",
            damage_rolls=(DamageRoll(dice=DiceSpec(count=0, faces=1), modifier=1),),
        )
        char = _make_character(actions=(bite,))
        assert [a.name for a in offerable_actions(char)] == ["Nip"]

    def test_corrupt_dice_logged_and_dropped(self, caplog):
        broken = ActionDefinition(
            name="Broken",
            damage_rolls=(DamageRoll(dice=DiceSpec.model_construct(count=-1, faces=6)),),
        )
        char = _make_character(actions=(broken, LONGSWORD))
        with caplog.at_level(logging.WARNING, logger="engine.rules"):
            offered = offerable_actions(char)
        assert [a.name for a in offered] == ["Longsword"]
        assert "Broken" in caplog.text
