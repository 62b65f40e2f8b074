"""D&D 5e combat math: attack bonus, damage, resources, and action range."""

from __future__ import annotations

import logging
import math
import random
import re

from config import (
    MELEE_RANGE_FT,
    RANGED_RANGE_FT,
    SPELL_RANGE_FT,
    TOUCH_RANGE_FT,
)
from engine.dice import (
    D20Result,
    InvalidNotation,
    parse_notation,
    roll_d20,
    roll_dice,
)
from engine.geometry import distance
from models.actions import (
    AttackResolution,
    DamageComponentResult,
    DamageResult,
    RejectionCode,
    ValidationResult,
)
from models.characters import ActionDefinition, ActionType, Participant
from models.map_state import DEFAULT_DIAGONAL_RULE, DiagonalRule, GridLayout

logger = logging.getLogger(__name__)

_DEFAULT_RANGES_FT = {
    ActionType.MELEE_ATTACK: MELEE_RANGE_FT,
    ActionType.RANGED_ATTACK: RANGED_RANGE_FT,
    ActionType.SPELL: SPELL_RANGE_FT,
}

_RANGE_NUMBER = re.compile(r"(\d+)")


def ability_modifier(score: int) -> int:
    """Calculate ability modifier from a score using the 5e formula.

    Args:
        score: The ability score (e.g. 16).

    Returns:
        The modifier (e.g. +3 for score 16).
    """
    return (score - 10) // 2


def proficiency_bonus_for_level(level: int) -> int:
    """Proficiency bonus of a leveled character (+2 at 1st, +6 at 17th)."""
    return math.ceil(level / 4) + 1


def attack_bonus(participant: Participant, action: ActionDefinition) -> int:
    """Total bonus added to an attack roll made with ``action``.

    The governing ability's modifier, plus proficiency when the action is
    marked proficient.
    """
    bonus = 0
    if action.attack_ability is not None:
        bonus += participant.ability_modifier(action.attack_ability)
    if action.is_proficient:
        bonus += participant.proficiency_bonus_value()
    return bonus


def resolve_damage(
    action: ActionDefinition,
    critical: bool = False,
    rng: random.Random | None = None,
) -> DamageResult:
    """Roll every damage component of an action and sum them.

    Args:
        action: The action dealing damage.
        critical: Roll twice the dice (modifiers are not doubled).
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        DamageResult; an action without damage components deals 0.
    """
    rng = rng or random.Random()
    per_roll = []
    for component in action.damage_rolls:
        count = component.dice.count * (2 if critical else 1)
        rolled = roll_dice(count, component.dice.faces, component.modifier, rng=rng)
        per_roll.append(DamageComponentResult(
            rolls=rolled.rolls,
            total=rolled.total,
            damage_type=component.damage_type,
        ))
    return DamageResult(
        per_roll=per_roll,
        total_damage=sum(r.total for r in per_roll),
    )


def check_action_resources(
    participant: Participant,
    action: ActionDefinition,
) -> ValidationResult:
    """Check the resources an action consumes are available.

    Only spell slots are tracked. A participant that tracks slots needs an
    unspent slot of the spell's level; having no slot of that level counts
    as having none left. Participants without slots are not limited.
    """
    if action.requires_spell_slot and participant.tracks_spell_slots:
        slot = participant.spell_slot(action.spell_level)
        if slot is None or slot.exhausted:
            return ValidationResult.reject(
                RejectionCode.RESOURCE_EXHAUSTED,
                f"No level {action.spell_level} spell slots remaining",
            )
    return ValidationResult.ok()


def can_use_action(participant: Participant, action: ActionDefinition) -> bool:
    """Check if an action can be used (spell slots only)."""
    return check_action_resources(participant, action).is_valid


def action_range_ft(action: ActionDefinition) -> int | None:
    """Resolve an action's reach in feet.

    Numeric ranges are taken as-is. Text containing "touch" or "self" is
    5ft; otherwise the first number in the text is used ("30 feet",
    "120 ft."). An action without a range falls back to its type's default.

    Returns:
        Range in feet, or None when range text has no usable number.
    """
    if action.range is None:
        return _DEFAULT_RANGES_FT.get(action.type, MELEE_RANGE_FT)
    if isinstance(action.range, int):
        return action.range

    text = action.range.lower()
    if "touch" in text or "self" in text:
        return TOUCH_RANGE_FT
    match = _RANGE_NUMBER.search(text)
    if match:
        return int(match.group(1))
    return None


def is_within_action_range(
    attacker: Participant,
    target: Participant,
    action: ActionDefinition,
    layout: GridLayout = GridLayout.SQUARE,
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE,
) -> bool:
    """Check if ``target`` is within reach of ``attacker``'s ``action``.

    Unrecognised range text counts as out of range rather than an error.
    """
    reach = action_range_ft(action)
    if reach is None:
        return False
    return distance(attacker.position, target.position, layout, diagonal_rule) <= reach


def roll_attack(
    bonus: int,
    advantage: bool = False,
    disadvantage: bool = False,
    rng: random.Random | None = None,
) -> tuple[D20Result, int]:
    """Roll a d20 attack and return (d20 result, total)."""
    d20 = roll_d20(advantage=advantage, disadvantage=disadvantage, rng=rng)
    return d20, d20.roll + bonus


def resolve_attack(
    attacker: Participant,
    target: Participant,
    action: ActionDefinition,
    advantage: bool = False,
    disadvantage: bool = False,
    rng: random.Random | None = None,
) -> AttackResolution:
    """Resolve an attack: roll to hit, roll damage if hit.

    A natural 20 always hits and doubles the damage dice; a natural 1 always
    misses. The target is not modified; see ``apply_damage``.

    Args:
        attacker: The attacking participant.
        target: The target participant.
        action: The attack or spell being used.
        advantage: Attacker rolls with advantage.
        disadvantage: Attacker rolls with disadvantage.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        AttackResolution with full details.
    """
    rng = rng or random.Random()
    bonus = attack_bonus(attacker, action)
    d20, total = roll_attack(bonus, advantage, disadvantage, rng=rng)

    critical = d20.roll == 20
    hit = critical or (d20.roll != 1 and total >= target.armor_class)

    header = (
        f"{attacker.name} attacks {target.name} with {action.name}! "
        f"Roll: {d20.roll}{bonus:+d}={total} vs AC {target.armor_class}"
    )
    if not hit:
        return AttackResolution(
            attacker_id=attacker.entity_id,
            target_id=target.entity_id,
            action_name=action.name,
            roll=d20.roll,
            attack_bonus=bonus,
            total=total,
            target_armor_class=target.armor_class,
            hit=False,
            used_advantage=d20.used_advantage,
            used_disadvantage=d20.used_disadvantage,
            target_hp_remaining=target.current_hp,
            description=f"{header}: MISS!",
        )

    damage = resolve_damage(action, critical=critical, rng=rng)
    dealt = max(0, damage.total_damage)
    remaining = max(0, target.current_hp - dealt)
    kind = "CRITICAL HIT" if critical else "HIT"
    description = (
        f"{header}: {kind}! Damage: {dealt}. "
        f"{target.name} has {remaining} HP remaining."
    )
    return AttackResolution(
        attacker_id=attacker.entity_id,
        target_id=target.entity_id,
        action_name=action.name,
        roll=d20.roll,
        attack_bonus=bonus,
        total=total,
        target_armor_class=target.armor_class,
        hit=True,
        critical=critical,
        used_advantage=d20.used_advantage,
        used_disadvantage=d20.used_disadvantage,
        damage=damage,
        target_hp_remaining=remaining,
        description=description,
    )


def apply_damage(participant: Participant, damage: int) -> Participant:
    """Return a copy of ``participant`` with HP reduced, floored at 0."""
    return participant.model_copy(
        update={"current_hp": max(0, participant.current_hp - max(0, damage))}
    )


def is_unconscious(participant: Participant) -> bool:
    """Check if a participant has dropped to 0 HP."""
    return participant.current_hp <= 0


def offerable_actions(participant: Participant) -> list[ActionDefinition]:
    """Actions worth offering to the player right now.

    Actions whose dice content is corrupt are logged and left out rather than
    failing the turn, as are actions whose resources are spent. A component
    with no dice is flat damage and is fine.
    """
    offered = []
    for action in participant.resolved_actions():
        try:
            for component in action.damage_rolls:
                if component.dice.count == 0:
                    continue
                parse_notation(component.dice.notation)
        except InvalidNotation:
            logger.warning(
                "Skipping action %r for %s: corrupt damage dice",
                action.name, participant.entity_id,
            )
            continue
        if not can_use_action(participant, action):
            continue
        offered.append(action)
    return offered
