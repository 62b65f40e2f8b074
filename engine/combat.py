"""Authoritative commit of movement and attack intents.

Previews (highlighted cells) are computed against whatever snapshot the
client had. These functions run against the latest snapshot right before a
change is applied, so a cell that became occupied in the meantime is
rejected here rather than double-booked.
"""

from __future__ import annotations

import logging
import random

from config import SQUARE_SIZE_FT
from engine.initiative import check_turn_gate
from engine.movement import validate_attack, validate_movement
from engine.rules import (
    action_range_ft,
    apply_damage,
    check_action_resources,
    resolve_attack,
)
from models.actions import AttackOutcome, MoveOutcome, RejectionCode, ValidationResult
from models.characters import ActionDefinition, Participant
from models.map_state import MapSnapshot, Position
from models.turn_state import TurnState

logger = logging.getLogger(__name__)


def _position_on_map(map_state: MapSnapshot, participant: Participant) -> Position:
    """Where the map says a participant stands, falling back to its snapshot."""
    placement = map_state.entities.get(participant.entity_id)
    if placement is not None:
        return placement.position
    return tuple(participant.position)


def movement_budget(participant: Participant) -> int:
    """A participant's movement for one turn in grid units."""
    return participant.speed // SQUARE_SIZE_FT


def process_move(
    turn_state: TurnState,
    map_state: MapSnapshot,
    participant: Participant,
    destination: Position,
    max_range: float | None = None,
) -> MoveOutcome:
    """Validate and apply a move.

    The turn gate runs before any movement check.

    Args:
        turn_state: Current turn state.
        map_state: Latest map snapshot.
        participant: The participant moving (its position is the start).
        destination: Target (x, y).
        max_range: Movement budget in grid units, defaults to speed / 5ft.

    Returns:
        MoveOutcome with the validation result and the map after the move
        (the same snapshot when rejected).
    """
    gated = check_turn_gate(turn_state, participant.token_key)
    if gated is not None:
        logger.info("Move by %s refused: %s", participant.entity_id, gated.reason)
        return MoveOutcome(result=gated, map=map_state)

    budget = movement_budget(participant) if max_range is None else max_range
    result = validate_movement(
        _position_on_map(map_state, participant), destination, map_state, participant, budget,
    )
    if not result.is_valid:
        logger.info("Move by %s refused: %s", participant.entity_id, result.reason)
        return MoveOutcome(result=result, map=map_state)

    logger.info(
        "%s moves %s -> %s (cost %g)",
        participant.name, result.path[0], tuple(destination), result.cost,
    )
    return MoveOutcome(
        result=result,
        map=map_state.with_entity_at(participant.entity_id, tuple(destination)),
    )


def process_attack(
    turn_state: TurnState,
    map_state: MapSnapshot,
    attacker: Participant,
    target: Participant,
    action: ActionDefinition,
    advantage: bool = False,
    disadvantage: bool = False,
    rng: random.Random | None = None,
) -> AttackOutcome:
    """Validate and resolve an attack.

    Checks the turn gate, then the action's resources, then attack legality
    against the target's cell using the action's own range.

    Args:
        turn_state: Current turn state.
        map_state: Latest map snapshot.
        attacker: The attacking participant.
        target: The participant being attacked.
        action: The action used for the attack.
        advantage: Attacker rolls with advantage.
        disadvantage: Attacker rolls with disadvantage.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        AttackOutcome with the resolution and the damaged target when valid.
    """
    gated = check_turn_gate(turn_state, attacker.token_key)
    if gated is not None:
        logger.info("Attack by %s refused: %s", attacker.entity_id, gated.reason)
        return AttackOutcome(result=gated)

    resources = check_action_resources(attacker, action)
    if not resources.is_valid:
        logger.info("Attack by %s refused: %s", attacker.entity_id, resources.reason)
        return AttackOutcome(result=resources)

    reach_ft = action_range_ft(action)
    if reach_ft is None:
        result = ValidationResult.reject(
            RejectionCode.RANGE_EXCEEDED,
            f"{action.name} has no usable range ({action.range!r})",
        )
        logger.warning("Unrecognised range on action %r: %r", action.name, action.range)
        return AttackOutcome(result=result)

    result = validate_attack(
        _position_on_map(map_state, attacker),
        _position_on_map(map_state, target),
        map_state,
        attacker,
        reach_ft / SQUARE_SIZE_FT,
    )
    if not result.is_valid:
        logger.info("Attack by %s refused: %s", attacker.entity_id, result.reason)
        return AttackOutcome(result=result)

    resolution = resolve_attack(
        attacker, target, action,
        advantage=advantage, disadvantage=disadvantage, rng=rng,
    )
    damaged = target
    if resolution.hit and resolution.damage is not None:
        damaged = apply_damage(target, resolution.damage.total_damage)
    logger.info(resolution.description)
    return AttackOutcome(result=result, resolution=resolution, target=damaged)
