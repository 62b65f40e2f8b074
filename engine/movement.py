"""Movement and attack legality checks against a map snapshot."""

from __future__ import annotations

from config import (
    DEFAULT_ATTACK_RANGE,
    DEFAULT_MOVEMENT_RANGE,
    SQUARE_SIZE_FT,
    TERRAIN_MULTIPLIERS,
)
from engine.geometry import (
    cells_within_range,
    grid_distance,
    in_bounds,
    line_cells,
    line_of_sight,
    position_key,
)
from models.actions import RejectionCode, ValidationResult
from models.characters import Participant
from models.map_state import DiagonalRule, GridLayout, MapSnapshot, Position


def terrain_multiplier(map_state: MapSnapshot, position: Position) -> float:
    """Movement cost multiplier for entering a cell.

    An explicit ``movement_multiplier`` property on the terrain entry wins;
    otherwise the terrain type's multiplier applies, 1 when unlisted.
    """
    entry = map_state.terrain_at(position)
    if entry is None:
        return 1
    explicit = entry.properties.get("movement_multiplier")
    if explicit is not None:
        return float(explicit)
    return TERRAIN_MULTIPLIERS.get(entry.terrain_type.lower(), 1)


def movement_cost(path: list[Position], map_state: MapSnapshot) -> float:
    """Grid-unit cost of walking a path, terrain included.

    The first cell of ``path`` is the starting cell and costs nothing. Under
    the alternating diagonal rule every second diagonal step costs double.
    """
    alternate = (
        map_state.layout == GridLayout.SQUARE
        and map_state.diagonal_rule == DiagonalRule.ALTERNATE
    )
    total = 0.0
    diagonals = 0
    for prev, cell in zip(path, path[1:]):
        if alternate and prev[0] != cell[0] and prev[1] != cell[1]:
            diagonals += 1
            step = 2 if diagonals % 2 == 0 else 1
        else:
            step = grid_distance(prev, cell, map_state.layout, map_state.diagonal_rule)
        total += step * terrain_multiplier(map_state, cell)
    return total


def _check_bounds(to: Position, map_state: MapSnapshot) -> ValidationResult | None:
    if not in_bounds(to, map_state.width, map_state.height):
        return ValidationResult.reject(
            RejectionCode.OUT_OF_BOUNDS,
            "Destination is outside map boundaries",
        )
    return None


def validate_movement(
    from_pos: Position,
    to: Position,
    map_state: MapSnapshot,
    participant: Participant,
    max_range: float = DEFAULT_MOVEMENT_RANGE,
) -> ValidationResult:
    """Check if a move from ``from_pos`` to ``to`` is legal.

    Checks run in a fixed order and stop at the first failure: bounds,
    conditions, occupancy, obstacles, the cells along the way, then cost
    against ``max_range``. The route is the straight line between the two
    cells; no path is searched around whatever stands on it.

    Args:
        from_pos: Starting (x, y).
        to: Destination (x, y).
        map_state: Current map snapshot.
        participant: The participant moving.
        max_range: Movement budget in grid units.

    Returns:
        ValidationResult; valid results carry the path and its cost, and a
        range rejection still reports the cost.
    """
    rejected = _check_bounds(to, map_state)
    if rejected:
        return rejected

    restrictions = participant.movement_restrictions()
    if restrictions:
        return ValidationResult.reject(
            RejectionCode.CONDITION_RESTRICTED,
            f"Movement restricted by conditions: {', '.join(restrictions)}",
        )

    if map_state.entity_at(to, exclude_id=participant.entity_id) is not None:
        return ValidationResult.reject(
            RejectionCode.DESTINATION_OCCUPIED,
            "Destination is occupied by another entity",
        )

    if map_state.is_obstacle(to):
        return ValidationResult.reject(
            RejectionCode.DESTINATION_BLOCKED,
            "Destination is blocked by an obstacle",
        )

    path = line_cells(tuple(from_pos), tuple(to), map_state.layout)
    for cell in path[1:-1]:
        if map_state.is_obstacle(cell) or map_state.entity_at(
            cell, exclude_id=participant.entity_id
        ) is not None:
            return ValidationResult.reject(
                RejectionCode.DESTINATION_BLOCKED,
                f"No valid path to destination: {position_key(cell)} is blocked",
            )

    cost = movement_cost(path, map_state)
    if cost > max_range:
        return ValidationResult.reject(
            RejectionCode.RANGE_EXCEEDED,
            f"Movement cost ({cost:g}) exceeds maximum range ({max_range:g})",
            cost=cost,
            path=path,
        )

    return ValidationResult.ok(cost=cost, path=path)


def validate_attack(
    from_pos: Position,
    to: Position,
    map_state: MapSnapshot,
    participant: Participant,
    max_range: float = DEFAULT_ATTACK_RANGE,
) -> ValidationResult:
    """Check if an attack from ``from_pos`` on the cell ``to`` is legal.

    Same order as movement, without the occupancy and obstacle checks on
    the destination: bounds, conditions, target present, not self, line of
    sight, then distance against ``max_range``.

    Args:
        from_pos: Attacker's (x, y).
        to: Target cell (x, y).
        map_state: Current map snapshot.
        participant: The attacker.
        max_range: Attack reach in grid units.

    Returns:
        ValidationResult carrying the distance in grid units once known.
    """
    rejected = _check_bounds(to, map_state)
    if rejected:
        return rejected

    restrictions = participant.attack_restrictions()
    if restrictions:
        return ValidationResult.reject(
            RejectionCode.CONDITION_RESTRICTED,
            f"Attack restricted by conditions: {', '.join(restrictions)}",
        )

    target = map_state.entity_at(to)
    if target is None:
        return ValidationResult.reject(
            RejectionCode.NO_TARGET,
            "No target at specified position",
        )
    if target.entity_id == participant.entity_id:
        return ValidationResult.reject(
            RejectionCode.SELF_TARGET_INVALID,
            "Cannot attack yourself",
        )

    reach = grid_distance(
        tuple(from_pos), tuple(to), map_state.layout, map_state.diagonal_rule,
    )
    if not line_of_sight(tuple(from_pos), tuple(to), map_state.obstacles, map_state.layout):
        return ValidationResult.reject(
            RejectionCode.NO_LINE_OF_SIGHT,
            "No line of sight to target",
            range=reach,
            has_line_of_sight=False,
        )

    if reach > max_range:
        return ValidationResult.reject(
            RejectionCode.RANGE_EXCEEDED,
            f"Target is out of range ({reach:g} > {max_range:g})",
            range=reach,
            has_line_of_sight=True,
        )

    return ValidationResult.ok(range=reach, has_line_of_sight=True)


def valid_movement_positions(
    participant: Participant,
    map_state: MapSnapshot,
    max_range: float = DEFAULT_MOVEMENT_RANGE,
) -> set[str]:
    """Position keys the participant could move to, for highlighting.

    Not authoritative: the map may change before the move is committed.
    """
    valid = set()
    candidates = cells_within_range(
        participant.position,
        max_range * SQUARE_SIZE_FT,
        map_state.width,
        map_state.height,
        map_state.layout,
        map_state.diagonal_rule,
    )
    for cell in candidates:
        if cell == tuple(participant.position):
            continue
        result = validate_movement(participant.position, cell, map_state, participant, max_range)
        if result.is_valid:
            valid.add(position_key(cell))
    return valid


def valid_attack_targets(
    participant: Participant,
    map_state: MapSnapshot,
    max_range: float = DEFAULT_ATTACK_RANGE,
) -> set[str]:
    """Position keys holding a target the participant could attack."""
    valid = set()
    candidates = cells_within_range(
        participant.position,
        max_range * SQUARE_SIZE_FT,
        map_state.width,
        map_state.height,
        map_state.layout,
        map_state.diagonal_rule,
    )
    for cell in candidates:
        result = validate_attack(participant.position, cell, map_state, participant, max_range)
        if result.is_valid:
            valid.add(position_key(cell))
    return valid
