"""Map, participant, highlight, template, and dice endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from config import DEFAULT_ATTACK_RANGE, SQUARE_SIZE_FT
from engine.combat import movement_budget
from engine.dice import DiceResult, InvalidNotation, roll
from engine.geometry import in_bounds
from engine.initiative import current_entry, remove_from_order, select_map
from engine.movement import valid_attack_targets, valid_movement_positions
from engine.rules import action_range_ft, offerable_actions
from engine.templates import AoETemplate, template_keys
from models.characters import ActionDefinition, Participant
from models.game_state import TableSession
from models.map_state import MapSnapshot

logger = logging.getLogger(__name__)

router = APIRouter()


class ParticipantUpsert(BaseModel):
    """Request body for adding or replacing a participant snapshot."""
    participant: Participant


class HighlightResponse(BaseModel):
    """Cells to highlight for a participant."""
    entity_id: str
    max_range: float                # Grid units
    positions: list[str]            # "x,y" keys


class TemplateResponse(BaseModel):
    """Cells covered by an AoE template."""
    cells: list[str]


class RollRequest(BaseModel):
    """Request body for a free-form dice roll."""
    notation: str


def _get_table(request: Request) -> TableSession:
    """Get the singleton table from app state."""
    return request.app.state.table


def get_participant(table: TableSession, entity_id: str) -> Participant:
    """Look up a participant or answer 404."""
    participant = table.participants.get(entity_id)
    if participant is None:
        raise HTTPException(status_code=404, detail=f"Unknown participant '{entity_id}'")
    return participant


def find_action(participant: Participant, name: str) -> ActionDefinition:
    """Look up one of a participant's actions by name, ignoring case."""
    for action in participant.resolved_actions():
        if action.name.lower() == name.strip().lower():
            return action
    raise HTTPException(
        status_code=404,
        detail=f"{participant.name} has no action named '{name}'",
    )


@router.get("")
def get_table(request: Request) -> dict:
    """Get the map, participants, and turn state."""
    table = _get_table(request)
    current = current_entry(table.turn_state)
    return {
        "table_id": table.table_id,
        "name": table.name,
        "map": table.map.model_dump(mode="json"),
        "participants": [p.model_dump(mode="json") for p in table.participants.values()],
        "turn_state": table.turn_state.model_dump(mode="json"),
        "current_turn": current.token_id if current is not None else None,
    }


@router.put("/map")
def put_map(snapshot: MapSnapshot, request: Request) -> dict:
    """Select or replace the battle map.

    Switching to a different ``map_id`` resets initiative and turn state.
    Placements in the snapshot move participants; participants it leaves
    out stay where they are when that cell is still free on the new map.
    Placements for unknown entities are dropped; the rest must be in bounds,
    off obstacles and on distinct cells, or nothing changes.
    """
    table = _get_table(request)
    entities = {
        entity_id: placement
        for entity_id, placement in snapshot.entities.items()
        if entity_id in table.participants
    }
    claimed: dict[tuple[int, int], str] = {}
    for entity_id, placement in entities.items():
        position = tuple(placement.position)
        if not in_bounds(position, snapshot.width, snapshot.height):
            raise HTTPException(
                status_code=400,
                detail=f"Placement for '{entity_id}' is outside map boundaries",
            )
        if snapshot.is_obstacle(position):
            raise HTTPException(
                status_code=400,
                detail=f"Placement for '{entity_id}' is on an obstacle",
            )
        if position in claimed:
            raise HTTPException(
                status_code=400,
                detail=f"'{entity_id}' and '{claimed[position]}' are placed on the same cell",
            )
        claimed[position] = entity_id

    table.map = snapshot.model_copy(update={"entities": entities})
    for entity_id, participant in table.participants.items():
        if entity_id in entities:
            continue
        position = tuple(participant.position)
        if (
            in_bounds(position, snapshot.width, snapshot.height)
            and not table.map.is_obstacle(position)
            and table.map.entity_at(position) is None
        ):
            table.map = table.map.with_entity_at(entity_id, position)
            entities[entity_id] = table.map.entities[entity_id]
    table.turn_state = select_map(table.turn_state, snapshot.map_id)

    # Keep participant positions in step with the new placements
    for entity_id, placement in entities.items():
        participant = table.participants[entity_id]
        table.participants[entity_id] = participant.model_copy(
            update={"position": placement.position}
        )

    logger.info(
        "Map %s selected (%dx%d, %s)",
        snapshot.map_id, snapshot.width, snapshot.height, snapshot.layout.value,
    )
    return {"map_id": table.map.map_id, "turn_state": table.turn_state.model_dump(mode="json")}


@router.put("/participants")
def put_participant(body: ParticipantUpsert, request: Request) -> dict:
    """Add a participant or replace its snapshot, placing its token on the map."""
    table = _get_table(request)
    participant = body.participant

    if not in_bounds(participant.position, table.map.width, table.map.height):
        raise HTTPException(status_code=400, detail="Position is outside map boundaries")
    occupant = table.map.entity_at(participant.position, exclude_id=participant.entity_id)
    if occupant is not None:
        raise HTTPException(
            status_code=400,
            detail=f"Position is occupied by '{occupant.entity_id}'",
        )

    table.participants[participant.entity_id] = participant
    table.map = table.map.with_entity_at(participant.entity_id, participant.position)
    return {"entity_id": participant.entity_id, "position": participant.position}


@router.delete("/participants/{entity_id}")
def delete_participant(entity_id: str, request: Request) -> dict:
    """Remove a participant from the map and the initiative order."""
    table = _get_table(request)
    participant = get_participant(table, entity_id)

    del table.participants[entity_id]
    table.map = table.map.without_entity(entity_id)
    table.turn_state = remove_from_order(table.turn_state, participant.token_key)
    return {"removed": entity_id}


@router.get("/participants/{entity_id}/moves", response_model=HighlightResponse)
def get_moves(entity_id: str, request: Request) -> HighlightResponse:
    """Cells the participant could move to this turn."""
    table = _get_table(request)
    participant = get_participant(table, entity_id)
    budget = movement_budget(participant)
    positions = valid_movement_positions(participant, table.map, budget)
    return HighlightResponse(entity_id=entity_id, max_range=budget, positions=sorted(positions))


@router.get("/participants/{entity_id}/targets", response_model=HighlightResponse)
def get_targets(
    entity_id: str,
    request: Request,
    action: str | None = Query(default=None, description="Action name to take the range from"),
) -> HighlightResponse:
    """Cells holding a target the participant could attack.

    Without ``action`` the default melee reach is used.
    """
    table = _get_table(request)
    participant = get_participant(table, entity_id)

    max_range = DEFAULT_ATTACK_RANGE
    if action is not None:
        reach_ft = action_range_ft(find_action(participant, action))
        if reach_ft is None:
            raise HTTPException(status_code=400, detail=f"Action '{action}' has no usable range")
        max_range = reach_ft / SQUARE_SIZE_FT

    positions = valid_attack_targets(participant, table.map, max_range)
    return HighlightResponse(entity_id=entity_id, max_range=max_range, positions=sorted(positions))


@router.get("/participants/{entity_id}/actions")
def get_actions(entity_id: str, request: Request) -> list[dict]:
    """Actions the participant can offer right now."""
    table = _get_table(request)
    participant = get_participant(table, entity_id)
    return [action.model_dump(mode="json") for action in offerable_actions(participant)]


@router.post("/templates", response_model=TemplateResponse)
def post_template(template: AoETemplate, request: Request) -> TemplateResponse:
    """Cells an AoE template covers on the current map."""
    table = _get_table(request)
    keys = template_keys(template, table.map.width, table.map.height, table.map.layout)
    return TemplateResponse(cells=sorted(keys))


@router.post("/roll", response_model=DiceResult)
def post_roll(body: RollRequest) -> DiceResult:
    """Roll dice from notation like '2d6+3'."""
    try:
        return roll(body.notation)
    except InvalidNotation as exc:
        raise HTTPException(status_code=400, detail=str(exc))
