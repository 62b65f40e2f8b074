"""Initiative, turn, movement and attack intent, and event log endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from api.table import find_action, get_participant
from auth import require_dm
from engine.combat import process_attack, process_move
from engine.initiative import (
    TurnTransitionError,
    current_entry,
    end_combat,
    next_turn,
    previous_turn,
    roll_initiative,
    start_combat,
)
from models.actions import AttackResolution, RejectionCode, ValidationResult
from models.game_state import TableEvent, TableSession
from models.map_state import Position
from models.turn_state import TurnState

router = APIRouter()


class MoveRequest(BaseModel):
    """Request body for a movement intent."""
    entity_id: str
    destination: Position


class MoveResponse(BaseModel):
    """Accepted movement intent."""
    entity_id: str
    position: Position
    cost: float                     # Grid units
    path: list[Position]


class AttackRequest(BaseModel):
    """Request body for an attack intent."""
    attacker_id: str
    target_id: str
    action_name: str
    advantage: bool = False
    disadvantage: bool = False


def _get_table(request: Request) -> TableSession:
    """Get the singleton table from app state."""
    return request.app.state.table


def _log_event(
    table: TableSession,
    kind: str,
    description: str,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    table.event_log.append(TableEvent(
        round=table.turn_state.round_number,
        entity_id=entity_id,
        kind=kind,
        description=description,
        details=details or {},
        timestamp=datetime.now(timezone.utc),
    ))


def _raise_rejection(result: ValidationResult) -> None:
    """Turn a rejected intent into an HTTP error."""
    status = 409 if result.code == RejectionCode.NOT_YOUR_TURN else 400
    raise HTTPException(status_code=status, detail=result.reason)


def _apply_transition(table: TableSession, transition, *args) -> TurnState:
    try:
        table.turn_state = transition(table.turn_state, *args)
    except TurnTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return table.turn_state


def _turn_summary(state: TurnState) -> dict:
    current = current_entry(state)
    return {
        "phase": state.phase.value,
        "round_number": state.round_number,
        "current_turn": current.token_id if current is not None else None,
        "initiative_order": [entry.model_dump(mode="json") for entry in state.initiative_order],
    }


# ---------------------------------------------------------------------------
# Initiative and turns (DM only)
# ---------------------------------------------------------------------------

@router.post("/initiative/roll", dependencies=[Depends(require_dm)])
def post_roll_initiative(request: Request) -> dict:
    """Roll initiative for every participant on the table."""
    table = _get_table(request)
    state = _apply_transition(table, roll_initiative, list(table.participants.values()))
    _log_event(
        table, "initiative",
        "Initiative rolled: " + ", ".join(f"{e.label} ({e.total})" for e in state.initiative_order),
    )
    return _turn_summary(state)


@router.post("/initiative/start", dependencies=[Depends(require_dm)])
def post_start_combat(request: Request) -> dict:
    """Start combat with the first participant in the order."""
    table = _get_table(request)
    state = _apply_transition(table, start_combat)
    _log_event(table, "combat_start", "Combat started")
    return _turn_summary(state)


@router.post("/initiative/next", dependencies=[Depends(require_dm)])
def post_next_turn(request: Request) -> dict:
    """Advance to the next turn."""
    table = _get_table(request)
    state = _apply_transition(table, next_turn)
    current = current_entry(state)
    _log_event(table, "turn", f"{current.label}'s turn", entity_id=current.token_id)
    return _turn_summary(state)


@router.post("/initiative/previous", dependencies=[Depends(require_dm)])
def post_previous_turn(request: Request) -> dict:
    """Step back to the previous turn."""
    table = _get_table(request)
    state = _apply_transition(table, previous_turn)
    current = current_entry(state)
    _log_event(table, "turn", f"Back to {current.label}'s turn", entity_id=current.token_id)
    return _turn_summary(state)


@router.post("/initiative/end", dependencies=[Depends(require_dm)])
def post_end_combat(request: Request) -> dict:
    """End combat; the order stays visible until the next roll."""
    table = _get_table(request)
    state = _apply_transition(table, end_combat)
    _log_event(table, "combat_end", "Combat ended")
    return _turn_summary(state)


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

@router.post("/move", response_model=MoveResponse)
def post_move(body: MoveRequest, request: Request) -> MoveResponse:
    """Move a participant, re-validated against the current map."""
    table = _get_table(request)
    participant = get_participant(table, body.entity_id)

    outcome = process_move(table.turn_state, table.map, participant, body.destination)
    if not outcome.result.is_valid:
        _raise_rejection(outcome.result)

    table.map = outcome.map
    table.participants[participant.entity_id] = participant.model_copy(
        update={"position": tuple(body.destination)}
    )
    _log_event(
        table, "move",
        f"{participant.name} moves to {tuple(body.destination)}",
        entity_id=participant.entity_id,
        details={"cost": outcome.result.cost, "path": outcome.result.path},
    )
    return MoveResponse(
        entity_id=participant.entity_id,
        position=tuple(body.destination),
        cost=outcome.result.cost,
        path=outcome.result.path,
    )


@router.post("/attack", response_model=AttackResolution)
def post_attack(body: AttackRequest, request: Request) -> AttackResolution:
    """Resolve an attack and apply its damage to the target."""
    table = _get_table(request)
    attacker = get_participant(table, body.attacker_id)
    target = get_participant(table, body.target_id)
    action = find_action(attacker, body.action_name)

    outcome = process_attack(
        table.turn_state, table.map, attacker, target, action,
        advantage=body.advantage, disadvantage=body.disadvantage,
    )
    if not outcome.result.is_valid:
        _raise_rejection(outcome.result)

    table.participants[target.entity_id] = outcome.target
    resolution = outcome.resolution
    _log_event(
        table, "attack", resolution.description,
        entity_id=attacker.entity_id,
        details={
            "target_id": target.entity_id,
            "roll": resolution.roll,
            "total": resolution.total,
            "hit": resolution.hit,
            "damage": resolution.damage.total_damage if resolution.damage else 0,
        },
    )
    return resolution


@router.get("/log")
def get_log(request: Request) -> list[dict]:
    """Get the table's event log."""
    table = _get_table(request)
    return [event.model_dump(mode="json") for event in table.event_log]
