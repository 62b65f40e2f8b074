"""Table session and event log models for the HTTP adapter."""

from datetime import datetime

from pydantic import BaseModel

from models.characters import Participant
from models.map_state import MapSnapshot
from models.turn_state import TurnState


class TableEvent(BaseModel):
    """A logged event from the table."""
    round: int
    entity_id: str | None = None
    kind: str                       # "move", "attack", "initiative", ...
    description: str
    details: dict = {}              # Rolls, damage, etc.
    timestamp: datetime


class TableSession(BaseModel):
    """Everything the host keeps for one table."""
    table_id: str
    name: str = "Tactical Table"
    map: MapSnapshot
    participants: dict[str, Participant] = {}  # entity_id -> snapshot
    turn_state: TurnState = TurnState()
    event_log: list[TableEvent] = []
