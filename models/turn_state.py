"""Initiative entries and turn-sequencing state."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from models.characters import Faction


class CombatPhase(str, Enum):
    """Where an encounter is in its lifecycle."""
    IDLE = "idle"                   # No combat running
    ROLLED = "rolled"               # Initiative rolled, combat not started
    ACTIVE = "active"               # Turns are being taken


class InitiativeEntry(BaseModel):
    """One participant's place in the initiative order."""
    model_config = ConfigDict(frozen=True)

    token_id: str
    label: str
    roll: int                       # The kept d20
    modifier: int
    total: int
    tiebreak_score: int             # Raw Dexterity score
    faction: Faction


class TurnState(BaseModel):
    """Initiative order and whose turn it is."""
    model_config = ConfigDict(frozen=True)

    map_id: str | None = None
    phase: CombatPhase = CombatPhase.IDLE
    initiative_order: tuple[InitiativeEntry, ...] = ()
    current_turn_index: int | None = None
    round_number: int = Field(default=1, ge=1)

    @computed_field
    @property
    def is_in_combat(self) -> bool:
        return self.phase == CombatPhase.ACTIVE

    @model_validator(mode="after")
    def _index_in_range(self) -> "TurnState":
        index = self.current_turn_index
        if index is not None and not 0 <= index < len(self.initiative_order):
            raise ValueError(
                f"current_turn_index {index} is outside the initiative order"
            )
        if self.phase == CombatPhase.ACTIVE and index is None:
            raise ValueError("An active combat needs a current turn")
        return self
