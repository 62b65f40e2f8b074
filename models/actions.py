"""Validation results, roll outcomes, and intent models."""

from enum import Enum

from pydantic import BaseModel, model_validator

from models.characters import CharacterView, MonsterView
from models.map_state import MapSnapshot, Position


class RejectionCode(str, Enum):
    """Why an intent was refused."""
    OUT_OF_BOUNDS = "OutOfBounds"
    CONDITION_RESTRICTED = "ConditionRestricted"
    DESTINATION_OCCUPIED = "DestinationOccupied"
    DESTINATION_BLOCKED = "DestinationBlocked"
    NO_TARGET = "NoTarget"
    SELF_TARGET_INVALID = "SelfTargetInvalid"
    NO_LINE_OF_SIGHT = "NoLineOfSight"
    RANGE_EXCEEDED = "RangeExceeded"
    RESOURCE_EXHAUSTED = "ResourceExhausted"
    NOT_YOUR_TURN = "NotYourTurn"


class ValidationResult(BaseModel):
    """Outcome of validating a move, attack, or action use."""
    is_valid: bool
    code: RejectionCode | None = None
    reason: str | None = None       # Human-readable, safe to display
    cost: float | None = None       # Movement cost in grid units
    path: list[Position] | None = None
    range: float | None = None      # Distance to target in grid units
    has_line_of_sight: bool | None = None

    @model_validator(mode="after")
    def _consistent(self) -> "ValidationResult":
        if self.is_valid and (self.code is not None or self.reason is not None):
            raise ValueError("A valid result cannot carry a rejection")
        if not self.is_valid and (self.code is None or not self.reason):
            raise ValueError("A rejection needs a code and a reason")
        return self

    @classmethod
    def reject(cls, code: RejectionCode, reason: str, **extra) -> "ValidationResult":
        return cls(is_valid=False, code=code, reason=reason, **extra)

    @classmethod
    def ok(cls, **extra) -> "ValidationResult":
        return cls(is_valid=True, **extra)


class DamageComponentResult(BaseModel):
    """Rolled result of one damage component."""
    rolls: list[int]
    total: int
    damage_type: str


class DamageResult(BaseModel):
    """Rolled damage for a whole action."""
    per_roll: list[DamageComponentResult] = []
    total_damage: int = 0


class AttackResolution(BaseModel):
    """The dice story of a resolved attack."""
    attacker_id: str
    target_id: str
    action_name: str
    roll: int                       # The kept d20
    attack_bonus: int
    total: int
    target_armor_class: int
    hit: bool
    critical: bool = False
    used_advantage: bool = False
    used_disadvantage: bool = False
    damage: DamageResult | None = None
    target_hp_remaining: int
    description: str


class MoveOutcome(BaseModel):
    """Result of committing a movement intent."""
    result: ValidationResult
    map: MapSnapshot                # Unchanged when rejected


class AttackOutcome(BaseModel):
    """Result of committing an attack intent."""
    result: ValidationResult
    resolution: AttackResolution | None = None
    target: CharacterView | MonsterView | None = None  # Target after damage
