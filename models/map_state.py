"""Map snapshot, grid layout, and terrain models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from config import DIAGONAL_RULE

Position = tuple[int, int]


class GridLayout(str, Enum):
    """How cells on a map are addressed."""
    SQUARE = "square"
    HEX = "hex"                     # Pointy-top, odd rows shifted right


class DiagonalRule(str, Enum):
    """How diagonal steps are charged on square maps."""
    AVERAGE = "average"             # Every diagonal costs 7.5ft
    ALTERNATE = "alternate"         # Diagonals alternate 5ft / 10ft


DEFAULT_DIAGONAL_RULE = DiagonalRule(DIAGONAL_RULE)


class PixelPoint(BaseModel):
    """A point in screen space."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class TerrainEntry(BaseModel):
    """Terrain painted onto a single cell."""
    model_config = ConfigDict(frozen=True)

    position: Position
    terrain_type: str = "normal"    # "normal", "difficult", "water", ...
    properties: dict[str, Any] = {}  # May carry "movement_multiplier"


class TokenPlacement(BaseModel):
    """An entity standing on a cell."""
    model_config = ConfigDict(frozen=True)

    entity_id: str
    position: Position


class MapSnapshot(BaseModel):
    """Read-only view of a battle map for a single engine call."""
    model_config = ConfigDict(frozen=True)

    map_id: str = "map"
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    layout: GridLayout = GridLayout.SQUARE
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE
    obstacles: frozenset[Position] = frozenset()
    terrain: tuple[TerrainEntry, ...] = ()
    entities: dict[str, TokenPlacement] = {}  # entity_id -> placement

    def is_obstacle(self, position: Position) -> bool:
        return tuple(position) in self.obstacles

    def terrain_at(self, position: Position) -> TerrainEntry | None:
        """Return the terrain entry on a cell, if any (last one wins)."""
        found = None
        for entry in self.terrain:
            if entry.position == tuple(position):
                found = entry
        return found

    def entity_at(
        self,
        position: Position,
        exclude_id: str | None = None,
    ) -> TokenPlacement | None:
        """Return the entity standing on a cell, ignoring ``exclude_id``."""
        for placement in self.entities.values():
            if placement.entity_id == exclude_id:
                continue
            if placement.position == tuple(position):
                return placement
        return None

    def with_entity_at(self, entity_id: str, position: Position) -> "MapSnapshot":
        """Return a copy of this snapshot with one entity placed at ``position``."""
        entities = dict(self.entities)
        entities[entity_id] = TokenPlacement(entity_id=entity_id, position=position)
        return self.model_copy(update={"entities": entities})

    def without_entity(self, entity_id: str) -> "MapSnapshot":
        entities = {k: v for k, v in self.entities.items() if k != entity_id}
        return self.model_copy(update={"entities": entities})
