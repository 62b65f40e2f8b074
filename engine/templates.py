"""Area-of-effect template geometry."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from config import CONE_HALF_ANGLE_HEX, CONE_HALF_ANGLE_SQUARE
from engine.geometry import position_key, unit_centre
from models.map_state import GridLayout, Position

_EPSILON = 1e-9


class TemplateShape(str, Enum):
    """Shapes a spell or ability can fill."""
    SPHERE = "sphere"
    CUBE = "cube"
    CONE = "cone"
    LINE = "line"


class AoETemplate(BaseModel):
    """An area template placed during targeting."""
    model_config = ConfigDict(frozen=True)

    shape: TemplateShape
    size: float = Field(ge=0)       # Grid units
    center: Position
    direction: float | None = None  # Radians, 0 points toward +x
    thickness: int = Field(default=1, ge=0)  # Line half-width in cells


def _angle_between(a: float, b: float) -> float:
    """Smallest absolute difference between two angles."""
    diff = (a - b) % (2 * math.pi)
    return min(diff, 2 * math.pi - diff)


def _contains(
    template: AoETemplate,
    cell: Position,
    layout: GridLayout,
) -> bool:
    cx, cy = unit_centre(template.center, layout)
    px, py = unit_centre(cell, layout)
    dx, dy = px - cx, py - cy
    size = template.size
    direction = template.direction or 0.0

    if template.shape == TemplateShape.SPHERE:
        return math.hypot(dx, dy) <= size + _EPSILON

    if template.shape == TemplateShape.CUBE:
        gx = cell[0] - template.center[0]
        gy = cell[1] - template.center[1]
        return abs(gx) <= size and abs(gy) <= size

    if template.shape == TemplateShape.CONE:
        dist = math.hypot(dx, dy)
        if dist > size + _EPSILON:
            return False
        if dist == 0:
            return True
        half_angle = CONE_HALF_ANGLE_HEX if layout == GridLayout.HEX else CONE_HALF_ANGLE_SQUARE
        return _angle_between(math.atan2(dy, dx), direction) <= half_angle + _EPSILON

    # Line: project onto the ray, then measure the perpendicular offset
    ux, uy = math.cos(direction), math.sin(direction)
    along = dx * ux + dy * uy
    across = abs(dx * uy - dy * ux)
    return -_EPSILON <= along <= size + _EPSILON and across <= template.thickness + _EPSILON


def template_cells(
    template: AoETemplate,
    width: int,
    height: int,
    layout: GridLayout = GridLayout.SQUARE,
) -> list[Position]:
    """Cells covered by a template, clipped to the map.

    Sphere and cone use a Euclidean radius rather than movement distance, so
    they match the drawn circle. Obstacles are not considered.

    Args:
        template: The placed template.
        width: Map width in cells.
        height: Map height in cells.
        layout: Grid layout of the map.

    Returns:
        Covered positions in row-major order.
    """
    # Hex rows sit closer than one unit apart, so widen the search box
    reach = math.ceil((template.size + template.thickness) * 2 / math.sqrt(3)) + 1
    cx, cy = template.center
    cells = []
    for y in range(max(0, cy - reach), min(height, cy + reach + 1)):
        for x in range(max(0, cx - reach), min(width, cx + reach + 1)):
            if _contains(template, (x, y), layout):
                cells.append((x, y))
    return cells


def template_keys(
    template: AoETemplate,
    width: int,
    height: int,
    layout: GridLayout = GridLayout.SQUARE,
) -> set[str]:
    """Position keys covered by a template, for highlighting."""
    return {position_key(cell) for cell in template_cells(template, width, height, layout)}
