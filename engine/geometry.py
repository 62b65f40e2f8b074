"""Grid geometry for square and hex maps: distance, pixels, ranges, lines."""

from __future__ import annotations

import math
from collections.abc import Iterable

from config import DEFAULT_CELL_SIZE, DIAGONAL_COST_FT, SQUARE_SIZE_FT
from models.map_state import (
    DEFAULT_DIAGONAL_RULE,
    DiagonalRule,
    GridLayout,
    PixelPoint,
    Position,
)

Cube = tuple[int, int, int]


def position_key(position: Position) -> str:
    """Format a position as an ``"x,y"`` key."""
    return f"{position[0]},{position[1]}"


def key_to_position(key: str) -> Position:
    """Parse an ``"x,y"`` key back into a position."""
    x, y = key.split(",")
    return int(x), int(y)


def in_bounds(position: Position, width: int, height: int) -> bool:
    """Check if a position lies on a ``width`` x ``height`` map."""
    x, y = position
    return 0 <= x < width and 0 <= y < height


# ---------------------------------------------------------------------------
# Hex coordinates (pointy-top, odd rows shifted right)
# ---------------------------------------------------------------------------

def offset_to_cube(position: Position) -> Cube:
    """Convert odd-r offset coordinates to cube coordinates."""
    x, y = position
    q = x - (y - (y & 1)) // 2
    r = y
    return q, r, -q - r


def cube_to_offset(cube: Cube) -> Position:
    """Convert cube coordinates to odd-r offset coordinates."""
    q, r, _ = cube
    return q + (r - (r & 1)) // 2, r


def _cube_round(q: float, r: float, s: float) -> Cube:
    rq, rr, rs = round(q), round(r), round(s)
    dq, dr, ds = abs(rq - q), abs(rr - r), abs(rs - s)
    if dq > dr and dq > ds:
        rq = -rr - rs
    elif dr > ds:
        rr = -rq - rs
    else:
        rs = -rq - rr
    return int(rq), int(rr), int(rs)


def hex_distance(a: Position, b: Position) -> int:
    """Distance between two hexes in grid units."""
    aq, ar, as_ = offset_to_cube(a)
    bq, br, bs = offset_to_cube(b)
    return (abs(aq - bq) + abs(ar - br) + abs(as_ - bs)) // 2


def square_distance(
    a: Position,
    b: Position,
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE,
) -> float:
    """Distance between two squares in grid units."""
    return _square_distance_ft(a, b, diagonal_rule) / SQUARE_SIZE_FT


def _square_distance_ft(a: Position, b: Position, diagonal_rule: DiagonalRule) -> float:
    dx = abs(a[0] - b[0])
    dy = abs(a[1] - b[1])
    diagonal = min(dx, dy)
    straight = max(dx, dy) - diagonal
    if diagonal_rule == DiagonalRule.ALTERNATE:
        # 5ft, 10ft, 5ft, 10ft, ...
        return (straight + diagonal + diagonal // 2) * SQUARE_SIZE_FT
    return straight * SQUARE_SIZE_FT + diagonal * DIAGONAL_COST_FT


def distance(
    a: Position,
    b: Position,
    layout: GridLayout = GridLayout.SQUARE,
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE,
) -> float:
    """Calculate distance in feet between two grid positions.

    Square maps charge diagonals by ``diagonal_rule``: the averaged rule
    costs 7.5ft per diagonal step, the alternating rule 5ft then 10ft.
    Hex maps count hex steps.

    Args:
        a: (x, y) of first position.
        b: (x, y) of second position.
        layout: Grid layout both positions are addressed in.
        diagonal_rule: Diagonal charging on square maps.

    Returns:
        Distance in feet.
    """
    if layout == GridLayout.HEX:
        return hex_distance(a, b) * SQUARE_SIZE_FT
    return _square_distance_ft(a, b, diagonal_rule)


def grid_distance(
    a: Position,
    b: Position,
    layout: GridLayout = GridLayout.SQUARE,
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE,
) -> float:
    """Distance in grid units (feet / 5)."""
    return distance(a, b, layout, diagonal_rule) / SQUARE_SIZE_FT


# ---------------------------------------------------------------------------
# Pixel conversion
# ---------------------------------------------------------------------------

def _hex_metrics(cell_size: float) -> tuple[float, float]:
    """Return (hex radius, hex width) for a cell size."""
    radius = cell_size / 2
    return radius, radius * math.sqrt(3)


def to_pixel(
    position: Position,
    cell_size: float = DEFAULT_CELL_SIZE,
    layout: GridLayout = GridLayout.SQUARE,
) -> PixelPoint:
    """Pixel coordinates of a cell's centre, map origin at top-left."""
    x, y = position
    if layout == GridLayout.HEX:
        radius, width = _hex_metrics(cell_size)
        shift = width / 2 if y % 2 == 1 else 0.0
        return PixelPoint(
            x=x * width + width / 2 + shift,
            y=y * radius * 1.5 + radius,
        )
    return PixelPoint(x=(x + 0.5) * cell_size, y=(y + 0.5) * cell_size)


def to_grid(
    pixel: PixelPoint,
    cell_size: float = DEFAULT_CELL_SIZE,
    layout: GridLayout = GridLayout.SQUARE,
) -> Position:
    """Find the cell whose centre is nearest to a pixel.

    A naive estimate is refined by checking the 3x3 neighbourhood around it,
    which resolves pixels near cell boundaries. The result may lie off the
    map; callers bound-check it.
    """
    if layout == GridLayout.HEX:
        radius, width = _hex_metrics(cell_size)
        approx_y = math.floor((pixel.y - radius) / (radius * 1.5) + 0.5)
        shift = width / 2 if approx_y % 2 == 1 else 0.0
        approx_x = math.floor((pixel.x - width / 2 - shift) / width + 0.5)
    else:
        approx_x = math.floor(pixel.x / cell_size)
        approx_y = math.floor(pixel.y / cell_size)

    best = (approx_x, approx_y)
    best_dist = math.inf
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            candidate = (approx_x + dx, approx_y + dy)
            centre = to_pixel(candidate, cell_size, layout)
            dist = math.hypot(pixel.x - centre.x, pixel.y - centre.y)
            if dist < best_dist:
                best_dist = dist
                best = candidate
    return best


def grid_dimensions(
    cols: int,
    rows: int,
    cell_size: float = DEFAULT_CELL_SIZE,
    layout: GridLayout = GridLayout.SQUARE,
) -> tuple[float, float]:
    """Pixel (width, height) needed to draw a whole map."""
    if layout == GridLayout.HEX:
        radius, width = _hex_metrics(cell_size)
        extra = width / 2 if rows > 1 else 0.0
        return cols * width + extra, rows * radius * 1.5 + radius / 2
    return cols * cell_size, rows * cell_size


def unit_centre(position: Position, layout: GridLayout = GridLayout.SQUARE) -> tuple[float, float]:
    """Cell centre in a space where neighbouring centres are 1 apart."""
    if layout == GridLayout.HEX:
        x, y = position
        shift = 0.5 if y % 2 == 1 else 0.0
        return x + shift, y * math.sqrt(3) / 2
    return float(position[0]), float(position[1])


# ---------------------------------------------------------------------------
# Ranges and lines
# ---------------------------------------------------------------------------

def cells_within_range(
    center: Position,
    range_ft: float,
    width: int,
    height: int,
    layout: GridLayout = GridLayout.SQUARE,
    diagonal_rule: DiagonalRule = DEFAULT_DIAGONAL_RULE,
) -> list[Position]:
    """All in-bounds cells whose distance to ``center`` is at most ``range_ft``.

    Args:
        center: (x, y) the range is measured from.
        range_ft: Maximum distance in feet.
        width: Map width in cells.
        height: Map height in cells.
        layout: Grid layout of the map.
        diagonal_rule: Diagonal charging on square maps.

    Returns:
        Positions in row-major order.
    """
    reach = math.ceil(range_ft / SQUARE_SIZE_FT) + 1
    cx, cy = center
    cells = []
    for y in range(max(0, cy - reach), min(height, cy + reach + 1)):
        for x in range(max(0, cx - reach), min(width, cx + reach + 1)):
            if distance(center, (x, y), layout, diagonal_rule) <= range_ft:
                cells.append((x, y))
    return cells


def _square_line(a: Position, b: Position) -> list[Position]:
    """Bresenham's line between two squares, both ends included."""
    x0, y0 = a
    x1, y1 = b

    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy

    cells = []
    while True:
        cells.append((x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x0 += sx
        if e2 < dx:
            err += dx
            y0 += sy
    return cells


def _hex_line(a: Position, b: Position) -> list[Position]:
    """Hexes crossed by the straight line between two hex centres."""
    steps = hex_distance(a, b)
    if steps == 0:
        return [a]
    aq, ar, as_ = offset_to_cube(a)
    bq, br, bs = offset_to_cube(b)
    # Nudge off exact hex edges so ties break the same way every time
    aq, ar, as_ = aq + 1e-6, ar + 1e-6, as_ - 2e-6
    bq, br, bs = bq + 1e-6, br + 1e-6, bs - 2e-6
    cells = []
    for i in range(steps + 1):
        t = i / steps
        cube = _cube_round(
            aq + (bq - aq) * t,
            ar + (br - ar) * t,
            as_ + (bs - as_) * t,
        )
        cells.append(cube_to_offset(cube))
    return cells


def line_cells(
    a: Position,
    b: Position,
    layout: GridLayout = GridLayout.SQUARE,
) -> list[Position]:
    """Cells sampled along a straight line from ``a`` to ``b`` inclusive."""
    if layout == GridLayout.HEX:
        return _hex_line(a, b)
    return _square_line(a, b)


def line_of_sight(
    a: Position,
    b: Position,
    obstacles: Iterable[Position],
    layout: GridLayout = GridLayout.SQUARE,
) -> bool:
    """Check if ``a`` can see ``b`` (blocked only by obstacle cells).

    The endpoints themselves never block.
    """
    blocked = set(obstacles)
    for cell in line_cells(a, b, layout):
        if cell != a and cell != b and cell in blocked:
            return False
    return True