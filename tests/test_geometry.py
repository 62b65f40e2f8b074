"""Tests for grid geometry: distance, pixels, ranges, lines, and sight."""

import itertools
import math

import pytest

from engine.geometry import (
    cells_within_range,
    cube_to_offset,
    distance,
    grid_dimensions,
    grid_distance,
    hex_distance,
    in_bounds,
    key_to_position,
    line_cells,
    line_of_sight,
    offset_to_cube,
    position_key,
    square_distance,
    to_grid,
    to_pixel,
)
from models.map_state import DiagonalRule, GridLayout, PixelPoint

SAMPLE = [(0, 0), (1, 0), (0, 1), (3, 2), (5, 5), (2, 7), (7, 3)]


class TestKeys:
    """Tests for position keys and bounds."""

    def test_key_round_trip(self):
        assert position_key((3, 12)) == "3,12"
        assert key_to_position("3,12") == (3, 12)

    def test_in_bounds(self):
        assert in_bounds((0, 0), 10, 10)
        assert in_bounds((9, 9), 10, 10)
        assert not in_bounds((10, 0), 10, 10)
        assert not in_bounds((0, -1), 10, 10)


class TestSquareDistance:
    """Tests for distance() on square maps."""

    def test_same_cell(self):
        assert distance((4, 4), (4, 4)) == 0

    def test_orthogonal(self):
        assert distance((0, 0), (1, 0)) == 5
        assert distance((0, 0), (0, 4)) == 20

    def test_diagonal_averaged(self):
        """Each diagonal step costs 7.5ft under the averaged rule."""
        assert distance((0, 0), (1, 1)) == 7.5
        assert distance((0, 0), (2, 2)) == 15

    def test_mixed(self):
        # 2 diagonal + 1 straight
        assert distance((0, 0), (3, 2)) == 20

    def test_alternate_rule(self):
        """Diagonals alternate 5ft / 10ft."""
        rule = DiagonalRule.ALTERNATE
        assert distance((0, 0), (1, 1), diagonal_rule=rule) == 5
        assert distance((0, 0), (2, 2), diagonal_rule=rule) == 15
        assert distance((0, 0), (3, 3), diagonal_rule=rule) == 20
        assert distance((0, 0), (4, 1), diagonal_rule=rule) == 20

    def test_square_distance_in_units(self):
        assert square_distance((0, 0), (2, 2)) == 3
        assert square_distance((0, 0), (2, 2), DiagonalRule.ALTERNATE) == 3
        assert square_distance((0, 0), (1, 1), DiagonalRule.ALTERNATE) == 1

    def test_grid_distance(self):
        assert grid_distance((0, 0), (2, 0)) == 2
        assert grid_distance((0, 0), (1, 1)) == 1.5

    @pytest.mark.parametrize("layout", [GridLayout.SQUARE, GridLayout.HEX])
    def test_symmetric(self, layout):
        for a, b in itertools.product(SAMPLE, repeat=2):
            assert distance(a, b, layout) == distance(b, a, layout)


class TestHexDistance:
    """Tests for hex coordinates and distance."""

    def test_cube_round_trip(self):
        for cell in SAMPLE:
            assert cube_to_offset(offset_to_cube(cell)) == cell

    def test_cube_sums_to_zero(self):
        for cell in SAMPLE:
            assert sum(offset_to_cube(cell)) == 0

    def test_neighbours(self):
        """An even row's neighbours below are up-left; an odd row's are up-right."""
        assert hex_distance((0, 0), (1, 0)) == 1
        assert hex_distance((0, 0), (0, 1)) == 1
        assert hex_distance((0, 0), (1, 1)) == 2
        assert hex_distance((1, 1), (2, 0)) == 1
        assert hex_distance((1, 1), (2, 2)) == 1

    def test_feet(self):
        assert distance((0, 0), (3, 0), GridLayout.HEX) == 15

    def test_triangle_inequality(self):
        for a, b, c in itertools.product(SAMPLE, repeat=3):
            assert hex_distance(a, c) <= hex_distance(a, b) + hex_distance(b, c)


class TestPixels:
    """Tests for to_pixel() / to_grid()."""

    def test_square_centre(self):
        point = to_pixel((2, 3), 40)
        assert point.x == 100
        assert point.y == 140

    def test_hex_centre(self):
        width = 20 * math.sqrt(3)
        first = to_pixel((0, 0), 40, GridLayout.HEX)
        assert first.x == pytest.approx(width / 2)
        assert first.y == pytest.approx(20)
        # Odd rows are shifted right by half a hex
        shifted = to_pixel((0, 1), 40, GridLayout.HEX)
        assert shifted.x == pytest.approx(width)
        assert shifted.y == pytest.approx(50)

    @pytest.mark.parametrize("layout", [GridLayout.SQUARE, GridLayout.HEX])
    def test_round_trip(self, layout):
        for x in range(6):
            for y in range(6):
                assert to_grid(to_pixel((x, y), 40, layout), 40, layout) == (x, y)

    def test_square_pixel_inside_cell(self):
        assert to_grid(PixelPoint(x=81, y=119), 40) == (2, 2)

    def test_hex_pixel_near_centre(self):
        centre = to_pixel((3, 3), 40, GridLayout.HEX)
        nudged = PixelPoint(x=centre.x + 5, y=centre.y - 5)
        assert to_grid(nudged, 40, GridLayout.HEX) == (3, 3)

    def test_grid_dimensions(self):
        assert grid_dimensions(10, 8, 40) == (400, 320)
        width, height = grid_dimensions(10, 8, 40, GridLayout.HEX)
        assert width == pytest.approx(10 * 20 * math.sqrt(3) + 10 * math.sqrt(3))
        assert height == pytest.approx(8 * 30 + 10)


class TestCellsWithinRange:
    """Tests for cells_within_range()."""

    def test_zero_range(self):
        assert cells_within_range((5, 5), 0, 10, 10) == [(5, 5)]

    def test_five_feet_averaged(self):
        """Diagonals at 7.5ft fall outside a 5ft range."""
        cells = cells_within_range((5, 5), 5, 10, 10)
        assert cells == [(5, 4), (4, 5), (5, 5), (6, 5), (5, 6)]

    def test_five_feet_alternate(self):
        cells = cells_within_range((5, 5), 5, 10, 10, diagonal_rule=DiagonalRule.ALTERNATE)
        assert len(cells) == 9

    def test_clipped_to_map(self):
        assert cells_within_range((0, 0), 5, 10, 10) == [(0, 0), (1, 0), (0, 1)]

    def test_hex_ring(self):
        cells = cells_within_range((2, 2), 5, 10, 10, GridLayout.HEX)
        assert len(cells) == 7
        assert (2, 2) in cells

    def test_all_within_range(self):
        for cell in cells_within_range((4, 4), 15, 10, 10):
            assert distance((4, 4), cell) <= 15


class TestLines:
    """Tests for line_cells() and line_of_sight()."""

    def test_straight_line(self):
        assert line_cells((0, 0), (3, 0)) == [(0, 0), (1, 0), (2, 0), (3, 0)]

    def test_diagonal_line(self):
        assert line_cells((0, 0), (2, 2)) == [(0, 0), (1, 1), (2, 2)]

    def test_single_cell(self):
        assert line_cells((4, 4), (4, 4)) == [(4, 4)]
        assert line_cells((4, 4), (4, 4), GridLayout.HEX) == [(4, 4)]

    def test_hex_line_endpoints_and_length(self):
        cells = line_cells((0, 0), (4, 3), GridLayout.HEX)
        assert cells[0] == (0, 0)
        assert cells[-1] == (4, 3)
        assert len(cells) == hex_distance((0, 0), (4, 3)) + 1

    def test_hex_line_steps_are_adjacent(self):
        cells = line_cells((1, 5), (6, 0), GridLayout.HEX)
        for a, b in zip(cells, cells[1:]):
            assert hex_distance(a, b) == 1

    def test_clear_sight(self):
        assert line_of_sight((0, 0), (4, 0), set())

    def test_obstacle_blocks(self):
        assert not line_of_sight((0, 0), (2, 0), {(1, 0)})

    def test_endpoints_never_block(self):
        assert line_of_sight((0, 0), (2, 0), {(0, 0), (2, 0)})

    def test_hex_obstacle_blocks(self):
        assert not line_of_sight((0, 0), (3, 0), {(1, 0)}, GridLayout.HEX)
