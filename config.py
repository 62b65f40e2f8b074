"""Configuration constants for the Tactical Table engine."""

import math
import os

SQUARE_SIZE_FT = 5          # Each grid unit = 5 feet
DIAGONAL_COST_FT = 7.5      # Flat average of the alternating 5/10 diagonal rule
DIAGONAL_RULE = os.environ.get("DIAGONAL_RULE", "average")  # or "alternate"
DEFAULT_MOVEMENT_RANGE = 6  # Grid units (30 ft)
DEFAULT_ATTACK_RANGE = 1    # Grid units (5 ft melee reach)
DEFAULT_CELL_SIZE = 40      # Pixels per cell

# Action ranges in feet when an action declares none
MELEE_RANGE_FT = 5
RANGED_RANGE_FT = 150
SPELL_RANGE_FT = 60
TOUCH_RANGE_FT = 5

MONSTER_PROFICIENCY_BONUS = 2

# Movement cost multiplier per terrain type; anything unlisted costs 1
TERRAIN_MULTIPLIERS = {
    "normal": 1,
    "difficult": 2,
    "water": 2,
    "ice": 2,
    "unstable": 2,
}

# Half-angle of a cone template on each layout
CONE_HALF_ANGLE_SQUARE = math.pi / 4
CONE_HALF_ANGLE_HEX = math.pi / 3

GRID_WIDTH = int(os.environ.get("GRID_WIDTH", "20"))
GRID_HEIGHT = int(os.environ.get("GRID_HEIGHT", "20"))
TABLE_ID = os.environ.get("TABLE_ID", "table")
TABLE_NAME = os.environ.get("TABLE_NAME", "Tactical Table")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
DM_ROLE = "dm"
