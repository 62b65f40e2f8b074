"""Dice rolling utilities: notation parsing, rolls, advantage."""

import random
import re

from pydantic import BaseModel

_NOTATION = re.compile(r"(\d+)d(\d+)(?:([+-])(\d+))?")


class InvalidNotation(ValueError):
    """Raised when a dice string is not ``<count>d<faces>[+|-<modifier>]``."""


class DiceNotation(BaseModel):
    """A parsed dice expression."""
    count: int
    faces: int
    modifier: int = 0

    def __str__(self) -> str:
        if self.modifier:
            return f"{self.count}d{self.faces}{self.modifier:+d}"
        return f"{self.count}d{self.faces}"


class DiceResult(BaseModel):
    """Result of a dice roll."""
    total: int
    rolls: list[int]
    modifier: int
    notation: str


class D20Result(BaseModel):
    """A d20 roll, possibly with advantage or disadvantage."""
    roll: int                       # The kept die
    rolls: list[int]                # Every die thrown
    used_advantage: bool = False
    used_disadvantage: bool = False


def parse_notation(notation: str) -> DiceNotation:
    """Parse dice notation like '2d6+3', '1d20', '4d6-1'.

    Raises:
        InvalidNotation: If the whole string is not valid notation, or asks
            for zero dice or zero-sided dice.
    """
    text = notation.strip().lower()
    match = _NOTATION.fullmatch(text)
    if not match:
        raise InvalidNotation(f"Invalid dice notation: {notation!r}")

    count = int(match.group(1))
    faces = int(match.group(2))
    if count < 1 or faces < 1:
        raise InvalidNotation(f"Invalid dice notation: {notation!r}")

    modifier = int(match.group(4)) if match.group(4) else 0
    if match.group(3) == "-":
        modifier = -modifier
    return DiceNotation(count=count, faces=faces, modifier=modifier)


def roll_die(faces: int, rng: random.Random | None = None) -> int:
    """Roll a single die uniformly in [1, faces]."""
    if faces < 1:
        raise ValueError(f"A die needs at least one face, got {faces}")
    rng = rng or random.Random()
    return rng.randint(1, faces)


def roll_dice(
    count: int,
    faces: int,
    modifier: int = 0,
    rng: random.Random | None = None,
) -> DiceResult:
    """Roll ``count`` dice of ``faces`` sides and add ``modifier``."""
    rng = rng or random.Random()
    rolls = [roll_die(faces, rng) for _ in range(count)]
    notation = str(DiceNotation(count=count, faces=faces, modifier=modifier))
    return DiceResult(
        total=sum(rolls) + modifier,
        rolls=rolls,
        modifier=modifier,
        notation=notation,
    )


def roll(notation: str, rng: random.Random | None = None) -> DiceResult:
    """Parse and roll dice notation like '2d6+3', '1d20', '4d6-1'.

    Args:
        notation: Dice notation string (e.g. "2d6+3").
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        DiceResult with total, individual rolls, modifier, and notation.

    Raises:
        InvalidNotation: If the notation cannot be parsed.
    """
    parsed = parse_notation(notation)
    result = roll_dice(parsed.count, parsed.faces, parsed.modifier, rng=rng)
    return result.model_copy(update={"notation": notation.strip().lower()})


def roll_d20(
    advantage: bool = False,
    disadvantage: bool = False,
    rng: random.Random | None = None,
) -> D20Result:
    """Roll a d20, optionally with advantage or disadvantage.

    Args:
        advantage: Roll twice, take the higher.
        disadvantage: Roll twice, take the lower.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        D20Result with the kept die and every die thrown.
    """
    rng = rng or random.Random()

    if advantage == disadvantage:
        # Neither, or both cancel out: straight roll
        first = rng.randint(1, 20)
        return D20Result(roll=first, rolls=[first])

    first = rng.randint(1, 20)
    second = rng.randint(1, 20)
    if advantage:
        return D20Result(roll=max(first, second), rolls=[first, second], used_advantage=True)
    return D20Result(roll=min(first, second), rolls=[first, second], used_disadvantage=True)
