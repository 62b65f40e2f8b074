"""Initiative rolls and the turn-sequencing state machine.

Every transition takes a ``TurnState`` and returns a new one; nothing here
holds state between calls.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from pydantic import BaseModel

from engine.dice import roll_d20, roll_die
from models.actions import RejectionCode, ValidationResult
from models.characters import INITIATIVE_DISADVANTAGE, Ability, Participant
from models.turn_state import CombatPhase, InitiativeEntry, TurnState

logger = logging.getLogger(__name__)


class TurnTransitionError(ValueError):
    """Raised when a transition is not allowed from the current phase."""


class InitiativeSource(BaseModel):
    """One contribution to an initiative modifier."""
    source: str                     # "dexterity", "feat", "condition", ...
    name: str
    bonus: int = 0
    kind: str = "bonus"             # "bonus", "advantage", "disadvantage"


class InitiativeBreakdown(BaseModel):
    """Everything that goes into a participant's initiative roll."""
    base_modifier: int              # Dexterity modifier
    total_modifier: int
    sources: list[InitiativeSource]
    has_advantage: bool = False
    has_disadvantage: bool = False
    dice_bonus: int | None = None   # Faces of an extra die, e.g. 8

    def describe(self) -> str:
        """Readable summary, e.g. 'Modifier: +7 (Dex +2, Alert +5) [Advantage]'."""
        parts = [f"Dex {self.base_modifier:+d}"]
        for source in self.sources:
            if source.source == "dexterity":
                continue
            if source.kind == "bonus" and source.bonus:
                parts.append(f"{source.name} {source.bonus:+d}")
            elif source.kind != "bonus":
                parts.append(f"{source.name} ({source.kind})")
        text = f"Modifier: {self.total_modifier:+d}"
        if len(parts) > 1:
            text += f" ({', '.join(parts)})"
        if self.dice_bonus:
            text += f" +1d{self.dice_bonus}"
        if self.has_advantage:
            text += " [Advantage]"
        if self.has_disadvantage:
            text += " [Disadvantage]"
        return text


def _transition(state: TurnState, **changes) -> TurnState:
    """Build the next state, re-running TurnState's validators."""
    return TurnState(**{**dict(state), **changes})


def initiative_breakdown(participant: Participant) -> InitiativeBreakdown:
    """Collect the modifier, bonuses, and roll flags for initiative."""
    dex_mod = participant.ability_modifier(Ability.DEXTERITY)
    sources = [InitiativeSource(source="dexterity", name="Dexterity Modifier", bonus=dex_mod)]

    for bonus in participant.initiative_bonuses:
        sources.append(InitiativeSource(source=bonus.source, name=bonus.name, bonus=bonus.bonus))

    has_advantage = participant.initiative_advantage
    if has_advantage:
        sources.append(InitiativeSource(source="feature", name="Advantage", kind="advantage"))

    has_disadvantage = False
    for condition in participant.conditions:
        if condition.kind in INITIATIVE_DISADVANTAGE:
            has_disadvantage = True
            sources.append(InitiativeSource(
                source="condition", name=condition.label, kind="disadvantage",
            ))

    return InitiativeBreakdown(
        base_modifier=dex_mod,
        total_modifier=sum(s.bonus for s in sources if s.kind == "bonus"),
        sources=sources,
        has_advantage=has_advantage,
        has_disadvantage=has_disadvantage,
        dice_bonus=participant.initiative_dice_bonus,
    )


def roll_initiative_entry(
    participant: Participant,
    rng: random.Random | None = None,
) -> InitiativeEntry:
    """Roll initiative for one participant: d20 + modifier (+ bonus die).

    Args:
        participant: The participant rolling initiative.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        The participant's InitiativeEntry.
    """
    rng = rng or random.Random()
    breakdown = initiative_breakdown(participant)
    d20 = roll_d20(
        advantage=breakdown.has_advantage,
        disadvantage=breakdown.has_disadvantage,
        rng=rng,
    )
    extra = roll_die(breakdown.dice_bonus, rng) if breakdown.dice_bonus else 0
    return InitiativeEntry(
        token_id=participant.token_key,
        label=participant.name,
        roll=d20.roll,
        modifier=breakdown.total_modifier,
        total=d20.roll + breakdown.total_modifier + extra,
        tiebreak_score=participant.ability_scores.dexterity,
        faction=participant.faction,
    )


def sort_initiative(entries: Iterable[InitiativeEntry]) -> list[InitiativeEntry]:
    """Order entries by total, then Dexterity score, highest first.

    Entries still tied keep their original order.
    """
    return sorted(entries, key=lambda e: (e.total, e.tiebreak_score), reverse=True)


def roll_initiative(
    state: TurnState,
    participants: Iterable[Participant],
    rng: random.Random | None = None,
) -> TurnState:
    """Roll initiative for every participant and replace the order.

    Re-rolling during combat keeps the round number and, when possible, the
    participant whose turn it is.

    Raises:
        TurnTransitionError: If there is nobody to roll for.
    """
    rng = rng or random.Random()
    order = tuple(sort_initiative(roll_initiative_entry(p, rng) for p in participants))
    if not order:
        raise TurnTransitionError("No participants to roll initiative for")

    logger.info(
        "Initiative rolled: %s",
        ", ".join(f"{e.label} ({e.total})" for e in order),
    )

    if state.phase != CombatPhase.ACTIVE:
        return _transition(
            state,
            phase=CombatPhase.ROLLED,
            initiative_order=order,
            current_turn_index=None,
        )

    current = current_entry(state)
    index = 0
    if current is not None:
        for i, entry in enumerate(order):
            if entry.token_id == current.token_id:
                index = i
                break
    return _transition(state, initiative_order=order, current_turn_index=index)


def start_combat(state: TurnState) -> TurnState:
    """Begin combat with the first participant in the order.

    Raises:
        TurnTransitionError: If initiative has not been rolled.
    """
    if state.phase == CombatPhase.ACTIVE:
        return state
    if not state.initiative_order:
        raise TurnTransitionError("Roll initiative before starting combat")
    logger.info("Combat started on map %s", state.map_id)
    return _transition(
        state,
        phase=CombatPhase.ACTIVE,
        current_turn_index=0,
        round_number=1,
    )


def _require_active(state: TurnState) -> None:
    if state.phase != CombatPhase.ACTIVE:
        raise TurnTransitionError("Combat is not active")


def next_turn(state: TurnState) -> TurnState:
    """Advance to the next participant, starting a new round on wrap."""
    _require_active(state)
    index = state.current_turn_index + 1
    round_number = state.round_number
    if index >= len(state.initiative_order):
        index = 0
        round_number += 1
    return _transition(state, current_turn_index=index, round_number=round_number)


def previous_turn(state: TurnState) -> TurnState:
    """Step back to the previous participant; the round never drops below 1."""
    _require_active(state)
    index = state.current_turn_index - 1
    round_number = state.round_number
    if index < 0:
        index = len(state.initiative_order) - 1
        round_number = max(1, round_number - 1)
    return _transition(state, current_turn_index=index, round_number=round_number)


def end_combat(state: TurnState) -> TurnState:
    """Stop combat; the last order is kept for review until the next roll."""
    if state.phase == CombatPhase.ACTIVE:
        logger.info("Combat ended after %d round(s)", state.round_number)
    return _transition(
        state,
        phase=CombatPhase.IDLE,
        current_turn_index=None,
        round_number=1,
    )


def select_map(state: TurnState, map_id: str | None) -> TurnState:
    """Reset everything when the table switches to another map."""
    if map_id == state.map_id:
        return state
    return TurnState(map_id=map_id)


def remove_from_order(state: TurnState, token_id: str) -> TurnState:
    """Drop a token from the order, keeping the current turn on the same token.

    Removing the participant whose turn it is passes the turn to whoever
    followed them. Removing the last participant ends combat.
    """
    order = state.initiative_order
    positions = [i for i, e in enumerate(order) if e.token_id == token_id]
    if not positions:
        return state
    removed = positions[0]
    remaining = order[:removed] + order[removed + 1:]

    if not remaining:
        return _transition(
            state,
            phase=CombatPhase.IDLE,
            initiative_order=(),
            current_turn_index=None,
            round_number=1,
        )

    index = state.current_turn_index
    if index is not None:
        if removed < index:
            index -= 1
        elif index >= len(remaining):
            index = 0
    return _transition(state, initiative_order=remaining, current_turn_index=index)


def current_entry(state: TurnState) -> InitiativeEntry | None:
    """The entry whose turn it is, or None outside combat."""
    if state.phase != CombatPhase.ACTIVE or state.current_turn_index is None:
        return None
    return state.initiative_order[state.current_turn_index]


def check_turn_gate(state: TurnState, token_id: str) -> ValidationResult | None:
    """Reject intents from anyone but the current participant during combat.

    Returns:
        A rejection, or None when ``token_id`` may act.
    """
    if not state.is_in_combat:
        return None
    current = current_entry(state)
    if current is not None and current.token_id == token_id:
        return None
    name = current.label if current is not None else "nobody"
    return ValidationResult.reject(
        RejectionCode.NOT_YOUR_TURN,
        f"It's not your turn (waiting on {name})",
    )
