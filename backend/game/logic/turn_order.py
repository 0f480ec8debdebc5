"""
Turn order resolution for one round.

Participants are processed strictly in priority order (highest first). Each one
takes their desired slot if free, otherwise scans forward, wrapping from N back
to 1, and takes the first free slot. With a priority sequence that is a
permutation of 1..N there is always a free slot within N steps, so the result
is a bijection onto 1..N. The action order is the participants sorted by slot.

Everything here is a pure function of its inputs; the assignment is never
stored and can be recomputed whenever priorities or desired slots change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from game.logic.exceptions import TurnOrderError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

DEFAULT_DESIRED_SLOT = 1


class TurnAssignment(BaseModel, frozen=True):
    """Final slots for one round and the induced action order."""

    slots: dict[int, int]  # participant number -> final slot
    order: list[int]  # participant numbers, slot 1 acts first


def _validate(priority: Sequence[int], desired: Mapping[int, int], total: int) -> None:
    if total < 1:
        raise TurnOrderError(f"total participants must be >= 1, got {total}")
    if len(priority) != total or set(priority) != set(range(1, total + 1)):
        raise TurnOrderError(f"priority order must be a permutation of 1..{total}, got {list(priority)}")
    for number in priority:
        slot = desired.get(number)
        if slot is not None and not 1 <= slot <= total:
            raise TurnOrderError(f"desired slot {slot} for participant {number} is outside 1..{total}")


def resolve_slots(priority: Sequence[int], desired: Mapping[int, int], total: int) -> dict[int, int]:
    """Assign every participant a distinct slot in 1..total.

    Participants without a desired slot want slot 1. Desired slots of numbers
    outside the priority sequence are ignored. Raises TurnOrderError when the
    priority sequence is not a permutation of 1..total.
    """
    _validate(priority, desired, total)

    occupied: set[int] = set()
    slots: dict[int, int] = {}
    for number in priority:
        slot = desired.get(number, DEFAULT_DESIRED_SLOT)
        for _ in range(total):
            if slot not in occupied:
                break
            slot = 1 if slot >= total else slot + 1
        else:  # pragma: no cover
            raise TurnOrderError(f"no free slot left for participant {number}")
        slots[number] = slot
        occupied.add(slot)
    return slots


def derive_action_order(slots: Mapping[int, int]) -> list[int]:
    """Participant numbers sorted by ascending final slot."""
    return sorted(slots, key=slots.__getitem__)


def compute_turn_assignment(priority: Sequence[int], desired: Mapping[int, int], total: int) -> TurnAssignment:
    slots = resolve_slots(priority, desired, total)
    return TurnAssignment(slots=slots, order=derive_action_order(slots))
