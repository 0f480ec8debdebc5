import itertools
import random

import pytest

from game.logic.exceptions import TurnOrderError
from game.logic.turn_order import compute_turn_assignment, derive_action_order, resolve_slots


class TestResolveSlots:
    def test_documented_scenario(self):
        slots = resolve_slots([3, 1, 4, 2], {3: 2, 1: 2, 4: 1, 2: 4}, 4)

        assert slots == {3: 2, 1: 3, 4: 1, 2: 4}
        assert derive_action_order(slots) == [4, 3, 1, 2]

    def test_distinct_desired_slots_are_kept_regardless_of_priority(self):
        desired = {1: 3, 2: 1, 3: 4, 4: 2}
        for priority in itertools.permutations([1, 2, 3, 4]):
            assert resolve_slots(list(priority), desired, 4) == desired

    def test_missing_desired_slot_defaults_to_first(self):
        slots = resolve_slots([2, 1, 3], {}, 3)

        # everyone wants slot 1; priority order decides who scans further
        assert slots == {2: 1, 1: 2, 3: 3}

    def test_scan_wraps_from_last_slot_to_first(self):
        slots = resolve_slots([1, 2, 3], {1: 3, 2: 3, 3: 3}, 3)

        assert slots == {1: 3, 2: 1, 3: 2}

    def test_single_participant(self):
        assert resolve_slots([1], {}, 1) == {1: 1}

    def test_desired_slots_of_unknown_numbers_are_ignored(self):
        assert resolve_slots([1, 2], {7: 99}, 2) == {1: 1, 2: 2}

    @pytest.mark.parametrize("total", [1, 2, 5, 8])
    def test_always_a_bijection(self, total):
        rng = random.Random(total)
        for _ in range(200):
            priority = rng.sample(range(1, total + 1), total)
            desired = {n: rng.randint(1, total) for n in range(1, total + 1) if rng.random() < 0.8}

            slots = resolve_slots(priority, desired, total)

            assert set(slots) == set(range(1, total + 1))
            assert sorted(slots.values()) == list(range(1, total + 1))

    def test_is_deterministic(self):
        args = ([4, 2, 3, 1], {4: 2, 2: 2, 3: 2, 1: 2}, 4)
        assert resolve_slots(*args) == resolve_slots(*args)


class TestResolveSlotsRejectsInvalidInput:
    @pytest.mark.parametrize(
        ("priority", "total"),
        [
            ([1, 1, 2], 3),
            ([1, 2], 3),
            ([1, 2, 4], 3),
            ([1, 2, 3, 4], 3),
        ],
    )
    def test_priority_must_be_permutation(self, priority, total):
        with pytest.raises(TurnOrderError, match="permutation"):
            resolve_slots(priority, {}, total)

    def test_total_must_be_positive(self):
        with pytest.raises(TurnOrderError, match=">= 1"):
            resolve_slots([], {}, 0)

    @pytest.mark.parametrize("slot", [0, 4, -1])
    def test_desired_slot_out_of_range(self, slot):
        with pytest.raises(TurnOrderError, match="outside"):
            resolve_slots([1, 2, 3], {2: slot}, 3)

    def test_error_is_validation_kind(self):
        with pytest.raises(TurnOrderError) as exc_info:
            resolve_slots([1, 1], {}, 2)
        assert exc_info.value.reason == "invalid_turn_order_input"


class TestComputeTurnAssignment:
    def test_order_is_strictly_ascending_by_slot(self):
        assignment = compute_turn_assignment([2, 3, 1, 5, 4], {2: 4, 3: 4, 1: 1, 5: 5, 4: 5}, 5)

        slots_in_order = [assignment.slots[number] for number in assignment.order]
        assert slots_in_order == sorted(slots_in_order)
        assert len(set(assignment.order)) == 5
