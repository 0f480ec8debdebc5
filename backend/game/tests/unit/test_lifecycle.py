import pytest

from game.logic.enums import SessionStatus
from game.logic.lifecycle import (
    ACTIVE_STATUSES,
    allowed_transitions,
    can_transition,
    display_status,
    starts_new_round,
)


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (SessionStatus.LOBBY, SessionStatus.IN_GAME),
            (SessionStatus.IN_GAME, SessionStatus.IN_ROUND),
            (SessionStatus.IN_ROUND, SessionStatus.RESOLVING_COMBAT),
            (SessionStatus.RESOLVING_COMBAT, SessionStatus.IN_ROUND),
            (SessionStatus.RESOLVING_COMBAT, SessionStatus.RESOLVING_SHOP),
            (SessionStatus.RESOLVING_SHOP, SessionStatus.RESOLVING_COMBAT),
            (SessionStatus.RESOLVING_SHOP, SessionStatus.IN_ROUND),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (SessionStatus.LOBBY, SessionStatus.IN_ROUND),
            (SessionStatus.IN_GAME, SessionStatus.LOBBY),
            (SessionStatus.IN_ROUND, SessionStatus.IN_ROUND),
            (SessionStatus.IN_ROUND, SessionStatus.FINISHED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)

    @pytest.mark.parametrize("status", sorted(ACTIVE_STATUSES))
    def test_every_active_status_can_end(self, status):
        assert SessionStatus.ENDED in allowed_transitions(status)

    @pytest.mark.parametrize("status", [SessionStatus.ENDED, SessionStatus.FINISHED])
    def test_terminal_statuses_have_no_exit(self, status):
        assert allowed_transitions(status) == frozenset()
        assert status not in ACTIVE_STATUSES


class TestRounds:
    def test_new_round_from_game_start_and_after_shop(self):
        assert starts_new_round(SessionStatus.IN_GAME, SessionStatus.IN_ROUND)
        assert starts_new_round(SessionStatus.RESOLVING_SHOP, SessionStatus.IN_ROUND)

    def test_returning_from_combat_continues_round(self):
        assert not starts_new_round(SessionStatus.RESOLVING_COMBAT, SessionStatus.IN_ROUND)


class TestDisplayStatus:
    def test_finished_displays_as_ended(self):
        assert display_status(SessionStatus.FINISHED) == SessionStatus.ENDED

    def test_other_statuses_unchanged(self):
        assert display_status(SessionStatus.IN_ROUND) == SessionStatus.IN_ROUND
