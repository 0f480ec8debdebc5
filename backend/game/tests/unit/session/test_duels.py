import asyncio

import pytest

from game.logic.enums import DuelSide, DuelStatus, EventType, Visibility
from game.logic.exceptions import (
    DuelNotActiveError,
    DuelNotFoundError,
    DuelNotReadyError,
    NotDuelParticipantError,
    ParticipantNotFoundError,
    SessionNotFoundError,
)
from game.session.lookups import load_duel, load_session
from shared.errors import RequestValidationError


@pytest.fixture
async def session(make_session):
    return await make_session(participants=3)


@pytest.fixture
async def duel(session, make_duel):
    return await make_duel(session.id)


class TestOpenDuel:
    async def test_opens_active_duel_and_marks_sub_session(self, store, duels, event_log, session):
        duel = await duels.open_duel(session.id, "sub-9", 1, 3)

        assert duel.status == DuelStatus.ACTIVE
        assert duel.first_decision is None
        assert duel.second_decision is None
        assert (await load_session(store, session.id)).active_sub_session_id == "sub-9"

        await event_log.drain()
        [event] = await event_log.fetch(session.id)
        assert event.event_type == EventType.DUEL_STARTED
        assert event.visibility == Visibility.PUBLIC

    async def test_same_participant_rejected(self, duels, session):
        with pytest.raises(RequestValidationError):
            await duels.open_duel(session.id, "sub-9", 2, 2)

    async def test_unseated_participant_rejected(self, duels, session):
        with pytest.raises(ParticipantNotFoundError):
            await duels.open_duel(session.id, "sub-9", 1, 7)

    async def test_unknown_session_rejected(self, duels):
        with pytest.raises(SessionNotFoundError):
            await duels.open_duel("missing", "sub-9", 1, 2)


class TestSubmitDecision:
    async def test_first_side_decision_stored(self, store, duels, session, duel):
        receipt = await duels.submit_decision(session.id, "sub-1", duel.id, 1, True)

        assert receipt.participant_number == 1
        assert receipt.side == DuelSide.FIRST
        assert receipt.decision is True
        stored = await load_duel(store, duel.id)
        assert stored.first_decision is True
        assert stored.second_decision is None
        assert stored.status == DuelStatus.ACTIVE

    async def test_both_sides_fill_their_own_field(self, store, duels, session, duel):
        await duels.submit_decision(session.id, "sub-1", duel.id, 1, "search")
        await duels.submit_decision(session.id, "sub-1", duel.id, 2, 3)

        stored = await load_duel(store, duel.id)
        assert stored.first_decision == "search"
        assert stored.second_decision == 3
        assert stored.pending_sides == []

    async def test_resubmission_last_write_wins(self, store, duels, session, duel):
        await duels.submit_decision(session.id, "sub-1", duel.id, 2, "let_pass")
        await duels.submit_decision(session.id, "sub-1", duel.id, 2, "search")

        assert (await load_duel(store, duel.id)).second_decision == "search"

    async def test_non_participant_forbidden(self, store, duels, session, duel):
        with pytest.raises(NotDuelParticipantError):
            await duels.submit_decision(session.id, "sub-1", duel.id, 3, True)

        stored = await load_duel(store, duel.id)
        assert stored.first_decision is None
        assert stored.second_decision is None

    @pytest.mark.parametrize("status", [DuelStatus.RESOLVED, DuelStatus.CANCELLED])
    async def test_closed_duel_rejects_decisions(self, store, session, make_duel, duels, status):
        closed = await make_duel(session.id, status=status, first_decision="search", second_decision=True)

        with pytest.raises(DuelNotActiveError):
            await duels.submit_decision(session.id, "sub-1", closed.id, 1, False)
        with pytest.raises(DuelNotActiveError):
            await duels.submit_decision(session.id, "sub-1", closed.id, 2, "block")

        stored = await load_duel(store, closed.id)
        assert stored.status == status
        assert stored.first_decision == "search"
        assert stored.second_decision is True

    async def test_unknown_duel_not_found(self, duels, session):
        with pytest.raises(DuelNotFoundError):
            await duels.submit_decision(session.id, "sub-1", "missing", 1, True)

    @pytest.mark.parametrize(("session_id", "sub_session_id"), [("other", "sub-1"), (None, "sub-2")])
    async def test_mismatched_session_or_sub_session_not_found(self, duels, session, duel, session_id, sub_session_id):
        with pytest.raises(DuelNotFoundError):
            await duels.submit_decision(session_id or session.id, sub_session_id, duel.id, 1, True)

    async def test_decision_event_is_moderator_only(self, duels, event_log, session, duel):
        await duels.submit_decision(session.id, "sub-1", duel.id, 1, "search")
        await event_log.drain()

        [event] = await event_log.fetch(session.id)
        assert event.event_type == EventType.DUEL_DECISION_SUBMITTED
        assert event.visibility == Visibility.MODERATOR
        assert event.participant_number == 1
        assert event.payload == {"duel_id": duel.id, "side": "first", "decision": "search"}
        assert await event_log.fetch(session.id, visibilities=[Visibility.PUBLIC]) == []

    async def test_concurrent_submissions_both_land(self, store, duels, session, duel):
        await asyncio.gather(
            duels.submit_decision(session.id, "sub-1", duel.id, 1, True),
            duels.submit_decision(session.id, "sub-1", duel.id, 2, False),
        )

        stored = await load_duel(store, duel.id)
        assert stored.first_decision is True
        assert stored.second_decision is False


class TestCloseDuel:
    async def test_resolve_requires_both_decisions(self, duels, session, duel):
        await duels.submit_decision(session.id, "sub-1", duel.id, 1, True)

        with pytest.raises(DuelNotReadyError, match="second"):
            await duels.resolve_duel(duel.id, {"winner": 1})

    async def test_resolve_stores_outcome_and_clears_sub_session(self, store, duels, event_log, session, duel):
        await duels.submit_decision(session.id, "sub-1", duel.id, 1, True)
        await duels.submit_decision(session.id, "sub-1", duel.id, 2, False)

        resolved = await duels.resolve_duel(duel.id, {"winner": 1})

        assert resolved.status == DuelStatus.RESOLVED
        assert resolved.outcome == {"winner": 1}
        assert (await load_session(store, session.id)).active_sub_session_id is None
        await event_log.drain()
        events = await event_log.fetch(session.id, visibilities=[Visibility.PUBLIC])
        assert [e.event_type for e in events] == [EventType.DUEL_RESOLVED]

    async def test_cancel_closes_duel(self, store, duels, session, duel):
        cancelled = await duels.cancel_duel(duel.id)

        assert cancelled.status == DuelStatus.CANCELLED
        assert (await load_session(store, session.id)).active_sub_session_id is None
        with pytest.raises(DuelNotActiveError):
            await duels.submit_decision(session.id, "sub-1", duel.id, 1, True)

    async def test_close_happens_once(self, duels, duel):
        await duels.cancel_duel(duel.id)

        with pytest.raises(DuelNotActiveError):
            await duels.cancel_duel(duel.id)
        with pytest.raises(DuelNotActiveError):
            await duels.resolve_duel(duel.id, {})

    async def test_close_keeps_newer_sub_session_pointer(self, store, duels, session, duel):
        await duels.open_duel(session.id, "sub-2", 2, 3)

        await duels.cancel_duel(duel.id)

        assert (await load_session(store, session.id)).active_sub_session_id == "sub-2"
