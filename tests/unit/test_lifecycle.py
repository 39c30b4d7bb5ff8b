import pytest

from app.domain.entities.booking import TERMINAL_STATUSES, BookingStatus
from app.domain.errors import BookingStatusConflictError, InvalidTransitionError
from app.domain.lifecycle import BookingAction, allowed_sources, can_apply, next_status

S = BookingStatus


def test_create_allows_only_the_two_entry_statuses():
    assert next_status(None, BookingAction.CREATE, S.PENDING_PAYMENT) == S.PENDING_PAYMENT
    with pytest.raises(InvalidTransitionError):
        next_status(None, BookingAction.CREATE, S.ACTIVE)


def test_accept_can_land_in_three_statuses():
    for target in (S.PARTNER_ACCEPTED, S.PENDING_INSURANCE_UPLOAD, S.ACTIVE):
        assert next_status(S.PENDING_PARTNER_APPROVAL, BookingAction.ACCEPT, target) == target


def test_unlisted_transition_is_rejected():
    with pytest.raises(InvalidTransitionError) as exc_info:
        next_status(S.COMPLETED, BookingAction.ACTIVATE, S.ACTIVE)
    assert exc_info.value.code == "INVALID_TRANSITION"
    assert exc_info.value.current_status == "completed"


def test_invalid_transition_is_a_status_conflict():
    assert issubclass(InvalidTransitionError, BookingStatusConflictError)


def test_finish_sources():
    assert allowed_sources(BookingAction.FINISH) == {S.ACTIVE, S.IN_PROGRESS, S.PARTNER_ACCEPTED}


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_cannot_be_cancelled(status):
    assert not can_apply(status, BookingAction.CANCEL)


def test_every_live_status_can_be_cancelled():
    live = [s for s in BookingStatus if s not in TERMINAL_STATUSES]
    assert live
    assert all(can_apply(s, BookingAction.CANCEL) for s in live)


def test_overdue_only_from_active():
    assert allowed_sources(BookingAction.MARK_OVERDUE) == {S.ACTIVE}


def test_approved_return_completes_from_the_finishable_statuses():
    assert allowed_sources(BookingAction.APPROVE_RETURN) == allowed_sources(BookingAction.FINISH)
    assert next_status(S.ACTIVE, BookingAction.APPROVE_RETURN, S.COMPLETED) == S.COMPLETED
    with pytest.raises(InvalidTransitionError):
        next_status(S.PENDING_PAYMENT, BookingAction.APPROVE_RETURN, S.COMPLETED)
