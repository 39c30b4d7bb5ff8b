"""Booking lifecycle transition table.

Every status change goes through ``next_status``; anything not listed in
``TRANSITIONS`` is rejected.
"""

from enum import Enum

from app.domain.entities.booking import TERMINAL_STATUSES, BookingStatus
from app.domain.errors import InvalidTransitionError

S = BookingStatus


class BookingAction(str, Enum):
    CREATE = "create"
    PAYMENT_SENT = "payment_sent"
    ACCEPT = "accept"
    REJECT = "reject"
    AUTO_REJECT = "auto_reject"
    EXPIRE_PAYMENT = "expire_payment"
    EXPIRE_INSURANCE = "expire_insurance"
    ACTIVATE = "activate"
    MARK_OVERDUE = "mark_overdue"
    FINISH = "finish"
    APPROVE_RETURN = "approve_return"
    CANCEL = "cancel"


# (from_status, action) -> allowed target statuses
TRANSITIONS: dict[tuple[BookingStatus | None, BookingAction], frozenset[BookingStatus]] = {
    (None, BookingAction.CREATE): frozenset({S.PENDING_PAYMENT, S.PENDING_PARTNER_APPROVAL}),
    (S.PENDING_PAYMENT, BookingAction.PAYMENT_SENT): frozenset({S.PENDING_PARTNER_APPROVAL}),
    (S.PENDING_PARTNER_APPROVAL, BookingAction.ACCEPT): frozenset(
        {S.PARTNER_ACCEPTED, S.PENDING_INSURANCE_UPLOAD, S.ACTIVE}
    ),
    (S.PENDING_PARTNER_APPROVAL, BookingAction.REJECT): frozenset({S.PARTNER_REJECTED}),
    (S.PENDING_PARTNER_APPROVAL, BookingAction.AUTO_REJECT): frozenset({S.AUTO_REJECTED}),
    (S.PENDING_PAYMENT, BookingAction.EXPIRE_PAYMENT): frozenset({S.PAYMENT_EXPIRED}),
    (S.PENDING_INSURANCE_UPLOAD, BookingAction.EXPIRE_INSURANCE): frozenset({S.INSURANCE_EXPIRED}),
    (S.PARTNER_ACCEPTED, BookingAction.ACTIVATE): frozenset({S.ACTIVE}),
    (S.PENDING_INSURANCE_UPLOAD, BookingAction.ACTIVATE): frozenset({S.ACTIVE}),
    (S.ACTIVE, BookingAction.MARK_OVERDUE): frozenset({S.OVERDUE}),
    (S.ACTIVE, BookingAction.FINISH): frozenset({S.COMPLETED}),
    (S.IN_PROGRESS, BookingAction.FINISH): frozenset({S.COMPLETED}),
    (S.PARTNER_ACCEPTED, BookingAction.FINISH): frozenset({S.COMPLETED}),
    (S.PARTNER_ACCEPTED, BookingAction.APPROVE_RETURN): frozenset({S.COMPLETED}),
    (S.ACTIVE, BookingAction.APPROVE_RETURN): frozenset({S.COMPLETED}),
    (S.IN_PROGRESS, BookingAction.APPROVE_RETURN): frozenset({S.COMPLETED}),
}

# Any live booking can be cancelled.
for _status in BookingStatus:
    if _status not in TERMINAL_STATUSES:
        TRANSITIONS[(_status, BookingAction.CANCEL)] = frozenset({S.CANCELLED})


def allowed_sources(action: BookingAction) -> frozenset[BookingStatus]:
    """Statuses from which ``action`` may be applied."""
    return frozenset(
        source for (source, act) in TRANSITIONS if act == action and source is not None
    )


def can_apply(current: BookingStatus | None, action: BookingAction) -> bool:
    return (current, action) in TRANSITIONS


def next_status(
    current: BookingStatus | None,
    action: BookingAction,
    target: BookingStatus,
) -> BookingStatus:
    """
    Validate ``current --action--> target`` against the table.

    Returns:
        The target status.

    Raises:
        InvalidTransitionError: if the pair is not in the table or the target is not allowed.
    """
    allowed = TRANSITIONS.get((current, action))
    if not allowed or target not in allowed:
        raise InvalidTransitionError(
            current_status=current.value if current else "new",
            action=action.value,
            target=target.value,
        )
    return target
