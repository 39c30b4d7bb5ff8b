"""Outbox event kinds used for post-commit booking effects."""

from enum import Enum


class OutboxStatus(str, Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    RETRY = "RETRY"
    DONE = "DONE"
    FAILED = "FAILED"


class EffectType(str, Enum):
    """Side effects produced by a committed booking transition."""

    HISTORY_APPEND = "BOOKING_HISTORY_APPEND"
    NOTIFICATION_SEND = "NOTIFICATION_SEND"
    LEDGER_RECORD = "LEDGER_RECORD"
    SUBSCRIPTION_CANCEL = "STRIPE_SUBSCRIPTION_CANCEL"


AGGREGATE_BOOKING = "BOOKING"
