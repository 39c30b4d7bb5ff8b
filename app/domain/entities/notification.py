"""Notification - fire-and-forget message for a driver, partner or admin."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecipientType(str, Enum):
    DRIVER = "driver"
    PARTNER = "partner"
    PARTNER_STAFF = "partner_staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Notification:
    type: str
    recipient_type: RecipientType
    recipient_id: str | None
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    data: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None
