from dataclasses import replace

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.clock import Clock
from app.application.interfaces.notification_gateway import NotificationGateway
from app.domain.entities.notification import Notification
from app.infrastructure.db.tables import notifications


class NotificationGatewaySQL(NotificationGateway):
    """Delivers notifications by writing them to the in-app notifications table."""

    def __init__(self, session: AsyncSession, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def send(self, notification: Notification) -> Notification:
        created_at = notification.created_at or self._clock.now()
        stmt = insert(notifications).values(
            type=notification.type,
            recipient_type=notification.recipient_type.value,
            recipient_id=notification.recipient_id,
            title=notification.title,
            message=notification.message,
            priority=notification.priority.value,
            data=notification.data,
            read=False,
            created_at=created_at,
        )
        result = await self._session.execute(stmt)
        return replace(notification, id=result.inserted_primary_key[0], created_at=created_at)
