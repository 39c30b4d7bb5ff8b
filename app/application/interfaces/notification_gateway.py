from app.domain.entities.notification import Notification


class NotificationGateway:
    """Delivery of notifications. Failures must not affect the booking that caused them."""

    async def send(self, notification: Notification) -> Notification:
        raise NotImplementedError
