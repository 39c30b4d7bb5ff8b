"""Clock port - time source for use cases."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Time abstraction so deadlines and prorations can be tested deterministically.
    """

    @abstractmethod
    def now(self) -> datetime:
        """
        Current instant.

        Returns:
            Timezone-aware UTC datetime.
        """
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FakeClock(Clock):
    """Fixed clock for tests; move it with ``set_time`` or ``advance``."""

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, new_time: datetime) -> None:
        self._fixed_time = new_time

    def advance(self, seconds: int = 0, minutes: int = 0, hours: int = 0, days: int = 0) -> None:
        self._fixed_time = self._fixed_time + timedelta(
            seconds=seconds, minutes=minutes, hours=hours, days=days
        )
