"""UUIDGenerator port - identifiers for bookings and external references."""

import secrets
import string
import uuid
from abc import ABC, abstractmethod


class UUIDGenerator(ABC):
    @abstractmethod
    def generate_booking_id(self) -> str:
        """
        Opaque booking identifier.

        Returns:
            String of the form ``booking_<hex>``.
        """
        raise NotImplementedError


class RealUUIDGenerator(UUIDGenerator):
    ALLOWED_CHARS = string.ascii_lowercase + string.digits

    def generate_booking_id(self) -> str:
        suffix = "".join(secrets.choice(self.ALLOWED_CHARS) for _ in range(9))
        return f"booking_{uuid.uuid4().hex[:12]}{suffix}"


class FakeUUIDGenerator(UUIDGenerator):
    """Sequential, predictable ids for tests."""

    def __init__(self, prefix: str = "test"):
        self._prefix = prefix
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def generate_booking_id(self) -> str:
        return f"booking_{self._prefix}_{self._next():04d}"
