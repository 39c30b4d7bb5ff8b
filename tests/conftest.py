"""
Shared fixtures.

Every test gets its own in-memory adapter bundle, a FakeClock pinned to
``NOW`` and sequential booking ids. The HTTP client overrides ``get_use_cases``
so requests go through the same bundle the test inspects.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import (
    build_in_memory_bundle,
    build_use_cases,
    get_effect_dispatcher,
    get_use_cases,
)
from app.api.schemas.bookings import CreateBookingRequest
from app.application.interfaces.clock import FakeClock
from app.application.interfaces.user_repo import DriverRecord, PartnerRecord, PartnerStaffRecord
from app.application.interfaces.uuid_generator import FakeUUIDGenerator
from app.config import Settings, get_settings
from app.domain.entities.vehicle import Vehicle
from app.infrastructure.circuit_breaker import stripe_breaker
from app.main import app

NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

DRIVER_ID = "driver_1"
PARTNER_ID = "partner_1"
VEHICLE_ID = "vehicle_1"
STAFF_USER_ID = "staff_user_1"


def make_create_request(**overrides: Any) -> CreateBookingRequest:
    data = {
        "driver_id": DRIVER_ID,
        "partner_id": PARTNER_ID,
        "vehicle_id": VEHICLE_ID,
        "start_date": NOW,
        "end_date": NOW + timedelta(days=14),
        "weekly_rate": Decimal("100.00"),
        "deposit_amount": Decimal("50.00"),
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


@pytest.fixture(autouse=True)
def reset_breaker():
    stripe_breaker.close()
    yield
    stripe_breaker.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings(use_in_memory=True, dispatch_effects_inline=False)


@pytest.fixture
def bundle(clock: FakeClock) -> dict[str, Any]:
    bundle = build_in_memory_bundle()
    bundle["clock"] = clock
    bundle["id_generator"] = FakeUUIDGenerator()

    users = bundle["user_repo"]
    users.add_driver(
        DriverRecord(id=DRIVER_ID, full_name="Sam Driver", email="sam@example.com", phone="+447700900001")
    )
    users.add_partner(
        PartnerRecord(id=PARTNER_ID, company_name="Fleet Ltd", email="ops@fleet.example", phone=None)
    )
    users.add_staff(
        PartnerStaffRecord(
            id="staff_1",
            partner_id=PARTNER_ID,
            user_id=STAFF_USER_ID,
            permissions={"canViewFinancials": True},
        )
    )
    users.add_staff(
        PartnerStaffRecord(
            id="staff_2",
            partner_id=PARTNER_ID,
            user_id="staff_user_no_finance",
            permissions={"canViewFinancials": False},
        )
    )

    bundle["vehicle_repo"].add_vehicle(
        Vehicle(
            id=VEHICLE_ID,
            partner_id=PARTNER_ID,
            make="Toyota",
            model="Prius",
            year=2021,
            registration_number="AB21 CDE",
            price_per_week=Decimal("100.00"),
            documents={
                "mot": {"status": "approved", "url": "https://files.example/mot.pdf"},
                "insurance": {"status": "pending", "url": "https://files.example/ins.pdf"},
                "logbook": {"status": "approved", "url": None},
            },
        )
    )
    return bundle


@pytest.fixture
def use_cases(bundle: dict[str, Any], settings: Settings) -> dict[str, Any]:
    return build_use_cases(bundle, settings)


@pytest.fixture
def client(use_cases: dict[str, Any], settings: Settings) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_use_cases] = lambda: use_cases
    app.dependency_overrides[get_effect_dispatcher] = lambda: use_cases["dispatch_outbox"].execute
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
