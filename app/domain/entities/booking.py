"""Booking entity - aggregate root of the rental lifecycle."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from app.domain.constants import PAYMENT_CONFIRMED_STATUSES, ZERO
from app.domain.value_objects.rental_period import RentalPeriod
from app.domain.value_objects.snapshots import (
    DriverSnapshot,
    PartnerSnapshot,
    ReleasedDocument,
    VehicleSnapshot,
)


class BookingStatus(str, Enum):
    """Closed set of lifecycle states."""

    PENDING_PAYMENT = "pending_payment"
    PENDING_PARTNER_APPROVAL = "pending_partner_approval"
    PARTNER_ACCEPTED = "partner_accepted"
    PENDING_INSURANCE_UPLOAD = "pending_insurance_upload"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PARTNER_REJECTED = "partner_rejected"
    AUTO_REJECTED = "auto_rejected"
    PAYMENT_EXPIRED = "payment_expired"
    INSURANCE_EXPIRED = "insurance_expired"


TERMINAL_STATUSES = frozenset(
    {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.PARTNER_REJECTED,
        BookingStatus.AUTO_REJECTED,
        BookingStatus.PAYMENT_EXPIRED,
        BookingStatus.INSURANCE_EXPIRED,
    }
)


class BookingPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CONFIRMED = "confirmed"
    OUTSTANDING = "outstanding"
    REFUNDED = "refunded"


class ActorType(str, Enum):
    DRIVER = "driver"
    PARTNER = "partner"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass
class Booking:
    """
    One rental agreement between a driver and a partner for a vehicle.

    The snapshot fields are copied at creation and never rewritten; repositories
    refuse any change that touches IMMUTABLE_FIELDS.
    """

    IMMUTABLE_FIELDS = frozenset(
        {"id", "driver_id", "partner_id", "vehicle_id", "created_at",
         "driver_snapshot", "partner_snapshot", "vehicle_snapshot"}
    )

    id: str
    driver_id: str
    partner_id: str
    vehicle_id: str
    start_date: datetime
    end_date: datetime

    # Commercial
    weekly_rate: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    total_weeks: int = 0
    total_amount: Decimal = ZERO
    final_amount: Decimal | None = None
    outstanding_amount: Decimal | None = None
    refund_amount: Decimal | None = None
    total_paid: Decimal = ZERO
    deposit_refunded: Decimal = ZERO

    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    payment_status: str = BookingPaymentStatus.PENDING.value
    payment_method: str = "bank_transfer"
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    last_payment_date: datetime | None = None

    # Requirement flags
    insurance_required: bool = False
    partner_provides_insurance: bool = False
    requires_document_verification: bool = False
    driver_insurance_valid: bool = False
    driver_insurance_status: str | None = None
    all_documents_approved: bool = False

    # Snapshots
    driver_snapshot: DriverSnapshot | None = None
    partner_snapshot: PartnerSnapshot | None = None
    vehicle_snapshot: VehicleSnapshot | None = None

    # Deadlines
    partner_acceptance_deadline: datetime | None = None
    payment_deadline: datetime | None = None
    insurance_upload_deadline: datetime | None = None

    # Partner response
    partner_accepted_at: datetime | None = None
    partner_response_time_minutes: int | None = None
    rejection_reason: str | None = None
    rejected_at: datetime | None = None
    released_documents: tuple[ReleasedDocument, ...] = ()
    vehicle_documents_released_at: datetime | None = None

    # Activation
    activated_at: datetime | None = None
    activated_by: str | None = None
    activated_by_type: str | None = None
    activated_trigger: str | None = None

    # Cancellation
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancelled_by_type: str | None = None
    cancellation_reason: str | None = None
    cancellation_type: str | None = None

    # Completion
    finished_at: datetime | None = None
    finished_by: str | None = None
    finished_by_type: str | None = None
    final_notes: str | None = None
    final_mileage: int | None = None
    final_fuel_level: str | None = None

    # Early return
    return_requested: bool = False
    return_requested_at: datetime | None = None
    return_requested_by: str | None = None
    return_requested_by_type: str | None = None
    return_reason: str | None = None
    return_approved: bool = False
    return_approved_at: datetime | None = None
    return_approved_by: str | None = None
    return_approved_by_type: str | None = None
    return_rejected_at: datetime | None = None
    return_rejected_by: str | None = None
    return_rejected_by_type: str | None = None
    return_rejection_reason: str | None = None

    # Sweeper
    auto_rejected_at: datetime | None = None
    expired_at: datetime | None = None
    overdue_at: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def period(self) -> RentalPeriod:
        return RentalPeriod(start=self.start_date, end=self.end_date)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def payment_confirmed(self) -> bool:
        return self.payment_status in PAYMENT_CONFIRMED_STATUSES

    @property
    def insurance_satisfied(self) -> bool:
        return (
            not self.insurance_required
            or self.driver_insurance_valid
            or self.partner_provides_insurance
        )

    @property
    def documents_satisfied(self) -> bool:
        return not self.requires_document_verification or self.all_documents_approved

    def activation_blockers(self) -> list[str]:
        """Requirements still missing before the booking may go active."""
        blockers = []
        if not self.payment_confirmed:
            blockers.append("payment")
        if not self.insurance_satisfied:
            blockers.append("insurance")
        if not self.documents_satisfied:
            blockers.append("documents")
        return blockers

    @property
    def can_activate(self) -> bool:
        return not self.activation_blockers()

    @property
    def vehicle_registration(self) -> str | None:
        return self.vehicle_snapshot.registration_number if self.vehicle_snapshot else None

    @classmethod
    def check_mutable(cls, changes: dict[str, Any]) -> None:
        frozen = cls.IMMUTABLE_FIELDS.intersection(changes)
        if frozen:
            raise ValueError(f"Booking fields are immutable: {sorted(frozen)}")
