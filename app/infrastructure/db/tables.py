from datetime import timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamps; naive values read back (SQLite) are treated as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


bookings = Table(
    "bookings",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("driver_id", String(64), nullable=False, index=True),
    Column("partner_id", String(64), nullable=False, index=True),
    Column("vehicle_id", String(64), nullable=False, index=True),
    Column("start_date", UTCDateTime, nullable=False),
    Column("end_date", UTCDateTime, nullable=False),
    Column("weekly_rate", Numeric(12, 2), nullable=False),
    Column("deposit_amount", Numeric(12, 2), nullable=False, default=0),
    Column("total_weeks", Integer, nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("final_amount", Numeric(12, 2)),
    Column("outstanding_amount", Numeric(12, 2)),
    Column("refund_amount", Numeric(12, 2)),
    Column("total_paid", Numeric(12, 2), nullable=False, default=0),
    Column("deposit_refunded", Numeric(12, 2), nullable=False, default=0),
    Column("status", String(32), nullable=False, index=True),
    Column("payment_status", String(32), nullable=False),
    Column("payment_method", String(32), nullable=False),
    Column("stripe_customer_id", String(64)),
    Column("stripe_subscription_id", String(64)),
    Column("last_payment_date", UTCDateTime),
    Column("insurance_required", Boolean, nullable=False, default=False),
    Column("partner_provides_insurance", Boolean, nullable=False, default=False),
    Column("requires_document_verification", Boolean, nullable=False, default=False),
    Column("driver_insurance_valid", Boolean, nullable=False, default=False),
    Column("driver_insurance_status", String(32)),
    Column("all_documents_approved", Boolean, nullable=False, default=False),
    Column("driver_snapshot", JSON),
    Column("partner_snapshot", JSON),
    Column("vehicle_snapshot", JSON),
    Column("partner_acceptance_deadline", UTCDateTime),
    Column("payment_deadline", UTCDateTime),
    Column("insurance_upload_deadline", UTCDateTime),
    Column("partner_accepted_at", UTCDateTime),
    Column("partner_response_time_minutes", Integer),
    Column("rejection_reason", String(500)),
    Column("rejected_at", UTCDateTime),
    Column("released_documents", JSON),
    Column("vehicle_documents_released_at", UTCDateTime),
    Column("activated_at", UTCDateTime),
    Column("activated_by", String(64)),
    Column("activated_by_type", String(16)),
    Column("activated_trigger", String(32)),
    Column("cancelled_at", UTCDateTime),
    Column("cancelled_by", String(64)),
    Column("cancelled_by_type", String(16)),
    Column("cancellation_reason", String(500)),
    Column("cancellation_type", String(16)),
    Column("finished_at", UTCDateTime),
    Column("finished_by", String(64)),
    Column("finished_by_type", String(16)),
    Column("final_notes", Text),
    Column("final_mileage", Integer),
    Column("final_fuel_level", String(32)),
    Column("return_requested", Boolean, nullable=False, default=False),
    Column("return_requested_at", UTCDateTime),
    Column("return_requested_by", String(64)),
    Column("return_requested_by_type", String(16)),
    Column("return_reason", String(500)),
    Column("return_approved", Boolean, nullable=False, default=False),
    Column("return_approved_at", UTCDateTime),
    Column("return_approved_by", String(64)),
    Column("return_approved_by_type", String(16)),
    Column("return_rejected_at", UTCDateTime),
    Column("return_rejected_by", String(64)),
    Column("return_rejected_by_type", String(16)),
    Column("return_rejection_reason", String(500)),
    Column("auto_rejected_at", UTCDateTime),
    Column("expired_at", UTCDateTime),
    Column("overdue_at", UTCDateTime),
    Column("created_at", UTCDateTime),
    Column("updated_at", UTCDateTime),
    Column("extra", JSON),
)

vehicles = Table(
    "vehicles",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("partner_id", String(64), nullable=False, index=True),
    Column("make", String(100), nullable=False),
    Column("model", String(100), nullable=False),
    Column("year", Integer),
    Column("registration_number", String(20)),
    Column("price_per_week", Numeric(12, 2)),
    Column("status", String(16), nullable=False, default="available"),
    Column("current_booking_id", String(64)),
    Column("mileage", Integer),
    Column("documents", JSON),
)

drivers = Table(
    "drivers",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(50)),
)

partners = Table(
    "partners",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("company_name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(50)),
)

partner_staff = Table(
    "partner_staff",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("partner_id", String(64), nullable=False, index=True),
    Column("user_id", String(64), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("permissions", JSON),
)

partner_drivers = Table(
    "partner_drivers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("partner_id", String(64), nullable=False),
    Column("driver_id", String(64), nullable=False),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(50)),
    Column("first_booking_at", UTCDateTime, nullable=False),
    Column("last_booking_id", String(64)),
    UniqueConstraint("partner_id", "driver_id", name="uq_partner_drivers_pair"),
)

payment_instructions = Table(
    "payment_instructions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", String(64), nullable=False, index=True),
    Column("driver_id", String(64), nullable=False),
    Column("partner_id", String(64), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("type", String(32), nullable=False),
    Column("method", String(32), nullable=False),
    Column("status", String(32), nullable=False),
    Column("frequency", String(16), nullable=False),
    Column("next_due_date", UTCDateTime),
    Column("vehicle_reg", String(20)),
    Column("notes", String(500)),
    Column("last_sent_at", UTCDateTime),
    Column("last_confirmed_at", UTCDateTime),
    Column("source_instruction_id", Integer),
    Column("ledger_recorded", Boolean, nullable=False, default=False),
    Column("refunded_amount", Numeric(12, 2)),
    Column("refunded_at", UTCDateTime),
    Column("refund_rejection_reason", String(500)),
    Column("refund_rejected_at", UTCDateTime),
    Column("created_at", UTCDateTime),
    Column("updated_at", UTCDateTime),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", String(64), nullable=False, index=True),
    Column("partner_id", String(64)),
    Column("driver_id", String(64)),
    Column("type", String(16), nullable=False),
    Column("category", String(64), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("net_amount", Numeric(12, 2)),
    Column("fees", JSON),
    Column("status", String(16), nullable=False),
    Column("source", String(32), nullable=False),
    Column("description", String(500)),
    Column("reference", String(128)),
    Column("created_at", UTCDateTime),
)

booking_history = Table(
    "booking_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("booking_id", String(64), nullable=False, index=True),
    Column("action", String(64), nullable=False),
    Column("performed_by", String(64), nullable=False),
    Column("performed_by_type", String(16), nullable=False),
    Column("description", String(500)),
    Column("details", JSON),
    Column("created_at", UTCDateTime),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(64), nullable=False),
    Column("recipient_type", String(16), nullable=False),
    Column("recipient_id", String(64), index=True),
    Column("title", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("priority", String(16), nullable=False),
    Column("data", JSON),
    Column("read", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime),
)

idempotency_keys = Table(
    "idempotency_keys",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("scope", String(32), nullable=False),
    Column("idem_key", String(128), nullable=False),
    Column("request_hash", String(64), nullable=False),
    Column("response_json", JSON),
    Column("http_status", Integer),
    Column("reference_booking_id", String(64)),
    UniqueConstraint("scope", "idem_key", name="uq_idempotency_scope_key"),
)

outbox_events = Table(
    "outbox_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False),
    Column("aggregate_type", String(32), nullable=False),
    Column("aggregate_code", String(64), index=True),
    Column("payload", JSON, nullable=False),
    Column("status", String(16), nullable=False, default="NEW"),
    Column("attempts", Integer, nullable=False, default=0),
    Column("next_attempt_at", UTCDateTime),
    Column("locked_by", String(64)),
    Column("locked_at", UTCDateTime),
    Column("lock_expires_at", UTCDateTime),
    Column("error_code", String(64)),
    Column("error_message", String(500)),
    Column("created_at", UTCDateTime),
    Column("updated_at", UTCDateTime),
)
