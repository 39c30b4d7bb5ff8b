"""Domain errors for the booking lifecycle."""


class DomainError(Exception):
    """Base class for every domain error."""

    http_status = 400

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


# === Input ===


class ValidationError(DomainError):
    """Missing or malformed input."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"Validation failed on '{field}': {message}",
            code="VALIDATION_ERROR",
        )
        self.field = field


class InvalidDateRangeError(ValidationError):
    """End date not after start date, or start date in the past."""

    def __init__(self, message: str):
        super().__init__(field="dates", message=message)
        self.code = "INVALID_DATE_RANGE"


class InvalidMoneyError(DomainError):
    """Negative or malformed amount."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_MONEY")


# === Lookup / ownership ===


class NotFoundError(DomainError):
    """Referenced record does not exist."""

    http_status = 404

    def __init__(self, entity: str, identifier: str | int):
        super().__init__(
            message=f"{entity} not found: {identifier}",
            code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
        )
        self.entity = entity
        self.identifier = identifier


class AuthorizationError(DomainError):
    """Actor does not own the booking or instruction it is acting on."""

    http_status = 403

    def __init__(self, message: str = "Not your booking"):
        super().__init__(message=message, code="FORBIDDEN")


# === Status ===


class BookingStatusConflictError(DomainError):
    """The booking is not in a status that permits the operation."""

    http_status = 409

    def __init__(self, booking_id: str, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} booking {booking_id}: current status is '{current_status}'",
            code="BOOKING_STATUS_CONFLICT",
        )
        self.booking_id = booking_id
        self.current_status = current_status
        self.operation = operation

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current_status
        return data


class InvalidTransitionError(BookingStatusConflictError):
    """from-status x action is not in the transition table."""

    def __init__(self, current_status: str, action: str, target: str | None = None):
        DomainError.__init__(
            self,
            message=(
                f"Transition '{action}' not allowed from '{current_status}'"
                + (f" to '{target}'" if target else "")
            ),
            code="INVALID_TRANSITION",
        )
        self.booking_id = None
        self.current_status = current_status
        self.operation = action
        self.target = target


class ReturnRequestConflictError(DomainError):
    """The early-return request is not in a state that permits the action."""

    http_status = 409

    def __init__(self, booking_id: str, message: str):
        super().__init__(message=message, code="RETURN_REQUEST_CONFLICT")
        self.booking_id = booking_id


class PaymentInstructionStateError(DomainError):
    """The payment instruction is not in a state that permits the action."""

    def __init__(self, instruction_id: int, message: str):
        super().__init__(message=message, code="PAYMENT_INSTRUCTION_STATE")
        self.instruction_id = instruction_id


# === Idempotency ===


class IdempotencyConflictError(DomainError):
    """Same key reused with a different request body."""

    http_status = 409

    def __init__(self, idem_key: str, scope: str):
        super().__init__(
            message=f"Idempotency key '{idem_key}' in scope '{scope}' "
            f"was already used with a different request",
            code="IDEMPOTENCY_CONFLICT",
        )
        self.idem_key = idem_key
        self.scope = scope


# === Payment rail ===


class ExternalPaymentError(DomainError):
    """The payment rail rejected or failed a refund."""

    http_status = 502

    def __init__(self, booking_id: str, message: str):
        super().__init__(
            message=f"Payment provider error for booking {booking_id}: {message}",
            code="EXTERNAL_PAYMENT_FAILURE",
        )
        self.booking_id = booking_id


class VehicleUnavailableError(DomainError):
    """The vehicle is not in 'available' status."""

    http_status = 409

    def __init__(self, vehicle_id: str, current_status: str):
        super().__init__(
            message=f"Vehicle {vehicle_id} is not available (status '{current_status}')",
            code="VEHICLE_UNAVAILABLE",
        )
        self.vehicle_id = vehicle_id
        self.current_status = current_status
