"""Shared constants for the booking lifecycle."""

from decimal import Decimal

CURRENCY_GBP = "GBP"

# Booking.payment_status values that count as "payment confirmed"
PAYMENT_CONFIRMED_STATUSES = frozenset({"completed", "paid", "confirmed"})

# Payment instruction statuses that represent money actually received
RECEIVED_INSTRUCTION_STATUSES = frozenset({"completed", "received"})

# Vehicle documents released to the partner once payment is confirmed
RELEASABLE_VEHICLE_DOCUMENTS = ("mot", "private_hire_license", "insurance", "logbook", "roadTax")

DEFAULT_REJECTION_REASON = "No reason provided"
DEFAULT_RETURN_REASON = "No reason provided"

WEEKLY_INTERVAL_DAYS = 7

# Ledger categories / sources
CATEGORY_BOOKING_REVENUE = "Booking Revenue"
CATEGORY_VEHICLE_RENTAL = "Vehicle Rental"
CATEGORY_INSURANCE = "Insurance"
CATEGORY_PLATFORM_COMMISSION = "Platform Commission"
CATEGORY_DEPOSIT_REFUND = "Deposit Refund"

SOURCE_DRIVER = "driver"
SOURCE_PARTNER = "partner"
SOURCE_STRIPE = "stripe"
SOURCE_BOOKING_COMPLETION = "booking_completion"
SOURCE_PLATFORM = "platform"

SYSTEM_ACTOR = "system"

ZERO = Decimal("0")
