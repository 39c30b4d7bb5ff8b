"""
Domain layer for the ComparePCO booking lifecycle.

Pure business rules with no framework dependencies:
- entities/: Booking, PaymentInstruction, LedgerTransaction, history, notifications, vehicles
- value_objects/: Money, RentalPeriod, immutable snapshots
- lifecycle.py: explicit transition table
- pricing.py: totals, refunds and final settlement
- errors.py: domain exceptions
"""
