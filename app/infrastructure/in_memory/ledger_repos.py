"""Append-only stores: ledger transactions and booking history."""

from dataclasses import replace

from app.application.interfaces.booking_history_repo import BookingHistoryRepo
from app.application.interfaces.transaction_repo import TransactionRepo
from app.domain.entities.booking_history import BookingHistoryEntry
from app.domain.entities.ledger_transaction import LedgerTransaction


class InMemoryTransactionRepo(TransactionRepo):
    def __init__(self) -> None:
        self.transactions: list[LedgerTransaction] = []

    async def append(self, transaction: LedgerTransaction) -> LedgerTransaction:
        stored = replace(transaction, id=len(self.transactions) + 1)
        self.transactions.append(stored)
        return stored

    async def list_for_booking(self, booking_id: str) -> list[LedgerTransaction]:
        return [t for t in self.transactions if t.booking_id == booking_id]


class InMemoryBookingHistoryRepo(BookingHistoryRepo):
    def __init__(self) -> None:
        self.entries: list[BookingHistoryEntry] = []

    async def append(self, entry: BookingHistoryEntry) -> BookingHistoryEntry:
        stored = replace(entry, id=len(self.entries) + 1)
        self.entries.append(stored)
        return stored

    async def list_for_booking(self, booking_id: str) -> list[BookingHistoryEntry]:
        return [e for e in self.entries if e.booking_id == booking_id]
