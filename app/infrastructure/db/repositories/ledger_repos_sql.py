"""Append-only tables: the ledger and the booking audit trail."""

from dataclasses import replace
from decimal import Decimal

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.booking_history_repo import BookingHistoryRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.transaction_repo import TransactionRepo
from app.domain.entities.booking_history import BookingHistoryEntry
from app.domain.entities.ledger_transaction import LedgerTransaction, TransactionType
from app.infrastructure.db.tables import booking_history, transactions


class TransactionRepoSQL(TransactionRepo):
    def __init__(self, session: AsyncSession, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def append(self, transaction: LedgerTransaction) -> LedgerTransaction:
        created_at = transaction.created_at or self._clock.now()
        stmt = insert(transactions).values(
            booking_id=transaction.booking_id,
            partner_id=transaction.partner_id,
            driver_id=transaction.driver_id,
            type=transaction.type.value,
            category=transaction.category,
            amount=transaction.amount,
            net_amount=transaction.net_amount,
            fees=transaction.fees,
            status=transaction.status,
            source=transaction.source,
            description=transaction.description,
            reference=transaction.reference,
            created_at=created_at,
        )
        result = await self._session.execute(stmt)
        return replace(transaction, id=result.inserted_primary_key[0], created_at=created_at)

    async def list_for_booking(self, booking_id: str) -> list[LedgerTransaction]:
        stmt = (
            select(transactions)
            .where(transactions.c.booking_id == booking_id)
            .order_by(transactions.c.id)
        )
        result = await self._session.execute(stmt)
        return [
            LedgerTransaction(
                id=row["id"],
                booking_id=row["booking_id"],
                partner_id=row.get("partner_id"),
                driver_id=row.get("driver_id"),
                type=TransactionType(row["type"]),
                category=row["category"],
                amount=Decimal(row["amount"]),
                net_amount=Decimal(row["net_amount"]) if row.get("net_amount") is not None else None,
                fees=row.get("fees") or {},
                status=row["status"],
                source=row["source"],
                description=row.get("description") or "",
                reference=row.get("reference"),
                created_at=row.get("created_at"),
            )
            for row in result.mappings().all()
        ]


class BookingHistoryRepoSQL(BookingHistoryRepo):
    def __init__(self, session: AsyncSession, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def append(self, entry: BookingHistoryEntry) -> BookingHistoryEntry:
        created_at = entry.created_at or self._clock.now()
        stmt = insert(booking_history).values(
            booking_id=entry.booking_id,
            action=entry.action,
            performed_by=entry.performed_by,
            performed_by_type=entry.performed_by_type,
            description=entry.description,
            details=entry.details,
            created_at=created_at,
        )
        result = await self._session.execute(stmt)
        return replace(entry, id=result.inserted_primary_key[0], created_at=created_at)

    async def list_for_booking(self, booking_id: str) -> list[BookingHistoryEntry]:
        stmt = (
            select(booking_history)
            .where(booking_history.c.booking_id == booking_id)
            .order_by(booking_history.c.id)
        )
        result = await self._session.execute(stmt)
        return [
            BookingHistoryEntry(
                id=row["id"],
                booking_id=row["booking_id"],
                action=row["action"],
                performed_by=row["performed_by"],
                performed_by_type=row["performed_by_type"],
                description=row.get("description") or "",
                details=row.get("details") or {},
                created_at=row.get("created_at"),
            )
            for row in result.mappings().all()
        ]
