from app.domain.entities.ledger_transaction import LedgerTransaction


class TransactionRepo:
    """Append-only ledger. There is no update or delete."""

    async def append(self, transaction: LedgerTransaction) -> LedgerTransaction:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: str) -> list[LedgerTransaction]:
        raise NotImplementedError
