from app.application.interfaces.idempotency_repo import IdempotencyRecord, IdempotencyRepo


class InMemoryIdempotencyRepo(IdempotencyRepo):
    def __init__(self) -> None:
        self.records: dict[tuple[str, str], IdempotencyRecord] = {}

    async def get(self, scope: str, idem_key: str) -> IdempotencyRecord | None:
        return self.records.get((scope, idem_key))

    async def save(self, record: IdempotencyRecord) -> None:
        # first write wins, matching the unique key on the SQL table
        self.records.setdefault((record.scope, record.idem_key), record)
