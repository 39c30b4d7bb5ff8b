from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.transaction_manager import TransactionManager


class SQLAlchemyTransactionManager(TransactionManager):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._depth = 0

    @asynccontextmanager
    async def start(self) -> AsyncIterator[None]:
        if self._depth:
            # nested unit of work joins the outer one
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            if self._session.in_transaction():
                # session autobegan on an earlier read
                try:
                    yield
                except BaseException:
                    await self._session.rollback()
                    raise
                await self._session.commit()
            else:
                async with self._session.begin():
                    yield
        finally:
            self._depth = 0
