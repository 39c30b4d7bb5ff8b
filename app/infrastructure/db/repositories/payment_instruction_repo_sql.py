from dataclasses import fields
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.domain.entities.payment_instruction import (
    InstructionFrequency,
    InstructionMethod,
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.infrastructure.db.tables import payment_instructions

_FIELDS = [f.name for f in fields(PaymentInstruction)]


def _encode(values: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v.value if hasattr(v, "value") else v for k, v in values.items()}


def _decode(row: Mapping[str, Any]) -> PaymentInstruction:
    data = {name: row[name] for name in _FIELDS}
    data.update(
        amount=Decimal(row["amount"]),
        type=InstructionType(row["type"]),
        method=InstructionMethod(row["method"]),
        status=InstructionStatus(row["status"]),
        frequency=InstructionFrequency(row["frequency"]),
    )
    return PaymentInstruction(**data)


class PaymentInstructionRepoSQL(PaymentInstructionRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, instruction: PaymentInstruction) -> PaymentInstruction:
        values = {f: getattr(instruction, f) for f in _FIELDS if f != "id"}
        stmt = insert(payment_instructions).values(**_encode(values)).returning(payment_instructions)
        result = await self._session.execute(stmt)
        return _decode(result.mappings().one())

    async def get(self, instruction_id: int) -> PaymentInstruction | None:
        stmt = select(payment_instructions).where(payment_instructions.c.id == instruction_id)
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        return _decode(row) if row else None

    async def list_for_booking(self, booking_id: str) -> list[PaymentInstruction]:
        stmt = (
            select(payment_instructions)
            .where(payment_instructions.c.booking_id == booking_id)
            .order_by(payment_instructions.c.id)
        )
        result = await self._session.execute(stmt)
        return [_decode(row) for row in result.mappings().all()]

    async def find_for_booking(
        self,
        booking_id: str,
        type: InstructionType,
        status: InstructionStatus,
    ) -> PaymentInstruction | None:
        stmt = (
            select(payment_instructions)
            .where(
                payment_instructions.c.booking_id == booking_id,
                payment_instructions.c.type == type.value,
                payment_instructions.c.status == status.value,
            )
            .order_by(payment_instructions.c.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        return _decode(row) if row else None

    async def update_if_status(
        self,
        instruction_id: int,
        expected_status: InstructionStatus,
        changes: dict[str, Any],
    ) -> PaymentInstruction | None:
        stmt = (
            update(payment_instructions)
            .where(
                payment_instructions.c.id == instruction_id,
                payment_instructions.c.status == expected_status.value,
            )
            .values(**_encode(changes))
            .returning(payment_instructions)
        )
        result = await self._session.execute(stmt)
        row = result.mappings().first()
        return _decode(row) if row else None
