from typing import Any

from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)


class PaymentInstructionRepo:
    async def add(self, instruction: PaymentInstruction) -> PaymentInstruction:
        raise NotImplementedError

    async def get(self, instruction_id: int) -> PaymentInstruction | None:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: str) -> list[PaymentInstruction]:
        raise NotImplementedError

    async def find_for_booking(
        self,
        booking_id: str,
        type: InstructionType,
        status: InstructionStatus,
    ) -> PaymentInstruction | None:
        raise NotImplementedError

    async def update_if_status(
        self,
        instruction_id: int,
        expected_status: InstructionStatus,
        changes: dict[str, Any],
    ) -> PaymentInstruction | None:
        """Conditional update; returns None when the stored status differs."""
        raise NotImplementedError
