from dataclasses import replace
from typing import Any

from app.application.interfaces.payment_instruction_repo import PaymentInstructionRepo
from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)


class InMemoryPaymentInstructionRepo(PaymentInstructionRepo):
    def __init__(self) -> None:
        self.instructions: dict[int, PaymentInstruction] = {}
        self._next_id = 1

    async def add(self, instruction: PaymentInstruction) -> PaymentInstruction:
        stored = replace(instruction, id=self._next_id)
        self.instructions[stored.id] = stored
        self._next_id += 1
        return replace(stored)

    async def get(self, instruction_id: int) -> PaymentInstruction | None:
        instruction = self.instructions.get(instruction_id)
        return replace(instruction) if instruction else None

    async def list_for_booking(self, booking_id: str) -> list[PaymentInstruction]:
        return [replace(i) for i in self.instructions.values() if i.booking_id == booking_id]

    async def find_for_booking(
        self,
        booking_id: str,
        type: InstructionType,
        status: InstructionStatus,
    ) -> PaymentInstruction | None:
        for instruction in self.instructions.values():
            if (
                instruction.booking_id == booking_id
                and instruction.type == type
                and instruction.status == status
            ):
                return replace(instruction)
        return None

    async def update_if_status(
        self,
        instruction_id: int,
        expected_status: InstructionStatus,
        changes: dict[str, Any],
    ) -> PaymentInstruction | None:
        current = self.instructions.get(instruction_id)
        if current is None or current.status != expected_status:
            return None
        updated = replace(current, **changes)
        self.instructions[instruction_id] = updated
        return replace(updated)
