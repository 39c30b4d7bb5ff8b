from decimal import Decimal

import pytest

from app.api.schemas.bookings import PartnerResponseRequest
from app.api.schemas.payments import (
    CompleteRefundRequest,
    RefundDepositRequest,
    RejectRefundRequest,
)
from app.domain.entities.payment_instruction import (
    InstructionStatus,
    InstructionType,
    PaymentInstruction,
)
from app.domain.errors import (
    AuthorizationError,
    InvalidMoneyError,
    NotFoundError,
    PaymentInstructionStateError,
)
from app.domain.pricing import actual_paid
from tests.conftest import DRIVER_ID, PARTNER_ID, make_create_request


@pytest.fixture
async def booking_id(use_cases):
    response = await use_cases["create_booking"].execute(
        make_create_request(requires_partner_approval_first=True)
    )
    return response.booking_id


async def _instruction(bundle, booking_id, type):
    instructions = await bundle["instruction_repo"].list_for_booking(booking_id)
    return next(i for i in instructions if i.type == type)


async def _received_deposit(bundle, booking_id) -> int:
    deposit = await _instruction(bundle, booking_id, InstructionType.DEPOSIT)
    bundle["instruction_repo"].instructions[deposit.id].status = InstructionStatus.DEPOSIT_RECEIVED
    return deposit.id


async def _reject_booking(use_cases, booking_id):
    await use_cases["respond_to_booking"].execute(
        PartnerResponseRequest(booking_id=booking_id, partner_id=PARTNER_ID, action="reject")
    )


async def _cancellation_refund(bundle, booking_id, amount="80.00") -> PaymentInstruction:
    return await bundle["instruction_repo"].add(
        PaymentInstruction(
            booking_id=booking_id,
            driver_id=DRIVER_ID,
            partner_id=PARTNER_ID,
            amount=Decimal(amount),
            type=InstructionType.REFUND,
            ledger_recorded=True,
        )
    )


async def _booked(bundle, booking_id, reference):
    transactions = await bundle["transaction_repo"].list_for_booking(booking_id)
    return [t for t in transactions if t.reference == reference]


class TestRefundDeposit:
    async def test_full_refund_settles_the_deposit(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)

        response = await use_cases["refund_deposit"].execute(
            RefundDepositRequest(instruction_id=deposit_id, partner_id=PARTNER_ID)
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "deposit_refunded"
        assert response.refunded_amount == Decimal("50.00")
        assert response.deposit_refunded == Decimal("50.00")
        stored = bundle["instruction_repo"].instructions[deposit_id]
        assert stored.refunded_amount == Decimal("50.00")
        assert stored.refunded_at is not None
        assert bundle["booking_repo"].bookings[booking_id].deposit_refunded == Decimal("50.00")

        ledger = await _booked(bundle, booking_id, str(deposit_id))
        assert len(ledger) == 2
        assert all(t.category == "Deposit Refund" and t.source == "partner" for t in ledger)
        assert all(t.amount == Decimal("-50.00") for t in ledger)
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "deposit_refunded" in [h.action for h in history]
        notices = bundle["notification_gateway"].for_recipient(DRIVER_ID)
        assert "deposit_refunded" in [n.type for n in notices]

    async def test_partial_refund(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)

        response = await use_cases["refund_deposit"].execute(
            RefundDepositRequest(
                instruction_id=deposit_id, partner_id=PARTNER_ID, refund_amount=Decimal("20.00")
            )
        )

        assert response.refunded_amount == Decimal("20.00")
        assert bundle["booking_repo"].bookings[booking_id].deposit_refunded == Decimal("20.00")

    async def test_refund_cannot_exceed_the_deposit(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)

        with pytest.raises(InvalidMoneyError) as exc_info:
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(
                    instruction_id=deposit_id, partner_id=PARTNER_ID, refund_amount=Decimal("75.00")
                )
            )

        assert exc_info.value.code == "INVALID_MONEY"
        stored = bundle["instruction_repo"].instructions[deposit_id]
        assert stored.status == InstructionStatus.DEPOSIT_RECEIVED

    async def test_deposit_is_refunded_once(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)
        request = RefundDepositRequest(instruction_id=deposit_id, partner_id=PARTNER_ID)
        await use_cases["refund_deposit"].execute(request)

        with pytest.raises(PaymentInstructionStateError):
            await use_cases["refund_deposit"].execute(request)
        assert bundle["booking_repo"].bookings[booking_id].deposit_refunded == Decimal("50.00")

    async def test_deposit_not_yet_received(self, use_cases, bundle, booking_id):
        deposit = await _instruction(bundle, booking_id, InstructionType.DEPOSIT)
        with pytest.raises(PaymentInstructionStateError):
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(instruction_id=deposit.id, partner_id=PARTNER_ID)
            )

    async def test_only_deposits(self, use_cases, bundle, booking_id):
        weekly = await _instruction(bundle, booking_id, InstructionType.WEEKLY_RENT)
        bundle["instruction_repo"].instructions[weekly.id].status = InstructionStatus.COMPLETED
        with pytest.raises(PaymentInstructionStateError):
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(instruction_id=weekly.id, partner_id=PARTNER_ID)
            )

    async def test_other_partner_is_forbidden(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)
        with pytest.raises(AuthorizationError):
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(instruction_id=deposit_id, partner_id="partner_2")
            )

    async def test_deposit_with_pending_refund_instruction_is_refused(
        self, use_cases, bundle, booking_id
    ):
        deposit_id = await _received_deposit(bundle, booking_id)
        await _reject_booking(use_cases, booking_id)

        with pytest.raises(PaymentInstructionStateError):
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(instruction_id=deposit_id, partner_id=PARTNER_ID)
            )
        stored = bundle["instruction_repo"].instructions[deposit_id]
        assert stored.status == InstructionStatus.DEPOSIT_RECEIVED

    async def test_unknown_instruction(self, use_cases):
        with pytest.raises(NotFoundError):
            await use_cases["refund_deposit"].execute(
                RefundDepositRequest(instruction_id=999, partner_id=PARTNER_ID)
            )

    def test_refund_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            RefundDepositRequest(instruction_id=1, partner_id=PARTNER_ID, refund_amount=Decimal("0"))


class TestCompleteRefund:
    async def test_rejection_refund_closes_its_deposit(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)
        await _reject_booking(use_cases, booking_id)
        refund = await _instruction(bundle, booking_id, InstructionType.REFUND)
        assert refund.source_instruction_id == deposit_id

        response = await use_cases["complete_refund"].execute(
            CompleteRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID)
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "refunded"
        assert response.refunded_amount == Decimal("50.00")
        deposit = bundle["instruction_repo"].instructions[deposit_id]
        assert deposit.status == InstructionStatus.DEPOSIT_REFUNDED
        assert bundle["booking_repo"].bookings[booking_id].deposit_refunded == Decimal("50.00")

        ledger = await _booked(bundle, booking_id, str(refund.id))
        assert [t.category for t in ledger] == ["Deposit Refund", "Deposit Refund"]
        assert all(t.amount == Decimal("-50.00") for t in ledger)

    async def test_payment_refund_is_booked_as_rental(self, use_cases, bundle, booking_id):
        weekly = await _instruction(bundle, booking_id, InstructionType.WEEKLY_RENT)
        bundle["instruction_repo"].instructions[weekly.id].status = InstructionStatus.COMPLETED
        await _reject_booking(use_cases, booking_id)
        refund = await _instruction(bundle, booking_id, InstructionType.REFUND)

        await use_cases["complete_refund"].execute(
            CompleteRefundRequest(
                instruction_id=refund.id, partner_id=PARTNER_ID, reference="bank_ref_9"
            )
        )
        await use_cases["dispatch_outbox"].execute()

        ledger = await _booked(bundle, booking_id, "bank_ref_9")
        assert [t.category for t in ledger] == ["Vehicle Rental", "Vehicle Rental"]
        notices = bundle["notification_gateway"].for_recipient(DRIVER_ID)
        assert "refund_sent" in [n.type for n in notices]

    async def test_cancellation_refund_is_not_booked_twice(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)

        await use_cases["complete_refund"].execute(
            CompleteRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID)
        )
        await use_cases["dispatch_outbox"].execute()

        assert await _booked(bundle, booking_id, str(refund.id)) == []
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "refund_completed" in [h.action for h in history]

    async def test_refund_is_paid_once(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)
        request = CompleteRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID)
        await use_cases["complete_refund"].execute(request)

        with pytest.raises(PaymentInstructionStateError):
            await use_cases["complete_refund"].execute(request)

    async def test_refunded_money_never_counts_as_paid(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)
        await use_cases["complete_refund"].execute(
            CompleteRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID)
        )

        instructions = await bundle["instruction_repo"].list_for_booking(booking_id)
        assert actual_paid(instructions) == Decimal("0.00")

    async def test_only_refund_instructions(self, use_cases, bundle, booking_id):
        deposit_id = await _received_deposit(bundle, booking_id)
        with pytest.raises(PaymentInstructionStateError):
            await use_cases["complete_refund"].execute(
                CompleteRefundRequest(instruction_id=deposit_id, partner_id=PARTNER_ID)
            )

    async def test_other_partner_is_forbidden(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)
        with pytest.raises(AuthorizationError):
            await use_cases["complete_refund"].execute(
                CompleteRefundRequest(instruction_id=refund.id, partner_id="partner_2")
            )


class TestRejectRefund:
    async def test_pending_refund_is_rejected_with_reason(self, use_cases, bundle, booking_id):
        weekly = await _instruction(bundle, booking_id, InstructionType.WEEKLY_RENT)
        bundle["instruction_repo"].instructions[weekly.id].status = InstructionStatus.COMPLETED
        await _reject_booking(use_cases, booking_id)
        refund = await _instruction(bundle, booking_id, InstructionType.REFUND)

        response = await use_cases["reject_refund"].execute(
            RejectRefundRequest(
                instruction_id=refund.id, partner_id=PARTNER_ID, reason="Vehicle returned damaged"
            )
        )
        await use_cases["dispatch_outbox"].execute()

        assert response.status == "refund_rejected"
        assert response.reason == "Vehicle returned damaged"
        stored = bundle["instruction_repo"].instructions[refund.id]
        assert stored.refund_rejection_reason == "Vehicle returned damaged"
        assert stored.refund_rejected_at is not None
        # nothing was booked for this refund, so nothing is reversed
        assert await _booked(bundle, booking_id, str(refund.id)) == []

        gateway = bundle["notification_gateway"]
        assert "refund_rejected" in [n.type for n in gateway.for_recipient(DRIVER_ID)]
        assert "refund_rejected_admin" in [n.type for n in gateway.for_recipient(None)]
        history = await bundle["history_repo"].list_for_booking(booking_id)
        assert "refund_rejected" in [h.action for h in history]

    async def test_cancellation_refund_rejection_reverses_the_ledger(
        self, use_cases, bundle, booking_id
    ):
        refund = await _cancellation_refund(bundle, booking_id)

        await use_cases["reject_refund"].execute(
            RejectRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID, reason="Disputed")
        )
        await use_cases["dispatch_outbox"].execute()

        ledger = await _booked(bundle, booking_id, str(refund.id))
        assert len(ledger) == 2
        assert all(t.amount == Decimal("80.00") for t in ledger)

    async def test_rejected_refund_cannot_be_completed(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)
        await use_cases["reject_refund"].execute(
            RejectRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID, reason="Disputed")
        )

        with pytest.raises(PaymentInstructionStateError):
            await use_cases["complete_refund"].execute(
                CompleteRefundRequest(instruction_id=refund.id, partner_id=PARTNER_ID)
            )

    async def test_other_partner_is_forbidden(self, use_cases, bundle, booking_id):
        refund = await _cancellation_refund(bundle, booking_id)
        with pytest.raises(AuthorizationError):
            await use_cases["reject_refund"].execute(
                RejectRefundRequest(instruction_id=refund.id, partner_id="partner_2", reason="No")
            )

    def test_reason_is_required(self):
        with pytest.raises(ValueError):
            RejectRefundRequest(instruction_id=1, partner_id=PARTNER_ID, reason="   ")
