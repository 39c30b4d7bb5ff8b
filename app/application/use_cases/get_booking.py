from app.api.schemas.bookings import BookingResponse
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.errors import NotFoundError


class GetBookingUseCase:
    def __init__(self, booking_repo: BookingRepo, transaction_manager: TransactionManager) -> None:
        self._booking_repo = booking_repo
        self._transaction_manager = transaction_manager

    async def execute(self, booking_id: str) -> BookingResponse:
        async with self._transaction_manager.start():
            booking = await self._booking_repo.get(booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)

        return BookingResponse(
            id=booking.id,
            driver_id=booking.driver_id,
            partner_id=booking.partner_id,
            vehicle_id=booking.vehicle_id,
            status=booking.status.value,
            payment_status=booking.payment_status,
            start_date=booking.start_date,
            end_date=booking.end_date,
            weekly_rate=booking.weekly_rate,
            deposit_amount=booking.deposit_amount,
            total_weeks=booking.total_weeks,
            total_amount=booking.total_amount,
            total_paid=booking.total_paid,
            final_amount=booking.final_amount,
            outstanding_amount=booking.outstanding_amount,
            refund_amount=booking.refund_amount,
            deposit_refunded=booking.deposit_refunded,
            return_requested=booking.return_requested,
            return_approved=booking.return_approved,
            partner_acceptance_deadline=booking.partner_acceptance_deadline,
            payment_deadline=booking.payment_deadline,
            insurance_upload_deadline=booking.insurance_upload_deadline,
            activated_trigger=booking.activated_trigger,
            driver_snapshot=booking.driver_snapshot.to_dict() if booking.driver_snapshot else None,
            partner_snapshot=booking.partner_snapshot.to_dict() if booking.partner_snapshot else None,
            vehicle_snapshot=booking.vehicle_snapshot.to_dict() if booking.vehicle_snapshot else None,
            released_documents=[d.to_dict() for d in booking.released_documents],
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )
