from fastapi import APIRouter, BackgroundTasks, Depends, status

from app.api.dependencies import get_effect_dispatcher, get_use_cases
from app.api.routers.bookings import schedule_effects
from app.api.schemas.payments import (
    CompleteRefundRequest,
    CompleteRefundResponse,
    ConfirmPaymentReceivedRequest,
    ConfirmPaymentReceivedResponse,
    MarkPaymentSentRequest,
    MarkPaymentSentResponse,
    RefundDepositRequest,
    RefundDepositResponse,
    RejectRefundRequest,
    RejectRefundResponse,
)

router = APIRouter()


@router.post(
    "/payments/mark-sent",
    response_model=MarkPaymentSentResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_payment_sent(
    payload: MarkPaymentSentRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> MarkPaymentSentResponse:
    response = await use_cases["mark_payment_sent"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/payments/confirm-received",
    response_model=ConfirmPaymentReceivedResponse,
    status_code=status.HTTP_200_OK,
)
async def confirm_payment_received(
    payload: ConfirmPaymentReceivedRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> ConfirmPaymentReceivedResponse:
    response = await use_cases["confirm_payment_received"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/payments/refund-deposit",
    response_model=RefundDepositResponse,
    status_code=status.HTTP_200_OK,
)
async def refund_deposit(
    payload: RefundDepositRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> RefundDepositResponse:
    response = await use_cases["refund_deposit"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/payments/complete-refund",
    response_model=CompleteRefundResponse,
    status_code=status.HTTP_200_OK,
)
async def complete_refund(
    payload: CompleteRefundRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> CompleteRefundResponse:
    response = await use_cases["complete_refund"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/payments/reject-refund",
    response_model=RejectRefundResponse,
    status_code=status.HTTP_200_OK,
)
async def reject_refund(
    payload: RejectRefundRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> RejectRefundResponse:
    response = await use_cases["reject_refund"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response
