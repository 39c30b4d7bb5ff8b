from fastapi import APIRouter, BackgroundTasks, Depends, Header, status

from app.api.dependencies import EffectDispatcher, get_effect_dispatcher, get_use_cases
from app.api.schemas.bookings import (
    ActivateBookingRequest,
    ActivateBookingResponse,
    BookingResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    FinishBookingRequest,
    FinishBookingResponse,
    PartnerResponseRequest,
    PartnerResponseResponse,
    ReturnRequest,
    ReturnResponse,
)

router = APIRouter()


def schedule_effects(background_tasks: BackgroundTasks, dispatcher: EffectDispatcher | None) -> None:
    if dispatcher is not None:
        background_tasks.add_task(dispatcher)


@router.post(
    "/bookings",
    response_model=CreateBookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    idem_key: str | None = Header(default=None, convert_underscores=False, alias="Idempotency-Key"),
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> CreateBookingResponse:
    response = await use_cases["create_booking"].execute(request=payload, idem_key=idem_key)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/bookings/partner-response",
    response_model=PartnerResponseResponse,
    status_code=status.HTTP_200_OK,
)
async def respond_to_booking(
    payload: PartnerResponseRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> PartnerResponseResponse:
    response = await use_cases["respond_to_booking"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/bookings/activate",
    response_model=ActivateBookingResponse,
    status_code=status.HTTP_200_OK,
)
async def activate_booking(
    payload: ActivateBookingRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> ActivateBookingResponse:
    response = await use_cases["activate_booking"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/bookings/cancel",
    response_model=CancelBookingResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_booking(
    payload: CancelBookingRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> CancelBookingResponse:
    response = await use_cases["cancel_booking"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/bookings/finish",
    response_model=FinishBookingResponse,
    status_code=status.HTTP_200_OK,
)
async def finish_booking(
    payload: FinishBookingRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> FinishBookingResponse:
    response = await use_cases["finish_booking"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.post(
    "/bookings/request-return",
    response_model=ReturnResponse,
    status_code=status.HTTP_200_OK,
)
async def request_return(
    payload: ReturnRequest,
    background_tasks: BackgroundTasks,
    use_cases=Depends(get_use_cases),
    dispatcher=Depends(get_effect_dispatcher),
) -> ReturnResponse:
    response = await use_cases["request_return"].execute(request=payload)
    schedule_effects(background_tasks, dispatcher)
    return response


@router.get(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def get_booking(
    booking_id: str,
    use_cases=Depends(get_use_cases),
) -> BookingResponse:
    return await use_cases["get_booking"].execute(booking_id=booking_id)
