from fastapi import APIRouter, Depends, status

from app.cache import invalidate_slots_cache
from app.deps import get_auth_repository, get_booking_repository, get_payment_repository
from app.repositories import AuthRepository, BookingRepository, PaymentRepository
from app.result import respond
from app.schemas import Booking, PaymentCreate, PaymentInfo, RefundCreate, RefundInfo
from app.usecases.payment import (
    GetPaymentHistory,
    GetRefundHistory,
    GetRefundInfo,
    ProcessPayment,
    ProcessRefund,
    RetryPayment,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def process_payment(
    payload: PaymentCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    """Pay for a pending booking; returns the booking, confirmed."""
    booking = respond(await ProcessPayment(bookings, payments, auth).execute(payload))
    await invalidate_slots_cache(booking.item_id)
    return booking


@router.post("/{payment_id}/refund", response_model=PaymentInfo)
async def refund_payment(
    payment_id: str,
    payload: RefundCreate,
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> PaymentInfo:
    result = await ProcessRefund(payments, auth).execute(
        payment_id, payload.refund_amount, payload.reason
    )
    return respond(result)


@router.get("/history", response_model=list[PaymentInfo])
async def payment_history(
    user_id: str | None = None,
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> list[PaymentInfo]:
    return respond(await GetPaymentHistory(payments, auth).execute(user_id))


@router.get("/refunds", response_model=list[PaymentInfo])
async def refund_history(
    user_id: str | None = None,
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> list[PaymentInfo]:
    return respond(await GetRefundHistory(payments, auth).execute(user_id))


@router.get("/{payment_id}/refund", response_model=RefundInfo | None)
async def refund_info(
    payment_id: str,
    bookings: BookingRepository = Depends(get_booking_repository),
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> RefundInfo | None:
    return respond(await GetRefundInfo(bookings, payments, auth).execute(payment_id))


@router.post("/{payment_id}/retry", response_model=Booking)
async def retry_payment(
    payment_id: str,
    bookings: BookingRepository = Depends(get_booking_repository),
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    """Charge a failed payment again; returns the booking, confirmed."""
    booking = respond(await RetryPayment(bookings, payments, auth).execute(payment_id))
    await invalidate_slots_cache(booking.item_id)
    return booking
