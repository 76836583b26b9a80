from fastapi import APIRouter, Depends, status

from app.cache import invalidate_slots_cache
from app.deps import (
    get_auth_repository,
    get_booking_repository,
    get_payment_repository,
)
from app.repositories import AuthRepository, BookingRepository, PaymentRepository
from app.result import respond
from app.schemas import (
    Booking,
    BookingCancel,
    BookingCreate,
    BookingFilters,
    BookingStatusUpdate,
)
from app.usecases.booking import (
    CancelBooking,
    CreateBooking,
    GetBookingById,
    GetBookings,
    UpdateBookingStatus,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[Booking])
async def list_bookings(
    filters: BookingFilters = Depends(),
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> list[Booking]:
    return respond(await GetBookings(bookings, auth).execute(filters))


@router.post("/", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    booking = respond(await CreateBooking(bookings, auth).execute(payload))
    await invalidate_slots_cache(booking.item_id)
    return booking


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: str,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    return respond(await GetBookingById(bookings, auth).execute(booking_id))


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: str,
    payload: BookingCancel,
    bookings: BookingRepository = Depends(get_booking_repository),
    payments: PaymentRepository = Depends(get_payment_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    result = await CancelBooking(bookings, payments, auth).execute(booking_id, payload.reason)
    booking = respond(result)
    await invalidate_slots_cache(booking.item_id)
    return booking


@router.patch("/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> Booking:
    result = await UpdateBookingStatus(bookings, auth).execute(booking_id, payload.status)
    booking = respond(result)
    await invalidate_slots_cache(booking.item_id)
    return booking
