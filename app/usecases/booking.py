"""
Booking lifecycle: create, cancel (with tiered refund), admin status changes
and the read side. Every use case folds its outcome into a Result.
"""

from datetime import date
from decimal import Decimal

from loguru import logger

from app.errors import business_logic_error, validation_error
from app.models import BookingStatus
from app.policy import Clock, as_utc, assert_transition, local_today, utcnow
from app.repositories import AuthRepository, BookingRepository, PaymentRepository
from app.result import Failure, Result, Success, result_boundary, unwrap
from app.schemas import Booking, BookingCreate, BookingFilters, TimeSlot
from app.usecases.common import ensure_owner_or_admin, require_admin, require_user
from app.usecases.payment import ProcessRefund
from app.validators import (
    validate_date_range,
    validate_notes,
    validate_reason,
    validate_required_id,
)


class CreateBooking:
    def __init__(
        self,
        bookings: BookingRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._bookings = bookings
        self._auth = auth
        self._clock = clock

    @result_boundary("Booking creation failed")
    async def execute(self, payload: BookingCreate) -> Result[Booking]:
        user = await require_user(self._auth)
        validate_required_id(payload.time_slot_id, "Time slot id")
        validate_notes(payload.notes)

        slot = unwrap(await self._bookings.get_time_slot_by_id(payload.time_slot_id))
        if not slot.is_booking_allowed(self._clock()):
            raise business_logic_error(
                "This time slot can no longer be booked", code="slot_unavailable"
            )
        # capacity is re-checked under the slot lock by the repository
        return await self._bookings.create_booking(user.id, slot.id, payload.notes)


class CancelBooking:
    """
    Cancel an active booking and refund according to the tiered policy.

    A refund that fails does not block the cancellation: it is logged for
    manual follow-up and the booking keeps its previous payment info.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        payments: PaymentRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._bookings = bookings
        self._payments = payments
        self._auth = auth
        self._clock = clock

    @result_boundary("Booking cancellation failed")
    async def execute(self, booking_id: str, reason: str) -> Result[Booking]:
        user = await require_user(self._auth)
        validate_required_id(booking_id, "Booking id")
        reason = validate_reason(reason)

        booking = unwrap(await self._bookings.get_booking_by_id(booking_id))
        ensure_owner_or_admin(user, booking.user_id, "You can only cancel your own bookings")
        if not booking.is_active:
            raise business_logic_error(
                "Booking is already cancelled or completed", code="not_active"
            )

        refund_amount = await self._refund_amount(booking)
        payment_info = booking.payment_info
        if refund_amount > 0 and payment_info is not None and payment_info.can_refund:
            match await ProcessRefund(self._payments).execute(
                payment_info.payment_id, refund_amount, reason
            ):
                case Success(refunded):
                    payment_info = refunded
                case Failure(error):
                    logger.bind(
                        booking_id=booking.id, payment_id=payment_info.payment_id
                    ).error(
                        "Refund of {} failed, manual follow-up required: {}",
                        refund_amount,
                        error.message,
                    )

        return await self._bookings.cancel_booking(booking.id, reason, payment_info)

    async def _refund_amount(self, booking: Booking) -> Decimal:
        match await self._bookings.get_time_slot_by_id(booking.time_slot_id):
            case Success(slot):
                return booking.calculate_refund_amount(slot.start_datetime, self._clock())
            case Failure(error):
                logger.warning(
                    "Slot {} of booking {} could not be loaded, no refund: {}",
                    booking.time_slot_id,
                    booking.id,
                    error.message,
                )
        return Decimal("0")


class UpdateBookingStatus:
    """Admin-only move along the booking state machine."""

    def __init__(self, bookings: BookingRepository, auth: AuthRepository) -> None:
        self._bookings = bookings
        self._auth = auth

    @result_boundary("Booking status update failed")
    async def execute(self, booking_id: str, new_status: BookingStatus) -> Result[Booking]:
        await require_admin(self._auth)
        validate_required_id(booking_id, "Booking id")

        booking = unwrap(await self._bookings.get_booking_by_id(booking_id))
        assert_transition(booking.status, new_status)
        logger.info("Booking {}: {} -> {}", booking.id, booking.status, new_status)
        return await self._bookings.update_booking_status(booking.id, new_status)


class GetBookingById:
    def __init__(self, bookings: BookingRepository, auth: AuthRepository) -> None:
        self._bookings = bookings
        self._auth = auth

    @result_boundary("Loading the booking failed")
    async def execute(self, booking_id: str) -> Result[Booking]:
        user = await require_user(self._auth)
        validate_required_id(booking_id, "Booking id")
        booking = unwrap(await self._bookings.get_booking_by_id(booking_id))
        ensure_owner_or_admin(user, booking.user_id, "You can only view your own bookings")
        return Success(booking)


class GetBookings:
    """A user's bookings, newest first. Admins may ask for any user's."""

    def __init__(self, bookings: BookingRepository, auth: AuthRepository) -> None:
        self._bookings = bookings
        self._auth = auth

    @result_boundary("Loading bookings failed")
    async def execute(self, filters: BookingFilters) -> Result[list[Booking]]:
        user = await require_user(self._auth)
        target = filters.user_id or user.id
        ensure_owner_or_admin(user, target, "You can only list your own bookings")
        if (
            filters.start_date
            and filters.end_date
            and as_utc(filters.start_date) > as_utc(filters.end_date)
        ):
            raise validation_error(
                "Start date must not be after end date", code="invalid_range"
            )

        bookings = unwrap(await self._bookings.get_bookings_by_user(target))
        if filters.status is not None:
            bookings = [b for b in bookings if b.status == filters.status]
        if filters.type is not None:
            bookings = [b for b in bookings if b.type == filters.type]
        if filters.start_date is not None:
            start = as_utc(filters.start_date)
            bookings = [b for b in bookings if as_utc(b.created_at) >= start]
        if filters.end_date is not None:
            end = as_utc(filters.end_date)
            bookings = [b for b in bookings if as_utc(b.created_at) <= end]
        return Success(sorted(bookings, key=lambda b: as_utc(b.created_at), reverse=True))


class GetAvailableTimeSlots:
    def __init__(self, bookings: BookingRepository, clock: Clock = utcnow) -> None:
        self._bookings = bookings
        self._clock = clock

    @result_boundary("Loading available time slots failed")
    async def execute(
        self, item_id: str | None, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]:
        item = (item_id or "").strip()
        validate_required_id(item, "Item id")
        now = self._clock()
        validate_date_range(start_date, end_date, today=local_today(now))

        slots = unwrap(await self._bookings.get_available_time_slots(item, start_date, end_date))
        bookable = [
            s
            for s in slots
            if s.is_available and s.has_available_capacity and s.is_booking_allowed(now)
        ]
        return Success(sorted(bookable, key=TimeSlot.sort_key))
