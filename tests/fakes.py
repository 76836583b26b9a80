"""
In-memory repositories used by the use-case and router tests.
They mirror the capacity bookkeeping of the Tortoise implementations
and record every call so tests can assert on what was (not) touched.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.errors import AppError, ErrorKind, business_logic_error, not_found_error
from app.models import BookingStatus, PaymentMethod, PaymentStatus, new_id
from app.policy import is_active
from app.repositories import (
    AuthRepository,
    BookingRepository,
    PaymentRepository,
    WorkshopRepository,
)
from app.result import Failure, Result, Success
from app.schemas import (
    Booking,
    PaymentInfo,
    RefundInfo,
    TimeSlot,
    TimeSlotCreate,
    User,
    Workshop,
)

from .factories import NOW


class InMemoryBookingRepository(BookingRepository):
    def __init__(
        self,
        slots: list[TimeSlot] | None = None,
        bookings: list[Booking] | None = None,
    ) -> None:
        self.slots = {s.id: s for s in slots or []}
        self.bookings = {b.id: b for b in bookings or []}
        self.calls: list[str] = []
        # create_time_slot fails once this many slots were created
        self.fail_create_after: int | None = None
        self._created = 0

    def _release(self, time_slot_id: str) -> None:
        slot = self.slots.get(time_slot_id)
        if slot and slot.current_bookings > 0:
            self.slots[slot.id] = slot.model_copy(
                update={"current_bookings": slot.current_bookings - 1}
            )

    async def create_booking(self, user_id, time_slot_id, notes) -> Result[Booking]:
        self.calls.append("create_booking")
        slot = self.slots.get(time_slot_id)
        if slot is None:
            return Failure(not_found_error("Time slot not found"))
        if not slot.has_available_capacity:
            return Failure(business_logic_error("Time slot is fully booked", code="slot_full"))
        self.slots[slot.id] = slot.model_copy(
            update={"current_bookings": slot.current_bookings + 1}
        )
        booking = Booking(
            id=new_id(),
            user_id=user_id,
            time_slot_id=slot.id,
            type=slot.type,
            item_id=slot.item_id,
            status=BookingStatus.PENDING,
            total_amount=slot.price or Decimal("0"),
            notes=notes,
            created_at=NOW,
        )
        self.bookings[booking.id] = booking
        return Success(booking)

    async def get_booking_by_id(self, booking_id) -> Result[Booking]:
        self.calls.append("get_booking_by_id")
        booking = self.bookings.get(booking_id)
        if booking is None:
            return Failure(not_found_error("Booking not found"))
        return Success(booking)

    async def get_bookings_by_user(self, user_id) -> Result[list[Booking]]:
        self.calls.append("get_bookings_by_user")
        return Success([b for b in self.bookings.values() if b.user_id == user_id])

    async def get_bookings_by_time_slot(self, time_slot_id) -> Result[list[Booking]]:
        self.calls.append("get_bookings_by_time_slot")
        return Success([b for b in self.bookings.values() if b.time_slot_id == time_slot_id])

    async def update_booking_status(self, booking_id, status) -> Result[Booking]:
        self.calls.append("update_booking_status")
        booking = self.bookings.get(booking_id)
        if booking is None:
            return Failure(not_found_error("Booking not found"))
        update: dict = {"status": status, "updated_at": NOW}
        if status == BookingStatus.CANCELLED:
            update["cancelled_at"] = NOW
            if booking.is_active:
                self._release(booking.time_slot_id)
        self.bookings[booking_id] = booking.model_copy(update=update)
        return Success(self.bookings[booking_id])

    async def cancel_booking(self, booking_id, reason, payment_info=None) -> Result[Booking]:
        self.calls.append("cancel_booking")
        booking = self.bookings.get(booking_id)
        if booking is None:
            return Failure(not_found_error("Booking not found"))
        if is_active(booking.status):
            self._release(booking.time_slot_id)
        update = {
            "status": BookingStatus.CANCELLED,
            "cancelled_at": NOW,
            "updated_at": NOW,
            "cancellation_reason": reason,
        }
        if payment_info is not None:
            update["payment_info"] = payment_info
        self.bookings[booking_id] = booking.model_copy(update=update)
        return Success(self.bookings[booking_id])

    async def attach_payment(self, booking_id, payment_id) -> Result[Booking]:
        self.calls.append("attach_payment")
        booking = self.bookings.get(booking_id)
        if booking is None:
            return Failure(not_found_error("Booking not found"))
        return Success(booking)

    async def get_available_time_slots(self, item_id, start_date, end_date) -> Result[list[TimeSlot]]:
        self.calls.append("get_available_time_slots")
        return Success(
            [
                s
                for s in self.slots.values()
                if s.item_id == item_id and s.is_available and start_date <= s.date <= end_date
            ]
        )

    async def get_time_slots(self, item_id, start_date: date, end_date: date) -> Result[list[TimeSlot]]:
        self.calls.append("get_time_slots")
        return Success(
            [
                s
                for s in self.slots.values()
                if (item_id is None or s.item_id == item_id) and start_date <= s.date <= end_date
            ]
        )

    async def get_time_slot_by_id(self, time_slot_id) -> Result[TimeSlot]:
        self.calls.append("get_time_slot_by_id")
        slot = self.slots.get(time_slot_id)
        if slot is None:
            return Failure(not_found_error("Time slot not found"))
        return Success(slot)

    async def create_time_slot(self, draft: TimeSlotCreate) -> Result[TimeSlot]:
        self.calls.append("create_time_slot")
        if self.fail_create_after is not None and self._created >= self.fail_create_after:
            return Failure(AppError(ErrorKind.STORAGE, "Could not create time slot: disk full"))
        self._created += 1
        slot = TimeSlot(id=new_id(), created_at=NOW, **draft.model_dump())
        self.slots[slot.id] = slot
        return Success(slot)

    async def update_time_slot(self, time_slot_id, draft: TimeSlotCreate) -> Result[TimeSlot]:
        self.calls.append("update_time_slot")
        slot = self.slots.get(time_slot_id)
        if slot is None:
            return Failure(not_found_error("Time slot not found"))
        self.slots[time_slot_id] = slot.model_copy(update=draft.model_dump())
        return Success(self.slots[time_slot_id])

    async def delete_time_slot(self, time_slot_id) -> Result[None]:
        self.calls.append("delete_time_slot")
        if self.slots.pop(time_slot_id, None) is None:
            return Failure(not_found_error("Time slot not found"))
        return Success(None)


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(
        self,
        payments: list[PaymentInfo] | None = None,
        owners: dict[str, str] | None = None,
    ) -> None:
        self.payments = {p.payment_id: p for p in payments or []}
        # booking id -> user id, stands in for the bookings table
        self.owners = dict(owners or {})
        self.calls: list[str] = []
        self.decline_charges = False
        self.refund_error: AppError | None = None

    async def process_payment(
        self, booking_id: str, amount: Decimal, method: PaymentMethod, currency: str
    ) -> Result[PaymentInfo]:
        self.calls.append("process_payment")
        payment = PaymentInfo(
            payment_id=new_id(),
            booking_id=booking_id,
            method=method,
            status=PaymentStatus.FAILED if self.decline_charges else PaymentStatus.COMPLETED,
            amount=amount,
            currency=currency,
            paid_at=NOW,
            failure_reason="card declined" if self.decline_charges else None,
            created_at=NOW,
        )
        self.payments[payment.payment_id] = payment
        return Success(payment)

    async def get_payment_info(self, payment_id) -> Result[PaymentInfo]:
        self.calls.append("get_payment_info")
        payment = self.payments.get(payment_id)
        if payment is None:
            return Failure(not_found_error("Payment not found"))
        return Success(payment)

    async def get_payments_by_user(self, user_id) -> Result[list[PaymentInfo]]:
        self.calls.append("get_payments_by_user")
        return Success(
            [
                p
                for p in self.payments.values()
                if p.booking_id and self.owners.get(p.booking_id) == user_id
            ]
        )

    async def retry_payment(self, payment_id) -> Result[PaymentInfo]:
        self.calls.append("retry_payment")
        payment = self.payments.get(payment_id)
        if payment is None:
            return Failure(not_found_error("Payment not found"))
        retried = payment.model_copy(
            update={
                "status": PaymentStatus.FAILED if self.decline_charges else PaymentStatus.COMPLETED,
                "failure_reason": "card declined" if self.decline_charges else None,
                "paid_at": NOW,
            }
        )
        self.payments[payment_id] = retried
        return Success(retried)

    async def process_refund(self, payment_id, amount, reason) -> Result[PaymentInfo]:
        self.calls.append("process_refund")
        if self.refund_error is not None:
            return Failure(self.refund_error)
        payment = self.payments[payment_id]
        refunded = payment.model_copy(
            update={
                "status": PaymentStatus.REFUNDED
                if amount >= payment.amount
                else PaymentStatus.PARTIALLY_REFUNDED,
                "refund_info": RefundInfo(
                    refund_id=new_id(), refund_amount=amount, reason=reason, refunded_at=NOW
                ),
            }
        )
        self.payments[payment_id] = refunded
        return Success(refunded)


class InMemoryWorkshopRepository(WorkshopRepository):
    def __init__(self, workshops: list[Workshop] | None = None) -> None:
        self.workshops = {w.id: w for w in workshops or []}

    async def get_workshop_by_id(self, workshop_id) -> Result[Workshop]:
        workshop = self.workshops.get(workshop_id)
        if workshop is None:
            return Failure(not_found_error("Workshop not found"))
        return Success(workshop)

    async def delete_workshop(self, workshop_id) -> Result[None]:
        if self.workshops.pop(workshop_id, None) is None:
            return Failure(not_found_error("Workshop not found"))
        return Success(None)


class FakeAuth(AuthRepository):
    """Signed in as `user` (None = anonymous); remote calls are recorded."""

    def __init__(self, user: User | None = None) -> None:
        self.user = user
        self.calls: list[tuple] = []

    async def get_current_user(self) -> User | None:
        return self.user

    async def sign_in(self, email, password) -> Result[User]:
        self.calls.append(("sign_in", email, password))
        return Success(User(id=new_id(), email=email, name="Signed In"))

    async def sign_up(self, email, password, name) -> Result[User]:
        self.calls.append(("sign_up", email, password, name))
        return Success(User(id=new_id(), email=email, name=name))

    async def sign_out(self) -> Result[None]:
        self.calls.append(("sign_out",))
        self.user = None
        return Success(None)

    async def send_password_reset_email(self, email) -> Result[None]:
        self.calls.append(("send_password_reset_email", email))
        return Success(None)
