"""
Contracts the use cases depend on. Every operation is async and reports
its outcome through a Result; implementations must not raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal

from app.models import BookingStatus, PaymentMethod
from app.result import Result
from app.schemas import (
    Booking,
    PaymentInfo,
    TimeSlot,
    TimeSlotCreate,
    User,
    Workshop,
)


class BookingRepository(ABC):
    @abstractmethod
    async def create_booking(
        self, user_id: str, time_slot_id: str, notes: str | None
    ) -> Result[Booking]:
        """Create a pending booking and take one unit of the slot's capacity atomically."""

    @abstractmethod
    async def get_booking_by_id(self, booking_id: str) -> Result[Booking]: ...

    @abstractmethod
    async def get_bookings_by_user(self, user_id: str) -> Result[list[Booking]]: ...

    @abstractmethod
    async def get_bookings_by_time_slot(self, time_slot_id: str) -> Result[list[Booking]]: ...

    @abstractmethod
    async def update_booking_status(
        self, booking_id: str, status: BookingStatus
    ) -> Result[Booking]:
        """Moving an active booking to CANCELLED releases its slot capacity."""

    @abstractmethod
    async def cancel_booking(
        self,
        booking_id: str,
        reason: str,
        payment_info: PaymentInfo | None = None,
    ) -> Result[Booking]:
        """Mark cancelled, stamp cancelled_at and release slot capacity atomically."""

    @abstractmethod
    async def attach_payment(self, booking_id: str, payment_id: str) -> Result[Booking]: ...

    @abstractmethod
    async def get_available_time_slots(
        self, item_id: str, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]: ...

    @abstractmethod
    async def get_time_slots(
        self, item_id: str | None, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]: ...

    @abstractmethod
    async def get_time_slot_by_id(self, time_slot_id: str) -> Result[TimeSlot]: ...

    @abstractmethod
    async def create_time_slot(self, draft: TimeSlotCreate) -> Result[TimeSlot]: ...

    @abstractmethod
    async def update_time_slot(
        self, time_slot_id: str, draft: TimeSlotCreate
    ) -> Result[TimeSlot]: ...

    @abstractmethod
    async def delete_time_slot(self, time_slot_id: str) -> Result[None]: ...


class PaymentRepository(ABC):
    @abstractmethod
    async def process_payment(
        self,
        booking_id: str,
        amount: Decimal,
        method: PaymentMethod,
        currency: str,
    ) -> Result[PaymentInfo]: ...

    @abstractmethod
    async def get_payment_info(self, payment_id: str) -> Result[PaymentInfo]: ...

    @abstractmethod
    async def get_payments_by_user(self, user_id: str) -> Result[list[PaymentInfo]]:
        """Payments of every booking the user owns."""

    @abstractmethod
    async def retry_payment(self, payment_id: str) -> Result[PaymentInfo]:
        """Charge a failed payment again with its original amount and method."""

    @abstractmethod
    async def process_refund(
        self, payment_id: str, amount: Decimal, reason: str
    ) -> Result[PaymentInfo]: ...


class AuthRepository(ABC):
    @abstractmethod
    async def get_current_user(self) -> User | None: ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Result[User]: ...

    @abstractmethod
    async def sign_up(self, email: str, password: str, name: str) -> Result[User]: ...

    @abstractmethod
    async def sign_out(self) -> Result[None]: ...

    @abstractmethod
    async def send_password_reset_email(self, email: str) -> Result[None]: ...


class WorkshopRepository(ABC):
    @abstractmethod
    async def get_workshop_by_id(self, workshop_id: str) -> Result[Workshop]: ...

    @abstractmethod
    async def delete_workshop(self, workshop_id: str) -> Result[None]: ...
