from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app import policy, settings
from app.models import (
    BookingStatus,
    ItemType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)

# ---------------------------------------------------------------------------
# Domain entities
# ---------------------------------------------------------------------------


def minutes_since_midnight(t: time) -> int:
    return t.hour * 60 + t.minute


class TimeSlot(BaseModel):
    id: str
    date: date
    start_time: time
    end_time: time
    type: ItemType
    item_id: str | None = None
    is_available: bool = True
    max_capacity: int
    current_bookings: int = 0
    price: Decimal | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.date, self.start_time, tzinfo=policy.SERVICE_TZ)

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.date, self.end_time, tzinfo=policy.SERVICE_TZ)

    @property
    def duration_minutes(self) -> int:
        return minutes_since_midnight(self.end_time) - minutes_since_midnight(self.start_time)

    @property
    def time_range(self) -> str:
        return f"{self.start_time:%H:%M} - {self.end_time:%H:%M}"

    @property
    def has_available_capacity(self) -> bool:
        return self.current_bookings < self.max_capacity

    @property
    def remaining_capacity(self) -> int:
        return self.max_capacity - self.current_bookings

    def is_past(self, now: datetime) -> bool:
        return self.start_datetime <= now

    def is_booking_allowed(self, now: datetime) -> bool:
        return self.is_available and self.has_available_capacity and not self.is_past(now)

    def sort_key(self) -> tuple[date, int]:
        return self.date, minutes_since_midnight(self.start_time)


class RefundInfo(BaseModel):
    refund_id: str
    refund_amount: Decimal
    reason: str
    refunded_at: datetime
    refund_transaction_id: str | None = None


class PaymentInfo(BaseModel):
    payment_id: str
    booking_id: str | None = None
    method: PaymentMethod
    status: PaymentStatus
    amount: Decimal
    currency: str = settings.DEFAULT_CURRENCY
    paid_at: datetime
    receipt_url: str | None = None
    transaction_id: str | None = None
    failure_reason: str | None = None
    refund_info: RefundInfo | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_successful(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == PaymentStatus.FAILED

    @property
    def is_refunded(self) -> bool:
        return self.status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED)

    @property
    def can_refund(self) -> bool:
        return self.status == PaymentStatus.COMPLETED and self.refund_info is None


class GatewayReceipt(BaseModel):
    """What the payments service answers to a charge or refund request."""

    success: bool
    transaction_id: str | None = None
    receipt_url: str | None = None
    failure_reason: str | None = None


class Booking(BaseModel):
    id: str
    user_id: str
    time_slot_id: str
    type: ItemType
    item_id: str | None = None
    status: BookingStatus
    total_amount: Decimal
    payment_info: PaymentInfo | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_active(self) -> bool:
        return policy.is_active(self.status)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def is_completed(self) -> bool:
        return self.status == BookingStatus.COMPLETED

    @property
    def is_payment_completed(self) -> bool:
        return self.payment_info is not None and self.payment_info.is_successful

    @property
    def can_refund(self) -> bool:
        return (
            self.is_payment_completed
            and self.payment_info.can_refund  # type: ignore[union-attr]
            and self.is_cancelled
        )

    def can_be_cancelled(self, slot_start: datetime, now: datetime) -> bool:
        return policy.can_be_cancelled(self.status, slot_start, now)

    def calculate_refund_amount(self, slot_start: datetime, now: datetime) -> Decimal:
        return policy.calculate_refund_amount(self.status, self.total_amount, slot_start, now)

    def refund_policy_text(self, slot_start: datetime, now: datetime) -> str:
        return policy.refund_policy_text(slot_start, now)


class User(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole = UserRole.USER
    phone_number: str | None = None
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Workshop(BaseModel):
    id: str
    title: str
    description: str | None = None
    price: Decimal
    capacity: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class TimeSlotCreate(BaseModel):
    date: date
    start_time: time
    end_time: time
    type: ItemType
    item_id: str | None = None
    is_available: bool = True
    max_capacity: int
    price: Decimal | None = Field(default=None, ge=0)


class BulkTimeSlotCreate(BaseModel):
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int
    max_capacity: int
    type: ItemType
    item_id: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    # date.weekday() numbering: 0 = Monday ... 6 = Sunday
    exclude_weekdays: set[int] = Field(default_factory=set)


class TimeSlotQuery(BaseModel):
    """Bind to a FastAPI route via Depends(TimeSlotQuery)."""

    item_id: str | None = None
    start_date: date
    end_date: date


class BookingCreate(BaseModel):
    time_slot_id: str
    notes: str | None = None


class BookingCancel(BaseModel):
    reason: str


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    user_id: str | None = None
    status: BookingStatus | None = None
    type: ItemType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class PaymentCreate(BaseModel):
    booking_id: str
    amount: Decimal
    method: PaymentMethod
    currency: str = settings.DEFAULT_CURRENCY


class RefundCreate(BaseModel):
    refund_amount: Decimal
    reason: str = ""


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(SignInRequest):
    name: str


class PasswordResetRequest(BaseModel):
    email: str
