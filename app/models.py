from datetime import time
from enum import StrEnum
from typing import Any
from uuid import uuid4

from tortoise import fields
from tortoise.models import Model

from app import settings


class ItemType(StrEnum):
    WORKSHOP = "workshop"
    SPACE = "space"


class BookingStatus(StrEnum):
    PENDING = "pending"  # created, awaiting payment / confirmation
    CONFIRMED = "confirmed"  # paid or accepted
    COMPLETED = "completed"  # slot elapsed, marked done
    CANCELLED = "cancelled"  # cancelled by the customer or an admin
    NO_SHOW = "no_show"  # customer didn't show up
    REFUNDED = "refunded"  # legacy records only, not reachable by a transition


class PaymentMethod(StrEnum):
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    KAKAO_PAYMENT = "kakao_payment"
    NAVER_PAYMENT = "naver_payment"
    PAYPAL = "paypal"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


def new_id() -> str:
    return str(uuid4())


class ClockTimeField(fields.CharField):
    """Wall-clock time stored as "HH:MM:SS" text, portable to SQLite; sorts chronologically."""

    field_type = time

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(max_length=8, **kwargs)

    def to_db_value(self, value: Any, instance: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            value = time.fromisoformat(value)
        return value.replace(microsecond=0).isoformat()

    def to_python_value(self, value: Any) -> time | None:
        if value is None or isinstance(value, time):
            return value
        return time.fromisoformat(value)


class AbstractModel(Model):
    id = fields.CharField(max_length=36, primary_key=True, default=new_id)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        abstract = True


class TimeSlot(AbstractModel):
    date = fields.DateField()
    start_time = ClockTimeField()
    end_time = ClockTimeField()

    type = fields.CharEnumField(ItemType)
    item_id = fields.CharField(max_length=36, null=True)  # workshop or space id

    is_available = fields.BooleanField(default=True)
    max_capacity = fields.IntField()
    current_bookings = fields.IntField(default=0)  # only touched under a row lock
    price = fields.DecimalField(max_digits=12, decimal_places=2, null=True)

    class Meta:  # type: ignore
        table = "time_slots"
        ordering = ["date", "start_time"]


class Payment(AbstractModel):
    booking_id = fields.CharField(max_length=36, null=True)

    method = fields.CharEnumField(PaymentMethod)
    status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.PENDING)
    amount = fields.DecimalField(max_digits=12, decimal_places=2)
    currency = fields.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    paid_at = fields.DatetimeField()

    receipt_url = fields.CharField(max_length=512, null=True)
    transaction_id = fields.CharField(max_length=128, null=True)
    failure_reason = fields.TextField(null=True)

    # flattened RefundInfo, null until refunded
    refund_id = fields.CharField(max_length=36, null=True)
    refund_amount = fields.DecimalField(max_digits=12, decimal_places=2, null=True)
    refund_reason = fields.TextField(null=True)
    refunded_at = fields.DatetimeField(null=True)
    refund_transaction_id = fields.CharField(max_length=128, null=True)

    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "payments"


class Booking(AbstractModel):
    user_id = fields.CharField(max_length=36)
    time_slot_id = fields.CharField(max_length=36)
    type = fields.CharEnumField(ItemType)
    item_id = fields.CharField(max_length=36, null=True)

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    total_amount = fields.DecimalField(max_digits=12, decimal_places=2)
    payment_id = fields.CharField(max_length=36, null=True)

    notes = fields.TextField(null=True)
    updated_at = fields.DatetimeField(null=True)
    cancelled_at = fields.DatetimeField(null=True)
    cancellation_reason = fields.TextField(null=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]


class Workshop(AbstractModel):
    title = fields.CharField(max_length=200)
    description = fields.TextField(null=True)
    price = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    capacity = fields.IntField(default=1)

    class Meta:  # type: ignore
        table = "workshops"
