"""
Booking lifecycle rules: the status transition table and the tiered refund policy.
Pure functions only; callers pass `now` so tests can pin the clock.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from app import settings
from app.errors import business_logic_error
from app.models import BookingStatus

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def _zone(name: str) -> tzinfo:
    return UTC if name.upper() == "UTC" else ZoneInfo(name)


# slot dates and times are wall-clock values in this zone
SERVICE_TZ: tzinfo = _zone(settings.TIMEZONE)


def local_today(now: datetime) -> date:
    return as_utc(now).astimezone(SERVICE_TZ).date()


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
        }
    ),
    BookingStatus.NO_SHOW: frozenset({BookingStatus.COMPLETED}),  # correcting a mistake
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_active(status: BookingStatus) -> bool:
    return status in ACTIVE_STATUSES


def assert_transition(old_status: BookingStatus, new_status: BookingStatus) -> None:
    """Raise a BUSINESS_LOGIC AppError unless old -> new is in the table."""
    if old_status == new_status:
        raise business_logic_error(
            f"Booking is already '{old_status}'", code="same_status"
        )
    allowed = VALID_TRANSITIONS.get(old_status, frozenset())
    if new_status not in allowed:
        raise business_logic_error(
            f"Cannot transition from '{old_status}' to '{new_status}'. "
            f"Allowed: {sorted(s.value for s in allowed)}",
            code="invalid_transition",
        )


# ---------------------------------------------------------------------------
# Cancellation & refunds
# ---------------------------------------------------------------------------

CANCELLATION_CUTOFF = timedelta(hours=24)

# (minimum time before slot start, refund percent), highest tier first
REFUND_TIERS: tuple[tuple[timedelta, int], ...] = (
    (timedelta(days=7), 100),
    (timedelta(days=3), 80),
    (CANCELLATION_CUTOFF, 50),
)

_REFUND_LABELS: dict[int, str] = {
    100: "Cancelled 7+ days before: 100% refund",
    80: "Cancelled 3-7 days before: 80% refund",
    50: "Cancelled 1-3 days before: 50% refund",
    0: "Cancelled within 24 hours: no refund",
}

CENTS = Decimal("0.01")


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def time_until(slot_start: datetime, now: datetime) -> timedelta:
    return as_utc(slot_start) - as_utc(now)


def refund_percent(slot_start: datetime, now: datetime) -> int:
    remaining = time_until(slot_start, now)
    for threshold, percent in REFUND_TIERS:
        if remaining >= threshold:
            return percent
    return 0


def can_be_cancelled(status: BookingStatus, slot_start: datetime, now: datetime) -> bool:
    return is_active(status) and time_until(slot_start, now) >= CANCELLATION_CUTOFF


def calculate_refund_amount(
    status: BookingStatus,
    total_amount: Decimal,
    slot_start: datetime,
    now: datetime,
) -> Decimal:
    if not can_be_cancelled(status, slot_start, now):
        return Decimal("0.00")
    percent = refund_percent(slot_start, now)
    return (total_amount * percent / 100).quantize(CENTS, rounding=ROUND_HALF_UP)


def refund_policy_text(slot_start: datetime, now: datetime) -> str:
    return _REFUND_LABELS[refund_percent(slot_start, now)]
