"""
Input validators shared by the use cases.
Each one returns None on success and raises a VALIDATION AppError otherwise.
"""

from __future__ import annotations

import re
from datetime import date, time, timedelta
from decimal import Decimal

from app.errors import validation_error
from app.schemas import minutes_since_midnight

MAX_SLOT_CAPACITY = 100
MIN_SLOT_DURATION_MINUTES = 30
MAX_SLOT_DURATION_MINUTES = 480  # 8 hours
MAX_QUERY_RANGE_DAYS = 90
MAX_ADMIN_QUERY_RANGE_DAYS = 180
MAX_AMOUNT = Decimal("10000000")
MAX_TEXT_LENGTH = 500  # notes and cancellation reasons

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_LETTER_RE = re.compile(r"[A-Za-z]")
_DIGIT_RE = re.compile(r"\d")


# ---------------------------------------------------------------------------
# Time slots
# ---------------------------------------------------------------------------


def validate_date(d: date, today: date) -> None:
    if d < today:
        raise validation_error("Past dates cannot be selected", code="past_date")


def validate_time_range(start: time, end: time) -> None:
    if minutes_since_midnight(start) >= minutes_since_midnight(end):
        raise validation_error("End time must be after start time", code="invalid_time_range")


def validate_capacity(max_capacity: int) -> None:
    if max_capacity < 1:
        raise validation_error("Capacity must be at least 1", code="invalid_capacity")
    if max_capacity > MAX_SLOT_CAPACITY:
        raise validation_error(
            f"Capacity must be at most {MAX_SLOT_CAPACITY}", code="invalid_capacity"
        )


def validate_slot_duration(minutes: int) -> None:
    if not MIN_SLOT_DURATION_MINUTES <= minutes <= MAX_SLOT_DURATION_MINUTES:
        raise validation_error(
            "Slot duration must be between 30 minutes and 8 hours",
            code="invalid_duration",
        )


def validate_item_id(item_id: str | None) -> None:
    if item_id is not None and not item_id.strip():
        raise validation_error("Item id is invalid", code="invalid_item_id")


def validate_required_id(value: str, label: str) -> None:
    if not value or not value.strip():
        raise validation_error(f"{label} is required", code="missing_id")


def validate_date_range(
    start: date,
    end: date,
    today: date | None = None,
    max_days: int = MAX_QUERY_RANGE_DAYS,
) -> None:
    """Pass `today` to also reject ranges that start in the past."""
    if start > end:
        raise validation_error("Start date must not be after end date", code="invalid_range")
    if today is not None and start < today:
        raise validation_error("Past dates cannot be selected", code="past_date")
    if end - start > timedelta(days=max_days):
        raise validation_error(
            f"Date range must not exceed {max_days} days", code="range_too_large"
        )


# ---------------------------------------------------------------------------
# Bookings & payments
# ---------------------------------------------------------------------------


def validate_amount(amount: Decimal) -> None:
    if amount < 0:
        raise validation_error("Amount must not be negative", code="invalid_amount")
    if amount > MAX_AMOUNT:
        raise validation_error(
            f"Amount must not exceed {MAX_AMOUNT:,}", code="invalid_amount"
        )


def validate_payment_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise validation_error("Payment amount must be greater than 0", code="invalid_amount")
    validate_amount(amount)


def validate_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > MAX_TEXT_LENGTH:
        raise validation_error(
            f"Notes must be at most {MAX_TEXT_LENGTH} characters", code="notes_too_long"
        )


def validate_reason(reason: str) -> str:
    """Returns the trimmed reason."""
    trimmed = reason.strip()
    if not trimmed:
        raise validation_error("A cancellation reason is required", code="missing_reason")
    if len(trimmed) > MAX_TEXT_LENGTH:
        raise validation_error(
            f"Cancellation reason must be at most {MAX_TEXT_LENGTH} characters",
            code="reason_too_long",
        )
    return trimmed


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def validate_email(email: str) -> None:
    if not email or not email.strip():
        raise validation_error("Email is required", code="invalid-email")
    if not _EMAIL_RE.match(email.strip()):
        raise validation_error("Email format is invalid", code="invalid-email")


def validate_password(password: str, strict: bool = False) -> None:
    """`strict` adds the sign-up rules: length cap, a letter and a digit."""
    if not password:
        raise validation_error("Password is required", code="weak-password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise validation_error(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            code="weak-password",
        )
    if not strict:
        return
    if len(password) > MAX_PASSWORD_LENGTH:
        raise validation_error(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters",
            code="weak-password",
        )
    if not (_LETTER_RE.search(password) and _DIGIT_RE.search(password)):
        raise validation_error(
            "Password must contain both letters and digits", code="weak-password"
        )


def validate_name(name: str) -> None:
    stripped = (name or "").strip()
    if not stripped:
        raise validation_error("Name is required", code="invalid-name")
    if not MIN_NAME_LENGTH <= len(stripped) <= MAX_NAME_LENGTH:
        raise validation_error(
            f"Name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters",
            code="invalid-name",
        )
