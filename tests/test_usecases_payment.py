from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from app import settings
from app.errors import ErrorKind
from app.models import BookingStatus, PaymentMethod, PaymentStatus
from app.result import Failure, Success
from app.schemas import PaymentCreate, RefundInfo
from app.usecases.payment import (
    GetPaymentHistory,
    GetRefundHistory,
    GetRefundInfo,
    ProcessPayment,
    ProcessRefund,
    RetryPayment,
)

from .factories import (
    BOOKING_ID,
    CUSTOMER_ID,
    NOW,
    OTHER_USER_ID,
    PAYMENT_ID,
    make_booking,
    make_payment,
    make_user,
)
from .fakes import FakeAuth, InMemoryBookingRepository, InMemoryPaymentRepository


def _failure_kind(result) -> ErrorKind:
    assert isinstance(result, Failure), result
    return result.error.kind


def _payload(**overrides) -> PaymentCreate:
    base = dict(booking_id=BOOKING_ID, amount=Decimal("50000"), method=PaymentMethod.CREDIT_CARD)
    return PaymentCreate(**{**base, **overrides})


def _pending_repo() -> InMemoryBookingRepository:
    return InMemoryBookingRepository(
        bookings=[make_booking(status=BookingStatus.PENDING, payment_info=None)]
    )


class TestProcessPayment:
    @pytest.mark.asyncio
    async def test_completed_charge_confirms_booking(self, customer_auth):
        bookings = _pending_repo()
        payments = InMemoryPaymentRepository()
        result = await ProcessPayment(bookings, payments, customer_auth).execute(_payload())

        assert isinstance(result, Success)
        assert result.value.status == BookingStatus.CONFIRMED
        assert bookings.calls[-2:] == ["attach_payment", "update_booking_status"]

    @pytest.mark.asyncio
    async def test_declined_charge_is_payment_error(self, customer_auth):
        bookings = _pending_repo()
        payments = InMemoryPaymentRepository()
        payments.decline_charges = True
        result = await ProcessPayment(bookings, payments, customer_auth).execute(_payload())

        assert _failure_kind(result) == ErrorKind.PAYMENT
        assert "card declined" in result.error.message
        assert bookings.bookings[BOOKING_ID].status == BookingStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5", "10000000.01"])
    async def test_amount_bounds(self, customer_auth, amount):
        result = await ProcessPayment(
            _pending_repo(), InMemoryPaymentRepository(), customer_auth
        ).execute(_payload(amount=Decimal(amount)))
        assert _failure_kind(result) == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_only_pending_bookings(self, customer_auth):
        bookings = InMemoryBookingRepository(bookings=[make_booking()])
        result = await ProcessPayment(
            bookings, InMemoryPaymentRepository(), customer_auth
        ).execute(_payload())
        assert _failure_kind(result) == ErrorKind.BUSINESS_LOGIC

    @pytest.mark.asyncio
    async def test_foreign_booking(self):
        stranger = FakeAuth(make_user(OTHER_USER_ID))
        payments = InMemoryPaymentRepository()
        result = await ProcessPayment(_pending_repo(), payments, stranger).execute(_payload())
        assert _failure_kind(result) == ErrorKind.AUTH
        assert payments.calls == []

    @pytest.mark.asyncio
    async def test_amount_must_match_booking_total(self, customer_auth):
        bookings = _pending_repo()
        payments = InMemoryPaymentRepository()
        result = await ProcessPayment(bookings, payments, customer_auth).execute(
            _payload(amount=Decimal("1"))
        )

        assert _failure_kind(result) == ErrorKind.BUSINESS_LOGIC
        assert result.error.code == "amount_mismatch"
        assert payments.calls == []
        assert bookings.bookings[BOOKING_ID].status == BookingStatus.PENDING

    @pytest.mark.asyncio
    async def test_currency_defaults_to_configured(self, customer_auth):
        payload = _payload()
        assert payload.currency == settings.DEFAULT_CURRENCY

        payments = InMemoryPaymentRepository()
        result = await ProcessPayment(_pending_repo(), payments, customer_auth).execute(payload)
        assert isinstance(result, Success)
        (charged,) = payments.payments.values()
        assert charged.currency == settings.DEFAULT_CURRENCY

    @pytest.mark.asyncio
    async def test_explicit_currency_is_charged(self, customer_auth):
        payments = InMemoryPaymentRepository()
        await ProcessPayment(_pending_repo(), payments, customer_auth).execute(
            _payload(currency="USD")
        )
        (charged,) = payments.payments.values()
        assert charged.currency == "USD"


class TestProcessRefund:
    def _payments(self, **overrides) -> InMemoryPaymentRepository:
        return InMemoryPaymentRepository([make_payment(**overrides)])

    @pytest.mark.asyncio
    async def test_full_refund(self):
        payments = self._payments()
        result = await ProcessRefund(payments).execute(PAYMENT_ID, Decimal("50000"), "closed")
        assert result.value.status == PaymentStatus.REFUNDED
        assert result.value.refund_info.reason == "closed"

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self):
        result = await ProcessRefund(self._payments()).execute(PAYMENT_ID, Decimal("0"))
        assert _failure_kind(result) == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_rejects_non_completed_payment(self):
        payments = self._payments(status=PaymentStatus.PENDING)
        result = await ProcessRefund(payments).execute(PAYMENT_ID, Decimal("100"))
        assert _failure_kind(result) == ErrorKind.BUSINESS_LOGIC
        assert "process_refund" not in payments.calls

    @pytest.mark.asyncio
    async def test_rejects_over_refund(self):
        payments = self._payments()
        result = await ProcessRefund(payments).execute(PAYMENT_ID, Decimal("50000.01"))
        assert _failure_kind(result) == ErrorKind.BUSINESS_LOGIC
        assert result.error.code == "refund_exceeds_payment"

    @pytest.mark.asyncio
    async def test_unknown_payment(self):
        result = await ProcessRefund(InMemoryPaymentRepository()).execute(
            "missing", Decimal("1")
        )
        assert _failure_kind(result) == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_direct_calls_require_admin(self, customer_auth, admin_auth):
        denied = await ProcessRefund(self._payments(), customer_auth).execute(
            PAYMENT_ID, Decimal("10")
        )
        assert _failure_kind(denied) == ErrorKind.AUTH

        allowed = await ProcessRefund(self._payments(), admin_auth).execute(
            PAYMENT_ID, Decimal("10")
        )
        assert allowed.value.status == PaymentStatus.PARTIALLY_REFUNDED


# ---------------------------------------------------------------------------
# Retry & history
# ---------------------------------------------------------------------------


def _owned(*payments) -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository(list(payments), owners={BOOKING_ID: str(CUSTOMER_ID)})


def _refund(amount: str) -> RefundInfo:
    return RefundInfo(refund_id="r1", refund_amount=Decimal(amount), reason="trip", refunded_at=NOW)


class TestRetryPayment:
    @pytest.mark.asyncio
    async def test_failed_payment_is_charged_again(self, customer_auth):
        bookings = _pending_repo()
        payments = _owned(make_payment(status=PaymentStatus.FAILED, failure_reason="timeout"))
        result = await RetryPayment(bookings, payments, customer_auth).execute(PAYMENT_ID)

        assert isinstance(result, Success)
        assert result.value.status == BookingStatus.CONFIRMED
        assert payments.payments[PAYMENT_ID].status == PaymentStatus.COMPLETED
        assert bookings.calls[-2:] == ["attach_payment", "update_booking_status"]

    @pytest.mark.asyncio
    async def test_only_failed_payments(self, customer_auth):
        payments = _owned(make_payment())
        result = await RetryPayment(_pending_repo(), payments, customer_auth).execute(PAYMENT_ID)
        assert _failure_kind(result) == ErrorKind.BUSINESS_LOGIC
        assert result.error.code == "retry_not_allowed"
        assert "retry_payment" not in payments.calls

    @pytest.mark.asyncio
    async def test_declined_again_keeps_booking_pending(self, customer_auth):
        bookings = _pending_repo()
        payments = _owned(make_payment(status=PaymentStatus.FAILED))
        payments.decline_charges = True
        result = await RetryPayment(bookings, payments, customer_auth).execute(PAYMENT_ID)

        assert _failure_kind(result) == ErrorKind.PAYMENT
        assert bookings.bookings[BOOKING_ID].status == BookingStatus.PENDING

    @pytest.mark.asyncio
    async def test_foreign_payment(self):
        stranger = FakeAuth(make_user(OTHER_USER_ID))
        payments = _owned(make_payment(status=PaymentStatus.FAILED))
        result = await RetryPayment(_pending_repo(), payments, stranger).execute(PAYMENT_ID)
        assert _failure_kind(result) == ErrorKind.AUTH


class TestPaymentHistory:
    @pytest.mark.asyncio
    async def test_own_payments_newest_first(self, customer_auth):
        older = make_payment(payment_id="p-old", created_at=NOW - timedelta(days=5))
        newer = make_payment(payment_id="p-new", created_at=NOW - timedelta(hours=1))
        result = await GetPaymentHistory(_owned(older, newer), customer_auth).execute()
        assert [p.payment_id for p in result.value] == ["p-new", "p-old"]

    @pytest.mark.asyncio
    async def test_other_users_history_is_admin_only(self, customer_auth, admin_auth):
        payments = _owned(make_payment())
        denied = await GetPaymentHistory(payments, customer_auth).execute(str(OTHER_USER_ID))
        assert _failure_kind(denied) == ErrorKind.AUTH

        allowed = await GetPaymentHistory(payments, admin_auth).execute(str(CUSTOMER_ID))
        assert [p.payment_id for p in allowed.value] == [PAYMENT_ID]

    @pytest.mark.asyncio
    async def test_refund_history_keeps_refunded_only(self, customer_auth):
        payments = _owned(
            make_payment(payment_id="paid"),
            make_payment(
                payment_id="partial",
                status=PaymentStatus.PARTIALLY_REFUNDED,
                refund_info=_refund("25000"),
            ),
        )
        result = await GetRefundHistory(payments, customer_auth).execute()
        assert [p.payment_id for p in result.value] == ["partial"]

    @pytest.mark.asyncio
    async def test_refund_info_of_a_payment(self, customer_auth):
        bookings = InMemoryBookingRepository(bookings=[make_booking()])
        refunded = _owned(
            make_payment(status=PaymentStatus.REFUNDED, refund_info=_refund("50000"))
        )
        result = await GetRefundInfo(bookings, refunded, customer_auth).execute(PAYMENT_ID)
        assert result.value.refund_amount == Decimal("50000")

        untouched = await GetRefundInfo(bookings, _owned(make_payment()), customer_auth).execute(
            PAYMENT_ID
        )
        assert isinstance(untouched, Success)
        assert untouched.value is None
