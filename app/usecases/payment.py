from decimal import Decimal

from loguru import logger

from app.errors import (
    AppError,
    ErrorKind,
    auth_error,
    business_logic_error,
    validation_error,
)
from app.models import BookingStatus, PaymentStatus
from app.policy import as_utc
from app.repositories import AuthRepository, BookingRepository, PaymentRepository
from app.result import Result, Success, result_boundary, unwrap
from app.schemas import Booking, PaymentCreate, PaymentInfo, RefundInfo
from app.usecases.common import ensure_owner_or_admin, require_admin, require_user
from app.validators import validate_payment_amount, validate_required_id


async def _confirm_paid(
    bookings: BookingRepository, booking: Booking, payment: PaymentInfo
) -> Result[Booking]:
    """Attach a completed charge and confirm; a declined one is a PAYMENT error."""
    if not payment.is_successful:
        logger.bind(booking_id=booking.id, payment_id=payment.payment_id).info(
            "Payment declined: {}", payment.failure_reason
        )
        raise AppError(
            ErrorKind.PAYMENT,
            f"Payment was declined: {payment.failure_reason or 'unknown reason'}",
            code="payment_declined",
        )
    unwrap(await bookings.attach_payment(booking.id, payment.payment_id))
    return await bookings.update_booking_status(booking.id, BookingStatus.CONFIRMED)


def _newest_first(payments: list[PaymentInfo]) -> list[PaymentInfo]:
    return sorted(payments, key=lambda p: as_utc(p.created_at), reverse=True)


class ProcessPayment:
    """
    Charge a pending booking. A completed charge is attached to the booking
    and confirms it; a declined one leaves the booking pending.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        payments: PaymentRepository,
        auth: AuthRepository,
    ) -> None:
        self._bookings = bookings
        self._payments = payments
        self._auth = auth

    @result_boundary("Payment processing failed")
    async def execute(self, payload: PaymentCreate) -> Result[Booking]:
        user = await require_user(self._auth)
        validate_required_id(payload.booking_id, "Booking id")
        validate_payment_amount(payload.amount)

        booking = unwrap(await self._bookings.get_booking_by_id(payload.booking_id))
        ensure_owner_or_admin(user, booking.user_id, "You can only pay for your own bookings")
        if booking.status != BookingStatus.PENDING:
            raise business_logic_error(
                "Only pending bookings can be paid", code="booking_not_pending"
            )
        if payload.amount != booking.total_amount:
            raise business_logic_error(
                f"Payment amount {payload.amount} does not match the booking total "
                f"{booking.total_amount}",
                code="amount_mismatch",
            )

        payment = unwrap(
            await self._payments.process_payment(
                booking.id, payload.amount, payload.method, payload.currency
            )
        )
        return await _confirm_paid(self._bookings, booking, payment)


class ProcessRefund:
    """
    Refund guard in front of the payment gateway.

    Pass `auth` when the refund is requested directly by a caller (admin only);
    the cancellation flow runs it without one.
    """

    def __init__(self, payments: PaymentRepository, auth: AuthRepository | None = None) -> None:
        self._payments = payments
        self._auth = auth

    @result_boundary("Refund processing failed")
    async def execute(
        self, payment_id: str, refund_amount: Decimal, reason: str = ""
    ) -> Result[PaymentInfo]:
        if self._auth is not None:
            await require_admin(self._auth)
        validate_required_id(payment_id, "Payment id")
        if refund_amount <= 0:
            raise validation_error("Refund amount must be greater than 0", code="invalid_amount")

        payment = unwrap(await self._payments.get_payment_info(payment_id))
        if payment.status != PaymentStatus.COMPLETED:
            raise business_logic_error(
                "Only completed payments can be refunded", code="payment_not_completed"
            )
        if refund_amount > payment.amount:
            raise business_logic_error(
                "Refund amount exceeds the paid amount", code="refund_exceeds_payment"
            )
        return await self._payments.process_refund(payment_id, refund_amount, reason)


class RetryPayment:
    """Charge a failed payment again; only failed payments of pending bookings qualify."""

    def __init__(
        self,
        bookings: BookingRepository,
        payments: PaymentRepository,
        auth: AuthRepository,
    ) -> None:
        self._bookings = bookings
        self._payments = payments
        self._auth = auth

    @result_boundary("Payment retry failed")
    async def execute(self, payment_id: str) -> Result[Booking]:
        user = await require_user(self._auth)
        validate_required_id(payment_id, "Payment id")

        payment = unwrap(await self._payments.get_payment_info(payment_id))
        if not payment.booking_id:
            raise business_logic_error(
                "Payment is not linked to a booking", code="retry_not_allowed"
            )
        booking = unwrap(await self._bookings.get_booking_by_id(payment.booking_id))
        ensure_owner_or_admin(user, booking.user_id, "You can only retry your own payments")
        if payment.status != PaymentStatus.FAILED:
            raise business_logic_error(
                "Only failed payments can be retried", code="retry_not_allowed"
            )
        if booking.status != BookingStatus.PENDING:
            raise business_logic_error(
                "Only pending bookings can be paid", code="booking_not_pending"
            )

        retried = unwrap(await self._payments.retry_payment(payment_id))
        return await _confirm_paid(self._bookings, booking, retried)


class GetPaymentHistory:
    """A user's payments, newest first. Admins may ask for any user's."""

    def __init__(self, payments: PaymentRepository, auth: AuthRepository) -> None:
        self._payments = payments
        self._auth = auth

    @result_boundary("Loading payment history failed")
    async def execute(self, user_id: str | None = None) -> Result[list[PaymentInfo]]:
        user = await require_user(self._auth)
        target = user_id or user.id
        ensure_owner_or_admin(user, target, "You can only view your own payments")
        payments = unwrap(await self._payments.get_payments_by_user(target))
        return Success(_newest_first(payments))


class GetRefundHistory:
    """Refunded and partially refunded payments of a user."""

    def __init__(self, payments: PaymentRepository, auth: AuthRepository) -> None:
        self._payments = payments
        self._auth = auth

    @result_boundary("Loading refund history failed")
    async def execute(self, user_id: str | None = None) -> Result[list[PaymentInfo]]:
        user = await require_user(self._auth)
        target = user_id or user.id
        ensure_owner_or_admin(user, target, "You can only view your own refunds")
        payments = unwrap(await self._payments.get_payments_by_user(target))
        return Success(_newest_first([p for p in payments if p.is_refunded]))


class GetRefundInfo:
    def __init__(
        self,
        bookings: BookingRepository,
        payments: PaymentRepository,
        auth: AuthRepository,
    ) -> None:
        self._bookings = bookings
        self._payments = payments
        self._auth = auth

    @result_boundary("Loading refund information failed")
    async def execute(self, payment_id: str) -> Result[RefundInfo | None]:
        """None while the payment has not been refunded."""
        user = await require_user(self._auth)
        validate_required_id(payment_id, "Payment id")

        payment = unwrap(await self._payments.get_payment_info(payment_id))
        if payment.booking_id:
            booking = unwrap(await self._bookings.get_booking_by_id(payment.booking_id))
            ensure_owner_or_admin(user, booking.user_id, "You can only view your own payments")
        elif not user.is_admin:
            raise auth_error("You can only view your own payments", code="forbidden")
        return Success(payment.refund_info)
