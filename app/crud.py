from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from loguru import logger
from tortoise.exceptions import BaseORMException, DBConnectionError
from tortoise.transactions import in_transaction

from app import models
from app.errors import (
    AppError,
    ErrorKind,
    business_logic_error,
    not_found_error,
    validation_error,
)
from app.models import BookingStatus, PaymentMethod, PaymentStatus, new_id
from app.policy import is_active, utcnow
from app.repositories import BookingRepository, PaymentRepository, WorkshopRepository
from app.result import Failure, Result, Success
from app.schemas import (
    Booking,
    PaymentInfo,
    RefundInfo,
    TimeSlot,
    TimeSlotCreate,
    Workshop,
)

if TYPE_CHECKING:
    from app.deps import PaymentsClient

P = ParamSpec("P")
T = TypeVar("T")


def stored(
    action: str,
) -> Callable[[Callable[P, Awaitable[Result[T]]]], Callable[P, Awaitable[Result[T]]]]:
    """Translate ORM failures into NETWORK / STORAGE results."""

    def decorator(fn: Callable[P, Awaitable[Result[T]]]) -> Callable[P, Awaitable[Result[T]]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
            try:
                return await fn(*args, **kwargs)
            except AppError as exc:
                return Failure(exc)
            except DBConnectionError as exc:
                logger.warning("Database unreachable while trying to {}: {}", action, exc)
                return Failure(
                    AppError(ErrorKind.NETWORK, f"Could not {action}: database unreachable")
                )
            except BaseORMException as exc:
                logger.opt(exception=exc).error("Storage error while trying to {}", action)
                return Failure(AppError(ErrorKind.STORAGE, f"Could not {action}: {exc}"))
            except Exception as exc:
                # driver errors (sqlite3, asyncpg) surface outside the ORM hierarchy
                logger.opt(exception=exc).error("Database driver error while trying to {}", action)
                return Failure(AppError(ErrorKind.STORAGE, f"Could not {action}: {exc}"))

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Row -> entity mapping
# ---------------------------------------------------------------------------


def _payment_info(inst: models.Payment) -> PaymentInfo:
    refund = None
    if inst.refund_id is not None:
        refund = RefundInfo(
            refund_id=inst.refund_id,
            refund_amount=inst.refund_amount,
            reason=inst.refund_reason or "",
            refunded_at=inst.refunded_at,
            refund_transaction_id=inst.refund_transaction_id,
        )
    return PaymentInfo(
        payment_id=inst.id,
        booking_id=inst.booking_id,
        method=inst.method,
        status=inst.status,
        amount=inst.amount,
        currency=inst.currency,
        paid_at=inst.paid_at,
        receipt_url=inst.receipt_url,
        transaction_id=inst.transaction_id,
        failure_reason=inst.failure_reason,
        refund_info=refund,
        created_at=inst.created_at,
        updated_at=inst.updated_at,
    )


async def _bookings(insts: list[models.Booking]) -> list[Booking]:
    """Convert booking rows, fetching their payments in a single query."""
    payment_ids = {b.payment_id for b in insts if b.payment_id}
    payments: dict[str, PaymentInfo] = {}
    if payment_ids:
        rows = await models.Payment.filter(id__in=payment_ids)
        payments = {p.id: _payment_info(p) for p in rows}
    return [
        Booking.model_validate(b, from_attributes=True).model_copy(
            update={"payment_info": payments.get(b.payment_id) if b.payment_id else None}
        )
        for b in insts
    ]


async def _booking(inst: models.Booking) -> Booking:
    return (await _bookings([inst]))[0]


# ---------------------------------------------------------------------------
# Bookings & time slots
# ---------------------------------------------------------------------------


class BookingCRUD(BookingRepository):
    async def _locked_slot(self, time_slot_id: str) -> models.TimeSlot | None:
        return await models.TimeSlot.filter(id=time_slot_id).select_for_update().first()

    async def _release_capacity(self, time_slot_id: str) -> None:
        slot = await self._locked_slot(time_slot_id)
        if slot is None:
            logger.warning("Slot {} vanished before capacity release", time_slot_id)
            return
        if slot.current_bookings > 0:
            slot.current_bookings -= 1
            await slot.save(update_fields=["current_bookings"])

    @stored("create booking")
    async def create_booking(
        self, user_id: str, time_slot_id: str, notes: str | None
    ) -> Result[Booking]:
        # Locked read-check-increment: concurrent bookings cannot overshoot capacity
        async with in_transaction():
            slot = await self._locked_slot(time_slot_id)
            if slot is None:
                raise not_found_error("Time slot not found")
            if not slot.is_available or slot.current_bookings >= slot.max_capacity:
                raise business_logic_error("Time slot is fully booked", code="slot_full")

            slot.current_bookings += 1
            await slot.save(update_fields=["current_bookings"])

            inst = await models.Booking.create(
                user_id=user_id,
                time_slot_id=slot.id,
                type=slot.type,
                item_id=slot.item_id,
                total_amount=slot.price or Decimal("0"),
                notes=notes,
            )
        return Success(await _booking(inst))

    @stored("load booking")
    async def get_booking_by_id(self, booking_id: str) -> Result[Booking]:
        inst = await models.Booking.get_or_none(id=booking_id)
        if not inst:
            return Failure(not_found_error("Booking not found"))
        return Success(await _booking(inst))

    @stored("load bookings")
    async def get_bookings_by_user(self, user_id: str) -> Result[list[Booking]]:
        return Success(await _bookings(await models.Booking.filter(user_id=user_id)))

    @stored("load bookings")
    async def get_bookings_by_time_slot(self, time_slot_id: str) -> Result[list[Booking]]:
        return Success(await _bookings(await models.Booking.filter(time_slot_id=time_slot_id)))

    @stored("update booking status")
    async def update_booking_status(
        self, booking_id: str, status: BookingStatus
    ) -> Result[Booking]:
        async with in_transaction():
            inst = await models.Booking.filter(id=booking_id).select_for_update().first()
            if not inst:
                raise not_found_error("Booking not found")
            was_active = is_active(inst.status)
            now = utcnow()
            inst.status = status  # type: ignore
            inst.updated_at = now
            fields = ["status", "updated_at"]
            if status == BookingStatus.CANCELLED:
                inst.cancelled_at = now
                fields.append("cancelled_at")
            await inst.save(update_fields=fields)
            if status == BookingStatus.CANCELLED and was_active:
                await self._release_capacity(inst.time_slot_id)
        return Success(await _booking(inst))

    @stored("cancel booking")
    async def cancel_booking(
        self,
        booking_id: str,
        reason: str,
        payment_info: PaymentInfo | None = None,
    ) -> Result[Booking]:
        async with in_transaction():
            inst = await models.Booking.filter(id=booking_id).select_for_update().first()
            if not inst:
                raise not_found_error("Booking not found")
            was_active = is_active(inst.status)
            now = utcnow()
            inst.status = BookingStatus.CANCELLED  # type: ignore
            inst.cancelled_at = now
            inst.updated_at = now
            inst.cancellation_reason = reason
            fields = ["status", "cancelled_at", "updated_at", "cancellation_reason"]
            if payment_info is not None:
                inst.payment_id = payment_info.payment_id
                fields.append("payment_id")
            await inst.save(update_fields=fields)
            if was_active:
                await self._release_capacity(inst.time_slot_id)
        return Success(await _booking(inst))

    @stored("attach payment")
    async def attach_payment(self, booking_id: str, payment_id: str) -> Result[Booking]:
        inst = await models.Booking.get_or_none(id=booking_id)
        if not inst:
            return Failure(not_found_error("Booking not found"))
        inst.payment_id = payment_id
        inst.updated_at = utcnow()
        await inst.save(update_fields=["payment_id", "updated_at"])
        return Success(await _booking(inst))

    @stored("load time slots")
    async def get_available_time_slots(
        self, item_id: str, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]:
        rows = await models.TimeSlot.filter(
            item_id=item_id,
            is_available=True,
            date__gte=start_date,
            date__lte=end_date,
        )
        return Success([TimeSlot.model_validate(r, from_attributes=True) for r in rows])

    @stored("load time slots")
    async def get_time_slots(
        self, item_id: str | None, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]:
        qs = models.TimeSlot.filter(date__gte=start_date, date__lte=end_date)
        if item_id is not None:
            qs = qs.filter(item_id=item_id)
        rows = await qs
        return Success([TimeSlot.model_validate(r, from_attributes=True) for r in rows])

    @stored("load time slot")
    async def get_time_slot_by_id(self, time_slot_id: str) -> Result[TimeSlot]:
        inst = await models.TimeSlot.get_or_none(id=time_slot_id)
        if not inst:
            return Failure(not_found_error("Time slot not found"))
        return Success(TimeSlot.model_validate(inst, from_attributes=True))

    @stored("create time slot")
    async def create_time_slot(self, draft: TimeSlotCreate) -> Result[TimeSlot]:
        inst = await models.TimeSlot.create(**draft.model_dump())
        return Success(TimeSlot.model_validate(inst, from_attributes=True))

    @stored("update time slot")
    async def update_time_slot(
        self, time_slot_id: str, draft: TimeSlotCreate
    ) -> Result[TimeSlot]:
        async with in_transaction():
            inst = await self._locked_slot(time_slot_id)
            if inst is None:
                raise not_found_error("Time slot not found")
            if draft.max_capacity < inst.current_bookings:
                raise validation_error(
                    f"Capacity cannot be lower than current bookings ({inst.current_bookings})",
                    code="capacity_below_bookings",
                )
            values = draft.model_dump()
            for name, value in values.items():
                setattr(inst, name, value)
            await inst.save(update_fields=list(values))
        return Success(TimeSlot.model_validate(inst, from_attributes=True))

    @stored("delete time slot")
    async def delete_time_slot(self, time_slot_id: str) -> Result[None]:
        deleted = await models.TimeSlot.filter(id=time_slot_id).delete()
        if not deleted:
            return Failure(not_found_error("Time slot not found"))
        return Success(None)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PaymentCRUD(PaymentRepository):
    """Payment rows live here; money moves through the external gateway."""

    def __init__(self, gateway: PaymentsClient) -> None:
        self._gateway = gateway

    @stored("process payment")
    async def process_payment(
        self,
        booking_id: str,
        amount: Decimal,
        method: PaymentMethod,
        currency: str,
    ) -> Result[PaymentInfo]:
        receipt = await self._gateway.charge(booking_id, amount, method, currency)
        inst = await models.Payment.create(
            booking_id=booking_id,
            method=method,
            status=PaymentStatus.COMPLETED if receipt.success else PaymentStatus.FAILED,
            amount=amount,
            currency=currency,
            paid_at=utcnow(),
            receipt_url=receipt.receipt_url,
            transaction_id=receipt.transaction_id,
            failure_reason=receipt.failure_reason,
        )
        return Success(_payment_info(inst))

    @stored("load payment")
    async def get_payment_info(self, payment_id: str) -> Result[PaymentInfo]:
        inst = await models.Payment.get_or_none(id=payment_id)
        if not inst:
            return Failure(not_found_error("Payment not found"))
        return Success(_payment_info(inst))

    @stored("load payments")
    async def get_payments_by_user(self, user_id: str) -> Result[list[PaymentInfo]]:
        booking_ids = await models.Booking.filter(user_id=user_id).values_list("id", flat=True)
        if not booking_ids:
            return Success([])
        rows = await models.Payment.filter(booking_id__in=list(booking_ids))
        return Success([_payment_info(p) for p in rows])

    @stored("retry payment")
    async def retry_payment(self, payment_id: str) -> Result[PaymentInfo]:
        inst = await models.Payment.get_or_none(id=payment_id)
        if not inst:
            return Failure(not_found_error("Payment not found"))

        receipt = await self._gateway.charge(
            inst.booking_id or "", inst.amount, PaymentMethod(inst.method), inst.currency
        )
        inst.status = PaymentStatus.COMPLETED if receipt.success else PaymentStatus.FAILED  # type: ignore
        inst.paid_at = utcnow()
        inst.receipt_url = receipt.receipt_url
        inst.transaction_id = receipt.transaction_id
        inst.failure_reason = receipt.failure_reason
        await inst.save()
        return Success(_payment_info(inst))

    @stored("process refund")
    async def process_refund(
        self, payment_id: str, amount: Decimal, reason: str
    ) -> Result[PaymentInfo]:
        inst = await models.Payment.get_or_none(id=payment_id)
        if not inst:
            return Failure(not_found_error("Payment not found"))

        receipt = await self._gateway.refund(inst.transaction_id or inst.id, amount, reason)
        if not receipt.success:
            return Failure(
                AppError(
                    ErrorKind.PAYMENT,
                    f"Refund was declined: {receipt.failure_reason or 'unknown reason'}",
                    code="refund_declined",
                )
            )

        inst.status = (  # type: ignore
            PaymentStatus.REFUNDED if amount >= inst.amount else PaymentStatus.PARTIALLY_REFUNDED
        )
        inst.refund_id = new_id()
        inst.refund_amount = amount
        inst.refund_reason = reason
        inst.refunded_at = utcnow()
        inst.refund_transaction_id = receipt.transaction_id
        await inst.save()
        return Success(_payment_info(inst))


# ---------------------------------------------------------------------------
# Workshops
# ---------------------------------------------------------------------------


class WorkshopCRUD(WorkshopRepository):
    @stored("load workshop")
    async def get_workshop_by_id(self, workshop_id: str) -> Result[Workshop]:
        inst = await models.Workshop.get_or_none(id=workshop_id)
        if not inst:
            return Failure(not_found_error("Workshop not found"))
        return Success(Workshop.model_validate(inst, from_attributes=True))

    @stored("delete workshop")
    async def delete_workshop(self, workshop_id: str) -> Result[None]:
        deleted = await models.Workshop.filter(id=workshop_id).delete()
        if not deleted:
            return Failure(not_found_error("Workshop not found"))
        return Success(None)


booking_crud = BookingCRUD()
workshop_crud = WorkshopCRUD()
