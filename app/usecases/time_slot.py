from datetime import date

from loguru import logger

from app.errors import business_logic_error, validation_error
from app.generation import batched, generate_time_slots
from app.models import BookingStatus
from app.policy import Clock, local_today, utcnow
from app.repositories import AuthRepository, BookingRepository
from app.result import Failure, Result, Success, map_result, result_boundary, unwrap
from app.schemas import BulkTimeSlotCreate, TimeSlot, TimeSlotCreate
from app.usecases.common import require_admin
from app.validators import (
    MAX_ADMIN_QUERY_RANGE_DAYS,
    validate_amount,
    validate_capacity,
    validate_date,
    validate_date_range,
    validate_item_id,
    validate_required_id,
    validate_slot_duration,
    validate_time_range,
)

BULK_BATCH_SIZE = 10

# bookings in these states no longer hold a slot
_SETTLED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def _validate_draft(draft: TimeSlotCreate, today: date) -> None:
    validate_date(draft.date, today)
    validate_time_range(draft.start_time, draft.end_time)
    validate_capacity(draft.max_capacity)
    validate_item_id(draft.item_id)
    if draft.price is not None:
        validate_amount(draft.price)


class CreateTimeSlot:
    def __init__(
        self,
        bookings: BookingRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._bookings = bookings
        self._auth = auth
        self._clock = clock

    @result_boundary("Time slot creation failed")
    async def execute(self, draft: TimeSlotCreate) -> Result[TimeSlot]:
        await require_admin(self._auth)
        _validate_draft(draft, local_today(self._clock()))
        return await self._bookings.create_time_slot(draft)


class UpdateTimeSlot:
    def __init__(
        self,
        bookings: BookingRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._bookings = bookings
        self._auth = auth
        self._clock = clock

    @result_boundary("Time slot update failed")
    async def execute(self, time_slot_id: str, draft: TimeSlotCreate) -> Result[TimeSlot]:
        await require_admin(self._auth)
        validate_required_id(time_slot_id, "Time slot id")
        _validate_draft(draft, local_today(self._clock()))

        existing = unwrap(await self._bookings.get_time_slot_by_id(time_slot_id))
        if draft.max_capacity < existing.current_bookings:
            raise validation_error(
                f"Capacity cannot be lower than current bookings ({existing.current_bookings})",
                code="capacity_below_bookings",
            )
        return await self._bookings.update_time_slot(time_slot_id, draft)


class DeleteTimeSlot:
    def __init__(self, bookings: BookingRepository, auth: AuthRepository) -> None:
        self._bookings = bookings
        self._auth = auth

    @result_boundary("Time slot deletion failed")
    async def execute(self, time_slot_id: str) -> Result[TimeSlot]:
        """Returns the deleted slot."""
        await require_admin(self._auth)
        validate_required_id(time_slot_id, "Time slot id")

        slot = unwrap(await self._bookings.get_time_slot_by_id(time_slot_id))
        bookings = unwrap(await self._bookings.get_bookings_by_time_slot(time_slot_id))
        active = [b for b in bookings if b.status not in _SETTLED_STATUSES]
        if active:
            raise business_logic_error(
                f"Time slot has {len(active)} active booking(s) and cannot be deleted",
                code="slot_has_bookings",
            )
        deleted = await self._bookings.delete_time_slot(time_slot_id)
        return map_result(deleted, lambda _: slot)


class CreateBulkTimeSlots:
    """
    Generate slots day by day and persist them sequentially in batches.

    The first failed write aborts the run and its error is returned; slots
    already written stay in place and are logged.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._bookings = bookings
        self._auth = auth
        self._clock = clock

    @result_boundary("Bulk time slot creation failed")
    async def execute(self, params: BulkTimeSlotCreate) -> Result[list[TimeSlot]]:
        await require_admin(self._auth)
        validate_date_range(
            params.start_date, params.end_date, today=local_today(self._clock())
        )
        validate_time_range(params.start_time, params.end_time)
        validate_capacity(params.max_capacity)
        validate_slot_duration(params.slot_duration_minutes)
        validate_item_id(params.item_id)
        if params.price is not None:
            validate_amount(params.price)
        if any(not 0 <= day <= 6 for day in params.exclude_weekdays):
            raise validation_error(
                "Excluded weekdays must be between 0 (Monday) and 6 (Sunday)",
                code="invalid_weekday",
            )

        drafts = generate_time_slots(params)
        if not drafts:
            raise validation_error(
                "No time slots can be generated from these settings", code="no_slots"
            )

        created: list[TimeSlot] = []
        for batch in batched(drafts, BULK_BATCH_SIZE):
            for draft in batch:
                result = await self._bookings.create_time_slot(draft)
                match result:
                    case Success(slot):
                        created.append(slot)
                    case Failure(error):
                        if created:
                            logger.bind(item_id=params.item_id).warning(
                                "Bulk creation stopped after {} of {} slots, kept: {} ({})",
                                len(created),
                                len(drafts),
                                [s.id for s in created],
                                error.message,
                            )
                        return result

        logger.info("Created {} time slots for item {}", len(created), params.item_id)
        return Success(created)


class GetTimeSlots:
    """Admin listing of every slot in a range, booked or not."""

    def __init__(self, bookings: BookingRepository, auth: AuthRepository) -> None:
        self._bookings = bookings
        self._auth = auth

    @result_boundary("Loading time slots failed")
    async def execute(
        self, item_id: str | None, start_date: date, end_date: date
    ) -> Result[list[TimeSlot]]:
        await require_admin(self._auth)
        validate_item_id(item_id)
        validate_date_range(start_date, end_date, max_days=MAX_ADMIN_QUERY_RANGE_DAYS)
        slots = unwrap(await self._bookings.get_time_slots(item_id, start_date, end_date))
        return Success(sorted(slots, key=TimeSlot.sort_key))
