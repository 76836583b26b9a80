from fastapi import APIRouter, Depends, status
from loguru import logger

from app.cache import get_slots_cache, invalidate_slots_cache, set_slots_cache
from app.deps import get_auth_repository, get_booking_repository
from app.repositories import AuthRepository, BookingRepository
from app.result import respond
from app.schemas import BulkTimeSlotCreate, TimeSlot, TimeSlotCreate, TimeSlotQuery
from app.usecases.booking import GetAvailableTimeSlots
from app.usecases.time_slot import (
    CreateBulkTimeSlots,
    CreateTimeSlot,
    DeleteTimeSlot,
    GetTimeSlots,
    UpdateTimeSlot,
)

router = APIRouter(prefix="/time-slots", tags=["time-slots"])


@router.get("/available", response_model=list[TimeSlot])
async def get_available_time_slots(
    query: TimeSlotQuery = Depends(),
    bookings: BookingRepository = Depends(get_booking_repository),
) -> list[TimeSlot]:
    """
    Bookable slots of one item. Public: the response carries no user identity.
    """
    item_id = (query.item_id or "").strip()
    if item_id:
        cached = await get_slots_cache(item_id, query.start_date, query.end_date)
        if cached is not None:
            logger.debug("Cache hit for slots: item_id={}", item_id)
            return [TimeSlot(**s) for s in cached]
        logger.debug("Cache miss for slots: item_id={}", item_id)

    result = await GetAvailableTimeSlots(bookings).execute(
        query.item_id, query.start_date, query.end_date
    )
    slots = respond(result)
    await set_slots_cache(
        item_id, query.start_date, query.end_date, [s.model_dump(mode="json") for s in slots]
    )
    return slots


@router.get("/", response_model=list[TimeSlot])
async def list_time_slots(
    query: TimeSlotQuery = Depends(),
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> list[TimeSlot]:
    result = await GetTimeSlots(bookings, auth).execute(
        query.item_id, query.start_date, query.end_date
    )
    return respond(result)


@router.post("/", response_model=TimeSlot, status_code=status.HTTP_201_CREATED)
async def create_time_slot(
    payload: TimeSlotCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> TimeSlot:
    slot = respond(await CreateTimeSlot(bookings, auth).execute(payload))
    await invalidate_slots_cache(slot.item_id)
    return slot


@router.post("/bulk", response_model=list[TimeSlot], status_code=status.HTTP_201_CREATED)
async def create_bulk_time_slots(
    payload: BulkTimeSlotCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> list[TimeSlot]:
    result = await CreateBulkTimeSlots(bookings, auth).execute(payload)
    # a partial run still wrote slots
    await invalidate_slots_cache(payload.item_id)
    return respond(result)


@router.put("/{time_slot_id}", response_model=TimeSlot)
async def update_time_slot(
    time_slot_id: str,
    payload: TimeSlotCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> TimeSlot:
    slot = respond(await UpdateTimeSlot(bookings, auth).execute(time_slot_id, payload))
    await invalidate_slots_cache(slot.item_id)
    return slot


@router.delete("/{time_slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_slot(
    time_slot_id: str,
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> None:
    slot = respond(await DeleteTimeSlot(bookings, auth).execute(time_slot_id))
    await invalidate_slots_cache(slot.item_id)
