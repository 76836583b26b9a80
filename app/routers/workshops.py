from fastapi import APIRouter, Depends, status

from app.cache import invalidate_slots_cache
from app.deps import get_auth_repository, get_booking_repository, get_workshop_repository
from app.repositories import AuthRepository, BookingRepository, WorkshopRepository
from app.result import respond
from app.usecases.workshop import DeleteWorkshop

router = APIRouter(prefix="/workshops", tags=["workshops"])


@router.delete("/{workshop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workshop(
    workshop_id: str,
    workshops: WorkshopRepository = Depends(get_workshop_repository),
    bookings: BookingRepository = Depends(get_booking_repository),
    auth: AuthRepository = Depends(get_auth_repository),
) -> None:
    respond(await DeleteWorkshop(workshops, bookings, auth).execute(workshop_id))
    await invalidate_slots_cache(workshop_id)
