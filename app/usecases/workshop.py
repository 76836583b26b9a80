from datetime import timedelta

from app.errors import business_logic_error
from app.policy import Clock, local_today, utcnow
from app.repositories import AuthRepository, BookingRepository, WorkshopRepository
from app.result import Result, result_boundary, unwrap
from app.usecases.common import require_admin
from app.validators import validate_required_id

BOOKING_LOOKAHEAD = timedelta(days=365)


class DeleteWorkshop:
    """Refuses to delete a workshop while any of its upcoming slots is booked."""

    def __init__(
        self,
        workshops: WorkshopRepository,
        bookings: BookingRepository,
        auth: AuthRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._workshops = workshops
        self._bookings = bookings
        self._auth = auth
        self._clock = clock

    @result_boundary("Workshop deletion failed")
    async def execute(self, workshop_id: str) -> Result[None]:
        await require_admin(self._auth)
        validate_required_id(workshop_id, "Workshop id")
        unwrap(await self._workshops.get_workshop_by_id(workshop_id))

        today = local_today(self._clock())
        slots = unwrap(
            await self._bookings.get_time_slots(workshop_id, today, today + BOOKING_LOOKAHEAD)
        )
        if any(slot.current_bookings > 0 for slot in slots):
            raise business_logic_error(
                "Workshops with bookings cannot be deleted, cancel them first",
                code="workshop_has_bookings",
            )
        return await self._workshops.delete_workshop(workshop_id)
