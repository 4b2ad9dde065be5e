from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.redis import RedisClient, get_slot_locker
from app.services.appointment import AppointmentService
from app.services.bookings import BookingRepository
from app.services.scheduling import SlotAvailabilityService


async def get_slot_service(db: AsyncSession = Depends(get_db)) -> SlotAvailabilityService:
    """Slot calculator reading bookings through the request's session."""
    return SlotAvailabilityService(BookingRepository(db))


async def get_appointment_service(
    db: AsyncSession = Depends(get_db),
    slot_locker: RedisClient = Depends(get_slot_locker),
) -> AppointmentService:
    return AppointmentService(db, slot_locker=slot_locker)
