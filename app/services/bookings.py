from datetime import date
from typing import Optional, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BookingFetchError
from app.models.appointment import (
    Appointment,
    AppointmentDuration,
    AppointmentStatus,
)
from app.schemas.scheduling import BookedSlot

logger = structlog.get_logger(__name__)


class BookingSource(Protocol):
    """Anything that can list the non-cancelled bookings of a branch day."""

    async def list_active_bookings(
        self, appointment_date: date, branch: str, exclude_id: Optional[int] = None
    ) -> list[BookedSlot]: ...


class BookingRepository:
    """Reads existing bookings from the appointments table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_bookings(
        self, appointment_date: date, branch: str, exclude_id: Optional[int] = None
    ) -> list[BookedSlot]:
        """Non-cancelled bookings for ``(appointment_date, branch)``.

        Raises BookingFetchError when the store cannot be read.
        """
        query = (
            select(Appointment)
            .where(
                Appointment.appointment_date == appointment_date,
                Appointment.branch == branch,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            )
            .order_by(Appointment.appointment_time, Appointment.id)
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)

        try:
            result = await self.db.execute(query)
            appointments = list(result.scalars().all())
            durations = await self._latest_durations([a.id for a in appointments])
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch bookings",
                branch=branch,
                date=appointment_date.isoformat(),
                exc_info=e,
            )
            raise BookingFetchError(branch, appointment_date, str(e)) from e

        logger.debug(
            "Fetched bookings",
            branch=branch,
            date=appointment_date.isoformat(),
            count=len(appointments),
        )
        return [
            BookedSlot(
                appointment_id=a.id,
                time=a.appointment_time.strftime("%H:%M"),
                practitioner_id=a.doctor_id,
                status=a.status,
                duration_minutes=durations.get(
                    a.id, settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
                ),
            )
            for a in appointments
        ]

    async def _latest_durations(self, appointment_ids: list[int]) -> dict[int, int]:
        """Most recent doctor-set duration per appointment."""
        if not appointment_ids:
            return {}

        result = await self.db.execute(
            select(AppointmentDuration)
            .where(AppointmentDuration.appointment_id.in_(appointment_ids))
            .order_by(
                func.coalesce(
                    AppointmentDuration.updated_at, AppointmentDuration.created_at
                ).desc(),
                AppointmentDuration.id.desc(),
            )
        )

        latest: dict[int, int] = {}
        for record in result.scalars().all():
            latest.setdefault(record.appointment_id, record.duration_minutes)
        return latest
