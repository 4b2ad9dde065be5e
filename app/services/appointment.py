from datetime import date, time
from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.branches import Branch, get_operating_hours
from app.core.config import settings
from app.core.exceptions import (
    AppointmentNotFoundError,
    ClosedBranchError,
    InvalidSlotError,
    InvalidStatusTransitionError,
    SlotConflictError,
)
from app.core.redis import RedisClient, redis_client
from app.models.appointment import (
    Appointment,
    AppointmentDuration,
    AppointmentStatus,
)
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentDurationUpdate,
    AppointmentReschedule,
    AppointmentStatusUpdate,
)
from app.services.bookings import BookingRepository
from app.services.scheduling import SlotAvailabilityService

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Booking workflow: every write re-checks slot availability first.

    A Redis slot hold is taken around the check-then-write so two requests
    for the same slot do not interleave. It narrows the double-booking
    window, it does not replace a storage-level constraint.
    """

    def __init__(self, db: AsyncSession, slot_locker: Optional[RedisClient] = None):
        self.db = db
        self.slot_locker = slot_locker or redis_client
        self.availability = SlotAvailabilityService(BookingRepository(db))

    async def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = await self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    async def list_appointments(
        self,
        appointment_date: date,
        branch: Optional[Branch] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> list[Appointment]:
        query = select(Appointment).where(
            Appointment.appointment_date == appointment_date
        )
        if branch is not None:
            query = query.where(Appointment.branch == branch.value)
        if status is not None:
            query = query.where(Appointment.status == status.value)
        query = query.order_by(Appointment.appointment_time, Appointment.id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """Book a pending appointment on a free slot."""
        self._validate_slot(data.branch, data.appointment_date, data.appointment_time)

        async with self._slot_hold(
            data.branch, data.appointment_date, data.appointment_time
        ):
            await self._ensure_available(
                data.branch,
                data.appointment_date,
                data.appointment_time,
                practitioner_id=data.doctor_id,
            )

            appointment = Appointment(
                patient_id=data.patient_id,
                doctor_id=data.doctor_id,
                branch=data.branch.value,
                appointment_date=data.appointment_date,
                appointment_time=data.appointment_time,
                status=AppointmentStatus.PENDING.value,
                is_emergency=data.is_emergency,
                teeth_involved=data.teeth_involved,
                notes=data.notes,
                reschedule_count=0,
            )
            self.db.add(appointment)
            await self.db.commit()
            await self.db.refresh(appointment)

        logger.info(
            "Appointment booked",
            appointment_id=appointment.id,
            branch=appointment.branch,
            date=appointment.appointment_date.isoformat(),
            time=appointment.appointment_time.strftime("%H:%M"),
        )
        return appointment

    async def reschedule_appointment(
        self, appointment_id: int, data: AppointmentReschedule
    ) -> Appointment:
        """Move an appointment to another date, time, or branch.

        On the same branch the appointment's own current slot is not a
        conflict. The patient's booking notes are left untouched; the reason
        for the move is kept separately.
        """
        appointment = await self.get_appointment(appointment_id)
        if appointment.is_final:
            raise InvalidStatusTransitionError(
                appointment.status,
                "rescheduled",
                f"Cannot reschedule a {appointment.status} appointment",
            )

        current_branch = Branch(appointment.branch)
        branch = data.branch or current_branch
        self._validate_slot(branch, data.appointment_date, data.appointment_time)

        async with self._slot_hold(branch, data.appointment_date, data.appointment_time):
            await self._ensure_available(
                branch,
                data.appointment_date,
                data.appointment_time,
                practitioner_id=appointment.doctor_id,
                exclude_booking_id=appointment.id if branch == current_branch else None,
            )

            appointment.rescheduled_from_branch = appointment.branch
            appointment.rescheduled_from_date = appointment.appointment_date
            appointment.rescheduled_from_time = appointment.appointment_time
            appointment.branch = branch.value
            appointment.appointment_date = data.appointment_date
            appointment.appointment_time = data.appointment_time
            appointment.reschedule_count = (appointment.reschedule_count or 0) + 1
            appointment.reschedule_reason = data.reason

            await self.db.commit()
            await self.db.refresh(appointment)

        logger.info(
            "Appointment rescheduled",
            appointment_id=appointment.id,
            branch=appointment.branch,
            from_branch=appointment.rescheduled_from_branch,
            date=appointment.appointment_date.isoformat(),
            time=appointment.appointment_time.strftime("%H:%M"),
            reschedule_count=appointment.reschedule_count,
        )
        return appointment

    async def update_status(
        self, appointment_id: int, data: AppointmentStatusUpdate
    ) -> Appointment:
        """Apply a lifecycle transition, assigning a doctor when confirming."""
        appointment = await self.get_appointment(appointment_id)

        if not appointment.can_transition_to(data.new_status):
            raise InvalidStatusTransitionError(appointment.status, data.new_status.value)

        if data.doctor_id and data.doctor_id != appointment.doctor_id:
            branch = Branch(appointment.branch)
            async with self._slot_hold(
                branch, appointment.appointment_date, appointment.appointment_time
            ):
                await self._ensure_available(
                    branch,
                    appointment.appointment_date,
                    appointment.appointment_time,
                    practitioner_id=data.doctor_id,
                    exclude_booking_id=appointment.id,
                )
                appointment.doctor_id = data.doctor_id
                appointment.transition_to(data.new_status, notes=data.notes)
                await self.db.commit()
        else:
            appointment.transition_to(data.new_status, notes=data.notes)
            await self.db.commit()
        await self.db.refresh(appointment)

        logger.info(
            "Appointment status changed",
            appointment_id=appointment.id,
            previous_status=appointment.previous_status,
            status=appointment.status,
            doctor_id=appointment.doctor_id,
        )
        return appointment

    async def set_duration(
        self, appointment_id: int, data: AppointmentDurationUpdate
    ) -> AppointmentDuration:
        """Record a doctor-set duration; later records supersede earlier ones."""
        appointment = await self.get_appointment(appointment_id)

        record = AppointmentDuration(
            appointment_id=appointment.id,
            duration_minutes=data.duration_minutes,
            set_by=data.set_by,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)

        logger.info(
            "Appointment duration set",
            appointment_id=appointment.id,
            duration_minutes=record.duration_minutes,
        )
        return record

    def _validate_slot(self, branch: Branch, appointment_date: date, slot_time: time):
        hours = get_operating_hours(branch, appointment_date)
        if hours is None:
            raise ClosedBranchError(branch.value, appointment_date)

        interval = settings.SLOT_INTERVAL_MINUTES
        if slot_time.second or slot_time.microsecond or slot_time.minute % interval:
            raise InvalidSlotError(
                f"{slot_time.isoformat()} is not on the {interval}-minute slot grid"
            )
        if not hours.contains(slot_time):
            raise InvalidSlotError(
                f"{slot_time.strftime('%H:%M')} is outside {branch.value} hours "
                f"({hours.opens_at.strftime('%H:%M')}-{hours.closes_at.strftime('%H:%M')})"
            )

    async def _ensure_available(
        self,
        branch: Branch,
        appointment_date: date,
        slot_time: time,
        practitioner_id: Optional[str] = None,
        exclude_booking_id: Optional[int] = None,
    ):
        available = await self.availability.compute_available_slots(
            appointment_date,
            branch,
            practitioner_id=practitioner_id,
            exclude_booking_id=exclude_booking_id,
        )
        if slot_time.strftime("%H:%M") not in available:
            logger.warning(
                "Slot already taken",
                branch=branch.value,
                date=appointment_date.isoformat(),
                time=slot_time.strftime("%H:%M"),
                practitioner_id=practitioner_id,
            )
            raise SlotConflictError(branch.value, appointment_date, slot_time)

    def _slot_hold(self, branch: Branch, appointment_date: date, slot_time: time):
        return _SlotHold(self.slot_locker, branch, appointment_date, slot_time)


class _SlotHold:
    """Async context manager around a Redis slot lock."""

    def __init__(
        self, locker: RedisClient, branch: Branch, appointment_date: date, slot_time: time
    ):
        self.locker = locker
        self.branch = branch
        self.appointment_date = appointment_date
        self.slot_time = slot_time
        self.owner = uuid4().hex

    async def __aenter__(self):
        acquired = await self.locker.acquire_slot_lock(
            self.branch.value, self.appointment_date, self.slot_time, self.owner
        )
        if not acquired:
            logger.warning(
                "Slot is held by another booking",
                branch=self.branch.value,
                date=self.appointment_date.isoformat(),
                time=self.slot_time.strftime("%H:%M"),
            )
            raise SlotConflictError(self.branch.value, self.appointment_date, self.slot_time)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.locker.release_slot_lock(
            self.branch.value, self.appointment_date, self.slot_time, self.owner
        )
        return False
