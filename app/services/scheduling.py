"""
Slot availability for branch appointments.

Slots are "HH:MM" strings on a fixed grid inside a branch's operating hours
for a date. An empty result means there is definitely no availability (closed
day, unknown branch, or every slot taken). A failure to read existing bookings
is raised as BookingFetchError instead, so callers can tell the two apart.
"""

from datetime import date
from typing import Iterable, Optional, Union
import logging

from app.core.branches import Branch, OperatingHours, get_operating_hours, parse_branch
from app.core.config import settings
from app.schemas.scheduling import BookedSlot, SlotOption
from app.services.bookings import BookingSource


logger = logging.getLogger(__name__)


def to_minutes(slot: str) -> int:
    hours, minutes = slot.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_slot(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def format_display_time(slot: str) -> str:
    """12-hour clock form of a slot, e.g. "13:30" -> "1:30 PM"."""
    total = to_minutes(slot)
    hour, minute = divmod(total, 60)
    suffix = "AM" if hour % 24 < 12 else "PM"
    return f"{(hour % 12) or 12}:{minute:02d} {suffix}"


def calculate_end_time(slot: str, duration_minutes: int) -> str:
    return format_slot(to_minutes(slot) + duration_minutes)


def estimate_duration(
    service_durations: Iterable[Optional[int]],
    default_minutes: Optional[int] = None,
) -> int:
    """Total duration of the selected services, never less than one slot."""
    default_minutes = default_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
    total = sum(d or default_minutes for d in service_durations)
    return max(total, default_minutes)


def generate_candidate_slots(
    hours: OperatingHours, interval_minutes: int = 30
) -> list[str]:
    """Every grid-aligned slot from opening time up to, not including, closing."""
    return [
        format_slot(minutes)
        for minutes in range(
            hours.open_hour * 60, hours.close_hour * 60, interval_minutes
        )
    ]


def subtract_booked_slots(
    candidates: list[str],
    bookings: Iterable[BookedSlot],
    practitioner_id: Optional[str] = None,
) -> list[str]:
    """Remove booked times from ``candidates``, keeping their order.

    With ``practitioner_id`` only that practitioner's bookings count. Without
    it every booking counts, whoever it is assigned to.
    """
    if practitioner_id:
        booked = {b.time for b in bookings if b.practitioner_id == practitioner_id}
    else:
        booked = {b.time for b in bookings}
    return [slot for slot in candidates if slot not in booked]


def blocked_slots(bookings: Iterable[BookedSlot], interval_minutes: int = 30) -> set[str]:
    """Grid slots covered by each booking's full duration."""
    blocked = set()
    for booking in bookings:
        start = to_minutes(booking.time)
        for offset in range(0, booking.duration_minutes, interval_minutes):
            blocked.add(format_slot(start + offset))
    return blocked


class SlotAvailabilityService:
    """Answers which slots a booking can take on a branch day."""

    def __init__(self, bookings: BookingSource, interval_minutes: Optional[int] = None):
        self.bookings = bookings
        self.interval_minutes = interval_minutes or settings.SLOT_INTERVAL_MINUTES

    async def compute_available_slots(
        self,
        appointment_date: date,
        branch: Union[str, Branch, None],
        practitioner_id: Optional[str] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> list[str]:
        """
        Bookable slots for ``branch`` on ``appointment_date``.

        Args:
            appointment_date: day to check
            branch: branch name; unknown or missing yields no slots
            practitioner_id: only this practitioner's bookings block slots
            exclude_booking_id: booking being rescheduled, ignored as a conflict

        Returns:
            Ascending list of "HH:MM" strings.

        Raises:
            BookingFetchError: existing bookings could not be loaded.
        """
        resolved = parse_branch(branch)
        hours = get_operating_hours(resolved, appointment_date)
        if hours is None:
            logger.info(f"No operating hours for {branch} on {appointment_date}")
            return []

        candidates = generate_candidate_slots(hours, self.interval_minutes)

        bookings = await self.bookings.list_active_bookings(
            appointment_date, resolved.value, exclude_id=exclude_booking_id
        )

        available = subtract_booked_slots(candidates, bookings, practitioner_id)
        logger.debug(
            f"{len(available)} of {len(candidates)} slots free at {resolved.value} "
            f"on {appointment_date} (practitioner={practitioner_id}, "
            f"excluded={exclude_booking_id})"
        )
        return available

    async def build_slot_grid(
        self,
        appointment_date: date,
        branch: Union[str, Branch, None],
        duration_minutes: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> list[SlotOption]:
        """Every candidate slot, marked available if ``duration_minutes`` fits.

        A slot fits when each grid step of the requested duration ends before
        closing time and none of them is covered by an existing booking.
        """
        duration_minutes = duration_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
        resolved = parse_branch(branch)
        hours = get_operating_hours(resolved, appointment_date)
        if hours is None:
            return []

        bookings = await self.bookings.list_active_bookings(
            appointment_date, resolved.value, exclude_id=exclude_booking_id
        )
        blocked = blocked_slots(bookings, self.interval_minutes)
        closing = hours.close_hour * 60

        grid = []
        for slot in generate_candidate_slots(hours, self.interval_minutes):
            start = to_minutes(slot)
            available = True
            for offset in range(0, duration_minutes, self.interval_minutes):
                step = start + offset
                if step >= closing or format_slot(step) in blocked:
                    available = False
                    break

            grid.append(
                SlotOption(
                    time=slot,
                    available=available,
                    display_time=format_display_time(slot),
                    end_time=format_display_time(
                        calculate_end_time(slot, duration_minutes)
                    ),
                )
            )
        return grid
