from datetime import date, time
from typing import Optional


class SchedulingError(Exception):
    """Base class for scheduling and booking errors."""


class BookingFetchError(SchedulingError):
    """Existing bookings could not be read, so availability is unknown.

    Distinct from an empty slot list, which means there is definitely no
    availability.
    """

    def __init__(self, branch: str, appointment_date: date, reason: str = ""):
        self.branch = branch
        self.appointment_date = appointment_date
        message = f"Could not load bookings for {branch} on {appointment_date.isoformat()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SlotConflictError(SchedulingError):
    """The requested slot is already booked or being booked."""

    def __init__(self, branch: str, appointment_date: date, slot_time: time):
        self.branch = branch
        self.appointment_date = appointment_date
        self.slot_time = slot_time
        super().__init__(
            f"Slot {slot_time.strftime('%H:%M')} on {appointment_date.isoformat()} "
            f"at {branch} is not available"
        )


class ClosedBranchError(SchedulingError):
    """The branch is unknown or closed on the requested date."""

    def __init__(self, branch: str, appointment_date: date):
        self.branch = branch
        self.appointment_date = appointment_date
        super().__init__(f"{branch} is closed on {appointment_date.strftime('%A')}s")


class InvalidSlotError(SchedulingError):
    """The requested time is not aligned to the slot grid or outside hours."""


class AppointmentNotFoundError(SchedulingError):
    def __init__(self, appointment_id: int):
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} not found")


class InvalidStatusTransitionError(SchedulingError):
    def __init__(self, current: str, requested: str, detail: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(
            detail or f"Cannot change appointment status from {current} to {requested}"
        )


class SlotHoldUnavailableError(SchedulingError):
    """The slot hold store could not be reached, so the booking cannot be guarded."""

    def __init__(self, branch: str, appointment_date: date, slot_time: time, reason: str = ""):
        self.branch = branch
        self.appointment_date = appointment_date
        self.slot_time = slot_time
        message = (
            f"Could not hold slot {slot_time.strftime('%H:%M')} on "
            f"{appointment_date.isoformat()} at {branch}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
