from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps.services import get_slot_service
from app.schemas.scheduling import AvailableSlotsResponse, SlotGridResponse
from app.services.scheduling import SlotAvailabilityService, estimate_duration

router = APIRouter()


@router.get("/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    date: date = Query(..., description="Appointment date"),
    branch: Optional[str] = Query(None, description="Branch name"),
    practitioner_id: Optional[str] = Query(
        None, description="Only this doctor's bookings block slots"
    ),
    exclude_appointment_id: Optional[int] = Query(
        None, description="Appointment being rescheduled"
    ),
    slot_service: SlotAvailabilityService = Depends(get_slot_service),
):
    """
    Bookable time slots for a branch on a date.

    An empty list means the branch is closed, unknown, or fully booked.
    If existing bookings cannot be loaded the request fails with 503
    instead, since availability is then unknown.
    """
    slots = await slot_service.compute_available_slots(
        date,
        branch,
        practitioner_id=practitioner_id,
        exclude_booking_id=exclude_appointment_id,
    )
    return AvailableSlotsResponse(
        date=date, branch=branch, practitioner_id=practitioner_id, slots=slots
    )


@router.get("/slot-grid", response_model=SlotGridResponse)
async def get_slot_grid(
    date: date = Query(..., description="Appointment date"),
    branch: Optional[str] = Query(None, description="Branch name"),
    duration_minutes: Optional[int] = Query(
        None, gt=0, le=480, description="Estimated length of the visit"
    ),
    service_durations: Optional[List[int]] = Query(
        None, description="Durations of the selected services, in minutes"
    ),
    exclude_appointment_id: Optional[int] = Query(
        None, description="Appointment being rescheduled"
    ),
    slot_service: SlotAvailabilityService = Depends(get_slot_service),
):
    """All slots of the day, marked available when the visit fits.

    The visit length is ``duration_minutes`` when given, otherwise the sum of
    ``service_durations``, otherwise one slot.
    """
    if duration_minutes is None:
        duration_minutes = estimate_duration(service_durations or [])

    slots = await slot_service.build_slot_grid(
        date,
        branch,
        duration_minutes=duration_minutes,
        exclude_booking_id=exclude_appointment_id,
    )
    return SlotGridResponse(
        date=date, branch=branch, duration_minutes=duration_minutes, slots=slots
    )
