from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps.services import get_appointment_service
from app.core.branches import Branch
from app.schemas.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentDurationUpdate,
    AppointmentList,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from app.services.appointment import AppointmentService

router = APIRouter()


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book a new pending appointment on a free slot."""
    return await service.create_appointment(appointment_data)


@router.get("/", response_model=AppointmentList)
async def list_appointments(
    date: date = Query(..., description="Appointment date"),
    branch: Optional[Branch] = Query(None, description="Filter by branch"),
    status: Optional[AppointmentStatus] = Query(None, description="Filter by status"),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointments = await service.list_appointments(date, branch=branch, status=status)
    return AppointmentList(
        appointments=[Appointment.model_validate(a) for a in appointments],
        total=len(appointments),
    )


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.get_appointment(appointment_id)


@router.post("/{appointment_id}/reschedule", response_model=Appointment)
async def reschedule_appointment(
    appointment_id: int,
    reschedule_data: AppointmentReschedule,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Move an appointment to another free slot at the same branch."""
    return await service.reschedule_appointment(appointment_id, reschedule_data)


@router.post("/{appointment_id}/status", response_model=Appointment)
async def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirm, reject, complete or cancel an appointment."""
    return await service.update_status(appointment_id, status_data)


@router.post("/{appointment_id}/duration", status_code=status.HTTP_201_CREATED)
async def set_appointment_duration(
    appointment_id: int,
    duration_data: AppointmentDurationUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Record the doctor-set length of a visit."""
    record = await service.set_duration(appointment_id, duration_data)
    return {
        "appointment_id": record.appointment_id,
        "duration_minutes": record.duration_minutes,
        "set_by": record.set_by,
    }
