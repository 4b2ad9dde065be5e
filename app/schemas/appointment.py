from datetime import date, datetime, time
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

# Import enums from the model to avoid duplication
from app.core.branches import Branch
from app.models.appointment import AppointmentStatus


class AppointmentBase(BaseModel):
    patient_id: str = Field(..., min_length=1)
    branch: Branch
    appointment_date: date
    appointment_time: time
    is_emergency: bool = False
    teeth_involved: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


class AppointmentCreate(AppointmentBase):
    doctor_id: Optional[str] = None


class AppointmentReschedule(BaseModel):
    appointment_date: date
    appointment_time: time
    branch: Optional[Branch] = None
    reason: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    new_status: AppointmentStatus
    doctor_id: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_doctor_assignment(self):
        if self.doctor_id and self.new_status != AppointmentStatus.CONFIRMED:
            raise ValueError("A doctor can only be assigned when confirming")
        return self


class AppointmentDurationUpdate(BaseModel):
    duration_minutes: int = Field(..., gt=0, le=480)
    set_by: Optional[str] = None


class Appointment(AppointmentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch: str
    doctor_id: Optional[str] = None
    status: AppointmentStatus
    previous_status: Optional[str] = None
    cancellation_reason: Optional[str] = None
    reschedule_count: int = 0
    rescheduled_from_date: Optional[date] = None
    rescheduled_from_branch: Optional[str] = None
    rescheduled_from_time: Optional[time] = None
    reschedule_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentList(BaseModel):
    appointments: List[Appointment] = Field(default_factory=list)
    total: int = 0
