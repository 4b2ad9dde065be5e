from datetime import date, time
from typing import List, Optional
from pydantic import BaseModel, Field


class BookedSlot(BaseModel):
    """Existing non-cancelled booking as seen by the slot calculator."""

    appointment_id: int
    time: str
    practitioner_id: Optional[str] = None
    status: str
    duration_minutes: int = 30


class SlotOption(BaseModel):
    time: str
    available: bool
    display_time: str
    end_time: str


class AvailableSlotsResponse(BaseModel):
    date: date
    branch: Optional[str] = None
    practitioner_id: Optional[str] = None
    slots: List[str] = Field(default_factory=list)


class SlotGridResponse(BaseModel):
    date: date
    branch: Optional[str] = None
    duration_minutes: int
    slots: List[SlotOption] = Field(default_factory=list)


class OperatingHoursResponse(BaseModel):
    opens_at: time
    closes_at: time


class BranchHoursResponse(BaseModel):
    branch: str
    date: date
    weekday: str
    is_open: bool
    hours: Optional[OperatingHoursResponse] = None


class BranchSummary(BaseModel):
    branch: str
    address: str
    lat: float
    lng: float
    weekly_hours: dict[str, Optional[OperatingHoursResponse]]


class BranchDistanceResponse(BaseModel):
    branch: str
    distance_km: float
    distance_text: str
