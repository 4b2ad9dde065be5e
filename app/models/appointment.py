from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Time,
    Text,
    Boolean,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
import enum
from datetime import datetime, timezone
from typing import Optional


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


FINAL_STATUSES = {
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.REJECTED,
}


class Appointment(Base):
    """Dental appointment at a branch, optionally assigned to a doctor."""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Participants
    patient_id = Column(String(64), nullable=False, index=True)
    doctor_id = Column(String(64), nullable=True, index=True)

    # Scheduling details
    branch = Column(String(50), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())
    cancellation_reason = Column(Text, nullable=True)

    # Booking details
    is_emergency = Column(Boolean, default=False, nullable=False)
    teeth_involved = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Rescheduling
    rescheduled_from_date = Column(Date, nullable=True)
    rescheduled_from_branch = Column(String(50), nullable=True)
    rescheduled_from_time = Column(Time, nullable=True)
    reschedule_reason = Column(Text, nullable=True)
    reschedule_count = Column(Integer, default=0, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_appointments_branch_date", "branch", "appointment_date"),
        CheckConstraint(
            "reschedule_count >= 0",
            name="check_non_negative_reschedule_count",
        ),
    )

    durations = relationship(
        "AppointmentDuration",
        back_populates="appointment",
        cascade="all, delete-orphan",
    )

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can transition to the new status."""
        current = AppointmentStatus(self.status)

        allowed_transitions = {
            AppointmentStatus.PENDING: [
                AppointmentStatus.CONFIRMED,
                AppointmentStatus.REJECTED,
                AppointmentStatus.CANCELLED,
            ],
            AppointmentStatus.CONFIRMED: [
                AppointmentStatus.COMPLETED,
                AppointmentStatus.CANCELLED,
            ],
            AppointmentStatus.COMPLETED: [],
            AppointmentStatus.CANCELLED: [],
            AppointmentStatus.REJECTED: [],
        }

        return new_status in allowed_transitions.get(current, [])

    def transition_to(
        self, new_status: AppointmentStatus, notes: Optional[str] = None
    ) -> bool:
        """Transition appointment to new status with validation."""
        if not self.can_transition_to(new_status):
            return False

        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)

        if new_status in (AppointmentStatus.CANCELLED, AppointmentStatus.REJECTED):
            if notes:
                self.cancellation_reason = notes

        return True

    @property
    def is_final(self) -> bool:
        return AppointmentStatus(self.status) in FINAL_STATUSES

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"branch='{self.branch}', date='{self.appointment_date}', "
            f"time='{self.appointment_time}', doctor_id={self.doctor_id})>"
        )


class AppointmentDuration(Base):
    """Doctor-set duration for an appointment; the latest record wins."""

    __tablename__ = "appointment_durations"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    duration_minutes = Column(Integer, nullable=False)
    set_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
    )

    appointment = relationship("Appointment", back_populates="durations")

    def __repr__(self):
        return (
            f"<AppointmentDuration(appointment_id={self.appointment_id}, "
            f"duration_minutes={self.duration_minutes})>"
        )
