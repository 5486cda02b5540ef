"""Scheduling domain schemas - Pydantic models for validation and results"""

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...errors import SchedulingError
from ...shared.validators import (
    validate_appointment_type,
    validate_booking_duration,
    validate_duration_range,
    validate_notes,
    validate_wall_clock,
)


class ViewGranularity(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment"""

    patient_id: str = Field(min_length=1)
    start_time: datetime
    duration: int
    type: str
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return validate_wall_clock(v)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        return validate_booking_duration(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_appointment_type(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return validate_notes(v)


class AppointmentUpdate(BaseModel):
    """Schema for rescheduling; every field is optional"""

    start_time: Optional[datetime] = None
    duration: Optional[int] = None
    type: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return validate_wall_clock(v)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v is None:
            return v
        return validate_duration_range(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v is None:
            return v
        return validate_appointment_type(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return validate_notes(v)


class BookingRequest(BaseModel):
    """Raw booking payload; the service validates it and reports failures as results"""

    patient_id: str
    start_time: datetime
    duration: int
    type: str
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return validate_wall_clock(v)


class RescheduleRequest(BaseModel):
    start_time: Optional[datetime] = None
    duration: Optional[int] = None
    type: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return validate_wall_clock(v)


class StatusUpdate(BaseModel):
    status: str


class PatientSummary(BaseModel):
    id: str
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    patient_id: str
    start_time: datetime
    end_time: datetime
    status: str
    type: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None

    class Config:
        from_attributes = True


class GridAppointment(AppointmentResponse):
    """An appointment with its vertical position on the day grid (percentages)"""

    top: float
    height: float


class CalendarWindowResponse(BaseModel):
    key: str
    granularity: ViewGranularity
    start: datetime
    end: datetime
    appointments: list[GridAppointment]


class AppointmentResult(BaseModel):
    success: bool
    appointment: Optional[AppointmentResponse] = None
    error: Optional[SchedulingError] = None

    @classmethod
    def ok(cls, appointment) -> "AppointmentResult":
        return cls(success=True, appointment=AppointmentResponse.model_validate(appointment))

    @classmethod
    def fail(cls, error: SchedulingError) -> "AppointmentResult":
        return cls(success=False, error=error)


class ActionResult(BaseModel):
    success: bool
    error: Optional[SchedulingError] = None

    @classmethod
    def ok(cls) -> "ActionResult":
        return cls(success=True)

    @classmethod
    def fail(cls, error: SchedulingError) -> "ActionResult":
        return cls(success=False, error=error)


class DashboardStats(BaseModel):
    today_appointments_count: int
    upcoming_appointments: list[AppointmentResponse]


class CalendarPreferences(BaseModel):
    """View preferences that survive a reload (never the pivot date or cache)"""

    granularity: ViewGranularity = ViewGranularity.WEEK
    show_cancelled: bool = False
