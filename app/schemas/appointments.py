"""Appointment schemas for request/response validation."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "SCHEDULED"
    SHOW = "SHOW"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"
    CLINICIAN_CANCELLED = "CLINICIAN_CANCELLED"


class AppointmentType(str, Enum):
    """Calendar entry kind."""

    APPOINTMENT = "APPOINTMENT"
    EVENT = "EVENT"


class UpdateScope(str, Enum):
    """Which members of a recurring series an update touches."""

    THIS = "this"
    THIS_AND_FUTURE = "this_and_future"
    ALL = "all"


class DeleteScope(str, Enum):
    """Which members of a recurring series a delete removes."""

    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentCreate(BaseModel):
    """Schema for creating a single appointment or a recurring series."""

    type: AppointmentType = AppointmentType.APPOINTMENT
    title: str | None = Field(None, max_length=200)
    is_all_day: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None
    clinician_id: UUID | None = None
    client_group_id: UUID | None = None
    location_id: UUID | None = None
    service_id: UUID | None = None
    created_by: UUID | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    appointment_fee: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)

    # Recurrence
    is_recurring: bool = False
    recurring_rule: str | None = Field(None, max_length=500)
    recurring_end_date: date | None = None
    recurring_count: int | None = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_instant(cls, v: datetime | None) -> datetime | None:
        """Store every instant as UTC."""
        return _as_utc(v)

    @field_validator("end_date")
    @classmethod
    def validate_end_time(cls, v: datetime | None, info: ValidationInfo) -> datetime | None:
        """Validate end time is after start time."""
        start = info.data.get("start_date")
        if v and start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AppointmentUpdate(BaseModel):
    """
    Schema for updating an appointment.

    Series structure (is_recurring, recurring_appointment_id) is not accepted
    here; it only changes through the update scope.
    """

    type: AppointmentType | None = None
    title: str | None = Field(None, max_length=200)
    is_all_day: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    clinician_id: UUID | None = None
    client_group_id: UUID | None = None
    location_id: UUID | None = None
    service_id: UUID | None = None
    status: AppointmentStatus | None = None
    appointment_fee: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    recurring_rule: str | None = Field(None, max_length=500)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_instant(cls, v: datetime | None) -> datetime | None:
        """Store every instant as UTC."""
        return _as_utc(v)

    def changes(self) -> dict[str, Any]:
        """Explicitly supplied fields with enums reduced to their values."""
        values: dict[str, Any] = {}
        for field, value in self.model_dump(exclude_unset=True).items():
            values[field] = value.value if isinstance(value, Enum) else value
        return values


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    type: str
    title: str | None = None
    is_all_day: bool
    start_date: datetime
    end_date: datetime
    clinician_id: UUID
    client_group_id: UUID | None = None
    location_id: UUID
    service_id: UUID | None = None
    created_by: UUID | None = None
    status: AppointmentStatus
    appointment_fee: Decimal | None = None
    is_recurring: bool
    recurring_rule: str | None = None
    recurring_appointment_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
    is_first_appointment_for_group: bool | None = Field(
        default=None,
        serialization_alias="isFirstAppointmentForGroup",
    )

    model_config = {"from_attributes": True}


class AppointmentUpdateResponse(BaseModel):
    """Outcome of a scoped update."""

    message: str
    scope: UpdateScope
    appointment: AppointmentResponse
    appointments: list[AppointmentResponse]
    updated_count: int


class AppointmentDeleteResponse(BaseModel):
    """Outcome of a scoped delete."""

    message: str
    scope: DeleteScope
    deleted_count: int
    deleted_ids: list[UUID]
    removed_tag_count: int = 0
    preserved_invoice_ids: list[UUID] = Field(default_factory=list)


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    clinician_id: UUID | None = None
    client_group_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    invoice_status: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_instant(cls, v: datetime | None) -> datetime | None:
        """Compare range bounds as UTC instants."""
        return _as_utc(v)
