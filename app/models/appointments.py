"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Numeric,
    Table,
    Text,
    Uuid,
    false,
    func,
)

from app.models.base import UTCDateTime, metadata

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("type", Text, nullable=False, server_default="APPOINTMENT"),
    Column("title", Text, nullable=True),
    Column("is_all_day", Boolean, nullable=False, server_default=false()),
    Column("start_date", UTCDateTime, nullable=False),
    Column("end_date", UTCDateTime, nullable=False),
    # References
    Column("clinician_id", Uuid, ForeignKey("clinicians.id"), nullable=False),
    Column("client_group_id", Uuid, ForeignKey("client_groups.id"), nullable=True),
    Column("location_id", Uuid, ForeignKey("locations.id"), nullable=False),
    Column("service_id", Uuid, ForeignKey("practice_services.id"), nullable=True),
    Column("created_by", Uuid, nullable=True),
    # Status management
    Column("status", Text, nullable=False, server_default="SCHEDULED"),
    Column("appointment_fee", Numeric(10, 2), nullable=True),
    # Series structure
    Column("is_recurring", Boolean, nullable=False, server_default=false()),
    Column("recurring_rule", Text, nullable=True),
    Column(
        "recurring_appointment_id",
        Uuid,
        ForeignKey("appointments.id"),
        nullable=True,
    ),
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint("start_date < end_date", name="appointments_time_range_check"),
    CheckConstraint(
        "status IN ('SCHEDULED', 'SHOW', 'NO_SHOW', 'CANCELLED', 'CLINICIAN_CANCELLED')",
        name="appointments_status_check",
    ),
    Index("idx_appointments_recurring_appointment_id", "recurring_appointment_id"),
    Index("idx_appointments_clinician_start", "clinician_id", "start_date"),
    Index("idx_appointments_client_group_start", "client_group_id", "start_date"),
)
