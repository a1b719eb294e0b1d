"""Per clinician per day appointment caps."""

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Integer, Table, UniqueConstraint, Uuid

from app.models.base import metadata

appointment_limits = Table(
    "appointment_limits",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinician_id", Uuid, ForeignKey("clinicians.id"), nullable=False),
    Column("date", Date, nullable=False),
    Column("max_limit", Integer, nullable=False),
    UniqueConstraint("clinician_id", "date", name="uq_appointment_limits_clinician_date"),
)
