"""Tag tables: the tag taxonomy and the appointment link table."""

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Table, Text, UniqueConstraint, Uuid

from app.models.base import metadata

tags = Table(
    "tags",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False, unique=True),
    Column("color", Text, nullable=True),
)

# Owned by the appointment; removed explicitly before the appointment row
appointment_tags = Table(
    "appointment_tags",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("appointment_id", Uuid, ForeignKey("appointments.id"), nullable=False, index=True),
    Column("tag_id", Uuid, ForeignKey("tags.id"), nullable=False),
    UniqueConstraint("appointment_id", "tag_id", name="uq_appointment_tags_appointment_tag"),
)
