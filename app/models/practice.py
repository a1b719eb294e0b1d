"""Practice reference tables referenced by appointments."""

from uuid import uuid4

from sqlalchemy import Column, Numeric, Table, Text, Uuid, func

from app.models.base import UTCDateTime, metadata

client_groups = Table(
    "client_groups",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    # individual, couple, family, minor
    Column("type", Text, nullable=False, server_default="individual"),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
)

clinicians = Table(
    "clinicians",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("first_name", Text, nullable=False),
    Column("last_name", Text, nullable=False),
)

locations = Table(
    "locations",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    Column("address", Text, nullable=True),
)

practice_services = Table(
    "practice_services",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("code", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("rate", Numeric(10, 2), nullable=False, server_default="0"),
)
