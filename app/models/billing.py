"""Billing tables: invoices and payments."""

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Numeric, Table, Text, Uuid, func

from app.models.base import UTCDateTime, metadata

# appointment_id carries no foreign key: invoices outlive the appointment
# they were issued for and keep the original id for audit.
invoices = Table(
    "invoices",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("invoice_number", Text, nullable=False, unique=True),
    Column("appointment_id", Uuid, nullable=True, index=True),
    Column("client_group_id", Uuid, ForeignKey("client_groups.id"), nullable=True),
    Column("clinician_id", Uuid, nullable=True),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("status", Text, nullable=False, server_default="UNPAID"),
    Column("issued_date", UTCDateTime, nullable=False, server_default=func.now()),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("invoice_id", Uuid, ForeignKey("invoices.id"), nullable=False, index=True),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("status", Text, nullable=False, server_default="COMPLETED"),
    Column("payment_date", UTCDateTime, nullable=False, server_default=func.now()),
)
