"""Create practice calendar tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Reference tables
    op.create_table(
        "client_groups",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), server_default="individual", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "clinicians",
        _id_column(),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "locations",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "practice_services",
        _id_column(),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rate", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "appointments",
        _id_column(),
        sa.Column("type", sa.Text(), server_default="APPOINTMENT", nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("is_all_day", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("start_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("clinician_id", postgresql.UUID(), nullable=False),
        sa.Column("client_group_id", postgresql.UUID(), nullable=True),
        sa.Column("location_id", postgresql.UUID(), nullable=False),
        sa.Column("service_id", postgresql.UUID(), nullable=True),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.Column("status", sa.Text(), server_default="SCHEDULED", nullable=False),
        sa.Column("appointment_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("recurring_rule", sa.Text(), nullable=True),
        sa.Column("recurring_appointment_id", postgresql.UUID(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("start_date < end_date", name="appointments_time_range_check"),
        sa.CheckConstraint(
            "status IN ('SCHEDULED', 'SHOW', 'NO_SHOW', 'CANCELLED', 'CLINICIAN_CANCELLED')",
            name="appointments_status_check",
        ),
        sa.ForeignKeyConstraint(["clinician_id"], ["clinicians.id"]),
        sa.ForeignKeyConstraint(["client_group_id"], ["client_groups.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["practice_services.id"]),
        sa.ForeignKeyConstraint(["recurring_appointment_id"], ["appointments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointments_recurring_appointment_id", "appointments", ["recurring_appointment_id"]
    )
    op.create_index(
        "idx_appointments_clinician_start", "appointments", ["clinician_id", "start_date"]
    )
    op.create_index(
        "idx_appointments_client_group_start", "appointments", ["client_group_id", "start_date"]
    )

    # Tags
    op.create_table(
        "tags",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "appointment_tags",
        _id_column(),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("tag_id", postgresql.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "appointment_id", "tag_id", name="uq_appointment_tags_appointment_tag"
        ),
    )
    op.create_index(
        "ix_appointment_tags_appointment_id", "appointment_tags", ["appointment_id"]
    )

    # Billing: invoices keep the appointment id without a foreign key
    op.create_table(
        "invoices",
        _id_column(),
        sa.Column("invoice_number", sa.Text(), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("client_group_id", postgresql.UUID(), nullable=True),
        sa.Column("clinician_id", postgresql.UUID(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="UNPAID", nullable=False),
        _timestamp("issued_date"),
        sa.ForeignKeyConstraint(["client_group_id"], ["client_groups.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
    )
    op.create_index("ix_invoices_appointment_id", "invoices", ["appointment_id"])
    op.create_table(
        "payments",
        _id_column(),
        sa.Column("invoice_id", postgresql.UUID(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="COMPLETED", nullable=False),
        _timestamp("payment_date"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])

    op.create_table(
        "appointment_limits",
        _id_column(),
        sa.Column("clinician_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("max_limit", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["clinician_id"], ["clinicians.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "clinician_id", "date", name="uq_appointment_limits_clinician_date"
        ),
    )

    # Default tag taxonomy
    op.execute(
        "INSERT INTO tags (name) VALUES "
        "('Appointment Paid'), ('Appointment Unpaid'), ('Note Added'), "
        "('No Note'), ('New Client')"
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("appointment_limits")
    op.drop_index("ix_payments_invoice_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_invoices_appointment_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_appointment_tags_appointment_id", table_name="appointment_tags")
    op.drop_table("appointment_tags")
    op.drop_table("tags")
    op.drop_index("idx_appointments_client_group_start", table_name="appointments")
    op.drop_index("idx_appointments_clinician_start", table_name="appointments")
    op.drop_index("idx_appointments_recurring_appointment_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("practice_services")
    op.drop_table("locations")
    op.drop_table("clinicians")
    op.drop_table("client_groups")
