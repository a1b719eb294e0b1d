"""Database models."""

from app.models.appointment_limits import appointment_limits
from app.models.appointments import appointments
from app.models.base import metadata
from app.models.billing import invoices, payments
from app.models.practice import client_groups, clinicians, locations, practice_services
from app.models.tags import appointment_tags, tags

__all__ = [
    "appointment_limits",
    "appointment_tags",
    "appointments",
    "client_groups",
    "clinicians",
    "invoices",
    "locations",
    "metadata",
    "payments",
    "practice_services",
    "tags",
]
