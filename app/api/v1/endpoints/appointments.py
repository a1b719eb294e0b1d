"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import DatabaseSession
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDeleteResponse,
    AppointmentFilters,
    AppointmentResponse,
    AppointmentUpdate,
    AppointmentUpdateResponse,
    DeleteScope,
    UpdateScope,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse | list[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create appointment or recurring series",
)
async def create_appointment(
    data: AppointmentCreate,
    db: DatabaseSession,
) -> AppointmentResponse | list[AppointmentResponse]:
    """
    Create a single appointment, or every occurrence of a recurring series.

    Args:
        data: Appointment creation data
        db: Database session

    Returns:
        Created appointment, or the series with its master first
    """
    service = AppointmentService(db)
    return await service.create_appointment(data)


@router.get(
    "/",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    db: DatabaseSession,
    clinician_id: UUID | None = Query(None),
    client_group_id: UUID | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    invoice_status: str | None = Query(None, alias="status"),
) -> list[AppointmentResponse]:
    """
    List appointments with filtering.

    Args:
        db: Database session
        clinician_id: Filter by clinician
        client_group_id: Filter by client group
        start_date: Appointments starting at or after this instant
        end_date: Appointments starting at or before this instant
        invoice_status: Only appointments with an invoice in this status

    Returns:
        Appointments in start order
    """
    filters = AppointmentFilters(
        clinician_id=clinician_id,
        client_group_id=client_group_id,
        start_date=start_date,
        end_date=end_date,
        invoice_status=invoice_status,
    )

    service = AppointmentService(db)
    return await service.list_appointments(filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get appointment details by ID.

    Args:
        appointment_id: Appointment ID
        db: Database session

    Returns:
        Appointment details
    """
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentUpdateResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    db: DatabaseSession,
    scope: UpdateScope = Query(UpdateScope.THIS),
) -> AppointmentUpdateResponse:
    """
    Update an appointment, its future occurrences, or its whole series.

    Args:
        appointment_id: Appointment ID
        data: Update data
        db: Database session
        scope: this, this_and_future or all

    Returns:
        Updated appointment and every row the update touched
    """
    service = AppointmentService(db)
    return await service.update_appointment(appointment_id, data, scope)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentDeleteResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
    scope: DeleteScope = Query(DeleteScope.SINGLE),
) -> AppointmentDeleteResponse:
    """
    Delete an appointment, its future occurrences, or its whole series.

    Invoices and payments are left in place.

    Args:
        appointment_id: Appointment ID
        db: Database session
        scope: single, future or all

    Returns:
        Deleted ids and the invoices that were preserved
    """
    service = AppointmentService(db)
    return await service.delete_appointment(appointment_id, scope)
