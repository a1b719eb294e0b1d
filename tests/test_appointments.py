"""Tests for appointment endpoints."""

from datetime import datetime
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models import appointment_tags, appointments, invoices, payments, tags
from app.services.appointment_writer import AppointmentWriter


def parse_instant(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def count_rows(db_session, table) -> int:
    result = await db_session.execute(select(func.count()).select_from(table))
    return result.scalar()


async def tag_names(db_session, appointment_id: str) -> set[str]:
    stmt = (
        select(tags.c.name)
        .select_from(appointment_tags.join(tags, appointment_tags.c.tag_id == tags.c.id))
        .where(appointment_tags.c.appointment_id == UUID(appointment_id))
    )
    result = await db_session.execute(stmt)
    return set(result.scalars())


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_create_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test creating a single appointment."""
    response = await client.post("/api/v1/appointments/", json=sample_appointment_data)

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Intake session"
    assert data["status"] == "SCHEDULED"
    assert data["is_recurring"] is False
    assert data["recurring_rule"] is None
    assert data["recurring_appointment_id"] is None
    assert data["isFirstAppointmentForGroup"] is True
    assert parse_instant(data["start_date"]) == parse_instant("2024-01-15T10:00:00Z")


@pytest.mark.asyncio
async def test_create_attaches_default_tags(
    client: AsyncClient,
    db_session,
    sample_appointment_data: dict,
) -> None:
    first = (await client.post("/api/v1/appointments/", json=sample_appointment_data)).json()
    second = (
        await client.post(
            "/api/v1/appointments/",
            json={
                **sample_appointment_data,
                "start_date": "2024-01-20T10:00:00Z",
                "end_date": "2024-01-20T11:00:00Z",
            },
        )
    ).json()

    assert await tag_names(db_session, first["id"]) == {
        "Appointment Unpaid",
        "No Note",
        "New Client",
    }
    assert await tag_names(db_session, second["id"]) == {"Appointment Unpaid", "No Note"}


@pytest.mark.asyncio
async def test_create_weekly_series(client: AsyncClient, weekly_series_data: dict) -> None:
    """Weekly series from 2024-01-15 until 2024-02-05 has four occurrences."""
    response = await client.post(
        "/api/v1/appointments/",
        json={**weekly_series_data, "recurring_rule": "Weekly", "recurring_end_date": "2024-02-05"},
    )

    assert response.status_code == 201
    data = response.json()
    assert isinstance(data, list)
    assert [parse_instant(item["start_date"]).date().isoformat() for item in data] == [
        "2024-01-15",
        "2024-01-22",
        "2024-01-29",
        "2024-02-05",
    ]

    master, *children = data
    assert master["recurring_appointment_id"] is None
    assert master["is_recurring"] is True
    assert master["recurring_rule"] == "Weekly"
    assert all(child["recurring_appointment_id"] == master["id"] for child in children)
    assert all(child["recurring_rule"] == "Weekly" for child in children)


@pytest.mark.asyncio
async def test_create_series_is_atomic(
    client: AsyncClient,
    db_session,
    weekly_series_data: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A store fault partway through a series leaves nothing behind."""
    original = AppointmentWriter.create_appointment
    calls = {"count": 0}

    async def flaky_create(self, values):
        calls["count"] += 1
        if calls["count"] == 3:
            raise OperationalError("INSERT INTO appointments", {}, Exception("disk I/O error"))
        return await original(self, values)

    monkeypatch.setattr(AppointmentWriter, "create_appointment", flaky_create)

    response = await client.post(
        "/api/v1/appointments/",
        json={**weekly_series_data, "recurring_count": 5},
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Operation failed"
    assert calls["count"] == 3
    assert await count_rows(db_session, appointments) == 0
    assert await count_rows(db_session, appointment_tags) == 0


@pytest.mark.asyncio
async def test_create_missing_required_fields(client: AsyncClient, practice: dict) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={
            "start_date": "2024-01-15T10:00:00Z",
            "end_date": "2024-01-15T11:00:00Z",
            "clinician_id": str(practice["clinician_id"]),
        },
    )

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationException"
    assert set(data["fields"]) == {"title", "location_id", "created_by", "client_group_id"}


@pytest.mark.asyncio
async def test_create_event_without_client_group(
    client: AsyncClient,
    sample_appointment_data: dict,
) -> None:
    payload = {**sample_appointment_data, "type": "EVENT", "title": "Staff meeting"}
    payload.pop("client_group_id")

    response = await client.post("/api/v1/appointments/", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["type"] == "EVENT"
    assert data["client_group_id"] is None
    assert data["isFirstAppointmentForGroup"] is False


@pytest.mark.asyncio
async def test_create_rejects_unknown_client_group(
    client: AsyncClient,
    db_session,
    sample_appointment_data: dict,
) -> None:
    payload = {**sample_appointment_data, "client_group_id": "00000000-0000-4000-8000-000000000000"}

    response = await client.post("/api/v1/appointments/", json=payload)

    assert response.status_code == 404
    assert response.json()["message"] == "Invalid client group"
    assert await count_rows(db_session, appointments) == 0


@pytest.mark.asyncio
async def test_create_rejects_inverted_window(
    client: AsyncClient,
    sample_appointment_data: dict,
) -> None:
    payload = {**sample_appointment_data, "end_date": "2024-01-15T09:00:00Z"}
    response = await client.post("/api/v1/appointments/", json=payload)

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert data["fields"] == ["end_date"]
    assert "End time must be after start time" in data["details"][0]["msg"]


@pytest.mark.asyncio
async def test_create_reports_each_invalid_field(
    client: AsyncClient,
    sample_appointment_data: dict,
) -> None:
    payload = {**sample_appointment_data, "appointment_fee": "-5", "clinician_id": "nope"}
    response = await client.post("/api/v1/appointments/", json=payload)

    assert response.status_code == 422
    assert sorted(response.json()["fields"]) == ["appointment_fee", "clinician_id"]


@pytest.mark.asyncio
@pytest.mark.parametrize("rule", [None, "Monthly", "FREQ=YEARLY"])
async def test_create_series_rejects_bad_rule(
    client: AsyncClient,
    db_session,
    weekly_series_data: dict,
    rule,
) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={**weekly_series_data, "recurring_rule": rule},
    )

    assert response.status_code == 422
    assert response.json()["fields"] == ["recurring_rule"]
    assert await count_rows(db_session, appointments) == 0


@pytest.mark.asyncio
async def test_get_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test getting a specific appointment."""
    create_response = await client.post("/api/v1/appointments/", json=sample_appointment_data)
    appointment_id = create_response.json()["id"]

    response = await client.get(f"/api/v1/appointments/{appointment_id}")

    assert response.status_code == 200
    assert response.json()["id"] == appointment_id


@pytest.mark.asyncio
async def test_get_missing_appointment(client: AsyncClient) -> None:
    response = await client.get("/api/v1/appointments/00000000-0000-4000-8000-000000000000")
    assert response.status_code == 404
    assert response.json()["message"] == "Appointment not found"


@pytest.mark.asyncio
async def test_first_appointment_for_group(
    client: AsyncClient,
    sample_appointment_data: dict,
) -> None:
    """Only the earliest appointment of a client group is flagged."""
    later = await client.post(
        "/api/v1/appointments/",
        json={
            **sample_appointment_data,
            "start_date": "2024-01-20T10:00:00Z",
            "end_date": "2024-01-20T11:00:00Z",
        },
    )
    earlier = await client.post("/api/v1/appointments/", json=sample_appointment_data)

    listing = (await client.get("/api/v1/appointments/")).json()
    flags = {item["id"]: item["isFirstAppointmentForGroup"] for item in listing}
    assert flags == {earlier.json()["id"]: True, later.json()["id"]: False}

    single = await client.get(f"/api/v1/appointments/{later.json()['id']}")
    assert single.json()["isFirstAppointmentForGroup"] is False


@pytest.mark.asyncio
async def test_list_appointments_filters(
    client: AsyncClient,
    sample_appointment_data: dict,
    invoice_for,
) -> None:
    first = (await client.post("/api/v1/appointments/", json=sample_appointment_data)).json()
    second = (
        await client.post(
            "/api/v1/appointments/",
            json={
                **sample_appointment_data,
                "start_date": "2024-02-01T10:00:00Z",
                "end_date": "2024-02-01T11:00:00Z",
            },
        )
    ).json()
    await invoice_for(UUID(first["id"]))

    in_range = await client.get(
        "/api/v1/appointments/",
        params={"start_date": "2024-01-25T00:00:00Z", "end_date": "2024-02-28T00:00:00Z"},
    )
    assert [item["id"] for item in in_range.json()] == [second["id"]]

    paid = await client.get("/api/v1/appointments/", params={"status": "PAID"})
    assert [item["id"] for item in paid.json()] == [first["id"]]

    by_clinician = await client.get(
        "/api/v1/appointments/",
        params={"clinician_id": sample_appointment_data["clinician_id"]},
    )
    assert [item["id"] for item in by_clinician.json()] == [first["id"], second["id"]]


@pytest.mark.asyncio
async def test_update_series_scope_via_query(
    client: AsyncClient,
    weekly_series_data: dict,
) -> None:
    series = (
        await client.post("/api/v1/appointments/", json={**weekly_series_data, "recurring_count": 3})
    ).json()

    response = await client.put(
        f"/api/v1/appointments/{series[1]['id']}",
        params={"scope": "all"},
        json={"title": "Couples session"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["scope"] == "all"
    assert data["updated_count"] == 3
    assert data["appointment"]["id"] == series[1]["id"]
    assert {item["title"] for item in data["appointments"]} == {"Couples session"}


@pytest.mark.asyncio
async def test_update_rejects_unknown_scope(client: AsyncClient, sample_appointment_data: dict) -> None:
    created = (await client.post("/api/v1/appointments/", json=sample_appointment_data)).json()

    response = await client.put(
        f"/api/v1/appointments/{created['id']}",
        params={"scope": "everything"},
        json={"title": "x"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_preserves_billing(
    client: AsyncClient,
    db_session,
    sample_appointment_data: dict,
    invoice_for,
) -> None:
    """Invoices and payments outlive the appointment they were issued for."""
    created = (await client.post("/api/v1/appointments/", json=sample_appointment_data)).json()
    billing = await invoice_for(UUID(created["id"]))

    response = await client.delete(f"/api/v1/appointments/{created['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["deleted_count"] == 1
    assert data["removed_tag_count"] == 3
    assert data["preserved_invoice_ids"] == [str(billing["invoice_id"])]

    invoice = (
        await db_session.execute(select(invoices).where(invoices.c.id == billing["invoice_id"]))
    ).mappings().one()
    assert str(invoice["appointment_id"]) == created["id"]
    assert await count_rows(db_session, payments) == 1
    assert await count_rows(db_session, appointment_tags) == 0

    missing = await client.get(f"/api/v1/appointments/{created['id']}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_series_message(client: AsyncClient, weekly_series_data: dict) -> None:
    series = (
        await client.post("/api/v1/appointments/", json={**weekly_series_data, "recurring_count": 4})
    ).json()

    response = await client.delete(
        f"/api/v1/appointments/{series[0]['id']}",
        params={"scope": "all"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "All appointments in the series deleted successfully"
    assert data["deleted_count"] == 4


@pytest.mark.asyncio
async def test_delete_future_conflict_renders_409(
    client: AsyncClient,
    db_session,
    weekly_series_data: dict,
) -> None:
    from sqlalchemy import update

    series = (
        await client.post("/api/v1/appointments/", json={**weekly_series_data, "recurring_count": 3})
    ).json()
    await db_session.execute(
        update(appointments)
        .where(appointments.c.id == UUID(series[0]["id"]))
        .values(
            start_date=parse_instant("2024-01-25T10:00:00Z"),
            end_date=parse_instant("2024-01-25T11:00:00Z"),
        )
    )
    await db_session.commit()

    response = await client.delete(
        f"/api/v1/appointments/{series[0]['id']}",
        params={"scope": "future"},
    )

    assert response.status_code == 409
    assert response.json()["error"] == "StructuralIntegrityException"
