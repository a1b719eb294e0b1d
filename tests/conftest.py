import os
from collections.abc import AsyncGenerator
from decimal import Decimal
from uuid import uuid4

# The application engine is built at import time; keep it off any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./practice_calendar_test.db")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.database import get_db
from app.main import app
from app.models import (
    client_groups,
    clinicians,
    invoices,
    locations,
    metadata,
    payments,
    tags,
)
from app.services.appointment_tags import AppointmentTagName


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Throwaway SQLite database per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'calendar.db'}",
        echo=False,
        poolclass=NullPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def default_tags(db_session: AsyncSession) -> dict:
    """Seed the tag taxonomy."""
    rows = {name.value: uuid4() for name in AppointmentTagName}
    await db_session.execute(
        insert(tags),
        [{"id": tag_id, "name": name} for name, tag_id in rows.items()],
    )
    await db_session.commit()
    return rows


@pytest_asyncio.fixture
async def practice(db_session: AsyncSession, default_tags: dict) -> dict:
    """A clinician, a location and a client group to book against."""
    ids = {
        "clinician_id": uuid4(),
        "location_id": uuid4(),
        "client_group_id": uuid4(),
        "created_by": uuid4(),
    }
    await db_session.execute(
        insert(clinicians).values(id=ids["clinician_id"], first_name="Ada", last_name="Byron")
    )
    await db_session.execute(
        insert(locations).values(id=ids["location_id"], name="Main Office", address="1 High St")
    )
    await db_session.execute(
        insert(client_groups).values(id=ids["client_group_id"], name="Smith", type="individual")
    )
    await db_session.commit()
    return ids


@pytest.fixture
def sample_appointment_data(practice: dict) -> dict:
    """Sample appointment data for testing."""
    return {
        "type": "APPOINTMENT",
        "title": "Intake session",
        "start_date": "2024-01-15T10:00:00Z",
        "end_date": "2024-01-15T11:00:00Z",
        "clinician_id": str(practice["clinician_id"]),
        "client_group_id": str(practice["client_group_id"]),
        "location_id": str(practice["location_id"]),
        "created_by": str(practice["created_by"]),
        "appointment_fee": "150.00",
    }


@pytest.fixture
def weekly_series_data(sample_appointment_data: dict) -> dict:
    """Weekly recurring series anchored on Monday 2024-01-15."""
    return {
        **sample_appointment_data,
        "title": "Weekly therapy",
        "is_recurring": True,
        "recurring_rule": "FREQ=WEEKLY;INTERVAL=1",
    }


@pytest.fixture
def invoice_for(db_session: AsyncSession, practice: dict):
    """Factory issuing a paid invoice against an appointment."""

    async def _issue(appointment_id) -> dict:
        invoice_id, payment_id = uuid4(), uuid4()
        await db_session.execute(
            insert(invoices).values(
                id=invoice_id,
                invoice_number=f"INV-{invoice_id.hex[:8]}",
                appointment_id=appointment_id,
                client_group_id=practice["client_group_id"],
                clinician_id=practice["clinician_id"],
                amount=Decimal("150.00"),
                status="PAID",
            )
        )
        await db_session.execute(
            insert(payments).values(id=payment_id, invoice_id=invoice_id, amount=Decimal("150.00"))
        )
        await db_session.commit()
        return {"invoice_id": invoice_id, "payment_id": payment_id}

    return _issue
