"""Script to initialize the database."""

import asyncio

from sqlalchemy import select

from app.database import engine
from app.models import metadata, tags
from app.services.appointment_tags import AppointmentTagName


async def init_db() -> None:
    """Create all tables and seed the default tag taxonomy."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

        existing = set((await conn.execute(select(tags.c.name))).scalars())
        missing = [name.value for name in AppointmentTagName if name.value not in existing]
        if missing:
            await conn.execute(tags.insert(), [{"name": name} for name in missing])

        print(f"✓ Database initialized successfully! ({len(missing)} tags seeded)")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
