"""Script to run database migrations."""

import sys

import structlog
from alembic import command
from alembic.config import Config

from app.config import settings
from app.middleware.logging import configure_logging

logger = structlog.get_logger()


def _alembic_config() -> Config:
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", settings.async_database_url)
    return alembic_cfg


def run_migrations(revision: str = "head") -> None:
    """Upgrade the schema to ``revision``."""
    try:
        logger.info("migrations_started", revision=revision)
        command.upgrade(_alembic_config(), revision)
        logger.info("migrations_completed", revision=revision)
    except Exception as e:
        logger.error("migrations_failed", revision=revision, error=str(e))
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Downgrade the schema to ``revision``."""
    try:
        command.downgrade(_alembic_config(), revision)
        logger.info("downgrade_completed", revision=revision)
    except Exception as e:
        logger.error("downgrade_failed", revision=revision, error=str(e))
        sys.exit(1)


def create_migration(message: str) -> None:
    """Create a new migration."""
    try:
        command.revision(_alembic_config(), message=message, autogenerate=True)
        logger.info("migration_created", message=message)
    except Exception as e:
        logger.error("migration_creation_failed", message=message, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    configure_logging()
    if len(sys.argv) > 2 and sys.argv[1] == "create":
        create_migration(" ".join(sys.argv[2:]))
    elif len(sys.argv) == 3 and sys.argv[1] == "downgrade":
        downgrade(sys.argv[2])
    elif len(sys.argv) == 1:
        run_migrations()
    else:
        print("Usage: python scripts/migrate.py [create <message> | downgrade <revision>]")
