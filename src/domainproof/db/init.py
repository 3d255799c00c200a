"""Database bootstrap for domainproof.

Usage::

    from domainproof.db import init_database

    db = init_database(get_config().settings.database)

With ``database.auto_setup`` on, the bundled ``schema.sql`` (mappings,
challenges, alerts and their indexes) is applied at start-up.  Without
it the tables are expected to exist; :func:`missing_tables` reports the
ones that do not.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from domainproof.config.settings import DatabaseSettings

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

REQUIRED_TABLES = (
    "domain_mappings",
    "domain_verification_challenges",
    "domain_challenge_alerts",
)

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    return DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def init_database(settings: DatabaseSettings) -> Database:
    """Return the process-wide :class:`Database`, creating it on first use."""
    if Database.is_initialized():
        return Database.get_instance()

    log.info(
        "Connecting to %s@%s:%s/%s (pool %d-%d, auto_setup=%s)",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
        settings.min_connections,
        settings.max_connections,
        settings.auto_setup,
    )
    db = Database.init(
        config=_settings_to_config(settings),
        schema_path=SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )

    if not settings.auto_setup:
        missing = missing_tables(db)
        if missing:
            log.warning(
                "Tables missing and database.auto_setup is off: %s",
                ", ".join(missing),
            )
    return db


def missing_tables(db: Database) -> list[str]:
    """Return the required tables absent from the ``public`` schema."""
    rows = db.fetch_all(
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = 'public' AND table_name = ANY(%s)",
        (list(REQUIRED_TABLES),),
        as_dict=True,
    )
    present = {r["table_name"] for r in rows}
    return [t for t in REQUIRED_TABLES if t not in present]


def check_connectivity(db: Database) -> bool:
    """Return True if ``SELECT 1`` succeeds."""
    try:
        return db.fetch_value("SELECT 1") == 1
    except Exception:
        log.exception("Database connectivity check failed")
        return False
