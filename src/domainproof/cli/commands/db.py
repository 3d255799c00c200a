"""Database management subcommands."""

from __future__ import annotations

import sys


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    else:
        sys.stderr.write("usage: domainproof -c CONFIG db status\n")
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and that the schema tables exist."""
    from domainproof.db import (  # noqa: PLC0415
        REQUIRED_TABLES,
        check_connectivity,
        init_database,
        missing_tables,
    )

    db = init_database(config.settings.database)
    if not check_connectivity(db):
        sys.stdout.write("database: unreachable\n")
        sys.exit(1)

    missing = missing_tables(db)
    present = len(REQUIRED_TABLES) - len(missing)
    sys.stdout.write(f"database: ok\nschema:   {present}/{len(REQUIRED_TABLES)} tables present\n")
    if missing:
        sys.stdout.write(f"missing:  {', '.join(missing)}\n")
        sys.exit(1)
