"""Database subsystem for domainproof.

Public API::

    from domainproof.db import init_database
"""

from domainproof.db.init import (
    REQUIRED_TABLES,
    check_connectivity,
    init_database,
    missing_tables,
)

__all__ = [
    "REQUIRED_TABLES",
    "check_connectivity",
    "init_database",
    "missing_tables",
]
