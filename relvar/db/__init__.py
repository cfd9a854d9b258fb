"""The `db` module provides the tools to execute compiled relvars on an actual database.

The central entrypoint to all database interaction is the abstract `Database` class. Each `Database` instance executes
statements and hands out relvars for its physical tables. The headers of these tables are read from the metadata
catalog of the database system via the `DatabaseSchema`.

Currently, MySQL is the only supported system. To use it, import `mysql` from the `db` package and call its `connect`
function. Connected databases are registered on the `DatabasePool`, from which the shortcut method `current_database`
retrieves them.
"""
from __future__ import annotations

from ._db import (
    Cursor,
    Database,
    DatabasePool,
    DatabaseSchema,
    DatabaseServerError,
    DatabaseUserError,
    ResultRow,
    ResultSet,
    current_database,
    simplify_result_set,
)

__all__ = [
    "Cursor",
    "ResultRow",
    "ResultSet",
    "Database",
    "DatabaseSchema",
    "DatabasePool",
    "DatabaseServerError",
    "DatabaseUserError",
    "current_database",
    "simplify_result_set",
]
