"""Helpers for reading driver rows.

Rows arrive as ``sqlite3.Row``, plain tuples or dicts (SQLAlchemy bridge)
depending on the connection.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def first_value(row: Any) -> Any:
    """First column of a row, or ``None`` for no row."""
    if row is None:
        return None
    if isinstance(row, Mapping):
        return next(iter(row.values()), None)
    return row[0]


def rows_to_dicts(cursor: Any, rows: list[Any]) -> list[dict[str, Any]]:
    """Convert fetched rows to dicts using ``cursor.description`` when needed."""
    if not rows:
        return []
    # sqlite3.Row and mapping rows both expose keys()
    if hasattr(rows[0], "keys"):
        return [dict(row) for row in rows]
    if getattr(cursor, "description", None):
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]
    return [{i: v for i, v in enumerate(row)} for row in rows]
