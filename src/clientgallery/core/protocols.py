"""
Database connection protocol.

Schemas, migrations and repositories only depend on this shape, so the same
code runs on an in-memory SQLite database in tests and on MySQL through the
SQLAlchemy bridge in production.

Tags:
    protocol, connection, database, clientgallery
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface.

    ``execute`` returns a cursor-like object exposing ``fetchone``,
    ``fetchall``, ``lastrowid``, ``rowcount`` and ``description``.

    Implementations:
        - ``sqlite3.Connection`` (native)
        - :class:`~clientgallery.core.connection.SqliteConnection`
        - :class:`~clientgallery.core.connection.SqlAlchemyConnection`

    Examples:
        >>> cursor = conn.execute("SELECT * FROM wp_mlcg_galleries WHERE id = ?", (1,))
        >>> row = cursor.fetchone()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = ["Connection"]
