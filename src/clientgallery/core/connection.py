"""
Database connection factory and adapters.

``create_connection()`` turns a URL, path or keyword into a
:class:`~clientgallery.core.protocols.Connection` plus a
:class:`ConnectionInfo`, and :func:`dialect_for` picks the matching
:class:`~clientgallery.core.dialect.Dialect`.

Supported targets::

    None / "memory" / ":memory:"     in-memory SQLite (tests)
    "gallery.db"                     SQLite file (relative to data_dir)
    "sqlite:///path/to/gallery.db"   SQLite file
    "mysql+pymysql://u:p@host/db"    MySQL through SQLAlchemy

Examples:
    >>> conn, info = create_connection()
    >>> info.backend
    'sqlite'
    >>> dialect_for(info).name
    'sqlite'

Tags:
    connection, database, sqlite, mysql, sqlalchemy, factory, clientgallery
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from clientgallery.core.dialect import Dialect, get_dialect
from clientgallery.core.errors import DatabaseError
from clientgallery.core.logging import get_logger

logger = get_logger(__name__)


# ── Adapters ─────────────────────────────────────────────────────────────


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Rows come back as :class:`sqlite3.Row` so repositories can ``dict()``
    them, and foreign keys are enforced so ``ON DELETE CASCADE`` works.
    """

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        cursor = self._conn.cursor()
        cursor.execute(sql, params)
        self._cursor = cursor
        return cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        cursor = self._conn.cursor()
        cursor.executemany(sql, params)
        self._cursor = cursor
        return cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"


class _ResultCursor:
    """DB-API cursor look-alike over a SQLAlchemy ``CursorResult``."""

    def __init__(self, result: Any) -> None:
        self._result = result
        self._returns_rows = bool(getattr(result, "returns_rows", False))

    def fetchone(self) -> dict[str, Any] | None:
        if not self._returns_rows:
            return None
        row = self._result.fetchone()
        return dict(row._mapping) if row is not None else None

    def fetchall(self) -> list[dict[str, Any]]:
        if not self._returns_rows:
            return []
        return [dict(row._mapping) for row in self._result.fetchall()]

    @property
    def lastrowid(self) -> int | None:
        return getattr(self._result, "lastrowid", None)

    @property
    def rowcount(self) -> int:
        return self._result.rowcount

    @property
    def description(self) -> list[tuple] | None:
        if not self._returns_rows:
            return None
        return [(k, None, None, None, None, None, None) for k in self._result.keys()]


class SqlAlchemyConnection:
    """Adapter: SQLAlchemy ``Session`` → ``Connection`` protocol.

    Repositories emit ``%s`` placeholders for MySQL; they are rewritten to
    named ``:pN`` binds for :func:`sqlalchemy.text`.
    """

    _PLACEHOLDER = re.compile(r"%s|\?")

    def __init__(self, session: Any) -> None:
        self._session = session
        self._last: _ResultCursor | None = None

    def _bind(self, sql: str, params: tuple) -> tuple[Any, dict[str, Any]]:
        from sqlalchemy import text

        counter = iter(range(len(params)))
        rewritten = self._PLACEHOLDER.sub(lambda _m: f":p{next(counter)}", sql)
        return text(rewritten), {f"p{i}": v for i, v in enumerate(params)}

    def execute(self, sql: str, params: tuple = ()) -> _ResultCursor:
        stmt, binds = self._bind(sql, tuple(params))
        self._last = _ResultCursor(self._session.execute(stmt, binds))
        return self._last

    def executemany(self, sql: str, params: list[tuple]) -> _ResultCursor | None:
        for row in params:
            self.execute(sql, row)
        return self._last

    def fetchone(self) -> Any:
        return self._last.fetchone() if self._last else None

    def fetchall(self) -> list:
        return self._last.fetchall() if self._last else []

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()

    @property
    def session(self) -> Any:
        """Access the underlying SQLAlchemy session."""
        return self._session


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    """Backend identifier: ``"sqlite"`` or ``"mysql"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the connection."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def is_mysql(self) -> bool:
        return self.backend == "mysql"


# ── Backend factories ────────────────────────────────────────────────────


def _create_sqlite_memory() -> tuple[SqliteConnection, ConnectionInfo]:
    conn = SqliteConnection(":memory:")
    return conn, ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")


def _create_sqlite_file(path_str: str) -> tuple[SqliteConnection, ConnectionInfo]:
    path = Path(path_str)
    path.parent.mkdir(parents=True, exist_ok=True)
    resolved = str(path.resolve())
    conn = SqliteConnection(resolved)
    return conn, ConnectionInfo(
        backend="sqlite",
        persistent=True,
        url=path_str,
        resolved_path=resolved,
    )


def _create_mysql(url: str) -> tuple[SqlAlchemyConnection, ConnectionInfo]:
    from sqlalchemy import create_engine
    from sqlalchemy.exc import SQLAlchemyError
    from sqlalchemy.orm import Session

    try:
        engine = create_engine(url, pool_pre_ping=True)
        session = Session(bind=engine)
    except (SQLAlchemyError, ImportError) as exc:
        raise DatabaseError(f"Cannot connect to MySQL: {exc}", cause=exc) from exc
    return SqlAlchemyConnection(session), ConnectionInfo(backend="mysql", persistent=True, url=url)


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``.

    ``scheme`` is one of ``"memory"``, ``"sqlite"``, ``"mysql"``, ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    if db.startswith(("mysql://", "mysql+", "mariadb://", "mariadb+")):
        if "+" not in db.split("://", 1)[0]:
            db = "mysql+pymysql://" + db.split("://", 1)[1]
        return "mysql", db

    return "file", db


# ── Main factory ─────────────────────────────────────────────────────────


def create_connection(
    db: str | None = None,
    *,
    data_dir: str | Path | None = None,
) -> tuple[Any, ConnectionInfo]:
    """Create a database connection from a URL, path or keyword.

    Parameters
    ----------
    db:
        ``None``/``"memory"`` for in-memory SQLite, a file path,
        ``sqlite:///...`` or ``mysql[+driver]://...``.
    data_dir:
        Base directory for relative SQLite paths.

    Raises
    ------
    DatabaseError
        The MySQL engine could not be created.
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn, info = _create_sqlite_memory()
    elif scheme in ("sqlite", "file"):
        if data_dir and not Path(target).is_absolute():
            target = str(Path(data_dir) / target)
        conn, info = _create_sqlite_file(target)
    else:
        conn, info = _create_mysql(target)

    logger.debug("connection.created", backend=info.backend, persistent=info.persistent)
    return conn, info


def dialect_for(info: ConnectionInfo) -> Dialect:
    """Return the dialect matching a connection's backend."""
    return get_dialect(info.backend)


__all__ = [
    "ConnectionInfo",
    "SqlAlchemyConnection",
    "SqliteConnection",
    "create_connection",
    "dialect_for",
]
