"""Base repository with dialect-aware database access.

Provides :class:`BaseRepository`, an abstract base class that pairs a
:class:`~clientgallery.core.protocols.Connection` with a
:class:`~clientgallery.core.dialect.Dialect` and a table prefix, so entity
repositories write portable SQL against prefixed table names.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn / dialect / prefix                                          │
    │   TABLE, FILLABLE, JSON_FIELDS, CASTS    ← per subclass            │
    │                                                                    │
    │   execute / query / query_one / scalar   ← raw helpers             │
    │   find_by_id / find_all / find_by        → cast dict rows          │
    │   create / update / delete / delete_many                           │
    │   transaction()                          ← nesting-aware           │
    └────────────────────────────────────────────────────────────────────┘

Write helpers commit immediately unless a :meth:`BaseRepository.transaction`
is open, in which case the outermost block commits or rolls back.

Usage:
    >>> class TagRepository(BaseRepository):
    ...     TABLE = "tags"
    ...     FILLABLE = ("name",)
    >>> with repo.transaction():
    ...     repo.create({"name": "a"})
    ...     repo.create({"name": "b"})

Tags:
    repository, database, abstraction, portability
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, ClassVar

from sqlalchemy import exc as sa_exc

from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.errors import IntegrityError, QueryError
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import first_value, rows_to_dicts
from clientgallery.core.tables import DEFAULT_PREFIX, table_name, validate_prefix
from clientgallery.core.timestamps import db_now, from_db

from ._helpers import _build_where, _safe_order

logger = get_logger(__name__)

_INTEGRITY_ERRORS = (sqlite3.IntegrityError, sa_exc.IntegrityError)
_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


class BaseRepository(ABC):
    """Dialect-aware base class for the entity repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use. Defaults to :class:`SQLiteDialect`.
        prefix: Table prefix (``wp_mlcg_`` by default).
    """

    TABLE: ClassVar[str] = ""
    FILLABLE: ClassVar[tuple[str, ...]] = ()
    JSON_FIELDS: ClassVar[tuple[str, ...]] = ()
    CASTS: ClassVar[dict[str, str]] = {}
    HAS_UPDATED_AT: ClassVar[bool] = True

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)
        self._tx_depth = 0

    @property
    def table_name(self) -> str:
        return table_name(self.TABLE, self.prefix)

    def table(self, key: str) -> str:
        return table_name(key, self.prefix)

    # -- Convenience shortcuts ---------------------------------------------

    def ph(self, count: int) -> str:
        """Shortcut for ``self.dialect.placeholders(count)``.

        Embed directly in f-strings:

            f"SELECT * FROM t WHERE id = {self.ph(1)}"
        """
        return self.dialect.placeholders(count)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        return self.conn.execute(sql, params)

    def execute_many(self, sql: str, params: list[tuple]) -> Any:
        """Execute a statement with multiple parameter sets."""
        return self.conn.executemany(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""
        cursor = self.conn.execute(sql, params)
        return rows_to_dicts(cursor, cursor.fetchall())

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        """First column of the first row, or ``None``."""
        return first_value(self.conn.execute(sql, params).fetchone())

    # -- Insert helpers ----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> Any:
        """Insert a single row from a dict."""
        columns = list(data.keys())
        values = list(data.values())
        ph = self.dialect.placeholders(len(values))
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({ph})"
        return self.conn.execute(sql, tuple(values))

    def insert_many(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert multiple rows from a list of dicts. Returns the row count."""
        if not rows:
            return 0

        columns = list(rows[0].keys())
        ph = self.dialect.placeholders(len(columns))
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({ph})"
        params = [tuple(row[col] for col in columns) for row in rows]
        self.conn.executemany(sql, params)
        return len(rows)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    # -- Transactions ------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextmanager
    def transaction(self) -> Iterator[BaseRepository]:
        """Group writes; the outermost block commits, or rolls back and re-raises."""
        self._tx_depth += 1
        try:
            yield self
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.rollback()
                logger.warning("repository.transaction_rolled_back", table=self.table_name)
            raise
        self._tx_depth -= 1
        if self._tx_depth == 0:
            self.conn.commit()

    def _autocommit(self) -> None:
        if not self.in_transaction:
            self.conn.commit()

    def _fail(self, operation: str, exc: Exception) -> None:
        """Roll back a failed standalone write; inside a transaction, re-raise."""
        if self.in_transaction:
            raise exc
        self.conn.rollback()
        logger.error(f"repository.{operation}_failed", table=self.table_name, error=str(exc))

    # -- Row shaping -------------------------------------------------------

    def filter_fillable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        if not self.FILLABLE:
            return dict(data)
        return {k: v for k, v in data.items() if k in self.FILLABLE or k in _TIMESTAMP_COLUMNS}

    def encode(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """JSON-encode ``JSON_FIELDS`` and turn bools into 0/1."""
        out: dict[str, Any] = {}
        for key, value in data.items():
            if key in self.JSON_FIELDS and value is not None and not isinstance(value, str):
                value = json.dumps(value)
            elif isinstance(value, bool):
                value = 1 if value else 0
            out[key] = value
        return out

    def cast_row(self, row: Mapping[str, Any] | None) -> dict[str, Any] | None:
        """Apply ``CASTS`` and decode ``JSON_FIELDS`` on a fetched row."""
        if row is None:
            return None
        out = dict(row)
        for key in self.JSON_FIELDS:
            value = out.get(key)
            if isinstance(value, str | bytes):
                try:
                    out[key] = json.loads(value) if value else None
                except ValueError:
                    logger.warning("repository.invalid_json", table=self.table_name, column=key)
        for key, kind in self.CASTS.items():
            value = out.get(key)
            if value is None:
                continue
            if kind == "int":
                out[key] = int(value)
            elif kind == "float":
                out[key] = float(value)
            elif kind == "bool":
                out[key] = bool(int(value))
            elif kind == "datetime":
                out[key] = from_db(value)
            elif kind == "json" and isinstance(value, str | bytes):
                out[key] = json.loads(value) if value else None
        return out

    def cast_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        return [r for r in (self.cast_row(row) for row in rows) if r is not None]

    # -- Generic CRUD ------------------------------------------------------

    def find_by_id(self, id: int) -> dict[str, Any] | None:
        return self.cast_row(self.query_one(f"SELECT * FROM {self.table_name} WHERE id = {self.ph(1)}", (id,)))

    def find_all(
        self,
        where: Mapping[str, Any] | None = None,
        order_by: str = "id DESC",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        clause, params = _build_where(dict(where or {}), self.ph)
        sql = f"SELECT * FROM {self.table_name} WHERE {clause} ORDER BY {_safe_order(order_by)}"
        if limit is not None:
            sql += f" LIMIT {self.ph(1)} OFFSET {self.ph(1)}"
            params = (*params, int(limit), int(offset))
        return self.cast_rows(self.query(sql, params))

    def find_by(
        self,
        criteria: Mapping[str, Any],
        order_by: str = "id DESC",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Rows matching every criterion; list values become ``IN``."""
        return self.find_all(criteria, order_by=order_by, limit=limit)

    def find_one_by(self, criteria: Mapping[str, Any]) -> dict[str, Any] | None:
        rows = self.find_all(criteria, limit=1)
        return rows[0] if rows else None

    def count(self, where: Mapping[str, Any] | None = None) -> int:
        clause, params = _build_where(dict(where or {}), self.ph)
        return int(self.scalar(f"SELECT COUNT(*) FROM {self.table_name} WHERE {clause}", params) or 0)

    def exists(self, id: int) -> bool:
        return self.scalar(f"SELECT 1 FROM {self.table_name} WHERE id = {self.ph(1)}", (id,)) is not None

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Hook for subclasses to derive or validate columns before insert."""
        return dict(data)

    def prepare_update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return dict(data)

    def create(self, data: Mapping[str, Any]) -> int:
        """Insert a row and return its id (0 on failure).

        Raises:
            IntegrityError: A unique or foreign-key constraint rejected the row.
        """
        row = self.encode(self.filter_fillable(self.prepare_create(data)))
        now = db_now()
        row.setdefault("created_at", now)
        if self.HAS_UPDATED_AT:
            row.setdefault("updated_at", now)
        try:
            cursor = self.insert(self.table_name, row)
            self._autocommit()
        except _INTEGRITY_ERRORS as exc:
            if not self.in_transaction:
                self.conn.rollback()
            raise IntegrityError(f"Constraint violation on {self.table_name}: {exc}", cause=exc).with_context(
                table=self.table_name, operation="create"
            ) from exc
        except Exception as exc:
            self._fail("create", exc)
            return 0
        return int(getattr(cursor, "lastrowid", 0) or 0)

    def update(self, id: int, data: Mapping[str, Any]) -> bool:
        """Update columns of one row; True when a row changed."""
        row = self.encode(self.filter_fillable(self.prepare_update(data)))
        if self.HAS_UPDATED_AT:
            row["updated_at"] = db_now()
        if not row:
            return False
        sets = ", ".join(f"{col} = {self.ph(1)}" for col in row)
        try:
            cursor = self.execute(
                f"UPDATE {self.table_name} SET {sets} WHERE id = {self.ph(1)}",
                (*row.values(), id),
            )
            self._autocommit()
        except _INTEGRITY_ERRORS as exc:
            if not self.in_transaction:
                self.conn.rollback()
            raise IntegrityError(f"Constraint violation on {self.table_name}: {exc}", cause=exc).with_context(
                table=self.table_name, entity_id=id, operation="update"
            ) from exc
        except Exception as exc:
            self._fail("update", exc)
            return False
        return (cursor.rowcount or 0) > 0

    def delete(self, id: int) -> bool:
        try:
            cursor = self.execute(f"DELETE FROM {self.table_name} WHERE id = {self.ph(1)}", (id,))
            self._autocommit()
        except Exception as exc:
            self._fail("delete", exc)
            return False
        return (cursor.rowcount or 0) > 0

    def delete_many(self, ids: Iterable[int]) -> int:
        """Delete rows by id in one transaction; returns the number removed."""
        id_list = list(ids)
        if not id_list:
            return 0
        with self.transaction():
            cursor = self.execute(
                f"DELETE FROM {self.table_name} WHERE id IN ({self.ph(len(id_list))})",
                tuple(id_list),
            )
        return max(cursor.rowcount or 0, 0)

    def table_exists(self) -> bool:
        return self.conn.execute(self.dialect.table_exists_query(), (self.table_name,)).fetchone() is not None

    def _run(self, sql: str, params: tuple = (), *, operation: str) -> int:
        """Execute a write inside the current transaction (or autocommit); returns rowcount."""
        try:
            cursor = self.execute(sql, params)
            self._autocommit()
        except Exception as exc:
            if not self.in_transaction:
                self.conn.rollback()
            raise QueryError(f"{operation} failed on {self.table_name}: {exc}", cause=exc).with_context(
                table=self.table_name, operation=operation
            ) from exc
        return max(cursor.rowcount or 0, 0)

    @abstractmethod
    def get_statistics(self) -> dict[str, Any]:
        """Table-specific summary numbers."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(table={self.table_name!r})"


__all__ = ["BaseRepository"]
