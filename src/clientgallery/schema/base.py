"""Base class for table schemas.

A schema owns one table: its ``CREATE TABLE`` statement, indexes, triggers
and views, plus a ``validate()`` pass that reports structural and data
problems as human-readable strings.

Lifecycle::

    create()
      ├── CREATE TABLE IF NOT EXISTS ...
      ├── CREATE INDEX ...            (skipped when present)
      └── after_create()
            ├── DROP/CREATE TRIGGER ...
            └── CREATE VIEW ...
    drop()
      ├── DROP VIEW IF EXISTS ...
      ├── DROP TRIGGER IF EXISTS ...
      └── DROP TABLE IF EXISTS ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.errors import SchemaError
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import first_value
from clientgallery.core.tables import DEFAULT_PREFIX, table_name, validate_prefix

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IndexSpec:
    name: str
    columns: tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True, slots=True)
class TriggerSpec:
    name: str
    timing: str
    event: str
    body: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ViewSpec:
    name: str
    select: str


class BaseSchema(ABC):
    """Table definition bound to a connection, dialect and table prefix.

    Subclasses set ``TABLE`` (logical name from
    :data:`~clientgallery.core.tables.TABLES`) and ``REQUIRED_COLUMNS`` and
    implement :meth:`create_table_sql`.
    """

    TABLE: str = ""
    REQUIRED_COLUMNS: tuple[str, ...] = ("id", "created_at")

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)

    # -- Naming ------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return table_name(self.TABLE, self.prefix)

    def table(self, key: str) -> str:
        """Physical name of another table under the same prefix."""
        return table_name(key, self.prefix)

    def index_name(self, suffix: str) -> str:
        return f"idx_{self.table_name}_{suffix}"

    # -- DDL fragments -----------------------------------------------------

    def timestamp_columns(self) -> str:
        dt = self.dialect.datetime_type()
        default = self.dialect.timestamp_default_now()
        return f"created_at {dt} NOT NULL {default},\n    updated_at {dt} NOT NULL {default}"

    @abstractmethod
    def create_table_sql(self) -> str:
        """Full ``CREATE TABLE IF NOT EXISTS`` statement."""

    def indexes(self) -> list[IndexSpec]:
        return []

    def triggers(self) -> list[TriggerSpec]:
        return []

    def views(self) -> list[ViewSpec]:
        return []

    # -- Lifecycle ---------------------------------------------------------

    def create(self) -> bool:
        """Create table, indexes, triggers and views.

        Raises:
            SchemaError: Any statement failed; the transaction is rolled back.
        """
        try:
            self.conn.execute(self.create_table_sql())
            for index in self.indexes():
                if not self._exists(self.dialect.index_exists_query(), (self.table_name, index.name)):
                    self.conn.execute(
                        self.dialect.create_index(index.name, self.table_name, index.columns, unique=index.unique)
                    )
            self.after_create()
            self.conn.commit()
        except Exception as exc:
            self.conn.rollback()
            logger.error("schema.create_failed", table=self.table_name, error=str(exc))
            raise SchemaError(f"Failed to create table {self.table_name}: {exc}", cause=exc).with_context(
                table=self.table_name, schema=self.TABLE
            ) from exc
        logger.info("schema.created", table=self.table_name)
        return True

    def after_create(self) -> None:
        """Hook run after the table and indexes exist: triggers, then views."""
        for trigger in self.triggers():
            self.conn.execute(f"DROP TRIGGER IF EXISTS {trigger.name}")
            self.conn.execute(
                self.dialect.create_trigger(trigger.name, trigger.timing, trigger.event, self.table_name, trigger.body)
            )
        for view in self.views():
            self.conn.execute(self.dialect.create_view(view.name, view.select))

    def drop(self) -> bool:
        """Drop views, triggers and the table."""
        try:
            for view in self.views():
                self.conn.execute(f"DROP VIEW IF EXISTS {view.name}")
            for trigger in self.triggers():
                self.conn.execute(f"DROP TRIGGER IF EXISTS {trigger.name}")
            self.conn.execute(f"DROP TABLE IF EXISTS {self.table_name}")
            self.conn.commit()
        except Exception as exc:
            self.conn.rollback()
            logger.error("schema.drop_failed", table=self.table_name, error=str(exc))
            raise SchemaError(f"Failed to drop table {self.table_name}: {exc}", cause=exc).with_context(
                table=self.table_name, schema=self.TABLE
            ) from exc
        logger.info("schema.dropped", table=self.table_name)
        return True

    # -- Introspection -----------------------------------------------------

    def _exists(self, query: str, params: tuple) -> bool:
        return self.conn.execute(query, params).fetchone() is not None

    def _scalar(self, sql: str, params: tuple = ()) -> Any:
        return first_value(self.conn.execute(sql, params).fetchone())

    def exists(self) -> bool:
        return self._exists(self.dialect.table_exists_query(), (self.table_name,))

    def column_exists(self, column: str) -> bool:
        return self._exists(self.dialect.column_exists_query(), (self.table_name, column))

    def missing_columns(self) -> list[str]:
        return [c for c in self.REQUIRED_COLUMNS if not self.column_exists(c)]

    def view_exists(self, name: str) -> bool:
        return self._exists(self.dialect.view_exists_query(), (name,))

    def missing_views(self) -> list[str]:
        return [v.name for v in self.views() if not self.view_exists(v.name)]

    def count_rows(self) -> int:
        return int(self._scalar(f"SELECT COUNT(*) FROM {self.table_name}") or 0)

    # -- Validation --------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of problems; empty means the table is healthy."""
        if not self.exists():
            return [f"Table {self.table_name} does not exist"]
        missing = self.missing_columns()
        if missing:
            return [f"Table {self.table_name} is missing columns: {', '.join(missing)}"]
        issues = [f"View {name} does not exist" for name in self.missing_views()]
        return issues + self.check_data()

    def check_data(self) -> list[str]:
        """Per-table data checks; run only when the structure is intact."""
        return []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(table={self.table_name!r}, dialect={self.dialect.name!r})"
