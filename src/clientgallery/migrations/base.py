"""Base class for versioned schema migrations.

A migration alters existing tables (``up``) and knows how to revert the
change (``down``). Helpers are idempotent where the operation allows it:
``add_column`` is a no-op when the column already exists, ``drop_column``
when it is already gone, and so on, so a half-applied migration can be
re-run safely.

Example::

    class AddWatermarkFlag(BaseMigration):
        version = "1.2.0"
        description = "Add watermark flag to galleries"

        def up(self) -> bool:
            return self.add_column(self.table("galleries"), "watermark", "SMALLINT NOT NULL DEFAULT 0")

        def down(self) -> bool:
            return self.drop_column(self.table("galleries"), "watermark")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.errors import MigrationError
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import first_value
from clientgallery.core.tables import DEFAULT_PREFIX, table_name, validate_prefix
from clientgallery.core.timestamps import utc_now

logger = get_logger(__name__)


@dataclass
class PrerequisiteResult:
    valid: bool = True
    messages: list[str] = field(default_factory=list)


class BaseMigration(ABC):
    """One schema change with up/down semantics."""

    version: str = ""
    description: str = ""

    def __init__(
        self,
        conn: Connection | None = None,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)

    def bind(self, conn: Connection, dialect: Dialect, prefix: str) -> BaseMigration:
        """Attach the migration to a connection (done by the manager)."""
        self._conn = conn
        self.dialect = dialect
        self.prefix = validate_prefix(prefix)
        return self

    @property
    def conn(self) -> Connection:
        if self._conn is None:
            raise MigrationError(f"Migration {self.version} is not bound to a connection").with_context(
                migration=self.version
            )
        return self._conn

    @property
    def name(self) -> str:
        return self.description or f"Migration {self.version}"

    def table(self, key: str) -> str:
        return table_name(key, self.prefix)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    def up(self) -> bool:
        """Apply the change."""

    @abstractmethod
    def down(self) -> bool:
        """Revert the change."""

    def can_rollback(self) -> bool:
        return True

    def warnings(self) -> list[str]:
        return []

    def validate_prerequisites(self) -> PrerequisiteResult:
        return PrerequisiteResult()

    def log(self, event: str, **fields: Any) -> None:
        logger.info(event, migration=self.version, **fields)

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    def execute_sql(self, sql: str, params: tuple = ()) -> Any:
        return self.conn.execute(sql, params)

    def _exists(self, query: str, params: tuple) -> bool:
        return self.conn.execute(query, params).fetchone() is not None

    def table_exists(self, table: str) -> bool:
        return self._exists(self.dialect.table_exists_query(), (table,))

    def column_exists(self, table: str, column: str) -> bool:
        return self._exists(self.dialect.column_exists_query(), (table, column))

    def index_exists(self, table: str, index: str) -> bool:
        return self._exists(self.dialect.index_exists_query(), (table, index))

    def add_column(self, table: str, column: str, definition: str) -> bool:
        if self.column_exists(table, column):
            self.log("migration.column_exists", table=table, column=column)
            return True
        self.execute_sql(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
        self.log("migration.column_added", table=table, column=column)
        return True

    def drop_column(self, table: str, column: str) -> bool:
        if not self.column_exists(table, column):
            return True
        self.execute_sql(f"ALTER TABLE {table} DROP COLUMN {column}")
        self.log("migration.column_dropped", table=table, column=column)
        return True

    def modify_column(self, table: str, column: str, definition: str) -> bool:
        if not self.column_exists(table, column):
            raise MigrationError(f"Column {table}.{column} does not exist").with_context(
                migration=self.version, table=table
            )
        self.execute_sql(self.dialect.modify_column(table, column, definition))
        return True

    def add_index(self, table: str, name: str, columns: Sequence[str], *, unique: bool = False) -> bool:
        if self.index_exists(table, name):
            return True
        self.execute_sql(self.dialect.create_index(name, table, columns, unique=unique))
        return True

    def drop_index(self, table: str, name: str) -> bool:
        if not self.index_exists(table, name):
            return True
        self.execute_sql(self.dialect.drop_index(table, name))
        return True

    def create_table(self, table: str, columns_sql: str) -> bool:
        self.execute_sql(f"CREATE TABLE IF NOT EXISTS {table} ({columns_sql}){self.dialect.table_options()}")
        return True

    def drop_table(self, table: str) -> bool:
        self.execute_sql(f"DROP TABLE IF EXISTS {table}")
        return True

    def rename_table(self, old: str, new: str) -> bool:
        if not self.table_exists(old):
            raise MigrationError(f"Table {old} does not exist").with_context(migration=self.version, table=old)
        self.execute_sql(f"ALTER TABLE {old} RENAME TO {new}")
        return True

    def copy_data(self, source: str, target: str, column_mapping: Mapping[str, str]) -> int:
        """Copy rows between tables; ``column_mapping`` maps source → target columns."""
        if not column_mapping:
            return 0
        src_cols = ", ".join(column_mapping.keys())
        tgt_cols = ", ".join(column_mapping.values())
        cursor = self.execute_sql(f"INSERT INTO {target} ({tgt_cols}) SELECT {src_cols} FROM {source}")
        return max(getattr(cursor, "rowcount", 0) or 0, 0)

    def update_data(self, table: str, values: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        ph = self.dialect.placeholder(0)
        set_clause = ", ".join(f"{col} = {ph}" for col in values)
        where_clause = " AND ".join(f"{col} = {ph}" for col in where) or "1=1"
        cursor = self.execute_sql(
            f"UPDATE {table} SET {set_clause} WHERE {where_clause}",
            tuple(values.values()) + tuple(where.values()),
        )
        return max(getattr(cursor, "rowcount", 0) or 0, 0)

    def row_count(self, table: str) -> int:
        return int(first_value(self.execute_sql(f"SELECT COUNT(*) FROM {table}").fetchone()) or 0)

    def backup_table(self, table: str) -> str:
        """Copy ``table`` into ``{table}_backup_YYYYmmddHHMMSS`` and return its name."""
        backup = f"{table}_backup_{utc_now().strftime('%Y%m%d%H%M%S')}"
        self.execute_sql(f"CREATE TABLE {backup} AS SELECT * FROM {table}")
        self.log("migration.table_backed_up", table=table, backup=backup)
        return backup

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(version={self.version!r})"
