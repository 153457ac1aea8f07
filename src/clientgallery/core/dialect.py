"""SQL dialect abstraction for backend-agnostic schemas and repositories.

Provides a ``Dialect`` protocol and concrete implementations for SQLite
(tests, single-file installs) and MySQL (production host database).
Schemas, migrations and repositories use ``Dialect`` methods to generate
SQL fragments (placeholders, timestamps, column types, triggers, views,
introspection queries) without referencing a specific driver.

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    Schemas / Repositories:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = f"SELECT * FROM t WHERE id = {d.placeholder(0)}"        │
    │  ddl = f"status {d.enum_type('status', STATUSES)} NOT NULL"    │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
              ┌────────────────────┐  ┌────────────────────┐
              │ SQLite             │  │ MySQL              │
              │ ?, ?, ?            │  │ %s, %s             │
              │ datetime('now')    │  │ NOW()              │
              │ TEXT CHECK (IN ..) │  │ ENUM(...)          │
              └────────────────────┘  └────────────────────┘

Examples:
    >>> from clientgallery.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.enum_type("status", ["draft", "published"])
    "TEXT CHECK (status IN ('draft', 'published'))"

Guardrails:
    ❌ DON'T: Write backend-specific SQL in repositories
    ✅ DO: Use Dialect methods for placeholders, types and DDL

Tags:
    dialect, sql, abstraction, portability, database, clientgallery

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


def _quote_values(values: Sequence[str]) -> str:
    return ", ".join("'" + v.replace("'", "''") + "'" for v in values)


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** or statement valid for the
    target database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    # -- Placeholder generation --------------------------------------------

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    # -- Timestamp expressions ---------------------------------------------

    def now(self) -> str:
        """SQL expression for current UTC timestamp."""
        ...

    def interval(self, value: int, unit: str) -> str:
        """SQL expression for ``now`` shifted by ``value`` ``unit``s.

        ``unit`` is one of ``'seconds'``, ``'minutes'``, ``'hours'``,
        ``'days'``.
        """
        ...

    def hour_of(self, column: str) -> str:
        """Integer hour (0-23) of a timestamp column."""
        ...

    # -- DML helpers -------------------------------------------------------

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """``INSERT`` that silently skips duplicate keys."""
        ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """``INSERT`` that updates non-key columns on a duplicate key."""
        ...

    # -- DDL helpers -------------------------------------------------------

    def auto_increment(self) -> str:
        """Full column type for an auto-incrementing integer primary key."""
        ...

    def timestamp_default_now(self) -> str:
        """``DEFAULT`` clause for a timestamp column."""
        ...

    def datetime_type(self) -> str:
        """Column type for timestamps."""
        ...

    def json_type(self) -> str:
        """Column type for JSON documents."""
        ...

    def enum_type(self, column: str, values: Sequence[str]) -> str:
        """Column type restricted to ``values``."""
        ...

    def table_options(self) -> str:
        """Trailing ``CREATE TABLE`` options (engine, charset)."""
        ...

    def create_index(self, name: str, table: str, columns: Sequence[str], *, unique: bool = False) -> str:
        """``CREATE INDEX`` statement."""
        ...

    def drop_index(self, table: str, name: str) -> str:
        """``DROP INDEX`` statement."""
        ...

    def create_view(self, name: str, select: str) -> str:
        """``CREATE VIEW`` statement."""
        ...

    def create_table_like(self, name: str, source: str) -> str:
        """Create an empty table ``name`` with the columns of ``source`` if absent."""
        ...

    def create_trigger(self, name: str, timing: str, event: str, table: str, body: Sequence[str]) -> str:
        """``CREATE TRIGGER`` statement running ``body`` for each row."""
        ...

    def modify_column(self, table: str, column: str, definition: str) -> str:
        """``ALTER TABLE`` statement changing a column definition."""
        ...

    def optimize_table(self, table: str) -> str:
        """Statement refreshing table statistics / reclaiming space."""
        ...

    # -- Booleans ----------------------------------------------------------

    def boolean_true(self) -> str:
        """Literal SQL value for boolean ``True``."""
        ...

    def boolean_false(self) -> str:
        """Literal SQL value for boolean ``False``."""
        ...

    # -- Introspection -----------------------------------------------------

    def table_exists_query(self) -> str:
        """Query with one placeholder (table) returning rows if it exists."""
        ...

    def view_exists_query(self) -> str:
        """Query with one placeholder (view) returning rows if it exists."""
        ...

    def column_exists_query(self) -> str:
        """Query with two placeholders (table, column)."""
        ...

    def index_exists_query(self) -> str:
        """Query with two placeholders (table, index)."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``datetime('now')``."""

    @property
    def name(self) -> str:
        return "sqlite"

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    # -- Timestamps --------------------------------------------------------

    def now(self) -> str:
        return "datetime('now')"

    def interval(self, value: int, unit: str) -> str:
        return f"datetime('now', '{value} {unit}')"

    def hour_of(self, column: str) -> str:
        return f"CAST(strftime('%H', {column}) AS INTEGER)"

    # -- DML ---------------------------------------------------------------

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(key_columns)
        update_cols = [c for c in columns if c not in key_columns]
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )

    # -- DDL ---------------------------------------------------------------

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def timestamp_default_now(self) -> str:
        return "DEFAULT (datetime('now'))"

    def datetime_type(self) -> str:
        return "TEXT"

    def json_type(self) -> str:
        return "TEXT"

    def enum_type(self, column: str, values: Sequence[str]) -> str:
        return f"TEXT CHECK ({column} IN ({_quote_values(values)}))"

    def table_options(self) -> str:
        return ""

    def create_index(self, name: str, table: str, columns: Sequence[str], *, unique: bool = False) -> str:
        kind = "UNIQUE INDEX" if unique else "INDEX"
        return f"CREATE {kind} IF NOT EXISTS {name} ON {table} ({', '.join(columns)})"

    def drop_index(self, table: str, name: str) -> str:  # noqa: ARG002
        return f"DROP INDEX IF EXISTS {name}"

    def create_view(self, name: str, select: str) -> str:
        return f"CREATE VIEW IF NOT EXISTS {name} AS {select}"

    def create_table_like(self, name: str, source: str) -> str:
        return f"CREATE TABLE IF NOT EXISTS {name} AS SELECT * FROM {source} WHERE 0"

    def create_trigger(self, name: str, timing: str, event: str, table: str, body: Sequence[str]) -> str:
        statements = " ".join(f"{stmt.rstrip(';')};" for stmt in body)
        return (
            f"CREATE TRIGGER IF NOT EXISTS {name} {timing} {event} ON {table} "
            f"FOR EACH ROW BEGIN {statements} END"
        )

    def modify_column(self, table: str, column: str, definition: str) -> str:
        raise NotImplementedError(
            f"SQLite cannot change the definition of {table}.{column}; rebuild the table instead"
        )

    def optimize_table(self, table: str) -> str:
        return f"ANALYZE {table}"

    # -- Booleans ----------------------------------------------------------

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"

    # -- Introspection -----------------------------------------------------

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name = ?"

    def view_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='view' AND name = ?"

    def column_exists_query(self) -> str:
        return "SELECT name FROM pragma_table_info(?) WHERE name = ?"

    def index_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name = ? AND name = ?"


class MySQLDialect:
    """MySQL / MariaDB dialect: ``%s`` placeholders, ``NOW()``."""

    @property
    def name(self) -> str:
        return "mysql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def now(self) -> str:
        return "NOW()"

    def interval(self, value: int, unit: str) -> str:
        mysql_unit = unit.upper().rstrip("S")
        if value < 0:
            return f"NOW() - INTERVAL {abs(value)} {mysql_unit}"
        return f"NOW() + INTERVAL {value} {mysql_unit}"

    def hour_of(self, column: str) -> str:
        return f"HOUR({column})"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        update_cols = [c for c in columns if c not in key_columns]
        updates = ", ".join(f"{c} = VALUES({c})" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTO_INCREMENT"

    def timestamp_default_now(self) -> str:
        return "DEFAULT CURRENT_TIMESTAMP"

    def datetime_type(self) -> str:
        return "DATETIME"

    def json_type(self) -> str:
        return "JSON"

    def enum_type(self, column: str, values: Sequence[str]) -> str:  # noqa: ARG002
        return f"ENUM({_quote_values(values)})"

    def table_options(self) -> str:
        return " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"

    def create_index(self, name: str, table: str, columns: Sequence[str], *, unique: bool = False) -> str:
        kind = "UNIQUE INDEX" if unique else "INDEX"
        return f"CREATE {kind} {name} ON {table} ({', '.join(columns)})"

    def drop_index(self, table: str, name: str) -> str:
        return f"DROP INDEX {name} ON {table}"

    def create_view(self, name: str, select: str) -> str:
        return f"CREATE OR REPLACE VIEW {name} AS {select}"

    def create_table_like(self, name: str, source: str) -> str:
        return f"CREATE TABLE IF NOT EXISTS {name} LIKE {source}"

    def create_trigger(self, name: str, timing: str, event: str, table: str, body: Sequence[str]) -> str:
        statements = " ".join(f"{stmt.rstrip(';')};" for stmt in body)
        return f"CREATE TRIGGER {name} {timing} {event} ON {table} FOR EACH ROW BEGIN {statements} END"

    def modify_column(self, table: str, column: str, definition: str) -> str:
        return f"ALTER TABLE {table} MODIFY COLUMN {column} {definition}"

    def optimize_table(self, table: str) -> str:
        return f"OPTIMIZE TABLE {table}"

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"

    def table_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE' AND TABLE_NAME = %s"
        )

    def view_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.VIEWS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND COLUMN_NAME = %s"
        )

    def index_exists_query(self) -> str:
        return (
            "SELECT INDEX_NAME FROM INFORMATION_SCHEMA.STATISTICS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND INDEX_NAME = %s"
        )


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: One of ``'sqlite'``, ``'mysql'``, ``'mariadb'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'mariadb'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
