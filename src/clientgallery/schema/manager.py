"""Dependency-ordered installation of all table schemas.

Dependency graph (edges point at prerequisites)::

    clients ◄── galleries ◄── images ◄── ratings
       ▲                                   │
       └───────────────────────────────────┘
    log_entries (independent)

:meth:`SchemaManager.installation_order` is a depth-first topological sort:
each schema is emitted after all of its dependencies, and revisiting a
schema that is still on the DFS stack raises
:class:`~clientgallery.core.errors.CircularDependencyError`.

After a complete install the schema version and install time are stored
in the ``{prefix}options`` table.

Examples:
    >>> manager = SchemaManager(conn)
    >>> manager.installation_order()
    ['clients', 'galleries', 'images', 'ratings', 'log_entries']
    >>> result = manager.install_all()
    >>> result.success, manager.current_version()
    (True, '1.0.0')
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.errors import CircularDependencyError, GalleryError, SchemaError
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import first_value
from clientgallery.core.tables import DEFAULT_PREFIX, table_name, validate_prefix
from clientgallery.core.timestamps import db_now
from clientgallery.schema.base import BaseSchema
from clientgallery.schema.clients import ClientSchema
from clientgallery.schema.galleries import GallerySchema
from clientgallery.schema.images import ImageSchema
from clientgallery.schema.log_entries import LogEntrySchema
from clientgallery.schema.ratings import RatingSchema

logger = get_logger(__name__)

DEFAULT_SCHEMA_VERSION = "1.0.0"

# name → (schema class, dependencies)
DEFAULT_SCHEMAS: dict[str, tuple[type[BaseSchema], tuple[str, ...]]] = {
    "clients": (ClientSchema, ()),
    "galleries": (GallerySchema, ("clients",)),
    "images": (ImageSchema, ("galleries",)),
    "ratings": (RatingSchema, ("images", "clients")),
    "log_entries": (LogEntrySchema, ()),
}


@dataclass
class InstallResult:
    """Outcome of :meth:`SchemaManager.install_all`."""

    installed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    version: str | None = None

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class UninstallResult:
    """Outcome of :meth:`SchemaManager.uninstall_all`."""

    removed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class SchemaManager:
    """Registry of schemas with dependency-aware install/uninstall."""

    VERSION_OPTION = "schema_version"
    INSTALLED_AT_OPTION = "schema_installed_at"

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
        *,
        version: str = DEFAULT_SCHEMA_VERSION,
        register_defaults: bool = True,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)
        self.version = version
        self._schemas: dict[str, BaseSchema] = {}
        self._dependencies: dict[str, tuple[str, ...]] = {}
        if register_defaults:
            for name, (schema_cls, deps) in DEFAULT_SCHEMAS.items():
                self.add_schema(name, schema_cls(conn, self.dialect, self.prefix), deps)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_schema(self, name: str, schema: BaseSchema, dependencies: Iterable[str] = ()) -> None:
        """Register (or replace) a schema and its dependencies."""
        self._schemas[name] = schema
        self._dependencies[name] = tuple(dependencies)

    def remove_schema(self, name: str) -> bool:
        """Unregister a schema.

        Raises:
            SchemaError: Another registered schema depends on ``name``.
        """
        if name not in self._schemas:
            return False
        dependents = [other for other, deps in self._dependencies.items() if name in deps]
        if dependents:
            raise SchemaError(
                f"Cannot remove schema {name}: required by {', '.join(sorted(dependents))}"
            ).with_context(schema=name)
        del self._schemas[name]
        del self._dependencies[name]
        return True

    def get_schema(self, name: str) -> BaseSchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise SchemaError(f"Unknown schema: {name}").with_context(schema=name) from None

    def available_schemas(self) -> list[str]:
        return list(self._schemas)

    def dependencies(self, name: str) -> tuple[str, ...]:
        self.get_schema(name)
        return self._dependencies.get(name, ())

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def installation_order(self) -> list[str]:
        """Topological order: every schema appears after its dependencies."""
        order: list[str] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            if name in visiting:
                raise CircularDependencyError(name)
            if name not in self._schemas:
                raise SchemaError(f"Unknown schema dependency: {name}").with_context(schema=name)
            visiting.add(name)
            for dep in self._dependencies.get(name, ()):
                visit(dep)
            visiting.discard(name)
            visited.add(name)
            order.append(name)

        for name in self._schemas:
            visit(name)
        return order

    # ------------------------------------------------------------------
    # Install / uninstall
    # ------------------------------------------------------------------

    def install_all(self) -> InstallResult:
        """Create every schema in dependency order; stop at the first failure."""
        result = InstallResult()
        for name in self.installation_order():
            try:
                self._schemas[name].create()
            except GalleryError as exc:
                result.errors[name] = str(exc)
                logger.error("schema.install_failed", schema=name, error=str(exc))
                break
            result.installed.append(name)

        if result.success:
            self._set_option(self.VERSION_OPTION, self.version)
            self._set_option(self.INSTALLED_AT_OPTION, db_now())
            result.version = self.version
            logger.info("schema.installed_all", schemas=result.installed, version=self.version)
        return result

    def install_schema(self, name: str) -> bool:
        """Create one schema, installing missing dependencies first."""
        for dep in self.dependencies(name):
            if not self._schemas[dep].exists():
                self.install_schema(dep)
        return self._schemas[name].create()

    def uninstall_all(self) -> UninstallResult:
        """Drop every schema in reverse dependency order, continuing past failures."""
        result = UninstallResult()
        for name in reversed(self.installation_order()):
            try:
                self._schemas[name].drop()
            except GalleryError as exc:
                result.errors[name] = str(exc)
                logger.error("schema.uninstall_failed", schema=name, error=str(exc))
                continue
            result.removed.append(name)

        self._delete_option(self.VERSION_OPTION)
        self._delete_option(self.INSTALLED_AT_OPTION)
        logger.info("schema.uninstalled_all", schemas=result.removed, errors=len(result.errors))
        return result

    def uninstall_schema(self, name: str) -> bool:
        return self.get_schema(name).drop()

    def recreate_all(self) -> InstallResult:
        """Drop and reinstall everything. Destroys all data."""
        self.uninstall_all()
        return self.install_all()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def validate_all(self) -> dict[str, list[str]]:
        """``{schema: issues}`` for schemas that have problems."""
        issues: dict[str, list[str]] = {}
        for name, schema in self._schemas.items():
            found = schema.validate()
            if found:
                issues[name] = found
        return issues

    def all_installed(self) -> bool:
        return all(schema.exists() for schema in self._schemas.values())

    def schema_info(self) -> dict[str, dict[str, Any]]:
        info: dict[str, dict[str, Any]] = {}
        for name, schema in self._schemas.items():
            info[name] = {
                "table_name": schema.table_name,
                "exists": schema.exists(),
                "dependencies": list(self._dependencies.get(name, ())),
                "validation_issues": schema.validate(),
            }
        return info

    def current_version(self) -> str | None:
        return self._get_option(self.VERSION_OPTION)

    def installed_at(self) -> str | None:
        return self._get_option(self.INSTALLED_AT_OPTION)

    # ------------------------------------------------------------------
    # Options table
    # ------------------------------------------------------------------

    @property
    def options_table(self) -> str:
        return table_name("options", self.prefix)

    def _ensure_options_table(self) -> None:
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.options_table} (
                option_name VARCHAR(191) NOT NULL PRIMARY KEY,
                option_value TEXT,
                updated_at {self.dialect.datetime_type()}
            ){self.dialect.table_options()}
            """
        )

    def _set_option(self, key: str, value: str) -> None:
        self._ensure_options_table()
        sql = self.dialect.upsert(self.options_table, ["option_name", "option_value", "updated_at"], ["option_name"])
        self.conn.execute(sql, (key, value, db_now()))
        self.conn.commit()

    def _get_option(self, key: str) -> str | None:
        if not self.conn.execute(self.dialect.table_exists_query(), (self.options_table,)).fetchone():
            return None
        row = self.conn.execute(
            f"SELECT option_value FROM {self.options_table} WHERE option_name = {self.dialect.placeholder(0)}",
            (key,),
        ).fetchone()
        return first_value(row)

    def _delete_option(self, key: str) -> None:
        if not self.conn.execute(self.dialect.table_exists_query(), (self.options_table,)).fetchone():
            return
        self.conn.execute(
            f"DELETE FROM {self.options_table} WHERE option_name = {self.dialect.placeholder(0)}",
            (key,),
        )
        self.conn.commit()


__all__ = ["DEFAULT_SCHEMAS", "InstallResult", "SchemaManager", "UninstallResult"]
