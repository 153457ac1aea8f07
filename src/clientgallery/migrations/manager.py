"""Versioned migration runner.

Tracks migrations in the ``{prefix}migrations`` table and applies pending
ones in semantic-version order. A run stops at the first failure; the
failed migration is recorded with ``status = 'failed'`` and its error so
the next run retries it.

Example::

    manager = MigrationManager(conn)
    result = manager.run_pending()
    if not result.success:
        print(result.message)
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.errors import MigrationError
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import rows_to_dicts
from clientgallery.core.tables import DEFAULT_PREFIX, table_name, validate_prefix
from clientgallery.core.timestamps import db_now
from clientgallery.migrations.base import BaseMigration

logger = get_logger(__name__)

MIGRATION_STATUSES = ("running", "completed", "failed")


def version_key(version: str) -> tuple:
    """Sort key comparing dotted versions numerically (``1.10.0`` > ``1.9.0``)."""
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in re.split(r"[.\-+]", version))


@dataclass
class MigrationRecord:
    """Row of the migrations table."""

    version: str
    description: str
    status: str
    executed_at: str | None = None
    execution_time: float | None = None
    error_message: str | None = None
    notes: str | None = None


@dataclass
class MigrationOutcome:
    """Result of running (or rolling back) one migration."""

    version: str
    status: str
    message: str = ""
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in ("completed", "rolled_back", "skipped")


@dataclass
class MigrationRunResult:
    """Result of :meth:`MigrationManager.run_pending`."""

    status: str = "noop"
    message: str = "No pending migrations"
    outcomes: list[MigrationOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status != "failed"

    @property
    def applied(self) -> list[str]:
        return [o.version for o in self.outcomes if o.status == "completed"]


class MigrationManager:
    """Registers migrations and applies or reverts them."""

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
        *,
        register_defaults: bool = True,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)
        self._migrations: dict[str, BaseMigration] = {}
        self._table_ready = False
        if register_defaults:
            self.register_many(m() for m in self.default_migrations())

    @staticmethod
    def default_migrations() -> list[type[BaseMigration]]:
        from clientgallery.migrations.versions import MIGRATIONS

        return list(MIGRATIONS)

    @property
    def table_name(self) -> str:
        return table_name("migrations", self.prefix)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, migration: BaseMigration) -> None:
        if not migration.version:
            raise MigrationError(f"{migration.__class__.__name__} has no version")
        migration.bind(self.conn, self.dialect, self.prefix)
        self._migrations[migration.version] = migration

    def register_many(self, migrations: Any) -> None:
        for migration in migrations:
            self.register(migration)

    def get(self, version: str) -> BaseMigration:
        try:
            return self._migrations[version]
        except KeyError:
            raise MigrationError(f"Migration {version} not found").with_context(migration=version) from None

    def registered_versions(self) -> list[str]:
        return sorted(self._migrations, key=version_key)

    # ------------------------------------------------------------------
    # Tracking table
    # ------------------------------------------------------------------

    def ensure_table(self) -> None:
        if self._table_ready:
            return
        d = self.dialect
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id {d.auto_increment()},
                version VARCHAR(50) NOT NULL UNIQUE,
                description VARCHAR(255),
                status {d.enum_type("status", MIGRATION_STATUSES)} NOT NULL DEFAULT 'running',
                executed_at {d.datetime_type()},
                execution_time DECIMAL(10,4),
                error_message TEXT,
                notes TEXT
            ){d.table_options()}
            """
        )
        self.conn.commit()
        self._table_ready = True

    def _record(
        self,
        migration: BaseMigration,
        status: str,
        *,
        execution_time: float | None = None,
        error: str | None = None,
        notes: str | None = None,
    ) -> None:
        columns = ["version", "description", "status", "executed_at", "execution_time", "error_message", "notes"]
        sql = self.dialect.upsert(self.table_name, columns, ["version"])
        self.conn.execute(
            sql,
            (migration.version, migration.description, status, db_now(), execution_time, error, notes),
        )
        self.conn.commit()

    def _delete_record(self, version: str) -> None:
        self.conn.execute(f"DELETE FROM {self.table_name} WHERE version = {self.dialect.placeholder(0)}", (version,))
        self.conn.commit()

    def history(self) -> list[MigrationRecord]:
        """All tracking rows, oldest first."""
        self.ensure_table()
        cursor = self.conn.execute(
            f"SELECT version, description, status, executed_at, execution_time, error_message, notes "
            f"FROM {self.table_name} ORDER BY id"
        )
        records = []
        for row in rows_to_dicts(cursor, cursor.fetchall()):
            if row.get("execution_time") is not None:
                row["execution_time"] = float(row["execution_time"])
            records.append(MigrationRecord(**row))
        return records

    def applied_versions(self) -> list[str]:
        self.ensure_table()
        cursor = self.conn.execute(f"SELECT version FROM {self.table_name} WHERE status = 'completed'")
        return sorted((r["version"] for r in rows_to_dicts(cursor, cursor.fetchall())), key=version_key)

    def is_applied(self, version: str) -> bool:
        return version in self.applied_versions()

    def pending(self) -> list[BaseMigration]:
        """Registered migrations not yet completed, in version order."""
        applied = set(self.applied_versions())
        return [self._migrations[v] for v in self.registered_versions() if v not in applied]

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run_pending(self) -> MigrationRunResult:
        """Apply every pending migration; stop at the first failure."""
        pending = self.pending()
        if not pending:
            return MigrationRunResult()

        result = MigrationRunResult(status="success", message="")
        for migration in pending:
            outcome = self.run_migration(migration)
            result.outcomes.append(outcome)
            if not outcome.success:
                result.status = "failed"
                result.message = f"Migration {migration.version} failed: {outcome.message}"
                logger.error("migration.run_stopped", version=migration.version, error=outcome.message)
                return result

        result.message = f"Applied {len(result.applied)} migration(s)"
        logger.info("migration.run_complete", applied=result.applied)
        return result

    def run_migration(self, migration: BaseMigration) -> MigrationOutcome:
        """Apply one migration, recording status and timing."""
        self.ensure_table()
        if self.is_applied(migration.version):
            return MigrationOutcome(migration.version, "skipped", "Already applied")

        prerequisites = migration.validate_prerequisites()
        if not prerequisites.valid:
            message = "Prerequisites not met: " + "; ".join(prerequisites.messages)
            self._record(migration, "failed", error=message)
            return MigrationOutcome(migration.version, "failed", message)

        self._record(migration, "running")
        start = time.perf_counter()
        try:
            ok = migration.up()
            if not ok:
                raise MigrationError(f"Migration {migration.version} reported failure")
            self.conn.commit()
        except Exception as exc:
            self.conn.rollback()
            elapsed = time.perf_counter() - start
            self._record(migration, "failed", execution_time=elapsed, error=str(exc))
            logger.error("migration.failed", version=migration.version, error=str(exc))
            return MigrationOutcome(migration.version, "failed", str(exc), elapsed)

        elapsed = time.perf_counter() - start
        self._record(migration, "completed", execution_time=elapsed)
        logger.info("migration.applied", version=migration.version, seconds=round(elapsed, 4))
        return MigrationOutcome(migration.version, "completed", migration.description, elapsed)

    def run_single(self, version: str) -> MigrationOutcome:
        migration = self.get(version)
        if self.is_applied(version):
            raise MigrationError(f"Migration {version} is already applied").with_context(migration=version)
        return self.run_migration(migration)

    def rollback(self, version: str) -> MigrationOutcome:
        """Revert an applied migration and delete its tracking row.

        Raises:
            MigrationError: Unknown version or the migration is irreversible.
        """
        migration = self.get(version)
        if not migration.can_rollback():
            raise MigrationError(f"Migration {version} cannot be rolled back").with_context(migration=version)
        if not self.is_applied(version):
            return MigrationOutcome(version, "skipped", "Not applied")

        start = time.perf_counter()
        try:
            ok = migration.down()
            if not ok:
                raise MigrationError(f"Rollback of {version} reported failure")
            self.conn.commit()
        except Exception as exc:
            self.conn.rollback()
            logger.error("migration.rollback_failed", version=version, error=str(exc))
            return MigrationOutcome(version, "failed", str(exc), time.perf_counter() - start)

        self._delete_record(version)
        logger.info("migration.rolled_back", version=version)
        return MigrationOutcome(version, "rolled_back", migration.description, time.perf_counter() - start)

    def mark_as_applied(self, version: str, reason: str = "Marked as applied manually") -> None:
        """Record a migration as completed without running it."""
        migration = self.get(version)
        self.ensure_table()
        self._record(migration, "completed", execution_time=0.0, notes=reason)
        logger.warning("migration.marked_applied", version=version, reason=reason)

    def reset(self) -> None:
        """Forget all tracking rows. Does not revert any schema change."""
        self.ensure_table()
        self.conn.execute(f"DELETE FROM {self.table_name}")
        self.conn.commit()
        logger.warning("migration.tracking_reset")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def current_version(self) -> str | None:
        applied = self.applied_versions()
        return applied[-1] if applied else None

    def latest_version(self) -> str | None:
        versions = self.registered_versions()
        return versions[-1] if versions else None

    def status(self) -> dict[str, Any]:
        applied = self.applied_versions()
        pending = [m.version for m in self.pending()]
        return {
            "total": len(self._migrations),
            "applied": len(applied),
            "pending": len(pending),
            "applied_versions": applied,
            "pending_versions": pending,
            "current_version": self.current_version(),
            "latest_version": self.latest_version(),
        }

    def info(self, version: str) -> dict[str, Any]:
        migration = self.get(version)
        record = next((r for r in self.history() if r.version == version), None)
        prerequisites = migration.validate_prerequisites()
        return {
            "version": migration.version,
            "name": migration.name,
            "description": migration.description,
            "applied": record is not None and record.status == "completed",
            "can_rollback": migration.can_rollback(),
            "warnings": migration.warnings(),
            "prerequisites_met": prerequisites.valid,
            "prerequisites": prerequisites.messages,
            "record": record,
        }


__all__ = [
    "MigrationManager",
    "MigrationOutcome",
    "MigrationRecord",
    "MigrationRunResult",
    "version_key",
]
