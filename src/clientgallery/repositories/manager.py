"""Central access point for all repositories.

Manifesto:
    One object owns the connection, dialect and prefix and hands out the
    five entity repositories, so callers never construct repositories
    with mismatched settings. The same object answers operational
    questions: is every table reachable, is the data consistent, and
    what do the tables contain.

Architecture::

    RepositoryManager.instance()         ← process-wide, lazily created
      ├── clients    ClientRepository
      ├── galleries  GalleryRepository
      ├── images     ImageRepository
      ├── ratings    RatingRepository
      ├── logs       LogEntryRepository
      │
      ├── test_connections()        → {name: CheckResult}
      ├── system_health()           → SystemHealth
      ├── perform_maintenance()     → retention + ANALYZE/OPTIMIZE
      ├── aggregated_statistics()   → per repository + totals
      └── validate_data_integrity() → IntegrityReport

Examples:
    >>> manager = RepositoryManager(conn)
    >>> manager.system_health().status
    'healthy'
    >>> manager.validate_data_integrity().status
    'clean'

Guardrails:
    ❌ DON'T: build repositories by hand next to a manager
    ✅ DO:    ``RepositoryManager.instance().galleries``
    ❌ DON'T: rely on ``instance()`` in tests without ``reset_instance()``
    ✅ DO:    construct ``RepositoryManager(conn)`` directly in tests

Tags:
    clientgallery, repository, health, integrity, maintenance
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from clientgallery.core.connection import create_connection, dialect_for
from clientgallery.core.dialect import Dialect, SQLiteDialect
from clientgallery.core.health import CheckResult, SystemHealth
from clientgallery.core.logging import get_logger
from clientgallery.core.protocols import Connection
from clientgallery.core.rows import first_value
from clientgallery.core.settings import get_settings
from clientgallery.core.tables import DEFAULT_PREFIX, validate_prefix
from clientgallery.schema.ratings import MAX_SCORE, MIN_SCORE

from .base import BaseRepository
from .clients import ClientRepository
from .galleries import GalleryRepository
from .images import ImageRepository
from .log_entries import LogEntryRepository
from .ratings import RatingRepository

logger = get_logger(__name__)

REPOSITORY_CLASSES: dict[str, type[BaseRepository]] = {
    "clients": ClientRepository,
    "galleries": GalleryRepository,
    "images": ImageRepository,
    "ratings": RatingRepository,
    "logs": LogEntryRepository,
}


# =============================================================================
# INTEGRITY REPORT
# =============================================================================


class IntegrityIssue(BaseModel):
    """One failed consistency check."""

    check: str
    count: int
    message: str
    ids: list[Any] = Field(default_factory=list)


class IntegrityReport(BaseModel):
    """Outcome of :meth:`RepositoryManager.validate_data_integrity`."""

    status: Literal["clean", "issues_found"] = "clean"
    issues: list[IntegrityIssue] = Field(default_factory=list)
    issue_count: int = 0
    checked_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @classmethod
    def from_issues(cls, issues: list[IntegrityIssue]) -> IntegrityReport:
        return cls(
            status="issues_found" if issues else "clean",
            issues=issues,
            issue_count=len(issues),
        )


# =============================================================================
# MANAGER
# =============================================================================


class RepositoryManager:
    """Owns the repositories for one connection."""

    _instance: ClassVar[RepositoryManager | None] = None

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.prefix = validate_prefix(prefix)
        self._repositories: dict[str, BaseRepository] = {}

    # -- Process-wide instance -----------------------------------------------

    @classmethod
    def instance(
        cls,
        conn: Connection | None = None,
        dialect: Dialect | None = None,
        prefix: str | None = None,
    ) -> RepositoryManager:
        """Shared manager; the first call fixes its connection.

        Without ``conn`` the connection is built from
        :func:`~clientgallery.core.settings.get_settings`.
        """
        if cls._instance is None:
            settings = get_settings()
            if conn is None:
                conn, info = create_connection(settings.database_url, data_dir=settings.data_dir)
                dialect = dialect or dialect_for(info)
            cls._instance = cls(conn, dialect, prefix or settings.table_prefix)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    # -- Accessors -----------------------------------------------------------

    def _repository(self, name: str) -> Any:
        if name not in self._repositories:
            self._repositories[name] = REPOSITORY_CLASSES[name](self.conn, self.dialect, self.prefix)
        return self._repositories[name]

    @property
    def clients(self) -> ClientRepository:
        return self._repository("clients")

    @property
    def galleries(self) -> GalleryRepository:
        return self._repository("galleries")

    @property
    def images(self) -> ImageRepository:
        return self._repository("images")

    @property
    def ratings(self) -> RatingRepository:
        return self._repository("ratings")

    @property
    def logs(self) -> LogEntryRepository:
        return self._repository("logs")

    def all_repositories(self) -> dict[str, BaseRepository]:
        return {name: self._repository(name) for name in REPOSITORY_CLASSES}

    # -- Health --------------------------------------------------------------

    def test_connections(self) -> dict[str, CheckResult]:
        """Probe every repository's table; never raises."""
        results: dict[str, CheckResult] = {}
        for name, repo in self.all_repositories().items():
            start = time.perf_counter()
            try:
                if not repo.table_exists():
                    results[name] = CheckResult(status="unhealthy", error=f"Table {repo.table_name} does not exist")
                    continue
                rows = repo.count()
            except Exception as exc:
                results[name] = CheckResult(
                    status="unhealthy",
                    latency_ms=round((time.perf_counter() - start) * 1000, 2),
                    error=str(exc),
                )
                logger.warning("repository.check_failed", repository=name, error=str(exc))
                continue
            results[name] = CheckResult(
                status="healthy",
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
                details={"table": repo.table_name, "rows": rows},
            )
        return results

    def system_health(self) -> SystemHealth:
        health = SystemHealth.from_checks(self.test_connections())
        logger.info("repository.health", status=health.status, issues=len(health.issues))
        return health

    # -- Maintenance ---------------------------------------------------------

    def perform_maintenance(self) -> dict[str, Any]:
        """Apply log retention, then refresh table statistics."""
        result: dict[str, Any] = {"log_retention": {}, "optimized": [], "errors": {}}
        if self.logs.table_exists():
            result["log_retention"] = self.logs.apply_retention_policy()
        for name, repo in self.all_repositories().items():
            if not repo.table_exists():
                continue
            try:
                cursor = self.conn.execute(self.dialect.optimize_table(repo.table_name))
                # OPTIMIZE TABLE returns a status result set
                cursor.fetchall()
                self.conn.commit()
            except Exception as exc:
                self.conn.rollback()
                result["errors"][name] = str(exc)
                logger.error("repository.optimize_failed", repository=name, error=str(exc))
                continue
            result["optimized"].append(repo.table_name)
        logger.info(
            "repository.maintenance_complete",
            deleted_logs=sum(result["log_retention"].values()),
            optimized=len(result["optimized"]),
        )
        return result

    def aggregated_statistics(self) -> dict[str, Any]:
        """Each repository's ``get_statistics()`` plus summed ``total_*`` keys."""
        stats: dict[str, Any] = {}
        totals: dict[str, int] = {}
        for name, repo in self.all_repositories().items():
            if not repo.table_exists():
                stats[name] = {"error": f"Table {repo.table_name} does not exist"}
                continue
            repo_stats = repo.get_statistics()
            stats[name] = repo_stats
            for key, value in repo_stats.items():
                if key.startswith("total") and isinstance(value, int | float) and not isinstance(value, bool):
                    totals[key] = totals.get(key, 0) + value
        stats["totals"] = totals
        return stats

    # -- Integrity -----------------------------------------------------------

    def _check(self, check: str, message: str, sql: str, params: tuple = ()) -> IntegrityIssue | None:
        cursor = self.conn.execute(sql, params)
        ids = [first_value(row) for row in cursor.fetchall()]
        if not ids:
            return None
        return IntegrityIssue(check=check, count=len(ids), message=message.format(count=len(ids)), ids=ids)

    def validate_data_integrity(self) -> IntegrityReport:
        """Cross-table consistency checks; returns every problem found."""
        clients = self.clients.table_name
        galleries = self.galleries.table_name
        images = self.images.table_name
        ratings = self.ratings.table_name
        checks = [
            (
                "orphaned_galleries",
                "{count} galleries reference a missing client",
                f"SELECT g.id FROM {galleries} g LEFT JOIN {clients} c ON c.id = g.client_id WHERE c.id IS NULL",
            ),
            (
                "orphaned_images",
                "{count} images reference a missing gallery",
                f"SELECT i.id FROM {images} i LEFT JOIN {galleries} g ON g.id = i.gallery_id WHERE g.id IS NULL",
            ),
            (
                "orphaned_ratings",
                "{count} ratings reference a missing image or client",
                f"SELECT r.id FROM {ratings} r LEFT JOIN {images} i ON i.id = r.image_id "
                f"LEFT JOIN {clients} c ON c.id = r.client_id WHERE i.id IS NULL OR c.id IS NULL",
            ),
            (
                "duplicate_slugs",
                "{count} gallery slugs are used more than once",
                f"SELECT slug FROM {galleries} GROUP BY slug HAVING COUNT(*) > 1",
            ),
            (
                "unpublishable_published_galleries",
                "{count} published galleries lack a name or client",
                f"SELECT id FROM {galleries} WHERE status = 'published' "
                f"AND (name IS NULL OR TRIM(name) = '' OR client_id <= 0)",
            ),
            (
                "image_count_mismatch",
                "{count} galleries have an image_count that does not match their images",
                f"SELECT g.id FROM {galleries} g "
                f"WHERE g.image_count != (SELECT COUNT(*) FROM {images} i WHERE i.gallery_id = g.id)",
            ),
            (
                "invalid_rating_scores",
                "{count} ratings have a score outside " + f"{MIN_SCORE}..{MAX_SCORE}",
                f"SELECT id FROM {ratings} WHERE score IS NOT NULL AND (score < {MIN_SCORE} OR score > {MAX_SCORE})",
            ),
        ]
        issues = []
        for check, message, sql in checks:
            try:
                issue = self._check(check, message, sql)
            except Exception as exc:
                self.conn.rollback()
                logger.error("repository.integrity_check_failed", check=check, error=str(exc))
                issue = IntegrityIssue(check="error", count=0, message=f"{check} could not run: {exc}", ids=[check])
            if issue is not None:
                issues.append(issue)
        report = IntegrityReport.from_issues(issues)
        logger.info("repository.integrity_checked", status=report.status, issues=report.issue_count)
        return report


__all__ = ["IntegrityIssue", "IntegrityReport", "REPOSITORY_CLASSES", "RepositoryManager"]
