"""Health check models.

``CheckResult`` describes one repository's probe; ``SystemHealth`` is the
envelope returned by
:meth:`~clientgallery.repositories.manager.RepositoryManager.system_health`.

Overall status rules::

    no failing checks                  → healthy
    failing checks < half of total     → degraded
    failing checks >= half of total    → critical
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class CheckResult(BaseModel):
    """Result of a single repository health check."""

    status: Literal["healthy", "degraded", "unhealthy"]
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class SystemHealth(BaseModel):
    """Aggregated health of every repository.

    Fields
    ──────
    status    : ``healthy`` | ``degraded`` | ``critical``
    checks    : Per-repository breakdown (name → CheckResult)
    issues    : Human-readable problems found
    timestamp : ISO-8601 UTC
    """

    status: Literal["healthy", "degraded", "critical"] = "healthy"
    checks: dict[str, CheckResult] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @classmethod
    def from_checks(cls, checks: dict[str, CheckResult]) -> SystemHealth:
        issues = [
            f"{name}: {result.error or result.status}"
            for name, result in checks.items()
            if result.status != "healthy"
        ]
        if not issues:
            status: Literal["healthy", "degraded", "critical"] = "healthy"
        elif len(issues) >= len(checks) / 2:
            status = "critical"
        else:
            status = "degraded"
        return cls(status=status, checks=checks, issues=issues)


__all__ = ["CheckResult", "SystemHealth"]
