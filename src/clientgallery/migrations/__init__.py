"""Versioned schema migrations.

``BaseMigration`` subclasses live in :mod:`clientgallery.migrations.versions`
and are applied by :class:`MigrationManager` in version order.
"""

from clientgallery.migrations.base import BaseMigration, PrerequisiteResult
from clientgallery.migrations.manager import (
    MigrationManager,
    MigrationOutcome,
    MigrationRecord,
    MigrationRunResult,
    version_key,
)

__all__ = [
    "BaseMigration",
    "MigrationManager",
    "MigrationOutcome",
    "MigrationRecord",
    "MigrationRunResult",
    "PrerequisiteResult",
    "version_key",
]
