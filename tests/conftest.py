"""
Shared pytest fixtures for clientgallery tests.

This module provides:
- Auto-marking of unit vs integration tests by directory
- In-memory SQLite connections, with and without the installed schema
- A RepositoryManager plus seeded client / gallery / image rows
- Cleanup of process-wide state (settings cache, shared manager, log handlers)

Usage:
    def test_something(repos, gallery_id):
        assert repos.galleries.exists_by_id(gallery_id)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from clientgallery.core.connection import SqliteConnection
from clientgallery.core.dialect import SQLiteDialect
from clientgallery.core.settings import reset_settings
from clientgallery.repositories import RepositoryManager
from clientgallery.schema import SchemaManager

INTEGRATION_DIRS = {"repositories", "schema", "migrations", "cli"}


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    root = Path(__file__).parent
    for item in items:
        parts = set(Path(item.path).relative_to(root).parts)
        if parts & INTEGRATION_DIRS:
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Global State Cleanup
# =============================================================================


@pytest.fixture(autouse=True)
def clean_global_state() -> Iterator[None]:
    """Reset cached settings and the shared RepositoryManager around each test."""
    reset_settings()
    RepositoryManager.reset_instance()
    yield
    reset_settings()
    RepositoryManager.reset_instance()
    # CLI runs point the root handler at CliRunner's (now closed) stream
    for handler in list(logging.root.handlers):
        logging.root.removeHandler(handler)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def conn() -> Iterator[SqliteConnection]:
    """Empty in-memory SQLite connection (foreign keys on)."""
    connection = SqliteConnection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def dialect() -> SQLiteDialect:
    return SQLiteDialect()


@pytest.fixture
def schemas(conn: SqliteConnection, dialect: SQLiteDialect) -> SchemaManager:
    return SchemaManager(conn, dialect)


@pytest.fixture
def installed(schemas: SchemaManager) -> SchemaManager:
    """SchemaManager whose tables have all been created."""
    result = schemas.install_all()
    assert result.success, result.errors
    return schemas


@pytest.fixture
def repos(installed: SchemaManager, conn: SqliteConnection, dialect: SQLiteDialect) -> RepositoryManager:
    return RepositoryManager(conn, dialect)


# =============================================================================
# Seed Data
# =============================================================================


def _image_payload(gallery_id: int, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "gallery_id": gallery_id,
        "filename": "img-001.jpg",
        "original_filename": "IMG_001.JPG",
        "mime_type": "image/jpeg",
        "file_size": 1024,
        "width": 1920,
        "height": 1080,
    }
    data.update(overrides)
    return data


@pytest.fixture
def client_id(repos: RepositoryManager) -> int:
    return repos.clients.create({"name": "Jane Doe", "email": "jane@example.com", "company": "Doe Studio"})


@pytest.fixture
def gallery_id(repos: RepositoryManager, client_id: int) -> int:
    return repos.galleries.create({"name": "Wedding", "slug": "wedding", "client_id": client_id})


@pytest.fixture
def image_id(repos: RepositoryManager, gallery_id: int) -> int:
    return repos.images.create(_image_payload(gallery_id))


@pytest.fixture
def image_data() -> Callable[..., dict[str, Any]]:
    """Factory for minimal valid image rows: ``image_data(gallery_id, width=10)``."""
    return _image_payload
