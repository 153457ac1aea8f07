"""Core primitives shared by every layer of clientgallery.

Architecture::

    errors.py          Structured error hierarchy (GalleryError, DomainError)
    logging.py         structlog configuration + context helpers
    settings.py        pydantic-settings configuration (CLIENTGALLERY_*)
    protocols.py       Connection protocol
    dialect.py         SQL dialect abstraction (SQLite, MySQL)
    connection.py      Connection factory + adapters
    tables.py          Table-name registry (prefix + suffix)
    health.py          Health check models

Tags:
    clientgallery, core, database, errors, logging, settings
"""

from clientgallery.core.dialect import Dialect, MySQLDialect, SQLiteDialect, get_dialect
from clientgallery.core.errors import (
    DatabaseError,
    DomainError,
    GalleryError,
    NotFoundError,
    ValidationError,
)
from clientgallery.core.protocols import Connection

__all__ = [
    "Connection",
    "DatabaseError",
    "Dialect",
    "DomainError",
    "GalleryError",
    "MySQLDialect",
    "NotFoundError",
    "SQLiteDialect",
    "ValidationError",
    "get_dialect",
]
