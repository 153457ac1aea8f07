"""
Structured error types for clientgallery.

Every failure that leaves the data-access layer is a :class:`GalleryError`
subclass carrying a category, a retry flag, structured context (table,
schema, migration, entity id) and an optional chained cause.

Manifesto:
    - **Typed hierarchy:** Domain rule violations, missing rows and database
      failures are different things and are caught differently
    - **Never retried:** Database failures are logged and surfaced, not retried
    - **Rich context:** Errors carry the table/schema/migration involved
    - **Error chaining:** The driver exception is preserved as ``cause``

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────────┐
        │                        GalleryError                             │
        │        (category, retryable, context, cause)                    │
        ├────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ValidationError     DomainError         NotFoundError          │
        │  (VALIDATION)        (DOMAIN)            (NOT_FOUND)            │
        │       │                   │                   │                 │
        │  ConstraintError     InvalidSlugError    GalleryNotFoundError   │
        │                      InvalidStatusError                         │
        │                                                                 │
        │  ConfigError         DatabaseError       HandlerNotFoundError   │
        │  (CONFIG)            (DATABASE)          (INTERNAL)             │
        │       │                   │                                     │
        │  MissingConfigError  QueryError, IntegrityError, SchemaError,   │
        │                      CircularDependencyError, MigrationError    │
        └────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = GalleryNotFoundError.for_id(42)
    >>> err.message
    'Gallery with ID 42 not found'
    >>> err.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>

    >>> err = SchemaError("create failed").with_context(table="wp_mlcg_images")
    >>> err.context.table
    'wp_mlcg_images'

Guardrails:
    ❌ DON'T: Raise bare Exception from repositories or managers
    ✅ DO: Raise the matching GalleryError subclass, passing cause=

    ❌ DON'T: Mark database errors retryable
    ✅ DO: Let default_retryable handle it

Tags:
    error-handling, exception-hierarchy, error-context, clientgallery

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    # Infrastructure
    DATABASE = "DATABASE"         # Driver, query, DDL failures
    STORAGE = "STORAGE"           # File system

    # Data
    VALIDATION = "VALIDATION"     # Bad input values
    DOMAIN = "DOMAIN"             # Business rule violations
    NOT_FOUND = "NOT_FOUND"       # Missing rows

    # Configuration
    CONFIG = "CONFIG"             # Missing or invalid settings

    # Internal
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only non-``None`` fields are emitted by :meth:`to_dict`, so the same
    object can be splatted into a structlog call without noise.
    """

    table: str | None = None
    schema: str | None = None
    migration: str | None = None
    entity_id: int | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "schema", "migration", "entity_id", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class GalleryError(Exception):
    """
    Base exception for all clientgallery errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Examples:
        >>> err = GalleryError("boom")
        >>> err.to_dict()["error_type"]
        'GalleryError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> GalleryError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchemaError("Failed").with_context(table="wp_mlcg_clients")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(GalleryError):
    """
    Input validation error.

    Never retryable - data must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class ConstraintError(ValidationError):
    """Constraint violation detected before hitting the database."""

    pass


# =============================================================================
# DOMAIN ERRORS
# =============================================================================


class DomainError(GalleryError):
    """A business rule was violated (e.g. publishing a gallery without a client).

    ``violations`` lists every unmet requirement, not only the first.
    """

    default_category = ErrorCategory.DOMAIN

    def __init__(self, message: str, *, violations: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.violations = list(violations or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.violations:
            result["violations"] = self.violations
        return result


class InvalidSlugError(DomainError):
    """Slug failed normalisation or validation."""

    pass


class InvalidStatusError(DomainError):
    """Unknown gallery status value."""

    pass


# =============================================================================
# NOT FOUND
# =============================================================================


class NotFoundError(GalleryError):
    """Requested row does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class GalleryNotFoundError(NotFoundError):
    """No gallery with the given id or slug."""

    @classmethod
    def for_id(cls, gallery_id: int) -> GalleryNotFoundError:
        err = cls(f"Gallery with ID {gallery_id} not found")
        err.context.entity_id = gallery_id
        return err

    @classmethod
    def for_slug(cls, slug: str) -> GalleryNotFoundError:
        err = cls(f'Gallery with slug "{slug}" not found')
        err.context.metadata["slug"] = slug
        return err


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(GalleryError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration missing."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(message or f"Missing required configuration: {key}")
        self.key = key


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(GalleryError):
    """Database-level failure. Logged, never retried."""

    default_category = ErrorCategory.DATABASE


class QueryError(DatabaseError):
    """A query failed to execute."""

    pass


class IntegrityError(DatabaseError):
    """Database integrity constraint violation (unique key, foreign key)."""

    pass


class SchemaError(DatabaseError):
    """Creating, dropping or inspecting a schema failed."""

    pass


class CircularDependencyError(SchemaError):
    """Schema dependency graph contains a cycle."""

    def __init__(self, schema: str):
        super().__init__(f"Circular dependency detected involving schema: {schema}")
        self.context.schema = schema


class MigrationError(DatabaseError):
    """A migration could not be run, rolled back or located."""

    pass


# =============================================================================
# APPLICATION ERRORS
# =============================================================================


class HandlerNotFoundError(GalleryError):
    """No handler registered on a bus for the dispatched message type."""

    def __init__(self, message_type: type):
        super().__init__(f"No handler found for {message_type.__name__}")
        self.message_type = message_type


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, GalleryError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, GalleryError):
        return error.category
    if isinstance(error, LookupError):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "GalleryError",
    # Validation
    "ValidationError",
    "ConstraintError",
    # Domain
    "DomainError",
    "InvalidSlugError",
    "InvalidStatusError",
    # Not found
    "NotFoundError",
    "GalleryNotFoundError",
    # Config
    "ConfigError",
    "MissingConfigError",
    # Database
    "DatabaseError",
    "QueryError",
    "IntegrityError",
    "SchemaError",
    "CircularDependencyError",
    "MigrationError",
    # Application
    "HandlerNotFoundError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
