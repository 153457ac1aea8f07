"""Table-name registry.

Every table lives under a configurable prefix (``wp_mlcg_`` by default), so
names are always resolved through :func:`table_name` rather than hard-coded.

Examples:
    >>> table_name("galleries")
    'wp_mlcg_galleries'
    >>> table_name("migrations", "test_")
    'test_migrations'
"""

from __future__ import annotations

import re

from clientgallery.core.errors import ValidationError

DEFAULT_PREFIX = "wp_mlcg_"

# Logical name → table suffix
TABLES = {
    "clients": "clients",
    "galleries": "galleries",
    "images": "images",
    "ratings": "ratings",
    "log_entries": "log_entries",
    "migrations": "migrations",
    "options": "options",
}

_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]*$")


def validate_prefix(prefix: str) -> str:
    """Reject prefixes that could break out of an identifier."""
    if not _PREFIX_RE.match(prefix):
        raise ValidationError(
            "Table prefix may only contain letters, digits and underscores",
            field="table_prefix",
            value=prefix,
        )
    return prefix


def table_name(key: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Resolve a logical table name to its prefixed physical name."""
    try:
        suffix = TABLES[key]
    except KeyError:
        raise ValidationError(f"Unknown table: {key}", field="table", value=key) from None
    return validate_prefix(prefix) + suffix


__all__ = ["DEFAULT_PREFIX", "TABLES", "table_name", "validate_prefix"]
