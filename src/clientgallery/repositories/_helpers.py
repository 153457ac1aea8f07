"""Shared helpers for repository classes.

Tags:
    clientgallery, repository, helpers

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from clientgallery.core.errors import ValidationError


@dataclass(frozen=True, slots=True)
class PageSlice:
    """Pagination params used by list operations."""

    limit: int = 20
    offset: int = 0

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValidationError("Limit must be positive", field="limit", value=self.limit)
        if self.offset < 0:
            raise ValidationError("Offset cannot be negative", field="offset", value=self.offset)

    @classmethod
    def for_page(cls, page: int, per_page: int = 20) -> PageSlice:
        """1-based page number to limit/offset."""
        return cls(limit=per_page, offset=max(page - 1, 0) * per_page)

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1


@dataclass(frozen=True, slots=True)
class Page:
    """One page of results plus the unpaginated total."""

    items: list[Any]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1 if self.limit else 1

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 1

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def _build_where(
    conditions: dict[str, Any],
    dialect_ph: Callable[[int], str],
    *,
    extra_clauses: list[str] | None = None,
) -> tuple[str, tuple]:
    """Build a WHERE clause from a conditions dict.

    Returns ``(where_fragment, params_tuple)``.  Skips ``None`` values;
    list/tuple/set values become ``IN (...)`` (an empty list matches
    nothing).  ``extra_clauses`` are appended literally (no params).
    """
    parts: list[str] = []
    params: list[Any] = []
    for col, val in conditions.items():
        if val is None:
            continue
        if isinstance(val, list | tuple | set | frozenset):
            values = list(val)
            if not values:
                parts.append("1=0")
                continue
            parts.append(f"{col} IN ({dialect_ph(len(values))})")
            params.extend(values)
            continue
        parts.append(f"{col} = {dialect_ph(1)}")
        params.append(val)
    if extra_clauses:
        parts.extend(extra_clauses)
    where = " AND ".join(parts) if parts else "1=1"
    return where, tuple(params)


_ORDER_RE = re.compile(r"^\s*[A-Za-z_][\w.]*(\s+(ASC|DESC))?(\s*,\s*[A-Za-z_][\w.]*(\s+(ASC|DESC))?)*\s*$", re.IGNORECASE)


def _safe_order(order_by: str) -> str:
    """Reject ORDER BY fragments that are not plain column lists."""
    if not _ORDER_RE.match(order_by):
        raise ValidationError(f"Invalid order clause: {order_by}", field="order_by", value=order_by)
    return order_by.strip()


LIKE_ESCAPE = "ESCAPE '!'"


def _like(term: str) -> str:
    """``%term%`` with LIKE wildcards escaped; pair with :data:`LIKE_ESCAPE`."""
    escaped = term.replace("!", "!!").replace("%", "!%").replace("_", "!_")
    return f"%{escaped}%"
