"""Image value objects."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Orientation(str, Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    SQUARE = "square"

    @classmethod
    def from_dimensions(cls, width: Any, height: Any) -> Orientation | None:
        """Derive orientation; ``None`` when a dimension is missing or not positive."""
        try:
            w = int(width)
            h = int(height)
        except (TypeError, ValueError):
            return None
        if w <= 0 or h <= 0:
            return None
        if w > h:
            return cls.LANDSCAPE
        if h > w:
            return cls.PORTRAIT
        return cls.SQUARE

    def __str__(self) -> str:
        return self.value


__all__ = ["Orientation"]
