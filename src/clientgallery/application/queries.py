"""Typed query objects for gallery reads."""

from __future__ import annotations

from dataclasses import dataclass

from clientgallery.core.errors import ValidationError
from clientgallery.domain.gallery import GalleryStatus


@dataclass(frozen=True, slots=True)
class GetGalleryQuery:
    id: int

    def __post_init__(self) -> None:
        if self.id <= 0:
            raise ValidationError("Gallery ID must be positive", field="id", value=self.id)


@dataclass(frozen=True, slots=True)
class ListGalleriesQuery:
    """Filtered, paginated gallery listing.

    Attributes:
        client_id: Only galleries of this client (``None`` for all).
        status: Only galleries in this status (``None`` for all).
        search: Substring matched against name and description.
        limit: Page size, must be positive.
        offset: Rows to skip, must not be negative.
    """

    client_id: int | None = None
    status: str | None = None
    search: str | None = None
    limit: int = 10
    offset: int = 0

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValidationError("Limit must be positive", field="limit", value=self.limit)
        if self.offset < 0:
            raise ValidationError("Offset cannot be negative", field="offset", value=self.offset)
        if self.status is not None and str(self.status).strip().lower() not in GalleryStatus.values():
            raise ValidationError(f'Invalid gallery status "{self.status}"', field="status", value=self.status)


__all__ = ["GetGalleryQuery", "ListGalleriesQuery"]
