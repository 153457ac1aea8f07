"""
Typed command objects for gallery writes.

Each dataclass is the *input* contract for one handler in
:mod:`clientgallery.application.handlers`. Commands validate their own
fields on construction, so a handler never sees an empty name or a
non-positive id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.domain.gallery import GalleryStatus


def _require_id(value: int, field_name: str = "id") -> None:
    if value <= 0:
        raise ValidationError("Gallery ID must be positive", field=field_name, value=value)


def _require_text(value: str | None, message: str, field_name: str) -> None:
    if value is not None and not value.strip():
        raise ValidationError(message, field=field_name, value=value)


# ------------------------------------------------------------------ #
# Create / update / delete
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class CreateGalleryCommand:
    """Request for :class:`~clientgallery.application.handlers.CreateGalleryHandler`."""

    name: str
    slug: str
    client_id: int
    description: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_text(self.name, "Gallery name cannot be empty", "name")
        _require_text(self.slug, "Gallery slug cannot be empty", "slug")
        if self.client_id <= 0:
            raise ValidationError("Client ID must be positive", field="client_id", value=self.client_id)


@dataclass(frozen=True, slots=True)
class UpdateGalleryCommand:
    """Partial update; ``None`` fields are left unchanged."""

    id: int
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    settings: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        _require_id(self.id)
        _require_text(self.name, "Gallery name cannot be empty", "name")
        _require_text(self.slug, "Gallery slug cannot be empty", "slug")


@dataclass(frozen=True, slots=True)
class DeleteGalleryCommand:
    id: int

    def __post_init__(self) -> None:
        _require_id(self.id)


# ------------------------------------------------------------------ #
# Status transitions
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class PublishGalleryCommand:
    id: int

    def __post_init__(self) -> None:
        _require_id(self.id)


@dataclass(frozen=True, slots=True)
class UnpublishGalleryCommand:
    id: int

    def __post_init__(self) -> None:
        _require_id(self.id)


@dataclass(frozen=True, slots=True)
class ArchiveGalleryCommand:
    id: int

    def __post_init__(self) -> None:
        _require_id(self.id)


@dataclass(frozen=True, slots=True)
class ChangeGalleryStatusCommand:
    """Move a gallery to ``status`` (draft, published or archived, any case)."""

    id: int
    status: str

    def __post_init__(self) -> None:
        _require_id(self.id)
        if str(self.status).strip().lower() not in GalleryStatus.values():
            raise ValidationError(
                f'Invalid gallery status "{self.status}". Valid statuses are: {", ".join(GalleryStatus.values())}',
                field="status",
                value=self.status,
            )


__all__ = [
    "ArchiveGalleryCommand",
    "ChangeGalleryStatusCommand",
    "CreateGalleryCommand",
    "DeleteGalleryCommand",
    "PublishGalleryCommand",
    "UnpublishGalleryCommand",
    "UpdateGalleryCommand",
]
