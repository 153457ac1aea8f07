"""Gallery aggregate: status, slug and the entity itself.

Manifesto:
    Business rules live on the entity, not in SQL. Repositories persist
    whatever a :class:`Gallery` says; a gallery can only become
    ``published`` through :meth:`Gallery.publish`, which checks its
    requirements first.

Examples:
    >>> g = Gallery.create("Summer Wedding", "summer-wedding", client_id=7)
    >>> g.status
    <GalleryStatus.DRAFT: 'draft'>
    >>> g.publish().is_published()
    True
    >>> str(GallerySlug.from_name("Über Größe"))
    'ueber-groesse'

Tags:
    domain, gallery, entity, value-object
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from clientgallery.core.errors import DomainError, InvalidSlugError, InvalidStatusError, ValidationError
from clientgallery.core.timestamps import from_db, to_db, utc_now

# =============================================================================
# STATUS
# =============================================================================


class GalleryStatus(str, Enum):
    """Lifecycle state of a gallery."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    @classmethod
    def from_string(cls, value: str | GalleryStatus) -> GalleryStatus:
        if isinstance(value, GalleryStatus):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidStatusError(
                f'Invalid gallery status "{normalized}". Valid statuses are: {", ".join(cls.values())}'
            ) from None

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    def allows_editing(self) -> bool:
        return self is not GalleryStatus.ARCHIVED

    def is_visible(self) -> bool:
        """Visible to the client on the public side."""
        return self is GalleryStatus.PUBLISHED

    def __str__(self) -> str:
        return self.value


_STATUS_COLORS = {
    GalleryStatus.DRAFT: "orange",
    GalleryStatus.PUBLISHED: "green",
    GalleryStatus.ARCHIVED: "gray",
}


# =============================================================================
# SLUG
# =============================================================================

SLUG_MIN_LENGTH = 2
SLUG_MAX_LENGTH = 100
RESERVED_SLUGS = frozenset({"admin", "wp-admin", "wp-content", "wp-includes", "feed", "rss", "atom"})
MAX_UNIQUE_ATTEMPTS = 1000

_TRANSLITERATION = str.maketrans(
    {
        "ä": "ae",
        "ö": "oe",
        "ü": "ue",
        "ß": "ss",
        "à": "a",
        "á": "a",
        "è": "e",
        "é": "e",
        "ì": "i",
        "í": "i",
        "ò": "o",
        "ó": "o",
        "ù": "u",
        "ú": "u",
    }
)
_DISALLOWED_RE = re.compile(r"[^a-z0-9\-_\s]")
_SEPARATOR_RE = re.compile(r"[\s\-_]+")
_SLUG_RE = re.compile(r"^[a-z0-9_-]+$")


def normalize_slug(value: str) -> str:
    """Lowercase, transliterate, drop other characters, collapse separators."""
    slug = value.strip().lower().translate(_TRANSLITERATION)
    slug = _DISALLOWED_RE.sub("", slug)
    slug = _SEPARATOR_RE.sub("-", slug)
    return slug.strip("-")


def _validate_slug(slug: str) -> None:
    if not slug:
        raise InvalidSlugError("Gallery slug cannot be empty")
    if len(slug) < SLUG_MIN_LENGTH:
        raise InvalidSlugError(f"Gallery slug must be at least {SLUG_MIN_LENGTH} characters long")
    if len(slug) > SLUG_MAX_LENGTH:
        raise InvalidSlugError(f"Gallery slug cannot be longer than {SLUG_MAX_LENGTH} characters")
    if not _SLUG_RE.match(slug):
        raise InvalidSlugError("Gallery slug can only contain lowercase letters, numbers, hyphens and underscores")
    if slug in RESERVED_SLUGS:
        raise InvalidSlugError(f'Gallery slug "{slug}" is reserved and cannot be used')


@dataclass(frozen=True, slots=True)
class GallerySlug:
    """URL-safe gallery identifier. Input is normalised, then validated."""

    value: str

    def __post_init__(self) -> None:
        normalized = normalize_slug(self.value)
        _validate_slug(normalized)
        object.__setattr__(self, "value", normalized)

    @classmethod
    def from_string(cls, value: str) -> GallerySlug:
        return cls(value)

    @classmethod
    def from_name(cls, name: str) -> GallerySlug:
        return cls(name)

    @classmethod
    def from_stored(cls, value: str) -> GallerySlug:
        """Wrap a slug read from the database as-is; it was validated on write."""
        slug = object.__new__(cls)
        object.__setattr__(slug, "value", value)
        return slug

    @staticmethod
    def is_valid(value: str) -> bool:
        try:
            GallerySlug(value)
        except InvalidSlugError:
            return False
        return True

    def make_unique(self, exists: Callable[[str], bool]) -> GallerySlug:
        """Append ``-1``, ``-2``, ... until ``exists`` returns False."""
        candidate = self.value
        counter = 1
        while exists(candidate):
            if counter > MAX_UNIQUE_ATTEMPTS:
                raise InvalidSlugError(
                    f"Cannot generate unique slug after {MAX_UNIQUE_ATTEMPTS} attempts"
                ).with_context(slug=self.value)
            candidate = f"{self.value}-{counter}"
            counter += 1
        return GallerySlug(candidate)

    def __str__(self) -> str:
        return self.value


# =============================================================================
# ENTITY
# =============================================================================

NAME_MAX_LENGTH = 255


def _clean_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Gallery name cannot be empty", field="name", value=name)
    if len(trimmed) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"Gallery name cannot be longer than {NAME_MAX_LENGTH} characters", field="name", value=name
        )
    return trimmed


@dataclass
class Gallery:
    """A client gallery.

    ``id`` is 0 until the repository persists it. ``client_id`` 0 means
    "not assigned"; such a gallery can exist as a draft but cannot be
    published.
    """

    name: str
    slug: GallerySlug
    client_id: int = 0
    description: str | None = None
    status: GalleryStatus = GalleryStatus.DRAFT
    settings: dict[str, Any] = field(default_factory=dict)
    image_count: int = 0
    sort_order: int = 0
    id: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.id < 0:
            raise ValidationError("Gallery ID cannot be negative", field="id", value=self.id)
        if self.client_id < 0:
            raise ValidationError("Client ID cannot be negative", field="client_id", value=self.client_id)
        self.image_count = max(0, self.image_count)

    @classmethod
    def create(
        cls,
        name: str,
        slug: str | GallerySlug,
        client_id: int,
        description: str | None = None,
        settings: Mapping[str, Any] | None = None,
    ) -> Gallery:
        """New, unsaved draft gallery."""
        return cls(
            name=_clean_name(name),
            slug=slug if isinstance(slug, GallerySlug) else GallerySlug(slug),
            client_id=client_id,
            description=description,
            settings=dict(settings or {}),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Gallery:
        """Hydrate from a database row (no name validation for stored data)."""
        settings = row.get("settings") or {}
        if isinstance(settings, str):
            settings = json.loads(settings) if settings else {}
        return cls(
            id=int(row["id"]),
            name=row.get("name") or "",
            slug=GallerySlug.from_stored(row["slug"]),
            description=row.get("description"),
            status=GalleryStatus.from_string(row.get("status") or "draft"),
            client_id=int(row.get("client_id") or 0),
            settings=settings,
            image_count=int(row.get("image_count") or 0),
            sort_order=int(row.get("sort_order") or 0),
            created_at=from_db(row.get("created_at")) or utc_now(),
            updated_at=from_db(row.get("updated_at")) or utc_now(),
        )

    # -- Mutations -----------------------------------------------------------

    def touch(self) -> Gallery:
        self.updated_at = utc_now()
        return self

    def rename(self, name: str, slug: str | GallerySlug | None = None) -> Gallery:
        self.name = _clean_name(name)
        if slug is not None:
            self.slug = slug if isinstance(slug, GallerySlug) else GallerySlug(slug)
        return self.touch()

    def update_slug(self, slug: str | GallerySlug) -> Gallery:
        self.slug = slug if isinstance(slug, GallerySlug) else GallerySlug(slug)
        return self.touch()

    def update_description(self, description: str | None) -> Gallery:
        self.description = description
        return self.touch()

    def update_settings(self, settings: Mapping[str, Any]) -> Gallery:
        self.settings = {**self.settings, **settings}
        return self.touch()

    def publish(self) -> Gallery:
        """Move to ``published``.

        Raises:
            DomainError: Name empty or no client assigned; ``violations``
                lists every unmet requirement.
        """
        requirements = self.publish_requirements()
        if requirements:
            raise DomainError(
                "Gallery cannot be published: " + ", ".join(requirements),
                violations=requirements,
            ).with_context(entity_id=self.id, operation="publish")
        self.status = GalleryStatus.PUBLISHED
        return self.touch()

    def unpublish(self) -> Gallery:
        return self.set_to_draft()

    def set_to_draft(self) -> Gallery:
        self.status = GalleryStatus.DRAFT
        return self.touch()

    def archive(self) -> Gallery:
        self.status = GalleryStatus.ARCHIVED
        return self.touch()

    def change_status(self, status: str | GalleryStatus) -> Gallery:
        """Route through the matching transition so publishing stays guarded."""
        target = GalleryStatus.from_string(status)
        if target is GalleryStatus.PUBLISHED:
            return self.publish()
        if target is GalleryStatus.ARCHIVED:
            return self.archive()
        return self.set_to_draft()

    def add_image(self) -> Gallery:
        self.image_count += 1
        return self.touch()

    def remove_image(self) -> Gallery:
        self.image_count = max(0, self.image_count - 1)
        return self.touch()

    # -- Rules / predicates --------------------------------------------------

    def publish_requirements(self) -> list[str]:
        issues = []
        if not (self.name or "").strip():
            issues.append("Gallery must have a name")
        if self.client_id <= 0:
            issues.append("Gallery must be assigned to a client")
        return issues

    def can_be_published(self) -> bool:
        return not self.publish_requirements()

    def is_empty(self) -> bool:
        return self.image_count == 0

    def is_published(self) -> bool:
        return self.status is GalleryStatus.PUBLISHED

    def is_draft(self) -> bool:
        return self.status is GalleryStatus.DRAFT

    def is_archived(self) -> bool:
        return self.status is GalleryStatus.ARCHIVED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug.value,
            "description": self.description,
            "status": self.status.value,
            "client_id": self.client_id,
            "sort_order": self.sort_order,
            "settings": self.settings,
            "image_count": self.image_count,
            "created_at": to_db(self.created_at),
            "updated_at": to_db(self.updated_at),
        }


__all__ = [
    "Gallery",
    "GallerySlug",
    "GalleryStatus",
    "RESERVED_SLUGS",
    "normalize_slug",
]
