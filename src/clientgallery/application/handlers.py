"""Command and query handlers over :class:`GalleryRepository`.

One handler per message type. Handlers load the entity, apply the
domain transition and save; business rules live on
:class:`~clientgallery.domain.gallery.Gallery`, not here.

Failure modes::

    gallery id unknown          → GalleryNotFoundError
    slug owned by other gallery → ValidationError
    publish requirements unmet  → DomainError (from Gallery.publish)

Tags:
    clientgallery, application, handlers
"""

from __future__ import annotations

from clientgallery.core.errors import GalleryNotFoundError, ValidationError
from clientgallery.core.logging import get_logger
from clientgallery.domain.gallery import Gallery, GallerySlug
from clientgallery.repositories._helpers import Page, PageSlice
from clientgallery.repositories.galleries import GalleryRepository

from .commands import (
    ArchiveGalleryCommand,
    ChangeGalleryStatusCommand,
    CreateGalleryCommand,
    DeleteGalleryCommand,
    PublishGalleryCommand,
    UnpublishGalleryCommand,
    UpdateGalleryCommand,
)
from .queries import GetGalleryQuery, ListGalleriesQuery

logger = get_logger(__name__)


class _GalleryHandler:
    def __init__(self, galleries: GalleryRepository) -> None:
        self.galleries = galleries

    def _load(self, gallery_id: int) -> Gallery:
        gallery = self.galleries.find_gallery_by_id(gallery_id)
        if gallery is None:
            raise GalleryNotFoundError.for_id(gallery_id)
        return gallery

    def _slug_taken(self, slug: str, exclude_id: int | None = None) -> None:
        if self.galleries.exists_by_slug(GallerySlug(slug), exclude_id=exclude_id):
            raise ValidationError(f'Gallery with slug "{slug}" already exists', field="slug", value=slug)


# -- Commands -----------------------------------------------------------------


class CreateGalleryHandler(_GalleryHandler):
    def handle(self, command: CreateGalleryCommand) -> Gallery:
        self._slug_taken(command.slug)
        gallery = Gallery.create(
            name=command.name,
            slug=command.slug,
            client_id=command.client_id,
            description=command.description,
            settings=command.settings,
        )
        return self.galleries.save(gallery)


class UpdateGalleryHandler(_GalleryHandler):
    def handle(self, command: UpdateGalleryCommand) -> Gallery:
        gallery = self._load(command.id)
        if command.slug is not None:
            self._slug_taken(command.slug, exclude_id=command.id)
            gallery.update_slug(command.slug)
        if command.name is not None:
            gallery.rename(command.name)
        if command.description is not None:
            gallery.update_description(command.description)
        if command.settings is not None:
            gallery.update_settings(command.settings)
        return self.galleries.save(gallery)


class DeleteGalleryHandler(_GalleryHandler):
    def handle(self, command: DeleteGalleryCommand) -> bool:
        self._load(command.id)
        return self.galleries.delete_by_id(command.id)


class PublishGalleryHandler(_GalleryHandler):
    def handle(self, command: PublishGalleryCommand) -> Gallery:
        gallery = self._load(command.id).publish()
        logger.info("gallery.published", gallery_id=gallery.id)
        return self.galleries.save(gallery)


class UnpublishGalleryHandler(_GalleryHandler):
    def handle(self, command: UnpublishGalleryCommand) -> Gallery:
        gallery = self._load(command.id).unpublish()
        logger.info("gallery.unpublished", gallery_id=gallery.id)
        return self.galleries.save(gallery)


class ArchiveGalleryHandler(_GalleryHandler):
    def handle(self, command: ArchiveGalleryCommand) -> Gallery:
        gallery = self._load(command.id).archive()
        logger.info("gallery.archived", gallery_id=gallery.id)
        return self.galleries.save(gallery)


class ChangeGalleryStatusHandler(_GalleryHandler):
    def handle(self, command: ChangeGalleryStatusCommand) -> Gallery:
        gallery = self._load(command.id)
        previous = gallery.status
        gallery.change_status(command.status)
        logger.info("gallery.status_changed", gallery_id=gallery.id, old=previous.value, new=gallery.status.value)
        return self.galleries.save(gallery)


# -- Queries ------------------------------------------------------------------


class GetGalleryHandler(_GalleryHandler):
    def handle(self, query: GetGalleryQuery) -> Gallery:
        return self._load(query.id)


class ListGalleriesHandler(_GalleryHandler):
    def handle(self, query: ListGalleriesQuery) -> Page:
        return self.galleries.find_page(
            status=query.status,
            client_id=query.client_id,
            search=query.search,
            page=PageSlice(limit=query.limit, offset=query.offset),
        )


__all__ = [
    "ArchiveGalleryHandler",
    "ChangeGalleryStatusHandler",
    "CreateGalleryHandler",
    "DeleteGalleryHandler",
    "GetGalleryHandler",
    "ListGalleriesHandler",
    "PublishGalleryHandler",
    "UnpublishGalleryHandler",
    "UpdateGalleryHandler",
]
