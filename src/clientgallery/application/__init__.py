"""Gallery commands, queries, handlers and the buses that route them."""

from clientgallery.application.bus import CommandBus, QueryBus, build_buses
from clientgallery.application.commands import (
    ArchiveGalleryCommand,
    ChangeGalleryStatusCommand,
    CreateGalleryCommand,
    DeleteGalleryCommand,
    PublishGalleryCommand,
    UnpublishGalleryCommand,
    UpdateGalleryCommand,
)
from clientgallery.application.queries import GetGalleryQuery, ListGalleriesQuery

__all__ = [
    "ArchiveGalleryCommand",
    "ChangeGalleryStatusCommand",
    "CommandBus",
    "CreateGalleryCommand",
    "DeleteGalleryCommand",
    "GetGalleryQuery",
    "ListGalleriesQuery",
    "PublishGalleryCommand",
    "QueryBus",
    "UnpublishGalleryCommand",
    "UpdateGalleryCommand",
    "build_buses",
]
