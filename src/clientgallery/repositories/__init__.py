"""Repositories over the gallery tables.

Each repository wraps one table; :class:`RepositoryManager` hands them out
for a shared connection and adds health, maintenance and integrity checks.
"""

from clientgallery.repositories._helpers import Page, PageSlice
from clientgallery.repositories.base import BaseRepository
from clientgallery.repositories.clients import ClientRepository
from clientgallery.repositories.galleries import GalleryRepository
from clientgallery.repositories.images import ImageRepository
from clientgallery.repositories.log_entries import RETENTION_DAYS, LogEntryRepository
from clientgallery.repositories.manager import (
    REPOSITORY_CLASSES,
    IntegrityIssue,
    IntegrityReport,
    RepositoryManager,
)
from clientgallery.repositories.ratings import RatingRepository

__all__ = [
    "BaseRepository",
    "ClientRepository",
    "GalleryRepository",
    "ImageRepository",
    "IntegrityIssue",
    "IntegrityReport",
    "LogEntryRepository",
    "Page",
    "PageSlice",
    "REPOSITORY_CLASSES",
    "RETENTION_DAYS",
    "RatingRepository",
    "RepositoryManager",
]
