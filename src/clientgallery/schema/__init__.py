"""Table schemas and the dependency-ordered installer.

Modules
-------
base          BaseSchema + IndexSpec/TriggerSpec/ViewSpec
clients       ClientSchema
galleries     GallerySchema
images        ImageSchema (orientation + image_count triggers)
ratings       RatingSchema (rating aggregate triggers, analytics views)
log_entries   LogEntrySchema
manager       SchemaManager (topological install, options table)
"""

from clientgallery.schema.base import BaseSchema, IndexSpec, TriggerSpec, ViewSpec
from clientgallery.schema.clients import ClientSchema
from clientgallery.schema.galleries import GallerySchema
from clientgallery.schema.images import ImageSchema
from clientgallery.schema.log_entries import LogEntrySchema
from clientgallery.schema.manager import InstallResult, SchemaManager, UninstallResult
from clientgallery.schema.ratings import RatingSchema

__all__ = [
    "BaseSchema",
    "ClientSchema",
    "GallerySchema",
    "ImageSchema",
    "IndexSpec",
    "InstallResult",
    "LogEntrySchema",
    "RatingSchema",
    "SchemaManager",
    "TriggerSpec",
    "UninstallResult",
    "ViewSpec",
]
