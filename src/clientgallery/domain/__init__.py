"""Domain model: gallery aggregate and image/rating value objects."""

from clientgallery.domain.gallery import Gallery, GallerySlug, GalleryStatus, normalize_slug
from clientgallery.domain.image import Orientation
from clientgallery.domain.rating import RatingValue, validate_score

__all__ = [
    "Gallery",
    "GallerySlug",
    "GalleryStatus",
    "Orientation",
    "RatingValue",
    "normalize_slug",
    "validate_score",
]
