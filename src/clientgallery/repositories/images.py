"""Image repository.

Tags:
    clientgallery, repository, images

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.core.logging import get_logger
from clientgallery.core.timestamps import db_now
from clientgallery.domain.image import Orientation
from clientgallery.schema.images import ImageSchema

from ._helpers import LIKE_ESCAPE, _like
from .base import BaseRepository

logger = get_logger(__name__)

LARGE_IMAGE_BYTES = 5 * 1024 * 1024

# Columns bulk_update_metadata writes directly; other keys go into ``metadata``.
DIRECT_METADATA_COLUMNS = ("title", "description", "alt_text")


class ImageRepository(BaseRepository):
    """CRUD, ordering and featured-image handling for ``images``."""

    TABLE = "images"
    FILLABLE = (
        "gallery_id",
        "filename",
        "original_filename",
        "title",
        "description",
        "alt_text",
        "file_size",
        "mime_type",
        "width",
        "height",
        "orientation",
        "sort_order",
        "is_featured",
        "metadata",
        "status",
    )
    JSON_FIELDS = ("metadata",)
    CASTS = {
        "id": "int",
        "gallery_id": "int",
        "file_size": "int",
        "width": "int",
        "height": "int",
        "sort_order": "int",
        "is_featured": "bool",
        "rating_count": "int",
        "rating_average": "float",
    }

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        errors = ImageSchema.validate_data(data)
        if errors:
            raise ValidationError("Invalid image data: " + "; ".join(errors), field="image", value=dict(data))
        out = dict(data)
        orientation = Orientation.from_dimensions(out.get("width"), out.get("height"))
        out["orientation"] = orientation.value if orientation else None
        if "sort_order" not in out:
            out["sort_order"] = self.next_sort_order(int(out["gallery_id"]))
        return out

    def prepare_update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(data)
        if "width" in out or "height" in out:
            orientation = Orientation.from_dimensions(out.get("width"), out.get("height"))
            out["orientation"] = orientation.value if orientation else None
        return out

    def update(self, id: int, data: Mapping[str, Any]) -> bool:
        if ("width" in data) != ("height" in data):
            current = self.find_by_id(id) or {}
            data = {"width": current.get("width"), "height": current.get("height"), **data}
        return super().update(id, data)

    # -- Lookups -------------------------------------------------------------

    def find_by_gallery_id(self, gallery_id: int, limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        return self.find_all({"gallery_id": gallery_id}, order_by="sort_order ASC, id ASC", limit=limit, offset=offset)

    def find_featured(self, gallery_id: int | None = None) -> list[dict[str, Any]]:
        return self.find_all({"is_featured": 1, "gallery_id": gallery_id}, order_by="gallery_id ASC, sort_order ASC")

    def search(self, term: str, gallery_id: int | None = None, limit: int = 50) -> list[dict[str, Any]]:
        """Title, description, alt text or filename containing ``term``."""
        pattern = _like(term.strip())
        columns = ("title", "description", "alt_text", "original_filename")
        clause = " OR ".join(f"{c} LIKE {self.ph(1)} {LIKE_ESCAPE}" for c in columns)
        sql = f"SELECT * FROM {self.table_name} WHERE ({clause})"
        params: tuple = (pattern,) * len(columns)
        if gallery_id is not None:
            sql += f" AND gallery_id = {self.ph(1)}"
            params = (*params, gallery_id)
        sql += f" ORDER BY sort_order ASC, id ASC LIMIT {self.ph(1)}"
        return self.cast_rows(self.query(sql, (*params, limit)))

    def find_by_mime_type(self, mime_type: str) -> list[dict[str, Any]]:
        return self.find_by({"mime_type": mime_type}, order_by="created_at DESC")

    def find_by_orientation(self, orientation: str | Orientation, gallery_id: int | None = None) -> list[dict[str, Any]]:
        value = Orientation(orientation).value
        return self.find_all({"orientation": value, "gallery_id": gallery_id}, order_by="sort_order ASC, id ASC")

    def find_large(self, max_bytes: int = LARGE_IMAGE_BYTES) -> list[dict[str, Any]]:
        """Images larger than ``max_bytes``, biggest first."""
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE file_size > {self.ph(1)} ORDER BY file_size DESC",
                (max_bytes,),
            )
        )

    def find_duplicates(self) -> list[dict[str, Any]]:
        """Groups sharing original filename and size; ``image_ids`` lists members."""
        rows = self.query(
            f"SELECT original_filename, file_size, COUNT(*) AS count, GROUP_CONCAT(id) AS image_ids "
            f"FROM {self.table_name} GROUP BY original_filename, file_size "
            f"HAVING COUNT(*) > 1 ORDER BY count DESC"
        )
        for row in rows:
            row["count"] = int(row["count"])
            row["image_ids"] = sorted(int(i) for i in str(row["image_ids"]).split(","))
        return rows

    def next_sort_order(self, gallery_id: int) -> int:
        current = self.scalar(
            f"SELECT MAX(sort_order) FROM {self.table_name} WHERE gallery_id = {self.ph(1)}", (gallery_id,)
        )
        return int(current or 0) + 1

    # -- Multi-row writes ----------------------------------------------------

    def update_sort_order(self, orders: Mapping[int, int]) -> bool:
        """Apply ``{image_id: sort_order}`` atomically."""
        with self.transaction():
            for image_id, sort_order in orders.items():
                self._run(
                    f"UPDATE {self.table_name} SET sort_order = {self.ph(1)}, updated_at = {self.ph(1)} "
                    f"WHERE id = {self.ph(1)}",
                    (int(sort_order), db_now(), int(image_id)),
                    operation="update_sort_order",
                )
        return True

    def set_featured(self, image_id: int, gallery_id: int) -> bool:
        """Make one image the gallery's featured image, clearing the others."""
        with self.transaction():
            now = db_now()
            true, false = self.dialect.boolean_true(), self.dialect.boolean_false()
            self._run(
                f"UPDATE {self.table_name} SET is_featured = {false}, updated_at = {self.ph(1)} "
                f"WHERE gallery_id = {self.ph(1)} AND is_featured = {true}",
                (now, gallery_id),
                operation="set_featured",
            )
            changed = self._run(
                f"UPDATE {self.table_name} SET is_featured = {true}, updated_at = {self.ph(1)} "
                f"WHERE id = {self.ph(1)} AND gallery_id = {self.ph(1)}",
                (now, image_id, gallery_id),
                operation="set_featured",
            )
            if changed == 0:
                raise ValidationError(
                    f"Image {image_id} does not belong to gallery {gallery_id}",
                    field="image_id",
                    value=image_id,
                )
        logger.info("image.featured", image_id=image_id, gallery_id=gallery_id)
        return True

    def bulk_update_metadata(self, image_ids: Iterable[int], metadata: Mapping[str, Any]) -> int:
        """Set title/description/alt text and merge other keys into ``metadata``."""
        ids = list(image_ids)
        if not ids or not metadata:
            return 0
        direct = {k: v for k, v in metadata.items() if k in DIRECT_METADATA_COLUMNS}
        extra = {k: v for k, v in metadata.items() if k not in DIRECT_METADATA_COLUMNS}
        updated = 0
        with self.transaction():
            for image in self.find_by({"id": ids}):
                changes: dict[str, Any] = dict(direct)
                if extra:
                    changes["metadata"] = {**(image.get("metadata") or {}), **extra}
                if self.update(image["id"], changes):
                    updated += 1
        return updated

    # -- Statistics ----------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        row = self.query_one(
            f"SELECT COUNT(*) AS total_images, "
            f"SUM(CASE WHEN is_featured = {self.dialect.boolean_true()} THEN 1 ELSE 0 END) AS featured_images, "
            f"AVG(file_size) AS avg_file_size, "
            f"COALESCE(SUM(file_size), 0) AS total_file_size, "
            f"COUNT(DISTINCT mime_type) AS unique_mime_types, "
            f"COUNT(DISTINCT gallery_id) AS galleries_with_images "
            f"FROM {self.table_name}"
        ) or {}
        stats: dict[str, Any] = {
            "total_images": int(row.get("total_images") or 0),
            "featured_images": int(row.get("featured_images") or 0),
            "avg_file_size": float(row.get("avg_file_size") or 0.0),
            "total_file_size": int(row.get("total_file_size") or 0),
            "unique_mime_types": int(row.get("unique_mime_types") or 0),
            "galleries_with_images": int(row.get("galleries_with_images") or 0),
        }
        stats["mime_type_distribution"] = {
            r["mime_type"]: int(r["cnt"])
            for r in self.query(
                f"SELECT mime_type, COUNT(*) AS cnt FROM {self.table_name} GROUP BY mime_type ORDER BY cnt DESC"
            )
        }
        stats["orientation_distribution"] = {
            r["orientation"]: int(r["cnt"])
            for r in self.query(
                f"SELECT orientation, COUNT(*) AS cnt FROM {self.table_name} "
                f"WHERE orientation IS NOT NULL GROUP BY orientation"
            )
        }
        return stats


__all__ = ["ImageRepository", "LARGE_IMAGE_BYTES"]
