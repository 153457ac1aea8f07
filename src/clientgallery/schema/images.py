"""Images table.

Orientation is derived from the pixel dimensions by triggers, and the
owning gallery's ``image_count`` follows inserts and deletes::

    width >  height  → landscape
    width <  height  → portrait
    width == height  → square
    unknown / <= 0   → NULL
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from clientgallery.schema.base import BaseSchema, IndexSpec, TriggerSpec

IMAGE_STATUSES = ("uploaded", "processing", "ready", "error")
ORIENTATIONS = ("landscape", "portrait", "square")


def _orientation_case(alias: str) -> str:
    w, h = f"{alias}.width", f"{alias}.height"
    return (
        f"CASE WHEN {w} IS NULL OR {h} IS NULL OR {w} <= 0 OR {h} <= 0 THEN NULL "
        f"WHEN {w} > {h} THEN 'landscape' "
        f"WHEN {w} < {h} THEN 'portrait' "
        "ELSE 'square' END"
    )


class ImageSchema(BaseSchema):
    TABLE = "images"
    REQUIRED_COLUMNS = (
        "id",
        "gallery_id",
        "filename",
        "original_filename",
        "file_size",
        "mime_type",
        "width",
        "height",
        "orientation",
        "rating_count",
        "rating_average",
        "created_at",
    )

    def create_table_sql(self) -> str:
        d = self.dialect
        return f"""
CREATE TABLE IF NOT EXISTS {self.table_name} (
    id {d.auto_increment()},
    gallery_id INTEGER NOT NULL,
    filename VARCHAR(255) NOT NULL,
    original_filename VARCHAR(255) NOT NULL,
    title VARCHAR(255),
    description TEXT,
    alt_text VARCHAR(255),
    file_size INTEGER NOT NULL DEFAULT 0,
    mime_type VARCHAR(100) NOT NULL,
    width INTEGER,
    height INTEGER,
    orientation {d.enum_type("orientation", ORIENTATIONS)},
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_featured SMALLINT NOT NULL DEFAULT 0,
    rating_count INTEGER NOT NULL DEFAULT 0,
    rating_average DECIMAL(4,2),
    metadata {d.json_type()},
    status {d.enum_type("status", IMAGE_STATUSES)} NOT NULL DEFAULT 'uploaded',
    {self.timestamp_columns()},
    UNIQUE (gallery_id, filename),
    FOREIGN KEY (gallery_id) REFERENCES {self.table("galleries")}(id) ON DELETE CASCADE
){d.table_options()}"""

    def indexes(self) -> list[IndexSpec]:
        return [
            IndexSpec(self.index_name("gallery_sort"), ("gallery_id", "sort_order")),
            IndexSpec(self.index_name("status"), ("status",)),
            IndexSpec(self.index_name("featured"), ("gallery_id", "is_featured")),
        ]

    def triggers(self) -> list[TriggerSpec]:
        t = self.table_name
        galleries = self.table("galleries")
        prefix = f"trg_{t}"
        counters = [
            TriggerSpec(
                f"{prefix}_count_insert",
                "AFTER",
                "INSERT",
                (f"UPDATE {galleries} SET image_count = image_count + 1 WHERE id = NEW.gallery_id",),
            ),
            TriggerSpec(
                f"{prefix}_count_delete",
                "AFTER",
                "DELETE",
                (
                    f"UPDATE {galleries} SET image_count = CASE WHEN image_count > 0 "
                    "THEN image_count - 1 ELSE 0 END WHERE id = OLD.gallery_id",
                ),
            ),
        ]
        if self.dialect.name == "mysql":
            orientation = [
                TriggerSpec(f"{prefix}_orientation_insert", "BEFORE", "INSERT",
                            (f"SET NEW.orientation = {_orientation_case('NEW')}",)),
                TriggerSpec(f"{prefix}_orientation_update", "BEFORE", "UPDATE",
                            (f"SET NEW.orientation = {_orientation_case('NEW')}",)),
            ]
        else:
            update = f"UPDATE {t} SET orientation = {_orientation_case('NEW')} WHERE id = NEW.id"
            orientation = [
                TriggerSpec(f"{prefix}_orientation_insert", "AFTER", "INSERT", (update,)),
                TriggerSpec(f"{prefix}_orientation_update", "AFTER", "UPDATE OF width, height", (update,)),
            ]
        return orientation + counters

    def check_data(self) -> list[str]:
        t = self.table_name
        issues = []
        orphans = self._scalar(
            f"SELECT COUNT(*) FROM {t} i LEFT JOIN {self.table('galleries')} g ON g.id = i.gallery_id "
            "WHERE g.id IS NULL"
        )
        if orphans:
            issues.append(f"{orphans} image(s) without a gallery")
        bad_dimensions = self._scalar(f"SELECT COUNT(*) FROM {t} WHERE width <= 0 OR height <= 0")
        if bad_dimensions:
            issues.append(f"{bad_dimensions} image(s) with non-positive dimensions")
        return issues

    @staticmethod
    def validate_data(data: Mapping[str, Any]) -> list[str]:
        """Check an image payload before insert; returns error messages."""
        errors = []
        for key in ("gallery_id", "filename", "original_filename", "mime_type"):
            if not data.get(key):
                errors.append(f"{key} is required")
        for key in ("file_size", "width", "height"):
            value = data.get(key)
            try:
                if isinstance(value, bool):
                    raise TypeError(key)
                float(value)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                errors.append(f"{key} must be numeric")
        return errors
