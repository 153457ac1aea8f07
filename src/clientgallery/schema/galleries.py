"""Galleries table."""

from __future__ import annotations

from clientgallery.schema.base import BaseSchema, IndexSpec

GALLERY_STATUSES = ("draft", "published", "archived")


class GallerySchema(BaseSchema):
    TABLE = "galleries"
    REQUIRED_COLUMNS = (
        "id",
        "name",
        "slug",
        "description",
        "status",
        "client_id",
        "sort_order",
        "settings",
        "image_count",
        "created_at",
        "updated_at",
    )

    def create_table_sql(self) -> str:
        d = self.dialect
        return f"""
CREATE TABLE IF NOT EXISTS {self.table_name} (
    id {d.auto_increment()},
    name VARCHAR(255) NOT NULL,
    slug VARCHAR(100) NOT NULL UNIQUE,
    description TEXT,
    status {d.enum_type("status", GALLERY_STATUSES)} NOT NULL DEFAULT 'draft',
    client_id INTEGER NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    settings {d.json_type()},
    image_count INTEGER NOT NULL DEFAULT 0,
    {self.timestamp_columns()},
    FOREIGN KEY (client_id) REFERENCES {self.table("clients")}(id) ON DELETE CASCADE
){d.table_options()}"""

    def indexes(self) -> list[IndexSpec]:
        return [
            IndexSpec(self.index_name("client_status"), ("client_id", "status")),
            IndexSpec(self.index_name("client_sort"), ("client_id", "sort_order")),
            IndexSpec(self.index_name("status"), ("status",)),
            IndexSpec(self.index_name("created_at"), ("created_at",)),
        ]

    def check_data(self) -> list[str]:
        t = self.table_name
        issues = []
        duplicates = self._scalar(
            f"SELECT COUNT(*) FROM (SELECT LOWER(slug) AS s FROM {t} GROUP BY LOWER(slug) HAVING COUNT(*) > 1) dup"
        )
        if duplicates:
            issues.append(f"{duplicates} duplicate slug(s)")

        statuses = ", ".join(f"'{s}'" for s in GALLERY_STATUSES)
        invalid = self._scalar(f"SELECT COUNT(*) FROM {t} WHERE status NOT IN ({statuses})")
        if invalid:
            issues.append(f"{invalid} gallery(ies) with an invalid status")
        return issues
