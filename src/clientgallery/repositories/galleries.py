"""Gallery repository.

Works in :class:`~clientgallery.domain.gallery.Gallery` entities rather
than raw dicts. ``image_count`` is maintained by triggers on the images
table, so :meth:`GalleryRepository.save` never writes it on update.

Tags:
    clientgallery, repository, galleries

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from clientgallery.core.errors import GalleryNotFoundError, QueryError
from clientgallery.core.logging import get_logger
from clientgallery.core.settings import get_settings
from clientgallery.core.timestamps import db_ago, db_now, to_db
from clientgallery.domain.gallery import Gallery, GallerySlug, GalleryStatus

from ._helpers import LIKE_ESCAPE, Page, PageSlice, _build_where, _like
from .base import BaseRepository

logger = get_logger(__name__)


class GalleryRepository(BaseRepository):
    """Persistence for :class:`Gallery` entities."""

    TABLE = "galleries"
    FILLABLE = ("name", "slug", "description", "status", "client_id", "sort_order", "settings", "image_count")
    JSON_FIELDS = ("settings",)
    CASTS = {"id": "int", "client_id": "int", "sort_order": "int", "image_count": "int"}

    # -- Mapping -------------------------------------------------------------

    def _to_entity(self, row: Mapping[str, Any] | None) -> Gallery | None:
        return Gallery.from_row(row) if row is not None else None

    def _to_entities(self, rows: list[dict[str, Any]]) -> list[Gallery]:
        return [Gallery.from_row(row) for row in rows]

    def _columns(self, gallery: Gallery) -> dict[str, Any]:
        return {
            "name": gallery.name,
            "slug": gallery.slug.value,
            "description": gallery.description,
            "status": gallery.status.value,
            "client_id": gallery.client_id,
            "sort_order": gallery.sort_order,
            "settings": json.dumps(gallery.settings),
        }

    def _check(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(data)
        if "slug" in out:
            slug = out["slug"]
            out["slug"] = (slug if isinstance(slug, GallerySlug) else GallerySlug(slug or "")).value
        if "status" in out:
            out["status"] = GalleryStatus.from_string(out["status"]).value
        return out

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Normalise the slug and status; raises ``InvalidSlugError`` / ``InvalidStatusError``."""
        return self._check(data)

    def prepare_update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._check(data)

    # -- Save / delete -------------------------------------------------------

    def save(self, gallery: Gallery) -> Gallery:
        """Insert (``id == 0``) or update; returns the stored gallery.

        Raises:
            IntegrityError: Slug already taken or client does not exist.
            GalleryNotFoundError: Updating an id that is not stored.
        """
        if gallery.id == 0:
            columns = self._columns(gallery)
            columns["created_at"] = to_db(gallery.created_at)
            columns["updated_at"] = to_db(gallery.updated_at)
            new_id = self.create(columns)
            if not new_id:
                raise QueryError(f"Gallery {gallery.name!r} could not be stored").with_context(
                    table=self.table_name, operation="save"
                )
            logger.info("gallery.created", gallery_id=new_id, name=gallery.name)
            gallery.id = new_id
        else:
            if not self.exists(gallery.id):
                raise GalleryNotFoundError.for_id(gallery.id)
            self.update(gallery.id, self._columns(gallery))
            logger.info("gallery.updated", gallery_id=gallery.id, name=gallery.name)
        stored = self.find_gallery_by_id(gallery.id)
        return stored if stored is not None else gallery

    def delete_by_id(self, gallery_id: int) -> bool:
        deleted = self.delete(gallery_id)
        if deleted:
            logger.info("gallery.deleted", gallery_id=gallery_id)
        return deleted

    # -- Lookups -------------------------------------------------------------

    def find_gallery_by_id(self, gallery_id: int) -> Gallery | None:
        return self._to_entity(self.find_by_id(gallery_id))

    def find_by_slug(self, slug: str | GallerySlug) -> Gallery | None:
        value = slug.value if isinstance(slug, GallerySlug) else slug
        return self._to_entity(self.find_one_by({"slug": value}))

    def find_by_status(self, status: str | GalleryStatus) -> list[Gallery]:
        status = GalleryStatus.from_string(status)
        return self._to_entities(self.find_by({"status": status.value}, order_by="created_at DESC, id DESC"))

    def find_by_client_id(self, client_id: int) -> list[Gallery]:
        return self._to_entities(self.find_by({"client_id": client_id}, order_by="sort_order ASC, name ASC"))

    def exists_by_slug(self, slug: str | GallerySlug, exclude_id: int | None = None) -> bool:
        value = slug.value if isinstance(slug, GallerySlug) else slug
        sql = f"SELECT 1 FROM {self.table_name} WHERE slug = {self.ph(1)}"
        params: tuple = (value,)
        if exclude_id is not None:
            sql += f" AND id != {self.ph(1)}"
            params = (*params, exclude_id)
        return self.scalar(sql, params) is not None

    def exists_by_id(self, gallery_id: int) -> bool:
        return self.exists(gallery_id)

    def unique_slug(self, base: str) -> GallerySlug:
        """Slug derived from ``base`` with a numeric suffix if already taken."""
        return GallerySlug.from_name(base).make_unique(self.exists_by_slug)

    # -- Counting ------------------------------------------------------------

    def count_by_status(self, status: str | GalleryStatus) -> int:
        return self.count({"status": GalleryStatus.from_string(status).value})

    def count_by_criteria(self, status: str | GalleryStatus | None = None, client_id: int | None = None) -> int:
        return self.count(
            {
                "status": GalleryStatus.from_string(status).value if status is not None else None,
                "client_id": client_id,
            }
        )

    # -- Ordering ------------------------------------------------------------

    def next_sort_order(self, client_id: int) -> int:
        current = self.scalar(
            f"SELECT MAX(sort_order) FROM {self.table_name} WHERE client_id = {self.ph(1)}", (client_id,)
        )
        return int(current or 0) + 1

    def update_sort_orders(self, orders: Mapping[int, int]) -> bool:
        """Apply ``{gallery_id: sort_order}`` atomically."""
        with self.transaction():
            for gallery_id, sort_order in orders.items():
                self._run(
                    f"UPDATE {self.table_name} SET sort_order = {self.ph(1)}, updated_at = {self.ph(1)} "
                    f"WHERE id = {self.ph(1)}",
                    (int(sort_order), db_now(), int(gallery_id)),
                    operation="update_sort_orders",
                )
        logger.info("gallery.sort_orders_updated", count=len(orders))
        return True

    def refresh_image_count(self, gallery_id: int) -> int:
        """Recount images for one gallery and store the result."""
        count = int(
            self.scalar(
                f"SELECT COUNT(*) FROM {self.table('images')} WHERE gallery_id = {self.ph(1)}", (gallery_id,)
            )
            or 0
        )
        self._run(
            f"UPDATE {self.table_name} SET image_count = {self.ph(1)} WHERE id = {self.ph(1)}",
            (count, gallery_id),
            operation="refresh_image_count",
        )
        return count

    # -- Listing -------------------------------------------------------------

    def find_with_pagination(self, limit: int = 20, offset: int = 0) -> list[Gallery]:
        page = PageSlice(limit=limit, offset=offset)
        return self._to_entities(self.find_all(order_by="created_at DESC, id DESC", limit=page.limit, offset=page.offset))

    def _criteria_where(
        self,
        status: str | GalleryStatus | None,
        client_id: int | None,
        search: str | None,
    ) -> tuple[str, tuple]:
        extra: list[str] = []
        extra_params: tuple = ()
        if search:
            pattern = _like(search.strip())
            extra.append(f"(name LIKE {self.ph(1)} {LIKE_ESCAPE} OR description LIKE {self.ph(1)} {LIKE_ESCAPE})")
            extra_params = (pattern, pattern)
        where, params = _build_where(
            {
                "status": GalleryStatus.from_string(status).value if status is not None else None,
                "client_id": client_id,
            },
            self.ph,
            extra_clauses=extra,
        )
        return where, (*params, *extra_params)

    def find_by_criteria(
        self,
        status: str | GalleryStatus | None = None,
        client_id: int | None = None,
        search: str | None = None,
        page: PageSlice | None = None,
    ) -> list[Gallery]:
        where, params = self._criteria_where(status, client_id, search)
        sql = f"SELECT * FROM {self.table_name} WHERE {where} ORDER BY created_at DESC, id DESC"
        if page is not None:
            sql += f" LIMIT {self.ph(1)} OFFSET {self.ph(1)}"
            params = (*params, page.limit, page.offset)
        return self._to_entities(self.cast_rows(self.query(sql, params)))

    def find_page(
        self,
        status: str | GalleryStatus | None = None,
        client_id: int | None = None,
        search: str | None = None,
        page: PageSlice | None = None,
    ) -> Page:
        """:meth:`find_by_criteria` plus the total row count."""
        page = page or PageSlice()
        where, params = self._criteria_where(status, client_id, search)
        total = int(self.scalar(f"SELECT COUNT(*) FROM {self.table_name} WHERE {where}", params) or 0)
        items = self.find_by_criteria(status, client_id, search, page)
        return Page(items=items, total=total, limit=page.limit, offset=page.offset)

    # -- Statistics ----------------------------------------------------------

    def get_statistics(self, client_id: int | None = None, recent_days: int | None = None) -> dict[str, Any]:
        """Totals per status and galleries created in the last ``recent_days`` (default from settings)."""
        recent_days = recent_days or get_settings().recent_days
        stats: dict[str, Any] = {"total_galleries": self.count_by_criteria(client_id=client_id)}
        stats["by_status"] = {s.value: self.count_by_criteria(s, client_id) for s in GalleryStatus}
        where, params = _build_where({"client_id": client_id}, self.ph)
        stats["recent"] = int(
            self.scalar(
                f"SELECT COUNT(*) FROM {self.table_name} WHERE {where} AND created_at >= {self.ph(1)}",
                (*params, db_ago(days=recent_days)),
            )
            or 0
        )
        stats["images_in_galleries"] = int(
            self.scalar(f"SELECT COALESCE(SUM(image_count), 0) FROM {self.table_name} WHERE {where}", params) or 0
        )
        return stats


__all__ = ["GalleryRepository"]
