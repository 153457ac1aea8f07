"""Rating repository.

A client rates an image at most once: ``(image_id, client_id)`` is unique.
:meth:`RatingRepository.rate` updates the existing row instead of failing,
while :meth:`RatingRepository.create` surfaces the duplicate as
:class:`~clientgallery.core.errors.IntegrityError`. The per-image
aggregates (``rating_count``, ``rating_average``) are kept by triggers.

Tags:
    clientgallery, repository, ratings

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.core.logging import get_logger
from clientgallery.core.timestamps import db_ago, db_now
from clientgallery.domain.rating import RatingValue, validate_score
from clientgallery.schema.ratings import FEEDBACK_CATEGORIES, PRIORITY_LEVELS

from .base import BaseRepository

logger = get_logger(__name__)


class RatingRepository(BaseRepository):
    """Ratings, moderation and rating analytics."""

    TABLE = "ratings"
    FILLABLE = (
        "image_id",
        "client_id",
        "session_id",
        "rating",
        "score",
        "comment",
        "feedback_category",
        "priority_level",
        "feedback_tags",
        "moderation_status",
        "moderator_notes",
        "moderated_at",
        "is_public",
        "is_anonymous",
        "client_ip",
        "user_agent",
        "device_info",
        "expires_at",
    )
    JSON_FIELDS = ("device_info",)
    CASTS = {
        "id": "int",
        "image_id": "int",
        "client_id": "int",
        "score": "int",
        "is_public": "bool",
        "is_anonymous": "bool",
    }

    def _check(self, data: Mapping[str, Any], *, creating: bool) -> dict[str, Any]:
        out = dict(data)
        if creating or "rating" in out:
            out["rating"] = RatingValue.from_string(out.get("rating") or "").value
        if "score" in out:
            out["score"] = validate_score(out["score"])
        category = out.get("feedback_category")
        if category is not None and category not in FEEDBACK_CATEGORIES:
            raise ValidationError(f"Invalid feedback category: {category}", field="feedback_category", value=category)
        priority = out.get("priority_level")
        if priority is not None and priority not in PRIORITY_LEVELS:
            raise ValidationError(f"Invalid priority level: {priority}", field="priority_level", value=priority)
        return out

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._check(data, creating=True)

    def prepare_update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._check(data, creating=False)

    def _approved(self, approved_only: bool, alias: str = "") -> str:
        return f" AND {alias}moderation_status = 'approved'" if approved_only else ""

    # -- Writing -------------------------------------------------------------

    def rate(
        self,
        image_id: int,
        client_id: int,
        rating: str | RatingValue,
        score: int | None = None,
        comment: str | None = None,
        **fields: Any,
    ) -> int:
        """Create or replace the client's rating of an image; returns its id."""
        data = {"rating": rating, "score": score, "comment": comment, **fields}
        existing = self.find_for(image_id, client_id)
        if existing is not None:
            self.update(existing["id"], data)
            return int(existing["id"])
        return self.create({"image_id": image_id, "client_id": client_id, **data})

    def moderate(self, rating_ids: Iterable[int], approve: bool, notes: str = "") -> int:
        """Approve or reject ratings in one transaction; returns rows changed."""
        ids = list(rating_ids)
        if not ids:
            return 0
        status = "approved" if approve else "rejected"
        now = db_now()
        with self.transaction():
            changed = self._run(
                f"UPDATE {self.table_name} SET moderation_status = {self.ph(1)}, moderator_notes = {self.ph(1)}, "
                f"moderated_at = {self.ph(1)}, is_public = {self.ph(1)}, updated_at = {self.ph(1)} "
                f"WHERE id IN ({self.ph(len(ids))})",
                (status, notes or None, now, 1 if approve else 0, now, *ids),
                operation="moderate",
            )
        logger.info("rating.moderated", count=changed, status=status)
        return changed

    def delete_older_than(self, days: int = 365) -> int:
        """Delete non-public ratings older than ``days``."""
        return self._run(
            f"DELETE FROM {self.table_name} WHERE created_at < {self.ph(1)} AND is_public = 0",
            (db_ago(days=days),),
            operation="delete_older_than",
        )

    # -- Lookups -------------------------------------------------------------

    def find_by_image_id(self, image_id: int) -> list[dict[str, Any]]:
        return self.find_by({"image_id": image_id}, order_by="created_at DESC, id DESC")

    def find_by_client_id(self, client_id: int) -> list[dict[str, Any]]:
        return self.find_by({"client_id": client_id}, order_by="created_at DESC, id DESC")

    def find_by_gallery_id(self, gallery_id: int) -> list[dict[str, Any]]:
        return self.cast_rows(
            self.query(
                f"SELECT r.* FROM {self.table_name} r "
                f"INNER JOIN {self.table('images')} i ON i.id = r.image_id "
                f"WHERE i.gallery_id = {self.ph(1)} ORDER BY r.created_at DESC, r.id DESC",
                (gallery_id,),
            )
        )

    def find_for(self, image_id: int, client_id: int) -> dict[str, Any] | None:
        return self.find_one_by({"image_id": image_id, "client_id": client_id})

    def has_client_rated(self, client_id: int, image_id: int | None = None, gallery_id: int | None = None) -> bool:
        sql = (
            f"SELECT COUNT(*) FROM {self.table_name} r "
            f"INNER JOIN {self.table('images')} i ON i.id = r.image_id "
            f"WHERE r.client_id = {self.ph(1)}"
        )
        params: tuple = (client_id,)
        if image_id is not None:
            sql += f" AND r.image_id = {self.ph(1)}"
            params = (*params, image_id)
        if gallery_id is not None:
            sql += f" AND i.gallery_id = {self.ph(1)}"
            params = (*params, gallery_id)
        return int(self.scalar(sql, params) or 0) > 0

    def find_unmoderated(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.find_all({"moderation_status": "pending"}, order_by="created_at ASC, id ASC", limit=limit)

    def find_by_date_range(self, start: str, end: str, approved_only: bool = False) -> list[dict[str, Any]]:
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE created_at >= {self.ph(1)} AND created_at <= {self.ph(1)}"
                f"{self._approved(approved_only)} ORDER BY created_at DESC",
                (start, end),
            )
        )

    # -- Aggregates ----------------------------------------------------------

    def image_average_score(self, image_id: int, approved_only: bool = False) -> float:
        avg = self.scalar(
            f"SELECT AVG(score) FROM {self.table_name} WHERE image_id = {self.ph(1)} AND score IS NOT NULL"
            f"{self._approved(approved_only)}",
            (image_id,),
        )
        return float(avg) if avg is not None else 0.0

    def gallery_average_score(self, gallery_id: int, approved_only: bool = False) -> float:
        avg = self.scalar(
            f"SELECT AVG(r.score) FROM {self.table_name} r "
            f"INNER JOIN {self.table('images')} i ON i.id = r.image_id "
            f"WHERE i.gallery_id = {self.ph(1)} AND r.score IS NOT NULL{self._approved(approved_only, 'r.')}",
            (gallery_id,),
        )
        return float(avg) if avg is not None else 0.0

    def gallery_rating_distribution(self, gallery_id: int, approved_only: bool = False) -> dict[str, int]:
        """Count per rating value; every value is present, zero when unused."""
        distribution = {value.value: 0 for value in RatingValue}
        rows = self.query(
            f"SELECT r.rating, COUNT(*) AS cnt FROM {self.table_name} r "
            f"INNER JOIN {self.table('images')} i ON i.id = r.image_id "
            f"WHERE i.gallery_id = {self.ph(1)}{self._approved(approved_only, 'r.')} GROUP BY r.rating",
            (gallery_id,),
        )
        for row in rows:
            distribution[row["rating"]] = int(row["cnt"])
        return distribution

    def find_top_rated_images(self, limit: int = 10, min_ratings: int = 3) -> list[dict[str, Any]]:
        return self.query(
            f"SELECT r.image_id, i.filename, i.title AS image_title, AVG(r.score) AS average_score, "
            f"COUNT(r.id) AS rating_count "
            f"FROM {self.table_name} r INNER JOIN {self.table('images')} i ON i.id = r.image_id "
            f"WHERE r.score IS NOT NULL GROUP BY r.image_id, i.filename, i.title "
            f"HAVING COUNT(r.id) >= {self.ph(1)} ORDER BY average_score DESC, rating_count DESC LIMIT {self.ph(1)}",
            (min_ratings, limit),
        )

    def find_top_rated_galleries(self, limit: int = 10, min_ratings: int = 5) -> list[dict[str, Any]]:
        galleries = self.table("galleries")
        return self.query(
            f"SELECT g.id AS gallery_id, g.name AS gallery_name, AVG(r.score) AS average_score, "
            f"COUNT(r.id) AS rating_count "
            f"FROM {self.table_name} r "
            f"INNER JOIN {self.table('images')} i ON i.id = r.image_id "
            f"INNER JOIN {galleries} g ON g.id = i.gallery_id "
            f"WHERE r.score IS NOT NULL GROUP BY g.id, g.name "
            f"HAVING COUNT(r.id) >= {self.ph(1)} ORDER BY average_score DESC, rating_count DESC LIMIT {self.ph(1)}",
            (min_ratings, limit),
        )

    def export(
        self,
        gallery_id: int | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[dict[str, Any]]:
        """Ratings joined with gallery, image and client names."""
        sql = (
            f"SELECT r.*, g.id AS gallery_id, g.name AS gallery_name, i.filename AS image_filename, "
            f"c.name AS client_name, c.email AS client_email "
            f"FROM {self.table_name} r "
            f"LEFT JOIN {self.table('images')} i ON i.id = r.image_id "
            f"LEFT JOIN {self.table('galleries')} g ON g.id = i.gallery_id "
            f"LEFT JOIN {self.table('clients')} c ON c.id = r.client_id WHERE 1=1"
        )
        params: tuple = ()
        if gallery_id is not None:
            sql += f" AND g.id = {self.ph(1)}"
            params = (*params, gallery_id)
        if start is not None:
            sql += f" AND r.created_at >= {self.ph(1)}"
            params = (*params, start)
        if end is not None:
            sql += f" AND r.created_at <= {self.ph(1)}"
            params = (*params, end)
        return self.cast_rows(self.query(sql + " ORDER BY r.created_at DESC, r.id DESC", params))

    def get_statistics(self) -> dict[str, Any]:
        row = self.query_one(
            f"SELECT COUNT(*) AS total_ratings, "
            f"SUM(CASE WHEN r.is_public = {self.dialect.boolean_true()} THEN 1 ELSE 0 END) AS public_ratings, "
            f"SUM(CASE WHEN r.moderation_status = 'approved' THEN 1 ELSE 0 END) AS approved_ratings, "
            f"SUM(CASE WHEN r.moderation_status = 'pending' THEN 1 ELSE 0 END) AS pending_ratings, "
            f"AVG(r.score) AS average_score, "
            f"COUNT(DISTINCT r.client_id) AS unique_clients, "
            f"COUNT(DISTINCT r.image_id) AS rated_images, "
            f"COUNT(DISTINCT i.gallery_id) AS rated_galleries "
            f"FROM {self.table_name} r LEFT JOIN {self.table('images')} i ON i.id = r.image_id"
        ) or {}
        stats: dict[str, Any] = {
            key: int(row.get(key) or 0)
            for key in (
                "total_ratings",
                "public_ratings",
                "approved_ratings",
                "pending_ratings",
                "unique_clients",
                "rated_images",
                "rated_galleries",
            )
        }
        stats["average_score"] = float(row["average_score"]) if row.get("average_score") is not None else 0.0
        distribution = {value.value: 0 for value in RatingValue}
        for r in self.query(f"SELECT rating, COUNT(*) AS cnt FROM {self.table_name} GROUP BY rating"):
            distribution[r["rating"]] = int(r["cnt"])
        stats["rating_distribution"] = distribution
        return stats


__all__ = ["RatingRepository"]
