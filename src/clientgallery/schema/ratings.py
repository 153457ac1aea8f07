"""Ratings table: one rating per (image, client).

Inserting, updating or deleting a rating recomputes the image's
``rating_count`` and ``rating_average`` (average of non-null scores).
"""

from __future__ import annotations

from clientgallery.schema.base import BaseSchema, IndexSpec, TriggerSpec, ViewSpec

RATING_VALUES = ("selected", "rejected", "favorite", "maybe")
FEEDBACK_CATEGORIES = ("technical", "aesthetic", "content", "other")
PRIORITY_LEVELS = ("low", "medium", "high", "urgent")
MODERATION_STATUSES = ("pending", "approved", "rejected")

MIN_SCORE = 1
MAX_SCORE = 10


class RatingSchema(BaseSchema):
    TABLE = "ratings"
    REQUIRED_COLUMNS = ("id", "image_id", "client_id", "rating", "score", "moderation_status", "created_at")

    def create_table_sql(self) -> str:
        d = self.dialect
        dt = d.datetime_type()
        return f"""
CREATE TABLE IF NOT EXISTS {self.table_name} (
    id {d.auto_increment()},
    image_id INTEGER NOT NULL,
    client_id INTEGER NOT NULL,
    session_id VARCHAR(64),
    rating {d.enum_type("rating", RATING_VALUES)} NOT NULL,
    score SMALLINT,
    comment TEXT,
    feedback_category {d.enum_type("feedback_category", FEEDBACK_CATEGORIES)},
    priority_level {d.enum_type("priority_level", PRIORITY_LEVELS)} NOT NULL DEFAULT 'medium',
    feedback_tags VARCHAR(500),
    moderation_status {d.enum_type("moderation_status", MODERATION_STATUSES)} NOT NULL DEFAULT 'pending',
    moderator_notes TEXT,
    moderated_at {dt},
    is_public SMALLINT NOT NULL DEFAULT 0,
    is_anonymous SMALLINT NOT NULL DEFAULT 0,
    client_ip VARCHAR(45),
    user_agent VARCHAR(500),
    device_info {d.json_type()},
    {self.timestamp_columns()},
    expires_at {dt},
    UNIQUE (image_id, client_id),
    CHECK (score IS NULL OR (score >= {MIN_SCORE} AND score <= {MAX_SCORE})),
    FOREIGN KEY (image_id) REFERENCES {self.table("images")}(id) ON DELETE CASCADE,
    FOREIGN KEY (client_id) REFERENCES {self.table("clients")}(id) ON DELETE CASCADE
){d.table_options()}"""

    def indexes(self) -> list[IndexSpec]:
        return [
            IndexSpec(self.index_name("client"), ("client_id",)),
            IndexSpec(self.index_name("rating"), ("rating",)),
            IndexSpec(self.index_name("moderation"), ("moderation_status",)),
            IndexSpec(self.index_name("created_at"), ("created_at",)),
        ]

    def _refresh_image(self, ref: str) -> str:
        t = self.table_name
        return (
            f"UPDATE {self.table('images')} SET "
            f"rating_count = (SELECT COUNT(*) FROM {t} WHERE image_id = {ref}.image_id), "
            f"rating_average = (SELECT AVG(score) FROM {t} WHERE image_id = {ref}.image_id AND score IS NOT NULL) "
            f"WHERE id = {ref}.image_id"
        )

    def triggers(self) -> list[TriggerSpec]:
        prefix = f"trg_{self.table_name}"
        return [
            TriggerSpec(f"{prefix}_after_insert", "AFTER", "INSERT", (self._refresh_image("NEW"),)),
            TriggerSpec(
                f"{prefix}_after_update",
                "AFTER",
                "UPDATE",
                (self._refresh_image("NEW"), self._refresh_image("OLD")),
            ),
            TriggerSpec(f"{prefix}_after_delete", "AFTER", "DELETE", (self._refresh_image("OLD"),)),
        ]

    def views(self) -> list[ViewSpec]:
        t = self.table_name
        counts = ", ".join(
            f"SUM(CASE WHEN rating = '{value}' THEN 1 ELSE 0 END) AS {value}_count" for value in RATING_VALUES
        )
        return [
            ViewSpec(
                f"{t}_summary",
                f"SELECT image_id, COUNT(*) AS total_ratings, {counts}, AVG(score) AS average_score "
                f"FROM {t} GROUP BY image_id",
            ),
            ViewSpec(
                f"{t}_top_rated",
                f"SELECT i.id AS image_id, i.gallery_id, i.filename, COUNT(r.id) AS rating_count, "
                f"AVG(r.score) AS average_score FROM {self.table('images')} i "
                f"JOIN {t} r ON r.image_id = i.id GROUP BY i.id, i.gallery_id, i.filename "
                "HAVING COUNT(r.id) >= 3",
            ),
            ViewSpec(
                f"{t}_feedback_analytics",
                f"SELECT feedback_category, priority_level, COUNT(*) AS feedback_count, "
                f"AVG(score) AS average_score FROM {t} "
                "WHERE comment IS NOT NULL AND comment <> '' GROUP BY feedback_category, priority_level",
            ),
        ]

    def check_data(self) -> list[str]:
        t = self.table_name
        issues = []
        orphans = self._scalar(
            f"SELECT COUNT(*) FROM {t} r "
            f"LEFT JOIN {self.table('images')} i ON i.id = r.image_id "
            f"LEFT JOIN {self.table('clients')} c ON c.id = r.client_id "
            "WHERE i.id IS NULL OR c.id IS NULL"
        )
        if orphans:
            issues.append(f"{orphans} orphaned rating(s)")
        duplicates = self._scalar(
            f"SELECT COUNT(*) FROM (SELECT image_id, client_id FROM {t} "
            "GROUP BY image_id, client_id HAVING COUNT(*) > 1) dup"
        )
        if duplicates:
            issues.append(f"{duplicates} duplicate rating pair(s)")
        invalid = self._scalar(
            f"SELECT COUNT(*) FROM {t} WHERE score IS NOT NULL AND (score < {MIN_SCORE} OR score > {MAX_SCORE})"
        )
        if invalid:
            issues.append(f"{invalid} rating(s) with a score outside {MIN_SCORE}-{MAX_SCORE}")
        return issues
