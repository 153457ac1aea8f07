"""Tests for the individual table schemas: DDL, triggers, views and checks."""

import sqlite3

import pytest

from clientgallery.core.rows import first_value
from clientgallery.schema import ClientSchema, GallerySchema, ImageSchema, LogEntrySchema, RatingSchema


def _scalar(conn, sql, params=()):
    return first_value(conn.execute(sql, params).fetchone())


@pytest.fixture
def seeded(installed, conn):
    """One client, one gallery; returns their ids."""
    conn.execute("INSERT INTO wp_mlcg_clients (name, email) VALUES (?, ?)", ("Jane", "jane@example.com"))
    client = _scalar(conn, "SELECT id FROM wp_mlcg_clients")
    conn.execute(
        "INSERT INTO wp_mlcg_galleries (name, slug, client_id) VALUES (?, ?, ?)", ("Wedding", "wedding", client)
    )
    gallery = _scalar(conn, "SELECT id FROM wp_mlcg_galleries")
    conn.commit()
    return client, gallery


def _insert_image(conn, gallery, width=1920, height=1080, filename="a.jpg"):
    cursor = conn.execute(
        "INSERT INTO wp_mlcg_images (gallery_id, filename, original_filename, file_size, mime_type, width, height) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (gallery, filename, filename.upper(), 100, "image/jpeg", width, height),
    )
    return cursor.lastrowid


# =============================================================================
# Naming / structure
# =============================================================================


class TestStructure:
    def test_table_and_index_names(self, conn):
        schema = GallerySchema(conn)
        assert schema.table_name == "wp_mlcg_galleries"
        assert schema.index_name("status") == "idx_wp_mlcg_galleries_status"
        assert schema.table("clients") == "wp_mlcg_clients"

    def test_create_builds_indexes(self, installed, conn):
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name = ?", ("wp_mlcg_galleries",)
        )
        indexes = {r[0] for r in cursor.fetchall()}
        assert "idx_wp_mlcg_galleries_client_status" in indexes

    def test_views_created(self, installed, conn):
        views = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='view'").fetchall()}
        assert {
            "wp_mlcg_clients_active",
            "wp_mlcg_clients_security_alerts",
            "wp_mlcg_ratings_summary",
            "wp_mlcg_ratings_top_rated",
        } <= views

    def test_drop_removes_views_and_table(self, installed, conn):
        schema = ClientSchema(conn)
        installed.uninstall_all()
        assert not schema.exists()
        assert _scalar(conn, "SELECT COUNT(*) FROM sqlite_master WHERE type='view'") == 0

    def test_count_rows(self, seeded, conn):
        assert ClientSchema(conn).count_rows() == 1

    def test_missing_columns_reported(self, conn):
        conn.execute("CREATE TABLE wp_mlcg_log_entries (id INTEGER PRIMARY KEY, level TEXT)")
        schema = LogEntrySchema(conn)
        assert schema.missing_columns() == ["channel", "message", "context", "request_id", "created_at"]
        assert schema.validate() == [
            "Table wp_mlcg_log_entries is missing columns: channel, message, context, request_id, created_at"
        ]

    def test_validate_missing_table(self, conn):
        assert RatingSchema(conn).validate() == ["Table wp_mlcg_ratings does not exist"]

    def test_validate_reports_missing_view(self, installed, conn):
        conn.execute("DROP VIEW wp_mlcg_ratings_top_rated")
        schema = RatingSchema(conn)
        assert schema.view_exists("wp_mlcg_ratings_summary")
        assert schema.missing_views() == ["wp_mlcg_ratings_top_rated"]
        assert schema.validate() == ["View wp_mlcg_ratings_top_rated does not exist"]

    def test_user_activity_view_covers_last_30_days(self, installed, conn):
        conn.execute(
            "INSERT INTO wp_mlcg_log_entries (level, channel, message, user_id, created_at) "
            "VALUES ('info', 'http', 'old', 1, datetime('now', '-40 days')), ('info', 'http', 'new', 2, datetime('now'))"
        )
        rows = conn.execute("SELECT user_id FROM wp_mlcg_log_entries_user_activity").fetchall()
        assert [r[0] for r in rows] == [2]

    def test_repr(self, conn):
        assert repr(ImageSchema(conn)) == "ImageSchema(table='wp_mlcg_images', dialect='sqlite')"


# =============================================================================
# Triggers
# =============================================================================


class TestClientTriggers:
    def test_access_key_generated(self, seeded, conn):
        key = _scalar(conn, "SELECT access_key FROM wp_mlcg_clients")
        assert len(key) == 64
        int(key, 16)

    def test_explicit_access_key_kept(self, installed, conn):
        conn.execute(
            "INSERT INTO wp_mlcg_clients (name, email, access_key) VALUES (?, ?, ?)", ("B", "b@example.com", "k" * 40)
        )
        assert _scalar(conn, "SELECT access_key FROM wp_mlcg_clients") == "k" * 40

    def test_status_check_constraint(self, installed, conn):
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO wp_mlcg_clients (name, email, status) VALUES (?, ?, ?)", ("C", "c@example.com", "vip")
            )


class TestImageTriggers:
    def test_image_count_follows_inserts_and_deletes(self, seeded, conn):
        _, gallery = seeded
        first = _insert_image(conn, gallery, filename="a.jpg")
        _insert_image(conn, gallery, filename="b.jpg")
        assert _scalar(conn, "SELECT image_count FROM wp_mlcg_galleries WHERE id = ?", (gallery,)) == 2
        conn.execute("DELETE FROM wp_mlcg_images WHERE id = ?", (first,))
        assert _scalar(conn, "SELECT image_count FROM wp_mlcg_galleries WHERE id = ?", (gallery,)) == 1

    def test_image_count_never_negative(self, seeded, conn):
        _, gallery = seeded
        image = _insert_image(conn, gallery)
        conn.execute("UPDATE wp_mlcg_galleries SET image_count = 0")
        conn.execute("DELETE FROM wp_mlcg_images WHERE id = ?", (image,))
        assert _scalar(conn, "SELECT image_count FROM wp_mlcg_galleries") == 0

    @pytest.mark.parametrize(
        ("width", "height", "orientation"),
        [(1920, 1080, "landscape"), (1080, 1920, "portrait"), (500, 500, "square")],
    )
    def test_orientation_derived(self, seeded, conn, width, height, orientation):
        image = _insert_image(conn, seeded[1], width=width, height=height)
        assert _scalar(conn, "SELECT orientation FROM wp_mlcg_images WHERE id = ?", (image,)) == orientation

    def test_orientation_follows_dimension_updates(self, seeded, conn):
        image = _insert_image(conn, seeded[1], width=1920, height=1080)
        conn.execute("UPDATE wp_mlcg_images SET width = 800, height = 1200 WHERE id = ?", (image,))
        assert _scalar(conn, "SELECT orientation FROM wp_mlcg_images WHERE id = ?", (image,)) == "portrait"

    def test_gallery_delete_cascades(self, seeded, conn):
        _, gallery = seeded
        _insert_image(conn, gallery)
        conn.execute("DELETE FROM wp_mlcg_galleries WHERE id = ?", (gallery,))
        assert _scalar(conn, "SELECT COUNT(*) FROM wp_mlcg_images") == 0


class TestRatingTriggers:
    def test_aggregates_follow_ratings(self, seeded, conn):
        client, gallery = seeded
        image = _insert_image(conn, gallery)
        conn.execute("INSERT INTO wp_mlcg_clients (name, email) VALUES (?, ?)", ("Other", "o@example.com"))
        other = _scalar(conn, "SELECT id FROM wp_mlcg_clients WHERE email = ?", ("o@example.com",))

        conn.execute(
            "INSERT INTO wp_mlcg_ratings (image_id, client_id, rating, score) VALUES (?, ?, ?, ?)",
            (image, client, "selected", 8),
        )
        conn.execute(
            "INSERT INTO wp_mlcg_ratings (image_id, client_id, rating, score) VALUES (?, ?, ?, ?)",
            (image, other, "maybe", None),
        )
        row = conn.execute("SELECT rating_count, rating_average FROM wp_mlcg_images WHERE id = ?", (image,)).fetchone()
        assert row["rating_count"] == 2
        assert float(row["rating_average"]) == 8.0

        conn.execute("UPDATE wp_mlcg_ratings SET score = 4 WHERE client_id = ?", (other,))
        avg = _scalar(conn, "SELECT rating_average FROM wp_mlcg_images WHERE id = ?", (image,))
        assert float(avg) == 6.0

        conn.execute("DELETE FROM wp_mlcg_ratings")
        row = conn.execute("SELECT rating_count, rating_average FROM wp_mlcg_images WHERE id = ?", (image,)).fetchone()
        assert row["rating_count"] == 0
        assert row["rating_average"] is None

    def test_score_range_enforced(self, seeded, conn):
        client, gallery = seeded
        image = _insert_image(conn, gallery)
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO wp_mlcg_ratings (image_id, client_id, rating, score) VALUES (?, ?, ?, ?)",
                (image, client, "selected", 11),
            )

    def test_one_rating_per_client_and_image(self, seeded, conn):
        client, gallery = seeded
        image = _insert_image(conn, gallery)
        sql = "INSERT INTO wp_mlcg_ratings (image_id, client_id, rating) VALUES (?, ?, ?)"
        conn.execute(sql, (image, client, "selected"))
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(sql, (image, client, "rejected"))


# =============================================================================
# Data checks
# =============================================================================


class TestDataChecks:
    def test_weak_access_key_reported(self, installed, conn):
        conn.execute(
            "INSERT INTO wp_mlcg_clients (name, email, access_key) VALUES (?, ?, ?)", ("W", "w@example.com", "short")
        )
        assert ClientSchema(conn).validate() == ["1 weak access key(s) shorter than 32 characters"]

    def test_duplicate_email_case_insensitive(self, installed, conn):
        sql = "INSERT INTO wp_mlcg_clients (name, email) VALUES (?, ?)"
        conn.execute(sql, ("A", "dup@example.com"))
        conn.execute(sql, ("B", "DUP@example.com"))
        assert "1 duplicate email address(es)" in ClientSchema(conn).check_data()

    def test_image_dimension_check(self, seeded, conn):
        _insert_image(conn, seeded[1], width=0, height=100)
        assert ImageSchema(conn).check_data() == ["1 image(s) with non-positive dimensions"]

    def test_clean_tables(self, seeded, conn):
        for schema in (ClientSchema, GallerySchema, ImageSchema, RatingSchema, LogEntrySchema):
            assert schema(conn).validate() == []


class TestImageValidateData:
    def test_valid_payload(self):
        data = {
            "gallery_id": 1,
            "filename": "a.jpg",
            "original_filename": "A.JPG",
            "mime_type": "image/jpeg",
            "file_size": "2048",
            "width": 10,
            "height": 10.5,
        }
        assert ImageSchema.validate_data(data) == []

    def test_all_problems_reported(self):
        errors = ImageSchema.validate_data({"width": "wide", "height": True})
        assert errors == [
            "gallery_id is required",
            "filename is required",
            "original_filename is required",
            "mime_type is required",
            "file_size must be numeric",
            "width must be numeric",
            "height must be numeric",
        ]
