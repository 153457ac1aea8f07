"""Tests for RepositoryManager: accessors, health, maintenance, statistics, integrity."""

import pytest

from clientgallery.core.timestamps import db_ago
from clientgallery.repositories import (
    ClientRepository,
    GalleryRepository,
    IntegrityReport,
    LogEntryRepository,
    RepositoryManager,
)

ALL = ["clients", "galleries", "images", "ratings", "logs"]


# =============================================================================
# Accessors / shared instance
# =============================================================================


class TestAccessors:
    def test_repositories_are_cached(self, repos):
        assert isinstance(repos.clients, ClientRepository)
        assert repos.galleries is repos.galleries
        assert isinstance(repos.logs, LogEntryRepository)
        assert list(repos.all_repositories()) == ALL

    def test_repositories_share_settings(self, conn):
        manager = RepositoryManager(conn, prefix="test_")
        assert manager.galleries.table_name == "test_galleries"
        assert manager.images.conn is conn

    def test_instance_is_shared(self, conn):
        first = RepositoryManager.instance(conn)
        assert RepositoryManager.instance() is first
        assert isinstance(first.galleries, GalleryRepository)
        RepositoryManager.reset_instance()
        assert RepositoryManager.instance() is not first

    def test_instance_from_settings(self, monkeypatch):
        monkeypatch.setenv("CLIENTGALLERY_TABLE_PREFIX", "cg_")
        manager = RepositoryManager.instance()
        assert manager.prefix == "cg_"
        assert manager.clients.table_name == "cg_clients"


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    def test_all_healthy(self, repos, client_id):
        checks = repos.test_connections()
        assert set(checks) == set(ALL)
        assert all(c.status == "healthy" for c in checks.values())
        assert checks["clients"].details == {"table": "wp_mlcg_clients", "rows": 1}

    def test_missing_tables_are_unhealthy(self, conn):
        health = RepositoryManager(conn).system_health()
        assert health.status == "critical"
        assert health.checks["galleries"].error == "Table wp_mlcg_galleries does not exist"
        assert len(health.issues) == 5

    def test_partially_installed_is_degraded(self, schemas, conn):
        schemas.install_schema("images")
        health = RepositoryManager(conn).system_health()
        assert health.status == "degraded"
        assert health.checks["clients"].status == "healthy"
        assert len(health.issues) == 2


# =============================================================================
# Maintenance / statistics
# =============================================================================


class TestMaintenance:
    def test_retention_and_analyze(self, repos):
        repos.logs.log("debug", "old", created_at=db_ago(days=30))
        repos.logs.log("info", "new")
        result = repos.perform_maintenance()
        assert result["log_retention"]["debug"] == 1
        assert result["errors"] == {}
        assert "wp_mlcg_images" in result["optimized"]
        assert repos.logs.count() == 1

    def test_skips_missing_tables(self, conn):
        result = RepositoryManager(conn).perform_maintenance()
        assert result == {"log_retention": {}, "optimized": [], "errors": {}}


class TestStatistics:
    def test_aggregated(self, repos, image_id, client_id):
        repos.ratings.rate(image_id, client_id, "selected", score=7)
        stats = repos.aggregated_statistics()
        assert stats["galleries"]["total_galleries"] == 1
        assert stats["images"]["total_images"] == 1
        assert stats["totals"]["total_clients"] == 1
        assert stats["totals"]["total_ratings"] == 1
        assert stats["totals"]["total_file_size"] == 1024

    def test_missing_table_reported(self, schemas, conn):
        schemas.install_schema("clients")
        stats = RepositoryManager(conn).aggregated_statistics()
        assert stats["galleries"] == {"error": "Table wp_mlcg_galleries does not exist"}
        assert stats["totals"] == {"total_clients": 0}


# =============================================================================
# Integrity
# =============================================================================


class TestIntegrity:
    def test_clean(self, repos, image_id, client_id):
        repos.ratings.rate(image_id, client_id, "maybe", score=3)
        report = repos.validate_data_integrity()
        assert isinstance(report, IntegrityReport)
        assert report.status == "clean"
        assert report.issue_count == 0

    @pytest.fixture
    def unchecked(self, repos, conn):
        """Connection with foreign key and CHECK enforcement switched off."""
        conn.commit()
        conn.execute("PRAGMA foreign_keys = OFF")
        conn.execute("PRAGMA ignore_check_constraints = ON")
        return conn

    def test_orphans_and_bad_rows(self, repos, unchecked, client_id, gallery_id, image_id):
        unchecked.execute(
            "INSERT INTO wp_mlcg_galleries (name, slug, client_id, status) VALUES ('Lost', 'lost', 404, 'published')"
        )
        unchecked.execute(
            "INSERT INTO wp_mlcg_ratings (image_id, client_id, rating, score) VALUES (?, ?, 'maybe', 42)",
            (image_id, client_id),
        )
        unchecked.execute("UPDATE wp_mlcg_galleries SET image_count = 5 WHERE id = ?", (gallery_id,))
        unchecked.commit()

        report = repos.validate_data_integrity()
        by_check = {issue.check: issue for issue in report.issues}
        assert report.status == "issues_found"
        assert set(by_check) == {"orphaned_galleries", "image_count_mismatch", "invalid_rating_scores"}
        assert by_check["orphaned_galleries"].message == "1 galleries reference a missing client"
        assert by_check["image_count_mismatch"].ids == [gallery_id]
        assert by_check["invalid_rating_scores"].message == "1 ratings have a score outside 1..10"

    def test_published_gallery_without_name(self, repos, unchecked, client_id, gallery_id):
        unchecked.execute(
            "INSERT INTO wp_mlcg_galleries (name, slug, client_id, status) VALUES ('  ', 'blank', ?, 'published')",
            (client_id,),
        )
        unchecked.commit()
        checks = {issue.check: issue for issue in repos.validate_data_integrity().issues}
        assert set(checks) == {"unpublishable_published_galleries"}
        assert checks["unpublishable_published_galleries"].message == "1 published galleries lack a name or client"
        assert checks["unpublishable_published_galleries"].count == 1

    def test_duplicate_slugs(self, repos, unchecked, client_id, gallery_id):
        # rebuild galleries without its UNIQUE slug constraint
        unchecked.execute("ALTER TABLE wp_mlcg_galleries RENAME TO wp_mlcg_galleries_old")
        unchecked.execute("CREATE TABLE wp_mlcg_galleries AS SELECT * FROM wp_mlcg_galleries_old")
        unchecked.execute(
            "INSERT INTO wp_mlcg_galleries (id, name, slug, client_id, status, image_count) "
            "VALUES (99, 'Copy', 'wedding', ?, 'draft', 0)",
            (client_id,),
        )
        unchecked.commit()
        checks = {issue.check: issue for issue in repos.validate_data_integrity().issues}
        assert set(checks) == {"duplicate_slugs"}
        assert checks["duplicate_slugs"].ids == ["wedding"]

    def test_missing_tables_reported_as_errors(self, conn):
        report = RepositoryManager(conn).validate_data_integrity()
        assert report.status == "issues_found"
        assert {issue.check for issue in report.issues} == {"error"}
        assert report.issue_count == 7
        assert report.issues[0].ids == ["orphaned_galleries"]
        assert "no such table" in report.issues[0].message

    def test_orphaned_images_and_ratings(self, repos, unchecked, client_id, gallery_id, image_id):
        repos.ratings.rate(image_id, client_id, "maybe")
        unchecked.execute("DELETE FROM wp_mlcg_galleries WHERE id = ?", (gallery_id,))
        unchecked.execute("DELETE FROM wp_mlcg_clients WHERE id = ?", (client_id,))
        unchecked.commit()
        checks = {issue.check: issue for issue in repos.validate_data_integrity().issues}
        assert checks["orphaned_images"].ids == [image_id]
        assert checks["orphaned_ratings"].count == 1
