"""Tests for the 1.1.0 social media migration against the real clients table."""

import pytest

from clientgallery.core.errors import MigrationError
from clientgallery.migrations import MigrationManager
from clientgallery.migrations.versions import Migration001AddSocialMediaToClients

SOCIAL = ["facebook_url", "instagram_url", "twitter_url", "linkedin_url", "social_media_preferences"]


@pytest.fixture
def migrations(installed, conn):
    return MigrationManager(conn)


class TestSocialMediaMigration:
    def test_adds_columns(self, migrations, installed):
        result = migrations.run_pending()
        assert result.applied == ["1.1.0"]
        clients = installed.get_schema("clients")
        assert all(clients.column_exists(c) for c in SOCIAL)

    def test_rerun_is_harmless(self, migrations, conn):
        migration = migrations.get("1.1.0")
        assert migration.up()
        assert migration.up()

    def test_existing_rows_untouched(self, migrations, conn):
        conn.execute("INSERT INTO wp_mlcg_clients (name, email) VALUES (?, ?)", ("Jane", "jane@example.com"))
        conn.commit()
        migrations.run_pending()
        row = conn.execute("SELECT name, facebook_url FROM wp_mlcg_clients").fetchone()
        assert row["name"] == "Jane"
        assert row["facebook_url"] is None

    def test_rollback_drops_columns(self, migrations, installed):
        migrations.run_pending()
        assert migrations.rollback("1.1.0").status == "rolled_back"
        clients = installed.get_schema("clients")
        assert not any(clients.column_exists(c) for c in SOCIAL)
        assert installed.validate_all() == {}

    def test_requires_clients_table(self, conn):
        manager = MigrationManager(conn)
        result = manager.run_pending()
        assert result.status == "failed"
        assert "Clients table does not exist" in result.message

    def test_warnings(self):
        migration = Migration001AddSocialMediaToClients()
        assert migration.version == "1.1.0"
        assert len(migration.warnings()) == 3
        assert migration.can_rollback()


# =============================================================================
# Helper methods on BaseMigration
# =============================================================================


@pytest.fixture
def helper(conn):
    migration = Migration001AddSocialMediaToClients(conn)
    migration.create_table("wp_mlcg_notes", "id INTEGER PRIMARY KEY, body TEXT, author TEXT")
    conn.execute("INSERT INTO wp_mlcg_notes (body, author) VALUES ('a', 'x'), ('b', 'y')")
    return migration


class TestMigrationHelpers:
    def test_add_and_drop_column(self, helper):
        assert helper.add_column("wp_mlcg_notes", "pinned", "INTEGER DEFAULT 0")
        assert helper.column_exists("wp_mlcg_notes", "pinned")
        assert helper.add_column("wp_mlcg_notes", "pinned", "INTEGER DEFAULT 0")
        assert helper.drop_column("wp_mlcg_notes", "pinned")
        assert not helper.column_exists("wp_mlcg_notes", "pinned")
        assert helper.drop_column("wp_mlcg_notes", "pinned")

    def test_modify_missing_column(self, helper):
        with pytest.raises(MigrationError, match="does not exist"):
            helper.modify_column("wp_mlcg_notes", "ghost", "TEXT")

    def test_indexes(self, helper):
        assert helper.add_index("wp_mlcg_notes", "idx_notes_author", ["author"])
        assert helper.index_exists("wp_mlcg_notes", "idx_notes_author")
        assert helper.drop_index("wp_mlcg_notes", "idx_notes_author")
        assert not helper.index_exists("wp_mlcg_notes", "idx_notes_author")

    def test_rename_table(self, helper):
        helper.rename_table("wp_mlcg_notes", "wp_mlcg_memos")
        assert helper.table_exists("wp_mlcg_memos")
        with pytest.raises(MigrationError):
            helper.rename_table("wp_mlcg_notes", "wp_mlcg_other")

    def test_copy_and_update_data(self, helper):
        helper.create_table("wp_mlcg_memos", "id INTEGER PRIMARY KEY, text TEXT")
        assert helper.copy_data("wp_mlcg_notes", "wp_mlcg_memos", {"body": "text"}) == 2
        assert helper.row_count("wp_mlcg_memos") == 2
        assert helper.update_data("wp_mlcg_notes", {"author": "z"}, {"body": "a"}) == 1

    def test_backup_table(self, helper):
        backup = helper.backup_table("wp_mlcg_notes")
        assert backup.startswith("wp_mlcg_notes_backup_")
        assert helper.row_count(backup) == 2

    def test_drop_table(self, helper):
        helper.drop_table("wp_mlcg_notes")
        assert not helper.table_exists("wp_mlcg_notes")

    def test_repr(self):
        assert repr(Migration001AddSocialMediaToClients()) == "Migration001AddSocialMediaToClients(version='1.1.0')"
