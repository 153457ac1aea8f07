"""Tests for the clientgallery Typer CLI against a SQLite database file."""

import json

import pytest
from typer.testing import CliRunner

from clientgallery import __version__
from clientgallery.cli.app import app
from clientgallery.core.connection import SqliteConnection
from clientgallery.core.settings import reset_settings
from clientgallery.repositories import RepositoryManager

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("CLIENTGALLERY_LOG_LEVEL", "ERROR")
    reset_settings()


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "gallery.db")


def invoke(*args):
    return runner.invoke(app, list(args))


def invoke_json(*args):
    result = invoke(*args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


@pytest.fixture
def installed_db(db):
    result = invoke("schema", "install", "--database", db)
    assert result.exit_code == 0, result.output
    return db


@pytest.fixture
def client_id(installed_db):
    conn = SqliteConnection(installed_db)
    try:
        return RepositoryManager(conn).clients.create({"name": "Jane Doe", "email": "jane@example.com"})
    finally:
        conn.close()


# =============================================================================
# Root
# =============================================================================


class TestRoot:
    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert f"clientgallery {__version__}" in result.stdout

    def test_no_args_shows_help(self):
        result = invoke()
        assert "schema" in result.output
        assert "migrate" in result.output


# =============================================================================
# schema
# =============================================================================


class TestSchemaCommands:
    def test_install(self, db):
        data = invoke_json("schema", "install", "--database", db)
        assert data["installed"] == ["clients", "galleries", "images", "ratings", "log_entries"]
        assert data["errors"] == {}

    def test_validate(self, installed_db):
        assert invoke_json("schema", "validate", "--database", installed_db) == {"valid": True, "issues": []}

    def test_validate_empty_database_fails(self, db):
        result = invoke("schema", "validate", "--database", db, "--json")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["valid"] is False

    def test_info(self, installed_db):
        data = invoke_json("schema", "info", "--database", installed_db)
        assert data["version"] == "1.0.0"
        assert data["installed_at"]
        assert all(detail["exists"] for detail in data["schemas"].values())

    def test_order(self, db):
        assert invoke_json("schema", "order", "--database", db)["order"][0] == "clients"

    @pytest.mark.parametrize("command", ["uninstall", "recreate"])
    def test_destructive_commands_need_force(self, installed_db, command):
        result = invoke("schema", command, "--database", installed_db)
        assert result.exit_code == 1
        assert "--force" in result.output

    def test_uninstall(self, installed_db):
        data = invoke_json("schema", "uninstall", "--force", "--database", installed_db)
        assert data["removed"] == ["log_entries", "ratings", "images", "galleries", "clients"]
        assert invoke("schema", "validate", "--database", installed_db).exit_code == 1

    def test_recreate(self, installed_db):
        data = invoke_json("schema", "recreate", "--force", "--database", installed_db)
        assert data["errors"] == {}


# =============================================================================
# migrate
# =============================================================================


class TestMigrateCommands:
    def test_status_then_run(self, installed_db):
        status = invoke_json("migrate", "status", "--database", installed_db)
        assert status["pending_versions"] == ["1.1.0"]

        result = invoke_json("migrate", "run", "--database", installed_db)
        assert result["applied"] == 1
        assert result["outcomes"][0]["version"] == "1.1.0"

        status = invoke_json("migrate", "status", "--database", installed_db)
        assert status["pending"] == 0
        assert status["current_version"] == "1.1.0"

    def test_run_nothing_pending(self, installed_db):
        invoke("migrate", "run", "--database", installed_db)
        assert invoke_json("migrate", "run", "--database", installed_db)["applied"] == 0

    def test_run_unknown_version(self, installed_db):
        result = invoke("migrate", "run", "9.9.9", "--database", installed_db)
        assert result.exit_code == 1

    def test_rollback_and_history(self, installed_db):
        invoke("migrate", "run", "--database", installed_db)
        history = invoke_json("migrate", "history", "--database", installed_db)
        assert [(h["version"], h["status"]) for h in history] == [("1.1.0", "completed")]

        outcome = invoke_json("migrate", "rollback", "1.1.0", "--database", installed_db)
        assert outcome["status"] == "rolled_back"
        assert invoke_json("migrate", "history", "--database", installed_db) == []
        assert invoke_json("migrate", "status", "--database", installed_db)["pending"] == 1

    def test_mark(self, installed_db):
        result = invoke("migrate", "mark", "1.1.0", "--database", installed_db)
        assert result.exit_code == 0
        assert "Marked 1.1.0 as applied" in result.stdout
        assert invoke_json("migrate", "status", "--database", installed_db)["pending"] == 0


# =============================================================================
# gallery
# =============================================================================


class TestGalleryCommands:
    def test_create_show_publish(self, installed_db, client_id):
        created = invoke_json("gallery", "create", "Summer Wedding", "--client", str(client_id), "--database", installed_db)
        assert created["slug"] == "summer-wedding"
        assert created["status"] == "draft"

        shown = invoke_json("gallery", "show", str(created["id"]), "--database", installed_db)
        assert shown["name"] == "Summer Wedding"

        published = invoke_json("gallery", "publish", str(created["id"]), "--database", installed_db)
        assert published["status"] == "published"
        archived = invoke_json("gallery", "archive", str(created["id"]), "--database", installed_db)
        assert archived["status"] == "archived"

    def test_list(self, installed_db, client_id):
        for name in ("One", "Two", "Three"):
            invoke("gallery", "create", name, "--client", str(client_id), "--database", installed_db)
        page = invoke_json("gallery", "list", "--limit", "2", "--database", installed_db)
        assert page["total"] == 3
        assert [g["name"] for g in page["items"]] == ["Three", "Two"]
        assert page["has_more"] is True

    def test_list_table(self, installed_db, client_id):
        invoke("gallery", "create", "Portraits", "--client", str(client_id), "--database", installed_db)
        result = invoke("gallery", "list", "--database", installed_db)
        assert result.exit_code == 0
        assert "portraits" in result.stdout

    def test_list_invalid_status(self, installed_db):
        result = invoke("gallery", "list", "--status", "hidden", "--database", installed_db)
        assert result.exit_code == 1
        assert "Invalid gallery status" in result.output

    def test_duplicate_slug(self, installed_db, client_id):
        invoke("gallery", "create", "Party", "--client", str(client_id), "--database", installed_db)
        result = invoke("gallery", "create", "Other", "--slug", "party", "--client", str(client_id), "--database", installed_db)
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show_missing(self, installed_db):
        result = invoke("gallery", "show", "42", "--database", installed_db)
        assert result.exit_code == 1
        assert "Gallery with ID 42 not found" in result.output

    def test_delete(self, installed_db, client_id):
        created = invoke_json("gallery", "create", "Party", "--client", str(client_id), "--database", installed_db)
        gallery_id = str(created["id"])
        assert invoke("gallery", "delete", gallery_id, "--database", installed_db).exit_code == 1
        result = invoke("gallery", "delete", gallery_id, "--force", "--database", installed_db)
        assert result.exit_code == 0
        assert f"Deleted gallery {gallery_id}" in result.stdout
        assert invoke("gallery", "show", gallery_id, "--database", installed_db).exit_code == 1


# =============================================================================
# health / integrity / stats / maintenance
# =============================================================================


class TestSystemCommands:
    def test_health(self, installed_db):
        data = invoke_json("health", "--database", installed_db)
        assert data["status"] == "healthy"
        assert set(data["checks"]) == {"clients", "galleries", "images", "ratings", "logs"}

    def test_health_critical_exit_code(self, db):
        result = invoke("health", "--database", db)
        assert result.exit_code == 1
        assert "critical" in result.stdout

    def test_integrity_clean(self, installed_db):
        result = invoke("integrity", "--database", installed_db)
        assert result.exit_code == 0
        assert "No integrity issues found" in result.stdout

    def test_integrity_without_tables(self, db):
        result = invoke("integrity", "--database", db, "--json")
        assert result.exit_code == 1
        report = json.loads(result.stdout)
        assert report["status"] == "issues_found"
        assert {issue["check"] for issue in report["issues"]} == {"error"}

    def test_stats(self, installed_db, client_id):
        data = invoke_json("stats", "--database", installed_db)
        assert data["clients"]["total_clients"] == 1
        assert data["totals"]["total_clients"] == 1

    def test_maintenance(self, installed_db):
        data = invoke_json("maintenance", "--database", installed_db)
        assert data["errors"] == {}
        assert len(data["optimized"]) == 5
