"""Tests for LogEntryRepository: writing, retention, lookups and analytics."""

import csv
import io
import json

import pytest

from clientgallery.core.errors import QueryError, ValidationError
from clientgallery.core.timestamps import db_ago, db_ahead, from_db, utc_now
from clientgallery.repositories import RETENTION_DAYS


@pytest.fixture
def logs(repos):
    return repos.logs


def _old(logs, level, days, **fields):
    return logs.log(level, f"{level} from {days} days ago", created_at=db_ago(days=days), **fields)


# =============================================================================
# Writing
# =============================================================================


class TestWrite:
    def test_log_defaults(self, logs):
        entry_id = logs.log("INFO", "gallery viewed", context={"gallery_id": 3})
        row = logs.find_by_id(entry_id)
        assert row["level"] == "info"
        assert row["channel"] == "application"
        assert row["context"] == {"gallery_id": 3}
        assert row["environment"] == "production"

    def test_expiry_follows_level_retention(self, logs):
        row = logs.find_by_id(logs.log("debug", "noise"))
        days_left = (from_db(row["expires_at"]) - utc_now()).days
        assert RETENTION_DAYS["debug"] - 1 <= days_left <= RETENTION_DAYS["debug"]

    def test_explicit_expiry_kept(self, logs):
        expires = db_ahead(days=2)
        row = logs.find_by_id(logs.log("error", "kept", expires_at=expires))
        assert row["expires_at"] == expires

    @pytest.mark.parametrize(
        ("level", "message", "error"),
        [("verbose", "x", "Invalid log level: verbose"), ("info", "", "Log message is required")],
    )
    def test_validation(self, logs, level, message, error):
        with pytest.raises(ValidationError, match=error):
            logs.log(level, message)


class TestRetention:
    def test_clean_older_than(self, logs):
        _old(logs, "info", 40)
        logs.log("info", "fresh")
        assert logs.clean_older_than(30) == 1
        assert logs.count() == 1

    def test_delete_expired(self, logs):
        logs.log("info", "gone", expires_at=db_ago(minutes=1))
        logs.log("info", "stays")
        assert logs.delete_expired() == 1
        assert [r["message"] for r in logs.find_all()] == ["stays"]

    def test_policy_per_level(self, logs):
        _old(logs, "debug", 8, expires_at=None)
        _old(logs, "info", 20, expires_at=None)
        _old(logs, "warning", 100, expires_at=None)
        _old(logs, "error", 200, expires_at=None)
        logs.log("critical", "expired", expires_at=db_ago(days=1))
        result = logs.apply_retention_policy()
        assert result["debug"] == 1
        assert result["info"] == 0
        assert result["warning"] == 1
        assert result["error"] == 0
        assert result["expired"] == 1
        assert sorted(r["level"] for r in logs.find_all()) == ["error", "info"]


class TestArchive:
    def test_moves_old_rows(self, logs, conn):
        old = _old(logs, "warning", 120, request_id="req9")
        logs.log("info", "fresh")
        assert logs.archive_old_entries(90) == 1
        assert [r["message"] for r in logs.find_all()] == ["fresh"]
        archived = conn.execute(f"SELECT id, request_id FROM {logs.archive_table_name}").fetchall()
        assert [tuple(row) for row in archived] == [(old, "req9")]

    def test_nothing_to_move(self, logs):
        logs.log("info", "fresh")
        assert logs.archive_old_entries() == 0
        assert logs.archive_old_entries() == 0
        assert logs.count() == 1

    def test_failed_copy_keeps_rows(self, logs, conn):
        conn.execute(f"CREATE TABLE {logs.archive_table_name} (id INTEGER)")
        conn.commit()
        _old(logs, "error", 200)
        with pytest.raises(QueryError):
            logs.archive_old_entries(90)
        assert logs.count() == 1


# =============================================================================
# Export
# =============================================================================


class TestExport:
    @pytest.fixture
    def entries(self, logs):
        return [
            _old(logs, "info", 2, channel="http"),
            _old(logs, "error", 1, channel="db", context={"query": "SELECT 1"}),
            _old(logs, "debug", 1, channel="cache"),
            _old(logs, "info", 30, channel="http"),
        ]

    def test_default_window_oldest_first(self, logs, entries):
        rows = logs.export()
        assert [r["id"] for r in rows] == entries[:3]
        assert rows[1]["context"] == {"query": "SELECT 1"}

    def test_filters(self, logs, entries):
        assert [r["id"] for r in logs.export(levels=["ERROR", "debug"])] == entries[1:3]
        assert [r["id"] for r in logs.export(channels=["http"], start=db_ago(days=40))] == [entries[3], entries[0]]
        assert logs.export(levels=[], channels=[]) == logs.export()

    def test_json(self, logs, entries):
        data = json.loads(logs.export(levels=["error"], fmt="json"))
        assert [row["message"] for row in data] == ["error from 1 days ago"]

    def test_csv(self, logs, entries):
        text = logs.export(channels=["db"], fmt="csv")
        [row] = list(csv.DictReader(io.StringIO(text)))
        assert row["level"] == "error"
        assert json.loads(row["context"]) == {"query": "SELECT 1"}

    def test_csv_empty(self, logs):
        assert logs.export(fmt="csv") == ""

    def test_unknown_format(self, logs):
        with pytest.raises(ValidationError, match="Unsupported export format"):
            logs.export(fmt="xml")


# =============================================================================
# Lookups
# =============================================================================


class TestLookups:
    @pytest.fixture
    def entries(self, logs):
        return [
            logs.log("info", "request start", channel="http", request_id="req1", user_id=1),
            logs.log("error", "Database timeout", channel="db", request_id="req1", client_id=9),
            logs.log("debug", "cache miss", channel="cache"),
            logs.log("critical", "Disk full 100%", channel="storage"),
        ]

    def test_by_level_and_channel(self, logs, entries):
        assert [r["id"] for r in logs.find_by_level("ERROR")] == [entries[1]]
        assert [r["id"] for r in logs.find_by_channel("http")] == [entries[0]]

    def test_by_request_in_order(self, logs, entries):
        assert [r["id"] for r in logs.find_by_request_id("req1")] == entries[:2]

    def test_by_user_and_client(self, logs, entries):
        assert [r["id"] for r in logs.find_by_user_id(1)] == [entries[0]]
        assert [r["id"] for r in logs.find_by_client_id(9)] == [entries[1]]

    def test_find_errors(self, logs, entries):
        assert {r["id"] for r in logs.find_errors()} == {entries[1], entries[3]}

    def test_search_is_literal(self, logs, entries):
        assert [r["id"] for r in logs.search("100%")] == [entries[3]]
        assert [r["id"] for r in logs.search("timeout")] == [entries[1]]

    def test_recent_activity_skips_debug(self, logs, entries):
        assert entries[2] not in {r["id"] for r in logs.recent_activity()}
        assert len(logs.recent_activity(exclude_levels=())) == 4

    def test_channels_and_levels(self, logs, entries):
        assert logs.channels() == ["cache", "db", "http", "storage"]
        assert logs.levels() == ["critical", "error", "info", "debug"]


# =============================================================================
# Analytics
# =============================================================================


class TestAnalytics:
    def test_error_patterns(self, logs):
        for _ in range(3):
            logs.log("error", "Upload failed", channel="storage")
        logs.log("error", "Thumbnail failed", channel="storage")
        logs.log("info", "Upload failed")
        patterns = logs.error_patterns()
        assert [(p["message"], p["occurrence_count"]) for p in patterns] == [
            ("Upload failed", 3),
            ("Thumbnail failed", 1),
        ]

    def test_performance_metrics(self, logs):
        logs.log("info", "fast", response_time_ms=100, memory_usage=1024)
        logs.log("info", "slow", response_time_ms=5000, memory_usage=512 * 1024 * 1024)
        metrics = logs.performance_metrics()
        assert metrics["avg_response_time_ms"] == 2550.0
        assert metrics["max_response_time_ms"] == 5000
        assert metrics["slow_requests"] == 1
        assert metrics["high_memory_requests"] == 1

    def test_performance_metrics_empty(self, logs):
        assert logs.performance_metrics() == {
            "avg_response_time_ms": 0.0,
            "max_response_time_ms": 0,
            "slow_requests": 0,
            "avg_memory_usage": 0.0,
            "high_memory_requests": 0,
        }

    def test_statistics(self, logs):
        logs.log("info", "a", channel="http", user_id=1, ip_address="10.0.0.1")
        logs.log("error", "b", channel="db", client_id=2)
        _old(logs, "info", 60)
        stats = logs.get_statistics()
        assert stats["total_entries"] == 2
        assert stats["info_count"] == 1
        assert stats["error_count"] == 1
        assert stats["unique_channels"] == 2
        assert stats["unique_ips"] == 1
        assert stats["channel_distribution"] == {"http": 1, "db": 1}
        assert sum(stats["hourly_distribution"].values()) == 2
        assert set(stats["period"]) == {"start", "end"}
