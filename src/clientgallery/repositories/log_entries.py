"""Log entry repository.

Application events persisted to the ``log_entries`` table, with the
retention rules that keep it bounded. Retention runs from
:meth:`LogEntryRepository.apply_retention_policy` (called by
``RepositoryManager.perform_maintenance``) instead of a database event.

Retention (age after which rows are deleted)::

    debug               7 days
    info, notice       30 days
    warning            90 days
    error and above   365 days

Tags:
    clientgallery, repository, logs, retention

Doc-Types:
    api-reference
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Mapping
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.core.logging import get_logger
from clientgallery.core.timestamps import db_ago, db_ahead, db_now
from clientgallery.schema.log_entries import ERROR_LEVELS, HIGH_MEMORY_BYTES, LOG_LEVELS, SLOW_RESPONSE_MS

from ._helpers import LIKE_ESCAPE, _build_where, _like
from .base import BaseRepository

logger = get_logger(__name__)

RETENTION_DAYS: dict[str, int] = {
    "debug": 7,
    "info": 30,
    "notice": 30,
    "warning": 90,
    "error": 365,
    "critical": 365,
    "alert": 365,
    "emergency": 365,
}

EXPORT_FORMATS = ("array", "json", "csv")


class LogEntryRepository(BaseRepository):
    """Write and analyse persisted log entries."""

    TABLE = "log_entries"
    HAS_UPDATED_AT = False
    FILLABLE = (
        "level",
        "channel",
        "message",
        "context",
        "extra",
        "request_id",
        "session_id",
        "user_id",
        "client_id",
        "ip_address",
        "user_agent",
        "referer",
        "url",
        "method",
        "response_code",
        "response_time_ms",
        "memory_usage",
        "cpu_usage",
        "trace",
        "tags",
        "environment",
        "application_version",
        "expires_at",
    )
    JSON_FIELDS = ("context", "extra")
    CASTS = {
        "id": "int",
        "user_id": "int",
        "client_id": "int",
        "response_code": "int",
        "response_time_ms": "int",
        "memory_usage": "int",
        "cpu_usage": "float",
    }

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(data)
        level = str(out.get("level") or "").lower()
        if level not in LOG_LEVELS:
            raise ValidationError(f"Invalid log level: {out.get('level')}", field="level", value=out.get("level"))
        if not out.get("message"):
            raise ValidationError("Log message is required", field="message")
        out["level"] = level
        out.setdefault("expires_at", db_ahead(days=RETENTION_DAYS[level]))
        return out

    # -- Writing -------------------------------------------------------------

    def log(
        self,
        level: str,
        message: str,
        channel: str = "application",
        context: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> int:
        """Persist one entry; returns its id."""
        return self.create(
            {"level": level, "message": message, "channel": channel, "context": dict(context or {}), **fields}
        )

    def clean_older_than(self, days: int = 30) -> int:
        return self._run(
            f"DELETE FROM {self.table_name} WHERE created_at < {self.ph(1)}",
            (db_ago(days=days),),
            operation="clean_older_than",
        )

    def delete_expired(self) -> int:
        return self._run(
            f"DELETE FROM {self.table_name} WHERE expires_at IS NOT NULL AND expires_at < {self.ph(1)}",
            (db_now(),),
            operation="delete_expired",
        )

    def apply_retention_policy(self) -> dict[str, int]:
        """Delete rows past their level's retention and rows past ``expires_at``."""
        deleted: dict[str, int] = {}
        with self.transaction():
            for level, days in RETENTION_DAYS.items():
                deleted[level] = self._run(
                    f"DELETE FROM {self.table_name} WHERE level = {self.ph(1)} AND created_at < {self.ph(1)}",
                    (level, db_ago(days=days)),
                    operation="apply_retention_policy",
                )
            deleted["expired"] = self.delete_expired()
        return deleted

    @property
    def archive_table_name(self) -> str:
        return f"{self.table_name}_archive"

    def archive_old_entries(self, days: int = 90) -> int:
        """Move rows older than ``days`` into the archive table; returns how many moved.

        The copy and the delete share one transaction, so a failure leaves
        both tables untouched.
        """
        cutoff = db_ago(days=days)
        with self.transaction():
            self._run(
                self.dialect.create_table_like(self.archive_table_name, self.table_name), operation="archive_old_entries"
            )
            moved = self._run(
                f"INSERT INTO {self.archive_table_name} SELECT * FROM {self.table_name} WHERE created_at < {self.ph(1)}",
                (cutoff,),
                operation="archive_old_entries",
            )
            if moved:
                self._run(
                    f"DELETE FROM {self.table_name} WHERE created_at < {self.ph(1)}",
                    (cutoff,),
                    operation="archive_old_entries",
                )
        logger.info("log_entries.archived", moved=moved, cutoff=cutoff, archive=self.archive_table_name)
        return moved

    # -- Export --------------------------------------------------------------

    def export(
        self,
        start: str | None = None,
        end: str | None = None,
        levels: Iterable[str] | None = None,
        channels: Iterable[str] | None = None,
        fmt: str = "array",
    ) -> list[dict[str, Any]] | str:
        """Entries in ``start..end`` (default: the last 7 days), oldest first.

        ``fmt`` is ``"array"`` (list of dicts), ``"json"`` or ``"csv"``;
        the last two return text. An empty CSV export is ``""``.
        """
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt}", field="fmt", value=fmt)
        levels = [level.lower() for level in levels or ()]
        channels = list(channels or ())
        where, params = _build_where(
            {"level": levels or None, "channel": channels or None},
            self.ph,
            extra_clauses=[f"created_at >= {self.ph(1)}", f"created_at <= {self.ph(1)}"],
        )
        rows = self.query(
            f"SELECT * FROM {self.table_name} WHERE {where} ORDER BY created_at ASC, id ASC",
            (*params, start or db_ago(days=7), end or db_now()),
        )
        if fmt == "csv":
            return _to_csv(rows)
        entries = self.cast_rows(rows)
        if fmt == "json":
            return json.dumps(entries, indent=2, default=str)
        return entries

    # -- Lookups -------------------------------------------------------------

    def find_by_level(self, level: str, limit: int = 100) -> list[dict[str, Any]]:
        return self.find_all({"level": level.lower()}, order_by="created_at DESC, id DESC", limit=limit)

    def find_by_channel(self, channel: str, limit: int = 100) -> list[dict[str, Any]]:
        return self.find_all({"channel": channel}, order_by="created_at DESC, id DESC", limit=limit)

    def find_by_request_id(self, request_id: str) -> list[dict[str, Any]]:
        """Every entry of one request, in order."""
        return self.find_by({"request_id": request_id}, order_by="created_at ASC, id ASC")

    def find_by_user_id(self, user_id: int, limit: int = 100) -> list[dict[str, Any]]:
        return self.find_all({"user_id": user_id}, order_by="created_at DESC, id DESC", limit=limit)

    def find_by_client_id(self, client_id: int, limit: int = 100) -> list[dict[str, Any]]:
        return self.find_all({"client_id": client_id}, order_by="created_at DESC, id DESC", limit=limit)

    def find_errors(self, hours: int = 24, limit: int = 100) -> list[dict[str, Any]]:
        where, params = _build_where(
            {"level": list(ERROR_LEVELS)}, self.ph, extra_clauses=[f"created_at >= {self.ph(1)}"]
        )
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE {where} ORDER BY created_at DESC, id DESC LIMIT {self.ph(1)}",
                (*params, db_ago(hours=hours), limit),
            )
        )

    def search(self, term: str, limit: int = 100) -> list[dict[str, Any]]:
        pattern = _like(term.strip())
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE message LIKE {self.ph(1)} {LIKE_ESCAPE} "
                f"OR channel LIKE {self.ph(1)} {LIKE_ESCAPE} "
                f"ORDER BY created_at DESC, id DESC LIMIT {self.ph(1)}",
                (pattern, pattern, limit),
            )
        )

    def recent_activity(self, limit: int = 50, exclude_levels: Iterable[str] = ("debug",)) -> list[dict[str, Any]]:
        excluded = list(exclude_levels)
        sql = f"SELECT * FROM {self.table_name}"
        params: tuple = ()
        if excluded:
            sql += f" WHERE level NOT IN ({self.ph(len(excluded))})"
            params = tuple(excluded)
        sql += f" ORDER BY created_at DESC, id DESC LIMIT {self.ph(1)}"
        return self.cast_rows(self.query(sql, (*params, limit)))

    def channels(self) -> list[str]:
        return [r["channel"] for r in self.query(f"SELECT DISTINCT channel FROM {self.table_name} ORDER BY channel")]

    def levels(self) -> list[str]:
        """Levels present in the table, most severe first."""
        present = {r["level"] for r in self.query(f"SELECT DISTINCT level FROM {self.table_name}")}
        return [level for level in LOG_LEVELS if level in present]

    # -- Analytics -----------------------------------------------------------

    def error_patterns(self, days: int = 7, limit: int = 20) -> list[dict[str, Any]]:
        """Most frequent error messages in the window."""
        rows = self.query(
            f"SELECT message, level, channel, COUNT(*) AS occurrence_count, "
            f"MAX(created_at) AS last_occurrence, MIN(created_at) AS first_occurrence "
            f"FROM {self.table_name} "
            f"WHERE created_at >= {self.ph(1)} AND level IN ({self.ph(len(ERROR_LEVELS))}) "
            f"GROUP BY message, level, channel "
            f"ORDER BY occurrence_count DESC, last_occurrence DESC LIMIT {self.ph(1)}",
            (db_ago(days=days), *ERROR_LEVELS, limit),
        )
        for row in rows:
            row["occurrence_count"] = int(row["occurrence_count"])
        return rows

    def performance_metrics(self, days: int = 1) -> dict[str, Any]:
        row = self.query_one(
            f"SELECT AVG(response_time_ms) AS avg_response_time_ms, "
            f"MAX(response_time_ms) AS max_response_time_ms, "
            f"SUM(CASE WHEN response_time_ms > {self.ph(1)} THEN 1 ELSE 0 END) AS slow_requests, "
            f"AVG(memory_usage) AS avg_memory_usage, "
            f"SUM(CASE WHEN memory_usage > {self.ph(1)} THEN 1 ELSE 0 END) AS high_memory_requests "
            f"FROM {self.table_name} WHERE created_at >= {self.ph(1)}",
            (SLOW_RESPONSE_MS, HIGH_MEMORY_BYTES, db_ago(days=days)),
        ) or {}
        return {
            "avg_response_time_ms": float(row.get("avg_response_time_ms") or 0.0),
            "max_response_time_ms": int(row.get("max_response_time_ms") or 0),
            "slow_requests": int(row.get("slow_requests") or 0),
            "avg_memory_usage": float(row.get("avg_memory_usage") or 0.0),
            "high_memory_requests": int(row.get("high_memory_requests") or 0),
        }

    def get_statistics(self, start: str | None = None, end: str | None = None) -> dict[str, Any]:
        """Counts per level and per channel for ``start..end`` (default: last 30 days)."""
        start = start or db_ago(days=30)
        end = end or db_now()
        level_counts = ", ".join(
            f"SUM(CASE WHEN level = '{level}' THEN 1 ELSE 0 END) AS {level}_count" for level in LOG_LEVELS
        )
        row = self.query_one(
            f"SELECT COUNT(*) AS total_entries, {level_counts}, "
            f"COUNT(DISTINCT channel) AS unique_channels, COUNT(DISTINCT user_id) AS unique_users, "
            f"COUNT(DISTINCT client_id) AS unique_clients, COUNT(DISTINCT ip_address) AS unique_ips "
            f"FROM {self.table_name} WHERE created_at >= {self.ph(1)} AND created_at <= {self.ph(1)}",
            (start, end),
        ) or {}
        stats: dict[str, Any] = {k: int(v or 0) for k, v in row.items()}
        stats["channel_distribution"] = {
            r["channel"]: int(r["cnt"])
            for r in self.query(
                f"SELECT channel, COUNT(*) AS cnt FROM {self.table_name} "
                f"WHERE created_at >= {self.ph(1)} AND created_at <= {self.ph(1)} "
                f"GROUP BY channel ORDER BY cnt DESC LIMIT 10",
                (start, end),
            )
        }
        hour = self.dialect.hour_of("created_at")
        stats["hourly_distribution"] = {
            int(r["hour"]): int(r["cnt"])
            for r in self.query(
                f"SELECT {hour} AS hour, COUNT(*) AS cnt FROM {self.table_name} "
                f"WHERE created_at >= {self.ph(1)} GROUP BY {hour} ORDER BY hour",
                (db_ago(hours=24),),
            )
        }
        stats["period"] = {"start": start, "end": end}
        return stats


def _to_csv(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0]), quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


__all__ = ["LogEntryRepository", "RETENTION_DAYS"]
