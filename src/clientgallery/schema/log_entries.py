"""Log entries table: structured application log rows.

Retention (applied by
:meth:`~clientgallery.repositories.log_entries.LogEntryRepository.apply_retention_policy`)::

    debug                          7 days
    info, notice                  30 days
    warning                       90 days
    error, critical, alert,
    emergency                    365 days
    rows past expires_at          immediately
"""

from __future__ import annotations

from clientgallery.core.timestamps import db_ago
from clientgallery.schema.base import BaseSchema, IndexSpec, ViewSpec

LOG_LEVELS = ("emergency", "alert", "critical", "error", "warning", "notice", "info", "debug")
ERROR_LEVELS = ("emergency", "alert", "critical", "error")

SLOW_RESPONSE_MS = 1000
HIGH_MEMORY_BYTES = 50 * 1024 * 1024

MAX_HEALTHY_ROWS = 1_000_000
MAX_ERRORS_PER_HOUR = 100


def _quoted(values: tuple[str, ...]) -> str:
    return ", ".join(f"'{v}'" for v in values)


class LogEntrySchema(BaseSchema):
    TABLE = "log_entries"
    REQUIRED_COLUMNS = ("id", "level", "channel", "message", "context", "request_id", "created_at")

    def create_table_sql(self) -> str:
        d = self.dialect
        dt = d.datetime_type()
        js = d.json_type()
        return f"""
CREATE TABLE IF NOT EXISTS {self.table_name} (
    id {d.auto_increment()},
    level {d.enum_type("level", LOG_LEVELS)} NOT NULL,
    channel VARCHAR(100) NOT NULL DEFAULT 'application',
    message TEXT NOT NULL,
    context {js},
    extra {js},
    request_id VARCHAR(32),
    session_id VARCHAR(64),
    user_id INTEGER,
    client_id INTEGER,
    ip_address VARCHAR(45),
    user_agent VARCHAR(500),
    referer VARCHAR(500),
    url VARCHAR(2000),
    method VARCHAR(10),
    response_code SMALLINT,
    response_time_ms INTEGER,
    memory_usage BIGINT,
    cpu_usage DECIMAL(5,2),
    trace TEXT,
    tags VARCHAR(500),
    environment VARCHAR(20) NOT NULL DEFAULT 'production',
    application_version VARCHAR(20),
    created_at {dt} NOT NULL {d.timestamp_default_now()},
    expires_at {dt}
){d.table_options()}"""

    def indexes(self) -> list[IndexSpec]:
        return [
            IndexSpec(self.index_name("level"), ("level",)),
            IndexSpec(self.index_name("channel"), ("channel",)),
            IndexSpec(self.index_name("created_at"), ("created_at",)),
            IndexSpec(self.index_name("request"), ("request_id",)),
            IndexSpec(self.index_name("user"), ("user_id",)),
            IndexSpec(self.index_name("client"), ("client_id",)),
            IndexSpec(self.index_name("expires"), ("expires_at",)),
        ]

    def views(self) -> list[ViewSpec]:
        t = self.table_name
        return [
            ViewSpec(f"{t}_errors", f"SELECT * FROM {t} WHERE level IN ({_quoted(ERROR_LEVELS)})"),
            ViewSpec(
                f"{t}_performance",
                f"SELECT id, url, method, response_code, response_time_ms, memory_usage, created_at FROM {t} "
                f"WHERE response_time_ms > {SLOW_RESPONSE_MS} OR memory_usage > {HIGH_MEMORY_BYTES}",
            ),
            ViewSpec(
                f"{t}_security",
                f"SELECT * FROM {t} WHERE channel = 'security' OR level IN ('alert', 'emergency')",
            ),
            ViewSpec(
                f"{t}_user_activity",
                f"SELECT user_id, client_id, COUNT(*) AS event_count, MAX(created_at) AS last_seen FROM {t} "
                "WHERE (user_id IS NOT NULL OR client_id IS NOT NULL) "
                f"AND created_at >= {self.dialect.interval(-30, 'days')} GROUP BY user_id, client_id",
            ),
        ]

    def check_data(self) -> list[str]:
        t = self.table_name
        ph = self.dialect.placeholder(0)
        issues = []

        total = self.count_rows()
        if total > MAX_HEALTHY_ROWS:
            issues.append(f"Log table holds {total} rows; apply the retention policy")

        stale = self._scalar(
            f"SELECT COUNT(*) FROM {t} WHERE level IN ('debug', 'info') AND created_at < {ph}",
            (db_ago(days=30),),
        )
        if stale:
            issues.append(f"{stale} debug/info entries older than 30 days")

        invalid_json = self._scalar(
            f"SELECT COUNT(*) FROM {t} WHERE context IS NOT NULL AND context <> '' AND JSON_VALID(context) = 0"
        )
        if invalid_json:
            issues.append(f"{invalid_json} entries with invalid JSON context")

        recent_errors = self._scalar(
            f"SELECT COUNT(*) FROM {t} WHERE level IN ({_quoted(ERROR_LEVELS)}) AND created_at >= {ph}",
            (db_ago(hours=1),),
        )
        if recent_errors and recent_errors > MAX_ERRORS_PER_HOUR:
            issues.append(f"{recent_errors} errors logged in the last hour")
        return issues
