"""Clients table: people who receive galleries."""

from __future__ import annotations

from clientgallery.core.timestamps import db_ago
from clientgallery.schema.base import BaseSchema, IndexSpec, TriggerSpec, ViewSpec

CLIENT_STATUSES = ("active", "inactive", "blocked", "pending_verification")


class ClientSchema(BaseSchema):
    """Client accounts with access keys, security counters and consent data.

    An empty ``access_key`` is replaced on insert by a 64-character random
    key (trigger).
    """

    TABLE = "clients"
    REQUIRED_COLUMNS = ("id", "name", "email", "access_key", "status", "created_at", "updated_at")

    def create_table_sql(self) -> str:
        d = self.dialect
        dt = d.datetime_type()
        js = d.json_type()
        return f"""
CREATE TABLE IF NOT EXISTS {self.table_name} (
    id {d.auto_increment()},
    name VARCHAR(255) NOT NULL,
    email VARCHAR(255) NOT NULL UNIQUE,
    company VARCHAR(255),
    phone VARCHAR(50),
    website VARCHAR(255),
    access_key VARCHAR(64) UNIQUE,
    access_expires {dt},
    password_hash VARCHAR(255),
    two_factor_enabled SMALLINT NOT NULL DEFAULT 0,
    two_factor_secret VARCHAR(64),
    login_attempts INTEGER NOT NULL DEFAULT 0,
    locked_until {dt},
    permissions {js},
    settings {js},
    notification_preferences {js},
    timezone VARCHAR(50) NOT NULL DEFAULT 'UTC',
    language VARCHAR(10) NOT NULL DEFAULT 'en',
    avatar_path VARCHAR(500),
    status {d.enum_type("status", CLIENT_STATUSES)} NOT NULL DEFAULT 'active',
    email_verified_at {dt},
    verification_token VARCHAR(64),
    reset_token VARCHAR(64),
    reset_token_expires {dt},
    terms_accepted_at {dt},
    privacy_accepted_at {dt},
    marketing_consent SMALLINT NOT NULL DEFAULT 0,
    last_login {dt},
    last_login_ip VARCHAR(45),
    last_activity {dt},
    total_downloads INTEGER NOT NULL DEFAULT 0,
    total_galleries_accessed INTEGER NOT NULL DEFAULT 0,
    {self.timestamp_columns()},
    created_by INTEGER,
    updated_by INTEGER
){d.table_options()}"""

    def indexes(self) -> list[IndexSpec]:
        return [
            IndexSpec(self.index_name("status"), ("status",)),
            IndexSpec(self.index_name("company"), ("company",)),
            IndexSpec(self.index_name("last_login"), ("last_login",)),
            IndexSpec(self.index_name("created_at"), ("created_at",)),
        ]

    def triggers(self) -> list[TriggerSpec]:
        name = f"trg_{self.table_name}_access_key"
        if self.dialect.name == "mysql":
            body = (
                "SET NEW.access_key = IF(NEW.access_key IS NULL OR NEW.access_key = '', "
                "SHA2(CONCAT(NEW.email, NOW(), RAND()), 256), NEW.access_key)",
            )
            return [TriggerSpec(name, "BEFORE", "INSERT", body)]
        body = (
            f"UPDATE {self.table_name} SET access_key = lower(hex(randomblob(32))) "
            "WHERE id = NEW.id AND (access_key IS NULL OR access_key = '')",
        )
        return [TriggerSpec(name, "AFTER", "INSERT", body)]

    def views(self) -> list[ViewSpec]:
        t = self.table_name
        return [
            ViewSpec(f"{t}_active", f"SELECT * FROM {t} WHERE status = 'active'"),
            ViewSpec(
                f"{t}_verification_pending",
                f"SELECT id, name, email, verification_token, created_at FROM {t} "
                "WHERE status = 'pending_verification'",
            ),
            ViewSpec(
                f"{t}_security_alerts",
                f"SELECT id, name, email, login_attempts, locked_until, status, last_login_ip FROM {t} "
                f"WHERE login_attempts >= 3 OR (locked_until IS NOT NULL AND locked_until > {self.dialect.now()}) "
                "OR status = 'blocked'",
            ),
        ]

    def check_data(self) -> list[str]:
        t = self.table_name
        ph = self.dialect.placeholder(0)
        issues = []

        duplicates = self._scalar(
            f"SELECT COUNT(*) FROM (SELECT LOWER(email) AS e FROM {t} GROUP BY LOWER(email) HAVING COUNT(*) > 1) dup"
        )
        if duplicates:
            issues.append(f"{duplicates} duplicate email address(es)")

        expired = self._scalar(
            f"SELECT COUNT(*) FROM {t} WHERE status = 'pending_verification' "
            f"AND verification_token IS NOT NULL AND created_at < {ph}",
            (db_ago(days=7),),
        )
        if expired:
            issues.append(f"{expired} expired verification token(s)")

        weak = self._scalar(f"SELECT COUNT(*) FROM {t} WHERE access_key IS NOT NULL AND LENGTH(access_key) < 32")
        if weak:
            issues.append(f"{weak} weak access key(s) shorter than 32 characters")

        return issues
