"""Client repository.

Tags:
    clientgallery, repository, clients

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.core.logging import get_logger
from clientgallery.core.timestamps import db_ago, db_ahead, db_now
from clientgallery.schema.clients import CLIENT_STATUSES

from ._helpers import LIKE_ESCAPE, _like
from .base import BaseRepository

logger = get_logger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Columns never included in exports.
SENSITIVE_COLUMNS = (
    "password_hash",
    "two_factor_secret",
    "access_key",
    "verification_token",
    "reset_token",
    "reset_token_expires",
)


class ClientRepository(BaseRepository):
    """CRUD and lookups for the ``clients`` table."""

    TABLE = "clients"
    FILLABLE = (
        "name",
        "email",
        "company",
        "phone",
        "website",
        "access_key",
        "access_expires",
        "password_hash",
        "two_factor_enabled",
        "two_factor_secret",
        "login_attempts",
        "locked_until",
        "permissions",
        "settings",
        "notification_preferences",
        "timezone",
        "language",
        "avatar_path",
        "status",
        "email_verified_at",
        "verification_token",
        "reset_token",
        "reset_token_expires",
        "terms_accepted_at",
        "privacy_accepted_at",
        "marketing_consent",
        "last_login",
        "last_login_ip",
        "last_activity",
        "total_downloads",
        "total_galleries_accessed",
        "created_by",
        "updated_by",
    )
    JSON_FIELDS = ("permissions", "settings", "notification_preferences")
    CASTS = {
        "id": "int",
        "two_factor_enabled": "bool",
        "marketing_consent": "bool",
        "login_attempts": "int",
        "total_downloads": "int",
        "total_galleries_accessed": "int",
    }

    def _check(self, data: Mapping[str, Any], *, creating: bool) -> dict[str, Any]:
        out = dict(data)
        if creating or "name" in out:
            name = (out.get("name") or "").strip()
            if not name:
                raise ValidationError("Client name is required", field="name", value=out.get("name"))
            out["name"] = name
        if creating or "email" in out:
            email = (out.get("email") or "").strip().lower()
            if not _EMAIL_RE.match(email):
                raise ValidationError("Invalid email address", field="email", value=out.get("email"))
            out["email"] = email
        if "status" in out and out["status"] not in CLIENT_STATUSES:
            raise ValidationError(
                f"Invalid client status: {out['status']}", field="status", value=out["status"]
            )
        return out

    def prepare_create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._check(data, creating=True)

    def prepare_update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._check(data, creating=False)

    # -- Lookups -------------------------------------------------------------

    def find_by_email(self, email: str) -> dict[str, Any] | None:
        return self.cast_row(
            self.query_one(
                f"SELECT * FROM {self.table_name} WHERE LOWER(email) = {self.ph(1)}",
                (email.strip().lower(),),
            )
        )

    def find_by_access_key(self, access_key: str) -> dict[str, Any] | None:
        """Client for an access key that has not expired."""
        return self.cast_row(
            self.query_one(
                f"SELECT * FROM {self.table_name} WHERE access_key = {self.ph(1)} "
                f"AND (access_expires IS NULL OR access_expires > {self.ph(1)})",
                (access_key, db_now()),
            )
        )

    def search(self, term: str, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        """Name, email or company containing ``term``."""
        pattern = _like(term.strip())
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} "
                f"WHERE name LIKE {self.ph(1)} {LIKE_ESCAPE} "
                f"OR email LIKE {self.ph(1)} {LIKE_ESCAPE} "
                f"OR company LIKE {self.ph(1)} {LIKE_ESCAPE} "
                f"ORDER BY name ASC LIMIT {self.ph(1)} OFFSET {self.ph(1)}",
                (pattern, pattern, pattern, limit, offset),
            )
        )

    def find_by_company(self, company: str) -> list[dict[str, Any]]:
        return self.find_by({"company": company}, order_by="name ASC")

    def find_by_status(self, status: str) -> list[dict[str, Any]]:
        return self.find_by({"status": status}, order_by="name ASC")

    def find_with_galleries(self) -> list[dict[str, Any]]:
        """Clients owning at least one gallery, with ``gallery_count``."""
        galleries = self.table("galleries")
        return self.cast_rows(
            self.query(
                f"SELECT c.*, COUNT(g.id) AS gallery_count FROM {self.table_name} c "
                f"INNER JOIN {galleries} g ON g.client_id = c.id "
                f"GROUP BY c.id ORDER BY gallery_count DESC, c.name ASC"
            )
        )

    def find_without_galleries(self) -> list[dict[str, Any]]:
        galleries = self.table("galleries")
        return self.cast_rows(
            self.query(
                f"SELECT c.* FROM {self.table_name} c "
                f"LEFT JOIN {galleries} g ON g.client_id = c.id "
                f"WHERE g.id IS NULL ORDER BY c.created_at DESC"
            )
        )

    def is_email_unique(self, email: str, exclude_id: int | None = None) -> bool:
        sql = f"SELECT COUNT(*) FROM {self.table_name} WHERE LOWER(email) = {self.ph(1)}"
        params: tuple = (email.strip().lower(),)
        if exclude_id is not None:
            sql += f" AND id != {self.ph(1)}"
            params = (*params, exclude_id)
        return int(self.scalar(sql, params) or 0) == 0

    def find_by_date_range(self, start: str, end: str) -> list[dict[str, Any]]:
        """Clients created between ``start`` and ``end`` (inclusive, storage format)."""
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE created_at BETWEEN {self.ph(1)} AND {self.ph(1)} "
                f"ORDER BY created_at DESC",
                (start, end),
            )
        )

    def find_stale(self, days: int = 365) -> list[dict[str, Any]]:
        """Active clients not updated for ``days`` days, oldest first."""
        return self.cast_rows(
            self.query(
                f"SELECT * FROM {self.table_name} WHERE updated_at < {self.ph(1)} AND status = 'active' "
                f"ORDER BY updated_at ASC",
                (db_ago(days=days),),
            )
        )

    # -- Account state -------------------------------------------------------

    def update_status(self, client_id: int, status: str) -> bool:
        return self.update(client_id, {"status": status})

    def record_login(self, client_id: int, ip: str | None = None) -> bool:
        """Successful login: stamp time and IP, clear the failure counter."""
        now = db_now()
        return self.update(
            client_id,
            {
                "last_login": now,
                "last_activity": now,
                "last_login_ip": ip,
                "login_attempts": 0,
                "locked_until": None,
            },
        )

    def register_failed_login(self, client_id: int, max_attempts: int = 5, lock_minutes: int = 30) -> bool:
        """Count a failed login; returns True when the account is now locked."""
        client = self.find_by_id(client_id)
        if client is None:
            return False
        attempts = int(client.get("login_attempts") or 0) + 1
        changes: dict[str, Any] = {"login_attempts": attempts}
        locked = attempts >= max_attempts
        if locked:
            changes["locked_until"] = db_ahead(minutes=lock_minutes)
        self.update(client_id, changes)
        if locked:
            logger.warning("client.locked", client_id=client_id, attempts=attempts)
        return locked

    def is_locked(self, client_id: int) -> bool:
        locked_until = self.scalar(
            f"SELECT locked_until FROM {self.table_name} WHERE id = {self.ph(1)}", (client_id,)
        )
        return locked_until is not None and str(locked_until) > db_now()

    def bulk_update_notification_preferences(self, client_ids: Iterable[int], preferences: Mapping[str, Any]) -> int:
        """Merge ``preferences`` into each client's notification preferences."""
        updated = 0
        with self.transaction():
            for client_id in client_ids:
                client = self.find_by_id(client_id)
                if client is None:
                    continue
                merged = {**(client.get("notification_preferences") or {}), **preferences}
                if self.update(client_id, {"notification_preferences": merged}):
                    updated += 1
        return updated

    # -- GDPR ----------------------------------------------------------------

    def export_client_data(self, client_id: int) -> dict[str, Any] | None:
        """Client row (without secrets) plus its galleries and ratings."""
        client = self.find_by_id(client_id)
        if client is None:
            return None
        for column in SENSITIVE_COLUMNS:
            client.pop(column, None)
        galleries = self.query(
            f"SELECT * FROM {self.table('galleries')} WHERE client_id = {self.ph(1)} ORDER BY created_at",
            (client_id,),
        )
        ratings = self.query(
            f"SELECT * FROM {self.table('ratings')} WHERE client_id = {self.ph(1)} ORDER BY created_at",
            (client_id,),
        )
        return {
            "client": client,
            "galleries": galleries,
            "ratings": ratings,
            "export_date": db_now(),
            "export_format_version": "1.0",
        }

    def anonymize(self, client_id: int) -> bool:
        """Replace personal data with placeholders and strip rating fingerprints."""
        if not self.exists(client_id):
            return False
        with self.transaction():
            self.update(
                client_id,
                {
                    "name": "Anonymized User",
                    "email": f"anonymized{client_id}@example.com",
                    "company": None,
                    "phone": None,
                    "website": None,
                    "avatar_path": None,
                    "last_login_ip": None,
                    "notification_preferences": None,
                    "settings": {"anonymized": True, "date": db_now()},
                    "marketing_consent": False,
                    "status": "inactive",
                },
            )
            self._run(
                f"UPDATE {self.table('ratings')} SET client_ip = NULL, user_agent = NULL, device_info = NULL "
                f"WHERE client_id = {self.ph(1)}",
                (client_id,),
                operation="anonymize_ratings",
            )
        return True

    # -- Statistics ----------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        row = self.query_one(
            f"SELECT COUNT(*) AS total_clients, "
            f"SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END) AS active_clients, "
            f"SUM(CASE WHEN email_verified_at IS NOT NULL THEN 1 ELSE 0 END) AS verified_clients, "
            f"SUM(CASE WHEN company IS NOT NULL AND company != '' THEN 1 ELSE 0 END) AS clients_with_company, "
            f"SUM(CASE WHEN created_at >= {self.ph(1)} THEN 1 ELSE 0 END) AS new_last_30_days, "
            f"COUNT(DISTINCT company) AS unique_companies "
            f"FROM {self.table_name}",
            (db_ago(days=30),),
        ) or {}
        stats = {k: int(v or 0) for k, v in row.items()}
        stats["by_status"] = {
            r["status"]: int(r["cnt"])
            for r in self.query(f"SELECT status, COUNT(*) AS cnt FROM {self.table_name} GROUP BY status")
        }
        stats["company_distribution"] = self.query(
            f"SELECT company, COUNT(*) AS count FROM {self.table_name} "
            f"WHERE company IS NOT NULL AND company != '' AND status = 'active' "
            f"GROUP BY company ORDER BY count DESC LIMIT 10"
        )
        return stats


__all__ = ["ClientRepository", "SENSITIVE_COLUMNS"]
