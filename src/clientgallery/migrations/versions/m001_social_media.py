"""1.1.0: social media profile links on clients."""

from __future__ import annotations

from clientgallery.migrations.base import BaseMigration, PrerequisiteResult

SOCIAL_COLUMNS = ("facebook_url", "instagram_url", "twitter_url", "linkedin_url")


class Migration001AddSocialMediaToClients(BaseMigration):
    version = "1.1.0"
    description = "Add social media fields to clients table"

    def up(self) -> bool:
        clients = self.table("clients")
        for column in SOCIAL_COLUMNS:
            self.add_column(clients, column, "VARCHAR(255)")
        self.add_column(clients, "social_media_preferences", self.dialect.json_type())
        self.log("migration.social_media_added", table=clients)
        return True

    def down(self) -> bool:
        clients = self.table("clients")
        for column in (*SOCIAL_COLUMNS, "social_media_preferences"):
            self.drop_column(clients, column)
        return True

    def validate_prerequisites(self) -> PrerequisiteResult:
        if not self.table_exists(self.table("clients")):
            return PrerequisiteResult(False, ["Clients table does not exist"])
        return PrerequisiteResult(True, ["Clients table exists"])

    def warnings(self) -> list[str]:
        return [
            "This migration adds social media fields to the clients table",
            "Existing client data will not be affected",
            "New fields will be NULL by default",
        ]
