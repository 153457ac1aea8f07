"""Shipped migrations, in version order."""

from clientgallery.migrations.versions.m001_social_media import Migration001AddSocialMediaToClients

MIGRATIONS = [
    Migration001AddSocialMediaToClients,
]

__all__ = ["MIGRATIONS", "Migration001AddSocialMediaToClients"]
