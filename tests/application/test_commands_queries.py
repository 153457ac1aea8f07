"""Tests for command and query construction rules."""

import dataclasses

import pytest

from clientgallery.application import (
    ArchiveGalleryCommand,
    ChangeGalleryStatusCommand,
    CreateGalleryCommand,
    DeleteGalleryCommand,
    GetGalleryQuery,
    ListGalleriesQuery,
    PublishGalleryCommand,
    UnpublishGalleryCommand,
    UpdateGalleryCommand,
)
from clientgallery.core.errors import ValidationError


class TestCreateGalleryCommand:
    def test_defaults(self):
        command = CreateGalleryCommand("Wedding", "wedding", client_id=1)
        assert command.description is None
        assert command.settings == {}

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"name": " ", "slug": "ok", "client_id": 1}, "Gallery name cannot be empty"),
            ({"name": "Ok", "slug": "", "client_id": 1}, "Gallery slug cannot be empty"),
            ({"name": "Ok", "slug": "ok", "client_id": 0}, "Client ID must be positive"),
        ],
    )
    def test_invalid(self, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            CreateGalleryCommand(**kwargs)

    def test_immutable(self):
        command = CreateGalleryCommand("Wedding", "wedding", client_id=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            command.name = "Other"


class TestUpdateGalleryCommand:
    def test_partial(self):
        command = UpdateGalleryCommand(3, description="New")
        assert (command.name, command.slug, command.settings) == (None, None, None)

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="Gallery name cannot be empty"):
            UpdateGalleryCommand(3, name="  ")


@pytest.mark.parametrize(
    "command_type",
    [
        UpdateGalleryCommand,
        DeleteGalleryCommand,
        PublishGalleryCommand,
        UnpublishGalleryCommand,
        ArchiveGalleryCommand,
        GetGalleryQuery,
    ],
)
@pytest.mark.parametrize("bad_id", [0, -5])
def test_ids_must_be_positive(command_type, bad_id):
    with pytest.raises(ValidationError, match="Gallery ID must be positive"):
        command_type(bad_id)


class TestChangeGalleryStatusCommand:
    def test_accepts_any_case(self):
        assert ChangeGalleryStatusCommand(1, "Published").status == "Published"

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError, match='Invalid gallery status "deleted"'):
            ChangeGalleryStatusCommand(1, "deleted")


class TestListGalleriesQuery:
    def test_defaults(self):
        query = ListGalleriesQuery()
        assert (query.limit, query.offset) == (10, 0)
        assert query.status is None

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"limit": 0}, "Limit must be positive"),
            ({"offset": -1}, "Offset cannot be negative"),
            ({"status": "hidden"}, 'Invalid gallery status "hidden"'),
        ],
    )
    def test_invalid(self, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            ListGalleriesQuery(**kwargs)
