"""Tests for Orientation, RatingValue and score validation."""

import pytest

from clientgallery.core.errors import ValidationError
from clientgallery.domain import Orientation, RatingValue, validate_score


class TestOrientation:
    @pytest.mark.parametrize(
        ("width", "height", "expected"),
        [
            (1920, 1080, Orientation.LANDSCAPE),
            (1080, 1920, Orientation.PORTRAIT),
            (512, 512, Orientation.SQUARE),
            ("800", "600", Orientation.LANDSCAPE),
        ],
    )
    def test_from_dimensions(self, width, height, expected):
        assert Orientation.from_dimensions(width, height) is expected

    @pytest.mark.parametrize(("width", "height"), [(0, 100), (100, -1), (None, 100), ("wide", 100)])
    def test_unknown(self, width, height):
        assert Orientation.from_dimensions(width, height) is None

    def test_str(self):
        assert str(Orientation.SQUARE) == "square"


class TestRatingValue:
    def test_from_string(self):
        assert RatingValue.from_string(" Favorite ") is RatingValue.FAVORITE
        assert RatingValue.from_string(RatingValue.MAYBE) is RatingValue.MAYBE

    def test_invalid(self):
        with pytest.raises(ValidationError, match='Invalid rating "love"'):
            RatingValue.from_string("love")

    def test_is_positive(self):
        assert [r.value for r in RatingValue if r.is_positive] == ["selected", "favorite"]


class TestValidateScore:
    @pytest.mark.parametrize(("raw", "expected"), [(None, None), (1, 1), (10, 10), ("7", 7), (5.0, 5)])
    def test_accepts(self, raw, expected):
        assert validate_score(raw) == expected

    @pytest.mark.parametrize("raw", [0, 11, 7.5, True, "seven", [3]])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            validate_score(raw)
