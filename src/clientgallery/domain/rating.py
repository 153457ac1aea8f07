"""Rating value objects."""

from __future__ import annotations

from enum import Enum
from typing import Any

from clientgallery.core.errors import ValidationError
from clientgallery.schema.ratings import MAX_SCORE, MIN_SCORE


class RatingValue(str, Enum):
    """A client's verdict on one image."""

    SELECTED = "selected"
    REJECTED = "rejected"
    FAVORITE = "favorite"
    MAYBE = "maybe"

    @classmethod
    def from_string(cls, value: str | RatingValue) -> RatingValue:
        if isinstance(value, RatingValue):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(
                f'Invalid rating "{value}". Valid ratings are: {", ".join(r.value for r in cls)}',
                field="rating",
                value=value,
            ) from None

    @property
    def is_positive(self) -> bool:
        return self in (RatingValue.SELECTED, RatingValue.FAVORITE)

    def __str__(self) -> str:
        return self.value


def validate_score(score: Any) -> int | None:
    """Return ``score`` as an int in ``MIN_SCORE..MAX_SCORE``; ``None`` passes through."""
    if score is None:
        return None
    if isinstance(score, bool):
        raise ValidationError("Score must be an integer", field="score", value=score)
    try:
        value = int(score)
    except (TypeError, ValueError):
        raise ValidationError("Score must be an integer", field="score", value=score) from None
    if value != score and not isinstance(score, str):
        raise ValidationError("Score must be an integer", field="score", value=score)
    if not MIN_SCORE <= value <= MAX_SCORE:
        raise ValidationError(
            f"Score must be between {MIN_SCORE} and {MAX_SCORE}",
            field="score",
            value=score,
            constraint=f"{MIN_SCORE}..{MAX_SCORE}",
        )
    return value


__all__ = ["RatingValue", "validate_score"]
