"""Data models for the suggestion store."""

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def suggestion_id(site: str, title: str) -> str:
    """Build the identity key of a suggestion.

    Args:
        site: Site identifier.
        title: Article title.

    Returns:
        The ``site:title`` identity key.
    """
    return f"{site}:{title}"


class VoteTally(BaseModel):
    """Vote counts for a suggestion.

    ``total`` is always ``positive - negative``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    positive: Annotated[int, Field(ge=0)] = 0
    negative: Annotated[int, Field(ge=0)] = 0
    total: int = 0

    @model_validator(mode="after")
    def validate_total(self) -> "VoteTally":
        """Ensure the total matches the counters."""
        if self.total != self.positive - self.negative:
            msg = (
                f"Vote total {self.total} does not match "
                f"{self.positive} - {self.negative}"
            )
            raise ValueError(msg)
        return self


class Suggestion(BaseModel):
    """A votable article excerpt keyed by site and title."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    site: Annotated[str, Field(min_length=1, description="Site identifier")]
    title: Annotated[str, Field(min_length=1, description="Article title")]
    excerpt: Annotated[str, Field(description="Rendered HTML fragment")]
    ref: Annotated[str, Field(min_length=1, description="Reference URL")]
    fetch_time: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the article was fetched",
    )
    votes: VoteTally = Field(default_factory=VoteTally)
    sampling_key: float | None = Field(
        default=None,
        ge=0.0,
        lt=1.0,
        description="Random value assigned on first insert",
    )

    @property
    def id(self) -> str:
        """Get the identity key."""
        return suggestion_id(self.site, self.title)

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize to the shape served to clients.

        Returns:
            JSON-compatible dictionary without storage internals.
        """
        return {
            "id": self.id,
            "site": self.site,
            "title": self.title,
            "excerpt": self.excerpt,
            "ref": self.ref,
            "fetch_time": self.fetch_time.isoformat(),
            "votes": self.votes.model_dump(),
        }


class UpsertSummary(BaseModel):
    """Result of a batch upsert."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    inserted: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)

    @property
    def affected(self) -> int:
        """Total rows written."""
        return self.inserted + self.updated
