"""Response models of the suggestion service."""

from dataclasses import dataclass, field
from typing import Any

from frictionary.store.models import Suggestion


@dataclass(frozen=True)
class SuggestionPage:
    """Suggestions served for one request.

    Attributes:
        suggestions: Suggestions to show, in display order.
        newly_seen: Identity keys the caller must add to the session's
            seen set.
    """

    suggestions: list[Suggestion]
    newly_seen: list[str]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the response body the web layer sends."""
        return {"data": [s.to_public_dict() for s in self.suggestions]}


@dataclass(frozen=True)
class SiteInfo:
    """A configured site as listed to clients."""

    id: str
    info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {"id": self.id, "info": dict(self.info)}
