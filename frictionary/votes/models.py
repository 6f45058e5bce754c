"""Data models for vote gating."""

from dataclasses import dataclass
from enum import Enum

from frictionary.store.models import Suggestion


class VoteRejectReason(str, Enum):
    """Why a vote was refused.

    - INVALID_VOTE: The sign is not +1 or -1
    - ALREADY_VOTED: The address already voted this way on the suggestion
    - RATE_LIMITED: The address cast too many votes in the window
    - NOT_FOUND: The suggestion does not exist
    """

    INVALID_VOTE = "INVALID_VOTE"
    ALREADY_VOTED = "ALREADY_VOTED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"

    @property
    def message(self) -> str:
        """User-facing error message."""
        return _MESSAGES[self]

    @property
    def status_code(self) -> int:
        """HTTP status the web layer answers with."""
        return _STATUS_CODES[self]


_MESSAGES = {
    VoteRejectReason.INVALID_VOTE: "Invalid vote",
    VoteRejectReason.ALREADY_VOTED: "Already voted",
    VoteRejectReason.RATE_LIMITED: "Too many votes",
    VoteRejectReason.NOT_FOUND: "No such suggestion",
}

_STATUS_CODES = {
    VoteRejectReason.INVALID_VOTE: 403,
    VoteRejectReason.ALREADY_VOTED: 403,
    VoteRejectReason.RATE_LIMITED: 429,
    VoteRejectReason.NOT_FOUND: 404,
}


@dataclass(frozen=True)
class VoteRecord:
    """A vote cast by one remote address.

    Attributes:
        suggestion_id: Identity key voted on.
        sign: +1 or -1.
        timestamp: Epoch seconds when the vote was admitted.
    """

    suggestion_id: str
    sign: int
    timestamp: float


@dataclass(frozen=True)
class VoteDecision:
    """Verdict of the vote gate."""

    reason: VoteRejectReason | None = None

    @property
    def allowed(self) -> bool:
        """Whether the vote may be forwarded to the store."""
        return self.reason is None


ALLOW = VoteDecision()


@dataclass(frozen=True)
class VoteOutcome:
    """Result of a vote request as seen by the web layer.

    Attributes:
        reason: Rejection reason, None when the vote was applied.
        suggestion: The suggestion with its updated tally when applied.
    """

    reason: VoteRejectReason | None = None
    suggestion: Suggestion | None = None

    @property
    def accepted(self) -> bool:
        """Whether the vote was applied."""
        return self.reason is None

    def to_dict(self) -> dict[str, str | int]:
        """Serialize to the response body the web layer sends."""
        if self.reason is None:
            return {"status": "OK"}
        return {"error": self.reason.message, "reason": self.reason.value}
