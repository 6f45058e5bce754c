"""Vote abuse gating."""

from frictionary.votes.gate import (
    DEFAULT_MAX_ADDRESSES,
    DEFAULT_MAX_VOTES_PER_WINDOW,
    DEFAULT_WINDOW_SECONDS,
    VoteGate,
)
from frictionary.votes.models import (
    VoteDecision,
    VoteOutcome,
    VoteRecord,
    VoteRejectReason,
)


__all__ = [
    "DEFAULT_MAX_ADDRESSES",
    "DEFAULT_MAX_VOTES_PER_WINDOW",
    "DEFAULT_WINDOW_SECONDS",
    "VoteDecision",
    "VoteGate",
    "VoteOutcome",
    "VoteRecord",
    "VoteRejectReason",
]
