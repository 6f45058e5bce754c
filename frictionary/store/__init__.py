"""SQLite suggestion store.

This module provides persistent storage for suggestions with:
- Idempotent upserts that preserve vote tallies and sampling keys
- Atomic vote increments
- Top-by-score queries behind a single-flight TTL cache
- Randomized sampling with bounded retries
- Pruning of outdated, unpopular suggestions
"""

from frictionary.store.cache import TopScoreCache
from frictionary.store.errors import (
    MigrationError,
    StoreConnectionError,
    StoreError,
    SuggestionNotFoundError,
)
from frictionary.store.metrics import StoreMetrics
from frictionary.store.models import (
    Suggestion,
    UpsertSummary,
    VoteTally,
    suggestion_id,
)
from frictionary.store.store import SuggestionStore


__all__ = [
    # Errors
    "MigrationError",
    "StoreConnectionError",
    "StoreError",
    "SuggestionNotFoundError",
    # Metrics
    "StoreMetrics",
    # Models
    "Suggestion",
    "UpsertSummary",
    "VoteTally",
    "suggestion_id",
    # Store
    "SuggestionStore",
    "TopScoreCache",
]
