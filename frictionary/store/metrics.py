"""Metrics collection for the suggestion store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for suggestion store operations.

    Attributes:
        db_inserts_total: Suggestions inserted for the first time.
        db_updates_total: Suggestions overwritten by a re-fetch.
        votes_total: Votes applied to stored suggestions.
        votes_not_found_total: Votes targeting unknown suggestions.
        top_cache_hits_total: Top-by-score requests served from cache.
        top_cache_misses_total: Top-by-score recomputations.
        pruned_total: Suggestions removed as outdated.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of transactions.
    """

    db_inserts_total: int = 0
    db_updates_total: int = 0
    votes_total: int = 0
    votes_not_found_total: int = 0
    top_cache_hits_total: int = 0
    top_cache_misses_total: int = 0
    pruned_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_insert(self) -> None:
        """Record a new suggestion."""
        self.db_inserts_total += 1

    def record_update(self) -> None:
        """Record an overwritten suggestion."""
        self.db_updates_total += 1

    def record_vote(self) -> None:
        """Record an applied vote."""
        self.votes_total += 1

    def record_vote_not_found(self) -> None:
        """Record a vote for an unknown suggestion."""
        self.votes_not_found_total += 1

    def record_top_cache(self, hit: bool) -> None:
        """Record a top-by-score cache lookup.

        Args:
            hit: Whether a cached or in-flight result was reused.
        """
        if hit:
            self.top_cache_hits_total += 1
        else:
            self.top_cache_misses_total += 1

    def record_pruned(self, count: int) -> None:
        """Record pruned suggestions."""
        self.pruned_total += count

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "db_inserts_total": self.db_inserts_total,
            "db_updates_total": self.db_updates_total,
            "votes_total": self.votes_total,
            "votes_not_found_total": self.votes_not_found_total,
            "top_cache_hits_total": self.top_cache_hits_total,
            "top_cache_misses_total": self.top_cache_misses_total,
            "pruned_total": self.pruned_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
        }


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += rows
