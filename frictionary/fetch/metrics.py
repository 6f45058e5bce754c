"""Metrics collection for the fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from frictionary.fetch.models import FetchErrorClass


@dataclass
class FetchMetrics:
    """Metrics for HTTP fetch operations.

    Singleton class that tracks request counts, retries, failures and
    the outcome of every article considered for a suggestion.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0
    articles_accepted_total: int = 0
    articles_rejected_total: int = 0
    articles_failed_total: int = 0
    titles_skipped_total: int = 0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(self, status_code: int, bytes_received: int) -> None:
        """Record a completed HTTP request.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of bytes received.
        """
        self.http_requests_total[status_code] = (
            self.http_requests_total.get(status_code, 0) + 1
        )
        self.http_bytes_total += bytes_received
        self.http_request_count += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        self.http_retry_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a fetch failure.

        Args:
            error_class: Classification of the failure.
        """
        key = error_class.value
        self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_duration(self, duration_ms: float) -> None:
        """Record request duration."""
        self.http_duration_ms_total += duration_ms

    def record_article_accepted(self) -> None:
        """Record an article whose excerpt was accepted."""
        self.articles_accepted_total += 1

    def record_article_rejected(self) -> None:
        """Record an article rejected by the excerpt extractor."""
        self.articles_rejected_total += 1

    def record_article_failed(self) -> None:
        """Record an article that could not be fetched."""
        self.articles_failed_total += 1

    def record_titles_skipped(self, count: int) -> None:
        """Record candidate titles dropped before fetching."""
        self.titles_skipped_total += count

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_retry_total": self.http_retry_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_bytes_total": self.http_bytes_total,
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_request_count": self.http_request_count,
            "articles_accepted_total": self.articles_accepted_total,
            "articles_rejected_total": self.articles_rejected_total,
            "articles_failed_total": self.articles_failed_total,
            "titles_skipped_total": self.titles_skipped_total,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average request duration."""
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
