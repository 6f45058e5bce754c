"""Fetch layer: async HTTP transport and MediaWiki suggestion fetching.

This module provides:
- An async HTTP client with retries, backoff and response size limits
- A per-site fetcher listing random articles with a continuation cursor
- Bounded, quota-driven fetch cycles returning typed batches
- Metrics collection for observability
"""

from frictionary.fetch.client import AsyncHttpFetcher
from frictionary.fetch.config import FetchConfig
from frictionary.fetch.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FETCH_ATTEMPTS,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_NAMESPACE,
    MAX_RETRY_AFTER_SECONDS,
)
from frictionary.fetch.metrics import FetchMetrics
from frictionary.fetch.models import (
    FetchBatch,
    FetchError,
    FetchErrorClass,
    FetchResult,
    RemoteSourceError,
    ResponseSizeExceededError,
    RetryPolicy,
)
from frictionary.fetch.wiki import SuggestionFetcher


__all__ = [
    # Clients
    "AsyncHttpFetcher",
    "SuggestionFetcher",
    # Config
    "FetchConfig",
    # Models
    "FetchBatch",
    "FetchError",
    "FetchErrorClass",
    "FetchResult",
    "RemoteSourceError",
    "ResponseSizeExceededError",
    "RetryPolicy",
    # Constants
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_FETCH_ATTEMPTS",
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "DEFAULT_NAMESPACE",
    "MAX_RETRY_AFTER_SECONDS",
    # Metrics
    "FetchMetrics",
]
