"""Wiring of a suggestion service from configuration."""

import random
from pathlib import Path

import httpx
import structlog

from frictionary.config.constants import COMPONENT_SERVICE
from frictionary.config.schemas import FrictionaryConfig
from frictionary.fetch.client import AsyncHttpFetcher
from frictionary.fetch.wiki import SuggestionFetcher
from frictionary.service.orchestrator import SuggestionService
from frictionary.store.cache import TopScoreCache
from frictionary.store.store import SuggestionStore
from frictionary.votes.gate import VoteGate


logger = structlog.get_logger()


def create_service(
    config: FrictionaryConfig,
    state_path: Path | str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
) -> SuggestionService:
    """Build a ready-to-use service for a configuration.

    Connects the store, so a database that cannot be opened or migrated
    fails here rather than on the first request.

    Args:
        config: Validated configuration.
        state_path: SQLite database path.
        transport: Optional httpx transport (tests use a mock transport).
        rng: Random source shared by the store and the service.

    Returns:
        The service. Close it with ``aclose`` and its store with ``close``.

    Raises:
        StoreConnectionError: If the database cannot be opened.
        MigrationError: If the schema cannot be brought up to date.
    """
    store = SuggestionStore(state_path, rng=rng)
    store.connect()

    http = AsyncHttpFetcher(config.fetch, config.user_agent, transport=transport)
    fetchers = [
        SuggestionFetcher(
            site.id,
            site.base,
            http,
            info=site.info,
            batch_size=config.batch_size,
            namespace=config.namespace,
            max_attempts=config.max_fetch_attempts,
        )
        for site in config.sites
    ]

    gate = VoteGate(
        window_seconds=config.votes.window_minutes * 60,
        max_votes_per_window=config.votes.max_per_window,
        max_addresses=config.votes.max_addresses,
    )

    logger.bind(component=COMPONENT_SERVICE).info(
        "service_created",
        sites=config.site_ids,
        page_size=config.page_size,
        state_path=str(state_path),
    )

    return SuggestionService(
        fetchers,
        store,
        TopScoreCache(store, ttl_seconds=config.top_cache_seconds),
        gate,
        page_size=config.page_size,
        random_multiplier=config.random_multiplier,
        top_limit=config.top_limit,
        outdated_days=config.outdated_days,
        background_refresh=config.background_refresh,
        http=http,
        rng=rng,
    )
