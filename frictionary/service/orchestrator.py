"""Per-request orchestration of suggestion sampling and voting."""

import asyncio
import random
from collections.abc import Collection, Iterable, Sequence
from datetime import UTC, datetime, timedelta

import structlog

from frictionary.config.constants import COMPONENT_SERVICE
from frictionary.fetch.client import AsyncHttpFetcher
from frictionary.fetch.wiki import SuggestionFetcher
from frictionary.service.errors import UnknownSiteError
from frictionary.service.models import SiteInfo, SuggestionPage
from frictionary.store.cache import TopScoreCache
from frictionary.store.errors import SuggestionNotFoundError
from frictionary.store.models import Suggestion
from frictionary.store.store import SuggestionStore
from frictionary.votes.gate import VoteGate
from frictionary.votes.models import VoteOutcome, VoteRejectReason


logger = structlog.get_logger()


def dedupe(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Drop repeated identity keys, keeping the first occurrence."""
    seen: set[str] = set()
    result: list[Suggestion] = []
    for suggestion in suggestions:
        if suggestion.id not in seen:
            seen.add(suggestion.id)
            result.append(suggestion)
    return result


class SuggestionService:
    """Serves suggestion pages and votes on top of the store and fetchers.

    A page mixes the cached best-voted suggestions with a random sample,
    hides what the session has already seen, and falls back to a live fetch
    when the store runs dry. Every page request also schedules one detached
    refill fetch so the store stays ahead of demand.
    """

    def __init__(
        self,
        fetchers: Sequence[SuggestionFetcher],
        store: SuggestionStore,
        top_cache: TopScoreCache,
        vote_gate: VoteGate,
        *,
        page_size: int = 10,
        random_multiplier: int = 4,
        top_limit: int = 2048,
        outdated_days: int = 30,
        background_refresh: bool = True,
        http: AsyncHttpFetcher | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            fetchers: One fetcher per configured site.
            store: Suggestion store.
            top_cache: Cache in front of the store's top-by-score query.
            vote_gate: Vote abuse heuristic.
            page_size: Suggestions a client should get per request.
            random_multiplier: Random sample size as a multiple of page_size.
            top_limit: Cap on the top-by-score list.
            outdated_days: Age after which unpopular suggestions are pruned.
            background_refresh: Whether requests trigger a refill fetch.
            http: HTTP client closed together with the service.
            rng: Random source for shuffling.
        """
        self._fetchers = {f.site: f for f in fetchers}
        self._store = store
        self._top_cache = top_cache
        self._vote_gate = vote_gate
        self._page_size = page_size
        self._random_multiplier = random_multiplier
        self._top_limit = top_limit
        self._outdated_days = outdated_days
        self._background_refresh = background_refresh
        self._http = http
        self._rng = rng or random.Random()  # noqa: S311
        self._background: set[asyncio.Task[None]] = set()
        self._log = logger.bind(component=COMPONENT_SERVICE)

    @property
    def site_ids(self) -> list[str]:
        """Configured site identifiers."""
        return list(self._fetchers)

    @property
    def page_size(self) -> int:
        """Suggestions a client should get per request."""
        return self._page_size

    @property
    def store(self) -> SuggestionStore:
        """The underlying suggestion store."""
        return self._store

    @property
    def vote_gate(self) -> VoteGate:
        """The vote abuse heuristic."""
        return self._vote_gate

    def list_sites(self) -> list[SiteInfo]:
        """List configured sites with their display metadata."""
        return [SiteInfo(id=f.site, info=f.site_info) for f in self._fetchers.values()]

    def fetcher_for(self, site: str) -> SuggestionFetcher:
        """Get the fetcher of a site.

        Raises:
            UnknownSiteError: If the site is not configured.
        """
        fetcher = self._fetchers.get(site)
        if fetcher is None:
            raise UnknownSiteError(site, self.site_ids)
        return fetcher

    async def get_suggestions(
        self,
        site: str,
        seen: Collection[str] = (),
    ) -> SuggestionPage:
        """Build a page of suggestions for one client request.

        Args:
            site: Site identifier.
            seen: Identity keys the session has already been shown.

        Returns:
            Up to twice the page size suggestions, none of them in ``seen``,
            plus their identity keys for the session.

        Raises:
            UnknownSiteError: If the site is not configured.
            RemoteSourceError: If a needed live fetch fails.
            StoreError: If the store fails.
        """
        self.fetcher_for(site)
        seen_keys = set(seen)
        max_len = self._page_size * 2
        log = self._log.bind(site=site, seen=len(seen_keys))

        try:
            top, sample = await asyncio.gather(
                self._top_cache.get(site, self._top_limit),
                asyncio.to_thread(
                    self._store.random_sample,
                    site,
                    self._page_size * self._random_multiplier,
                ),
            )

            top = [s for s in top if s.id not in seen_keys]
            sample = [s for s in sample if s.id not in seen_keys]
            log.debug("initial_results_loaded", top=len(top), random=len(sample))

            self._rng.shuffle(top)
            merged = sample + top
            self._rng.shuffle(merged)
            page = dedupe(merged)[:max_len]

            if len(page) < self._page_size:
                log.info("store_short_fetching_live", available=len(page))
                fresh = await self.fetch_and_store(site)
                page = dedupe(page + [s for s in fresh if s.id not in seen_keys])
                self._rng.shuffle(page)
                page = page[:max_len]
        finally:
            # The refill runs whether or not this request succeeded.
            if self._background_refresh:
                self._schedule_refresh(site)

        log.info("suggestions_served", count=len(page))
        return SuggestionPage(suggestions=page, newly_seen=[s.id for s in page])

    async def fetch_and_store(self, site: str) -> list[Suggestion]:
        """Run one fetch cycle for a site and persist the result.

        Args:
            site: Site identifier.

        Returns:
            The fetched suggestions.

        Raises:
            UnknownSiteError: If the site is not configured.
            RemoteSourceError: If the remote listing fails.
        """
        fetcher = self.fetcher_for(site)
        batch = await fetcher.fetch_some()
        await asyncio.to_thread(self._store.upsert_many, batch.suggestions)
        return list(batch.suggestions)

    async def record_vote(
        self,
        remote_address: str,
        suggestion_id: str,
        sign: int,
    ) -> VoteOutcome:
        """Apply a client's vote if the vote gate lets it through.

        Args:
            remote_address: Client address.
            suggestion_id: Identity key voted on.
            sign: +1 or -1.

        Returns:
            The applied vote, or the rejection reason.
        """
        decision = self._vote_gate.admit(remote_address, suggestion_id, sign)
        if decision.reason is not None:
            return VoteOutcome(reason=decision.reason)

        try:
            updated = await asyncio.to_thread(
                self._store.record_vote, suggestion_id, sign
            )
        except SuggestionNotFoundError:
            self._log.info(
                "vote_rejected",
                remote_address=remote_address,
                suggestion_id=suggestion_id,
                reason=VoteRejectReason.NOT_FOUND.value,
            )
            return VoteOutcome(reason=VoteRejectReason.NOT_FOUND)

        return VoteOutcome(suggestion=updated)

    async def prune_outdated(self, now: datetime | None = None) -> int:
        """Remove suggestions older than the configured age nobody liked.

        Args:
            now: Reference time (default: current time).

        Returns:
            Number of suggestions removed.
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(days=self._outdated_days)
        pruned = await asyncio.to_thread(self._store.prune_outdated, cutoff)
        swept = self._vote_gate.sweep()
        self._log.info("prune_complete", pruned=pruned, vote_histories_swept=swept)
        return pruned

    async def wait_background(self) -> None:
        """Wait until all scheduled refill fetches have finished."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def aclose(self) -> None:
        """Finish background work and release the HTTP client."""
        await self.wait_background()
        if self._http is not None:
            await self._http.aclose()

    def _schedule_refresh(self, site: str) -> None:
        """Start a detached fetch-and-store cycle for a site."""
        task = asyncio.create_task(self._refresh(site))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh(self, site: str) -> None:
        """Fetch and store in the background, logging any failure."""
        try:
            fetched = await self.fetch_and_store(site)
        except Exception:  # noqa: BLE001
            self._log.exception("background_refresh_failed", site=site)
            return
        self._log.debug("background_refresh_complete", site=site, count=len(fetched))
