"""MediaWiki random-article fetcher producing suggestions."""

import asyncio
import json
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import structlog

from frictionary.excerpt.base import ExcerptExtractor
from frictionary.excerpt.wikipedia import WikipediaExcerptExtractor
from frictionary.fetch.client import AsyncHttpFetcher
from frictionary.fetch.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FETCH_ATTEMPTS,
    DEFAULT_NAMESPACE,
    MEDIAWIKI_API_PATH,
    MEDIAWIKI_INDEX_PATH,
)
from frictionary.fetch.metrics import FetchMetrics
from frictionary.fetch.models import (
    FetchBatch,
    FetchError,
    FetchErrorClass,
    RemoteSourceError,
)
from frictionary.store.models import Suggestion


logger = structlog.get_logger()

# Single-word titles only: multi-word titles are mostly people and other
# noise that rarely yields a good excerpt.
SINGLE_WORD_TITLE = re.compile(r"^\S+$")


class SuggestionFetcher:
    """Fetches random articles of one MediaWiki site as suggestions.

    Keeps the continuation cursor of the site's ``list=random`` listing in
    memory so consecutive calls page through different candidates.
    """

    def __init__(
        self,
        site: str,
        base_url: str,
        http: AsyncHttpFetcher,
        *,
        info: dict[str, Any] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        namespace: int = DEFAULT_NAMESPACE,
        max_attempts: int = DEFAULT_MAX_FETCH_ATTEMPTS,
        extractor: ExcerptExtractor | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            site: Site identifier.
            base_url: Site root, e.g. ``https://en.wikipedia.org``.
            http: Shared HTTP client.
            info: Display metadata about the site.
            batch_size: Candidates requested per listing call (rnlimit).
            namespace: Namespace to list (rnnamespace).
            max_attempts: Default cap on listing calls per fetch_some.
            extractor: Excerpt strategy; defaults to the Wikipedia heuristic.

        Raises:
            ValueError: If site or base_url is empty.
        """
        if not site or not base_url:
            msg = "SuggestionFetcher needs a site and a base_url"
            raise ValueError(msg)

        self._site = site
        self._base_url = base_url.rstrip("/")
        self._http = http
        self._info = dict(info or {})
        self._batch_size = batch_size
        self._namespace = namespace
        self._max_attempts = max_attempts
        self._extractor = extractor or WikipediaExcerptExtractor()
        self._continuation: dict[str, str] | None = None
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch", site=site)

    @property
    def site(self) -> str:
        """Get the site identifier."""
        return self._site

    @property
    def site_info(self) -> dict[str, Any]:
        """Get the site's display metadata."""
        return dict(self._info)

    @property
    def base_url(self) -> str:
        """Get the site root without trailing slash."""
        return self._base_url

    @property
    def continuation(self) -> dict[str, str] | None:
        """Get the current listing continuation parameters."""
        return dict(self._continuation) if self._continuation else None

    def article_url(self, title: str) -> str:
        """Build the canonical reference URL of an article."""
        return f"{self._base_url}{MEDIAWIKI_INDEX_PATH}?title={quote(title, safe='')}"

    async def fetch_some(
        self,
        target_count: int | None = None,
        max_attempts: int | None = None,
    ) -> FetchBatch:
        """Fetch random articles until enough excerpts are accepted.

        Each attempt lists one batch of random candidates and fetches the
        plausible ones. Stops when ``target_count`` suggestions were accepted
        or after ``max_attempts`` listing calls, whichever comes first.

        Args:
            target_count: Suggestions wanted (default: batch size).
            max_attempts: Listing call cap (default: configured cap).

        Returns:
            The accepted suggestions with the requested count and attempts.

        Raises:
            RemoteSourceError: If a listing call fails.
        """
        target = target_count if target_count is not None else self._batch_size
        cap = max_attempts if max_attempts is not None else self._max_attempts

        suggestions: list[Suggestion] = []
        attempts = 0

        while len(suggestions) < target and attempts < cap:
            attempts += 1
            suggestions.extend(await self._fetch_batch())

        batch = FetchBatch(suggestions=suggestions, requested=target, attempts=attempts)

        if batch.complete:
            self._log.info(
                "fetch_complete",
                requested=target,
                accepted=len(suggestions),
                attempts=attempts,
            )
        else:
            self._log.warning(
                "fetch_quota_unmet",
                requested=target,
                accepted=len(suggestions),
                attempts=attempts,
                shortfall=batch.shortfall,
            )

        return batch

    async def fetch_article(self, title: str) -> Suggestion | None:
        """Fetch one article and turn it into a suggestion.

        Args:
            title: Article title.

        Returns:
            The suggestion, or None if the article could not be fetched or
            its excerpt was rejected.
        """
        result = await self._http.fetch(
            f"{self._base_url}{MEDIAWIKI_INDEX_PATH}",
            params={"title": title, "action": "render"},
        )

        if not result.is_success:
            self._metrics.record_article_failed()
            self._log.warning(
                "article_fetch_failed",
                title=title,
                status_code=result.status_code,
                error_class=result.error.error_class.value if result.error else None,
            )
            return None

        excerpt = self._extractor.extract(result.text)
        if not excerpt:
            self._metrics.record_article_rejected()
            self._log.debug("article_rejected", title=title)
            return None

        self._metrics.record_article_accepted()
        self._log.debug("article_accepted", title=title)

        return Suggestion(
            site=self._site,
            title=title,
            excerpt=excerpt,
            ref=self.article_url(title),
            fetch_time=datetime.now(UTC),
        )

    async def _fetch_batch(self) -> list[Suggestion]:
        """List one batch of random titles and fetch the plausible ones.

        Returns:
            Accepted suggestions of this batch.

        Raises:
            RemoteSourceError: If the listing call fails.
        """
        titles = await self._list_random_titles()

        candidates = [t for t in titles if SINGLE_WORD_TITLE.match(t)]
        skipped = len(titles) - len(candidates)
        if skipped:
            self._metrics.record_titles_skipped(skipped)

        results = await asyncio.gather(*(self.fetch_article(t) for t in candidates))
        accepted = [s for s in results if s is not None]

        self._log.debug(
            "batch_complete",
            listed=len(titles),
            skipped=skipped,
            accepted=len(accepted),
        )
        return accepted

    async def _list_random_titles(self) -> list[str]:
        """Call the random listing endpoint and advance the cursor.

        Returns:
            Candidate titles.

        Raises:
            RemoteSourceError: On transport errors or malformed responses.
        """
        params: dict[str, str | int] = {
            "action": "query",
            "list": "random",
            "rnlimit": self._batch_size,
            "rnnamespace": self._namespace,
            "format": "json",
        }
        if self._continuation:
            params.update(self._continuation)

        result = await self._http.fetch(
            f"{self._base_url}{MEDIAWIKI_API_PATH}", params=params
        )

        if result.error is not None:
            self._log.error(
                "listing_failed",
                status_code=result.status_code,
                error_class=result.error.error_class.value,
            )
            raise RemoteSourceError(self._site, result.error)

        try:
            body = json.loads(result.body_bytes)
            entries = body["query"]["random"]
            titles = [str(entry["title"]) for entry in entries]
        except (ValueError, KeyError, TypeError) as e:
            error = FetchError(
                error_class=FetchErrorClass.MALFORMED_RESPONSE,
                message=f"Unexpected listing response: {e!r}",
                status_code=result.status_code,
            )
            self._metrics.record_failure(error.error_class)
            self._log.error("listing_malformed", error=error.message)
            raise RemoteSourceError(self._site, error) from e

        continuation = body.get("continue")
        if isinstance(continuation, dict):
            self._continuation = {str(k): str(v) for k, v in continuation.items()}

        self._log.debug("listing_complete", titles=len(titles))
        return titles
