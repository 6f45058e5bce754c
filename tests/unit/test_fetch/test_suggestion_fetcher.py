"""Unit tests for the MediaWiki suggestion fetcher."""

from collections.abc import AsyncIterator

import httpx
import pytest

from frictionary.fetch import (
    AsyncHttpFetcher,
    FetchConfig,
    FetchErrorClass,
    FetchMetrics,
    RemoteSourceError,
    RetryPolicy,
    SuggestionFetcher,
)
from tests.helpers.wiki import GEO_ARTICLE, NO_BOLD_ARTICLE, FakeWiki


BASE_URL = "https://wiki.test"


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset fetch metrics before each test."""
    FetchMetrics.reset()


@pytest.fixture
def wiki() -> FakeWiki:
    """Create a fake wiki serving endless acceptable articles."""
    return FakeWiki()


@pytest.fixture
async def http(wiki: FakeWiki) -> AsyncIterator[AsyncHttpFetcher]:
    """Create an HTTP client routed to the fake wiki."""
    fetcher = AsyncHttpFetcher(
        FetchConfig(retry_policy=RetryPolicy(max_retries=0)),
        "Frictionary/test",
        transport=wiki.transport,
    )
    yield fetcher
    await fetcher.aclose()


def _fetcher(http: AsyncHttpFetcher, **kwargs: int) -> SuggestionFetcher:
    return SuggestionFetcher("en", f"{BASE_URL}/", http, info={"lang": "en"}, **kwargs)


class TestConstruction:
    """Tests for fetcher construction."""

    async def test_strips_trailing_slash(self, http: AsyncHttpFetcher) -> None:
        """Test the base URL is normalized."""
        fetcher = _fetcher(http)

        assert fetcher.base_url == BASE_URL
        assert fetcher.site == "en"
        assert fetcher.site_info == {"lang": "en"}

    async def test_requires_site_and_base(self, http: AsyncHttpFetcher) -> None:
        """Test empty site or base is rejected."""
        with pytest.raises(ValueError):
            SuggestionFetcher("", BASE_URL, http)
        with pytest.raises(ValueError):
            SuggestionFetcher("en", "", http)

    async def test_article_url_escapes_title(self, http: AsyncHttpFetcher) -> None:
        """Test reference URLs are percent-encoded."""
        fetcher = _fetcher(http)

        assert (
            fetcher.article_url("AC/DC")
            == f"{BASE_URL}/w/index.php?title=AC%2FDC"
        )


class TestFetchSome:
    """Tests for quota-driven fetching."""

    async def test_meets_quota_in_one_batch(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test a full batch of good articles needs a single listing call."""
        fetcher = _fetcher(http, batch_size=5)

        batch = await fetcher.fetch_some()

        assert batch.complete
        assert len(batch.suggestions) == 5
        assert batch.attempts == 1
        assert len(wiki.listing_calls) == 1

    async def test_listing_parameters(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test the random listing is asked for the configured batch."""
        fetcher = _fetcher(http, batch_size=7, namespace=4)

        await fetcher.fetch_some()

        params = wiki.listing_calls[0]
        assert params["action"] == "query"
        assert params["list"] == "random"
        assert params["rnlimit"] == "7"
        assert params["rnnamespace"] == "4"
        assert params["format"] == "json"

    async def test_builds_suggestions(self, wiki: FakeWiki, http: AsyncHttpFetcher) -> None:
        """Test accepted articles become suggestions with key and reference."""
        wiki.batches = [["Quokka"]]
        fetcher = _fetcher(http, batch_size=1)

        batch = await fetcher.fetch_some()

        suggestion = batch.suggestions[0]
        assert suggestion.id == "en:Quokka"
        assert suggestion.site == "en"
        assert suggestion.excerpt == "<b>Quokka</b> is a thing."
        assert suggestion.ref == f"{BASE_URL}/w/index.php?title=Quokka"
        assert suggestion.votes.total == 0
        assert suggestion.fetch_time.tzinfo is not None
        assert wiki.article_calls == ["Quokka"]

    async def test_skips_multi_word_titles(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test titles containing whitespace are never fetched."""
        wiki.batches = [["Alpha", "John Smith", "Beta", "Tab\tTitle"]]
        fetcher = _fetcher(http, batch_size=4)

        batch = await fetcher.fetch_some(target_count=2)

        assert sorted(s.title for s in batch.suggestions) == ["Alpha", "Beta"]
        assert sorted(wiki.article_calls) == ["Alpha", "Beta"]
        assert FetchMetrics.get_instance().titles_skipped_total == 2

    async def test_sends_continuation_cursor(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test consecutive listing calls page with the returned cursor."""
        fetcher = _fetcher(http, batch_size=2)

        await fetcher.fetch_some()
        await fetcher.fetch_some()

        assert "rncontinue" not in wiki.listing_calls[0]
        assert wiki.listing_calls[1]["rncontinue"] == "0.1|0.1|0|0"
        assert wiki.listing_calls[1]["continue"] == "-||"
        assert fetcher.continuation == {"rncontinue": "0.2|0.2|0|0", "continue": "-||"}

    async def test_keeps_fetching_until_quota(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test rejected candidates trigger further listing calls."""
        wiki.batches = [["Geo1", "Good1"], ["Geo2", "Good2"]]
        wiki.articles = {"Geo1": GEO_ARTICLE, "Geo2": NO_BOLD_ARTICLE}
        fetcher = _fetcher(http, batch_size=2)

        batch = await fetcher.fetch_some(target_count=2)

        assert batch.complete
        assert batch.attempts == 2
        assert sorted(s.title for s in batch.suggestions) == ["Good1", "Good2"]

    async def test_bounded_attempts_with_persistent_rejections(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test a source that only yields rejects stops at the attempt cap."""
        wiki.default_article = NO_BOLD_ARTICLE
        fetcher = _fetcher(http, batch_size=3, max_attempts=4)

        batch = await fetcher.fetch_some()

        assert batch.suggestions == []
        assert batch.attempts == 4
        assert batch.shortfall == 3
        assert len(wiki.listing_calls) == 4
        assert FetchMetrics.get_instance().articles_rejected_total == 12

    async def test_explicit_attempt_cap(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test the per-call attempt cap overrides the configured one."""
        wiki.default_article = GEO_ARTICLE
        fetcher = _fetcher(http, batch_size=1, max_attempts=10)

        batch = await fetcher.fetch_some(max_attempts=2)

        assert batch.attempts == 2

    async def test_article_failure_yields_nothing(
        self, wiki: FakeWiki, http: AsyncHttpFetcher
    ) -> None:
        """Test an article that fails to load is dropped, not raised."""
        wiki.batches = [["Broken", "Fine"]]
        wiki.articles = {"Broken": 500}
        fetcher = _fetcher(http, batch_size=2, max_attempts=1)

        batch = await fetcher.fetch_some()

        assert [s.title for s in batch.suggestions] == ["Fine"]
        assert FetchMetrics.get_instance().articles_failed_total == 1

    async def test_listing_failure_raises(self) -> None:
        """Test a failed listing call surfaces as RemoteSourceError."""
        wiki = FakeWiki(listing_status=503)
        broken = AsyncHttpFetcher(
            FetchConfig(retry_policy=RetryPolicy(max_retries=0)),
            "Frictionary/test",
            transport=wiki.transport,
        )
        fetcher = SuggestionFetcher("en", BASE_URL, broken)

        with pytest.raises(RemoteSourceError) as exc_info:
            await fetcher.fetch_some()
        await broken.aclose()

        assert exc_info.value.site == "en"
        assert exc_info.value.error.error_class == FetchErrorClass.HTTP_5XX


class TestMalformedListing:
    """Tests for listing bodies that do not match the API shape."""

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"{}", b'{"query": {"random": [{"id": 1}]}}'],
    )
    async def test_malformed_listing_raises(self, body: bytes) -> None:
        """Test unexpected listing bodies are classified as malformed."""
        http = AsyncHttpFetcher(
            FetchConfig(retry_policy=RetryPolicy(max_retries=0)),
            "Frictionary/test",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=body)),
        )
        fetcher = SuggestionFetcher("en", BASE_URL, http)

        with pytest.raises(RemoteSourceError) as exc_info:
            await fetcher.fetch_some()
        await http.aclose()

        assert exc_info.value.error.error_class == FetchErrorClass.MALFORMED_RESPONSE
