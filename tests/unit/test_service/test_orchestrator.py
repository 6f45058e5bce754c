"""Unit tests for the suggestion service orchestration."""

import random
from collections.abc import AsyncIterator
from datetime import timedelta
from typing import Any

import pytest

from frictionary.fetch import FetchMetrics, RemoteSourceError
from frictionary.service import SuggestionService, UnknownSiteError, create_service, dedupe
from frictionary.store import StoreMetrics
from frictionary.votes import VoteRejectReason
from tests.helpers.factories import make_config, make_suggestion
from tests.helpers.time import FIXED_NOW
from tests.helpers.wiki import FakeWiki


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset metrics before each test."""
    FetchMetrics.reset()
    StoreMetrics.reset()


@pytest.fixture
def wiki() -> FakeWiki:
    """Create a fake wiki serving endless acceptable articles."""
    return FakeWiki()


@pytest.fixture
def config_overrides() -> dict[str, Any]:
    """Per-test configuration overrides."""
    return {}


@pytest.fixture
async def service(
    wiki: FakeWiki, config_overrides: dict[str, Any]
) -> AsyncIterator[SuggestionService]:
    """Create a service over an in-memory store and the fake wiki."""
    service = create_service(
        make_config(**config_overrides),
        ":memory:",
        transport=wiki.transport,
        rng=random.Random(7),
    )
    yield service
    await service.aclose()
    service.store.close()


def _populate(service: SuggestionService, count: int, **kwargs: Any) -> list[str]:
    suggestions = [make_suggestion(f"Stored{i}", **kwargs) for i in range(count)]
    service.store.upsert_many(suggestions)
    return [s.id for s in suggestions]


class TestDedupe:
    """Tests for the dedupe helper."""

    def test_keeps_first_occurrence(self) -> None:
        """Test order is preserved and repeats are dropped."""
        a, b = make_suggestion("A"), make_suggestion("B")
        voted_a = make_suggestion("A", positive=3)

        result = dedupe([a, b, voted_a])

        assert result == [a, b]


class TestSites:
    """Tests for site lookup."""

    async def test_list_sites(self, service: SuggestionService) -> None:
        """Test configured sites are listed with their metadata."""
        sites = service.list_sites()

        assert [s.to_dict() for s in sites] == [
            {"id": "en", "info": {"name": "Test Wiki"}}
        ]

    async def test_unknown_site(self, service: SuggestionService) -> None:
        """Test requests for unconfigured sites are refused."""
        with pytest.raises(UnknownSiteError) as exc_info:
            await service.get_suggestions("xx")

        assert exc_info.value.known_sites == ["en"]


class TestGetSuggestions:
    """Tests for building suggestion pages."""

    async def test_empty_store_runs_one_fetch_cycle(
        self, service: SuggestionService, wiki: FakeWiki
    ) -> None:
        """Test an empty site is filled by a single live fetch."""
        page = await service.get_suggestions("en", seen=set())

        assert len(wiki.listing_calls) == 1
        assert 0 < len(page.suggestions) <= 8
        assert page.newly_seen == [s.id for s in page.suggestions]
        assert service.store.count("en") == 10

    async def test_full_store_needs_no_fetch(
        self, service: SuggestionService, wiki: FakeWiki
    ) -> None:
        """Test a well stocked store serves without live fetching."""
        _populate(service, 20)

        page = await service.get_suggestions("en")

        assert wiki.listing_calls == []
        assert len(page.suggestions) == 8

    async def test_never_returns_seen(
        self, service: SuggestionService, wiki: FakeWiki
    ) -> None:
        """Test suggestions already seen are never served again."""
        ids = _populate(service, 12)
        seen = set(ids[:10])

        page = await service.get_suggestions("en", seen=seen)

        assert not seen & set(page.newly_seen)
        assert len(wiki.listing_calls) == 1
        assert len(page.suggestions) <= 8

    async def test_no_duplicates(self, service: SuggestionService) -> None:
        """Test suggestions in both top and random lists appear once."""
        _populate(service, 6, positive=1)

        page = await service.get_suggestions("en")

        assert len(page.newly_seen) == len(set(page.newly_seen)) == 6

    @pytest.mark.parametrize("config_overrides", [{"random_multiplier": 1}])
    async def test_top_voted_included(self, service: SuggestionService) -> None:
        """Test the best voted suggestion is mixed into the page."""
        _populate(service, 30)
        service.store.upsert_many([make_suggestion("Star", positive=9)])

        page = await service.get_suggestions("en")

        assert "en:Star" in page.newly_seen

    async def test_live_fetch_failure_propagates(self) -> None:
        """Test a needed live fetch that fails surfaces the remote error."""
        wiki = FakeWiki(listing_status=503)
        service = create_service(make_config(), ":memory:", transport=wiki.transport)

        with pytest.raises(RemoteSourceError):
            await service.get_suggestions("en")

        await service.aclose()
        service.store.close()

    async def test_to_dict(self, service: SuggestionService) -> None:
        """Test the page serializes to the client response shape."""
        _populate(service, 4)

        body = (await service.get_suggestions("en")).to_dict()

        assert {s["id"] for s in body["data"]} == {f"en:Stored{i}" for i in range(4)}


class TestBackgroundRefresh:
    """Tests for the detached refill fetch."""

    @pytest.mark.parametrize("config_overrides", [{"background_refresh": True}])
    async def test_schedules_one_refresh(
        self, service: SuggestionService, wiki: FakeWiki
    ) -> None:
        """Test every request schedules exactly one refill cycle."""
        _populate(service, 20)

        await service.get_suggestions("en")
        await service.wait_background()

        assert len(wiki.listing_calls) == 1
        assert service.store.count("en") == 30

    @pytest.mark.parametrize("config_overrides", [{"background_refresh": True}])
    async def test_empty_store_fetches_twice(
        self, service: SuggestionService, wiki: FakeWiki
    ) -> None:
        """Test a short store gets the live fetch plus the refill."""
        await service.get_suggestions("en")
        await service.wait_background()

        assert len(wiki.listing_calls) == 2

    async def test_refresh_failure_is_contained(self) -> None:
        """Test a failing refill does not fail the request."""
        wiki = FakeWiki(listing_status=503)
        service = create_service(
            make_config(background_refresh=True), ":memory:", transport=wiki.transport
        )
        service.store.upsert_many([make_suggestion(f"S{i}") for i in range(10)])

        page = await service.get_suggestions("en")
        await service.wait_background()

        assert len(page.suggestions) == 8
        assert len(wiki.listing_calls) == 1
        assert service.store.count("en") == 10

        await service.aclose()
        service.store.close()

    async def test_failed_request_still_refills(self) -> None:
        """Test a request whose live fetch fails still schedules the refill."""
        wiki = FakeWiki(failing_listings=1)
        service = create_service(
            make_config(background_refresh=True), ":memory:", transport=wiki.transport
        )

        with pytest.raises(RemoteSourceError):
            await service.get_suggestions("en")
        await service.wait_background()

        assert len(wiki.listing_calls) == 2
        assert service.store.count("en") > 0

        await service.aclose()
        service.store.close()


class TestRecordVote:
    """Tests for vote handling."""

    async def test_accepted_vote_updates_tally(self, service: SuggestionService) -> None:
        """Test an allowed vote reaches the store."""
        _populate(service, 1)

        outcome = await service.record_vote("10.0.0.1", "en:Stored0", 1)

        assert outcome.accepted
        assert outcome.suggestion is not None
        assert outcome.suggestion.votes.total == 1
        stored = service.store.get("en:Stored0")
        assert stored is not None
        assert stored.votes.positive == 1

    async def test_duplicate_vote_not_applied(self, service: SuggestionService) -> None:
        """Test a refused vote leaves the tally alone."""
        _populate(service, 1)
        await service.record_vote("10.0.0.1", "en:Stored0", 1)

        outcome = await service.record_vote("10.0.0.1", "en:Stored0", 1)

        assert outcome.reason == VoteRejectReason.ALREADY_VOTED
        stored = service.store.get("en:Stored0")
        assert stored is not None
        assert stored.votes.total == 1

    async def test_invalid_sign(self, service: SuggestionService) -> None:
        """Test signs other than +1 and -1 are refused."""
        _populate(service, 1)

        outcome = await service.record_vote("10.0.0.1", "en:Stored0", 3)

        assert outcome.reason == VoteRejectReason.INVALID_VOTE

    async def test_unknown_suggestion(self, service: SuggestionService) -> None:
        """Test votes for missing suggestions report NOT_FOUND."""
        outcome = await service.record_vote("10.0.0.1", "en:Missing", 1)

        assert outcome.reason == VoteRejectReason.NOT_FOUND
        assert outcome.reason.status_code == 404
        # The gate admitted the vote before the store lookup
        assert len(service.vote_gate.history("10.0.0.1")) == 1


class TestPruneOutdated:
    """Tests for pruning through the service."""

    async def test_prunes_relative_to_now(self, service: SuggestionService) -> None:
        """Test only old unpopular suggestions are removed."""
        service.store.upsert_many(
            [
                make_suggestion("OldZero"),
                make_suggestion("OldLiked", positive=2),
                make_suggestion("Fresh", fetch_time=FIXED_NOW + timedelta(days=35)),
            ]
        )

        pruned = await service.prune_outdated(now=FIXED_NOW + timedelta(days=40))

        assert pruned == 1
        assert service.store.get("en:OldZero") is None
        assert service.store.get("en:OldLiked") is not None
        assert service.store.get("en:Fresh") is not None
