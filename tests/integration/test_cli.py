"""Integration tests for the command line interface."""

import functools
import json
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from frictionary.cli import main as cli_main
from frictionary.cli.main import cli
from frictionary.service import create_service
from frictionary.store import SuggestionStore
from tests.helpers.factories import make_suggestion
from tests.helpers.wiki import FakeWiki


CONFIG_YAML = """
user_agent_contact: "tests@example.org"
sites:
  - id: en
    base: "https://wiki.test"
    info:
      name: Test Wiki
page_size: 2
batch_size: 3
background_refresh: false
fetch:
  retry_policy:
    max_retries: 0
"""


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Write a valid configuration file."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    """Path of the state database."""
    return tmp_path / "state" / "frictionary.sqlite"


@pytest.fixture
def wiki(monkeypatch: pytest.MonkeyPatch) -> FakeWiki:
    """Route every service the CLI builds to a fake wiki."""
    wiki = FakeWiki()
    monkeypatch.setattr(
        cli_main,
        "create_service",
        functools.partial(create_service, transport=wiki.transport),
    )
    return wiki


def _invoke(
    runner: CliRunner, config_path: Path, state_path: Path, *args: str
) -> Result:
    return runner.invoke(
        cli,
        [
            "--config",
            str(config_path),
            "--state",
            str(state_path),
            "--no-json-logs",
            *args,
        ],
    )


def _populate(state_path: Path, *titles: str) -> None:
    with SuggestionStore(state_path) as store:
        store.upsert_many([make_suggestion(t) for t in titles])


class TestSitesCommand:
    """Tests for the sites command."""

    def test_lists_sites(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test configured sites are printed with their metadata."""
        result = _invoke(runner, config_path, state_path, "sites")

        assert result.exit_code == 0
        assert result.output.strip() == 'en\thttps://wiki.test\t{"name": "Test Wiki"}'

    def test_invalid_config(
        self, runner: CliRunner, tmp_path: Path, state_path: Path
    ) -> None:
        """Test validation errors exit with status 1."""
        bad = tmp_path / "bad.yaml"
        bad.write_text("sites: []\n")

        result = _invoke(runner, bad, state_path, "sites")

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output
        assert "user_agent_contact" in result.output


class TestSuggestCommand:
    """Tests for the suggest command."""

    def test_serves_stored_suggestions(
        self,
        runner: CliRunner,
        config_path: Path,
        state_path: Path,
        wiki: FakeWiki,
    ) -> None:
        """Test a stocked store is served as JSON without fetching."""
        _populate(state_path, "A", "B", "C")

        result = _invoke(runner, config_path, state_path, "suggest", "--site", "en")

        assert result.exit_code == 0
        body = json.loads(result.output)
        assert {s["id"] for s in body["data"]} == {"en:A", "en:B", "en:C"}
        assert sorted(body["newly_seen"]) == ["en:A", "en:B", "en:C"]
        assert wiki.listing_calls == []

    def test_seen_keys_are_excluded(
        self,
        runner: CliRunner,
        config_path: Path,
        state_path: Path,
        wiki: FakeWiki,
    ) -> None:
        """Test --seen hides suggestions and triggers a live fetch."""
        _populate(state_path, "A", "B", "C")

        result = _invoke(
            runner,
            config_path,
            state_path,
            "suggest",
            "--site",
            "en",
            "--seen",
            "en:A",
            "--seen",
            "en:B",
        )

        assert result.exit_code == 0
        ids = {s["id"] for s in json.loads(result.output)["data"]}
        assert not ids & {"en:A", "en:B"}
        assert len(wiki.listing_calls) == 1

    def test_unknown_site(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test an unconfigured site exits with status 1."""
        result = _invoke(runner, config_path, state_path, "suggest", "--site", "xx")

        assert result.exit_code == 1
        assert "No such site: xx" in result.output

    def test_remote_failure(
        self,
        runner: CliRunner,
        config_path: Path,
        state_path: Path,
        wiki: FakeWiki,
    ) -> None:
        """Test a failing live fetch exits with status 2."""
        wiki.listing_status = 503

        result = _invoke(runner, config_path, state_path, "suggest", "--site", "en")

        assert result.exit_code == cli_main.EXIT_REMOTE_FAILURE


class TestFetchCommand:
    """Tests for the fetch command."""

    def test_fetch_stores_suggestions(
        self,
        runner: CliRunner,
        config_path: Path,
        state_path: Path,
        wiki: FakeWiki,
    ) -> None:
        """Test one fetch cycle persists its suggestions."""
        result = _invoke(runner, config_path, state_path, "fetch", "--site", "en")

        assert result.exit_code == 0
        assert "Fetched 3 suggestions for en" in result.output
        with SuggestionStore(state_path) as store:
            assert store.count("en") == 3


class TestVoteCommand:
    """Tests for the vote command."""

    def test_vote_applied(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test a vote updates the stored tally."""
        _populate(state_path, "A")

        result = _invoke(
            runner, config_path, state_path, "vote", "en:A", "--sign=-1"
        )

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert json.loads(lines[0]) == {"status": "OK"}
        assert json.loads(lines[1]) == {"positive": 0, "negative": 1, "total": -1}

    def test_vote_for_missing_suggestion(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test a vote for an unknown key is rejected."""
        result = _invoke(
            runner, config_path, state_path, "vote", "en:Missing", "--sign", "1"
        )

        assert result.exit_code == 1
        assert "Vote rejected (404): No such suggestion" in result.output


class TestMaintenanceCommands:
    """Tests for prune, maintain and stats."""

    def test_prune(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test prune removes suggestions past the age cutoff."""
        _populate(state_path, "A", "B")

        result = _invoke(
            runner, config_path, state_path, "prune", "--now", "2017-08-01"
        )

        assert result.exit_code == 0
        assert "Pruned 2 suggestions" in result.output

    def test_maintain_single_run(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test maintain performs the immediate run and stops."""
        result = _invoke(runner, config_path, state_path, "maintain", "--runs", "1")

        assert result.exit_code == 0
        assert "Completed 1 pruning runs" in result.output

    def test_stats_json(
        self, runner: CliRunner, config_path: Path, state_path: Path
    ) -> None:
        """Test stats reports counts and schema version."""
        _populate(state_path, "A", "B")

        result = _invoke(runner, config_path, state_path, "stats", "--json")

        assert result.exit_code == 0
        stats = json.loads(result.output)
        assert stats["schema_version"] == 1
        assert stats["suggestions"] == {"all": 2, "en": 2}
