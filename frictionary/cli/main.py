"""CLI commands for operating a Frictionary deployment."""

import asyncio
import json
import logging
import sys
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TypeVar

import click
import structlog

from frictionary import __version__
from frictionary.config.constants import COMPONENT_CLI
from frictionary.config.loader import ConfigLoader, ConfigValidationError
from frictionary.config.schemas import FrictionaryConfig
from frictionary.fetch.metrics import FetchMetrics
from frictionary.fetch.models import RemoteSourceError
from frictionary.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from frictionary.service import (
    PruneScheduler,
    SuggestionService,
    UnknownSiteError,
    create_service,
)
from frictionary.settings import get_settings
from frictionary.store.metrics import StoreMetrics
from frictionary.store.store import SuggestionStore


logger = structlog.get_logger()

T = TypeVar("T")

# Exit code for failures of a remote MediaWiki site
EXIT_REMOTE_FAILURE = 2


@dataclass
class CliOptions:
    """Options shared by all commands."""

    config_path: Path
    state_path: Path
    json_logs: bool
    log_level: int


def _load_config(options: CliOptions) -> FrictionaryConfig:
    """Load configuration, exit on failure."""
    loader = ConfigLoader()
    try:
        return loader.load(options.config_path)
    except ConfigValidationError as e:
        click.echo(f"Configuration validation failed: {e.file_path}", err=True)
        for error in e.errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(1)


def _with_service(
    options: CliOptions,
    command: str,
    action: Callable[[SuggestionService], Awaitable[T]],
) -> T:
    """Run an async action against a freshly built service.

    Maps service errors to exit codes and always releases the HTTP client
    and the database.
    """
    config = _load_config(options)
    log = logger.bind(component=COMPONENT_CLI, command=command)

    async def _run() -> T:
        service = create_service(config, options.state_path)
        try:
            return await action(service)
        finally:
            await service.aclose()
            service.store.close()

    try:
        return asyncio.run(_run())
    except UnknownSiteError as e:
        log.warning("unknown_site", site=e.site)
        click.echo(
            f"Error: {e}. Known sites: {', '.join(e.known_sites)}",
            err=True,
        )
        sys.exit(1)
    except RemoteSourceError as e:
        log.error("remote_failure", site=e.site, error=e.error.message)
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_REMOTE_FAILURE)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config.yaml (default: FRICTIONARY_CONFIG_PATH or config.yaml).",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to SQLite state database (default: FRICTIONARY_STATE_PATH).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: FRICTIONARY_JSON_LOGS or true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    state_path: Path | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Frictionary random-excerpt suggestion service CLI."""
    settings = get_settings()
    options = CliOptions(
        config_path=config_path or settings.config_path,
        state_path=state_path or settings.state_path,
        json_logs=settings.json_logs if json_logs is None else json_logs,
        log_level=logging.DEBUG if verbose else settings.log_level_value,
    )
    configure_logging(level=options.log_level, json_format=options.json_logs)
    ctx.obj = options


@cli.command()
@click.pass_obj
def sites(options: CliOptions) -> None:
    """List configured sites."""
    config = _load_config(options)
    for site in config.sites:
        info = json.dumps(site.info, sort_keys=True) if site.info else ""
        click.echo(f"{site.id}\t{site.base}\t{info}".rstrip())


@cli.command()
@click.option("--site", "site", required=True, help="Site identifier.")
@click.pass_obj
def fetch(options: CliOptions, site: str) -> None:
    """Run one fetch cycle for a site and store the results."""
    bind_request_context(site, str(uuid.uuid4()))
    try:
        fetched = _with_service(
            options, "fetch", lambda service: service.fetch_and_store(site)
        )
    finally:
        clear_request_context()

    click.echo(f"Fetched {len(fetched)} suggestions for {site}")
    for suggestion in fetched:
        click.echo(f"  {suggestion.id}")


@cli.command()
@click.option("--site", "site", required=True, help="Site identifier.")
@click.option(
    "--seen",
    "seen",
    multiple=True,
    help="Identity key already shown to the client (repeatable).",
)
@click.pass_obj
def suggest(options: CliOptions, site: str, seen: tuple[str, ...]) -> None:
    """Print a page of suggestions as JSON."""
    bind_request_context(site, str(uuid.uuid4()))

    async def _suggest(service: SuggestionService) -> dict[str, object]:
        page = await service.get_suggestions(site, seen=set(seen))
        body = page.to_dict()
        body["newly_seen"] = page.newly_seen
        return body

    try:
        body = _with_service(options, "suggest", _suggest)
    finally:
        clear_request_context()

    click.echo(json.dumps(body, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("suggestion_id")
@click.option(
    "--sign",
    type=click.Choice(["1", "-1", "+1"]),
    required=True,
    help="Vote direction.",
)
@click.option(
    "--remote",
    "remote_address",
    default="127.0.0.1",
    show_default=True,
    help="Address the vote is attributed to.",
)
@click.pass_obj
def vote(options: CliOptions, suggestion_id: str, sign: str, remote_address: str) -> None:
    """Vote on a stored suggestion."""
    outcome = _with_service(
        options,
        "vote",
        lambda service: service.record_vote(remote_address, suggestion_id, int(sign)),
    )

    if outcome.reason is not None:
        click.echo(
            f"Vote rejected ({outcome.reason.status_code}): {outcome.reason.message}",
            err=True,
        )
        sys.exit(1)

    click.echo(json.dumps(outcome.to_dict()))
    if outcome.suggestion is not None:
        click.echo(json.dumps(outcome.suggestion.votes.model_dump()))


@cli.command()
@click.option(
    "--now",
    "now",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d"]),
    default=None,
    help="Reference time for the age cutoff (default: current time).",
)
@click.pass_obj
def prune(options: CliOptions, now: datetime | None) -> None:
    """Delete outdated suggestions nobody liked."""
    pruned = _with_service(
        options, "prune", lambda service: service.prune_outdated(now=now)
    )
    click.echo(f"Pruned {pruned} suggestions")


@cli.command()
@click.option(
    "--runs",
    "max_runs",
    type=int,
    default=None,
    help="Stop after this many pruning runs (default: run forever).",
)
@click.pass_obj
def maintain(options: CliOptions, max_runs: int | None) -> None:
    """Prune now and then on the configured interval."""
    config = _load_config(options)

    async def _maintain(service: SuggestionService) -> int:
        scheduler = PruneScheduler(service, config.prune_interval_hours * 3600)
        await scheduler.run(max_runs=max_runs)
        return scheduler.runs

    runs = _with_service(options, "maintain", _maintain)
    click.echo(f"Completed {runs} pruning runs")


@cli.command()
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_obj
def stats(options: CliOptions, json_output: bool) -> None:
    """Display suggestion database statistics."""
    with SuggestionStore(options.state_path) as store:
        counts: dict[str, int] = {"all": store.count()}
        for site_id in _load_config(options).site_ids:
            counts[site_id] = store.count(site_id)
        schema_version = store.get_schema_version()

    if json_output:
        output = {
            "schema_version": schema_version,
            "suggestions": counts,
            "store_metrics": StoreMetrics.get_instance().to_dict(),
            "fetch_metrics": FetchMetrics.get_instance().to_dict(),
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo("Suggestion Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Suggestions per site:")
    for site_id, count in counts.items():
        click.echo(f"  {site_id}: {count}")


if __name__ == "__main__":
    cli()
