"""Configuration schema for config.yaml."""

import platform
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from frictionary import __version__
from frictionary.config.constants import USER_AGENT_TEMPLATE, VALID_URL_SCHEMES
from frictionary.fetch.config import FetchConfig
from frictionary.fetch.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FETCH_ATTEMPTS,
    DEFAULT_NAMESPACE,
)


class SiteConfig(BaseModel):
    """Configuration for a single MediaWiki site.

    Attributes:
        id: Site identifier used in suggestion keys and URLs.
        base: Site root URL.
        info: Free-form display metadata passed to clients.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")]
    base: Annotated[str, Field(min_length=1)]
    info: dict[str, Any] = Field(default_factory=dict)

    @field_validator("base")
    @classmethod
    def validate_base(cls, v: str) -> str:
        """Validate the base URL scheme and strip trailing slashes."""
        if not v.startswith(VALID_URL_SCHEMES):
            msg = "Site base must start with http:// or https://"
            raise ValueError(msg)
        return v.rstrip("/")


class VoteConfig(BaseModel):
    """Vote gate limits."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    window_minutes: Annotated[int, Field(ge=1, le=24 * 60)] = 60
    max_per_window: Annotated[int, Field(ge=1)] = 50
    max_addresses: Annotated[int, Field(ge=1)] = 10_000


class FrictionaryConfig(BaseModel):
    """Root configuration for config.yaml.

    Attributes:
        user_agent_contact: Contact URL or e-mail put in the User-Agent.
        sites: MediaWiki sites to sample.
        page_size: Suggestions a client should get per request.
        random_multiplier: Random sample size as a multiple of page_size.
        top_limit: Cap on the cached top-by-score list.
        top_cache_seconds: Lifetime of a cached top-by-score list.
        outdated_days: Age after which unpopular suggestions are pruned.
        prune_interval_hours: Delay between pruning runs.
        batch_size: Random titles listed per remote call.
        namespace: MediaWiki namespace to sample.
        max_fetch_attempts: Listing calls allowed per fetch cycle.
        background_refresh: Whether each request triggers a refill fetch.
        fetch: HTTP client settings.
        votes: Vote gate limits.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent_contact: Annotated[str, Field(min_length=1)]
    sites: list[SiteConfig] = Field(min_length=1)
    page_size: Annotated[int, Field(ge=1, le=500)] = 10
    random_multiplier: Annotated[int, Field(ge=1, le=100)] = 4
    top_limit: Annotated[int, Field(ge=1)] = 2048
    top_cache_seconds: Annotated[float, Field(ge=0)] = 60 * 60
    outdated_days: Annotated[int, Field(ge=1)] = 30
    prune_interval_hours: Annotated[float, Field(gt=0)] = 24
    batch_size: Annotated[int, Field(ge=1, le=500)] = DEFAULT_BATCH_SIZE
    namespace: int = DEFAULT_NAMESPACE
    max_fetch_attempts: Annotated[int, Field(ge=1, le=1000)] = DEFAULT_MAX_FETCH_ATTEMPTS
    background_refresh: bool = True
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    votes: VoteConfig = Field(default_factory=VoteConfig)

    @model_validator(mode="after")
    def validate_unique_site_ids(self) -> "FrictionaryConfig":
        """Ensure all site IDs are unique."""
        ids = [s.id for s in self.sites]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            msg = f"Duplicate site IDs: {duplicates}"
            raise ValueError(msg)
        return self

    @property
    def user_agent(self) -> str:
        """User-Agent sent to every site."""
        return USER_AGENT_TEMPLATE.format(
            version=__version__,
            contact=self.user_agent_contact,
            python=platform.python_version(),
        )

    @property
    def site_ids(self) -> list[str]:
        """Configured site identifiers in order."""
        return [s.id for s in self.sites]
