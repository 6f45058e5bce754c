"""Configuration models for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from frictionary.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES
from frictionary.fetch.models import RetryPolicy


class FetchConfig(BaseModel):
    """Configuration for the HTTP fetch layer.

    Central configuration for all HTTP fetch operations including
    timeouts, retry policy, and response limits.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    max_connections: Annotated[int, Field(ge=1, le=100)] = 10
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
