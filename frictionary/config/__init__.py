"""Configuration loading and validation module."""

from frictionary.config.loader import ConfigLoader, ConfigValidationError
from frictionary.config.schemas import FrictionaryConfig, SiteConfig, VoteConfig


__all__ = [
    "ConfigLoader",
    "ConfigValidationError",
    "FrictionaryConfig",
    "SiteConfig",
    "VoteConfig",
]
