"""Suggestion service: page building, voting and maintenance."""

from frictionary.service.errors import ServiceError, UnknownSiteError
from frictionary.service.factory import create_service
from frictionary.service.maintenance import PruneScheduler
from frictionary.service.models import SiteInfo, SuggestionPage
from frictionary.service.orchestrator import SuggestionService, dedupe


__all__ = [
    "PruneScheduler",
    "ServiceError",
    "SiteInfo",
    "SuggestionPage",
    "SuggestionService",
    "UnknownSiteError",
    "create_service",
    "dedupe",
]
