"""Exceptions raised by the suggestion service."""


class ServiceError(Exception):
    """Base exception for suggestion service errors."""


class UnknownSiteError(ServiceError):
    """Raised when a request names a site that is not configured."""

    def __init__(self, site: str, known_sites: list[str]) -> None:
        """Initialize the error.

        Args:
            site: The requested site identifier.
            known_sites: Configured site identifiers.
        """
        self.site = site
        self.known_sites = known_sites
        super().__init__(f"No such site: {site}")
