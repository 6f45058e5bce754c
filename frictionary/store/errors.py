"""Domain exceptions for the suggestion store.

Separates infrastructure errors (database issues) from domain errors
(missing suggestions).
"""


class StoreError(Exception):
    """Base exception for all suggestion store errors."""


class StoreConnectionError(StoreError):
    """Raised when the database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class SuggestionNotFoundError(StoreError):
    """Raised when a vote targets a suggestion that does not exist."""

    def __init__(self, suggestion_id: str) -> None:
        """Initialize the error with the missing identity key.

        Args:
            suggestion_id: The identity key that was not found.
        """
        self.suggestion_id = suggestion_id
        super().__init__(f"Suggestion not found: {suggestion_id}")


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
