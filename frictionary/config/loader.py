"""Configuration loader with validation."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from frictionary.config.constants import COMPONENT_CONFIG
from frictionary.config.schemas import FrictionaryConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


class ConfigLoader:
    """Loads and validates config.yaml.

    The loaded configuration is immutable; the loader keeps the file
    checksum and any validation errors for reporting.
    """

    def __init__(self) -> None:
        """Initialize the loader."""
        self._checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0
        self._log = logger.bind(component=COMPONENT_CONFIG)

    @property
    def checksum(self) -> str | None:
        """Get the SHA-256 checksum of the last loaded file."""
        return self._checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    @property
    def validation_duration_ms(self) -> float:
        """Get validation duration in milliseconds."""
        return self._validation_duration_ms

    def load(self, config_path: Path) -> FrictionaryConfig:
        """Load and validate a configuration file.

        Args:
            config_path: Path to config.yaml.

        Returns:
            The validated configuration.

        Raises:
            ConfigValidationError: If the file is missing, is not valid YAML,
                or does not match the schema.
        """
        start_time = time.perf_counter()
        log = self._log.bind(file_path=str(config_path))
        self._validation_errors = []

        log.info("loading_config_file")

        try:
            content_bytes = config_path.read_bytes()
            self._checksum = hashlib.sha256(content_bytes).hexdigest()
            data = yaml.safe_load(content_bytes.decode("utf-8")) or {}
            config = FrictionaryConfig.model_validate(data)

        except FileNotFoundError as e:
            self._fail("file", str(e), "file_not_found", log)
            raise ConfigValidationError(self._validation_errors, str(config_path)) from e

        except yaml.YAMLError as e:
            self._fail("yaml", str(e), "yaml_parse_error", log)
            raise ConfigValidationError(self._validation_errors, str(config_path)) from e

        except ValidationError as e:
            for err in e.errors():
                self._validation_errors.append(
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(self._validation_errors, str(config_path)) from e

        self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "config_file_loaded",
            file_sha256=self._checksum,
            site_count=len(config.sites),
            config_validation_duration_ms=round(self._validation_duration_ms, 2),
        )
        return config

    def _fail(
        self,
        loc: str,
        msg: str,
        error_type: str,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Record a load failure that is not a schema error."""
        self._validation_errors.append({"loc": loc, "msg": msg, "type": error_type})
        log.error(f"config_{error_type}", error=msg)
