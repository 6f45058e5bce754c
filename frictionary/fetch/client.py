"""Async HTTP client with retries and failure classification."""

import asyncio
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from io import BytesIO
from urllib.parse import urlparse

import httpx
import structlog

from frictionary.fetch.config import FetchConfig
from frictionary.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from frictionary.fetch.metrics import FetchMetrics
from frictionary.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)


logger = structlog.get_logger()


class AsyncHttpFetcher:
    """Async HTTP GET client shared by all site fetchers.

    Provides:
    - A single pooled httpx.AsyncClient with a fixed User-Agent
    - Configurable retry policy with exponential backoff
    - Maximum response size enforcement
    - Metrics collection
    """

    def __init__(
        self,
        config: FetchConfig,
        user_agent: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration.
            user_agent: User-Agent header sent with every request.
            transport: Optional transport override (tests use MockTransport).
        """
        self._config = config
        self._user_agent = user_agent
        self._metrics = FetchMetrics.get_instance()
        self._client = httpx.AsyncClient(
            timeout=config.timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": user_agent, "Accept-Encoding": "gzip, deflate"},
            limits=httpx.Limits(max_connections=config.max_connections),
            transport=transport,
        )
        self._log = logger.bind(component="fetch")

    @property
    def user_agent(self) -> str:
        """Get the User-Agent header value."""
        return self._user_agent

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def fetch(
        self,
        url: str,
        params: dict[str, str | int] | None = None,
    ) -> FetchResult:
        """Fetch a URL with retry support.

        Args:
            url: The URL to fetch.
            params: Query string parameters.

        Returns:
            FetchResult with status and body, or a classified error.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(url=url, domain=urlparse(url).netloc, params=params)

        result = await self._execute_with_retry(url, params or {}, log)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)

        log.debug(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )

        return result

    async def _execute_with_retry(
        self,
        url: str,
        params: dict[str, str | int],
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Execute request with retry logic.

        Args:
            url: URL to fetch.
            params: Query string parameters.
            log: Bound logger.

        Returns:
            FetchResult from the last attempt.
        """
        policy = self._config.retry_policy
        result = await self._execute_single(url, params)
        attempt = 0

        while result.error is not None and policy.should_retry(result.error, attempt):
            if result.error.error_class == FetchErrorClass.RATE_LIMITED:
                retry_after = result.error.retry_after
                if retry_after and retry_after > 0:
                    log.info("rate_limited", retry_after=retry_after, attempt=attempt)
                    await asyncio.sleep(min(retry_after, MAX_RETRY_AFTER_SECONDS))

            attempt += 1
            delay_ms = policy.get_delay_ms(attempt - 1)
            self._metrics.record_retry()
            log.debug(
                "retry_attempt",
                attempt=attempt,
                delay_ms=delay_ms,
                max_retries=policy.max_retries,
            )
            await asyncio.sleep(delay_ms / 1000.0)

            result = await self._execute_single(url, params)

        if result.error is not None:
            self._metrics.record_failure(result.error.error_class)
        return result

    async def _execute_single(
        self,
        url: str,
        params: dict[str, str | int],
    ) -> FetchResult:
        """Execute a single HTTP request.

        Args:
            url: URL to fetch.
            params: Query string parameters.

        Returns:
            FetchResult from the request.
        """
        try:
            async with self._client.stream("GET", url, params=params) as response:
                body = await self._read_body_with_limit(response)
                self._metrics.record_request(response.status_code, len(body))

                return FetchResult(
                    status_code=response.status_code,
                    final_url=str(response.url),
                    headers=dict(response.headers),
                    body_bytes=body,
                    error=self._classify_http_error(
                        response.status_code, response.headers
                    ),
                )

        except ResponseSizeExceededError as e:
            return self._error_result(url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e))

        except httpx.TimeoutException as e:
            return self._error_result(
                url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}"
            )

        except httpx.ConnectError as e:
            return self._error_result(
                url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}"
            )

        except httpx.HTTPError as e:
            return self._error_result(
                url, FetchErrorClass.UNKNOWN, f"Unexpected error: {e!r}"
            )

    def _error_result(
        self,
        url: str,
        error_class: FetchErrorClass,
        message: str,
    ) -> FetchResult:
        """Build a FetchResult for a request that produced no response."""
        return FetchResult(
            status_code=0,
            final_url=url,
            error=FetchError(error_class=error_class, message=message),
        )

    async def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        max_size = self._config.max_response_size_bytes

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            msg = f"Response size {content_length} exceeds limit {max_size}"
            raise ResponseSizeExceededError(msg)

        buffer = BytesIO()
        total_read = 0

        async for chunk in response.aiter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()

    def _classify_http_error(
        self,
        status_code: int,
        headers: httpx.Headers,
    ) -> FetchError | None:
        """Classify HTTP status code as error.

        Args:
            status_code: HTTP status code.
            headers: Response headers.

        Returns:
            FetchError if status indicates error, None otherwise.
        """
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=self._parse_retry_after(headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return None

    def _parse_retry_after(self, value: str | None) -> int | None:
        """Parse Retry-After header value.

        Args:
            value: Header value (seconds or HTTP date).

        Returns:
            Seconds to wait, or None if not parseable.
        """
        if not value:
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            dt = parsedate_to_datetime(value)
            delta = dt - datetime.now(UTC)
            return max(0, int(delta.total_seconds()))
        except (ValueError, TypeError):
            pass

        return None
