"""
HTTP client utilities for depradar.

This module provides the asynchronous HTTP client shared by every registry
and advisory lookup.  Transport failures (timeouts, connection errors) are
retried with jittered exponential backoff; HTTP error statuses are not
retried and are mapped onto the registry exception hierarchy instead:

* 404 → :class:`~depradar.exceptions.PackageNotFoundError`
* 429 → :class:`~depradar.exceptions.RateLimitedError`
* any other status >= 400 → :class:`~depradar.exceptions.RegistryError`
"""

from __future__ import annotations

import httpx
import random
import asyncio
from typing import Any, Dict, Optional, cast

from depradar.utils.logger import get_logger
from depradar.__version__ import __version__
from depradar.exceptions import (
    NetworkError,
    PackageNotFoundError,
    RateLimitedError,
    RegistryError,
)
from depradar.constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class HTTPClient:
    """Asynchronous HTTP client with retries and concurrency control.

    Args:
        timeout: Default request timeout in seconds.  Individual calls may
            override it with a ``timeout=`` keyword.
        max_retries: Retries after the first attempt on transport failure.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        max_concurrency: Maximum number of concurrent requests.
        transport: Optional httpx transport, mainly for tests
            (``httpx.MockTransport``).

    Example:
        >>> async with HTTPClient() as client:
        ...     data = await client.get_json("https://registry.npmjs.org/react")
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        max_concurrency: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.max_concurrency = max_concurrency

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> None:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _check_status(self, response: httpx.Response, url: str) -> None:
        status = response.status_code

        if status == 404:
            raise PackageNotFoundError(
                f"Resource not found: {url}",
                url=url,
                status_code=404,
            )

        if status == 429:
            raise RateLimitedError(
                f"Rate limited: {url}",
                url=url,
                status_code=429,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        if status >= 400:
            raise RegistryError(
                f"HTTP {status} error for {url}",
                url=url,
                status_code=status,
                response_body=response.text,
            )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request, retrying transport failures only."""
        await self._ensure_client()
        assert self._client is not None

        clean_url = url.strip().strip("\"'")
        attempts = self.max_retries + 1
        last_exc: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                async with self._semaphore:
                    response = await self._client.request(method, clean_url, **kwargs)

            except httpx.TimeoutException as exc:
                last_exc = exc
                logger.warning(
                    "Request timeout (%d/%d): %s",
                    attempt + 1,
                    attempts,
                    clean_url,
                )

            except httpx.TransportError as exc:
                last_exc = exc
                logger.warning(
                    "Network error (%d/%d): %s",
                    attempt + 1,
                    attempts,
                    exc,
                )

            else:
                self._check_status(response, clean_url)
                return response

            if attempt < self.max_retries:
                delay = (2**attempt) + random.uniform(0.0, 0.3)
                logger.debug("Retrying %s in %.2fs", clean_url, delay)
                await asyncio.sleep(delay)

        raise NetworkError(
            f"Request failed after {attempts} attempts: {clean_url}",
            url=clean_url,
        ) from last_exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return await self._request_with_retry("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a POST request with retry logic."""
        return await self._request_with_retry("POST", url, **kwargs)

    @staticmethod
    def _decode(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

    async def get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Fetch a URL and parse the response as a JSON object.

        Raises:
            RegistryError: The body is not JSON or not a JSON object.
        """
        response = await self.get(url, **kwargs)
        data = self._decode(response, url)

        if not isinstance(data, dict):
            raise RegistryError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)

    async def get_json_value(self, url: str, **kwargs: Any) -> Any:
        """Fetch a URL and return any JSON value (object, array, scalar)."""
        response = await self.get(url, **kwargs)
        return self._decode(response, url)

    async def get_text(self, url: str, **kwargs: Any) -> str:
        """Fetch a URL and return the body as text."""
        response = await self.get(url, **kwargs)
        return response.text

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """POST a JSON payload and parse the JSON object response."""
        response = await self.post(url, json=payload, **kwargs)
        data = self._decode(response, url)

        if not isinstance(data, dict):
            raise RegistryError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)
