"""Shared registry access for depradar.

:class:`RegistryClient` is the single gateway every ecosystem adapter and
advisory source uses to talk to the outside world.  It wraps the retrying
:class:`~depradar.utils.http.HTTPClient` and owns the process-lifetime
:class:`~depradar.utils.cache.TTLCache` used for multi-step lookups
(service indexes, vulnerability index pages).

Typical usage::

    async with HTTPClient() as http:
        registry = RegistryClient(http)
        packument = await registry.get_json("https://registry.npmjs.org/react")
        index = await registry.get_cached_json(NUGET_SERVICE_INDEX)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from depradar.exceptions import NetworkError
from depradar.utils.cache import TTLCache
from depradar.utils.http import HTTPClient
from depradar.utils.logger import get_logger

logger = get_logger("registry")

__all__ = ["RegistryClient"]


class RegistryClient:
    """Registry gateway with a TTL cache for index documents.

    Per-dependency lookups go straight to the network; only documents
    fetched through :meth:`get_cached_json` are cached.  When refreshing
    an expired cached document fails, the stale copy is served instead.

    Args:
        http_client: A configured :class:`HTTPClient` (owns the
            connection pool).
        cache: Cache for index documents.  A fresh 10-minute cache is
            created when omitted.
        timeout: Optional per-request timeout overriding the client's
            default, used for registries that should fail fast.

    Example::

        async with HTTPClient() as http:
            registry = RegistryClient(http, timeout=8)
            data = await registry.get_json("https://pypi.org/pypi/flask/json")
    """

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        cache: Optional[TTLCache[Any]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.http = http_client
        self.cache: TTLCache[Any] = cache if cache is not None else TTLCache()
        self.timeout = timeout

    def _options(self, timeout: Optional[float]) -> Dict[str, Any]:
        effective = timeout if timeout is not None else self.timeout
        return {"timeout": effective} if effective is not None else {}

    # ------------------------------------------------------------------
    # Uncached lookups
    # ------------------------------------------------------------------

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """GET a JSON object."""
        return await self.http.get_json(url, params=params, **self._options(timeout))

    async def get_json_value(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET any JSON value (object or array)."""
        return await self.http.get_json_value(url, params=params, **self._options(timeout))

    async def get_text(self, url: str, *, timeout: Optional[float] = None) -> str:
        """GET a plain-text document."""
        return await self.http.get_text(url, **self._options(timeout))

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the JSON object response."""
        return await self.http.post_json(url, payload, **self._options(timeout))

    # ------------------------------------------------------------------
    # Cached lookups
    # ------------------------------------------------------------------

    async def get_cached_json(self, url: str, *, allow_stale: bool = True) -> Any:
        """GET a JSON document through the TTL cache.

        Args:
            url: Document URL; also the cache key.
            allow_stale: Serve an expired copy when the refresh fails.

        Returns:
            The decoded JSON value.

        Raises:
            NetworkError: The fetch failed and no usable copy is cached.
        """
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        try:
            value = await self.http.get_json_value(url, **self._options(None))
        except NetworkError as exc:
            stale = self.cache.get_stale(url) if allow_stale else None
            if stale is None:
                raise
            logger.warning("Refreshing %s failed (%s); using cached copy", url, exc)
            return stale

        self.cache.set(url, value)
        return value
