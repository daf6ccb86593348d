"""
HTTP access for enginekeeper.

Two kinds of document are downloaded: an engine's release index (a JSON
array such as ``https://nodejs.org/dist/index.json``) and a package's npm
registry manifest (a JSON object, needed for version 1 lockfiles).

:class:`HTTPClient` shares one ``httpx.AsyncClient`` (HTTP/2) across every
request of a run and caps how many are in flight. Timeouts, connection
failures and 5xx answers are retried with exponential backoff; ``429``
answers wait for ``Retry-After`` without using up a retry. A ``404`` means
the document does not exist and is raised at once as
:class:`~enginekeeper.exceptions.RegistryError`.
"""

from __future__ import annotations

import httpx
import random
import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

from enginekeeper.utils.logger import get_logger
from enginekeeper.__version__ import __version__
from enginekeeper.exceptions import NetworkError, RegistryError
from enginekeeper.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    MAX_RETRY_AFTER,
    MAX_THROTTLED_RETRIES,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")

__all__ = ["HTTPClient", "retry_after_seconds"]


def retry_after_seconds(value: Optional[str], *, default: float = 1.0) -> float:
    """Interpret a ``Retry-After`` header value as a delay in seconds.

    Both forms the header allows are understood: delta-seconds (``"120"``)
    and an HTTP-date. A missing, malformed or past value gives ``default``;
    long waits are capped at :data:`~enginekeeper.constants.MAX_RETRY_AFTER`.

    Example::

        >>> retry_after_seconds("3")
        3.0
        >>> retry_after_seconds("soon")
        1.0
    """
    if not value:
        return default

    value = value.strip()
    if value.isdigit():
        return min(float(value), MAX_RETRY_AFTER)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    delay = (when - datetime.now(timezone.utc)).total_seconds()
    if delay <= 0:
        return default
    return min(delay, MAX_RETRY_AFTER)


class HTTPClient:
    """Async JSON downloader for release indexes and registry manifests.

    Args:
        timeout: Per-request timeout in seconds.
        max_retries: Extra attempts after a transient failure.
        max_concurrency: Requests allowed in flight at once.
        verify_ssl: Verify TLS certificates.
        user_agent: ``User-Agent`` header; defaults to ``enginekeeper/<version>``.

    Example:
        >>> async with HTTPClient() as client:
        ...     index = await client.get_json("https://nodejs.org/dist/index.json")
        ...     manifest = await client.get_manifest("https://registry.npmjs.org/a/1.0.0")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_concurrency = max_concurrency
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)

        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "HTTPClient":
        self._session()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _session(self) -> httpx.AsyncClient:
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
            )
        return self._client

    async def close(self) -> None:
        """Release the pooled connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _backoff(self, failures: int) -> float:
        return 2 ** (failures - 1) + random.uniform(0.0, 0.3)

    async def get(self, url: str) -> httpx.Response:
        """GET ``url``, retrying transient failures.

        Raises:
            RegistryError: The server answered ``404``.
            NetworkError: Another 4xx answer, too many ``429`` answers, or
                every attempt failed.
        """
        client = self._session()
        attempts = self.max_retries + 1
        failures = 0
        throttled = 0
        last_error: Optional[Exception] = None

        while True:
            try:
                async with self._semaphore:
                    response = await client.get(url)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_error = exc
                reason = type(exc).__name__
            else:
                status = response.status_code

                if status == 429:
                    throttled += 1
                    if throttled > MAX_THROTTLED_RETRIES:
                        raise NetworkError(
                            f"Rate limit exceeded after {MAX_THROTTLED_RETRIES} retries",
                            url=url,
                            status_code=429,
                        )
                    delay = retry_after_seconds(response.headers.get("Retry-After"))
                    logger.warning(
                        "Rate limited fetching %s, waiting %.0fs (%d/%d)",
                        url,
                        delay,
                        throttled,
                        MAX_THROTTLED_RETRIES,
                    )
                    await asyncio.sleep(delay)
                    continue

                if status == 404:
                    raise RegistryError(f"Not found: {url}", url=url, status_code=404)
                if status < 400:
                    return response
                if status < 500:
                    raise NetworkError(
                        f"HTTP {status} error for {url}",
                        url=url,
                        status_code=status,
                        response_body=response.text,
                    )
                reason = f"HTTP {status}"

            failures += 1
            if failures >= attempts:
                raise NetworkError(
                    f"Request failed after {attempts} attempts: {url}",
                    url=url,
                ) from last_error

            delay = self._backoff(failures)
            logger.warning(
                "%s for %s (%d/%d), retrying in %.1fs",
                reason,
                url,
                failures,
                attempts,
                delay,
            )
            await asyncio.sleep(delay)

    async def get_json(self, url: str) -> Any:
        """Download and decode a JSON document of any shape.

        Raises:
            NetworkError: The body is not valid JSON, or the request failed.
            RegistryError: The document does not exist.
        """
        response = await self.get(url)

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

    async def get_manifest(self, url: str) -> Dict[str, Any]:
        """Download a registry manifest, which must be a JSON object."""
        document = await self.get_json(url)

        if not isinstance(document, dict):
            raise NetworkError(f"Expected JSON object from {url}", url=url)

        return document
