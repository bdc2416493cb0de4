"""Base async HTTP client with retry logic, timeouts, and error handling.

All external API clients should inherit from this class to get consistent
behavior for retries, timeouts, and error handling.
"""

import logging
from typing import Any, Self

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class HTTPTimeoutError(HTTPClientError):
    """Request timed out."""


class AsyncHTTPClient:
    """Base async HTTP client with retry logic, timeouts, and error handling.

    All external API clients should inherit from this class. A shared
    ``httpx.AsyncClient`` can be injected (tests use ``httpx.MockTransport``);
    otherwise one is created lazily and owned by this instance.

    Example usage:
        class CoinGeckoProvider(AsyncHTTPClient):
            def __init__(self):
                super().__init__(
                    base_url="https://api.coingecko.com/api/v3",
                    timeout=4.0,
                )

            async def get_prices(self, ids: str) -> dict:
                return await self.get_json("/simple/price", params={"ids": ids})
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.default_headers = headers or {}
        self._client: httpx.AsyncClient | None = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _url(self, url: str) -> str:
        if self.base_url and not url.startswith("http"):
            return f"{self.base_url}{url}"
        return url

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        url: str,
        params: dict | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        return await self.client.request(
            method=method,
            url=self._url(url),
            params=params,
            headers=headers,
            timeout=self.timeout,
        )

    async def _request(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            url: URL path (will be joined with base_url if set)
            params: Query parameters
            headers: Additional headers to merge with defaults

        Returns:
            httpx.Response object

        Raises:
            HTTPClientError: On HTTP errors, timeouts, or connection failures
        """
        merged_headers = {**self.default_headers, **(headers or {})}

        try:
            response = await self._send(method, url, params, merged_headers)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"HTTP {e.response.status_code} for {method} {url}: {e.response.text[:200]}"
            )
            raise HTTPClientError(
                message=f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                status_code=e.response.status_code,
                response_body=e.response.text,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout for {method} {url}")
            raise HTTPTimeoutError(f"Request timed out: {url}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Connection error for {method} {url}: {e}")
            raise HTTPClientError(f"Connection failed: {url}") from e

    async def get(
        self,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """HTTP GET request."""
        return await self._request("GET", url, params=params, headers=headers)

    async def get_json(self, url: str, params: dict | None = None) -> Any:
        """HTTP GET returning parsed JSON.

        Raises:
            HTTPClientError: On transport errors or a body that is not JSON
        """
        response = await self.get(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(
                f"Invalid JSON from {url}",
                status_code=response.status_code,
                response_body=response.text[:200],
            ) from e
