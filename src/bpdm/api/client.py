#!/usr/bin/env python3
"""Generic async HTTP client for the BPDM Gate and Pool APIs.

This client knows HOW to talk to a BPDM service, not WHAT to fetch. It has
no knowledge of changelogs, legal entities or sharing states; that knowledge
lives in the Gate and Pool adapters under ``bpdm.sync.adapters``.

Concerns handled here:
    - Optional OAuth2 bearer authentication via TokenManager
    - Token refresh on 401 responses
    - Waiting on 429 responses
    - Exponential backoff on 5xx and network errors
    - Mapping of HTTP statuses to typed exceptions
    - Connection pooling via one aiohttp session per client

Usage:
    async with BPDMClient("https://gate.example.com", token_manager) as gate:
        page = await gate.get("/api/catena/input/changelog", params={"page": 0, "size": 100})
        await gate.put("/api/catena/sharing-state", json_body={...})
"""
import asyncio
import json
import logging
from typing import Any, Optional, Union

import aiohttp

from .auth import TokenManager
from .exceptions import (
    APIError,
    BPDMError,
    ConfigurationError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Query parameters may repeat a key (externalIds=a&externalIds=b), so a list
# of pairs is accepted next to a plain dict.
QueryParams = Union[dict[str, Any], list[tuple[str, Any]]]


class BPDMClient:
    """Async HTTP client for one BPDM service (Gate or Pool).

    Must be used as an async context manager so the aiohttp session is
    opened and closed deterministically:

        async with BPDMClient(base_url) as client:
            data = await client.get("/some/endpoint")

    Attributes:
        base_url: Service base URL, without trailing slash
        token_manager: Optional TokenManager; without one no Authorization
            header is sent
        name: Short label used in log lines ("gate", "pool")
    """

    def __init__(
        self,
        base_url: str,
        token_manager: Optional[TokenManager] = None,
        name: str = "bpdm",
        timeout_seconds: float = 60.0,
        max_retries: int = 3,
    ):
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise ConfigurationError(f"Base URL is required for the {name} client")

        self.token_manager = token_manager
        self.name = name
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "BPDMClient":
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=10),
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds, connect=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    async def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token_manager is not None:
            token = await self.token_manager.get_token()
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[QueryParams] = None,
        json_body: Any = None,
    ) -> Any:
        """Make a single HTTP request (no retry logic).

        Returns:
            Parsed JSON response, or None for an empty body

        Raises:
            APIError: If response status is not 2xx
            RuntimeError: If called outside of the async context manager
            ConnectionError: If connection to the server fails
            TimeoutError: If the request times out
        """
        if not self._session:
            raise RuntimeError(
                "BPDMClient must be used as async context manager: "
                "async with BPDMClient(...) as client:"
            )

        url = f"{self.base_url}{endpoint}"

        try:
            headers = await self._get_headers()

            async with self._session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=json_body,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=endpoint,
                        response_body=error_text,
                        retry_after=response.headers.get("Retry-After"),
                    )

                body = await response.text()
                return json.loads(body) if body else None

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {endpoint} timed out",
                timeout_seconds=self.timeout_seconds,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {endpoint}: {e}",
                cause=e,
            )

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> BPDMError:
        """Create the APIError subclass matching the status code."""
        if status == 401:
            return TokenExpiredError(
                "Access token expired or invalid",
                details={"endpoint": endpoint},
            )

        if status == 404:
            return NotFoundError(
                resource_type="Resource",
                resource_id=endpoint,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status == 429:
            seconds = int(retry_after) if retry_after and retry_after.isdigit() else 60
            return RateLimitError(
                f"Rate limit exceeded for {endpoint}",
                retry_after=seconds,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status in (400, 422):
            return ValidationError(
                f"Validation failed for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status >= 500:
            return ServerError(
                f"Server error ({status}) for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        return APIError(
            f"{method} {endpoint} failed",
            status_code=status,
            endpoint=endpoint,
            method=method,
            response_body=response_body,
        )

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: Optional[QueryParams] = None,
        json_body: Any = None,
        idempotent: bool = True,
    ) -> Any:
        """Make an HTTP request with transport-level retry.

        - 401: invalidate the token and retry immediately
        - 429: wait for Retry-After, then retry
        - 5xx and network errors: exponential backoff (1s, 2s, ... capped at 60s),
          only when ``idempotent``; a POST may already have been applied
        - 400/404/422: fail immediately
        """
        last_error: Optional[Exception] = None
        backoff_delay = 1.0

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._request(method, endpoint, params, json_body)

            except TokenExpiredError as e:
                last_error = e
                if self.token_manager is None:
                    raise
                logger.warning(f"[{self.name}] Token expired, refreshing (attempt {attempt})")
                self.token_manager.invalidate()
                continue

            except RateLimitError as e:
                last_error = e
                if attempt >= self.max_retries:
                    raise
                logger.warning(
                    f"[{self.name}] Rate limited, waiting {e.retry_after}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(e.retry_after)
                continue

            except (ServerError, NetworkError) as e:
                last_error = e
                if not idempotent or attempt >= self.max_retries:
                    raise
                logger.warning(
                    f"[{self.name}] {e.message}, retrying in {backoff_delay}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(backoff_delay)
                backoff_delay = min(backoff_delay * 2, 60.0)
                continue

        if last_error:
            raise last_error

        raise APIError(
            "Request failed after all retries",
            status_code=0,
            endpoint=endpoint,
            method=method,
        )

    # ----------------------------------------
    # High-Level Request Methods
    # ----------------------------------------

    async def get(self, endpoint: str, params: Optional[QueryParams] = None) -> Any:
        """Make a GET request and return the parsed JSON body."""
        return await self._request_with_retry("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_body: Any,
        params: Optional[QueryParams] = None,
    ) -> Any:
        """Make a POST request with a JSON body (object or list)."""
        return await self._request_with_retry(
            "POST", endpoint, params=params, json_body=json_body, idempotent=False
        )

    async def put(
        self,
        endpoint: str,
        json_body: Any,
        params: Optional[QueryParams] = None,
    ) -> Any:
        """Make a PUT request with a JSON body (object or list)."""
        return await self._request_with_retry("PUT", endpoint, params=params, json_body=json_body)
