#!/usr/bin/env python3
"""OAuth2 token management for the BPDM Gate and Pool APIs.

Both services sit behind the same identity provider and accept bearer tokens
obtained with the client credentials grant. One TokenManager can therefore be
shared by the Gate client and the Pool client.

Features:
    - Token caching with a dynamic expiration buffer (10% of TTL, 30s to 5min)
    - Refresh serialised with asyncio.Lock so concurrent requests fetch once
    - Exponential backoff (1s, 2s, 4s) on transient token server failures
    - invalidate() hook used by the client on HTTP 401

Security Notes:
    - Tokens live in memory only
    - Logs only show a SHA-256 prefix of the token, never the token itself
"""
import asyncio
import hashlib
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .exceptions import (
    ConfigurationError,
    ConnectionError,
    InvalidCredentialsError,
    NetworkError,
    TimeoutError,
    TokenFetchError,
)

logger = logging.getLogger(__name__)


@dataclass
class CachedToken:
    """Container for a cached OAuth2 access token.

    Attributes:
        access_token: The bearer token string.
        expires_at: Unix timestamp when the token expires.
        token_type: Token type, typically "Bearer".
        expires_in: Original TTL in seconds (drives the refresh buffer).
    """
    access_token: str
    expires_at: float
    token_type: Optional[str] = "Bearer"
    expires_in: int = 300

    MAX_BUFFER_SECONDS = 300
    MIN_BUFFER_SECONDS = 30

    @property
    def token_id(self) -> str:
        """Safe identifier for logging (SHA-256 hash, first 8 chars)."""
        return hashlib.sha256(self.access_token.encode()).hexdigest()[:8]

    @property
    def _buffer_seconds(self) -> float:
        # 10% of TTL, clamped, plus +/-10% jitter against herd refresh
        base_buffer = self.expires_in * 0.1
        buffer = max(self.MIN_BUFFER_SECONDS, min(base_buffer, self.MAX_BUFFER_SECONDS))
        jitter = buffer * random.uniform(-0.1, 0.1)
        return buffer + jitter

    @property
    def is_expired(self) -> bool:
        """Check if the token has expired (with safety buffer)."""
        return time.time() >= (self.expires_at - self._buffer_seconds)

    @property
    def time_remaining(self) -> float:
        """Seconds remaining before the token expires (0 if expired)."""
        return max(0, self.expires_at - time.time())


class TokenManager:
    """OAuth2 client credentials token manager with automatic refresh.

    Attributes:
        client_id: OAuth2 client ID (env: BPDM_CLIENT_ID).
        client_secret: OAuth2 client secret (env: BPDM_CLIENT_SECRET).
        token_url: Token endpoint of the identity provider (env: BPDM_TOKEN_URL).

    Example:
        >>> manager = TokenManager()
        >>> token = await manager.get_token()  # fetches
        >>> token = await manager.get_token()  # cached
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
    ):
        self.client_id = client_id or os.getenv("BPDM_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("BPDM_CLIENT_SECRET")
        self.token_url = token_url or os.getenv("BPDM_TOKEN_URL")

        missing = [
            key
            for key, value in (
                ("BPDM_CLIENT_ID", self.client_id),
                ("BPDM_CLIENT_SECRET", self.client_secret),
                ("BPDM_TOKEN_URL", self.token_url),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

        self._cached_token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Get a valid access token, fetching or refreshing as needed.

        Raises:
            TokenFetchError: If no token could be obtained after retries
            InvalidCredentialsError: If the credentials are rejected
        """
        if self._cached_token and not self._cached_token.is_expired:
            return self._cached_token.access_token

        async with self._lock:
            if self._cached_token and not self._cached_token.is_expired:
                return self._cached_token.access_token

            self._cached_token = await self._fetch_token()
            return self._cached_token.access_token

    async def _fetch_token(self, max_retries: int = 3) -> CachedToken:
        """Request a new token from the identity provider.

        Retries transient failures with exponential backoff. HTTP 401 is not
        retried.
        """
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        last_error: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.token_url,
                        data=payload,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=30),
                    ) as response:
                        if response.status == 200:
                            data = await response.json()
                            access_token = data.get("access_token")
                            if not access_token:
                                raise TokenFetchError(
                                    "Token response missing access_token",
                                    status_code=200,
                                    attempts=attempt,
                                    details={"response_keys": list(data.keys())},
                                )

                            expires_in = data.get("expires_in", 300)
                            token = CachedToken(
                                access_token=access_token,
                                expires_at=time.time() + expires_in,
                                token_type=data.get("token_type", "Bearer"),
                                expires_in=expires_in,
                            )
                            logger.info(
                                f"Token fetched (id={token.token_id}), expires in {expires_in}s"
                            )
                            return token

                        error_text = await response.text()

                        if response.status == 401:
                            raise InvalidCredentialsError(
                                "Invalid client credentials",
                                details={"response": error_text[:200]},
                            )

                        if response.status == 400:
                            raise TokenFetchError(
                                f"Invalid token request: {error_text[:200]}",
                                status_code=400,
                                attempts=attempt,
                            )

                        last_error = TokenFetchError(
                            f"Token server returned HTTP {response.status}",
                            status_code=response.status,
                            attempts=attempt,
                            details={"response": error_text[:200]},
                        )
                        logger.warning(
                            f"Token fetch attempt {attempt}/{max_retries} failed: "
                            f"HTTP {response.status}"
                        )

            except aiohttp.ClientConnectionError as e:
                last_error = ConnectionError(
                    f"Failed to connect to token server: {e}",
                    host=self.token_url,
                    cause=e,
                )
                logger.warning(
                    f"Token fetch attempt {attempt}/{max_retries} failed: "
                    f"Connection error - {e}"
                )

            except asyncio.TimeoutError as e:
                last_error = TimeoutError(
                    "Token request timed out",
                    timeout_seconds=30,
                    cause=e,
                )
                logger.warning(f"Token fetch attempt {attempt}/{max_retries} failed: Timeout")

            except aiohttp.ClientError as e:
                last_error = NetworkError(f"Network error fetching token: {e}", cause=e)
                logger.warning(f"Token fetch attempt {attempt}/{max_retries} failed: {e}")

            if attempt < max_retries:
                wait_time = 2 ** (attempt - 1)
                logger.debug(f"Waiting {wait_time}s before retry")
                await asyncio.sleep(wait_time)

        raise TokenFetchError(
            f"Failed to fetch token after {max_retries} attempts",
            attempts=max_retries,
            cause=last_error,
        )

    def invalidate(self):
        """Drop the cached token so the next request fetches a fresh one."""
        self._cached_token = None

    @property
    def token_info(self) -> Optional[dict]:
        """Debug info about the cached token (hash only, never the token)."""
        if not self._cached_token:
            return None
        return {
            "token_id": self._cached_token.token_id,
            "is_expired": self._cached_token.is_expired,
            "time_remaining_seconds": self._cached_token.time_remaining,
            "expires_in_original": self._cached_token.expires_in,
        }
