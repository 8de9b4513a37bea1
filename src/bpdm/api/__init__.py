"""BPDM API modules.

This package provides the HTTP client and OAuth2 token handling shared by
the Gate and Pool adapters.

Classes:
    BPDMClient: Async HTTP client with retry and typed error mapping
    TokenManager: OAuth2 client-credentials token management with caching

Exceptions:
    BPDMError: Base exception for all bridge errors
    ConfigurationError: Missing or invalid configuration
    AuthenticationError: Authentication failures
    TokenFetchError: Token acquisition failures
    APIError: Non-2xx responses from the Gate or the Pool
    RateLimitError: Rate limit exceeded
    NetworkError: Network connectivity issues
    DatabaseError: Checkpoint store failures
    SyncError: Synchronization failures
    SyncInProgressError: A sync pass is already running
"""
from .auth import CachedToken, TokenManager
from .client import BPDMClient, QueryParams
from .exceptions import (
    APIError,
    AuthenticationError,
    BPDMError,
    CheckpointError,
    ConfigurationError,
    ConnectionError,
    DatabaseError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    SyncError,
    SyncInProgressError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    ValidationError,
)

__all__ = [
    # Auth
    "CachedToken",
    "TokenManager",
    # Client
    "BPDMClient",
    "QueryParams",
    # Exceptions - Base
    "BPDMError",
    "ConfigurationError",
    # Exceptions - Auth
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    # Exceptions - API
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    # Exceptions - Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    # Exceptions - Database
    "DatabaseError",
    "CheckpointError",
    # Exceptions - Sync
    "SyncError",
    "SyncInProgressError",
]
