"""Bridge configuration loaded from environment variables.

Environment Variables:
    BPDM_GATE_URL: Base URL of the BPDM Gate (required)
    BPDM_POOL_URL: Base URL of the BPDM Pool (required)
    BPDM_CLIENT_ID, BPDM_CLIENT_SECRET, BPDM_TOKEN_URL: OAuth2 client
        credentials; set all three or none
    SYNC_PAGE_SIZE: Page size for Gate reads (default: 100)
    SYNC_INTERVAL_MINUTES: Minutes between scheduled passes (default: 60)
    SYNC_ON_STARTUP: Run a pass immediately on startup (default: true)
    SYNC_MAX_RETRIES: Attempts per scheduled pass (default: 3)
    SYNC_RETRY_DELAY_MINUTES: Base delay between attempts (default: 5)
    DATABASE_URL: PostgreSQL checkpoint store; in-memory when unset
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .api.exceptions import ConfigurationError

REQUIRED_KEYS = ("BPDM_GATE_URL", "BPDM_POOL_URL")
CREDENTIAL_KEYS = ("BPDM_CLIENT_ID", "BPDM_CLIENT_SECRET", "BPDM_TOKEN_URL")


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() == "true"


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{key} must be an integer, got '{raw}'",
            missing_keys=[key],
            cause=e,
        ) from e


@dataclass
class BridgeConfig:
    """Configuration of the Gate -> Pool bridge."""

    gate_url: str
    pool_url: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_url: Optional[str] = None
    page_size: int = 100
    interval_minutes: int = 60
    sync_on_startup: bool = True
    max_retries: int = 3
    retry_delay_minutes: int = 5
    database_url: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret and self.token_url)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "BridgeConfig":
        """Load the configuration, reading a ``.env`` file first if present.

        Raises:
            ConfigurationError: If a required key is missing, only part of
                the credentials is set, or a number cannot be parsed
        """
        if dotenv:
            load_dotenv()

        missing = [key for key in REQUIRED_KEYS if not os.getenv(key)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

        present = [key for key in CREDENTIAL_KEYS if os.getenv(key)]
        if present and len(present) != len(CREDENTIAL_KEYS):
            absent = [key for key in CREDENTIAL_KEYS if key not in present]
            raise ConfigurationError(
                f"Incomplete OAuth2 credentials, missing: {', '.join(absent)}",
                missing_keys=absent,
            )

        page_size = _env_int("SYNC_PAGE_SIZE", 100)
        if page_size < 1:
            raise ConfigurationError(
                f"SYNC_PAGE_SIZE must be positive, got {page_size}",
                missing_keys=["SYNC_PAGE_SIZE"],
            )

        return cls(
            gate_url=os.environ["BPDM_GATE_URL"],
            pool_url=os.environ["BPDM_POOL_URL"],
            client_id=os.getenv("BPDM_CLIENT_ID"),
            client_secret=os.getenv("BPDM_CLIENT_SECRET"),
            token_url=os.getenv("BPDM_TOKEN_URL"),
            page_size=page_size,
            interval_minutes=_env_int("SYNC_INTERVAL_MINUTES", 60),
            sync_on_startup=_env_bool("SYNC_ON_STARTUP", "true"),
            max_retries=max(1, _env_int("SYNC_MAX_RETRIES", 3)),
            retry_delay_minutes=_env_int("SYNC_RETRY_DELAY_MINUTES", 5),
            database_url=os.getenv("DATABASE_URL") or None,
        )

    def __repr__(self):
        return (
            f"BridgeConfig("
            f"gate={self.gate_url}, "
            f"pool={self.pool_url}, "
            f"auth={'oauth2' if self.has_credentials else 'none'}, "
            f"page_size={self.page_size}, "
            f"interval={self.interval_minutes}m, "
            f"startup={self.sync_on_startup}, "
            f"checkpoint={'postgres' if self.database_url else 'memory'})"
        )
