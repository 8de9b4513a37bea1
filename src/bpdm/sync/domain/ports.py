"""Port interfaces for the Gate/Pool sync.

Ports define the contracts between the use cases and the infrastructure.
Use cases depend only on these ABCs; the adapters package provides the HTTP
and PostgreSQL implementations, tests provide in-memory fakes.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import datetime
from typing import Optional

from .entities import (
    ChangelogEntry,
    GateRecord,
    LsaType,
    Page,
    PoolCreateRequest,
    PoolUpdateRequest,
    SharingState,
    StartAfterPage,
    UpsertResponse,
)


class IGateAPI(ABC):
    """Port for the Gate service: changelog, input records, sharing states."""

    @abstractmethod
    async def fetch_changelog_page(
        self,
        from_time: Optional[datetime],
        page: int,
        size: int,
    ) -> Page[ChangelogEntry]:
        """Fetch one page of changelog entries of all partner types.

        Args:
            from_time: Only entries after this instant; None for the full log
            page: Zero-based page index
            size: Page size
        """
        ...

    @abstractmethod
    async def fetch_records_page(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
        start_after: Optional[str],
        size: int,
    ) -> StartAfterPage[GateRecord]:
        """Fetch one cursor page of input records by external id.

        Returns records of the class matching ``lsa_type``. Unknown ids are
        simply absent; malformed entries are counted in ``invalid_entries``.
        """
        ...

    @abstractmethod
    async def fetch_sharing_states_page(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
        page: int,
        size: int,
    ) -> Page[SharingState]:
        """Fetch one page of sharing states for the given external ids."""
        ...

    @abstractmethod
    async def upsert_sharing_state(self, state: SharingState) -> None:
        """Insert or replace the ledger row keyed by (external_id, lsa_type)."""
        ...


class IPoolAPI(ABC):
    """Port for the Pool service batch endpoints."""

    @abstractmethod
    async def create(
        self,
        lsa_type: LsaType,
        requests: list[PoolCreateRequest],
    ) -> UpsertResponse:
        """Create new golden records; errors are keyed by request index."""
        ...

    @abstractmethod
    async def update(
        self,
        lsa_type: LsaType,
        requests: list[PoolUpdateRequest],
    ) -> UpsertResponse:
        """Update existing golden records; errors are keyed by BPN."""
        ...


class ISyncCheckpointRepository(ABC):
    """Port for the persisted sync checkpoint and the single-pass guard."""

    @abstractmethod
    async def get_last_sync(self) -> Optional[datetime]:
        """Start time of the last completed pass, None if there was none."""
        ...

    @abstractmethod
    async def save_last_sync(self, synced_at: datetime) -> None:
        """Persist the start time of a completed pass."""
        ...

    @abstractmethod
    async def try_acquire_lock(self) -> bool:
        """Claim the right to run a pass; False if someone else holds it."""
        ...

    @abstractmethod
    async def release_lock(self) -> None:
        """Give up a lock obtained with try_acquire_lock()."""
        ...
