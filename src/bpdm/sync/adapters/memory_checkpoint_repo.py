"""In-memory checkpoint repository.

Used when no DATABASE_URL is configured: the checkpoint survives between
passes of one scheduler process, but a restart triggers a full resync.
"""

from datetime import datetime
from typing import Optional

from ..domain.ports import ISyncCheckpointRepository


class InMemoryCheckpointRepository(ISyncCheckpointRepository):
    """Process-local implementation of ISyncCheckpointRepository."""

    def __init__(self, last_sync: Optional[datetime] = None):
        self._last_sync = last_sync
        self._locked = False

    async def get_last_sync(self) -> Optional[datetime]:
        return self._last_sync

    async def save_last_sync(self, synced_at: datetime) -> None:
        self._last_sync = synced_at

    async def try_acquire_lock(self) -> bool:
        if self._locked:
            return False
        self._locked = True
        return True

    async def release_lock(self) -> None:
        self._locked = False
