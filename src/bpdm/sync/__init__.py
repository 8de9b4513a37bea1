"""Sync module - Clean Architecture implementation of the Gate -> Pool sync.

Reads business partner changes from the BPDM Gate, shares them with the
BPDM Pool and records the outcome of every record in the Gate's
sharing-state ledger.

Architecture:
    domain/     - Pure domain entities, helpers and port interfaces
    use_cases/  - Business logic orchestration
    adapters/   - Infrastructure implementations (Gate/Pool HTTP, PostgreSQL)
"""

from .domain.entities import (
    AddressGateInput,
    LegalEntityGateInput,
    LsaSyncStatistics,
    LsaType,
    SharingState,
    SharingStateType,
    SiteGateInput,
    SyncResult,
)
from .domain.ports import IGateAPI, IPoolAPI, ISyncCheckpointRepository
from .use_cases import SyncBusinessPartnersUseCase, SyncPhase

__all__ = [
    # Gate Entities
    "AddressGateInput",
    "LegalEntityGateInput",
    "LsaType",
    "SharingState",
    "SharingStateType",
    "SiteGateInput",
    # Result Entities
    "LsaSyncStatistics",
    "SyncResult",
    # Ports
    "IGateAPI",
    "IPoolAPI",
    "ISyncCheckpointRepository",
    # Use cases
    "SyncBusinessPartnersUseCase",
    "SyncPhase",
]
