"""Adapters layer - Infrastructure implementations for the Gate/Pool sync.

This layer contains concrete implementations of the ports defined in the domain layer:
- GateAPI: BPDM Gate implementation of IGateAPI
- PoolAPI: BPDM Pool implementation of IPoolAPI
- GateFieldMapper / PoolFieldMapper: JSON <-> entity mapping
- PostgresCheckpointRepository: PostgreSQL implementation of ISyncCheckpointRepository
- InMemoryCheckpointRepository: process-local ISyncCheckpointRepository
"""

from .field_mapper import GateFieldMapper, PoolFieldMapper
from .gate_api_adapter import GateAPI
from .memory_checkpoint_repo import InMemoryCheckpointRepository
from .pool_api_adapter import PoolAPI
from .postgres_checkpoint_repo import PostgresCheckpointRepository

__all__ = [
    # API adapters
    "GateAPI",
    "PoolAPI",
    # Mappers
    "GateFieldMapper",
    "PoolFieldMapper",
    # Checkpoint stores
    "InMemoryCheckpointRepository",
    "PostgresCheckpointRepository",
]
