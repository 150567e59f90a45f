"""DoltDB client, sync repositories and an in-memory store.

Provides:
- Per-thread PyMySQL connection to DoltDB (MySQL-compatible protocol)
- SyncStore contract with DoltStore and InMemoryStore backends
- SyncLogRepository for the sync_log table
"""

from .client import check_connection, dolt_commit, execute_many, execute_query
from .memory_store import InMemoryStore
from .repository import TABLES, DoltStore, SyncLogRepository, SyncStore, TableSpec, UpsertResult

__all__ = [
    # Client
    "execute_query",
    "execute_many",
    "check_connection",
    "dolt_commit",
    # Stores
    "SyncStore",
    "DoltStore",
    "InMemoryStore",
    "SyncLogRepository",
    "UpsertResult",
    "TableSpec",
    "TABLES",
]
