"""Core module - Shared config and types."""

from syncwatch.core.config import ServerConfig
from syncwatch.core.types import SyncState

__all__ = [
    # Config
    "ServerConfig",
    # Types
    "SyncState",
]
