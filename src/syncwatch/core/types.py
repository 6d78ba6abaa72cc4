"""Shared types for syncwatch.

This module defines types and enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Coarse phase of the sync job.

    Reported by the server (SyncJob) and tracked by every client-side
    observer (StatusPoller).
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"

    @classmethod
    def parse(cls, value: object) -> SyncState:
        """Parse a wire value, falling back to IDLE for anything unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.IDLE
