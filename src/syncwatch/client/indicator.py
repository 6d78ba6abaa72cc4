"""Terminal rendering of an observer's sync status.

This module provides:
- format_status: One-line, colored description of an ObservedState
- format_last_sync: Relative "synced N minutes ago" text
"""

from __future__ import annotations

from datetime import datetime, timezone

import click

from syncwatch.client.reducer import ObservedState
from syncwatch.core.types import SyncState

# Symbol and color per state
STATUS_STYLES = {
    SyncState.IDLE: ("✓", "green"),
    SyncState.SYNCING: ("↻", "blue"),
    SyncState.ERROR: ("✗", "red"),
}


def format_last_sync(last_sync_time: datetime | None, now: datetime | None = None) -> str:
    """Describe when the last successful sync finished."""
    if last_sync_time is None:
        return "Never synced"
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - last_sync_time).total_seconds()))
    if seconds < 60:
        return "Synced just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"Synced {minutes} minute{'s' if minutes != 1 else ''} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"Synced {hours} hour{'s' if hours != 1 else ''} ago"
    days = seconds // 86400
    return f"Synced {days} day{'s' if days != 1 else ''} ago"


def format_status(
    state: ObservedState,
    progress_text: str | None = None,
    label: str | None = None,
    now: datetime | None = None,
    color: bool = True,
) -> str:
    """Render one observer's status line.

    Args:
        state: Observed state to render.
        progress_text: Animated progress label (e.g. "42%").
        label: Prefix naming the observer (e.g. the project id).
        now: Reference time for relative timestamps.
        color: Apply ANSI colors.

    Returns:
        Single line of text.
    """
    symbol, fg = STATUS_STYLES[state.sync_status]

    if state.sync_status == SyncState.SYNCING:
        text = "Syncing"
        if state.syncing_project_id:
            text += f" project {state.syncing_project_id}"
        if progress_text:
            text += f" {progress_text}"
        if state.status_message:
            text += f" - {state.status_message}"
    elif state.sync_status == SyncState.ERROR:
        text = f"Error: {state.error_message}" if state.error_message else "Sync error"
    else:
        text = format_last_sync(state.last_sync_time, now)

    if state.has_partial_sync and state.sync_status != SyncState.SYNCING:
        partial = state.partial_sync_progress
        if partial:
            text += f" (partial sync {partial.completed}/{partial.total}, refresh to resume)"
        else:
            text += " (partial sync, refresh to resume)"

    line = f"{symbol} {text}"
    if label:
        line = f"{label}: {line}"
    return click.style(line, fg=fg) if color else line
