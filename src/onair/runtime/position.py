"""
Position Resolver.

Pure logic: (anchor, now, crossfade lead) -> PlaybackState. Every reader that
observes the same anchor at the same instant computes the same state, so
listeners agree without sharing a connection.
"""

from __future__ import annotations

from onair.infra.exceptions import ValidationError
from onair.runtime.schedule_types import (
    AnchorSnapshot,
    PlaybackState,
    PlaybackStatus,
    WaitingReason,
)

DEFAULT_CROSSFADE_LEAD_MS = 10_000


def resolve(
    anchor: AnchorSnapshot | None,
    now_ms: int,
    crossfade_lead_ms: int = DEFAULT_CROSSFADE_LEAD_MS,
) -> PlaybackState:
    """
    Resolve the observable playback state at ``now_ms``.

    Rules:
        no anchor                      -> waiting (no_anchor)
        elapsed < 0 (clock skew)       -> waiting (not_started)
        elapsed >= active duration     -> waiting (ended); never extrapolates
        otherwise                      -> playing; next_track_id is the queue
                                          head once remaining <= lead

    Raises:
        ValidationError: If ``crossfade_lead_ms`` is negative.
    """
    if crossfade_lead_ms < 0:
        raise ValidationError("crossfade_lead_ms must be non-negative")
    if anchor is None:
        return PlaybackState.waiting(WaitingReason.NO_ANCHOR)

    elapsed_ms = now_ms - anchor.started_at_ms
    if elapsed_ms < 0:
        return PlaybackState.waiting(WaitingReason.NOT_STARTED)
    if elapsed_ms >= anchor.active_duration_ms:
        return PlaybackState.waiting(WaitingReason.ENDED)

    remaining_ms = anchor.active_duration_ms - elapsed_ms
    next_track_id = None
    if remaining_ms <= crossfade_lead_ms and anchor.committed_queue:
        next_track_id = anchor.committed_queue[0]

    return PlaybackState(
        status=PlaybackStatus.PLAYING,
        track_id=anchor.active_track_id,
        started_at_ms=anchor.started_at_ms,
        ends_at_ms=anchor.ends_at_ms,
        elapsed_ms=elapsed_ms,
        remaining_ms=remaining_ms,
        next_track_id=next_track_id,
    )


def is_active_valid(anchor: AnchorSnapshot, now_ms: int) -> bool:
    """True while the active track still covers ``now_ms``."""
    return now_ms < anchor.ends_at_ms
