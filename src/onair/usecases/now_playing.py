"""
Now-playing read model.

Resolves the shared anchor at one instant and hydrates track metadata from the
catalog. Listeners only ever see ``playing`` or ``waiting``; internal races are
absorbed here. When the active track has ended (or nothing was ever seeded)
and a scheduler is supplied, one opportunistic advancement pass runs before
resolving again.
"""

from __future__ import annotations

from typing import Any

from ..runtime.advancement import BroadcastScheduler
from ..runtime.anchor_store import AnchorStore
from ..runtime.catalog import CatalogStore
from ..runtime.position import DEFAULT_CROSSFADE_LEAD_MS, resolve
from ..runtime.schedule_types import (
    WAITING_MESSAGES,
    AdvanceOutcome,
    PlaybackState,
    WaitingReason,
)
from .track_wire import track_to_wire

ADVANCE_ON_READ_REASONS = frozenset({WaitingReason.ENDED, WaitingReason.NO_ANCHOR})


def waiting_body(reason: WaitingReason) -> dict[str, Any]:
    return {"state": "waiting", "message": WAITING_MESSAGES[reason]}


def resolve_state(
    anchor_store: AnchorStore,
    now_ms: int,
    *,
    crossfade_lead_ms: int = DEFAULT_CROSSFADE_LEAD_MS,
    scheduler: BroadcastScheduler | None = None,
) -> PlaybackState:
    """Resolve the playback state, advancing once if the anchor is stale."""
    state = resolve(anchor_store.read(), now_ms, crossfade_lead_ms)
    if state.is_playing or scheduler is None or state.reason not in ADVANCE_ON_READ_REASONS:
        return state

    report = scheduler.tick(now_ms)
    if report.outcome is AdvanceOutcome.EMPTY_CATALOG and state.reason is WaitingReason.NO_ANCHOR:
        return PlaybackState.waiting(WaitingReason.EMPTY_CATALOG)
    # Conflicts mean another instance advanced; the re-read observes its anchor
    return resolve(anchor_store.read(), now_ms, crossfade_lead_ms)


def get_now_playing(
    anchor_store: AnchorStore,
    catalog: CatalogStore,
    *,
    now_ms: int,
    crossfade_lead_ms: int = DEFAULT_CROSSFADE_LEAD_MS,
    scheduler: BroadcastScheduler | None = None,
) -> dict[str, Any]:
    """Return the now-playing wire body.

    Shape: ``{state, track?, startedAt?, endsAt?, nextTrack?, message?}``.

    Raises:
        StoreUnavailableError: If the anchor store or catalog is unreachable.
    """
    state = resolve_state(
        anchor_store,
        now_ms,
        crossfade_lead_ms=crossfade_lead_ms,
        scheduler=scheduler,
    )
    if not state.is_playing:
        return waiting_body(state.reason or WaitingReason.ENDED)

    wanted = [state.track_id] + ([state.next_track_id] if state.next_track_id is not None else [])
    tracks = catalog.get_tracks(wanted)
    track = tracks.get(state.track_id)
    if track is None:
        # Active track was removed from the catalog mid-play
        return waiting_body(WaitingReason.ENDED)

    body: dict[str, Any] = {
        "state": "playing",
        "track": track_to_wire(track),
        "startedAt": state.started_at_ms,
        "endsAt": state.ends_at_ms,
    }
    next_track = tracks.get(state.next_track_id) if state.next_track_id is not None else None
    if next_track is not None:
        body["nextTrack"] = track_to_wire(next_track)
    return body
