from __future__ import annotations

from typing import Any

from ..runtime.anchor_store import AnchorStore
from ..runtime.catalog import CatalogStore
from ..runtime.position import DEFAULT_CROSSFADE_LEAD_MS, resolve
from .track_wire import track_to_wire

DEFAULT_QUEUE_DEPTH = 5


def get_queue(
    anchor_store: AnchorStore,
    catalog: CatalogStore,
    *,
    now_ms: int,
    limit: int = DEFAULT_QUEUE_DEPTH,
    crossfade_lead_ms: int = DEFAULT_CROSSFADE_LEAD_MS,
) -> dict[str, Any]:
    """Peek the committed queue. Never mutates the anchor.

    Shape: ``{tracks: [...], currentlyPlaying?}``. Queue entries missing from
    the catalog are skipped; order is the committed order.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")

    anchor = anchor_store.read()
    if anchor is None:
        return {"tracks": []}

    upcoming = list(anchor.committed_queue[:limit])
    state = resolve(anchor, now_ms, crossfade_lead_ms)
    wanted = set(upcoming)
    if state.is_playing:
        wanted.add(state.track_id)
    tracks = catalog.get_tracks(wanted)

    body: dict[str, Any] = {
        "tracks": [track_to_wire(tracks[tid]) for tid in upcoming if tid in tracks],
    }
    if state.is_playing and state.track_id in tracks:
        body["currentlyPlaying"] = track_to_wire(tracks[state.track_id])
    return body
