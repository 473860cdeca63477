from __future__ import annotations

from typing import Any

from ..runtime.schedule_types import TrackInfo


def track_to_wire(track: TrackInfo) -> dict[str, Any]:
    return {
        "id": track.id,
        "title": track.title,
        "artist": track.artist,
        "durationMs": track.duration_ms,
        "playCount": track.play_count,
    }
