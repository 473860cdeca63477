from __future__ import annotations

import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.entities import Track


def _track_dict(track: Track) -> dict[str, Any]:
    return {
        "id": track.id,
        "title": track.title,
        "artist": track.artist,
        "duration_ms": track.duration_ms,
        "play_count": track.play_count,
        "tip_weight": track.tip_weight,
        "created_at_ms": track.created_at_ms,
    }


def add_track(
    db: Session,
    *,
    title: str,
    artist: str,
    duration_ms: int,
    tip_weight: float = 0.0,
    play_count: int = 0,
    created_at_ms: int | None = None,
) -> dict[str, Any]:
    """Register a catalog row and return it as a dict.

    Operator glue only: file validation and ingestion happen upstream.
    """
    if not title:
        raise ValueError("title is required")
    if duration_ms <= 0:
        raise ValueError("duration-ms must be greater than zero")
    if tip_weight < 0:
        raise ValueError("tip-weight must be non-negative")
    if play_count < 0:
        raise ValueError("play-count must be non-negative")

    track = Track(
        title=title,
        artist=artist,
        duration_ms=duration_ms,
        tip_weight=tip_weight,
        play_count=play_count,
        created_at_ms=created_at_ms if created_at_ms is not None else time.time_ns() // 1_000_000,
    )
    db.add(track)
    db.flush()
    return _track_dict(track)


def list_tracks(db: Session) -> list[dict[str, Any]]:
    return [_track_dict(t) for t in db.scalars(select(Track).order_by(Track.id)).all()]
