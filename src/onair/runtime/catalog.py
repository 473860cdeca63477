"""Catalog Store adapters.

The catalog belongs to ingestion. The scheduler reads candidates from it and
bumps play counts; nothing else. Play-count increments are best-effort
counters: a lost increment under a race is acceptable.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Protocol, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from onair.domain.entities import Track
from onair.infra.db import store_errors
from onair.infra.uow import session as uow_session
from onair.runtime.schedule_types import TrackInfo


@runtime_checkable
class CatalogStore(Protocol):
    """Read side of the catalog as consumed by the scheduler."""

    def list_candidates(self, exclude_recent: Iterable[int] = ()) -> list[TrackInfo]:
        """Return all broadcastable tracks, minus ``exclude_recent``."""

    def get_tracks(self, track_ids: Iterable[int]) -> dict[int, TrackInfo]:
        """Return the subset of ``track_ids`` that still exists."""

    def increment_play_count(self, track_id: int) -> None:
        """Best-effort play counter bump."""


def track_info(row: Track) -> TrackInfo:
    return TrackInfo(
        id=row.id,
        duration_ms=row.duration_ms,
        play_count=row.play_count,
        tip_weight=row.tip_weight,
        created_at_ms=row.created_at_ms,
        artist=row.artist,
        title=row.title,
    )


class SqlCatalogStore:
    """Catalog backed by the ``tracks`` table."""

    STORE_NAME = "catalog"

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory

    def list_candidates(self, exclude_recent: Iterable[int] = ()) -> list[TrackInfo]:
        excluded = set(exclude_recent)
        with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
            rows = db.scalars(select(Track).order_by(Track.id)).all()
            return [track_info(row) for row in rows if row.id not in excluded]

    def get_tracks(self, track_ids: Iterable[int]) -> dict[int, TrackInfo]:
        ids = set(track_ids)
        if not ids:
            return {}
        with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
            rows = db.scalars(select(Track).where(Track.id.in_(ids))).all()
            return {row.id: track_info(row) for row in rows}

    def increment_play_count(self, track_id: int) -> None:
        with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
            db.execute(update(Track).where(Track.id == track_id).values(play_count=Track.play_count + 1))


class InMemoryCatalogStore:
    """Process-local catalog for tests and simulation."""

    def __init__(self, tracks: Iterable[TrackInfo] = ()) -> None:
        self._lock = threading.Lock()
        self._tracks: dict[int, TrackInfo] = {t.id: t for t in tracks}

    def add(self, track: TrackInfo) -> None:
        with self._lock:
            self._tracks[track.id] = track

    def remove(self, track_id: int) -> None:
        with self._lock:
            self._tracks.pop(track_id, None)

    def list_candidates(self, exclude_recent: Iterable[int] = ()) -> list[TrackInfo]:
        excluded = set(exclude_recent)
        with self._lock:
            return [t for tid, t in sorted(self._tracks.items()) if tid not in excluded]

    def get_tracks(self, track_ids: Iterable[int]) -> dict[int, TrackInfo]:
        with self._lock:
            return {tid: self._tracks[tid] for tid in set(track_ids) if tid in self._tracks}

    def increment_play_count(self, track_id: int) -> None:
        with self._lock:
            track = self._tracks.get(track_id)
            if track is not None:
                self._tracks[track_id] = replace(track, play_count=track.play_count + 1)
