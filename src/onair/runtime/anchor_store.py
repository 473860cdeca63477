"""Schedule Anchor Store.

Single source of truth for one broadcast channel's committed play sequence.

Writes are optimistic: ``commit_advance`` succeeds only while the stored
``updated_at_ms`` still equals the caller's ``expected_updated_at_ms``. Any
number of advancement attempts may race; exactly one wins per logical advance
and the rest get ``CommitResult.CONFLICT``. Readers never lock.

Selection logic stays outside the store: callers compute the refilled queue
before attempting the commit.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Protocol, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from onair.domain.entities import ScheduleAnchor
from onair.infra.db import store_errors
from onair.infra.logging import get_logger
from onair.infra.uow import session as uow_session
from onair.runtime.schedule_types import AnchorSnapshot, CommitResult

logger = get_logger(__name__)


def next_token(previous_updated_at_ms: int, now_ms: int) -> int:
    """Concurrency token for the next mutation; strictly increasing."""
    return max(now_ms, previous_updated_at_ms + 1)


@runtime_checkable
class AnchorStore(Protocol):
    channel_id: str

    def read(self) -> AnchorSnapshot | None:
        """Return the committed anchor, or None before first initialization."""

    def seed(self, snapshot: AnchorSnapshot) -> CommitResult:
        """Create the anchor; CONFLICT if another writer created it first."""

    def commit_advance(
        self,
        expected_updated_at_ms: int,
        *,
        active_track_id: int,
        active_duration_ms: int,
        started_at_ms: int,
        committed_queue: Sequence[int],
        recent_history: Sequence[int],
        now_ms: int,
    ) -> CommitResult:
        """Conditionally replace the anchor."""


def _snapshot(row: ScheduleAnchor) -> AnchorSnapshot:
    return AnchorSnapshot(
        channel_id=row.channel_id,
        active_track_id=row.active_track_id,
        active_duration_ms=row.active_duration_ms,
        started_at_ms=row.started_at_ms,
        committed_queue=tuple(row.committed_queue or ()),
        recent_history=tuple(row.recent_history or ()),
        updated_at_ms=row.updated_at_ms,
    )


class SqlAnchorStore:
    """Anchor persisted as one ``schedule_anchors`` row per channel.

    The conditional UPDATE is a single-statement atomic commit, so readers
    always observe a self-consistent anchor.
    """

    STORE_NAME = "anchor store"

    def __init__(self, channel_id: str, session_factory: Callable[[], Session] | None = None) -> None:
        self.channel_id = channel_id
        self._session_factory = session_factory

    def read(self) -> AnchorSnapshot | None:
        with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
            row = db.scalars(
                select(ScheduleAnchor).where(ScheduleAnchor.channel_id == self.channel_id)
            ).one_or_none()
            return _snapshot(row) if row is not None else None

    def seed(self, snapshot: AnchorSnapshot) -> CommitResult:
        row = ScheduleAnchor(
            channel_id=self.channel_id,
            active_track_id=snapshot.active_track_id,
            active_duration_ms=snapshot.active_duration_ms,
            started_at_ms=snapshot.started_at_ms,
            committed_queue=list(snapshot.committed_queue),
            recent_history=list(snapshot.recent_history),
            updated_at_ms=snapshot.updated_at_ms,
        )
        try:
            with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
                db.add(row)
        except IntegrityError:
            logger.debug("anchor_conflict", channel_id=self.channel_id, phase="seed")
            return CommitResult.CONFLICT
        return CommitResult.COMMITTED

    def commit_advance(
        self,
        expected_updated_at_ms: int,
        *,
        active_track_id: int,
        active_duration_ms: int,
        started_at_ms: int,
        committed_queue: Sequence[int],
        recent_history: Sequence[int],
        now_ms: int,
    ) -> CommitResult:
        stmt = (
            update(ScheduleAnchor)
            .where(
                ScheduleAnchor.channel_id == self.channel_id,
                ScheduleAnchor.updated_at_ms == expected_updated_at_ms,
            )
            .values(
                active_track_id=active_track_id,
                active_duration_ms=active_duration_ms,
                started_at_ms=started_at_ms,
                committed_queue=list(committed_queue),
                recent_history=list(recent_history),
                updated_at_ms=next_token(expected_updated_at_ms, now_ms),
            )
            .execution_options(synchronize_session=False)
        )
        with store_errors(self.STORE_NAME), uow_session(self._session_factory) as db:
            result = db.execute(stmt)
            if result.rowcount != 1:
                return CommitResult.CONFLICT
        return CommitResult.COMMITTED


class InMemoryAnchorStore:
    """Process-local anchor store; the lock makes compare-and-set atomic."""

    def __init__(self, channel_id: str = "global") -> None:
        self.channel_id = channel_id
        self._lock = threading.Lock()
        self._snapshot: AnchorSnapshot | None = None

    def read(self) -> AnchorSnapshot | None:
        with self._lock:
            return self._snapshot

    def seed(self, snapshot: AnchorSnapshot) -> CommitResult:
        with self._lock:
            if self._snapshot is not None:
                return CommitResult.CONFLICT
            self._snapshot = replace(snapshot, channel_id=self.channel_id)
            return CommitResult.COMMITTED

    def commit_advance(
        self,
        expected_updated_at_ms: int,
        *,
        active_track_id: int,
        active_duration_ms: int,
        started_at_ms: int,
        committed_queue: Sequence[int],
        recent_history: Sequence[int],
        now_ms: int,
    ) -> CommitResult:
        with self._lock:
            current = self._snapshot
            if current is None or current.updated_at_ms != expected_updated_at_ms:
                return CommitResult.CONFLICT
            self._snapshot = AnchorSnapshot(
                channel_id=self.channel_id,
                active_track_id=active_track_id,
                active_duration_ms=active_duration_ms,
                started_at_ms=started_at_ms,
                committed_queue=tuple(committed_queue),
                recent_history=tuple(recent_history),
                updated_at_ms=next_token(expected_updated_at_ms, now_ms),
            )
            return CommitResult.COMMITTED
