"""Scheduler Advancement Loop.

The only time-driven writer of the schedule anchor. One ``tick()`` reads the
anchor, decides which transition applies, computes the new anchor value and
attempts a single conditional commit:

    no anchor                 -> seed (select_next over the catalog, start now)
    active valid, queue short -> refill (same active track, extended queue)
    active valid, queue full  -> idle
    active ended              -> advance (pop queue head, start at the computed
                                 boundary, never at ``now``)

A lost optimistic-concurrency race means another invocation already did the
work; the tick ends without retrying and a later trigger picks up from the new
anchor. Ticks may come from the periodic ``AdvancementDaemon`` or
opportunistically from a read that found the active track ended.

Lifecycle: AdvancementDaemon.start()/stop() run a background daemon thread.
           BroadcastScheduler.tick() can be called directly for testing.
"""

from __future__ import annotations

import random
import threading
from collections.abc import Callable
from dataclasses import dataclass

from onair.infra.exceptions import StoreUnavailableError
from onair.infra.logging import get_logger
from onair.runtime.anchor_store import AnchorStore, next_token
from onair.runtime.catalog import CatalogStore
from onair.runtime.clock import Clock, SystemClock
from onair.runtime.position import is_active_valid
from onair.runtime.schedule_types import (
    AdvanceOutcome,
    AdvanceReport,
    AnchorSnapshot,
    CommitResult,
    TrackInfo,
)
from onair.runtime.selection import SelectionConfig, preview_selection, select_next

logger = get_logger(__name__)


@dataclass(frozen=True)
class SchedulerConfig:
    channel_id: str = "global"
    lookahead_length: int = 5
    history_limit: int = 50
    max_catchup_steps: int = 100

    def __post_init__(self) -> None:
        if self.lookahead_length < 1:
            raise ValueError("lookahead_length must be at least 1")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        if self.max_catchup_steps < 1:
            raise ValueError("max_catchup_steps must be at least 1")

    @classmethod
    def from_settings(cls, settings) -> SchedulerConfig:
        return cls(
            channel_id=settings.channel_id,
            lookahead_length=settings.lookahead_length,
            history_limit=settings.history_limit,
            max_catchup_steps=settings.max_catchup_steps,
        )


class BroadcastScheduler:
    """Advances one channel's schedule anchor."""

    def __init__(
        self,
        anchor_store: AnchorStore,
        catalog: CatalogStore,
        *,
        clock: Clock | None = None,
        config: SchedulerConfig | None = None,
        selection: SelectionConfig | None = None,
        rng: random.Random | None = None,
        on_commit: Callable[[AnchorSnapshot], None] | None = None,
    ) -> None:
        self._store = anchor_store
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._config = config or SchedulerConfig(channel_id=anchor_store.channel_id)
        self._selection = selection or SelectionConfig()
        self._rng = rng
        self._on_commit = on_commit

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def tick(self, now_ms: int | None = None) -> AdvanceReport:
        """Run one advancement pass.

        Raises:
            StoreUnavailableError: If the anchor store or catalog is unreachable.
        """
        now = self._clock.now_ms() if now_ms is None else now_ms
        anchor = self._store.read()

        if anchor is None:
            return self._seed(now)
        if is_active_valid(anchor, now):
            if len(anchor.committed_queue) >= self._config.lookahead_length:
                return AdvanceReport(AdvanceOutcome.IDLE, snapshot=anchor)
            return self._refill(anchor, now)
        return self._advance(anchor, now)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _seed(self, now: int) -> AdvanceReport:
        candidates = self._catalog.list_candidates()
        if not candidates:
            logger.info("catalog_empty", channel_id=self._config.channel_id, phase="seed")
            return AdvanceReport(AdvanceOutcome.EMPTY_CATALOG)

        by_id = {t.id: t for t in candidates}
        active_id = select_next(candidates, (), now, config=self._selection, rng=self._rng)
        queue = self._fill(candidates, [active_id], [], now)

        snapshot = AnchorSnapshot(
            channel_id=self._config.channel_id,
            active_track_id=active_id,
            active_duration_ms=by_id[active_id].duration_ms,
            started_at_ms=now,
            committed_queue=tuple(queue),
            recent_history=(active_id,),
            updated_at_ms=now,
        )
        if self._store.seed(snapshot) is CommitResult.CONFLICT:
            logger.debug("anchor_conflict", channel_id=self._config.channel_id, phase="seed")
            return AdvanceReport(AdvanceOutcome.CONFLICT)

        logger.info(
            "anchor_seeded",
            channel_id=self._config.channel_id,
            track_id=active_id,
            started_at_ms=now,
            queue=list(queue),
        )
        self._committed(snapshot, [active_id])
        return AdvanceReport(AdvanceOutcome.SEEDED, snapshot=snapshot, activated=[active_id])

    def _refill(self, anchor: AnchorSnapshot, now: int) -> AdvanceReport:
        candidates = self._catalog.list_candidates()
        if not candidates:
            logger.info("catalog_empty", channel_id=self._config.channel_id, phase="refill")
            return AdvanceReport(AdvanceOutcome.EMPTY_CATALOG, snapshot=anchor)

        queue = list(anchor.committed_queue)
        queue += self._fill(candidates, list(anchor.recent_history), queue, now)

        result = self._store.commit_advance(
            anchor.updated_at_ms,
            active_track_id=anchor.active_track_id,
            active_duration_ms=anchor.active_duration_ms,
            started_at_ms=anchor.started_at_ms,
            committed_queue=queue,
            recent_history=anchor.recent_history,
            now_ms=now,
        )
        if result is CommitResult.CONFLICT:
            logger.debug("anchor_conflict", channel_id=self._config.channel_id, phase="refill")
            return AdvanceReport(AdvanceOutcome.CONFLICT)

        snapshot = AnchorSnapshot(
            channel_id=self._config.channel_id,
            active_track_id=anchor.active_track_id,
            active_duration_ms=anchor.active_duration_ms,
            started_at_ms=anchor.started_at_ms,
            committed_queue=tuple(queue),
            recent_history=anchor.recent_history,
            updated_at_ms=next_token(anchor.updated_at_ms, now),
        )
        logger.info("queue_refilled", channel_id=self._config.channel_id, queue=queue)
        self._committed(snapshot, [])
        return AdvanceReport(AdvanceOutcome.REFILLED, snapshot=snapshot)

    def _advance(self, anchor: AnchorSnapshot, now: int) -> AdvanceReport:
        candidates = self._catalog.list_candidates()
        if not candidates:
            logger.info("catalog_empty", channel_id=self._config.channel_id, phase="advance")
            return AdvanceReport(AdvanceOutcome.EMPTY_CATALOG, snapshot=anchor)

        by_id = {t.id: t for t in candidates}
        queue = list(anchor.committed_queue)
        history = list(anchor.recent_history)
        active_id = anchor.active_track_id
        duration_ms = anchor.active_duration_ms
        started_at_ms = anchor.started_at_ms
        activated: list[int] = []

        while started_at_ms + duration_ms <= now:
            boundary_ms = started_at_ms + duration_ms
            if len(activated) >= self._config.max_catchup_steps:
                logger.warning(
                    "catchup_reanchored",
                    channel_id=self._config.channel_id,
                    skipped_ms=now - boundary_ms,
                    steps=len(activated),
                )
                boundary_ms = now

            next_track = self._pop_head(queue, by_id, active_id)
            if next_track is None:
                queue += self._fill(candidates, history, queue, now)
                next_track = self._pop_head(queue, by_id, active_id)

            active_id = next_track.id
            duration_ms = next_track.duration_ms
            started_at_ms = boundary_ms
            history.append(active_id)
            activated.append(active_id)
            queue += self._fill(candidates, history, queue, now)

        history = history[-self._config.history_limit :]
        result = self._store.commit_advance(
            anchor.updated_at_ms,
            active_track_id=active_id,
            active_duration_ms=duration_ms,
            started_at_ms=started_at_ms,
            committed_queue=queue,
            recent_history=history,
            now_ms=now,
        )
        if result is CommitResult.CONFLICT:
            logger.debug("anchor_conflict", channel_id=self._config.channel_id, phase="advance")
            return AdvanceReport(AdvanceOutcome.CONFLICT)

        snapshot = AnchorSnapshot(
            channel_id=self._config.channel_id,
            active_track_id=active_id,
            active_duration_ms=duration_ms,
            started_at_ms=started_at_ms,
            committed_queue=tuple(queue),
            recent_history=tuple(history),
            updated_at_ms=next_token(anchor.updated_at_ms, now),
        )
        logger.info(
            "schedule_advanced",
            channel_id=self._config.channel_id,
            steps=len(activated),
            track_id=active_id,
            started_at_ms=started_at_ms,
        )
        self._committed(snapshot, activated)
        return AdvanceReport(AdvanceOutcome.ADVANCED, snapshot=snapshot, steps=len(activated), activated=activated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fill(self, candidates: list[TrackInfo], history: list[int], queue: list[int], now: int) -> list[int]:
        """Picks that bring ``queue`` back up to the lookahead length."""
        missing = self._config.lookahead_length - len(queue)
        if missing <= 0:
            return []
        return preview_selection(
            candidates,
            list(history) + list(queue),
            now,
            missing,
            config=self._selection,
            rng=self._rng,
        )

    @staticmethod
    def _pop_head(queue: list[int], by_id: dict[int, TrackInfo], previous_id: int) -> TrackInfo | None:
        # Entries removed from the catalog since they were queued are dropped,
        # and so is a head that would replay the track that just ended
        while queue:
            track = by_id.get(queue.pop(0))
            if track is None:
                continue
            if track.id == previous_id and len(by_id) > 1:
                continue
            return track
        return None

    def _committed(self, snapshot: AnchorSnapshot, activated: list[int]) -> None:
        for track_id in activated:
            try:
                self._catalog.increment_play_count(track_id)
            except StoreUnavailableError as exc:
                logger.warning("play_count_increment_failed", track_id=track_id, error=str(exc))
        if self._on_commit is not None:
            self._on_commit(snapshot)


class AdvancementDaemon:
    """Periodic driver for :meth:`BroadcastScheduler.tick`."""

    def __init__(self, scheduler: BroadcastScheduler, *, interval_seconds: float = 1.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self._scheduler = scheduler
        self._interval_s = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_report: AdvanceReport | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> AdvanceReport | None:
        try:
            self.last_report = self._scheduler.tick()
        except StoreUnavailableError as exc:
            logger.error("store_unavailable", store=exc.store, error=str(exc))
            return None
        return self.last_report

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"Advancement-{self._scheduler.config.channel_id}",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "advancement_started",
            channel_id=self._scheduler.config.channel_id,
            interval_s=self._interval_s,
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval_s + 5)
            self._thread = None
        logger.info("advancement_stopped", channel_id=self._scheduler.config.channel_id)

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("advancement_failed", channel_id=self._scheduler.config.channel_id)
            self._stop_event.wait(timeout=self._interval_s)
