"""
Advancement loop tests.

Drives BroadcastScheduler.tick() with explicit instants against in-memory
stores (and once against sqlite), checking seed/refill/advance transitions,
boundary-based start times, and conflict handling.
"""

from __future__ import annotations

import random
import time
from unittest.mock import MagicMock, patch

import pytest

from onair.infra.exceptions import StoreUnavailableError
from onair.runtime.advancement import AdvancementDaemon, BroadcastScheduler, SchedulerConfig
from onair.runtime.anchor_store import InMemoryAnchorStore, SqlAnchorStore
from onair.runtime.catalog import InMemoryCatalogStore, SqlCatalogStore
from onair.runtime.schedule_types import AdvanceOutcome, AnchorSnapshot, CommitResult
from onair.usecases import catalog_ops


def _scheduler(anchor_store, catalog, *, lookahead=5, seed=1, **kwargs):
    return BroadcastScheduler(
        anchor_store,
        catalog,
        config=SchedulerConfig(channel_id=anchor_store.channel_id, lookahead_length=lookahead, **kwargs),
        rng=random.Random(seed),
    )


def test_seed_when_no_anchor(anchor_store, catalog):
    report = _scheduler(anchor_store, catalog).tick(5_000)
    assert report.outcome is AdvanceOutcome.SEEDED
    anchor = anchor_store.read()
    assert anchor.started_at_ms == 5_000
    assert len(anchor.committed_queue) == 5
    assert anchor.recent_history == (anchor.active_track_id,)
    assert anchor.active_track_id not in anchor.committed_queue
    assert anchor.active_duration_ms == catalog.get_tracks([anchor.active_track_id])[anchor.active_track_id].duration_ms


def test_seed_with_empty_catalog_is_an_outcome_not_an_error(anchor_store):
    report = _scheduler(anchor_store, InMemoryCatalogStore()).tick(0)
    assert report.outcome is AdvanceOutcome.EMPTY_CATALOG
    assert anchor_store.read() is None


def test_idle_while_active_track_is_valid(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    before = anchor_store.read()
    report = scheduler.tick(1_000)
    assert report.outcome is AdvanceOutcome.IDLE
    assert anchor_store.read() == before


def test_refill_keeps_active_track_and_extends_queue(anchor_store, catalog):
    anchor_store.seed(
        AnchorSnapshot(
            channel_id="global",
            active_track_id=1,
            active_duration_ms=31_000,
            started_at_ms=0,
            committed_queue=(2,),
            recent_history=(1,),
            updated_at_ms=0,
        )
    )
    report = _scheduler(anchor_store, catalog).tick(1_000)
    assert report.outcome is AdvanceOutcome.REFILLED
    anchor = anchor_store.read()
    assert anchor.active_track_id == 1
    assert anchor.started_at_ms == 0
    assert anchor.committed_queue[0] == 2
    assert len(anchor.committed_queue) == 5
    assert anchor.updated_at_ms > 0


def test_advance_starts_at_computed_boundary_not_now(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    first = anchor_store.read()
    late = first.ends_at_ms + 500

    report = scheduler.tick(late)

    assert report.outcome is AdvanceOutcome.ADVANCED
    anchor = anchor_store.read()
    assert anchor.active_track_id == first.committed_queue[0]
    assert anchor.started_at_ms == first.ends_at_ms
    assert anchor.committed_queue[:4] == first.committed_queue[1:]
    assert len(anchor.committed_queue) == 5
    assert anchor.recent_history[-1] == anchor.active_track_id


def test_no_drift_after_many_advances(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog, seed=3)
    scheduler.tick(1_000)
    initial = anchor_store.read().started_at_ms
    jitter = random.Random(99)
    played_durations = []

    for _ in range(40):
        anchor = anchor_store.read()
        played_durations.append(anchor.active_duration_ms)
        scheduler.tick(anchor.ends_at_ms + jitter.randint(0, 999))

    assert anchor_store.read().started_at_ms == initial + sum(played_durations)


def test_committed_queue_has_no_adjacent_duplicates(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog, seed=5)
    scheduler.tick(0)
    for _ in range(25):
        anchor = anchor_store.read()
        sequence = [anchor.active_track_id, *anchor.committed_queue]
        assert all(a != b for a, b in zip(sequence, sequence[1:]))
        scheduler.tick(anchor.ends_at_ms)


def test_two_track_catalog_alternates(anchor_store, track_factory):
    catalog = InMemoryCatalogStore([track_factory(1, 60_000), track_factory(2, 30_000)])
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    for _ in range(6):
        anchor = anchor_store.read()
        sequence = [anchor.active_track_id, *anchor.committed_queue]
        assert all(a != b for a, b in zip(sequence, sequence[1:]))
        scheduler.tick(anchor.ends_at_ms)


def test_catchup_walks_several_boundaries_in_one_commit(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    first = anchor_store.read()
    durations = catalog.get_tracks(first.committed_queue)
    q = first.committed_queue
    # Land inside the third queued track
    now = first.ends_at_ms + durations[q[0]].duration_ms + durations[q[1]].duration_ms + 10

    report = scheduler.tick(now)

    assert report.outcome is AdvanceOutcome.ADVANCED
    assert report.steps == 3
    assert report.activated == list(q[:3])
    anchor = anchor_store.read()
    assert anchor.active_track_id == q[2]
    assert anchor.started_at_ms == first.ends_at_ms + durations[q[0]].duration_ms + durations[q[1]].duration_ms
    assert anchor.started_at_ms <= now < anchor.ends_at_ms


def test_catchup_beyond_limit_reanchors_at_now(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog, max_catchup_steps=2)
    scheduler.tick(0)
    now = 10_000_000
    report = scheduler.tick(now)
    assert report.outcome is AdvanceOutcome.ADVANCED
    assert report.steps == 3
    anchor = anchor_store.read()
    assert anchor.started_at_ms == now


def test_deleted_queue_head_is_skipped(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    first = anchor_store.read()
    catalog.remove(first.committed_queue[0])

    scheduler.tick(first.ends_at_ms)

    anchor = anchor_store.read()
    assert anchor.active_track_id == first.committed_queue[1]
    assert first.committed_queue[0] not in anchor.committed_queue


def test_dropping_deleted_entry_never_replays_the_ended_track(anchor_store, track_factory):
    catalog = InMemoryCatalogStore([track_factory(i, 30_000) for i in (1, 2, 3)])
    anchor_store.seed(
        AnchorSnapshot(
            channel_id="global",
            active_track_id=1,
            active_duration_ms=30_000,
            started_at_ms=0,
            committed_queue=(2, 1, 3),
            recent_history=(1,),
        )
    )
    catalog.remove(2)

    report = _scheduler(anchor_store, catalog, lookahead=3).tick(30_000)

    assert report.activated == [3]
    anchor = anchor_store.read()
    assert anchor.active_track_id == 3
    assert anchor.started_at_ms == 30_000
    sequence = [1, anchor.active_track_id, *anchor.committed_queue]
    assert all(a != b for a, b in zip(sequence, sequence[1:]))


def test_single_track_catalog_loops(anchor_store, track_factory):
    catalog = InMemoryCatalogStore([track_factory(1, 30_000)])
    scheduler = _scheduler(anchor_store, catalog, lookahead=2)
    scheduler.tick(0)
    scheduler.tick(30_000)
    anchor = anchor_store.read()
    assert anchor.active_track_id == 1
    assert anchor.started_at_ms == 30_000


def test_advance_with_empty_catalog_leaves_anchor_untouched(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    before = anchor_store.read()
    for track in catalog.list_candidates():
        catalog.remove(track.id)

    report = scheduler.tick(before.ends_at_ms + 1)

    assert report.outcome is AdvanceOutcome.EMPTY_CATALOG
    assert anchor_store.read() == before


def test_play_counts_increment_for_each_activated_track(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    scheduler.tick(0)
    first = anchor_store.read()
    assert catalog.get_tracks([first.active_track_id])[first.active_track_id].play_count == 1

    scheduler.tick(first.ends_at_ms)
    nxt = anchor_store.read().active_track_id
    assert catalog.get_tracks([nxt])[nxt].play_count == 1


def test_play_count_failure_does_not_undo_commit(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    with patch.object(catalog, "increment_play_count", side_effect=StoreUnavailableError("catalog")):
        report = scheduler.tick(0)
    assert report.outcome is AdvanceOutcome.SEEDED
    assert anchor_store.read() is not None


def test_lost_race_is_a_conflict_outcome(anchor_store, catalog):
    winner = _scheduler(anchor_store, catalog, seed=1)
    loser = _scheduler(anchor_store, catalog, seed=2)
    winner.tick(0)
    stale = anchor_store.read()

    winner.tick(stale.ends_at_ms)
    committed = anchor_store.read()

    with patch.object(anchor_store, "read", return_value=stale):
        report = loser.tick(stale.ends_at_ms)

    assert report.outcome is AdvanceOutcome.CONFLICT
    assert anchor_store.read() == committed


def test_concurrent_seed_conflict(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    with patch.object(anchor_store, "seed", return_value=CommitResult.CONFLICT):
        report = scheduler.tick(0)
    assert report.outcome is AdvanceOutcome.CONFLICT


def test_on_commit_called_with_new_snapshot(anchor_store, catalog):
    seen = []
    scheduler = BroadcastScheduler(
        anchor_store,
        catalog,
        config=SchedulerConfig(lookahead_length=3),
        rng=random.Random(1),
        on_commit=seen.append,
    )
    scheduler.tick(0)
    assert seen == [anchor_store.read()]


def test_store_failure_propagates_from_tick(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    with patch.object(anchor_store, "read", side_effect=StoreUnavailableError("anchor store")):
        with pytest.raises(StoreUnavailableError):
            scheduler.tick(0)


def test_scheduler_against_sqlite(session_factory):
    with session_factory() as db:
        for i in range(1, 7):
            catalog_ops.add_track(db, title=f"T{i}", artist=f"a{i}", duration_ms=20_000 + i, created_at_ms=0)
        db.commit()

    store = SqlAnchorStore("global", session_factory)
    catalog = SqlCatalogStore(session_factory)
    scheduler = _scheduler(store, catalog, lookahead=3)

    assert scheduler.tick(0).outcome is AdvanceOutcome.SEEDED
    first = store.read()
    assert scheduler.tick(first.ends_at_ms + 250).outcome is AdvanceOutcome.ADVANCED
    second = store.read()
    assert second.started_at_ms == first.ends_at_ms
    assert second.updated_at_ms > first.updated_at_ms
    plays = catalog.get_tracks([first.active_track_id, second.active_track_id])
    assert plays[first.active_track_id].play_count == 1
    assert plays[second.active_track_id].play_count == 1


def test_config_validation():
    with pytest.raises(ValueError):
        SchedulerConfig(lookahead_length=0)
    with pytest.raises(ValueError):
        SchedulerConfig(max_catchup_steps=0)


def test_daemon_run_once_absorbs_store_failures():
    scheduler = MagicMock()
    scheduler.tick.side_effect = StoreUnavailableError("anchor store", "down")
    daemon = AdvancementDaemon(scheduler, interval_seconds=0.01)
    assert daemon.run_once() is None


def test_daemon_start_stop(anchor_store, catalog):
    scheduler = _scheduler(anchor_store, catalog)
    daemon = AdvancementDaemon(scheduler, interval_seconds=0.01)
    daemon.start()
    try:
        assert daemon.is_running
        deadline = time.monotonic() + 5
        while anchor_store.read() is None and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        daemon.stop()
    assert not daemon.is_running
    assert anchor_store.read() is not None
