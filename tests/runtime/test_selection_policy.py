"""
Selection policy tests.

Pure logic: no stores, fixed ``now``, seeded random sources where outcomes
must be reproducible.
"""

from __future__ import annotations

import random

import pytest

from onair.infra.exceptions import EmptyCatalogError
from onair.runtime.selection import (
    DAY_MS,
    SelectionConfig,
    compute_weights,
    eligible_candidates,
    preview_selection,
    select_next,
)

NOW = 1_000 * DAY_MS


def test_empty_candidates_raise(track_factory):
    with pytest.raises(EmptyCatalogError):
        select_next([], [1, 2], NOW)


def test_preview_of_empty_catalog_raises():
    with pytest.raises(EmptyCatalogError):
        preview_selection([], [], NOW, 3)


def test_preview_with_zero_depth_is_empty(track_factory):
    assert preview_selection([track_factory(1)], [], NOW, 0) == []


@pytest.mark.parametrize("seed", range(25))
def test_never_returns_recent_track_when_alternatives_exist(track_factory, seed):
    tracks = [track_factory(i, created_at_ms=NOW) for i in range(1, 11)]
    recent = [3, 7, 1, 9, 4]
    cfg = SelectionConfig(anti_repeat_window=5, artist_diversity_window=0)
    pick = select_next(tracks, recent, NOW, config=cfg, rng=random.Random(seed))
    assert pick not in recent


def test_only_last_k_entries_are_excluded(track_factory):
    tracks = [track_factory(i) for i in range(1, 4)]
    # Window 1: only track 3 (the most recent) is excluded; 1 and 2 are fair game
    cfg = SelectionConfig(anti_repeat_window=1, artist_diversity_window=0)
    eligible = eligible_candidates(tracks, [1, 2, 3], cfg)
    assert [t.id for t in eligible] == [1, 2]


def test_exclusion_relaxes_to_previous_track_only(track_factory):
    tracks = [track_factory(1), track_factory(2)]
    cfg = SelectionConfig(anti_repeat_window=5, artist_diversity_window=0)
    # Both tracks are recent: fall back to avoiding only the immediately previous one
    for seed in range(10):
        assert select_next(tracks, [1, 2], NOW, config=cfg, rng=random.Random(seed)) == 1


def test_single_track_catalog_loops(track_factory):
    only = track_factory(42)
    assert select_next([only], [42, 42, 42], NOW) == 42


def test_artist_diversity_excludes_recent_artists(track_factory):
    tracks = [
        track_factory(1, artist="x"),
        track_factory(2, artist="x"),
        track_factory(3, artist="y"),
    ]
    cfg = SelectionConfig(anti_repeat_window=1, artist_diversity_window=3)
    for seed in range(10):
        assert select_next(tracks, [1], NOW, config=cfg, rng=random.Random(seed)) == 3


def test_artist_diversity_relaxes_before_track_exclusion(track_factory):
    tracks = [track_factory(1, artist="x"), track_factory(2, artist="x")]
    cfg = SelectionConfig(anti_repeat_window=1, artist_diversity_window=3)
    assert [t.id for t in eligible_candidates(tracks, [1], cfg)] == [2]


def test_newer_tracks_weigh_more(track_factory):
    fresh = track_factory(1, created_at_ms=NOW)
    old = track_factory(2, created_at_ms=NOW - 30 * DAY_MS)
    w_fresh, w_old = compute_weights([fresh, old], NOW)
    assert w_fresh > w_old
    # Three half-lives: an eighth of the weight
    assert w_old / w_fresh == pytest.approx(1 / 8, rel=1e-6)


def test_future_dated_tracks_count_as_brand_new(track_factory):
    future = track_factory(1, created_at_ms=NOW + DAY_MS)
    fresh = track_factory(2, created_at_ms=NOW)
    w_future, w_fresh = compute_weights([future, fresh], NOW)
    assert w_future == pytest.approx(w_fresh)


def test_tips_boost_weight(track_factory):
    tipped = track_factory(1, created_at_ms=NOW, tip_weight=5.0)
    untipped = track_factory(2, created_at_ms=NOW, tip_weight=0.0)
    w_tipped, w_untipped = compute_weights([tipped, untipped], NOW)
    assert w_tipped == pytest.approx(2 * w_untipped)


def test_under_played_tracks_weigh_more(track_factory):
    fresh = track_factory(1, created_at_ms=NOW, play_count=0)
    worn = track_factory(2, created_at_ms=NOW, play_count=100)
    w_fresh, w_worn = compute_weights([fresh, worn], NOW)
    assert w_fresh > w_worn


def test_weight_floor(track_factory):
    ancient = track_factory(1, created_at_ms=0)
    cfg = SelectionConfig(min_weight=0.001)
    assert compute_weights([ancient], 10_000 * DAY_MS, cfg) == [0.001]


def test_weighted_sampling_favours_heavier_tracks(track_factory):
    fresh = track_factory(1, created_at_ms=NOW)
    old = track_factory(2, created_at_ms=NOW - 40 * DAY_MS)
    cfg = SelectionConfig(anti_repeat_window=0, artist_diversity_window=0)
    rng = random.Random(7)
    picks = [select_next([fresh, old], [], NOW, config=cfg, rng=rng) for _ in range(2_000)]
    assert picks.count(1) > 10 * picks.count(2)


class _RecordingRandom(random.Random):
    def __init__(self):
        super().__init__(3)
        self.calls: list[str] = []

    def choice(self, seq):
        self.calls.append("choice")
        return super().choice(seq)

    def choices(self, population, weights=None, **kwargs):
        self.calls.append("choices")
        return super().choices(population, weights=weights, **kwargs)


def test_equal_weights_fall_back_to_uniform_choice(track_factory):
    tracks = [track_factory(i, created_at_ms=NOW) for i in range(1, 5)]
    rng = _RecordingRandom()
    select_next(tracks, [], NOW, config=SelectionConfig(anti_repeat_window=0), rng=rng)
    assert rng.calls == ["choice"]


def test_unequal_weights_use_weighted_sampling(track_factory):
    tracks = [track_factory(1, created_at_ms=NOW), track_factory(2, created_at_ms=NOW, tip_weight=1.0)]
    rng = _RecordingRandom()
    select_next(tracks, [], NOW, config=SelectionConfig(anti_repeat_window=0), rng=rng)
    assert rng.calls == ["choices"]


@pytest.mark.parametrize("seed", range(10))
def test_preview_has_no_adjacent_duplicates(track_factory, seed):
    tracks = [track_factory(i, created_at_ms=NOW) for i in range(1, 4)]
    picks = preview_selection(tracks, [1], NOW, 12, rng=random.Random(seed))
    assert len(picks) == 12
    sequence = [1] + picks
    assert all(a != b for a, b in zip(sequence, sequence[1:]))


def test_preview_does_not_repeat_within_window_when_catalog_is_large(track_factory):
    tracks = [track_factory(i, created_at_ms=NOW) for i in range(1, 21)]
    cfg = SelectionConfig(anti_repeat_window=5, artist_diversity_window=0)
    picks = preview_selection(tracks, [], NOW, 15, config=cfg, rng=random.Random(11))
    for i, pick in enumerate(picks):
        assert pick not in picks[max(0, i - 5) : i]


def test_config_validation():
    with pytest.raises(ValueError):
        SelectionConfig(half_life_days=0)
    with pytest.raises(ValueError):
        SelectionConfig(anti_repeat_window=-1)
    with pytest.raises(ValueError):
        SelectionConfig(min_weight=0)
