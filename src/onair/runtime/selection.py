"""
Selection Policy - choose the next track to append to the committed queue.

Pure logic: (candidates, recently played ids, now) -> track id. Nothing here
touches a store; callers persist the result.

Weighting combines three normalized signals:

* freshness - exponential decay on track age (half-life configurable)
* tips - proportional boost relative to the best-tipped candidate
* play count - boost for under-played tracks relative to the most-played one

Candidates are filtered through an exclusion ladder so that recently played
tracks (and recently heard artists) are avoided whenever the catalog allows it.
"""

from __future__ import annotations

import math
import random
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass

from onair.infra.exceptions import EmptyCatalogError
from onair.runtime.schedule_types import TrackInfo

DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class SelectionConfig:
    """Policy knobs. Defaults are tuning starting points, not canonical values."""

    anti_repeat_window: int = 5
    artist_diversity_window: int = 3
    half_life_days: float = 10.0
    tip_boost: float = 1.0
    play_count_boost: float = 1.0
    min_weight: float = 0.001

    def __post_init__(self) -> None:
        if self.half_life_days <= 0:
            raise ValueError("half_life_days must be greater than zero")
        if self.anti_repeat_window < 0 or self.artist_diversity_window < 0:
            raise ValueError("exclusion windows must be non-negative")
        if self.min_weight <= 0:
            raise ValueError("min_weight must be greater than zero")

    @property
    def decay_constant(self) -> float:
        return math.log(2) / (self.half_life_days * DAY_MS)

    @classmethod
    def from_settings(cls, settings) -> SelectionConfig:
        return cls(
            anti_repeat_window=settings.anti_repeat_window,
            artist_diversity_window=settings.artist_diversity_window,
            half_life_days=settings.freshness_half_life_days,
            tip_boost=settings.tip_boost,
            play_count_boost=settings.play_count_boost,
            min_weight=settings.min_weight,
        )


def compute_weights(
    candidates: Sequence[TrackInfo],
    now_ms: int,
    config: SelectionConfig | None = None,
) -> list[float]:
    """Return one weight per candidate, in candidate order.

    Normalization is relative to the candidate set passed in, so the same
    track can weigh differently against a different field.
    """
    cfg = config or SelectionConfig()
    if not candidates:
        return []

    max_tip = max(max(t.tip_weight, 0.0) for t in candidates)
    max_plays = max(max(t.play_count, 0) for t in candidates)

    weights: list[float] = []
    for track in candidates:
        age_ms = max(0, now_ms - track.created_at_ms)
        freshness = math.exp(-cfg.decay_constant * age_ms)

        tip_norm = max(track.tip_weight, 0.0) / max_tip if max_tip > 0 else 0.0
        tip_factor = 1.0 + cfg.tip_boost * tip_norm

        play_norm = max(track.play_count, 0) / max_plays if max_plays > 0 else 0.0
        play_factor = 1.0 + cfg.play_count_boost * (1.0 - play_norm)

        weights.append(max(freshness * tip_factor * play_factor, cfg.min_weight))
    return weights


def _recent_artists(
    recently_played: Sequence[int],
    by_id: dict[int, TrackInfo],
    window: int,
) -> set[str]:
    if window <= 0:
        return set()
    artists: set[str] = set()
    for track_id in reversed(recently_played):
        track = by_id.get(track_id)
        if track is not None and track.artist:
            artists.add(track.artist)
        if len(artists) >= window:
            break
    return artists


def eligible_candidates(
    candidates: Collection[TrackInfo],
    recently_played: Sequence[int],
    config: SelectionConfig | None = None,
) -> list[TrackInfo]:
    """Apply the exclusion ladder and return the first non-empty rung.

    1. exclude the last K recent tracks and tracks by recently heard artists
    2. exclude the last K recent tracks
    3. exclude only the immediately previous track
    4. no exclusion (a one-track catalog loops)
    """
    cfg = config or SelectionConfig()
    pool = sorted(candidates, key=lambda t: t.id)
    if not pool:
        return []

    window = cfg.anti_repeat_window
    recent_ids = set(recently_played[-window:]) if window > 0 else set()
    by_id = {t.id: t for t in pool}
    artists = _recent_artists(recently_played, by_id, cfg.artist_diversity_window)

    rungs = [
        lambda t: t.id not in recent_ids and t.artist not in artists,
        lambda t: t.id not in recent_ids,
    ]
    if recently_played:
        previous = recently_played[-1]
        rungs.append(lambda t: t.id != previous)

    for keep in rungs:
        eligible = [t for t in pool if keep(t)]
        if eligible:
            return eligible
    return pool


def select_next(
    candidates: Collection[TrackInfo],
    recently_played: Sequence[int],
    now_ms: int,
    *,
    config: SelectionConfig | None = None,
    rng: random.Random | None = None,
) -> int:
    """Pick the next track id by weighted random sampling.

    Args:
        candidates: Catalog tracks eligible for broadcast. Must be non-empty.
        recently_played: Track ids, oldest first; the tail is the most recent.
        now_ms: Current wall time, used for the freshness decay.
        config: Policy knobs.
        rng: Random source. A fresh, OS-seeded generator is used per call
            when omitted; repeatability is not a goal, fairness is.

    Raises:
        EmptyCatalogError: If ``candidates`` is empty.
    """
    cfg = config or SelectionConfig()
    if not candidates:
        raise EmptyCatalogError("no candidates to select from")

    rand = rng or random.Random()
    eligible = eligible_candidates(candidates, recently_played, cfg)
    weights = compute_weights(eligible, now_ms, cfg)

    total = sum(weights)
    if total <= 0 or len(set(weights)) == 1:
        return rand.choice(eligible).id

    return rand.choices(eligible, weights=weights, k=1)[0].id


def preview_selection(
    candidates: Collection[TrackInfo],
    recently_played: Iterable[int],
    now_ms: int,
    depth: int,
    *,
    config: SelectionConfig | None = None,
    rng: random.Random | None = None,
) -> list[int]:
    """Simulate ``depth`` consecutive picks, feeding each pick back as history.

    Used to fill several queue slots at once; never mutates anything.
    """
    if depth <= 0:
        return []
    if not candidates:
        raise EmptyCatalogError("no candidates to select from")
    rand = rng or random.Random()
    history = list(recently_played)
    picks: list[int] = []
    for _ in range(depth):
        pick = select_next(candidates, history, now_ms, config=config, rng=rand)
        picks.append(pick)
        history.append(pick)
    return picks
