"""Wiring for one broadcast channel.

Bundles the stores, scheduler, clock and cache that the HTTP API and the CLI
share, built from ``Settings``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from onair.infra.settings import Settings
from onair.runtime.advancement import AdvancementDaemon, BroadcastScheduler, SchedulerConfig
from onair.runtime.anchor_store import AnchorStore, SqlAnchorStore
from onair.runtime.catalog import CatalogStore, SqlCatalogStore
from onair.runtime.clock import Clock, SystemClock
from onair.runtime.now_playing_cache import NowPlayingCache
from onair.runtime.selection import SelectionConfig


@dataclass
class BroadcastRuntime:
    channel_id: str
    anchor_store: AnchorStore
    catalog: CatalogStore
    scheduler: BroadcastScheduler
    clock: Clock
    crossfade_lead_ms: int
    queue_preview_depth: int
    advance_on_read: bool
    advance_interval_seconds: float
    cache: NowPlayingCache | None = None

    def daemon(self) -> AdvancementDaemon:
        return AdvancementDaemon(self.scheduler, interval_seconds=self.advance_interval_seconds)


def build_runtime(
    settings: Settings,
    *,
    session_factory: Callable[[], Session] | None = None,
    anchor_store: AnchorStore | None = None,
    catalog: CatalogStore | None = None,
    clock: Clock | None = None,
) -> BroadcastRuntime:
    clock = clock or SystemClock()
    anchor_store = anchor_store or SqlAnchorStore(settings.channel_id, session_factory)
    catalog = catalog or SqlCatalogStore(session_factory)

    cache = None
    if settings.now_playing_cache_enabled:
        cache = NowPlayingCache(
            crossfade_lead_ms=settings.crossfade_lead_ms,
            max_ttl_s=settings.now_playing_cache_max_ttl_s,
            waiting_ttl_s=settings.waiting_cache_ttl_s,
        )

    scheduler = BroadcastScheduler(
        anchor_store,
        catalog,
        clock=clock,
        config=SchedulerConfig.from_settings(settings),
        selection=SelectionConfig.from_settings(settings),
        on_commit=(lambda snapshot: cache.invalidate(snapshot.channel_id)) if cache else None,
    )
    return BroadcastRuntime(
        channel_id=settings.channel_id,
        anchor_store=anchor_store,
        catalog=catalog,
        scheduler=scheduler,
        clock=clock,
        crossfade_lead_ms=settings.crossfade_lead_ms,
        queue_preview_depth=settings.queue_preview_depth,
        advance_on_read=settings.advance_on_read,
        advance_interval_seconds=settings.advance_interval_seconds,
        cache=cache,
    )
