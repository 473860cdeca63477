"""
REST API endpoints for the broadcast channel.

Read-only: listeners poll these and reconstruct playback locally. The only
write a read can trigger is an opportunistic advancement when the active
track has ended.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from ...runtime.broadcast_runtime import BroadcastRuntime
from ...usecases import now_playing, queue_view

router = APIRouter(prefix="/api", tags=["broadcast"])


def get_runtime(request: Request) -> BroadcastRuntime:
    """Runtime bundle attached to the app at construction."""
    return request.app.state.runtime


@router.get("/now-playing")
def read_now_playing(runtime: BroadcastRuntime = Depends(get_runtime)) -> dict[str, Any]:
    """What every listener should be hearing right now."""
    now_ms = runtime.clock.now_ms()
    if runtime.cache is not None:
        cached = runtime.cache.get(runtime.channel_id, now_ms)
        if cached is not None:
            return cached

    body = now_playing.get_now_playing(
        runtime.anchor_store,
        runtime.catalog,
        now_ms=now_ms,
        crossfade_lead_ms=runtime.crossfade_lead_ms,
        scheduler=runtime.scheduler if runtime.advance_on_read else None,
    )
    if runtime.cache is not None:
        runtime.cache.put(runtime.channel_id, body, now_ms)
    return body


@router.get("/queue")
def read_queue(
    limit: int | None = Query(None, ge=0, le=50, description="Number of upcoming tracks"),
    runtime: BroadcastRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    """Upcoming committed tracks plus the one currently playing."""
    return queue_view.get_queue(
        runtime.anchor_store,
        runtime.catalog,
        now_ms=runtime.clock.now_ms(),
        limit=runtime.queue_preview_depth if limit is None else limit,
        crossfade_lead_ms=runtime.crossfade_lead_ms,
    )
