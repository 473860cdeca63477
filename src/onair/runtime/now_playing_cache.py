"""In-process cache for now-playing responses.

Each stateless instance keeps its own single entry per channel. Cached bodies
carry absolute ``startedAt``/``endsAt`` instants, so serving one a little
later is still correct; the TTL only has to expire before the response
shape changes (the crossfade lead window opens, or the track ends).
Failures are never cached.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Any

MS_PER_S = 1000


@dataclass
class _Entry:
    body: dict[str, Any]
    expires_at_ms: int


def cache_ttl_seconds(
    body: dict[str, Any],
    now_ms: int,
    *,
    crossfade_lead_ms: int,
    max_ttl_s: int = 60,
    waiting_ttl_s: int = 5,
) -> int:
    """TTL for a now-playing body.

    waiting                  -> waiting_ttl_s
    playing, before lead     -> seconds until the lead window opens, in [1, max]
    playing, inside lead     -> 1
    """
    if body.get("state") != "playing" or body.get("endsAt") is None:
        return waiting_ttl_s
    lead_opens_ms = body["endsAt"] - crossfade_lead_ms
    if now_ms >= lead_opens_ms:
        return 1
    seconds = math.floor((lead_opens_ms - now_ms) / MS_PER_S)
    return max(1, min(seconds, max_ttl_s))


class NowPlayingCache:
    def __init__(self, *, crossfade_lead_ms: int, max_ttl_s: int = 60, waiting_ttl_s: int = 5) -> None:
        self._lead_ms = crossfade_lead_ms
        self._max_ttl_s = max_ttl_s
        self._waiting_ttl_s = waiting_ttl_s
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, channel_id: str, now_ms: int) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(channel_id)
            if entry is None:
                return None
            if now_ms >= entry.expires_at_ms:
                del self._entries[channel_id]
                return None
            return entry.body

    def put(self, channel_id: str, body: dict[str, Any], now_ms: int) -> int:
        """Cache ``body``; returns the TTL in seconds, or 0 if it was not cached."""
        ttl = cache_ttl_seconds(
            body,
            now_ms,
            crossfade_lead_ms=self._lead_ms,
            max_ttl_s=self._max_ttl_s,
            waiting_ttl_s=self._waiting_ttl_s,
        )
        expires_at_ms = now_ms + ttl * MS_PER_S
        if body.get("state") == "playing" and body.get("endsAt") is not None:
            # A playing body is never served past its track's end, nor past
            # the opening of the lead window when it was built before it
            expires_at_ms = min(expires_at_ms, body["endsAt"])
            lead_opens_ms = body["endsAt"] - self._lead_ms
            if now_ms < lead_opens_ms:
                expires_at_ms = min(expires_at_ms, lead_opens_ms)
        if expires_at_ms <= now_ms:
            return 0
        with self._lock:
            self._entries[channel_id] = _Entry(body=body, expires_at_ms=expires_at_ms)
        return ttl

    def invalidate(self, channel_id: str | None = None) -> None:
        with self._lock:
            if channel_id is None:
                self._entries.clear()
            else:
                self._entries.pop(channel_id, None)
