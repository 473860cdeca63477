"""Client/server clock alignment helpers.

Listeners reconstruct their playback position from ``startedAt`` plus their
estimate of server time. These helpers keep that estimate honest.
"""

from __future__ import annotations

DEFAULT_RESYNC_THRESHOLD_MS = 1_000


def estimate_server_offset(server_time_ms: int, client_send_ms: int, client_receive_ms: int) -> float:
    """Return the offset (ms) to add to client time to get server time.

    Assumes the response spent half of the round trip in flight.
    """
    round_trip_ms = client_receive_ms - client_send_ms
    estimated_server_time = server_time_ms + round_trip_ms / 2
    return estimated_server_time - client_receive_ms


def playback_position_ms(started_at_ms: int, duration_ms: int, server_offset_ms: float, client_now_ms: int) -> float:
    """Expected position inside the active track, clamped to [0, duration]."""
    server_now = client_now_ms + server_offset_ms
    return max(0.0, min(float(duration_ms), server_now - started_at_ms))


def needs_resync(expected_ms: float, actual_ms: float, threshold_ms: int = DEFAULT_RESYNC_THRESHOLD_MS) -> bool:
    return abs(expected_ms - actual_ms) > threshold_ms
