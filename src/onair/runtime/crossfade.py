"""
Crossfade Gain Engine.

Equal-power curve: the outgoing gain follows cos(p * pi/2) and the incoming
gain follows cos((1 - p) * pi/2), so gain_out^2 + gain_in^2 == 1 across the
whole transition and there is no loudness dip at the midpoint.
"""

from __future__ import annotations

import math

from onair.runtime.schedule_types import CrossfadeFrame


def gains(position: float) -> tuple[float, float]:
    """Return ``(gain_outgoing, gain_incoming)`` for ``position`` in [0, 1].

    Out-of-range positions are clamped.
    """
    pos = max(0.0, min(1.0, float(position)))
    gain_outgoing = math.cos(pos * 0.5 * math.pi)
    gain_incoming = math.cos((1.0 - pos) * 0.5 * math.pi)
    return gain_outgoing, gain_incoming


def frame(position: float) -> CrossfadeFrame:
    gain_outgoing, gain_incoming = gains(position)
    return CrossfadeFrame(gain_outgoing=gain_outgoing, gain_incoming=gain_incoming)


def crossfade_position(now_ms: int, ends_at_ms: int, fade_ms: int) -> float:
    """Map wall-clock progress into a transition position.

    The fade occupies the final ``fade_ms`` of the outgoing track: 0 before the
    fade window opens, 1 at (and after) ``ends_at_ms``.
    """
    if fade_ms <= 0:
        return 1.0 if now_ms >= ends_at_ms else 0.0
    fade_start_ms = ends_at_ms - fade_ms
    return max(0.0, min(1.0, (now_ms - fade_start_ms) / fade_ms))


def crossfade_frames(steps: int) -> list[CrossfadeFrame]:
    """Sample the curve at ``steps`` evenly spaced positions, both ends included."""
    if steps < 2:
        raise ValueError("steps must be at least 2")
    return [frame(i / (steps - 1)) for i in range(steps)]
