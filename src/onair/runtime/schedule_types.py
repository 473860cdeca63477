"""Value types shared by the scheduler runtime.

Time units: milliseconds since the UNIX epoch (int) for instants, milliseconds
(int) for durations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from onair.infra.exceptions import ValidationError


@dataclass(frozen=True)
class TrackInfo:
    """Read-only view of a catalog track, as the scheduler sees it."""

    id: int
    duration_ms: int
    play_count: int = 0
    tip_weight: float = 0.0
    created_at_ms: int = 0
    artist: str = ""
    title: str = ""

    def __post_init__(self) -> None:
        if self.duration_ms <= 0:
            raise ValidationError(f"track {self.id}: duration_ms must be > 0 (got {self.duration_ms})")


@dataclass(frozen=True)
class AnchorSnapshot:
    """One committed value of the schedule anchor.

    ``recent_history`` is oldest-first and ends with the active track.
    """

    channel_id: str
    active_track_id: int
    active_duration_ms: int
    started_at_ms: int
    committed_queue: tuple[int, ...] = ()
    recent_history: tuple[int, ...] = ()
    updated_at_ms: int = 0

    def __post_init__(self) -> None:
        if self.active_duration_ms <= 0:
            raise ValidationError(
                f"anchor {self.channel_id!r}: active_duration_ms must be > 0 (got {self.active_duration_ms})"
            )
        # Accept lists from JSON columns
        object.__setattr__(self, "committed_queue", tuple(self.committed_queue))
        object.__setattr__(self, "recent_history", tuple(self.recent_history))

    @property
    def ends_at_ms(self) -> int:
        return self.started_at_ms + self.active_duration_ms


class PlaybackStatus(str, Enum):
    PLAYING = "playing"
    WAITING = "waiting"


class WaitingReason(str, Enum):
    NO_ANCHOR = "no_anchor"
    NOT_STARTED = "not_started"
    ENDED = "ended"
    EMPTY_CATALOG = "empty_catalog"
    UNAVAILABLE = "unavailable"


WAITING_MESSAGES: dict[WaitingReason, str] = {
    WaitingReason.NO_ANCHOR: "Waiting for first track",
    WaitingReason.NOT_STARTED: "Waiting for the broadcast to start",
    WaitingReason.ENDED: "Waiting for next track",
    WaitingReason.EMPTY_CATALOG: "Waiting for first track",
    WaitingReason.UNAVAILABLE: "Broadcast temporarily unavailable",
}


@dataclass(frozen=True)
class PlaybackState:
    """Derived observable state; recomputed on every read, never persisted."""

    status: PlaybackStatus
    track_id: int | None = None
    started_at_ms: int | None = None
    ends_at_ms: int | None = None
    elapsed_ms: int | None = None
    remaining_ms: int | None = None
    next_track_id: int | None = None
    reason: WaitingReason | None = None

    @classmethod
    def waiting(cls, reason: WaitingReason) -> PlaybackState:
        return cls(status=PlaybackStatus.WAITING, reason=reason)

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.PLAYING


@dataclass(frozen=True)
class CrossfadeFrame:
    gain_outgoing: float
    gain_incoming: float

    @property
    def power(self) -> float:
        return self.gain_outgoing**2 + self.gain_incoming**2


class CommitResult(str, Enum):
    COMMITTED = "committed"
    CONFLICT = "conflict"


class AdvanceOutcome(str, Enum):
    IDLE = "idle"
    SEEDED = "seeded"
    ADVANCED = "advanced"
    REFILLED = "refilled"
    CONFLICT = "conflict"
    EMPTY_CATALOG = "empty_catalog"


@dataclass
class AdvanceReport:
    """What one advancement invocation did."""

    outcome: AdvanceOutcome
    snapshot: AnchorSnapshot | None = None
    steps: int = 0
    activated: list[int] = field(default_factory=list)
