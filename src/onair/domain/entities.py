"""
Domain entities for OnAir.

Two tables matter to the broadcast scheduler:

* ``tracks`` - the catalog rows the selection policy weighs.
* ``schedule_anchors`` - one row per broadcast channel holding the committed
  play sequence. ``updated_at_ms`` is the optimistic-concurrency token.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Float,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..infra.db import Base


class Track(Base):
    """A catalog entry eligible for broadcast."""

    __tablename__ = "tracks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    artist: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    duration_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    play_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tip_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("duration_ms > 0", name="duration_positive"),
        CheckConstraint("play_count >= 0", name="play_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Track(id={self.id}, title={self.title!r}, duration_ms={self.duration_ms})>"


class ScheduleAnchor(Base):
    """The committed play sequence of one broadcast channel."""

    __tablename__ = "schedule_anchors"

    channel_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    active_track_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # Captured at commit time; boundary math never re-reads the catalog
    active_duration_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    started_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    committed_queue: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    recent_history: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    updated_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (CheckConstraint("active_duration_ms > 0", name="active_duration_positive"),)

    def __repr__(self) -> str:
        return (
            f"<ScheduleAnchor(channel_id={self.channel_id!r}, active_track_id={self.active_track_id}, "
            f"started_at_ms={self.started_at_ms}, updated_at_ms={self.updated_at_ms})>"
        )
