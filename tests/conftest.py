"""
Global test configuration for OnAir.

This module provides global pytest configuration and fixtures.
"""

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project src directory is importable without relying on external environment.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from onair.domain import entities  # noqa: E402,F401
from onair.infra import db as db_module  # noqa: E402
from onair.runtime.anchor_store import InMemoryAnchorStore  # noqa: E402
from onair.runtime.catalog import InMemoryCatalogStore  # noqa: E402
from onair.runtime.clock import SteppedClock  # noqa: E402
from onair.runtime.schedule_types import TrackInfo  # noqa: E402


@pytest.fixture
def engine():
    """In-memory sqlite shared across threads via a single static connection."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    db_module.Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(autouse=True)
def _force_test_db(monkeypatch, request):
    """Point the module-level SessionLocal at the in-memory engine for tests that use it."""
    if "session_factory" in request.fixturenames:
        factory = request.getfixturevalue("session_factory")
        monkeypatch.setattr(db_module, "SessionLocal", factory)


@pytest.fixture
def clock():
    return SteppedClock(0)


def make_track(track_id: int, duration_ms: int = 60_000, **kwargs) -> TrackInfo:
    kwargs.setdefault("title", f"Track {track_id}")
    kwargs.setdefault("artist", f"artist-{track_id}")
    return TrackInfo(id=track_id, duration_ms=duration_ms, **kwargs)


@pytest.fixture
def track_factory():
    return make_track


@pytest.fixture
def catalog():
    return InMemoryCatalogStore([make_track(i, 30_000 + i * 1_000) for i in range(1, 9)])


@pytest.fixture
def anchor_store():
    return InMemoryAnchorStore("global")
