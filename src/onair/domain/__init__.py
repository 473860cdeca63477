"""
Domain layer - persisted entities.

The catalog (``Track``) is owned by ingestion; the scheduler only reads it and
bumps play counts. ``ScheduleAnchor`` is owned exclusively by the scheduler.
"""
