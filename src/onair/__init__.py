"""
OnAir - shared-timeline broadcast scheduler.

One always-on channel, many poll-based listeners. Every reader reconstructs
the same "now playing" answer from a single committed schedule anchor.
"""

__version__ = "0.1.0"
