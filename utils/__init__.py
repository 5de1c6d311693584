"""Utility modules for cross-cutting concerns."""

from utils.timezone import Clock, now_utc, to_utc
