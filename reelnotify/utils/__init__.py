"""Utility helpers for reusable functionality."""

from .datetime import ensure_utc, to_storage_datetime, utcnow

__all__ = [
    "ensure_utc",
    "to_storage_datetime",
    "utcnow",
]
