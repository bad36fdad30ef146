"""Small helpers shared across breezeflow."""

from .clock import Clock, ensure_utc, from_iso, to_iso, utcnow
from .retry import compute_backoff, schedule_retry

__all__ = [
    "Clock",
    "compute_backoff",
    "ensure_utc",
    "from_iso",
    "schedule_retry",
    "to_iso",
    "utcnow",
]
