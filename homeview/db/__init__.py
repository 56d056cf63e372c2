"""
Database init - Exports for routes
"""

from .base import Base, TimestampMixin, as_utc_naive, utc_day, utcnow
from homeview.database import engine, SessionLocal, get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "as_utc_naive",
    "utc_day",
    "utcnow",
    "engine",
    "SessionLocal",
    "get_db",
]
