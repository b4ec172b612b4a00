"""Database models package exports."""

from src.db.models.usage_tracking import UsageTracking

__all__ = [
    "UsageTracking",
]
