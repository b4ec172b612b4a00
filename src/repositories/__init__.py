"""Repository layer package."""

from src.repositories.usage_repo import UsageRepo

__all__ = [
    "UsageRepo",
]
