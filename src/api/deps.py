"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.session import get_db
from src.repositories.usage_repo import UsageRepo
from src.services.usage import UsageService


async def get_db_session(
    session: AsyncSession = Depends(get_db),
) -> AsyncGenerator[AsyncSession, None]:
    yield session


def get_usage_service(db: AsyncSession = Depends(get_db_session)) -> UsageService:
    return UsageService(UsageRepo(db))
