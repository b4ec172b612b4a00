"""Version 1 API router."""
from fastapi import APIRouter

from src.api.v1.endpoints import usage

api_router = APIRouter()
api_router.include_router(usage.router)
