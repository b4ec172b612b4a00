"""Bearer token authentication for usage endpoints."""
from __future__ import annotations

from typing import Any, Dict

import jwt
from fastapi import Header, HTTPException, status

from src.core.config import settings
from src.services.tiers import TierName


def require_auth(authorization: str = Header(...)) -> Dict[str, Any]:
    """Validate a bearer token and return the user, tier and decoded claims.

    The ``sub`` claim identifies the user. The optional ``tier`` claim names
    the subscription tier; tokens without one are treated as free tier.
    """

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
        )
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User missing in token",
        )

    tier = payload.get("tier") or TierName.FREE.value
    return {"user_id": user_id, "tier": str(tier), "claims": payload}
