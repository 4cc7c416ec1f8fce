"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for authentication, authorization and the
per-user AI rate limits. All routers import from here instead of defining
their own auth logic.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if deactivated
- require_admin raises 403 if user.role != "admin"
- ai_rate_limit: settings.ai_rate_limit_per_minute per user (429 + reset headers)
- deal_action_rate_limit: settings.deal_action_rate_limit_per_minute per user

Called by: all routers
Depends on: models, database, config, rate_limit
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import User
from .rate_limit import check_rate_limit

log = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    try:
        return db.get(User, uid)
    except SQLAlchemyError:
        request.session.clear()
        return None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if deactivated."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not getattr(user, "is_active", True):
        request.session.clear()
        raise HTTPException(403, "Account deactivated — contact admin")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    """Dependency: raises 403 if user is not an admin."""
    if user.role != "admin":
        raise HTTPException(403, "Admin access required")
    return user


# ── Per-user rate limits ──────────────────────────────────────────────


def enforce_rate_limit(user_id, max_requests: int, window_seconds: int = RATE_WINDOW_SECONDS):
    result = check_rate_limit(user_id, max_requests, window_seconds)
    if not result.allowed:
        raise HTTPException(
            429,
            "Rate limit exceeded. Please try again later.",
            headers=result.headers(),
        )
    return result


def ai_rate_limit(user: User = Depends(require_user)) -> User:
    enforce_rate_limit(f"ai:{user.id}", settings.ai_rate_limit_per_minute)
    return user


def deal_action_rate_limit(user: User = Depends(require_user)) -> User:
    enforce_rate_limit(f"deal:{user.id}", settings.deal_action_rate_limit_per_minute)
    return user
