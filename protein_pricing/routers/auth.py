"""
auth.py — Session identity endpoints

Sign-in happens upstream (the session cookie carries user_id); these
endpoints report and clear that session.

Called by: main.py (router mount)
Depends on: dependencies.py
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..dependencies import require_user
from ..models import User

router = APIRouter(tags=["auth"])


@router.get("/auth/me")
async def me(user: User = Depends(require_user)):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "organization_id": user.organization_id,
    }


@router.post("/auth/logout")
async def logout(request: Request):
    request.session.clear()
    return JSONResponse({"ok": True})
