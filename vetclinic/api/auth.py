from __future__ import annotations

from fastapi import APIRouter, Request, Response

from vetclinic.core.auth import parse_session_token
from vetclinic.core.config import settings
from vetclinic.services.realtime.sessions import sync_registry

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/logout")
def logout(request: Request, response: Response) -> dict:
    user = parse_session_token(request.cookies.get(settings.auth_cookie_name))
    if user:
        # drops the user's channels and every cached query
        sync_registry.release(user.user_id)
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return {"ok": True}


@router.get("/me")
def me(request: Request) -> dict:
    user = getattr(request.state, "user", None)
    if not user:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "user": {
            "id": user.user_id,
            "username": user.username,
            "tenant_id": user.tenant_id,
            "is_admin": user.is_admin,
        },
    }
