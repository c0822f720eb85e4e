from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from vetclinic.core.config import settings


@dataclass(frozen=True)
class SessionUser:
    user_id: str
    username: str
    tenant_id: str
    is_admin: bool = False


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(token: str) -> bytes:
    padding = "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode((token + padding).encode("ascii"))


def _sign(payload_b64: str) -> str:
    return hmac.new(settings.auth_secret.encode("utf-8"), payload_b64.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_token(*, user_id: str, username: str, tenant_id: str, is_admin: bool = False) -> str:
    now = int(time.time())
    exp = now + int(settings.auth_session_hours * 3600)
    payload = {
        "uid": user_id,
        "usr": username,
        "tnt": tenant_id,
        "adm": bool(is_admin),
        "iat": now,
        "exp": exp,
    }
    payload_json = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    payload_b64 = _b64url_encode(payload_json)
    return payload_b64 + "." + _sign(payload_b64)


def parse_session_token(token: str | None) -> SessionUser | None:
    if not token or "." not in token:
        return None
    payload_b64, sig = token.split(".", 1)
    if not hmac.compare_digest(sig, _sign(payload_b64)):
        return None
    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if int(payload.get("exp", 0)) <= int(time.time()):
        return None
    uid = str(payload.get("uid", "")).strip()
    usr = str(payload.get("usr", "")).strip()
    tnt = str(payload.get("tnt", "")).strip()
    if not uid or not usr or not tnt:
        return None
    return SessionUser(user_id=uid, username=usr, tenant_id=tnt, is_admin=bool(payload.get("adm", False)))


def get_current_user(request: Request) -> SessionUser:
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user
