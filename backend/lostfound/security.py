from __future__ import annotations

import os
from typing import Optional, Tuple

from flask import g
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from .errors import Unauthorized


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("SECRET_KEY", "change-me")
    return URLSafeTimedSerializer(secret_key=secret, salt="lostfound-auth")


def issue_token(user_id: int, role: str) -> str:
    """Sign ``{"id", "role"}`` for the bearer header. Issuing happens outside this service."""
    return _serializer().dumps({"id": int(user_id), "role": str(role or "student")})


def verify_token(token: str) -> Tuple[Optional[int], Optional[str]]:
    """Return ``(user_id, role)`` for a valid token, else ``(None, None)``.

    Max age comes from AUTH_TOKEN_MAX_AGE seconds (default 30 days).
    """
    max_age_default = 60 * 60 * 24 * 30
    try:
        max_age = int(os.getenv("AUTH_TOKEN_MAX_AGE", str(max_age_default)))
    except ValueError:
        max_age = max_age_default
    try:
        data = _serializer().loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return (None, None)
    if not isinstance(data, dict) or data.get("id") is None:
        return (None, None)
    try:
        uid = int(data["id"])
    except (TypeError, ValueError):
        return (None, None)
    role = str(data["role"]) if data.get("role") is not None else None
    return (uid, role)


def current_user_id() -> Optional[int]:
    return getattr(g, "current_user_id", None)


def require_user() -> int:
    uid = current_user_id()
    if uid is None:
        raise Unauthorized("Authentication required")
    return uid
