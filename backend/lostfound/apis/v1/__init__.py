from flask import Blueprint, Flask, g, request, current_app

from ...extensions import db
from ...models.user import User
from ...modules.conversations.routes import bp as conversations_bp
from ...modules.matches.routes import bp as matches_bp
from ...modules.notifications.routes import bp as notifications_bp
from ...security import verify_token


def _user_id_from_request() -> int | None:
    auth = request.headers.get("Authorization") or ""
    if auth.lower().startswith("bearer "):
        uid, _ = verify_token(auth[7:].strip())
        return uid
    if not current_app.config.get("DEBUG"):
        return None
    # Dev-only header shortcut
    raw = (request.headers.get("X-User-Id") or "").strip()
    try:
        cand = int(raw)
    except ValueError:
        return None
    return cand if cand > 0 else None


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # In production only a signed bearer token identifies the caller; in
    # debug an `X-User-Id` header is accepted too.
    @api_v1.before_request
    def _load_current_user():
        uid = _user_id_from_request()
        user = db.session.get(User, uid) if uid is not None else None
        if user is not None and not user.is_active:
            user = None
        g.current_user = user
        g.current_user_id = user.id if user is not None else None

    api_v1.register_blueprint(conversations_bp)
    api_v1.register_blueprint(matches_bp)
    api_v1.register_blueprint(notifications_bp)

    app.register_blueprint(api_v1)
