from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...schemas.item import ManualMatchRequestSchema, MatchLinkSchema, MatchSuggestionSchema
from ...security import require_user
from .service import get_matching_service

bp = Blueprint("matches", __name__, url_prefix="/matches")


@bp.get("/suggestions")
def my_suggestions():
    """Stored match links for the caller's active items, best first."""
    uid = require_user()
    suggestions = get_matching_service().get_user_match_suggestions(uid)
    return jsonify({"suggestions": MatchSuggestionSchema(many=True).dump(suggestions)})


@bp.post("/manual")
def manual_match():
    uid = require_user()
    data = ManualMatchRequestSchema().load(request.get_json(silent=True) or {})
    score = get_matching_service().process_manual_match(data["item_id_1"], data["item_id_2"], uid)
    return jsonify({
        "itemId1": data["item_id_1"],
        "itemId2": data["item_id_2"],
        "matchScore": score,
    }), 201


@bp.get("/items/<int:item_id>")
def item_matches(item_id: int):
    uid = require_user()
    links = get_matching_service().matches_for_item(item_id, uid)
    return jsonify({"itemId": item_id, "matches": MatchLinkSchema(many=True).dump(links)})
