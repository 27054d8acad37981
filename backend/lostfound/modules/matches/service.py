"""Match pipeline: candidate discovery, scoring, link persistence and side effects.

Automatic runs never raise: storage errors for one item are logged and that
item simply yields no match this round (the next sweep retries it).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Tuple

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...errors import Forbidden, InvalidOperation, NotFound, TransientStorageFailure
from ...extensions import db
from ...models.item import Item
from ...models.match_link import MatchLink
from ...models.types import utcnow
from ...models.user import User
from ..conversations.service import ConversationService
from ..notifications.service import try_emit
from .scoring import ScoringWeights, SimilarityScorer

logger = logging.getLogger(__name__)


@dataclass
class MatchSuggestion:
    original_item: Item
    matched_item: Item
    score: float
    matched_at: datetime


class MatchingService:
    def __init__(
        self,
        scorer: SimilarityScorer | None = None,
        conversations: ConversationService | None = None,
        threshold: float = 0.7,
        candidate_limit: int = 50,
        top_n: int = 5,
        date_window_days: int = 7,
        sweep_batch: int = 100,
    ):
        self.scorer = scorer or SimilarityScorer()
        self.conversations = conversations or ConversationService()
        self.threshold = threshold
        self.candidate_limit = candidate_limit
        self.top_n = top_n
        self.date_window_days = date_window_days
        self.sweep_batch = sweep_batch

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "MatchingService":
        return cls(
            scorer=SimilarityScorer(ScoringWeights.from_config(config)),
            conversations=ConversationService.from_config(config),
            threshold=float(config.get("MATCH_THRESHOLD", 0.7)),
            candidate_limit=int(config.get("MATCH_CANDIDATE_LIMIT", 50)),
            top_n=int(config.get("MATCH_TOP_N", 5)),
            date_window_days=int(config.get("MATCH_DATE_WINDOW_DAYS", 7)),
            sweep_batch=int(config.get("MATCH_SWEEP_BATCH", 100)),
        )

    # ---- candidate discovery and ranking ----

    def find_candidates(self, item: Item) -> List[Item]:
        """Active opposite-type items within the date window, capped, storage order."""
        around = item.incident_date()
        if around is None:
            return []
        start = around - timedelta(days=self.date_window_days)
        end = around + timedelta(days=self.date_window_days)
        q = Item.query.filter(
            Item.type == item.opposite_type,
            Item.status == "active",
            Item.id != item.id,
            or_(
                Item.occurred_on.between(start, end),
                and_(
                    Item.occurred_on.is_(None),
                    Item.created_at.between(
                        datetime.combine(start, datetime.min.time()),
                        datetime.combine(end, datetime.max.time()),
                    ),
                ),
            ),
        )
        if item.category and item.category != "other":
            q = q.filter(Item.category == item.category)
        return q.order_by(Item.id).limit(self.candidate_limit).all()

    def rank(self, item: Item, candidates: List[Item]) -> List[Tuple[Item, float]]:
        scored = [(cand, self.scorer.score(item, cand)) for cand in candidates]
        strong = [(cand, s) for cand, s in scored if s >= self.threshold]
        strong.sort(key=lambda x: x[1], reverse=True)
        return strong[: self.top_n]

    # ---- pipeline ----

    def process_matches(self, item_id: int) -> List[Tuple[Item, float]]:
        """Match one item against its candidates. Never raises."""
        try:
            item = db.session.get(Item, item_id)
            if item is None:
                logger.info("matching skipped: item %s not found", item_id)
                return []
            strong = self.rank(item, self.find_candidates(item))
        except Exception:
            db.session.rollback()
            logger.exception("matching failed for item %s", item_id)
            return []

        if not strong:
            logger.debug("no strong matches for item %s", item_id)
            return []

        accepted: List[Tuple[Item, float]] = []
        for cand, score in strong:
            cand_id = cand.id
            try:
                self.process_match(item, cand, score)
                accepted.append((cand, score))
            except Exception:
                db.session.rollback()
                logger.exception("could not record match %s -> %s", item_id, cand_id)
        logger.info("processed %d matches for item %s", len(accepted), item_id)
        return accepted

    def process_match(self, item_a: Item, item_b: Item, score: float, match_type: str = "auto") -> bool:
        """Link a pair both ways, notify both owners and open their conversation.

        Returns False without side effects when the pair is already linked.
        """
        if item_a.id == item_b.id:
            raise InvalidOperation("Cannot match an item with itself")
        if item_a.type == item_b.type:
            raise InvalidOperation(f"Cannot match two {item_a.type} items")
        already = MatchLink.query.filter_by(item_id=item_a.id, matched_item_id=item_b.id).first()
        if already is not None:
            logger.debug("match %s -> %s already exists", item_a.id, item_b.id)
            return False

        now = utcnow()
        db.session.add_all([
            MatchLink(item_id=item_a.id, matched_item_id=item_b.id, score=score, matched_at=now),
            MatchLink(item_id=item_b.id, matched_item_id=item_a.id, score=score, matched_at=now),
        ])
        item_a.match_score = score
        item_b.match_score = score
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent run linked the same pair first
            db.session.rollback()
            logger.info("match %s <-> %s was linked concurrently", item_a.id, item_b.id)
            return False
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStorageFailure("Could not save match") from exc

        self._notify_owner(item_a, item_b, score, match_type)
        self._notify_owner(item_b, item_a, score, match_type)
        self.conversations.create_from_match(item_a, item_b)
        logger.info("matched %s <-> %s with score %.4f (%s)", item_a.id, item_b.id, score, match_type)
        return True

    def _notify_owner(self, item: Item, other: Item, score: float, match_type: str) -> None:
        if not item.reporter_user_id:
            return
        pct = int(round(score * 100))
        try_emit(
            item.reporter_user_id,
            "match_found",
            "Potential Match Found!",
            f'We found a {pct}% match for your {item.type} item "{item.title}". Check your dashboard for details.',
            item_id=item.id,
            sender_id=other.reporter_user_id,
            payload={
                "matchedItemId": other.id,
                "originalItemId": item.id,
                "score": score,
                "matchType": match_type,
            },
        )

    def run_global_matching(self) -> int:
        """Sweep a bounded batch of active items; per-item failures don't stop it."""
        try:
            rows = (
                Item.query.with_entities(Item.id)
                .filter(Item.status == "active")
                .order_by(Item.id)
                .limit(self.sweep_batch)
                .all()
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("sweep could not list active items")
            return 0

        processed = 0
        for (item_id,) in rows:
            try:
                self.process_matches(item_id)
                processed += 1
            except Exception:
                db.session.rollback()
                logger.exception("sweep failed on item %s", item_id)
        logger.info("global matching completed; processed %d items", processed)
        return processed

    def process_manual_match(self, item_id_a: int, item_id_b: int, acting_user_id: int) -> float:
        """Force a match regardless of threshold; records the computed score."""
        item_a = db.session.get(Item, item_id_a)
        item_b = db.session.get(Item, item_id_b)
        if item_a is None or item_b is None:
            raise NotFound("One or both items not found")
        if item_a.id == item_b.id:
            raise InvalidOperation("Cannot match an item with itself")
        if item_a.type == item_b.type:
            raise InvalidOperation("A match needs one lost and one found item")
        actor = db.session.get(User, acting_user_id)
        if actor is None:
            raise NotFound("User not found")
        if not actor.is_admin and acting_user_id not in (item_a.reporter_user_id, item_b.reporter_user_id):
            raise Forbidden("Only an admin or an owner of one of the items can match them")

        score = self.scorer.score(item_a, item_b)
        self.process_match(item_a, item_b, score, match_type="manual")
        logger.info("manual match %s <-> %s by user %s", item_id_a, item_id_b, acting_user_id)
        return score

    # ---- read side ----

    def get_user_match_suggestions(self, user_id: int) -> List[MatchSuggestion]:
        links = (
            MatchLink.query.join(Item, MatchLink.item_id == Item.id)
            .filter(Item.reporter_user_id == user_id, Item.status == "active")
            .all()
        )
        suggestions = [
            MatchSuggestion(
                original_item=link.item,
                matched_item=link.matched_item,
                score=float(link.score or 0),
                matched_at=link.matched_at,
            )
            for link in links
            if link.matched_item is not None
        ]
        suggestions.sort(key=lambda s: (s.score, s.matched_at), reverse=True)
        return suggestions

    def matches_for_item(self, item_id: int, user_id: int) -> List[MatchLink]:
        item = db.session.get(Item, item_id)
        if item is None:
            raise NotFound("Item not found")
        if item.reporter_user_id != user_id:
            raise Forbidden("Not authorized to view matches for this item")
        return sorted(item.match_links, key=lambda link: link.score, reverse=True)


def get_matching_service() -> MatchingService:
    return MatchingService.from_config(current_app.config)
