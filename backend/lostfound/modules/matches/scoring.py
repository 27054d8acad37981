from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Protocol, Set

# ---- Fixed vocabularies ----
CAMPUS_LOCATION_TERMS = frozenset({
    "library", "cafeteria", "canteen", "lab", "laboratory", "classroom",
    "auditorium", "gym", "parking", "gate", "entrance", "office", "admin",
})
_STOP = frozenset({"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})


class Scorable(Protocol):
    category: str | None
    title: str | None
    description: str | None
    location: str | None

    def incident_date(self) -> date | None: ...


@dataclass(frozen=True)
class ScoringWeights:
    category: float = 0.3
    location: float = 0.3
    date: float = 0.2
    keyword: float = 0.2

    @property
    def total(self) -> float:
        return self.category + self.location + self.date + self.keyword

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ScoringWeights":
        return cls(
            category=float(config.get("MATCH_WEIGHT_CATEGORY", cls.category)),
            location=float(config.get("MATCH_WEIGHT_LOCATION", cls.location)),
            date=float(config.get("MATCH_WEIGHT_DATE", cls.date)),
            keyword=float(config.get("MATCH_WEIGHT_KEYWORD", cls.keyword)),
        )


def _normalize_loc(s: str | None) -> str:
    return (s or "").strip().lower()


def category_similarity(a: str | None, b: str | None) -> float:
    if not a or not b:
        return 0.0
    return 1.0 if a == b else 0.0


def location_similarity(a: str | None, b: str | None) -> float:
    la = _normalize_loc(a)
    lb = _normalize_loc(b)
    if not la or not lb:
        return 0.0
    if la == lb:
        return 1.0
    # Each shared campus term counts once, however often it repeats in either string
    shared_terms = set(la.split()) & set(lb.split()) & CAMPUS_LOCATION_TERMS
    if shared_terms:
        return min(0.8, 0.3 * len(shared_terms))
    if la in lb or lb in la:
        return 0.6
    return 0.0


def date_similarity(a: date | datetime | None, b: date | datetime | None) -> float:
    if a is None or b is None:
        return 0.0
    if isinstance(a, datetime):
        a = a.date()
    if isinstance(b, datetime):
        b = b.date()
    diff = abs((a - b).days)
    if diff <= 1:
        return 1.0
    if diff <= 3:
        return 0.8
    if diff <= 7:
        return 0.6
    if diff <= 14:
        return 0.4
    # Far apart is still weakly comparable; the threshold does the rejecting
    return 0.2


def keywords(title: str | None, description: str | None) -> Set[str]:
    text = f"{title or ''} {description or ''}".lower()
    return {w for w in text.split() if len(w) > 2 and w not in _STOP}


def keyword_similarity(a: Set[str], b: Set[str]) -> float:
    """Jaccard similarity of two keyword sets."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class SimilarityScorer:
    """Weighted heuristic score in [0, 1] for a pair of items.

    Pure and symmetric. Missing fields contribute zero for their factor
    instead of failing, so any two items can be scored.
    """

    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or ScoringWeights()
        if self.weights.total <= 0:
            raise ValueError("Scoring weights must sum to a positive value")

    def breakdown(self, a: Scorable, b: Scorable) -> Dict[str, float]:
        return {
            "category": category_similarity(a.category, b.category),
            "location": location_similarity(a.location, b.location),
            "date": date_similarity(a.incident_date(), b.incident_date()),
            "keyword": keyword_similarity(
                keywords(a.title, a.description), keywords(b.title, b.description)
            ),
        }

    def score(self, a: Scorable, b: Scorable) -> float:
        w = self.weights
        parts = self.breakdown(a, b)
        total = (
            parts["category"] * w.category
            + parts["location"] * w.location
            + parts["date"] * w.date
            + parts["keyword"] * w.keyword
        )
        score = total / w.total
        return round(min(1.0, max(0.0, score)), 4)
