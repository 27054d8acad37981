"""Unit tests for the similarity scorer. No database involved."""
from datetime import date, datetime

import pytest

from lostfound.models.item import Item
from lostfound.modules.matches.scoring import (
    ScoringWeights,
    SimilarityScorer,
    category_similarity,
    date_similarity,
    keyword_similarity,
    keywords,
    location_similarity,
)


def _item(**kw) -> Item:
    defaults = dict(
        type="lost",
        category="keys",
        title="Silver house keys",
        description="Three keys on a blue keyring",
        location="Main Gate",
        occurred_on=date(2024, 5, 1),
    )
    defaults.update(kw)
    return Item(**defaults)


class TestFactors:
    def test_category_exact_only(self):
        assert category_similarity("keys", "keys") == 1.0
        assert category_similarity("keys", "wallet") == 0.0
        assert category_similarity(None, "keys") == 0.0

    def test_location_exact_ignores_case_and_whitespace(self):
        assert location_similarity(" Main Gate ", "main gate") == 1.0

    def test_location_shared_campus_terms(self):
        assert location_similarity("Library gate", "library main gate") == pytest.approx(0.6)
        assert location_similarity("library second floor", "library basement") == pytest.approx(0.3)

    def test_location_repeated_term_counts_once(self):
        assert location_similarity("library library annex", "library hall") == pytest.approx(0.3)

    def test_location_substring(self):
        assert location_similarity("Room 101", "Room 101 east wing") == 0.6

    def test_location_missing_or_unrelated(self):
        assert location_similarity(None, "Main Gate") == 0.0
        assert location_similarity("Sports Complex", "Science Block") == 0.0

    @pytest.mark.parametrize(
        "days,expected",
        [(0, 1.0), (1, 1.0), (3, 0.8), (7, 0.6), (14, 0.4), (15, 0.2), (400, 0.2)],
    )
    def test_date_bands(self, days, expected):
        base = date(2024, 1, 1)
        other = date.fromordinal(base.toordinal() + days)
        assert date_similarity(base, other) == expected
        assert date_similarity(other, base) == expected

    def test_date_accepts_datetimes_and_missing(self):
        assert date_similarity(datetime(2024, 1, 1, 23, 0), date(2024, 1, 2)) == 1.0
        assert date_similarity(None, date(2024, 1, 1)) == 0.0

    def test_keywords_drop_short_and_stop_words(self):
        assert keywords("The black wallet", "left on a bench by the gym") == {
            "black", "wallet", "left", "bench", "gym",
        }

    def test_keyword_jaccard(self):
        assert keyword_similarity({"car", "keys"}, {"car", "keys", "fob", "red"}) == 0.5
        assert keyword_similarity(set(), {"car"}) == 0.0


class TestSimilarityScorer:
    def test_self_score_is_one(self):
        a = _item()
        assert SimilarityScorer().score(a, a) == 1.0

    def test_symmetry(self):
        a = _item(title="Blue backpack", location="Library", occurred_on=date(2024, 5, 1))
        b = _item(type="found", title="Backpack blue zipper", location="library 2nd floor",
                  occurred_on=date(2024, 5, 4))
        scorer = SimilarityScorer()
        assert scorer.score(a, b) == scorer.score(b, a)

    def test_keys_scenario_scores_high(self):
        lost = _item()
        found = _item(type="found", occurred_on=date(2024, 5, 2))
        assert SimilarityScorer().score(lost, found) >= 0.9

    def test_unrelated_items_score_low(self):
        a = _item(category="electronics", location="Library 2nd floor", occurred_on=date(2024, 1, 1),
                  title="black wallet", description=None)
        b = _item(type="found", category="books", location="Sports Complex", occurred_on=date(2024, 3, 1),
                  title="chemistry textbook", description=None)
        score = SimilarityScorer().score(a, b)
        assert score <= 0.3
        assert score < 0.7

    def test_missing_fields_contribute_zero(self):
        a = _item(location=None, description=None, occurred_on=None)
        b = _item(type="found", location=None, description=None, occurred_on=None)
        # category 1.0 and identical titles; location and date are unknown
        assert SimilarityScorer().score(a, b) == pytest.approx(0.5)

    def test_alternate_weights(self):
        a = _item()
        b = _item(type="found", category="wallet")
        only_category = SimilarityScorer(ScoringWeights(category=1.0, location=0.0, date=0.0, keyword=0.0))
        assert only_category.score(a, b) == 0.0

    def test_weights_from_config(self):
        w = ScoringWeights.from_config({"MATCH_WEIGHT_CATEGORY": "0.5"})
        assert w.category == 0.5
        assert w.location == 0.3

    def test_non_positive_weights_rejected(self):
        with pytest.raises(ValueError):
            SimilarityScorer(ScoringWeights(0, 0, 0, 0))
