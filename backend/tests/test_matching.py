from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from lostfound.errors import Forbidden, InvalidOperation, NotFound
from lostfound.extensions import db
from lostfound.models.conversation import Conversation, ConversationParticipant
from lostfound.models.item import Item
from lostfound.models.message import Message, MessageRead
from lostfound.models.match_link import MatchLink
from lostfound.models.notification import Notification
from lostfound.modules.conversations.service import get_conversation_service
from lostfound.modules.matches.service import get_matching_service


@pytest.fixture
def svc(app):
    return get_matching_service()


def _links(item_id):
    return MatchLink.query.filter_by(item_id=item_id).all()


class TestProcessMatches:
    def test_keys_scenario(self, svc, matched_pair, owner, finder):
        lost, found = matched_pair

        accepted = svc.process_matches(lost.id)

        assert [(c.id, s) for c, s in accepted] == [(found.id, 1.0)]
        assert [link.matched_item_id for link in _links(lost.id)] == [found.id]
        assert [link.matched_item_id for link in _links(found.id)] == [lost.id]
        assert db.session.get(type(lost), lost.id).match_score == 1.0

        notes = Notification.query.filter_by(type="match_found").all()
        assert sorted(n.user_id for n in notes) == sorted([owner.id, finder.id])
        by_user = {n.user_id: n for n in notes}
        assert by_user[owner.id].payload == {
            "matchedItemId": found.id,
            "originalItemId": lost.id,
            "score": 1.0,
            "matchType": "auto",
        }

        convs = Conversation.query.all()
        assert len(convs) == 1
        conv = convs[0]
        assert conv.status == "active"
        assert conv.origin == "match"
        assert conv.item_id == lost.id
        assert conv.matched_item_id == found.id
        assert {p.user_id: p.role for p in conv.participants} == {owner.id: "owner", finder.id: "finder"}
        assert len(conv.messages) == 1
        assert conv.messages[0].type == "system"
        assert conv.total_messages == 1

    def test_rerun_is_idempotent(self, svc, matched_pair):
        lost, found = matched_pair
        svc.process_matches(lost.id)
        svc.process_matches(lost.id)
        svc.process_matches(found.id)

        assert MatchLink.query.count() == 2
        assert Notification.query.count() == 2
        assert Conversation.query.count() == 1

    def test_unknown_item_is_a_no_op(self, svc):
        assert svc.process_matches(9999) == []

    def test_weak_candidates_leave_no_link(self, svc, make_item, owner, finder):
        lost = make_item(owner, "lost", location="Library", title="Red umbrella", description="folding")
        make_item(finder, "found", location="Gym", title="Car key fob", description="black remote",
                  occurred_on=date(2024, 5, 7))

        assert svc.process_matches(lost.id) == []
        assert MatchLink.query.count() == 0
        assert Notification.query.count() == 0

    def test_candidates_respect_window_category_and_status(self, svc, make_item, owner, finder):
        lost = make_item(owner, "lost", occurred_on=date(2024, 5, 1))
        in_window = make_item(finder, "found", occurred_on=date(2024, 5, 8))
        make_item(finder, "found", occurred_on=date(2024, 5, 9))
        make_item(finder, "found", category="wallet")
        make_item(finder, "found", status="resolved")
        make_item(finder, "lost")

        assert [c.id for c in svc.find_candidates(lost)] == [in_window.id]

    def test_other_category_searches_all_categories(self, svc, make_item, owner, finder):
        lost = make_item(owner, "lost", category="other")
        wallet = make_item(finder, "found", category="wallet")
        assert [c.id for c in svc.find_candidates(lost)] == [wallet.id]

    def test_top_n_and_threshold(self, app, make_item, owner, finder):
        svc = get_matching_service()
        svc.top_n = 2
        lost = make_item(owner, "lost")
        for _ in range(3):
            make_item(finder, "found")
        assert len(svc.process_matches(lost.id)) == 2
        assert len(_links(lost.id)) == 2

    def test_single_owner_pair_links_without_conversation(self, svc, make_item, owner):
        lost = make_item(owner, "lost")
        make_item(owner, "found", occurred_on=date(2024, 5, 2))

        assert len(svc.process_matches(lost.id)) == 1
        assert MatchLink.query.count() == 2
        assert Conversation.query.count() == 0


class TestProcessMatch:
    def test_rejects_self_and_same_type(self, svc, make_item, owner):
        a = make_item(owner, "lost")
        b = make_item(owner, "lost")
        with pytest.raises(InvalidOperation):
            svc.process_match(a, a, 1.0)
        with pytest.raises(InvalidOperation):
            svc.process_match(a, b, 1.0)

    def test_existing_link_returns_false(self, svc, matched_pair):
        lost, found = matched_pair
        assert svc.process_match(lost, found, 0.9) is True
        assert svc.process_match(lost, found, 0.9) is False
        assert MatchLink.query.count() == 2

    def test_pair_is_unique_in_storage(self, svc, matched_pair):
        lost, found = matched_pair
        db.session.add(MatchLink(item_id=lost.id, matched_item_id=found.id, score=0.8))
        db.session.commit()
        db.session.add(MatchLink(item_id=lost.id, matched_item_id=found.id, score=0.9))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_concurrently_linked_pair_returns_false(self, svc, matched_pair):
        lost, found = matched_pair
        # The reverse link landed from another run between the check and the commit
        db.session.add(MatchLink(item_id=found.id, matched_item_id=lost.id, score=0.9))
        db.session.commit()

        assert svc.process_match(lost, found, 0.95) is False

        assert MatchLink.query.count() == 1
        assert Notification.query.count() == 0
        assert Conversation.query.count() == 0
        assert db.session.get(Item, lost.id).match_score == 0.0
        assert db.session.get(Item, found.id).match_score == 0.0


class TestManualMatch:
    def _far_apart(self, make_item, owner, finder):
        lost = make_item(owner, "lost")
        found = make_item(finder, "found", location="Cafeteria", occurred_on=date(2024, 6, 20),
                          title="Car key fob", description="black remote")
        return lost, found

    def test_bypasses_threshold_and_records_real_score(self, svc, make_item, owner, finder):
        lost, found = self._far_apart(make_item, owner, finder)

        score = svc.process_manual_match(lost.id, found.id, owner.id)

        assert score == pytest.approx(0.34)
        assert score == svc.scorer.score(lost, found)
        link = MatchLink.query.filter_by(item_id=lost.id).one()
        assert link.score == score
        payloads = [n.payload for n in Notification.query.filter_by(type="match_found")]
        assert {p["matchType"] for p in payloads} == {"manual"}
        assert Conversation.query.count() == 1

    def test_admin_may_match_any_pair(self, svc, make_item, make_user, owner, finder):
        admin = make_user(role="admin")
        lost, found = self._far_apart(make_item, owner, finder)
        svc.process_manual_match(lost.id, found.id, admin.id)
        assert MatchLink.query.count() == 2

    def test_stranger_is_forbidden(self, svc, make_item, make_user, owner, finder):
        stranger = make_user()
        lost, found = self._far_apart(make_item, owner, finder)
        with pytest.raises(Forbidden):
            svc.process_manual_match(lost.id, found.id, stranger.id)
        assert MatchLink.query.count() == 0

    def test_validation(self, svc, make_item, owner, finder):
        lost, found = self._far_apart(make_item, owner, finder)
        other_lost = make_item(owner, "lost")
        with pytest.raises(NotFound):
            svc.process_manual_match(lost.id, 9999, owner.id)
        with pytest.raises(InvalidOperation):
            svc.process_manual_match(lost.id, lost.id, owner.id)
        with pytest.raises(InvalidOperation):
            svc.process_manual_match(lost.id, other_lost.id, owner.id)
        with pytest.raises(NotFound):
            svc.process_manual_match(lost.id, found.id, 9999)


class TestSweep:
    def test_failure_on_one_item_does_not_stop_the_sweep(self, svc, make_item, owner, finder, monkeypatch):
        lost1 = make_item(owner, "lost")
        make_item(finder, "found")
        lost2 = make_item(owner, "lost", category="wallet", title="Brown wallet", description="leather")
        found2 = make_item(finder, "found", category="wallet", title="Brown wallet", description="leather")

        real = svc.process_matches

        def flaky(item_id):
            if item_id == lost1.id:
                raise RuntimeError("boom")
            return real(item_id)

        monkeypatch.setattr(svc, "process_matches", flaky)

        assert svc.run_global_matching() == 3
        assert [link.matched_item_id for link in _links(lost2.id)] == [found2.id]

    def test_sweep_batch_bounds_work(self, svc, make_item, owner):
        for _ in range(3):
            make_item(owner, "lost")
        svc.sweep_batch = 2
        assert svc.run_global_matching() == 2


class TestReadSide:
    def test_suggestions_sorted_by_score(self, svc, make_item, owner, finder):
        strong_lost = make_item(owner, "lost")
        strong_found = make_item(finder, "found")
        weak_lost = make_item(owner, "lost", category="wallet", title="Brown wallet", description="leather")
        weak_found = make_item(finder, "found", category="wallet", location="Cafeteria",
                               title="Card holder", description="plastic", occurred_on=date(2024, 6, 1))
        svc.process_manual_match(weak_lost.id, weak_found.id, owner.id)
        svc.process_matches(strong_lost.id)

        suggestions = svc.get_user_match_suggestions(owner.id)

        assert [(s.original_item.id, s.matched_item.id) for s in suggestions] == [
            (strong_lost.id, strong_found.id),
            (weak_lost.id, weak_found.id),
        ]
        assert suggestions[0].score > suggestions[1].score

    def test_matches_for_item_is_owner_only(self, svc, matched_pair, owner, finder):
        lost, found = matched_pair
        svc.process_matches(lost.id)
        assert [link.matched_item_id for link in svc.matches_for_item(lost.id, owner.id)] == [found.id]
        with pytest.raises(Forbidden):
            svc.matches_for_item(lost.id, finder.id)
        with pytest.raises(NotFound):
            svc.matches_for_item(9999, owner.id)


class TestItemDeletion:
    def test_deleting_anchor_removes_links_conversation_and_notifications(self, svc, matched_pair, owner, finder):
        lost, found = matched_pair
        svc.process_matches(lost.id)
        conv = Conversation.query.one()
        get_conversation_service().fetch_history(conv.conversation_id, finder.id)
        assert MessageRead.query.count() == 1

        db.session.delete(db.session.get(Item, lost.id))
        db.session.commit()

        assert MatchLink.query.count() == 0
        assert Conversation.query.count() == 0
        assert ConversationParticipant.query.count() == 0
        assert Message.query.count() == 0
        assert MessageRead.query.count() == 0
        # only the found item's notification survives
        assert [(n.user_id, n.item_id) for n in Notification.query.all()] == [(finder.id, found.id)]

    def test_deleting_matched_side_detaches_conversation(self, svc, matched_pair):
        lost, found = matched_pair
        svc.process_matches(lost.id)

        db.session.delete(db.session.get(Item, found.id))
        db.session.commit()

        assert MatchLink.query.count() == 0
        conv = Conversation.query.one()
        assert conv.item_id == lost.id
        assert conv.matched_item_id is None
        assert Message.query.count() == 1
