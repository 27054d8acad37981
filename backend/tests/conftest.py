"""Shared fixtures.

Every test gets a fresh app on ``TestingConfig``: in-memory SQLite, eager
Celery and a fixed display-name seed. Factories build users and items
directly through the session, the way the item collaborator would.
"""
from datetime import date
from itertools import count

import pytest

from lostfound import create_app
from lostfound.extensions import db
from lostfound.models.item import Item
from lostfound.models.user import User
from lostfound.modules.notifications import bus

_seq = count(1)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def clean_bus():
    yield
    bus._subs.clear()


@pytest.fixture
def make_user(app):
    def _make(role: str = "student", **kwargs) -> User:
        n = next(_seq)
        user = User(
            email=kwargs.pop("email", f"user{n}@campus.test"),
            first_name=kwargs.pop("first_name", "User"),
            last_name=kwargs.pop("last_name", str(n)),
            role=role,
            **kwargs,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_item(app):
    def _make(owner: User | None, type: str = "lost", **kwargs) -> Item:
        item = Item(
            reporter_user_id=owner.id if owner is not None else None,
            type=type,
            category=kwargs.pop("category", "keys"),
            title=kwargs.pop("title", "Silver house keys"),
            description=kwargs.pop("description", "Three keys on a blue keyring"),
            location=kwargs.pop("location", "Main Gate"),
            occurred_on=kwargs.pop("occurred_on", date(2024, 5, 1)),
            **kwargs,
        )
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(first_name="Olive", last_name="Owner")


@pytest.fixture
def finder(make_user):
    return make_user(first_name="Felix", last_name="Finder")


@pytest.fixture
def matched_pair(make_item, owner, finder):
    """A lost/found pair that clears the match threshold comfortably."""
    lost = make_item(owner, "lost", occurred_on=date(2024, 5, 1))
    found = make_item(finder, "found", occurred_on=date(2024, 5, 2))
    return lost, found
