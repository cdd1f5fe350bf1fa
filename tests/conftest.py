from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from library_app import create_app
from library_app.config import TestConfig
from library_app.extensions import db
from library_app.models.book import Book
from library_app.models.book_copy import Copy
from library_app.models.member import Member
from library_app.services.registry import init_lending


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 10, 0, 0))


@pytest.fixture
def app(clock):
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        init_lending(app, clock=clock)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def components(app):
    return app.extensions["lending"]


@pytest.fixture
def lending(components):
    return components.lending


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_copies():
    def _make(n=1, title="Dune"):
        book = Book(title=title, author="Frank Herbert")
        db.session.add(book)
        db.session.flush()
        copies = [Copy(book_id=book.id, copy_number=f"C{i:03d}") for i in range(1, n + 1)]
        db.session.add_all(copies)
        db.session.commit()
        return [c.id for c in copies]
    return _make


@pytest.fixture
def make_member():
    counter = {"n": 0}

    def _make(name=None, status="active"):
        counter["n"] += 1
        m = Member(name=name or f"Member {counter['n']}", email=f"m{counter['n']}@example.org", status=status)
        db.session.add(m)
        db.session.commit()
        return m.id
    return _make


@pytest.fixture
def auth_header():
    def _header(role="librarian", member_id=None, user_id=1):
        token = create_access_token(
            identity=str(user_id),
            additional_claims={"role": role, "member_id": member_id},
        )
        return {"Authorization": f"Bearer {token}"}
    return _header
