import itertools

import pytest

from studiohub import create_app
from studiohub.config import TestConfig
from studiohub.extensions import db
from studiohub.models import (
    Game,
    GamePage,
    PageVisibility,
    Studio,
    StudioMember,
    StudioRole,
    User,
    UserRole,
)
from studiohub.services.slugs import utcnow


@pytest.fixture()
def app():
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    """Run the test body inside an application context."""
    with app.app_context():
        yield app


class Factory:
    """Direct row construction for test setup; bypasses the slug services."""

    def __init__(self):
        self._seq = itertools.count(1)

    def _next(self) -> int:
        return next(self._seq)

    def user(self, email: str | None = None, admin: bool = False) -> User:
        n = self._next()
        user = User(
            email=email or f'user{n}@example.com',
            display_name=f'User {n}',
            role=UserRole.ADMIN if admin else UserRole.USER,
        )
        db.session.add(user)
        db.session.commit()
        return user

    def member(self, studio: Studio, user: User, role: StudioRole = StudioRole.MEMBER) -> StudioMember:
        membership = StudioMember(studio_id=studio.id, user_id=user.id, role=role)
        db.session.add(membership)
        db.session.commit()
        return membership

    def studio(
        self,
        owner: User | None = None,
        slug: str | None = None,
        verified: bool = False,
        requested_slug: str | None = None,
        name: str | None = None,
    ) -> Studio:
        n = self._next()
        studio = Studio(
            name=name or f'Studio {n}',
            slug=slug or f'studio-{n}',
            requested_slug=requested_slug,
            is_verified=verified,
        )
        db.session.add(studio)
        db.session.commit()
        if owner is not None:
            self.member(studio, owner, StudioRole.OWNER)
        return studio

    def game(
        self,
        studio: Studio,
        slug: str | None = None,
        verified: bool = False,
        published: bool = False,
        claimable: bool = False,
        requested_slug: str | None = None,
        title: str | None = None,
    ) -> Game:
        n = self._next()
        game = Game(title=title or f'Game {n}', owner_studio_id=studio.id, is_verified=verified)
        db.session.add(game)
        db.session.flush()

        page = GamePage(
            game_id=game.id,
            slug=slug or f'game-{n}',
            requested_slug=requested_slug,
            is_primary=True,
            is_claimable=claimable,
            visibility=PageVisibility.PUBLISHED if published else PageVisibility.DRAFT,
            published_at=utcnow() if published else None,
        )
        db.session.add(page)
        db.session.commit()
        return game


@pytest.fixture()
def make(ctx):
    """Factory for service tests; the app context stays pushed."""
    return Factory()


@pytest.fixture()
def factory():
    """Factory for HTTP tests; callers push their own app context per block."""
    return Factory()


@pytest.fixture()
def login(client):
    def _login(user_id: str):
        with client.session_transaction() as sess:
            sess['_user_id'] = user_id
            sess['_fresh'] = True
    return _login
