import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from studiohub.extensions import db
from studiohub.models import AuditLog, Game, PageVisibility
from studiohub.services.audit import AuditAction
from studiohub.services.cascade import unpublish_all_for_studio, unpublish_for_game
from studiohub.services.errors import ErrorKind


def _fail_commit_number(monkeypatch, failing_call):
    real_commit = Session.commit
    calls = {'count': 0}

    def commit(self):
        calls['count'] += 1
        if calls['count'] == failing_call:
            raise OperationalError('UPDATE game_page', {}, Exception('disk I/O error'))
        return real_commit(self)

    monkeypatch.setattr(Session, 'commit', commit)


def test_unpublish_all_for_studio(make):
    studio = make.studio()
    games = [make.game(studio, published=True), make.game(studio, published=True)]
    make.game(make.studio(), published=True)

    pages, error = unpublish_all_for_studio(studio.id)

    assert error is None
    assert {p.game_id for p in pages} == {g.id for g in games}
    entries = db.session.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.GAME_PAGE_UNPUBLISH)
    ).scalars().all()
    assert len(entries) == 2
    assert all(e.meta['cascade'] for e in entries)


def test_failure_keeps_pages_unpublished_so_far(make, monkeypatch):
    """A storage failure on the second page leaves the first one in draft."""
    studio = make.studio()
    game_ids = [make.game(studio, published=True).id, make.game(studio, published=True).id]
    # page one, its audit row, then page two
    _fail_commit_number(monkeypatch, 3)

    _, error = unpublish_all_for_studio(studio.id)

    monkeypatch.undo()
    assert error.kind == ErrorKind.INTERNAL
    assert '1 of 2' in error.message

    pages = {gid: db.session.get(Game, gid).primary_page for gid in game_ids}
    drafts = [p for p in pages.values() if p.visibility == PageVisibility.DRAFT]
    published = [p for p in pages.values() if p.visibility == PageVisibility.PUBLISHED]
    assert len(drafts) == 1
    assert len(published) == 1
    assert drafts[0].unpublished_at is not None

    entry = db.session.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.GAME_PAGE_UNPUBLISH)
    ).scalar_one()
    assert entry.entity_id == drafts[0].id


@pytest.mark.parametrize('published', [True, False])
def test_unpublish_for_game(make, published):
    game = make.game(make.studio(), published=published)

    pages, error = unpublish_for_game(game.id)

    assert error is None
    assert len(pages) == (1 if published else 0)
    assert db.session.get(Game, game.id).primary_page.visibility == PageVisibility.DRAFT
