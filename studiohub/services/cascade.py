"""Force dependent game pages back to draft when their owner's trust collapses."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import Game, GamePage, PageVisibility
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.errors import Result, internal
from studiohub.services.slugs import utcnow

if TYPE_CHECKING:
    from studiohub.models import User


def _published_primary_pages(game_ids: list[str]) -> list[GamePage]:
    if not game_ids:
        return []
    stmt = (
        select(GamePage)
        .where(GamePage.game_id.in_(game_ids))
        .where(GamePage.is_primary.is_(True))
        .where(GamePage.visibility == PageVisibility.PUBLISHED)
    )
    return list(db.session.execute(stmt).scalars())


def _unpublish_pages(pages: list[GamePage], actor: User | None, reason: str) -> Result[list[GamePage]]:
    """
    Unpublish each page with its own commit.

    A failure part-way through leaves the earlier pages unpublished; the
    caller gets an internal error naming how far the batch got.
    """
    done: list[GamePage] = []
    for page in pages:
        try:
            now = utcnow()
            page.visibility = PageVisibility.DRAFT
            page.unpublished_at = now
            page.updated_at = now
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning(
                f"Cascade unpublish stopped after {len(done)} of {len(pages)} pages: {e}"
            )
            return None, internal(f"Unpublished {len(done)} of {len(pages)} pages before a storage failure")

        done.append(page)
        record_event(
            actor,
            AuditAction.GAME_PAGE_UNPUBLISH,
            'game_page',
            page.id,
            metadata={'slug': page.slug, 'cascade': True, 'reason': reason},
            studio_id=page.game.owner_studio_id if page.game else None,
        )

    return done, None


def unpublish_all_for_studio(studio_id: str, actor: User | None = None) -> Result[list[GamePage]]:
    """Unpublish the published primary page of every game the studio owns."""
    game_ids = list(db.session.execute(
        select(Game.id).where(Game.owner_studio_id == studio_id)
    ).scalars())
    pages = _published_primary_pages(game_ids)
    return _unpublish_pages(pages, actor, reason='studio_slug_protected')


def unpublish_for_game(game_id: str, actor: User | None = None) -> Result[list[GamePage]]:
    """Unpublish one game's published primary page."""
    pages = _published_primary_pages([game_id])
    return _unpublish_pages(pages, actor, reason='game_slug_protected')


__all__ = ['unpublish_all_for_studio', 'unpublish_for_game']
