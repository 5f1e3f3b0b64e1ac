"""Verification gate: couples slug protection with verified status.

Holding a protected slug is allowed, but it only goes live (and a page only
becomes publicly visible) once the owning entity is verified.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import Game, GamePage, PageVisibility, SlugEntityKind, Studio
from studiohub.services.access import require_page_access
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.cascade import unpublish_all_for_studio, unpublish_for_game
from studiohub.services.errors import Result, forbidden, internal, not_found
from studiohub.services.lifecycle import SlugLifecycleManager, get_primary_page
from studiohub.services.protection import get_registry
from studiohub.services.slugs import utcnow

if TYPE_CHECKING:
    from studiohub.models import User


def effective_slug(holder) -> str:
    """The slug an entity is trying to be known by: staged value first."""
    return holder.requested_slug or holder.slug


def can_publish(page: GamePage, game: Game) -> bool:
    if game.is_verified:
        return True
    return not get_registry().is_protected(SlugEntityKind.GAME_PAGE, effective_slug(page))


def on_verify(entity_kind: SlugEntityKind, entity_id: str, actor: User | None = None) -> Result:
    """Promote the staged slug; a conflict means the entity cannot be verified."""
    return SlugLifecycleManager(entity_kind).promote(entity_id, actor=actor)


def on_unverify(entity_kind: SlugEntityKind, entity_id: str, actor: User | None = None) -> Result:
    """
    Pull a protected slug back behind a temporary one and unpublish what
    depended on it.

    Unlike a plain demotion this leaves an unprotected slug live, since
    nothing gates it behind verification.
    """
    manager = SlugLifecycleManager(entity_kind)
    holder = manager.store.get(entity_id)
    if holder is None:
        return None, not_found(f"{manager.label.capitalize()} not found")

    if not get_registry().is_protected(entity_kind, effective_slug(holder)):
        return holder, None

    demoted, error = manager.demote(entity_id, actor=actor)
    if error:
        return None, error

    if entity_kind == SlugEntityKind.STUDIO:
        _, error = unpublish_all_for_studio(entity_id, actor=actor)
    else:
        _, error = unpublish_for_game(demoted.game_id, actor=actor)
    if error:
        return None, error

    return demoted, None


def update_verified_flag(entity, is_verified: bool) -> Result:
    try:
        entity.is_verified = is_verified
        entity.updated_at = utcnow()
        db.session.commit()
        return entity, None
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update verification for {entity.id}: {e}")
        return None, internal("Failed to update verification status")


def set_studio_verified(admin: User, studio_id: str, is_verified: bool) -> Result[Studio]:
    studio = db.session.get(Studio, studio_id)
    if studio is None:
        return None, not_found("Studio not found")

    previous = studio.is_verified
    if is_verified:
        _, error = on_verify(SlugEntityKind.STUDIO, studio_id, actor=admin)
        if error:
            return None, error
        studio, error = update_verified_flag(studio, True)
        if error:
            return None, error
    else:
        studio, error = update_verified_flag(studio, False)
        if error:
            return None, error
        _, error = on_unverify(SlugEntityKind.STUDIO, studio_id, actor=admin)
        if error:
            return None, error

    record_event(
        admin,
        AuditAction.STUDIO_VERIFY if is_verified else AuditAction.STUDIO_UNVERIFY,
        'studio',
        studio_id,
        metadata={
            'name': studio.name,
            'slug': studio.slug,
            'requested_slug': studio.requested_slug,
            'previous_status': previous,
            'new_status': is_verified,
        },
        studio_id=studio_id,
    )
    return studio, None


def set_game_verified(admin: User, game_id: str, is_verified: bool) -> Result[Game]:
    game = db.session.get(Game, game_id)
    if game is None:
        return None, not_found("Game not found")

    previous = game.is_verified
    page = get_primary_page(game_id)

    if is_verified:
        if page is not None:
            _, error = on_verify(SlugEntityKind.GAME_PAGE, page.id, actor=admin)
            if error:
                return None, error
        game, error = update_verified_flag(game, True)
        if error:
            return None, error
    else:
        game, error = update_verified_flag(game, False)
        if error:
            return None, error
        if page is not None:
            _, error = on_unverify(SlugEntityKind.GAME_PAGE, page.id, actor=admin)
            if error:
                return None, error

    record_event(
        admin,
        AuditAction.GAME_VERIFY if is_verified else AuditAction.GAME_UNVERIFY,
        'game',
        game_id,
        metadata={'title': game.title, 'previous_status': previous, 'new_status': is_verified},
        studio_id=game.owner_studio_id,
    )
    return game, None


def publish_page(user: User, page_id: str) -> Result[GamePage]:
    page, error = require_page_access(user, page_id)
    if error:
        return None, error

    if not can_publish(page, page.game):
        return None, forbidden("This slug is protected; the game must be verified before the page can be published")

    try:
        now = utcnow()
        page.visibility = PageVisibility.PUBLISHED
        page.published_at = now
        page.updated_at = now
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to publish game page {page_id}: {e}")
        return None, internal("Failed to publish game page")

    record_event(
        user,
        AuditAction.GAME_PAGE_PUBLISH,
        'game_page',
        page_id,
        metadata={'slug': page.slug},
        studio_id=page.game.owner_studio_id,
    )
    return page, None


def unpublish_page(user: User, page_id: str) -> Result[GamePage]:
    page, error = require_page_access(user, page_id)
    if error:
        return None, error

    try:
        now = utcnow()
        page.visibility = PageVisibility.DRAFT
        page.unpublished_at = now
        page.updated_at = now
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to unpublish game page {page_id}: {e}")
        return None, internal("Failed to unpublish game page")

    record_event(
        user,
        AuditAction.GAME_PAGE_UNPUBLISH,
        'game_page',
        page_id,
        metadata={'slug': page.slug},
        studio_id=page.game.owner_studio_id,
    )
    return page, None


__all__ = [
    'effective_slug',
    'can_publish',
    'on_verify',
    'on_unverify',
    'update_verified_flag',
    'set_studio_verified',
    'set_game_verified',
    'publish_page',
    'unpublish_page',
]
