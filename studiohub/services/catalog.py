"""Studio and game self-service: creation, slug and name edits."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import (
    Game,
    GamePage,
    PageVisibility,
    SlugEntityKind,
    Studio,
    StudioMember,
    StudioRole,
)
from studiohub.services.access import EDIT_ROLES, require_page_access, require_studio_role
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.cascade import unpublish_for_game
from studiohub.services.errors import Result, ServiceError, bad_request, conflict, internal, not_found
from studiohub.services.lifecycle import SlugLifecycleManager
from studiohub.services.protection import get_registry
from studiohub.services.slug_store import SlugStore
from studiohub.services.slugs import (
    GAME_PAGE,
    STUDIO,
    SlugKind,
    cooldown_hours_left,
    kind_for,
    normalize_slug,
    utcnow,
    validate_slug,
)
from studiohub.services.temp_slugs import TemporarySlugAllocator

if TYPE_CHECKING:
    from studiohub.models import User


def check_slug_available(entity_kind: SlugEntityKind | str, slug: str) -> dict[str, Any]:
    """Availability as shown to a user picking a slug."""
    slug_kind = kind_for(entity_kind)
    normalized = normalize_slug(slug or '')

    error = validate_slug(slug_kind, normalized)
    if error:
        return {'available': False, 'requiresVerification': False, 'error': error}

    taken = SlugStore(slug_kind).slug_exists(normalized)
    return {
        'available': not taken,
        'requiresVerification': get_registry().is_protected(slug_kind.kind, normalized),
    }


def _initial_slug(slug_kind: SlugKind, slug: str) -> Result[tuple[str, str | None]]:
    """
    Decide the (live, requested) slug pair for a new row.

    A protected slug starts out staged behind a temporary slug.
    """
    error = validate_slug(slug_kind, slug)
    if error:
        return None, bad_request(error)

    store = SlugStore(slug_kind)
    if get_registry().is_protected(slug_kind.kind, slug):
        temp_slug, error = TemporarySlugAllocator(store).allocate()
        if error:
            return None, error
        return (temp_slug, slug), None

    if store.slug_exists(slug):
        return None, conflict(f"{slug_kind.label.capitalize()} slug already exists")
    return (slug, None), None


def create_studio(user: User, name: str, slug: str) -> Result[Studio]:
    name = (name or '').strip()
    if not name:
        return None, bad_request("Studio name is required")
    if len(name) > 100:
        return None, bad_request("Studio name must be at most 100 characters")

    pair, error = _initial_slug(STUDIO, normalize_slug(slug or ''))
    if error:
        return None, error
    live_slug, requested_slug = pair

    try:
        studio = Studio(name=name, slug=live_slug, requested_slug=requested_slug)
        db.session.add(studio)
        db.session.flush()  # Get studio.id

        db.session.add(StudioMember(studio_id=studio.id, user_id=user.id, role=StudioRole.OWNER))
        db.session.commit()

    except IntegrityError:
        db.session.rollback()
        return None, conflict("Studio slug already exists")

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create studio: {e}")
        return None, internal("Failed to create studio")

    record_event(
        user,
        AuditAction.STUDIO_CREATE,
        'studio',
        studio.id,
        metadata={'slug': studio.slug, 'requested_slug': requested_slug, 'name': studio.name},
        studio_id=studio.id,
    )
    return studio, None


def create_game(user: User, studio_id: str, title: str, slug: str) -> Result[Game]:
    """Create a game together with its primary (draft) page."""
    if db.session.get(Studio, studio_id) is None:
        return None, not_found("Studio not found")

    _, error = require_studio_role(user, studio_id, EDIT_ROLES)
    if error:
        return None, error

    title = (title or '').strip()
    if not title:
        return None, bad_request("Game title is required")
    if len(title) > 200:
        return None, bad_request("Game title must be at most 200 characters")

    pair, error = _initial_slug(GAME_PAGE, normalize_slug(slug or ''))
    if error:
        return None, error
    live_slug, requested_slug = pair

    try:
        game = Game(title=title, owner_studio_id=studio_id)
        db.session.add(game)
        db.session.flush()

        page = GamePage(
            game_id=game.id,
            slug=live_slug,
            requested_slug=requested_slug,
            is_primary=True,
            visibility=PageVisibility.DRAFT,
        )
        db.session.add(page)
        db.session.commit()

    except IntegrityError:
        db.session.rollback()
        return None, conflict("Game slug already exists")

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create game: {e}")
        return None, internal("Failed to create game")

    record_event(
        user,
        AuditAction.GAME_CREATE,
        'game',
        game.id,
        metadata={'title': title, 'slug': live_slug, 'requested_slug': requested_slug},
        studio_id=studio_id,
    )
    return game, None


def _slug_format_error(slug_kind: SlugKind, slug: str) -> ServiceError | None:
    message = validate_slug(slug_kind, slug)
    return bad_request(message) if message else None


def _cooldown_error(field: str, last_change) -> ServiceError | None:
    hours_left = cooldown_hours_left(last_change)
    if hours_left:
        return bad_request(f"You can change {field} again in {hours_left} hours")
    return None


def _same_slug_error(holder, slug: str) -> ServiceError | None:
    if slug == holder.slug or slug == holder.requested_slug:
        return bad_request("New slug is the same as the current slug")
    return None


def update_studio_slug(user: User, studio_id: str, slug: str) -> Result[Studio]:
    """
    Owner self-service slug change.

    Verified studios go through change requests instead. Unverified studios
    are limited to one change per cooldown window.
    """
    studio = db.session.get(Studio, studio_id)
    if studio is None:
        return None, not_found("Studio not found")

    _, error = require_studio_role(user, studio_id, EDIT_ROLES)
    if error:
        return None, error

    normalized = normalize_slug(slug or '')
    error = _slug_format_error(STUDIO, normalized) or _same_slug_error(studio, normalized)
    if error:
        return None, error

    if studio.is_verified:
        return None, bad_request("This studio is verified. Slug changes require approval through a change request.")

    error = _cooldown_error('slug', studio.last_slug_change)
    if error:
        return None, error

    old_slug = studio.slug
    studio, error = SlugLifecycleManager(SlugEntityKind.STUDIO).assign(studio_id, normalized, actor=user)
    if error:
        return None, error

    record_event(
        user,
        AuditAction.STUDIO_UPDATE,
        'studio',
        studio_id,
        metadata={'changes': {'old_slug': old_slug, 'slug': studio.slug, 'requested_slug': studio.requested_slug}},
        studio_id=studio_id,
    )
    return studio, None


def update_studio_name(user: User, studio_id: str, name: str) -> Result[Studio]:
    studio = db.session.get(Studio, studio_id)
    if studio is None:
        return None, not_found("Studio not found")

    _, error = require_studio_role(user, studio_id, EDIT_ROLES)
    if error:
        return None, error

    name = (name or '').strip()
    if not name:
        return None, bad_request("Studio name is required")
    if len(name) > 100:
        return None, bad_request("Studio name must be at most 100 characters")
    if name == studio.name:
        return None, bad_request("New name is the same as the current name")

    if studio.is_verified:
        return None, bad_request("This studio is verified. Name changes require approval through a change request.")

    error = _cooldown_error('name', studio.last_name_change)
    if error:
        return None, error

    old_name = studio.name
    try:
        now = utcnow()
        studio.name = name
        studio.last_name_change = now
        studio.updated_at = now
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update studio name {studio_id}: {e}")
        return None, internal("Failed to update studio")

    record_event(
        user,
        AuditAction.STUDIO_UPDATE,
        'studio',
        studio_id,
        metadata={'changes': {'old_name': old_name, 'name': name}},
        studio_id=studio_id,
    )
    return studio, None


def update_page_slug(user: User, page_id: str, slug: str) -> Result[GamePage]:
    """
    Owner self-service game page slug change.

    A protected slug is staged behind a temporary slug and, if the page was
    public, the page is unpublished.
    """
    page, error = require_page_access(user, page_id)
    if error:
        return None, error

    normalized = normalize_slug(slug or '')
    error = _slug_format_error(GAME_PAGE, normalized) or _same_slug_error(page, normalized)
    if error:
        return None, error

    if page.game.is_verified:
        return None, bad_request("This game is verified. Slug changes require approval through a change request.")

    error = _cooldown_error('slug', page.last_slug_change)
    if error:
        return None, error

    old_slug = page.slug
    was_published = page.visibility == PageVisibility.PUBLISHED
    protected = get_registry().is_protected(SlugEntityKind.GAME_PAGE, normalized)

    page, error = SlugLifecycleManager(SlugEntityKind.GAME_PAGE).assign(page_id, normalized, actor=user)
    if error:
        return None, error

    if protected and was_published:
        _, error = unpublish_for_game(page.game_id, actor=user)
        if error:
            return None, error

    record_event(
        user,
        AuditAction.GAME_PAGE_UPDATE_SLUG,
        'game_page',
        page_id,
        metadata={'old_slug': old_slug, 'slug': page.slug, 'requested_slug': page.requested_slug},
        studio_id=page.game.owner_studio_id,
    )
    return page, None


def set_page_claimable(admin: User, page_id: str, is_claimable: bool) -> Result[GamePage]:
    page = db.session.get(GamePage, page_id)
    if page is None:
        return None, not_found("Game page not found")

    try:
        page.is_claimable = is_claimable
        page.updated_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update claimability for page {page_id}: {e}")
        return None, internal("Failed to update game page")

    record_event(
        admin,
        AuditAction.GAME_PAGE_SET_CLAIMABLE,
        'game_page',
        page_id,
        metadata={'slug': page.slug, 'is_claimable': is_claimable},
        studio_id=page.game.owner_studio_id,
    )
    return page, None


__all__ = [
    'check_slug_available',
    'create_studio',
    'create_game',
    'update_studio_slug',
    'update_studio_name',
    'update_page_slug',
    'set_page_claimable',
]
