"""Slug lifecycle: demote a live slug behind a temporary one, promote it back.

Both operations work the same way for studios and game pages; the entity
kind only selects the table and a few column conventions. None of the
read-check-write sequences here run inside a transaction. The idempotency
guard in :meth:`SlugLifecycleManager.demote` and the conflict pre-check in
:meth:`SlugLifecycleManager.promote` narrow the race window, and the
unique constraint on the slug column settles whatever remains.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import select

from studiohub.extensions import db
from studiohub.models import GamePage, SlugEntityKind
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.errors import ErrorKind, Result, conflict, internal, not_found
from studiohub.services.protection import get_registry
from studiohub.services.slug_store import SlugStore
from studiohub.services.slugs import kind_for, normalize_slug, utcnow
from studiohub.services.temp_slugs import TemporarySlugAllocator

if TYPE_CHECKING:
    from studiohub.models import User


def studio_id_for(holder) -> str | None:
    """Owning studio of a slug holder, for audit scoping."""
    if isinstance(holder, GamePage):
        return holder.game.owner_studio_id if holder.game else None
    return holder.id


class SlugLifecycleManager:
    """Demote/promote/assign for one entity kind."""

    def __init__(self, entity_kind: SlugEntityKind | str, store: SlugStore | None = None):
        self.slug_kind = kind_for(entity_kind)
        self.store = store or SlugStore(self.slug_kind)

    @property
    def label(self) -> str:
        return self.slug_kind.label

    def _not_found(self):
        return not_found(f"{self.label.capitalize()} not found")

    def demote(self, entity_id: str, requested_slug: str | None = None, actor: User | None = None) -> Result:
        """
        Move the live slug behind a temporary one and stage the desired value.

        The staged value is ``requested_slug`` if given, else the existing
        ``requested_slug``, else the current live slug. Calling this again
        with the same target is a no-op.
        """
        holder = self.store.get(entity_id)
        if holder is None:
            return None, self._not_found()

        requested = normalize_slug(requested_slug or holder.requested_slug or holder.slug)

        # Already demoted with the same target
        if holder.requested_slug == requested and holder.slug != requested:
            return holder, None

        temp_slug, error = TemporarySlugAllocator(self.store).allocate()
        if error:
            return None, error

        previous_slug = holder.slug
        now = utcnow()
        updated, error = self.store.update_slug_fields(
            holder,
            slug=temp_slug,
            requested_slug=requested,
            last_slug_change=now,
            updated_at=now,
        )
        if error:
            # A lost race on a freshly generated temp slug is not the caller's conflict
            if error.kind == ErrorKind.CONFLICT:
                return None, internal(f"Failed to demote {self.label} slug")
            return None, error

        current_app.logger.info(f"Demoted {self.label} {entity_id}: {previous_slug} -> {temp_slug} (requested {requested})")
        record_event(
            actor,
            AuditAction.SLUG_DEMOTE,
            self.slug_kind.kind.value,
            entity_id,
            metadata={'previous_slug': previous_slug, 'temporary_slug': temp_slug, 'requested_slug': requested},
            studio_id=studio_id_for(updated),
        )
        return updated, None

    def promote(self, entity_id: str, actor: User | None = None) -> Result:
        """
        Make the staged ``requested_slug`` live.

        With nothing staged the holder is returned unchanged. If another row
        already holds the requested slug the result is a conflict.
        """
        holder = self.store.get(entity_id)
        if holder is None:
            return None, self._not_found()

        if not holder.requested_slug:
            return holder, None

        requested = normalize_slug(holder.requested_slug)
        if self.store.is_taken(requested, exclude_id=entity_id):
            return None, conflict(f"Requested {self.label} slug is already taken")

        previous_slug = holder.slug
        now = utcnow()
        fields = {'slug': requested, 'requested_slug': None, 'updated_at': now}
        if self.slug_kind.stamp_on_promote:
            fields['last_slug_change'] = now

        updated, error = self.store.update_slug_fields(holder, **fields)
        if error:
            return None, error

        current_app.logger.info(f"Promoted {self.label} {entity_id}: {previous_slug} -> {requested}")
        record_event(
            actor,
            AuditAction.SLUG_PROMOTE,
            self.slug_kind.kind.value,
            entity_id,
            metadata={'previous_slug': previous_slug, 'slug': requested},
            studio_id=studio_id_for(updated),
        )
        return updated, None

    def assign(self, entity_id: str, slug: str, actor: User | None = None) -> Result:
        """
        Give an entity a new slug.

        A protected slug never goes live here: it is staged behind a
        temporary slug instead. Otherwise the slug is written live and any
        staged value is cleared.
        """
        holder = self.store.get(entity_id)
        if holder is None:
            return None, self._not_found()

        normalized = normalize_slug(slug)
        if get_registry().is_protected(self.slug_kind.kind, normalized):
            return self.demote(entity_id, requested_slug=normalized, actor=actor)

        if self.store.is_taken(normalized, exclude_id=entity_id):
            return None, conflict(f"{self.label.capitalize()} slug already taken")

        now = utcnow()
        return self.store.update_slug_fields(
            holder,
            slug=normalized,
            requested_slug=None,
            last_slug_change=now,
            updated_at=now,
        )


def get_primary_page(game_id: str) -> GamePage | None:
    stmt = (
        select(GamePage)
        .where(GamePage.game_id == game_id)
        .where(GamePage.is_primary.is_(True))
    )
    return db.session.execute(stmt.limit(1)).scalar_one_or_none()


def demote_primary_page(game_id: str, actor: User | None = None) -> Result[GamePage]:
    """Demote a game's primary page; a game without one yields (None, None)."""
    page = get_primary_page(game_id)
    if page is None:
        return None, None
    return SlugLifecycleManager(SlugEntityKind.GAME_PAGE).demote(page.id, actor=actor)


def promote_primary_page(game_id: str, actor: User | None = None) -> Result[GamePage]:
    """Promote a game's primary page; a game without one yields (None, None)."""
    page = get_primary_page(game_id)
    if page is None:
        return None, None
    return SlugLifecycleManager(SlugEntityKind.GAME_PAGE).promote(page.id, actor=actor)


__all__ = [
    'SlugLifecycleManager',
    'get_primary_page',
    'demote_primary_page',
    'promote_primary_page',
    'studio_id_for',
]
