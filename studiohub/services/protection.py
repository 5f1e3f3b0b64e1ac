"""Protected slug registry.

A slug is protected when it is in the compiled-in reserved list for its
entity kind or has a row in the admin-curated ``protected_slug`` table.
Every path that assigns a new live slug consults :meth:`is_protected`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app, g, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import ProtectedSlug, SlugEntityKind
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.errors import Result, bad_request, conflict, internal, not_found
from studiohub.services.slugs import normalize_slug

if TYPE_CHECKING:
    from studiohub.models import User


RESERVED_SLUGS: dict[SlugEntityKind, frozenset[str]] = {
    SlugEntityKind.STUDIO: frozenset({
        'nintendo',
        'playstation',
        'xbox',
        'epic-games',
        'rockstar-games',
        'riot-games',
    }),
    SlugEntityKind.GAME_PAGE: frozenset({
        'fortnite',
        'minecraft',
        'roblox',
        'valorant',
        'league-of-legends',
        'counter-strike-2',
        'gta-6',
    }),
}


def _coerce_kind(entity_kind: SlugEntityKind | str) -> SlugEntityKind | None:
    if isinstance(entity_kind, SlugEntityKind):
        return entity_kind
    try:
        return SlugEntityKind(entity_kind)
    except ValueError:
        return None


def is_reserved_slug(entity_kind: SlugEntityKind, slug: str) -> bool:
    return normalize_slug(slug) in RESERVED_SLUGS[entity_kind]


class SlugProtectionRegistry:
    """Union of the reserved word list and the protected_slug table."""

    def is_protected(self, entity_kind: SlugEntityKind | str, slug: str | None) -> bool:
        kind = _coerce_kind(entity_kind)
        if kind is None or not slug:
            return False

        normalized = normalize_slug(slug)
        if normalized in RESERVED_SLUGS[kind]:
            return True

        stmt = (
            select(ProtectedSlug.id)
            .where(ProtectedSlug.entity_kind == kind)
            .where(ProtectedSlug.slug == normalized)
        )
        return db.session.execute(stmt.limit(1)).scalar_one_or_none() is not None

    def get(self, protected_id: str) -> ProtectedSlug | None:
        return db.session.get(ProtectedSlug, protected_id)

    def list_protected(self, entity_kind: SlugEntityKind | str | None = None) -> list[ProtectedSlug]:
        stmt = select(ProtectedSlug).order_by(ProtectedSlug.created_at.desc())
        if entity_kind is not None:
            stmt = stmt.where(ProtectedSlug.entity_kind == _coerce_kind(entity_kind))
        return list(db.session.execute(stmt).scalars())

    def add_protected(
        self,
        entity_kind: SlugEntityKind | str,
        slug: str,
        reason: str | None,
        actor: User | None,
    ) -> Result[ProtectedSlug]:
        """Add a slug to the curated list; an existing row is a conflict."""
        kind = _coerce_kind(entity_kind)
        if kind is None:
            return None, bad_request(f"Unknown entity kind: {entity_kind}")

        normalized = normalize_slug(slug or '')
        if not normalized:
            return None, bad_request("Slug cannot be empty")

        existing = db.session.execute(
            select(ProtectedSlug)
            .where(ProtectedSlug.entity_kind == kind)
            .where(ProtectedSlug.slug == normalized)
        ).scalar_one_or_none()
        if existing:
            return None, conflict(f"'{normalized}' is already protected")

        try:
            row = ProtectedSlug(
                entity_kind=kind,
                slug=normalized,
                reason=reason,
                created_by_id=actor.id if actor is not None else None,
            )
            db.session.add(row)
            db.session.commit()

        except IntegrityError:
            db.session.rollback()
            return None, conflict(f"'{normalized}' is already protected")

        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to add protected slug {normalized}: {e}")
            return None, internal("Failed to add protected slug")

        record_event(
            actor,
            AuditAction.PROTECTED_SLUG_ADD,
            'protected_slug',
            row.id,
            metadata={'entity_kind': kind.value, 'slug': normalized, 'reason': reason},
        )
        return row, None

    def remove_protected(self, protected_id: str, actor: User | None = None) -> Result[dict]:
        """
        Delete a curated protection row.

        Entities already demoted because of this slug stay demoted; removal
        only affects future checks.
        """
        row = self.get(protected_id)
        if row is None:
            return None, not_found("Protected slug not found")

        snapshot = {'id': row.id, 'entity_kind': row.entity_kind.value, 'slug': row.slug}
        try:
            db.session.delete(row)
            db.session.commit()

        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to remove protected slug {protected_id}: {e}")
            return None, internal("Failed to remove protected slug")

        record_event(
            actor,
            AuditAction.PROTECTED_SLUG_REMOVE,
            'protected_slug',
            protected_id,
            metadata=snapshot,
        )
        return snapshot, None


def get_registry() -> SlugProtectionRegistry:
    """Return the registry for the current app context, creating it once."""
    if not has_app_context():
        return SlugProtectionRegistry()
    registry = g.get('slug_protection_registry')
    if registry is None:
        registry = SlugProtectionRegistry()
        g.slug_protection_registry = registry
    return registry


__all__ = [
    'RESERVED_SLUGS',
    'is_reserved_slug',
    'SlugProtectionRegistry',
    'get_registry',
]
