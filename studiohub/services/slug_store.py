"""Narrow storage interface over the slug-holding tables."""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studiohub.extensions import db
from studiohub.services.errors import Result, conflict, internal
from studiohub.services.slugs import SlugKind, kind_for


class SlugStore:
    """Point reads and slug-field writes for one entity kind."""

    def __init__(self, slug_kind: SlugKind):
        self.slug_kind = slug_kind
        self.model = slug_kind.model

    @classmethod
    def for_kind(cls, entity_kind) -> "SlugStore":
        return cls(kind_for(entity_kind))

    def get(self, entity_id: str):
        return db.session.get(self.model, entity_id)

    def find_by_slug(self, slug: str, exclude_id: str | None = None):
        stmt = select(self.model).where(self.model.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        return db.session.execute(stmt.limit(1)).scalar_one_or_none()

    def slug_exists(self, slug: str) -> bool:
        return self.find_by_slug(slug) is not None

    def is_taken(self, slug: str, exclude_id: str | None = None) -> bool:
        """True if another row of this kind holds ``slug`` live."""
        return self.find_by_slug(slug, exclude_id=exclude_id) is not None

    def update_slug_fields(self, holder, **fields: Any) -> Result:
        """
        Write slug-related columns on ``holder`` and commit.

        A unique-constraint violation on the slug column is reported as a
        conflict; the storage layer is the final arbiter when two writers
        race for the same slug.
        """
        try:
            for key, value in fields.items():
                setattr(holder, key, value)
            db.session.commit()
            return holder, None

        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.info(f"Slug write on {self.slug_kind.label} {holder.id} lost a uniqueness race: {e.orig}")
            return None, conflict(f"Requested {self.slug_kind.label} slug is already taken")

        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update {self.slug_kind.label} {holder.id}: {e}")
            return None, internal(f"Failed to update {self.slug_kind.label} slug")


__all__ = ['SlugStore']
