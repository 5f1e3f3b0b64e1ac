"""Audit logging service for slug, verification and moderation events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app, has_request_context, request
from studiohub.extensions import db
from studiohub.models import AuditLog

if TYPE_CHECKING:
    from studiohub.models import User


class AuditAction:
    # Studio
    STUDIO_CREATE = 'studio.create'
    STUDIO_UPDATE = 'studio.update'
    STUDIO_VERIFY = 'studio.verify'
    STUDIO_UNVERIFY = 'studio.unverify'
    # Game
    GAME_CREATE = 'game.create'
    GAME_VERIFY = 'game.verify'
    GAME_UNVERIFY = 'game.unverify'
    # Game page
    GAME_PAGE_PUBLISH = 'game_page.publish'
    GAME_PAGE_UNPUBLISH = 'game_page.unpublish'
    GAME_PAGE_UPDATE_SLUG = 'game_page.update_slug'
    GAME_PAGE_SET_CLAIMABLE = 'game_page.set_claimable'
    # Slug lifecycle
    SLUG_DEMOTE = 'slug.demote'
    SLUG_PROMOTE = 'slug.promote'
    # Protected slugs
    PROTECTED_SLUG_ADD = 'protected_slug.add'
    PROTECTED_SLUG_REMOVE = 'protected_slug.remove'
    # Change request
    CHANGE_REQUEST_CREATE = 'change_request.create'
    CHANGE_REQUEST_APPROVE = 'change_request.approve'
    CHANGE_REQUEST_REJECT = 'change_request.reject'
    CHANGE_REQUEST_CANCEL = 'change_request.cancel'
    # Ownership claim
    OWNERSHIP_CLAIM_CREATE = 'ownership_claim.create'
    OWNERSHIP_CLAIM_RESOLVE = 'ownership_claim.resolve'


def record_event(
    user: User | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    studio_id: str | None = None,
) -> None:
    """
    Record an audit event.

    Audit logging must never fail the operation that triggered it, so any
    error is rolled back and logged instead of raised. Callers commit their
    own changes before recording.

    Args:
        user: User who performed the action (None for system actions)
        action: One of the AuditAction names
        entity_type: Type of entity affected
        entity_id: ID of entity affected
        metadata: Additional metadata
        studio_id: Studio the event belongs to, when there is one
    """
    try:
        meta = dict(metadata or {})
        if has_request_context():
            meta['ip_address'] = request.remote_addr
            meta['user_agent'] = request.headers.get('User-Agent')

        audit_entry = AuditLog(
            user_id=user.id if user is not None else None,
            studio_id=studio_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta,
        )

        db.session.add(audit_entry)
        db.session.commit()

    except Exception as e:
        # Don't fail the request if audit logging fails
        db.session.rollback()
        current_app.logger.error(f"Failed to record audit event {action}: {e}")


__all__ = ["AuditAction", "record_event"]
