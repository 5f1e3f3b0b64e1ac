"""Approval queue for slug/name edits on verified studios and game pages."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import (
    ChangeRequest,
    ChangeRequestField,
    ChangeRequestStatus,
    GamePage,
    SlugEntityKind,
    Studio,
)
from studiohub.services.access import REQUEST_ROLES, require_page_access, require_studio_role
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.cascade import unpublish_all_for_studio, unpublish_for_game
from studiohub.services.errors import Result, bad_request, conflict, forbidden, internal, not_found
from studiohub.services.lifecycle import SlugLifecycleManager, studio_id_for
from studiohub.services.protection import get_registry
from studiohub.services.slugs import STUDIO, is_temporary_slug, kind_for, normalize_slug, utcnow, validate_slug
from studiohub.services.verification import effective_slug, update_verified_flag

if TYPE_CHECKING:
    from studiohub.models import User


def _load_entity(entity_kind: SlugEntityKind, entity_id: str):
    model = Studio if entity_kind == SlugEntityKind.STUDIO else GamePage
    return db.session.get(model, entity_id)


def _current_value(entity, field: ChangeRequestField) -> str:
    if field == ChangeRequestField.SLUG:
        return effective_slug(entity)
    if isinstance(entity, GamePage):
        return entity.game.title
    return entity.name


def _pending_request(entity_kind: SlugEntityKind, entity_id: str, field: ChangeRequestField) -> ChangeRequest | None:
    stmt = (
        select(ChangeRequest)
        .where(ChangeRequest.entity_kind == entity_kind)
        .where(ChangeRequest.entity_id == entity_id)
        .where(ChangeRequest.field_name == field)
        .where(ChangeRequest.status == ChangeRequestStatus.PENDING)
    )
    return db.session.execute(stmt.limit(1)).scalar_one_or_none()


def _audit_metadata(request: ChangeRequest, **extra) -> dict:
    meta = {
        'entity_kind': request.entity_kind.value,
        'entity_id': request.entity_id,
        'field': request.field_name.value,
    }
    meta.update(extra)
    return meta


def _studio_scope(request: ChangeRequest) -> str | None:
    entity = _load_entity(request.entity_kind, request.entity_id)
    return studio_id_for(entity) if entity is not None else None


def create_change_request(
    user: User,
    entity_kind: SlugEntityKind | str,
    entity_id: str,
    field_name: ChangeRequestField | str,
    requested_value: str,
) -> Result[ChangeRequest]:
    try:
        kind = entity_kind if isinstance(entity_kind, SlugEntityKind) else SlugEntityKind(entity_kind)
        field = field_name if isinstance(field_name, ChangeRequestField) else ChangeRequestField(field_name)
    except ValueError:
        return None, bad_request("Unknown entity kind or field")

    entity = _load_entity(kind, entity_id)
    if entity is None:
        return None, not_found("Entity not found")

    if kind == SlugEntityKind.STUDIO:
        _, error = require_studio_role(user, entity_id, REQUEST_ROLES, "You do not have permission to request changes")
    else:
        _, error = require_page_access(user, entity_id, REQUEST_ROLES)
    if error:
        return None, error

    requested_value = (requested_value or '').strip()
    if field == ChangeRequestField.SLUG:
        requested_value = normalize_slug(requested_value)
        message = validate_slug(kind_for(kind), requested_value)
        if message:
            return None, bad_request(message)
    else:
        max_length = 100 if kind == SlugEntityKind.STUDIO else 200
        if not requested_value or len(requested_value) > max_length:
            return None, bad_request(f"Requested value must be between 1 and {max_length} characters")

    current_value = _current_value(entity, field)
    if current_value == requested_value:
        return None, bad_request("New value is the same as current value")

    if _pending_request(kind, entity_id, field):
        return None, conflict("A pending request for this field already exists")

    try:
        request = ChangeRequest(
            entity_kind=kind,
            entity_id=entity_id,
            field_name=field,
            current_value=current_value,
            requested_value=requested_value,
            status=ChangeRequestStatus.PENDING,
            requested_by_id=user.id,
        )
        db.session.add(request)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create change request: {e}")
        return None, internal("Failed to create change request")

    record_event(
        user,
        AuditAction.CHANGE_REQUEST_CREATE,
        'change_request',
        request.id,
        metadata=_audit_metadata(request, current_value=current_value, requested_value=requested_value),
        studio_id=studio_id_for(entity),
    )
    return request, None


def _apply_studio_slug(request: ChangeRequest, admin: User) -> Result[Studio]:
    """
    Protected slug: stage it behind a temporary slug, and if the studio was
    verified, drop verification and unpublish all of its games.
    """
    manager = SlugLifecycleManager(SlugEntityKind.STUDIO)
    if not get_registry().is_protected(SlugEntityKind.STUDIO, request.requested_value):
        return manager.assign(request.entity_id, request.requested_value, actor=admin)

    studio = db.session.get(Studio, request.entity_id)
    was_verified = studio.is_verified
    # Staged on this value already: an earlier approval failed after demoting.
    retrying = studio.requested_slug == request.requested_value and is_temporary_slug(STUDIO, studio.slug)

    studio, error = manager.demote(request.entity_id, requested_slug=request.requested_value, actor=admin)
    if error:
        return None, error

    if studio.is_verified:
        studio, error = update_verified_flag(studio, False)
        if error:
            return None, error
    if was_verified or retrying:
        _, error = unpublish_all_for_studio(studio.id, actor=admin)
        if error:
            return None, error

    return studio, None


def _apply_page_slug(request: ChangeRequest, admin: User) -> Result[GamePage]:
    """Protected slug: stage it, unverify the owning game and unpublish the page."""
    manager = SlugLifecycleManager(SlugEntityKind.GAME_PAGE)
    if not get_registry().is_protected(SlugEntityKind.GAME_PAGE, request.requested_value):
        return manager.assign(request.entity_id, request.requested_value, actor=admin)

    page, error = manager.demote(request.entity_id, requested_slug=request.requested_value, actor=admin)
    if error:
        return None, error

    if page.game.is_verified:
        _, error = update_verified_flag(page.game, False)
        if error:
            return None, error

    _, error = unpublish_for_game(page.game_id, actor=admin)
    if error:
        return None, error

    return page, None


def _apply_name(request: ChangeRequest) -> Result:
    entity = _load_entity(request.entity_kind, request.entity_id)
    try:
        if isinstance(entity, GamePage):
            entity.game.title = request.requested_value
        else:
            entity.name = request.requested_value
        entity.updated_at = utcnow()
        db.session.commit()
        return entity, None
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to apply name change for request {request.id}: {e}")
        return None, internal("Failed to apply name change")


def approve_change_request(admin: User, request_id: str, notes: str | None = None) -> Result[ChangeRequest]:
    """
    Apply a pending request.

    Protection is checked against the list as it is now, not as it was when
    the request was filed. Steps already applied stay applied if a later
    step fails.
    """
    request = db.session.get(ChangeRequest, request_id)
    if request is None:
        return None, not_found("Request not found")

    if request.status != ChangeRequestStatus.PENDING:
        return None, bad_request("Only pending requests can be approved")

    if _load_entity(request.entity_kind, request.entity_id) is None:
        return None, not_found("Entity not found")

    if request.field_name == ChangeRequestField.SLUG:
        if request.entity_kind == SlugEntityKind.STUDIO:
            entity, error = _apply_studio_slug(request, admin)
        else:
            entity, error = _apply_page_slug(request, admin)
    else:
        entity, error = _apply_name(request)
    if error:
        return None, error

    try:
        now = utcnow()
        setattr(entity, f"last_{request.field_name.value}_change", now)
        request.status = ChangeRequestStatus.APPROVED
        request.reviewed_by_id = admin.id
        request.reviewed_at = now
        request.reviewer_notes = notes or None
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to mark change request {request_id} approved: {e}")
        return None, internal("Change applied but the request could not be marked approved")

    record_event(
        admin,
        AuditAction.CHANGE_REQUEST_APPROVE,
        'change_request',
        request.id,
        metadata=_audit_metadata(
            request,
            old_value=request.current_value,
            new_value=request.requested_value,
            live_slug=getattr(entity, 'slug', None),
        ),
        studio_id=studio_id_for(entity),
    )
    return request, None


def _close_request(request: ChangeRequest, status: ChangeRequestStatus, reviewer: User | None, notes: str | None) -> Result[ChangeRequest]:
    try:
        request.status = status
        if reviewer is not None:
            request.reviewed_by_id = reviewer.id
            request.reviewed_at = utcnow()
            request.reviewer_notes = notes
        db.session.commit()
        return request, None
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to mark change request {request.id} {status.value}: {e}")
        return None, internal("Failed to update change request")


def reject_change_request(admin: User, request_id: str, notes: str) -> Result[ChangeRequest]:
    notes = (notes or '').strip()
    if not notes:
        return None, bad_request("Rejection notes are required")

    request = db.session.get(ChangeRequest, request_id)
    if request is None:
        return None, not_found("Request not found")

    if request.status != ChangeRequestStatus.PENDING:
        return None, bad_request("Only pending requests can be rejected")

    request, error = _close_request(request, ChangeRequestStatus.REJECTED, admin, notes)
    if error:
        return None, error

    record_event(
        admin,
        AuditAction.CHANGE_REQUEST_REJECT,
        'change_request',
        request.id,
        metadata=_audit_metadata(request, reason=notes),
        studio_id=_studio_scope(request),
    )
    return request, None


def cancel_change_request(user: User, request_id: str) -> Result[ChangeRequest]:
    request = db.session.get(ChangeRequest, request_id)
    if request is None:
        return None, not_found("Request not found")

    if request.requested_by_id != user.id:
        return None, forbidden("You can only cancel your own requests")

    if request.status != ChangeRequestStatus.PENDING:
        return None, bad_request("Only pending requests can be cancelled")

    request, error = _close_request(request, ChangeRequestStatus.CANCELLED, None, None)
    if error:
        return None, error

    record_event(
        user,
        AuditAction.CHANGE_REQUEST_CANCEL,
        'change_request',
        request.id,
        metadata=_audit_metadata(request),
        studio_id=_studio_scope(request),
    )
    return request, None


def list_change_requests(
    status: ChangeRequestStatus | None = None,
    entity_kind: SlugEntityKind | None = None,
    limit: int = 50,
) -> list[ChangeRequest]:
    stmt = select(ChangeRequest).order_by(ChangeRequest.created_at.desc()).limit(limit)
    if status is not None:
        stmt = stmt.where(ChangeRequest.status == status)
    if entity_kind is not None:
        stmt = stmt.where(ChangeRequest.entity_kind == entity_kind)
    return list(db.session.execute(stmt).scalars())


def my_change_requests(
    user: User,
    entity_kind: SlugEntityKind | None = None,
    entity_id: str | None = None,
) -> list[ChangeRequest]:
    stmt = (
        select(ChangeRequest)
        .where(ChangeRequest.requested_by_id == user.id)
        .order_by(ChangeRequest.created_at.desc())
    )
    if entity_kind is not None:
        stmt = stmt.where(ChangeRequest.entity_kind == entity_kind)
    if entity_id is not None:
        stmt = stmt.where(ChangeRequest.entity_id == entity_id)
    return list(db.session.execute(stmt).scalars())


__all__ = [
    'create_change_request',
    'approve_change_request',
    'reject_change_request',
    'cancel_change_request',
    'list_change_requests',
    'my_change_requests',
]
