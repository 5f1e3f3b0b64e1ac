"""Platform moderation API: verification, protected slugs, request queues."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import func, select

from studiohub.auth import admin_required
from studiohub.blueprints.api.routes import (
    bad_payload,
    error_response,
    serialize_audit_entry,
    serialize_change_request,
    serialize_claim,
    serialize_game,
    serialize_page,
    serialize_protected_slug,
    serialize_studio,
)
from studiohub.extensions import db
from studiohub.models import (
    AuditLog,
    ChangeRequest,
    ChangeRequestStatus,
    ClaimStatus,
    Game,
    OwnershipClaim,
    SlugEntityKind,
    Studio,
)
from studiohub.services.catalog import set_page_claimable
from studiohub.services.change_requests import (
    approve_change_request,
    list_change_requests,
    reject_change_request,
)
from studiohub.services.ownership import list_claims, resolve_claim
from studiohub.services.protection import get_registry
from studiohub.services.verification import set_game_verified, set_studio_verified

admin_bp = Blueprint('admin', __name__)


def _flag(data: dict, key: str):
    value = data.get(key)
    return value if isinstance(value, bool) else None


def _limit(default: int = 50) -> int:
    try:
        return max(1, min(int(request.args.get('limit', default)), 200))
    except ValueError:
        return default


def _count(stmt) -> int:
    return db.session.execute(stmt).scalar_one()


@admin_bp.route('/summary', methods=['GET'])
@admin_required
def summary():
    return jsonify({
        'pending_change_requests': _count(
            select(func.count(ChangeRequest.id)).where(ChangeRequest.status == ChangeRequestStatus.PENDING)
        ),
        'open_claims': _count(
            select(func.count(OwnershipClaim.id)).where(OwnershipClaim.status == ClaimStatus.OPEN)
        ),
        'unverified_studios': _count(select(func.count(Studio.id)).where(Studio.is_verified.is_(False))),
        'unverified_games': _count(select(func.count(Game.id)).where(Game.is_verified.is_(False))),
    })


@admin_bp.route('/studios/<studio_id>/verification', methods=['POST'])
@admin_required
def studio_verification(studio_id: str):
    is_verified = _flag(request.get_json(silent=True) or {}, 'is_verified')
    if is_verified is None:
        return bad_payload('is_verified must be a boolean')

    studio, error = set_studio_verified(current_user, studio_id, is_verified)
    if error:
        return error_response(error)
    return jsonify(serialize_studio(studio))


@admin_bp.route('/games/<game_id>/verification', methods=['POST'])
@admin_required
def game_verification(game_id: str):
    is_verified = _flag(request.get_json(silent=True) or {}, 'is_verified')
    if is_verified is None:
        return bad_payload('is_verified must be a boolean')

    game, error = set_game_verified(current_user, game_id, is_verified)
    if error:
        return error_response(error)
    return jsonify(serialize_game(game))


@admin_bp.route('/pages/<page_id>/claimable', methods=['POST'])
@admin_required
def page_claimable(page_id: str):
    is_claimable = _flag(request.get_json(silent=True) or {}, 'is_claimable')
    if is_claimable is None:
        return bad_payload('is_claimable must be a boolean')

    page, error = set_page_claimable(current_user, page_id, is_claimable)
    if error:
        return error_response(error)
    return jsonify(serialize_page(page))


@admin_bp.route('/protected-slugs', methods=['GET'])
@admin_required
def protected_slugs():
    entries = get_registry().list_protected(request.args.get('entity_kind') or None)
    return jsonify({'items': [serialize_protected_slug(e) for e in entries]})


@admin_bp.route('/protected-slugs', methods=['POST'])
@admin_required
def add_protected_slug():
    data = request.get_json(silent=True) or {}
    entry, error = get_registry().add_protected(
        data.get('entity_kind'),
        data.get('slug'),
        data.get('reason'),
        actor=current_user,
    )
    if error:
        return error_response(error)
    return jsonify(serialize_protected_slug(entry)), 201


@admin_bp.route('/protected-slugs/<protected_id>', methods=['DELETE'])
@admin_required
def remove_protected_slug(protected_id: str):
    removed, error = get_registry().remove_protected(protected_id, actor=current_user)
    if error:
        return error_response(error)
    return jsonify({'removed': removed})


@admin_bp.route('/change-requests', methods=['GET'])
@admin_required
def change_requests():
    try:
        status = ChangeRequestStatus(request.args['status']) if request.args.get('status') else None
        kind = SlugEntityKind(request.args['entity_kind']) if request.args.get('entity_kind') else None
    except ValueError:
        return bad_payload('Unknown status or entity kind')

    items = list_change_requests(status=status, entity_kind=kind, limit=_limit())
    return jsonify({'items': [serialize_change_request(c) for c in items]})


@admin_bp.route('/change-requests/<request_id>/approve', methods=['POST'])
@admin_required
def approve_change_request_route(request_id: str):
    data = request.get_json(silent=True) or {}
    change, error = approve_change_request(current_user, request_id, data.get('notes'))
    if error:
        return error_response(error)
    return jsonify(serialize_change_request(change))


@admin_bp.route('/change-requests/<request_id>/reject', methods=['POST'])
@admin_required
def reject_change_request_route(request_id: str):
    data = request.get_json(silent=True) or {}
    change, error = reject_change_request(current_user, request_id, data.get('notes'))
    if error:
        return error_response(error)
    return jsonify(serialize_change_request(change))


@admin_bp.route('/ownership-claims', methods=['GET'])
@admin_required
def ownership_claims():
    try:
        status = ClaimStatus(request.args['status']) if request.args.get('status') else None
    except ValueError:
        return bad_payload('Unknown claim status')
    return jsonify({'items': [serialize_claim(c) for c in list_claims(status=status, limit=_limit())]})


@admin_bp.route('/ownership-claims/<claim_id>/resolve', methods=['POST'])
@admin_required
def resolve_claim_route(claim_id: str):
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        return bad_payload('status is required')

    claim, error = resolve_claim(
        current_user,
        claim_id,
        data['status'],
        transfer_ownership=bool(data.get('transfer_ownership')),
        notes=data.get('notes'),
    )
    if error:
        return error_response(error)
    return jsonify(serialize_claim(claim))


@admin_bp.route('/audit-log', methods=['GET'])
@admin_required
def audit_log():
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(_limit(100))
    if request.args.get('action'):
        stmt = stmt.where(AuditLog.action == request.args['action'])
    if request.args.get('entity_id'):
        stmt = stmt.where(AuditLog.entity_id == request.args['entity_id'])
    entries = db.session.execute(stmt).scalars()
    return jsonify({'items': [serialize_audit_entry(e) for e in entries]})
