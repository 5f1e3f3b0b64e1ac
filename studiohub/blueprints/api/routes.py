"""Self-service JSON API for studio members."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from studiohub.auth import active_user_required
from studiohub.extensions import db, limiter
from studiohub.models import (
    AuditLog,
    ChangeRequest,
    Game,
    GamePage,
    OwnershipClaim,
    ProtectedSlug,
    SlugEntityKind,
    Studio,
)
from studiohub.services.catalog import (
    check_slug_available,
    create_game,
    create_studio,
    update_page_slug,
    update_studio_name,
    update_studio_slug,
)
from studiohub.services.change_requests import (
    cancel_change_request,
    create_change_request,
    my_change_requests,
)
from studiohub.services.errors import ServiceError
from studiohub.services.ownership import claim_ownership, my_claims
from studiohub.services.verification import publish_page, unpublish_page

api_bp = Blueprint('api', __name__)


def _iso(value):
    return value.isoformat() if value else None


def _enum(value):
    return value.value if hasattr(value, 'value') else value


def serialize_studio(studio: Studio) -> dict:
    return {
        'id': studio.id,
        'name': studio.name,
        'slug': studio.slug,
        'requested_slug': studio.requested_slug,
        'is_verified': studio.is_verified,
        'bio': studio.bio,
        'last_slug_change': _iso(studio.last_slug_change),
        'last_name_change': _iso(studio.last_name_change),
    }


def serialize_page(page: GamePage) -> dict:
    return {
        'id': page.id,
        'game_id': page.game_id,
        'slug': page.slug,
        'requested_slug': page.requested_slug,
        'visibility': _enum(page.visibility),
        'is_primary': page.is_primary,
        'is_claimable': page.is_claimable,
        'published_at': _iso(page.published_at),
        'unpublished_at': _iso(page.unpublished_at),
        'last_slug_change': _iso(page.last_slug_change),
    }


def serialize_game(game: Game) -> dict:
    page = game.primary_page
    return {
        'id': game.id,
        'title': game.title,
        'owner_studio_id': game.owner_studio_id,
        'is_verified': game.is_verified,
        'primary_page': serialize_page(page) if page else None,
    }


def serialize_change_request(change: ChangeRequest) -> dict:
    return {
        'id': change.id,
        'entity_kind': _enum(change.entity_kind),
        'entity_id': change.entity_id,
        'field': _enum(change.field_name),
        'current_value': change.current_value,
        'requested_value': change.requested_value,
        'status': _enum(change.status),
        'requested_by_id': change.requested_by_id,
        'reviewed_by_id': change.reviewed_by_id,
        'reviewed_at': _iso(change.reviewed_at),
        'reviewer_notes': change.reviewer_notes,
        'created_at': _iso(change.created_at),
    }


def serialize_claim(claim: OwnershipClaim) -> dict:
    return {
        'id': claim.id,
        'page_id': claim.page_id,
        'game_id': claim.game_id,
        'current_studio_id': claim.current_studio_id,
        'requested_studio_id': claim.requested_studio_id,
        'claimed_slug': claim.claimed_slug,
        'claimant_user_id': claim.claimant_user_id,
        'claimant_email': claim.claimant_email,
        'details': claim.details,
        'status': _enum(claim.status),
        'handled_by_id': claim.handled_by_id,
        'handled_at': _iso(claim.handled_at),
        'created_at': _iso(claim.created_at),
    }


def serialize_protected_slug(entry: ProtectedSlug) -> dict:
    return {
        'id': entry.id,
        'entity_kind': _enum(entry.entity_kind),
        'slug': entry.slug,
        'reason': entry.reason,
        'created_by_id': entry.created_by_id,
        'created_at': _iso(entry.created_at),
    }


def serialize_audit_entry(entry: AuditLog) -> dict:
    return {
        'id': entry.id,
        'action': entry.action,
        'entity_type': entry.entity_type,
        'entity_id': entry.entity_id,
        'user_id': entry.user_id,
        'studio_id': entry.studio_id,
        'metadata': entry.meta or {},
        'created_at': _iso(entry.created_at),
    }


def error_response(error: ServiceError):
    return jsonify({'error': error.to_dict()}), error.http_status


def bad_payload(message: str):
    return jsonify({'error': {'kind': 'bad_request', 'message': message}}), 400


def _claim_limit() -> str:
    return current_app.config['CLAIM_RATE_LIMIT']


def _change_request_limit() -> str:
    return current_app.config['CHANGE_REQUEST_RATE_LIMIT']


def _parse_kind(value: str | None) -> SlugEntityKind | None:
    try:
        return SlugEntityKind((value or '').replace('-', '_'))
    except ValueError:
        return None


@api_bp.route('/slugs/<kind>/check', methods=['GET'])
def slug_availability(kind: str):
    entity_kind = _parse_kind(kind)
    if entity_kind is None:
        return bad_payload('Unknown slug kind')
    return jsonify(check_slug_available(entity_kind, request.args.get('slug', '')))


@api_bp.route('/studios', methods=['POST'])
@login_required
@active_user_required
def create_studio_route():
    data = request.get_json(silent=True) or {}
    studio, error = create_studio(current_user, data.get('name'), data.get('slug'))
    if error:
        return error_response(error)
    return jsonify(serialize_studio(studio)), 201


@api_bp.route('/studios/<studio_id>', methods=['GET'])
@login_required
def get_studio(studio_id: str):
    studio = db.session.get(Studio, studio_id)
    if studio is None:
        return jsonify({'error': {'kind': 'not_found', 'message': 'Studio not found'}}), 404
    payload = serialize_studio(studio)
    payload['games'] = [serialize_game(g) for g in studio.games]
    return jsonify(payload)


@api_bp.route('/studios/<studio_id>/slug', methods=['PATCH'])
@login_required
@active_user_required
def update_studio_slug_route(studio_id: str):
    data = request.get_json(silent=True) or {}
    studio, error = update_studio_slug(current_user, studio_id, data.get('slug'))
    if error:
        return error_response(error)
    return jsonify(serialize_studio(studio))


@api_bp.route('/studios/<studio_id>/name', methods=['PATCH'])
@login_required
@active_user_required
def update_studio_name_route(studio_id: str):
    data = request.get_json(silent=True) or {}
    studio, error = update_studio_name(current_user, studio_id, data.get('name'))
    if error:
        return error_response(error)
    return jsonify(serialize_studio(studio))


@api_bp.route('/studios/<studio_id>/games', methods=['POST'])
@login_required
@active_user_required
def create_game_route(studio_id: str):
    data = request.get_json(silent=True) or {}
    game, error = create_game(current_user, studio_id, data.get('title'), data.get('slug'))
    if error:
        return error_response(error)
    return jsonify(serialize_game(game)), 201


@api_bp.route('/pages/<page_id>/slug', methods=['PATCH'])
@login_required
@active_user_required
def update_page_slug_route(page_id: str):
    data = request.get_json(silent=True) or {}
    page, error = update_page_slug(current_user, page_id, data.get('slug'))
    if error:
        return error_response(error)
    return jsonify(serialize_page(page))


@api_bp.route('/pages/<page_id>/publish', methods=['POST'])
@login_required
@active_user_required
def publish_page_route(page_id: str):
    page, error = publish_page(current_user, page_id)
    if error:
        return error_response(error)
    return jsonify(serialize_page(page))


@api_bp.route('/pages/<page_id>/unpublish', methods=['POST'])
@login_required
@active_user_required
def unpublish_page_route(page_id: str):
    page, error = unpublish_page(current_user, page_id)
    if error:
        return error_response(error)
    return jsonify(serialize_page(page))


@api_bp.route('/change-requests', methods=['POST'])
@login_required
@active_user_required
@limiter.limit(_change_request_limit)
def create_change_request_route():
    data = request.get_json(silent=True) or {}
    for key in ('entity_kind', 'entity_id', 'field', 'requested_value'):
        if not data.get(key):
            return bad_payload(f'{key} is required')

    change, error = create_change_request(
        current_user,
        data['entity_kind'],
        data['entity_id'],
        data['field'],
        data['requested_value'],
    )
    if error:
        return error_response(error)
    return jsonify(serialize_change_request(change)), 201


@api_bp.route('/change-requests/mine', methods=['GET'])
@login_required
def list_my_change_requests():
    entity_kind = None
    if request.args.get('entity_kind'):
        entity_kind = _parse_kind(request.args['entity_kind'])
        if entity_kind is None:
            return bad_payload('Unknown entity kind')
    items = my_change_requests(current_user, entity_kind, request.args.get('entity_id'))
    return jsonify({'items': [serialize_change_request(c) for c in items]})


@api_bp.route('/change-requests/<request_id>/cancel', methods=['POST'])
@login_required
@active_user_required
def cancel_change_request_route(request_id: str):
    change, error = cancel_change_request(current_user, request_id)
    if error:
        return error_response(error)
    return jsonify(serialize_change_request(change))


@api_bp.route('/ownership-claims', methods=['POST'])
@login_required
@active_user_required
@limiter.limit(_claim_limit)
def create_claim_route():
    data = request.get_json(silent=True) or {}
    if not data.get('page_slug') or not data.get('studio_id'):
        return bad_payload('page_slug and studio_id are required')

    claim, error = claim_ownership(current_user, data['page_slug'], data['studio_id'], data.get('details'))
    if error:
        return error_response(error)
    return jsonify(serialize_claim(claim)), 201


@api_bp.route('/ownership-claims/mine', methods=['GET'])
@login_required
def list_my_claims():
    return jsonify({'items': [serialize_claim(c) for c in my_claims(current_user)]})
