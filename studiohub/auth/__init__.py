"""Authentication helpers shared across blueprints."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, cast

from flask import jsonify
from flask_login import current_user

from studiohub.models import UserRole

F = TypeVar('F', bound=Callable[..., object])


def _json_error(kind: str, message: str, status: int):
    return jsonify({'error': {'kind': kind, 'message': message}}), status


def admin_required(func: F) -> F:
    """Decorator to ensure the current user is a platform admin."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return _json_error('unauthorized', 'Authentication required', 401)

        if not current_user.has_role(UserRole.ADMIN):
            return _json_error('forbidden', 'Admin access required', 403)

        return func(*args, **kwargs)

    return cast(F, wrapper)


def active_user_required(func: F) -> F:
    """Decorator to ensure the current user account is active."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return _json_error('unauthorized', 'Authentication required', 401)

        if not current_user.is_active:
            return _json_error('forbidden', 'Your account has been deactivated', 403)

        return func(*args, **kwargs)

    return cast(F, wrapper)


__all__ = ['admin_required', 'active_user_required']
