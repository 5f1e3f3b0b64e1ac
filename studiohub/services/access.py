"""Studio membership checks shared by the self-service workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from sqlalchemy import select

from studiohub.extensions import db
from studiohub.models import Game, GamePage, StudioMember, StudioRole
from studiohub.services.errors import Result, forbidden, not_found

if TYPE_CHECKING:
    from studiohub.models import User

EDIT_ROLES = (StudioRole.OWNER, StudioRole.ADMIN, StudioRole.MEMBER)
REQUEST_ROLES = (StudioRole.OWNER, StudioRole.ADMIN)


def studio_role(user: User, studio_id: str) -> StudioRole | None:
    stmt = (
        select(StudioMember.role)
        .where(StudioMember.studio_id == studio_id)
        .where(StudioMember.user_id == user.id)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def require_studio_role(
    user: User,
    studio_id: str,
    roles: Iterable[StudioRole] = EDIT_ROLES,
    message: str = "No access to this studio",
) -> Result[StudioRole]:
    role = studio_role(user, studio_id)
    if role is None or role not in tuple(roles):
        return None, forbidden(message)
    return role, None


def require_page_access(
    user: User,
    page_id: str,
    roles: Iterable[StudioRole] = EDIT_ROLES,
) -> Result[GamePage]:
    """Load a game page the user may edit through its owning studio."""
    page = db.session.get(GamePage, page_id)
    if page is None:
        return None, not_found("Game page not found")

    game: Game | None = page.game
    if game is None:
        return None, not_found("Game not found")

    _, error = require_studio_role(user, game.owner_studio_id, roles, "No access to this game page")
    if error:
        return None, error
    return page, None


__all__ = [
    'EDIT_ROLES',
    'REQUEST_ROLES',
    'studio_role',
    'require_studio_role',
    'require_page_access',
]
