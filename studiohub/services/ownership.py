"""Ownership claims: a studio asks to take over a claimable game page."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from studiohub.extensions import db
from studiohub.models import ClaimStatus, GamePage, OwnershipClaim, SlugEntityKind, Studio
from studiohub.services.access import require_studio_role
from studiohub.services.audit import AuditAction, record_event
from studiohub.services.errors import Result, bad_request, conflict, forbidden, internal, not_found
from studiohub.services.slug_store import SlugStore
from studiohub.services.slugs import GAME_PAGE, normalize_slug, utcnow
from studiohub.services.verification import effective_slug, on_verify

if TYPE_CHECKING:
    from studiohub.models import User


def _open_claim(page_id: str, studio_id: str) -> OwnershipClaim | None:
    stmt = (
        select(OwnershipClaim)
        .where(OwnershipClaim.page_id == page_id)
        .where(OwnershipClaim.requested_studio_id == studio_id)
        .where(OwnershipClaim.status == ClaimStatus.OPEN)
    )
    return db.session.execute(stmt.limit(1)).scalar_one_or_none()


def claim_ownership(
    user: User,
    page_slug: str,
    target_studio_id: str,
    details: str | None = None,
) -> Result[OwnershipClaim]:
    if db.session.get(Studio, target_studio_id) is None:
        return None, not_found("Studio not found")

    _, error = require_studio_role(user, target_studio_id, message="You must be a member of the claiming studio")
    if error:
        return None, error

    page = SlugStore(GAME_PAGE).find_by_slug(normalize_slug(page_slug or ''))
    if page is None:
        return None, not_found("Game page not found")

    if not page.is_claimable:
        return None, forbidden("This page is not claimable")

    game = page.game
    if game.owner_studio_id == target_studio_id:
        return None, bad_request("This studio already owns the game")

    if _open_claim(page.id, target_studio_id):
        return None, conflict("An open claim for this page already exists")

    try:
        claim = OwnershipClaim(
            page_id=page.id,
            game_id=game.id,
            current_studio_id=game.owner_studio_id,
            requested_studio_id=target_studio_id,
            claimed_slug=effective_slug(page),
            claimant_user_id=user.id,
            claimant_email=user.email,
            details=(details or '').strip() or None,
            status=ClaimStatus.OPEN,
        )
        db.session.add(claim)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create ownership claim for page {page.id}: {e}")
        return None, internal("Failed to create ownership claim")

    record_event(
        user,
        AuditAction.OWNERSHIP_CLAIM_CREATE,
        'ownership_claim',
        claim.id,
        metadata={
            'page_id': page.id,
            'slug': claim.claimed_slug,
            'current_studio_id': claim.current_studio_id,
            'requested_studio_id': target_studio_id,
        },
        studio_id=target_studio_id,
    )
    return claim, None


def _transfer_page(admin: User, claim: OwnershipClaim) -> Result[GamePage]:
    """
    Promote the page's staged slug, then hand the game to the claiming
    studio as verified and close the page to further claims.
    """
    page, error = on_verify(SlugEntityKind.GAME_PAGE, claim.page_id, actor=admin)
    if error:
        return None, error

    try:
        game = page.game
        game.owner_studio_id = claim.requested_studio_id
        game.is_verified = True
        game.updated_at = utcnow()
        db.session.commit()

        page.is_claimable = False
        page.updated_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to transfer ownership for claim {claim.id}: {e}")
        return None, internal("Failed to transfer ownership")

    return page, None


def _close_sibling_claims(admin: User, claim: OwnershipClaim) -> None:
    """Reject the other open claims on a page that has just changed hands."""
    stmt = (
        select(OwnershipClaim)
        .where(OwnershipClaim.page_id == claim.page_id)
        .where(OwnershipClaim.status == ClaimStatus.OPEN)
        .where(OwnershipClaim.id != claim.id)
    )
    for other in db.session.execute(stmt).scalars().all():
        try:
            other.status = ClaimStatus.REJECTED
            other.handled_by_id = admin.id
            other.handled_at = utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning(f"Failed to close ownership claim {other.id}: {e}")
            continue

        record_event(
            admin,
            AuditAction.OWNERSHIP_CLAIM_RESOLVE,
            'ownership_claim',
            other.id,
            metadata={
                'status': ClaimStatus.REJECTED.value,
                'reason': 'page_claimed',
                'page_id': claim.page_id,
                'winning_claim_id': claim.id,
            },
            studio_id=other.requested_studio_id,
        )


def resolve_claim(
    admin: User,
    claim_id: str,
    status: ClaimStatus | str,
    transfer_ownership: bool = False,
    notes: str | None = None,
) -> Result[OwnershipClaim]:
    """
    Approve or reject an open claim.

    A promotion conflict is returned as-is and the claim stays open.
    """
    claim = db.session.get(OwnershipClaim, claim_id)
    if claim is None:
        return None, not_found("Claim not found")

    try:
        status = status if isinstance(status, ClaimStatus) else ClaimStatus(status)
    except ValueError:
        return None, bad_request("Status must be approved or rejected")
    if status == ClaimStatus.OPEN:
        return None, bad_request("Status must be approved or rejected")

    if claim.status != ClaimStatus.OPEN:
        return None, bad_request("Only open claims can be resolved")

    page = db.session.get(GamePage, claim.page_id)
    if page is None:
        return None, not_found("Game page not found")
    previous_owner = page.game.owner_studio_id

    transferred = status == ClaimStatus.APPROVED and transfer_ownership
    if transferred:
        if not page.is_claimable:
            return None, bad_request("This page has already been claimed")
        page, error = _transfer_page(admin, claim)
        if error:
            return None, error

    try:
        claim.status = status
        claim.handled_by_id = admin.id
        claim.handled_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to resolve ownership claim {claim_id}: {e}")
        return None, internal("Failed to resolve ownership claim")

    record_event(
        admin,
        AuditAction.OWNERSHIP_CLAIM_RESOLVE,
        'ownership_claim',
        claim.id,
        metadata={
            'status': status.value,
            'transfer_ownership': transferred,
            'page_id': claim.page_id,
            'slug': page.slug,
            'previous_studio_id': previous_owner,
            'new_studio_id': page.game.owner_studio_id,
            'notes': notes,
        },
        studio_id=page.game.owner_studio_id,
    )

    if transferred:
        _close_sibling_claims(admin, claim)
    return claim, None


def list_claims(status: ClaimStatus | None = None, limit: int = 50) -> list[OwnershipClaim]:
    stmt = select(OwnershipClaim).order_by(OwnershipClaim.created_at.desc()).limit(limit)
    if status is not None:
        stmt = stmt.where(OwnershipClaim.status == status)
    return list(db.session.execute(stmt).scalars())


def my_claims(user: User) -> list[OwnershipClaim]:
    stmt = (
        select(OwnershipClaim)
        .where(OwnershipClaim.claimant_user_id == user.id)
        .order_by(OwnershipClaim.created_at.desc())
    )
    return list(db.session.execute(stmt).scalars())


__all__ = ['claim_ownership', 'resolve_claim', 'list_claims', 'my_claims']
