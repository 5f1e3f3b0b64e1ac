import pytest
from sqlalchemy import select

from studiohub.extensions import db
from studiohub.models import AuditLog, ClaimStatus, Game, OwnershipClaim, StudioRole
from studiohub.services.audit import AuditAction
from studiohub.services.errors import ErrorKind
from studiohub.services.ownership import claim_ownership, list_claims, my_claims, resolve_claim


@pytest.fixture()
def setup(make):
    """A claimable page with a staged slug, owned by a placeholder studio."""
    placeholder = make.studio(slug='unclaimed-games')
    game = make.game(
        placeholder,
        slug='pending-game-aaaaaaaaaa',
        requested_slug='indie-gem',
        claimable=True,
        title='Indie Gem',
    )
    claimant = make.user(email='dev@indie.example')
    target = make.studio(owner=claimant, slug='indie-devs')
    admin = make.user(admin=True)
    return {
        'placeholder': placeholder,
        'game': game,
        'page': game.primary_page,
        'claimant': claimant,
        'target': target,
        'admin': admin,
    }


class TestClaim:
    def test_claim_snapshots_slug_and_claimant(self, setup):
        claim, error = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id, ' mine ')

        assert error is None
        assert claim.status == ClaimStatus.OPEN
        assert claim.page_id == setup['page'].id
        assert claim.current_studio_id == setup['placeholder'].id
        assert claim.requested_studio_id == setup['target'].id
        assert claim.claimed_slug == 'indie-gem'
        assert claim.claimant_email == 'dev@indie.example'
        assert claim.details == 'mine'

    def test_unknown_page(self, setup):
        _, error = claim_ownership(setup['claimant'], 'no-such-page', setup['target'].id)
        assert error.kind == ErrorKind.NOT_FOUND

    def test_page_must_be_claimable(self, setup, make):
        other = make.game(setup['placeholder'], slug='locked-game')

        _, error = claim_ownership(setup['claimant'], 'locked-game', setup['target'].id)

        assert other.primary_page.is_claimable is False
        assert error.kind == ErrorKind.FORBIDDEN

    def test_claimant_must_belong_to_target_studio(self, setup, make):
        _, error = claim_ownership(make.user(), 'pending-game-aaaaaaaaaa', setup['target'].id)
        assert error.kind == ErrorKind.FORBIDDEN

    def test_owner_cannot_claim_own_page(self, setup, make):
        make.member(setup['placeholder'], setup['claimant'], StudioRole.OWNER)

        _, error = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['placeholder'].id)

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_one_open_claim_per_page_and_studio(self, setup):
        claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        _, error = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        assert error.kind == ErrorKind.CONFLICT


class TestResolve:
    def test_approve_with_transfer(self, setup):
        """Approval hands the game over, verifies it and promotes the staged slug."""
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        resolved, error = resolve_claim(setup['admin'], claim.id, 'approved', transfer_ownership=True)

        assert error is None
        assert resolved.status == ClaimStatus.APPROVED
        assert resolved.handled_by_id == setup['admin'].id
        assert resolved.handled_at is not None

        game = db.session.get(Game, setup['game'].id)
        assert game.owner_studio_id == setup['target'].id
        assert game.is_verified is True
        assert game.primary_page.slug == 'indie-gem'
        assert game.primary_page.requested_slug is None
        assert game.primary_page.is_claimable is False

    def test_approve_without_transfer_keeps_owner(self, setup):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        _, error = resolve_claim(setup['admin'], claim.id, ClaimStatus.APPROVED)

        assert error is None
        game = db.session.get(Game, setup['game'].id)
        assert game.owner_studio_id == setup['placeholder'].id
        assert game.primary_page.is_claimable is True

    def test_promotion_conflict_propagates_and_claim_stays_open(self, setup, make):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)
        make.game(make.studio(), slug='indie-gem')

        _, error = resolve_claim(setup['admin'], claim.id, 'approved', transfer_ownership=True)

        assert error.kind == ErrorKind.CONFLICT
        assert db.session.get(OwnershipClaim, claim.id).status == ClaimStatus.OPEN
        game = db.session.get(Game, setup['game'].id)
        assert game.owner_studio_id == setup['placeholder'].id
        assert game.is_verified is False

    def test_reject(self, setup):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        resolved, error = resolve_claim(setup['admin'], claim.id, 'rejected', notes='no proof')

        assert error is None
        assert resolved.status == ClaimStatus.REJECTED
        assert resolved.handled_at is not None
        assert db.session.get(Game, setup['game'].id).owner_studio_id == setup['placeholder'].id

    def test_resolved_claim_cannot_be_resolved_again(self, setup):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)
        resolve_claim(setup['admin'], claim.id, 'rejected')

        _, error = resolve_claim(setup['admin'], claim.id, 'approved', transfer_ownership=True)

        assert error.kind == ErrorKind.BAD_REQUEST

    @pytest.mark.parametrize('status', ['open', 'maybe'])
    def test_invalid_status(self, setup, status):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

        _, error = resolve_claim(setup['admin'], claim.id, status)

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_missing_claim(self, setup):
        _, error = resolve_claim(setup['admin'], 'missing', 'approved')
        assert error.kind == ErrorKind.NOT_FOUND


def test_claim_listings(setup):
    claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)

    assert [c.id for c in list_claims(ClaimStatus.OPEN)] == [claim.id]
    assert list_claims(ClaimStatus.APPROVED) == []
    assert [c.id for c in my_claims(setup['claimant'])] == [claim.id]
    assert my_claims(setup['admin']) == []


class TestClaimedOnce:
    def test_transfer_rejects_other_open_claims(self, setup, make):
        rival_user = make.user(email='dev@rival.example')
        rival = make.studio(owner=rival_user, slug='rival-devs')
        first, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)
        second, _ = claim_ownership(rival_user, 'pending-game-aaaaaaaaaa', rival.id)

        _, error = resolve_claim(setup['admin'], first.id, 'approved', transfer_ownership=True)

        assert error is None
        closed = db.session.get(OwnershipClaim, second.id)
        assert closed.status == ClaimStatus.REJECTED
        assert closed.handled_by_id == setup['admin'].id
        assert closed.handled_at is not None
        entry = db.session.execute(
            select(AuditLog)
            .where(AuditLog.action == AuditAction.OWNERSHIP_CLAIM_RESOLVE)
            .where(AuditLog.entity_id == second.id)
        ).scalar_one()
        assert entry.meta['reason'] == 'page_claimed'

        _, error = resolve_claim(setup['admin'], second.id, 'approved', transfer_ownership=True)

        assert error.kind == ErrorKind.BAD_REQUEST
        assert db.session.get(Game, setup['game'].id).owner_studio_id == setup['target'].id

    def test_claimed_page_refuses_another_transfer(self, setup):
        claim, _ = claim_ownership(setup['claimant'], 'pending-game-aaaaaaaaaa', setup['target'].id)
        page = setup['page']
        page.is_claimable = False
        db.session.commit()

        _, error = resolve_claim(setup['admin'], claim.id, 'approved', transfer_ownership=True)

        assert error.kind == ErrorKind.BAD_REQUEST
        assert db.session.get(OwnershipClaim, claim.id).status == ClaimStatus.OPEN
        game = db.session.get(Game, setup['game'].id)
        assert game.owner_studio_id == setup['placeholder'].id
        assert game.is_verified is False
