from studiohub.extensions import db
from studiohub.models import (
    ChangeRequest,
    ChangeRequestStatus,
    Game,
    PageVisibility,
    SlugEntityKind,
    Studio,
    StudioRole,
)
from studiohub.services import change_requests
from studiohub.services.change_requests import (
    approve_change_request,
    cancel_change_request,
    create_change_request,
    list_change_requests,
    my_change_requests,
    reject_change_request,
)
from studiohub.services.errors import ErrorKind, internal
from studiohub.services.protection import get_registry


def _request(owner, studio, value, field='slug'):
    change, error = create_change_request(owner, 'studio', studio.id, field, value)
    assert error is None
    return change


class TestCreate:
    def test_create_snapshots_current_value(self, make):
        owner = make.user()
        studio = make.studio(owner=owner, slug='cozygames', verified=True)

        change, error = create_change_request(owner, SlugEntityKind.STUDIO, studio.id, 'slug', ' Cozy-Labs ')

        assert error is None
        assert change.status == ChangeRequestStatus.PENDING
        assert change.current_value == 'cozygames'
        assert change.requested_value == 'cozy-labs'
        assert change.requested_by_id == owner.id

    def test_current_value_of_staged_slug_is_the_requested_one(self, make):
        owner = make.user()
        studio = make.studio(owner=owner, slug='pending-studio-aaaaaaaaaa', requested_slug='nintendo')

        change = _request(owner, studio, 'cozy-labs')

        assert change.current_value == 'nintendo'

    def test_same_value_is_bad_request(self, make):
        owner = make.user()
        studio = make.studio(owner=owner, slug='cozygames', verified=True)

        _, error = create_change_request(owner, 'studio', studio.id, 'slug', 'cozygames')

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_invalid_slug_is_bad_request(self, make):
        owner = make.user()
        studio = make.studio(owner=owner)

        _, error = create_change_request(owner, 'studio', studio.id, 'slug', 'Not A Slug!')

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_duplicate_pending_request_conflicts(self, make):
        owner = make.user()
        studio = make.studio(owner=owner, verified=True)
        _request(owner, studio, 'cozy-labs')

        _, error = create_change_request(owner, 'studio', studio.id, 'slug', 'cozy-works')

        assert error.kind == ErrorKind.CONFLICT

    def test_name_and_slug_requests_are_independent(self, make):
        owner = make.user()
        studio = make.studio(owner=owner, verified=True)
        _request(owner, studio, 'cozy-labs')

        _, error = create_change_request(owner, 'studio', studio.id, 'name', 'Cozy Labs')

        assert error is None

    def test_plain_member_cannot_request(self, make):
        owner = make.user()
        member = make.user()
        studio = make.studio(owner=owner, verified=True)
        make.member(studio, member, StudioRole.MEMBER)

        _, error = create_change_request(member, 'studio', studio.id, 'slug', 'cozy-labs')

        assert error.kind == ErrorKind.FORBIDDEN

    def test_name_length_depends_on_entity(self, make):
        """Studio names fit in 100 characters, game titles in 200."""
        owner = make.user()
        studio = make.studio(owner=owner, verified=True)
        game = make.game(studio, verified=True)

        _, error = create_change_request(owner, 'studio', studio.id, 'name', 'S' * 101)
        assert error.kind == ErrorKind.BAD_REQUEST
        assert '100 characters' in error.message

        change, error = create_change_request(owner, 'game_page', game.primary_page.id, 'name', 'T' * 150)
        assert error is None
        assert change.requested_value == 'T' * 150

        _, error = create_change_request(owner, 'game_page', game.primary_page.id, 'name', 'T' * 201)
        assert error.kind == ErrorKind.BAD_REQUEST

    def test_unknown_entity(self, make):
        _, error = create_change_request(make.user(), 'studio', 'missing', 'slug', 'cozy-labs')
        assert error.kind == ErrorKind.NOT_FOUND

    def test_unknown_field(self, make):
        owner = make.user()
        studio = make.studio(owner=owner)
        _, error = create_change_request(owner, 'studio', studio.id, 'logo', 'x')
        assert error.kind == ErrorKind.BAD_REQUEST


class TestApprove:
    def test_protected_slug_on_verified_studio_unpublishes_its_games(self, make):
        """Approving a protected slug collapses a verified studio's public identity."""
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, slug='cozygames', verified=True)
        published = [make.game(studio, published=True), make.game(studio, published=True)]
        draft = make.game(studio)
        change = _request(owner, studio, 'nintendo')

        approved, error = approve_change_request(admin, change.id, 'ok')

        assert error is None
        assert approved.status == ChangeRequestStatus.APPROVED
        assert approved.reviewed_by_id == admin.id
        assert approved.reviewed_at is not None

        studio = db.session.get(Studio, studio.id)
        assert studio.slug.startswith('pending-studio-')
        assert studio.requested_slug == 'nintendo'
        assert studio.is_verified is False
        assert studio.last_slug_change is not None

        for game in published:
            page = db.session.get(Game, game.id).primary_page
            assert page.visibility == PageVisibility.DRAFT
            assert page.unpublished_at is not None
        untouched = db.session.get(Game, draft.id).primary_page
        assert untouched.visibility == PageVisibility.DRAFT
        assert untouched.unpublished_at is None

    def test_retry_after_failed_cascade_still_unpublishes(self, make, monkeypatch):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, slug='cozygames', verified=True)
        game = make.game(studio, published=True)
        change = _request(owner, studio, 'nintendo')
        monkeypatch.setattr(
            change_requests, 'unpublish_all_for_studio',
            lambda studio_id, actor=None: (None, internal('Storage unavailable')),
        )

        _, error = approve_change_request(admin, change.id, 'ok')

        assert error.kind == ErrorKind.INTERNAL
        assert db.session.get(ChangeRequest, change.id).status == ChangeRequestStatus.PENDING
        assert db.session.get(Studio, studio.id).is_verified is False
        assert db.session.get(Game, game.id).primary_page.visibility == PageVisibility.PUBLISHED

        monkeypatch.undo()
        approved, error = approve_change_request(admin, change.id, 'ok')

        assert error is None
        assert approved.status == ChangeRequestStatus.APPROVED
        assert db.session.get(Game, game.id).primary_page.visibility == PageVisibility.DRAFT

    def test_protection_is_checked_at_approval_time(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, slug='cozygames', verified=True)
        change = _request(owner, studio, 'cozy-labs')

        get_registry().add_protected(SlugEntityKind.STUDIO, 'cozy-labs', 'trademark', admin)
        _, error = approve_change_request(admin, change.id)

        assert error is None
        studio = db.session.get(Studio, studio.id)
        assert studio.slug.startswith('pending-studio-')
        assert studio.requested_slug == 'cozy-labs'

    def test_unprotected_slug_goes_live(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, slug='cozygames', verified=True)
        game = make.game(studio, published=True)
        change = _request(owner, studio, 'cozy-labs')

        _, error = approve_change_request(admin, change.id)

        assert error is None
        studio = db.session.get(Studio, studio.id)
        assert studio.slug == 'cozy-labs'
        assert studio.requested_slug is None
        assert studio.is_verified is True
        assert studio.last_slug_change is not None
        assert db.session.get(Game, game.id).primary_page.visibility == PageVisibility.PUBLISHED

    def test_slug_taken_in_the_meantime_keeps_request_pending(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, verified=True)
        change = _request(owner, studio, 'cozy-labs')
        make.studio(slug='cozy-labs')

        _, error = approve_change_request(admin, change.id)

        assert error.kind == ErrorKind.CONFLICT
        assert db.session.get(ChangeRequest, change.id).status == ChangeRequestStatus.PENDING

    def test_protected_page_slug_unverifies_game(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, verified=True)
        game = make.game(studio, slug='block-world', verified=True, published=True)
        page_id = game.primary_page.id

        change, error = create_change_request(owner, 'game_page', page_id, 'slug', 'roblox')
        assert error is None

        _, error = approve_change_request(admin, change.id)

        assert error is None
        game = db.session.get(Game, game.id)
        assert game.is_verified is False
        page = game.primary_page
        assert page.slug.startswith('pending-game-')
        assert page.requested_slug == 'roblox'
        assert page.visibility == PageVisibility.DRAFT

    def test_page_name_change_renames_game(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        game = make.game(make.studio(owner=owner, verified=True), title='Star Drift', verified=True)
        page_id = game.primary_page.id

        change, error = create_change_request(owner, 'game_page', page_id, 'name', 'Star Drift II')
        assert error is None
        assert change.current_value == 'Star Drift'

        _, error = approve_change_request(admin, change.id)

        assert error is None
        game = db.session.get(Game, game.id)
        assert game.title == 'Star Drift II'
        assert game.primary_page.last_name_change is not None

    def test_studio_name_change(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, name='Cozy Games', verified=True)
        change = _request(owner, studio, 'Cozy Labs', field='name')

        _, error = approve_change_request(admin, change.id)

        assert error is None
        studio = db.session.get(Studio, studio.id)
        assert studio.name == 'Cozy Labs'
        assert studio.last_name_change is not None

    def test_only_pending_requests_can_be_approved(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, verified=True)
        change = _request(owner, studio, 'cozy-labs')
        approve_change_request(admin, change.id)

        _, error = approve_change_request(admin, change.id)

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_missing_request(self, make):
        _, error = approve_change_request(make.user(admin=True), 'missing')
        assert error.kind == ErrorKind.NOT_FOUND


class TestRejectAndCancel:
    def test_reject_requires_notes(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        change = _request(owner, make.studio(owner=owner, verified=True), 'cozy-labs')

        _, error = reject_change_request(admin, change.id, '  ')

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_reject(self, make):
        owner = make.user()
        admin = make.user(admin=True)
        studio = make.studio(owner=owner, slug='cozygames', verified=True)
        change = _request(owner, studio, 'cozy-labs')

        rejected, error = reject_change_request(admin, change.id, 'Name is misleading')

        assert error is None
        assert rejected.status == ChangeRequestStatus.REJECTED
        assert rejected.reviewer_notes == 'Name is misleading'
        assert db.session.get(Studio, studio.id).slug == 'cozygames'

    def test_only_requester_can_cancel(self, make):
        owner = make.user()
        co_owner = make.user()
        studio = make.studio(owner=owner, verified=True)
        make.member(studio, co_owner, StudioRole.OWNER)
        change = _request(owner, studio, 'cozy-labs')

        _, error = cancel_change_request(co_owner, change.id)
        assert error.kind == ErrorKind.FORBIDDEN

        cancelled, error = cancel_change_request(owner, change.id)
        assert error is None
        assert cancelled.status == ChangeRequestStatus.CANCELLED

        _, error = cancel_change_request(owner, change.id)
        assert error.kind == ErrorKind.BAD_REQUEST


def test_listings(make):
    owner = make.user()
    other = make.user()
    admin = make.user(admin=True)
    studio = make.studio(owner=owner, verified=True)
    other_studio = make.studio(owner=other, verified=True)
    mine = _request(owner, studio, 'cozy-labs')
    theirs = _request(other, other_studio, 'moon-works')
    reject_change_request(admin, theirs.id, 'no')

    pending = list_change_requests(status=ChangeRequestStatus.PENDING)
    assert [c.id for c in pending] == [mine.id]
    assert len(list_change_requests()) == 2
    assert [c.id for c in my_change_requests(other)] == [theirs.id]
    assert my_change_requests(owner, SlugEntityKind.GAME_PAGE) == []
