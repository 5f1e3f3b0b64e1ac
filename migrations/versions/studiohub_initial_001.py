"""Studios, game pages, slug protection and moderation queues

Revision ID: studiohub_initial_001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'studiohub_initial_001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    dialect = bind.dialect.name
    json_type = postgresql.JSONB(astext_type=sa.Text()) if dialect == 'postgresql' else sa.JSON()

    op.create_table(
        'user',
        *_timestamps(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=5), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'studio',
        *_timestamps(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('requested_slug', sa.String(length=64), nullable=True),
        sa.Column('last_slug_change', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_name_change', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_studio_slug', 'studio', ['slug'], unique=True)

    op.create_table(
        'studio_member',
        *_timestamps(),
        sa.Column('studio_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.String(length=6), nullable=False, server_default='member'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['studio_id'], ['studio.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('studio_id', 'user_id', name='uq_studio_member'),
    )
    op.create_index('ix_studio_member_studio_id', 'studio_member', ['studio_id'])
    op.create_index('ix_studio_member_user_id', 'studio_member', ['user_id'])

    op.create_table(
        'game',
        *_timestamps(),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('owner_studio_id', sa.String(length=36), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_studio_id'], ['studio.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_game_owner_studio_id', 'game', ['owner_studio_id'])

    op.create_table(
        'game_page',
        *_timestamps(),
        sa.Column('game_id', sa.String(length=36), nullable=False),
        sa.Column('slug', sa.String(length=160), nullable=False),
        sa.Column('requested_slug', sa.String(length=160), nullable=True),
        sa.Column('last_slug_change', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_name_change', sa.DateTime(timezone=True), nullable=True),
        sa.Column('visibility', sa.String(length=9), nullable=False, server_default='DRAFT'),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_claimable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unpublished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['game_id'], ['game.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_game_page_game_id', 'game_page', ['game_id'])
    op.create_index('ix_game_page_slug', 'game_page', ['slug'], unique=True)
    op.create_index('ix_game_page_game_primary', 'game_page', ['game_id', 'is_primary'])

    op.create_table(
        'protected_slug',
        *_timestamps(),
        sa.Column('entity_kind', sa.String(length=9), nullable=False),
        sa.Column('slug', sa.String(length=160), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.String(length=36), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['created_by_id'], ['user.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('entity_kind', 'slug', name='uq_protected_slug_kind_slug'),
    )

    op.create_table(
        'change_request',
        *_timestamps(),
        sa.Column('entity_kind', sa.String(length=9), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=False),
        sa.Column('field_name', sa.String(length=4), nullable=False),
        sa.Column('current_value', sa.String(length=200), nullable=True),
        sa.Column('requested_value', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=9), nullable=False, server_default='pending'),
        sa.Column('requested_by_id', sa.String(length=36), nullable=False),
        sa.Column('reviewed_by_id', sa.String(length=36), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewer_notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['requested_by_id'], ['user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['user.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_change_request_requested_by_id', 'change_request', ['requested_by_id'])
    op.create_index(
        'ix_change_request_entity_field',
        'change_request',
        ['entity_kind', 'entity_id', 'field_name', 'status'],
    )

    op.create_table(
        'ownership_claim',
        *_timestamps(),
        sa.Column('page_id', sa.String(length=36), nullable=False),
        sa.Column('game_id', sa.String(length=36), nullable=False),
        sa.Column('current_studio_id', sa.String(length=36), nullable=False),
        sa.Column('requested_studio_id', sa.String(length=36), nullable=False),
        sa.Column('claimed_slug', sa.String(length=160), nullable=False),
        sa.Column('claimant_user_id', sa.String(length=36), nullable=False),
        sa.Column('claimant_email', sa.String(length=255), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=8), nullable=False, server_default='open'),
        sa.Column('handled_by_id', sa.String(length=36), nullable=True),
        sa.Column('handled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['page_id'], ['game_page.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['game_id'], ['game.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['requested_studio_id'], ['studio.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['claimant_user_id'], ['user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['handled_by_id'], ['user.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_ownership_claim_page_id', 'ownership_claim', ['page_id'])
    op.create_index('ix_ownership_claim_claimant_user_id', 'ownership_claim', ['claimant_user_id'])
    op.create_index(
        'ix_ownership_claim_page_target',
        'ownership_claim',
        ['page_id', 'requested_studio_id', 'status'],
    )

    op.create_table(
        'audit_log',
        *_timestamps(),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('studio_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('entity_type', sa.String(length=128), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('meta', json_type, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])
    op.create_index('ix_audit_log_studio_id', 'audit_log', ['studio_id'])


def downgrade():
    op.drop_index('ix_audit_log_studio_id', table_name='audit_log')
    op.drop_index('ix_audit_log_user_id', table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('ix_ownership_claim_page_target', table_name='ownership_claim')
    op.drop_index('ix_ownership_claim_claimant_user_id', table_name='ownership_claim')
    op.drop_index('ix_ownership_claim_page_id', table_name='ownership_claim')
    op.drop_table('ownership_claim')

    op.drop_index('ix_change_request_entity_field', table_name='change_request')
    op.drop_index('ix_change_request_requested_by_id', table_name='change_request')
    op.drop_table('change_request')

    op.drop_table('protected_slug')

    op.drop_index('ix_game_page_game_primary', table_name='game_page')
    op.drop_index('ix_game_page_slug', table_name='game_page')
    op.drop_index('ix_game_page_game_id', table_name='game_page')
    op.drop_table('game_page')

    op.drop_index('ix_game_owner_studio_id', table_name='game')
    op.drop_table('game')

    op.drop_index('ix_studio_member_user_id', table_name='studio_member')
    op.drop_index('ix_studio_member_studio_id', table_name='studio_member')
    op.drop_table('studio_member')

    op.drop_index('ix_studio_slug', table_name='studio')
    op.drop_table('studio')

    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')
