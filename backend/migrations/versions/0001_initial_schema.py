"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete PalletTrack schema:
- users / session_tokens / login_attempts: PIN auth, bearer sessions, throttling
- storage_locations: floor-plan forest (self-referencing parent_id)
- product_variants: trackable goods
- current_inventory: one row per (location, product)
- inventory_logs: append-only change history
- inventory_snapshots / inventory_entries: immutable point-in-time bundles
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('pin_hash', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_active', 'users', ['is_active'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    op.create_table(
        'login_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identifier', sa.String(length=128), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_login_attempts_user_id', 'login_attempts', ['user_id'])
    op.create_index('ix_login_attempts_success', 'login_attempts', ['success'])
    op.create_index('ix_login_attempts_occurred_at', 'login_attempts', ['occurred_at'])
    op.create_index('ix_login_attempts_identifier_occurred', 'login_attempts', ['identifier', 'occurred_at'])

    # ============================================================================
    # storage_locations: floor-plan forest
    # ============================================================================
    op.create_table(
        'storage_locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('x', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('y', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('width', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('height', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=True),  # leaf-only, NULL = unbounded
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['parent_id'], ['storage_locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_storage_locations_parent_id', 'storage_locations', ['parent_id'])
    op.create_index('ix_storage_locations_is_active', 'storage_locations', ['is_active'])
    op.create_index('ix_storage_locations_parent_active', 'storage_locations', ['parent_id', 'is_active'])
    op.create_index('ix_storage_locations_parent_name', 'storage_locations', ['parent_id', 'name'])

    # ============================================================================
    # product_variants
    # ============================================================================
    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('article_number', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='finished'),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('resource_weight', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_variants_code', 'product_variants', ['code'])
    op.create_index('ix_product_variants_active', 'product_variants', ['is_active'])
    op.create_index('ix_product_variants_category_name', 'product_variants', ['category', 'name'])

    # ============================================================================
    # current_inventory: ledger head state
    # ============================================================================
    op.create_table(
        'current_inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_checked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_checked_by_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['location_id'], ['storage_locations.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['last_checked_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('location_id', 'product_id', name='uq_current_inventory_location_product'),
        sa.CheckConstraint('quantity >= 0', name='ck_current_inventory_quantity_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_current_inventory_location_id', 'current_inventory', ['location_id'])
    op.create_index('ix_current_inventory_product_id', 'current_inventory', ['product_id'])
    op.create_index('ix_current_inventory_last_checked_at', 'current_inventory', ['last_checked_at'])

    # ============================================================================
    # inventory_logs: append-only history
    # ============================================================================
    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('previous_qty', sa.Integer(), nullable=True),  # NULL = first observation
        sa.Column('new_qty', sa.Integer(), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['location_id'], ['storage_locations.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_logs_changed_at', 'inventory_logs', ['changed_at'])
    op.create_index('ix_inventory_logs_location_product_changed', 'inventory_logs',
                    ['location_id', 'product_id', 'changed_at'])
    op.create_index('ix_inventory_logs_user_changed', 'inventory_logs', ['changed_by_id', 'changed_at'])

    # ============================================================================
    # inventory_snapshots / inventory_entries
    # ============================================================================
    op.create_table(
        'inventory_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('taken_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('taken_by_id', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='MANUAL'),
        sa.ForeignKeyConstraint(['taken_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_snapshots_taken_at', 'inventory_snapshots', ['taken_at'])
    op.create_index('ix_inventory_snapshots_taken_by_id', 'inventory_snapshots', ['taken_by_id'])

    op.create_table(
        'inventory_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('snapshot_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['snapshot_id'], ['inventory_snapshots.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['storage_locations.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_entries_quantity_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_entries_snapshot_id', 'inventory_entries', ['snapshot_id'])


def downgrade():
    op.drop_table('inventory_entries')
    op.drop_table('inventory_snapshots')
    op.drop_table('inventory_logs')
    op.drop_table('current_inventory')
    op.drop_table('product_variants')
    op.drop_table('storage_locations')
    op.drop_table('login_attempts')
    op.drop_table('session_tokens')
    op.drop_table('users')
