"""create organizations datasets usage

Revision ID: 202610010900
Revises: None (initial migration)
Create Date: 2026-10-01 09:00:00.000000

This migration creates the core tables for:
- Users and organizations, joined by user_organizations memberships
- Datasets (store listings with their source configuration)
- Usage Counters (per organization, metric and period)
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic
revision = '202610010900'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # =========================================================================
    # Users
    # =========================================================================
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),  # 'user', 'admin'
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # =========================================================================
    # Organizations - own the subscription plan
    # =========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),  # 'free', 'pro', 'enterprise'
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organizations_plan', 'organizations', ['plan'])

    op.create_table(
        'user_organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),  # 'admin', 'member', 'viewer'
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'organization_id', name='user_organizations_user_org_uniq'),
    )
    op.create_index('ix_user_organizations_user_id', 'user_organizations', ['user_id'])
    op.create_index('ix_user_organizations_organization_id', 'user_organizations', ['organization_id'])

    # =========================================================================
    # Datasets - source config stored as JSONB with its tag mirrored in a column
    # =========================================================================
    op.create_table(
        'datasets',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),  # 'live', 'dataset'
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('formats', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('size', sa.Text(), nullable=True),
        sa.Column('icon', sa.Text(), nullable=True),
        sa.Column('features', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('data_source_type', sa.String(20), nullable=False),  # 'api', 'folder', 'company'
        sa.Column('config', postgresql.JSONB(), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "data_source_type IN ('api', 'folder', 'company')",
            name='datasets_data_source_type_check',
        ),
        sa.CheckConstraint(
            "config->>'dataSourceType' = data_source_type",
            name='datasets_config_tag_matches_check',
        ),
    )
    op.create_index('datasets_category_idx', 'datasets', ['category'])
    op.create_index('datasets_type_idx', 'datasets', ['type'])
    op.create_index('datasets_featured_idx', 'datasets', ['featured'])
    op.create_index('datasets_visibility_idx', 'datasets', ['is_public', 'is_active'])

    # =========================================================================
    # Usage Counters - written by the owning services, read by the quota ledger
    # =========================================================================
    op.create_table(
        'usage_counters',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('metric', sa.String(40), nullable=False),
        sa.Column('period', sa.String(7), nullable=False),  # 'YYYY-MM' or 'total'
        sa.Column('current', sa.BigInteger(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'organization_id', 'metric', 'period',
            name='usage_counters_org_metric_period_uniq',
        ),
    )
    op.create_index('usage_counters_org_period_idx', 'usage_counters', ['organization_id', 'period'])


def downgrade() -> None:
    op.drop_index('usage_counters_org_period_idx', table_name='usage_counters')
    op.drop_table('usage_counters')

    op.drop_index('datasets_visibility_idx', table_name='datasets')
    op.drop_index('datasets_featured_idx', table_name='datasets')
    op.drop_index('datasets_type_idx', table_name='datasets')
    op.drop_index('datasets_category_idx', table_name='datasets')
    op.drop_table('datasets')

    op.drop_index('ix_user_organizations_organization_id', table_name='user_organizations')
    op.drop_index('ix_user_organizations_user_id', table_name='user_organizations')
    op.drop_table('user_organizations')

    op.drop_index('ix_organizations_plan', table_name='organizations')
    op.drop_table('organizations')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
