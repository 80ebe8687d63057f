"""initial_schema

Revision ID: 5a1c3e9d2b7f
Revises: 
Create Date: 2026-10-18 09:12:44.102317

Users, subscriptions, usage counters, one-time auth tokens and recognition history.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5a1c3e9d2b7f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('display_name', sa.String(), nullable=True),
            sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('subscription_tier', sa.String(), nullable=False, server_default='free'),
            sa.Column('refresh_token_hash', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('last_login_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('revenuecat_customer_id', sa.String(), nullable=True),
            sa.Column('product_id', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('pending_until', sa.DateTime(), nullable=True),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('expires_at', sa.DateTime(), nullable=True),
            sa.Column('cancelled_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_revenuecat_customer_id'), 'subscriptions', ['revenuecat_customer_id'], unique=False)

    if not table_exists('usage_records'):
        op.create_table('usage_records',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('subject_type', sa.String(length=16), nullable=False),
            sa.Column('subject_id', sa.String(), nullable=False),
            sa.Column('search_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('window_ends_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('subject_type', 'subject_id', name='uq_usage_subject')
        )
        op.create_index(op.f('ix_usage_records_id'), 'usage_records', ['id'], unique=False)

    if not table_exists('auth_tokens'):
        op.create_table('auth_tokens',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('purpose', sa.String(length=32), nullable=False),
            sa.Column('token_hash', sa.String(length=64), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('consumed_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('token_hash')
        )
        op.create_index(op.f('ix_auth_tokens_id'), 'auth_tokens', ['id'], unique=False)
        op.create_index(op.f('ix_auth_tokens_user_id'), 'auth_tokens', ['user_id'], unique=False)
        op.create_index('idx_auth_token_user_purpose', 'auth_tokens', ['user_id', 'purpose'], unique=False)

    if not table_exists('recognition_history'):
        op.create_table('recognition_history',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('device_id', sa.String(), nullable=True),
            sa.Column('transcription', sa.Text(), nullable=False),
            sa.Column('surah_number', sa.Integer(), nullable=True),
            sa.Column('ayah_number', sa.Integer(), nullable=True),
            sa.Column('confidence', sa.Float(), nullable=True),
            sa.Column('success', sa.Boolean(), nullable=False),
            sa.Column('error_message', sa.String(), nullable=True),
            sa.Column('processing_time_ms', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_recognition_history_id'), 'recognition_history', ['id'], unique=False)
        op.create_index(op.f('ix_recognition_history_user_id'), 'recognition_history', ['user_id'], unique=False)
        op.create_index(op.f('ix_recognition_history_device_id'), 'recognition_history', ['device_id'], unique=False)


def downgrade() -> None:
    op.drop_table('recognition_history')
    op.drop_table('auth_tokens')
    op.drop_table('usage_records')
    op.drop_table('subscriptions')
    op.drop_table('users')
