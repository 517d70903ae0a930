"""subscription_notifications_baseline

Revision ID: a1c3e5f7b9d1
Revises: 
Create Date: 2026-09-28 10:14:22.481903

Production-safe migration: only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d1'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create profiles, subscriptions, notifications, contacts, link tokens and audit logs."""
    if not table_exists('profiles'):
        op.create_table('profiles',
            sa.Column('id', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=320), nullable=True),
            sa.Column('first_name', sa.String(length=100), nullable=True),
            sa.Column('last_name', sa.String(length=100), nullable=True),
            sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=False)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('category', sa.String(length=64), nullable=True),
            sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False),
            sa.Column('billing_cycle', sa.String(length=16), nullable=False),
            sa.Column('next_payment_date', sa.Date(), nullable=False),
            sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
            sa.Column('notification_mode', sa.String(length=16), nullable=False),
            sa.Column('reminder_offset', sa.String(length=8), nullable=False, server_default='none'),
            sa.Column('service_url', sa.Text(), nullable=True),
            sa.Column('payment_method', sa.String(length=64), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)
        op.create_index(op.f('ix_subscriptions_next_payment_date'), 'subscriptions', ['next_payment_date'], unique=False)
        op.create_index('idx_subscriptions_user_next_payment', 'subscriptions', ['user_id', 'next_payment_date'], unique=False)

    if not table_exists('notifications'):
        op.create_table('notifications',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('subscription_id', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('attempts_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='5'),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('subscription_id')
        )
        op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
        op.create_index('idx_notifications_status_next_attempt', 'notifications', ['status', 'next_attempt_at'], unique=False)

    if not table_exists('user_contacts'):
        op.create_table('user_contacts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('provider', sa.String(length=32), nullable=False),
            sa.Column('contact_type', sa.String(length=32), nullable=False),
            sa.Column('contact_id', sa.String(length=128), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'provider', name='uq_user_contacts_user_provider')
        )
        op.create_index(op.f('ix_user_contacts_id'), 'user_contacts', ['id'], unique=False)
        op.create_index(op.f('ix_user_contacts_user_id'), 'user_contacts', ['user_id'], unique=False)

    if not table_exists('telegram_link_tokens'):
        op.create_table('telegram_link_tokens',
            sa.Column('token', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('token')
        )
        op.create_index(op.f('ix_telegram_link_tokens_user_id'), 'telegram_link_tokens', ['user_id'], unique=False)

    if not table_exists('audit_logs'):
        op.create_table('audit_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=True),
            sa.Column('action', sa.String(length=32), nullable=False),
            sa.Column('entity_type', sa.String(length=32), nullable=False),
            sa.Column('entity_id', sa.String(length=64), nullable=True),
            sa.Column('diff_json', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
        op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'], unique=False)
        op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('audit_logs')
    op.drop_table('telegram_link_tokens')
    op.drop_table('user_contacts')
    op.drop_table('notifications')
    op.drop_table('subscriptions')
    op.drop_table('profiles')
