"""Billing core schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Feature catalog
    op.create_table(
        'premium_features',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False, server_default='other'),
        sa.Column('free_access', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('premium_access', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('professional_access', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('free_limit', sa.Integer(), nullable=True),
        sa.Column('premium_limit', sa.Integer(), nullable=True),
        sa.Column('professional_limit', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_premium_features_name', 'premium_features', ['name'], unique=True)

    # Subscriptions
    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tier', sa.String(50), nullable=False, server_default='free'),
        sa.Column('billing_cycle', sa.String(20), nullable=False, server_default='monthly'),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('billing_email', sa.String(255), nullable=True),
        sa.Column('billing_name', sa.String(255), nullable=True),
        sa.Column('features_enabled', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('renewal_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('auto_renew', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('reminder_7_sent', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('reminder_1_sent', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('last_payment_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('failed_payment_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('external_recurring_charge_id', sa.String(255), nullable=True),
        sa.Column('promo_code', sa.String(50), nullable=True),
        sa.Column('discount_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cancellation_reason', sa.String(100), nullable=True),
        sa.Column('cancellation_feedback', sa.Text(), nullable=True),
        sa.Column('external_sync_pending', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('external_sync_action', sa.String(50), nullable=True),
        sa.Column('external_sync_payload', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('external_sync_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('external_sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_recurring_charge_id'),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=True)
    op.create_index('ix_subscriptions_status_renewal', 'subscriptions', ['status', 'renewal_date'])
    op.create_index(
        'ix_subscriptions_external_sync_pending', 'subscriptions', ['external_sync_pending']
    )

    # Per-user feature counters
    op.create_table(
        'premium_feature_usages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('feature_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('feature_key', sa.String(150), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('reset_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['feature_id'], ['premium_features.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'feature_id', name='uq_usage_user_feature'),
    )
    op.create_index('ix_premium_feature_usages_user_id', 'premium_feature_usages', ['user_id'])
    op.create_index(
        'ix_premium_feature_usages_feature_key', 'premium_feature_usages', ['feature_key']
    )

    # Payments
    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('subscription_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='EUR'),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('external_transaction_id', sa.String(255), nullable=True),
        sa.Column('external_reference', sa.String(255), nullable=True),
        sa.Column('external_status', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('card_brand', sa.String(50), nullable=True),
        sa.Column('card_last4', sa.String(4), nullable=True),
        sa.Column('billing_name', sa.String(255), nullable=True),
        sa.Column('billing_email', sa.String(255), nullable=True),
        sa.Column('billing_phone', sa.String(50), nullable=True),
        sa.Column('refund_status', sa.String(20), nullable=True),
        sa.Column('refund_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refund_amount', sa.Integer(), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('refund_external_id', sa.String(255), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('payment_metadata', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id']),
        sa.UniqueConstraint('external_transaction_id'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_subscription_id', 'payments', ['subscription_id'])
    op.create_index('ix_payments_external_reference', 'payments', ['external_reference'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_user_created', 'payments', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_payments_user_created', table_name='payments')
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_external_reference', table_name='payments')
    op.drop_index('ix_payments_subscription_id', table_name='payments')
    op.drop_index('ix_payments_user_id', table_name='payments')
    op.drop_table('payments')

    op.drop_index('ix_premium_feature_usages_feature_key', table_name='premium_feature_usages')
    op.drop_index('ix_premium_feature_usages_user_id', table_name='premium_feature_usages')
    op.drop_table('premium_feature_usages')

    op.drop_index('ix_subscriptions_external_sync_pending', table_name='subscriptions')
    op.drop_index('ix_subscriptions_status_renewal', table_name='subscriptions')
    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')

    op.drop_index('ix_premium_features_name', table_name='premium_features')
    op.drop_table('premium_features')
