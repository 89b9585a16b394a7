"""initial schema

Revision ID: 3c1d2a7e9b40
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d2a7e9b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('stripe_customer_id', sa.String(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table('subscriptions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('plan', sa.String(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('stripe_customer_id', sa.String(), nullable=True),
    sa.Column('stripe_subscription_id', sa.String(), nullable=True),
    sa.Column('period_start', sa.DateTime(), nullable=True),
    sa.Column('period_end', sa.DateTime(), nullable=True),
    sa.Column('trial_start', sa.DateTime(), nullable=True),
    sa.Column('trial_end', sa.DateTime(), nullable=True),
    sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('stripe_subscription_id')
    )
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)

    op.create_table('plaid_items',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('access_token', sa.Text(), nullable=False),
    sa.Column('institution_id', sa.String(), nullable=True),
    sa.Column('institution_name', sa.String(), nullable=True),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('consent_expires_at', sa.DateTime(), nullable=True),
    sa.Column('transactions_cursor', sa.Text(), nullable=True),
    sa.Column('error_code', sa.String(), nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('last_webhook_at', sa.DateTime(), nullable=True),
    sa.Column('last_synced_at', sa.DateTime(), nullable=True),
    sa.Column('deleted_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plaid_items_item_id'), 'plaid_items', ['item_id'], unique=True)
    op.create_index(op.f('ix_plaid_items_user_id'), 'plaid_items', ['user_id'], unique=False)
    op.create_index(op.f('ix_plaid_items_status'), 'plaid_items', ['status'], unique=False)

    op.create_table('plaid_accounts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('mask', sa.String(), nullable=True),
    sa.Column('official_name', sa.String(), nullable=True),
    sa.Column('current_balance', sa.Numeric(precision=28, scale=10), nullable=True),
    sa.Column('available_balance', sa.Numeric(precision=28, scale=10), nullable=True),
    sa.Column('iso_currency_code', sa.String(), nullable=True),
    sa.Column('type', sa.String(), nullable=True),
    sa.Column('subtype', sa.String(), nullable=True),
    sa.Column('persistent_account_id', sa.String(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['item_id'], ['plaid_items.item_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plaid_accounts_account_id'), 'plaid_accounts', ['account_id'], unique=True)
    op.create_index(op.f('ix_plaid_accounts_item_id'), 'plaid_accounts', ['item_id'], unique=False)
    op.create_index(op.f('ix_plaid_accounts_user_id'), 'plaid_accounts', ['user_id'], unique=False)

    op.create_table('plaid_transactions',
    sa.Column('transaction_id', sa.String(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('amount', sa.Numeric(precision=28, scale=10), nullable=False),
    sa.Column('iso_currency_code', sa.String(), nullable=True),
    sa.Column('unofficial_currency_code', sa.String(), nullable=True),
    sa.Column('category_primary', sa.String(), nullable=True),
    sa.Column('category_detailed', sa.String(), nullable=True),
    sa.Column('category_confidence', sa.String(), nullable=True),
    sa.Column('check_number', sa.String(), nullable=True),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('datetime', sa.DateTime(), nullable=True),
    sa.Column('authorized_date', sa.Date(), nullable=True),
    sa.Column('authorized_datetime', sa.DateTime(), nullable=True),
    sa.Column('location', sa.JSON(), nullable=True),
    sa.Column('merchant_name', sa.String(), nullable=True),
    sa.Column('payment_channel', sa.String(), nullable=True),
    sa.Column('pending', sa.Boolean(), nullable=False),
    sa.Column('pending_transaction_id', sa.String(), nullable=True),
    sa.Column('transaction_code', sa.String(), nullable=True),
    sa.Column('name', sa.String(), nullable=True),
    sa.Column('original_description', sa.Text(), nullable=True),
    sa.Column('logo_url', sa.String(), nullable=True),
    sa.Column('website', sa.String(), nullable=True),
    sa.Column('counterparties', sa.JSON(), nullable=True),
    sa.Column('payment_meta', sa.JSON(), nullable=True),
    sa.Column('raw_data', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['account_id'], ['plaid_accounts.account_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('transaction_id')
    )
    op.create_index(op.f('ix_plaid_transactions_account_id'), 'plaid_transactions', ['account_id'], unique=False)
    op.create_index(op.f('ix_plaid_transactions_user_id'), 'plaid_transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_plaid_transactions_date'), 'plaid_transactions', ['date'], unique=False)

    op.create_table('plaid_webhooks',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=True),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('webhook_type', sa.String(), nullable=False),
    sa.Column('webhook_code', sa.String(), nullable=False),
    sa.Column('error_code', sa.String(), nullable=True),
    sa.Column('payload', sa.JSON(), nullable=True),
    sa.Column('processed', sa.Boolean(), nullable=False),
    sa.Column('processing_error', sa.JSON(), nullable=True),
    sa.Column('retry_count', sa.Integer(), nullable=False),
    sa.Column('received_at', sa.DateTime(), nullable=False),
    sa.Column('processed_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plaid_webhooks_user_id'), 'plaid_webhooks', ['user_id'], unique=False)
    op.create_index('ix_plaid_webhooks_item_processed', 'plaid_webhooks', ['item_id', 'processed', 'received_at'], unique=False)
    op.create_index('ix_plaid_webhooks_type_code_item', 'plaid_webhooks', ['webhook_type', 'webhook_code', 'item_id'], unique=False)

    op.create_table('plaid_link_sessions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('link_token', sa.String(), nullable=False),
    sa.Column('link_session_id', sa.String(), nullable=True),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('public_tokens', sa.JSON(), nullable=True),
    sa.Column('items_added', sa.Integer(), nullable=False),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('expires_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plaid_link_sessions_user_id'), 'plaid_link_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_plaid_link_sessions_link_token'), 'plaid_link_sessions', ['link_token'], unique=False)
    op.create_index(op.f('ix_plaid_link_sessions_link_session_id'), 'plaid_link_sessions', ['link_session_id'], unique=False)
    op.create_index(op.f('ix_plaid_link_sessions_status'), 'plaid_link_sessions', ['status'], unique=False)

    op.create_table('plaid_item_deletions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('institution_id', sa.String(), nullable=True),
    sa.Column('institution_name', sa.String(), nullable=True),
    sa.Column('deleted_at', sa.DateTime(), nullable=False),
    sa.Column('reason', sa.String(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_plaid_item_deletions_user_deleted_at', 'plaid_item_deletions', ['user_id', 'deleted_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_plaid_item_deletions_user_deleted_at', table_name='plaid_item_deletions')
    op.drop_table('plaid_item_deletions')
    op.drop_index(op.f('ix_plaid_link_sessions_status'), table_name='plaid_link_sessions')
    op.drop_index(op.f('ix_plaid_link_sessions_link_session_id'), table_name='plaid_link_sessions')
    op.drop_index(op.f('ix_plaid_link_sessions_link_token'), table_name='plaid_link_sessions')
    op.drop_index(op.f('ix_plaid_link_sessions_user_id'), table_name='plaid_link_sessions')
    op.drop_table('plaid_link_sessions')
    op.drop_index('ix_plaid_webhooks_type_code_item', table_name='plaid_webhooks')
    op.drop_index('ix_plaid_webhooks_item_processed', table_name='plaid_webhooks')
    op.drop_index(op.f('ix_plaid_webhooks_user_id'), table_name='plaid_webhooks')
    op.drop_table('plaid_webhooks')
    op.drop_index(op.f('ix_plaid_transactions_date'), table_name='plaid_transactions')
    op.drop_index(op.f('ix_plaid_transactions_user_id'), table_name='plaid_transactions')
    op.drop_index(op.f('ix_plaid_transactions_account_id'), table_name='plaid_transactions')
    op.drop_table('plaid_transactions')
    op.drop_index(op.f('ix_plaid_accounts_user_id'), table_name='plaid_accounts')
    op.drop_index(op.f('ix_plaid_accounts_item_id'), table_name='plaid_accounts')
    op.drop_index(op.f('ix_plaid_accounts_account_id'), table_name='plaid_accounts')
    op.drop_table('plaid_accounts')
    op.drop_index(op.f('ix_plaid_items_status'), table_name='plaid_items')
    op.drop_index(op.f('ix_plaid_items_user_id'), table_name='plaid_items')
    op.drop_index(op.f('ix_plaid_items_item_id'), table_name='plaid_items')
    op.drop_table('plaid_items')
    op.drop_index(op.f('ix_subscriptions_user_id'), table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
