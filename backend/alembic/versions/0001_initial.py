"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('email_confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_table('tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('pnr_number', sa.String(length=15), nullable=False),
        sa.Column('passenger_name', sa.String(length=255), nullable=False),
        sa.Column('operator', sa.String(length=120), nullable=False),
        sa.Column('transport_mode', sa.String(length=16), nullable=False, server_default='bus'),
        sa.Column('from_location', sa.String(length=120), nullable=False),
        sa.Column('to_location', sa.String(length=120), nullable=False),
        sa.Column('departure_date', sa.String(length=10), nullable=False),
        sa.Column('departure_time', sa.String(length=8), nullable=False),
        sa.Column('seat_number', sa.String(length=64), nullable=False),
        sa.Column('original_price', sa.Numeric(10,2), nullable=False),
        sa.Column('selling_price', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='available'),
        sa.Column('verification_status', sa.String(length=32), nullable=False, server_default='verified'),
        sa.Column('api_provider', sa.String(length=64), nullable=True),
        sa.Column('verification_confidence', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('buyer_name', sa.String(length=255), nullable=True),
        sa.Column('reserved_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reserved_until', sa.DateTime(), nullable=True),
        sa.Column('razorpay_order_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sold_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('pnr_number', 'transport_mode', name='uq_tickets_pnr_mode'),
    )
    op.create_index('ix_tickets_pnr_number', 'tickets', ['pnr_number'])
    op.create_index('ix_tickets_from_location', 'tickets', ['from_location'])
    op.create_index('ix_tickets_to_location', 'tickets', ['to_location'])
    op.create_index('ix_tickets_departure_date', 'tickets', ['departure_date'])
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_index('ix_tickets_seller_id', 'tickets', ['seller_id'])
    op.create_index('ix_tickets_buyer_id', 'tickets', ['buyer_id'])
    op.create_index('ix_tickets_razorpay_order_id', 'tickets', ['razorpay_order_id'])
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(10,2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='razorpay'),
        sa.Column('razorpay_order_id', sa.String(length=64), nullable=False),
        sa.Column('razorpay_payment_id', sa.String(length=64), nullable=False),
        sa.Column('escrow_status', sa.String(length=32), nullable=False, server_default='held'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('razorpay_payment_id'),
    )
    op.create_index('ix_transactions_ticket_id', 'transactions', ['ticket_id'])
    op.create_index('ix_transactions_buyer_id', 'transactions', ['buyer_id'])
    op.create_index('ix_transactions_seller_id', 'transactions', ['seller_id'])
    op.create_index('ix_transactions_razorpay_order_id', 'transactions', ['razorpay_order_id'])
    op.create_table('payouts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transactions.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='upi'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_payouts_transaction_id', 'payouts', ['transaction_id'])
    op.create_index('ix_payouts_seller_id', 'payouts', ['seller_id'])
    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('message', sa.String(length=1024), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

def downgrade():
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_payouts_seller_id', table_name='payouts')
    op.drop_index('ix_payouts_transaction_id', table_name='payouts')
    op.drop_table('payouts')
    op.drop_index('ix_transactions_razorpay_order_id', table_name='transactions')
    op.drop_index('ix_transactions_seller_id', table_name='transactions')
    op.drop_index('ix_transactions_buyer_id', table_name='transactions')
    op.drop_index('ix_transactions_ticket_id', table_name='transactions')
    op.drop_table('transactions')
    for name in ('ix_tickets_razorpay_order_id', 'ix_tickets_buyer_id', 'ix_tickets_seller_id', 'ix_tickets_status',
                 'ix_tickets_departure_date', 'ix_tickets_to_location', 'ix_tickets_from_location',
                 'ix_tickets_pnr_number'):
        op.drop_index(name, table_name='tickets')
    op.drop_table('tickets')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
