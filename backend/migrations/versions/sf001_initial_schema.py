"""Initial schema: organizations, payments, notifications

1. Creates 'organizations' table as the tenant root
2. Creates 'payments' with per-tenant unique payment numbers, refund
   tracking and an optimistic-locking version column
3. Creates 'notifications' with read-state indexes
4. Inserts the default organization

Revision ID: sf001_initial
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import table, column


# revision identifiers, used by Alembic.
revision = 'sf001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # STEP 1: Create organizations table
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_organizations_code', 'organizations', ['code'], unique=True)
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])

    # ==========================================================================
    # STEP 2: Create payments table
    # ==========================================================================
    op.create_table('payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('payment_number', sa.String(length=32), nullable=False),
        sa.Column('invoice_id', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('refund_amount', sa.Integer(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('original_payment_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['original_payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'payment_number', name='uq_payments_org_number'),
    )
    op.create_index('ix_payments_org_id', 'payments', ['org_id'])
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_customer_id', 'payments', ['customer_id'])
    op.create_index('ix_payments_method', 'payments', ['method'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_original_payment_id', 'payments', ['original_payment_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_org_status_date', 'payments', ['org_id', 'status', 'payment_date'])

    # ==========================================================================
    # STEP 3: Create notifications table
    # ==========================================================================
    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='MEDIUM'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('link', sa.String(length=512), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_org_id', 'notifications', ['org_id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_org_read', 'notifications', ['org_id', 'read'])
    op.create_index('ix_notifications_org_created', 'notifications', ['org_id', 'created_at'])

    # ==========================================================================
    # STEP 4: Default organization
    # ==========================================================================
    organizations = table('organizations',
        column('id', sa.Integer),
        column('name', sa.String),
        column('code', sa.String),
        column('is_active', sa.Boolean)
    )
    op.execute(
        organizations.insert().values(
            id=1,
            name='Default Organization',
            code='DEFAULT',
            is_active=True
        )
    )


def downgrade():
    op.drop_table('notifications')
    op.drop_table('payments')
    op.drop_index('ix_organizations_is_active', table_name='organizations')
    op.drop_index('ix_organizations_code', table_name='organizations')
    op.drop_table('organizations')
