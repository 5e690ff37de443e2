"""initial ledger tables

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table('companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table('projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='planning'),
        sa.Column('budget_cents', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_projects_company_id', 'projects', ['company_id'])

    op.create_table('expense_categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
    )
    op.create_index('ix_expense_categories_name', 'expense_categories', ['name'])

    op.create_table('transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('approval_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('rejection_reason', sa.String(length=512), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_transactions_kind', 'transactions', ['kind'])
    op.create_index('ix_transactions_project_id', 'transactions', ['project_id'])
    op.create_index('ix_transactions_date', 'transactions', ['date'])
    op.create_index('ix_transactions_approval_status', 'transactions', ['approval_status'])
    op.create_index('ix_transactions_status_created', 'transactions', ['approval_status', 'created_at'])

    op.create_table('material_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('part_no', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('estimated_cost_cents', sa.Integer(), nullable=True),
        sa.Column('urgency', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('rejection_reason', sa.String(length=512), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('requested_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_material_requests_project_id', 'material_requests', ['project_id'])
    op.create_index('ix_material_requests_status', 'material_requests', ['status'])

    op.create_table('material_purchases',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('part_no', sa.String(length=64), nullable=True),
        sa.Column('hsn', sa.String(length=32), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('tax_rate_percent', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('vendor', sa.String(length=128), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('material_requests.id'), nullable=True),
        sa.Column('expense_id', sa.Integer(), sa.ForeignKey('transactions.id'), nullable=True, unique=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_material_purchases_project_id', 'material_purchases', ['project_id'])
    op.create_index('ix_material_purchases_request_id', 'material_purchases', ['request_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in ('audit_logs', 'material_purchases', 'material_requests', 'transactions',
                  'expense_categories', 'projects', 'companies'):
        op.drop_table(table)
