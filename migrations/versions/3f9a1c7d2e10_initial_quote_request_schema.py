"""initial_quote_request_schema

Revision ID: 3f9a1c7d2e10
Revises:
Create Date: 2026-10-18 09:12:44.518207+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f9a1c7d2e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. opportunities (reference data, no FKs)
    op.create_table('opportunities',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('notice_id', sa.String(length=100), nullable=False),
    sa.Column('title', sa.String(length=500), nullable=False),
    sa.Column('department', sa.String(length=300), nullable=False),
    sa.Column('office', sa.String(length=300), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('response_deadline', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('notice_id')
    )
    op.create_index('idx_opportunities_department', 'opportunities', ['department'], unique=False)

    # 2. suppliers (directory, no FKs)
    op.create_table('suppliers',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=300), nullable=False),
    sa.Column('contact_email', sa.String(length=255), nullable=True),
    sa.Column('contact_phone', sa.String(length=50), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_suppliers_name', 'suppliers', ['name'], unique=False)

    # 3. quote_requests (FK to opportunities)
    op.create_table('quote_requests',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('opportunity_id', sa.Uuid(), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('deadline', sa.DateTime(), nullable=False),
    sa.Column('requirements', sa.JSON(), nullable=True),
    sa.Column('attachments', sa.JSON(), nullable=True),
    sa.Column('ai_generated', sa.Boolean(), nullable=False),
    sa.Column('ai_prompt', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('draft','sent','expired','completed')", name='chk_quote_request_status'),
    sa.ForeignKeyConstraint(['opportunity_id'], ['opportunities.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_quote_requests_opportunity', 'quote_requests', ['opportunity_id'], unique=False)
    op.create_index('idx_quote_requests_user', 'quote_requests', ['user_id'], unique=False)
    op.create_index('idx_quote_requests_status', 'quote_requests', ['status'], unique=False)
    op.create_index('idx_quote_requests_deadline', 'quote_requests', ['deadline'], unique=False)

    # 4. quote_request_suppliers (invitations)
    op.create_table('quote_request_suppliers',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('quote_request_id', sa.Uuid(), nullable=False),
    sa.Column('supplier_id', sa.Uuid(), nullable=False),
    sa.Column('invited_at', sa.DateTime(), nullable=False),
    sa.Column('notification_sent', sa.Boolean(), nullable=False),
    sa.Column('notification_method', sa.String(length=20), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['quote_request_id'], ['quote_requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('quote_request_id', 'supplier_id', name='uq_quote_request_supplier')
    )
    op.create_index('idx_qr_suppliers_request', 'quote_request_suppliers', ['quote_request_id'], unique=False)
    op.create_index('idx_qr_suppliers_supplier', 'quote_request_suppliers', ['supplier_id'], unique=False)

    # 5. supplier_responses
    op.create_table('supplier_responses',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('quote_request_id', sa.Uuid(), nullable=False),
    sa.Column('supplier_id', sa.Uuid(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('total_price_cents', sa.BigInteger(), nullable=True),
    sa.Column('delivery_time_days', sa.Integer(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('attachments', sa.JSON(), nullable=True),
    sa.Column('submitted_at', sa.DateTime(), nullable=True),
    sa.Column('expires_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('pending','submitted','declined','expired')", name='chk_supplier_response_status'),
    sa.CheckConstraint('total_price_cents IS NULL OR total_price_cents > 0', name='chk_supplier_response_total'),
    sa.CheckConstraint('delivery_time_days IS NULL OR delivery_time_days > 0', name='chk_supplier_response_delivery'),
    sa.ForeignKeyConstraint(['quote_request_id'], ['quote_requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('quote_request_id', 'supplier_id', name='uq_supplier_response_supplier')
    )
    op.create_index('idx_supplier_responses_request', 'supplier_responses', ['quote_request_id'], unique=False)
    op.create_index('idx_supplier_responses_supplier', 'supplier_responses', ['supplier_id'], unique=False)
    op.create_index('idx_supplier_responses_status', 'supplier_responses', ['status'], unique=False)
    op.create_index('idx_supplier_responses_submitted', 'supplier_responses', ['submitted_at'], unique=False)

    # 6. supplier_response_line_items
    op.create_table('supplier_response_line_items',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('response_id', sa.Uuid(), nullable=False),
    sa.Column('line_number', sa.Integer(), nullable=False),
    sa.Column('item', sa.String(length=255), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit_price_cents', sa.BigInteger(), nullable=False),
    sa.Column('total_cents', sa.BigInteger(), nullable=False),
    sa.Column('specifications', sa.Text(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.CheckConstraint('quantity > 0', name='chk_response_line_qty'),
    sa.CheckConstraint('unit_price_cents > 0', name='chk_response_line_price'),
    sa.CheckConstraint('total_cents = quantity * unit_price_cents', name='chk_response_line_total'),
    sa.ForeignKeyConstraint(['response_id'], ['supplier_responses.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('response_id', 'line_number', name='uq_response_line_item')
    )
    op.create_index('idx_response_line_items_response', 'supplier_response_line_items', ['response_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_response_line_items_response', table_name='supplier_response_line_items')
    op.drop_table('supplier_response_line_items')
    op.drop_index('idx_supplier_responses_submitted', table_name='supplier_responses')
    op.drop_index('idx_supplier_responses_status', table_name='supplier_responses')
    op.drop_index('idx_supplier_responses_supplier', table_name='supplier_responses')
    op.drop_index('idx_supplier_responses_request', table_name='supplier_responses')
    op.drop_table('supplier_responses')
    op.drop_index('idx_qr_suppliers_supplier', table_name='quote_request_suppliers')
    op.drop_index('idx_qr_suppliers_request', table_name='quote_request_suppliers')
    op.drop_table('quote_request_suppliers')
    op.drop_index('idx_quote_requests_deadline', table_name='quote_requests')
    op.drop_index('idx_quote_requests_status', table_name='quote_requests')
    op.drop_index('idx_quote_requests_user', table_name='quote_requests')
    op.drop_index('idx_quote_requests_opportunity', table_name='quote_requests')
    op.drop_table('quote_requests')
    op.drop_index('idx_suppliers_name', table_name='suppliers')
    op.drop_table('suppliers')
    op.drop_index('idx_opportunities_department', table_name='opportunities')
    op.drop_table('opportunities')
