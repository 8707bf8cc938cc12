"""Commission engine tables

Revision ID: 001_commission_engine
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001_commission_engine'
down_revision = None
branch_labels = None
depends_on = None

payee_class = sa.Enum(
    'RECRUITER', 'RECRUITMENT_MANAGER', 'ACCOUNT_EXECUTIVE', 'ACCOUNT_MANAGER',
    name='payeeclass',
)
payout_kind = sa.Enum('BASE', 'TIER_BONUS', 'DEAL_OWNER_BONUS', name='payoutkind')
upload_status = sa.Enum('PROCESSING', 'COMPLETED', 'FAILED', name='uploadstatus')


def upgrade():
    op.create_table(
        'payees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('payee_class', payee_class, nullable=False),
        sa.Column('base_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('tier1_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('tier1_threshold', sa.Numeric(12, 2), nullable=True),
        sa.Column('tier2_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('tier2_threshold', sa.Numeric(12, 2), nullable=True),
        sa.Column('tier3_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('tier3_threshold', sa.Numeric(12, 2), nullable=True),
        sa.Column('tiers_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_american', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('american_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('deal_owner_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('excess_bonus_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_payees_email', 'payees', ['email'], unique=True)
    op.create_index('ix_payees_payee_class', 'payees', ['payee_class'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('deal_id', sa.String(), nullable=False),
        sa.Column('payee_email', sa.String(), sa.ForeignKey('payees.email'), nullable=False),
        sa.Column('month', sa.String(), nullable=False),
        sa.Column('amount_invoiced', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_deal_owner', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deal_name', sa.String(), nullable=True),
        sa.Column('deal_link', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('payee_email', 'deal_id', name='uq_invoices_payee_deal'),
    )
    op.create_index('ix_invoices_deal_id', 'invoices', ['deal_id'])
    op.create_index('ix_invoices_payee_email', 'invoices', ['payee_email'])
    op.create_index('ix_invoices_month', 'invoices', ['month'])

    op.create_table(
        'collections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('deal_id', sa.String(), nullable=False),
        sa.Column('payee_email', sa.String(), sa.ForeignKey('payees.email'), nullable=False),
        sa.Column('month', sa.String(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_collections_deal_id', 'collections', ['deal_id'])
    op.create_index('ix_collections_payee_email', 'collections', ['payee_email'])
    op.create_index('ix_collections_month', 'collections', ['month'])

    op.create_table(
        'invoice_adjustments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('deal_id', sa.String(), nullable=False),
        sa.Column('payee_email', sa.String(), sa.ForeignKey('payees.email'), nullable=False),
        sa.Column('month', sa.String(), nullable=False),
        sa.Column('original_month', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_invoice_adjustments_deal_id', 'invoice_adjustments', ['deal_id'])
    op.create_index('ix_invoice_adjustments_payee_email', 'invoice_adjustments', ['payee_email'])
    op.create_index('ix_invoice_adjustments_month', 'invoice_adjustments', ['month'])

    op.create_table(
        'monthly_summaries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payee_email', sa.String(), sa.ForeignKey('payees.email'), nullable=False),
        sa.Column('month', sa.String(), nullable=False),
        sa.Column('total_invoiced', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_collections', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('payee_email', 'month', name='uq_monthly_summaries_payee_month'),
    )
    op.create_index('ix_monthly_summaries_payee_email', 'monthly_summaries', ['payee_email'])
    op.create_index('ix_monthly_summaries_month', 'monthly_summaries', ['month'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payee_email', sa.String(), sa.ForeignKey('payees.email'), nullable=False),
        sa.Column('source_month', sa.String(), nullable=False),
        sa.Column('payout_month', sa.String(), nullable=False),
        sa.Column('kind', payout_kind, nullable=False),
        sa.Column('commission_rate', sa.Numeric(6, 4), nullable=False),
        sa.Column('basis_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column(
            'collection_id', sa.Integer(),
            sa.ForeignKey('collections.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_payouts_payee_email', 'payouts', ['payee_email'])
    op.create_index('ix_payouts_source_month', 'payouts', ['source_month'])
    op.create_index('ix_payouts_payout_month', 'payouts', ['payout_month'])
    op.create_index('ix_payouts_collection_id', 'payouts', ['collection_id'])

    op.create_table(
        'upload_batches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payee_class', payee_class, nullable=False),
        sa.Column('month', sa.String(), nullable=True),
        sa.Column('invoice_rows', sa.Integer(), server_default='0'),
        sa.Column('collection_rows', sa.Integer(), server_default='0'),
        sa.Column('adjustment_rows', sa.Integer(), server_default='0'),
        sa.Column('status', upload_status, nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('recalculated_months', sa.JSON(), nullable=True),
        sa.Column('processing_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_upload_batches_payee_class', 'upload_batches', ['payee_class'])
    op.create_index('ix_upload_batches_month', 'upload_batches', ['month'])


def downgrade():
    op.drop_table('upload_batches')
    op.drop_table('payouts')
    op.drop_table('monthly_summaries')
    op.drop_table('invoice_adjustments')
    op.drop_table('collections')
    op.drop_table('invoices')
    op.drop_table('payees')
    upload_status.drop(op.get_bind(), checkfirst=True)
    payout_kind.drop(op.get_bind(), checkfirst=True)
    payee_class.drop(op.get_bind(), checkfirst=True)
