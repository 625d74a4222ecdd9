"""initial_schema

Revision ID: a1c4e2b7d901
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the Haven schema: directory, houses and residents, funding contracts,
transactions and their audit log, claims, automations and expenses.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c4e2b7d901'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum types store member names, matching SQLAlchemy's default for Python enums.
# They are created once up front and shared between tables.
australianstate = postgresql.ENUM('ACT', 'NSW', 'NT', 'QLD', 'SA', 'TAS', 'VIC', 'WA', name='australianstate', create_type=False)
housestatus = postgresql.ENUM('ACTIVE', 'VACANT', 'UNDER_MAINTENANCE', name='housestatus', create_type=False)
gender = postgresql.ENUM('MALE', 'FEMALE', 'NON_BINARY', 'PREFER_NOT_TO_SAY', name='gender', create_type=False)
residentstatus = postgresql.ENUM('DRAFT', 'PROSPECT', 'ACTIVE', 'DEACTIVATED', name='residentstatus', create_type=False)
contracttype = postgresql.ENUM('NDIS', 'GOVERNMENT', 'PRIVATE', 'FAMILY', 'OTHER', name='contracttype', create_type=False)
contractstatus = postgresql.ENUM('DRAFT', 'ACTIVE', 'EXPIRED', 'CANCELLED', 'RENEWED', name='contractstatus', create_type=False)
drawdownrate = postgresql.ENUM('DAILY', 'WEEKLY', 'MONTHLY', name='drawdownrate', create_type=False)
billingfrequency = postgresql.ENUM('DAILY', 'WEEKLY', 'FORTNIGHTLY', name='billingfrequency', create_type=False)
transactionstatus = postgresql.ENUM(
    'DRAFT', 'PICKED_UP', 'SUBMITTED', 'PAID', 'REJECTED', 'ERROR', 'POSTED', 'VOIDED',
    name='transactionstatus', create_type=False,
)
drawdownstatus = postgresql.ENUM('PENDING', 'VALIDATED', 'POSTED', 'REJECTED', 'VOIDED', name='drawdownstatus', create_type=False)
recordsource = postgresql.ENUM('MANUAL', 'AUTOMATION', name='recordsource', create_type=False)
auditaction = postgresql.ENUM('CREATED', 'UPDATED', 'POSTED', 'VOIDED', name='auditaction', create_type=False)
claimstatus = postgresql.ENUM(
    'DRAFT', 'IN_PROGRESS', 'PROCESSED', 'SUBMITTED', 'PAID', 'REJECTED', 'PARTIALLY_PAID',
    name='claimstatus', create_type=False,
)
automationtype = postgresql.ENUM('RECURRING_TRANSACTION', 'CONTRACT_BILLING_RUN', 'DAILY_DIGEST', name='automationtype', create_type=False)
automationrunstatus = postgresql.ENUM('RUNNING', 'SUCCESS', 'FAILED', name='automationrunstatus', create_type=False)
suppliertype = postgresql.ENUM(
    'GENERAL_MAINTENANCE', 'PLUMBER', 'ELECTRICIAN', 'CLEANING', 'LANDSCAPING', 'HVAC', 'SECURITY', 'OTHER',
    name='suppliertype', create_type=False,
)
expensescope = postgresql.ENUM('PROPERTY', 'ORGANISATION', name='expensescope', create_type=False)
expensefrequency = postgresql.ENUM(
    'ONE_OFF', 'WEEKLY', 'FORTNIGHTLY', 'MONTHLY', 'QUARTERLY', 'ANNUALLY', name='expensefrequency',
    create_type=False,
)
expensestatus = postgresql.ENUM('DRAFT', 'APPROVED', 'PAID', 'OVERDUE', 'CANCELLED', name='expensestatus', create_type=False)
headleasestatus = postgresql.ENUM('ACTIVE', 'UPCOMING', 'EXPIRED', name='headleasestatus', create_type=False)
rentfrequency = postgresql.ENUM('WEEKLY', 'FORTNIGHTLY', 'MONTHLY', name='rentfrequency', create_type=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


ENUM_TYPES = (
    australianstate, housestatus, gender, residentstatus, contracttype, contractstatus,
    drawdownrate, billingfrequency, transactionstatus, drawdownstatus, recordsource,
    auditaction, claimstatus, automationtype, automationrunstatus, suppliertype,
    expensescope, expensefrequency, expensestatus, headleasestatus, rentfrequency,
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    # Create directory tables
    op.create_table('owners',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('owner_type', sa.String(length=50), nullable=False),
        sa.Column('primary_contact_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('plan_managers',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('billing_email', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('contacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('suppliers',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('supplier_type', suppliertype, nullable=False),
        sa.Column('contact_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    # Create houses and residents
    op.create_table('houses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('address1', sa.String(length=120), nullable=False),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('suburb', sa.String(length=100), nullable=False),
        sa.Column('state', australianstate, nullable=False),
        sa.Column('postcode', sa.String(length=4), nullable=False),
        sa.Column('country', sa.String(length=2), nullable=False),
        sa.Column('status', housestatus, nullable=False),
        sa.Column('descriptor', sa.String(length=255), nullable=True),
        sa.Column('bedroom_count', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('go_live_date', sa.Date(), nullable=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('head_leases',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('house_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', headleasestatus, nullable=False),
        sa.Column('rent_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('rent_frequency', rentfrequency, nullable=False),
        sa.Column('review_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('document_url', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id']),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_head_leases_house_id', 'head_leases', ['house_id'])

    op.create_table('residents',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('house_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', gender, nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('ndis_id', sa.String(length=12), nullable=True),
        sa.Column('status', residentstatus, nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('plan_manager_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('room_label', sa.String(length=50), nullable=True),
        sa.Column('move_in_date', sa.Date(), nullable=True),
        sa.Column('move_out_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id']),
        sa.ForeignKeyConstraint(['plan_manager_id'], ['plan_managers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_residents_house_id', 'residents', ['house_id'])
    op.create_index('ix_residents_status', 'residents', ['status'])

    op.create_table('resident_contacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('resident_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('relationship_note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['resident_id'], ['residents.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resident_id', 'contact_id', name='uq_resident_contact')
    )

    # Create funding_contracts table
    op.create_table('funding_contracts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('resident_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contract_type', contracttype, nullable=False),
        sa.Column('contract_status', contractstatus, nullable=False),
        sa.Column('original_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('current_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('renewal_date', sa.Date(), nullable=True),
        sa.Column('drawdown_rate', drawdownrate, nullable=False),
        sa.Column('auto_drawdown', sa.Boolean(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('support_item_code', sa.String(length=20), nullable=True),
        sa.Column('daily_support_item_cost', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('auto_billing_enabled', sa.Boolean(), nullable=False),
        sa.Column('automated_drawdown_frequency', billingfrequency, nullable=True),
        sa.Column('next_run_date', sa.Date(), nullable=True),
        sa.Column('last_drawdown_date', sa.Date(), nullable=True),
        sa.Column('parent_contract_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['resident_id'], ['residents.id']),
        sa.ForeignKeyConstraint(['parent_contract_id'], ['funding_contracts.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_funding_contracts_resident_id', 'funding_contracts', ['resident_id'])
    op.create_index('ix_funding_contracts_status', 'funding_contracts', ['contract_status'])

    # Create automations before the tables that reference them
    op.create_table('automations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', automationtype, nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('schedule', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('parameters', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_run_status', automationrunstatus, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_automations_type', 'automations', ['type'])
    op.create_index('ix_automations_next_run_at', 'automations', ['next_run_at'])

    op.create_table('automation_runs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('automation_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', automationrunstatus, nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('metrics', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('error', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(['automation_id'], ['automations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_automation_runs_automation_id', 'automation_runs', ['automation_id'])

    # Create claims tables
    op.create_table('claims',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('claim_number', sa.String(length=20), nullable=False),
        sa.Column('status', claimstatus, nullable=False),
        sa.Column('filters', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('transaction_count', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('file_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('file_generated_by', sa.String(length=100), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('claim_number')
    )
    op.create_index('ix_claims_status', 'claims', ['status'])

    op.create_table('claim_reconciliations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('claim_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('total_processed', sa.Integer(), nullable=False),
        sa.Column('total_paid', sa.Integer(), nullable=False),
        sa.Column('total_rejected', sa.Integer(), nullable=False),
        sa.Column('total_errors', sa.Integer(), nullable=False),
        sa.Column('total_unmatched', sa.Integer(), nullable=False),
        sa.Column('results_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('uploaded_by', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id']),
        sa.PrimaryKeyConstraint('id')
    )

    # Create transactions and audit log
    op.create_table('transactions',
        sa.Column('id', sa.String(length=40), nullable=False),
        sa.Column('resident_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contract_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('service_code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', transactionstatus, nullable=False),
        sa.Column('drawdown_status', drawdownstatus, nullable=False),
        sa.Column('is_orphaned', sa.Boolean(), nullable=False),
        sa.Column('service_item_code', sa.String(length=20), nullable=True),
        sa.Column('support_agreement_id', sa.String(length=100), nullable=True),
        sa.Column('participant_id', sa.String(length=50), nullable=True),
        sa.Column('source', recordsource, nullable=False),
        sa.Column('automation_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_automated', sa.Boolean(), nullable=False),
        sa.Column('claim_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=False),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('posted_by', sa.String(length=100), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by', sa.String(length=100), nullable=True),
        sa.Column('void_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['resident_id'], ['residents.id']),
        sa.ForeignKeyConstraint(['contract_id'], ['funding_contracts.id']),
        sa.ForeignKeyConstraint(['automation_id'], ['automations.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_resident_id', 'transactions', ['resident_id'])
    op.create_index('ix_transactions_contract_id', 'transactions', ['contract_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_occurred_at', 'transactions', ['occurred_at'])
    op.create_index('ix_transactions_claim_id', 'transactions', ['claim_id'])

    op.create_table('transaction_audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('transaction_id', sa.String(length=40), nullable=False),
        sa.Column('action', auditaction, nullable=False),
        sa.Column('changes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create expenses table
    op.create_table('expenses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('house_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('scope', expensescope, nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('frequency', expensefrequency, nullable=False),
        sa.Column('occurred_at', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('paid_at', sa.Date(), nullable=True),
        sa.Column('status', expensestatus, nullable=False),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_snapshot', sa.Boolean(), nullable=False),
        sa.Column('meter_reading', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('reading_unit', sa.String(length=20), nullable=True),
        sa.Column('source', recordsource, nullable=False),
        sa.Column('automation_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.ForeignKeyConstraint(['automation_id'], ['automations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_expenses_house_id', 'expenses', ['house_id'])
    op.create_index('ix_expenses_occurred_at', 'expenses', ['occurred_at'])


def downgrade() -> None:
    for table in (
        'expenses',
        'transaction_audit_log',
        'transactions',
        'claim_reconciliations',
        'claims',
        'automation_runs',
        'automations',
        'funding_contracts',
        'resident_contacts',
        'residents',
        'head_leases',
        'houses',
        'suppliers',
        'contacts',
        'plan_managers',
        'owners',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
