"""Create verification, workflow step, payment, audit and notification tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_verification_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum columns store member names, as the ORM does
requesttype = sa.Enum(
    'OWNERSHIP_CHECK', 'TITLE_VERIFICATION', 'ENCUMBRANCE_CHECK', 'DUE_DILIGENCE',
    'PRE_PURCHASE', 'LEGAL_COMPLIANCE', 'MARKET_VALUATION',
    name='requesttype',
)
purpose = sa.Enum(
    'PURCHASE', 'INVESTMENT', 'LEGAL_PROCEEDINGS', 'DUE_DILIGENCE', 'MORTGAGE',
    'INSURANCE', 'INHERITANCE', 'COURT_CASE', 'TAX_ASSESSMENT', 'OTHER',
    name='purpose',
)
urgency = sa.Enum('STANDARD', 'EXPRESS', 'URGENT', name='urgency')
paymentstatus = sa.Enum('PENDING', 'PARTIAL', 'PAID', 'REFUNDED', 'WAIVED', name='paymentstatus')
verificationstatus = sa.Enum(
    'PENDING', 'PAYMENT_PENDING', 'IN_PROGRESS', 'FIELD_WORK', 'ANALYSIS',
    'QUALITY_REVIEW', 'COMPLETED', 'DENIED', 'EXPIRED', 'CANCELLED',
    name='verificationstatus',
)
stepname = sa.Enum(
    'DOCUMENT_COLLECTION', 'DOCUMENT_REVIEW', 'FIELD_VERIFICATION', 'DATA_ANALYSIS',
    'REPORT_GENERATION', 'QUALITY_CHECK',
    name='stepname',
)
stepstatus = sa.Enum('PENDING', 'IN_PROGRESS', 'COMPLETED', 'SKIPPED', 'FAILED', name='stepstatus')
paymentmethod = sa.Enum(
    'BANK_TRANSFER', 'ONLINE', 'CASH', 'CHECK', 'MOBILE_MONEY', 'MANUAL',
    name='paymentmethod',
)


def upgrade() -> None:
    """Create the verification aggregate tables and the notification outbox."""

    # 1. Aggregate root
    op.create_table(
        'verifications',
        sa.Column('verification_id', sa.String(40), primary_key=True),
        sa.Column('reference_number', sa.String(40), nullable=False),
        sa.Column('land_id', sa.String(64), nullable=False),
        sa.Column('requested_by', sa.String(64), nullable=False),
        sa.Column('request_type', requesttype, nullable=False),
        sa.Column('purpose', purpose, nullable=False),
        sa.Column('urgency', urgency, nullable=False),
        sa.Column('scope', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_status', paymentstatus, nullable=False),
        sa.Column('refund_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('refund_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('waiver_reason', sa.Text(), nullable=True),
        sa.Column('status', verificationstatus, nullable=False),
        sa.Column('work_started_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('field_work_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('draft_report_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quality_check_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expected_completion_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_completion_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_sla', sa.Integer(), nullable=False),
        sa.Column('sla_compliant', sa.Boolean(), nullable=True),
        sa.Column('overdue_flagged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ownership_details', sa.JSON(), nullable=False),
        sa.Column('title_verification', sa.JSON(), nullable=False),
        sa.Column('encumbrances', sa.JSON(), nullable=False),
        sa.Column('physical_verification', sa.JSON(), nullable=False),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('scored_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('report', sa.JSON(), nullable=True),
        sa.Column('client_updates', sa.JSON(), nullable=False),
        sa.Column('audit_sequence', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_verifications_reference_number', 'verifications', ['reference_number'])
    op.create_index('ix_verifications_land_id', 'verifications', ['land_id'])
    op.create_index('ix_verifications_requested_by', 'verifications', ['requested_by'])
    op.create_index('ix_verifications_payment_status', 'verifications', ['payment_status'])
    op.create_index('ix_verifications_status', 'verifications', ['status'])
    op.create_index('ix_verifications_expected_completion_date', 'verifications', ['expected_completion_date'])

    # 2. Workflow steps
    op.create_table(
        'workflow_steps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('verification_id', sa.String(40), sa.ForeignKey('verifications.verification_id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', stepname, nullable=False),
        sa.Column('status', stepstatus, nullable=False),
        sa.Column('assigned_to', sa.String(64), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_duration', sa.Float(), nullable=True),
        sa.Column('actual_duration', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('deliverables', sa.JSON(), nullable=False),
        sa.UniqueConstraint('verification_id', 'name', name='uq_workflow_steps_name'),
    )
    op.create_index('ix_workflow_steps_verification_id', 'workflow_steps', ['verification_id'])

    # 3. Payment history (append-only)
    op.create_table(
        'payment_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('verification_id', sa.String(40), sa.ForeignKey('verifications.verification_id'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('method', paymentmethod, nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.String(64), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('verification_id', 'sequence', name='uq_payment_entries_sequence'),
    )
    op.create_index('ix_payment_entries_verification_id', 'payment_entries', ['verification_id'])

    # 4. Audit trail (append-only)
    op.create_table(
        'audit_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('verification_id', sa.String(40), sa.ForeignKey('verifications.verification_id'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('performed_by', sa.String(64), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.UniqueConstraint('verification_id', 'sequence', name='uq_audit_entries_sequence'),
    )
    op.create_index('ix_audit_entries_verification_id', 'audit_entries', ['verification_id'])

    # 5. Notification outbox
    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('verification_id', sa.String(40), nullable=True),
        sa.Column('recipient_id', sa.String(64), nullable=True),
        sa.Column('channel', sa.String(10), nullable=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(10), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notification_logs_verification_id', 'notification_logs', ['verification_id'])
    op.create_index('ix_notification_logs_status', 'notification_logs', ['status'])


def downgrade() -> None:
    """Drop everything created above."""
    op.drop_table('notification_logs')
    op.drop_table('audit_entries')
    op.drop_table('payment_entries')
    op.drop_table('workflow_steps')
    op.drop_table('verifications')

    # PostgreSQL keeps enum types after their tables are gone
    bind = op.get_bind()
    for enum_type in (
        paymentmethod, stepstatus, stepname, verificationstatus,
        paymentstatus, urgency, purpose, requesttype,
    ):
        enum_type.drop(bind, checkfirst=True)
