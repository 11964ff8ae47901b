"""Add users, records and cases schemas for the review pipeline

Revision ID: 20261019_review_cases
Revises:
Create Date: 2026-10-19

Case status: AI_PROCESSING -> PENDING_DOCTOR -> COMPLETED (CANCELLED by admin).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261019_review_cases'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE SCHEMA IF NOT EXISTS users')
    op.execute('CREATE SCHEMA IF NOT EXISTS records')
    op.execute('CREATE SCHEMA IF NOT EXISTS cases')

    # users - Identities with a single role and an optional device token
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='patient'),  # patient, doctor, admin
        sa.Column('push_token', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        schema='users'
    )
    op.create_index('ix_users_users_email', 'users', ['email'], unique=True, schema='users')
    op.create_index('ix_users_users_role', 'users', ['role'], schema='users')

    # medical_records - Uploaded reports
    op.create_table(
        'medical_records',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False, server_default='General'),
        sa.Column('report_date', sa.String(length=50), nullable=True),
        sa.Column('file_type', sa.String(length=10), nullable=False),  # pdf, image
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_data', sa.LargeBinary(), nullable=True),
        sa.Column('file_url', sa.String(length=1000), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='UPLOADED'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        schema='records'
    )
    op.create_index('ix_records_medical_records_owner_id', 'medical_records', ['owner_id'], schema='records')
    op.create_index('ix_records_medical_records_status', 'medical_records', ['status'], schema='records')

    # review_cases - Review units with embedded AI result and doctor verdict
    op.create_table(
        'review_cases',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('patient_id', sa.UUID(), nullable=False),
        sa.Column('doctor_id', sa.UUID(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='AI_PROCESSING'),
        sa.Column('priority', sa.String(length=10), nullable=False, server_default='Normal'),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('ai_risk_level', sa.String(length=10), nullable=True),  # Low, Medium, High, Unknown
        sa.Column('ai_extracted_markers', sa.JSON(), nullable=True),
        sa.Column('ai_processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('final_verdict', sa.Text(), nullable=True),
        sa.Column('recommendations', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        schema='cases'
    )
    op.create_index('ix_cases_review_cases_patient_id', 'review_cases', ['patient_id'], schema='cases')
    op.create_index('ix_cases_review_cases_doctor_id', 'review_cases', ['doctor_id'], schema='cases')
    op.create_index('ix_cases_review_cases_status', 'review_cases', ['status'], schema='cases')

    # case_records - Ordered, non-owning case -> record references
    op.create_table(
        'case_records',
        sa.Column('case_id', sa.UUID(), nullable=False),
        sa.Column('record_id', sa.UUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['case_id'], ['cases.review_cases.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['record_id'], ['records.medical_records.id']),
        sa.PrimaryKeyConstraint('case_id', 'record_id'),
        schema='cases'
    )
    op.create_index('ix_cases_case_records_record_id', 'case_records', ['record_id'], schema='cases')


def downgrade() -> None:
    op.drop_index('ix_cases_case_records_record_id', table_name='case_records', schema='cases')
    op.drop_table('case_records', schema='cases')

    op.drop_index('ix_cases_review_cases_status', table_name='review_cases', schema='cases')
    op.drop_index('ix_cases_review_cases_doctor_id', table_name='review_cases', schema='cases')
    op.drop_index('ix_cases_review_cases_patient_id', table_name='review_cases', schema='cases')
    op.drop_table('review_cases', schema='cases')

    op.drop_index('ix_records_medical_records_status', table_name='medical_records', schema='records')
    op.drop_index('ix_records_medical_records_owner_id', table_name='medical_records', schema='records')
    op.drop_table('medical_records', schema='records')

    op.drop_index('ix_users_users_role', table_name='users', schema='users')
    op.drop_index('ix_users_users_email', table_name='users', schema='users')
    op.drop_table('users', schema='users')

    op.execute('DROP SCHEMA IF EXISTS cases')
    op.execute('DROP SCHEMA IF EXISTS records')
    op.execute('DROP SCHEMA IF EXISTS users')
