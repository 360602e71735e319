"""baseline_migration

Revision ID: 3a1c9e5b7d20
Revises:
Create Date: 2026-10-19 09:12:44.518203

Production-safe migration: only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3a1c9e5b7d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('plan', sa.String(), nullable=False, server_default='free'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    if not table_exists('daily_usage'):
        op.create_table('daily_usage',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('api_calls_today', sa.Integer(), nullable=False),
            sa.Column('max_daily_api_calls', sa.Integer(), nullable=False),
            sa.Column('credits_remaining', sa.Integer(), nullable=False),
            sa.Column('total_tokens_used', sa.Integer(), nullable=False),
            sa.CheckConstraint('credits_remaining >= 0', name='ck_daily_usage_credits_non_negative'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'date', name='uq_daily_usage_user_date')
        )
        op.create_index(op.f('ix_daily_usage_id'), 'daily_usage', ['id'], unique=False)
        op.create_index(op.f('ix_daily_usage_user_id'), 'daily_usage', ['user_id'], unique=False)
        op.create_index(op.f('ix_daily_usage_date'), 'daily_usage', ['date'], unique=False)

    if not table_exists('usage_events'):
        op.create_table('usage_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('endpoint', sa.String(), nullable=False),
            sa.Column('tokens_used', sa.Integer(), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False),
            sa.Column('response_time_ms', sa.Integer(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('denied_reason', sa.String(), nullable=True),
            sa.Column('usage_date', sa.Date(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_usage_user_date_endpoint', 'usage_events', ['user_id', 'usage_date', 'endpoint'], unique=False)
        op.create_index(op.f('ix_usage_events_id'), 'usage_events', ['id'], unique=False)
        op.create_index(op.f('ix_usage_events_user_id'), 'usage_events', ['user_id'], unique=False)
        op.create_index(op.f('ix_usage_events_endpoint'), 'usage_events', ['endpoint'], unique=False)
        op.create_index(op.f('ix_usage_events_usage_date'), 'usage_events', ['usage_date'], unique=False)
        op.create_index(op.f('ix_usage_events_created_at'), 'usage_events', ['created_at'], unique=False)

    if not table_exists('cvs'):
        op.create_table('cvs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('file_name', sa.String(), nullable=False),
            sa.Column('original_content', sa.Text(), nullable=True),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('skills', sa.JSON(), nullable=True),
            sa.Column('experience', sa.Text(), nullable=True),
            sa.Column('education', sa.Text(), nullable=True),
            sa.Column('parsed_data', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_cvs_id'), 'cvs', ['id'], unique=False)
        op.create_index(op.f('ix_cvs_user_id'), 'cvs', ['user_id'], unique=False)
        op.create_index(op.f('ix_cvs_created_at'), 'cvs', ['created_at'], unique=False)

    if not table_exists('applications'):
        op.create_table('applications',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('company', sa.String(), nullable=False),
            sa.Column('job_title', sa.String(), nullable=False),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('job_description', sa.Text(), nullable=True),
            sa.Column('requirements', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='applied'),
            sa.Column('match_score', sa.Integer(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('preparation_status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('tailored_cv', sa.Text(), nullable=True),
            sa.Column('cover_letter', sa.Text(), nullable=True),
            sa.Column('preparation_metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_application_user_created', 'applications', ['user_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_applications_id'), 'applications', ['id'], unique=False)
        op.create_index(op.f('ix_applications_user_id'), 'applications', ['user_id'], unique=False)

    if not table_exists('ats_scores'):
        op.create_table('ats_scores',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('score_percentage', sa.Integer(), nullable=False),
            sa.Column('matched_factors', sa.JSON(), nullable=True),
            sa.Column('missing_factors', sa.JSON(), nullable=True),
            sa.Column('explanation', sa.Text(), nullable=True),
            sa.Column('method', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_ats_scores_id'), 'ats_scores', ['id'], unique=False)
        op.create_index(op.f('ix_ats_scores_user_id'), 'ats_scores', ['user_id'], unique=False)
        op.create_index(op.f('ix_ats_scores_created_at'), 'ats_scores', ['created_at'], unique=False)


def downgrade() -> None:
    for table in ('ats_scores', 'applications', 'cvs', 'usage_events', 'daily_usage', 'users'):
        if table_exists(table):
            op.drop_table(table)
