"""create feedback, summary and pipeline run tables

Revision ID: 3c9e1f2a7b40
Revises:
Create Date: 2026-10-17 10:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1f2a7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'feedback',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.Integer(), nullable=False),
        sa.Column('processed', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_feedback_source'), 'feedback', ['source'], unique=False)
    op.create_index(op.f('ix_feedback_created_at'), 'feedback', ['created_at'], unique=False)
    op.create_index(op.f('ix_feedback_processed'), 'feedback', ['processed'], unique=False)

    op.create_table(
        'source_summaries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('date_range_start', sa.Integer(), nullable=False),
        sa.Column('date_range_end', sa.Integer(), nullable=False),
        sa.Column('feedback_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_source_summaries_source'), 'source_summaries', ['source'], unique=False)
    op.create_index(
        'ix_source_summaries_date_range', 'source_summaries',
        ['date_range_start', 'date_range_end'], unique=False,
    )

    op.create_table(
        'aggregated_summaries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('date_range_start', sa.Integer(), nullable=False),
        sa.Column('date_range_end', sa.Integer(), nullable=False),
        sa.Column('source_count', sa.Integer(), nullable=False),
        sa.Column('total_feedback_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index(
        'ix_aggregated_summaries_date_range', 'aggregated_summaries',
        ['date_range_start', 'date_range_end'], unique=False,
    )

    op.create_table(
        'pipeline_runs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('source', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=50), nullable=False),
        sa.Column('params', sa.JSON(), nullable=False),
        sa.Column('step_results', sa.JSON(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_pipeline_runs_kind'), 'pipeline_runs', ['kind'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_pipeline_runs_kind'), table_name='pipeline_runs')
    op.drop_table('pipeline_runs')
    op.drop_index('ix_aggregated_summaries_date_range', table_name='aggregated_summaries')
    op.drop_table('aggregated_summaries')
    op.drop_index('ix_source_summaries_date_range', table_name='source_summaries')
    op.drop_index(op.f('ix_source_summaries_source'), table_name='source_summaries')
    op.drop_table('source_summaries')
    op.drop_index(op.f('ix_feedback_processed'), table_name='feedback')
    op.drop_index(op.f('ix_feedback_created_at'), table_name='feedback')
    op.drop_index(op.f('ix_feedback_source'), table_name='feedback')
    op.drop_table('feedback')
