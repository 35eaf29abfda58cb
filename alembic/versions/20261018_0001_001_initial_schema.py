"""Initial schema for projects, user counters and the workflow step log

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create projects table
    op.create_table(
        'projects',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('input_url', sa.String(2048), nullable=False),
        sa.Column('file_name', sa.String(512), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('file_size', sa.Integer, nullable=True),
        sa.Column('file_duration', sa.Integer, nullable=True),
        sa.Column('file_format', sa.String(32), nullable=True),
        sa.Column('mime_type', sa.String(128), nullable=True),
        sa.Column('status', sa.String(32), nullable=True),
        sa.Column('job_status', sa.JSON, nullable=True),
        sa.Column('transcript', sa.JSON, nullable=True),
        sa.Column('summary', sa.JSON, nullable=True),
        sa.Column('social_posts', sa.JSON, nullable=True),
        sa.Column('titles', sa.JSON, nullable=True),
        sa.Column('hashtags', sa.JSON, nullable=True),
        sa.Column('key_moments', sa.JSON, nullable=True),
        sa.Column('youtube_timestamps', sa.JSON, nullable=True),
        sa.Column('job_errors', sa.JSON, nullable=True),
        sa.Column('error', sa.JSON, nullable=True),
        sa.Column('orphaned_blob', sa.Boolean, nullable=True),
        sa.Column('orphaned_blob_url', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('deleted_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_projects_user_id', 'projects', ['user_id'])
    op.create_index('ix_projects_user_created', 'projects', ['user_id', 'created_at'])
    op.create_index('ix_projects_deleted_at', 'projects', ['deleted_at'])

    # Create user_project_counts table
    op.create_table(
        'user_project_counts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('total_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('active_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('user_id', name='uq_user_project_counts_user'),
    )

    # Create workflow_steps table
    op.create_table(
        'workflow_steps',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('run_id', sa.String(255), nullable=False),
        sa.Column('step_name', sa.String(128), nullable=False),
        sa.Column('status', sa.String(32), nullable=True),
        sa.Column('result', sa.JSON, nullable=True),
        sa.Column('attempts', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('run_id', 'step_name', name='uq_workflow_steps_run_step'),
    )
    op.create_index('ix_workflow_steps_run_id', 'workflow_steps', ['run_id'])


def downgrade() -> None:
    op.drop_index('ix_workflow_steps_run_id', table_name='workflow_steps')
    op.drop_table('workflow_steps')
    op.drop_table('user_project_counts')
    op.drop_index('ix_projects_deleted_at', table_name='projects')
    op.drop_index('ix_projects_user_created', table_name='projects')
    op.drop_index('ix_projects_user_id', table_name='projects')
    op.drop_table('projects')
