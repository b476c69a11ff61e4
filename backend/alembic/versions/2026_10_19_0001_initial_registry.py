"""files registry, process logs and system settings

Revision ID: 001_initial_registry
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers
revision: str = '001_initial_registry'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'files_registry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('cleaned_name', sa.String(), nullable=True),
        sa.Column('source_path', sa.String(), nullable=True),
        sa.Column('file_hash', sa.String(), nullable=True),
        sa.Column('video_status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('subtitle_status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('is_legacy', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('duration_sec', sa.Float(), nullable=True),
        sa.Column('resolution', sa.String(), nullable=True),
        sa.Column('video_encoder', sa.String(), nullable=True),
        sa.Column('has_subtitle', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('subtitle_formats', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # unique hash is the dedup guard; NULL hashes (list-imported history) may repeat
    op.create_index('ix_files_registry_file_hash', 'files_registry', ['file_hash'], unique=True)
    op.create_index('ix_files_registry_cleaned_name', 'files_registry', ['cleaned_name'])
    op.create_index('ix_files_registry_video_status', 'files_registry', ['video_status'])
    op.create_index('ix_files_registry_subtitle_status', 'files_registry', ['subtitle_status'])
    op.create_index('ix_files_registry_created_at', 'files_registry', ['created_at'])

    op.create_table(
        'process_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('file_id', sa.Integer(), nullable=False),
        sa.Column('operation', sa.String(), nullable=False),
        sa.Column('output_path', sa.String(), nullable=True),
        sa.Column('ssim_score', sa.Float(), nullable=True),
        sa.Column('psnr_score', sa.Float(), nullable=True),
        sa.Column('error_log', sa.String(), nullable=True),
        sa.Column('duration_sec', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['file_id'], ['files_registry.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_process_logs_file_id', 'process_logs', ['file_id'])
    op.create_index('ix_process_logs_operation', 'process_logs', ['operation'])

    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('system_settings')

    op.drop_index('ix_process_logs_operation', table_name='process_logs')
    op.drop_index('ix_process_logs_file_id', table_name='process_logs')
    op.drop_table('process_logs')

    op.drop_index('ix_files_registry_created_at', table_name='files_registry')
    op.drop_index('ix_files_registry_subtitle_status', table_name='files_registry')
    op.drop_index('ix_files_registry_video_status', table_name='files_registry')
    op.drop_index('ix_files_registry_cleaned_name', table_name='files_registry')
    op.drop_index('ix_files_registry_file_hash', table_name='files_registry')
    op.drop_table('files_registry')
