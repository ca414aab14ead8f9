"""request comments

Revision ID: 0002_request_comments
Revises: 0001_maintenance_core
Create Date: 2025-11-03
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_request_comments'
down_revision = '0001_maintenance_core'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('request_comments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(length=36), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.String(length=2000), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_request_comments_request_id', 'request_comments', ['request_id'])


def downgrade():
    op.drop_index('ix_request_comments_request_id', table_name='request_comments')
    op.drop_table('request_comments')
