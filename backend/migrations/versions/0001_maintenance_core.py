"""maintenance core tables

Revision ID: 0001_maintenance_core
Revises:
Create Date: 2025-10-24
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_maintenance_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='CUSTOMER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255)),
    )

    op.create_table('building_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('building_name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('building_code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('allow_custom_id', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('current_sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset_year', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_building_configs_building_name', 'building_configs', ['building_name'])
    op.create_index('ix_building_configs_building_code', 'building_configs', ['building_code'])
    op.create_index('ix_building_configs_is_active', 'building_configs', ['is_active'])

    op.create_table('request_identifiers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identifier', sa.String(length=50), nullable=False, unique=True),
        sa.Column('building', sa.String(length=100), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_request_identifiers_identifier', 'request_identifiers', ['identifier'])
    op.create_index('ix_request_identifiers_building', 'request_identifiers', ['building'])
    op.create_index('ix_request_identifiers_year', 'request_identifiers', ['year'])

    op.create_table('maintenance_requests',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('custom_identifier', sa.String(length=50), sa.ForeignKey('request_identifiers.identifier'), nullable=False, unique=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='MEDIUM'),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='SUBMITTED'),
        sa.Column('building', sa.String(length=100), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=False),
        sa.Column('specific_location', sa.String(length=200)),
        sa.Column('estimated_cost', sa.Numeric(12, 2)),
        sa.Column('scheduled_date', sa.DateTime(timezone=True)),
        sa.Column('completed_date', sa.DateTime(timezone=True)),
        sa.Column('requested_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_maintenance_requests_priority', 'maintenance_requests', ['priority'])
    op.create_index('ix_maintenance_requests_category_id', 'maintenance_requests', ['category_id'])
    op.create_index('ix_maintenance_requests_status', 'maintenance_requests', ['status'])
    op.create_index('ix_maintenance_requests_building', 'maintenance_requests', ['building'])
    op.create_index('ix_maintenance_requests_requested_by_id', 'maintenance_requests', ['requested_by_id'])
    op.create_index('ix_maintenance_requests_assigned_to_id', 'maintenance_requests', ['assigned_to_id'])
    op.create_index('ix_maintenance_requests_created_at', 'maintenance_requests', ['created_at'])
    # auto-close scan
    op.create_index('ix_maintenance_requests_status_completed', 'maintenance_requests', ['status', 'completed_date'])

    op.create_table('request_status_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(length=36), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=True),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=500)),
        sa.Column('changed_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_request_status_history_request_id', 'request_status_history', ['request_id'])

    op.create_table('request_assignment_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('request_id', sa.String(length=36), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('to_technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assignment_type', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=500)),
        sa.Column('assigned_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_request_assignment_history_request_id', 'request_assignment_history', ['request_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=100), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity', 'entity_id'])
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in ('audit_logs', 'request_assignment_history', 'request_status_history', 'maintenance_requests',
                  'request_identifiers', 'building_configs', 'categories', 'users'):
        op.drop_table(table)
