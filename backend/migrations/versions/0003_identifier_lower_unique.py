"""case-insensitive uniqueness for request identifiers

Revision ID: 0003_identifier_lower_unique
Revises: 0002_request_comments
Create Date: 2025-11-03
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0003_identifier_lower_unique'
down_revision = '0002_request_comments'
branch_labels = None
depends_on = None


def upgrade():
    op.create_index('uq_request_identifiers_identifier_lower', 'request_identifiers', [sa.text('lower(identifier)')], unique=True)


def downgrade():
    op.drop_index('uq_request_identifiers_identifier_lower', table_name='request_identifiers')
