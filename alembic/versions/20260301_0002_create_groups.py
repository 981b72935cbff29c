"""Create groups and group_members tables

Revision ID: 20260301_0002
Revises: 20260301_0001
Create Date: 2026-03-01 00:02:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20260301_0002'
down_revision: str | None = '20260301_0001'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create groups and group_members tables."""
    op.create_table(
        'groups',
        sa.Column('group_id', sa.Uuid, primary_key=True),
        sa.Column('group_name', sa.String(50), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_by', sa.Uuid, sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'group_members',
        sa.Column('group_id', sa.Uuid, sa.ForeignKey('groups.group_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.user_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role', sa.String(15), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'member')", name='group_members_role_check'),
    )

    # Create index for listing a user's groups
    op.create_index('idx_group_members_user', 'group_members', ['user_id'])


def downgrade() -> None:
    """Drop groups and group_members tables."""
    op.drop_index('idx_group_members_user', table_name='group_members')
    op.drop_table('group_members')
    op.drop_table('groups')
