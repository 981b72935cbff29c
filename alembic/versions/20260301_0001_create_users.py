"""Create users and verification_tokens tables

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 00:01:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20260301_0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users and verification_tokens tables."""
    op.create_table(
        'users',
        sa.Column('user_id', sa.Uuid, primary_key=True),
        sa.Column('username', sa.String(16), nullable=True, unique=True),
        sa.Column('email', sa.String(100), nullable=False, unique=True),
        sa.Column('phone_number', sa.String(15), nullable=True, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(30), nullable=True),
        sa.Column('last_name', sa.String(30), nullable=True),
        sa.Column('date_of_birth', sa.Date, nullable=False),
        sa.Column('city', sa.String(26), nullable=True),
        sa.Column('state', sa.String(2), nullable=True),
        sa.Column('gender', sa.String(20), nullable=True),
        sa.Column('age', sa.Integer, nullable=True),
        sa.Column('profile_picture_url', sa.String(255), nullable=True),
        sa.Column('bio', sa.Text, nullable=True),
        sa.Column('role', sa.String(10), nullable=False),
        sa.Column('position', sa.String(15), nullable=False, server_default='member'),
        sa.Column('job_title', sa.String(100), nullable=True),
        sa.Column('years_of_experience', sa.Integer, nullable=True),
        sa.Column('industry', sa.String(100), nullable=True),
        sa.Column('skills', sa.Text, nullable=True),
        sa.Column('interests', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('is_verified', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.CheckConstraint("role IN ('mentor', 'mentee')", name='users_role_check'),
        sa.CheckConstraint("position IN ('admin', 'moderator', 'member')", name='users_position_check'),
    )

    # Search results are ordered by last name, then first name
    op.create_index('idx_users_name', 'users', ['last_name', 'first_name'])

    op.create_table(
        'verification_tokens',
        sa.Column('token_id', sa.Uuid, primary_key=True),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column(
            'user_id',
            sa.Uuid,
            sa.ForeignKey('users.user_id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop users and verification_tokens tables."""
    op.drop_table('verification_tokens')
    op.drop_index('idx_users_name', table_name='users')
    op.drop_table('users')
