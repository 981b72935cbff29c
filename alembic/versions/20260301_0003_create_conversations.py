"""Create conversations, participants, messages and read status tables

Revision ID: 20260301_0003
Revises: 20260301_0002
Create Date: 2026-03-01 00:03:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20260301_0003'
down_revision: str | None = '20260301_0002'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create messaging tables."""
    op.create_table(
        'conversations',
        sa.Column('conversation_id', sa.Uuid, primary_key=True),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column(
            'group_id',
            sa.Uuid,
            sa.ForeignKey('groups.group_id', ondelete='CASCADE'),
            nullable=True,
            unique=True,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('private', 'group')", name='conversations_type_check'),
        sa.CheckConstraint("(type = 'group') = (group_id IS NOT NULL)", name='conversations_group_id_check'),
    )

    op.create_table(
        'direct_conversation_participants',
        sa.Column(
            'conversation_id',
            sa.Uuid,
            sa.ForeignKey('conversations.conversation_id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.user_id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('idx_direct_participants_user', 'direct_conversation_participants', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('message_id', sa.Uuid, primary_key=True),
        sa.Column(
            'conversation_id',
            sa.Uuid,
            sa.ForeignKey('conversations.conversation_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('sender_id', sa.Uuid, sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('media_urls', sa.JSON, nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("length(content) <= 10000", name='messages_content_length_check'),
    )

    # Create index for conversation_id and sent_at
    op.create_index('idx_conversation_messages', 'messages', ['conversation_id', 'sent_at'])

    op.create_table(
        'message_read_status',
        sa.Column('message_id', sa.Uuid, sa.ForeignKey('messages.message_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.user_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop messaging tables."""
    op.drop_table('message_read_status')
    op.drop_index('idx_conversation_messages', table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_direct_participants_user', table_name='direct_conversation_participants')
    op.drop_table('direct_conversation_participants')
    op.drop_table('conversations')
