"""create notifications

Revision ID: 5b2f0c1d9a7e
Revises:
Create Date: 2026-10-17 12:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5b2f0c1d9a7e'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'notifications',
        sa.Column('user_id', sa.String(length=255), nullable=False, comment='Recipient user identifier'),
        sa.Column('workspace_id', sa.String(length=255), nullable=True, comment='Optional workspace scope'),
        sa.Column('type', sa.String(length=20), nullable=False, comment='Channel: push, email, sms, in_app'),
        sa.Column('priority', sa.String(length=20), nullable=False, comment='Priority: urgent, high, normal, low'),
        sa.Column('category', sa.String(length=100), nullable=True, comment='Free-form grouping tag'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column(
            'data',
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'),
            nullable=True,
            comment='Channel payload (email, phone, htmlBody, custom keys)',
        ),
        sa.Column('image_url', sa.String(length=2048), nullable=True),
        sa.Column('action_url', sa.String(length=2048), nullable=True),
        sa.Column(
            'scheduled_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='When to dispatch (null = immediately)',
        ),
        sa.Column(
            'expires_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='Never deliver after this instant',
        ),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            comment='pending, queued, processing, sent, delivered, read, failed',
        ),
        sa.Column('error_message', sa.Text(), nullable=True, comment='Last failure reason (cleared on retry)'),
        sa.Column('retry_count', sa.Integer(), nullable=False, comment='Failed processing attempts (never reset)'),
        sa.Column(
            'enqueued_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='When the latest dispatch job was submitted',
        ),
        sa.Column(
            'claimed_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='When a worker claimed the record for delivery',
        ),
        sa.Column(
            'awaiting_redelivery',
            sa.Boolean(),
            nullable=False,
            comment='Failed on an unexpected error; the queue may redeliver it',
        ),
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of record creation',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('(CURRENT_TIMESTAMP)'),
            nullable=False,
            comment='Timestamp of last update',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_workspace_id'), 'notifications', ['workspace_id'], unique=False)
    op.create_index(
        'ix_notifications_user_inbox',
        'notifications',
        ['user_id', 'workspace_id', 'type', 'status'],
        unique=False,
    )
    op.create_index('ix_notifications_status_scheduled', 'notifications', ['status', 'scheduled_at'], unique=False)
    op.create_index('ix_notifications_status_enqueued', 'notifications', ['status', 'enqueued_at'], unique=False)
    op.create_index('ix_notifications_workspace_status', 'notifications', ['workspace_id', 'status'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_notifications_workspace_status', table_name='notifications')
    op.drop_index('ix_notifications_status_enqueued', table_name='notifications')
    op.drop_index('ix_notifications_status_scheduled', table_name='notifications')
    op.drop_index('ix_notifications_user_inbox', table_name='notifications')
    op.drop_index(op.f('ix_notifications_workspace_id'), table_name='notifications')
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')
