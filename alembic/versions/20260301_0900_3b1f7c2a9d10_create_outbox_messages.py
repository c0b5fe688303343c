"""create outbox_messages table

Revision ID: 3b1f7c2a9d10
Revises:
Create Date: 2026-03-01 09:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3b1f7c2a9d10'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'outbox_messages',
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.Column('event_id', sa.String(length=64), nullable=False, comment='Event idempotency key'),
        sa.Column('event_type', sa.String(length=150), nullable=False, comment='Event type identifier'),
        sa.Column('event_version', sa.Integer(), nullable=False, comment='Event schema version'),
        sa.Column('payload', sa.Text(), nullable=False, comment='JSON-serialized event data'),
        sa.Column(
            'state',
            sa.Enum(
                'ReadyToSend',
                'SendToQueue',
                'Completed',
                'Failed',
                name='outbox_message_state',
                native_enum=False,
                length=20,
            ),
            nullable=False,
            comment='Delivery state',
        ),
        sa.Column('attempts', sa.Integer(), nullable=False, comment='Number of failed attempts'),
        sa.Column('last_error', sa.Text(), nullable=True, comment='Last error message'),
        sa.Column(
            'correlation_id',
            sa.String(length=64),
            nullable=True,
            comment='Distributed tracing correlation ID',
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_outbox_messages')),
        sa.UniqueConstraint('event_id', name=op.f('uq_outbox_messages_event_id')),
    )
    op.create_index(op.f('ix_outbox_messages_event_type'), 'outbox_messages', ['event_type'], unique=False)
    op.create_index(
        'ix_outbox_messages_state_created_at',
        'outbox_messages',
        ['state', 'created_at'],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_outbox_messages_state_created_at', table_name='outbox_messages')
    op.drop_index(op.f('ix_outbox_messages_event_type'), table_name='outbox_messages')
    op.drop_table('outbox_messages')
