"""Add invitation deadline and reminder tracking to events

Revision ID: 8b2e61c4d0f5
Revises: 4f1c2a9d7e30
Create Date: 2026-10-18

Events get an RSVP deadline (invitations close after it and undersubscribed
events are cancelled) and one timestamp per reminder kind so the reminder
job sends each reminder once.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e61c4d0f5'
down_revision: Union[str, None] = '4f1c2a9d7e30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REMINDER_COLUMNS = (
    'start_reminder_sent_at',
    'final_reminder_sent_at',
    'voting_reminder_sent_at',
    'rsvp_reminder_sent_at',
)


def upgrade() -> None:
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.add_column(
            sa.Column('rsvp_deadline', sa.DateTime(timezone=True), nullable=True)
        )
        for name in REMINDER_COLUMNS:
            batch_op.add_column(sa.Column(name, sa.DateTime(timezone=True), nullable=True))
        batch_op.create_index('idx_events_status_rsvp', ['status', 'rsvp_deadline'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index('idx_events_status_rsvp')
        for name in reversed(REMINDER_COLUMNS):
            batch_op.drop_column(name)
        batch_op.drop_column('rsvp_deadline')
