"""Initial group event lifecycle schema

Revision ID: 4f1c2a9d7e30
Revises:
Create Date: 2026-10-18

Creates events with their participants and audit log, places, venue
options, votes, waitlist entries, recurring templates, check-ins and
feedback.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from group_scheduler.models.base import GUID


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9d7e30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _common_columns() -> list:
    return [
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table('places',
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('average_rating', sa.Float(), nullable=True),
        sa.Column('total_reviews', sa.Integer(), nullable=False),
        sa.Column('verification_status', sa.String(length=30), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('recurring_event_templates',
        sa.Column('organizer_id', GUID(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=True),
        sa.Column('pattern', sa.String(length=30), nullable=False),
        sa.Column('days_of_week', JSON_TYPE, nullable=True),
        sa.Column('day_of_month', sa.Integer(), nullable=True),
        sa.Column('month_of_year', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('occurrence_count', sa.Integer(), nullable=True),
        sa.Column('scheduled_time', sa.Time(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('expected_attendees', sa.Integer(), nullable=False),
        sa.Column('max_attendees', sa.Integer(), nullable=True),
        sa.Column('budget_total', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('budget_per_person', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('privacy', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('auto_create_events', sa.Boolean(), nullable=False),
        sa.Column('days_in_advance', sa.Integer(), nullable=False),
        sa.Column('last_generated_date', sa.Date(), nullable=True),
        sa.Column('last_generated_at', sa.DateTime(timezone=True), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('recurring_event_templates', schema=None) as batch_op:
        batch_op.create_index('idx_templates_status', ['status', 'auto_create_events'], unique=False)
        batch_op.create_index('idx_templates_organizer', ['organizer_id'], unique=False)

    op.create_table('events',
        sa.Column('organizer_id', GUID(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('scheduled_time', sa.Time(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('expected_attendees', sa.Integer(), nullable=False),
        sa.Column('max_attendees', sa.Integer(), nullable=True),
        sa.Column('budget_total', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('budget_per_person', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('acceptance_threshold', sa.Float(), nullable=False),
        sa.Column('privacy', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('voting_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ai_analysis_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('final_place_id', GUID(), nullable=True),
        sa.Column('final_option_id', GUID(), nullable=True),
        sa.Column('reschedule_count', sa.Integer(), nullable=False),
        sa.Column('previous_scheduled_date', sa.Date(), nullable=True),
        sa.Column('previous_scheduled_time', sa.Time(), nullable=True),
        sa.Column('last_rescheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reschedule_reason', sa.Text(), nullable=True),
        sa.Column('recurring_template_id', GUID(), nullable=True),
        sa.Column('occurrence_date', sa.Date(), nullable=True),
        sa.Column('waitlist_sequence', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_common_columns(),
        sa.ForeignKeyConstraint(['final_place_id'], ['places.id']),
        sa.ForeignKeyConstraint(['recurring_template_id'], ['recurring_event_templates.id'],
                                ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('recurring_template_id', 'occurrence_date',
                            name='uq_events_template_occurrence')
    )
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.create_index('idx_events_status', ['status'], unique=False)
        batch_op.create_index('idx_events_organizer', ['organizer_id'], unique=False)
        batch_op.create_index('idx_events_status_deadline', ['status', 'voting_deadline'], unique=False)

    op.create_table('event_participants',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('invitation_status', sa.String(length=30), nullable=False),
        sa.Column('invited_by', GUID(), nullable=True),
        sa.Column('invited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('removed_at', sa.DateTime(timezone=True), nullable=True),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_participant')
    )
    with op.batch_alter_table('event_participants', schema=None) as batch_op:
        batch_op.create_index('idx_event_participants_status', ['event_id', 'invitation_status'], unique=False)
        batch_op.create_index('idx_event_participants_user', ['user_id'], unique=False)

    op.create_table('event_transition_logs',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('from_status', sa.String(length=30), nullable=True),
        sa.Column('to_status', sa.String(length=30), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('actor_id', GUID(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('event_transition_logs', schema=None) as batch_op:
        batch_op.create_index('idx_transition_logs_event', ['event_id', 'occurred_at'], unique=False)

    op.create_table('venue_options',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('place_id', GUID(), nullable=True),
        sa.Column('suggested_by', GUID(), nullable=True),
        sa.Column('ai_score', sa.Float(), nullable=True),
        sa.Column('ai_reasoning', sa.Text(), nullable=True),
        sa.Column('pros', JSON_TYPE, nullable=False),
        sa.Column('cons', JSON_TYPE, nullable=False),
        sa.Column('estimated_cost_per_person', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('external_provider', sa.String(length=50), nullable=True),
        sa.Column('external_place_id', sa.String(length=200), nullable=True),
        sa.Column('external_name', sa.String(length=200), nullable=True),
        sa.Column('external_address', sa.String(length=500), nullable=True),
        sa.Column('external_latitude', sa.Float(), nullable=True),
        sa.Column('external_longitude', sa.Float(), nullable=True),
        sa.Column('external_rating', sa.Float(), nullable=True),
        sa.Column('external_total_reviews', sa.Integer(), nullable=True),
        sa.Column('external_phone', sa.String(length=50), nullable=True),
        sa.Column('external_website', sa.String(length=500), nullable=True),
        sa.Column('external_photo_url', sa.String(length=1000), nullable=True),
        sa.Column('external_category', sa.String(length=100), nullable=True),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['place_id'], ['places.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'place_id', name='uq_venue_option_place'),
        sa.UniqueConstraint('event_id', 'external_provider', 'external_place_id',
                            name='uq_venue_option_external')
    )
    with op.batch_alter_table('venue_options', schema=None) as batch_op:
        batch_op.create_index('idx_venue_options_event', ['event_id'], unique=False)

    op.create_table('votes',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('venue_option_id', GUID(), nullable=False),
        sa.Column('voter_id', GUID(), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('voted_at', sa.DateTime(timezone=True), nullable=False),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['venue_option_id'], ['venue_options.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'voter_id', name='uq_vote_event_voter')
    )
    with op.batch_alter_table('votes', schema=None) as batch_op:
        batch_op.create_index('idx_votes_option', ['venue_option_id'], unique=False)

    op.create_table('waitlist_entries',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('promoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_waitlist_event_user')
    )
    with op.batch_alter_table('waitlist_entries', schema=None) as batch_op:
        batch_op.create_index(
            'idx_waitlist_queue',
            ['event_id', 'status', 'priority', 'joined_at', 'sequence'],
            unique=False,
        )

    op.create_table('event_check_ins',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('method', sa.String(length=30), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_check_in_event_user')
    )

    op.create_table('event_feedback',
        sa.Column('event_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('overall_rating', sa.Integer(), nullable=False),
        sa.Column('venue_rating', sa.Integer(), nullable=True),
        sa.Column('food_rating', sa.Integer(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('suggestions', sa.Text(), nullable=True),
        sa.Column('would_attend_again', sa.Boolean(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        *_common_columns(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_feedback_event_user')
    )


def downgrade() -> None:
    op.drop_table('event_feedback')
    op.drop_table('event_check_ins')
    with op.batch_alter_table('waitlist_entries', schema=None) as batch_op:
        batch_op.drop_index('idx_waitlist_queue')
    op.drop_table('waitlist_entries')
    with op.batch_alter_table('votes', schema=None) as batch_op:
        batch_op.drop_index('idx_votes_option')
    op.drop_table('votes')
    with op.batch_alter_table('venue_options', schema=None) as batch_op:
        batch_op.drop_index('idx_venue_options_event')
    op.drop_table('venue_options')
    with op.batch_alter_table('event_transition_logs', schema=None) as batch_op:
        batch_op.drop_index('idx_transition_logs_event')
    op.drop_table('event_transition_logs')
    with op.batch_alter_table('event_participants', schema=None) as batch_op:
        batch_op.drop_index('idx_event_participants_user')
        batch_op.drop_index('idx_event_participants_status')
    op.drop_table('event_participants')
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index('idx_events_status_deadline')
        batch_op.drop_index('idx_events_organizer')
        batch_op.drop_index('idx_events_status')
    op.drop_table('events')
    with op.batch_alter_table('recurring_event_templates', schema=None) as batch_op:
        batch_op.drop_index('idx_templates_organizer')
        batch_op.drop_index('idx_templates_status')
    op.drop_table('recurring_event_templates')
    op.drop_table('places')
