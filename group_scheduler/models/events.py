"""
Event aggregate models.

Entities:
- Event: A proposed group gathering moving through the lifecycle
- EventParticipant: Invitation/participation of one user in one event
- EventTransitionLog: Audit trail of status changes and reschedules
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_scheduler.models.base import BaseModel, GUID, enum_type
from group_scheduler.models.enums import EventPrivacy, EventStatus, InvitationStatus

if TYPE_CHECKING:
    from group_scheduler.models.attendance import CheckIn, Feedback
    from group_scheduler.models.recurring import RecurringEventTemplate
    from group_scheduler.models.venues import Place, VenueOption, Vote
    from group_scheduler.models.waitlist import WaitlistEntry


class Event(BaseModel):
    """
    A group event and the single source of truth for its lifecycle position.

    Status only changes through the lifecycle state machine. Rows are never
    deleted; cancelled and completed are terminal states.

    The ``version`` column is the mapper's version counter: every UPDATE is
    conditioned on the version that was loaded, so two sessions racing on
    the same event cannot both commit.
    """

    __tablename__ = "events"

    organizer_id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        nullable=False,
        doc="User who created the event and administers it"
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Event title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Free-text description"
    )

    event_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Kind of gathering, e.g. 'dinner', 'team_building'"
    )

    # Timing
    scheduled_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Local calendar date of the event"
    )

    scheduled_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        doc="Local start time of the event"
    )

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="UTC",
        doc="IANA timezone the scheduled date/time are expressed in"
    )

    estimated_duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=120,
        doc="Estimated duration in minutes"
    )

    # Attendance and budget
    expected_attendees: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Number of attendees the organizer expects"
    )

    max_attendees: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Capacity limit for accepted participants (NULL = uncapped)"
    )

    budget_total: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Total budget for the event"
    )

    budget_per_person: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Budget per attendee"
    )

    acceptance_threshold: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.70,
        doc="Fraction of expected attendees that must accept before preference gathering"
    )

    privacy: Mapped[EventPrivacy] = mapped_column(
        enum_type(EventPrivacy),
        nullable=False,
        default=EventPrivacy.PRIVATE,
        doc="Public events accept join requests, private events are invite-only"
    )

    # Lifecycle
    status: Mapped[EventStatus] = mapped_column(
        enum_type(EventStatus),
        nullable=False,
        default=EventStatus.INVITING,
        doc="Lifecycle status"
    )

    rsvp_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Invitations can no longer be sent, accepted or declined after this instant"
    )

    voting_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When voting closes and the leading option is finalized automatically"
    )

    # Reminders (one of each per event)
    start_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Day-before reminder sent to accepted participants"
    )

    final_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Last reminder shortly before the start"
    )

    voting_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    rsvp_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    ai_analysis_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="First time the event entered ai_recommending"
    )

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Timestamp when event was confirmed"
    )

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Timestamp when event was cancelled"
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Timestamp when event was completed"
    )

    cancellation_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Reason given on cancellation"
    )

    # Finalized venue
    final_place_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("places.id"),
        nullable=True,
        doc="Internal place chosen at finalize (NULL for external selections)"
    )

    final_option_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID,
        nullable=True,
        doc="Venue option chosen at finalize"
    )

    # Rescheduling
    reschedule_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Number of times the event was rescheduled"
    )

    previous_scheduled_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Scheduled date before the last reschedule"
    )

    previous_scheduled_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
        doc="Scheduled time before the last reschedule"
    )

    last_rescheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Timestamp of the last reschedule"
    )

    reschedule_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Reason given for the last reschedule"
    )

    # Recurrence
    recurring_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("recurring_event_templates.id", ondelete="SET NULL"),
        nullable=True,
        doc="Template this event was generated from"
    )

    occurrence_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Occurrence date of the template this event materializes"
    )

    # Concurrency
    waitlist_sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Monotonic counter handing out waitlist join order"
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Optimistic lock counter"
    )

    # Relationships
    participants: Mapped[list["EventParticipant"]] = relationship(
        "EventParticipant",
        back_populates="event",
        cascade="all, delete-orphan",
        doc="Invited and joined users"
    )

    venue_options: Mapped[list["VenueOption"]] = relationship(
        "VenueOption",
        back_populates="event",
        cascade="all, delete-orphan",
        doc="Candidate venues"
    )

    votes: Mapped[list["Vote"]] = relationship(
        "Vote",
        back_populates="event",
        cascade="all, delete-orphan",
        doc="One active vote per voter"
    )

    waitlist_entries: Mapped[list["WaitlistEntry"]] = relationship(
        "WaitlistEntry",
        back_populates="event",
        cascade="all, delete-orphan",
        doc="Users queued for a free slot"
    )

    check_ins: Mapped[list["CheckIn"]] = relationship(
        "CheckIn",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    feedback: Mapped[list["Feedback"]] = relationship(
        "Feedback",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    transition_logs: Mapped[list["EventTransitionLog"]] = relationship(
        "EventTransitionLog",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventTransitionLog.occurred_at",
    )

    final_place: Mapped[Optional["Place"]] = relationship(
        "Place",
        foreign_keys=[final_place_id],
    )

    recurring_template: Mapped[Optional["RecurringEventTemplate"]] = relationship(
        "RecurringEventTemplate",
        back_populates="events",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_events_status", "status"),
        Index("idx_events_organizer", "organizer_id"),
        Index("idx_events_status_deadline", "status", "voting_deadline"),
        Index("idx_events_status_rsvp", "status", "rsvp_deadline"),
        UniqueConstraint(
            "recurring_template_id", "occurrence_date",
            name="uq_events_template_occurrence",
        ),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title='{self.title}', status='{self.status.value}')>"


class EventParticipant(BaseModel):
    """
    Invitation state of one user for one event.

    The organizer is never a participant row and does not count toward
    ``max_attendees``.
    """

    __tablename__ = "event_participants"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        doc="Event"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        nullable=False,
        doc="Invited or joined user"
    )

    invitation_status: Mapped[InvitationStatus] = mapped_column(
        enum_type(InvitationStatus),
        nullable=False,
        default=InvitationStatus.PENDING,
        doc="pending, accepted, declined or removed"
    )

    invited_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID,
        nullable=True,
        doc="User who sent the invitation (NULL for join requests)"
    )

    invited_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the participant accepted or declined"
    )

    removed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    event: Mapped["Event"] = relationship(
        "Event",
        back_populates="participants",
    )

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participant"),
        Index("idx_event_participants_status", "event_id", "invitation_status"),
        Index("idx_event_participants_user", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<EventParticipant(event_id={self.event_id}, user_id={self.user_id}, "
            f"status='{self.invitation_status.value}')>"
        )


class EventTransitionLog(BaseModel):
    """Audit row written for every committed status change or reschedule."""

    __tablename__ = "event_transition_logs"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_status: Mapped[Optional[EventStatus]] = mapped_column(
        enum_type(EventStatus),
        nullable=True,
        doc="Status before the change (NULL on creation)"
    )

    to_status: Mapped[EventStatus] = mapped_column(
        enum_type(EventStatus),
        nullable=False,
    )

    reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID,
        nullable=True,
        doc="Acting user (NULL for system-triggered changes)"
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    event: Mapped["Event"] = relationship(
        "Event",
        back_populates="transition_logs",
    )

    __table_args__ = (
        Index("idx_transition_logs_event", "event_id", "occurred_at"),
    )
