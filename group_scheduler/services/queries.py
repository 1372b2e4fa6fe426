"""
Shared read queries for the event aggregate.

Provides:
- Fresh event loading (bypasses the identity map's cached state)
- Participant counts used by capacity checks
- Option and vote counts used by transition guards
- Notification recipient lists
"""

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from group_scheduler.models.enums import InvitationStatus, WaitlistStatus
from group_scheduler.models.events import Event, EventParticipant
from group_scheduler.models.venues import VenueOption, Vote
from group_scheduler.models.waitlist import WaitlistEntry
from group_scheduler.services.errors import NotFoundError


# =============================================================================
# Event Queries
# =============================================================================


def load_event(session: Session, event_id: UUID) -> Event:
    """
    Load an event with its current database state.

    Args:
        session: Database session
        event_id: Event to load

    Returns:
        Event refreshed from the database

    Raises:
        NotFoundError: If the event does not exist
    """
    event = session.get(Event, event_id, populate_existing=True)
    if event is None or event.is_deleted:
        raise NotFoundError(f"Event {event_id} not found")
    return event


# =============================================================================
# Participant Queries
# =============================================================================


def get_participant(
    session: Session,
    event_id: UUID,
    user_id: UUID,
) -> Optional[EventParticipant]:
    stmt = select(EventParticipant).where(
        and_(
            EventParticipant.event_id == event_id,
            EventParticipant.user_id == user_id,
        )
    )
    return session.scalars(stmt).first()


def count_participants(
    session: Session,
    event_id: UUID,
    statuses: Sequence[InvitationStatus],
) -> int:
    """Count participants of an event in any of the given invitation statuses."""
    stmt = select(func.count(EventParticipant.id)).where(
        and_(
            EventParticipant.event_id == event_id,
            EventParticipant.invitation_status.in_(list(statuses)),
        )
    )
    return session.scalar(stmt) or 0


def accepted_count(session: Session, event_id: UUID) -> int:
    return count_participants(session, event_id, [InvitationStatus.ACCEPTED])


def is_accepted_participant(session: Session, event_id: UUID, user_id: UUID) -> bool:
    participant = get_participant(session, event_id, user_id)
    return participant is not None and participant.invitation_status == InvitationStatus.ACCEPTED


def has_free_slot(session: Session, event: Event) -> bool:
    """True when the event is uncapped or has fewer accepted participants than max_attendees."""
    if event.max_attendees is None:
        return True
    return accepted_count(session, event.id) < event.max_attendees


def participant_user_ids(
    session: Session,
    event_id: UUID,
    statuses: Sequence[InvitationStatus],
) -> list[UUID]:
    """User ids of participants in any of the given statuses, in invitation order."""
    stmt = (
        select(EventParticipant.user_id)
        .where(
            and_(
                EventParticipant.event_id == event_id,
                EventParticipant.invitation_status.in_(list(statuses)),
            )
        )
        .order_by(EventParticipant.created_at, EventParticipant.id)
    )
    return list(session.scalars(stmt).all())


def notification_recipients(session: Session, event_id: UUID) -> list[UUID]:
    """Users who hear about lifecycle changes: pending and accepted participants."""
    return participant_user_ids(
        session, event_id, [InvitationStatus.PENDING, InvitationStatus.ACCEPTED]
    )


# =============================================================================
# Venue / Vote Queries
# =============================================================================


def count_options(session: Session, event_id: UUID) -> int:
    stmt = select(func.count(VenueOption.id)).where(VenueOption.event_id == event_id)
    return session.scalar(stmt) or 0


def count_votes(session: Session, event_id: UUID) -> int:
    stmt = select(func.count(Vote.id)).where(Vote.event_id == event_id)
    return session.scalar(stmt) or 0


def get_option(session: Session, event_id: UUID, option_id: UUID) -> VenueOption:
    """
    Get a venue option that belongs to the event.

    Raises:
        NotFoundError: If the option does not exist or belongs to another event
    """
    option = session.get(VenueOption, option_id)
    if option is None or option.event_id != event_id:
        raise NotFoundError(f"Venue option {option_id} not found for event {event_id}")
    return option


# =============================================================================
# Waitlist Queries
# =============================================================================


def waiting_entries(session: Session, event_id: UUID) -> Sequence[WaitlistEntry]:
    """Waiting entries of an event in queue order."""
    stmt = (
        select(WaitlistEntry)
        .where(
            and_(
                WaitlistEntry.event_id == event_id,
                WaitlistEntry.status == WaitlistStatus.WAITING,
            )
        )
        .order_by(
            WaitlistEntry.priority,
            WaitlistEntry.joined_at,
            WaitlistEntry.sequence,
        )
    )
    return session.scalars(stmt).all()
