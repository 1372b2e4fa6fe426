"""
Waitlist management for capacity-limited events.

Provides:
- Joining the queue (default priority = join order)
- Organizer/moderator promotion, including out-of-order overrides
- Automatic head-of-queue promotion whenever a slot frees up
"""

import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from group_scheduler.integrations.base import Notifier
from group_scheduler.integrations.notifications import LoggingNotifier
from group_scheduler.models.enums import InvitationStatus, WaitlistStatus
from group_scheduler.models.events import Event, EventParticipant
from group_scheduler.models.waitlist import WaitlistEntry
from group_scheduler.services import queries
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.errors import (
    CapacityExceededError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
)
from group_scheduler.services.lifecycle import claim_capacity, commit_changes
from group_scheduler.services.notifications import notify_users

logger = logging.getLogger(__name__)

PROMOTED_NOTIFICATION = "waitlist_promoted"


class WaitlistManager:
    """
    Ordered queue of users waiting for a slot.

    Queue order is (priority, joined_at, sequence). Automatic promotion
    always takes the head of that order; organizers may promote anyone.
    """

    def __init__(
        self,
        session: Session,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
    ):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

    def join(
        self,
        event_id: UUID,
        user_id: UUID,
        priority: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WaitlistEntry:
        """
        Put a user on an event's waitlist.

        Args:
            event_id: Event to wait for
            user_id: Joining user
            priority: Explicit queue priority (lower = earlier); defaults to join order
            notes: Free-text note for the organizer

        Returns:
            The waiting entry

        Raises:
            NotFoundError: Unknown event
            InvalidOperationError: Event terminal or uncapped, slots still free,
                user already accepted or already waiting
        """
        event = queries.load_event(self.session, event_id)

        if event.status.is_terminal:
            raise InvalidOperationError(f"Cannot join the waitlist of a {event.status.value} event")
        if event.max_attendees is None:
            raise InvalidOperationError("Event has no attendee limit; join it directly")
        if event.organizer_id == user_id:
            raise InvalidOperationError("The organizer cannot join the waitlist")
        if queries.is_accepted_participant(self.session, event_id, user_id):
            raise InvalidOperationError("User is already an accepted participant")

        # Promote anyone owed a slot first so free capacity is real
        self.fill_open_slots(event)
        if queries.has_free_slot(self.session, event):
            raise InvalidOperationError("Event still has free slots; join it directly")

        entry = self._enqueue(event, user_id, priority, notes)

        try:
            commit_changes(self.session, f"add user {user_id} to the waitlist of event {event_id}")
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError(
                "User is already on the waitlist", original_error=e
            )

        logger.info(
            f"User {user_id} joined waitlist of event {event_id} "
            f"(priority {entry.priority}, sequence {entry.sequence})"
        )
        return entry

    def _enqueue(
        self,
        event: Event,
        user_id: UUID,
        priority: Optional[int],
        notes: Optional[str],
    ) -> WaitlistEntry:
        """Stage a waiting entry, reusing a promoted or expired row for the same user."""
        now = self.clock()

        entry = self.session.scalars(
            select(WaitlistEntry).where(
                and_(
                    WaitlistEntry.event_id == event.id,
                    WaitlistEntry.user_id == user_id,
                )
            )
        ).first()

        if entry is not None and entry.status == WaitlistStatus.WAITING:
            raise InvalidOperationError("User is already on the waitlist")

        # Versioned bump of the per-event counter serializes concurrent joins
        event.waitlist_sequence = (event.waitlist_sequence or 0) + 1
        sequence = event.waitlist_sequence

        if entry is None:
            entry = WaitlistEntry(event_id=event.id, user_id=user_id)
            self.session.add(entry)

        entry.priority = priority if priority is not None else sequence
        entry.sequence = sequence
        entry.joined_at = now
        entry.status = WaitlistStatus.WAITING
        entry.notes = notes
        entry.promoted_at = None
        entry.expired_at = None
        return entry

    def list_entries(
        self,
        event_id: UUID,
        include_inactive: bool = False,
    ) -> Sequence[WaitlistEntry]:
        """
        Waitlist of an event in queue order.

        Args:
            event_id: Event ID
            include_inactive: Also return promoted and expired entries (after the waiting ones)
        """
        queries.load_event(self.session, event_id)
        waiting = list(queries.waiting_entries(self.session, event_id))
        if not include_inactive:
            return waiting

        others = self.session.scalars(
            select(WaitlistEntry)
            .where(
                and_(
                    WaitlistEntry.event_id == event_id,
                    WaitlistEntry.status != WaitlistStatus.WAITING,
                )
            )
            .order_by(WaitlistEntry.sequence)
        ).all()
        return waiting + list(others)

    def promote(self, event_id: UUID, user_id: UUID, actor: Actor) -> EventParticipant:
        """
        Promote a waiting user to accepted participant.

        Organizers may promote out of queue order.

        Raises:
            NotFoundError: Unknown event or no waiting entry for the user
            UnauthorizedError: Actor is neither organizer nor moderator
            InvalidOperationError: Event is terminal
            CapacityExceededError: No free slot
            ConflictError: Concurrent modification
        """
        event = queries.load_event(self.session, event_id)
        require_organizer_or_moderator(event, actor, "promote waitlisted users")

        if event.status.is_terminal:
            raise InvalidOperationError(f"Cannot promote on a {event.status.value} event")

        entry = self.session.scalars(
            select(WaitlistEntry).where(
                and_(
                    WaitlistEntry.event_id == event_id,
                    WaitlistEntry.user_id == user_id,
                    WaitlistEntry.status == WaitlistStatus.WAITING,
                )
            )
        ).first()
        if entry is None:
            raise NotFoundError(f"User {user_id} is not waiting for event {event_id}")

        if not queries.has_free_slot(self.session, event):
            raise CapacityExceededError(
                f"Event is full ({event.max_attendees} accepted participants)"
            )

        participant = self._promote_entry(event, entry, self.clock())
        commit_changes(self.session, f"promote user {user_id} on event {event_id}")

        logger.info(f"User {user_id} promoted from waitlist of event {event_id} by {actor.user_id}")
        notify_users(self.notifier, [user_id], event_id, PROMOTED_NOTIFICATION, {"title": event.title})
        return participant

    def fill_open_slots(self, event: Event) -> list[EventParticipant]:
        """
        Promote heads of the queue while the event has free slots.

        A failed promotion leaves the slot open; the next mutating operation
        on the event calls this again.

        Returns:
            Participants promoted by this call
        """
        if event.status.is_terminal or event.max_attendees is None:
            return []

        free = event.max_attendees - queries.accepted_count(self.session, event.id)
        if free <= 0:
            return []

        heads = list(queries.waiting_entries(self.session, event.id))[:free]
        if not heads:
            return []

        now = self.clock()
        promoted = [self._promote_entry(event, entry, now) for entry in heads]

        try:
            commit_changes(self.session, f"promote waitlisted users on event {event.id}")
        except (ConflictError, IntegrityError) as e:
            self.session.rollback()
            logger.warning(f"Automatic promotion on event {event.id} failed, slot stays open: {e}")
            return []

        user_ids = [p.user_id for p in promoted]
        logger.info(f"Automatically promoted {len(user_ids)} waitlisted users on event {event.id}")
        notify_users(self.notifier, user_ids, event.id, PROMOTED_NOTIFICATION, {"title": event.title})
        return promoted

    def _promote_entry(self, event: Event, entry: WaitlistEntry, now: datetime) -> EventParticipant:
        """Stage an entry's promotion and the matching accepted participant."""
        entry.status = WaitlistStatus.PROMOTED
        entry.promoted_at = now

        participant = queries.get_participant(self.session, event.id, entry.user_id)
        if participant is None:
            participant = EventParticipant(
                event_id=event.id,
                user_id=entry.user_id,
                invited_at=now,
            )
            self.session.add(participant)

        participant.invitation_status = InvitationStatus.ACCEPTED
        participant.responded_at = now
        participant.removed_at = None

        claim_capacity(event, now)
        return participant
