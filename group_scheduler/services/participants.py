"""
Participant management: invitations, join requests and removals.

Capacity counts accepted participants only (invitations also count
pending ones). The organizer is never a participant row. Whenever an
accepted participant leaves, the head of the waitlist is promoted before
control returns to the caller, and promotions that failed earlier are
retried before an invitee or joiner takes a free slot. Invitations close
at the event's RSVP deadline.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.integrations.base import Notifier
from group_scheduler.integrations.notifications import LoggingNotifier
from group_scheduler.models.enums import EventPrivacy, EventStatus, InvitationStatus
from group_scheduler.models.events import Event, EventParticipant
from group_scheduler.models.waitlist import WaitlistEntry
from group_scheduler.services import queries
from group_scheduler.services.authorization import Actor, require_organizer
from group_scheduler.services.clock import Clock, ensure_utc, utc_now
from group_scheduler.services.errors import (
    CapacityExceededError,
    InvalidOperationError,
    LifecycleError,
    NotFoundError,
    UnauthorizedError,
)
from group_scheduler.services.lifecycle import (
    EventLifecycleStateMachine,
    claim_capacity,
    commit_changes,
)
from group_scheduler.services.notifications import notify_users
from group_scheduler.services.waitlist import WaitlistManager

logger = logging.getLogger(__name__)

INVITABLE_STATUSES = frozenset({EventStatus.INVITING, EventStatus.GATHERING_PREFERENCES})


@dataclass
class JoinOutcome:
    """Result of a join request: either accepted directly or waitlisted."""

    participant: Optional[EventParticipant] = None
    waitlist_entry: Optional[WaitlistEntry] = None

    @property
    def waitlisted(self) -> bool:
        return self.waitlist_entry is not None


class ParticipantService:
    """Invitation and participation operations for one session."""

    def __init__(
        self,
        session: Session,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
        lifecycle: Optional[EventLifecycleStateMachine] = None,
        waitlist: Optional[WaitlistManager] = None,
    ):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.settings = settings or get_settings()
        self.lifecycle = lifecycle or EventLifecycleStateMachine(
            session, notifier=self.notifier, clock=clock, settings=self.settings
        )
        self.waitlist = waitlist or WaitlistManager(session, notifier=self.notifier, clock=clock)

    def list_participants(
        self,
        event_id: UUID,
        status: Optional[InvitationStatus] = None,
    ) -> Sequence[EventParticipant]:
        queries.load_event(self.session, event_id)
        stmt = select(EventParticipant).where(EventParticipant.event_id == event_id)
        if status is not None:
            stmt = stmt.where(EventParticipant.invitation_status == status)
        stmt = stmt.order_by(EventParticipant.created_at, EventParticipant.id)
        return self.session.scalars(stmt).all()

    def invite(self, event_id: UUID, actor: Actor, user_ids: Iterable[UUID]) -> list[EventParticipant]:
        """
        Invite users to an event.

        Duplicates and the organizer are skipped, pending and accepted users
        are left alone, declined and removed users are invited again.

        Args:
            event_id: Event ID
            actor: Must be the organizer
            user_ids: Users to invite

        Returns:
            Participants that were newly invited or re-invited

        Raises:
            UnauthorizedError: Actor is not the organizer
            InvalidOperationError: Event no longer accepts invitations or the
                invitation deadline passed
            CapacityExceededError: Accepted + pending + new would exceed max_attendees
        """
        event = queries.load_event(self.session, event_id)
        require_organizer(event, actor, "invite participants")

        if event.status not in INVITABLE_STATUSES:
            raise InvalidOperationError(
                f"Invitations are closed while the event is {event.status.value}"
            )
        self._require_open_invitations(event)

        now = self.clock()
        to_invite: list[UUID] = []
        seen: set[UUID] = set()
        for user_id in user_ids:
            if user_id in seen or user_id == event.organizer_id:
                continue
            seen.add(user_id)
            existing = queries.get_participant(self.session, event_id, user_id)
            if existing is not None and existing.invitation_status in (
                InvitationStatus.PENDING,
                InvitationStatus.ACCEPTED,
            ):
                continue
            to_invite.append(user_id)

        if not to_invite:
            return []

        self.waitlist.fill_open_slots(event)
        if event.max_attendees is not None:
            committed = queries.count_participants(
                self.session, event_id, [InvitationStatus.ACCEPTED, InvitationStatus.PENDING]
            )
            if committed + len(to_invite) > event.max_attendees:
                raise CapacityExceededError(
                    f"Inviting {len(to_invite)} users would exceed the limit of "
                    f"{event.max_attendees} ({committed} already accepted or pending)"
                )

        invited = []
        for user_id in to_invite:
            participant = queries.get_participant(self.session, event_id, user_id)
            if participant is None:
                participant = EventParticipant(event_id=event_id, user_id=user_id)
                self.session.add(participant)
            participant.invitation_status = InvitationStatus.PENDING
            participant.invited_by = actor.user_id
            participant.invited_at = now
            participant.responded_at = None
            participant.removed_at = None
            invited.append(participant)

        try:
            commit_changes(self.session, f"invite users to event {event_id}")
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError(
                "Some users were invited concurrently; retry", original_error=e
            )

        logger.info(f"Invited {len(invited)} users to event {event_id}")
        notify_users(
            self.notifier,
            [p.user_id for p in invited],
            event_id,
            "event_invitation",
            {"title": event.title, "invited_by": str(actor.user_id)},
        )
        return invited

    def accept(self, event_id: UUID, user_id: UUID) -> EventParticipant:
        """
        Accept an invitation.

        When the accepted count reaches expected_attendees x acceptance_threshold
        while the event is inviting, preference gathering starts.

        Raises:
            NotFoundError: User was never invited
            InvalidOperationError: Event terminal, user removed or invitation
                deadline passed
            CapacityExceededError: Event is full
        """
        event = queries.load_event(self.session, event_id)
        if event.status.is_terminal:
            raise InvalidOperationError(f"Event is {event.status.value}")
        self._require_open_invitations(event)

        participant = queries.get_participant(self.session, event_id, user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} has no invitation to event {event_id}")
        if participant.invitation_status == InvitationStatus.REMOVED:
            raise InvalidOperationError("Removed participants cannot accept")
        if participant.invitation_status == InvitationStatus.ACCEPTED:
            return participant

        self.waitlist.fill_open_slots(event)
        if not queries.has_free_slot(self.session, event):
            raise CapacityExceededError(
                f"Event is full ({event.max_attendees} accepted participants)"
            )

        now = self.clock()
        participant.invitation_status = InvitationStatus.ACCEPTED
        participant.responded_at = now
        claim_capacity(event, now)
        commit_changes(self.session, f"accept invitation to event {event_id}")

        logger.info(f"User {user_id} accepted invitation to event {event_id}")
        notify_users(
            self.notifier, [event.organizer_id], event_id, "invitation_accepted",
            {"user_id": str(user_id)},
        )
        self._advance_if_threshold_met(event)
        return participant

    def decline(self, event_id: UUID, user_id: UUID) -> EventParticipant:
        """
        Decline an invitation (or withdraw after accepting).

        Raises:
            NotFoundError: User was never invited
            InvalidOperationError: Event terminal, user removed or invitation
                deadline passed
        """
        event = queries.load_event(self.session, event_id)
        if event.status.is_terminal:
            raise InvalidOperationError(f"Event is {event.status.value}")
        self._require_open_invitations(event)

        participant = queries.get_participant(self.session, event_id, user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} has no invitation to event {event_id}")
        if participant.invitation_status == InvitationStatus.REMOVED:
            raise InvalidOperationError("Removed participants cannot decline")
        if participant.invitation_status == InvitationStatus.DECLINED:
            return participant

        freed_slot = participant.invitation_status == InvitationStatus.ACCEPTED
        participant.invitation_status = InvitationStatus.DECLINED
        participant.responded_at = self.clock()
        commit_changes(self.session, f"decline invitation to event {event_id}")

        logger.info(f"User {user_id} declined event {event_id}")
        notify_users(
            self.notifier, [event.organizer_id], event_id, "invitation_declined",
            {"user_id": str(user_id)},
        )
        if freed_slot:
            self.waitlist.fill_open_slots(event)
        return participant

    def request_to_join(self, event_id: UUID, user_id: UUID) -> JoinOutcome:
        """
        Join a public event, or its waitlist when it is full.

        Raises:
            UnauthorizedError: Event is private
            InvalidOperationError: Event terminal, user is the organizer,
                already accepted or removed
        """
        event = queries.load_event(self.session, event_id)
        if event.privacy != EventPrivacy.PUBLIC:
            raise UnauthorizedError("Private events can only be joined by invitation")
        if event.status.is_terminal:
            raise InvalidOperationError(f"Event is {event.status.value}")
        if event.organizer_id == user_id:
            raise InvalidOperationError("The organizer is already part of the event")

        participant = queries.get_participant(self.session, event_id, user_id)
        if participant is not None:
            if participant.invitation_status == InvitationStatus.ACCEPTED:
                raise InvalidOperationError("User is already an accepted participant")
            if participant.invitation_status == InvitationStatus.REMOVED:
                raise InvalidOperationError("User was removed from this event")

        self.waitlist.fill_open_slots(event)
        if not queries.has_free_slot(self.session, event):
            entry = self.waitlist.join(event_id, user_id)
            return JoinOutcome(waitlist_entry=entry)

        now = self.clock()
        if participant is None:
            participant = EventParticipant(event_id=event_id, user_id=user_id)
            self.session.add(participant)
        participant.invitation_status = InvitationStatus.ACCEPTED
        participant.responded_at = now
        claim_capacity(event, now)

        try:
            commit_changes(self.session, f"join event {event_id}")
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError("Join request already recorded", original_error=e)

        logger.info(f"User {user_id} joined event {event_id}")
        notify_users(
            self.notifier, [event.organizer_id], event_id, "participant_joined",
            {"user_id": str(user_id)},
        )
        self._advance_if_threshold_met(event)
        return JoinOutcome(participant=participant)

    def remove(self, event_id: UUID, user_id: UUID, actor: Actor) -> EventParticipant:
        """
        Remove a participant.

        Raises:
            UnauthorizedError: Actor is not the organizer
            InvalidOperationError: Event terminal or target is the organizer
            NotFoundError: User is not a participant
        """
        event = queries.load_event(self.session, event_id)
        require_organizer(event, actor, "remove participants")

        if event.status.is_terminal:
            raise InvalidOperationError(f"Event is {event.status.value}")
        if user_id == event.organizer_id:
            raise InvalidOperationError("The organizer cannot be removed")

        participant = queries.get_participant(self.session, event_id, user_id)
        if participant is None or participant.invitation_status == InvitationStatus.REMOVED:
            raise NotFoundError(f"User {user_id} is not a participant of event {event_id}")

        freed_slot = participant.invitation_status == InvitationStatus.ACCEPTED
        now = self.clock()
        participant.invitation_status = InvitationStatus.REMOVED
        participant.removed_at = now
        commit_changes(self.session, f"remove user {user_id} from event {event_id}")

        logger.info(f"User {user_id} removed from event {event_id} by {actor.user_id}")
        notify_users(self.notifier, [user_id], event_id, "participant_removed", {"title": event.title})
        if freed_slot:
            self.waitlist.fill_open_slots(event)
        return participant

    def _require_open_invitations(self, event: Event) -> None:
        if event.rsvp_deadline is None:
            return
        if ensure_utc(self.clock()) > ensure_utc(event.rsvp_deadline):
            raise InvalidOperationError(
                f"The invitation deadline for this event passed at {event.rsvp_deadline.isoformat()}"
            )

    def _advance_if_threshold_met(self, event: Event) -> None:
        """Start preference gathering once enough invitees accepted."""
        if event.status != EventStatus.INVITING:
            return

        accepted = queries.accepted_count(self.session, event.id)
        if accepted < event.expected_attendees * event.acceptance_threshold:
            return

        try:
            self.lifecycle.transition_to(
                event.id,
                EventStatus.GATHERING_PREFERENCES,
                reason=f"Acceptance threshold reached ({accepted}/{event.expected_attendees})",
            )
        except LifecycleError as e:
            # Another request moved the event first
            logger.info(f"Threshold advance of event {event.id} skipped: {e.message}")
