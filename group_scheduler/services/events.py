"""
Event service: creation, recommendations, cancellation, rescheduling and
the periodic sweeps that close voting, complete past events, cancel
undersubscribed events and send reminders.

Operations that chain several transitions (generate recommendations) commit
each step on its own and report how far they got, so venue options already
persisted are never thrown away because a later step lost a race.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.integrations.base import (
    Notifier,
    PlaceDirectory,
    PreferenceAggregator,
    RecommendationProvider,
    VenueCandidate,
)
from group_scheduler.integrations.notifications import LoggingNotifier
from group_scheduler.models.enums import EventPrivacy, EventStatus, InvitationStatus
from group_scheduler.models.events import Event, EventTransitionLog
from group_scheduler.models.venues import VenueOption
from group_scheduler.services import queries
from group_scheduler.services.authorization import (
    Actor,
    require_organizer,
    require_organizer_or_moderator,
)
from group_scheduler.services.clock import (
    Clock,
    ensure_utc,
    event_end_utc,
    local_to_utc,
    resolve_timezone,
    utc_now,
)
from group_scheduler.services.errors import (
    InputValidationError,
    InvalidOperationError,
    InvalidTransitionError,
    LifecycleError,
)
from group_scheduler.services.lifecycle import EventLifecycleStateMachine, commit_changes
from group_scheduler.services.notifications import notify_users
from group_scheduler.services.votes import RankedOption, VoteTally, option_from_candidate, pick_winner

logger = logging.getLogger(__name__)

OPEN_INVITATION_STATUSES = frozenset({
    EventStatus.INVITING,
    EventStatus.GATHERING_PREFERENCES,
})

RECOMMENDABLE_STATUSES = frozenset({
    EventStatus.GATHERING_PREFERENCES,
    EventStatus.AI_RECOMMENDING,
    EventStatus.VOTING,
})


@dataclass
class RecommendationOutcome:
    """
    Result of GenerateRecommendations.

    ``options`` holds the ranked options after the new candidates were
    stored. When the final move to voting failed, ``transition_error``
    carries the reason and the event stays in ai_recommending with its
    options intact.
    """

    event: Event
    options: list[RankedOption] = field(default_factory=list)
    created_count: int = 0
    transition_error: Optional[LifecycleError] = None

    @property
    def voting_opened(self) -> bool:
        return self.transition_error is None and self.event.status == EventStatus.VOTING

    @property
    def partial(self) -> bool:
        return self.transition_error is not None


@dataclass
class SweepReport:
    """Outcome of a periodic sweep over many events."""

    processed_event_ids: list[UUID] = field(default_factory=list)
    failures: dict[UUID, str] = field(default_factory=dict)

    @property
    def processed_count(self) -> int:
        return len(self.processed_event_ids)


@dataclass
class ReminderReport:
    """Reminders sent by one run, as notification kind -> event ids."""

    sent: dict[str, list[UUID]] = field(default_factory=dict)
    failures: dict[UUID, str] = field(default_factory=dict)

    @property
    def processed_count(self) -> int:
        return sum(len(event_ids) for event_ids in self.sent.values())


def _candidate_key(candidate: VenueCandidate) -> tuple:
    if candidate.place_id is not None:
        return ("place", candidate.place_id)
    return ("external", candidate.external_provider, candidate.external_place_id)


def _option_key(option: VenueOption) -> tuple:
    if option.place_id is not None:
        return ("place", option.place_id)
    return ("external", option.external_provider, option.external_place_id)


class EventService:
    """
    Event-level operations built on the lifecycle state machine.

    Usage:
        service = EventService(session, notifier=notifier,
                               preference_aggregator=aggregator,
                               recommendation_provider=provider)
        event = service.create_event(actor, title="Team dinner", ...)
        outcome = service.generate_recommendations(event.id, actor)
    """

    def __init__(
        self,
        session: Session,
        notifier: Optional[Notifier] = None,
        preference_aggregator: Optional[PreferenceAggregator] = None,
        recommendation_provider: Optional[RecommendationProvider] = None,
        place_directory: Optional[PlaceDirectory] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.preference_aggregator = preference_aggregator
        self.recommendation_provider = recommendation_provider
        self.clock = clock
        self.settings = settings or get_settings()
        self.lifecycle = EventLifecycleStateMachine(
            session,
            notifier=self.notifier,
            preference_aggregator=preference_aggregator,
            clock=clock,
            settings=self.settings,
        )
        self.votes = VoteTally(
            session,
            lifecycle=self.lifecycle,
            place_directory=place_directory,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create_event(
        self,
        actor: Actor,
        title: str,
        scheduled_date: date,
        scheduled_time: time,
        expected_attendees: int,
        description: Optional[str] = None,
        event_type: Optional[str] = None,
        timezone: str = "UTC",
        estimated_duration_minutes: Optional[int] = None,
        max_attendees: Optional[int] = None,
        budget_total: Optional[Decimal] = None,
        budget_per_person: Optional[Decimal] = None,
        acceptance_threshold: Optional[float] = None,
        privacy: EventPrivacy = EventPrivacy.PRIVATE,
        rsvp_deadline: Optional[datetime] = None,
    ) -> Event:
        """
        Create an event in ``inviting`` organized by the acting user.

        The start must lie at least ``min_advance_days`` ahead. Without an
        explicit ``rsvp_deadline`` invitations close
        ``rsvp_deadline_hours_before_start`` before the start.

        Raises:
            InputValidationError: Describing every invalid field
            InvalidOperationError: The organizer has another event at that time
        """
        if acceptance_threshold is None:
            acceptance_threshold = self.settings.default_acceptance_threshold
        if estimated_duration_minutes is None:
            estimated_duration_minutes = self.settings.default_event_duration_minutes

        errors = []
        if not (title or "").strip():
            errors.append("title is required")
        if expected_attendees is None or expected_attendees < 2:
            errors.append("expected_attendees must be at least 2")
        if max_attendees is not None and max_attendees < 1:
            errors.append("max_attendees must be at least 1")
        if not 0 < acceptance_threshold <= 1:
            errors.append("acceptance_threshold must be in (0, 1]")
        if estimated_duration_minutes <= 0:
            errors.append("estimated_duration_minutes must be positive")
        for name, amount in (("budget_total", budget_total), ("budget_per_person", budget_per_person)):
            if amount is not None and amount < 0:
                errors.append(f"{name} must not be negative")

        now = self.clock()
        starts_at = None
        try:
            resolve_timezone(timezone)
        except ValueError as e:
            errors.append(str(e))
        else:
            starts_at = local_to_utc(scheduled_date, scheduled_time, timezone)
            schedule_error = self._schedule_error(starts_at, now)
            if schedule_error:
                errors.append(schedule_error)

        if starts_at is not None:
            if rsvp_deadline is None:
                rsvp_deadline = self._default_rsvp_deadline(starts_at, now)
            else:
                rsvp_deadline = ensure_utc(rsvp_deadline)
                if not ensure_utc(now) < rsvp_deadline <= starts_at:
                    errors.append("rsvp_deadline must be in the future and no later than the start")

        if errors:
            raise InputValidationError("Invalid event: " + "; ".join(errors))

        self._require_no_overlap(
            actor.user_id, starts_at, starts_at + timedelta(minutes=estimated_duration_minutes)
        )

        event = Event(
            organizer_id=actor.user_id,
            title=title.strip(),
            description=description,
            event_type=event_type,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            timezone=timezone,
            estimated_duration_minutes=estimated_duration_minutes,
            expected_attendees=expected_attendees,
            max_attendees=max_attendees,
            budget_total=budget_total,
            budget_per_person=budget_per_person,
            acceptance_threshold=acceptance_threshold,
            privacy=privacy,
            rsvp_deadline=rsvp_deadline,
            status=EventStatus.INVITING,
        )
        self.session.add(event)
        self.session.flush()
        self.session.add(
            EventTransitionLog(
                event_id=event.id,
                from_status=None,
                to_status=EventStatus.INVITING,
                reason="Event created",
                actor_id=actor.user_id,
                occurred_at=now,
            )
        )
        self.session.commit()

        logger.info(f"User {actor.user_id} created event {event.id} ({event.title})")
        return event

    def get_event(self, event_id: UUID) -> Event:
        return queries.load_event(self.session, event_id)

    def list_events(
        self,
        organizer_id: Optional[UUID] = None,
        status: Optional[EventStatus] = None,
    ) -> Sequence[Event]:
        conditions = [Event.deleted_at.is_(None)]
        if organizer_id is not None:
            conditions.append(Event.organizer_id == organizer_id)
        if status is not None:
            conditions.append(Event.status == status)
        stmt = (
            select(Event)
            .where(and_(*conditions))
            .order_by(Event.scheduled_date, Event.scheduled_time, Event.id)
        )
        return self.session.scalars(stmt).all()

    def history(self, event_id: UUID) -> Sequence[EventTransitionLog]:
        """Audit trail of an event, oldest first."""
        queries.load_event(self.session, event_id)
        return self.session.scalars(
            select(EventTransitionLog)
            .where(EventTransitionLog.event_id == event_id)
            .order_by(EventTransitionLog.occurred_at, EventTransitionLog.created_at)
        ).all()

    # -------------------------------------------------------------------------
    # Scheduling rules
    # -------------------------------------------------------------------------

    def _schedule_error(self, starts_at: datetime, now: datetime) -> Optional[str]:
        """Message for a start that is past or too soon, else None."""
        now = ensure_utc(now)
        if starts_at <= now:
            return "scheduled date and time must be in the future"
        advance = self.settings.min_advance_days
        if starts_at < now + timedelta(days=advance):
            return f"events must be scheduled at least {advance} days in advance"
        return None

    def _default_rsvp_deadline(self, starts_at: datetime, now: datetime) -> datetime:
        deadline = starts_at - timedelta(hours=self.settings.rsvp_deadline_hours_before_start)
        # Short-notice events keep invitations open until the start
        if deadline <= ensure_utc(now):
            return starts_at
        return deadline

    def find_overlapping_event(
        self,
        organizer_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_event_id: Optional[UUID] = None,
    ) -> Optional[Event]:
        """
        First active event of the organizer whose time range intersects
        [starts_at, ends_at). Cancelled and completed events never overlap.
        """
        # Local dates can differ from UTC dates by a day either way
        conditions = [
            Event.organizer_id == organizer_id,
            Event.status.not_in([EventStatus.CANCELLED, EventStatus.COMPLETED]),
            Event.deleted_at.is_(None),
            Event.scheduled_date >= (starts_at - timedelta(days=2)).date(),
            Event.scheduled_date <= (ends_at + timedelta(days=1)).date(),
        ]
        if exclude_event_id is not None:
            conditions.append(Event.id != exclude_event_id)

        candidates = self.session.scalars(
            select(Event)
            .where(and_(*conditions))
            .order_by(Event.scheduled_date, Event.scheduled_time, Event.id)
        ).all()
        for other in candidates:
            other_start = local_to_utc(other.scheduled_date, other.scheduled_time, other.timezone)
            other_end = event_end_utc(
                other.scheduled_date,
                other.scheduled_time,
                other.timezone,
                other.estimated_duration_minutes,
            )
            if starts_at < other_end and ends_at > other_start:
                return other
        return None

    def _require_no_overlap(
        self,
        organizer_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_event_id: Optional[UUID] = None,
    ) -> None:
        other = self.find_overlapping_event(organizer_id, starts_at, ends_at, exclude_event_id)
        if other is not None:
            raise InvalidOperationError(
                f"The organizer already has '{other.title}' on {other.scheduled_date.isoformat()} "
                f"at {other.scheduled_time.strftime('%H:%M')}; choose a different time or "
                f"cancel that event first"
            )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        event_id: UUID,
        target: EventStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Event:
        """Organizer- or moderator-requested status change."""
        if target == EventStatus.COMPLETED:
            return self.complete_event(event_id, actor)
        return self.lifecycle.transition_to(event_id, target, reason=reason, actor=actor)

    def cancel(self, event_id: UUID, actor: Actor, reason: Optional[str] = None) -> Event:
        """
        Cancel an event from any non-terminal state.

        Waiting waitlist entries expire in the same transaction.

        Raises:
            UnauthorizedError: Actor is neither organizer nor moderator
            InvalidTransitionError: Event already cancelled or completed
        """
        return self.lifecycle.transition_to(
            event_id, EventStatus.CANCELLED, reason=reason, actor=actor
        )

    def complete_event(self, event_id: UUID, actor: Actor) -> Event:
        """Complete a confirmed event before its scheduled end."""
        return self.lifecycle.transition_to(
            event_id,
            EventStatus.COMPLETED,
            reason="Completed manually",
            actor=actor,
            manual_completion=True,
        )

    def generate_recommendations(
        self,
        event_id: UUID,
        actor: Actor,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> RecommendationOutcome:
        """
        Gather preferences, request venue candidates and open voting.

        Steps, each committed separately:
        1. inviting -> gathering_preferences (when still inviting)
        2. -> ai_recommending (no-op when already there; from voting only
           while no votes exist)
        3. store the candidates, replacing earlier AI suggestions
        4. ai_recommending -> voting

        A failure in step 4 is returned in the outcome instead of raised.

        Raises:
            UnauthorizedError: Actor is neither organizer nor moderator
            InvalidOperationError: No recommendation service configured
            InvalidTransitionError: Wrong state, empty preferences, votes
                already cast, or the service returned no candidates
            RecommendationServiceError: The service call failed
        """
        event = queries.load_event(self.session, event_id)
        require_organizer_or_moderator(event, actor, "generate recommendations")

        if self.preference_aggregator is None or self.recommendation_provider is None:
            raise InvalidOperationError("No recommendation service is configured")

        if event.status == EventStatus.INVITING:
            self.lifecycle.transition_to(
                event_id,
                EventStatus.GATHERING_PREFERENCES,
                reason="Recommendations requested",
                actor=actor,
            )

        if event.status not in RECOMMENDABLE_STATUSES:
            raise InvalidTransitionError(
                f"Recommendations cannot be generated while the event is {event.status.value}"
            )

        preferences = self.preference_aggregator.aggregate(event_id)
        self.lifecycle.transition_to(
            event_id,
            EventStatus.AI_RECOMMENDING,
            reason="Generating venue recommendations",
            actor=actor,
            preferences=preferences,
        )

        radius = radius_km if radius_km is not None else self.settings.recommendation_radius_km
        candidates = list(
            self.recommendation_provider.generate(
                event_id,
                preferences,
                latitude=latitude,
                longitude=longitude,
                radius_km=radius,
            )
        )
        if not candidates:
            raise InvalidTransitionError(
                "Recommendation service returned no venues; the event stays in ai_recommending"
            )

        created = self._replace_ai_options(event_id, candidates)
        commit_changes(self.session, f"store recommendations for event {event_id}")
        logger.info(f"Stored {created} recommended venues for event {event_id}")

        outcome = RecommendationOutcome(event=event, created_count=created)
        try:
            self.lifecycle.transition_to(
                event_id,
                EventStatus.VOTING,
                reason="Recommendations ready",
                actor=actor,
            )
        except LifecycleError as e:
            logger.warning(
                f"Recommendations stored for event {event_id} but voting did not open: {e.message}"
            )
            outcome.transition_error = e

        outcome.event = queries.load_event(self.session, event_id)
        outcome.options = self.votes.ranked_options(event_id)
        return outcome

    def _replace_ai_options(self, event_id: UUID, candidates: Sequence[VenueCandidate]) -> int:
        """Drop previous AI suggestions, keep manual options, add new candidates."""
        existing = self.session.scalars(
            select(VenueOption).where(VenueOption.event_id == event_id)
        ).all()

        taken = set()
        for option in existing:
            if option.is_ai_suggested:
                self.session.delete(option)
            else:
                taken.add(_option_key(option))
        self.session.flush()

        created = 0
        for candidate in candidates:
            key = _candidate_key(candidate)
            if key in taken:
                continue
            if candidate.place_id is None and not candidate.external_name:
                logger.warning(f"Skipping unnamed external candidate for event {event_id}")
                continue
            taken.add(key)
            self.session.add(option_from_candidate(event_id, candidate))
            created += 1
        return created

    # -------------------------------------------------------------------------
    # Reschedule
    # -------------------------------------------------------------------------

    def reschedule(
        self,
        event_id: UUID,
        actor: Actor,
        new_date: date,
        new_time: Optional[time] = None,
        reason: Optional[str] = None,
    ) -> Event:
        """
        Move the event to a new date and time without changing its status.

        The RSVP deadline moves by the same amount as the start, and the
        start reminders are sent again for the new time.

        Raises:
            UnauthorizedError: Actor is not the organizer
            InvalidOperationError: Event is cancelled or completed, or the
                organizer has another event at the new time
            InputValidationError: New start is in the past, too soon or unchanged
        """
        event = queries.load_event(self.session, event_id)
        require_organizer(event, actor, "reschedule the event")
        if event.status.is_terminal:
            raise InvalidOperationError(f"Cannot reschedule an event that is {event.status.value}")

        new_time = new_time or event.scheduled_time
        now = self.clock()
        if (new_date, new_time) == (event.scheduled_date, event.scheduled_time):
            raise InputValidationError("New date and time are the same as the current schedule")
        starts_at = local_to_utc(new_date, new_time, event.timezone)
        if starts_at <= ensure_utc(now):
            raise InputValidationError("Cannot reschedule into the past")
        schedule_error = self._schedule_error(starts_at, now)
        if schedule_error:
            raise InputValidationError(f"Cannot reschedule: {schedule_error}")
        self._require_no_overlap(
            event.organizer_id,
            starts_at,
            starts_at + timedelta(minutes=event.estimated_duration_minutes),
            exclude_event_id=event.id,
        )

        shift = starts_at - local_to_utc(event.scheduled_date, event.scheduled_time, event.timezone)
        if event.rsvp_deadline is not None:
            event.rsvp_deadline = ensure_utc(event.rsvp_deadline) + shift
            event.rsvp_reminder_sent_at = None
        event.start_reminder_sent_at = None
        event.final_reminder_sent_at = None

        event.previous_scheduled_date = event.scheduled_date
        event.previous_scheduled_time = event.scheduled_time
        event.scheduled_date = new_date
        event.scheduled_time = new_time
        event.reschedule_count = (event.reschedule_count or 0) + 1
        event.last_rescheduled_at = now
        event.reschedule_reason = reason

        self.session.add(
            EventTransitionLog(
                event_id=event.id,
                from_status=event.status,
                to_status=event.status,
                reason=f"Rescheduled to {new_date.isoformat()} {new_time.isoformat()}"
                + (f": {reason}" if reason else ""),
                actor_id=actor.user_id,
                occurred_at=now,
            )
        )
        commit_changes(self.session, f"reschedule event {event_id}")

        logger.info(
            f"Event {event_id} rescheduled to {new_date.isoformat()} {new_time.isoformat()} "
            f"(count={event.reschedule_count})"
        )
        notify_users(
            self.notifier,
            queries.notification_recipients(self.session, event_id),
            event_id,
            "event_rescheduled",
            {
                "title": event.title,
                "scheduled_date": new_date.isoformat(),
                "scheduled_time": new_time.isoformat(),
                "previous_scheduled_date": event.previous_scheduled_date.isoformat(),
                "reason": reason,
            },
        )
        return event

    # -------------------------------------------------------------------------
    # Periodic sweeps
    # -------------------------------------------------------------------------

    def finalize_expired_votes(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Confirm voting events whose deadline has passed.

        Only options ``finalize`` accepts are candidates, so a pending or
        deleted internal place never blocks the event. Among them the
        highest vote score wins; ties and events without votes fall back to
        presentation order.
        """
        now = ensure_utc(now or self.clock())
        report = SweepReport()

        event_ids = self.session.scalars(
            select(Event.id).where(
                and_(
                    Event.status == EventStatus.VOTING,
                    Event.voting_deadline.is_not(None),
                    Event.voting_deadline <= now,
                    Event.deleted_at.is_(None),
                )
            ).order_by(Event.voting_deadline, Event.id)
        ).all()

        for event_id in event_ids:
            winner = pick_winner(self.votes.finalizable_options(event_id))
            if winner is None:
                report.failures[event_id] = "no finalizable venue options"
                logger.warning(
                    f"Voting deadline passed for event {event_id} without a finalizable option"
                )
                continue
            try:
                self.votes.finalize(
                    event_id,
                    winner.option.id,
                    actor=None,
                    reason=f"Voting deadline passed ({winner.vote_score} points)",
                    now=now,
                )
            except LifecycleError as e:
                self.session.rollback()
                report.failures[event_id] = e.message
                logger.warning(f"Could not auto-finalize event {event_id}: {e.message}")
                continue
            report.processed_event_ids.append(event_id)

        logger.info(
            f"Voting sweep: {report.processed_count} events finalized "
            f"({len(report.failures)} skipped)"
        )
        return report

    def complete_due_events(self, now: Optional[datetime] = None) -> SweepReport:
        """Complete confirmed events whose scheduled end has passed."""
        now = ensure_utc(now or self.clock())
        report = SweepReport()

        events = self.session.scalars(
            select(Event).where(
                and_(
                    Event.status == EventStatus.CONFIRMED,
                    Event.deleted_at.is_(None),
                )
            ).order_by(Event.scheduled_date, Event.id)
        ).all()

        for event in events:
            event_id = event.id
            ends_at = event_end_utc(
                event.scheduled_date,
                event.scheduled_time,
                event.timezone,
                event.estimated_duration_minutes,
            )
            if ends_at > now:
                continue
            try:
                self.lifecycle.transition_to(
                    event_id, EventStatus.COMPLETED, reason="Event ended", now=now
                )
            except LifecycleError as e:
                report.failures[event_id] = e.message
                logger.warning(f"Could not complete event {event_id}: {e.message}")
                continue
            report.processed_event_ids.append(event_id)

        logger.info(f"Completion sweep: {report.processed_count} events completed")
        return report

    def minimum_acceptances(self, event: Event) -> int:
        """Accepted participants an event needs by its invitation deadline."""
        return max(
            self.settings.auto_cancel_min_accepted,
            int(event.expected_attendees * self.settings.auto_cancel_min_ratio),
        )

    def cancel_undersubscribed_events(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Cancel events still gathering participants after their RSVP deadline
        with fewer acceptances than ``minimum_acceptances``.
        """
        now = ensure_utc(now or self.clock())
        report = SweepReport()

        events = self.session.scalars(
            select(Event).where(
                and_(
                    Event.status.in_(list(OPEN_INVITATION_STATUSES)),
                    Event.rsvp_deadline.is_not(None),
                    Event.rsvp_deadline <= now,
                    Event.deleted_at.is_(None),
                )
            ).order_by(Event.rsvp_deadline, Event.id)
        ).all()

        for event in events:
            event_id = event.id
            accepted = queries.accepted_count(self.session, event_id)
            required = self.minimum_acceptances(event)
            if accepted >= required:
                continue
            try:
                self.lifecycle.transition_to(
                    event_id,
                    EventStatus.CANCELLED,
                    reason=(
                        f"Invitation deadline passed with {accepted} of "
                        f"{required} required acceptances"
                    ),
                    now=now,
                )
            except LifecycleError as e:
                report.failures[event_id] = e.message
                logger.warning(f"Could not auto-cancel event {event_id}: {e.message}")
                continue
            report.processed_event_ids.append(event_id)

        logger.info(f"Auto-cancel sweep: {report.processed_count} events cancelled")
        return report

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    def send_reminders(self, now: Optional[datetime] = None) -> ReminderReport:
        """
        Send each due reminder once per event.

        - ``event_reminder``: within ``reminder_lead_hours`` of the start
          (voting or confirmed events), to accepted participants and organizer
        - ``event_final_reminder``: within ``final_reminder_lead_minutes`` of
          the start (confirmed events)
        - ``voting_deadline_reminder``: within ``reminder_lead_hours`` of the
          voting deadline, to everyone who can still vote
        - ``rsvp_deadline_reminder``: within ``reminder_lead_hours`` of the
          RSVP deadline, to invitees who have not answered
        """
        now = ensure_utc(now or self.clock())
        lead = timedelta(hours=self.settings.reminder_lead_hours)
        final_lead = timedelta(minutes=self.settings.final_reminder_lead_minutes)
        horizon = now + lead
        report = ReminderReport()

        events = self.session.scalars(
            select(Event).where(
                and_(
                    Event.status.in_([
                        EventStatus.INVITING,
                        EventStatus.GATHERING_PREFERENCES,
                        EventStatus.VOTING,
                        EventStatus.CONFIRMED,
                    ]),
                    Event.deleted_at.is_(None),
                    or_(
                        Event.scheduled_date <= (horizon + timedelta(days=1)).date(),
                        Event.voting_deadline <= horizon,
                        Event.rsvp_deadline <= horizon,
                    ),
                )
            ).order_by(Event.scheduled_date, Event.scheduled_time, Event.id)
        ).all()

        for event in events:
            due = self._due_reminders(event, now, lead, final_lead)
            if not due:
                continue

            for marker, _kind, _recipients in due:
                setattr(event, marker, now)
            try:
                commit_changes(self.session, f"record reminders for event {event.id}")
            except LifecycleError as e:
                report.failures[event.id] = e.message
                continue

            details = {
                "title": event.title,
                "scheduled_date": event.scheduled_date.isoformat(),
                "scheduled_time": event.scheduled_time.isoformat(),
            }
            for _marker, kind, recipients in due:
                notify_users(self.notifier, recipients, event.id, kind, details)
                report.sent.setdefault(kind, []).append(event.id)

        logger.info(f"Reminder sweep: {report.processed_count} reminders sent")
        return report

    def _due_reminders(
        self,
        event: Event,
        now: datetime,
        lead: timedelta,
        final_lead: timedelta,
    ) -> list[tuple[str, str, list[UUID]]]:
        """(marker column, notification kind, recipients) for every reminder due now."""
        due = []
        starts_at = local_to_utc(event.scheduled_date, event.scheduled_time, event.timezone)
        attendees = queries.participant_user_ids(self.session, event.id, [InvitationStatus.ACCEPTED])
        attendees.append(event.organizer_id)

        if (
            event.status in (EventStatus.VOTING, EventStatus.CONFIRMED)
            and event.start_reminder_sent_at is None
            and now + final_lead < starts_at <= now + lead
        ):
            due.append(("start_reminder_sent_at", "event_reminder", attendees))

        if (
            event.status == EventStatus.CONFIRMED
            and event.final_reminder_sent_at is None
            and now < starts_at <= now + final_lead
        ):
            due.append(("final_reminder_sent_at", "event_final_reminder", attendees))

        if (
            event.status == EventStatus.VOTING
            and event.voting_deadline is not None
            and event.voting_reminder_sent_at is None
            and now < ensure_utc(event.voting_deadline) <= now + lead
        ):
            due.append(("voting_reminder_sent_at", "voting_deadline_reminder", attendees))

        if (
            event.status in OPEN_INVITATION_STATUSES
            and event.rsvp_deadline is not None
            and event.rsvp_reminder_sent_at is None
            and now < ensure_utc(event.rsvp_deadline) <= now + lead
        ):
            pending = queries.participant_user_ids(
                self.session, event.id, [InvitationStatus.PENDING]
            )
            if pending:
                due.append(("rsvp_reminder_sent_at", "rsvp_deadline_reminder", pending))

        return due
