"""
Persisted event lifecycle transitions.

Loads the event fresh, asks the pure state machine for a plan, applies it
with its audit row and waitlist side effects in one transaction, and sends
notifications after the commit. The events table's version column turns a
lost race into a ConflictError instead of a double transition.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from group_scheduler.config import Settings, get_settings
from group_scheduler.integrations.base import Notifier, PreferenceAggregator, PreferenceSet
from group_scheduler.integrations.notifications import LoggingNotifier
from group_scheduler.models.enums import EventStatus, WaitlistStatus
from group_scheduler.models.events import Event, EventTransitionLog
from group_scheduler.models.waitlist import WaitlistEntry
from group_scheduler.services import queries
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.errors import ConflictError
from group_scheduler.services.notifications import notify_users
from group_scheduler.services.state_machine import (
    CommandKind,
    EventSnapshot,
    TransitionContext,
    TransitionPlan,
    apply_plan,
    plan_transition,
)

logger = logging.getLogger(__name__)


def expire_waiting_entries(session: Session, event_id: UUID, now: datetime) -> int:
    """Mark every waiting entry of the event as expired. Returns the number expired."""
    result = session.execute(
        update(WaitlistEntry)
        .where(
            and_(
                WaitlistEntry.event_id == event_id,
                WaitlistEntry.status == WaitlistStatus.WAITING,
            )
        )
        .values(status=WaitlistStatus.EXPIRED, expired_at=now)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


def claim_capacity(event: Event, now: datetime) -> None:
    """
    Touch the event row so the flush issues a versioned UPDATE.

    Every operation that consumes a slot calls this, so two sessions filling
    the last slot concurrently cannot both commit. The attribute is flagged
    even when the timestamp did not change.
    """
    event.updated_at = now
    flag_modified(event, "updated_at")


def commit_changes(session: Session, description: str) -> None:
    """
    Commit the session, translating an optimistic lock failure.

    Raises:
        ConflictError: If the event row changed since it was loaded
    """
    try:
        session.commit()
    except StaleDataError as e:
        session.rollback()
        logger.warning(f"Concurrent modification while trying to {description}")
        raise ConflictError(
            f"Could not {description}: the event was modified concurrently, retry",
            original_error=e,
        )


class EventLifecycleStateMachine:
    """
    Applies state machine plans to persisted events.

    Usage:
        machine = EventLifecycleStateMachine(session, notifier=notifier)
        event = machine.transition_to(event_id, EventStatus.CANCELLED, reason="Rain")
    """

    def __init__(
        self,
        session: Session,
        notifier: Optional[Notifier] = None,
        preference_aggregator: Optional[PreferenceAggregator] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.preference_aggregator = preference_aggregator
        self.clock = clock
        self.settings = settings or get_settings()

    def transition_to(
        self,
        event_id: UUID,
        target: EventStatus,
        reason: Optional[str] = None,
        actor: Optional[Actor] = None,
        *,
        preferences: Optional[PreferenceSet] = None,
        manual_completion: bool = False,
        now: Optional[datetime] = None,
    ) -> Event:
        """
        Move an event to ``target`` and commit.

        Args:
            event_id: Event to transition
            target: Requested status
            reason: Optional human-readable reason
            actor: Acting user; None for system-triggered transitions
            preferences: Already aggregated preferences (fetched when needed and absent)
            manual_completion: Completion requested explicitly by organizer/moderator
            now: Transition time for guards and timestamps; defaults to the clock

        Returns:
            The updated event (unchanged for idempotent re-requests)

        Raises:
            NotFoundError: Unknown event
            UnauthorizedError: Actor is neither organizer nor moderator
            InvalidTransitionError: Edge missing or guard not met
            ConflictError: Concurrent modification
        """
        event = queries.load_event(self.session, event_id)
        if actor is not None:
            require_organizer_or_moderator(event, actor, f"move the event to {target.value}")

        plan = self.stage(
            event,
            target,
            reason=reason,
            actor=actor,
            preferences=preferences,
            manual_completion=manual_completion,
            now=now,
        )
        if plan.noop:
            logger.debug(f"Event {event_id} already in {target.value}; nothing to do")
            return event

        commit_changes(self.session, f"move event {event_id} to {target.value}")
        self.after_commit(event, plan)
        return event

    def stage(
        self,
        event: Event,
        target: EventStatus,
        reason: Optional[str] = None,
        actor: Optional[Actor] = None,
        preferences: Optional[PreferenceSet] = None,
        manual_completion: bool = False,
        now: Optional[datetime] = None,
    ) -> TransitionPlan:
        """
        Validate and apply a transition to ``event`` without committing.

        Lets callers combine the status change with their own writes
        (finalize sets the venue in the same transaction).
        """
        current = EventStatus(event.status)

        preference_count = None
        if target == EventStatus.AI_RECOMMENDING and current == EventStatus.GATHERING_PREFERENCES:
            if preferences is None and self.preference_aggregator is not None:
                preferences = self.preference_aggregator.aggregate(event.id)
            if preferences is not None:
                preference_count = preferences.respondent_count

        context = TransitionContext(
            reason=reason,
            preference_count=preference_count,
            option_count=queries.count_options(self.session, event.id),
            vote_count=queries.count_votes(self.session, event.id),
            manual_completion=manual_completion,
            voting_window=timedelta(days=self.settings.voting_window_days),
        )
        now = now or self.clock()

        plan = plan_transition(EventSnapshot.from_event(event), target, context, now).unwrap()
        if plan.noop:
            return plan

        apply_plan(event, plan)
        self.session.add(
            EventTransitionLog(
                event_id=event.id,
                from_status=plan.from_status,
                to_status=plan.to_status,
                reason=reason,
                actor_id=actor.user_id if actor else None,
                occurred_at=now,
            )
        )

        for command in plan.commands:
            if command.kind == CommandKind.EXPIRE_WAITLIST:
                expired = expire_waiting_entries(self.session, event.id, now)
                if expired:
                    logger.info(f"Expired {expired} waitlist entries for event {event.id}")

        return plan

    def after_commit(self, event: Event, plan: TransitionPlan) -> None:
        """Log the committed transition and send its notifications."""
        logger.info(
            f"Event {event.id} transitioned {plan.from_status.value} -> {plan.to_status.value}"
        )
        for command in plan.commands:
            if command.kind == CommandKind.NOTIFY_PARTICIPANTS:
                recipients = queries.notification_recipients(self.session, event.id)
                notify_users(
                    self.notifier,
                    recipients,
                    event.id,
                    command.notification,
                    {"status": plan.to_status.value, "title": event.title},
                )
