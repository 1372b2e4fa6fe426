"""
Event lifecycle state machine (pure).

The adjacency table and guards live here, free of any session or I/O.
``plan_transition`` takes a snapshot of the event plus the facts the guards
need and returns either the field changes and side-effect commands for the
transition, or an ``Err`` naming the violated rule. Persisting the plan and
running its commands is the caller's job (see ``services.lifecycle``).
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from group_scheduler.models.enums import EventStatus
from group_scheduler.services.clock import ensure_utc, event_end_utc
from group_scheduler.services.errors import Err, ErrorKind, Ok, Result

S = EventStatus

ALLOWED_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    S.INVITING: frozenset({S.GATHERING_PREFERENCES, S.CANCELLED}),
    S.GATHERING_PREFERENCES: frozenset({S.AI_RECOMMENDING, S.CANCELLED}),
    S.AI_RECOMMENDING: frozenset({S.VOTING, S.CANCELLED}),
    S.VOTING: frozenset({S.CONFIRMED, S.AI_RECOMMENDING, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED}),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
}

# Re-requesting one of these while already in it is a no-op
IDEMPOTENT_STATES = frozenset({S.AI_RECOMMENDING})


class CommandKind(str, enum.Enum):
    NOTIFY_PARTICIPANTS = "notify_participants"
    EXPIRE_WAITLIST = "expire_waitlist"


@dataclass(frozen=True)
class Command:
    """Side effect requested by a transition."""

    kind: CommandKind
    notification: Optional[str] = None


_ENTRY_NOTIFICATIONS: dict[EventStatus, str] = {
    S.GATHERING_PREFERENCES: "preferences_requested",
    S.VOTING: "voting_opened",
    S.CONFIRMED: "event_confirmed",
    S.CANCELLED: "event_cancelled",
    S.COMPLETED: "event_completed",
}


@dataclass(frozen=True)
class EventSnapshot:
    """The parts of an Event the transition rules read."""

    status: EventStatus
    scheduled_date: date
    scheduled_time: time
    timezone: str
    estimated_duration_minutes: int
    final_option_id: Optional[uuid.UUID] = None
    ai_analysis_started_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_event(cls, event: Any) -> "EventSnapshot":
        return cls(
            status=EventStatus(event.status),
            scheduled_date=event.scheduled_date,
            scheduled_time=event.scheduled_time,
            timezone=event.timezone,
            estimated_duration_minutes=event.estimated_duration_minutes,
            final_option_id=event.final_option_id,
            ai_analysis_started_at=event.ai_analysis_started_at,
            confirmed_at=event.confirmed_at,
            cancelled_at=event.cancelled_at,
            completed_at=event.completed_at,
        )

    @property
    def ends_at(self) -> datetime:
        return event_end_utc(
            self.scheduled_date,
            self.scheduled_time,
            self.timezone,
            self.estimated_duration_minutes,
        )


@dataclass(frozen=True)
class TransitionContext:
    """
    Facts gathered by the caller for the guards.

    Args:
        reason: Human-readable reason, stored on cancellation and in the audit log
        preference_count: Size of the aggregated preference set (None = not aggregated)
        option_count: Venue options currently attached to the event
        vote_count: Votes currently cast for the event
        manual_completion: Completion explicitly requested by organizer or moderator
        voting_window: Time between entering voting and the voting deadline
    """

    reason: Optional[str] = None
    preference_count: Optional[int] = None
    option_count: int = 0
    vote_count: int = 0
    manual_completion: bool = False
    voting_window: timedelta = timedelta(days=3)


@dataclass(frozen=True)
class TransitionPlan:
    from_status: EventStatus
    to_status: EventStatus
    changes: dict[str, Any] = field(default_factory=dict)
    commands: tuple[Command, ...] = ()
    noop: bool = False


def can_transition(current: EventStatus, target: EventStatus) -> bool:
    """Check whether (current -> target) is an edge of the transition graph."""
    return target in ALLOWED_TRANSITIONS[current]


def _check_guards(
    snapshot: EventSnapshot,
    target: EventStatus,
    context: TransitionContext,
    now: datetime,
) -> Optional[str]:
    """Return the violated rule for the edge, or None when all guards pass."""
    current = snapshot.status

    if target == S.AI_RECOMMENDING and current == S.GATHERING_PREFERENCES:
        if not context.preference_count:
            return "Aggregated preference set is empty; cannot request recommendations"

    if target == S.AI_RECOMMENDING and current == S.VOTING:
        if context.vote_count > 0:
            return (
                f"Recommendations cannot be regenerated after voting started "
                f"({context.vote_count} votes cast)"
            )

    if target == S.VOTING and context.option_count < 1:
        return "Voting requires at least one venue option"

    if target == S.CONFIRMED and snapshot.final_option_id is None:
        return "Confirmation requires a finalized venue option"

    if target == S.COMPLETED and not context.manual_completion:
        if snapshot.ends_at > ensure_utc(now):
            return f"Event has not ended yet (ends at {snapshot.ends_at.isoformat()})"

    return None


def plan_transition(
    snapshot: EventSnapshot,
    target: EventStatus,
    context: TransitionContext,
    now: datetime,
) -> Result[TransitionPlan]:
    """
    Validate a transition and compute its effects.

    Args:
        snapshot: Current event state (read fresh by the caller)
        target: Requested status
        context: Facts for the guards
        now: Current time (UTC)

    Returns:
        Ok(TransitionPlan) or Err(INVALID_TRANSITION) naming the failed rule
    """
    current = snapshot.status

    if current == target and current in IDEMPOTENT_STATES:
        return Ok(TransitionPlan(from_status=current, to_status=target, noop=True))

    if not can_transition(current, target):
        return Err(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot transition from '{current.value}' to '{target.value}'",
        )

    violated = _check_guards(snapshot, target, context, now)
    if violated:
        return Err(ErrorKind.INVALID_TRANSITION, violated)

    changes: dict[str, Any] = {"status": target}
    commands: list[Command] = []

    if target == S.AI_RECOMMENDING and snapshot.ai_analysis_started_at is None:
        changes["ai_analysis_started_at"] = now
    elif target == S.VOTING:
        changes["voting_deadline"] = now + context.voting_window
    elif target == S.CONFIRMED and snapshot.confirmed_at is None:
        changes["confirmed_at"] = now
    elif target == S.CANCELLED:
        if snapshot.cancelled_at is None:
            changes["cancelled_at"] = now
        changes["cancellation_reason"] = context.reason
        commands.append(Command(CommandKind.EXPIRE_WAITLIST))
    elif target == S.COMPLETED and snapshot.completed_at is None:
        changes["completed_at"] = now

    notification = _ENTRY_NOTIFICATIONS.get(target)
    if notification:
        commands.append(Command(CommandKind.NOTIFY_PARTICIPANTS, notification=notification))

    return Ok(
        TransitionPlan(
            from_status=current,
            to_status=target,
            changes=changes,
            commands=tuple(commands),
        )
    )


def apply_plan(event: Any, plan: TransitionPlan) -> None:
    """Copy a plan's field changes onto an event object."""
    for name, value in plan.changes.items():
        setattr(event, name, value)
