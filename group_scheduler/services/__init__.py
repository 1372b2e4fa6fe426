"""
Service layer for the Group Scheduler.

Provides the event lifecycle and the components around it:
- Pure transition rules (state_machine) and their persisted application (lifecycle)
- Events: creation, recommendations, cancellation, rescheduling, sweeps
- Participants and the waitlist
- Vote tally, option ranking and finalization
- Recurring templates and occurrence generation
- Check-ins and feedback
"""

from group_scheduler.services.errors import (
    CapacityExceededError,
    ConflictError,
    ErrorKind,
    InputValidationError,
    InvalidOperationError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    UnauthorizedError,
)

from group_scheduler.services.authorization import Actor, ActorRole

from group_scheduler.services.state_machine import (
    ALLOWED_TRANSITIONS,
    can_transition,
    plan_transition,
)

from group_scheduler.services.lifecycle import EventLifecycleStateMachine
from group_scheduler.services.waitlist import WaitlistManager
from group_scheduler.services.votes import RankedOption, VoteTally, pick_winner, rank_options
from group_scheduler.services.participants import JoinOutcome, ParticipantService
from group_scheduler.services.events import EventService, RecommendationOutcome, SweepReport
from group_scheduler.services.recurrence import GenerationReport, RecurrenceScheduler
from group_scheduler.services.recurring_templates import RecurringTemplateService
from group_scheduler.services.attendance import CheckInTracker, FeedbackCollector

__all__ = [
    # Errors
    "ErrorKind",
    "LifecycleError",
    "NotFoundError",
    "InvalidTransitionError",
    "UnauthorizedError",
    "CapacityExceededError",
    "InvalidOperationError",
    "InputValidationError",
    "ConflictError",
    # Identity
    "Actor",
    "ActorRole",
    # State machine
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "plan_transition",
    "EventLifecycleStateMachine",
    # Services
    "EventService",
    "RecommendationOutcome",
    "SweepReport",
    "ParticipantService",
    "JoinOutcome",
    "WaitlistManager",
    "VoteTally",
    "RankedOption",
    "rank_options",
    "pick_winner",
    "RecurrenceScheduler",
    "GenerationReport",
    "RecurringTemplateService",
    "CheckInTracker",
    "FeedbackCollector",
]
