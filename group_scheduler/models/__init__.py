"""
SQLAlchemy models for Group Scheduler.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

from group_scheduler.models.base import Base, BaseModel, GUID, enum_type, get_json_type

from group_scheduler.models.enums import (
    CheckInMethod,
    EventPrivacy,
    EventStatus,
    InvitationStatus,
    PlaceVerificationStatus,
    RecurrencePattern,
    TemplateStatus,
    WaitlistStatus,
)
from group_scheduler.models.events import Event, EventParticipant, EventTransitionLog
from group_scheduler.models.venues import Place, VenueOption, Vote
from group_scheduler.models.waitlist import WaitlistEntry
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.models.attendance import CheckIn, Feedback

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    "enum_type",
    "get_json_type",
    # Enumerations
    "CheckInMethod",
    "EventPrivacy",
    "EventStatus",
    "InvitationStatus",
    "PlaceVerificationStatus",
    "RecurrencePattern",
    "TemplateStatus",
    "WaitlistStatus",
    # Event aggregate
    "Event",
    "EventParticipant",
    "EventTransitionLog",
    # Venues and votes
    "Place",
    "VenueOption",
    "Vote",
    # Waitlist
    "WaitlistEntry",
    # Recurrence
    "RecurringEventTemplate",
    # Attendance
    "CheckIn",
    "Feedback",
]
