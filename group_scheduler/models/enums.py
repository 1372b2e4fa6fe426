"""
Closed enumerations shared by models, services and the API.

Values are the strings persisted in the database and exchanged over HTTP.
"""

import enum


class EventStatus(str, enum.Enum):
    INVITING = "inviting"
    GATHERING_PREFERENCES = "gathering_preferences"
    AI_RECOMMENDING = "ai_recommending"
    VOTING = "voting"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventStatus.CANCELLED, EventStatus.COMPLETED)


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    REMOVED = "removed"


class EventPrivacy(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class WaitlistStatus(str, enum.Enum):
    WAITING = "waiting"
    PROMOTED = "promoted"
    EXPIRED = "expired"


class RecurrencePattern(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TemplateStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class PlaceVerificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CheckInMethod(str, enum.Enum):
    MANUAL = "manual"
    QR = "qr"
    GEO = "geo"
