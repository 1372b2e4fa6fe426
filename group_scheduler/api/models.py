"""
Pydantic request and response models for the Group Scheduler API.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from group_scheduler.models.enums import (
    CheckInMethod,
    EventPrivacy,
    EventStatus,
    InvitationStatus,
    RecurrencePattern,
    TemplateStatus,
    WaitlistStatus,
)


# =============================================================================
# Request Models
# =============================================================================


class CreateEventRequest(BaseModel):
    """Request to create a group event."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Friday team dinner"])
    description: Optional[str] = Field(None, max_length=5000)
    event_type: Optional[str] = Field(None, max_length=50, examples=["dinner"])
    scheduled_date: date
    scheduled_time: time
    timezone: str = Field(default="UTC", examples=["Europe/Berlin"])
    estimated_duration_minutes: Optional[int] = Field(None, gt=0)
    expected_attendees: int = Field(..., ge=2)
    max_attendees: Optional[int] = Field(None, ge=1)
    budget_total: Optional[Decimal] = Field(None, ge=0)
    budget_per_person: Optional[Decimal] = Field(None, ge=0)
    acceptance_threshold: Optional[float] = Field(None, gt=0, le=1)
    privacy: EventPrivacy = EventPrivacy.PRIVATE
    rsvp_deadline: Optional[datetime] = Field(
        None, description="When invitations close (default: a day before the start)"
    )

    @field_validator("title")
    @classmethod
    def validate_title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()


class InviteRequest(BaseModel):
    """Users to invite."""

    user_ids: list[UUID] = Field(..., min_length=1)


class TransitionRequest(BaseModel):
    """Explicit status change requested by the organizer or a moderator."""

    target_status: EventStatus
    reason: Optional[str] = Field(None, max_length=500)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    """Move an event to another date/time."""

    scheduled_date: date
    scheduled_time: Optional[time] = None
    reason: Optional[str] = Field(None, max_length=500)


class GenerateRecommendationsRequest(BaseModel):
    """Optional search centre for recommendations."""

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: Optional[float] = Field(None, gt=0, le=100)


class ExternalVenueRequest(BaseModel):
    """External listing proposed by hand."""

    provider: str = Field(..., max_length=50, examples=["google_places"])
    external_place_id: Optional[str] = Field(None, max_length=200)
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    rating: Optional[float] = Field(None, ge=0, le=5)
    total_reviews: Optional[int] = Field(None, ge=0)
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)


class AddOptionRequest(BaseModel):
    """Manual venue option: an internal place or an external listing."""

    place_id: Optional[UUID] = None
    external: Optional[ExternalVenueRequest] = None
    estimated_cost_per_person: Optional[Decimal] = Field(None, ge=0)


class CastVoteRequest(BaseModel):
    option_id: UUID
    value: int = Field(default=1, ge=-5, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class FinalizeRequest(BaseModel):
    option_id: UUID
    reason: Optional[str] = Field(None, max_length=500)


class WaitlistJoinRequest(BaseModel):
    priority: Optional[int] = Field(None, description="Lower value = earlier in queue")
    notes: Optional[str] = Field(None, max_length=500)


class CheckInRequest(BaseModel):
    method: CheckInMethod = CheckInMethod.MANUAL
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FeedbackRequest(BaseModel):
    overall_rating: int
    venue_rating: Optional[int] = None
    food_rating: Optional[int] = None
    comments: Optional[str] = Field(None, max_length=5000)
    suggestions: Optional[str] = Field(None, max_length=5000)
    would_attend_again: Optional[bool] = None


class RecurringTemplateRequest(BaseModel):
    """Create a recurring event template."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=50)
    pattern: RecurrencePattern
    days_of_week: Optional[list[str]] = Field(None, examples=[["monday", "thursday"]])
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = None
    scheduled_time: time
    timezone: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    expected_attendees: int
    max_attendees: Optional[int] = None
    budget_total: Optional[Decimal] = None
    budget_per_person: Optional[Decimal] = None
    privacy: Optional[EventPrivacy] = None
    auto_create_events: Optional[bool] = None
    days_in_advance: Optional[int] = None


class RecurringTemplateUpdateRequest(BaseModel):
    """Partial template update; only fields that are sent are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = None
    pattern: Optional[RecurrencePattern] = None
    days_of_week: Optional[list[str]] = None
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = None
    scheduled_time: Optional[time] = None
    timezone: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    expected_attendees: Optional[int] = None
    max_attendees: Optional[int] = None
    budget_total: Optional[Decimal] = None
    budget_per_person: Optional[Decimal] = None
    privacy: Optional[EventPrivacy] = None
    auto_create_events: Optional[bool] = None
    days_in_advance: Optional[int] = None


class CreateOccurrenceRequest(BaseModel):
    occurrence_date: date


# =============================================================================
# Response Models
# =============================================================================


class EventResponse(BaseModel):
    """Event as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organizer_id: UUID
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    status: EventStatus
    privacy: EventPrivacy
    scheduled_date: date
    scheduled_time: time
    timezone: str
    estimated_duration_minutes: int
    expected_attendees: int
    max_attendees: Optional[int] = None
    budget_total: Optional[Decimal] = None
    budget_per_person: Optional[Decimal] = None
    acceptance_threshold: float
    rsvp_deadline: Optional[datetime] = None
    voting_deadline: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    final_place_id: Optional[UUID] = None
    final_option_id: Optional[UUID] = None
    reschedule_count: int = 0
    previous_scheduled_date: Optional[date] = None
    previous_scheduled_time: Optional[time] = None
    recurring_template_id: Optional[UUID] = None
    occurrence_date: Optional[date] = None
    created_at: datetime


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int


class TransitionLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[EventStatus] = None
    to_status: EventStatus
    reason: Optional[str] = None
    actor_id: Optional[UUID] = None
    occurred_at: datetime


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    invitation_status: InvitationStatus
    invited_by: Optional[UUID] = None
    invited_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


class WaitlistEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    priority: int
    joined_at: datetime
    status: WaitlistStatus
    notes: Optional[str] = None
    promoted_at: Optional[datetime] = None


class JoinResponse(BaseModel):
    """Outcome of a join request."""

    waitlisted: bool
    participant: Optional[ParticipantResponse] = None
    waitlist_entry: Optional[WaitlistEntryResponse] = None


class VenueOptionResponse(BaseModel):
    """A venue option with its vote totals, in ranking order."""

    id: UUID
    name: str
    place_id: Optional[UUID] = None
    is_internal: bool
    ai_score: Optional[float] = None
    ai_reasoning: Optional[str] = None
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    rating: Optional[float] = None
    total_reviews: int = 0
    estimated_cost_per_person: Optional[Decimal] = None
    suggested_by: Optional[UUID] = None
    total_votes: int = 0
    vote_score: int = 0


class RecommendationsResponse(BaseModel):
    """
    Result of generating recommendations.

    ``voting_opened`` is false with a ``warning`` when the options were
    stored but the event could not move to voting.
    """

    event: EventResponse
    options: list[VenueOptionResponse]
    created_count: int
    voting_opened: bool
    warning: Optional[str] = None
    error_type: Optional[str] = None


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    voter_id: UUID
    venue_option_id: UUID
    value: int
    comment: Optional[str] = None
    voted_at: datetime


class VoteStatisticsResponse(BaseModel):
    event_id: UUID
    total_voters: int
    options: list[VenueOptionResponse]


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    checked_in_at: datetime
    method: CheckInMethod
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    overall_rating: int
    venue_rating: Optional[int] = None
    food_rating: Optional[int] = None
    comments: Optional[str] = None
    suggestions: Optional[str] = None
    would_attend_again: Optional[bool] = None
    submitted_at: datetime


class RecurringTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organizer_id: UUID
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    pattern: RecurrencePattern
    days_of_week: Optional[list[str]] = None
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = None
    scheduled_time: time
    timezone: str
    estimated_duration_minutes: int
    expected_attendees: int
    max_attendees: Optional[int] = None
    privacy: EventPrivacy
    status: TemplateStatus
    auto_create_events: bool
    days_in_advance: int
    last_generated_date: Optional[date] = None
    next_occurrences: list[date] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Uniform error body."""

    error_type: str = Field(..., description="Error kind, e.g. invalid_transition")
    message: str
    retryable: bool = False


class HealthResponse(BaseModel):
    status: str
    version: str
    database_connected: bool
