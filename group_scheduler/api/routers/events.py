"""
Event lifecycle routes.

Participants, recommendations, votes, finalization, cancellation,
rescheduling, check-ins, feedback and the waitlist all hang off
/events/{event_id}.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from group_scheduler.api.dependencies import (
    get_actor,
    get_check_in_tracker,
    get_event_service,
    get_feedback_collector,
    get_participant_service,
    get_waitlist_manager,
)
from group_scheduler.api.models import (
    AddOptionRequest,
    CancelRequest,
    CastVoteRequest,
    CheckInRequest,
    CheckInResponse,
    CreateEventRequest,
    EventListResponse,
    ErrorResponse,
    EventResponse,
    FeedbackRequest,
    FeedbackResponse,
    FinalizeRequest,
    GenerateRecommendationsRequest,
    InviteRequest,
    JoinResponse,
    ParticipantResponse,
    RecommendationsResponse,
    RescheduleRequest,
    TransitionLogResponse,
    TransitionRequest,
    VenueOptionResponse,
    VoteResponse,
    VoteStatisticsResponse,
    WaitlistEntryResponse,
    WaitlistJoinRequest,
)
from group_scheduler.integrations.base import VenueCandidate
from group_scheduler.models.enums import EventStatus, InvitationStatus
from group_scheduler.services.attendance import CheckInTracker, FeedbackCollector
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.events import EventService
from group_scheduler.services.participants import ParticipantService
from group_scheduler.services.votes import RankedOption
from group_scheduler.services.waitlist import WaitlistManager

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/events",
    tags=["Events"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


def option_response(item: RankedOption) -> VenueOptionResponse:
    option = item.option
    return VenueOptionResponse(
        id=option.id,
        name=item.name,
        place_id=option.place_id,
        is_internal=item.is_internal,
        ai_score=option.ai_score,
        ai_reasoning=option.ai_reasoning,
        pros=list(option.pros or []),
        cons=list(option.cons or []),
        rating=item.rating,
        total_reviews=item.total_reviews,
        estimated_cost_per_person=option.estimated_cost_per_person,
        suggested_by=option.suggested_by,
        total_votes=item.total_votes,
        vote_score=item.vote_score,
    )


# =============================================================================
# Events
# =============================================================================


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
)
def create_event(
    request: CreateEventRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    """Create an event organized by the acting user. It starts in `inviting`."""
    event = events.create_event(actor, **request.model_dump())
    return EventResponse.model_validate(event)


@router.get("", response_model=EventListResponse, summary="List events")
def list_events(
    organizer_id: Optional[UUID] = Query(None),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    events: EventService = Depends(get_event_service),
) -> EventListResponse:
    items = events.list_events(organizer_id=organizer_id, status=status_filter)
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in items],
        total=len(items),
    )


@router.get("/{event_id}", response_model=EventResponse, summary="Get event")
def get_event(
    event_id: UUID,
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    return EventResponse.model_validate(events.get_event(event_id))


@router.get(
    "/{event_id}/history",
    response_model=list[TransitionLogResponse],
    summary="Status change audit trail",
)
def get_history(
    event_id: UUID,
    events: EventService = Depends(get_event_service),
) -> list[TransitionLogResponse]:
    return [TransitionLogResponse.model_validate(row) for row in events.history(event_id)]


@router.post("/{event_id}/transitions", response_model=EventResponse, summary="Change status")
def transition_event(
    event_id: UUID,
    request: TransitionRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    """
    Move the event along the lifecycle graph.

    Returns 409 `invalid_transition` when the edge does not exist or a guard fails.
    """
    event = events.transition(event_id, request.target_status, actor, reason=request.reason)
    return EventResponse.model_validate(event)


@router.post("/{event_id}/cancel", response_model=EventResponse, summary="Cancel event")
def cancel_event(
    event_id: UUID,
    request: CancelRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    return EventResponse.model_validate(events.cancel(event_id, actor, reason=request.reason))


@router.post("/{event_id}/reschedule", response_model=EventResponse, summary="Reschedule event")
def reschedule_event(
    event_id: UUID,
    request: RescheduleRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    event = events.reschedule(
        event_id,
        actor,
        new_date=request.scheduled_date,
        new_time=request.scheduled_time,
        reason=request.reason,
    )
    return EventResponse.model_validate(event)


@router.post("/{event_id}/complete", response_model=EventResponse, summary="Complete event")
def complete_event(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    return EventResponse.model_validate(events.complete_event(event_id, actor))


# =============================================================================
# Participants
# =============================================================================


@router.get(
    "/{event_id}/participants",
    response_model=list[ParticipantResponse],
    summary="List participants",
)
def list_participants(
    event_id: UUID,
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    participants: ParticipantService = Depends(get_participant_service),
) -> list[ParticipantResponse]:
    rows = participants.list_participants(event_id, status=status_filter)
    return [ParticipantResponse.model_validate(p) for p in rows]


@router.post(
    "/{event_id}/invitations",
    response_model=list[ParticipantResponse],
    summary="Invite users",
)
def invite_users(
    event_id: UUID,
    request: InviteRequest,
    actor: Actor = Depends(get_actor),
    participants: ParticipantService = Depends(get_participant_service),
) -> list[ParticipantResponse]:
    invited = participants.invite(event_id, actor, request.user_ids)
    return [ParticipantResponse.model_validate(p) for p in invited]


@router.post("/{event_id}/accept", response_model=ParticipantResponse, summary="Accept invitation")
def accept_invitation(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    participants: ParticipantService = Depends(get_participant_service),
) -> ParticipantResponse:
    return ParticipantResponse.model_validate(participants.accept(event_id, actor.user_id))


@router.post("/{event_id}/decline", response_model=ParticipantResponse, summary="Decline invitation")
def decline_invitation(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    participants: ParticipantService = Depends(get_participant_service),
) -> ParticipantResponse:
    return ParticipantResponse.model_validate(participants.decline(event_id, actor.user_id))


@router.post("/{event_id}/join", response_model=JoinResponse, summary="Join a public event")
def join_event(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    participants: ParticipantService = Depends(get_participant_service),
) -> JoinResponse:
    """Join directly while slots are free, otherwise land on the waitlist."""
    outcome = participants.request_to_join(event_id, actor.user_id)
    return JoinResponse(
        waitlisted=outcome.waitlisted,
        participant=(
            ParticipantResponse.model_validate(outcome.participant)
            if outcome.participant is not None else None
        ),
        waitlist_entry=(
            WaitlistEntryResponse.model_validate(outcome.waitlist_entry)
            if outcome.waitlist_entry is not None else None
        ),
    )


@router.delete(
    "/{event_id}/participants/{user_id}",
    response_model=ParticipantResponse,
    summary="Remove participant",
)
def remove_participant(
    event_id: UUID,
    user_id: UUID,
    actor: Actor = Depends(get_actor),
    participants: ParticipantService = Depends(get_participant_service),
) -> ParticipantResponse:
    return ParticipantResponse.model_validate(participants.remove(event_id, user_id, actor))


# =============================================================================
# Recommendations, options, votes
# =============================================================================


@router.post(
    "/{event_id}/recommendations",
    response_model=RecommendationsResponse,
    summary="Generate venue recommendations",
)
def generate_recommendations(
    event_id: UUID,
    request: GenerateRecommendationsRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> RecommendationsResponse:
    """
    Gather preferences, fetch venue candidates and open voting.

    A 200 with `voting_opened=false` means the options were stored but the
    move to voting failed; `warning` and `error_type` say why.
    """
    outcome = events.generate_recommendations(
        event_id,
        actor,
        latitude=request.latitude,
        longitude=request.longitude,
        radius_km=request.radius_km,
    )
    error = outcome.transition_error
    return RecommendationsResponse(
        event=EventResponse.model_validate(outcome.event),
        options=[option_response(item) for item in outcome.options],
        created_count=outcome.created_count,
        voting_opened=outcome.voting_opened,
        warning=error.message if error is not None else None,
        error_type=error.kind.value if error is not None else None,
    )


@router.get(
    "/{event_id}/recommendations",
    response_model=list[VenueOptionResponse],
    summary="List venue options in ranking order",
)
def list_recommendations(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> list[VenueOptionResponse]:
    return [option_response(item) for item in events.votes.list_recommendations(event_id, actor)]


@router.post(
    "/{event_id}/options",
    response_model=VenueOptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a venue option by hand",
)
def add_option(
    event_id: UUID,
    request: AddOptionRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> VenueOptionResponse:
    external = None
    if request.external is not None:
        ext = request.external
        external = VenueCandidate(
            external_provider=ext.provider,
            external_place_id=ext.external_place_id,
            external_name=ext.name,
            external_address=ext.address,
            external_latitude=ext.latitude,
            external_longitude=ext.longitude,
            external_rating=ext.rating,
            external_total_reviews=ext.total_reviews,
            external_phone=ext.phone,
            external_website=ext.website,
            external_category=ext.category,
        )
    option = events.votes.add_manual_option(
        event_id,
        actor,
        place_id=request.place_id,
        external=external,
        estimated_cost_per_person=request.estimated_cost_per_person,
    )
    ranked = {item.option.id: item for item in events.votes.ranked_options(event_id)}
    return option_response(ranked[option.id])


@router.post("/{event_id}/votes", response_model=VoteResponse, summary="Cast or change a vote")
def cast_vote(
    event_id: UUID,
    request: CastVoteRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> VoteResponse:
    vote = events.votes.cast_vote(
        event_id,
        request.option_id,
        actor.user_id,
        request.value,
        comment=request.comment,
    )
    return VoteResponse.model_validate(vote)


@router.get(
    "/{event_id}/votes",
    response_model=VoteStatisticsResponse,
    summary="Vote statistics",
)
def vote_statistics(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> VoteStatisticsResponse:
    ranked = events.votes.list_recommendations(event_id, actor)
    return VoteStatisticsResponse(
        event_id=event_id,
        total_voters=sum(item.total_votes for item in ranked),
        options=[option_response(item) for item in ranked],
    )


@router.post("/{event_id}/finalize", response_model=EventResponse, summary="Finalize venue")
def finalize_event(
    event_id: UUID,
    request: FinalizeRequest,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
) -> EventResponse:
    event = events.votes.finalize(event_id, request.option_id, actor, reason=request.reason)
    return EventResponse.model_validate(event)


# =============================================================================
# Check-ins and feedback
# =============================================================================


@router.post(
    "/{event_id}/check-ins",
    response_model=CheckInResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Check in",
)
def check_in(
    event_id: UUID,
    request: CheckInRequest,
    actor: Actor = Depends(get_actor),
    tracker: CheckInTracker = Depends(get_check_in_tracker),
) -> CheckInResponse:
    row = tracker.check_in(
        event_id,
        actor.user_id,
        method=request.method,
        latitude=request.latitude,
        longitude=request.longitude,
    )
    return CheckInResponse.model_validate(row)


@router.get("/{event_id}/check-ins", response_model=list[CheckInResponse], summary="List check-ins")
def list_check_ins(
    event_id: UUID,
    tracker: CheckInTracker = Depends(get_check_in_tracker),
) -> list[CheckInResponse]:
    return [CheckInResponse.model_validate(row) for row in tracker.list_check_ins(event_id)]


@router.put("/{event_id}/feedback", response_model=FeedbackResponse, summary="Submit or update feedback")
def submit_feedback(
    event_id: UUID,
    request: FeedbackRequest,
    actor: Actor = Depends(get_actor),
    collector: FeedbackCollector = Depends(get_feedback_collector),
) -> FeedbackResponse:
    row = collector.submit(event_id, actor.user_id, **request.model_dump())
    return FeedbackResponse.model_validate(row)


@router.get("/{event_id}/feedback", response_model=list[FeedbackResponse], summary="List feedback")
def list_feedback(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    events: EventService = Depends(get_event_service),
    collector: FeedbackCollector = Depends(get_feedback_collector),
) -> list[FeedbackResponse]:
    """Organizer or moderator only."""
    require_organizer_or_moderator(events.get_event(event_id), actor, "read feedback")
    return [FeedbackResponse.model_validate(row) for row in collector.list_feedback(event_id)]


# =============================================================================
# Waitlist
# =============================================================================


@router.post(
    "/{event_id}/waitlist",
    response_model=WaitlistEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join the waitlist",
)
def join_waitlist(
    event_id: UUID,
    request: WaitlistJoinRequest,
    actor: Actor = Depends(get_actor),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
) -> WaitlistEntryResponse:
    entry = waitlist.join(event_id, actor.user_id, priority=request.priority, notes=request.notes)
    return WaitlistEntryResponse.model_validate(entry)


@router.get("/{event_id}/waitlist", response_model=list[WaitlistEntryResponse], summary="View the waitlist")
def view_waitlist(
    event_id: UUID,
    include_inactive: bool = Query(False),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
) -> list[WaitlistEntryResponse]:
    entries = waitlist.list_entries(event_id, include_inactive=include_inactive)
    return [WaitlistEntryResponse.model_validate(e) for e in entries]


@router.post(
    "/{event_id}/waitlist/{user_id}/promote",
    response_model=ParticipantResponse,
    summary="Promote a waitlisted user",
)
def promote_from_waitlist(
    event_id: UUID,
    user_id: UUID,
    actor: Actor = Depends(get_actor),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
) -> ParticipantResponse:
    return ParticipantResponse.model_validate(waitlist.promote(event_id, user_id, actor))
