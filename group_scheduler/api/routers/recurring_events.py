"""
Recurring event template routes.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from group_scheduler.api.dependencies import (
    get_actor,
    get_clock,
    get_recurrence_scheduler,
    get_template_service,
)
from group_scheduler.api.models import (
    CreateOccurrenceRequest,
    ErrorResponse,
    EventResponse,
    RecurringTemplateRequest,
    RecurringTemplateResponse,
    RecurringTemplateUpdateRequest,
)
from group_scheduler.models.enums import TemplateStatus
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.services.authorization import Actor
from group_scheduler.services.clock import Clock, local_today
from group_scheduler.services.recurrence import RecurrenceScheduler, upcoming_occurrences
from group_scheduler.services.recurring_templates import RecurringTemplateService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recurring-events",
    tags=["Recurring Events"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)

PREVIEW_COUNT = 5


def template_response(template: RecurringEventTemplate, clock: Clock) -> RecurringTemplateResponse:
    response = RecurringTemplateResponse.model_validate(template)
    if template.is_active:
        today = local_today(clock(), template.timezone)
        response.next_occurrences = upcoming_occurrences(template, today, PREVIEW_COUNT)
    return response


@router.post(
    "",
    response_model=RecurringTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create recurring template",
)
def create_template(
    request: RecurringTemplateRequest,
    actor: Actor = Depends(get_actor),
    templates: RecurringTemplateService = Depends(get_template_service),
    clock: Clock = Depends(get_clock),
) -> RecurringTemplateResponse:
    template = templates.create(actor, **request.model_dump())
    return template_response(template, clock)


@router.get("", response_model=list[RecurringTemplateResponse], summary="List my templates")
def list_templates(
    status_filter: Optional[TemplateStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_actor),
    templates: RecurringTemplateService = Depends(get_template_service),
    clock: Clock = Depends(get_clock),
) -> list[RecurringTemplateResponse]:
    rows = templates.list_for_organizer(actor.user_id, status=status_filter)
    return [template_response(t, clock) for t in rows]


@router.get("/{template_id}", response_model=RecurringTemplateResponse, summary="Get template")
def get_template(
    template_id: UUID,
    templates: RecurringTemplateService = Depends(get_template_service),
    clock: Clock = Depends(get_clock),
) -> RecurringTemplateResponse:
    return template_response(templates.get(template_id), clock)


@router.patch("/{template_id}", response_model=RecurringTemplateResponse, summary="Update template")
def update_template(
    template_id: UUID,
    request: RecurringTemplateUpdateRequest,
    actor: Actor = Depends(get_actor),
    templates: RecurringTemplateService = Depends(get_template_service),
    clock: Clock = Depends(get_clock),
) -> RecurringTemplateResponse:
    changes = request.model_dump(exclude_unset=True)
    template = templates.update(template_id, actor, **changes)
    return template_response(template, clock)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template",
)
def delete_template(
    template_id: UUID,
    actor: Actor = Depends(get_actor),
    templates: RecurringTemplateService = Depends(get_template_service),
) -> None:
    """Generated events are kept."""
    templates.delete(template_id, actor)


@router.post(
    "/{template_id}/toggle",
    response_model=RecurringTemplateResponse,
    summary="Pause or resume template",
)
def toggle_template(
    template_id: UUID,
    actor: Actor = Depends(get_actor),
    templates: RecurringTemplateService = Depends(get_template_service),
    clock: Clock = Depends(get_clock),
) -> RecurringTemplateResponse:
    return template_response(templates.toggle(template_id, actor), clock)


@router.post(
    "/{template_id}/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the event for one occurrence",
)
def create_occurrence(
    template_id: UUID,
    request: CreateOccurrenceRequest,
    actor: Actor = Depends(get_actor),
    scheduler: RecurrenceScheduler = Depends(get_recurrence_scheduler),
) -> EventResponse:
    """Returns the existing event when that date was already created."""
    event = scheduler.create_from_template(template_id, request.occurrence_date, actor)
    return EventResponse.model_validate(event)
