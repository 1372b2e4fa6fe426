"""
Recurring event template management (create, read, update, delete, toggle).
"""

import calendar
import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.models.enums import EventPrivacy, RecurrencePattern, TemplateStatus
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.clock import Clock, resolve_timezone, utc_now
from group_scheduler.services.errors import InputValidationError, NotFoundError
from group_scheduler.services.recurrence import WEEKDAYS

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "event_type",
    "pattern",
    "days_of_week",
    "day_of_month",
    "month_of_year",
    "start_date",
    "end_date",
    "occurrence_count",
    "scheduled_time",
    "timezone",
    "estimated_duration_minutes",
    "expected_attendees",
    "max_attendees",
    "budget_total",
    "budget_per_person",
    "privacy",
    "auto_create_events",
    "days_in_advance",
})

# Changing any of these moves future occurrence dates
_RULE_FIELDS = frozenset({
    "pattern", "days_of_week", "day_of_month", "month_of_year", "start_date",
})


def validate_template(template: RecurringEventTemplate, max_days_in_advance: int) -> None:
    """
    Check a template's fields for consistency and normalize day names.

    Raises:
        InputValidationError: Describing every problem found
    """
    errors = []

    if not (template.title or "").strip():
        errors.append("title is required")

    pattern = RecurrencePattern(template.pattern)

    if pattern == RecurrencePattern.WEEKLY and template.days_of_week:
        names = [str(d).strip().lower() for d in template.days_of_week]
        unknown = [n for n in names if n not in WEEKDAYS]
        if unknown:
            errors.append(f"unknown days_of_week: {', '.join(unknown)}")
        else:
            # Keep calendar order, drop duplicates
            template.days_of_week = [d for d in WEEKDAYS if d in names]
    elif pattern != RecurrencePattern.WEEKLY and template.days_of_week:
        errors.append("days_of_week is only valid for weekly patterns")

    if template.day_of_month is not None and not 1 <= template.day_of_month <= 31:
        errors.append("day_of_month must be between 1 and 31")

    if template.month_of_year is not None:
        if pattern != RecurrencePattern.YEARLY:
            errors.append("month_of_year is only valid for yearly patterns")
        elif not 1 <= template.month_of_year <= 12:
            errors.append("month_of_year must be between 1 and 12")

    if pattern == RecurrencePattern.YEARLY and not errors:
        month = template.month_of_year or template.start_date.month
        day = template.day_of_month or template.start_date.day
        # 2000 is a leap year, so 29 February is accepted
        if day > calendar.monthrange(2000, month)[1]:
            errors.append(f"day {day} does not exist in month {month}")

    if template.end_date is not None and template.end_date < template.start_date:
        errors.append("end_date must not be before start_date")

    if template.occurrence_count is not None and template.occurrence_count < 1:
        errors.append("occurrence_count must be at least 1")

    if not 1 <= template.days_in_advance <= max_days_in_advance:
        errors.append(f"days_in_advance must be between 1 and {max_days_in_advance}")

    if template.expected_attendees is None or template.expected_attendees < 2:
        errors.append("expected_attendees must be at least 2")

    if template.max_attendees is not None and template.max_attendees < 1:
        errors.append("max_attendees must be at least 1")

    if template.estimated_duration_minutes is not None and template.estimated_duration_minutes <= 0:
        errors.append("estimated_duration_minutes must be positive")

    try:
        resolve_timezone(template.timezone)
    except ValueError as e:
        errors.append(str(e))

    if errors:
        raise InputValidationError("Invalid recurring template: " + "; ".join(errors))


class RecurringTemplateService:
    """CRUD and status toggle for recurring event templates."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock
        self.settings = settings or get_settings()

    def create(self, actor: Actor, **fields: Any) -> RecurringEventTemplate:
        """
        Create a template owned by the acting user.

        Args:
            actor: Becomes the template's organizer
            **fields: Template attributes (see EDITABLE_FIELDS)

        Raises:
            InputValidationError: Unknown or inconsistent fields
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InputValidationError(f"Unknown template fields: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in fields.items() if v is not None}
        values.setdefault("timezone", "UTC")
        values.setdefault("estimated_duration_minutes", self.settings.default_event_duration_minutes)
        values.setdefault("days_in_advance", 7)
        values.setdefault("privacy", EventPrivacy.PRIVATE)
        values.setdefault("auto_create_events", True)

        template = RecurringEventTemplate(
            organizer_id=actor.user_id,
            status=TemplateStatus.ACTIVE,
            **values,
        )
        validate_template(template, self.settings.recurrence_max_days_in_advance)

        self.session.add(template)
        self.session.commit()
        logger.info(
            f"User {actor.user_id} created recurring template {template.id} "
            f"({template.pattern.value})"
        )
        return template

    def get(self, template_id: UUID) -> RecurringEventTemplate:
        template = self.session.get(RecurringEventTemplate, template_id)
        if template is None or template.is_deleted:
            raise NotFoundError(f"Recurring template {template_id} not found")
        return template

    def list_for_organizer(
        self,
        organizer_id: UUID,
        status: Optional[TemplateStatus] = None,
    ) -> Sequence[RecurringEventTemplate]:
        conditions = [
            RecurringEventTemplate.organizer_id == organizer_id,
            RecurringEventTemplate.deleted_at.is_(None),
        ]
        if status is not None:
            conditions.append(RecurringEventTemplate.status == status)

        stmt = (
            select(RecurringEventTemplate)
            .where(and_(*conditions))
            .order_by(RecurringEventTemplate.created_at, RecurringEventTemplate.id)
        )
        return self.session.scalars(stmt).all()

    def update(self, template_id: UUID, actor: Actor, **changes: Any) -> RecurringEventTemplate:
        """
        Update template fields.

        Changing the recurrence rule restarts generation bookkeeping so the
        new dates inside the window get materialized; dates already
        materialized stay protected by the occurrence key.

        Raises:
            NotFoundError: Unknown template
            UnauthorizedError: Actor is neither organizer nor moderator
            InputValidationError: Unknown or inconsistent fields
        """
        template = self.get(template_id)
        require_organizer_or_moderator(template, actor, "edit this recurring template")

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InputValidationError(f"Unknown template fields: {', '.join(sorted(unknown))}")

        for name, value in changes.items():
            setattr(template, name, value)

        try:
            validate_template(template, self.settings.recurrence_max_days_in_advance)
        except InputValidationError:
            self.session.rollback()
            raise

        if _RULE_FIELDS & set(changes):
            template.last_generated_date = None

        self.session.commit()
        logger.info(f"Recurring template {template_id} updated: {', '.join(sorted(changes))}")
        return template

    def set_status(self, template_id: UUID, actor: Actor, status: TemplateStatus) -> RecurringEventTemplate:
        """Pause or resume a template."""
        template = self.get(template_id)
        require_organizer_or_moderator(template, actor, "change this recurring template")

        if template.status != status:
            template.status = status
            self.session.commit()
            logger.info(f"Recurring template {template_id} is now {status.value}")
        return template

    def toggle(self, template_id: UUID, actor: Actor) -> RecurringEventTemplate:
        """Flip a template between active and paused."""
        template = self.get(template_id)
        target = (
            TemplateStatus.PAUSED
            if template.status == TemplateStatus.ACTIVE
            else TemplateStatus.ACTIVE
        )
        return self.set_status(template_id, actor, target)

    def delete(self, template_id: UUID, actor: Actor) -> None:
        """
        Soft-delete a template. Events already generated are kept.
        """
        template = self.get(template_id)
        require_organizer_or_moderator(template, actor, "delete this recurring template")

        template.soft_delete(self.clock())
        template.status = TemplateStatus.PAUSED
        self.session.commit()
        logger.info(f"Recurring template {template_id} deleted by {actor.user_id}")

