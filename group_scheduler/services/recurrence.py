"""
Recurring event instantiation.

Expands a template's recurrence pattern into occurrence dates with
python-dateutil's rrule and materializes each due date as a new Event in
``inviting``. The unique (recurring_template_id, occurrence_date) pair is
the idempotency key, so re-running with the same clock creates nothing new
and concurrent runs cannot duplicate an occurrence.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence
from uuid import UUID

from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, YEARLY, rrule
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.models.enums import EventStatus, RecurrencePattern, TemplateStatus
from group_scheduler.models.events import Event, EventTransitionLog
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.clock import Clock, local_today, utc_now
from group_scheduler.services.errors import InputValidationError, NotFoundError

logger = logging.getLogger(__name__)

WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

_FREQUENCIES = {
    RecurrencePattern.DAILY: DAILY,
    RecurrencePattern.WEEKLY: WEEKLY,
    RecurrencePattern.MONTHLY: MONTHLY,
    RecurrencePattern.YEARLY: YEARLY,
}


@dataclass
class GenerationReport:
    """Outcome of one GenerateDueOccurrences run."""

    templates_processed: int = 0
    created_event_ids: list[UUID] = field(default_factory=list)
    skipped_existing: int = 0
    failures: dict[UUID, str] = field(default_factory=dict)

    @property
    def created_count(self) -> int:
        return len(self.created_event_ids)


def build_rule(
    pattern: RecurrencePattern,
    start_date: date,
    days_of_week: Optional[Sequence[str]] = None,
    day_of_month: Optional[int] = None,
    month_of_year: Optional[int] = None,
    end_date: Optional[date] = None,
    occurrence_count: Optional[int] = None,
) -> rrule:
    """
    Build the rrule for a template's pattern fields.

    Args:
        pattern: daily, weekly, monthly or yearly
        start_date: First possible occurrence
        days_of_week: Weekly: day names (default: weekday of start_date)
        day_of_month: Monthly: day (default: last day); yearly: day (default: start_date's)
        month_of_year: Yearly: month (default: start_date's)
        end_date: Last possible occurrence (inclusive)
        occurrence_count: Total occurrences counted from start_date

    Returns:
        dateutil rrule yielding midnight datetimes of occurrence dates

    Raises:
        ValueError: Unknown day name
    """
    kwargs: dict = {"dtstart": datetime.combine(start_date, time.min)}

    if pattern == RecurrencePattern.WEEKLY:
        names = [d.lower() for d in (days_of_week or [])]
        unknown = [n for n in names if n not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown day names: {', '.join(unknown)}")
        kwargs["byweekday"] = [WEEKDAYS[n] for n in names] or [start_date.weekday()]
    elif pattern == RecurrencePattern.MONTHLY:
        kwargs["bymonthday"] = day_of_month if day_of_month is not None else -1
    elif pattern == RecurrencePattern.YEARLY:
        kwargs["bymonth"] = month_of_year or start_date.month
        kwargs["bymonthday"] = day_of_month or start_date.day

    if occurrence_count is not None:
        kwargs["count"] = occurrence_count
    if end_date is not None:
        kwargs["until"] = datetime.combine(end_date, time.min)

    return rrule(_FREQUENCIES[pattern], **kwargs)


def template_rule(template: RecurringEventTemplate) -> rrule:
    return build_rule(
        RecurrencePattern(template.pattern),
        template.start_date,
        days_of_week=template.days_of_week,
        day_of_month=template.day_of_month,
        month_of_year=template.month_of_year,
        end_date=template.end_date,
        occurrence_count=template.occurrence_count,
    )


def occurrences_between(rule: rrule, first: date, last: date) -> list[date]:
    """Occurrence dates of ``rule`` within [first, last]."""
    if last < first:
        return []
    window_start = datetime.combine(first, time.min)
    window_end = datetime.combine(last, time.min)
    return [dt.date() for dt in rule.between(window_start, window_end, inc=True)]


def due_dates(template: RecurringEventTemplate, now: datetime) -> list[date]:
    """
    Occurrence dates a template should have materialized at ``now``.

    The window runs from max(start_date, last_generated_date + 1, today) to
    today + days_in_advance, where "today" is in the template's timezone.
    """
    today = local_today(now, template.timezone)
    first = max(template.start_date, today)
    if template.last_generated_date is not None:
        first = max(first, template.last_generated_date + timedelta(days=1))
    last = today + timedelta(days=template.days_in_advance)
    return occurrences_between(template_rule(template), first, last)


def next_occurrence(template: RecurringEventTemplate, now: datetime) -> Optional[date]:
    """First occurrence on or after today, or None when the rule is exhausted."""
    today = local_today(now, template.timezone)
    found = template_rule(template).after(datetime.combine(today, time.min), inc=True)
    return found.date() if found else None


class RecurrenceScheduler:
    """Materializes template occurrences as events."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock
        self.settings = settings or get_settings()

    def generate_due_occurrences(self, now: Optional[datetime] = None) -> GenerationReport:
        """
        Create events for every due occurrence of every active template.

        Each template is processed in its own transaction; a failing
        template is logged and does not stop the others.

        Args:
            now: Reference time (defaults to the clock)

        Returns:
            GenerationReport with created event ids and per-template failures
        """
        now = now or self.clock()
        report = GenerationReport()

        templates = self.session.scalars(
            select(RecurringEventTemplate).where(
                and_(
                    RecurringEventTemplate.status == TemplateStatus.ACTIVE,
                    RecurringEventTemplate.auto_create_events.is_(True),
                    RecurringEventTemplate.deleted_at.is_(None),
                )
            ).order_by(RecurringEventTemplate.created_at, RecurringEventTemplate.id)
        ).all()

        for template in templates:
            template_id = template.id
            try:
                created, skipped = self._generate_for_template(template, now)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.error(
                    f"Error generating events for recurring template {template_id}: {e}",
                    exc_info=True,
                )
                report.failures[template_id] = str(e)
                continue

            report.templates_processed += 1
            report.created_event_ids.extend(created)
            report.skipped_existing += skipped

        logger.info(
            f"Recurring generation: {report.created_count} events created from "
            f"{report.templates_processed} templates ({len(report.failures)} failed)"
        )
        return report

    def _generate_for_template(
        self,
        template: RecurringEventTemplate,
        now: datetime,
    ) -> tuple[list[UUID], int]:
        dates = due_dates(template, now)
        created: list[UUID] = []
        skipped = 0

        for occurrence_date in dates:
            if self._existing_occurrence(template.id, occurrence_date) is not None:
                skipped += 1
                continue

            try:
                with self.session.begin_nested():
                    event = self._materialize(template, occurrence_date, now, reason="Generated from recurring template")
            except IntegrityError:
                # Materialized concurrently by another run
                skipped += 1
                continue

            created.append(event.id)
            logger.info(
                f"Generated event {event.id} from recurring template {template.id} "
                f"for {occurrence_date.isoformat()}"
            )

        if dates:
            template.last_generated_date = dates[-1]
        template.last_generated_at = now
        return created, skipped

    def create_from_template(
        self,
        template_id: UUID,
        occurrence_date: date,
        actor: Actor,
    ) -> Event:
        """
        Manually create the event for one date of a template.

        Works for paused templates and templates with auto creation off.
        Returns the existing event when that date is already materialized.

        Raises:
            NotFoundError: Unknown template
            UnauthorizedError: Actor is neither the template's organizer nor a moderator
            InputValidationError: Date before the template's start or in the past
        """
        template = self.session.get(RecurringEventTemplate, template_id)
        if template is None or template.is_deleted:
            raise NotFoundError(f"Recurring template {template_id} not found")
        require_organizer_or_moderator(template, actor, "create events from this template")

        now = self.clock()
        if occurrence_date < template.start_date:
            raise InputValidationError("Occurrence date is before the template's start date")
        if occurrence_date < local_today(now, template.timezone):
            raise InputValidationError("Occurrence date is in the past")

        existing = self._existing_occurrence(template.id, occurrence_date)
        if existing is not None:
            return existing

        try:
            event = self._materialize(template, occurrence_date, now, reason="Created from recurring template")
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return self._existing_occurrence(template.id, occurrence_date)

        logger.info(
            f"User {actor.user_id} created event {event.id} from template {template.id} "
            f"for {occurrence_date.isoformat()}"
        )
        return event

    def _existing_occurrence(self, template_id: UUID, occurrence_date: date) -> Optional[Event]:
        return self.session.scalars(
            select(Event).where(
                and_(
                    Event.recurring_template_id == template_id,
                    Event.occurrence_date == occurrence_date,
                )
            )
        ).first()

    def _materialize(
        self,
        template: RecurringEventTemplate,
        occurrence_date: date,
        now: datetime,
        reason: str,
    ) -> Event:
        """Insert the event for one occurrence (flushes, does not commit)."""
        event = Event(
            organizer_id=template.organizer_id,
            title=template.title,
            description=template.description,
            event_type=template.event_type,
            scheduled_date=occurrence_date,
            scheduled_time=template.scheduled_time,
            timezone=template.timezone,
            estimated_duration_minutes=template.estimated_duration_minutes,
            expected_attendees=template.expected_attendees,
            max_attendees=template.max_attendees,
            budget_total=template.budget_total,
            budget_per_person=template.budget_per_person,
            acceptance_threshold=self.settings.default_acceptance_threshold,
            privacy=template.privacy,
            status=EventStatus.INVITING,
            recurring_template_id=template.id,
            occurrence_date=occurrence_date,
        )
        self.session.add(event)
        self.session.flush()
        self.session.add(
            EventTransitionLog(
                event_id=event.id,
                from_status=None,
                to_status=EventStatus.INVITING,
                reason=reason,
                actor_id=None,
                occurred_at=now,
            )
        )
        self.session.flush()
        return event


def upcoming_occurrences(template: RecurringEventTemplate, first: date, count: int) -> list[date]:
    """Preview up to ``count`` occurrence dates on or after ``first``."""
    rule = template_rule(template)
    dates: list[date] = []
    cursor = datetime.combine(first, time.min)
    inclusive = True
    while len(dates) < count:
        found = rule.after(cursor, inc=inclusive)
        if found is None:
            break
        dates.append(found.date())
        cursor = found
        inclusive = False
    return dates
