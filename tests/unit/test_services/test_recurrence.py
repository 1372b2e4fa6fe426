"""
Unit tests for recurrence rules and the RecurrenceScheduler.
"""

import uuid
from datetime import date, time, timedelta

import pytest
from sqlalchemy import select

from group_scheduler.models.enums import EventStatus, RecurrencePattern, TemplateStatus
from group_scheduler.models.events import Event
from group_scheduler.services.authorization import Actor
from group_scheduler.services.errors import (
    InputValidationError,
    NotFoundError,
    UnauthorizedError,
)
from group_scheduler.services.recurrence import (
    RecurrenceScheduler,
    build_rule,
    due_dates,
    next_occurrence,
    occurrences_between,
    upcoming_occurrences,
)

from conftest import FIXED_NOW


@pytest.fixture
def scheduler(db_session, clock, settings):
    return RecurrenceScheduler(db_session, clock=clock, settings=settings)


def template_events(session, template_id):
    return session.scalars(
        select(Event)
        .where(Event.recurring_template_id == template_id)
        .order_by(Event.occurrence_date)
    ).all()


class TestRules:
    """Test rule construction and expansion."""

    def test_weekly_on_named_days(self):
        rule = build_rule(RecurrencePattern.WEEKLY, date(2026, 6, 1), days_of_week=["Monday", "thursday"])

        assert occurrences_between(rule, date(2026, 6, 1), date(2026, 6, 14)) == [
            date(2026, 6, 1),
            date(2026, 6, 4),
            date(2026, 6, 8),
            date(2026, 6, 11),
        ]

    def test_weekly_defaults_to_start_weekday(self):
        rule = build_rule(RecurrencePattern.WEEKLY, date(2026, 6, 3))

        assert occurrences_between(rule, date(2026, 6, 1), date(2026, 6, 17)) == [
            date(2026, 6, 3),
            date(2026, 6, 10),
            date(2026, 6, 17),
        ]

    def test_unknown_day_name(self):
        with pytest.raises(ValueError, match="funday"):
            build_rule(RecurrencePattern.WEEKLY, date(2026, 6, 1), days_of_week=["funday"])

    def test_daily(self):
        rule = build_rule(RecurrencePattern.DAILY, date(2026, 6, 1))

        assert len(occurrences_between(rule, date(2026, 6, 1), date(2026, 6, 7))) == 7

    def test_monthly_day_31_skips_short_months(self):
        rule = build_rule(RecurrencePattern.MONTHLY, date(2026, 1, 1), day_of_month=31)

        assert occurrences_between(rule, date(2026, 1, 1), date(2026, 6, 30)) == [
            date(2026, 1, 31),
            date(2026, 3, 31),
            date(2026, 5, 31),
        ]

    def test_monthly_defaults_to_last_day(self):
        rule = build_rule(RecurrencePattern.MONTHLY, date(2026, 1, 1))

        assert occurrences_between(rule, date(2026, 1, 1), date(2026, 4, 30)) == [
            date(2026, 1, 31),
            date(2026, 2, 28),
            date(2026, 3, 31),
            date(2026, 4, 30),
        ]

    def test_yearly_leap_day_only_in_leap_years(self):
        rule = build_rule(RecurrencePattern.YEARLY, date(2024, 2, 29))

        assert occurrences_between(rule, date(2024, 1, 1), date(2032, 12, 31)) == [
            date(2024, 2, 29),
            date(2028, 2, 29),
            date(2032, 2, 29),
        ]

    def test_occurrence_count_from_start(self):
        rule = build_rule(RecurrencePattern.DAILY, date(2026, 6, 1), occurrence_count=3)

        assert occurrences_between(rule, date(2026, 6, 2), date(2026, 6, 30)) == [
            date(2026, 6, 2),
            date(2026, 6, 3),
        ]

    def test_end_date_is_inclusive(self):
        rule = build_rule(RecurrencePattern.DAILY, date(2026, 6, 1), end_date=date(2026, 6, 3))

        assert occurrences_between(rule, date(2026, 6, 1), date(2026, 6, 30))[-1] == date(2026, 6, 3)

    def test_empty_window(self):
        rule = build_rule(RecurrencePattern.DAILY, date(2026, 6, 1))

        assert occurrences_between(rule, date(2026, 6, 5), date(2026, 6, 4)) == []

    def test_upcoming_and_next(self, make_template):
        template = make_template()

        assert upcoming_occurrences(template, date(2026, 6, 2), 3) == [
            date(2026, 6, 4),
            date(2026, 6, 8),
            date(2026, 6, 11),
        ]
        assert next_occurrence(template, FIXED_NOW) == date(2026, 6, 1)

    def test_exhausted_rule(self, make_template):
        template = make_template(occurrence_count=1)

        assert upcoming_occurrences(template, date(2026, 6, 2), 5) == []
        assert next_occurrence(template, FIXED_NOW + timedelta(days=1)) is None

    def test_due_dates_use_template_timezone(self, make_template):
        # 12:00 UTC is already 2 June in Auckland
        template = make_template(timezone="Pacific/Auckland")

        assert due_dates(template, FIXED_NOW) == [date(2026, 6, 4), date(2026, 6, 8)]


class TestGenerateDueOccurrences:
    """Test RecurrenceScheduler.generate_due_occurrences."""

    def test_creates_events_in_window(self, scheduler, make_template, db_session):
        template = make_template()

        report = scheduler.generate_due_occurrences()

        assert report.created_count == 3
        assert report.templates_processed == 1
        events = template_events(db_session, template.id)
        assert [e.scheduled_date for e in events] == [
            date(2026, 6, 1),
            date(2026, 6, 4),
            date(2026, 6, 8),
        ]
        first = events[0]
        assert first.status == EventStatus.INVITING
        assert first.scheduled_time == time(18, 30)
        assert first.max_attendees == 8
        assert first.organizer_id == template.organizer_id
        assert first.transition_logs[0].from_status is None
        assert template.last_generated_date == date(2026, 6, 8)

    def test_consecutive_days_create_nothing_new(self, scheduler, make_template, clock):
        make_template()
        scheduler.generate_due_occurrences()

        clock.advance(days=1)
        report = scheduler.generate_due_occurrences()

        assert report.created_count == 0
        assert report.failures == {}

    def test_same_clock_twice(self, scheduler, make_template, db_session):
        template = make_template()
        scheduler.generate_due_occurrences()

        report = scheduler.generate_due_occurrences()

        assert report.created_count == 0
        assert len(template_events(db_session, template.id)) == 3

    def test_existing_occurrences_are_skipped(self, scheduler, make_template, db_session):
        template = make_template()
        scheduler.generate_due_occurrences()
        template.last_generated_date = None
        db_session.commit()

        report = scheduler.generate_due_occurrences()

        assert report.created_count == 0
        assert report.skipped_existing == 3

    def test_window_moves_forward(self, scheduler, make_template, clock, db_session):
        template = make_template()
        scheduler.generate_due_occurrences()

        clock.advance(days=3)
        report = scheduler.generate_due_occurrences()

        assert report.created_count == 1
        assert template_events(db_session, template.id)[-1].scheduled_date == date(2026, 6, 11)

    def test_paused_and_manual_templates_ignored(self, scheduler, make_template):
        make_template(status=TemplateStatus.PAUSED)
        make_template(auto_create_events=False)

        report = scheduler.generate_due_occurrences()

        assert report.created_count == 0
        assert report.templates_processed == 0

    def test_deleted_template_ignored(self, scheduler, make_template, db_session):
        template = make_template()
        template.soft_delete(FIXED_NOW)
        db_session.commit()

        assert scheduler.generate_due_occurrences().created_count == 0

    def test_occurrence_count_caps_generation(self, scheduler, make_template):
        make_template(occurrence_count=2, days_in_advance=30)

        assert scheduler.generate_due_occurrences().created_count == 2

    def test_failing_template_does_not_stop_others(self, scheduler, make_template, db_session):
        broken = make_template(timezone="Mars/Olympus_Mons")
        healthy = make_template(
            title="Daily standup", pattern=RecurrencePattern.DAILY, days_of_week=None, days_in_advance=1
        )

        report = scheduler.generate_due_occurrences()

        assert broken.id in report.failures
        assert "Mars/Olympus_Mons" in report.failures[broken.id]
        assert len(template_events(db_session, healthy.id)) == 2
        assert report.templates_processed == 1

    def test_template_before_start_date(self, scheduler, make_template):
        make_template(start_date=date(2026, 6, 20))

        assert scheduler.generate_due_occurrences().created_count == 0


class TestCreateFromTemplate:
    """Test manual materialization of one occurrence."""

    def test_creates_event(self, scheduler, make_template, organizer):
        template = make_template()

        event = scheduler.create_from_template(template.id, date(2026, 6, 15), organizer)

        assert event.occurrence_date == date(2026, 6, 15)
        assert event.recurring_template_id == template.id

    def test_idempotent(self, scheduler, make_template, organizer):
        template = make_template()

        first = scheduler.create_from_template(template.id, date(2026, 6, 15), organizer)
        second = scheduler.create_from_template(template.id, date(2026, 6, 15), organizer)

        assert first.id == second.id

    def test_works_for_paused_templates(self, scheduler, make_template, organizer):
        template = make_template(status=TemplateStatus.PAUSED)

        event = scheduler.create_from_template(template.id, date(2026, 6, 15), organizer)

        assert event.status == EventStatus.INVITING

    def test_past_date_rejected(self, scheduler, make_template, organizer):
        template = make_template(start_date=date(2026, 5, 1))

        with pytest.raises(InputValidationError, match="past"):
            scheduler.create_from_template(template.id, date(2026, 5, 28), organizer)

    def test_before_start_rejected(self, scheduler, make_template, organizer):
        template = make_template(start_date=date(2026, 7, 1))

        with pytest.raises(InputValidationError, match="start date"):
            scheduler.create_from_template(template.id, date(2026, 6, 15), organizer)

    def test_stranger_rejected(self, scheduler, make_template):
        template = make_template()

        with pytest.raises(UnauthorizedError):
            scheduler.create_from_template(template.id, date(2026, 6, 15), Actor(user_id=uuid.uuid4()))

    def test_unknown_template(self, scheduler, organizer):
        with pytest.raises(NotFoundError):
            scheduler.create_from_template(uuid.uuid4(), date(2026, 6, 15), organizer)
