"""
Unit tests for the periodic jobs entry point.
"""

from contextlib import contextmanager
from datetime import date, time, timedelta

import pytest

from group_scheduler import jobs
from group_scheduler.models.enums import EventStatus


@pytest.fixture
def job_session(db_session, monkeypatch):
    """Route the jobs' database context to the test session."""

    @contextmanager
    def _context():
        yield db_session
        db_session.commit()

    monkeypatch.setattr(jobs, "get_db_context", _context)
    return db_session


def test_run_all_jobs(job_session, settings, clock, make_event, make_template, add_option):
    make_template()
    voting = make_event(status=EventStatus.VOTING, voting_deadline=clock() - timedelta(hours=1))
    add_option(voting, ai_score=0.8)
    finished = make_event(
        status=EventStatus.CONFIRMED,
        scheduled_date=date(2026, 5, 30),
        scheduled_time=time(18, 0),
    )

    results = jobs.run_jobs(settings, clock=clock)

    assert results == {
        "recurrence": 3,
        "auto_cancel": 0,
        "voting": 1,
        "completion": 1,
        "reminders": 0,
    }
    assert voting.status == EventStatus.CONFIRMED
    assert finished.status == EventStatus.COMPLETED


def test_run_selected_job(job_session, settings, clock, make_template):
    make_template()

    results = jobs.run_jobs(settings, jobs=["voting"], clock=clock)

    assert results == {"voting": 0}


def test_auto_cancel_and_reminder_jobs(job_session, settings, clock, make_event, add_participant):
    lonely = make_event(rsvp_deadline=clock() - timedelta(minutes=5))
    tomorrow = make_event(
        status=EventStatus.CONFIRMED,
        scheduled_date=date(2026, 6, 2),
        scheduled_time=time(9, 0),
    )
    add_participant(tomorrow)

    results = jobs.run_jobs(settings, jobs=["auto_cancel", "reminders"], clock=clock)

    assert results == {"auto_cancel": 1, "reminders": 1}
    assert lonely.status == EventStatus.CANCELLED


def test_main_passes_only_flags(monkeypatch):
    seen = {}

    def fake_run_jobs(settings, jobs):
        seen["jobs"] = jobs
        return {job: 0 for job in jobs}

    monkeypatch.setattr(jobs, "run_jobs", fake_run_jobs)

    assert jobs.main(["--only", "recurrence", "--only", "auto_cancel", "--only", "reminders"]) == 0
    assert seen["jobs"] == ["recurrence", "auto_cancel", "reminders"]


def test_main_reports_failure(monkeypatch):
    def broken(settings, jobs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(jobs, "run_jobs", broken)

    assert jobs.main([]) == 1
