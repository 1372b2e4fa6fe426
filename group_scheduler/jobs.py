"""
Periodic jobs entry point.

Runs once and exits; schedule it externally (cron, a Kubernetes CronJob):

    python -m group_scheduler.jobs
    python -m group_scheduler.jobs --only recurrence
    python -m group_scheduler.jobs --only auto_cancel --only reminders
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from group_scheduler.config import Settings, get_settings
from group_scheduler.database import get_db_context
from group_scheduler.integrations.notifications import LoggingNotifier, WebhookNotifier
from group_scheduler.integrations.places import SqlPlaceDirectory
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.events import EventService
from group_scheduler.services.recurrence import RecurrenceScheduler

logger = logging.getLogger(__name__)

JOBS = ("recurrence", "auto_cancel", "voting", "completion", "reminders")


def run_jobs(
    settings: Settings,
    jobs: Sequence[str] = JOBS,
    clock: Clock = utc_now,
) -> dict[str, int]:
    """
    Run the selected jobs against one database session.

    Returns:
        Mapping job name -> number of events created, cancelled, finalized or
        completed, or reminders sent
    """
    notifier = (
        WebhookNotifier(
            settings.notification_webhook_url,
            secret=settings.notification_webhook_secret,
            timeout=settings.notification_timeout_seconds,
        )
        if settings.uses_notification_webhook
        else LoggingNotifier()
    )
    results: dict[str, int] = {}
    now = clock()

    try:
        with get_db_context() as session:
            if "recurrence" in jobs:
                report = RecurrenceScheduler(session, clock=clock, settings=settings).generate_due_occurrences(now)
                results["recurrence"] = report.created_count

            events = EventService(
                session,
                notifier=notifier,
                place_directory=SqlPlaceDirectory(session),
                clock=clock,
                settings=settings,
            )
            if "auto_cancel" in jobs:
                results["auto_cancel"] = events.cancel_undersubscribed_events(now).processed_count
            if "voting" in jobs:
                results["voting"] = events.finalize_expired_votes(now).processed_count
            if "completion" in jobs:
                results["completion"] = events.complete_due_events(now).processed_count
            if "reminders" in jobs:
                results["reminders"] = events.send_reminders(now).processed_count
    finally:
        if isinstance(notifier, WebhookNotifier):
            notifier.close()

    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run Group Scheduler periodic jobs once")
    parser.add_argument(
        "--only",
        choices=JOBS,
        action="append",
        help="Run only this job (repeatable); default runs all",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        results = run_jobs(settings, jobs=args.only or JOBS)
    except Exception as e:
        logger.error(f"Periodic jobs failed: {e}", exc_info=True)
        return 1

    for job, count in results.items():
        logger.info(f"Job {job}: {count} events")
    return 0


if __name__ == "__main__":
    sys.exit(main())
