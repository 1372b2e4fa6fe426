"""
FastAPI dependency injection providers.

Provides database sessions, the acting user, shared integration clients
and the service objects built on them.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.database import get_db
from group_scheduler.integrations.base import Notifier
from group_scheduler.integrations.notifications import LoggingNotifier, WebhookNotifier
from group_scheduler.integrations.places import SqlPlaceDirectory
from group_scheduler.integrations.recommendations import RecommendationServiceClient
from group_scheduler.services.attendance import CheckInTracker, FeedbackCollector
from group_scheduler.services.authorization import Actor, ActorRole
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.events import EventService
from group_scheduler.services.participants import ParticipantService
from group_scheduler.services.recurrence import RecurrenceScheduler
from group_scheduler.services.recurring_templates import RecurringTemplateService
from group_scheduler.services.waitlist import WaitlistManager

logger = logging.getLogger(__name__)

# Shared clients (initialized at startup)
_notifier: Optional[Notifier] = None
_recommendation_client: Optional[RecommendationServiceClient] = None


def init_integrations(settings: Settings) -> None:
    """Create the notification and recommendation clients at application startup."""
    global _notifier, _recommendation_client

    if settings.uses_notification_webhook:
        _notifier = WebhookNotifier(
            settings.notification_webhook_url,
            secret=settings.notification_webhook_secret,
            timeout=settings.notification_timeout_seconds,
        )
        logger.info("Webhook notifier initialized")
    else:
        _notifier = LoggingNotifier()
        logger.info("No notification webhook configured; notifications are logged only")

    if settings.uses_recommendation_service:
        _recommendation_client = RecommendationServiceClient(
            settings.recommendation_service_url,
            api_key=settings.recommendation_api_key,
            timeout=settings.recommendation_timeout_seconds,
            default_radius_km=settings.recommendation_radius_km,
        )
        logger.info(f"Recommendation client initialized for {settings.recommendation_service_url}")
    else:
        _recommendation_client = None
        logger.warning("No recommendation service configured; recommendation generation is disabled")


def close_integrations() -> None:
    """Close HTTP clients at shutdown."""
    global _notifier, _recommendation_client

    if isinstance(_notifier, WebhookNotifier):
        _notifier.close()
    if _recommendation_client is not None:
        _recommendation_client.close()
    _notifier = None
    _recommendation_client = None


def get_db_session():
    """
    Dependency injection for database session.

    Yields a database session and ensures cleanup.
    """
    yield from get_db()


def get_clock() -> Clock:
    return utc_now


def get_notifier() -> Notifier:
    return _notifier or LoggingNotifier()


def get_recommendation_client() -> Optional[RecommendationServiceClient]:
    return _recommendation_client


def get_actor(
    x_user_id: Optional[str] = Header(None, description="Acting user ID (UUID)"),
    x_user_role: Optional[str] = Header(None, description="member, moderator or admin"),
) -> Actor:
    """
    Resolve the acting user from headers.

    Identity is established upstream; the API trusts these headers.

    Raises:
        HTTPException: 401 if the user header is missing, 400 if malformed
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-User-ID: {x_user_id}")

    try:
        role = ActorRole((x_user_role or ActorRole.MEMBER.value).lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-User-Role: {x_user_role}")

    return Actor(user_id=user_id, role=role)


# =============================================================================
# Service factories
# =============================================================================


def get_event_service(
    db: Session = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
    client: Optional[RecommendationServiceClient] = Depends(get_recommendation_client),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> EventService:
    return EventService(
        db,
        notifier=notifier,
        preference_aggregator=client,
        recommendation_provider=client,
        place_directory=SqlPlaceDirectory(db),
        clock=clock,
        settings=settings,
    )


def get_participant_service(
    events: EventService = Depends(get_event_service),
) -> ParticipantService:
    return ParticipantService(
        events.session,
        notifier=events.notifier,
        clock=events.clock,
        settings=events.settings,
        lifecycle=events.lifecycle,
    )


def get_waitlist_manager(
    events: EventService = Depends(get_event_service),
) -> WaitlistManager:
    return WaitlistManager(events.session, notifier=events.notifier, clock=events.clock)


def get_check_in_tracker(
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> CheckInTracker:
    return CheckInTracker(db, clock=clock)


def get_feedback_collector(
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> FeedbackCollector:
    return FeedbackCollector(db, clock=clock, settings=settings)


def get_template_service(
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> RecurringTemplateService:
    return RecurringTemplateService(db, clock=clock, settings=settings)


def get_recurrence_scheduler(
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> RecurrenceScheduler:
    return RecurrenceScheduler(db, clock=clock, settings=settings)
