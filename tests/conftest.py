"""
Pytest configuration and fixtures for Group Scheduler tests.

Provides database session fixtures, a controllable clock, recording
collaborators and factories for events, participants, places and options.
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from group_scheduler.config import Settings, get_settings
from group_scheduler.integrations.base import PreferenceSet, VenueCandidate
from group_scheduler.models.base import Base
from group_scheduler.models.enums import (
    EventPrivacy,
    EventStatus,
    InvitationStatus,
    PlaceVerificationStatus,
    RecurrencePattern,
)
from group_scheduler.models.events import Event, EventParticipant
from group_scheduler.models.recurring import RecurringEventTemplate
from group_scheduler.models.venues import Place, VenueOption
from group_scheduler.services.authorization import Actor, ActorRole
from group_scheduler.services.events import EventService
from group_scheduler.services.participants import ParticipantService
from group_scheduler.services.waitlist import WaitlistManager

# Monday
FIXED_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


# Configure SQLite to enforce foreign key constraints in tests
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# =============================================================================
# Test doubles
# =============================================================================


class FakeClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self):
        self.sent: list[tuple[uuid.UUID, uuid.UUID, str, dict]] = []

    def notify(self, user_id, event_id, kind, details=None) -> None:
        self.sent.append((user_id, event_id, kind, details or {}))

    def kinds(self) -> list[str]:
        return [kind for _, _, kind, _ in self.sent]

    def recipients(self, kind: str) -> list[uuid.UUID]:
        return [user_id for user_id, _, k, _ in self.sent if k == kind]


class FakeRecommendationService:
    """In-memory preference aggregator and recommendation provider."""

    def __init__(self, respondent_count: int = 3, candidates: Optional[list[VenueCandidate]] = None):
        self.respondent_count = respondent_count
        self.candidates = candidates if candidates is not None else []
        self.aggregate_calls: list[uuid.UUID] = []
        self.generate_calls: list[dict] = []

    def aggregate(self, event_id):
        self.aggregate_calls.append(event_id)
        return PreferenceSet(
            event_id=event_id,
            respondent_count=self.respondent_count,
            cuisines=["italian"] if self.respondent_count else [],
        )

    def generate(self, event_id, preferences, latitude=None, longitude=None, radius_km=None):
        self.generate_calls.append({
            "event_id": event_id,
            "respondents": preferences.respondent_count,
            "latitude": latitude,
            "longitude": longitude,
            "radius_km": radius_km,
        })
        return list(self.candidates)


def external_candidate(name: str, external_id: str, ai_score: Optional[float] = None, rating: Optional[float] = None) -> VenueCandidate:
    return VenueCandidate(
        ai_score=ai_score,
        ai_reasoning=f"{name} fits the group",
        pros=["close by"],
        external_provider="google_places",
        external_place_id=external_id,
        external_name=name,
        external_rating=rating,
        external_total_reviews=10,
    )


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    """
    Create a clean database session for each test.

    Services commit as they go, so objects stay loaded after commit.

    Yields:
        Session: SQLAlchemy session for database operations
    """
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=db_engine,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only (no .env file)."""
    return Settings(_env_file=None)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def recommendations() -> FakeRecommendationService:
    return FakeRecommendationService(
        candidates=[
            external_candidate("Trattoria Roma", "g-roma", ai_score=0.9, rating=4.5),
            external_candidate("Sushi Bar", "g-sushi", ai_score=0.7, rating=4.8),
        ]
    )


@pytest.fixture
def organizer() -> Actor:
    return Actor(user_id=uuid.uuid4())


@pytest.fixture
def moderator() -> Actor:
    return Actor(user_id=uuid.uuid4(), role=ActorRole.MODERATOR)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def event_service(db_session, notifier, recommendations, clock, settings) -> EventService:
    return EventService(
        db_session,
        notifier=notifier,
        preference_aggregator=recommendations,
        recommendation_provider=recommendations,
        clock=clock,
        settings=settings,
    )


@pytest.fixture
def participant_service(event_service) -> ParticipantService:
    return ParticipantService(
        event_service.session,
        notifier=event_service.notifier,
        clock=event_service.clock,
        settings=event_service.settings,
        lifecycle=event_service.lifecycle,
    )


@pytest.fixture
def waitlist_manager(db_session, notifier, clock) -> WaitlistManager:
    return WaitlistManager(db_session, notifier=notifier, clock=clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_event(db_session: Session, organizer: Actor):
    """
    Factory persisting an Event directly in any status.

    Returns:
        Callable accepting Event column overrides
    """

    def _make_event(**overrides) -> Event:
        values = dict(
            organizer_id=organizer.user_id,
            title="Team dinner",
            scheduled_date=date(2026, 6, 10),
            scheduled_time=time(19, 0),
            timezone="UTC",
            estimated_duration_minutes=120,
            expected_attendees=4,
            acceptance_threshold=0.7,
            privacy=EventPrivacy.PRIVATE,
            status=EventStatus.INVITING,
        )
        values.update(overrides)
        evt = Event(**values)
        db_session.add(evt)
        db_session.commit()
        return evt

    return _make_event


@pytest.fixture
def add_participant(db_session: Session):
    """Factory adding a participant row for a user."""

    def _add_participant(
        evt: Event,
        user_id: Optional[uuid.UUID] = None,
        status: InvitationStatus = InvitationStatus.ACCEPTED,
    ) -> EventParticipant:
        participant = EventParticipant(
            event_id=evt.id,
            user_id=user_id or uuid.uuid4(),
            invitation_status=status,
            invited_at=FIXED_NOW,
        )
        db_session.add(participant)
        db_session.commit()
        return participant

    return _add_participant


@pytest.fixture
def make_place(db_session: Session):
    """Factory persisting an internal Place."""

    def _make_place(
        name: str = "Green Garden",
        status: PlaceVerificationStatus = PlaceVerificationStatus.APPROVED,
        **overrides,
    ) -> Place:
        values = dict(
            name=name,
            address="1 Main Street",
            category="restaurant",
            average_rating=4.2,
            total_reviews=25,
            verification_status=status,
        )
        values.update(overrides)
        place = Place(**values)
        db_session.add(place)
        db_session.commit()
        return place

    return _make_place


@pytest.fixture
def add_option(db_session: Session):
    """Factory attaching a VenueOption (internal when a place is given, else external)."""

    def _add_option(
        evt: Event,
        place: Optional[Place] = None,
        name: str = "Corner Bistro",
        ai_score: Optional[float] = None,
        rating: Optional[float] = None,
        suggested_by: Optional[uuid.UUID] = None,
    ) -> VenueOption:
        if place is not None:
            option = VenueOption(event_id=evt.id, place_id=place.id, ai_score=ai_score)
        else:
            option = VenueOption(
                event_id=evt.id,
                ai_score=ai_score,
                external_provider="google_places",
                external_place_id=f"g-{uuid.uuid4().hex[:8]}",
                external_name=name,
                external_rating=rating,
                external_total_reviews=5,
            )
        option.suggested_by = suggested_by
        option.estimated_cost_per_person = Decimal("25.00")
        db_session.add(option)
        db_session.commit()
        return option

    return _add_option


@pytest.fixture
def make_template(db_session: Session, organizer: Actor):
    """Factory persisting a RecurringEventTemplate."""

    def _make_template(**overrides) -> RecurringEventTemplate:
        values = dict(
            organizer_id=organizer.user_id,
            title="Weekly board games",
            pattern=RecurrencePattern.WEEKLY,
            days_of_week=["monday", "thursday"],
            start_date=date(2026, 6, 1),
            scheduled_time=time(18, 30),
            timezone="UTC",
            estimated_duration_minutes=180,
            expected_attendees=6,
            max_attendees=8,
            days_in_advance=7,
        )
        values.update(overrides)
        template = RecurringEventTemplate(**values)
        db_session.add(template)
        db_session.commit()
        return template

    return _make_template


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api_client(db_session, clock, settings, notifier, recommendations) -> Generator[TestClient, None, None]:
    """
    TestClient wired to the test session, clock and fake collaborators.

    The application lifespan is not run, so no real clients are created.
    """
    from group_scheduler.api.dependencies import (
        get_clock,
        get_db_session,
        get_notifier,
        get_recommendation_client,
    )
    from group_scheduler.api.main import app

    app.dependency_overrides[get_db_session] = lambda: db_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_recommendation_client] = lambda: recommendations

    yield TestClient(app)

    app.dependency_overrides.clear()


def user_headers(user_id: uuid.UUID, role: Optional[str] = None) -> dict[str, str]:
    headers = {"X-User-ID": str(user_id)}
    if role:
        headers["X-User-Role"] = role
    return headers
