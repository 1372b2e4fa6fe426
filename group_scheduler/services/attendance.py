"""
Check-ins and post-event feedback.
"""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from group_scheduler.config import Settings, get_settings
from group_scheduler.models.attendance import CheckIn, Feedback
from group_scheduler.models.enums import CheckInMethod, EventStatus
from group_scheduler.services import queries
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.errors import (
    InputValidationError,
    InvalidOperationError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

CHECK_IN_STATUSES = frozenset({EventStatus.CONFIRMED, EventStatus.COMPLETED})


class CheckInTracker:
    """Records arrivals of accepted participants and the organizer."""

    def __init__(self, session: Session, clock: Clock = utc_now):
        self.session = session
        self.clock = clock

    def check_in(
        self,
        event_id: UUID,
        user_id: UUID,
        method: CheckInMethod = CheckInMethod.MANUAL,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> CheckIn:
        """
        Record a check-in. Coordinates are stored but not checked against the venue.

        Raises:
            NotFoundError: Unknown event
            InvalidOperationError: Event not confirmed/completed or already checked in
            UnauthorizedError: User is neither accepted participant nor organizer
            InputValidationError: Only one coordinate given, or out of range
        """
        event = queries.load_event(self.session, event_id)
        if event.status not in CHECK_IN_STATUSES:
            raise InvalidOperationError(
                f"Check-in opens once the event is confirmed (event is {event.status.value})"
            )
        if user_id != event.organizer_id and not queries.is_accepted_participant(
            self.session, event_id, user_id
        ):
            raise UnauthorizedError("Only accepted participants and the organizer can check in")

        if (latitude is None) != (longitude is None):
            raise InputValidationError("Latitude and longitude must be given together")
        if latitude is not None and not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise InputValidationError("Coordinates out of range")

        if self.get_check_in(event_id, user_id) is not None:
            raise InvalidOperationError("User already checked in")

        check_in = CheckIn(
            event_id=event_id,
            user_id=user_id,
            checked_in_at=self.clock(),
            method=method,
            latitude=latitude,
            longitude=longitude,
        )
        self.session.add(check_in)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError("User already checked in", original_error=e)

        logger.info(f"User {user_id} checked in to event {event_id} ({method.value})")
        return check_in

    def get_check_in(self, event_id: UUID, user_id: UUID) -> Optional[CheckIn]:
        return self.session.scalars(
            select(CheckIn).where(and_(CheckIn.event_id == event_id, CheckIn.user_id == user_id))
        ).first()

    def list_check_ins(self, event_id: UUID) -> Sequence[CheckIn]:
        queries.load_event(self.session, event_id)
        return self.session.scalars(
            select(CheckIn)
            .where(CheckIn.event_id == event_id)
            .order_by(CheckIn.checked_in_at, CheckIn.id)
        ).all()


class FeedbackCollector:
    """One feedback row per participant; resubmission updates it."""

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock
        self.settings = settings or get_settings()

    def _check_rating(self, name: str, value: Optional[int], required: bool = False) -> None:
        low, high = self.settings.feedback_rating_min, self.settings.feedback_rating_max
        if value is None:
            if required:
                raise InputValidationError(f"{name} is required")
            return
        if not low <= value <= high:
            raise InputValidationError(f"{name} must be between {low} and {high} (got {value})")

    def submit(
        self,
        event_id: UUID,
        user_id: UUID,
        overall_rating: int,
        venue_rating: Optional[int] = None,
        food_rating: Optional[int] = None,
        comments: Optional[str] = None,
        suggestions: Optional[str] = None,
        would_attend_again: Optional[bool] = None,
    ) -> Feedback:
        """
        Submit or update feedback for a completed event.

        Returns:
            The feedback row (submitted_at keeps the first submission time)

        Raises:
            NotFoundError: Unknown event
            InvalidOperationError: Event is not completed
            UnauthorizedError: User was neither accepted participant nor organizer
            InputValidationError: Rating outside the configured scale
        """
        event = queries.load_event(self.session, event_id)
        if event.status != EventStatus.COMPLETED:
            raise InvalidOperationError(
                f"Feedback opens once the event is completed (event is {event.status.value})"
            )
        if user_id != event.organizer_id and not queries.is_accepted_participant(
            self.session, event_id, user_id
        ):
            raise UnauthorizedError("Only accepted participants and the organizer can leave feedback")

        self._check_rating("overall_rating", overall_rating, required=True)
        self._check_rating("venue_rating", venue_rating)
        self._check_rating("food_rating", food_rating)

        now = self.clock()
        feedback = self.get_feedback(event_id, user_id)
        created = feedback is None
        if created:
            feedback = Feedback(event_id=event_id, user_id=user_id, submitted_at=now)
            self.session.add(feedback)
        else:
            feedback.updated_at = now

        feedback.overall_rating = overall_rating
        feedback.venue_rating = venue_rating
        feedback.food_rating = food_rating
        feedback.comments = comments
        feedback.suggestions = suggestions
        feedback.would_attend_again = would_attend_again

        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError("Feedback was submitted concurrently; retry", original_error=e)

        logger.info(
            f"User {user_id} {'submitted' if created else 'updated'} feedback for event {event_id}"
        )
        return feedback

    def get_feedback(self, event_id: UUID, user_id: UUID) -> Optional[Feedback]:
        return self.session.scalars(
            select(Feedback).where(and_(Feedback.event_id == event_id, Feedback.user_id == user_id))
        ).first()

    def list_feedback(self, event_id: UUID) -> Sequence[Feedback]:
        queries.load_event(self.session, event_id)
        return self.session.scalars(
            select(Feedback)
            .where(Feedback.event_id == event_id)
            .order_by(Feedback.submitted_at, Feedback.id)
        ).all()
