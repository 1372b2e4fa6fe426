"""
Unit tests for CheckInTracker and FeedbackCollector.
"""

import uuid

import pytest

from group_scheduler.models.enums import CheckInMethod, EventStatus, InvitationStatus
from group_scheduler.services.attendance import CheckInTracker, FeedbackCollector
from group_scheduler.services.clock import ensure_utc
from group_scheduler.services.errors import (
    InputValidationError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)

from conftest import FIXED_NOW


@pytest.fixture
def tracker(db_session, clock):
    return CheckInTracker(db_session, clock=clock)


@pytest.fixture
def collector(db_session, clock, settings):
    return FeedbackCollector(db_session, clock=clock, settings=settings)


@pytest.fixture
def confirmed_event(make_event):
    return make_event(status=EventStatus.CONFIRMED, final_option_id=uuid.uuid4())


@pytest.fixture
def completed_event(make_event):
    return make_event(status=EventStatus.COMPLETED, final_option_id=uuid.uuid4())


class TestCheckIn:
    """Test CheckInTracker."""

    def test_check_in_with_coordinates(self, tracker, confirmed_event, add_participant):
        member = add_participant(confirmed_event)

        check_in = tracker.check_in(
            confirmed_event.id, member.user_id, method=CheckInMethod.GEO, latitude=52.52, longitude=13.40
        )

        assert check_in.method == CheckInMethod.GEO
        assert ensure_utc(check_in.checked_in_at) == FIXED_NOW
        assert tracker.get_check_in(confirmed_event.id, member.user_id).id == check_in.id

    def test_only_once(self, tracker, confirmed_event, add_participant):
        member = add_participant(confirmed_event)
        tracker.check_in(confirmed_event.id, member.user_id)

        with pytest.raises(InvalidOperationError, match="already"):
            tracker.check_in(confirmed_event.id, member.user_id, method=CheckInMethod.QR)

    def test_not_open_before_confirmation(self, tracker, make_event, add_participant):
        evt = make_event(status=EventStatus.VOTING)
        member = add_participant(evt)

        with pytest.raises(InvalidOperationError):
            tracker.check_in(evt.id, member.user_id)

    def test_allowed_after_completion(self, tracker, completed_event, add_participant):
        member = add_participant(completed_event)

        assert tracker.check_in(completed_event.id, member.user_id).user_id == member.user_id

    def test_organizer_can_check_in(self, tracker, confirmed_event, organizer):
        check_in = tracker.check_in(confirmed_event.id, organizer.user_id)

        assert check_in.user_id == organizer.user_id

    def test_pending_invitee_rejected(self, tracker, confirmed_event, add_participant):
        pending = add_participant(confirmed_event, status=InvitationStatus.PENDING)

        with pytest.raises(UnauthorizedError):
            tracker.check_in(confirmed_event.id, pending.user_id)

    @pytest.mark.parametrize("latitude,longitude", [(10.0, None), (None, 20.0), (91.0, 0.0), (0.0, 181.0)])
    def test_bad_coordinates(self, tracker, confirmed_event, add_participant, latitude, longitude):
        member = add_participant(confirmed_event)

        with pytest.raises(InputValidationError):
            tracker.check_in(confirmed_event.id, member.user_id, latitude=latitude, longitude=longitude)

    def test_list_check_ins_in_arrival_order(self, tracker, confirmed_event, add_participant, clock):
        early = add_participant(confirmed_event)
        late = add_participant(confirmed_event)
        tracker.check_in(confirmed_event.id, early.user_id)
        clock.advance(minutes=10)
        tracker.check_in(confirmed_event.id, late.user_id)

        assert [c.user_id for c in tracker.list_check_ins(confirmed_event.id)] == [
            early.user_id,
            late.user_id,
        ]

    def test_unknown_event(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.list_check_ins(uuid.uuid4())


class TestFeedback:
    """Test FeedbackCollector."""

    def test_submit(self, collector, completed_event, add_participant):
        member = add_participant(completed_event)

        feedback = collector.submit(
            completed_event.id,
            member.user_id,
            overall_rating=5,
            venue_rating=4,
            comments="Great evening",
            would_attend_again=True,
        )

        assert feedback.overall_rating == 5
        assert feedback.venue_rating == 4
        assert feedback.would_attend_again is True
        assert ensure_utc(feedback.submitted_at) == FIXED_NOW

    def test_resubmission_updates_single_row(self, collector, completed_event, add_participant, clock):
        member = add_participant(completed_event)
        first = collector.submit(completed_event.id, member.user_id, overall_rating=2)

        clock.advance(hours=2)
        second = collector.submit(completed_event.id, member.user_id, overall_rating=4, food_rating=3)

        assert second.id == first.id
        assert second.overall_rating == 4
        assert second.food_rating == 3
        assert ensure_utc(second.submitted_at) == FIXED_NOW
        assert len(collector.list_feedback(completed_event.id)) == 1

    @pytest.mark.parametrize("field,value", [("overall_rating", 0), ("overall_rating", 6), ("venue_rating", 9)])
    def test_rating_scale(self, collector, completed_event, add_participant, field, value):
        member = add_participant(completed_event)
        ratings = {"overall_rating": 3, field: value}

        with pytest.raises(InputValidationError, match=field):
            collector.submit(completed_event.id, member.user_id, **ratings)

    def test_overall_rating_required(self, collector, completed_event, add_participant):
        member = add_participant(completed_event)

        with pytest.raises(InputValidationError, match="required"):
            collector.submit(completed_event.id, member.user_id, overall_rating=None)

    def test_custom_scale(self, db_session, clock, settings, completed_event, add_participant):
        collector = FeedbackCollector(
            db_session, clock=clock, settings=settings.model_copy(update={"feedback_rating_max": 10})
        )
        member = add_participant(completed_event)

        assert collector.submit(completed_event.id, member.user_id, overall_rating=9).overall_rating == 9

    def test_only_completed_events(self, collector, confirmed_event, add_participant):
        member = add_participant(confirmed_event)

        with pytest.raises(InvalidOperationError, match="completed"):
            collector.submit(confirmed_event.id, member.user_id, overall_rating=4)

    def test_organizer_can_leave_feedback(self, collector, completed_event, organizer):
        feedback = collector.submit(completed_event.id, organizer.user_id, overall_rating=4)

        assert feedback.user_id == organizer.user_id
        assert [f.user_id for f in collector.list_feedback(completed_event.id)] == [organizer.user_id]

    def test_outsider_rejected(self, collector, completed_event):
        with pytest.raises(UnauthorizedError):
            collector.submit(completed_event.id, uuid.uuid4(), overall_rating=4)
