"""
Unit tests for the HTTP layer: header handling, error mapping and routes.
"""

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient

from group_scheduler.api.dependencies import get_event_service
from group_scheduler.api.main import app
from group_scheduler.integrations.recommendations import RecommendationUnavailableError
from group_scheduler.models.enums import EventPrivacy, EventStatus, InvitationStatus, WaitlistStatus
from group_scheduler.services.errors import ConflictError

from conftest import user_headers


def event_body(**overrides) -> dict:
    body = {
        "title": "Quiz night",
        "scheduled_date": "2026-06-12",
        "scheduled_time": "19:30:00",
        "expected_attendees": 4,
        "max_attendees": 6,
        "privacy": "public",
    }
    body.update(overrides)
    return body


class StubEventService:
    """Event service whose reads fail with a configured exception."""

    def __init__(self, error: Exception):
        self.error = error

    def get_event(self, event_id):
        raise self.error

    def generate_recommendations(self, event_id, actor, **kwargs):
        raise self.error


@pytest.fixture
def failing_service():
    def _install(error: Exception):
        app.dependency_overrides[get_event_service] = lambda: StubEventService(error)

    yield _install
    app.dependency_overrides.pop(get_event_service, None)


class TestHeaders:
    """Test the acting-user headers and request ID."""

    def test_missing_user_header_is_401(self, api_client):
        response = api_client.post("/events", json=event_body())

        assert response.status_code == 401
        assert response.json()["error_type"] == "http_error"

    def test_malformed_user_id_is_400(self, api_client):
        response = api_client.post("/events", json=event_body(), headers={"X-User-ID": "bob"})

        assert response.status_code == 400
        assert "X-User-ID" in response.json()["message"]

    def test_unknown_role_is_400(self, api_client, organizer):
        response = api_client.post(
            "/events", json=event_body(), headers=user_headers(organizer.user_id, "superuser")
        )

        assert response.status_code == 400

    def test_request_id_header(self, api_client):
        response = api_client.get(f"/events/{uuid.uuid4()}")

        assert len(response.headers["X-Request-ID"]) == 8


class TestErrorMapping:
    """Test lifecycle errors mapped to HTTP statuses."""

    def test_body_validation_is_422(self, api_client, organizer):
        response = api_client.post(
            "/events",
            json=event_body(expected_attendees=1),
            headers=user_headers(organizer.user_id),
        )

        body = response.json()
        assert response.status_code == 422
        assert body["error_type"] == "validation_error"
        assert "expected_attendees" in body["message"]
        assert body["retryable"] is False

    def test_service_validation_is_422(self, api_client, organizer):
        response = api_client.post(
            "/events",
            json=event_body(scheduled_date="2026-05-01"),
            headers=user_headers(organizer.user_id),
        )

        assert response.status_code == 422
        assert "in the future" in response.json()["message"]

    def test_overlapping_event_is_400(self, api_client, organizer):
        headers = user_headers(organizer.user_id)
        api_client.post("/events", json=event_body(), headers=headers)

        response = api_client.post(
            "/events", json=event_body(title="Second quiz"), headers=headers
        )

        assert response.status_code == 400
        assert "Quiz night" in response.json()["message"]

    def test_unknown_event_is_404(self, api_client):
        response = api_client.get(f"/events/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    def test_invalid_transition_is_409(self, api_client, make_event, organizer):
        evt = make_event()

        response = api_client.post(
            f"/events/{evt.id}/transitions",
            json={"target_status": "confirmed"},
            headers=user_headers(organizer.user_id),
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_transition"
        assert "Cannot transition from 'inviting' to 'confirmed'" in response.json()["message"]

    def test_stranger_is_403(self, api_client, make_event):
        evt = make_event()

        response = api_client.post(
            f"/events/{evt.id}/cancel", json={}, headers=user_headers(uuid.uuid4())
        )

        assert response.status_code == 403
        assert response.json()["error_type"] == "unauthorized"

    def test_capacity_exceeded_is_409(self, api_client, make_event, organizer):
        evt = make_event(max_attendees=1)

        response = api_client.post(
            f"/events/{evt.id}/invitations",
            json={"user_ids": [str(uuid.uuid4()), str(uuid.uuid4())]},
            headers=user_headers(organizer.user_id),
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "capacity_exceeded"

    def test_invalid_operation_is_400(self, api_client, make_event, add_participant):
        evt = make_event(privacy=EventPrivacy.PUBLIC, max_attendees=5)
        participant = add_participant(evt)

        response = api_client.post(
            f"/events/{evt.id}/waitlist", json={}, headers=user_headers(participant.user_id)
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_operation"

    def test_conflict_is_retryable_409(self, api_client, failing_service):
        failing_service(ConflictError("Event was modified concurrently; retry"))

        response = api_client.get(f"/events/{uuid.uuid4()}")

        assert response.status_code == 409
        assert response.json() == {
            "error_type": "conflict",
            "message": "Event was modified concurrently; retry",
            "retryable": True,
        }

    def test_recommendation_failure_is_502(self, api_client, failing_service, organizer):
        failing_service(RecommendationUnavailableError("Recommendation service unavailable"))

        response = api_client.post(
            f"/events/{uuid.uuid4()}/recommendations",
            json={},
            headers=user_headers(organizer.user_id),
        )

        assert response.status_code == 502
        assert response.json()["error_type"] == "recommendation_service_error"
        assert response.json()["retryable"] is True

    def test_unexpected_error_is_500(self, api_client, failing_service):
        failing_service(RuntimeError("database on fire"))
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get(f"/events/{uuid.uuid4()}")

        assert response.status_code == 500
        assert response.json()["error_type"] == "internal_error"
        assert "fire" not in response.json()["message"]


class TestEventRoutes:
    """Test event, participant and waitlist routes."""

    def test_create_and_read(self, api_client, organizer):
        created = api_client.post(
            "/events", json=event_body(), headers=user_headers(organizer.user_id)
        )

        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "inviting"
        assert body["organizer_id"] == str(organizer.user_id)
        assert body["acceptance_threshold"] == 0.7
        assert body["rsvp_deadline"].startswith("2026-06-11T19:30")

        fetched = api_client.get(f"/events/{body['id']}")
        history = api_client.get(f"/events/{body['id']}/history")
        listed = api_client.get("/events", params={"status": "inviting"})

        assert fetched.json()["title"] == "Quiz night"
        assert [row["to_status"] for row in history.json()] == ["inviting"]
        assert listed.json()["total"] == 1

    def test_join_falls_back_to_waitlist(self, api_client, make_event, add_participant):
        evt = make_event(privacy=EventPrivacy.PUBLIC, max_attendees=1)
        add_participant(evt)
        newcomer = uuid.uuid4()

        response = api_client.post(f"/events/{evt.id}/join", headers=user_headers(newcomer))

        body = response.json()
        assert response.status_code == 200
        assert body["waitlisted"] is True
        assert body["participant"] is None
        assert body["waitlist_entry"]["status"] == WaitlistStatus.WAITING.value

        waitlist = api_client.get(f"/events/{evt.id}/waitlist")
        assert [entry["user_id"] for entry in waitlist.json()] == [str(newcomer)]

    def test_invite_accept_and_list(self, api_client, make_event, organizer):
        evt = make_event()
        guest = uuid.uuid4()

        invited = api_client.post(
            f"/events/{evt.id}/invitations",
            json={"user_ids": [str(guest)]},
            headers=user_headers(organizer.user_id),
        )
        accepted = api_client.post(f"/events/{evt.id}/accept", headers=user_headers(guest))
        listed = api_client.get(
            f"/events/{evt.id}/participants", params={"status": InvitationStatus.ACCEPTED.value}
        )

        assert invited.json()[0]["invitation_status"] == "pending"
        assert accepted.json()["invitation_status"] == "accepted"
        assert [p["user_id"] for p in listed.json()] == [str(guest)]

    def test_moderator_can_cancel(self, api_client, make_event, moderator):
        evt = make_event()

        response = api_client.post(
            f"/events/{evt.id}/cancel",
            json={"reason": "Venue flooded"},
            headers=user_headers(moderator.user_id, "moderator"),
        )

        assert response.status_code == 200
        assert response.json()["status"] == EventStatus.CANCELLED.value
        assert response.json()["cancellation_reason"] == "Venue flooded"


class TestRecurringRoutes:
    """Test recurring template routes."""

    def template_body(self, **overrides) -> dict:
        body = {
            "title": "Monday climbing",
            "pattern": "weekly",
            "days_of_week": ["Monday", "thursday"],
            "start_date": "2026-06-01",
            "scheduled_time": "18:00:00",
            "expected_attendees": 4,
        }
        body.update(overrides)
        return body

    def test_create_with_preview(self, api_client, organizer):
        response = api_client.post(
            "/recurring-events", json=self.template_body(), headers=user_headers(organizer.user_id)
        )

        body = response.json()
        assert response.status_code == 201
        assert body["status"] == "active"
        assert body["days_of_week"] == ["monday", "thursday"]
        assert len(body["next_occurrences"]) == 5
        assert all(date.fromisoformat(d).weekday() in (0, 3) for d in body["next_occurrences"])

    def test_invalid_template_is_422(self, api_client, organizer):
        response = api_client.post(
            "/recurring-events",
            json=self.template_body(days_in_advance=0),
            headers=user_headers(organizer.user_id),
        )

        assert response.status_code == 422
        assert response.json()["error_type"] == "validation_error"

    def test_update_toggle_and_delete(self, api_client, organizer):
        headers = user_headers(organizer.user_id)
        template_id = api_client.post(
            "/recurring-events", json=self.template_body(), headers=headers
        ).json()["id"]

        updated = api_client.patch(
            f"/recurring-events/{template_id}", json={"title": "Climbing"}, headers=headers
        )
        paused = api_client.post(f"/recurring-events/{template_id}/toggle", headers=headers)
        deleted = api_client.delete(f"/recurring-events/{template_id}", headers=headers)
        missing = api_client.get(f"/recurring-events/{template_id}")

        assert updated.json()["title"] == "Climbing"
        assert paused.json()["status"] == "paused"
        assert paused.json()["next_occurrences"] == []
        assert deleted.status_code == 204
        assert missing.status_code == 404

    def test_create_occurrence_is_idempotent(self, api_client, organizer):
        headers = user_headers(organizer.user_id)
        template_id = api_client.post(
            "/recurring-events", json=self.template_body(), headers=headers
        ).json()["id"]

        first = api_client.post(
            f"/recurring-events/{template_id}/events",
            json={"occurrence_date": "2026-06-04"},
            headers=headers,
        )
        second = api_client.post(
            f"/recurring-events/{template_id}/events",
            json={"occurrence_date": "2026-06-04"},
            headers=headers,
        )

        assert first.status_code == 201
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["recurring_template_id"] == template_id
        assert first.json()["occurrence_date"] == "2026-06-04"


class TestHealth:
    """Test the health endpoint."""

    @pytest.mark.parametrize("connected,status", [(True, "healthy"), (False, "unhealthy")])
    def test_health(self, api_client, monkeypatch, connected, status):
        monkeypatch.setattr("group_scheduler.api.main.check_connection", lambda: connected)

        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == status
        assert response.json()["database_connected"] is connected
