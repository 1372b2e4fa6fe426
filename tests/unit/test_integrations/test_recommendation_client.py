"""
Unit tests for RecommendationServiceClient.

Requests go through httpx.MockTransport; tenacity's backoff sleeps are
patched out.
"""

import json
import uuid

import httpx
import pytest

from group_scheduler.integrations.base import PreferenceSet
from group_scheduler.integrations.recommendations import (
    RecommendationAuthError,
    RecommendationNotFoundError,
    RecommendationRateLimitError,
    RecommendationResponseError,
    RecommendationServiceClient,
    RecommendationServiceError,
    RecommendationUnavailableError,
)

EVENT_ID = uuid.UUID("6f1c2a52-3b1e-4f3a-9d7e-0c5b8a9e1f00")


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda seconds: None)


def make_client(handler, **kwargs) -> RecommendationServiceClient:
    http_client = httpx.Client(
        base_url="http://recs.test",
        transport=httpx.MockTransport(handler),
    )
    return RecommendationServiceClient("http://recs.test", http_client=http_client, **kwargs)


class Recorder:
    """Handler replaying canned responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TestAggregate:
    """Test GET /events/{id}/preferences."""

    def test_parses_preferences(self):
        handler = Recorder(httpx.Response(200, json={
            "respondentCount": 4,
            "cuisines": ["thai", "italian"],
            "dietaryRestrictions": ["vegan"],
            "maxBudgetPerPerson": 35.5,
        }))
        client = make_client(handler)

        preferences = client.aggregate(EVENT_ID)

        assert handler.requests[0].method == "GET"
        assert handler.requests[0].url.path == f"/events/{EVENT_ID}/preferences"
        assert preferences.respondent_count == 4
        assert preferences.cuisines == ["thai", "italian"]
        assert preferences.dietary_restrictions == ["vegan"]
        assert str(preferences.max_budget_per_person) == "35.5"

    def test_retries_unavailable_then_succeeds(self):
        handler = Recorder(
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"respondent_count": 2}),
        )
        client = make_client(handler)

        preferences = client.aggregate(EVENT_ID)

        assert preferences.respondent_count == 2
        assert len(handler.requests) == 2

    def test_gives_up_after_three_attempts(self):
        handler = Recorder(httpx.Response(429))
        client = make_client(handler)

        with pytest.raises(RecommendationRateLimitError):
            client.aggregate(EVENT_ID)

        assert len(handler.requests) == 3

    def test_timeout_is_retried(self):
        handler = Recorder(httpx.ReadTimeout("slow"), httpx.Response(200, json={"respondentCount": 1}))
        client = make_client(handler)

        assert client.aggregate(EVENT_ID).respondent_count == 1

    def test_connection_error(self):
        handler = Recorder(httpx.ConnectError("refused"))
        client = make_client(handler)

        with pytest.raises(RecommendationUnavailableError, match="failed"):
            client.aggregate(EVENT_ID)

    @pytest.mark.parametrize("status,error", [
        (401, RecommendationAuthError),
        (403, RecommendationAuthError),
        (404, RecommendationNotFoundError),
        (418, RecommendationServiceError),
    ])
    def test_client_errors_are_not_retried(self, status, error):
        handler = Recorder(httpx.Response(status, text="nope"))
        client = make_client(handler)

        with pytest.raises(error):
            client.aggregate(EVENT_ID)

        assert len(handler.requests) == 1

    def test_invalid_json(self):
        handler = Recorder(httpx.Response(200, text="<html>"))
        client = make_client(handler)

        with pytest.raises(RecommendationResponseError):
            client.aggregate(EVENT_ID)

    def test_api_key_sent_as_bearer_token(self):
        client = RecommendationServiceClient("http://recs.test/", api_key="secret-key")

        assert client._client.headers["Authorization"] == "Bearer secret-key"
        client.close()


class TestGenerate:
    """Test POST /events/{id}/recommendations."""

    def test_sends_preferences_and_parses_candidates(self):
        place_id = uuid.uuid4()
        handler = Recorder(httpx.Response(200, json={"candidates": [
            {"placeId": str(place_id), "aiScore": 0.91, "pros": ["quiet"]},
            {
                "aiScore": 0.5,
                "estimatedCostPerPerson": "22.50",
                "external": {"provider": "google_places", "externalId": "g-1", "name": "Noodle Bar"},
            },
        ]}))
        client = make_client(handler, default_radius_km=7.5)
        preferences = PreferenceSet(event_id=EVENT_ID, respondent_count=3, cuisines=["asian"])

        candidates = client.generate(EVENT_ID, preferences, latitude=48.1, longitude=11.6)

        body = json.loads(handler.requests[0].content)
        assert handler.requests[0].url.path == f"/events/{EVENT_ID}/recommendations"
        assert body["radiusKm"] == 7.5
        assert body["latitude"] == 48.1
        assert body["preferences"]["respondentCount"] == 3
        assert body["preferences"]["cuisines"] == ["asian"]
        assert candidates[0].place_id == place_id
        assert candidates[0].pros == ["quiet"]
        assert candidates[1].external_name == "Noodle Bar"
        assert str(candidates[1].estimated_cost_per_person) == "22.50"

    def test_explicit_radius_and_no_coordinates(self):
        handler = Recorder(httpx.Response(200, json={"candidates": []}))
        client = make_client(handler)

        assert client.generate(EVENT_ID, PreferenceSet(event_id=EVENT_ID), radius_km=2) == []

        body = json.loads(handler.requests[0].content)
        assert body["radiusKm"] == 2
        assert "latitude" not in body

    def test_bad_candidate_is_a_response_error(self):
        handler = Recorder(httpx.Response(200, json={"candidates": [{"aiScore": 0.4}]}))
        client = make_client(handler)

        with pytest.raises(RecommendationResponseError):
            client.generate(EVENT_ID, PreferenceSet(event_id=EVENT_ID))

        assert len(handler.requests) == 1
