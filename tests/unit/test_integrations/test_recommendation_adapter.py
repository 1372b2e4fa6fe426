"""
Unit tests for RecommendationAdapter payload mapping.
"""

import uuid
from decimal import Decimal

import pytest

from group_scheduler.integrations.base import PreferenceSet
from group_scheduler.integrations.recommendations.adapter import RecommendationAdapter
from group_scheduler.integrations.recommendations.exceptions import RecommendationResponseError

EVENT_ID = uuid.uuid4()


class TestPreferences:
    """Test preference payload conversion."""

    def test_snake_case_keys(self):
        preferences = RecommendationAdapter.to_preference_set(EVENT_ID, {
            "respondent_count": 2,
            "dietary_restrictions": ["halal"],
            "max_budget_per_person": "40",
        })

        assert preferences.respondent_count == 2
        assert preferences.dietary_restrictions == ["halal"]
        assert preferences.max_budget_per_person == Decimal("40")

    def test_empty_payload_is_empty_set(self):
        preferences = RecommendationAdapter.to_preference_set(EVENT_ID, {})

        assert preferences.is_empty
        assert len(preferences) == 0

    def test_unknown_keys_kept_as_extra(self):
        preferences = RecommendationAdapter.to_preference_set(
            EVENT_ID, {"respondentCount": 1, "ambience": "quiet"}
        )

        assert preferences.extra == {"ambience": "quiet"}

    def test_serialization_round_trips_extra_and_budget(self):
        payload = RecommendationAdapter.from_preference_set(PreferenceSet(
            event_id=EVENT_ID,
            respondent_count=5,
            max_budget_per_person=Decimal("25.00"),
            latitude=1.0,
            extra={"ambience": "lively"},
        ))

        assert payload["maxBudgetPerPerson"] == "25.00"
        # Coordinates are only sent as a pair
        assert "latitude" not in payload
        assert payload["ambience"] == "lively"

    def test_invalid_budget(self):
        with pytest.raises(RecommendationResponseError, match="amount"):
            RecommendationAdapter.to_preference_set(EVENT_ID, {"maxBudgetPerPerson": "cheap"})


class TestCandidates:
    """Test candidate payload conversion."""

    def test_score_and_reasoning_aliases(self):
        candidate = RecommendationAdapter.to_candidate({
            "score": 0.6,
            "reasoning": "Close to everyone",
            "external": {"name": "Park Cafe", "total_reviews": 12},
        })

        assert candidate.ai_score == 0.6
        assert candidate.ai_reasoning == "Close to everyone"
        assert candidate.external_total_reviews == 12

    def test_invalid_place_id(self):
        with pytest.raises(RecommendationResponseError, match="place id"):
            RecommendationAdapter.to_candidate({"placeId": "not-a-uuid"})

    def test_requires_place_or_name(self):
        with pytest.raises(RecommendationResponseError):
            RecommendationAdapter.to_candidate({"external": {"provider": "google_places"}})
