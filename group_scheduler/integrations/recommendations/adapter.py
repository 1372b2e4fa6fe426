"""
Mapping between the recommendation service's JSON and internal types.

Handles:
- Preference payloads (camelCase or snake_case keys)
- Candidate payloads for internal places and external listings
- Decimal conversion for money fields
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from group_scheduler.integrations.base import PreferenceSet, VenueCandidate
from group_scheduler.integrations.recommendations.exceptions import RecommendationResponseError

# Candidate JSON key -> VenueCandidate attribute
_EXTERNAL_FIELDS = {
    "provider": "external_provider",
    "externalId": "external_place_id",
    "name": "external_name",
    "address": "external_address",
    "latitude": "external_latitude",
    "longitude": "external_longitude",
    "rating": "external_rating",
    "totalReviews": "external_total_reviews",
    "phone": "external_phone",
    "website": "external_website",
    "photoUrl": "external_photo_url",
    "category": "external_category",
}


def _pick(data: dict, camel: str, default: Any = None) -> Any:
    """Read a key given in camelCase, falling back to its snake_case form."""
    if camel in data:
        return data[camel]
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in camel)
    return data.get(snake, default)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise RecommendationResponseError(f"Invalid amount: {value!r}", original_error=e)


def _to_uuid(value: Any) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError as e:
        raise RecommendationResponseError(f"Invalid place id: {value!r}", original_error=e)


class RecommendationAdapter:
    """Maps recommendation service payloads to PreferenceSet and VenueCandidate."""

    @staticmethod
    def to_preference_set(event_id: UUID, data: dict) -> PreferenceSet:
        """
        Convert a preference payload.

        Args:
            event_id: Event the preferences belong to
            data: JSON object returned by the service

        Returns:
            PreferenceSet (empty when nobody responded)
        """
        known = {
            "respondentCount", "respondent_count", "categories", "cuisines",
            "dietaryRestrictions", "dietary_restrictions", "maxBudgetPerPerson",
            "max_budget_per_person", "latitude", "longitude",
        }
        return PreferenceSet(
            event_id=event_id,
            respondent_count=int(_pick(data, "respondentCount", 0) or 0),
            categories=list(data.get("categories") or []),
            cuisines=list(data.get("cuisines") or []),
            dietary_restrictions=list(_pick(data, "dietaryRestrictions", []) or []),
            max_budget_per_person=_to_decimal(_pick(data, "maxBudgetPerPerson")),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @staticmethod
    def from_preference_set(preferences: PreferenceSet) -> dict:
        """Serialize preferences for a recommendation request."""
        payload: dict[str, Any] = {
            "respondentCount": preferences.respondent_count,
            "categories": preferences.categories,
            "cuisines": preferences.cuisines,
            "dietaryRestrictions": preferences.dietary_restrictions,
        }
        if preferences.max_budget_per_person is not None:
            payload["maxBudgetPerPerson"] = str(preferences.max_budget_per_person)
        if preferences.latitude is not None and preferences.longitude is not None:
            payload["latitude"] = preferences.latitude
            payload["longitude"] = preferences.longitude
        payload.update(preferences.extra)
        return payload

    @staticmethod
    def to_candidate(data: dict) -> VenueCandidate:
        """
        Convert one candidate object.

        Raises:
            RecommendationResponseError: If the candidate names neither an
                internal place nor an external listing
        """
        candidate = VenueCandidate(
            place_id=_to_uuid(_pick(data, "placeId")),
            ai_score=_pick(data, "aiScore", data.get("score")),
            ai_reasoning=_pick(data, "aiReasoning", data.get("reasoning")),
            pros=list(data.get("pros") or []),
            cons=list(data.get("cons") or []),
            estimated_cost_per_person=_to_decimal(_pick(data, "estimatedCostPerPerson")),
        )

        external = data.get("external") or {}
        for key, attr in _EXTERNAL_FIELDS.items():
            value = _pick(external, key)
            if value is not None:
                setattr(candidate, attr, value)

        if candidate.place_id is None and not candidate.external_name:
            raise RecommendationResponseError(
                "Candidate has neither placeId nor an external listing name"
            )
        return candidate
