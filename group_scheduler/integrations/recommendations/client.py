"""
HTTP client for the preference aggregation and venue recommendation service.
"""

import logging
from typing import Optional, Sequence
from uuid import UUID

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from group_scheduler.integrations.base import PreferenceSet, VenueCandidate
from group_scheduler.integrations.recommendations.adapter import RecommendationAdapter
from group_scheduler.integrations.recommendations.exceptions import (
    RecommendationAuthError,
    RecommendationNotFoundError,
    RecommendationRateLimitError,
    RecommendationResponseError,
    RecommendationServiceError,
    RecommendationUnavailableError,
)

logger = logging.getLogger(__name__)


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, RecommendationServiceError):
        return exception.retryable
    return False


def _handle_http_error(response: httpx.Response) -> None:
    """Convert a non-2xx response to the matching RecommendationServiceError."""
    status = response.status_code
    message = response.text[:200]

    if status in (401, 403):
        raise RecommendationAuthError(
            f"Recommendation service rejected credentials ({status})"
        )
    elif status == 404:
        raise RecommendationNotFoundError(
            f"Recommendation service has no record: {message}"
        )
    elif status == 429:
        raise RecommendationRateLimitError(
            "Rate limit exceeded - too many requests"
        )
    elif status in (500, 502, 503, 504):
        raise RecommendationUnavailableError(
            f"Recommendation service unavailable ({status})"
        )
    else:
        raise RecommendationServiceError(
            f"Recommendation service error ({status}): {message}"
        )


class RecommendationServiceClient:
    """
    Client for the remote recommendation service.

    Implements both PreferenceAggregator and RecommendationProvider.

    Provides:
    - Automatic retry with exponential backoff on 429/5xx/timeouts
    - Consistent error mapping
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        default_radius_km: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service base URL
            api_key: Bearer token (omitted when empty)
            timeout: Request timeout in seconds
            default_radius_km: Radius used when the caller passes none
            http_client: Preconfigured client (tests pass one with a mock transport)
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
        )
        self._default_radius_km = default_radius_km

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RecommendationUnavailableError(
                f"Request to {path} timed out", original_error=e
            )
        except httpx.RequestError as e:
            raise RecommendationUnavailableError(
                f"Request to {path} failed: {e}", original_error=e
            )

        if response.is_error:
            _handle_http_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise RecommendationResponseError(
                f"Invalid JSON from {path}", original_error=e
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def aggregate(self, event_id: UUID) -> PreferenceSet:
        """
        Fetch the aggregated preferences of an event.

        Args:
            event_id: Event ID

        Returns:
            Aggregated preferences
        """
        data = self._request("GET", f"/events/{event_id}/preferences")
        preferences = RecommendationAdapter.to_preference_set(event_id, data)
        logger.debug(
            f"Aggregated preferences for event {event_id}: "
            f"{preferences.respondent_count} respondents"
        )
        return preferences

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def generate(
        self,
        event_id: UUID,
        preferences: PreferenceSet,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> Sequence[VenueCandidate]:
        """
        Request venue candidates for an event.

        Args:
            event_id: Event ID
            preferences: Aggregated preferences
            latitude: Optional search centre latitude
            longitude: Optional search centre longitude
            radius_km: Optional search radius (defaults to the configured one)

        Returns:
            Venue candidates in the service's order
        """
        body: dict = {
            "preferences": RecommendationAdapter.from_preference_set(preferences),
            "radiusKm": radius_km if radius_km is not None else self._default_radius_km,
        }
        if latitude is not None and longitude is not None:
            body["latitude"] = latitude
            body["longitude"] = longitude

        data = self._request("POST", f"/events/{event_id}/recommendations", json=body)
        candidates = [
            RecommendationAdapter.to_candidate(item)
            for item in data.get("candidates", [])
        ]
        logger.info(f"Received {len(candidates)} venue candidates for event {event_id}")
        return candidates
