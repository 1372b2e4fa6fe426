"""
Recommendation service integration.
"""

from group_scheduler.integrations.recommendations.client import RecommendationServiceClient
from group_scheduler.integrations.recommendations.exceptions import (
    RecommendationAuthError,
    RecommendationNotFoundError,
    RecommendationRateLimitError,
    RecommendationResponseError,
    RecommendationServiceError,
    RecommendationUnavailableError,
)

__all__ = [
    "RecommendationServiceClient",
    "RecommendationServiceError",
    "RecommendationAuthError",
    "RecommendationNotFoundError",
    "RecommendationRateLimitError",
    "RecommendationResponseError",
    "RecommendationUnavailableError",
]
