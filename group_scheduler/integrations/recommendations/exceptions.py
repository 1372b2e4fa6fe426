"""
Custom exceptions for recommendation service calls.

Provides structured error handling with retryable flags.
"""


class RecommendationServiceError(Exception):
    """Base exception for recommendation/preference service calls."""

    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class RecommendationAuthError(RecommendationServiceError):
    """
    Authentication or authorization failure.

    Causes:
    - Missing or invalid API key
    - Key not allowed to read the event's preferences
    """

    retryable = False


class RecommendationNotFoundError(RecommendationServiceError):
    """The service has no record of the event."""

    retryable = False


class RecommendationRateLimitError(RecommendationServiceError):
    """
    Rate limit hit (429 response).

    Retryable after exponential backoff.
    """

    retryable = True


class RecommendationUnavailableError(RecommendationServiceError):
    """
    Service unavailable, gateway failure or timeout.

    Retryable after exponential backoff.
    """

    retryable = True


class RecommendationResponseError(RecommendationServiceError):
    """
    The service answered with a payload that cannot be parsed.

    Causes:
    - Missing required fields
    - Malformed identifiers or numbers
    """

    retryable = False
