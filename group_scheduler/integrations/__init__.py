"""
External collaborators of the event lifecycle.

Provides:
- Protocols: PreferenceAggregator, RecommendationProvider, Notifier, PlaceDirectory
- RecommendationServiceClient: HTTP preference/recommendation service
- LoggingNotifier / WebhookNotifier: notification delivery
- SqlPlaceDirectory: internal place lookups
"""

from group_scheduler.integrations.base import (
    Notifier,
    PlaceDirectory,
    PlaceSummary,
    PreferenceAggregator,
    PreferenceSet,
    RecommendationProvider,
    VenueCandidate,
)
from group_scheduler.integrations.notifications import LoggingNotifier, WebhookNotifier
from group_scheduler.integrations.places import SqlPlaceDirectory
from group_scheduler.integrations.recommendations import RecommendationServiceClient

__all__ = [
    "Notifier",
    "PlaceDirectory",
    "PlaceSummary",
    "PreferenceAggregator",
    "PreferenceSet",
    "RecommendationProvider",
    "VenueCandidate",
    "LoggingNotifier",
    "WebhookNotifier",
    "SqlPlaceDirectory",
    "RecommendationServiceClient",
]
