"""
Collaborator protocols and base types.

The lifecycle depends only on these interfaces; concrete implementations
(HTTP recommendation service, webhook notifier, SQL place directory) live
next to this module and are wired in by the API dependencies.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID


@dataclass
class PreferenceSet:
    """
    Aggregated venue preferences of an event's invitees.

    An empty set (no respondents) blocks the move to ai_recommending.
    """

    event_id: UUID
    respondent_count: int = 0
    categories: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    dietary_restrictions: list[str] = field(default_factory=list)
    max_budget_per_person: Optional[Decimal] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.respondent_count == 0

    def __len__(self) -> int:
        return self.respondent_count


@dataclass
class VenueCandidate:
    """
    Venue proposed by the recommendation service.

    ``place_id`` is set for internal places; otherwise the ``external_*``
    fields carry the provider's listing.
    """

    place_id: Optional[UUID] = None
    ai_score: Optional[float] = None
    ai_reasoning: Optional[str] = None
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    estimated_cost_per_person: Optional[Decimal] = None
    external_provider: Optional[str] = None
    external_place_id: Optional[str] = None
    external_name: Optional[str] = None
    external_address: Optional[str] = None
    external_latitude: Optional[float] = None
    external_longitude: Optional[float] = None
    external_rating: Optional[float] = None
    external_total_reviews: Optional[int] = None
    external_phone: Optional[str] = None
    external_website: Optional[str] = None
    external_photo_url: Optional[str] = None
    external_category: Optional[str] = None


@dataclass
class PlaceSummary:
    """Read-only view of an internal place."""

    id: UUID
    name: str
    verification_status: str
    address: Optional[str] = None
    category: Optional[str] = None
    average_rating: Optional[float] = None
    total_reviews: int = 0
    timezone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def is_approved(self) -> bool:
        return self.verification_status == "approved"


class PreferenceAggregator(Protocol):
    """Collects invitee preferences ahead of recommendation."""

    @abstractmethod
    def aggregate(self, event_id: UUID) -> PreferenceSet:
        """
        Aggregate the preferences submitted for an event.

        Args:
            event_id: Event whose invitees' preferences are aggregated

        Returns:
            Aggregated preferences (possibly empty)
        """
        ...


class RecommendationProvider(Protocol):
    """Opaque venue scoring service."""

    @abstractmethod
    def generate(
        self,
        event_id: UUID,
        preferences: PreferenceSet,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> Sequence[VenueCandidate]:
        """
        Produce venue candidates for an event.

        Args:
            event_id: Event to recommend for
            preferences: Aggregated preferences
            latitude: Optional search centre latitude
            longitude: Optional search centre longitude
            radius_km: Optional search radius

        Returns:
            Candidates in the provider's order (may be empty)
        """
        ...


class Notifier(Protocol):
    """Fire-and-forget delivery of participant notifications."""

    @abstractmethod
    def notify(
        self,
        user_id: UUID,
        event_id: UUID,
        kind: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        ...


class PlaceDirectory(Protocol):
    """Read access to internal places."""

    @abstractmethod
    def get_place(self, place_id: UUID) -> Optional[PlaceSummary]:
        ...
