"""
Venue models.

Entities:
- Place: Internal venue reference data (maintained outside this service)
- VenueOption: Candidate venue attached to an event for voting
- Vote: One active vote per (event, voter)
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_scheduler.models.base import BaseModel, GUID, enum_type, get_json_type
from group_scheduler.models.enums import PlaceVerificationStatus

if TYPE_CHECKING:
    from group_scheduler.models.events import Event


class Place(BaseModel):
    """
    Internal venue.

    Place data is managed by a separate catalogue; this service only reads
    it to resolve venue options and to check that a finalized venue has
    been approved.
    """

    __tablename__ = "places"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    address: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    category: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    average_rating: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        doc="Average review rating"
    )

    total_reviews: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    verification_status: Mapped[PlaceVerificationStatus] = mapped_column(
        enum_type(PlaceVerificationStatus),
        nullable=False,
        default=PlaceVerificationStatus.PENDING,
        doc="Only approved places can be finalized"
    )

    timezone: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        doc="IANA timezone of the venue"
    )

    def __repr__(self) -> str:
        return f"<Place(id={self.id}, name='{self.name}')>"


class VenueOption(BaseModel):
    """
    Candidate venue for an event.

    Either references an internal Place (``place_id``) or carries a snapshot
    of an external provider's listing in the ``external_*`` columns, since
    external providers are not queried again after the option is stored.
    """

    __tablename__ = "venue_options"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    place_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("places.id"),
        nullable=True,
        doc="Internal place (NULL for external snapshots)"
    )

    suggested_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID,
        nullable=True,
        doc="User who added the option manually (NULL = recommendation service)"
    )

    # Recommendation output
    ai_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ai_reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pros: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
    )

    cons: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
    )

    estimated_cost_per_person: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    # External provider snapshot
    external_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    external_place_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    external_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    external_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    external_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    external_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    external_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    external_total_reviews: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    external_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    external_website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    external_photo_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    external_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    event: Mapped["Event"] = relationship(
        "Event",
        back_populates="venue_options",
    )

    place: Mapped[Optional["Place"]] = relationship("Place")

    votes: Mapped[list["Vote"]] = relationship(
        "Vote",
        back_populates="venue_option",
    )

    __table_args__ = (
        UniqueConstraint("event_id", "place_id", name="uq_venue_option_place"),
        UniqueConstraint(
            "event_id", "external_provider", "external_place_id",
            name="uq_venue_option_external",
        ),
        Index("idx_venue_options_event", "event_id"),
    )

    @property
    def is_internal(self) -> bool:
        return self.place_id is not None

    @property
    def is_ai_suggested(self) -> bool:
        return self.suggested_by is None

    def __repr__(self) -> str:
        return f"<VenueOption(id={self.id}, event_id={self.event_id}, place_id={self.place_id})>"


class Vote(BaseModel):
    """
    A voter's single active vote for an event.

    Re-voting for another option updates this row in place; the unique
    (event_id, voter_id) constraint is the upsert's conflict target.
    """

    __tablename__ = "votes"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    venue_option_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("venue_options.id", ondelete="CASCADE"),
        nullable=False,
    )

    voter_id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        nullable=False,
    )

    value: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Signed vote weight"
    )

    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Time of the most recent cast"
    )

    event: Mapped["Event"] = relationship("Event", back_populates="votes")

    venue_option: Mapped["VenueOption"] = relationship("VenueOption", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("event_id", "voter_id", name="uq_vote_event_voter"),
        Index("idx_votes_option", "venue_option_id"),
    )
