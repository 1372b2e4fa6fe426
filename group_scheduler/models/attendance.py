"""
Attendance models: check-ins and post-event feedback.
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_scheduler.models.base import BaseModel, GUID, enum_type
from group_scheduler.models.enums import CheckInMethod

if TYPE_CHECKING:
    from group_scheduler.models.events import Event


class CheckIn(BaseModel):
    """Arrival of an accepted participant. At most one per (event, user)."""

    __tablename__ = "event_check_ins"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)

    checked_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    method: Mapped[CheckInMethod] = mapped_column(
        enum_type(CheckInMethod),
        nullable=False,
        default=CheckInMethod.MANUAL,
    )

    # Advisory only; proximity is not enforced
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    event: Mapped["Event"] = relationship("Event", back_populates="check_ins")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_check_in_event_user"),
    )


class Feedback(BaseModel):
    """
    Post-event feedback. Resubmission updates the row and keeps
    ``submitted_at``; ``updated_at`` tracks the latest edit.
    """

    __tablename__ = "event_feedback"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)

    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    venue_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    food_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    suggestions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    would_attend_again: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="First submission time"
    )

    event: Mapped["Event"] = relationship("Event", back_populates="feedback")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_feedback_event_user"),
    )
