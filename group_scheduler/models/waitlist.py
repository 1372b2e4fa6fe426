"""
WaitlistEntry model.
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_scheduler.models.base import BaseModel, GUID, enum_type
from group_scheduler.models.enums import WaitlistStatus

if TYPE_CHECKING:
    from group_scheduler.models.events import Event


class WaitlistEntry(BaseModel):
    """
    A user queued for a slot in a capacity-limited event.

    Queue order is (priority, joined_at, sequence): lower priority is served
    first, ties go to whoever joined first. ``sequence`` is the per-event
    join counter and doubles as the default priority.
    """

    __tablename__ = "waitlist_entries"

    event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        nullable=False,
    )

    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Lower value = served earlier"
    )

    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Join order within the event"
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    status: Mapped[WaitlistStatus] = mapped_column(
        enum_type(WaitlistStatus),
        nullable=False,
        default=WaitlistStatus.WAITING,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    promoted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    expired_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    event: Mapped["Event"] = relationship("Event", back_populates="waitlist_entries")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_waitlist_event_user"),
        Index("idx_waitlist_queue", "event_id", "status", "priority", "joined_at", "sequence"),
    )

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry(event_id={self.event_id}, user_id={self.user_id}, "
            f"priority={self.priority}, status='{self.status.value}')>"
        )
