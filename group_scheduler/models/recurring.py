"""
RecurringEventTemplate model.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_scheduler.models.base import BaseModel, GUID, enum_type, get_json_type
from group_scheduler.models.enums import EventPrivacy, RecurrencePattern, TemplateStatus

if TYPE_CHECKING:
    from group_scheduler.models.events import Event


class RecurringEventTemplate(BaseModel):
    """
    Rule from which concrete events are periodically materialized.

    Pattern fields:
    - daily: every day from start_date
    - weekly: days_of_week (list of day names, e.g. ["monday", "thursday"]);
      defaults to the weekday of start_date
    - monthly: day_of_month (1-31); NULL means the last day of each month
    - yearly: month_of_year and day_of_month; default to start_date's

    Generation stops at end_date or after occurrence_count occurrences
    counted from start_date, whichever comes first.
    """

    __tablename__ = "recurring_event_templates"

    organizer_id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        nullable=False,
        doc="Organizer of every generated event"
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Recurrence rule
    pattern: Mapped[RecurrencePattern] = mapped_column(
        enum_type(RecurrencePattern),
        nullable=False,
    )

    days_of_week: Mapped[Optional[list]] = mapped_column(
        get_json_type(),
        nullable=True,
        doc="Weekly pattern: lower-case day names"
    )

    day_of_month: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Monthly/yearly pattern: day of month (NULL = last day for monthly)"
    )

    month_of_year: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Yearly pattern: month (1-12)"
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Last possible occurrence date (inclusive)"
    )

    occurrence_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Total occurrences the rule produces counted from start_date"
    )

    # Event defaults
    scheduled_time: Mapped[time] = mapped_column(Time, nullable=False)

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="UTC",
    )

    estimated_duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=120,
    )

    expected_attendees: Mapped[int] = mapped_column(Integer, nullable=False)
    max_attendees: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    budget_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    budget_per_person: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    privacy: Mapped[EventPrivacy] = mapped_column(
        enum_type(EventPrivacy),
        nullable=False,
        default=EventPrivacy.PRIVATE,
    )

    # Generation control
    status: Mapped[TemplateStatus] = mapped_column(
        enum_type(TemplateStatus),
        nullable=False,
        default=TemplateStatus.ACTIVE,
    )

    auto_create_events: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        doc="When false only manual create-from-template is possible"
    )

    days_in_advance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=7,
        doc="How far ahead occurrences are materialized"
    )

    last_generated_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Latest occurrence date already materialized"
    )

    last_generated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    events: Mapped[list["Event"]] = relationship(
        "Event",
        back_populates="recurring_template",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_templates_status", "status", "auto_create_events"),
        Index("idx_templates_organizer", "organizer_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == TemplateStatus.ACTIVE and not self.is_deleted

    def __repr__(self) -> str:
        return f"<RecurringEventTemplate(id={self.id}, title='{self.title}', pattern='{self.pattern.value}')>"
