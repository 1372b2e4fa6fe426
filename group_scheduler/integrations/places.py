"""
SQL-backed place directory.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from group_scheduler.integrations.base import PlaceSummary
from group_scheduler.models.venues import Place


class SqlPlaceDirectory:
    """Reads internal places from the ``places`` table."""

    def __init__(self, session: Session):
        self._session = session

    def get_place(self, place_id: UUID) -> Optional[PlaceSummary]:
        place = self._session.get(Place, place_id)
        if place is None or place.is_deleted:
            return None
        return PlaceSummary(
            id=place.id,
            name=place.name,
            verification_status=place.verification_status.value,
            address=place.address,
            category=place.category,
            average_rating=place.average_rating,
            total_reviews=place.total_reviews,
            timezone=place.timezone,
            latitude=place.latitude,
            longitude=place.longitude,
        )
