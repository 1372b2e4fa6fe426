"""
Unit tests for SqlPlaceDirectory.
"""

import uuid

from group_scheduler.integrations.places import SqlPlaceDirectory
from group_scheduler.models.enums import PlaceVerificationStatus

from conftest import FIXED_NOW


def test_get_place_summary(db_session, make_place):
    place = make_place(name="Harbour Hall", timezone="Europe/Lisbon")

    summary = SqlPlaceDirectory(db_session).get_place(place.id)

    assert summary.id == place.id
    assert summary.name == "Harbour Hall"
    assert summary.verification_status == "approved"
    assert summary.is_approved
    assert summary.timezone == "Europe/Lisbon"
    assert summary.total_reviews == 25


def test_pending_place_is_not_approved(db_session, make_place):
    place = make_place(status=PlaceVerificationStatus.PENDING)

    assert not SqlPlaceDirectory(db_session).get_place(place.id).is_approved


def test_unknown_and_deleted_places(db_session, make_place):
    place = make_place()
    place.soft_delete(FIXED_NOW)
    db_session.commit()
    directory = SqlPlaceDirectory(db_session)

    assert directory.get_place(place.id) is None
    assert directory.get_place(uuid.uuid4()) is None
