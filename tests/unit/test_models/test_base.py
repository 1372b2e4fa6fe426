"""
Unit tests for BaseModel, the GUID TypeDecorator and enum columns.

Tests:
- GUID binding on SQLite (hex CHAR) and PostgreSQL (native UUID)
- Enumerations persisted by value
- Event version counter
- Soft deletion and to_dict
"""

import uuid

import pytest
from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import StatementError
from sqlalchemy.orm import Session

from group_scheduler.models.base import GUID
from group_scheduler.models.enums import EventStatus

from conftest import FIXED_NOW


class TestGUIDTypeDecorator:
    """Test the GUID TypeDecorator for UUID handling."""

    def test_sqlite_stores_hex(self):
        value = uuid.uuid4()

        assert GUID().process_bind_param(value, sqlite.dialect()) == value.hex
        assert GUID().process_bind_param(str(value), sqlite.dialect()) == value.hex

    def test_postgresql_stores_string(self):
        value = uuid.uuid4()

        assert GUID().process_bind_param(value, postgresql.dialect()) == str(value)

    def test_result_is_uuid(self):
        value = uuid.uuid4()

        assert GUID().process_result_value(value.hex, sqlite.dialect()) == value
        assert GUID().process_result_value(value, postgresql.dialect()) is value
        assert GUID().process_result_value(None, sqlite.dialect()) is None

    def test_id_generated_and_persisted(self, db_session: Session, make_event):
        evt = make_event()

        stored = db_session.execute(text("SELECT id FROM events")).scalar_one()

        assert isinstance(evt.id, uuid.UUID)
        assert stored == evt.id.hex


class TestEnumColumns:
    """Enumerations are stored by value, not by member name."""

    def test_status_stored_as_value(self, db_session: Session, make_event):
        make_event(status=EventStatus.GATHERING_PREFERENCES)

        stored = db_session.execute(text("SELECT status FROM events")).scalar_one()

        assert stored == "gathering_preferences"

    def test_unknown_value_rejected(self, db_session: Session, make_event):
        evt = make_event()
        evt.status = "postponed"

        with pytest.raises(StatementError):
            db_session.commit()
        db_session.rollback()


class TestBaseModel:
    """Test common columns and helpers."""

    def test_version_counts_updates(self, db_session: Session, make_event):
        evt = make_event()
        assert evt.version == 1

        evt.title = "Team lunch"
        db_session.commit()

        assert evt.version == 2

    def test_soft_delete(self, make_event):
        evt = make_event()
        assert not evt.is_deleted

        evt.soft_delete(FIXED_NOW)

        assert evt.is_deleted
        assert evt.deleted_at == FIXED_NOW

    def test_to_dict_and_repr(self, make_event):
        evt = make_event(title="Board games")

        data = evt.to_dict()

        assert data["title"] == "Board games"
        assert data["status"] == EventStatus.INVITING
        assert "Board games" in repr(evt)
