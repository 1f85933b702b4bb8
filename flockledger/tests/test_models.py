"""Tests for model helpers and table constraints."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from flockledger.models import Cycle, CycleLog, CycleLogType, Farmer, LogOwner


class TestLogOwner:
    """Tests for the LogOwner value type."""

    def test_columns_clear_the_other_key(self):
        assert LogOwner.cycle(3).as_columns() == {"cycle_id": 3, "history_id": None}
        assert LogOwner.history(4).as_columns() == {"cycle_id": None, "history_id": 4}

    def test_from_columns(self):
        assert LogOwner.from_columns(3, None) == LogOwner.cycle(3)
        assert LogOwner.from_columns(None, 4) == LogOwner.history(4)
        assert LogOwner.from_columns(None, None) is None

    def test_validation(self):
        with pytest.raises(ValueError):
            LogOwner("batch", 1)
        with pytest.raises(ValueError):
            LogOwner.cycle(None)

    def test_hashable_and_active_flag(self):
        owners = {LogOwner.cycle(1), LogOwner.cycle(1), LogOwner.history(1)}
        assert len(owners) == 2
        assert LogOwner.cycle(1).is_active
        assert not LogOwner.history(1).is_active

    def test_owner_property_moves_row(self):
        entry = CycleLog(type=CycleLogType.NOTE.value)
        entry.owner = LogOwner.cycle(5)
        assert (entry.cycle_id, entry.history_id) == (5, None)

        entry.owner = LogOwner.history(9)
        assert (entry.cycle_id, entry.history_id) == (None, 9)
        assert entry.owner == LogOwner.history(9)


class TestConstraints:
    """Database checks on owned rows and cycle populations."""

    def _farmer(self, session):
        farmer = Farmer(name="ABDUL", organization_id="org-1", officer_id="officer-1")
        session.add(farmer)
        session.flush()
        return farmer

    def test_log_needs_exactly_one_owner(self, test_db):
        session = test_db()
        session.add(CycleLog(type=CycleLogType.NOTE.value, note="orphan"))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_population_cannot_exceed_doc(self, test_db):
        session = test_db()
        farmer = self._farmer(session)
        session.add(Cycle(name="Batch", farmer_id=farmer.id, doc=10, mortality=6, birds_sold=5))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


class TestToDict:
    """Tests for BaseModel.to_dict()."""

    def test_serializes_decimals_and_datetimes(self, test_db):
        session = test_db()
        farmer = Farmer(
            name="ABDUL",
            organization_id="org-1",
            officer_id="officer-1",
            main_stock=Decimal("12.5000"),
        )
        session.add(farmer)
        session.flush()

        data = farmer.to_dict()

        assert data["main_stock"] == 12.5
        assert isinstance(data["main_stock"], float)
        assert isinstance(data["created_at"], str)
        datetime.fromisoformat(data["created_at"])
        assert len(data["uuid"]) == 36
        session.rollback()

    def test_repr(self):
        farmer = Farmer(name="ABDUL")
        assert repr(farmer) == "Farmer(name='ABDUL')"
