"""Tests for the cycle lifecycle service.

This test module verifies:
1. create_cycle() back-dating, initial intake and validation
2. add_mortality() with the population ceiling
3. end_cycle() / reopen_cycle() stock round trip and log re-parenting
4. delete_history(), correct_doc(), correct_age(), revert_mortality_log()
5. get_cycle_details() and the cycle listings
"""

from datetime import timedelta

import pytest

from flockledger.models import (
    Cycle,
    CycleHistory,
    CycleLog,
    CycleLogType,
    Farmer,
    LogOwner,
    SaleEvent,
    SaleReport,
    StockLog,
)
from flockledger.services import cycle_service, farmer_service, sale_service
from flockledger.services.exceptions import (
    CorrectionLocked,
    CycleHistoryNotFound,
    CycleNotFound,
    FarmerArchived,
    Forbidden,
    InvalidInput,
    LogNotRevertible,
    MortalityFloorViolation,
    PopulationCeilingExceeded,
)
from flockledger.utils.constants import CUMULATIVE_FEED_SCHEDULE, GRAMS_PER_BAG
from flockledger.utils.datetime_utils import utc_now


def _logs(session, owner):
    column = CycleLog.cycle_id if owner.is_active else CycleLog.history_id
    return session.query(CycleLog).filter(column == owner.id).all()


def _farmer_row(session, farmer_id):
    return session.query(Farmer).filter(Farmer.id == farmer_id).one()


# =============================================================================
# create_cycle()
# =============================================================================


class TestCreateCycle:
    """Tests for create_cycle()."""

    def test_create_cycle_returns_summary(self, make_cycle, farmer):
        result = make_cycle(doc=500, name="Winter Batch")

        assert result["type"] == "active"
        assert result["name"] == "Winter Batch"
        assert result["farmer_id"] == farmer["id"]
        assert result["doc"] == 500
        assert result["mortality"] == 0
        assert result["birds_sold"] == 0
        assert result["remaining_birds"] == 500
        assert result["age"] == 1

    def test_create_cycle_backdates_start_by_age(self, make_cycle):
        result = make_cycle(doc=1000, age=10)

        assert result["age"] == 10
        expected = (
            1000 * (CUMULATIVE_FEED_SCHEDULE[10] - CUMULATIVE_FEED_SCHEDULE[1]) / GRAMS_PER_BAG
        )
        assert result["intake"] == pytest.approx(expected, abs=1e-4)

    def test_create_cycle_writes_note_and_feed_logs(self, test_db, make_cycle):
        result = make_cycle(doc=200, age=5)

        types = sorted(log.type for log in _logs(test_db(), LogOwner.cycle(result["id"])))
        assert types == [CycleLogType.FEED.value, CycleLogType.NOTE.value]

    def test_create_cycle_notifies_managers(self, make_cycle, notifier):
        make_cycle()
        assert "New Cycle Started" in notifier.titles()

    @pytest.mark.parametrize("doc", [0, -5, 200001])
    def test_create_cycle_rejects_bad_doc(self, make_cycle, doc):
        with pytest.raises(InvalidInput, match="DOC"):
            make_cycle(doc=doc)

    def test_create_cycle_rejects_age_over_limit(self, make_cycle):
        with pytest.raises(InvalidInput, match="Age"):
            make_cycle(age=41)

    def test_create_cycle_requires_managing_officer(self, farmer, other_officer):
        with pytest.raises(Forbidden):
            cycle_service.create_cycle(other_officer, farmer["id"], "Batch", 100)

    def test_admin_may_create_cycle(self, farmer, admin):
        result = cycle_service.create_cycle(admin, farmer["id"], "Batch", 100)
        assert result["doc"] == 100

    def test_create_cycle_rejects_archived_farmer(self, farmer, officer):
        farmer_service.archive_farmer(officer, farmer["id"])

        with pytest.raises(FarmerArchived):
            cycle_service.create_cycle(officer, farmer["id"], "Batch", 100)


# =============================================================================
# add_mortality()
# =============================================================================


class TestAddMortality:
    """Tests for add_mortality()."""

    def test_add_mortality_updates_cycle_and_logs(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=100, age=8)

        result = cycle_service.add_mortality(officer, cycle["id"], 4, reason="Heat stress")

        assert result["mortality"] == 4
        assert result["remaining_birds"] == 96
        entries = [
            log
            for log in _logs(test_db(), LogOwner.cycle(cycle["id"]))
            if log.type == CycleLogType.MORTALITY.value
        ]
        assert len(entries) == 1
        assert entries[0].value_change == 4
        assert entries[0].previous_value == 0
        assert entries[0].new_value == 4
        assert entries[0].note == "Heat stress"

    def test_add_mortality_enforces_population_ceiling(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=10)

        with pytest.raises(PopulationCeilingExceeded) as exc_info:
            cycle_service.add_mortality(officer, cycle["id"], 11)

        assert "10" in str(exc_info.value)
        row = test_db().query(Cycle).filter(Cycle.id == cycle["id"]).one()
        assert row.mortality == 0

    def test_add_mortality_rejects_date_before_start(self, make_cycle, officer):
        cycle = make_cycle(age=5)

        with pytest.raises(InvalidInput, match="before the cycle start"):
            cycle_service.add_mortality(
                officer, cycle["id"], 2, recorded_at=utc_now() - timedelta(days=10)
            )

    @pytest.mark.parametrize("amount", [0, -3, 1.5])
    def test_add_mortality_rejects_bad_amount(self, make_cycle, officer, amount):
        cycle = make_cycle()
        with pytest.raises(InvalidInput):
            cycle_service.add_mortality(officer, cycle["id"], amount)

    def test_add_mortality_unknown_cycle(self, farmer, officer):
        with pytest.raises(CycleNotFound):
            cycle_service.add_mortality(officer, 9999, 1)


# =============================================================================
# end_cycle() / reopen_cycle() / delete_history()
# =============================================================================


class TestEndCycle:
    """Tests for end_cycle()."""

    def test_end_cycle_archives_and_debits_stock(self, test_db, make_cycle, officer, farmer):
        cycle = make_cycle(doc=100, age=12)
        cycle_service.add_mortality(officer, cycle["id"], 3)

        history = cycle_service.end_cycle(officer, cycle["id"], 30)

        session = test_db()
        assert session.query(Cycle).filter(Cycle.id == cycle["id"]).first() is None
        row = session.query(CycleHistory).filter(CycleHistory.id == history["id"]).one()
        assert float(row.final_intake) == 30
        assert row.intake_source == "manual"
        assert row.mortality == 3
        assert row.doc == 100

        farmer_row = _farmer_row(session, farmer["id"])
        assert float(farmer_row.main_stock) == 70
        assert float(farmer_row.total_consumed) == 30

        close_logs = session.query(StockLog).filter(StockLog.type == "CYCLE_CLOSE").all()
        assert len(close_logs) == 1
        assert float(close_logs[0].amount) == -30

    def test_end_cycle_moves_logs_to_history(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=100, age=12)
        cycle_service.add_mortality(officer, cycle["id"], 3)
        before = len(_logs(test_db(), LogOwner.cycle(cycle["id"])))

        history = cycle_service.end_cycle(officer, cycle["id"], 30)

        session = test_db()
        assert _logs(session, LogOwner.cycle(cycle["id"])) == []
        moved = _logs(session, LogOwner.history(history["id"]))
        assert len(moved) == before + 1
        assert any(log.note.startswith("Cycle ended") for log in moved)

    def test_end_cycle_allows_negative_stock(self, test_db, make_cycle, officer, farmer):
        cycle = make_cycle()

        cycle_service.end_cycle(officer, cycle["id"], 120)

        assert float(_farmer_row(test_db(), farmer["id"]).main_stock) == -20

    def test_end_cycle_rejects_negative_intake(self, make_cycle, officer):
        cycle = make_cycle()
        with pytest.raises(InvalidInput):
            cycle_service.end_cycle(officer, cycle["id"], -1)

    def test_end_cycle_requires_managing_officer(self, make_cycle, other_officer):
        cycle = make_cycle()
        with pytest.raises(Forbidden):
            cycle_service.end_cycle(other_officer, cycle["id"], 10)


class TestReopenCycle:
    """Tests for reopen_cycle()."""

    def test_end_then_reopen_restores_stock_exactly(self, test_db, make_cycle, officer, farmer):
        cycle = make_cycle(doc=300, age=20)
        cycle_service.add_mortality(officer, cycle["id"], 7)
        history = cycle_service.end_cycle(officer, cycle["id"], 42.125)

        reopened = cycle_service.reopen_cycle(officer, history["id"])

        farmer_row = _farmer_row(test_db(), farmer["id"])
        assert float(farmer_row.main_stock) == pytest.approx(100)
        assert float(farmer_row.total_consumed) == pytest.approx(0)
        assert reopened["doc"] == 300
        assert reopened["mortality"] == 7
        assert reopened["age"] == 20
        assert reopened["birds_sold"] == 0
        assert reopened["uuid"] != history["uuid"]

    def test_reopen_moves_logs_back_and_clears_sales(
        self, test_db, make_cycle, officer, sale_kwargs
    ):
        cycle = make_cycle(doc=100, age=20)
        sale_service.create_sale_event(officer, cycle["id"], **sale_kwargs(birds_sold=40))
        history = cycle_service.end_cycle(officer, cycle["id"], 25)

        reopened = cycle_service.reopen_cycle(officer, history["id"])

        session = test_db()
        assert session.query(SaleEvent).count() == 0
        assert session.query(SaleReport).count() == 0
        assert session.query(CycleHistory).count() == 0
        logs = _logs(session, LogOwner.cycle(reopened["id"]))
        assert any("reopened" in (log.note or "") for log in logs)
        assert reopened["birds_sold"] == 0

    def test_reopen_writes_correction_stock_log(self, test_db, make_cycle, officer):
        cycle = make_cycle()
        history = cycle_service.end_cycle(officer, cycle["id"], 15)

        cycle_service.reopen_cycle(officer, history["id"])

        corrections = test_db().query(StockLog).filter(StockLog.type == "CORRECTION").all()
        assert [float(entry.amount) for entry in corrections] == [15]

    def test_reopen_unknown_history(self, farmer, officer):
        with pytest.raises(CycleHistoryNotFound):
            cycle_service.reopen_cycle(officer, 4242)


class TestDeleteHistory:
    """Tests for delete_history()."""

    def test_delete_history_removes_everything_but_stock(
        self, test_db, make_cycle, officer, farmer, sale_kwargs
    ):
        cycle = make_cycle(doc=100, age=20)
        sale_service.create_sale_event(officer, cycle["id"], **sale_kwargs(birds_sold=20))
        history = cycle_service.end_cycle(officer, cycle["id"], 30)

        result = cycle_service.delete_history(officer, history["id"])

        session = test_db()
        assert result["deleted_sale_events"] == 1
        assert session.query(CycleHistory).count() == 0
        assert session.query(CycleLog).count() == 0
        assert session.query(SaleReport).count() == 0
        assert float(_farmer_row(session, farmer["id"]).main_stock) == 70


# =============================================================================
# Corrections
# =============================================================================


class TestCorrectDoc:
    """Tests for correct_doc()."""

    def test_correct_doc_updates_and_logs(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=100, age=6)

        result = cycle_service.correct_doc(officer, cycle["id"], 120, "Miscounted boxes")

        assert result["doc"] == 120
        corrections = [
            log
            for log in _logs(test_db(), LogOwner.cycle(cycle["id"]))
            if log.type == CycleLogType.SYSTEM.value and log.note.startswith("DOC corrected")
        ]
        assert len(corrections) == 1
        assert corrections[0].previous_value == 100
        assert corrections[0].new_value == 120
        assert "Miscounted boxes" in corrections[0].note
        assert {log.type for log in _logs(test_db(), LogOwner.cycle(cycle["id"]))} <= {
            t.value for t in CycleLogType
        }
        assert {t.value for t in CycleLogType} == {"MORTALITY", "FEED", "SALES", "SYSTEM", "NOTE"}

    def test_correct_doc_below_population(self, make_cycle, officer):
        cycle = make_cycle(doc=100)
        cycle_service.add_mortality(officer, cycle["id"], 30)

        with pytest.raises(PopulationCeilingExceeded):
            cycle_service.correct_doc(officer, cycle["id"], 20, "Recount")

    def test_correct_doc_locked_after_sale(self, make_cycle, officer, sale_kwargs):
        cycle = make_cycle(doc=100, age=20)
        sale_service.create_sale_event(officer, cycle["id"], **sale_kwargs())

        with pytest.raises(CorrectionLocked):
            cycle_service.correct_doc(officer, cycle["id"], 150, "Recount")

    def test_correct_doc_requires_reason(self, make_cycle, officer):
        cycle = make_cycle()
        with pytest.raises(InvalidInput, match="Reason"):
            cycle_service.correct_doc(officer, cycle["id"], 150, "  ")


class TestCorrectAge:
    """Tests for correct_age()."""

    def test_correct_age_moves_start(self, make_cycle, officer):
        cycle = make_cycle(doc=100, age=3)

        result = cycle_service.correct_age(officer, cycle["id"], 9, "Hatchery date")

        assert result["age"] == 9

    def test_correct_age_locked_after_sale(self, make_cycle, officer, sale_kwargs):
        cycle = make_cycle(doc=100, age=20)
        sale_service.create_sale_event(officer, cycle["id"], **sale_kwargs())

        with pytest.raises(CorrectionLocked):
            cycle_service.correct_age(officer, cycle["id"], 25, "Hatchery date")


class TestRevertMortalityLog:
    """Tests for revert_mortality_log()."""

    def _mortality_log(self, session, cycle_id):
        return (
            session.query(CycleLog)
            .filter(
                CycleLog.cycle_id == cycle_id,
                CycleLog.type == CycleLogType.MORTALITY.value,
                CycleLog.value_change > 0,
            )
            .one()
        )

    def test_revert_restores_mortality(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=100, age=10)
        cycle_service.add_mortality(officer, cycle["id"], 5)
        log_id = self._mortality_log(test_db(), cycle["id"]).id

        result = cycle_service.revert_mortality_log(officer, log_id)

        assert result["mortality"] == 0
        session = test_db()
        assert session.query(CycleLog).filter(CycleLog.id == log_id).one().is_reverted
        negatives = (
            session.query(CycleLog)
            .filter(CycleLog.type == CycleLogType.MORTALITY.value, CycleLog.value_change < 0)
            .all()
        )
        assert [entry.value_change for entry in negatives] == [-5]

    def test_revert_twice_is_rejected(self, test_db, make_cycle, officer):
        cycle = make_cycle(doc=100, age=10)
        cycle_service.add_mortality(officer, cycle["id"], 5)
        log_id = self._mortality_log(test_db(), cycle["id"]).id
        cycle_service.revert_mortality_log(officer, log_id)

        with pytest.raises(LogNotRevertible):
            cycle_service.revert_mortality_log(officer, log_id)

    def test_revert_respects_mortality_floor(self, test_db, make_cycle, officer, sale_kwargs):
        cycle = make_cycle(doc=100, age=20)
        cycle_service.add_mortality(officer, cycle["id"], 5)
        log_id = self._mortality_log(test_db(), cycle["id"]).id
        sale_service.create_sale_event(officer, cycle["id"], **sale_kwargs())

        with pytest.raises(MortalityFloorViolation):
            cycle_service.revert_mortality_log(officer, log_id)

    def test_revert_non_mortality_log(self, test_db, make_cycle, officer):
        cycle = make_cycle()
        note_log = (
            test_db()
            .query(CycleLog)
            .filter(CycleLog.cycle_id == cycle["id"], CycleLog.type == CycleLogType.NOTE.value)
            .one()
        )
        with pytest.raises(LogNotRevertible):
            cycle_service.revert_mortality_log(officer, note_log.id)


# =============================================================================
# Queries
# =============================================================================


class TestGetCycleDetails:
    """Tests for get_cycle_details()."""

    def test_details_of_active_cycle_by_uuid(self, make_cycle, officer, farmer):
        cycle = make_cycle(name="Batch A")
        make_cycle(name="Batch B")

        details = cycle_service.get_cycle_details(officer, cycle["uuid"])

        assert details["type"] == "active"
        assert details["data"]["name"] == "Batch A"
        assert details["farmer"]["id"] == farmer["id"]
        assert [item["name"] for item in details["history"]] == ["Batch B"]
        assert details["logs"]

    def test_details_of_archived_cycle_by_owner(self, make_cycle, officer):
        cycle = make_cycle()
        history = cycle_service.end_cycle(officer, cycle["id"], 12)

        details = cycle_service.get_cycle_details(officer, LogOwner.history(history["id"]))

        assert details["type"] == "history"
        assert details["data"]["intake"] == 12
        assert details["data"]["intake_source"] == "manual"

    def test_details_unknown_uuid(self, farmer, officer):
        with pytest.raises(CycleNotFound):
            cycle_service.get_cycle_details(officer, "no-such-uuid")

    def test_details_forbidden(self, make_cycle, other_officer):
        cycle = make_cycle()
        with pytest.raises(Forbidden):
            cycle_service.get_cycle_details(other_officer, cycle["uuid"])


class TestListCycles:
    """Tests for list_active_cycles() and list_past_cycles()."""

    def test_list_active_scoped_to_officer(self, make_cycle, officer, other_officer, admin):
        make_cycle(name="Batch A")
        make_cycle(name="Batch B")

        assert cycle_service.list_active_cycles(officer)["total"] == 2
        assert cycle_service.list_active_cycles(other_officer)["total"] == 0
        assert cycle_service.list_active_cycles(admin)["total"] == 2

    def test_list_active_search_and_paging(self, make_cycle, officer):
        make_cycle(name="Winter")
        make_cycle(name="Summer")
        make_cycle(name="Spring")

        searched = cycle_service.list_active_cycles(officer, search="win")
        assert [item["name"] for item in searched["items"]] == ["Winter"]

        paged = cycle_service.list_active_cycles(officer, page=2, page_size=2)
        assert paged["total"] == 3
        assert len(paged["items"]) == 1

    def test_list_past_cycles(self, make_cycle, officer):
        cycle = make_cycle(name="Old")
        cycle_service.end_cycle(officer, cycle["id"], 10)

        result = cycle_service.list_past_cycles(officer)

        assert result["total"] == 1
        assert result["items"][0]["name"] == "Old"
        assert result["items"][0]["farmer_name"] == "ABDUL KARIM"
