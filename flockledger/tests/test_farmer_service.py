"""Tests for farmer registration and archival."""

import pytest

from flockledger.models import FarmerStatus, StockLogType
from flockledger.services import cycle_service, farmer_service, stock_service
from flockledger.services.exceptions import (
    DuplicateFarmerName,
    FarmerArchived,
    FarmerHasActiveCycles,
    Forbidden,
    InvalidInput,
)


class TestCreateFarmer:
    """Tests for create_farmer()."""

    def test_create_stores_upper_case_and_opening_stock(self, farmer, officer, notifier):
        assert farmer["name"] == "ABDUL KARIM"
        assert farmer["officer_id"] == officer.actor_id
        assert farmer["main_stock"] == pytest.approx(100)
        assert farmer["status"] == FarmerStatus.ACTIVE.value

        history = stock_service.get_stock_history(officer, farmer["id"])
        assert [entry["type"] for entry in history] == [StockLogType.INITIAL.value]
        assert notifier.titles() == ["New Farmer Added"]

    def test_zero_opening_stock_writes_no_log(self, test_db, officer, notifier):
        created = farmer_service.create_farmer(officer, "Jamal", "org-1")

        assert stock_service.get_stock_history(officer, created["id"]) == []

    def test_duplicate_name_ignores_case(self, farmer, officer):
        with pytest.raises(DuplicateFarmerName):
            farmer_service.create_farmer(officer, "  abdul karim ", "org-1")

    def test_same_name_allowed_for_other_officer_or_org(self, farmer, officer, other_officer):
        farmer_service.create_farmer(other_officer, "Abdul Karim", "org-1")
        farmer_service.create_farmer(officer, "Abdul Karim", "org-2")

    @pytest.mark.parametrize("name", ["", "   ", "A", "X" * 101])
    def test_invalid_names(self, test_db, officer, notifier, name):
        with pytest.raises(InvalidInput):
            farmer_service.create_farmer(officer, name, "org-1")

    def test_negative_opening_stock(self, test_db, officer, notifier):
        with pytest.raises(InvalidInput):
            farmer_service.create_farmer(officer, "Jamal", "org-1", initial_stock=-1)


class TestListAndGetFarmers:
    """Tests for get_farmer() and list_farmers()."""

    def test_get_forbidden_for_other_officer(self, farmer, other_officer):
        with pytest.raises(Forbidden):
            farmer_service.get_farmer(other_officer, farmer["id"])

    def test_list_scoped_to_officer(self, farmer, officer, other_officer, admin):
        farmer_service.create_farmer(other_officer, "Selim", "org-1")

        assert [f["name"] for f in farmer_service.list_farmers(officer, "org-1")] == ["ABDUL KARIM"]
        assert [f["name"] for f in farmer_service.list_farmers(admin, "org-1")] == [
            "ABDUL KARIM",
            "SELIM",
        ]


class TestArchiveFarmer:
    """Tests for archive_farmer()."""

    def test_archive_renames_and_frees_name(self, farmer, officer, notifier):
        archived = farmer_service.archive_farmer(officer, farmer["id"])

        assert archived["status"] == FarmerStatus.ARCHIVED.value
        assert archived["name"].startswith("ABDUL KARIM_")
        assert len(archived["name"]) == len("ABDUL KARIM_") + 4
        assert "Farmer Profile Archived" in notifier.titles()
        assert farmer_service.list_farmers(officer, "org-1") == []
        assert len(farmer_service.list_farmers(officer, "org-1", include_archived=True)) == 1

        farmer_service.create_farmer(officer, "Abdul Karim", "org-1")

    def test_archive_blocked_by_active_cycle(self, make_cycle, farmer, officer):
        make_cycle()

        with pytest.raises(FarmerHasActiveCycles):
            farmer_service.archive_farmer(officer, farmer["id"])

    def test_archived_farmer_rejects_new_cycles(self, farmer, officer):
        farmer_service.archive_farmer(officer, farmer["id"])

        with pytest.raises(FarmerArchived):
            cycle_service.create_cycle(officer, farmer["id"], "Late", 100)

    def test_archive_by_other_officer_forbidden(self, farmer, other_officer):
        with pytest.raises(Forbidden):
            farmer_service.archive_farmer(other_officer, farmer["id"])
