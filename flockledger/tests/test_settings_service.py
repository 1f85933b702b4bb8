"""Tests for per-organization feed price and schedule settings."""

import pytest

from flockledger.services import settings_service
from flockledger.services.exceptions import Forbidden, InvalidInput
from flockledger.utils.constants import CUMULATIVE_FEED_SCHEDULE, FEED_PRICE_PER_BAG


class TestParseFeedSchedule:
    """Tests for parse_feed_schedule()."""

    def test_json_text_keys_become_ints(self):
        assert settings_service.parse_feed_schedule('{"0": 0, "7": 196}') == {0: 0, 7: 196}

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            {},
            [0, 16],
            {1: 16},
            {0: 0, -1: 0},
            {0: 0, 5: 100, 6: 90},
            {0: 0, "x": 10},
        ],
    )
    def test_rejects_malformed(self, raw):
        with pytest.raises(InvalidInput):
            settings_service.parse_feed_schedule(raw)


class TestSettings:
    """Tests for get_settings() and update_settings()."""

    def test_defaults(self, test_db):
        settings = settings_service.get_settings("org-1")

        assert settings["is_default"] is True
        assert settings["feed_price_per_bag"] == FEED_PRICE_PER_BAG
        assert settings["feed_schedule"] == CUMULATIVE_FEED_SCHEDULE

    def test_admin_updates_price_then_schedule(self, test_db, admin):
        settings_service.update_settings(admin, "org-1", feed_price_per_bag=3300.5)
        settings = settings_service.update_settings(
            admin, "org-1", feed_schedule={0: 0, 1: 20, 2: 45}
        )

        assert settings["is_default"] is False
        assert settings["feed_price_per_bag"] == pytest.approx(3300.5)
        assert settings["feed_schedule"] == {0: 0, 1: 20, 2: 45}
        assert settings_service.get_settings("org-2")["is_default"] is True

    def test_officer_cannot_update(self, test_db, officer):
        with pytest.raises(Forbidden):
            settings_service.update_settings(officer, "org-1", feed_price_per_bag=3000)

    def test_rejects_non_positive_price(self, test_db, admin):
        with pytest.raises(InvalidInput):
            settings_service.update_settings(admin, "org-1", feed_price_per_bag=0)
