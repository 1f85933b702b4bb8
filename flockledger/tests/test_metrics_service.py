"""Tests for the pure performance and profit formulas."""

from types import SimpleNamespace

import pytest

from flockledger.models import LogOwner
from flockledger.services import metrics_service
from flockledger.utils.constants import BASE_SELLING_PRICE, DOC_PRICE_PER_BIRD, FEED_PRICE_PER_BAG


class TestCycleMetrics:
    """Tests for compute_cycle_metrics()."""

    def test_reference_cycle(self):
        metrics = metrics_service.compute_cycle_metrics(
            doc=1000, mortality=20, total_weight=1960, feed_bags=40, age=32
        )

        assert metrics["survivors"] == 980
        assert metrics["survival_rate"] == pytest.approx(98.0)
        assert metrics["feed_kg"] == pytest.approx(2000.0)
        assert metrics["avg_weight"] == pytest.approx(2.0)
        assert metrics["fcr_exact"] == pytest.approx(1.0204, abs=1e-4)
        assert metrics["fcr"] == 1.02
        assert metrics["epi"] == 600

    def test_zero_weight_yields_zero_ratios(self):
        metrics = metrics_service.compute_cycle_metrics(
            doc=1000, mortality=0, total_weight=0, feed_bags=40, age=32
        )
        assert metrics["fcr"] == 0
        assert metrics["epi"] == 0
        assert metrics["avg_weight"] == 0

    def test_active_cycle_reports_zeros(self):
        metrics = metrics_service.compute_cycle_metrics(
            doc=1000, mortality=20, total_weight=1960, feed_bags=40, age=32, is_ended=False
        )
        assert set(metrics.values()) == {0}

    def test_display_rounding_is_half_up(self):
        assert metrics_service.round_fcr(1.125) == 1.13
        assert metrics_service.round_epi(600.5) == 601
        assert metrics_service.round_epi(599.49) == 599


class TestPriceAdjustment:
    """Tests for the half-weight surplus rule."""

    def test_surplus_counts_half(self):
        assert metrics_service.price_adjustment(151) == pytest.approx(5)

    def test_deficit_counts_in_full(self):
        assert metrics_service.price_adjustment(131) == pytest.approx(-10)

    def test_net_adjustment(self):
        assert metrics_service.net_price_adjustment([151, 131]) == pytest.approx(-5)
        assert metrics_service.net_price_adjustment([]) == 0

    def test_effective_rate_never_below_base(self):
        assert metrics_service.effective_rate(-5) == BASE_SELLING_PRICE
        assert metrics_service.effective_rate(4.5) == BASE_SELLING_PRICE + 4.5


class TestComputeProfit:
    """Tests for compute_profit()."""

    def test_default_feed_price(self):
        profit = metrics_service.compute_profit(total_weight=1960, feed_bags=40, doc=1000)

        assert profit["effective_rate"] == BASE_SELLING_PRICE
        assert profit["formula_revenue"] == pytest.approx(1960 * BASE_SELLING_PRICE)
        assert profit["feed_cost"] == pytest.approx(40 * FEED_PRICE_PER_BAG)
        assert profit["doc_cost"] == pytest.approx(1000 * DOC_PRICE_PER_BIRD)
        assert profit["profit"] == pytest.approx(
            1960 * BASE_SELLING_PRICE - 40 * FEED_PRICE_PER_BAG - 1000 * DOC_PRICE_PER_BIRD
        )

    def test_adjustment_and_custom_feed_price(self):
        profit = metrics_service.compute_profit(
            total_weight=100, feed_bags=2, doc=10, net_adjustment=9, feed_price=3000
        )
        assert profit["effective_rate"] == 150
        assert profit["formula_revenue"] == pytest.approx(15000)
        assert profit["feed_cost"] == pytest.approx(6000)


class TestCycleStats:
    """Tests for get_cycle_stats()."""

    def test_groups_events_by_owner(self):
        active = LogOwner.cycle(1)
        archived = LogOwner.history(1)
        events = [
            SimpleNamespace(owner=active, total_amount=3000, total_weight=20, birds_sold=10, price_per_kg=150),
            SimpleNamespace(owner=active, total_amount=1310, total_weight=10, birds_sold=5, price_per_kg=131),
            SimpleNamespace(owner=archived, total_amount=1410, total_weight=10, birds_sold=4, price_per_kg=141),
        ]

        stats = metrics_service.get_cycle_stats(events)

        assert stats[active]["revenue"] == pytest.approx(4310)
        assert stats[active]["weight"] == pytest.approx(30)
        assert stats[active]["birds_sold"] == 15
        assert stats[active]["net_adjustment"] == pytest.approx(4.5 - 10)
        assert stats[archived]["net_adjustment"] == 0
