"""
Metrics Service - pure performance and profitability formulas.

Nothing here touches the database. The formulas are pricing policy shared
with existing reports, so they are kept exactly as agreed:

    FCR  = feed kg / live weight kg
    EPI  = (survival % x average weight kg) / (FCR x age) x 100

Sale prices above the base rate only count half towards the farmer's rate;
prices below it count in full.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional

from flockledger.models import LogOwner
from flockledger.utils.constants import (
    BAG_WEIGHT_KG,
    BASE_SELLING_PRICE,
    DOC_PRICE_PER_BIRD,
    FEED_PRICE_PER_BAG,
)


def _round_half_up(value: float, places: str) -> float:
    return float(Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def round_fcr(value: float) -> float:
    """FCR for display: two places, half-up."""
    return _round_half_up(value, "0.01")


def round_epi(value: float) -> float:
    """EPI for display: whole number, half-up."""
    return _round_half_up(value, "1")


def compute_cycle_metrics(
    doc: int,
    mortality: int,
    total_weight: float,
    feed_bags: float,
    age: int,
    is_ended: bool = True,
) -> Dict[str, float]:
    """
    Compute FCR, EPI and survival figures for one cycle.

    Metrics are only meaningful once a cycle has ended; for an active cycle
    every figure is returned as zero.

    Args:
        doc: Day-old chicks placed
        mortality: Dead birds
        total_weight: Live weight sold, in kg
        feed_bags: Feed consumed, in bags
        age: Age of the birds in days
        is_ended: Whether the cycle is archived

    Returns:
        Dictionary with survivors, survival_rate, feed_kg, avg_weight,
        fcr / epi (display-rounded) and fcr_exact / epi_exact
    """
    zeros = {
        "survivors": 0,
        "survival_rate": 0.0,
        "feed_kg": 0.0,
        "avg_weight": 0.0,
        "fcr": 0.0,
        "epi": 0.0,
        "fcr_exact": 0.0,
        "epi_exact": 0.0,
    }
    if not is_ended:
        return zeros

    total_weight = float(total_weight or 0)
    feed_bags = float(feed_bags or 0)

    survivors = doc - mortality
    survival_rate = (survivors / doc) * 100 if doc > 0 else 0.0
    feed_kg = feed_bags * BAG_WEIGHT_KG
    fcr = feed_kg / total_weight if total_weight > 0 else 0.0
    avg_weight = total_weight / survivors if survivors > 0 else 0.0
    epi = (survival_rate * avg_weight) / (fcr * age) * 100 if fcr > 0 and age > 0 else 0.0

    return {
        "survivors": survivors,
        "survival_rate": survival_rate,
        "feed_kg": feed_kg,
        "avg_weight": avg_weight,
        "fcr": round_fcr(fcr),
        "epi": round_epi(epi),
        "fcr_exact": fcr,
        "epi_exact": epi,
    }


def price_adjustment(price_per_kg: float) -> float:
    """One sale's contribution to the net adjustment."""
    diff = float(price_per_kg) - BASE_SELLING_PRICE
    if diff > 0:
        return diff / 2
    return diff


def net_price_adjustment(prices: Iterable[float]) -> float:
    """Sum the per-sale adjustments: surpluses at half weight, deficits in full."""
    return sum(price_adjustment(price) for price in prices)


def effective_rate(net_adjustment: float) -> float:
    """Rate paid per kg; never below the base selling price."""
    return max(BASE_SELLING_PRICE, BASE_SELLING_PRICE + net_adjustment)


def compute_profit(
    total_weight: float,
    feed_bags: float,
    doc: int,
    net_adjustment: float = 0.0,
    feed_price: Optional[float] = None,
) -> Dict[str, float]:
    """
    Formula revenue and profit for one cycle.

    Args:
        total_weight: Live weight sold, in kg
        feed_bags: Feed consumed, in bags
        doc: Day-old chicks placed
        net_adjustment: Output of ``net_price_adjustment``
        feed_price: Price per bag (defaults to FEED_PRICE_PER_BAG)
    """
    if feed_price is None:
        feed_price = FEED_PRICE_PER_BAG
    rate = effective_rate(net_adjustment)
    revenue = float(total_weight or 0) * rate
    feed_cost = float(feed_bags or 0) * float(feed_price)
    doc_cost = doc * DOC_PRICE_PER_BIRD
    return {
        "effective_rate": rate,
        "formula_revenue": revenue,
        "feed_cost": feed_cost,
        "doc_cost": doc_cost,
        "profit": revenue - (feed_cost + doc_cost),
    }


def get_cycle_stats(events: Iterable[Any]) -> Dict[LogOwner, Dict[str, float]]:
    """
    Aggregate sale events per owning cycle.

    Each event contributes its current figures (birds_sold, total_weight,
    total_amount, price_per_kg).

    Returns:
        {owner: {"revenue", "weight", "birds_sold", "net_adjustment"}}
    """
    stats: Dict[LogOwner, Dict[str, float]] = {}
    for event in events:
        totals = stats.setdefault(
            event.owner,
            {"revenue": 0.0, "weight": 0.0, "birds_sold": 0, "net_adjustment": 0.0},
        )
        totals["revenue"] += float(event.total_amount or 0)
        totals["weight"] += float(event.total_weight or 0)
        totals["birds_sold"] += event.birds_sold or 0
        totals["net_adjustment"] += price_adjustment(event.price_per_kg or 0)
    return stats
