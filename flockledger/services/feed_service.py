"""
Feed Intake Service - the single authority for ``Cycle.intake``.

Intake is a function of the cycle's population and age, never tracked on
its own. Every operation that changes mortality, birds sold, DOC or age
calls ``update_cycle_feed`` inside its own transaction.

The model uses the latest sale as a checkpoint: the feed the officer
reported as consumed at that sale is trusted, and only consumption since
then is estimated from the cumulative per-bird schedule:

    intake = reported_at_last_sale
           + living birds x (cum(age now) - cum(age at checkpoint))
           + birds sold after the checkpoint, fed until their sale day
           + birds dead after the checkpoint, fed until their death day

This module also owns the ``[{"type", "bags"}]`` feed item lists stored on
sale events and reports.
"""

import json
import logging
from contextlib import nullcontext
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flockledger.models import (
    Cycle,
    CycleLog,
    CycleLogType,
    Farmer,
    FarmerStatus,
    LogOwner,
    SaleEvent,
)
from flockledger.services import settings_service
from flockledger.services.access import SYSTEM_ACTOR, ActorContext
from flockledger.services.database import session_scope
from flockledger.services.exceptions import InvalidInput
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.utils.constants import (
    CUMULATIVE_FEED_SCHEDULE,
    DEFAULT_FEED_TYPES,
    GRAMS_PER_BAG,
    INTAKE_LOG_THRESHOLD,
)
from flockledger.utils.datetime_utils import as_utc, days_between, to_date, utc_now
from flockledger.utils.validators import to_decimal

logger = get_service_logger(__name__)


# =============================================================================
# Feed item lists
# =============================================================================


def parse_feed_items(raw) -> List[Dict[str, Any]]:
    """
    Parse a feed item list from JSON text or a list of mappings.

    Raises:
        InvalidInput: Not a list, or an item without a type or with negative bags
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidInput(f"Feed list is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise InvalidInput("Feed list must be a list of {type, bags} items")

    items = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise InvalidInput(f"Feed item {index} must be an object with type and bags")
        feed_type = item.get("type")
        bags = item.get("bags", 0)
        if not isinstance(feed_type, str) or not feed_type.strip():
            raise InvalidInput(f"Feed item {index}: type is required")
        if isinstance(bags, bool) or not isinstance(bags, (int, float, Decimal)):
            raise InvalidInput(f"Feed item {index} ({feed_type}): bags must be a number")
        if bags < 0:
            raise InvalidInput(
                f"Feed item {index} ({feed_type}): bags must be zero or greater (got {bags})"
            )
        items.append({"type": feed_type.strip(), "bags": float(bags)})
    return items


def merge_feed_items(items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Combine entries whose types match ignoring case; types become upper-case."""
    merged: Dict[str, float] = {}
    for item in items:
        key = item["type"].strip().upper()
        merged[key] = merged.get(key, 0.0) + float(item.get("bags") or 0)
    return [{"type": feed_type, "bags": bags} for feed_type, bags in merged.items()]


def ensure_default_feed_types(items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Add zero B1/B2 entries when missing and move them to the front."""
    result = [dict(item) for item in items]
    present = {item["type"].upper() for item in result}
    for feed_type in DEFAULT_FEED_TYPES:
        if feed_type not in present:
            result.append({"type": feed_type, "bags": 0.0})

    def rank(item):
        upper = item["type"].upper()
        return DEFAULT_FEED_TYPES.index(upper) if upper in DEFAULT_FEED_TYPES else len(DEFAULT_FEED_TYPES)

    return sorted(result, key=rank)


def normalize_feed_items(raw) -> List[Dict[str, Any]]:
    """Parse, merge and order a feed list the way it is stored."""
    return ensure_default_feed_types(merge_feed_items(parse_feed_items(raw)))


def serialize_feed_items(raw) -> str:
    return json.dumps(normalize_feed_items(raw))


def total_bags(items) -> float:
    """Total bags in a feed list (JSON text or parsed)."""
    if isinstance(items, str) or items is None:
        items = parse_feed_items(items)
    return sum(float(item.get("bags") or 0) for item in items)


# =============================================================================
# Recalculation
# =============================================================================


def cumulative_feed_for_day(day: int, schedule: Optional[Mapping[int, int]] = None) -> int:
    """
    Cumulative grams eaten per bird by the end of ``day``.

    Days at or below zero eat nothing; days past the end of the schedule
    stay at its last value.
    """
    if schedule is None:
        schedule = CUMULATIVE_FEED_SCHEDULE
    if day <= 0:
        return 0
    known = [d for d in schedule if d <= day]
    if not known:
        return 0
    return schedule[max(known)]


def compute_age(start, today) -> int:
    """Age in days: day one is the start date itself."""
    return max(1, days_between(start, today) + 1)


def _latest_sale(session, cycle_id: int) -> Optional[SaleEvent]:
    return (
        session.query(SaleEvent)
        .filter(SaleEvent.cycle_id == cycle_id)
        .order_by(SaleEvent.sale_date.desc(), SaleEvent.created_at.desc(), SaleEvent.id.desc())
        .first()
    )


def update_cycle_feed(
    session,
    cycle: Cycle,
    actor_id: Optional[str],
    force: bool = False,
    note: Optional[str] = None,
    effective_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    Recompute a cycle's cumulative intake and age.

    Runs inside the caller's session. Without ``force`` the cycle is only
    touched once its computed age has advanced past the stored age.

    Args:
        session: Active database session (the caller's transaction)
        cycle: Active cycle to recalculate (mortality/birds_sold already updated)
        actor_id: Who triggered the recalculation
        force: Recalculate and log even if the age has not advanced
        note: Note for the FEED log
        effective_date: Timestamp for the FEED log (back-dated corrections)
        now: Clock override

    Returns:
        Dictionary describing the change, or None if skipped
    """
    now = now or utc_now()
    start = cycle.created_at
    current_age = compute_age(start, now)

    if not force and current_age <= (cycle.age or 0):
        return None

    schedule = settings_service.get_feed_schedule(session, cycle.organization_id)

    base_bags = 0.0
    checkpoint_at = as_utc(start)
    last_sale = _latest_sale(session, cycle.id)
    if last_sale is not None:
        try:
            base_bags = total_bags(last_sale.feed_consumed)
            checkpoint_at = as_utc(last_sale.sale_date)
        except InvalidInput as e:
            log_operation(
                logger,
                operation="update_cycle_feed",
                outcome="bad_checkpoint",
                level=logging.ERROR,
                cycle_id=cycle.id,
                sale_event_id=last_sale.id,
                error=str(e),
            )
    checkpoint_day = to_date(checkpoint_at)

    live_birds = max(0, (cycle.doc or 0) - (cycle.mortality or 0) - (cycle.birds_sold or 0))
    days_since_checkpoint = max(0, days_between(checkpoint_day, now))
    age_at_checkpoint = max(0, current_age - days_since_checkpoint)
    cumulative_at_checkpoint = cumulative_feed_for_day(age_at_checkpoint, schedule)

    def marginal_until(event_at) -> int:
        days_to_event = max(0, days_between(checkpoint_day, event_at))
        cumulative = cumulative_feed_for_day(age_at_checkpoint + days_to_event, schedule)
        return max(0, cumulative - cumulative_at_checkpoint)

    living_grams = live_birds * max(
        0, cumulative_feed_for_day(current_age, schedule) - cumulative_at_checkpoint
    )

    sold_grams = 0
    for sale in session.query(SaleEvent).filter(SaleEvent.cycle_id == cycle.id).all():
        if as_utc(sale.sale_date) > checkpoint_at:
            sold_grams += (sale.birds_sold or 0) * marginal_until(sale.sale_date)

    dead_grams = 0.0
    mortality_logs = (
        session.query(CycleLog)
        .filter(
            CycleLog.cycle_id == cycle.id,
            CycleLog.type == CycleLogType.MORTALITY.value,
        )
        .all()
    )
    for entry in mortality_logs:
        if as_utc(entry.created_at) > checkpoint_at:
            dead_grams += (entry.value_change or 0) * marginal_until(entry.created_at)

    estimated_bags = (living_grams + sold_grams + dead_grams) / GRAMS_PER_BAG
    new_intake = base_bags + estimated_bags
    previous_intake = float(cycle.intake or 0)
    delta = new_intake - previous_intake

    cycle.intake = to_decimal(new_intake)
    cycle.age = current_age

    logged = force or abs(delta) > INTAKE_LOG_THRESHOLD
    if logged:
        if note is None:
            note = (
                f"Intake recalculated: {new_intake:.2f} bags total."
                if force
                else f"Daily consumption: {delta:.2f} bags (age {current_age})"
            )
        entry = CycleLog(
            actor_id=actor_id,
            type=CycleLogType.FEED.value,
            value_change=round(delta, 4),
            previous_value=round(previous_intake, 4),
            new_value=round(new_intake, 4),
            note=note,
        )
        entry.owner = LogOwner.cycle(cycle.id)
        if effective_date is not None:
            entry.created_at = effective_date
        session.add(entry)
    session.flush()

    log_operation(
        logger,
        operation="update_cycle_feed",
        outcome="recalculated",
        level=logging.DEBUG,
        cycle_id=cycle.id,
        intake=new_intake,
        age=current_age,
        forced=force,
    )
    return {
        "cycle_id": cycle.id,
        "cycle_name": cycle.name,
        "previous_intake": previous_intake,
        "intake": new_intake,
        "added_bags": delta,
        "age": current_age,
        "logged": logged,
    }


def _sync(session, query, actor_id: str) -> List[Dict[str, Any]]:
    results = []
    for cycle in query.order_by(Cycle.id).all():
        change = update_cycle_feed(session, cycle, actor_id, force=False)
        if change is not None:
            results.append(change)
    return results


def sync_feed(actor: ActorContext, session=None) -> Dict[str, Any]:
    """
    Bring every active cycle the actor manages up to today's age.

    Cycles whose age has not advanced are left untouched.

    Returns:
        Dictionary with updated_count and the per-cycle changes
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = (
            session.query(Cycle)
            .join(Farmer, Cycle.farmer_id == Farmer.id)
            .filter(Farmer.status == FarmerStatus.ACTIVE.value)
        )
        if not actor.is_admin:
            query = query.filter(Farmer.officer_id == actor.actor_id)
        changes = _sync(session, query, actor.actor_id)

    log_operation(
        logger,
        operation="sync_feed",
        outcome="success",
        actor_id=actor.actor_id,
        updated_count=len(changes),
    )
    return {"updated_count": len(changes), "cycles": changes}


def sync_all_feed(session=None) -> Dict[str, Any]:
    """Scheduled daily run over the active cycles of every active farmer."""
    return sync_feed(SYSTEM_ACTOR, session=session)
