"""
Sales Reconciliation Service - sale events, report versions and the cycle
inventory they drive.

A sale moves birds out of an active cycle. Its figures are kept as a chain
of SaleReports; issuing a new report re-applies the difference against the
previous version to the cycle, so the cycle's mortality and birds sold
always agree with the current reports.

Two guards protect the ledger:

- Mortality floor: a sale report records the cycle's total mortality at the
  time of sale. No later change may bring mortality below the largest such
  figure.
- Population ceiling: mortality + birds sold never exceeds DOC.

When a sale (or an adjustment) empties the house, the cycle is ended in the
same transaction.

Feature: cycle lifecycle and sales reconciliation ledger
"""

import logging
from contextlib import nullcontext
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, or_

from flockledger.models import (
    Cycle,
    CycleHistory,
    CycleLogType,
    Farmer,
    IntakeSource,
    LogOwner,
    NotificationType,
    SaleEvent,
    SaleReport,
)
from flockledger.services import (
    feed_service,
    metrics_service,
    notification_service,
    settings_service,
)
from flockledger.services.access import (
    ActorContext,
    ensure_farmer_active,
    ensure_manages_farmer,
)
from flockledger.services.cycle_ref import load_cycle, resolve_owner
from flockledger.services.cycle_service import (
    _add_log,
    _end_cycle_impl,
    check_mortality_floor,
    check_population,
    cycle_mortality_floor,
)
from flockledger.services.database import session_scope
from flockledger.services.exceptions import (
    FarmerNotFound,
    InsufficientBirds,
    InvalidInput,
    MortalityFloorViolation,
    SaleDateBeforeCycleStart,
    SaleEventNotFound,
)
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.services.notification_service import PendingNotification
from flockledger.utils.constants import MAX_DOC, MAX_NOTE_LENGTH
from flockledger.utils.datetime_utils import as_utc, to_date, utc_now
from flockledger.utils.validators import (
    require,
    sanitize_string,
    to_decimal,
    validate_integer,
    validate_non_negative_number,
    validate_number_range,
    validate_positive_number,
    validate_required_string,
    validate_string_length,
)

logger = get_service_logger(__name__)

MAX_LOCATION_LENGTH = 200


# =============================================================================
# Helpers
# =============================================================================


def _coerce_sale_date(value: Union[date, datetime, None]) -> datetime:
    """Sale dates may be given as a date (midnight UTC) or a datetime."""
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise InvalidInput(f"Sale date: expected a date or datetime (got {value!r})")


def _money(value) -> Decimal:
    return to_decimal(value or 0, places=2)


def _figures(
    birds_sold: int,
    total_weight,
    price_per_kg,
    cash_received,
    deposit_received,
    medicine_cost,
) -> Dict[str, Decimal]:
    weight = to_decimal(total_weight, places=3)
    price = to_decimal(price_per_kg, places=2)
    return {
        "total_weight": weight,
        "avg_weight": to_decimal(weight / birds_sold, places=3),
        "price_per_kg": price,
        "total_amount": to_decimal(weight * price, places=2),
        "cash_received": _money(cash_received),
        "deposit_received": _money(deposit_received),
        "medicine_cost": _money(medicine_cost),
    }


def _validate_figures(birds_sold, total_weight, price_per_kg, cash, deposit, medicine) -> None:
    require(
        validate_integer(birds_sold, "Birds sold"),
        validate_positive_number(birds_sold, "Birds sold"),
        validate_number_range(birds_sold, 1, MAX_DOC, "Birds sold"),
        validate_positive_number(total_weight, "Total weight"),
        validate_positive_number(price_per_kg, "Price per kg"),
        validate_non_negative_number(cash, "Cash received"),
        validate_non_negative_number(deposit, "Deposit received"),
        validate_non_negative_number(medicine, "Medicine cost"),
    )


def _latest_report(session, sale_event_id: int) -> Optional[SaleReport]:
    return (
        session.query(SaleReport)
        .filter(SaleReport.sale_event_id == sale_event_id)
        .order_by(SaleReport.created_at.desc(), SaleReport.id.desc())
        .first()
    )


def _event_mortality_floor(session, sale_event_id: int) -> int:
    floor = (
        session.query(func.max(SaleReport.total_mortality))
        .filter(SaleReport.sale_event_id == sale_event_id)
        .scalar()
    )
    return int(floor or 0)


def _next_report_time(previous: Optional[SaleReport]) -> datetime:
    """A creation time strictly after the previous version's."""
    now = utc_now()
    if previous is not None and previous.created_at is not None:
        floor = as_utc(previous.created_at) + timedelta(microseconds=1)
        if now < floor:
            return floor
    return now


def _report_dict(report: SaleReport) -> Dict[str, Any]:
    data = report.to_dict()
    data["feed_consumed"] = feed_service.parse_feed_items(report.feed_consumed)
    data["feed_stock"] = feed_service.parse_feed_items(report.feed_stock)
    return data


def _event_dict(event: SaleEvent) -> Dict[str, Any]:
    data = event.to_dict()
    data["feed_consumed"] = feed_service.parse_feed_items(event.feed_consumed)
    data["feed_stock"] = feed_service.parse_feed_items(event.feed_stock)
    data["owner_type"] = event.owner.kind
    return data


def _load_event(session, sale_event_id: int, lock: bool = False) -> SaleEvent:
    query = session.query(SaleEvent).filter(SaleEvent.id == sale_event_id)
    if lock:
        query = query.with_for_update()
    event = query.first()
    if event is None:
        raise SaleEventNotFound(sale_event_id)
    return event


# =============================================================================
# Create
# =============================================================================


def create_sale_event(
    actor: ActorContext,
    cycle_id: int,
    location: str,
    birds_sold: int,
    total_weight,
    price_per_kg,
    feed_consumed,
    feed_stock=None,
    mortality_change: int = 0,
    total_mortality: Optional[int] = None,
    house_birds: Optional[int] = None,
    cash_received=0,
    deposit_received=0,
    medicine_cost=0,
    sale_date: Union[date, datetime, None] = None,
    party: Optional[str] = None,
    farmer_mobile: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Record a sale from an active cycle.

    The sale is stored as an event plus its first report. The cycle's
    mortality and birds sold are updated and its intake recalculated; if no
    birds remain, the cycle is ended with this sale's reported feed as the
    final intake.

    Args:
        actor: Caller; must manage the farmer
        cycle_id: Active cycle the birds come from
        location: Where the sale took place
        birds_sold: Birds sold in this sale (> 0)
        total_weight: Live weight sold in kg (> 0)
        price_per_kg: Price per kg (> 0)
        feed_consumed: Feed consumed to date, ``[{"type", "bags"}]`` (at least one item)
        feed_stock: Feed left at the farm, same shape
        mortality_change: Signed correction to the cycle's mortality reported with the sale
        total_mortality: Cycle mortality to record on the report (defaults to the
            corrected cycle mortality)
        house_birds: Birds in the house before the sale (defaults to the live count)
        cash_received / deposit_received / medicine_cost: Money figures (>= 0)
        sale_date: Date of the sale (defaults to now)
        party: Optional buyer
        farmer_mobile: Stored on the farmer if it has none
        session: Optional database session

    Returns:
        {"sale_event": dict, "cycle_ended": bool, "history_id": int | None}

    Raises:
        CycleNotFound: No such active cycle
        Forbidden: Actor does not manage the farmer
        FarmerArchived: Farmer is archived
        SaleDateBeforeCycleStart: Sale dated before the cycle started
        InsufficientBirds: More birds sold than remain
        MortalityFloorViolation / NegativeMortality: Bad mortality correction
        PopulationCeilingExceeded: Mortality + birds sold would exceed DOC
        InvalidInput: Bad figures or feed items
    """
    _validate_figures(
        birds_sold, total_weight, price_per_kg, cash_received, deposit_received, medicine_cost
    )
    require(
        validate_required_string(location, "Location"),
        validate_string_length(location, MAX_LOCATION_LENGTH, "Location"),
        validate_string_length(party, MAX_LOCATION_LENGTH, "Party"),
        validate_integer(mortality_change, "Mortality change"),
    )
    if total_mortality is not None:
        require(
            validate_integer(total_mortality, "Total mortality"),
            validate_non_negative_number(total_mortality, "Total mortality"),
        )
    if house_birds is not None:
        require(
            validate_integer(house_birds, "House birds"),
            validate_positive_number(house_birds, "House birds"),
        )
    if not feed_service.parse_feed_items(feed_consumed):
        raise InvalidInput("Feed consumed: at least one feed item is required")
    consumed_json = feed_service.serialize_feed_items(feed_consumed)
    stock_json = feed_service.serialize_feed_items(feed_stock)
    sold_at = _coerce_sale_date(sale_date)
    if to_date(sold_at) > to_date(utc_now()):
        raise InvalidInput(f"Sale date: {to_date(sold_at).isoformat()} is in the future")
    figures = _figures(
        birds_sold, total_weight, price_per_kg, cash_received, deposit_received, medicine_cost
    )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle = load_cycle(session, cycle_id, lock=True)
        farmer = cycle.farmer
        ensure_manages_farmer(actor, farmer)
        ensure_farmer_active(farmer)

        if to_date(sold_at) < to_date(cycle.created_at):
            raise SaleDateBeforeCycleStart(to_date(sold_at), to_date(cycle.created_at))

        remaining = cycle.doc - cycle.mortality - cycle.birds_sold
        available = remaining - min(0, mortality_change)
        if birds_sold > available:
            log_operation(
                logger,
                operation="create_sale_event",
                outcome="rejected",
                level=logging.WARNING,
                cycle_id=cycle_id,
                birds_sold=birds_sold,
                available=available,
            )
            raise InsufficientBirds(birds_sold, available)

        owner = LogOwner.cycle(cycle.id)
        new_mortality = cycle.mortality + mortality_change
        check_mortality_floor(new_mortality, cycle_mortality_floor(session, owner))
        new_birds_sold = cycle.birds_sold + birds_sold
        check_population(new_mortality, new_birds_sold, cycle.doc)
        if total_mortality is not None:
            check_population(total_mortality, new_birds_sold, cycle.doc)

        if not farmer.location:
            farmer.location = location.strip()
        if not farmer.mobile and sanitize_string(farmer_mobile):
            farmer.mobile = sanitize_string(farmer_mobile)

        if house_birds is None:
            house_birds = cycle.doc - new_mortality - cycle.birds_sold
        if total_mortality is None:
            total_mortality = new_mortality

        event = SaleEvent(
            location=location.strip(),
            party=sanitize_string(party),
            sale_date=sold_at,
            house_birds=house_birds,
            birds_sold=birds_sold,
            total_mortality=total_mortality,
            feed_consumed=consumed_json,
            feed_stock=stock_json,
            created_by=actor.actor_id,
            **figures,
        )
        event.owner = owner
        session.add(event)
        session.flush()
        report = SaleReport(
            sale_event_id=event.id,
            house_birds=house_birds,
            birds_sold=birds_sold,
            total_mortality=total_mortality,
            feed_consumed=consumed_json,
            feed_stock=stock_json,
            created_by=actor.actor_id,
            created_at=_next_report_time(None),
            **figures,
        )
        session.add(report)

        previous_mortality = cycle.mortality
        cycle.mortality = new_mortality
        cycle.birds_sold = new_birds_sold
        cycle.updated_at = utc_now()
        session.flush()
        feed_service.update_cycle_feed(
            session,
            cycle,
            actor.actor_id,
            force=True,
            note="Sale recorded. Recalculated intake for the remaining birds.",
            effective_date=sold_at,
        )

        history_id = None
        cycle_name = cycle.name
        if new_birds_sold >= cycle.doc - new_mortality:
            history = _end_cycle_impl(
                session,
                cycle,
                actor,
                feed_service.total_bags(consumed_json),
                IntakeSource.LAST_SALE,
            )
            history_id = history.id
            owner = LogOwner.history(history.id)

        _add_log(
            session,
            owner,
            CycleLogType.SALES,
            actor.actor_id,
            note=(
                f"Sold {birds_sold} birds ({float(figures['total_weight']):.2f} kg at "
                f"{float(figures['price_per_kg']):.2f}/kg) at {location.strip()}."
            ),
            value_change=birds_sold,
            previous_value=new_birds_sold - birds_sold,
            new_value=new_birds_sold,
            created_at=sold_at,
        )
        if mortality_change != 0:
            _add_log(
                session,
                owner,
                CycleLogType.MORTALITY,
                actor.actor_id,
                note=f"Mortality corrected by {mortality_change:+d} at sale.",
                value_change=mortality_change,
                previous_value=previous_mortality,
                new_value=new_mortality,
                created_at=sold_at,
            )
        session.flush()
        result = {
            "sale_event": _event_dict(event),
            "cycle_ended": history_id is not None,
            "history_id": history_id,
        }
        organization_id = farmer.organization_id
        farmer_name = farmer.name

    log_operation(
        logger,
        operation="create_sale_event",
        outcome="success",
        cycle_id=cycle_id,
        sale_event_id=result["sale_event"]["id"],
        birds_sold=birds_sold,
        cycle_ended=result["cycle_ended"],
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=organization_id,
            title="Cycle Ended by Sale" if result["cycle_ended"] else "New Sale",
            message=(
                f"Officer {actor.display_name} sold {birds_sold} birds from cycle "
                f"\"{cycle_name}\" ({farmer_name})"
            ),
            type=NotificationType.SALES,
            link=f"/sales/{result['sale_event']['uuid']}",
        )
    )
    return result


# =============================================================================
# Adjust
# =============================================================================


def generate_sale_report(
    actor: ActorContext,
    sale_event_id: int,
    birds_sold: int,
    total_mortality: int,
    total_weight,
    price_per_kg,
    adjustment_note: Optional[str] = None,
    location: Optional[str] = None,
    party: Optional[str] = None,
    cash_received=0,
    deposit_received=0,
    medicine_cost=0,
    feed_consumed=None,
    feed_stock=None,
    session=None,
) -> Dict[str, Any]:
    """
    Issue a new version of a sale's figures and reconcile the cycle.

    The differences in birds sold and mortality against the current report
    are applied to the cycle while it is still active. Archived cycles keep
    their figures; only the report chain grows.

    Returns:
        {"report", "birds_sold_difference", "mortality_difference",
         "cycle_ended", "history_id"}

    Raises:
        SaleEventNotFound: No such sale event
        Forbidden: Actor does not manage the farmer
        MortalityFloorViolation: total_mortality is below an earlier version's
        PopulationCeilingExceeded: The adjusted cycle would exceed its DOC
    """
    _validate_figures(
        birds_sold, total_weight, price_per_kg, cash_received, deposit_received, medicine_cost
    )
    require(
        validate_integer(total_mortality, "Total mortality"),
        validate_non_negative_number(total_mortality, "Total mortality"),
        validate_string_length(adjustment_note, MAX_NOTE_LENGTH, "Adjustment note"),
        validate_string_length(location, MAX_LOCATION_LENGTH, "Location"),
        validate_string_length(party, MAX_LOCATION_LENGTH, "Party"),
    )
    consumed_json = (
        feed_service.serialize_feed_items(feed_consumed) if feed_consumed is not None else None
    )
    stock_json = feed_service.serialize_feed_items(feed_stock) if feed_stock is not None else None
    figures = _figures(
        birds_sold, total_weight, price_per_kg, cash_received, deposit_received, medicine_cost
    )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        event = _load_event(session, sale_event_id, lock=True)
        owner = event.owner
        ref = resolve_owner(session, owner, lock=True)
        farmer = ref.farmer
        ensure_manages_farmer(actor, farmer)
        if owner.is_active:
            ensure_farmer_active(farmer)

        previous = _latest_report(session, event.id)
        floor = _event_mortality_floor(session, event.id)
        if total_mortality < floor:
            log_operation(
                logger,
                operation="generate_sale_report",
                outcome="rejected",
                level=logging.WARNING,
                sale_event_id=sale_event_id,
                proposed=total_mortality,
                floor=floor,
            )
            raise MortalityFloorViolation(total_mortality, floor)
        # The reported figures alone must fit in the placement, active or archived
        check_population(total_mortality, birds_sold, ref.doc)

        basis = previous if previous is not None else event
        mortality_difference = total_mortality - (basis.total_mortality or 0)
        birds_sold_difference = birds_sold - (basis.birds_sold or 0)

        cycle = ref.row if owner.is_active else None
        reconcile = cycle is not None and (mortality_difference or birds_sold_difference)
        if reconcile:
            new_mortality = cycle.mortality + mortality_difference
            new_birds_sold = cycle.birds_sold + birds_sold_difference
            check_mortality_floor(new_mortality, 0)
            check_population(new_mortality, new_birds_sold, cycle.doc)

        report = SaleReport(
            sale_event_id=event.id,
            house_birds=event.house_birds,
            birds_sold=birds_sold,
            total_mortality=total_mortality,
            feed_consumed=consumed_json if consumed_json is not None else event.feed_consumed,
            feed_stock=stock_json if stock_json is not None else event.feed_stock,
            adjustment_note=sanitize_string(adjustment_note),
            created_by=actor.actor_id,
            created_at=_next_report_time(previous),
            **figures,
        )
        session.add(report)

        event.birds_sold = birds_sold
        event.total_mortality = total_mortality
        for column, value in figures.items():
            setattr(event, column, value)
        if sanitize_string(location):
            event.location = location.strip()
        if sanitize_string(party):
            event.party = party.strip()
        if consumed_json is not None:
            event.feed_consumed = consumed_json
        if stock_json is not None:
            event.feed_stock = stock_json
        event.updated_at = utc_now()
        session.flush()

        history_id = None
        cycle_name = ref.name
        log_owner = owner
        if reconcile:
            previous_mortality = cycle.mortality
            previous_birds_sold = cycle.birds_sold
            cycle.mortality = new_mortality
            cycle.birds_sold = new_birds_sold
            cycle.updated_at = utc_now()
            session.flush()
            feed_service.update_cycle_feed(
                session,
                cycle,
                actor.actor_id,
                force=True,
                note="Sale adjusted. Recalculated intake.",
                effective_date=event.sale_date,
            )
            if cycle.doc - new_mortality - new_birds_sold <= 0:
                history = _end_cycle_impl(
                    session, cycle, actor, cycle.intake, IntakeSource.RECALCULATED
                )
                history_id = history.id
                log_owner = LogOwner.history(history.id)

            if mortality_difference:
                _add_log(
                    session,
                    log_owner,
                    CycleLogType.MORTALITY,
                    actor.actor_id,
                    note=f"Sale adjustment: mortality changed by {mortality_difference:+d}.",
                    value_change=mortality_difference,
                    previous_value=previous_mortality,
                    new_value=new_mortality,
                    created_at=event.sale_date,
                )
            if birds_sold_difference:
                _add_log(
                    session,
                    log_owner,
                    CycleLogType.SYSTEM,
                    actor.actor_id,
                    note=f"Sale adjustment: birds sold changed by {birds_sold_difference:+d}.",
                    value_change=birds_sold_difference,
                    previous_value=previous_birds_sold,
                    new_value=new_birds_sold,
                    created_at=event.sale_date,
                )

        note = sanitize_string(adjustment_note)
        _add_log(
            session,
            log_owner,
            CycleLogType.SALES,
            actor.actor_id,
            note=(
                f"Sale report adjusted: {birds_sold} birds, "
                f"{float(figures['total_weight']):.2f} kg at "
                f"{float(figures['price_per_kg']):.2f}/kg."
                + (f" Note: {note}" if note else "")
            ),
            value_change=birds_sold_difference,
        )
        session.flush()
        result = {
            "report": _report_dict(report),
            "birds_sold_difference": birds_sold_difference,
            "mortality_difference": mortality_difference,
            "cycle_ended": history_id is not None,
            "history_id": history_id,
        }
        organization_id = farmer.organization_id
        farmer_name = farmer.name
        event_uuid = event.uuid

    log_operation(
        logger,
        operation="generate_sale_report",
        outcome="success",
        sale_event_id=sale_event_id,
        report_id=result["report"]["id"],
        birds_sold_difference=birds_sold_difference,
        mortality_difference=mortality_difference,
        cycle_ended=result["cycle_ended"],
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=organization_id,
            title="Sale Adjusted",
            message=(
                f"Officer {actor.display_name} adjusted a sale of cycle \"{cycle_name}\" "
                f"({farmer_name}): {birds_sold} birds, "
                f"{float(figures['total_weight']):.2f} kg"
            ),
            type=NotificationType.SALES,
            link=f"/sales/{event_uuid}",
            details={
                "birds_sold_difference": birds_sold_difference,
                "mortality_difference": mortality_difference,
            },
        )
    )
    return result


# =============================================================================
# Queries
# =============================================================================


def get_sale_reports(actor: ActorContext, sale_event_id: int, session=None) -> List[Dict[str, Any]]:
    """All versions of a sale's figures, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        event = _load_event(session, sale_event_id)
        ensure_manages_farmer(actor, resolve_owner(session, event.owner).farmer)
        reports = (
            session.query(SaleReport)
            .filter(SaleReport.sale_event_id == event.id)
            .order_by(SaleReport.created_at.desc(), SaleReport.id.desc())
            .all()
        )
        return [_report_dict(report) for report in reports]


def get_mortality_floor(actor: ActorContext, cycle_id: int, session=None) -> int:
    """Lowest mortality an active cycle may be corrected to."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle = load_cycle(session, cycle_id)
        ensure_manages_farmer(actor, cycle.farmer)
        return cycle_mortality_floor(session, LogOwner.cycle(cycle.id))


def _cycle_context(ref, stats: Dict[str, float]) -> Dict[str, Any]:
    is_ended = ref.is_ended
    feed_bags = ref.intake
    metrics = metrics_service.compute_cycle_metrics(
        ref.doc, ref.mortality, stats["weight"], feed_bags, ref.age, is_ended
    )
    rate = metrics_service.effective_rate(stats["net_adjustment"])
    return {
        "doc": ref.doc,
        "mortality": ref.mortality,
        "age": ref.age,
        "feed_consumed": feed_bags,
        "is_ended": is_ended,
        "fcr": metrics["fcr"],
        "epi": metrics["epi"],
        "revenue": rate * stats["weight"],
        "actual_revenue": stats["revenue"],
        "total_weight": stats["weight"],
        "cumulative_birds_sold": stats["birds_sold"],
        "effective_rate": rate,
        "net_adjustment": stats["net_adjustment"],
    }


def list_sale_events(
    actor: ActorContext,
    cycle_id: Optional[int] = None,
    history_id: Optional[int] = None,
    farmer_id: Optional[int] = None,
    session=None,
) -> List[Dict[str, Any]]:
    """
    List sale events with their report chains and cycle context.

    Exactly one of ``cycle_id``, ``history_id`` or ``farmer_id`` selects the
    events. Each event carries a ``cycle_context`` with the cumulative
    figures of its cycle (FCR and EPI only once the cycle has ended) and
    ``is_latest_in_cycle`` for the newest sale of each cycle.

    Raises:
        InvalidInput: Not exactly one selector given
        NotFound: The selected cycle, history or farmer does not exist
        Forbidden: Actor does not manage the farmer
    """
    selectors = [value for value in (cycle_id, history_id, farmer_id) if value is not None]
    if len(selectors) != 1:
        raise InvalidInput("Exactly one of cycle_id, history_id or farmer_id is required")

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(SaleEvent)
        if farmer_id is not None:
            farmer = session.query(Farmer).filter(Farmer.id == farmer_id).first()
            if farmer is None:
                raise FarmerNotFound(farmer_id)
            ensure_manages_farmer(actor, farmer)
            cycle_ids = session.query(Cycle.id).filter(Cycle.farmer_id == farmer_id)
            history_ids = session.query(CycleHistory.id).filter(
                CycleHistory.farmer_id == farmer_id
            )
            query = query.filter(
                or_(SaleEvent.cycle_id.in_(cycle_ids), SaleEvent.history_id.in_(history_ids))
            )
        else:
            owner = LogOwner.cycle(cycle_id) if cycle_id is not None else LogOwner.history(history_id)
            ensure_manages_farmer(actor, resolve_owner(session, owner).farmer)
            column = SaleEvent.cycle_id if owner.is_active else SaleEvent.history_id
            query = query.filter(column == owner.id)

        events = query.order_by(
            SaleEvent.sale_date.desc(), SaleEvent.created_at.desc(), SaleEvent.id.desc()
        ).all()
        stats = metrics_service.get_cycle_stats(events)

        refs = {}
        seen = set()
        items = []
        for event in events:
            owner = event.owner
            if owner not in refs:
                refs[owner] = resolve_owner(session, owner)
            ref = refs[owner]
            reports = (
                session.query(SaleReport)
                .filter(SaleReport.sale_event_id == event.id)
                .order_by(SaleReport.created_at.desc(), SaleReport.id.desc())
                .all()
            )
            item = _event_dict(event)
            item["reports"] = [_report_dict(report) for report in reports]
            item["cycle_name"] = ref.name
            item["farmer_name"] = ref.farmer.name
            item["is_ended"] = ref.is_ended
            item["is_latest_in_cycle"] = owner not in seen
            item["cycle_context"] = _cycle_context(ref, stats[owner])
            seen.add(owner)
            items.append(item)
        return items


def summarize_cycle_sales(
    actor: ActorContext, history_id: int, session=None
) -> Dict[str, Any]:
    """
    Performance and profit of an archived cycle from its current sale figures.

    The feed price comes from the organization's settings when present.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        ref = resolve_owner(session, LogOwner.history(history_id))
        ensure_manages_farmer(actor, ref.farmer)
        events = session.query(SaleEvent).filter(SaleEvent.history_id == history_id).all()
        stats = metrics_service.get_cycle_stats(events).get(
            ref.owner,
            {"revenue": 0.0, "weight": 0.0, "birds_sold": 0, "net_adjustment": 0.0},
        )
        feed_price = settings_service.get_feed_price(session, ref.organization_id)
        metrics = metrics_service.compute_cycle_metrics(
            ref.doc, ref.mortality, stats["weight"], ref.intake, ref.age, True
        )
        profit = metrics_service.compute_profit(
            stats["weight"], ref.intake, ref.doc, stats["net_adjustment"], feed_price
        )
        return {
            "history_id": history_id,
            "name": ref.name,
            "sales": len(events),
            "actual_revenue": stats["revenue"],
            "birds_sold": stats["birds_sold"],
            "total_weight": stats["weight"],
            "net_adjustment": stats["net_adjustment"],
            **metrics,
            **profit,
        }
