"""
Cycle Lifecycle Service - creation, mortality, end, reopen and corrections.

A cycle moves through exactly these states:

    (none) --create--> active --end--> archived --delete--> (none)
                                         |
                                         +--reopen--> active (new identity)

Every mutation runs in one transaction: the cycle row is locked, all
checks run before the first write, and the feed intake is recalculated
before commit. Manager notifications are sent after the transaction.

Feature: cycle lifecycle and sales reconciliation ledger
"""

import logging
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func

from flockledger.models import (
    Cycle,
    CycleHistory,
    CycleLog,
    CycleLogType,
    Farmer,
    IntakeSource,
    LogOwner,
    NotificationType,
    SaleEvent,
    SaleReport,
)
from flockledger.services import feed_service, notification_service, stock_service
from flockledger.services.access import (
    ActorContext,
    ensure_farmer_active,
    ensure_manages_farmer,
)
from flockledger.services.cycle_ref import (
    ActiveCycleRef,
    ArchivedCycleRef,
    load_cycle,
    load_history,
    resolve_owner,
    resolve_uuid,
    to_summary,
)
from flockledger.services.database import session_scope
from flockledger.services.exceptions import (
    CorrectionLocked,
    CycleLogNotFound,
    FarmerNotFound,
    LogNotRevertible,
    MortalityFloorViolation,
    NegativeMortality,
    PopulationCeilingExceeded,
)
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.services.notification_service import PendingNotification
from flockledger.utils.constants import (
    MAX_DOC,
    MAX_NAME_LENGTH,
    MAX_NEW_CYCLE_AGE,
    MAX_NOTE_LENGTH,
    MIN_REASON_LENGTH,
)
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


# =============================================================================
# Shared helpers
# =============================================================================


def _lock_for_change(session, actor: ActorContext, cycle_id: int):
    """Lock an active cycle and check the actor may change it."""
    cycle = load_cycle(session, cycle_id, lock=True)
    farmer = cycle.farmer
    ensure_manages_farmer(actor, farmer)
    ensure_farmer_active(farmer)
    return cycle, farmer


def _add_log(
    session,
    owner: LogOwner,
    log_type: CycleLogType,
    actor_id: Optional[str],
    note: str,
    value_change: float = 0,
    previous_value: Optional[float] = None,
    new_value: Optional[float] = None,
    created_at: Optional[datetime] = None,
) -> CycleLog:
    entry = CycleLog(
        actor_id=actor_id,
        type=log_type.value,
        value_change=value_change,
        previous_value=previous_value,
        new_value=new_value,
        note=note,
    )
    entry.owner = owner
    if created_at is not None:
        entry.created_at = created_at
    session.add(entry)
    return entry


def move_cycle_records(
    session, source: LogOwner, target: LogOwner, include_sales: bool = True
) -> None:
    """Re-parent the logs (and sale events) of one owner to another."""
    session.flush()
    models = (CycleLog, SaleEvent) if include_sales else (CycleLog,)
    for model in models:
        column = model.cycle_id if source.is_active else model.history_id
        session.query(model).filter(column == source.id).update(
            target.as_columns(), synchronize_session="fetch"
        )


def cycle_mortality_floor(session, owner: LogOwner) -> int:
    """Largest total_mortality any sale report of the owner has recorded (0 if none)."""
    column = SaleEvent.cycle_id if owner.is_active else SaleEvent.history_id
    floor = (
        session.query(func.max(SaleReport.total_mortality))
        .join(SaleEvent, SaleReport.sale_event_id == SaleEvent.id)
        .filter(column == owner.id)
        .scalar()
    )
    return int(floor or 0)


def check_mortality_floor(proposed: int, floor: int) -> None:
    """
    Raise if a proposed total mortality breaks the floor or goes negative.

    Raises:
        MortalityFloorViolation: proposed is below a figure a report recorded
        NegativeMortality: proposed is below zero
    """
    if floor > 0 and proposed < floor:
        raise MortalityFloorViolation(proposed, floor)
    if proposed < 0:
        raise NegativeMortality(proposed)


def check_population(mortality: int, birds_sold: int, doc: int) -> None:
    """Raise PopulationCeilingExceeded unless mortality + birds_sold <= doc."""
    if mortality + birds_sold > doc:
        raise PopulationCeilingExceeded(mortality, birds_sold, doc)


def _require_reason(reason: Optional[str]) -> str:
    require(
        validate_required_string(reason, "Reason"),
        validate_string_length(reason, MAX_NOTE_LENGTH, "Reason", min_length=MIN_REASON_LENGTH),
    )
    return reason.strip()


# =============================================================================
# Create / mortality
# =============================================================================


def create_cycle(
    actor: ActorContext,
    farmer_id: int,
    name: str,
    doc: int,
    age: int = 0,
    bird_type: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Start a new cycle for a farmer.

    A cycle reported at age N is back-dated N-1 days so that the elapsed
    days since ``created_at`` match its age from the start.

    Args:
        actor: Caller; must manage the farmer
        farmer_id: Farmer the birds are placed with
        name: Cycle label
        doc: Day-old chicks placed (1..MAX_DOC)
        age: Current age of the birds in days (0..40)
        bird_type: Optional breed label
        session: Optional database session

    Returns:
        Summary dictionary of the new cycle

    Raises:
        FarmerNotFound: No such farmer
        Forbidden: Actor does not manage the farmer
        FarmerArchived: Farmer is archived
        InvalidInput: Bad name, DOC or age
    """
    require(
        validate_required_string(name, "Cycle name"),
        validate_string_length(name, MAX_NAME_LENGTH, "Cycle name"),
        validate_integer(doc, "DOC"),
        validate_number_range(doc, 1, MAX_DOC, "DOC"),
        validate_integer(age, "Age"),
        validate_number_range(age, 0, MAX_NEW_CYCLE_AGE, "Age"),
    )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = session.query(Farmer).filter(Farmer.id == farmer_id).first()
        if farmer is None:
            raise FarmerNotFound(farmer_id)
        ensure_manages_farmer(actor, farmer)
        ensure_farmer_active(farmer)

        now = utc_now()
        started_at = now - timedelta(days=age - 1) if age > 1 else now
        cycle = Cycle(
            name=name.strip(),
            farmer_id=farmer.id,
            organization_id=farmer.organization_id,
            doc=doc,
            mortality=0,
            birds_sold=0,
            age=age,
            intake=to_decimal(0),
            bird_type=sanitize_string(bird_type),
            created_at=started_at,
            updated_at=now,
        )
        session.add(cycle)
        session.flush()

        _add_log(
            session,
            LogOwner.cycle(cycle.id),
            CycleLogType.NOTE,
            actor.actor_id,
            note=f"Cycle started with {doc} birds at age {age}.",
            value_change=doc,
        )
        feed_service.update_cycle_feed(
            session, cycle, actor.actor_id, force=True, note="Initial intake calculated."
        )
        result = to_summary(ActiveCycleRef(cycle))
        farmer_name = farmer.name

    log_operation(
        logger,
        operation="create_cycle",
        outcome="success",
        cycle_id=result["id"],
        farmer_id=farmer_id,
        doc=doc,
        age=age,
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=result["organization_id"],
            title="New Cycle Started",
            message=(
                f"Officer {actor.display_name} started cycle \"{result['name']}\" "
                f"for farmer \"{farmer_name}\" with {doc} birds"
            ),
            type=NotificationType.INFO,
            link=f"/cycles/{result['uuid']}",
        )
    )
    return result


def add_mortality(
    actor: ActorContext,
    cycle_id: int,
    amount: int,
    reason: Optional[str] = None,
    recorded_at: Optional[datetime] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Record dead birds on an active cycle.

    Args:
        actor: Caller; must manage the farmer
        cycle_id: Active cycle
        amount: Dead birds (> 0)
        reason: Optional note
        recorded_at: Optional back-dated time of death (not before the cycle start)
        session: Optional database session

    Returns:
        Summary dictionary of the updated cycle

    Raises:
        CycleNotFound: No such active cycle
        PopulationCeilingExceeded: mortality + amount + birds_sold would exceed DOC
    """
    require(
        validate_integer(amount, "Mortality"),
        validate_positive_number(amount, "Mortality"),
        validate_number_range(amount, 1, MAX_DOC, "Mortality"),
        validate_string_length(reason, MAX_NOTE_LENGTH, "Reason"),
    )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle, farmer = _lock_for_change(session, actor, cycle_id)

        previous = cycle.mortality
        new_mortality = previous + amount
        try:
            check_population(new_mortality, cycle.birds_sold, cycle.doc)
        except PopulationCeilingExceeded:
            log_operation(
                logger,
                operation="add_mortality",
                outcome="rejected",
                level=logging.WARNING,
                cycle_id=cycle_id,
                amount=amount,
                doc=cycle.doc,
            )
            raise
        if recorded_at is not None:
            require(_check_not_before_start(recorded_at, cycle.created_at))

        cycle.mortality = new_mortality
        cycle.updated_at = utc_now()
        _add_log(
            session,
            LogOwner.cycle(cycle.id),
            CycleLogType.MORTALITY,
            actor.actor_id,
            note=sanitize_string(reason) or "Reported death",
            value_change=amount,
            previous_value=previous,
            new_value=new_mortality,
            created_at=recorded_at,
        )
        session.flush()
        feed_service.update_cycle_feed(
            session,
            cycle,
            actor.actor_id,
            force=True,
            note=(
                f"Mortality added ({amount} birds). Recalculated intake for "
                f"{cycle.doc - cycle.mortality - cycle.birds_sold} live birds."
            ),
            effective_date=recorded_at,
        )
        result = to_summary(ActiveCycleRef(cycle))
        farmer_name = farmer.name

    log_operation(
        logger,
        operation="add_mortality",
        outcome="success",
        cycle_id=cycle_id,
        amount=amount,
        mortality=result["mortality"],
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=result["organization_id"],
            title="Mortality Reported",
            message=(
                f"Officer {actor.display_name} reported {amount} dead birds for cycle "
                f"\"{result['name']}\" ({farmer_name})"
            ),
            type=NotificationType.WARNING,
            link=f"/cycles/{result['uuid']}",
        )
    )
    return result


def _check_not_before_start(recorded_at: datetime, started_at: datetime):
    if to_date(recorded_at) < to_date(started_at):
        return (
            False,
            f"Date: {to_date(recorded_at).isoformat()} is before the cycle start "
            f"{to_date(started_at).isoformat()}",
        )
    if as_utc(recorded_at) > utc_now():
        return False, "Date: cannot be in the future"
    return True, ""


# =============================================================================
# End / reopen / delete
# =============================================================================


def _end_cycle_impl(
    session,
    cycle: Cycle,
    actor: ActorContext,
    final_intake,
    intake_source: IntakeSource = IntakeSource.MANUAL,
) -> CycleHistory:
    """
    Archive a locked active cycle inside the caller's transaction.

    ``final_intake`` is the authoritative figure for the whole cycle and
    replaces the running ``intake``; ``intake_source`` records which source
    of truth supplied it.
    """
    final_intake = to_decimal(final_intake)
    now = utc_now()
    history = CycleHistory(
        cycle_name=cycle.name,
        farmer_id=cycle.farmer_id,
        organization_id=cycle.organization_id,
        doc=cycle.doc,
        mortality=cycle.mortality,
        birds_sold=cycle.birds_sold,
        age=cycle.age,
        final_intake=final_intake,
        intake_source=intake_source.value,
        bird_type=cycle.bird_type,
        start_date=cycle.created_at,
        end_date=now,
    )
    session.add(history)
    session.flush()

    history_owner = LogOwner.history(history.id)
    move_cycle_records(session, LogOwner.cycle(cycle.id), history_owner)
    _add_log(
        session,
        history_owner,
        CycleLogType.SYSTEM,
        actor.actor_id,
        note=f"Cycle ended. Total consumption: {float(final_intake):.2f} bags.",
        previous_value=float(cycle.intake or 0),
        new_value=float(final_intake),
    )
    stock_service.debit_cycle_close(
        session, cycle.farmer_id, final_intake, history.id, cycle.name, actor.actor_id
    )
    session.delete(cycle)
    session.flush()

    log_operation(
        logger,
        operation="end_cycle",
        outcome="success",
        history_id=history.id,
        final_intake=float(final_intake),
        intake_source=intake_source.value,
    )
    return history


def end_cycle(actor: ActorContext, cycle_id: int, intake, session=None) -> Dict[str, Any]:
    """
    End an active cycle with the officer's final feed intake.

    Args:
        actor: Caller; must manage the farmer
        cycle_id: Active cycle to archive
        intake: Final intake in bags (>= 0), debited from the farmer's stock
        session: Optional database session

    Returns:
        Summary dictionary of the created history row

    Raises:
        CycleNotFound: No such active cycle
        Forbidden: Actor does not manage the farmer
    """
    require(validate_non_negative_number(intake, "Intake"))

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle = load_cycle(session, cycle_id, lock=True)
        farmer = cycle.farmer
        ensure_manages_farmer(actor, farmer)
        history = _end_cycle_impl(session, cycle, actor, intake, IntakeSource.MANUAL)
        result = to_summary(ArchivedCycleRef(history))
        farmer_name = farmer.name

    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=result["organization_id"],
            title="Cycle Ended",
            message=(
                f"Officer {actor.display_name} ended cycle \"{result['name']}\" "
                f"for farmer \"{farmer_name}\""
            ),
            type=NotificationType.WARNING,
            link=f"/cycles/{result['uuid']}",
            details={"final_intake": result["intake"]},
        )
    )
    return result


def _delete_sale_events(session, owner: LogOwner) -> int:
    column = SaleEvent.cycle_id if owner.is_active else SaleEvent.history_id
    events = session.query(SaleEvent).filter(column == owner.id).all()
    for sale_event in events:
        session.delete(sale_event)
    return len(events)


def reopen_cycle(actor: ActorContext, history_id: int, session=None) -> Dict[str, Any]:
    """
    Move an archived cycle back into production.

    The new active cycle copies DOC, mortality and age, and starts from the
    history's final intake. Its sale events and reports are deleted, so
    birds sold restarts at zero. The final intake goes back into the
    farmer's stock and comes off total consumption, exactly reversing the
    end.

    Raises:
        CycleHistoryNotFound: No such history
        Forbidden: Actor does not manage the farmer
        FarmerArchived: Farmer is archived
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        history = load_history(session, history_id)
        farmer = history.farmer
        ensure_manages_farmer(actor, farmer)
        ensure_farmer_active(farmer)

        cycle = Cycle(
            name=history.cycle_name,
            farmer_id=history.farmer_id,
            organization_id=history.organization_id,
            doc=history.doc,
            mortality=history.mortality,
            birds_sold=0,
            age=history.age,
            intake=history.final_intake,
            bird_type=history.bird_type,
            created_at=history.start_date,
            updated_at=utc_now(),
        )
        session.add(cycle)
        session.flush()

        cycle_owner = LogOwner.cycle(cycle.id)
        cleared = _delete_sale_events(session, LogOwner.history(history.id))
        move_cycle_records(session, LogOwner.history(history.id), cycle_owner, include_sales=False)
        stock_service.credit_cycle_reopen(
            session,
            history.farmer_id,
            history.final_intake,
            cycle.id,
            history.cycle_name,
            actor.actor_id,
        )
        session.delete(history)
        session.flush()

        feed_service.update_cycle_feed(
            session,
            cycle,
            actor.actor_id,
            force=True,
            note=f"Cycle \"{cycle.name}\" reopened. Recalculated intake.",
        )
        _add_log(
            session,
            cycle_owner,
            CycleLogType.SYSTEM,
            actor.actor_id,
            note=(
                f"Cycle reopened: \"{cycle.name}\" was moved back from archive. "
                f"{cleared} sale event(s) were cleared."
            ),
        )
        session.flush()
        result = to_summary(ActiveCycleRef(cycle))
        farmer_name = farmer.name

    log_operation(
        logger,
        operation="reopen_cycle",
        outcome="success",
        history_id=history_id,
        cycle_id=result["id"],
        cleared_sale_events=cleared,
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=result["organization_id"],
            title="Cycle Reopened",
            message=(
                f"Officer {actor.display_name} reopened cycle \"{result['name']}\" "
                f"for farmer \"{farmer_name}\""
            ),
            type=NotificationType.UPDATE,
            link=f"/cycles/{result['uuid']}",
        )
    )
    return result


def delete_history(actor: ActorContext, history_id: int, session=None) -> Dict[str, Any]:
    """
    Permanently delete an archived cycle with its logs, sale events and reports.

    Stock is not touched; the consumption booked at the end stays booked.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        history = load_history(session, history_id)
        ensure_manages_farmer(actor, history.farmer)

        owner = LogOwner.history(history.id)
        cleared = _delete_sale_events(session, owner)
        removed_logs = (
            session.query(CycleLog)
            .filter(CycleLog.history_id == history.id)
            .delete(synchronize_session="fetch")
        )
        session.delete(history)
        session.flush()

    log_operation(
        logger,
        operation="delete_history",
        outcome="success",
        history_id=history_id,
        sale_events=cleared,
        logs=removed_logs,
    )
    return {"history_id": history_id, "deleted_sale_events": cleared, "deleted_logs": removed_logs}


# =============================================================================
# Corrections
# =============================================================================


def correct_doc(
    actor: ActorContext, cycle_id: int, new_doc: int, reason: str, session=None
) -> Dict[str, Any]:
    """
    Correct the number of day-old chicks placed.

    Locked once birds have been sold. Intake is recalculated because it is
    derived from the population.

    Raises:
        CorrectionLocked: Birds have already been sold
        PopulationCeilingExceeded: new_doc is below mortality + birds sold
    """
    require(
        validate_integer(new_doc, "DOC"),
        validate_number_range(new_doc, 1, MAX_DOC, "DOC"),
    )
    reason = _require_reason(reason)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle, _farmer = _lock_for_change(session, actor, cycle_id)
        if cycle.birds_sold > 0:
            raise CorrectionLocked("DOC", cycle.birds_sold)
        check_population(cycle.mortality, cycle.birds_sold, new_doc)

        old_doc = cycle.doc
        changed = new_doc != old_doc
        if changed:
            cycle.doc = new_doc
            cycle.updated_at = utc_now()
            _add_log(
                session,
                LogOwner.cycle(cycle.id),
                CycleLogType.SYSTEM,
                actor.actor_id,
                note=f"DOC corrected from {old_doc} to {new_doc}. Reason: {reason}",
                value_change=new_doc - old_doc,
                previous_value=old_doc,
                new_value=new_doc,
            )
            session.flush()
            feed_service.update_cycle_feed(
                session,
                cycle,
                actor.actor_id,
                force=True,
                note=f"DOC corrected to {new_doc}. Recalculated intake.",
            )
        result = to_summary(ActiveCycleRef(cycle))

    log_operation(
        logger,
        operation="correct_doc",
        outcome="success" if changed else "unchanged",
        cycle_id=cycle_id,
        old_doc=old_doc,
        new_doc=new_doc,
    )
    return result


def correct_age(
    actor: ActorContext, cycle_id: int, new_age: int, reason: str, session=None
) -> Dict[str, Any]:
    """
    Correct a cycle's age by moving its start date.

    Locked once birds have been sold.

    Raises:
        CorrectionLocked: Birds have already been sold
    """
    require(
        validate_integer(new_age, "Age"),
        validate_number_range(new_age, 1, MAX_NEW_CYCLE_AGE, "Age"),
    )
    reason = _require_reason(reason)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cycle, _farmer = _lock_for_change(session, actor, cycle_id)
        if cycle.birds_sold > 0:
            raise CorrectionLocked("age", cycle.birds_sold)

        old_age = cycle.age
        changed = new_age != old_age
        if changed:
            now = utc_now()
            cycle.created_at = now - timedelta(days=new_age - 1)
            cycle.updated_at = now
            _add_log(
                session,
                LogOwner.cycle(cycle.id),
                CycleLogType.SYSTEM,
                actor.actor_id,
                note=f"Age corrected from {old_age} to {new_age}. Reason: {reason}",
                previous_value=old_age,
                new_value=new_age,
            )
            session.flush()
            feed_service.update_cycle_feed(
                session,
                cycle,
                actor.actor_id,
                force=True,
                note=f"Age corrected to {new_age}. Recalculated intake.",
            )
        result = to_summary(ActiveCycleRef(cycle))

    log_operation(
        logger,
        operation="correct_age",
        outcome="success" if changed else "unchanged",
        cycle_id=cycle_id,
        old_age=old_age,
        new_age=new_age,
    )
    return result


def revert_mortality_log(actor: ActorContext, log_id: int, session=None) -> Dict[str, Any]:
    """
    Undo a recorded death entry.

    The original entry is flagged reverted and a negative MORTALITY entry is
    written with the original entry's timestamp, so the feed model treats
    the birds as alive for the whole interval.

    Raises:
        CycleLogNotFound: No such log
        LogNotRevertible: Not a positive, unreverted MORTALITY log of an active cycle
        MortalityFloorViolation: A sale report already locked in a higher mortality
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        entry = session.query(CycleLog).filter(CycleLog.id == log_id).first()
        if entry is None:
            raise CycleLogNotFound(log_id)
        if entry.type != CycleLogType.MORTALITY.value:
            raise LogNotRevertible(log_id, "only mortality logs can be reverted")
        if entry.cycle_id is None:
            raise LogNotRevertible(log_id, "the cycle has ended; reopen it first")

        cycle, _farmer = _lock_for_change(session, actor, entry.cycle_id)
        if entry.is_reverted:
            raise LogNotRevertible(log_id, "it has already been reverted")
        if (entry.value_change or 0) <= 0:
            raise LogNotRevertible(log_id, "it is a correction, not a recorded death")

        amount = int(entry.value_change)
        previous = cycle.mortality
        new_mortality = previous - amount
        check_mortality_floor(new_mortality, cycle_mortality_floor(session, LogOwner.cycle(cycle.id)))

        entry.is_reverted = True
        cycle.mortality = new_mortality
        cycle.updated_at = utc_now()
        _add_log(
            session,
            LogOwner.cycle(cycle.id),
            CycleLogType.MORTALITY,
            actor.actor_id,
            note=f"Reverted mortality: previously reported {amount} birds.",
            value_change=-amount,
            previous_value=previous,
            new_value=new_mortality,
            created_at=entry.created_at,
        )
        session.flush()
        feed_service.update_cycle_feed(
            session,
            cycle,
            actor.actor_id,
            force=True,
            note="Mortality reverted. Recalculated intake for the updated live bird count.",
            effective_date=entry.created_at,
        )
        result = to_summary(ActiveCycleRef(cycle))

    log_operation(
        logger,
        operation="revert_mortality_log",
        outcome="success",
        log_id=log_id,
        cycle_id=result["id"],
        amount=amount,
    )
    return result


# =============================================================================
# Queries
# =============================================================================


def _log_dicts(session, owner: LogOwner) -> List[Dict[str, Any]]:
    column = CycleLog.cycle_id if owner.is_active else CycleLog.history_id
    entries = (
        session.query(CycleLog)
        .filter(column == owner.id)
        .order_by(CycleLog.created_at.desc(), CycleLog.id.desc())
        .all()
    )
    return [entry.to_dict() for entry in entries]


def get_cycle_details(
    actor: ActorContext, identifier: Union[LogOwner, str], session=None
) -> Dict[str, Any]:
    """
    Describe one cycle, active or archived.

    Args:
        actor: Caller; must manage the farmer
        identifier: A LogOwner, or the cycle's public UUID (active rows first)

    Returns:
        {"type": "active" | "history", "data", "logs", "history", "farmer"}
        where "history" lists the farmer's other cycles, active first
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if isinstance(identifier, LogOwner):
            ref = resolve_owner(session, identifier)
        else:
            ref = resolve_uuid(session, identifier)
        farmer = ref.farmer
        ensure_manages_farmer(actor, farmer)

        other_active = (
            session.query(Cycle)
            .filter(Cycle.farmer_id == farmer.id)
            .order_by(Cycle.created_at.desc(), Cycle.id.desc())
            .all()
        )
        other_history = (
            session.query(CycleHistory)
            .filter(CycleHistory.farmer_id == farmer.id)
            .order_by(CycleHistory.end_date.desc(), CycleHistory.id.desc())
            .all()
        )
        combined = [
            to_summary(ActiveCycleRef(row))
            for row in other_active
            if ref.is_ended or row.id != ref.id
        ] + [
            to_summary(ArchivedCycleRef(row))
            for row in other_history
            if not ref.is_ended or row.id != ref.id
        ]

        return {
            "type": ref.kind,
            "data": to_summary(ref),
            "logs": _log_dicts(session, ref.owner),
            "history": combined,
            "farmer": {
                "id": farmer.id,
                "name": farmer.name,
                "organization_id": farmer.organization_id,
                "main_stock": float(farmer.main_stock or 0),
                "location": farmer.location,
                "mobile": farmer.mobile,
            },
        }


def _scoped_query(session, model, actor: ActorContext, farmer_id, organization_id, search):
    query = session.query(model, Farmer).join(Farmer, model.farmer_id == Farmer.id)
    if not actor.is_admin:
        query = query.filter(Farmer.officer_id == actor.actor_id)
    if farmer_id is not None:
        query = query.filter(model.farmer_id == farmer_id)
    if organization_id is not None:
        query = query.filter(model.organization_id == organization_id)
    if search:
        pattern = f"%{search.strip().upper()}%"
        name_column = model.name if model is Cycle else model.cycle_name
        query = query.filter(
            (func.upper(Farmer.name).like(pattern)) | (func.upper(name_column).like(pattern))
        )
    return query


def list_active_cycles(
    actor: ActorContext,
    farmer_id: Optional[int] = None,
    organization_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
    session=None,
) -> Dict[str, Any]:
    """Page through the active cycles the actor manages, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = _scoped_query(session, Cycle, actor, farmer_id, organization_id, search)
        total = query.count()
        rows = (
            query.order_by(Cycle.created_at.desc(), Cycle.id.desc())
            .offset(max(0, page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        items = []
        for cycle, farmer in rows:
            item = to_summary(ActiveCycleRef(cycle))
            item["farmer_name"] = farmer.name
            item["farmer_main_stock"] = float(farmer.main_stock or 0)
            items.append(item)
        return {"items": items, "total": total, "page": page, "page_size": page_size}


def list_past_cycles(
    actor: ActorContext,
    farmer_id: Optional[int] = None,
    organization_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
    session=None,
) -> Dict[str, Any]:
    """Page through the archived cycles the actor manages, most recently ended first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = _scoped_query(session, CycleHistory, actor, farmer_id, organization_id, search)
        total = query.count()
        rows = (
            query.order_by(CycleHistory.end_date.desc(), CycleHistory.id.desc())
            .offset(max(0, page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        items = []
        for history, farmer in rows:
            item = to_summary(ArchivedCycleRef(history))
            item["farmer_name"] = farmer.name
            items.append(item)
        return {"items": items, "total": total, "page": page, "page_size": page_size}
