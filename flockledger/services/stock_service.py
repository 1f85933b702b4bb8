"""
Feed Stock Service - the only writer of a farmer's feed stock.

``Farmer.main_stock`` is one counter shared by every cycle of a farmer, so
each change locks the farmer row, applies the signed amount, and appends a
StockLog inside the caller's transaction.

This module provides:
- Opening stock for new farmers
- Manual restock and deduction
- The debit of a closing cycle's final intake and its exact reversal on reopen
- The stock ledger of a farmer
"""

import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flockledger.models import Farmer, StockLog, StockLogType
from flockledger.services.access import ActorContext, ensure_manages_farmer
from flockledger.services.database import session_scope
from flockledger.services.exceptions import FarmerNotFound, InsufficientFeedStock
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.utils.validators import (
    require,
    sanitize_string,
    to_decimal,
    validate_positive_number,
)

logger = get_service_logger(__name__)


def lock_farmer(session, farmer_id: int) -> Farmer:
    """Fetch a farmer with a row lock, or raise FarmerNotFound."""
    farmer = (
        session.query(Farmer).filter(Farmer.id == farmer_id).with_for_update().first()
    )
    if farmer is None:
        raise FarmerNotFound(farmer_id)
    return farmer


def _apply(
    session,
    farmer: Farmer,
    amount: Decimal,
    log_type: StockLogType,
    actor_id: Optional[str],
    note: Optional[str],
    reference_id=None,
    consumed_delta: Decimal = Decimal("0"),
) -> StockLog:
    farmer.main_stock = (farmer.main_stock or Decimal("0")) + amount
    farmer.total_consumed = (farmer.total_consumed or Decimal("0")) + consumed_delta
    entry = StockLog(
        farmer_id=farmer.id,
        amount=amount,
        type=log_type.value,
        reference_id=str(reference_id) if reference_id is not None else None,
        note=note,
        actor_id=actor_id,
    )
    session.add(entry)
    return entry


def record_initial_stock(session, farmer: Farmer, amount, actor_id: str) -> Optional[StockLog]:
    """Book a new farmer's opening stock (no log when it is zero)."""
    amount = to_decimal(amount)
    if amount <= 0:
        return None
    return _apply(
        session,
        farmer,
        amount,
        StockLogType.INITIAL,
        actor_id,
        note=f"Opening stock: {amount} bags",
    )


def debit_cycle_close(
    session,
    farmer_id: int,
    intake,
    history_id: int,
    cycle_name: str,
    actor_id: Optional[str],
) -> Farmer:
    """
    Debit a closing cycle's final intake from stock and credit consumption.

    Stock is allowed to go negative (feed delivered outside the ledger is a
    common cause); that case is logged as a warning.
    """
    amount = to_decimal(intake)
    farmer = lock_farmer(session, farmer_id)
    farmer.main_stock = (farmer.main_stock or Decimal("0")) - amount
    farmer.total_consumed = (farmer.total_consumed or Decimal("0")) + amount
    if amount > 0:
        session.add(
            StockLog(
                farmer_id=farmer.id,
                amount=-amount,
                type=StockLogType.CYCLE_CLOSE.value,
                reference_id=str(history_id),
                note=f"Cycle '{cycle_name}' closed: {amount} bags consumed",
                actor_id=actor_id,
            )
        )
    if farmer.main_stock < 0:
        log_operation(
            logger,
            operation="debit_cycle_close",
            outcome="negative_stock",
            level=logging.WARNING,
            farmer_id=farmer.id,
            main_stock=float(farmer.main_stock),
            intake=float(amount),
        )
    return farmer


def credit_cycle_reopen(
    session,
    farmer_id: int,
    final_intake,
    cycle_id: int,
    cycle_name: str,
    actor_id: Optional[str],
) -> Farmer:
    """Exactly reverse ``debit_cycle_close`` for a reopened cycle."""
    amount = to_decimal(final_intake)
    farmer = lock_farmer(session, farmer_id)
    if amount > 0:
        _apply(
            session,
            farmer,
            amount,
            StockLogType.CORRECTION,
            actor_id,
            note=f"Cycle '{cycle_name}' reopened: {amount} bags returned to stock",
            reference_id=cycle_id,
            consumed_delta=-amount,
        )
    return farmer


def restock(
    actor: ActorContext,
    farmer_id: int,
    amount,
    note: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Add delivered feed bags to a farmer's stock.

    Args:
        actor: Caller; must manage the farmer
        farmer_id: Farmer receiving the feed
        amount: Bags delivered (> 0)
        note: Optional delivery note
        session: Optional database session

    Returns:
        Dictionary with farmer_id, main_stock and stock_log_id
    """
    require(validate_positive_number(amount, "Restock amount"))
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = lock_farmer(session, farmer_id)
        ensure_manages_farmer(actor, farmer)
        amount = to_decimal(amount)
        entry = _apply(
            session,
            farmer,
            amount,
            StockLogType.RESTOCK,
            actor.actor_id,
            note=sanitize_string(note) or f"Restocked {amount} bags",
        )
        session.flush()
        result = {
            "farmer_id": farmer.id,
            "main_stock": float(farmer.main_stock),
            "stock_log_id": entry.id,
        }

    log_operation(logger, operation="restock", outcome="success", **result)
    return result


def deduct_stock(
    actor: ActorContext,
    farmer_id: int,
    amount,
    note: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Remove feed bags from a farmer's stock as a manual correction.

    Raises:
        InsufficientFeedStock: The deduction would make stock negative
    """
    require(validate_positive_number(amount, "Deduction amount"))
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = lock_farmer(session, farmer_id)
        ensure_manages_farmer(actor, farmer)
        amount = to_decimal(amount)
        if amount > farmer.main_stock:
            raise InsufficientFeedStock(float(amount), float(farmer.main_stock))
        entry = _apply(
            session,
            farmer,
            -amount,
            StockLogType.CORRECTION,
            actor.actor_id,
            note=sanitize_string(note) or f"Deducted {amount} bags",
        )
        session.flush()
        result = {
            "farmer_id": farmer.id,
            "main_stock": float(farmer.main_stock),
            "stock_log_id": entry.id,
        }

    log_operation(logger, operation="deduct_stock", outcome="success", **result)
    return result


def get_stock_history(actor: ActorContext, farmer_id: int, session=None) -> List[Dict[str, Any]]:
    """Return a farmer's stock ledger, newest entry first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = session.query(Farmer).filter(Farmer.id == farmer_id).first()
        if farmer is None:
            raise FarmerNotFound(farmer_id)
        ensure_manages_farmer(actor, farmer)
        entries = (
            session.query(StockLog)
            .filter(StockLog.farmer_id == farmer_id)
            .order_by(StockLog.created_at.desc(), StockLog.id.desc())
            .all()
        )
        return [entry.to_dict() for entry in entries]
