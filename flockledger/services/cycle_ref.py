"""
One logical cycle, active or archived.

A cycle lives in the ``cycles`` table while in production and in
``cycle_history`` after it ends, under different column names. ``CycleRef``
wraps either row behind one set of accessors so sales and metrics code
never branches on field names.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from flockledger.models import Cycle, CycleHistory, Farmer, LogOwner
from flockledger.services.exceptions import CycleHistoryNotFound, CycleNotFound


@dataclass(frozen=True)
class ActiveCycleRef:
    """A cycle still in production."""

    row: Cycle

    kind = "active"
    is_ended = False

    @property
    def id(self) -> int:
        return self.row.id

    @property
    def owner(self) -> LogOwner:
        return LogOwner.cycle(self.row.id)

    @property
    def name(self) -> str:
        return self.row.name

    @property
    def farmer_id(self) -> int:
        return self.row.farmer_id

    @property
    def farmer(self) -> Farmer:
        return self.row.farmer

    @property
    def organization_id(self) -> Optional[str]:
        return self.row.organization_id

    @property
    def doc(self) -> int:
        return self.row.doc

    @property
    def mortality(self) -> int:
        return self.row.mortality

    @property
    def birds_sold(self) -> int:
        return self.row.birds_sold

    @property
    def age(self) -> int:
        return self.row.age

    @property
    def intake(self) -> float:
        return float(self.row.intake or 0)

    @property
    def start_date(self) -> datetime:
        return self.row.created_at

    @property
    def end_date(self) -> Optional[datetime]:
        return None


@dataclass(frozen=True)
class ArchivedCycleRef:
    """A cycle that has ended."""

    row: CycleHistory

    kind = "history"
    is_ended = True

    @property
    def id(self) -> int:
        return self.row.id

    @property
    def owner(self) -> LogOwner:
        return LogOwner.history(self.row.id)

    @property
    def name(self) -> str:
        return self.row.cycle_name

    @property
    def farmer_id(self) -> int:
        return self.row.farmer_id

    @property
    def farmer(self) -> Farmer:
        return self.row.farmer

    @property
    def organization_id(self) -> Optional[str]:
        return self.row.organization_id

    @property
    def doc(self) -> int:
        return self.row.doc

    @property
    def mortality(self) -> int:
        return self.row.mortality

    @property
    def birds_sold(self) -> int:
        return self.row.birds_sold

    @property
    def age(self) -> int:
        return self.row.age

    @property
    def intake(self) -> float:
        return float(self.row.final_intake or 0)

    @property
    def start_date(self) -> datetime:
        return self.row.start_date

    @property
    def end_date(self) -> Optional[datetime]:
        return self.row.end_date


CycleRef = Union[ActiveCycleRef, ArchivedCycleRef]


def load_cycle(session, cycle_id: int, lock: bool = False) -> Cycle:
    """Fetch an active cycle, optionally row-locked, or raise CycleNotFound."""
    query = session.query(Cycle).filter(Cycle.id == cycle_id)
    if lock:
        query = query.with_for_update()
    cycle = query.first()
    if cycle is None:
        raise CycleNotFound(cycle_id)
    return cycle


def load_history(session, history_id: int) -> CycleHistory:
    """Fetch an archived cycle or raise CycleHistoryNotFound."""
    history = session.query(CycleHistory).filter(CycleHistory.id == history_id).first()
    if history is None:
        raise CycleHistoryNotFound(history_id)
    return history


def resolve_owner(session, owner: LogOwner, lock: bool = False) -> CycleRef:
    """Load the cycle or history an owner points at."""
    if owner.is_active:
        return ActiveCycleRef(load_cycle(session, owner.id, lock=lock))
    return ArchivedCycleRef(load_history(session, owner.id))


def resolve_uuid(session, cycle_uuid: str) -> CycleRef:
    """
    Look a cycle up by its public UUID, active rows first.

    Raises:
        CycleNotFound: No active or archived cycle carries the UUID
    """
    cycle = session.query(Cycle).filter(Cycle.uuid == cycle_uuid).first()
    if cycle is not None:
        return ActiveCycleRef(cycle)
    history = session.query(CycleHistory).filter(CycleHistory.uuid == cycle_uuid).first()
    if history is not None:
        return ArchivedCycleRef(history)
    raise CycleNotFound(cycle_uuid)


def to_summary(ref: CycleRef) -> Dict[str, Any]:
    """Uniform dictionary view of an active or archived cycle."""
    start = ref.start_date
    end = ref.end_date
    summary = {
        "id": ref.id,
        "uuid": ref.row.uuid,
        "type": ref.kind,
        "name": ref.name,
        "farmer_id": ref.farmer_id,
        "organization_id": ref.organization_id,
        "doc": ref.doc,
        "mortality": ref.mortality,
        "birds_sold": ref.birds_sold,
        "age": ref.age,
        "intake": ref.intake,
        "bird_type": ref.row.bird_type,
        "start_date": start.isoformat() if start else None,
        "end_date": end.isoformat() if end else None,
        "is_ended": ref.is_ended,
        "status": ref.row.status,
    }
    if not ref.is_ended:
        summary["remaining_birds"] = ref.doc - ref.mortality - ref.birds_sold
    else:
        summary["intake_source"] = ref.row.intake_source
    return summary
