"""
CycleLog model: the append-only audit trail of a cycle.

A log row belongs to an active cycle or to its archived history, never
both; ending and reopening a cycle moves the rows via ``owner``.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .base import BaseModel
from .owner import OwnedByCycleMixin, exactly_one_owner_constraint


class CycleLog(OwnedByCycleMixin, BaseModel):
    """
    Audit entry for a cycle.

    Attributes:
        cycle_id / history_id: Exactly one is set (see ``owner``)
        actor_id: Who caused the entry
        type: CycleLogType value
        value_change: Signed delta (birds or bags)
        previous_value / new_value: Optional before/after snapshot
        note: Human-readable description
        is_reverted: Set on a MORTALITY entry once it has been reverted
    """

    __tablename__ = "cycle_logs"

    cycle_id = Column(
        Integer, ForeignKey("cycles.id", ondelete="CASCADE"), nullable=True
    )
    history_id = Column(
        Integer, ForeignKey("cycle_history.id", ondelete="CASCADE"), nullable=True
    )
    actor_id = Column(String(64), nullable=True)

    type = Column(String(20), nullable=False)
    value_change = Column(Float, nullable=False, default=0.0)
    previous_value = Column(Float, nullable=True)
    new_value = Column(Float, nullable=True)
    note = Column(Text, nullable=True)
    is_reverted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_cycle_log_cycle", "cycle_id"),
        Index("idx_cycle_log_history", "history_id"),
        Index("idx_cycle_log_type", "type"),
        exactly_one_owner_constraint("cycle_log"),
    )
