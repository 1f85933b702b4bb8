"""
CycleHistory model for archived production batches.

Created by ending a cycle, removed by deleting it or by reopening it (which
creates a fresh active cycle). Nothing updates a history row in place.
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import IntakeSource


class CycleHistory(BaseModel):
    """
    Archived cycle.

    Attributes:
        cycle_name: Name the cycle carried while active
        final_intake: Authoritative feed bags consumed by the whole cycle
        intake_source: Which source of truth produced final_intake
        start_date: Start (created_at) of the active cycle
        end_date: When the cycle was ended
    """

    __tablename__ = "cycle_history"

    cycle_name = Column(String(100), nullable=False)
    farmer_id = Column(
        Integer, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False
    )
    organization_id = Column(String(64), nullable=True)

    doc = Column(Integer, nullable=False)
    mortality = Column(Integer, nullable=False, default=0)
    birds_sold = Column(Integer, nullable=False, default=0)
    age = Column(Integer, nullable=False, default=0)
    final_intake = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    intake_source = Column(String(20), nullable=False, default=IntakeSource.MANUAL.value)

    bird_type = Column(String(50), nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="archived")

    farmer = relationship("Farmer", back_populates="histories")

    __table_args__ = (
        Index("idx_cycle_history_farmer", "farmer_id"),
        Index("idx_cycle_history_end_date", "end_date"),
        CheckConstraint("doc >= 1", name="ck_cycle_history_doc_positive"),
        CheckConstraint("final_intake >= 0", name="ck_cycle_history_intake_non_negative"),
    )

    @property
    def name(self) -> str:
        return self.cycle_name
