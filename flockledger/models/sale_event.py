"""
SaleEvent and SaleReport models: the sales ledger.

A SaleEvent is one physical sale. Its figures are versioned as SaleReports;
the newest report (highest created_at, then highest id) is current and the
event's own figure columns mirror it for convenience reads.

``total_mortality`` is the cycle's mortality to date at the time of the
sale, not a delta. The largest value any report has recorded is the
mortality floor.
"""

from decimal import Decimal

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .owner import OwnedByCycleMixin, exactly_one_owner_constraint


class SaleFiguresMixin:
    """Quantity and money figures shared by events and their reports."""

    house_birds = Column(Integer, nullable=False, default=0)
    birds_sold = Column(Integer, nullable=False)
    total_mortality = Column(Integer, nullable=False, default=0)
    total_weight = Column(Numeric(12, 3), nullable=False)
    avg_weight = Column(Numeric(10, 3), nullable=False, default=Decimal("0"))
    price_per_kg = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    cash_received = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    deposit_received = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    medicine_cost = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    # JSON arrays of {"type": str, "bags": number}
    feed_consumed = Column(Text, nullable=False, default="[]")
    feed_stock = Column(Text, nullable=False, default="[]")
    created_by = Column(String(64), nullable=True)


class SaleEvent(OwnedByCycleMixin, SaleFiguresMixin, BaseModel):
    """
    One physical sale transaction.

    Attributes:
        cycle_id / history_id: Exactly one is set (see ``owner``)
        location: Where the sale took place
        party: Optional buyer
        sale_date: Date of the sale
        reports: Versions of the figures, newest first
    """

    __tablename__ = "sale_events"

    cycle_id = Column(
        Integer, ForeignKey("cycles.id", ondelete="CASCADE"), nullable=True
    )
    history_id = Column(
        Integer, ForeignKey("cycle_history.id", ondelete="CASCADE"), nullable=True
    )
    location = Column(String(200), nullable=False)
    party = Column(String(200), nullable=True)
    sale_date = Column(DateTime, nullable=False)

    reports = relationship(
        "SaleReport",
        back_populates="sale_event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="(SaleReport.created_at.desc(), SaleReport.id.desc())",
    )

    __table_args__ = (
        Index("idx_sale_event_cycle", "cycle_id"),
        Index("idx_sale_event_history", "history_id"),
        Index("idx_sale_event_date", "sale_date"),
        exactly_one_owner_constraint("sale_event"),
    )

    @property
    def current_report(self):
        return self.reports[0] if self.reports else None


class SaleReport(SaleFiguresMixin, BaseModel):
    """
    A version of a sale's figures.

    Attributes:
        sale_event_id: Parent sale event
        adjustment_note: Why this version was issued
    """

    __tablename__ = "sale_reports"

    sale_event_id = Column(
        Integer, ForeignKey("sale_events.id", ondelete="CASCADE"), nullable=False
    )
    adjustment_note = Column(Text, nullable=True)

    sale_event = relationship("SaleEvent", back_populates="reports")

    __table_args__ = (
        Index("idx_sale_report_event", "sale_event_id"),
        Index("idx_sale_report_created", "created_at"),
    )
