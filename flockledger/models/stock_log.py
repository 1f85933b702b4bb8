"""StockLog model: append-only ledger of a farmer's feed stock changes."""

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text

from .base import BaseModel


class StockLog(BaseModel):
    """
    One signed change to ``Farmer.main_stock``.

    Attributes:
        farmer_id: Farmer whose stock changed
        amount: Signed bags (negative for debits)
        type: StockLogType value
        reference_id: Cycle/history id or other correlating reference
        note: Human-readable description
        actor_id: Who caused the change
    """

    __tablename__ = "stock_logs"

    farmer_id = Column(
        Integer, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False
    )
    amount = Column(Numeric(14, 4), nullable=False)
    type = Column(String(20), nullable=False)
    reference_id = Column(String(64), nullable=True)
    note = Column(Text, nullable=True)
    actor_id = Column(String(64), nullable=True)

    __table_args__ = (
        Index("idx_stock_log_farmer", "farmer_id"),
        Index("idx_stock_log_type", "type"),
    )
