"""
Cycle model for active production batches.

A cycle is one placement of day-old chicks (DOC) still in production.
``created_at`` doubles as the cycle start date: it is back-dated on
creation so the elapsed-day arithmetic of the feed model agrees with the
officer's stated age.
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Cycle(BaseModel):
    """
    Active production cycle.

    Attributes:
        name: Cycle label shown to officers
        farmer_id: Owning farmer
        organization_id: Organization of the farmer at creation time
        doc: Day-old chicks placed (>= 1)
        mortality: Cumulative dead birds
        birds_sold: Cumulative birds sold
        age: Age in days as of the last feed recalculation
        intake: Cumulative feed bags consumed (written by feed_service only)
        bird_type: Optional breed label
        status: Always 'active'
    """

    __tablename__ = "cycles"

    name = Column(String(100), nullable=False)
    farmer_id = Column(
        Integer, ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False
    )
    organization_id = Column(String(64), nullable=True)

    doc = Column(Integer, nullable=False)
    mortality = Column(Integer, nullable=False, default=0)
    birds_sold = Column(Integer, nullable=False, default=0)
    age = Column(Integer, nullable=False, default=0)
    intake = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    bird_type = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="active")

    farmer = relationship("Farmer", back_populates="cycles")

    __table_args__ = (
        Index("idx_cycle_farmer", "farmer_id"),
        Index("idx_cycle_organization", "organization_id"),
        CheckConstraint("doc >= 1", name="ck_cycle_doc_positive"),
        CheckConstraint("mortality >= 0", name="ck_cycle_mortality_non_negative"),
        CheckConstraint("birds_sold >= 0", name="ck_cycle_birds_sold_non_negative"),
        CheckConstraint("age >= 0", name="ck_cycle_age_non_negative"),
        CheckConstraint("intake >= 0", name="ck_cycle_intake_non_negative"),
        CheckConstraint(
            "mortality + birds_sold <= doc", name="ck_cycle_population_within_doc"
        ),
    )

    @property
    def start_date(self):
        return self.created_at

    @property
    def remaining_birds(self) -> int:
        return self.doc - self.mortality - self.birds_sold
