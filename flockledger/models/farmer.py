"""
Farmer model.

A farmer owns a single shared feed reserve (``main_stock``, in bags) that
every one of their cycles draws from, plus the running total of feed ever
consumed by their closed cycles. Only ``stock_service`` writes these two
columns.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, Index, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import FarmerStatus


class Farmer(BaseModel):
    """
    Farmer managed by a field officer.

    Attributes:
        name: Farmer name, stored upper-case
        organization_id: Owning organization (external identity)
        officer_id: Managing officer (external identity)
        main_stock: Feed bags currently held, shared across cycles
        total_consumed: Feed bags consumed by all closed cycles
        status: 'active' or 'archived'
        location: Optional farm location, back-filled from the first sale
        mobile: Optional phone number, back-filled from the first sale
    """

    __tablename__ = "farmers"

    name = Column(String(100), nullable=False)
    organization_id = Column(String(64), nullable=False)
    officer_id = Column(String(64), nullable=False)

    main_stock = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    total_consumed = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    status = Column(String(20), nullable=False, default=FarmerStatus.ACTIVE.value)
    location = Column(String(200), nullable=True)
    mobile = Column(String(32), nullable=True)

    cycles = relationship("Cycle", back_populates="farmer", passive_deletes=True)
    histories = relationship("CycleHistory", back_populates="farmer", passive_deletes=True)

    __table_args__ = (
        Index("idx_farmer_officer", "officer_id"),
        Index("idx_farmer_organization", "organization_id"),
        CheckConstraint("total_consumed >= 0", name="ck_farmer_total_consumed_non_negative"),
        CheckConstraint(
            "status IN ('active', 'archived')", name="ck_farmer_status_valid"
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == FarmerStatus.ACTIVE.value
