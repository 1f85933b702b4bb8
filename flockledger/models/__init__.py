"""
Database models package.

This package contains all SQLAlchemy ORM models for the ledger.
"""

from .base import Base, BaseModel
from .enums import (
    CycleLogType,
    FarmerStatus,
    IntakeSource,
    NotificationType,
    StockLogType,
)
from .owner import LogOwner
from .farmer import Farmer
from .cycle import Cycle
from .cycle_history import CycleHistory
from .cycle_log import CycleLog
from .stock_log import StockLog
from .sale_event import SaleEvent, SaleReport
from .organization_settings import OrganizationSettings

__all__ = [
    "Base",
    "BaseModel",
    "CycleLogType",
    "FarmerStatus",
    "IntakeSource",
    "NotificationType",
    "StockLogType",
    "LogOwner",
    "Farmer",
    "Cycle",
    "CycleHistory",
    "CycleLog",
    "StockLog",
    "SaleEvent",
    "SaleReport",
    "OrganizationSettings",
]
