"""
Enumerations for the flock ledger.

This module contains enums used across the ledger models:
- CycleLogType: Kind of entry in a cycle's audit trail
- StockLogType: Reason for a change to a farmer's feed stock
- FarmerStatus: Whether a farmer is still managed
- IntakeSource: Which source of truth produced a history's final intake
- NotificationType: Severity/category of a manager notification
"""

from enum import Enum


class CycleLogType(str, Enum):
    """
    Cycle audit log entry type.

    Values:
        MORTALITY: Birds recorded dead (negative when reverted)
        FEED: Feed intake recalculated
        SALES: Birds sold or a sale report adjusted
        SYSTEM: Lifecycle transitions, forced recalculations, DOC and age corrections
        NOTE: Free-form officer note (cycle start)
    """

    MORTALITY = "MORTALITY"
    FEED = "FEED"
    SALES = "SALES"
    SYSTEM = "SYSTEM"
    NOTE = "NOTE"


class StockLogType(str, Enum):
    """
    Feed stock ledger entry type.

    Values:
        INITIAL: Opening stock when the farmer is registered
        RESTOCK: Feed delivered to the farmer
        CORRECTION: Manual deduction or the credit of a reopened cycle
        CYCLE_CLOSE: Final intake of an ended cycle debited from stock
    """

    INITIAL = "INITIAL"
    RESTOCK = "RESTOCK"
    CORRECTION = "CORRECTION"
    CYCLE_CLOSE = "CYCLE_CLOSE"


class FarmerStatus(str, Enum):
    """Farmer lifecycle status."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class IntakeSource(str, Enum):
    """
    Source of truth for a history row's final intake.

    Values:
        MANUAL: Officer supplied the figure when ending the cycle
        LAST_SALE: Feed consumed reported by the sale that emptied the house
        RECALCULATED: Modelled intake after a report adjustment emptied the house
    """

    MANUAL = "manual"
    LAST_SALE = "last_sale"
    RECALCULATED = "recalculated"


class NotificationType(str, Enum):
    """Manager notification category."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    SUCCESS = "SUCCESS"
    UPDATE = "UPDATE"
    SALES = "SALES"
