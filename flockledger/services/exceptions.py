"""Service layer exception classes for the flock ledger.

Every rejection carries the threshold that was violated and the value that
violated it, so the officer can correct the input without guessing.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFound
    │   ├── FarmerNotFound
    │   ├── CycleNotFound
    │   ├── CycleHistoryNotFound
    │   ├── CycleLogNotFound
    │   └── SaleEventNotFound
    ├── Forbidden
    ├── BadRequest
    │   ├── InvalidInput
    │   ├── FarmerArchived
    │   ├── SaleDateBeforeCycleStart
    │   ├── InsufficientBirds
    │   ├── MortalityFloorViolation
    │   ├── NegativeMortality
    │   ├── PopulationCeilingExceeded
    │   ├── InsufficientFeedStock
    │   ├── FarmerHasActiveCycles
    │   ├── CorrectionLocked
    │   └── LogNotRevertible
    └── Conflict
        └── DuplicateFarmerName
"""

from datetime import date


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


# =============================================================================
# Taxonomy
# =============================================================================


class NotFound(ServiceError):
    """A referenced farmer, cycle, history or sale event does not exist."""

    pass


class Forbidden(ServiceError):
    """The actor does not manage the resource's farmer."""

    pass


class BadRequest(ServiceError):
    """The request violates an input rule or a population invariant."""

    pass


class Conflict(ServiceError):
    """The request collides with an existing record."""

    pass


# =============================================================================
# Not found
# =============================================================================


class FarmerNotFound(NotFound):
    """Raised when a farmer cannot be found by ID."""

    def __init__(self, farmer_id: int):
        self.farmer_id = farmer_id
        super().__init__(f"Farmer with ID {farmer_id} not found")


class CycleNotFound(NotFound):
    """Raised when an active cycle cannot be found by ID."""

    def __init__(self, cycle_id: int):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle with ID {cycle_id} not found")


class CycleHistoryNotFound(NotFound):
    """Raised when an archived cycle cannot be found by ID."""

    def __init__(self, history_id: int):
        self.history_id = history_id
        super().__init__(f"Cycle history with ID {history_id} not found")


class CycleLogNotFound(NotFound):
    """Raised when a cycle log entry cannot be found by ID."""

    def __init__(self, log_id: int):
        self.log_id = log_id
        super().__init__(f"Cycle log with ID {log_id} not found")


class SaleEventNotFound(NotFound):
    """Raised when a sale event cannot be found by ID."""

    def __init__(self, sale_event_id: int):
        self.sale_event_id = sale_event_id
        super().__init__(f"Sale event with ID {sale_event_id} not found")


# =============================================================================
# Bad request
# =============================================================================


class InvalidInput(BadRequest):
    """Raised when a numeric or text input fails validation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FarmerArchived(BadRequest):
    """Raised when a mutation targets a cycle of an archived farmer."""

    def __init__(self, farmer_id: int, name: str = ""):
        self.farmer_id = farmer_id
        label = f"'{name}'" if name else f"with ID {farmer_id}"
        super().__init__(f"Farmer {label} is archived; cycle changes are not allowed")


class SaleDateBeforeCycleStart(BadRequest):
    """Raised when a sale is dated before the day the cycle started."""

    def __init__(self, sale_date: date, start_date: date):
        self.sale_date = sale_date
        self.start_date = start_date
        super().__init__(
            f"Sale date {sale_date.isoformat()} is before the cycle start date "
            f"{start_date.isoformat()}"
        )


class InsufficientBirds(BadRequest):
    """Raised when more birds are sold than remain in the house."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested} birds: only {available} birds are available"
        )


class MortalityFloorViolation(BadRequest):
    """Raised when mortality would drop below a figure a sale report locked in."""

    def __init__(self, proposed: int, floor: int):
        self.proposed = proposed
        self.floor = floor
        super().__init__(
            f"Cannot set mortality to {proposed}: a sale report already recorded "
            f"{floor}, mortality cannot go below {floor}"
        )


class NegativeMortality(BadRequest):
    """Raised when total mortality would become negative."""

    def __init__(self, proposed: int):
        self.proposed = proposed
        super().__init__(f"Total mortality cannot be negative (got {proposed})")


class PopulationCeilingExceeded(BadRequest):
    """Raised when mortality plus birds sold would exceed the DOC."""

    def __init__(self, mortality: int, birds_sold: int, doc: int):
        self.mortality = mortality
        self.birds_sold = birds_sold
        self.doc = doc
        super().__init__(
            f"Mortality ({mortality}) plus birds sold ({birds_sold}) = "
            f"{mortality + birds_sold} exceeds the DOC of {doc}"
        )


class InsufficientFeedStock(BadRequest):
    """Raised when a manual deduction would take a farmer's stock below zero."""

    def __init__(self, requested: float, available: float):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot deduct {requested} bags: only {available} bags are in stock"
        )


class FarmerHasActiveCycles(BadRequest):
    """Raised when archiving a farmer who still has cycles in production."""

    def __init__(self, farmer_id: int, active_count: int):
        self.farmer_id = farmer_id
        self.active_count = active_count
        super().__init__(
            f"Farmer {farmer_id} has {active_count} active cycle(s); end them before archiving"
        )


class CorrectionLocked(BadRequest):
    """Raised when DOC or age is corrected after sales have started."""

    def __init__(self, field: str, birds_sold: int):
        self.field = field
        self.birds_sold = birds_sold
        super().__init__(
            f"Cannot correct {field}: {birds_sold} birds have already been sold"
        )


class LogNotRevertible(BadRequest):
    """Raised when a cycle log cannot be reverted."""

    def __init__(self, log_id: int, reason: str):
        self.log_id = log_id
        self.reason = reason
        super().__init__(f"Cycle log {log_id} cannot be reverted: {reason}")


# =============================================================================
# Conflict
# =============================================================================


class DuplicateFarmerName(Conflict):
    """Raised when an officer already manages an active farmer with this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A farmer named '{name}' already exists for this officer")
