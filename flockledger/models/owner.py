"""
Owner value type for rows that hang off a cycle.

Cycle logs and sale events belong to exactly one of an active ``Cycle`` or
an archived ``CycleHistory``. The pair of nullable foreign keys is hidden
behind ``LogOwner`` so callers move a row between the two with a single
assignment instead of clearing one column and setting the other.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import CheckConstraint

CYCLE = "cycle"
HISTORY = "history"


@dataclass(frozen=True)
class LogOwner:
    """Either ``LogOwner.cycle(id)`` or ``LogOwner.history(id)``."""

    kind: str
    id: int

    def __post_init__(self):
        if self.kind not in (CYCLE, HISTORY):
            raise ValueError(f"Unknown owner kind: {self.kind!r}")
        if self.id is None:
            raise ValueError("Owner id is required")

    @classmethod
    def cycle(cls, cycle_id: int) -> "LogOwner":
        return cls(CYCLE, cycle_id)

    @classmethod
    def history(cls, history_id: int) -> "LogOwner":
        return cls(HISTORY, history_id)

    @classmethod
    def from_columns(
        cls, cycle_id: Optional[int], history_id: Optional[int]
    ) -> Optional["LogOwner"]:
        if cycle_id is not None:
            return cls.cycle(cycle_id)
        if history_id is not None:
            return cls.history(history_id)
        return None

    @property
    def is_active(self) -> bool:
        return self.kind == CYCLE

    def as_columns(self) -> Dict[str, Optional[int]]:
        """Column values for this owner, with the other key cleared."""
        if self.kind == CYCLE:
            return {"cycle_id": self.id, "history_id": None}
        return {"cycle_id": None, "history_id": self.id}


def exactly_one_owner_constraint(table: str) -> CheckConstraint:
    """Database check that exactly one of cycle_id/history_id is set."""
    return CheckConstraint(
        "(cycle_id IS NULL) <> (history_id IS NULL)",
        name=f"ck_{table}_exactly_one_owner",
    )


class OwnedByCycleMixin:
    """Adds the ``owner`` property over ``cycle_id``/``history_id`` columns."""

    @property
    def owner(self) -> Optional[LogOwner]:
        return LogOwner.from_columns(self.cycle_id, self.history_id)

    @owner.setter
    def owner(self, value: LogOwner) -> None:
        for column, column_value in value.as_columns().items():
            setattr(self, column, column_value)
