"""
Actor context and farmer ownership checks.

Authentication and organization membership live outside the ledger; the
caller hands every request-facing operation an ``ActorContext`` that
already carries the authenticated identity.
"""

from dataclasses import dataclass

from flockledger.models import Farmer
from flockledger.services.exceptions import FarmerArchived, Forbidden


@dataclass(frozen=True)
class ActorContext:
    """Authenticated caller of a ledger operation."""

    actor_id: str
    actor_name: str = ""
    is_admin: bool = False

    @property
    def display_name(self) -> str:
        return self.actor_name or self.actor_id


SYSTEM_ACTOR = ActorContext(actor_id="system", actor_name="System", is_admin=True)


def manages_farmer(actor: ActorContext, farmer: Farmer) -> bool:
    """True when the actor is the farmer's officer or an admin."""
    return actor.is_admin or farmer.officer_id == actor.actor_id


def ensure_manages_farmer(actor: ActorContext, farmer: Farmer) -> None:
    """
    Raise Forbidden unless the actor manages the farmer.

    Raises:
        Forbidden: Actor is neither the farmer's officer nor an admin
    """
    if not manages_farmer(actor, farmer):
        raise Forbidden(
            f"Actor '{actor.actor_id}' does not manage farmer {farmer.id} "
            f"(managed by officer '{farmer.officer_id}')"
        )


def ensure_farmer_active(farmer: Farmer) -> None:
    """Raise FarmerArchived when the farmer no longer accepts cycle changes."""
    if not farmer.is_active:
        raise FarmerArchived(farmer.id, farmer.name)
