"""
Farmer Service - registration and archival of farmers.

Farmer names are stored upper-case and must be unique, ignoring case,
among the active farmers an officer manages in one organization.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from flockledger.models import Cycle, Farmer, FarmerStatus, NotificationType
from flockledger.services import notification_service, stock_service
from flockledger.services.access import ActorContext, ensure_manages_farmer
from flockledger.services.database import session_scope
from flockledger.services.exceptions import (
    DuplicateFarmerName,
    FarmerHasActiveCycles,
    FarmerNotFound,
)
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.services.notification_service import PendingNotification
from flockledger.utils.constants import MAX_NAME_LENGTH
from flockledger.utils.validators import (
    require,
    sanitize_string,
    validate_non_negative_number,
    validate_required_string,
    validate_string_length,
)

logger = get_service_logger(__name__)


def create_farmer(
    actor: ActorContext,
    name: str,
    organization_id: str,
    initial_stock=0,
    location: Optional[str] = None,
    mobile: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Register a farmer managed by the calling officer.

    Args:
        actor: Officer registering the farmer (becomes the managing officer)
        name: Farmer name (stored upper-case)
        organization_id: Organization the farmer belongs to
        initial_stock: Opening feed stock in bags (>= 0)
        location: Optional farm location
        mobile: Optional phone number
        session: Optional database session

    Returns:
        Dictionary of the created farmer

    Raises:
        InvalidInput: Name missing or too long, negative stock
        DuplicateFarmerName: The officer already has an active farmer of that name
    """
    require(
        validate_required_string(name, "Farmer name"),
        validate_string_length(name, MAX_NAME_LENGTH, "Farmer name", min_length=2),
        validate_non_negative_number(initial_stock, "Initial stock"),
    )
    normalized = name.strip().upper()

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        existing = (
            session.query(Farmer)
            .filter(
                Farmer.organization_id == organization_id,
                Farmer.officer_id == actor.actor_id,
                Farmer.status == FarmerStatus.ACTIVE.value,
                func.upper(Farmer.name) == normalized,
            )
            .first()
        )
        if existing is not None:
            raise DuplicateFarmerName(normalized)

        farmer = Farmer(
            name=normalized,
            organization_id=organization_id,
            officer_id=actor.actor_id,
            location=sanitize_string(location),
            mobile=sanitize_string(mobile),
        )
        session.add(farmer)
        session.flush()
        stock_service.record_initial_stock(session, farmer, initial_stock, actor.actor_id)
        session.flush()
        result = farmer.to_dict()

    log_operation(
        logger,
        operation="create_farmer",
        outcome="success",
        farmer_id=result["id"],
        organization_id=organization_id,
    )
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=organization_id,
            title="New Farmer Added",
            message=f"Officer {actor.display_name} added farmer \"{normalized}\"",
            type=NotificationType.INFO,
            link=f"/farmers/{result['id']}",
        )
    )
    return result


def get_farmer(actor: ActorContext, farmer_id: int, session=None) -> Dict[str, Any]:
    """Return a farmer the actor manages."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = session.query(Farmer).filter(Farmer.id == farmer_id).first()
        if farmer is None:
            raise FarmerNotFound(farmer_id)
        ensure_manages_farmer(actor, farmer)
        return farmer.to_dict()


def list_farmers(
    actor: ActorContext, organization_id: str, include_archived: bool = False, session=None
) -> List[Dict[str, Any]]:
    """List the farmers the actor manages in an organization, by name."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(Farmer).filter(Farmer.organization_id == organization_id)
        if not actor.is_admin:
            query = query.filter(Farmer.officer_id == actor.actor_id)
        if not include_archived:
            query = query.filter(Farmer.status == FarmerStatus.ACTIVE.value)
        return [farmer.to_dict() for farmer in query.order_by(Farmer.name).all()]


def archive_farmer(actor: ActorContext, farmer_id: int, session=None) -> Dict[str, Any]:
    """
    Archive a farmer with no cycles in production.

    The name gets a short suffix so the original name can be registered again.

    Raises:
        FarmerNotFound: No such farmer
        Forbidden: Actor does not manage the farmer
        FarmerHasActiveCycles: The farmer still has active cycles
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        farmer = stock_service.lock_farmer(session, farmer_id)
        ensure_manages_farmer(actor, farmer)
        active_count = session.query(Cycle).filter(Cycle.farmer_id == farmer_id).count()
        if active_count:
            raise FarmerHasActiveCycles(farmer_id, active_count)

        original_name = farmer.name
        if farmer.is_active:
            farmer.status = FarmerStatus.ARCHIVED.value
            farmer.name = f"{original_name}_{farmer.uuid[:4].upper()}"
        session.flush()
        result = farmer.to_dict()

    log_operation(logger, operation="archive_farmer", outcome="success", farmer_id=farmer_id)
    notification_service.notify_org_managers(
        PendingNotification(
            organization_id=result["organization_id"],
            title="Farmer Profile Archived",
            message=f"Officer {actor.display_name} archived farmer \"{original_name}\"",
            type=NotificationType.WARNING,
        )
    )
    return result
