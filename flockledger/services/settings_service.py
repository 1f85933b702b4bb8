"""
Organization Settings Service.

Per-organization feed price and feed schedule overrides. Lookups fall back
to the defaults in ``flockledger.utils.constants`` when an organization
has no settings row or leaves a value unset.
"""

import json
from contextlib import nullcontext
from typing import Any, Dict, Mapping, Optional

from flockledger.models import OrganizationSettings
from flockledger.services.access import ActorContext
from flockledger.services.database import session_scope
from flockledger.services.exceptions import Forbidden, InvalidInput
from flockledger.services.logging_utils import get_service_logger, log_operation
from flockledger.utils.constants import CUMULATIVE_FEED_SCHEDULE, FEED_PRICE_PER_BAG
from flockledger.utils.validators import require, to_decimal, validate_positive_number

logger = get_service_logger(__name__)


def _load(session, organization_id: Optional[str]) -> Optional[OrganizationSettings]:
    if not organization_id:
        return None
    return (
        session.query(OrganizationSettings)
        .filter(OrganizationSettings.organization_id == organization_id)
        .first()
    )


def parse_feed_schedule(raw) -> Dict[int, int]:
    """
    Parse and validate a cumulative feed schedule.

    Accepts a mapping or its JSON text. Keys are days (0 must be present),
    values are cumulative grams per bird and may never decrease.

    Raises:
        InvalidInput: Malformed schedule
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidInput(f"Feed schedule is not valid JSON: {e}") from e
    if not isinstance(raw, Mapping) or not raw:
        raise InvalidInput("Feed schedule must be a non-empty mapping of day to grams")
    try:
        schedule = {int(day): int(grams) for day, grams in raw.items()}
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Feed schedule entries must be whole numbers: {e}") from e
    if 0 not in schedule:
        raise InvalidInput("Feed schedule must start at day 0")
    previous = -1
    for day in sorted(schedule):
        if day < 0:
            raise InvalidInput(f"Feed schedule day cannot be negative (got {day})")
        if schedule[day] < previous:
            raise InvalidInput(
                f"Feed schedule must not decrease: day {day} has {schedule[day]}g "
                f"after {previous}g"
            )
        previous = schedule[day]
    return schedule


def get_feed_schedule(session, organization_id: Optional[str]) -> Dict[int, int]:
    """Cumulative grams per bird by day for an organization."""
    settings = _load(session, organization_id)
    if settings is None or not settings.feed_schedule:
        return CUMULATIVE_FEED_SCHEDULE
    return parse_feed_schedule(settings.feed_schedule)


def get_feed_price(session, organization_id: Optional[str]) -> float:
    """Feed price per bag for an organization."""
    settings = _load(session, organization_id)
    if settings is None or settings.feed_price_per_bag is None:
        return float(FEED_PRICE_PER_BAG)
    return float(settings.feed_price_per_bag)


def get_settings(organization_id: str, session=None) -> Dict[str, Any]:
    """Effective settings of an organization, defaults filled in."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        settings = _load(session, organization_id)
        return {
            "organization_id": organization_id,
            "feed_price_per_bag": get_feed_price(session, organization_id),
            "feed_schedule": get_feed_schedule(session, organization_id),
            "is_default": settings is None,
        }


def update_settings(
    actor: ActorContext,
    organization_id: str,
    feed_price_per_bag=None,
    feed_schedule=None,
    session=None,
) -> Dict[str, Any]:
    """
    Create or update an organization's settings. Admins only.

    Args:
        actor: Caller; must be an admin
        organization_id: Organization to configure
        feed_price_per_bag: New feed price (> 0), or None to keep
        feed_schedule: New cumulative schedule, or None to keep

    Raises:
        Forbidden: Caller is not an admin
        InvalidInput: Bad price or schedule
    """
    if not actor.is_admin:
        raise Forbidden(f"Actor '{actor.actor_id}' cannot change organization settings")
    if feed_price_per_bag is not None:
        require(validate_positive_number(feed_price_per_bag, "Feed price per bag"))
    schedule = parse_feed_schedule(feed_schedule) if feed_schedule is not None else None

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        settings = _load(session, organization_id)
        if settings is None:
            settings = OrganizationSettings(organization_id=organization_id)
            session.add(settings)
        if feed_price_per_bag is not None:
            settings.feed_price_per_bag = to_decimal(feed_price_per_bag, places=2)
        if schedule is not None:
            settings.feed_schedule = json.dumps({str(day): schedule[day] for day in sorted(schedule)})
        session.flush()
        result = get_settings(organization_id, session=session)

    log_operation(
        logger,
        operation="update_settings",
        outcome="success",
        organization_id=organization_id,
    )
    return result
