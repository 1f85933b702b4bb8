"""
OrganizationSettings model.

Per-organization overrides of the feed price and the cumulative feed
schedule. Organizations without a row use the defaults in
``flockledger.utils.constants``.
"""

from sqlalchemy import Column, Numeric, String, Text

from .base import BaseModel


class OrganizationSettings(BaseModel):
    """
    Attributes:
        organization_id: Organization the settings apply to (unique)
        feed_price_per_bag: Price of one feed bag used for profit figures
        feed_schedule: Optional JSON object mapping day -> cumulative grams per bird
    """

    __tablename__ = "organization_settings"

    organization_id = Column(String(64), nullable=False, unique=True)
    feed_price_per_bag = Column(Numeric(10, 2), nullable=True)
    feed_schedule = Column(Text, nullable=True)
