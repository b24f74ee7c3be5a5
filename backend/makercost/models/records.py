"""
One JSON-payload table per synced entity.

Rows are keyed by (user_id, id) so fixed ids such as the shop settings
record can exist once per user.
"""
from typing import Dict, Type

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.sql import func

from makercost.core.database import Base


class RecordMixin:
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), primary_key=True, index=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class QuoteRecord(RecordMixin, Base):
    __tablename__ = "quotes"


class MachineRecord(RecordMixin, Base):
    __tablename__ = "machines"


class MaterialRecord(RecordMixin, Base):
    __tablename__ = "materials"


class ShopRecord(RecordMixin, Base):
    __tablename__ = "shop_settings"


class SubscriptionRecord(RecordMixin, Base):
    __tablename__ = "subscriptions"


class ProjectRecord(RecordMixin, Base):
    __tablename__ = "projects"


ENTITY_TABLES: Dict[str, Type[RecordMixin]] = {
    "quotes": QuoteRecord,
    "machines": MachineRecord,
    "materials": MaterialRecord,
    "shop": ShopRecord,
    "subscription": SubscriptionRecord,
    "projects": ProjectRecord,
}
