import uuid
from datetime import datetime, timezone

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, event, update
from sqlalchemy.orm import relationship

from ..database import Base
from ..users import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    # NULL once the owning user is deleted; the item is retired first
    owner_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Stored uppercased; unique per owner among active items
    sku = Column(String(50), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    location = Column(String(100), nullable=False)
    reorder_point = Column(Integer, nullable=False, default=10)
    supplier = Column(String(100), nullable=True)
    category = Column(String(50), nullable=True)
    purchase_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)

    # data:image/png;base64,... produced by core.qr
    qr_code = Column(Text, nullable=True)

    # 'In Stock' | 'Low Stock' | 'Critical' | 'Out of Stock', see services.stock_status
    status = Column(String(20), nullable=False, index=True)
    last_scanned = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    version_id = Column(Integer, nullable=False, default=1)

    owner = relationship("User", back_populates="items")
    transactions = relationship("InventoryTransaction", back_populates="inventory_item", passive_deletes=True)

    __table_args__ = (
        Index(
            "ux_inventory_items_owner_sku_active",
            "owner_id",
            "sku",
            unique=True,
            postgresql_where=is_active.is_(True),
            sqlite_where=is_active.is_(True),
        ),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "quantity": int(self.quantity or 0),
            "location": self.location,
            "reorder_point": int(self.reorder_point or 0),
            "supplier": self.supplier,
            "category": self.category,
            "purchase_date": self.purchase_date,
            "expiry_date": self.expiry_date,
            "qr_code": self.qr_code,
            "status": self.status,
            "last_scanned": self.last_scanned,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@event.listens_for(User, "before_delete")
def _retire_items_of_deleted_owner(mapper, connection, target):
    # Items are soft-deleted, never purged, so their ledger rows keep pointing at them
    items = InventoryItem.__table__
    connection.execute(
        update(items)
        .where(items.c.owner_id == target.id, items.c.is_active.is_(True))
        .values(is_active=False, deleted_at=_utcnow(), version_id=items.c.version_id + 1)
    )
