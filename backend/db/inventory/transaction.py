import uuid
from datetime import datetime, timezone

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import relationship

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)

    # Items are soft-deleted, so this reference survives item removal
    inventory_item_id = Column(
        GUID,
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Snapshot at the time of the transaction; survives item renames
    item_name = Column(String(100), nullable=False)
    sku = Column(String(50), nullable=False)

    kind = Column(String(10), nullable=False)  # 'add' | 'remove' | 'adjust' | 'scan'
    quantity = Column(Integer, nullable=False)  # abs(new_quantity - previous_quantity)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # No FK: deleting a user must not rewrite ledger rows
    performed_by_user_id = Column(GUID, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    inventory_item = relationship("InventoryItem", back_populates="transactions")
    performed_by_user = relationship(
        "User",
        primaryjoin="foreign(InventoryTransaction.performed_by_user_id) == User.id",
        viewonly=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_inventory_transactions_item_created", "inventory_item_id", "created_at"),
    )

    @property
    def performed_by(self):
        user = self.performed_by_user
        if user is None:
            return None
        return {"id": user.id, "email": user.email, "name": user.name}

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.item_name,
            "sku": self.sku,
            "kind": self.kind,
            "quantity": int(self.quantity),
            "previous_quantity": int(self.previous_quantity),
            "new_quantity": int(self.new_quantity),
            "notes": self.notes,
            "performed_by_user_id": self.performed_by_user_id,
            "performed_by": self.performed_by,
            "created_at": self.created_at,
        }


@event.listens_for(InventoryTransaction, "before_update")
def _refuse_update(mapper, connection, target):
    raise ValueError(f"inventory transaction {target.id} is immutable")


@event.listens_for(InventoryTransaction, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ValueError(f"inventory transaction {target.id} is immutable")
