"""Read-only dashboard/report aggregates over an owner's inventory."""

from typing import Dict
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.inventory import InventoryItem, InventoryTransaction
from services.ledger import owned_transactions_stmt, storage_scope
from services.stock_status import LOW_STATUSES, STATUSES

RECENT_ACTIVITY_LIMIT = 10
UNCATEGORIZED = "Uncategorized"


class InventoryReports:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def summary(self, owner_id: UUID) -> Dict:
        active = (InventoryItem.owner_id == owner_id, InventoryItem.is_active.is_(True))

        async with storage_scope(self._session_maker) as session:
            totals = (
                await session.execute(
                    select(func.count(InventoryItem.id), func.coalesce(func.sum(InventoryItem.quantity), 0))
                    .where(*active)
                )
            ).one()

            status_counts = {s: 0 for s in STATUSES}
            res = await session.execute(
                select(InventoryItem.status, func.count(InventoryItem.id))
                .where(*active)
                .group_by(InventoryItem.status)
            )
            for status, count in res.all():
                status_counts[status] = int(count)

            res = await session.execute(
                select(InventoryItem.category, func.count(InventoryItem.id))
                .where(*active)
                .group_by(InventoryItem.category)
            )
            by_category: Dict[str, int] = {}
            for category, count in res.all():
                label = (category or "").strip() or UNCATEGORIZED
                by_category[label] = by_category.get(label, 0) + int(count)
            categories = [
                {"category": c, "count": n}
                for c, n in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
            ]

            res = await session.execute(
                select(InventoryItem)
                .where(*active)
                .where(InventoryItem.status.in_(LOW_STATUSES))
                .order_by(InventoryItem.quantity.asc(), InventoryItem.sku.asc())
            )
            alerts = [
                {
                    "id": it.id,
                    "sku": it.sku,
                    "name": it.name,
                    "quantity": int(it.quantity),
                    "reorder_point": int(it.reorder_point),
                    "status": it.status,
                }
                for it in res.scalars().all()
            ]

            res = await session.execute(
                owned_transactions_stmt(owner_id)
                .order_by(InventoryTransaction.created_at.desc())
                .limit(RECENT_ACTIVITY_LIMIT)
            )
            recent = [t.to_schema for t in res.scalars().all()]

        return {
            "total_items": int(totals[0] or 0),
            "total_quantity": int(totals[1] or 0),
            "status_counts": status_counts,
            "low_stock_count": sum(status_counts[s] for s in LOW_STATUSES),
            "categories": categories,
            "alerts": alerts,
            "recent_activity": recent,
        }
