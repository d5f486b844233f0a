"""
Inventory Ledger Service.

Owns InventoryItem and InventoryTransaction rows. Every quantity change is
applied inside one database transaction that also appends the matching ledger
row, so an item's quantity and its ledger can never disagree.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union, get_args
from uuid import UUID

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from core.config import settings
from core.errors import ConflictError, LedgerError, NotFoundError, StorageError, ValidationError
from core.qr import decode_payload, encode_item_payload
from db.inventory import InventoryItem, InventoryTransaction
from schemas.inventory import InventoryItemCreate, InventoryItemUpdate, ScanAction
from services.stock_status import derive_status

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

MAX_TRANSACTIONS_LIMIT = 1000
MAX_SEARCH_LENGTH = 100
SKU_INDEX_NAME = "ux_inventory_items_owner_sku_active"

NOTE_INITIAL = "Initial stock"
NOTE_MANUAL = "Manual adjustment"
NOTE_SCAN = "QR scan"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_sku_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    # postgres names the index; sqlite lists the columns
    return SKU_INDEX_NAME in text or "inventory_items.sku" in text


@asynccontextmanager
async def storage_scope(
    session_maker: async_sessionmaker[AsyncSession], write: bool = False
) -> AsyncIterator[AsyncSession]:
    """
    Open a session (and, for writes, a transaction) and translate storage failures.

    Anything raised inside the block rolls the transaction back.
    """
    try:
        async with session_maker() as session:
            if write:
                async with session.begin():
                    yield session
            else:
                yield session
    except LedgerError:
        raise
    except IntegrityError as exc:
        if _is_sku_violation(exc):
            logger.warning("sku conflict on commit: %s", exc.orig)
            raise ConflictError() from exc
        logger.exception("integrity failure")
        raise StorageError() from exc
    except StaleDataError as exc:
        logger.warning("concurrent modification detected: %s", exc)
        raise ConflictError("Item was modified concurrently") from exc
    except SQLAlchemyError as exc:
        logger.exception("storage failure")
        raise StorageError() from exc


def owned_transactions_stmt(owner_id: UUID) -> Select:
    """Ledger rows for every item (active or deleted) the owner created."""
    return (
        select(InventoryTransaction)
        .join(InventoryItem, InventoryTransaction.inventory_item_id == InventoryItem.id)
        .where(InventoryItem.owner_id == owner_id)
    )


def _parse(schema: Type[SchemaT], fields: Union[SchemaT, Mapping[str, Any]]) -> SchemaT:
    if isinstance(fields, schema):
        return fields
    try:
        return schema.model_validate(dict(fields))
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _ledger_entry(
    item: InventoryItem, *, previous: int, kind: str, notes: str, user_id: UUID
) -> InventoryTransaction:
    new = int(item.quantity)
    if kind == "add" and new < previous:
        raise ValueError(f"add entry cannot lower quantity ({previous} -> {new})")
    if kind == "remove" and new > previous:
        raise ValueError(f"remove entry cannot raise quantity ({previous} -> {new})")
    return InventoryTransaction(
        id=uuid.uuid4(),
        inventory_item_id=item.id,
        item_name=item.name,
        sku=item.sku,
        kind=kind,
        quantity=abs(new - previous),
        previous_quantity=previous,
        new_quantity=new,
        notes=notes,
        performed_by_user_id=user_id,
    )


class InventoryLedger:
    """
    Item CRUD, stock movements and ledger reads, all scoped to the calling owner.

    Args:
        session_maker: storage handle; each operation opens its own session
        qr_encoder: renders {"id", "sku", "name", "userId"} into the stored QR payload
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        qr_encoder: Callable[[Dict[str, Any]], str] = encode_item_payload,
    ):
        self._session_maker = session_maker
        self._qr_encoder = qr_encoder

    # ------------------------------------------------------------------ helpers

    def _qr_for(self, item: InventoryItem) -> str:
        return self._qr_encoder(
            {"id": str(item.id), "sku": item.sku, "name": item.name, "userId": str(item.owner_id)}
        )

    async def _load_owned(
        self, session: AsyncSession, owner_id: UUID, item_id: UUID, lock: bool = False
    ) -> InventoryItem:
        stmt = select(InventoryItem).where(
            InventoryItem.id == item_id,
            InventoryItem.owner_id == owner_id,
            InventoryItem.is_active.is_(True),
        )
        if lock:
            stmt = stmt.with_for_update()
        item = (await session.execute(stmt)).scalar_one_or_none()
        if item is None:
            # same answer for "missing" and "not yours"
            raise NotFoundError()
        return item

    async def _ensure_sku_free(
        self, session: AsyncSession, owner_id: UUID, sku: str, exclude_id: Optional[UUID] = None
    ) -> None:
        stmt = select(InventoryItem.id).where(
            InventoryItem.owner_id == owner_id,
            InventoryItem.sku == sku,
            InventoryItem.is_active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(InventoryItem.id != exclude_id)
        if (await session.execute(stmt)).first() is not None:
            logger.warning("sku conflict owner=%s sku=%s", owner_id, sku)
            raise ConflictError(f"SKU {sku} already exists")

    # --------------------------------------------------------------- mutations

    async def create_item(
        self, owner_id: UUID, fields: Union[InventoryItemCreate, Mapping[str, Any]]
    ) -> InventoryItem:
        data = _parse(InventoryItemCreate, fields)

        async with storage_scope(self._session_maker, write=True) as session:
            await self._ensure_sku_free(session, owner_id, data.sku)

            item = InventoryItem(id=uuid.uuid4(), owner_id=owner_id, is_active=True, **data.model_dump())
            item.status = derive_status(item.quantity, item.reorder_point)
            item.qr_code = self._qr_for(item)
            session.add(item)
            await session.flush()

            session.add(_ledger_entry(item, previous=0, kind="add", notes=NOTE_INITIAL, user_id=owner_id))

        logger.info("item created id=%s sku=%s quantity=%s status=%s", item.id, item.sku, item.quantity, item.status)
        return item

    async def update_item(
        self, owner_id: UUID, item_id: UUID, fields: Union[InventoryItemUpdate, Mapping[str, Any]]
    ) -> InventoryItem:
        patch = _parse(InventoryItemUpdate, fields).model_dump(exclude_unset=True)

        async with storage_scope(self._session_maker, write=True) as session:
            item = await self._load_owned(session, owner_id, item_id, lock=True)

            purchase = patch.get("purchase_date", item.purchase_date)
            expiry = patch.get("expiry_date", item.expiry_date)
            if purchase and expiry and expiry <= purchase:
                raise ValidationError.single("expiry_date", "Expiry date must be after purchase date")

            if "sku" in patch and patch["sku"] != item.sku:
                await self._ensure_sku_free(session, owner_id, patch["sku"], exclude_id=item.id)
            refresh_qr = any(k in patch and patch[k] != getattr(item, k) for k in ("sku", "name"))

            previous = int(item.quantity)
            for key, value in patch.items():
                setattr(item, key, value)
            item.status = derive_status(item.quantity, item.reorder_point)
            if refresh_qr:
                item.qr_code = self._qr_for(item)

            if item.quantity != previous:
                kind = "add" if item.quantity > previous else "remove"
                session.add(_ledger_entry(item, previous=previous, kind=kind, notes=NOTE_MANUAL, user_id=owner_id))
                logger.info("item %s quantity %s -> %s (%s)", item.id, previous, item.quantity, kind)

        logger.info("item updated id=%s sku=%s status=%s", item.id, item.sku, item.status)
        return item

    async def delete_item(self, owner_id: UUID, item_id: UUID) -> None:
        """Soft delete; the item's ledger rows stay in place."""
        async with storage_scope(self._session_maker, write=True) as session:
            item = await self._load_owned(session, owner_id, item_id, lock=True)
            item.is_active = False
            item.deleted_at = _utcnow()

        logger.info("item deleted id=%s sku=%s", item.id, item.sku)

    async def apply_scan(
        self, owner_id: UUID, sku: str, action: str, quantity: Optional[int] = None
    ) -> InventoryItem:
        """
        Apply a scanned stock movement.

        `view` reads only. `add` increases quantity by `quantity`; `remove`
        subtracts it and floors the result at zero. Over-removal is clamped,
        not rejected, and the ledger records the delta actually applied.
        """
        errors = []
        sku = (sku or "").strip().upper()
        if not sku:
            errors.append({"field": "sku", "message": "SKU is required"})
        if action not in get_args(ScanAction):
            errors.append({"field": "action", "message": 'Action must be either "add", "remove", or "view"'})
        elif action != "view":
            if quantity is None:
                errors.append({"field": "quantity", "message": "Quantity is required for add/remove actions"})
            elif isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                errors.append({"field": "quantity", "message": "Quantity must be a positive integer"})
        if errors:
            raise ValidationError(errors)

        async with storage_scope(self._session_maker, write=True) as session:
            stmt = select(InventoryItem).where(
                InventoryItem.owner_id == owner_id,
                InventoryItem.sku == sku,
                InventoryItem.is_active.is_(True),
            )
            if action != "view":
                stmt = stmt.with_for_update()
            item = (await session.execute(stmt)).scalar_one_or_none()
            if item is None:
                raise NotFoundError()
            if action == "view":
                return item

            previous = int(item.quantity)
            if action == "add":
                item.quantity = previous + quantity
            else:
                if quantity > previous:
                    logger.warning("scan remove clamped sku=%s requested=%s available=%s", sku, quantity, previous)
                item.quantity = max(0, previous - quantity)
            item.last_scanned = _utcnow()
            item.status = derive_status(item.quantity, item.reorder_point)
            session.add(_ledger_entry(item, previous=previous, kind=action, notes=NOTE_SCAN, user_id=owner_id))

        logger.info("scan %s sku=%s quantity %s -> %s", action, sku, previous, item.quantity)
        return item

    async def scan_payload(
        self, owner_id: UUID, payload: str, action: str, quantity: Optional[int] = None
    ) -> InventoryItem:
        return await self.apply_scan(owner_id, decode_payload(payload), action, quantity)

    # ------------------------------------------------------------------- reads

    async def get_item(self, owner_id: UUID, item_id: UUID) -> InventoryItem:
        async with storage_scope(self._session_maker) as session:
            return await self._load_owned(session, owner_id, item_id)

    async def list_items(self, owner_id: UUID) -> List[InventoryItem]:
        async with storage_scope(self._session_maker) as session:
            res = await session.execute(
                select(InventoryItem)
                .where(InventoryItem.owner_id == owner_id, InventoryItem.is_active.is_(True))
                .order_by(InventoryItem.created_at.desc())
            )
            return list(res.scalars().all())

    async def search_items(self, owner_id: UUID, q: str) -> List[InventoryItem]:
        q = (q or "").strip()
        if not q:
            raise ValidationError.single("q", "Search query is required")
        if len(q) > MAX_SEARCH_LENGTH:
            raise ValidationError.single("q", "Search query must be between 1 and 100 characters")

        needle = q.lower()
        async with storage_scope(self._session_maker) as session:
            res = await session.execute(
                select(InventoryItem)
                .where(InventoryItem.owner_id == owner_id, InventoryItem.is_active.is_(True))
                .where(
                    or_(
                        func.lower(InventoryItem.name).contains(needle, autoescape=True),
                        func.lower(InventoryItem.sku).contains(needle, autoescape=True),
                        func.lower(func.coalesce(InventoryItem.description, "")).contains(needle, autoescape=True),
                    )
                )
                .order_by(func.lower(InventoryItem.name).asc())
            )
            return list(res.scalars().all())

    async def list_transactions(
        self, owner_id: UUID, item_id: Optional[UUID] = None, limit: Optional[int] = None
    ) -> List[InventoryTransaction]:
        """
        Ledger rows, newest first.

        With `item_id`: every row for that item (deleted items included), or
        NotFoundError when the caller does not own it. Without: the most recent
        `limit` rows across the caller's items.
        """
        if limit is not None and not 1 <= limit <= MAX_TRANSACTIONS_LIMIT:
            raise ValidationError.single("limit", f"limit must be between 1 and {MAX_TRANSACTIONS_LIMIT}")

        async with storage_scope(self._session_maker) as session:
            stmt = owned_transactions_stmt(owner_id)
            if item_id is not None:
                owned = await session.execute(
                    select(InventoryItem.id).where(InventoryItem.id == item_id, InventoryItem.owner_id == owner_id)
                )
                if owned.first() is None:
                    raise NotFoundError()
                stmt = stmt.where(InventoryTransaction.inventory_item_id == item_id)
            elif limit is None:
                limit = settings.recent_transactions_limit

            stmt = stmt.order_by(InventoryTransaction.created_at.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            res = await session.execute(stmt)
            return list(res.scalars().all())
