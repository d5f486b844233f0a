from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from core.auth import current_active_user
from core.dependencies import get_ledger
from db.users import User
from schemas.inventory import InventoryTransactionOut
from services.ledger import InventoryLedger

router = APIRouter()


@router.get("/", response_model=List[InventoryTransactionOut])
async def list_recent_transactions(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.list_transactions(user.id, limit=limit)


@router.get("/item/{item_id}", response_model=List[InventoryTransactionOut])
async def list_item_transactions(
    item_id: UUID,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.list_transactions(user.id, item_id=item_id)
