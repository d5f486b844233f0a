from typing import Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from core.auth import current_active_user
from core.dependencies import get_ledger
from core.errors import ValidationError
from db.users import User
from schemas.inventory import (
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    ScanRequest,
)
from services.ledger import InventoryLedger

router = APIRouter()


@router.get("/", response_model=List[InventoryItemOut])
async def list_items(
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """All active items owned by the current user, newest first"""
    return await ledger.list_items(user.id)


@router.get("/search", response_model=List[InventoryItemOut])
async def search_items(
    q: str = Query(..., max_length=100),
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.search_items(user.id, q)


@router.post("/scan", response_model=InventoryItemOut)
async def scan_item(
    payload: ScanRequest,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """
    Apply a QR scan.

    - `sku` takes precedence; otherwise the raw scanned `payload` is decoded.
    - `view` never changes stock; `remove` floors the quantity at zero.
    """
    if payload.sku:
        return await ledger.apply_scan(user.id, payload.sku, payload.action, payload.quantity)
    if payload.payload:
        return await ledger.scan_payload(user.id, payload.payload, payload.action, payload.quantity)
    raise ValidationError.single("sku", "SKU is required")


@router.get("/{item_id}", response_model=InventoryItemOut)
async def get_item(
    item_id: UUID,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.get_item(user.id, item_id)


@router.get("/{item_id}/qr", response_model=Dict)
async def get_item_qr(
    item_id: UUID,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    item = await ledger.get_item(user.id, item_id)
    return {"id": item.id, "sku": item.sku, "qr_code": item.qr_code}


@router.post("/", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: InventoryItemCreate,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.create_item(user.id, payload)


@router.put("/{item_id}", response_model=InventoryItemOut)
async def update_item(
    item_id: UUID,
    payload: InventoryItemUpdate,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    return await ledger.update_item(user.id, item_id, payload)


@router.delete("/{item_id}", response_model=Dict)
async def delete_item(
    item_id: UUID,
    user: User = Depends(current_active_user),
    ledger: InventoryLedger = Depends(get_ledger),
):
    await ledger.delete_item(user.id, item_id)
    return {"ok": True}
