"""
Inventory ledger request/response models.

Field rules mirror the item form: SKU is uppercased and limited to
[A-Z0-9-_], quantities are non-negative integers, expiry must follow purchase.
"""

import re
from datetime import date, datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from core.config import settings
from services.stock_status import STATUSES


TransactionKind = Literal["add", "remove", "adjust", "scan"]
ScanAction = Literal["add", "remove", "view"]

_SKU_RE = re.compile(r"^[A-Z0-9_-]+$")

_MAX_LEN = {
    "name": 100,
    "description": 500,
    "location": 100,
    "supplier": 100,
    "category": 50,
}


def normalize_sku(v: str) -> str:
    v = (v or "").strip().upper()
    if not v:
        raise ValueError("SKU is required")
    if not 2 <= len(v) <= 50:
        raise ValueError("SKU must be between 2 and 50 characters")
    if not _SKU_RE.match(v):
        raise ValueError("SKU can only contain letters, numbers, hyphens, and underscores")
    return v


def _check_name(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Item name is required")
    if not 2 <= len(v) <= _MAX_LEN["name"]:
        raise ValueError("Item name must be between 2 and 100 characters")
    return v


def _check_location(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Location is required")
    if len(v) > _MAX_LEN["location"]:
        raise ValueError("Location must not exceed 100 characters")
    return v


def _strip_bounded(v: Optional[str], field: str) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    if len(v) > _MAX_LEN[field]:
        raise ValueError(f"{field.capitalize()} must not exceed {_MAX_LEN[field]} characters")
    return v


def _check_non_negative(v: int, label: str) -> int:
    if isinstance(v, bool) or v < 0:
        raise ValueError(f"{label} must be a non-negative integer")
    return v


class InventoryItemCreate(BaseModel):
    sku: str
    name: str
    description: Optional[str] = None
    quantity: int
    location: str
    reorder_point: int = settings.default_reorder_point
    supplier: Optional[str] = None
    category: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None

    @field_validator("sku")
    @classmethod
    def _sku(cls, v: str) -> str:
        return normalize_sku(v)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("location")
    @classmethod
    def _location(cls, v: str) -> str:
        return _check_location(v)

    @field_validator("description", "supplier", "category")
    @classmethod
    def _optional_text(cls, v: Optional[str], info) -> Optional[str]:
        return _strip_bounded(v, info.field_name)

    @field_validator("quantity")
    @classmethod
    def _quantity(cls, v: int) -> int:
        return _check_non_negative(v, "Quantity")

    @field_validator("reorder_point")
    @classmethod
    def _reorder_point(cls, v: int) -> int:
        return _check_non_negative(v, "Reorder point")

    @model_validator(mode="after")
    def _dates(self):
        if self.purchase_date and self.expiry_date and self.expiry_date <= self.purchase_date:
            raise ValueError("Expiry date must be after purchase date")
        return self


class InventoryItemUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    location: Optional[str] = None
    reorder_point: Optional[int] = None
    supplier: Optional[str] = None
    category: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None

    @field_validator("sku")
    @classmethod
    def _sku(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else normalize_sku(v)

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v)

    @field_validator("location")
    @classmethod
    def _location(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_location(v)

    @field_validator("description", "supplier", "category")
    @classmethod
    def _optional_text(cls, v: Optional[str], info) -> Optional[str]:
        return _strip_bounded(v, info.field_name)

    @field_validator("quantity")
    @classmethod
    def _quantity(cls, v: Optional[int]) -> Optional[int]:
        return None if v is None else _check_non_negative(v, "Quantity")

    @field_validator("reorder_point")
    @classmethod
    def _reorder_point(cls, v: Optional[int]) -> Optional[int]:
        return None if v is None else _check_non_negative(v, "Reorder point")

    @model_validator(mode="after")
    def _required_not_cleared(self):
        cleared = [
            f for f in ("sku", "name", "quantity", "location", "reorder_point")
            if f in self.model_fields_set and getattr(self, f) is None
        ]
        if cleared:
            raise ValueError(f"cannot be cleared: {', '.join(cleared)}")
        return self


class ScanRequest(BaseModel):
    """Either `sku` or the raw scanned `payload` must be given."""

    sku: Optional[str] = None
    payload: Optional[str] = None
    action: str
    quantity: Optional[int] = None


class InventoryItemOut(BaseModel):
    id: UUID
    sku: str
    name: str
    description: Optional[str] = None
    quantity: int
    location: str
    reorder_point: int
    supplier: Optional[str] = None
    category: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None
    qr_code: Optional[str] = None
    status: str
    last_scanned: Optional[datetime] = None
    owner_id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PerformedByOut(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None


class InventoryTransactionOut(BaseModel):
    id: UUID
    inventory_item_id: Optional[UUID] = None
    item_name: str
    sku: str
    kind: TransactionKind
    quantity: int
    previous_quantity: int
    new_quantity: int
    notes: Optional[str] = None
    performed_by_user_id: Optional[UUID] = None
    performed_by: Optional[PerformedByOut] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StockAlertOut(BaseModel):
    id: UUID
    sku: str
    name: str
    quantity: int
    reorder_point: int
    status: str


class CategoryCountOut(BaseModel):
    category: str
    count: int


class InventorySummaryOut(BaseModel):
    total_items: int
    total_quantity: int
    status_counts: Dict[str, int]
    low_stock_count: int
    categories: List[CategoryCountOut]
    alerts: List[StockAlertOut]
    recent_activity: List[InventoryTransactionOut]

    @field_validator("status_counts")
    @classmethod
    def _all_statuses(cls, v: Dict[str, int]) -> Dict[str, int]:
        return {s: int(v.get(s, 0)) for s in STATUSES}
