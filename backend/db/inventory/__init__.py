"""
Inventory ledger.

Models:
- InventoryItem (owner-scoped stock record with a derived status)
- InventoryTransaction (append-only before/after snapshots of every quantity change)
"""

from .item import InventoryItem
from .transaction import InventoryTransaction

__all__ = ["InventoryItem", "InventoryTransaction"]
