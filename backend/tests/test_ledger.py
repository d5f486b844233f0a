import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from core.errors import ConflictError, NotFoundError, ValidationError
from core.qr import DATA_URL_PREFIX
from db.inventory import InventoryItem, InventoryTransaction
from schemas.inventory import InventoryItemCreate
from services.stock_status import CRITICAL, IN_STOCK, LOW_STOCK, OUT_OF_STOCK


def _item(**overrides):
    fields = {"sku": "a-1", "name": "Widget", "quantity": 20, "location": "Shelf A", "reorder_point": 10}
    fields.update(overrides)
    return fields


async def _transaction_count(session_maker) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count(InventoryTransaction.id)))).scalar_one()


async def test_create_item_derives_status_and_writes_initial_entry(ledger, owner):
    item = await ledger.create_item(owner.id, _item())

    assert item.sku == "A-1"
    assert item.status == IN_STOCK
    assert item.owner_id == owner.id
    assert item.qr_code.startswith(DATA_URL_PREFIX)

    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.kind == "add"
    assert entry.previous_quantity == 0
    assert entry.new_quantity == 20
    assert entry.quantity == 20
    assert entry.notes == "Initial stock"
    assert entry.item_name == "Widget"
    assert entry.sku == "A-1"
    assert entry.performed_by_user_id == owner.id


async def test_create_item_accepts_schema_instance(ledger, owner):
    item = await ledger.create_item(owner.id, InventoryItemCreate(**_item(quantity=0)))
    assert item.status == OUT_OF_STOCK


async def test_create_item_defaults_reorder_point(ledger, owner):
    fields = _item(quantity=10)
    del fields["reorder_point"]
    item = await ledger.create_item(owner.id, fields)
    assert item.reorder_point == 10
    assert item.status == LOW_STOCK


async def test_create_item_reports_every_violation(ledger, owner, session_maker):
    with pytest.raises(ValidationError) as exc_info:
        await ledger.create_item(owner.id, {"sku": "", "name": "W", "quantity": -1, "location": "  "})

    fields = {e["field"] for e in exc_info.value.errors}
    assert {"sku", "name", "quantity", "location"} <= fields
    assert await _transaction_count(session_maker) == 0


async def test_create_item_rejects_expiry_before_purchase(ledger, owner):
    with pytest.raises(ValidationError) as exc_info:
        await ledger.create_item(
            owner.id, _item(purchase_date=date(2024, 5, 1), expiry_date=date(2024, 5, 1))
        )
    assert "Expiry date must be after purchase date" in exc_info.value.errors[0]["message"]


async def test_create_item_duplicate_sku_conflicts(ledger, owner, session_maker):
    await ledger.create_item(owner.id, _item())
    with pytest.raises(ConflictError):
        await ledger.create_item(owner.id, _item(sku="A-1 ", name="Other"))
    assert await _transaction_count(session_maker) == 1


async def test_sku_is_unique_per_owner_only(ledger, owner, other_owner):
    mine = await ledger.create_item(owner.id, _item())
    theirs = await ledger.create_item(other_owner.id, _item())
    assert mine.id != theirs.id


async def test_update_quantity_appends_signed_entries(ledger, owner):
    item = await ledger.create_item(owner.id, _item())

    item = await ledger.update_item(owner.id, item.id, {"quantity": 10})
    assert item.status == LOW_STOCK
    item = await ledger.update_item(owner.id, item.id, {"quantity": 35})
    assert item.status == IN_STOCK

    latest, lowered = (await ledger.list_transactions(owner.id, item_id=item.id))[:2]
    assert (lowered.kind, lowered.previous_quantity, lowered.new_quantity, lowered.quantity) == ("remove", 20, 10, 10)
    assert (latest.kind, latest.previous_quantity, latest.new_quantity, latest.quantity) == ("add", 10, 35, 25)
    assert latest.notes == "Manual adjustment"


async def test_update_without_quantity_change_writes_no_entry(ledger, owner, session_maker):
    item = await ledger.create_item(owner.id, _item())
    item = await ledger.update_item(owner.id, item.id, {"name": "Renamed", "quantity": 20, "location": "Shelf B"})

    assert item.name == "Renamed"
    assert item.location == "Shelf B"
    assert await _transaction_count(session_maker) == 1


async def test_update_reorder_point_recomputes_status(ledger, owner, session_maker):
    item = await ledger.create_item(owner.id, _item(quantity=8))
    assert item.status == LOW_STOCK

    item = await ledger.update_item(owner.id, item.id, {"reorder_point": 20})
    assert item.status == CRITICAL
    item = await ledger.update_item(owner.id, item.id, {"reorder_point": 5})
    assert item.status == IN_STOCK
    assert await _transaction_count(session_maker) == 1


async def test_update_ignores_status_field(ledger, owner):
    item = await ledger.create_item(owner.id, _item())
    item = await ledger.update_item(owner.id, item.id, {"status": OUT_OF_STOCK})
    assert item.status == IN_STOCK


async def test_update_renamed_item_keeps_old_snapshot_in_ledger(ledger, owner):
    item = await ledger.create_item(owner.id, _item())
    old_qr = item.qr_code
    item = await ledger.update_item(owner.id, item.id, {"name": "New Name"})

    assert item.qr_code != old_qr
    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    assert entries[0].item_name == "Widget"


async def test_update_checks_dates_against_stored_values(ledger, owner):
    item = await ledger.create_item(owner.id, _item(purchase_date=date(2024, 1, 10)))
    with pytest.raises(ValidationError):
        await ledger.update_item(owner.id, item.id, {"expiry_date": date(2024, 1, 1)})

    item = await ledger.update_item(owner.id, item.id, {"expiry_date": date(2025, 1, 1)})
    assert item.expiry_date == date(2025, 1, 1)


async def test_update_sku_to_existing_conflicts(ledger, owner):
    await ledger.create_item(owner.id, _item(sku="A-1"))
    second = await ledger.create_item(owner.id, _item(sku="B-2"))
    with pytest.raises(ConflictError):
        await ledger.update_item(owner.id, second.id, {"sku": "a-1"})


async def test_update_cannot_clear_required_fields(ledger, owner):
    item = await ledger.create_item(owner.id, _item())
    with pytest.raises(ValidationError):
        await ledger.update_item(owner.id, item.id, {"quantity": None})


async def test_ownership_isolation(ledger, owner, other_owner):
    item = await ledger.create_item(owner.id, _item())

    with pytest.raises(NotFoundError):
        await ledger.get_item(other_owner.id, item.id)
    with pytest.raises(NotFoundError):
        await ledger.update_item(other_owner.id, item.id, {"quantity": 1})
    with pytest.raises(NotFoundError):
        await ledger.delete_item(other_owner.id, item.id)
    with pytest.raises(NotFoundError):
        await ledger.list_transactions(other_owner.id, item_id=item.id)

    # untouched for the real owner
    item = await ledger.get_item(owner.id, item.id)
    assert item.quantity == 20


async def test_missing_and_foreign_items_are_indistinguishable(ledger, owner, other_owner):
    item = await ledger.create_item(owner.id, _item())

    with pytest.raises(NotFoundError) as foreign:
        await ledger.get_item(other_owner.id, item.id)
    with pytest.raises(NotFoundError) as missing:
        await ledger.get_item(other_owner.id, uuid.uuid4())
    assert foreign.value.message == missing.value.message


async def test_delete_is_soft_and_keeps_ledger(ledger, owner, session_maker):
    item = await ledger.create_item(owner.id, _item())
    await ledger.update_item(owner.id, item.id, {"quantity": 5})
    await ledger.delete_item(owner.id, item.id)

    with pytest.raises(NotFoundError):
        await ledger.get_item(owner.id, item.id)
    assert await ledger.list_items(owner.id) == []

    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    assert len(entries) == 2

    async with session_maker() as session:
        row = await session.get(InventoryItem, item.id)
        assert row.is_active is False
        assert row.deleted_at is not None


async def test_deleted_sku_can_be_reused(ledger, owner):
    first = await ledger.create_item(owner.id, _item())
    await ledger.delete_item(owner.id, first.id)
    second = await ledger.create_item(owner.id, _item(quantity=3))
    assert second.id != first.id
    assert second.status == CRITICAL


async def test_ledger_rows_are_immutable(ledger, owner, session_maker):
    item = await ledger.create_item(owner.id, _item())

    async with session_maker() as session:
        entry = (
            await session.execute(
                select(InventoryTransaction).where(InventoryTransaction.inventory_item_id == item.id)
            )
        ).scalar_one()
        entry.notes = "tampered"
        with pytest.raises(ValueError):
            await session.commit()
        await session.rollback()

    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    assert entries[0].notes == "Initial stock"


async def test_list_items_and_search(ledger, owner, other_owner):
    await ledger.create_item(owner.id, _item(sku="BOLT-1", name="Hex Bolt", description="zinc plated"))
    await ledger.create_item(owner.id, _item(sku="NUT-1", name="Hex Nut"))
    await ledger.create_item(other_owner.id, _item(sku="BOLT-2", name="Other Bolt"))

    assert len(await ledger.list_items(owner.id)) == 2
    assert [i.sku for i in await ledger.search_items(owner.id, "bolt")] == ["BOLT-1"]
    assert [i.sku for i in await ledger.search_items(owner.id, "ZINC")] == ["BOLT-1"]
    assert {i.sku for i in await ledger.search_items(owner.id, "hex")} == {"BOLT-1", "NUT-1"}
    assert await ledger.search_items(owner.id, "100%") == []

    with pytest.raises(ValidationError):
        await ledger.search_items(owner.id, "   ")
    with pytest.raises(ValidationError):
        await ledger.search_items(owner.id, "x" * 101)


async def test_recent_transactions_are_owner_scoped_and_limited(ledger, owner, other_owner):
    item = await ledger.create_item(owner.id, _item())
    for q in (1, 2, 3):
        await ledger.update_item(owner.id, item.id, {"quantity": q})
    await ledger.create_item(other_owner.id, _item(sku="THEIRS"))

    recent = await ledger.list_transactions(owner.id)
    assert len(recent) == 4
    assert all(t.sku == "A-1" for t in recent)
    assert [t.new_quantity for t in recent] == [3, 2, 1, 20]

    assert len(await ledger.list_transactions(owner.id, limit=2)) == 2
    with pytest.raises(ValidationError):
        await ledger.list_transactions(owner.id, limit=0)


async def test_walkthrough_create_update_scan(ledger, owner):
    item = await ledger.create_item(owner.id, _item(sku="A-1", quantity=20, reorder_point=10))
    assert item.status == IN_STOCK

    item = await ledger.update_item(owner.id, item.id, {"quantity": 10})
    assert item.status == LOW_STOCK

    item = await ledger.update_item(owner.id, item.id, {"quantity": 5})
    assert item.status == CRITICAL

    item = await ledger.apply_scan(owner.id, "A-1", "remove", 10)
    assert item.quantity == 0
    assert item.status == OUT_OF_STOCK

    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    summary = [(t.kind, t.previous_quantity, t.new_quantity, t.quantity) for t in entries]
    # the clamped scan records the delta actually removed (5), not the requested 10
    assert summary == [
        ("remove", 5, 0, 5),
        ("remove", 10, 5, 5),
        ("remove", 20, 10, 10),
        ("add", 0, 20, 20),
    ]


async def test_ledger_deltas_sum_to_net_change(ledger, owner):
    item = await ledger.create_item(owner.id, _item(quantity=7))
    initial = item.quantity

    await ledger.apply_scan(owner.id, "A-1", "add", 5)
    await ledger.update_item(owner.id, item.id, {"quantity": 3})
    await ledger.apply_scan(owner.id, "A-1", "remove", 10)
    await ledger.apply_scan(owner.id, "A-1", "view")
    await ledger.apply_scan(owner.id, "A-1", "add", 4)
    await ledger.update_item(owner.id, item.id, {"quantity": 12})
    final = (await ledger.get_item(owner.id, item.id)).quantity

    entries = await ledger.list_transactions(owner.id, item_id=item.id)
    changes = [t for t in entries if t.notes != "Initial stock"]
    signed = sum(t.quantity if t.kind == "add" else -t.quantity for t in changes)

    assert len(changes) == 5
    assert signed == final - initial
    for t in entries:
        assert t.quantity == abs(t.new_quantity - t.previous_quantity)
