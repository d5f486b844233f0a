import argparse
import asyncio
import sys
from datetime import date, timedelta
from pathlib import Path

"""
Seed a demo user and a handful of inventory items.

Items go through the ledger service, so each one gets its "Initial stock"
transaction and a QR code exactly as if it had been created via the API.

This script can be run from either:
- backend/: `python scripts/seed_demo_data.py`
- repo root: `python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from core.config import settings  # noqa: E402
from core.errors import ConflictError  # noqa: E402
from core.logging import setup_logging  # noqa: E402
from db.database import build_engine, build_session_maker, create_db_and_tables  # noqa: E402
from db.users import User  # noqa: E402
from services.ledger import InventoryLedger  # noqa: E402

from fastapi_users.password import PasswordHelper  # noqa: E402


password_helper = PasswordHelper()

today = date.today()

DEMO_ITEMS = [
    {"sku": "BOLT-M6", "name": "M6 Hex Bolt", "quantity": 250, "location": "Aisle 1", "reorder_point": 100,
     "category": "Fasteners", "supplier": "Acme Hardware"},
    {"sku": "NUT-M6", "name": "M6 Nut", "quantity": 80, "location": "Aisle 1", "reorder_point": 100,
     "category": "Fasteners", "supplier": "Acme Hardware"},
    {"sku": "GLOVE-L", "name": "Nitrile Gloves (L)", "quantity": 4, "location": "Storeroom", "reorder_point": 10,
     "category": "Safety", "purchase_date": today - timedelta(days=30), "expiry_date": today + timedelta(days=700)},
    {"sku": "TAPE-50", "name": "Packing Tape 50mm", "quantity": 0, "location": "Dispatch", "reorder_point": 12,
     "category": "Packaging"},
    {"sku": "LABEL-A4", "name": "A4 Label Sheets", "quantity": 40, "location": "Office"},
]


async def get_or_create_user(session_maker, email: str, password: str, name: str) -> User:
    async with session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            return user

        user = User(
            email=email,
            name=name,
            hashed_password=password_helper.hash(password),
            is_active=True,
            is_superuser=False,
            is_verified=True,
        )
        session.add(user)
        await session.commit()
        return user


async def seed(email: str, password: str) -> None:
    setup_logging(settings.log_level)
    engine = build_engine(settings.database_url, echo=settings.database_echo)
    await create_db_and_tables(engine)
    session_maker = build_session_maker(engine)
    ledger = InventoryLedger(session_maker)

    user = await get_or_create_user(session_maker, email, password, "Demo User")
    created = 0
    for fields in DEMO_ITEMS:
        try:
            await ledger.create_item(user.id, fields)
            created += 1
        except ConflictError:
            print(f"skip {fields['sku']}: already exists")

    # a couple of movements so the dashboard has some history
    if created:
        await ledger.apply_scan(user.id, "BOLT-M6", "remove", 40)
        await ledger.apply_scan(user.id, "NUT-M6", "add", 120)

    print(f"Seeded {created} items for {email}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo inventory data")
    parser.add_argument("--email", default="demo@example.com")
    parser.add_argument("--password", default="DemoPass123")
    args = parser.parse_args()
    asyncio.run(seed(args.email, args.password))
