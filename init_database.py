"""
Database Initialization Script for FarmKonnect API

Creates the schema, the first administrator account and the starter crop
catalog. Run this before starting the API server.

Usage:
    python init_database.py
"""

import asyncio
import sys

from sqlalchemy import select, inspect

from farmkonnect.api.config import settings
from farmkonnect.api.core.database import engine, Base, AsyncSessionLocal
from farmkonnect.api.core.security import get_password_hash
from farmkonnect.api.models import User, Crop

STARTER_CROPS = [
    ("Maize", "Zea mays"),
    ("Cassava", "Manihot esculenta"),
    ("Cocoa", "Theobroma cacao"),
    ("Rice", "Oryza sativa"),
    ("Yam", "Dioscorea spp."),
    ("Tomato", "Solanum lycopersicum"),
    ("Pepper", "Capsicum annuum"),
    ("Groundnut", "Arachis hypogaea"),
    ("Plantain", "Musa paradisiaca"),
    ("Sorghum", "Sorghum bicolor"),
]


async def seed(session) -> None:
    """Insert the admin account and crop catalog when missing"""
    result = await session.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
    if result.scalar_one_or_none() is None:
        session.add(User(
            email=settings.ADMIN_EMAIL,
            name="FarmKonnect Admin",
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            role="admin",
            approval_status="approved",
            account_status="active",
        ))
        print(f"   ✓ Created admin account {settings.ADMIN_EMAIL}")

    result = await session.execute(select(Crop.crop_name))
    existing = set(result.scalars().all())
    added = 0
    for name, scientific in STARTER_CROPS:
        if name not in existing:
            session.add(Crop(crop_name=name, scientific_name=scientific))
            added += 1
    print(f"   ✓ Added {added} crops to the catalog")

    await session.commit()


async def init_database():
    """Initialize database schema and seed data"""
    print("=" * 60)
    print("FarmKonnect Database Initialization")
    print("=" * 60)
    print()

    print("1. Creating database tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        print(f"   ✓ {len(tables)} tables present:")
        for table in sorted(tables):
            print(f"      - {table}")
    except Exception as e:
        print(f"   ✗ Failed to create tables: {e}")
        print()
        print("Please ensure:")
        print("  1. PostgreSQL is running and reachable")
        print("  2. Your .env file is configured correctly")
        return False

    print()
    print("2. Seeding data...")
    try:
        async with AsyncSessionLocal() as session:
            await seed(session)
    except Exception as e:
        print(f"   ✗ Failed to seed data: {e}")
        return False
    finally:
        await engine.dispose()

    print()
    print("=" * 60)
    print("Database initialization completed successfully!")
    print("=" * 60)
    print()
    print("Next steps:")
    print("  1. Start the API server: uvicorn farmkonnect.api.main:app --reload")
    print("  2. Run tests: pytest")
    print()

    return True


if __name__ == "__main__":
    result = asyncio.run(init_database())
    sys.exit(0 if result else 1)
