#!/usr/bin/env python3
"""
Reset database script for local development.
Drops the plan tables and recreates them from the ORM models.
"""

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./local_dev.db")

from sqlalchemy import inspect

from fitplan.db import repo
from fitplan.db.models import Base


async def reset_database() -> None:
    """Drop and recreate every table known to the models."""
    print("🔄 Resetting database...")
    await repo.init_db()

    engine = repo._engine
    if not engine:
        print("❌ Failed to initialize database engine")
        return

    try:
        async with engine.begin() as conn:
            print("🗑️  Dropping all tables...")
            await conn.run_sync(Base.metadata.drop_all)

            print("🏗️  Creating tables from models...")
            await conn.run_sync(Base.metadata.create_all)

            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        print("✅ Database reset complete!")
        print("📊 Tables created:")
        for table in tables:
            print(f"   - {table}")
    finally:
        await repo.close_db()


if __name__ == "__main__":
    asyncio.run(reset_database())
