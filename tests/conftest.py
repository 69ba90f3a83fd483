import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EXTERNAL_MODEL", "false")
os.environ.setdefault("FF_ADMIN_ALERTS", "false")

import pytest_asyncio

from fitplan.db import repo


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    await repo.close_db()
    await repo.init_db("sqlite+aiosqlite:///:memory:")
    yield repo
    await repo.close_db()
