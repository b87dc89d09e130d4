"""Shared fixtures for scout tests."""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_arbscout.db")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("SCOUT_AUTOSTART", "false")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from arbscout.db.models import Base
from arbscout.scout.config_store import ScoutConfigStore
from arbscout.scout.engine import ScanCycleEngine
from arbscout.scout.queue_store import ScoutQueueStore
from arbscout.services import ScoutServices

ADMIN_HEADERS = {"X-Admin-API-Key": "test-admin-key"}


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scout.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def config_store(session_factory):
    return ScoutConfigStore(session_factory)


@pytest.fixture
def queue_store(session_factory):
    return ScoutQueueStore(session_factory)


@pytest.fixture
def engine(config_store, queue_store):
    return ScanCycleEngine(config_store, queue_store, fee_rate=0.15)


class FakeScanner:
    """Scanner returning canned products per platform and recording its calls."""

    def __init__(self, products=None, fail_on=()):
        self.products = products or {}
        self.fail_on = set(fail_on)
        self.calls = []

    async def __call__(self, platform, keyword, max_results):
        self.calls.append((platform, keyword, max_results))
        if platform in self.fail_on:
            raise RuntimeError(f"{platform} is down")
        return list(self.products.get(platform, []))


@pytest.fixture
def scanner():
    return FakeScanner(
        products={
            "amazon": [
                {
                    "name": "LEGO Castle",
                    "price": 20,
                    "url": "https://amazon.example/lego-castle",
                    "productId": "B000123",
                    "imageUrl": "https://img.example/castle.jpg",
                    "category": "Toys",
                }
            ]
        }
    )


@pytest.fixture
def services(session_factory, scanner):
    return ScoutServices.build(session_factory, scanner=scanner, fee_rate=0.15)
