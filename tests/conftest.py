"""Shared fixtures: temporary stores."""
import pytest
import pytest_asyncio

from src.store.catalog import CatalogStore
from src.store.samples import AvailabilitySampleStore
from src.store.verdicts import VerdictStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "state.db"


@pytest_asyncio.fixture
async def catalog(db_path):
    store = CatalogStore(db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def samples(db_path):
    store = AvailabilitySampleStore(db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def verdicts(db_path):
    store = VerdictStore(db_path, history_limit=3)
    await store.initialize()
    return store
