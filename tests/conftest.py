import os

# must be set before listingsync settings are imported
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal")
os.environ.setdefault("WEBFLOW_COLLECTION_ID", "col_test")
os.environ.setdefault("WEBFLOW_SITE_ID", "site_test")

import pytest
import pytest_asyncio
import httpx

from listingsync.main import app
from listingsync.services.batch_executor import BatchExecutor
from listingsync.services.reconcile import ReconciliationEngine

from fakes import FakeCollectionStore, RecordingSleep, sequential_ids


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor(sleeps: RecordingSleep) -> BatchExecutor:
    return BatchExecutor(batch_size=2, inter_batch_delay=60, sleep=sleeps)


@pytest.fixture
def store() -> FakeCollectionStore:
    return FakeCollectionStore()


@pytest.fixture
def engine(store: FakeCollectionStore, executor: BatchExecutor) -> ReconciliationEngine:
    return ReconciliationEngine(store, executor, id_factory=sequential_ids())


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
