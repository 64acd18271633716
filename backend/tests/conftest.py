from unittest.mock import AsyncMock, MagicMock

import pytest

from services.quota_ledger import InMemoryQuotaLedger
from workers.quota_recorder import QuotaRecorder


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for testing."""
    client = MagicMock()
    client.table = MagicMock(return_value=client)
    client.select = MagicMock(return_value=client)
    client.insert = MagicMock(return_value=client)
    client.upsert = MagicMock(return_value=client)
    client.update = MagicMock(return_value=client)
    client.eq = MagicMock(return_value=client)
    client.in_ = MagicMock(return_value=client)
    client.limit = MagicMock(return_value=client)
    client.rpc = MagicMock(return_value=client)
    client.execute = MagicMock(return_value=MagicMock(data=[], count=0))
    return client


@pytest.fixture
def ledger():
    return InMemoryQuotaLedger(hard_limit=100, warning_threshold=90)


@pytest.fixture
async def recorder(ledger):
    """A running recorder over the in-memory ledger. Use ``await recorder.flush()`` before asserting."""
    rec = QuotaRecorder(ledger, retry_delay=0)
    rec.start()
    yield rec
    await rec.stop()


@pytest.fixture
def idle_recorder():
    """A recorder that is never started: writes stay queued and are inspected via ``pending``."""
    return QuotaRecorder(AsyncMock(), retry_delay=0)
