import pytest
import pytest_asyncio
import fakeredis

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.fhe_engine import FheEngine
from Sealed_Estate.fhe_ledger.contract import EstateContract
from Sealed_Estate.estate.status import TransactionStatusController
from Sealed_Estate.estate.wallet import WalletSession

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"


# ─── Fakeredis fixtures (no Docker) ───

@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def ledger_client(fake_server):
    r = fakeredis.FakeRedis(server=fake_server, db=config.REDIS_LEDGER_DB)
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def fhe_client(fake_server):
    r = fakeredis.FakeRedis(server=fake_server, db=config.REDIS_FHE_DB)
    yield r
    r.flushdb()
    r.close()


# ─── Collaborators ───

@pytest_asyncio.fixture
async def engine(fhe_client):
    e = FheEngine(fhe_client)
    await e.initialize()
    return e


@pytest.fixture
def contract(ledger_client):
    return EstateContract(ledger_client)


@pytest.fixture
def wallet():
    return WalletSession(ALICE)


@pytest.fixture
def bob_wallet():
    return WalletSession(BOB)


@pytest.fixture
def status():
    return TransactionStatusController(success_dwell=0.05, error_dwell=0.05)
