import pytest
import pytest_asyncio

from Sealed_Estate.fhe_shared.types import AssetRecord
from Sealed_Estate.estate.session import EstateSession
from Sealed_Estate.estate.wallet import WalletSession

ALICE = "0x00000000000000000000000000000000000a11ce"


@pytest_asyncio.fixture
async def estate(ledger_client, fhe_client, status):
    """A set-up EstateSession on fakeredis with Alice connected."""
    s = EstateSession(
        WalletSession(),
        ledger_client=ledger_client,
        fhe_client=fhe_client,
        status=status,
    )
    await s.setup()
    await s.connect(ALICE)
    yield s
    await s.teardown()


@pytest.fixture
def make_record():
    """Factory for AssetRecord values used by the pure store/stats tests."""
    def _make(record_id, name="House", beneficiary="0xcarol", verified=False, value=None):
        return AssetRecord(
            record_id=record_id,
            name=name,
            encrypted_amount="0x" + "ab" * 32,
            beneficiary=beneficiary,
            trigger_condition="TIME_LOCK",
            timestamp=1_700_000_000,
            creator=ALICE,
            public_value1=1,
            public_value2=0,
            is_verified=verified,
            revealed_value=value if verified else None,
        )
    return _make
