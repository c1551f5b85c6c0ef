"""
EstateSession — wires the estate lifecycle for one wallet.

Setup    → connect Redis (ledger db=0, FHE db=1), build engine + contract + store
Connect  → bind wallet address → initialize FHE → first refresh
Create   → EncryptionOrchestrator (validate → encrypt → submit → confirm → refresh)
Reveal   → VerificationOrchestrator (fast path or proof handshake → refresh)
"""

from typing import Callable, Optional

import redis

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.fhe_engine import FheEngine
from Sealed_Estate.fhe_shared.types import AssetRecord, AssetStats, LedgerHealth, TransactionStatus
from Sealed_Estate.fhe_ledger.connection import create_fhe_client, create_ledger_client, health_check
from Sealed_Estate.fhe_ledger.contract import EstateContract
from Sealed_Estate.estate.encryption import EncryptionOrchestrator, new_record_id
from Sealed_Estate.estate.record_store import RecordStore
from Sealed_Estate.estate.stats import StatsAggregator
from Sealed_Estate.estate.status import TransactionStatusController
from Sealed_Estate.estate.sync import SyncController
from Sealed_Estate.estate.verification import VerificationOrchestrator
from Sealed_Estate.estate.wallet import WalletSession


class EstateSession:
    """Full estate lifecycle for one wallet holder."""

    def __init__(
        self,
        wallet: Optional[WalletSession] = None,
        *,
        ledger_client: Optional[redis.Redis] = None,
        fhe_client: Optional[redis.Redis] = None,
        contract_address: str = config.CONTRACT_ADDRESS,
        key_seed: str = config.FHE_KEY_SEED,
        status: Optional[TransactionStatusController] = None,
        id_factory: Callable[[], str] = new_record_id,
    ):
        self.wallet = wallet if wallet is not None else WalletSession()
        self.contract_address = contract_address
        self.key_seed = key_seed
        self.id_factory = id_factory

        self._ledger_client = ledger_client
        self._fhe_client = fhe_client
        self._owns_ledger_client = ledger_client is None
        self._owns_fhe_client = fhe_client is None

        self.store = RecordStore()
        self.stats_aggregator = StatsAggregator(self.store)
        self.status = status if status is not None else TransactionStatusController()

        self.engine: Optional[FheEngine] = None
        self.contract: Optional[EstateContract] = None
        self.sync: Optional[SyncController] = None
        self.creator: Optional[EncryptionOrchestrator] = None
        self.verifier: Optional[VerificationOrchestrator] = None

    async def setup(self) -> None:
        """Connect to Redis and build the collaborators and orchestrators."""
        if self._ledger_client is None:
            self._ledger_client = create_ledger_client()
        if self._fhe_client is None:
            self._fhe_client = create_fhe_client()

        self.engine = FheEngine(self._fhe_client, seed=self.key_seed)
        self.contract = EstateContract(self._ledger_client, address=self.contract_address, seed=self.key_seed)
        self.sync = SyncController(self.contract, self.store, self.wallet, self.status, engine=self.engine)
        self.creator = EncryptionOrchestrator(
            self.wallet, self.engine, self.contract, self.store, self.status, self.sync,
            id_factory=self.id_factory,
        )
        self.verifier = VerificationOrchestrator(
            self.wallet, self.engine, self.contract, self.store, self.status, self.sync,
        )

    async def connect(self, address: str) -> list[AssetRecord]:
        """Bind a wallet address, initialize FHE, and load the records."""
        self.wallet.connect(address)
        return await self.sync.start()

    def disconnect(self) -> None:
        self.wallet.disconnect()
        self.store.replace(())

    # ─── Operations ───

    async def create_record(self, name: str, beneficiary: str, condition_code: int, amount: int) -> str:
        return await self.creator.create_record(name, beneficiary, condition_code, amount)

    async def reveal_value(self, record_id: str) -> Optional[int]:
        return await self.verifier.reveal_value(record_id)

    async def peek_value(self, record_id: str) -> int:
        return await self.verifier.peek_value(record_id)

    async def refresh(self) -> list[AssetRecord]:
        return await self.sync.refresh()

    # ─── Read-only views ───

    def records(self, search: str = "") -> list[AssetRecord]:
        return self.store.search(search)

    def stats(self) -> AssetStats:
        return self.stats_aggregator.current

    def transaction_status(self) -> TransactionStatus:
        return self.status.current

    def subscribe_status(self, listener: Callable[[TransactionStatus], None]) -> Callable[[], None]:
        return self.status.subscribe(listener)

    def health(self) -> LedgerHealth:
        return health_check(self._ledger_client, self._fhe_client)

    async def teardown(self) -> None:
        """Cancel pending status timers and close connections this session opened."""
        self.status.clear()
        self.stats_aggregator.close()
        if self._owns_ledger_client and self._ledger_client is not None:
            self._ledger_client.close()
        if self._owns_fhe_client and self._fhe_client is not None:
            self._fhe_client.close()
