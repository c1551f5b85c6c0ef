"""
Bridge between the estate contract (ledger) and the local RecordStore.

Data flow:
    Connect:  wallet session becomes active
              → FHE engine initialized (once, shared by concurrent callers)
              → first refresh

    Refresh:  contract.list_record_ids()
              → contract.get_record(id) for each id (unreadable records skipped)
              → RecordStore.replace(full snapshot)
"""

import asyncio
import logging
from typing import Optional

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import (
    EstateError,
    FheInitError,
    SessionMissingError,
    SyncError,
)
from Sealed_Estate.fhe_shared.fhe_engine import FheEngine
from Sealed_Estate.fhe_shared.types import AssetRecord, RecordFields
from Sealed_Estate.fhe_ledger.contract import EstateContract
from Sealed_Estate.estate.record_store import RecordStore
from Sealed_Estate.estate.status import ERROR, TransactionStatusController
from Sealed_Estate.estate.wallet import WalletSession

logger = logging.getLogger(__name__)


def describe_condition(code: int) -> str:
    return config.TRIGGER_CONDITIONS.get(code, f"CONDITION_{code}")


def to_asset_record(fields: RecordFields) -> AssetRecord:
    """Build an AssetRecord; revealed_value is only carried when verified."""
    return AssetRecord(
        record_id=fields.record_id,
        name=fields.name,
        encrypted_amount=fields.handle,
        beneficiary=fields.description,
        trigger_condition=describe_condition(fields.public_value1),
        timestamp=fields.timestamp,
        creator=fields.creator,
        public_value1=fields.public_value1,
        public_value2=fields.public_value2,
        is_verified=fields.is_verified,
        revealed_value=fields.decrypted_value if fields.is_verified else None,
    )


class SyncController:
    def __init__(
        self,
        contract: EstateContract,
        store: RecordStore,
        session: WalletSession,
        status: TransactionStatusController,
        engine: Optional[FheEngine] = None,
    ):
        self.contract = contract
        self.store = store
        self.session = session
        self.status = status
        self.engine = engine
        self._in_flight = 0
        self._init_task: Optional[asyncio.Task] = None

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight > 0

    async def start(self) -> list[AssetRecord]:
        """Initialize the FHE engine for the connected session, then load records."""
        if not self.session.is_active():
            raise SessionMissingError("start")

        if self.engine is not None and not self.engine.is_initialized:
            if self._init_task is None:
                self._init_task = asyncio.ensure_future(self.engine.initialize())
            try:
                await self._init_task
            except FheInitError as e:
                logger.warning("FHE initialization failed: %s", e)
                self.status.notify(ERROR, "FHE initialization failed")
                raise
            finally:
                if self._init_task is not None and self._init_task.done():
                    self._init_task = None

        return await self.refresh()

    async def refresh(self) -> list[AssetRecord]:
        """Reload every record and replace the store with the result.

        The last refresh to complete wins.  A record that cannot be read is
        logged and skipped; it does not hide the others.
        """
        if not self.session.is_active():
            raise SessionMissingError("refresh")

        self._in_flight += 1
        try:
            try:
                record_ids = await self.contract.list_record_ids()
            except EstateError as e:
                logger.error("Could not enumerate records: %s", e)
                self.status.notify(ERROR, "Failed to load records")
                raise SyncError(str(e)) from e

            records: list[AssetRecord] = []
            for record_id in record_ids:
                try:
                    fields = await self.contract.get_record(record_id)
                except EstateError as e:
                    logger.warning("Skipping record %s: %s", record_id, e)
                    continue
                records.append(to_asset_record(fields))

            self.store.replace(records)
            logger.debug("Refreshed %d of %d records", len(records), len(record_ids))
            return records
        finally:
            self._in_flight -= 1
