"""
Decrypt/verify path.

Fast path:  the contract already holds a verified value → return it, no proof.
Slow path:  handle → FHE engine decrypts and signs a proof → callback submits
            the proof to the contract and waits for confirmation → refresh.

A record verified by someone else between the read and the submission
("Data already verified") counts as success: refresh and return None.
"""

import logging
from typing import Optional

from Sealed_Estate.fhe_shared.errors import (
    AlreadyVerifiedError,
    CollaboratorError,
    DataIntegrityError,
    EstateError,
    HandleUnavailableError,
    LedgerUnavailableError,
    OperationFailedError,
    ProofGenerationFailedError,
    RecordNotFoundError,
    SessionMissingError,
    SubmissionRejectedError,
    SyncError,
    UserDeclinedError,
    VerificationInProgressError,
)
from Sealed_Estate.fhe_shared.fhe_engine import FheEngine
from Sealed_Estate.fhe_shared.types import DecryptionProof, TxReceipt
from Sealed_Estate.fhe_ledger.contract import EstateContract
from Sealed_Estate.estate.record_store import RecordStore
from Sealed_Estate.estate.status import ERROR, SUCCESS, TransactionStatusController
from Sealed_Estate.estate.sync import SyncController
from Sealed_Estate.estate.wallet import WalletSession

logger = logging.getLogger(__name__)


class VerificationOrchestrator:
    def __init__(
        self,
        session: WalletSession,
        engine: FheEngine,
        contract: EstateContract,
        store: RecordStore,
        status: TransactionStatusController,
        sync: SyncController,
    ):
        self.session = session
        self.engine = engine
        self.contract = contract
        self.store = store
        self.status = status
        self.sync = sync
        self._in_flight: set[str] = set()

    def is_verifying(self, record_id: str) -> bool:
        return record_id in self._in_flight

    def _require_address(self, operation: str) -> str:
        address = self.session.current_address()
        if not self.session.is_active() or address is None:
            self.status.notify(ERROR, "Connect a wallet first")
            raise SessionMissingError(operation)
        return address

    async def _refresh_quietly(self, record_id: str) -> None:
        try:
            await self.sync.refresh()
        except (SyncError, SessionMissingError) as e:
            logger.warning("Refresh after verifying %s failed: %s", record_id, e)

    async def reveal_value(self, record_id: str) -> Optional[int]:
        """Return the verified amount for record_id, running the proof handshake if needed.

        Returns None when another party verified the record mid-handshake; the
        refreshed store then holds the authoritative value.  Only one handshake
        per record id runs at a time.
        """
        self._require_address("reveal_value")
        if record_id in self._in_flight:
            raise VerificationInProgressError(record_id)

        self._in_flight.add(record_id)
        try:
            return await self._reveal(record_id)
        finally:
            self._in_flight.discard(record_id)

    async def _reveal(self, record_id: str) -> Optional[int]:
        try:
            fields = await self.contract.get_record(record_id)
        except (RecordNotFoundError, DataIntegrityError) as e:
            self.status.notify(ERROR, f"Decryption failed: {e}")
            raise
        except EstateError as e:
            self.status.notify(ERROR, f"Decryption failed: {e}")
            raise OperationFailedError("reveal_value", e) from e

        if fields.is_verified:
            self.status.notify(SUCCESS, "Value already verified on-chain")
            return fields.decrypted_value

        token = self.status.begin("Requesting decryption proof...")
        try:
            try:
                handle = await self.contract.get_ciphertext_handle(record_id)
            except EstateError as e:
                raise HandleUnavailableError(record_id) from e

            writer = self.contract.connect(self.session)

            async def submit(clear_values: bytes, proof: DecryptionProof) -> TxReceipt:
                self.status.update(token, "Verifying decryption on-chain...")
                try:
                    tx = await writer.submit_verification(record_id, clear_values, proof)
                    return await tx.wait()
                except LedgerUnavailableError as e:
                    raise SubmissionRejectedError("submit_verification", str(e)) from e

            try:
                result = await self.engine.verify_decryption([handle], self.contract.address, submit)
            except ProofGenerationFailedError:
                raise
            except CollaboratorError as e:
                raise ProofGenerationFailedError(str(e)) from e

        except AlreadyVerifiedError:
            logger.info("Record %s was verified concurrently", record_id)
            self.status.succeed(token, "Value already verified on-chain")
            await self._refresh_quietly(record_id)
            return None
        except UserDeclinedError:
            logger.info("Verification of %s cancelled by user", record_id)
            self.status.fail(token, "Transaction cancelled by user")
            raise
        except (SessionMissingError, HandleUnavailableError, ProofGenerationFailedError, SubmissionRejectedError) as e:
            logger.warning("Verification of %s failed: %s", record_id, e)
            self.status.fail(token, f"Decryption failed: {e}")
            raise
        except EstateError as e:
            logger.warning("Verification of %s failed: %s", record_id, e)
            self.status.fail(token, f"Decryption failed: {e}")
            raise OperationFailedError("reveal_value", e) from e
        except Exception as e:
            logger.exception("Verification of %s failed unexpectedly", record_id)
            self.status.fail(token, "Decryption failed: unknown error")
            raise OperationFailedError("reveal_value", e) from e

        value = result.clear_values[handle]
        # Held as advisory until the refresh below brings the verified flag.
        self.store.set_advisory(record_id, value)
        await self._refresh_quietly(record_id)
        self.status.succeed(token, "Decryption verified")
        return value

    async def peek_value(self, record_id: str) -> int:
        """Local decryption without a proof. The value is advisory only."""
        address = self._require_address("peek_value")

        record = self.store.get(record_id)
        if record is not None and record.is_verified:
            return record.revealed_value

        try:
            try:
                handle = await self.contract.get_ciphertext_handle(record_id)
            except EstateError as e:
                raise HandleUnavailableError(record_id) from e
            value = await self.engine.user_decrypt(handle, self.contract.address, address)
        except CollaboratorError as e:
            self.status.notify(ERROR, f"Local decryption failed: {e}")
            raise

        self.store.set_advisory(record_id, value)
        return value
