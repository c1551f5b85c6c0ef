"""
Record creation: validate → envelope → submit → confirm → refresh.

Nothing is added to the RecordStore locally; a created record only appears
once the post-confirmation refresh reads it back from the contract.
"""

import logging
import time
import uuid
from typing import Callable, Optional

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import (
    CollaboratorError,
    EncryptionFailedError,
    EstateError,
    IdCollisionError,
    InvalidAmountError,
    InvalidInputError,
    LedgerUnavailableError,
    OperationFailedError,
    RecordAlreadyExistsError,
    SessionMissingError,
    SubmissionRejectedError,
    SyncError,
    UserDeclinedError,
)
from Sealed_Estate.fhe_shared.fhe_engine import FheEngine
from Sealed_Estate.fhe_ledger.contract import EstateContract
from Sealed_Estate.estate.record_store import RecordStore
from Sealed_Estate.estate.status import ERROR, TransactionStatusController
from Sealed_Estate.estate.sync import SyncController
from Sealed_Estate.estate.wallet import WalletSession

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return f"{config.RECORD_ID_PREFIX}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(amount)
    if amount < 0:
        raise InvalidAmountError(amount)
    if amount >= config.FHE_MAX_PLAINTEXT:
        raise InvalidAmountError(amount, "amount exceeds the euint64 range")
    return amount


def validate_condition(code) -> int:
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidInputError("condition_code", code, "must be an integer")
    if not config.CONDITION_CODE_MIN <= code <= config.CONDITION_CODE_MAX:
        raise InvalidInputError(
            "condition_code", code,
            f"must be between {config.CONDITION_CODE_MIN} and {config.CONDITION_CODE_MAX}",
        )
    return code


def _require_text(field: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(field, value, "must be non-empty")
    return value.strip()


class EncryptionOrchestrator:
    def __init__(
        self,
        session: WalletSession,
        engine: FheEngine,
        contract: EstateContract,
        store: RecordStore,
        status: TransactionStatusController,
        sync: SyncController,
        id_factory: Callable[[], str] = new_record_id,
    ):
        self.session = session
        self.engine = engine
        self.contract = contract
        self.store = store
        self.status = status
        self.sync = sync
        self.id_factory = id_factory

    async def create_record(
        self,
        name: str,
        beneficiary: str,
        condition_code: int,
        amount: int,
    ) -> str:
        """Encrypt amount and register a new record. Returns the record id.

        Input is validated before any collaborator is contacted.
        """
        address = self.session.current_address()
        if not self.session.is_active() or address is None:
            self.status.notify(ERROR, "Connect a wallet first")
            raise SessionMissingError("create_record")

        try:
            name = _require_text("name", name)
            beneficiary = _require_text("beneficiary", beneficiary)
            condition_code = validate_condition(condition_code)
            amount = validate_amount(amount)
        except InvalidInputError as e:
            self.status.notify(ERROR, str(e))
            raise

        token = self.status.begin("Creating encrypted record with FHE...")
        record_id: Optional[str] = None
        try:
            record_id = self.id_factory()
            if record_id in self.store:
                raise IdCollisionError(record_id)
            try:
                taken = self.contract.exists(record_id)
            except LedgerUnavailableError as e:
                raise SubmissionRejectedError("create_record", str(e)) from e
            if taken:
                raise IdCollisionError(record_id)

            try:
                envelope = await self.engine.encrypt_integer(self.contract.address, address, amount)
            except EncryptionFailedError:
                raise
            except CollaboratorError as e:
                raise EncryptionFailedError(str(e)) from e

            writer = self.contract.connect(self.session)
            try:
                tx = await writer.create_record(
                    record_id,
                    name,
                    envelope.handle,
                    envelope.input_proof,
                    condition_code,
                    0,
                    beneficiary,
                )
                self.status.update(token, "Waiting for transaction confirmation...")
                receipt = await tx.wait()
            except RecordAlreadyExistsError as e:
                raise IdCollisionError(record_id) from e
            except LedgerUnavailableError as e:
                raise SubmissionRejectedError("create_record", str(e)) from e

        except UserDeclinedError:
            logger.info("create_record %s cancelled by user", record_id)
            self.status.fail(token, "Transaction cancelled by user")
            raise
        except (IdCollisionError, SessionMissingError, EncryptionFailedError, SubmissionRejectedError) as e:
            logger.warning("create_record %s failed: %s", record_id, e)
            self.status.fail(token, f"Submission failed: {e}")
            raise
        except EstateError as e:
            logger.warning("create_record %s failed: %s", record_id, e)
            self.status.fail(token, f"Submission failed: {e}")
            raise OperationFailedError("create_record", e) from e
        except Exception as e:
            logger.exception("create_record %s failed unexpectedly", record_id)
            self.status.fail(token, "Submission failed: unknown error")
            raise OperationFailedError("create_record", e) from e

        logger.info("Created record %s in block %d", record_id, receipt.block_number)
        self.status.succeed(token, "Record created")

        try:
            await self.sync.refresh()
        except (SyncError, SessionMissingError) as e:
            logger.warning("Refresh after creating %s failed: %s", record_id, e)

        return record_id
