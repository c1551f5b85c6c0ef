"""
Estate contract — the persistence collaborator, simulated on Redis (db=0).

Read path  (EstateContract):  list_record_ids, get_record, get_ciphertext_handle
Write path (ContractWriter):   create_record, submit_verification → PendingTx

Writes go through a signer (the wallet session).  Sending a transaction asks
the wallet to authorize it; the state change is applied when the pending
transaction is mined (PendingTx.wait), which is where contract reverts such as
"Data already verified" surface.
"""

import asyncio
import hashlib
import time
from typing import Callable, Optional

import nacl.exceptions
import redis

from Sealed_Estate.fhe_shared import config, errors
from Sealed_Estate.fhe_shared.fhe_engine import (
    decode_clear_values,
    decryption_proof_message,
    input_proof_message,
    verifier_keys,
)
from Sealed_Estate.fhe_shared.types import DecryptionProof, RecordFields, TxReceipt

REQUIRED_FIELDS = (
    "name",
    "description",
    "handle",
    "creator",
    "timestamp",
    "is_verified",
)


class PendingTx:
    """A sent transaction; wait() mines it and returns the receipt."""

    def __init__(self, action: str, apply: Callable[[], TxReceipt]):
        self.action = action
        self._apply = apply
        self._receipt: Optional[TxReceipt] = None

    async def wait(self) -> TxReceipt:
        if self._receipt is None:
            await asyncio.sleep(config.TX_CONFIRMATION_DELAY)
            self._receipt = self._apply()
        return self._receipt


class EstateContract:
    def __init__(
        self,
        client: redis.Redis,
        address: str = config.CONTRACT_ADDRESS,
        seed: str = config.FHE_KEY_SEED,
    ):
        self.db: redis.Redis = client
        self.address = address
        self._input_verifier, self._kms_verifier = verifier_keys(seed)

    def _record_key(self, record_id: str) -> str:
        return f"{config.LEDGER_RECORD_PREFIX}:{record_id}"

    def _serialize_record(
        self,
        record_id: str,
        name: str,
        handle: str,
        creator: str,
        condition_code: int,
        extra: int,
        beneficiary: str,
    ) -> dict:
        return {
            "record_id": record_id,
            "name": name,
            "description": beneficiary,
            "handle": handle,
            "creator": creator,
            "timestamp": str(int(time.time())),
            "public_value1": str(condition_code),
            "public_value2": str(extra),
            "is_verified": "0",
            "decrypted_value": "0",
        }

    def _deserialize_record(self, record_id: str, data: dict[bytes, bytes]) -> RecordFields:
        missing = [f for f in REQUIRED_FIELDS if f.encode() not in data]
        if missing:
            raise errors.DataIntegrityError(record_id, missing)
        # A verified record must carry the value its proof established.
        if data[b"is_verified"] == b"1" and b"decrypted_value" not in data:
            raise errors.DataIntegrityError(record_id, ["decrypted_value"])

        try:
            return RecordFields(
                record_id=record_id,
                name=data[b"name"].decode(),
                description=data[b"description"].decode(),
                handle=data[b"handle"].decode(),
                creator=data[b"creator"].decode(),
                timestamp=int(data[b"timestamp"]),
                public_value1=int(data.get(b"public_value1", b"0")),
                public_value2=int(data.get(b"public_value2", b"0")),
                is_verified=data[b"is_verified"] == b"1",
                decrypted_value=int(data.get(b"decrypted_value", b"0")),
            )
        except (ValueError, UnicodeDecodeError):
            raise errors.DataIntegrityError(record_id, ["well-formed values"])

    def _next_block(self) -> int:
        return int(self.db.incr(config.LEDGER_BLOCK_KEY))

    def _receipt(self, action: str, record_id: str, sender: str) -> TxReceipt:
        block = self._next_block()
        digest = hashlib.sha256(f"{action}:{record_id}:{sender}:{block}".encode()).hexdigest()
        return TxReceipt(tx_hash="0x" + digest, block_number=block)

    # ─── Read path ───

    async def list_record_ids(self) -> list[str]:
        try:
            return [raw.decode() for raw in self.db.lrange(config.LEDGER_IDS_KEY, 0, -1)]
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("list_record_ids")

    async def get_record(self, record_id: str) -> RecordFields:
        try:
            data = self.db.hgetall(self._record_key(record_id))
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("get_record")
        if not data:
            raise errors.RecordNotFoundError(record_id)
        return self._deserialize_record(record_id, data)

    async def get_ciphertext_handle(self, record_id: str) -> str:
        try:
            handle = self.db.hget(self._record_key(record_id), "handle")
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("get_ciphertext_handle")
        if handle is None:
            raise errors.RecordNotFoundError(record_id)
        return handle.decode()

    def exists(self, record_id: str) -> bool:
        try:
            return bool(self.db.exists(self._record_key(record_id)))
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("exists")

    def connect(self, signer) -> "ContractWriter":
        return ContractWriter(self, signer)

    # ─── Mined state transitions ───

    def _apply_create(
        self,
        sender: str,
        record_id: str,
        name: str,
        handle: str,
        input_proof: bytes,
        condition_code: int,
        extra: int,
        beneficiary: str,
    ) -> TxReceipt:
        try:
            self._input_verifier.verify(
                input_proof_message(handle, self.address, sender), input_proof
            )
        except (nacl.exceptions.BadSignatureError, ValueError):
            raise errors.InvalidProofError("create_record")

        full_key = self._record_key(record_id)
        mapping = self._serialize_record(
            record_id, name, handle, sender, condition_code, extra, beneficiary
        )

        try:
            with self.db.pipeline(transaction=True) as pipe:
                for _ in range(config.LEDGER_OPTIMISTIC_LOCK_RETRIES):
                    try:
                        pipe.watch(full_key)
                        if pipe.exists(full_key):
                            raise errors.RecordAlreadyExistsError(record_id)
                        pipe.multi()
                        pipe.hset(full_key, mapping=mapping)
                        pipe.rpush(config.LEDGER_IDS_KEY, record_id)
                        pipe.execute()
                        break
                    except redis.exceptions.WatchError:
                        continue
                else:
                    raise errors.SubmissionRejectedError("create_record", "ledger busy")
            return self._receipt("create_record", record_id, sender)
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("create_record")

    def _apply_verification(
        self,
        sender: str,
        record_id: str,
        clear_values: bytes,
        proof: DecryptionProof,
    ) -> TxReceipt:
        full_key = self._record_key(record_id)

        try:
            with self.db.pipeline(transaction=True) as pipe:
                for _ in range(config.LEDGER_OPTIMISTIC_LOCK_RETRIES):
                    try:
                        pipe.watch(full_key)
                        status, handle = pipe.hmget(full_key, "is_verified", "handle")
                        if handle is None:
                            raise errors.RecordNotFoundError(record_id)
                        if status == b"1":
                            raise errors.AlreadyVerifiedError(record_id)

                        value = self._check_decryption_proof(handle.decode(), clear_values, proof)

                        pipe.multi()
                        pipe.hset(full_key, mapping={
                            "is_verified": "1",
                            "decrypted_value": str(value),
                        })
                        pipe.execute()
                        break
                    except redis.exceptions.WatchError:
                        continue
                else:
                    raise errors.SubmissionRejectedError("submit_verification", "ledger busy")
            return self._receipt("submit_verification", record_id, sender)
        except redis.exceptions.ConnectionError:
            raise errors.LedgerUnavailableError("submit_verification")

    def _check_decryption_proof(self, handle: str, clear_values: bytes, proof: DecryptionProof) -> int:
        if tuple(proof.handles) != (handle,) or proof.clear_values != clear_values:
            raise errors.InvalidProofError("submit_verification")
        try:
            self._kms_verifier.verify(
                decryption_proof_message(proof.handles, self.address, clear_values),
                proof.signature,
            )
            values = decode_clear_values(clear_values)
        except (nacl.exceptions.BadSignatureError, ValueError):
            raise errors.InvalidProofError("submit_verification")
        if len(values) != 1:
            raise errors.InvalidProofError("submit_verification")
        return values[0]


class ContractWriter:
    """Write path bound to a signer, like a contract connected to a wallet."""

    def __init__(self, contract: EstateContract, signer):
        self.contract = contract
        self.signer = signer

    def _authorize(self, action: str) -> str:
        address = self.signer.current_address()
        if not self.signer.is_active() or address is None:
            raise errors.SessionMissingError(action)
        self.signer.authorize(action)
        return address

    async def create_record(
        self,
        record_id: str,
        name: str,
        encrypted_amount: str,
        input_proof: bytes,
        condition_code: int,
        extra: int,
        beneficiary: str,
    ) -> PendingTx:
        sender = self._authorize("create_record")
        return PendingTx("create_record", lambda: self.contract._apply_create(
            sender, record_id, name, encrypted_amount, input_proof,
            condition_code, extra, beneficiary,
        ))

    async def submit_verification(
        self,
        record_id: str,
        clear_values: bytes,
        proof: DecryptionProof,
    ) -> PendingTx:
        sender = self._authorize("submit_verification")
        return PendingTx("submit_verification", lambda: self.contract._apply_verification(
            sender, record_id, clear_values, proof,
        ))
