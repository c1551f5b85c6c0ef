"""
FHE coprocessor stand-in for the estate contract.

Plays the encryption-service role: seals plaintext integers into ciphertexts
referenced by opaque handles, signs input proofs binding a handle to
(contract, submitter), and produces decryption proofs that the contract checks
before it marks a record verified.

Sealing:        NaCl SecretBox (XSalsa20-Poly1305) under a KMS key = SHA-256(seed:kms)
Input proofs:   Ed25519 over handle || contract || submitter
Decrypt proofs: Ed25519 over handles || contract || ABI-encoded clear values

Ciphertexts and the per-handle decrypt ACL live in Redis (db=1).  The
homomorphic arithmetic itself is out of scope; a handle only ever carries the
value it was created with.
"""

import hashlib
from typing import Awaitable, Callable, Optional

import nacl.exceptions
import nacl.secret
import nacl.signing
import redis

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import (
    AccessDeniedError,
    EncryptionFailedError,
    FheInitError,
    FheNotInitializedError,
    ProofGenerationFailedError,
)
from Sealed_Estate.fhe_shared.types import (
    DecryptionProof,
    DecryptionResult,
    EncryptionEnvelope,
    TxReceipt,
)

PLAINTEXT_BYTES = 8     # euint64
HANDLE_BYTES = 32

SubmitCallback = Callable[[bytes, DecryptionProof], Awaitable[TxReceipt]]


# ─── Wire helpers (shared with the contract) ───

def encode_clear_values(values: list[int]) -> bytes:
    """ABI-encode clear values as consecutive 32-byte signed words."""
    word = config.CLEAR_VALUE_WORD_BYTES
    return b"".join(v.to_bytes(word, "big", signed=True) for v in values)


def decode_clear_values(data: bytes) -> list[int]:
    word = config.CLEAR_VALUE_WORD_BYTES
    if len(data) % word != 0:
        raise ValueError(f"clear values length {len(data)} is not a multiple of {word}")
    return [
        int.from_bytes(data[i:i + word], "big", signed=True)
        for i in range(0, len(data), word)
    ]


def handle_bytes(handle: str) -> bytes:
    if not handle.startswith("0x") or len(handle) != 2 + HANDLE_BYTES * 2:
        raise ValueError(f"malformed handle {handle!r}")
    return bytes.fromhex(handle[2:])


def input_proof_message(handle: str, contract_address: str, submitter: str) -> bytes:
    return (
        handle_bytes(handle)
        + contract_address.lower().encode("ascii")
        + submitter.lower().encode("ascii")
    )


def decryption_proof_message(handles, contract_address: str, clear_values: bytes) -> bytes:
    return (
        b"".join(handle_bytes(h) for h in handles)
        + contract_address.lower().encode("ascii")
        + clear_values
    )


def _derive(seed: str, label: str) -> bytes:
    return hashlib.sha256(f"{seed}:{label}".encode("utf-8")).digest()


def verifier_keys(seed: str = config.FHE_KEY_SEED) -> tuple[nacl.signing.VerifyKey, nacl.signing.VerifyKey]:
    """Return (input_verifier, kms_verifier) public keys for a key seed.

    The contract side only ever needs these two public halves.
    """
    input_signer = nacl.signing.SigningKey(_derive(seed, "input"))
    kms_signer = nacl.signing.SigningKey(_derive(seed, "kms-signer"))
    return input_signer.verify_key, kms_signer.verify_key


class FheEngine:
    """Encryption, proof and decryption service backed by a Redis ciphertext store."""

    def __init__(self, client: redis.Redis, seed: str = config.FHE_KEY_SEED):
        self.db: redis.Redis = client
        self._seed = seed
        self._box: Optional[nacl.secret.SecretBox] = None
        self._input_signer: Optional[nacl.signing.SigningKey] = None
        self._kms_signer: Optional[nacl.signing.SigningKey] = None

    def _ct_key(self, handle: str) -> str:
        return f"{config.FHE_CIPHERTEXT_PREFIX}:{handle}"

    def _acl_key(self, handle: str) -> str:
        return f"{config.FHE_ACL_PREFIX}:{handle}"

    def _require_init(self, operation: str) -> None:
        if not self.is_initialized:
            raise FheNotInitializedError(operation)

    @property
    def is_initialized(self) -> bool:
        return self._box is not None

    async def initialize(self) -> None:
        """Derive keys and check the ciphertext store. Idempotent."""
        if self.is_initialized:
            return
        if not self._seed:
            raise FheInitError("empty key seed")
        try:
            self.db.ping()
        except redis.exceptions.ConnectionError:
            raise FheInitError("ciphertext store unreachable")

        self._input_signer = nacl.signing.SigningKey(_derive(self._seed, "input"))
        self._kms_signer = nacl.signing.SigningKey(_derive(self._seed, "kms-signer"))
        self._box = nacl.secret.SecretBox(_derive(self._seed, "kms"))

    async def encrypt_integer(self, contract_address: str, submitter: str, value: int) -> EncryptionEnvelope:
        """Seal value as a euint64 and return its handle plus input proof.

        The submitter and the contract are added to the handle's decrypt ACL.
        """
        self._require_init("encrypt_integer")
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncryptionFailedError(f"value {value!r} is not an integer")
        if not 0 <= value < config.FHE_MAX_PLAINTEXT:
            raise EncryptionFailedError(f"value {value} is out of euint64 range")

        ciphertext = bytes(self._box.encrypt(value.to_bytes(PLAINTEXT_BYTES, "big")))
        handle = "0x" + hashlib.sha256(ciphertext).hexdigest()

        try:
            pipe = self.db.pipeline(transaction=True)
            pipe.set(self._ct_key(handle), ciphertext)
            pipe.sadd(self._acl_key(handle), submitter.lower(), contract_address.lower())
            pipe.execute()
        except redis.exceptions.ConnectionError:
            raise EncryptionFailedError("ciphertext store unreachable")

        signature = self._input_signer.sign(
            input_proof_message(handle, contract_address, submitter)
        ).signature
        return EncryptionEnvelope(handle=handle, input_proof=signature)

    def _decrypt_handle(self, handle: str) -> int:
        ciphertext = self.db.get(self._ct_key(handle))
        if ciphertext is None:
            raise KeyError(handle)
        plaintext = self._box.decrypt(ciphertext)
        return int.from_bytes(plaintext, "big")

    async def verify_decryption(
        self,
        handles: list[str],
        contract_address: str,
        submit_callback: SubmitCallback,
    ) -> DecryptionResult:
        """Decrypt handles, sign a proof, and hand it to submit_callback.

        Errors raised by the callback propagate unchanged so the caller can
        tell a rejected submission from a failed proof.
        """
        self._require_init("verify_decryption")
        if not handles:
            raise ProofGenerationFailedError("no handles requested")

        values = []
        for handle in handles:
            try:
                values.append(self._decrypt_handle(handle))
            except KeyError:
                raise ProofGenerationFailedError(f"unknown handle {handle}")
            except nacl.exceptions.CryptoError:
                raise ProofGenerationFailedError(f"ciphertext {handle} failed authentication")
            except redis.exceptions.ConnectionError:
                raise ProofGenerationFailedError("ciphertext store unreachable")

        clear_values = encode_clear_values(values)
        try:
            message = decryption_proof_message(handles, contract_address, clear_values)
        except ValueError as e:
            raise ProofGenerationFailedError(str(e))
        proof = DecryptionProof(
            handles=tuple(handles),
            clear_values=clear_values,
            signature=self._kms_signer.sign(message).signature,
        )

        receipt = await submit_callback(clear_values, proof)
        return DecryptionResult(clear_values=dict(zip(handles, values)), receipt=receipt)

    async def user_decrypt(self, handle: str, contract_address: str, user_address: str) -> int:
        """Proof-less local decryption for an address on the handle's ACL.

        The result is advisory: nothing on the contract side attests to it.
        """
        self._require_init("user_decrypt")
        try:
            allowed = self.db.sismember(self._acl_key(handle), user_address.lower())
            if not allowed:
                raise AccessDeniedError(handle, user_address)
            return self._decrypt_handle(handle)
        except KeyError:
            raise ProofGenerationFailedError(f"unknown handle {handle}")
        except nacl.exceptions.CryptoError:
            raise ProofGenerationFailedError(f"ciphertext {handle} failed authentication")
        except redis.exceptions.ConnectionError:
            raise ProofGenerationFailedError("ciphertext store unreachable")
