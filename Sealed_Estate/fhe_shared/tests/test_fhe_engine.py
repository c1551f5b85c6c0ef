"""Tests for FheEngine and the proof wire helpers."""

import fakeredis
import pytest

from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import (
    AccessDeniedError,
    EncryptionFailedError,
    FheInitError,
    FheNotInitializedError,
    ProofGenerationFailedError,
    SubmissionRejectedError,
)
from Sealed_Estate.fhe_shared.fhe_engine import (
    FheEngine,
    decode_clear_values,
    decryption_proof_message,
    encode_clear_values,
    handle_bytes,
    input_proof_message,
    verifier_keys,
)
from Sealed_Estate.fhe_shared.types import TxReceipt

pytestmark = pytest.mark.asyncio

CONTRACT = config.CONTRACT_ADDRESS
ALICE = "0x00000000000000000000000000000000000A11CE"
MALLORY = "0x000000000000000000000000000000000000bad0"


async def _accept(clear_values, proof):
    return TxReceipt(tx_hash="0x01", block_number=1)


# ─── Wire helpers ───

async def test_clear_values_are_32_byte_words():
    data = encode_clear_values([100, 0])
    assert len(data) == 2 * config.CLEAR_VALUE_WORD_BYTES
    assert data[31] == 100
    assert decode_clear_values(data) == [100, 0]


async def test_decode_rejects_partial_word():
    with pytest.raises(ValueError):
        decode_clear_values(b"\x00" * 33)


async def test_handle_bytes_rejects_malformed():
    with pytest.raises(ValueError):
        handle_bytes("0x1234")
    with pytest.raises(ValueError):
        handle_bytes("ab" * 33)


# ─── Initialization ───

async def test_uninitialized_engine_refuses_work(fhe_client):
    e = FheEngine(fhe_client)
    assert e.is_initialized is False
    with pytest.raises(FheNotInitializedError):
        await e.encrypt_integer(CONTRACT, ALICE, 1)


async def test_initialize_is_idempotent(fhe_client):
    e = FheEngine(fhe_client)
    await e.initialize()
    box = e._box
    await e.initialize()
    assert e._box is box


async def test_initialize_empty_seed_fails(fhe_client):
    with pytest.raises(FheInitError):
        await FheEngine(fhe_client, seed="").initialize()


async def test_initialize_unreachable_store_fails():
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeRedis(server=server)
    with pytest.raises(FheInitError):
        await FheEngine(client).initialize()


# ─── Encryption ───

async def test_encrypt_returns_handle_and_valid_input_proof(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 100)
    assert envelope.handle.startswith("0x")
    assert len(envelope.handle) == 66

    input_vk, _ = verifier_keys()
    input_vk.verify(input_proof_message(envelope.handle, CONTRACT, ALICE), envelope.input_proof)


async def test_encrypt_stores_ciphertext_not_plaintext(engine, fhe_client):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 4242)
    stored = fhe_client.get(f"{config.FHE_CIPHERTEXT_PREFIX}:{envelope.handle}")
    assert stored is not None
    assert (4242).to_bytes(8, "big") not in stored


async def test_encrypt_same_value_twice_gives_distinct_handles(engine):
    a = await engine.encrypt_integer(CONTRACT, ALICE, 7)
    b = await engine.encrypt_integer(CONTRACT, ALICE, 7)
    assert a.handle != b.handle


async def test_encrypt_grants_acl_to_submitter_and_contract(engine, fhe_client):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 1)
    acl = fhe_client.smembers(f"{config.FHE_ACL_PREFIX}:{envelope.handle}")
    assert ALICE.lower().encode() in acl
    assert CONTRACT.lower().encode() in acl


@pytest.mark.parametrize("value", [-1, 2**64, 1.5, True, "10"])
async def test_encrypt_rejects_out_of_range(engine, value):
    with pytest.raises(EncryptionFailedError):
        await engine.encrypt_integer(CONTRACT, ALICE, value)


async def test_encrypt_upper_bound_accepted(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 2**64 - 1)
    assert await engine.user_decrypt(envelope.handle, CONTRACT, ALICE) == 2**64 - 1


# ─── Decryption proofs ───

async def test_verify_decryption_invokes_callback_with_signed_proof(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 100)
    seen = []

    async def submit(clear_values, proof):
        seen.append((clear_values, proof))
        return TxReceipt(tx_hash="0xabc", block_number=9)

    result = await engine.verify_decryption([envelope.handle], CONTRACT, submit)

    assert result.clear_values == {envelope.handle: 100}
    assert result.receipt.block_number == 9
    assert len(seen) == 1
    clear_values, proof = seen[0]
    assert decode_clear_values(clear_values) == [100]
    assert proof.handles == (envelope.handle,)

    _, kms_vk = verifier_keys()
    kms_vk.verify(decryption_proof_message(proof.handles, CONTRACT, clear_values), proof.signature)


async def test_verify_decryption_unknown_handle(engine):
    with pytest.raises(ProofGenerationFailedError):
        await engine.verify_decryption(["0x" + "00" * 32], CONTRACT, _accept)


async def test_verify_decryption_no_handles(engine):
    with pytest.raises(ProofGenerationFailedError):
        await engine.verify_decryption([], CONTRACT, _accept)


async def test_verify_decryption_tampered_ciphertext(engine, fhe_client):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 5)
    key = f"{config.FHE_CIPHERTEXT_PREFIX}:{envelope.handle}"
    ct = bytearray(fhe_client.get(key))
    ct[-1] ^= 0xFF
    fhe_client.set(key, bytes(ct))

    with pytest.raises(ProofGenerationFailedError):
        await engine.verify_decryption([envelope.handle], CONTRACT, _accept)


async def test_callback_error_propagates_unchanged(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 5)

    async def reject(clear_values, proof):
        raise SubmissionRejectedError("submit_verification", "reverted")

    with pytest.raises(SubmissionRejectedError):
        await engine.verify_decryption([envelope.handle], CONTRACT, reject)


async def test_different_seed_cannot_decrypt(engine, fhe_client):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 5)
    other = FheEngine(fhe_client, seed="another-seed")
    await other.initialize()
    with pytest.raises(ProofGenerationFailedError):
        await other.verify_decryption([envelope.handle], CONTRACT, _accept)


# ─── User decryption ───

async def test_user_decrypt_for_acl_member(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 314)
    assert await engine.user_decrypt(envelope.handle, CONTRACT, ALICE.lower()) == 314


async def test_user_decrypt_denied_outside_acl(engine):
    envelope = await engine.encrypt_integer(CONTRACT, ALICE, 314)
    with pytest.raises(AccessDeniedError):
        await engine.user_decrypt(envelope.handle, CONTRACT, MALLORY)
