"""Tests for VerificationOrchestrator — fast path, proof handshake, races, peek."""

import asyncio

import pytest

from Sealed_Estate.fhe_shared.errors import (
    AccessDeniedError,
    HandleUnavailableError,
    ProofGenerationFailedError,
    RecordNotFoundError,
    SessionMissingError,
    UserDeclinedError,
    VerificationInProgressError,
)
from Sealed_Estate.estate.record_store import SOURCE_ADVISORY, SOURCE_VERIFIED
from Sealed_Estate.estate.status import ERROR, SUCCESS

pytestmark = pytest.mark.asyncio


class CountingEngine:
    """Passes through to a real engine, counting proof requests."""

    def __init__(self, engine):
        self.engine = engine
        self.proofs = 0

    async def verify_decryption(self, handles, contract_address, submit_callback):
        self.proofs += 1
        return await self.engine.verify_decryption(handles, contract_address, submit_callback)

    async def user_decrypt(self, handle, contract_address, user_address):
        return await self.engine.user_decrypt(handle, contract_address, user_address)


class PreemptedEngine:
    """Runs a hook between proof generation and submission."""

    def __init__(self, engine, before_submit):
        self.engine = engine
        self.before_submit = before_submit

    async def verify_decryption(self, handles, contract_address, submit_callback):
        async def submit(clear_values, proof):
            await self.before_submit(clear_values, proof)
            return await submit_callback(clear_values, proof)
        return await self.engine.verify_decryption(handles, contract_address, submit)


class GatedEngine:
    """Holds the handshake open until released."""

    def __init__(self, engine):
        self.engine = engine
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def verify_decryption(self, handles, contract_address, submit_callback):
        self.entered.set()
        await self.release.wait()
        return await self.engine.verify_decryption(handles, contract_address, submit_callback)


class FailingEngine:
    async def verify_decryption(self, handles, contract_address, submit_callback):
        raise AccessDeniedError(handles[0], contract_address)


# ─── Slow path ───

async def test_reveal_unverified_returns_clear_value(estate):
    record_id = await estate.create_record("A", "B", 3, 100)

    value = await estate.reveal_value(record_id)

    assert value == 100
    record = estate.store.get(record_id)
    assert record.is_verified is True
    assert record.revealed_value == 100
    assert estate.store.display_value(record_id) == (100, SOURCE_VERIFIED)
    assert estate.transaction_status().phase == SUCCESS
    assert estate.transaction_status().message == "Decryption verified"


async def test_reveal_updates_stats(estate):
    a = await estate.create_record("A", "B", 1, 100)
    await estate.create_record("C", "D", 1, 50)
    await estate.reveal_value(a)

    stats = estate.stats()
    assert stats.total_assets == 2
    assert stats.verified_assets == 1
    assert stats.pending_verification == 1
    assert stats.total_value == 100


# ─── Fast path ───

async def test_reveal_is_idempotent_without_new_proof(estate):
    record_id = await estate.create_record("A", "B", 1, 77)
    counting = CountingEngine(estate.engine)
    estate.verifier.engine = counting

    first = await estate.reveal_value(record_id)
    second = await estate.reveal_value(record_id)
    third = await estate.reveal_value(record_id)

    assert first == second == third == 77
    assert counting.proofs == 1
    assert estate.transaction_status().message == "Value already verified on-chain"


# ─── Races ───

async def test_concurrent_verification_returns_none(estate, contract, bob_wallet):
    record_id = await estate.create_record("A", "B", 1, 100)

    async def other_party_verifies(clear_values, proof):
        tx = await contract.connect(bob_wallet).submit_verification(record_id, clear_values, proof)
        await tx.wait()

    estate.verifier.engine = PreemptedEngine(estate.engine, other_party_verifies)

    value = await estate.reveal_value(record_id)

    assert value is None
    record = estate.store.get(record_id)
    assert record.is_verified is True
    assert record.revealed_value == 100
    assert estate.transaction_status().phase == SUCCESS


async def test_second_reveal_while_in_flight_rejected(estate):
    record_id = await estate.create_record("A", "B", 1, 100)
    gated = GatedEngine(estate.engine)
    estate.verifier.engine = gated

    first = asyncio.ensure_future(estate.reveal_value(record_id))
    await gated.entered.wait()
    assert estate.verifier.is_verifying(record_id)
    pending_message = estate.transaction_status().message

    with pytest.raises(VerificationInProgressError):
        await estate.reveal_value(record_id)
    # The running handshake keeps its status line.
    assert estate.transaction_status().message == pending_message

    gated.release.set()
    assert await first == 100
    assert estate.verifier.is_verifying(record_id) is False


async def test_other_records_not_blocked(estate):
    a = await estate.create_record("A", "B", 1, 1)
    b = await estate.create_record("C", "D", 1, 2)
    gated = GatedEngine(estate.engine)
    estate.verifier.engine = gated

    first = asyncio.ensure_future(estate.reveal_value(a))
    await gated.entered.wait()
    estate.verifier.engine = gated.engine
    assert await estate.reveal_value(b) == 2

    gated.release.set()
    assert await first == 1


# ─── Failures ───

async def test_reveal_missing_record(estate):
    with pytest.raises(RecordNotFoundError):
        await estate.reveal_value("inheritance-missing")
    assert estate.transaction_status().phase == ERROR


async def test_reveal_requires_session(estate):
    record_id = await estate.create_record("A", "B", 1, 1)
    estate.disconnect()
    with pytest.raises(SessionMissingError):
        await estate.reveal_value(record_id)


async def test_reveal_user_declined(estate):
    record_id = await estate.create_record("A", "B", 1, 1)
    estate.wallet._approve = lambda action: action != "submit_verification"

    with pytest.raises(UserDeclinedError):
        await estate.reveal_value(record_id)

    assert estate.transaction_status().message == "Transaction cancelled by user"
    assert estate.store.get(record_id).is_verified is False
    assert estate.verifier.is_verifying(record_id) is False


async def test_reveal_collaborator_failure_wrapped(estate):
    record_id = await estate.create_record("A", "B", 1, 1)
    estate.verifier.engine = FailingEngine()

    with pytest.raises(ProofGenerationFailedError):
        await estate.reveal_value(record_id)
    assert estate.transaction_status().message.startswith("Decryption failed")


# ─── Peek (advisory) ───

async def test_peek_is_advisory_only(estate):
    record_id = await estate.create_record("A", "B", 1, 250)

    value = await estate.peek_value(record_id)

    assert value == 250
    record = estate.store.get(record_id)
    assert record.is_verified is False
    assert record.revealed_value is None
    assert estate.store.display_value(record_id) == (250, SOURCE_ADVISORY)
    assert estate.stats().total_value == 0


async def test_peek_survives_refresh_until_verified(estate):
    record_id = await estate.create_record("A", "B", 1, 250)
    await estate.peek_value(record_id)
    await estate.refresh()
    assert estate.store.display_value(record_id) == (250, SOURCE_ADVISORY)

    await estate.reveal_value(record_id)
    assert estate.store.advisory_value(record_id) is None
    assert estate.store.display_value(record_id) == (250, SOURCE_VERIFIED)


async def test_peek_on_verified_returns_trusted_value(estate):
    record_id = await estate.create_record("A", "B", 1, 9)
    await estate.reveal_value(record_id)
    assert await estate.peek_value(record_id) == 9


async def test_peek_denied_for_other_address(estate):
    record_id = await estate.create_record("A", "B", 1, 9)
    estate.wallet.connect("0x000000000000000000000000000000000000bad0")

    with pytest.raises(AccessDeniedError):
        await estate.peek_value(record_id)
    assert estate.transaction_status().message.startswith("Local decryption failed")


async def test_peek_missing_record(estate):
    with pytest.raises(HandleUnavailableError):
        await estate.peek_value("inheritance-missing")
