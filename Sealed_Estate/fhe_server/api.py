"""
FastAPI endpoints for the Sealed Estate record manager.

One EstateSession backs the whole app.  Amounts cross this boundary only as
plaintext input to POST /v1/records; everything returned for an unverified
record is the ciphertext handle, unless a local peek left an advisory value.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, StrictInt, field_validator

from Sealed_Estate.fhe_server import config as server_config
from Sealed_Estate.fhe_shared import config
from Sealed_Estate.fhe_shared.errors import (
    CollaboratorError,
    DataIntegrityError,
    EstateError,
    IdCollisionError,
    InvalidInputError,
    LedgerUnavailableError,
    RecordNotFoundError,
    SessionError,
    SubmissionError,
    SubmissionRejectedError,
    SyncError,
    VerificationInProgressError,
)
from Sealed_Estate.fhe_shared.types import AssetRecord
from Sealed_Estate.estate.session import EstateSession
from Sealed_Estate.estate.wallet import WalletSession

logger = logging.getLogger(__name__)

session: Optional[EstateSession] = None


# ── Pydantic request/response models ──


class ConnectRequest(BaseModel):
    address: str

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        if not v.strip():
            raise ValueError("address must be non-empty")
        return v.strip()


class SessionResponse(BaseModel):
    connected: bool
    address: Optional[str]
    record_count: int


class CreateRequest(BaseModel):
    name: str
    beneficiary: str
    condition_code: StrictInt
    amount: StrictInt

    @field_validator("condition_code")
    @classmethod
    def validate_condition(cls, v):
        if not config.CONDITION_CODE_MIN <= v <= config.CONDITION_CODE_MAX:
            raise ValueError(
                f"condition_code must be between {config.CONDITION_CODE_MIN} "
                f"and {config.CONDITION_CODE_MAX}"
            )
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v < 0:
            raise ValueError("amount must be a non-negative integer")
        return v


class CreateResponse(BaseModel):
    record_id: str


class RecordOut(BaseModel):
    record_id: str
    name: str
    encrypted_amount: str
    beneficiary: str
    trigger_condition: str
    condition_code: int
    timestamp: int
    creator: str
    is_verified: bool
    revealed_value: Optional[int]
    display_value: Optional[int]
    value_source: str


class RecordListResponse(BaseModel):
    records: list[RecordOut]
    count: int


class RevealResponse(BaseModel):
    record_id: str
    value: Optional[int]
    verified: bool
    verified_elsewhere: bool


class PeekResponse(BaseModel):
    record_id: str
    value: int
    advisory: bool


class StatsResponse(BaseModel):
    total_assets: int
    verified_assets: int
    pending_verification: int
    total_value: int


class StatusResponse(BaseModel):
    visible: bool
    phase: str
    message: str


class HealthResponse(BaseModel):
    status: str
    ledger_connected: bool
    fhe_connected: bool
    record_count: int
    ciphertext_count: int


# ── App lifecycle ──


@asynccontextmanager
async def lifespan(app: FastAPI):
    global session
    approve = (lambda action: True) if server_config.AUTO_APPROVE else None
    session = EstateSession(WalletSession(approve=approve))
    await session.setup()
    if server_config.DEFAULT_WALLET_ADDRESS:
        await session.connect(server_config.DEFAULT_WALLET_ADDRESS)
    yield
    await session.teardown()
    session = None


app = FastAPI(title=server_config.APP_TITLE, version=server_config.APP_VERSION, lifespan=lifespan)


def _get_session() -> EstateSession:
    if session is None:
        raise HTTPException(status_code=503, detail="Estate session not initialized")
    return session


def _status_code(e: EstateError) -> int:
    if isinstance(e, SessionError):
        return 401
    if isinstance(e, InvalidInputError):
        return 422
    if isinstance(e, RecordNotFoundError) or isinstance(e.__cause__, RecordNotFoundError):
        return 404
    if isinstance(e, (IdCollisionError, VerificationInProgressError)):
        return 409
    if isinstance(e, SubmissionRejectedError) and e.user_declined:
        return 409
    if isinstance(e, (CollaboratorError, SubmissionError, LedgerUnavailableError, SyncError, DataIntegrityError)):
        return 502
    return 500


def _http_error(e: EstateError) -> HTTPException:
    code = _status_code(e)
    if code >= 500:
        logger.warning("Request failed with %d: %s", code, e)
    return HTTPException(status_code=code, detail=str(e))


def _record_out(s: EstateSession, r: AssetRecord) -> RecordOut:
    value, source = s.store.display_value(r.record_id)
    return RecordOut(
        record_id=r.record_id,
        name=r.name,
        encrypted_amount=r.encrypted_amount,
        beneficiary=r.beneficiary,
        trigger_condition=r.trigger_condition,
        condition_code=r.public_value1,
        timestamp=r.timestamp,
        creator=r.creator,
        is_verified=r.is_verified,
        revealed_value=r.revealed_value,
        display_value=value,
        value_source=source,
    )


# ── Endpoints ──


@app.post("/v1/session/connect", response_model=SessionResponse)
async def connect(req: ConnectRequest):
    s = _get_session()
    try:
        records = await s.connect(req.address)
    except EstateError as e:
        raise _http_error(e)
    return SessionResponse(connected=True, address=req.address, record_count=len(records))


@app.post("/v1/session/disconnect", response_model=SessionResponse)
async def disconnect():
    s = _get_session()
    s.disconnect()
    return SessionResponse(connected=False, address=None, record_count=0)


@app.get("/v1/records", response_model=RecordListResponse)
async def list_records(search: str = Query("", max_length=server_config.SEARCH_MAX_LENGTH)):
    s = _get_session()
    if not s.wallet.is_active():
        raise HTTPException(status_code=401, detail="No active wallet session for list_records")
    records = [_record_out(s, r) for r in s.records(search)]
    return RecordListResponse(records=records, count=len(records))


@app.get("/v1/records/{record_id}", response_model=RecordOut)
async def get_record(record_id: str):
    s = _get_session()
    if not s.wallet.is_active():
        raise HTTPException(status_code=401, detail="No active wallet session for get_record")
    record = s.store.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return _record_out(s, record)


@app.post("/v1/records", response_model=CreateResponse, status_code=201)
async def create_record(req: CreateRequest):
    s = _get_session()
    try:
        record_id = await s.create_record(req.name, req.beneficiary, req.condition_code, req.amount)
    except EstateError as e:
        raise _http_error(e)
    return CreateResponse(record_id=record_id)


@app.post("/v1/records/{record_id}/reveal", response_model=RevealResponse)
async def reveal_record(record_id: str):
    s = _get_session()
    try:
        value = await s.reveal_value(record_id)
    except EstateError as e:
        raise _http_error(e)

    verified_elsewhere = value is None
    if verified_elsewhere:
        record = s.store.get(record_id)
        value = record.trusted_value if record is not None else None
    return RevealResponse(
        record_id=record_id,
        value=value,
        verified=value is not None,
        verified_elsewhere=verified_elsewhere,
    )


@app.post("/v1/records/{record_id}/peek", response_model=PeekResponse)
async def peek_record(record_id: str):
    s = _get_session()
    try:
        value = await s.peek_value(record_id)
    except EstateError as e:
        raise _http_error(e)
    record = s.store.get(record_id)
    return PeekResponse(
        record_id=record_id,
        value=value,
        advisory=record is None or not record.is_verified,
    )


@app.post("/v1/refresh", response_model=RecordListResponse)
async def refresh():
    s = _get_session()
    try:
        await s.refresh()
    except EstateError as e:
        raise _http_error(e)
    records = [_record_out(s, r) for r in s.records()]
    return RecordListResponse(records=records, count=len(records))


@app.get("/v1/stats", response_model=StatsResponse)
async def stats():
    st = _get_session().stats()
    return StatsResponse(
        total_assets=st.total_assets,
        verified_assets=st.verified_assets,
        pending_verification=st.pending_verification,
        total_value=st.total_value,
    )


@app.get("/v1/status", response_model=StatusResponse)
async def transaction_status():
    st = _get_session().transaction_status()
    return StatusResponse(visible=st.visible, phase=st.phase, message=st.message)


@app.get("/v1/health", response_model=HealthResponse)
async def health():
    h = _get_session().health()
    connected = h.ledger_connected and h.fhe_connected
    return HealthResponse(
        status="ok" if connected else "degraded",
        ledger_connected=h.ledger_connected,
        fhe_connected=h.fhe_connected,
        record_count=h.record_count,
        ciphertext_count=h.ciphertext_count,
    )
