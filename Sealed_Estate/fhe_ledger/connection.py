import redis

from Sealed_Estate.fhe_shared import config, errors
from Sealed_Estate.fhe_shared.types import LedgerHealth


def _create_client(db: int) -> redis.Redis:
    r = redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=db,
        decode_responses=False,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        raise errors.LedgerUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


def create_ledger_client() -> redis.Redis:
    return _create_client(config.REDIS_LEDGER_DB)


def create_fhe_client() -> redis.Redis:
    return _create_client(config.REDIS_FHE_DB)


def health_check(ledger_client, fhe_client) -> LedgerHealth:
    ledger_ok = False
    fhe_ok = False
    records = 0
    ciphertexts = 0
    uptime = 0.0

    try:
        ledger_ok = bool(ledger_client.ping())
        records = ledger_client.llen(config.LEDGER_IDS_KEY)
    except redis.exceptions.ConnectionError:
        pass

    try:
        fhe_ok = bool(fhe_client.ping())
        ciphertexts = sum(1 for _ in fhe_client.scan_iter(match=f"{config.FHE_CIPHERTEXT_PREFIX}:*", count=100))
    except redis.exceptions.ConnectionError:
        pass

    # Not every server (or fake) implements INFO.
    if ledger_ok:
        try:
            uptime = float(ledger_client.info().get('uptime_in_seconds', 0))
        except redis.exceptions.RedisError:
            uptime = 0.0

    return LedgerHealth(
        ledger_connected=ledger_ok,
        fhe_connected=fhe_ok,
        record_count=records,
        ciphertext_count=ciphertexts,
        uptime_seconds=uptime,
    )


def close_all(ledger_client, fhe_client) -> None:
    ledger_client.close()
    fhe_client.close()
