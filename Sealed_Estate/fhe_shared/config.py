# Redis Connection

REDIS_HOST              = "localhost"
REDIS_PORT              = 6379
REDIS_LEDGER_DB         = 0          # Logical DB for the estate contract
REDIS_FHE_DB            = 1          # Logical DB for the FHE coprocessor (ciphertexts, ACL)
REDIS_SOCKET_TIMEOUT    = 5          # seconds

# Key Namespace Prefixes

LEDGER_RECORD_PREFIX    = "estate:v1:record"    # estate:v1:record:{record_id}
LEDGER_IDS_KEY          = "estate:v1:ids"       # creation-ordered list of record ids
LEDGER_BLOCK_KEY        = "estate:v1:block"     # monotonically increasing block counter

FHE_CIPHERTEXT_PREFIX   = "fhe:v1:ct"           # fhe:v1:ct:{handle}
FHE_ACL_PREFIX          = "fhe:v1:acl"          # fhe:v1:acl:{handle} -> set of addresses

# Contract / FHE Settings

CONTRACT_ADDRESS        = "0x5e41ed0000000000000000000000000000e57a7e"
FHE_KEY_SEED            = "sealed-estate-dev-seed"
FHE_MAX_PLAINTEXT       = 2 ** 64           # euint64
CLEAR_VALUE_WORD_BYTES  = 32                # ABI word size for encoded clear values
TX_CONFIRMATION_DELAY   = 0.0               # seconds a pending tx waits before it is mined
LEDGER_OPTIMISTIC_LOCK_RETRIES = 3

# Records

RECORD_ID_PREFIX        = "inheritance"
CONDITION_CODE_MIN      = 1
CONDITION_CODE_MAX      = 10

TRIGGER_CONDITIONS = {
    1: "TIME_LOCK",
    2: "MULTI_SIGNATURE",
    3: "BIOMETRIC_VERIFICATION",
    4: "EXTERNAL_EVENT",
}

# Transaction Status

STATUS_SUCCESS_DWELL_SECONDS = 2.0
STATUS_ERROR_DWELL_SECONDS   = 3.0
