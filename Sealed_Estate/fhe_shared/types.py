from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AssetRecord:
    record_id:          str
    name:               str
    encrypted_amount:   str             # ciphertext handle, never plaintext
    beneficiary:        str
    trigger_condition:  str
    timestamp:          int
    creator:            str
    public_value1:      int
    public_value2:      int
    is_verified:        bool
    revealed_value:     Optional[int]   # None unless is_verified

    @property
    def trusted_value(self) -> Optional[int]:
        return self.revealed_value if self.is_verified else None

@dataclass
class RecordFields:
    record_id:      str
    name:           str
    description:    str
    handle:         str
    creator:        str
    timestamp:      int
    public_value1:  int
    public_value2:  int
    is_verified:    bool
    decrypted_value: int

@dataclass(frozen=True)
class EncryptionEnvelope:
    handle:         str
    input_proof:    bytes

@dataclass(frozen=True)
class DecryptionProof:
    handles:        tuple[str, ...]
    clear_values:   bytes
    signature:      bytes

@dataclass
class TxReceipt:
    tx_hash:        str
    block_number:   int
    status:         int = 1

@dataclass
class DecryptionResult:
    clear_values:   dict[str, int]
    receipt:        Optional[TxReceipt] = None

@dataclass(frozen=True)
class AssetStats:
    total_assets:           int = 0
    verified_assets:        int = 0
    pending_verification:   int = 0
    total_value:            int = 0

@dataclass(frozen=True)
class TransactionStatus:
    visible:    bool = False
    phase:      str = "pending"
    message:    str = ""
    token:      int = 0

@dataclass
class LedgerHealth:
    ledger_connected:   bool
    fhe_connected:      bool
    record_count:       int
    ciphertext_count:   int
    uptime_seconds:     float
