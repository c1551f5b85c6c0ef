from typing import Callable, Iterable, Optional

from Sealed_Estate.fhe_shared.types import AssetRecord

Listener = Callable[[tuple[AssetRecord, ...]], None]

SOURCE_VERIFIED = "verified"
SOURCE_ADVISORY = "advisory"
SOURCE_SEALED = "sealed"


class RecordStore:
    """Process-wide set of known asset records.

    The record set only changes through replace(), which swaps in a complete
    snapshot; records are never patched in place.  Locally decrypted values are
    kept in a separate advisory map and never merged into revealed_value.
    """

    def __init__(self):
        self._records: tuple[AssetRecord, ...] = ()
        self._index: dict[str, AssetRecord] = {}
        self._advisory: dict[str, int] = {}
        self._listeners: list[Listener] = []
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def replace(self, records: Iterable[AssetRecord]) -> int:
        """Swap in a full snapshot and notify listeners. Returns the new version."""
        records = tuple(records)
        index = {r.record_id: r for r in records}

        # An advisory value is dropped once the record is verified or gone.
        self._advisory = {
            record_id: value
            for record_id, value in self._advisory.items()
            if record_id in index and not index[record_id].is_verified
        }
        self._records = records
        self._index = index
        self._version += 1

        for listener in list(self._listeners):
            listener(records)
        return self._version

    def snapshot(self) -> tuple[AssetRecord, ...]:
        return self._records

    def get(self, record_id: str) -> Optional[AssetRecord]:
        return self._index.get(record_id)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._index

    def __len__(self) -> int:
        return len(self._records)

    def search(self, term: str = "") -> list[AssetRecord]:
        """Records whose name or beneficiary contains term, case-insensitive."""
        needle = term.lower()
        return [
            r for r in self._records
            if needle in r.name.lower() or needle in r.beneficiary.lower()
        ]

    # ─── Advisory values ───

    def set_advisory(self, record_id: str, value: int) -> bool:
        record = self._index.get(record_id)
        if record is not None and record.is_verified:
            return False
        self._advisory[record_id] = value
        return True

    def advisory_value(self, record_id: str) -> Optional[int]:
        return self._advisory.get(record_id)

    def display_value(self, record_id: str) -> tuple[Optional[int], str]:
        """(value, source) where source is verified, advisory or sealed."""
        record = self._index.get(record_id)
        if record is not None and record.is_verified:
            return record.revealed_value, SOURCE_VERIFIED
        if record_id in self._advisory:
            return self._advisory[record_id], SOURCE_ADVISORY
        return None, SOURCE_SEALED

    # ─── Subscription ───

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
