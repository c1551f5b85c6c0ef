from typing import Iterable

from Sealed_Estate.fhe_shared.types import AssetRecord, AssetStats
from Sealed_Estate.estate.record_store import RecordStore


def compute_stats(records: Iterable[AssetRecord]) -> AssetStats:
    total = 0
    verified = 0
    total_value = 0

    for record in records:
        total += 1
        if record.is_verified:
            verified += 1
            total_value += record.revealed_value or 0

    return AssetStats(
        total_assets=total,
        verified_assets=verified,
        pending_verification=total - verified,
        total_value=total_value,
    )


class StatsAggregator:
    """Keeps AssetStats in step with a RecordStore, recomputed on every replace."""

    def __init__(self, store: RecordStore):
        self.store = store
        self._current = compute_stats(store.snapshot())
        self._unsubscribe = store.subscribe(self._on_change)

    def _on_change(self, records: tuple[AssetRecord, ...]) -> None:
        self._current = compute_stats(records)

    @property
    def current(self) -> AssetStats:
        return self._current

    def close(self) -> None:
        self._unsubscribe()
