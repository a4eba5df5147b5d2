from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from portal.config import get_settings
from portal.records import RECORD_KINDS, DatedRecord, sample_records

logger = logging.getLogger(__name__)


def _owner_key(owner: Optional[str]) -> Optional[str]:
    if owner is None:
        return None
    key = str(owner).strip().lower()
    return key or None


class RecordStore:
    """In-memory record persistence, one list per record kind.

    Records without an owner are shared demo rows and visible to every partner.
    """

    def __init__(self, *, seed: bool = True) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, List[DatedRecord]] = {kind: [] for kind in RECORD_KINDS}
        if seed:
            for kind, records in sample_records().items():
                self._records[kind].extend(records)

    def _check_kind(self, kind: str) -> None:
        if kind not in self._records:
            raise ValueError(f"Unknown record kind: {kind!r}")

    def add(self, kind: str, records: Iterable[DatedRecord]) -> int:
        self._check_kind(kind)
        new_records = list(records)
        wrong = [r for r in new_records if getattr(r, "kind", None) != kind]
        if wrong:
            raise ValueError(f"{len(wrong)} record(s) are not {kind} records")
        with self._lock:
            self._records[kind].extend(new_records)
        logger.info("Saved %d %s record(s)", len(new_records), kind)
        return len(new_records)

    def records(self, kind: str, owner: Optional[str] = None) -> List[DatedRecord]:
        self._check_kind(kind)
        with self._lock:
            rows = list(self._records[kind])
        key = _owner_key(owner)
        if key is None:
            return rows
        return [r for r in rows if r.owner is None or _owner_key(r.owner) == key]

    def all_kinds(self, owner: Optional[str] = None) -> Dict[str, List[DatedRecord]]:
        return {kind: self.records(kind, owner) for kind in RECORD_KINDS}

    def owners(self) -> List[str]:
        with self._lock:
            names = {r.owner for rows in self._records.values() for r in rows if r.owner}
        return sorted(names)


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    return RecordStore(seed=get_settings().seed_demo_data)
