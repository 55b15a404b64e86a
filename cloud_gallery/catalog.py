"""
The process-wide collection of discovered files.

Every mutation that other components depend on (dedup-append, sort,
selection, flag updates) happens under one re-entrant lock.
"""
import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional

from .models import FileRecord


class Catalog:
    def __init__(self):
        self._records: List[FileRecord] = []
        self._by_id: Dict[str, FileRecord] = {}
        self.lock = threading.RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)

    def __contains__(self, file_id: str) -> bool:
        with self.lock:
            return file_id in self._by_id

    def __iter__(self) -> Iterator[FileRecord]:
        # Iterate over a copy so callers never see a list being appended to
        with self.lock:
            return iter(list(self._records))

    def get(self, file_id: str) -> Optional[FileRecord]:
        with self.lock:
            return self._by_id.get(file_id)

    def add_if_absent(self, record: FileRecord) -> bool:
        """Appends the record unless its id is already known. Returns True if added."""
        with self.lock:
            if record.id in self._by_id:
                return False
            self._records.append(record)
            self._by_id[record.id] = record
            return True

    def sort(self):
        """Newest first by capture instant; ties ordered by id for determinism."""
        with self.lock:
            self._records.sort(key=lambda r: r.id)
            self._records.sort(key=lambda r: r.time_taken, reverse=True)
            logging.debug(f"Catalog sorted ({len(self._records)} records)")

    def select(self, predicate: Callable[[FileRecord], bool], limit: int) -> List[FileRecord]:
        """Returns up to `limit` records matching predicate, in catalog order."""
        picked = []
        with self.lock:
            for record in self._records:
                if len(picked) >= limit:
                    break
                if predicate(record):
                    picked.append(record)
        return picked

    def snapshot(self) -> List[dict]:
        with self.lock:
            return [r.to_dict() for r in self._records]
