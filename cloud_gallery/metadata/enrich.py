import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional, Set

from .. import config
from ..catalog import Catalog
from ..exceptions import RemoteStorageError
from ..models import FileRecord
from ..remote.base import RemoteStorage


class MetadataEnricher:
    """
    Best-effort metadata lookups, fired and forgotten per discovered file.

    Failures leave the listing-derived defaults in place and are never retried.
    """

    def __init__(self, remote: RemoteStorage, catalog: Catalog, max_workers: int = config.ENRICH_WORKERS):
        self.remote = remote
        self.catalog = catalog
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrich")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def submit(self, record: FileRecord) -> Optional[Future]:
        try:
            future = self._executor.submit(self.enrich, record)
        except RuntimeError:
            # Executor already shut down
            logging.debug(f"Enrichment skipped for {record.path}: enricher is shut down")
            return None

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def enrich(self, record: FileRecord) -> bool:
        """Fetches and applies metadata for one record. Returns True on success."""
        try:
            meta = self.remote.get_metadata(record.path)
        except RemoteStorageError as e:
            logging.debug(f"Metadata lookup failed for {record.path}: {e}")
            return False
        except Exception as e:
            # Malformed provider payloads shouldn't kill a worker thread
            logging.warning(f"Unexpected metadata error for {record.path}: {e}")
            return False

        with self.catalog.lock:
            record.apply_metadata(meta)
        return True

    def drain(self, timeout: Optional[float] = None):
        """Blocks until every submitted lookup has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _forget(self, future: Future):
        with self._pending_lock:
            self._pending.discard(future)
