import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Sequence

from .. import config
from ..catalog import Catalog
from ..metadata.enrich import MetadataEnricher
from ..models import FileRecord
from ..remote.base import RemoteStorage


class CancelToken:
    """Set when a newer scan supersedes this one."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ScanResult:
    searched: int = 0   # extensions that responded (successfully or not)
    failed: int = 0     # extensions whose listing call raised
    found: int = 0      # matches returned across all extensions, known or not
    added: int = 0      # new records appended to the catalog
    budget_hit: bool = False
    cancelled: bool = False

    @property
    def empty(self) -> bool:
        return self.found == 0


class RemoteScanner:
    def __init__(self,
                 remote: RemoteStorage,
                 catalog: Catalog,
                 enricher: Optional[MetadataEnricher] = None,
                 extensions: Sequence[str] = config.EXTENSIONS,
                 results_max: int = config.RESULTS_MAX,
                 results_max_per_extension: int = config.RESULTS_MAX_PER_EXTENSION):
        self.remote = remote
        self.catalog = catalog
        self.enricher = enricher
        self.extensions = tuple(extensions)
        self.results_max = results_max
        self.results_max_per_extension = results_max_per_extension

    def scan(self, path: str, token: Optional[CancelToken] = None) -> ScanResult:
        """
        Searches every extension filter under `path` and appends unseen files.

        Listing calls run in parallel; responses are merged one at a time as
        they complete. Once the budget is spent (or the token is cancelled)
        remaining responses are abandoned.
        """
        token = token or CancelToken()
        result = ScanResult()

        logging.info(f"Scanning remote path '{path or '/'}' for {', '.join(self.extensions)}")

        executor = ThreadPoolExecutor(max_workers=max(1, len(self.extensions)), thread_name_prefix="search")
        try:
            futures = {
                executor.submit(self.remote.search, path, ext, config.SEARCH_START, self.results_max_per_extension): ext
                for ext in self.extensions
            }

            for future in as_completed(futures):
                ext = futures[future]
                result.searched += 1

                try:
                    matches = future.result()
                except Exception as e:
                    result.failed += 1
                    logging.warning(f"Search for '{ext}' failed: {e}")
                    continue

                result.found += len(matches)
                if self._merge(matches, result, token):
                    break
        finally:
            # Don't wait on abandoned listing calls
            executor.shutdown(wait=False, cancel_futures=True)

        logging.info(
            f"Scan complete: {result.added} new, {result.found} matches, "
            f"{result.failed}/{len(self.extensions)} searches failed"
            + (" (budget reached)" if result.budget_hit else "")
            + (" (superseded)" if result.cancelled else "")
        )
        return result

    def _merge(self, matches, result: ScanResult, token: CancelToken) -> bool:
        """Adds unseen matches. Returns True when the scan should stop."""
        for match in matches:
            if token.cancelled:
                result.cancelled = True
                return True

            record = FileRecord.from_match(match)
            if not self.catalog.add_if_absent(record):
                continue

            result.added += 1
            if self.enricher:
                self.enricher.submit(record)

            if result.added >= self.results_max:
                result.budget_hit = True
                return True

        if token.cancelled:
            result.cancelled = True
            return True
        return False
