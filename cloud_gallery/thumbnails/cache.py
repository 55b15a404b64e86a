import logging
from dataclasses import dataclass
from pathlib import Path

from tqdm import tqdm

from .. import config
from ..catalog import Catalog
from ..exceptions import CacheWriteError


@dataclass
class SaveResult:
    saved: int = 0     # records marked saved in this pass
    written: int = 0   # of those, files actually written to disk
    failed: int = 0    # write errors; these records stay unsaved


class CacheWriter:
    """
    Persists fetched previews under the cache directory, one file per remote name.

    A file that already exists is never overwritten; its presence is the only
    on-disk record that a preview has been saved.
    """

    def __init__(self, catalog: Catalog, cache_dir: Path = config.CACHE_DIR,
                 batch_size: int = config.FILES_TO_SAVE, show_progress: bool = False):
        self.catalog = catalog
        self.cache_dir = Path(cache_dir)
        self.batch_size = batch_size
        self.show_progress = show_progress

    def ensure_directory(self):
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheWriteError(f"Cannot create cache directory {self.cache_dir}: {e}") from e

    def cache_path(self, name: str) -> Path:
        # Remote names never contain separators, but never trust a path component
        return self.cache_dir / Path(name).name

    def save(self) -> SaveResult:
        result = SaveResult()

        with self.catalog.lock:
            records = list(self.catalog)
            for record in tqdm(records, desc="Caching previews", disable=not self.show_progress):
                if result.saved >= self.batch_size:
                    break
                if not record.loaded or record.saved:
                    continue

                target = self.cache_path(record.name)
                if not target.exists():
                    try:
                        target.write_bytes(record.thumbnail or b"")
                        result.written += 1
                    except OSError as e:
                        logging.error(f"Failed to write preview {target}: {e}")
                        result.failed += 1
                        continue
                else:
                    logging.debug(f"Preview already cached: {target}")

                record.saved = True
                record.thumbnail = None
                result.saved += 1

        logging.info(f"Cache pass: {result.saved} saved ({result.written} written, {result.failed} failed)")
        return result
