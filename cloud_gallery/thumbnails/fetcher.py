import io
import logging
from dataclasses import dataclass
from typing import List

from PIL import Image, UnidentifiedImageError

from .. import config
from ..catalog import Catalog
from ..models import FileRecord, ThumbnailRequest
from ..remote.base import RemoteStorage


@dataclass
class FetchResult:
    requested: int = 0
    loaded: int = 0
    failed: int = 0
    batch_failed: bool = False


def is_decodable(data: bytes) -> bool:
    """True if Pillow recognises the bytes as an intact image."""
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False


class ThumbnailFetcher:
    def __init__(self,
                 remote: RemoteStorage,
                 catalog: Catalog,
                 batch_size: int = config.FILES_TO_SAVE,
                 size: str = config.THUMBNAIL_SIZE,
                 mode: str = config.THUMBNAIL_MODE):
        self.remote = remote
        self.catalog = catalog
        self.batch_size = batch_size
        self.size = size
        self.mode = mode

    def pending(self) -> List[FileRecord]:
        """Records still needing a preview, in catalog order, up to one batch."""
        return self.catalog.select(lambda r: not r.loaded and not r.error, self.batch_size)

    def fetch(self) -> FetchResult:
        """
        Requests previews for the next batch in a single call.

        Results are correlated positionally with the request list. A failed
        entry marks its record as permanently errored; a failed batch (or one
        whose length doesn't match the request) changes nothing.
        """
        records = self.pending()
        result = FetchResult(requested=len(records))
        if not records:
            logging.debug("No thumbnails to fetch")
            return result

        entries = [ThumbnailRequest(r.path, self.size, self.mode) for r in records]
        logging.info(f"Fetching {len(entries)} thumbnails")

        try:
            responses = self.remote.get_thumbnail_batch(entries)
        except Exception as e:
            logging.warning(f"Thumbnail batch failed: {e}")
            result.batch_failed = True
            return result

        if len(responses) != len(records):
            logging.warning(
                f"Thumbnail batch returned {len(responses)} entries for {len(records)} requests; ignoring batch"
            )
            result.batch_failed = True
            return result

        with self.catalog.lock:
            for record, response in zip(records, responses):
                if response.success and is_decodable(response.data):
                    record.loaded = True
                    record.thumbnail = response.data
                    result.loaded += 1
                else:
                    reason = response.error or "undecodable image data"
                    logging.debug(f"Thumbnail failed for {record.path}: {reason}")
                    record.loaded = False
                    record.error = True
                    result.failed += 1

        logging.info(f"Thumbnails: {result.loaded} loaded, {result.failed} failed")
        return result
