from typing import List, Sequence

from ..models import MediaMetadata, SearchMatch, ThumbnailRequest, ThumbnailResult


class RemoteStorage:
    """
    The three provider operations the pipeline consumes.

    Implementations raise RemoteStorageError (or a subclass) on failure.
    """

    def search(self, path: str, extension: str, start: int, max_results: int) -> List[SearchMatch]:
        raise NotImplementedError

    def get_metadata(self, path: str) -> MediaMetadata:
        raise NotImplementedError

    def get_thumbnail_batch(self, entries: Sequence[ThumbnailRequest]) -> List[ThumbnailResult]:
        """Results must be positionally aligned with `entries`."""
        raise NotImplementedError
