import io
import threading

import pytest
from PIL import Image

from cloud_gallery.catalog import Catalog
from cloud_gallery.exceptions import MetadataLookupError, RemoteStorageError, ThumbnailBatchError
from cloud_gallery.models import FileRecord, MediaMetadata, SearchMatch, ThumbnailResult


def make_png(color="red") -> bytes:
    buf = io.BytesIO()
    with Image.new("RGB", (8, 8), color=color) as im:
        im.save(buf, format="PNG")
    return buf.getvalue()


def make_match(i: int, ext: str = ".jpg", modified: str = None) -> SearchMatch:
    return SearchMatch(
        id=f"id:{i:04d}",
        name=f"photo_{i:04d}{ext}",
        path=f"/photos/photo_{i:04d}{ext}",
        size=1000 + i,
        client_modified=modified or f"2020-01-01T00:{i // 60 % 60:02d}:{i % 60:02d}Z",
    )


def make_record(i: int, **kwargs) -> FileRecord:
    return FileRecord.from_match(make_match(i, **kwargs))


class FakeRemote:
    """
    In-memory stand-in for a storage provider.

    `files` maps extension -> list of SearchMatch. Entries listed in
    `search_errors`, `metadata_errors` or `thumbnail_failures` fail on demand.
    """

    def __init__(self, files=None):
        self.files = files or {}
        self.metadata = {}
        self.search_errors = set()
        self.metadata_errors = set()
        self.thumbnail_failures = set()
        self.batch_error = False
        self.drop_last_entry = False

        self.search_calls = []
        self.metadata_calls = []
        self.batch_calls = []
        self._lock = threading.Lock()

    def search(self, path, extension, start, max_results):
        with self._lock:
            self.search_calls.append((path, extension, start, max_results))
        if extension in self.search_errors:
            raise RemoteStorageError(f"search failed for {extension}")
        return list(self.files.get(extension, []))[:max_results]

    def get_metadata(self, path):
        with self._lock:
            self.metadata_calls.append(path)
        if path in self.metadata_errors:
            raise MetadataLookupError(f"no metadata for {path}")
        return self.metadata.get(path, MediaMetadata())

    def get_thumbnail_batch(self, entries):
        with self._lock:
            self.batch_calls.append(list(entries))
        if self.batch_error:
            raise ThumbnailBatchError("batch failed")

        results = []
        for entry in entries:
            if entry.path in self.thumbnail_failures:
                results.append(ThumbnailResult(False, error="unsupported_extension"))
            else:
                results.append(ThumbnailResult(True, data=make_png()))
        if self.drop_last_entry and results:
            results.pop()
        return results


class RecordingConsumer:
    def __init__(self):
        self.notifications = []

    def __call__(self, notification, payload):
        self.notifications.append((notification, payload))

    def of(self, name):
        return [payload for n, payload in self.notifications if n == name]


class ManualTimer:
    """threading.Timer replacement that only fires when told to."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        ManualTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def catalog():
    return Catalog()


@pytest.fixture
def consumer():
    return RecordingConsumer()


@pytest.fixture
def timers():
    ManualTimer.created = []
    yield ManualTimer.created
    ManualTimer.created = []
