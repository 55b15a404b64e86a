import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parses the ISO 8601 timestamps remote providers send
    (e.g. '2015-05-12T15:50:38Z'). Returns an aware UTC datetime or None.
    """
    if not value:
        return None

    clean = str(value).strip()
    if clean.endswith("Z"):
        clean = clean[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(clean)
    except ValueError:
        return None

    # Naive values are taken as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class SearchMatch:
    """One hit from a remote filename search."""
    id: str
    name: str
    path: str
    size: int
    client_modified: Optional[str] = None


@dataclass
class MediaMetadata:
    """Optional media fields returned by a metadata lookup."""
    width: Optional[int] = None
    height: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    time_taken: Optional[datetime] = None


@dataclass
class ThumbnailRequest:
    path: str
    size: str
    mode: str


@dataclass
class ThumbnailResult:
    """Outcome of one entry in a thumbnail batch, aligned with its request."""
    success: bool
    data: Optional[bytes] = None
    error: Optional[str] = None


@dataclass
class FileRecord:
    """
    Represents one remote media file and its discovery/caching state.
    """
    id: str
    name: str
    path: str
    size: int
    time_taken: datetime = EPOCH

    # Filled in by the enricher
    width: int = 0
    height: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    orientation: int = 1

    # Preview lifecycle
    thumbnail: Optional[bytes] = field(default=None, repr=False)
    loaded: bool = False
    saved: bool = False
    error: bool = False

    @classmethod
    def from_match(cls, match: SearchMatch) -> "FileRecord":
        return cls(
            id=match.id,
            name=match.name,
            path=match.path,
            size=match.size,
            time_taken=parse_timestamp(match.client_modified) or EPOCH,
        )

    def apply_metadata(self, meta: MediaMetadata):
        if meta.width is not None and meta.height is not None:
            self.width = meta.width
            self.height = meta.height
        if meta.latitude is not None and meta.longitude is not None:
            self.latitude = meta.latitude
            self.longitude = meta.longitude
        if meta.time_taken is not None:
            self.time_taken = meta.time_taken

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot sent to the host; time_taken is epoch milliseconds."""
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "width": self.width,
            "height": self.height,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "time_taken": int(self.time_taken.timestamp() * 1000),
            "orientation": self.orientation,
            "thumbnail": base64.b64encode(self.thumbnail).decode("ascii") if self.thumbnail else "",
            "loaded": self.loaded,
            "saved": self.saved,
            "error": self.error,
        }
