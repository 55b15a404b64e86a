"""
Dropbox HTTP API v2 adapter.
"""
import base64
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..exceptions import (
    AuthenticationError,
    MetadataLookupError,
    RemoteStorageError,
    ThumbnailBatchError,
)
from ..models import MediaMetadata, SearchMatch, ThumbnailRequest, ThumbnailResult, parse_timestamp
from .base import RemoteStorage

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"
TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"
DEFAULT_TIMEOUT = 30


class DropboxStorage(RemoteStorage):
    def __init__(self,
                 access_token: Optional[str] = None,
                 refresh_token: Optional[str] = None,
                 app_key: Optional[str] = None,
                 app_secret: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        if not access_token and not refresh_token:
            raise AuthenticationError("An access token or a refresh token is required")

        self.access_token = access_token
        self.refresh_token = refresh_token
        self.app_key = app_key
        self.app_secret = app_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        # Several worker threads may hit a 401 at once; refresh only once
        self._token_lock = threading.Lock()

    # --- RemoteStorage ---

    def search(self, path: str, extension: str, start: int, max_results: int) -> List[SearchMatch]:
        # search_v2 paginates with cursors; start is always 0 so only the first page is read
        body = {
            "query": extension,
            "options": {
                "path": path,
                "max_results": max_results,
                "filename_only": True,
            },
        }
        data = self._call(f"{API_URL}/files/search_v2", body)

        matches = []
        for match in data.get("matches", []):
            meta = match.get("metadata", {}).get("metadata", {})
            if meta.get(".tag") != "file":
                continue
            matches.append(SearchMatch(
                id=meta["id"],
                name=meta["name"],
                path=meta.get("path_lower") or meta.get("path_display", ""),
                size=int(meta.get("size", 0)),
                client_modified=meta.get("client_modified"),
            ))
        return matches

    def get_metadata(self, path: str) -> MediaMetadata:
        try:
            data = self._call(f"{API_URL}/files/get_metadata", {"path": path, "include_media_info": True})
        except RemoteStorageError as e:
            raise MetadataLookupError(f"Metadata lookup failed for {path}: {e}") from e

        media = (data.get("media_info") or {}).get("metadata") or {}
        result = MediaMetadata()

        dims = media.get("dimensions")
        if dims:
            result.width = dims.get("width")
            result.height = dims.get("height")

        loc = media.get("location")
        if loc:
            result.latitude = loc.get("latitude")
            result.longitude = loc.get("longitude")

        result.time_taken = parse_timestamp(media.get("time_taken"))
        return result

    def get_thumbnail_batch(self, entries: Sequence[ThumbnailRequest]) -> List[ThumbnailResult]:
        body = {"entries": [
            {"path": e.path, "size": e.size, "mode": e.mode, "format": "jpeg"}
            for e in entries
        ]}
        try:
            data = self._call(f"{CONTENT_URL}/files/get_thumbnail_batch", body)
        except RemoteStorageError as e:
            raise ThumbnailBatchError(f"Thumbnail batch failed: {e}") from e

        results = []
        for entry in data.get("entries", []):
            if entry.get(".tag") == "success":
                try:
                    results.append(ThumbnailResult(True, data=base64.b64decode(entry["thumbnail"])))
                except (KeyError, ValueError) as e:
                    results.append(ThumbnailResult(False, error=f"Bad thumbnail payload: {e}"))
            else:
                results.append(ThumbnailResult(False, error=str(entry.get("failure", entry.get(".tag")))))
        return results

    # --- HTTP ---

    def _call(self, url: str, body: Dict[str, Any], retry_auth: bool = True) -> Dict[str, Any]:
        if not self.access_token:
            self._refresh()

        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteStorageError(f"Request to {url} failed: {e}") from e

        if resp.status_code == 401:
            if retry_auth and self.refresh_token:
                logging.info("Dropbox access token rejected, refreshing")
                self._refresh(stale_token=headers["Authorization"][7:])
                return self._call(url, body, retry_auth=False)
            raise AuthenticationError(f"Dropbox rejected credentials: {resp.text[:200]}")

        if resp.status_code != 200:
            raise RemoteStorageError(f"Dropbox returned {resp.status_code} for {url}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteStorageError(f"Invalid JSON from {url}: {e}") from e

    def _refresh(self, stale_token: Optional[str] = None):
        with self._token_lock:
            # Another thread already refreshed while we waited
            if stale_token is not None and self.access_token and self.access_token != stale_token:
                return

            if not (self.refresh_token and self.app_key and self.app_secret):
                raise AuthenticationError("Cannot refresh token: refresh token, app key and app secret are required")

            try:
                resp = self.session.post(
                    TOKEN_URL,
                    data={"grant_type": "refresh_token", "refresh_token": self.refresh_token},
                    auth=(self.app_key, self.app_secret),
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise AuthenticationError(f"Token refresh failed: {e}") from e

            if resp.status_code != 200:
                raise AuthenticationError(f"Token refresh returned {resp.status_code}: {resp.text[:200]}")

            self.access_token = resp.json()["access_token"]
            logging.debug("Dropbox access token refreshed")
