import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from . import config
from .catalog import Catalog
from .config import GalleryConfig
from .exceptions import CloudGalleryError
from .metadata.enrich import MetadataEnricher
from .remote.base import RemoteStorage
from .scanning.scanner import CancelToken, RemoteScanner, ScanResult
from .scheduler import CycleScheduler
from .thumbnails.cache import CacheWriter, SaveResult
from .thumbnails.fetcher import ThumbnailFetcher

Notifier = Callable[[str, Any], None]


class GallerySession:
    """
    One running gallery: catalog, pipeline components and timers.

    The host drives it with INIT/GET commands and receives FILES/ERROR
    notifications through `notify`.
    """

    def __init__(self,
                 remote: RemoteStorage,
                 notify: Notifier,
                 cache_dir: Optional[Path] = None,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer,
                 show_progress: bool = False):
        self.remote = remote
        self.notify = notify
        self.cache_dir = cache_dir
        self.timer_factory = timer_factory
        self.show_progress = show_progress

        self.config: Optional[GalleryConfig] = None
        self.catalog = Catalog()
        self.enricher: Optional[MetadataEnricher] = None
        self.scanner: Optional[RemoteScanner] = None
        self.fetcher: Optional[ThumbnailFetcher] = None
        self.writer: Optional[CacheWriter] = None
        self.scheduler: Optional[CycleScheduler] = None

        self._token: Optional[CancelToken] = None
        self._token_lock = threading.Lock()
        # Thumbnail fetch and cache pass of one cycle never interleave with another's
        self._pipeline_lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self.config is not None

    # --- Host Commands ---

    def handle_command(self, command: str, payload: Any = None):
        if command == config.CMD_INIT:
            self.initialize(payload)
        elif command == config.CMD_GET:
            self.get_data()
        else:
            logging.warning(f"Ignoring unknown command: {command}")

    def initialize(self, payload: Any = None):
        """
        Applies the host configuration and prepares the cache directory.
        Re-initializing keeps the catalog but replaces the pipeline.
        """
        cfg = GalleryConfig.from_payload(payload, cache_dir=self.cache_dir)

        if self.initialized:
            self._teardown(wait=False)

        self.config = cfg
        self.enricher = MetadataEnricher(self.remote, self.catalog)
        self.scanner = RemoteScanner(self.remote, self.catalog, self.enricher)
        self.fetcher = ThumbnailFetcher(self.remote, self.catalog)
        self.writer = CacheWriter(self.catalog, cfg.cache_dir, show_progress=self.show_progress)
        self.scheduler = CycleScheduler(self.get_data, self.sort_data, timer_factory=self.timer_factory)

        self.writer.ensure_directory()
        logging.info(
            f"Gallery initialized: folder='{cfg.folder or '/'}', cache={cfg.cache_dir}, "
            f"scan every {cfg.data_update_interval}ms, save every {cfg.update_interval}ms"
        )

    # --- Pipeline ---

    def get_data(self) -> Optional[ScanResult]:
        """Runs a full scan, then the sort/thumbnail/save cycle."""
        if not self.initialized:
            raise CloudGalleryError("GET received before INIT")

        self.scheduler.clear()

        # Supersede any scan still merging responses
        token = CancelToken()
        with self._token_lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token

        result = self.scanner.scan(self.config.folder, token)
        if result.cancelled:
            logging.info("Scan superseded by a newer one; skipping its cycle")
            return result

        # With an empty catalog the save step reports the error instead
        if result.empty and len(self.catalog) > 0:
            self._send(config.NOTIFY_ERROR, config.ERR_MESSAGE)

        self.sort_data()
        return result

    def sort_data(self):
        """Arms the next scan (if none is pending), sorts, then fetches and saves."""
        self.scheduler.arm_scan(self.config.data_update_seconds)
        self.catalog.sort()
        self.save_cycle()

    def save_cycle(self) -> Optional[SaveResult]:
        with self._pipeline_lock:
            if len(self.catalog) == 0:
                self._send(config.NOTIFY_ERROR, config.ERR_MESSAGE)
                return None

            self.fetcher.fetch()
            result = self.writer.save()

        self._send(config.NOTIFY_FILES, self.catalog.snapshot())
        self.scheduler.arm_save(self.config.update_seconds)
        return result

    # --- Lifecycle ---

    def shutdown(self, wait: bool = True):
        if self.initialized:
            self._teardown(wait=wait)
        logging.info("Gallery session shut down")

    def _teardown(self, wait: bool):
        with self._token_lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None
        self.scheduler.close()
        self.enricher.shutdown(wait=wait)

    def _send(self, notification: str, payload: Any):
        try:
            self.notify(notification, payload)
        except Exception:
            logging.exception(f"Consumer failed to handle {notification}")
