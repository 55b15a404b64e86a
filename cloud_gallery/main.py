import argparse
import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Optional

from . import config
from .core import GallerySession
from .exceptions import CloudGalleryError
from .remote.dropbox import DropboxStorage


def setup_logging(log_file: Optional[Path], verbose: bool):
    """Sets up logging to stderr and optionally a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # stdout carries notifications, so logs go to stderr
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Cloud Gallery: cache Dropbox previews and publish the catalog")

    p.add_argument("--folder", default="", help="Remote folder to search (default: whole account)")
    p.add_argument("--cache-dir", type=Path, default=config.CACHE_DIR, help="Local preview cache directory")
    p.add_argument("--data-update-interval", type=int, default=config.DEFAULT_DATA_UPDATE_INTERVAL,
                   help="Milliseconds between remote scans")
    p.add_argument("--update-interval", type=int, default=config.DEFAULT_UPDATE_INTERVAL,
                   help="Milliseconds between save/notify cycles")
    p.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    # Credentials default to the environment so they stay out of shell history
    p.add_argument("--access-token", default=os.environ.get("DROPBOX_ACCESS_TOKEN"))
    p.add_argument("--refresh-token", default=os.environ.get("DROPBOX_REFRESH_TOKEN"))
    p.add_argument("--app-key", default=os.environ.get("DROPBOX_APP_KEY"))
    p.add_argument("--app-secret", default=os.environ.get("DROPBOX_APP_SECRET"))

    return p.parse_args(argv)


def print_notification(notification: str, payload: Any):
    """Emits one JSON line per notification on stdout."""
    sys.stdout.write(json.dumps({"notification": notification, "payload": payload}) + "\n")
    sys.stdout.flush()


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    logging.info("=== Cloud Gallery Started ===")

    try:
        remote = DropboxStorage(
            access_token=args.access_token,
            refresh_token=args.refresh_token,
            app_key=args.app_key,
            app_secret=args.app_secret,
        )
    except CloudGalleryError as e:
        logging.error(f"Cannot connect to Dropbox: {e}")
        sys.exit(1)

    session = GallerySession(remote, print_notification, cache_dir=args.cache_dir, show_progress=args.verbose)

    try:
        session.handle_command(config.CMD_INIT, {
            "folder": args.folder,
            "dataUpdateInterval": args.data_update_interval,
            "updateInterval": args.update_interval,
        })
        session.handle_command(config.CMD_GET)

        if not args.once:
            # Timers run on daemon threads; park the main thread until interrupted
            threading.Event().wait()
    except KeyboardInterrupt:
        logging.warning("Interrupted by user.")
    except CloudGalleryError as e:
        logging.error(f"Gallery failed: {e}")
        sys.exit(1)
    finally:
        session.shutdown(wait=args.once)


if __name__ == "__main__":
    main()
