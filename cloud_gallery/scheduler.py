import functools
import logging
import threading
from typing import Callable, Optional


class CycleScheduler:
    """
    Owns the two recurring timers.

      - scan timer: re-runs a full remote scan. Armed only if none is pending.
      - save timer: re-runs the thumbnail/save/notify step. Always replaced.

    A timer that has fired or been cleared no longer counts as pending.
    """

    def __init__(self,
                 on_scan: Callable[[], None],
                 on_save: Callable[[], None],
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        self.on_scan = on_scan
        self.on_save = on_save
        self.timer_factory = timer_factory
        self._scan_timer: Optional[threading.Timer] = None
        self._save_timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._closed = False
        # Bumped on every arm/clear so a timer that fires after being replaced is ignored
        self._scan_gen = 0
        self._save_gen = 0

    @property
    def scan_pending(self) -> bool:
        with self._lock:
            return self._scan_timer is not None

    @property
    def save_pending(self) -> bool:
        with self._lock:
            return self._save_timer is not None

    def arm_scan(self, seconds: float) -> bool:
        """Schedules the next scan unless one is already pending. Returns True if armed."""
        with self._lock:
            if self._closed or self._scan_timer is not None:
                return False
            self._scan_gen += 1
            timer = self.timer_factory(seconds, functools.partial(self._fire_scan, self._scan_gen))
            timer.daemon = True
            self._scan_timer = timer
        timer.start()
        logging.debug(f"Next scan in {seconds:.1f}s")
        return True

    def arm_save(self, seconds: float):
        """Replaces any pending save timer with a fresh one."""
        with self._lock:
            if self._closed:
                return
            if self._save_timer is not None:
                self._save_timer.cancel()
            self._save_gen += 1
            timer = self.timer_factory(seconds, functools.partial(self._fire_save, self._save_gen))
            timer.daemon = True
            self._save_timer = timer
        timer.start()
        logging.debug(f"Next save cycle in {seconds:.1f}s")

    def clear(self):
        """Cancels both timers."""
        with self._lock:
            for timer in (self._scan_timer, self._save_timer):
                if timer is not None:
                    timer.cancel()
            self._scan_timer = None
            self._save_timer = None
            self._scan_gen += 1
            self._save_gen += 1

    def close(self):
        self.clear()
        with self._lock:
            self._closed = True

    def _fire_scan(self, gen: int):
        with self._lock:
            if gen != self._scan_gen or self._closed:
                return
            self._scan_timer = None
        self._run("scan", self.on_scan)

    def _fire_save(self, gen: int):
        with self._lock:
            if gen != self._save_gen or self._closed:
                return
            self._save_timer = None
        self._run("save", self.on_save)

    def _run(self, name: str, callback: Callable[[], None]):
        try:
            callback()
        except Exception:
            # Timer threads have nobody to propagate to
            logging.exception(f"Scheduled {name} cycle failed")
