"""
Fixed-interval worker thread shared by the coaching loops.

Ticks of one thread never overlap: the loop runs them back to back, and a
direct ``run_once`` call while a tick is in flight is skipped. Stopping sets
an event that cancels the wait for the next tick; an in-flight tick finishes
and is expected to check ``cancelled`` before applying its results.
"""
import threading
from typing import Optional

from tradecoach.logger import logger


class PeriodicThread(threading.Thread):
    """Daemon thread calling ``tick`` every ``interval_seconds``."""

    def __init__(self, name: str, interval_seconds: float):
        super().__init__(name=name, daemon=True)
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.interval_seconds = interval_seconds

        # Thread control
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._running = False
        self.tick_count = 0

    def tick(self) -> None:
        """One unit of work. Subclasses override."""
        raise NotImplementedError

    def run(self):
        """Main thread entry point."""
        self._running = True
        logger.info(f"{self.name} thread started (every {self.interval_seconds}s)")
        try:
            while not self._stop_event.wait(self.interval_seconds):
                self.run_once()
        finally:
            self._running = False
            logger.info(f"{self.name} thread stopped")

    def run_once(self) -> bool:
        """Run a single tick. Returns False if it was skipped or failed."""
        if self._stop_event.is_set():
            return False
        if not self._tick_lock.acquire(blocking=False):
            logger.warning(f"{self.name}: previous tick still running, skipping")
            return False
        try:
            self.tick()
            self.tick_count += 1
            return True
        except Exception as e:
            logger.exception(f"{self.name}: tick failed: {e}")
            return False
        finally:
            self._tick_lock.release()

    def stop(self):
        """Signal thread to stop. Never blocks."""
        if not self._stop_event.is_set():
            logger.info(f"Stopping {self.name}...")
            self._stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def running(self) -> bool:
        return self._running and not self._stop_event.is_set()

    def join(self, timeout: Optional[float] = None):
        """Wait for thread to stop.

        Args:
            timeout: Maximum time to wait (seconds)
        """
        if self.is_alive():
            super().join(timeout)
            if self.is_alive():
                logger.warning(f"{self.name} did not stop gracefully")
