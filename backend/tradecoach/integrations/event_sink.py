"""
UI event sinks
"""
import queue
from typing import List, Optional

from tradecoach.core.interfaces import EventSink
from tradecoach.core.models import CoachEvent
from tradecoach.logger import logger


class LoggingEventSink(EventSink):
    """Writes events to the log."""

    def publish(self, event: CoachEvent) -> None:
        logger.info(f"[EVENT] {event.kind.value} {event.ticker or ''}: {event.message}")


class QueueEventSink(EventSink):
    """Bounded queue for a UI thread to drain. Drops the oldest event when full."""

    def __init__(self, maxsize: int = 100):
        self._queue: "queue.Queue[CoachEvent]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: CoachEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[CoachEvent]:
        """Next event, or None after ``timeout`` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[CoachEvent]:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events
