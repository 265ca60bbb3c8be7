"""
Suppresses duplicate "session started" notifications.
"""
import threading
from datetime import datetime, timedelta
from typing import Dict, Tuple

from tradecoach.core.clock import Clock, system_clock
from tradecoach.logger import logger


class NotificationDedupGate:
    """Remembers when a (ticker, session id) pair was last announced.

    Entries older than the window are treated as absent; they are not swept.
    Carries its own lock because automatic and manual detection both reach it.
    """

    def __init__(self, window_seconds: float = 5.0, clock: Clock = system_clock):
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._sent: Dict[Tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    def should_send(self, ticker: str, session_id: str) -> bool:
        key = (ticker, session_id)
        now = self._clock.now()
        with self._lock:
            last_sent = self._sent.get(key)
            if last_sent is not None and now - last_sent < self.window:
                logger.info(
                    f"[NOTIFY] Skipping duplicate notification for {ticker} / {session_id}"
                )
                return False
            self._sent[key] = now
            return True
