"""
Shared mutable state of the coaching orchestrator.
"""
import threading
from datetime import datetime
from typing import Optional

from tradecoach.core.history import ConversationHistoryStore
from tradecoach.core.models import TickerSession


class CoachState:
    """Everything the loops share, guarded by one coarse lock.

    Hold ``lock`` while reading or writing any attribute. Inference calls are
    made without it; session transitions hold it through their store writes.
    """

    def __init__(self, history: ConversationHistoryStore):
        self.lock = threading.RLock()
        self.history = history
        self.user_id: Optional[str] = None
        self.active_session: Optional[TickerSession] = None
        self.last_user_message_at: Optional[datetime] = None

    def is_current(self, session: Optional[TickerSession]) -> bool:
        """True while ``session`` is still the active session."""
        with self.lock:
            return (
                session is not None
                and session.is_active
                and self.active_session is session
            )
