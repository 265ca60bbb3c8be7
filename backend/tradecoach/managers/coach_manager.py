"""
Coach Manager - command surface of the coaching orchestrator

Wires the shared state, the session lifecycle manager and the three periodic
threads together, and exposes the commands the surrounding application calls:

- set_active_user / detect_ticker_from_latest_artifact / end_active_session
- start/stop_dialogue_loop, start/stop_batch_scheduler, get_loop_status,
  get_batch_status
- send_user_message, get_conversation_history, clear_conversation_history,
  get_session_timeline

Lock order is always coach state lock, then loop registry lock.
"""
import threading
from typing import Any, Dict, Optional

from tradecoach.config.settings import CoachConfig
from tradecoach.core.clock import Clock, system_clock
from tradecoach.core.digest import truncate
from tradecoach.core.exceptions import (
    CaptureError,
    ConfigurationError,
    InferenceFailed,
    NoActiveUserError,
    StoreWriteFailed,
)
from tradecoach.core.history import ConversationHistoryStore
from tradecoach.core.interfaces import (
    Advisor,
    BatchSummarizer,
    CaptureSource,
    Classifier,
    EventSink,
    MarketDataSource,
    NotificationSender,
    SessionStore,
)
from tradecoach.core.models import CommandResult, TickerSession, Turn
from tradecoach.core.notification_gate import NotificationDedupGate
from tradecoach.core.state import CoachState
from tradecoach.managers.session_manager import SessionLifecycleManager
from tradecoach.prompts import COACH_SYSTEM_PROMPT
from tradecoach.threads.batch_scheduler import BatchAnalysisScheduler
from tradecoach.threads.dialogue_loop import CoachingDialogueLoop
from tradecoach.threads.screenshot_poller import ScreenshotIngestionPoller
from tradecoach.logger import logger


HISTORY_PREVIEW_TURNS = 5
HISTORY_PREVIEW_CHARS = 100


class CoachManager:
    """Owns the coaching orchestrator for a single user.

    Args:
        classifier / advisor / summarizer: inference collaborators
        store: session persistence
        market: market data source for the dialogue digest
        capture: where screenshots appear
        sender: webhook sender for new sessions
        sink: UI event sink
        config: loop timings and thresholds
        clock: time source
        auto_start_loops: start the dialogue loop and batch scheduler whenever
            a session starts
        start_threads: start worker threads (tests drive ticks by hand)
    """

    def __init__(
        self,
        classifier: Classifier,
        advisor: Advisor,
        summarizer: BatchSummarizer,
        store: SessionStore,
        market: MarketDataSource,
        capture: CaptureSource,
        sender: NotificationSender,
        sink: EventSink,
        config: CoachConfig,
        clock: Clock = system_clock,
        auto_start_loops: bool = True,
        start_threads: bool = True,
    ):
        self._classifier = classifier
        self._advisor = advisor
        self._summarizer = summarizer
        self._store = store
        self._market = market
        self._capture = capture
        self._sink = sink
        self._config = config
        self._clock = clock
        self._auto_start_loops = auto_start_loops
        self._start_threads = start_threads

        self.state = CoachState(
            ConversationHistoryStore(COACH_SYSTEM_PROMPT, max_turns=config.history_max_turns)
        )
        self.gate = NotificationDedupGate(
            window_seconds=config.notification_dedup_window_seconds, clock=clock
        )
        self.sessions = SessionLifecycleManager(
            self.state, store, self.gate, sender, sink, clock=clock
        )
        self.sessions.add_listener(on_started=self._on_session_started, on_ended=self._on_session_ended)

        self.poller = ScreenshotIngestionPoller(
            self.state, self.sessions, capture, classifier, advisor, sink, config, clock=clock
        )

        self._loops_lock = threading.Lock()
        self._dialogue_loop: Optional[CoachingDialogueLoop] = None
        self._batch_scheduler: Optional[BatchAnalysisScheduler] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start screenshot polling (warm-up begins now)."""
        if self._start_threads and not self.poller.is_alive():
            self.poller.start()
        logger.info("[COACH] Coach manager started")

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop every thread and wait for them."""
        logger.info("[COACH] Shutting down...")
        self.poller.stop()
        with self._loops_lock:
            loops = [t for t in (self._dialogue_loop, self._batch_scheduler) if t is not None]
            self._dialogue_loop = None
            self._batch_scheduler = None
        for thread in loops:
            thread.stop()
        for thread in [self.poller] + loops:
            thread.join(timeout)
        logger.info("[COACH] Shutdown complete")

    # =========================================================================
    # Session commands
    # =========================================================================

    def set_active_user(self, user_id: str) -> CommandResult:
        """Set the user and adopt their most recent active session, if any."""
        if not user_id:
            return CommandResult(success=False, error="No user ID provided")

        with self.state.lock:
            if self.state.user_id == user_id:
                session = self.state.active_session
                return CommandResult(
                    success=True,
                    ticker=session.ticker if session else None,
                    session_id=session.id if session else None,
                )

            if self.state.user_id is not None:
                self.sessions.drop_in_memory()
                self.state.history.reset()
            self.state.user_id = user_id
            self.state.last_user_message_at = None
            logger.info(f"[COACH] Active user set to {user_id}")

            try:
                stored = self._store.find_active(user_id)
            except StoreWriteFailed as e:
                logger.warning(f"[COACH] Could not look up active session for {user_id}: {e}")
                stored = None
            if stored is None:
                return CommandResult(success=True)

            session = self.sessions.restore(stored)
            return CommandResult(success=True, ticker=session.ticker, session_id=session.id)

    def detect_ticker_from_latest_artifact(self) -> CommandResult:
        """
        Classify the latest capture and make its ticker the active session.

        No handoff summary is computed and the conversation history is not
        touched. The notification fires only when a session was created.
        """
        with self.state.lock:
            if self.state.user_id is None:
                return CommandResult(success=False, error="No active user set")

        try:
            artifact = self._capture.latest()
        except CaptureError as e:
            return CommandResult(success=False, error=f"Could not read screenshots: {e}")
        if artifact is None:
            return CommandResult(success=False, error="No screenshots found")

        try:
            ticker = self._classifier.classify(artifact)
        except InferenceFailed as e:
            logger.error(f"[COACH] Manual detection failed: {e}")
            return CommandResult(success=False, error=f"Ticker detection failed: {e}")
        if not ticker:
            return CommandResult(success=False, error="Could not detect a ticker in the latest screenshot")

        try:
            result = self.sessions.create_or_switch(ticker, artifact, with_handoff=False, manual=True)
        except NoActiveUserError as e:
            return CommandResult(success=False, error=str(e))
        screenshot_id = self.sessions.record_screenshot(artifact, result.session)
        self.poller.mark_seen(artifact)

        logger.info(f"[COACH] Manual detection: {ticker} (new session: {result.created})")
        return CommandResult(
            success=True,
            ticker=ticker,
            session_id=result.session.id,
            screenshot_id=screenshot_id,
        )

    def end_active_session(self) -> CommandResult:
        session = self.sessions.end_active()
        if session is None:
            return CommandResult(success=False, error="No active session")
        return CommandResult(
            success=True,
            message=f"Ended {session.ticker} session",
            ticker=session.ticker,
            session_id=session.id,
        )

    # =========================================================================
    # Loop commands
    # =========================================================================

    def start_dialogue_loop(self, session_id: str) -> CommandResult:
        with self.state.lock:
            session = self._current_session(session_id)
            if session is None:
                return CommandResult(success=False, error=f"Session {session_id} is not active")
            with self._loops_lock:
                current = self._dialogue_loop
                if current is not None and current.session is session and not current.cancelled:
                    return CommandResult(success=True, message="Dialogue loop already running")
                if current is not None:
                    current.stop()
                loop = CoachingDialogueLoop(
                    session, self.state, self._store, self._market, self._advisor,
                    self._sink, self._config, clock=self._clock,
                )
                if self._start_threads:
                    loop.start()
                self._dialogue_loop = loop
        logger.info(f"[COACH] Dialogue loop started for {session.ticker}")
        return CommandResult(success=True, ticker=session.ticker, session_id=session.id)

    def stop_dialogue_loop(self) -> CommandResult:
        with self._loops_lock:
            loop = self._dialogue_loop
            self._dialogue_loop = None
        if loop is None:
            return CommandResult(success=True, message="Dialogue loop not running")
        loop.stop()
        return CommandResult(success=True, ticker=loop.session.ticker, session_id=loop.session.id)

    def start_batch_scheduler(self, session_id: str) -> CommandResult:
        with self.state.lock:
            session = self._current_session(session_id)
            if session is None:
                return CommandResult(success=False, error=f"Session {session_id} is not active")
            with self._loops_lock:
                current = self._batch_scheduler
                if current is not None and current.session is session and not current.cancelled:
                    return CommandResult(success=True, message="Batch scheduler already running")
                if current is not None:
                    current.stop()
                scheduler = BatchAnalysisScheduler(
                    session, self.state, self._store, self._summarizer, self._config, clock=self._clock
                )
                if self._start_threads:
                    scheduler.start()
                self._batch_scheduler = scheduler
        logger.info(f"[COACH] Batch scheduler started for {session.ticker}")
        return CommandResult(success=True, ticker=session.ticker, session_id=session.id)

    def stop_batch_scheduler(self) -> CommandResult:
        with self._loops_lock:
            scheduler = self._batch_scheduler
            self._batch_scheduler = None
        if scheduler is None:
            return CommandResult(success=True, message="Batch scheduler not running")
        scheduler.stop()
        return CommandResult(success=True, ticker=scheduler.session.ticker, session_id=scheduler.session.id)

    @property
    def dialogue_loop(self) -> Optional[CoachingDialogueLoop]:
        with self._loops_lock:
            return self._dialogue_loop

    @property
    def batch_scheduler(self) -> Optional[BatchAnalysisScheduler]:
        with self._loops_lock:
            return self._batch_scheduler

    def get_loop_status(self) -> Dict[str, Any]:
        loop = self.dialogue_loop
        if loop is None:
            return {"running": False, "lastMessage": None, "softPaused": False, "sessionId": None}
        return {
            "running": not loop.cancelled,
            "lastMessage": loop.last_message,
            "softPaused": loop.soft_paused,
            "sessionId": loop.session.id,
        }

    def get_batch_status(self) -> Dict[str, Any]:
        scheduler = self.batch_scheduler
        if scheduler is None:
            return {"running": False, "lastTriggerTime": None, "sessionId": None}
        last = scheduler.last_trigger_time
        return {
            "running": not scheduler.cancelled,
            "lastTriggerTime": last.isoformat() if last else None,
            "sessionId": scheduler.session.id,
        }

    # =========================================================================
    # Conversation commands
    # =========================================================================

    def send_user_message(self, text: str) -> CommandResult:
        """
        Answer a message typed by the trader.

        Stamps the cooldown clock first so the dialogue loop stays quiet while
        the trader is engaged.
        """
        text = (text or "").strip()
        if not text:
            return CommandResult(success=False, error="Message is empty")

        turn = Turn.user(text)
        with self.state.lock:
            user_id = self.state.user_id
            if user_id is None:
                return CommandResult(success=False, error="No active user set")
            self.state.last_user_message_at = self._clock.now()
            session = self.state.active_session
            history = self.state.history.snapshot() + [turn]

        try:
            reply = self._advisor.advise(None, history)
        except InferenceFailed as e:
            logger.error(f"[COACH] Reply to user message failed: {e}")
            return CommandResult(success=False, error=f"Coach unavailable: {e}")

        with self.state.lock:
            self.state.history.append(turn)
            if reply:
                self.state.history.append(Turn.assistant(reply))

        session_id = session.external_id if session else None
        ticker = session.ticker if session else None
        self._save_message(user_id, session_id, ticker, "user", text)
        if reply:
            self._save_message(user_id, session_id, ticker, "assistant", reply)

        return CommandResult(
            success=True,
            message=reply,
            ticker=ticker,
            session_id=session.id if session else None,
        )

    def get_conversation_history(self) -> Dict[str, Any]:
        with self.state.lock:
            turns = self.state.history.snapshot()
        return {
            "count": len(turns),
            "recent": [
                {"role": turn.role.value, "preview": truncate(turn.content, HISTORY_PREVIEW_CHARS)}
                for turn in turns[-HISTORY_PREVIEW_TURNS:]
            ],
        }

    def clear_conversation_history(self) -> CommandResult:
        with self.state.lock:
            self.state.history.reset()
        logger.info("[COACH] Conversation history cleared")
        return CommandResult(success=True, message="Conversation history cleared")

    def get_session_timeline(self) -> Optional[Dict[str, Any]]:
        with self.state.lock:
            session = self.state.active_session
            if session is None:
                return None
            now = self._clock.now()
            return {
                "ticker": session.ticker,
                "sessionId": session.id,
                "startTime": session.start_time.isoformat(),
                "durationMinutes": session.duration_minutes(now),
                "screenshotCount": session.screenshot_count,
                "screenshots": [
                    {"filename": a.filename, "timestamp": a.modified_at.isoformat()}
                    for a in session.artifacts
                ],
            }

    # =========================================================================
    # Helpers
    # =========================================================================

    def _current_session(self, session_id: str) -> Optional[TickerSession]:
        session = self.state.active_session
        if session is None or not session.is_active or session.id != session_id:
            return None
        return session

    def _on_session_started(self, session: TickerSession) -> None:
        if self._auto_start_loops:
            self.start_dialogue_loop(session.id)
            self.start_batch_scheduler(session.id)

    def _on_session_ended(self, session: TickerSession) -> None:
        with self._loops_lock:
            if self._dialogue_loop is not None and self._dialogue_loop.session is session:
                self._dialogue_loop.stop()
                self._dialogue_loop = None
            if self._batch_scheduler is not None and self._batch_scheduler.session is session:
                self._batch_scheduler.stop()
                self._batch_scheduler = None

    def _save_message(
        self, user_id: str, session_id: Optional[str], ticker: Optional[str], role: str, content: str
    ) -> None:
        try:
            self._store.save_message(user_id, session_id, ticker, role, content)
        except StoreWriteFailed as e:
            logger.warning(f"[COACH] Could not persist {role} message: {e}")


def create_coach_manager(
    sink: Optional[EventSink] = None,
    sender: Optional[NotificationSender] = None,
    require_api_key: bool = True,
    **kwargs,
) -> CoachManager:
    """Build a CoachManager from application settings.

    Uses Claude for inference, the configured database for persistence, the
    capture folder for screenshots and the configured webhook. Extra keyword
    arguments go to CoachManager.

    Raises:
        ConfigurationError: If inference is required and no API key is set
    """
    from tradecoach.config import settings
    from tradecoach.integrations.capture_source import FolderCaptureSource
    from tradecoach.integrations.claude_client import ClaudeClient
    from tradecoach.integrations.event_sink import LoggingEventSink
    from tradecoach.integrations.webhook import WebhookNotificationSender
    from tradecoach.models.database import SessionLocal, init_db
    from tradecoach.repositories.session_repository import SqlMarketDataSource, SqlSessionStore

    if require_api_key and not settings.CLAUDE.api_key:
        raise ConfigurationError("CLAUDE__API_KEY is not set")

    init_db()
    claude = ClaudeClient(settings.CLAUDE)
    return CoachManager(
        classifier=claude,
        advisor=claude,
        summarizer=claude,
        store=SqlSessionStore(SessionLocal),
        market=SqlMarketDataSource(SessionLocal),
        capture=FolderCaptureSource(settings.CAPTURE.folder, settings.CAPTURE.extensions),
        sender=sender or WebhookNotificationSender(settings.WEBHOOK),
        sink=sink or LoggingEventSink(),
        config=settings.COACH,
        **kwargs,
    )
