"""
Session Lifecycle Manager - owns the single active ticker session

Responsibilities:
- Create a session when a ticker is first classified or explicitly requested
- End the outgoing session before switching to a different ticker
- Count ingested screenshots against the active session
- Announce new sessions once through the notification gate

Persistence failures are logged and never block the in-memory transition.
"""
from typing import Callable, List, Optional

from tradecoach.core.clock import Clock, system_clock
from tradecoach.core.enums import EventKind
from tradecoach.core.exceptions import NoActiveUserError, StoreWriteFailed
from tradecoach.core.interfaces import EventSink, NotificationSender, SessionStore
from tradecoach.core.models import (
    CoachEvent,
    HandoffSummary,
    NotificationEvent,
    ScreenshotArtifact,
    StoredSession,
    SwitchResult,
    TickerSession,
)
from tradecoach.core.notification_gate import NotificationDedupGate
from tradecoach.core.state import CoachState
from tradecoach.logger import logger


SessionListener = Callable[[TickerSession], None]


class SessionLifecycleManager:
    """Enforces at most one active session and performs transitions.

    Every transition runs under the coach state lock, so the poller and the
    manual command cannot interleave halfway through a switch. Listeners are
    called with the lock held and must not block (loop control only signals
    threads to stop).
    """

    def __init__(
        self,
        state: CoachState,
        store: SessionStore,
        gate: NotificationDedupGate,
        sender: NotificationSender,
        sink: EventSink,
        clock: Clock = system_clock,
    ):
        self._state = state
        self._store = store
        self._gate = gate
        self._sender = sender
        self._sink = sink
        self._clock = clock
        self._on_started: List[SessionListener] = []
        self._on_ended: List[SessionListener] = []

    def add_listener(
        self,
        on_started: Optional[SessionListener] = None,
        on_ended: Optional[SessionListener] = None,
    ) -> None:
        if on_started:
            self._on_started.append(on_started)
        if on_ended:
            self._on_ended.append(on_ended)

    @property
    def active_session(self) -> Optional[TickerSession]:
        with self._state.lock:
            return self._state.active_session

    def is_current(self, session: Optional[TickerSession]) -> bool:
        return self._state.is_current(session)

    # =========================================================================
    # Transitions
    # =========================================================================

    def create_or_switch(
        self,
        ticker: str,
        artifact: Optional[ScreenshotArtifact] = None,
        with_handoff: bool = False,
        manual: bool = False,
    ) -> SwitchResult:
        """
        Make ``ticker`` the active session.

        Args:
            ticker: Upper-case ticker symbol
            artifact: Capture that triggered the transition (for logging)
            with_handoff: Compute a handoff summary of the outgoing session
            manual: Session was requested explicitly rather than detected

        Returns:
            SwitchResult describing what happened

        Raises:
            NoActiveUserError: If no user is set
        """
        with self._state.lock:
            user_id = self._state.user_id
            if user_id is None:
                raise NoActiveUserError("No active user set")

            current = self._state.active_session
            if current is not None and current.is_active and current.ticker == ticker:
                logger.debug(f"[SESSION] {ticker} already active ({current.id})")
                return SwitchResult(session=current, created=False)

            now = self._clock.now()
            handoff = None
            ended = None
            if current is not None and current.is_active:
                if with_handoff:
                    handoff = HandoffSummary(
                        previous_ticker=current.ticker,
                        previous_duration_minutes=current.duration_minutes(now),
                        previous_screenshot_count=current.screenshot_count,
                        new_ticker=ticker,
                    )
                ended = current
                self._end_locked(current)
                logger.info(f"[SESSION] Switching {current.ticker} -> {ticker}")

            try:
                self._store.end_all_active(user_id)
            except StoreWriteFailed as e:
                logger.warning(f"[SESSION] Could not end stored sessions for {user_id}: {e}")

            external_id = None
            try:
                external_id = self._store.create(user_id, ticker, manual=manual)
            except StoreWriteFailed as e:
                logger.warning(f"[SESSION] Could not persist session for {ticker}, using local id: {e}")

            session = TickerSession(
                ticker=ticker,
                start_time=now,
                last_activity=now,
                external_id=external_id,
                manual=manual,
            )
            self._state.active_session = session
            source = artifact.filename if artifact else ("manual" if manual else "detection")
            logger.info(f"[SESSION] Started {ticker} session {session.id} (from {source})")

            notified = self._notify(session)
            self._publish(
                CoachEvent(
                    kind=EventKind.SESSION_TRANSITION,
                    message=handoff.format_message() if handoff
                    else f"New ticker detected: {ticker}. Watching it now.",
                    ticker=ticker,
                    session_id=session.id,
                    timestamp=now,
                    data={
                        "previous_ticker": ended.ticker if ended else None,
                        "previous_session_id": ended.id if ended else None,
                    },
                )
            )
            for listener in self._on_started:
                self._call_listener(listener, session)

            return SwitchResult(
                session=session,
                created=True,
                ended=ended,
                handoff=handoff,
                notified=notified,
            )

    def end_active(self) -> Optional[TickerSession]:
        """End the active session, if any, and return it."""
        with self._state.lock:
            session = self._state.active_session
            if session is None:
                return None

            self._end_locked(session)
            if self._state.user_id is not None:
                try:
                    self._store.end_all_active(self._state.user_id)
                except StoreWriteFailed as e:
                    logger.warning(f"[SESSION] Could not persist end of {session.ticker}: {e}")

            logger.info(f"[SESSION] Ended {session.ticker} session {session.id}")
            self._publish(
                CoachEvent(
                    kind=EventKind.SESSION_TRANSITION,
                    message=f"Session ended for {session.ticker}",
                    ticker=session.ticker,
                    session_id=session.id,
                    timestamp=self._clock.now(),
                    data={"ended": True},
                )
            )
            return session

    def record_screenshot(
        self,
        artifact: ScreenshotArtifact,
        session: Optional[TickerSession] = None,
    ) -> Optional[str]:
        """
        Count a capture against the active session.

        A capture whose (path, mtime) the session already holds is not counted
        again.

        Args:
            artifact: Ingested capture
            session: Session the caller believes is active (defaults to the
                current one)

        Returns:
            Stored screenshot id, or None when nothing was stored
        """
        with self._state.lock:
            target = session or self._state.active_session
            if not self._state.is_current(target):
                logger.warning(
                    f"[SESSION] Ignoring screenshot {artifact.filename} for an ended session"
                )
                return None

            if any(seen.identity == artifact.identity for seen in target.artifacts):
                logger.debug(f"[SESSION] {artifact.filename} already counted for {target.ticker}")
                return None

            now = self._clock.now()
            target.screenshot_count += 1
            target.last_activity = now
            target.artifacts.append(artifact)

            if target.external_id is None:
                return None
            screenshot_id = None
            try:
                screenshot_id = self._store.record_artifact(
                    self._state.user_id, target.external_id, target.ticker, artifact
                )
                self._store.touch(target.external_id, target.screenshot_count, now)
            except StoreWriteFailed as e:
                logger.warning(f"[SESSION] Could not persist screenshot for {target.ticker}: {e}")
            return screenshot_id

    def restore(self, stored: StoredSession) -> TickerSession:
        """Adopt a persisted active session without announcing it."""
        with self._state.lock:
            session = TickerSession(
                ticker=stored.ticker,
                start_time=stored.start_time,
                last_activity=stored.last_activity,
                external_id=stored.external_id,
                screenshot_count=stored.screenshot_count,
                manual=stored.manual,
            )
            session.artifacts.extend(stored.recent_artifacts)
            self._state.active_session = session
            logger.info(f"[SESSION] Restored {session.ticker} session {session.id}")
            return session

    def drop_in_memory(self) -> Optional[TickerSession]:
        """End the active session in memory only (user change)."""
        with self._state.lock:
            session = self._state.active_session
            if session is not None:
                self._end_locked(session)
            return session

    # =========================================================================
    # Helpers
    # =========================================================================

    def _end_locked(self, session: TickerSession) -> None:
        session.end()
        if self._state.active_session is session:
            self._state.active_session = None
        for listener in self._on_ended:
            self._call_listener(listener, session)

    def _notify(self, session: TickerSession) -> bool:
        if not self._gate.should_send(session.ticker, session.id):
            return False
        try:
            self._sender.send(NotificationEvent(ticker=session.ticker, session_id=session.id))
            return True
        except Exception as e:
            logger.error(f"[NOTIFY] Failed to dispatch notification for {session.ticker}: {e}")
            return False

    def _publish(self, event: CoachEvent) -> None:
        try:
            self._sink.publish(event)
        except Exception as e:
            logger.error(f"[SESSION] Event sink rejected {event.kind.value}: {e}")

    @staticmethod
    def _call_listener(listener: SessionListener, session: TickerSession) -> None:
        try:
            listener(session)
        except Exception as e:
            logger.error(f"[SESSION] Session listener failed for {session.ticker}: {e}")
