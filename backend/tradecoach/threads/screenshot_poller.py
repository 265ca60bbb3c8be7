"""
Screenshot Ingestion Poller - watches the capture source and drives sessions

Flow per tick (one capture at most):
1. COLD_START: absorb whatever is already on disk until the warm-up elapses
2. Fetch the latest capture; skip it if its (path, mtime) was already handled
3. Classify the ticker; no confident ticker means nothing happens
4. Create or switch the session (with a handoff summary on a switch)
5. Count the capture, ask the advisor for an immediate reaction, append both
   turns to the conversation history
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple

from tradecoach.config.settings import CoachConfig
from tradecoach.core.clock import Clock, system_clock
from tradecoach.core.enums import EventKind, PollerState
from tradecoach.core.exceptions import CaptureError, InferenceFailed, StaleArtifact
from tradecoach.core.interfaces import Advisor, CaptureSource, Classifier, EventSink
from tradecoach.core.models import CoachEvent, ScreenshotArtifact, TickerSession, Turn
from tradecoach.core.state import CoachState
from tradecoach.managers.session_manager import SessionLifecycleManager
from tradecoach.threads.periodic import PeriodicThread
from tradecoach.logger import logger


class ScreenshotIngestionPoller(PeriodicThread):
    """Polls the capture source and feeds new captures into the active session."""

    def __init__(
        self,
        state: CoachState,
        sessions: SessionLifecycleManager,
        capture: CaptureSource,
        classifier: Classifier,
        advisor: Advisor,
        sink: EventSink,
        config: CoachConfig,
        clock: Clock = system_clock,
    ):
        super().__init__(name="ScreenshotPoller", interval_seconds=config.polling_interval_seconds)
        self._state = state
        self._sessions = sessions
        self._capture = capture
        self._classifier = classifier
        self._advisor = advisor
        self._sink = sink
        self._clock = clock
        self._warmup = timedelta(seconds=config.warmup_seconds)

        self._poller_state = PollerState.COLD_START
        self._started_at = clock.now()
        self._last_identity: Optional[Tuple[str, float]] = None
        self._capture_error_reported = False
        self._inference_error_reported = False

    @property
    def poller_state(self) -> PollerState:
        return self._poller_state

    @property
    def started_at(self) -> datetime:
        return self._started_at

    def start(self):
        """Start polling; the warm-up is measured from here."""
        self._started_at = self._clock.now()
        self._poller_state = PollerState.COLD_START
        super().start()

    def mark_seen(self, artifact: ScreenshotArtifact) -> None:
        """Treat a capture handled elsewhere (manual detection) as processed."""
        with self._tick_lock:
            self._last_identity = artifact.identity

    # =========================================================================
    # Tick
    # =========================================================================

    def tick(self) -> None:
        self._update_state()

        if self._poller_state == PollerState.COLD_START:
            self._absorb_existing()
            return

        with self._state.lock:
            if self._state.user_id is None:
                return

        artifact = self._fetch_latest()
        if artifact is None or artifact.identity == self._last_identity:
            return

        try:
            self._check_fresh(artifact)
        except StaleArtifact as e:
            logger.debug(f"[POLLER] {e}")
            self._last_identity = artifact.identity
            return

        logger.info(f"[POLLER] New capture: {artifact.filename}")
        # A classifier failure leaves the capture unhandled so the next tick retries it
        try:
            ticker = self._classifier.classify(artifact)
        except InferenceFailed as e:
            logger.warning(f"[POLLER] Classifying {artifact.filename} failed: {e}")
            self._report_inference_failure()
            return
        self._last_identity = artifact.identity

        if not ticker:
            logger.info(f"[POLLER] No confident ticker in {artifact.filename}")
            return

        result = self._sessions.create_or_switch(ticker, artifact, with_handoff=True)
        self._sessions.record_screenshot(artifact, result.session)
        self._react(result.session, artifact)

    def _update_state(self) -> None:
        if self._poller_state != PollerState.COLD_START:
            return
        if self._clock.now() - self._started_at >= self._warmup:
            self._poller_state = PollerState.ARMED
            logger.info("[POLLER] Warm-up complete, processing new captures")

    def _check_fresh(self, artifact: ScreenshotArtifact) -> None:
        if artifact.modified_at < self._started_at:
            raise StaleArtifact(
                f"Ignoring capture {artifact.filename} from before this run "
                f"({artifact.modified_at.isoformat()})"
            )

    def _absorb_existing(self) -> None:
        artifact = self._fetch_latest()
        if artifact is not None and artifact.identity != self._last_identity:
            self._last_identity = artifact.identity
            logger.debug(f"[POLLER] Warm-up: marking {artifact.filename} as seen")

    def _fetch_latest(self) -> Optional[ScreenshotArtifact]:
        try:
            artifact = self._capture.latest()
        except CaptureError as e:
            logger.warning(f"[POLLER] Capture source unavailable: {e}")
            if not self._capture_error_reported:
                self._capture_error_reported = True
                self._publish(CoachEvent(
                    kind=EventKind.CAPTURE_ERROR,
                    message=f"Screen capture unavailable: {e}",
                    timestamp=self._clock.now(),
                ))
            return None
        self._capture_error_reported = False
        return artifact

    # =========================================================================
    # Reaction
    # =========================================================================

    def _react(self, session: TickerSession, artifact: ScreenshotArtifact) -> None:
        turn = Turn.screenshot(artifact, session.ticker)
        with self._state.lock:
            if not self._state.is_current(session):
                return
            history = self._state.history.snapshot() + [turn]

        try:
            reply = self._advisor.advise(None, history)
        except InferenceFailed as e:
            logger.warning(f"[POLLER] Reaction to {artifact.filename} failed: {e}")
            self._report_inference_failure(session)
            return
        self._inference_error_reported = False

        with self._state.lock:
            if not self._state.is_current(session):
                logger.info(f"[POLLER] Session {session.id} ended during reaction, discarding")
                return
            self._state.history.append(turn)
            if reply:
                self._state.history.append(Turn.assistant(reply))

        if reply:
            self._publish(CoachEvent(
                kind=EventKind.ADVICE_EMITTED,
                message=reply,
                ticker=session.ticker,
                session_id=session.id,
                timestamp=self._clock.now(),
                data={"source": "screenshot", "filename": artifact.filename},
            ))

    def _report_inference_failure(self, session: Optional[TickerSession] = None) -> None:
        if self._inference_error_reported:
            return
        self._inference_error_reported = True
        self._publish(CoachEvent(
            kind=EventKind.INFERENCE_ERROR,
            message="Coach is temporarily unavailable",
            ticker=session.ticker if session else None,
            session_id=session.id if session else None,
            timestamp=self._clock.now(),
        ))

    def _publish(self, event: CoachEvent) -> None:
        try:
            self._sink.publish(event)
        except Exception as e:
            logger.error(f"[POLLER] Event sink rejected {event.kind.value}: {e}")
