"""
Coaching Dialogue Loop - unsolicited advice for one session

Per tick:
1. Skip unless the bound session is still the active one
2. Skip while the user spoke within the cooldown window
3. Skip unless the context changed (price, volume, captures, hash)
4. Build the context digest and ask the advisor
5. Skip empty advice
6. Discard "nothing new" phrases and repeats of the last emitted message
7. Persist, append and publish the rest
8. A long streak of discards is logged as a soft pause; ticking continues
"""
from dataclasses import replace
from typing import Optional

from tradecoach.config.settings import CoachConfig
from tradecoach.core.clock import Clock, system_clock
from tradecoach.core.context_change import ContextChangeDetector
from tradecoach.core.digest import RECENT_TURNS, build_context_digest
from tradecoach.core.enums import EventKind
from tradecoach.core.exceptions import InferenceFailed, StoreWriteFailed
from tradecoach.core.interfaces import Advisor, EventSink, MarketDataSource, SessionStore
from tradecoach.core.message_dedup import MessageDedupFilter, MessageDedupState
from tradecoach.core.models import CoachEvent, ContextSnapshot, MarketSnapshot, TickerSession, Turn
from tradecoach.core.state import CoachState
from tradecoach.threads.periodic import PeriodicThread
from tradecoach.logger import logger


class CoachingDialogueLoop(PeriodicThread):
    """Decides every few seconds whether to push advice for its session.

    ``snapshot`` and ``dedup_state`` belong to this loop alone.
    """

    def __init__(
        self,
        session: TickerSession,
        state: CoachState,
        store: SessionStore,
        market: MarketDataSource,
        advisor: Advisor,
        sink: EventSink,
        config: CoachConfig,
        clock: Clock = system_clock,
        detector: Optional[ContextChangeDetector] = None,
        dedup_filter: Optional[MessageDedupFilter] = None,
    ):
        super().__init__(
            name=f"DialogueLoop-{session.ticker}",
            interval_seconds=config.dialogue_interval_seconds,
        )
        self.session = session
        self._state = state
        self._store = store
        self._market = market
        self._advisor = advisor
        self._sink = sink
        self._clock = clock
        self._cooldown_seconds = config.user_message_cooldown_seconds
        self._max_no_change = config.max_consecutive_no_change
        self._detector = detector or ContextChangeDetector(
            price_threshold=config.price_change_threshold,
            volume_threshold=config.volume_change_threshold,
        )
        self._dedup_filter = dedup_filter or MessageDedupFilter()

        self.snapshot = ContextSnapshot()
        self.dedup_state = MessageDedupState()
        self.advice_requests = 0
        self._inference_error_reported = False

    @property
    def last_message(self) -> Optional[str]:
        return self.dedup_state.last_emitted_message

    @property
    def soft_paused(self) -> bool:
        return self.dedup_state.consecutive_no_change_count >= self._max_no_change

    def tick(self) -> None:
        # 1-2. Active session and user cooldown
        with self._state.lock:
            if not self._state.is_current(self.session):
                return
            user_id = self._state.user_id
            last_user_message_at = self._state.last_user_message_at

        now = self._clock.now()
        if last_user_message_at is not None:
            since_user = (now - last_user_message_at).total_seconds()
            if since_user < self._cooldown_seconds:
                logger.debug(
                    f"[DIALOGUE] User spoke {since_user:.0f}s ago, holding advice for {self.session.ticker}"
                )
                return

        # 3. Context change
        market = self._fetch_market()
        previous_snapshot = replace(self.snapshot)
        previous_streak = self.dedup_state.consecutive_no_change_count
        with self._state.lock:
            if not self._state.is_current(self.session):
                return
            changed = self._detector.has_changed(self.snapshot, self.session, market)
            if not changed:
                logger.debug(f"[DIALOGUE] No context change for {self.session.ticker}")
                return
            digest = build_context_digest(
                self.session, market, self._state.history.recent(RECENT_TURNS)
            )
            history = self._state.history.snapshot()

        # 4. Ask for advice
        self.dedup_state.reset_streak()
        self.advice_requests += 1
        try:
            advice = self._advisor.advise(digest, history)
        except InferenceFailed as e:
            # Roll back so the next tick sees the same change and retries
            self.snapshot = previous_snapshot
            self.dedup_state.consecutive_no_change_count = previous_streak
            self._report_inference_failure(e)
            return
        self._inference_error_reported = False

        # 5. Nothing returned
        if not advice or not advice.strip():
            logger.debug(f"[DIALOGUE] Advisor returned nothing for {self.session.ticker}")
            return
        advice = advice.strip()

        if self.cancelled or not self._state.is_current(self.session):
            logger.info(f"[DIALOGUE] Session {self.session.id} ended mid-tick, discarding advice")
            return

        # 6. Dedup
        if self._dedup_filter.should_discard(advice, self.dedup_state):
            streak = self.dedup_state.record_discard()
            logger.debug(f"[DIALOGUE] Discarded advice for {self.session.ticker} (streak {streak})")
            # 8. Soft pause
            if streak >= self._max_no_change:
                logger.info(
                    f"[DIALOGUE] {streak} ticks without new advice for {self.session.ticker}, "
                    f"waiting for a context change"
                )
            return

        # 7. Emit
        with self._state.lock:
            if self.cancelled or not self._state.is_current(self.session):
                logger.info(f"[DIALOGUE] Session {self.session.id} ended mid-tick, discarding advice")
                return
            self._state.history.append(Turn.assistant(advice))
        self.dedup_state.record_emitted(advice)

        if user_id is not None and self.session.external_id is not None:
            try:
                self._store.save_message(
                    user_id, self.session.external_id, self.session.ticker, "assistant", advice
                )
            except StoreWriteFailed as e:
                logger.warning(f"[DIALOGUE] Could not persist advice for {self.session.ticker}: {e}")

        logger.info(f"[DIALOGUE] Advice for {self.session.ticker}: {advice[:80]}")
        self._publish(CoachEvent(
            kind=EventKind.ADVICE_EMITTED,
            message=advice,
            ticker=self.session.ticker,
            session_id=self.session.id,
            timestamp=self._clock.now(),
            data={"source": "dialogue"},
        ))

    def _fetch_market(self) -> Optional[MarketSnapshot]:
        try:
            return self._market.get_snapshot(self.session.ticker)
        except StoreWriteFailed as e:
            logger.warning(f"[DIALOGUE] Market data unavailable for {self.session.ticker}: {e}")
            return None

    def _report_inference_failure(self, error: InferenceFailed) -> None:
        logger.warning(f"[DIALOGUE] Advice request failed for {self.session.ticker}: {error}")
        if self._inference_error_reported:
            return
        self._inference_error_reported = True
        self._publish(CoachEvent(
            kind=EventKind.INFERENCE_ERROR,
            message="Coach is temporarily unavailable",
            ticker=self.session.ticker,
            session_id=self.session.id,
            timestamp=self._clock.now(),
        ))

    def _publish(self, event: CoachEvent) -> None:
        try:
            self._sink.publish(event)
        except Exception as e:
            logger.error(f"[DIALOGUE] Event sink rejected {event.kind.value}: {e}")
