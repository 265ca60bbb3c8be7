"""
Batch Analysis Scheduler - periodic summaries over recent captures of one session

A batch is triggered when the session holds enough captures and enough time
has passed since the previous batch, judged by both the in-memory trigger
time and the latest persisted batch record.
"""
from datetime import datetime, timedelta
from typing import Optional

from tradecoach.config.settings import CoachConfig
from tradecoach.core.clock import Clock, system_clock
from tradecoach.core.exceptions import InferenceFailed, StoreWriteFailed
from tradecoach.core.interfaces import BatchSummarizer, SessionStore
from tradecoach.core.models import BatchSummary, TickerSession
from tradecoach.core.state import CoachState
from tradecoach.threads.periodic import PeriodicThread
from tradecoach.logger import logger


class BatchAnalysisScheduler(PeriodicThread):
    """Summarizes the last few captures of its session on a slow cadence."""

    def __init__(
        self,
        session: TickerSession,
        state: CoachState,
        store: SessionStore,
        summarizer: BatchSummarizer,
        config: CoachConfig,
        clock: Clock = system_clock,
    ):
        super().__init__(
            name=f"BatchScheduler-{session.ticker}",
            interval_seconds=config.batch_interval_seconds,
        )
        if not 1 <= config.batch_min_artifacts <= config.batch_max_artifacts:
            raise ValueError(
                f"Invalid batch window {config.batch_min_artifacts}..{config.batch_max_artifacts}"
            )
        self.session = session
        self._state = state
        self._store = store
        self._summarizer = summarizer
        self._clock = clock
        self._min_artifacts = config.batch_min_artifacts
        self._max_artifacts = config.batch_max_artifacts
        self._min_interval = timedelta(seconds=config.batch_min_interval_seconds)

        self.last_trigger_time: Optional[datetime] = None
        self.batches_completed = 0

    def tick(self) -> None:
        with self._state.lock:
            if not self._state.is_current(self.session):
                return
            user_id = self._state.user_id
            window = list(self.session.artifacts)[-self._max_artifacts:]

        if len(window) < self._min_artifacts:
            logger.debug(
                f"[BATCH] {self.session.ticker}: {len(window)} captures, "
                f"need {self._min_artifacts}"
            )
            return

        now = self._clock.now()
        if not self._interval_elapsed(now):
            return

        logger.info(f"[BATCH] Triggering batch analysis for {self.session.ticker} ({len(window)} captures)")
        try:
            summary = self._summarizer.summarize(self.session.ticker, window)
        except InferenceFailed as e:
            logger.warning(f"[BATCH] Summary failed for {self.session.ticker}: {e}")
            return

        with self._state.lock:
            if self.cancelled or not self._state.is_current(self.session):
                logger.info(f"[BATCH] Session {self.session.id} ended mid-tick, discarding summary")
                return
            self.last_trigger_time = now
            self.batches_completed += 1
            self.session.batch_summaries.append(BatchSummary(
                ticker=self.session.ticker,
                summary=summary,
                screenshot_count=len(window),
                created_at=now,
            ))

        if user_id is not None and self.session.external_id is not None:
            try:
                self._store.save_batch(
                    user_id, self.session.external_id, self.session.ticker, summary, window
                )
            except StoreWriteFailed as e:
                logger.warning(f"[BATCH] Could not persist batch for {self.session.ticker}: {e}")

        logger.info(f"[BATCH] Batch analysis stored for {self.session.ticker}: {summary[:100]}")

    def _interval_elapsed(self, now: datetime) -> bool:
        if self.last_trigger_time is not None and now - self.last_trigger_time < self._min_interval:
            logger.debug(f"[BATCH] {self.session.ticker}: last batch too recent (in memory)")
            return False

        if self.session.external_id is None:
            return True
        try:
            persisted = self._store.latest_batch_time(self.session.external_id)
        except StoreWriteFailed as e:
            # Unknown persisted state: wait for the next tick
            logger.warning(f"[BATCH] Could not read last batch time for {self.session.ticker}: {e}")
            return False
        if persisted is not None and now - persisted < self._min_interval:
            logger.debug(f"[BATCH] {self.session.ticker}: last batch too recent (stored)")
            return False
        return True
