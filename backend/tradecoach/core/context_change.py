"""
Decides whether new information justifies asking for fresh advice.
"""
import hashlib
from typing import Optional

from tradecoach.core.models import ContextSnapshot, MarketSnapshot, TickerSession
from tradecoach.logger import logger


class ContextChangeDetector:
    """Compares the active session and market figures to the last snapshot.

    Signals, ORed together:
    - price moved more than ``price_threshold`` (relative) from its reference
    - volume moved more than ``volume_threshold`` (relative) from its reference
    - the context hash of (ticker, reference price, reference volume, capture
      count) changed; a capture count change always lands here

    Price and volume references only move when their own threshold is crossed,
    so slow drift below the threshold never produces a change. The first
    observation of a session always counts as a change.
    """

    def __init__(self, price_threshold: float = 0.01, volume_threshold: float = 0.10):
        self.price_threshold = price_threshold
        self.volume_threshold = volume_threshold

    def has_changed(
        self,
        snapshot: ContextSnapshot,
        session: TickerSession,
        market: Optional[MarketSnapshot],
    ) -> bool:
        """Compare and update ``snapshot`` in place."""
        price = market.price if market else None
        volume = market.volume if market else None

        first_observation = snapshot.context_hash is None or snapshot.session_id != session.id
        if first_observation:
            snapshot.price = None
            snapshot.volume = None

        price_moved = self._moved(snapshot.price, price, self.price_threshold)
        volume_moved = self._moved(snapshot.volume, volume, self.volume_threshold)
        if price_moved:
            snapshot.price = price
        if volume_moved:
            snapshot.volume = volume

        context_hash = self.compute_hash(
            session.ticker, snapshot.price, snapshot.volume, session.screenshot_count
        )
        hash_changed = context_hash != snapshot.context_hash

        snapshot.session_id = session.id
        snapshot.screenshot_count = session.screenshot_count
        snapshot.context_hash = context_hash

        changed = first_observation or price_moved or volume_moved or hash_changed
        if changed:
            logger.debug(
                f"[CONTEXT] Change detected for {session.ticker}: "
                f"first={first_observation}, price={price_moved}, "
                f"volume={volume_moved}, hash={hash_changed}"
            )
        return changed

    @staticmethod
    def _moved(reference: Optional[float], current: Optional[float], threshold: float) -> bool:
        if current is None:
            return False
        if reference is None:
            return True
        if reference == 0:
            return current != 0
        return abs(current - reference) / abs(reference) > threshold

    @staticmethod
    def compute_hash(
        ticker: str, price: Optional[float], volume: Optional[float], screenshot_count: int
    ) -> str:
        raw = f"{ticker}|{price if price is not None else 'no-data'}|" \
              f"{volume if volume is not None else 'no-data'}|{screenshot_count}"
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()
