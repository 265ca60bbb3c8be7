"""
Collaborator interfaces consumed by the coaching orchestrator.

Inference, storage, capture and notification adapters implement these so the
loops can be exercised with in-memory fakes.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from tradecoach.core.models import (
    CoachEvent,
    MarketSnapshot,
    NotificationEvent,
    ScreenshotArtifact,
    StoredSession,
    Turn,
)


class Classifier(ABC):
    """Identifies the ticker shown in a capture."""

    @abstractmethod
    def classify(self, artifact: ScreenshotArtifact) -> Optional[str]:
        """
        Identify the ticker on screen.

        Args:
            artifact: Capture to inspect

        Returns:
            Upper-case ticker, or None when no confident answer exists

        Raises:
            InferenceFailed: If the model call fails
        """
        pass


class Advisor(ABC):
    """Produces coaching text."""

    @abstractmethod
    def advise(self, digest: Optional[str], history: Sequence[Turn]) -> Optional[str]:
        """
        Ask for advice.

        Args:
            digest: Context digest for unsolicited advice, or None to react to
                the latest turn of ``history``
            history: Conversation so far, system turn first

        Returns:
            Advice text, or None when nothing was produced

        Raises:
            InferenceFailed: If the model call fails
        """
        pass


class BatchSummarizer(ABC):
    """Summarizes a window of recent captures."""

    @abstractmethod
    def summarize(self, ticker: str, artifacts: Sequence[ScreenshotArtifact]) -> str:
        """
        Summarize 3 to 5 captures in chronological order.

        Raises:
            ValueError: If the window size is out of range
            InferenceFailed: If the model call fails
        """
        pass


class SessionStore(ABC):
    """Persistence for sessions, captures, batch results and chat messages.

    All methods raise StoreWriteFailed on storage errors.
    """

    @abstractmethod
    def end_all_active(self, user_id: str) -> int:
        """End every active session for the user. Returns the number ended."""
        pass

    @abstractmethod
    def create(self, user_id: str, ticker: str, manual: bool = False) -> str:
        """Create an active session and return its external id."""
        pass

    @abstractmethod
    def touch(self, session_id: str, screenshot_count: int, last_activity: datetime) -> None:
        """Update session counters."""
        pass

    @abstractmethod
    def find_active(self, user_id: str) -> Optional[StoredSession]:
        """Most recent active session for the user, if any."""
        pass

    @abstractmethod
    def record_artifact(
        self, user_id: str, session_id: str, ticker: str, artifact: ScreenshotArtifact
    ) -> str:
        """Persist a capture row and return its id."""
        pass

    @abstractmethod
    def latest_batch_time(self, session_id: str) -> Optional[datetime]:
        """Creation time of the most recent batch analysis for the session."""
        pass

    @abstractmethod
    def save_batch(
        self,
        user_id: str,
        session_id: str,
        ticker: str,
        summary: str,
        artifacts: Sequence[ScreenshotArtifact],
    ) -> str:
        """Persist a batch analysis result and return its id."""
        pass

    @abstractmethod
    def save_message(
        self, user_id: str, session_id: Optional[str], ticker: Optional[str], role: str, content: str
    ) -> str:
        """Persist a chat message and return its id."""
        pass


class MarketDataSource(ABC):
    """Latest market figures per ticker."""

    @abstractmethod
    def get_snapshot(self, ticker: str) -> Optional[MarketSnapshot]:
        pass


class CaptureSource(ABC):
    """Where screen captures appear."""

    @abstractmethod
    def latest(self) -> Optional[ScreenshotArtifact]:
        """
        Most recent capture.

        Raises:
            CaptureError: If the source cannot be read
        """
        pass


class NotificationSender(ABC):
    """Fire-and-forget delivery of session notifications."""

    @abstractmethod
    def send(self, event: NotificationEvent) -> None:
        pass


class EventSink(ABC):
    """Receives UI events. Must never block the caller."""

    @abstractmethod
    def publish(self, event: CoachEvent) -> None:
        pass
