"""
In-memory domain objects shared by the coaching loops.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple
import uuid

from tradecoach.core.enums import EventKind, Role


MAX_SESSION_ARTIFACTS = 20
MAX_SESSION_BATCH_SUMMARIES = 3


@dataclass(frozen=True)
class ScreenshotArtifact:
    """A single screen capture.

    Two artifacts are the same capture when their ``identity`` matches.
    """
    path: str
    modified_at: datetime

    @property
    def identity(self) -> Tuple[str, float]:
        return (self.path, self.modified_at.timestamp())

    @property
    def filename(self) -> str:
        return Path(self.path).name


@dataclass
class TickerSession:
    """One continuous coaching engagement with one ticker.

    ``id`` is the persisted identity when the store accepted the session,
    otherwise a process-local identity.
    """
    ticker: str
    start_time: datetime
    last_activity: datetime
    external_id: Optional[str] = None
    local_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    screenshot_count: int = 0
    is_active: bool = True
    manual: bool = False
    artifacts: Deque[ScreenshotArtifact] = field(
        default_factory=lambda: deque(maxlen=MAX_SESSION_ARTIFACTS)
    )
    batch_summaries: Deque["BatchSummary"] = field(
        default_factory=lambda: deque(maxlen=MAX_SESSION_BATCH_SUMMARIES)
    )

    @property
    def id(self) -> str:
        return self.external_id or self.local_id

    def end(self) -> None:
        """Mark the session ended. There is no way back."""
        self.is_active = False

    def duration_minutes(self, now: datetime) -> int:
        return round((now - self.start_time).total_seconds() / 60)


@dataclass(frozen=True)
class BatchSummary:
    """Result of a batch analysis pass over recent captures."""
    ticker: str
    summary: str
    screenshot_count: int
    created_at: datetime


@dataclass(frozen=True)
class Turn:
    """A conversation turn. Screenshot turns carry an image path."""
    role: Role
    content: str
    image_path: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(Role.ASSISTANT, content)

    @classmethod
    def screenshot(cls, artifact: ScreenshotArtifact, ticker: str) -> "Turn":
        return cls(
            Role.USER,
            f"New screenshot of {ticker}: {artifact.filename}",
            image_path=artifact.path,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"role": self.role.value, "content": self.content}
        if self.image_path:
            data["image_path"] = self.image_path
        return data


@dataclass(frozen=True)
class HandoffSummary:
    """Informational digest of the outgoing session shown on a ticker switch."""
    previous_ticker: str
    previous_duration_minutes: int
    previous_screenshot_count: int
    new_ticker: str

    def format_message(self) -> str:
        return (
            f"New ticker detected: {self.new_ticker}\n\n"
            f"Previous session summary:\n"
            f"- {self.previous_ticker}: {self.previous_duration_minutes} minutes, "
            f"{self.previous_screenshot_count} screenshots\n\n"
            f"Starting fresh analysis for {self.new_ticker}..."
        )


@dataclass
class SwitchResult:
    """Outcome of SessionLifecycleManager.create_or_switch."""
    session: TickerSession
    created: bool
    ended: Optional[TickerSession] = None
    handoff: Optional[HandoffSummary] = None
    notified: bool = False


@dataclass
class MarketSnapshot:
    """Latest market figures for a ticker."""
    ticker: str
    price: Optional[float] = None
    volume: Optional[float] = None
    change_percent: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    last_updated: Optional[datetime] = None


@dataclass
class ContextSnapshot:
    """Last observed signals for the dialogue loop's change detection."""
    session_id: Optional[str] = None
    price: Optional[float] = None
    volume: Optional[float] = None
    screenshot_count: int = 0
    context_hash: Optional[str] = None


@dataclass(frozen=True)
class NotificationEvent:
    """Payload for the session-started webhook."""
    ticker: str
    session_id: str
    event_type: str = "session_started"

    def to_payload(self) -> Dict[str, str]:
        return {
            "ticker": self.ticker,
            "session_id": self.session_id,
            "event_type": self.event_type,
        }


@dataclass(frozen=True)
class CoachEvent:
    """Event published to the UI sink."""
    kind: EventKind
    message: str
    ticker: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "ticker": self.ticker,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "data": dict(self.data),
        }


@dataclass
class CommandResult:
    """Result returned by command surface operations."""
    success: bool
    message: Optional[str] = None
    ticker: Optional[str] = None
    session_id: Optional[str] = None
    screenshot_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        for key, value in (
            ("message", self.message),
            ("ticker", self.ticker),
            ("sessionId", self.session_id),
            ("screenshotId", self.screenshot_id),
            ("error", self.error),
        ):
            if value is not None:
                data[key] = value
        return data


@dataclass
class StoredSession:
    """A session row as read back from the store."""
    external_id: str
    ticker: str
    start_time: datetime
    last_activity: datetime
    screenshot_count: int = 0
    manual: bool = False
    recent_artifacts: List[ScreenshotArtifact] = field(default_factory=list)
