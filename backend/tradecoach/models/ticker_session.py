"""
Ticker session records
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from tradecoach.models.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TickerSessionRecord(Base):
    """
    One coaching engagement with one ticker. At most one row per user is active.
    """
    __tablename__ = "ticker_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    ticker = Column(String(20), nullable=False, index=True)

    session_start = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    session_end = Column(DateTime(timezone=True), nullable=True)
    last_activity = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    screenshot_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_manual = Column(Boolean, nullable=False, default=False)  # created by explicit detection

    __table_args__ = (
        Index("ix_ticker_sessions_user_active", "user_id", "is_active"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "ticker": self.ticker,
            "session_start": self.session_start.isoformat() if self.session_start else None,
            "session_end": self.session_end.isoformat() if self.session_end else None,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "screenshot_count": self.screenshot_count,
            "is_active": self.is_active,
            "is_manual": self.is_manual,
        }
