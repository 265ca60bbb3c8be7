"""
Screenshot records
"""
from sqlalchemy import Column, DateTime, ForeignKey, String

from tradecoach.models.database import Base
from tradecoach.models.ticker_session import _new_id, _utcnow


class ScreenshotRecord(Base):
    """A capture counted against a ticker session."""
    __tablename__ = "screenshots"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    ticker_session_id = Column(String(36), ForeignKey("ticker_sessions.id"), nullable=False, index=True)
    ticker = Column(String(20), nullable=False)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False)  # file mtime
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "ticker_session_id": self.ticker_session_id,
            "ticker": self.ticker,
            "filename": self.filename,
            "file_path": self.file_path,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
