"""
Batch analysis records
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from tradecoach.models.database import Base
from tradecoach.models.ticker_session import _new_id, _utcnow


class BatchAnalysis(Base):
    """Summary of a window of recent captures."""
    __tablename__ = "batch_analyses"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("ticker_sessions.id"), nullable=False, index=True)
    ticker = Column(String(20), nullable=False, index=True)
    summary = Column(Text, nullable=False)
    screenshot_paths = Column(JSON, nullable=False, default=list)
    screenshot_count = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "ticker": self.ticker,
            "summary": self.summary,
            "screenshot_paths": list(self.screenshot_paths or []),
            "screenshot_count": self.screenshot_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
