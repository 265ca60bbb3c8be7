"""
Chat message records
"""
from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from tradecoach.models.database import Base
from tradecoach.models.ticker_session import _new_id, _utcnow


class ChatMessage(Base):
    """A user or assistant message, optionally tied to a session."""
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    ticker_session_id = Column(String(36), ForeignKey("ticker_sessions.id"), nullable=True, index=True)
    ticker = Column(String(20), nullable=True)
    message_type = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
