"""
Database models
"""
from tradecoach.models.database import Base, SessionLocal, engine, init_db, close_db
from tradecoach.models.ticker_session import TickerSessionRecord
from tradecoach.models.screenshot import ScreenshotRecord
from tradecoach.models.batch_analysis import BatchAnalysis
from tradecoach.models.chat_message import ChatMessage
from tradecoach.models.market_data import MarketData

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "init_db",
    "close_db",
    "TickerSessionRecord",
    "ScreenshotRecord",
    "BatchAnalysis",
    "ChatMessage",
    "MarketData",
]
