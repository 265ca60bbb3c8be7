"""
Database repositories
"""
from tradecoach.repositories.session_repository import SqlSessionStore, SqlMarketDataSource

__all__ = ["SqlSessionStore", "SqlMarketDataSource"]
