"""
Latest market figures per ticker (written by an external feed)
"""
from sqlalchemy import Column, DateTime, Float, String

from tradecoach.models.database import Base


class MarketData(Base):
    __tablename__ = "market_data"

    ticker = Column(String(20), primary_key=True)
    price = Column(Float, nullable=True)
    change_percent = Column(Float, nullable=True)
    volume = Column(Float, nullable=True)
    high = Column(Float, nullable=True)
    low = Column(Float, nullable=True)
    open = Column(Float, nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=True)
