"""
Session Repository
SQLAlchemy-backed session store and market data source
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tradecoach.core.exceptions import StoreWriteFailed
from tradecoach.core.interfaces import MarketDataSource, SessionStore
from tradecoach.core.models import (
    MAX_SESSION_ARTIFACTS,
    MarketSnapshot,
    ScreenshotArtifact,
    StoredSession,
)
from tradecoach.models.batch_analysis import BatchAnalysis
from tradecoach.models.chat_message import ChatMessage
from tradecoach.models.market_data import MarketData
from tradecoach.models.screenshot import ScreenshotRecord
from tradecoach.models.ticker_session import TickerSessionRecord
from tradecoach.logger import logger


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _Repository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self, operation: str) -> Iterator[Session]:
        """Commit on success, roll back and raise StoreWriteFailed on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[STORE] {operation} failed: {e}")
            raise StoreWriteFailed(f"{operation} failed: {e}") from e
        finally:
            session.close()


class SqlSessionStore(_Repository, SessionStore):
    """Repository for ticker sessions, screenshots, batch analyses and chat messages"""

    def end_all_active(self, user_id: str) -> int:
        now = datetime.now(timezone.utc)
        with self._session_scope("end_all_active") as session:
            result = session.execute(
                update(TickerSessionRecord)
                .where(TickerSessionRecord.user_id == user_id)
                .where(TickerSessionRecord.is_active.is_(True))
                .values(is_active=False, session_end=now)
            )
            ended = result.rowcount or 0
        if ended:
            logger.debug(f"[STORE] Ended {ended} active session(s) for {user_id}")
        return ended

    def create(self, user_id: str, ticker: str, manual: bool = False) -> str:
        now = datetime.now(timezone.utc)
        with self._session_scope("create_session") as session:
            record = TickerSessionRecord(
                user_id=user_id,
                ticker=ticker,
                session_start=now,
                last_activity=now,
                screenshot_count=0,
                is_active=True,
                is_manual=manual,
            )
            session.add(record)
            session.flush()
            return record.id

    def touch(self, session_id: str, screenshot_count: int, last_activity: datetime) -> None:
        with self._session_scope("touch_session") as session:
            session.execute(
                update(TickerSessionRecord)
                .where(TickerSessionRecord.id == session_id)
                .values(screenshot_count=screenshot_count, last_activity=last_activity)
            )

    def find_active(self, user_id: str) -> Optional[StoredSession]:
        with self._session_scope("find_active_session") as session:
            record = session.execute(
                select(TickerSessionRecord)
                .where(TickerSessionRecord.user_id == user_id)
                .where(TickerSessionRecord.is_active.is_(True))
                .order_by(TickerSessionRecord.session_start.desc())
                .limit(1)
            ).scalar_one_or_none()
            if record is None:
                return None

            screenshots = session.execute(
                select(ScreenshotRecord)
                .where(ScreenshotRecord.ticker_session_id == record.id)
                .order_by(ScreenshotRecord.created_at.desc(), ScreenshotRecord.captured_at.desc())
                .limit(MAX_SESSION_ARTIFACTS)
            ).scalars().all()

            return StoredSession(
                external_id=record.id,
                ticker=record.ticker,
                start_time=as_utc(record.session_start),
                last_activity=as_utc(record.last_activity),
                screenshot_count=record.screenshot_count,
                manual=record.is_manual,
                recent_artifacts=[
                    ScreenshotArtifact(path=s.file_path, modified_at=as_utc(s.captured_at))
                    for s in reversed(screenshots)
                ],
            )

    def record_artifact(
        self, user_id: str, session_id: str, ticker: str, artifact: ScreenshotArtifact
    ) -> str:
        with self._session_scope("record_screenshot") as session:
            record = ScreenshotRecord(
                user_id=user_id,
                ticker_session_id=session_id,
                ticker=ticker,
                filename=artifact.filename,
                file_path=artifact.path,
                captured_at=artifact.modified_at,
                created_at=datetime.now(timezone.utc),
            )
            session.add(record)
            session.flush()
            return record.id

    def latest_batch_time(self, session_id: str) -> Optional[datetime]:
        with self._session_scope("latest_batch_time") as session:
            created_at = session.execute(
                select(BatchAnalysis.created_at)
                .where(BatchAnalysis.session_id == session_id)
                .order_by(BatchAnalysis.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return as_utc(created_at)

    def save_batch(
        self,
        user_id: str,
        session_id: str,
        ticker: str,
        summary: str,
        artifacts: Sequence[ScreenshotArtifact],
    ) -> str:
        with self._session_scope("save_batch") as session:
            record = BatchAnalysis(
                user_id=user_id,
                session_id=session_id,
                ticker=ticker,
                summary=summary,
                screenshot_paths=[a.path for a in artifacts],
                screenshot_count=len(artifacts),
                created_at=datetime.now(timezone.utc),
            )
            session.add(record)
            session.flush()
            return record.id

    def save_message(
        self, user_id: str, session_id: Optional[str], ticker: Optional[str], role: str, content: str
    ) -> str:
        with self._session_scope("save_message") as session:
            record = ChatMessage(
                user_id=user_id,
                ticker_session_id=session_id,
                ticker=ticker,
                message_type=role,
                content=content,
                created_at=datetime.now(timezone.utc),
            )
            session.add(record)
            session.flush()
            return record.id


class SqlMarketDataSource(_Repository, MarketDataSource):
    """Reads the latest market figures written by the market data feed"""

    def get_snapshot(self, ticker: str) -> Optional[MarketSnapshot]:
        with self._session_scope("get_market_snapshot") as session:
            row = session.get(MarketData, ticker.upper())
            if row is None:
                return None
            return MarketSnapshot(
                ticker=row.ticker,
                price=row.price,
                volume=row.volume,
                change_percent=row.change_percent,
                high=row.high,
                low=row.low,
                open=row.open,
                last_updated=as_utc(row.last_updated),
            )
