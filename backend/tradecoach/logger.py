"""
Loguru setup for the coach: quiet console, leveled file log, repeat suppression
"""
from loguru import logger
import sys
import time
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from tradecoach.config import settings


VALID_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name: <22} | "
    "{name}:{function}:{line} - {message}{extra[repeats]}"
)
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "<magenta>{thread.name}</magenta> <cyan>{name}:{line}</cyan> - <level>{message}</level>"
)


class RepeatedLogFilter:
    """Drops records from a source line that already logged within the window.

    The poller and the coaching loops tick every few seconds, so one failing
    collaborator would otherwise write the same warning on every tick. The
    first record after a quiet window goes through carrying the number of
    records that were dropped in between (``extra["repeats"]``).

    Example:
        12:00:05 WARNING | DialogueLoop-AAPL | ...dialogue_loop:tick:88 - market data unavailable
        12:00:06 WARNING | DialogueLoop-AAPL | ...dialogue_loop:tick:88 - ...  <- dropped
        12:00:15 WARNING | DialogueLoop-AAPL | ...dialogue_loop:tick:88 - ... (2 repeats suppressed)
    """

    def __init__(self, max_history: int = 5, time_threshold_seconds: float = 1.0, clock=time.time):
        self.max_history = max_history
        self.time_threshold = time_threshold_seconds
        self._clock = clock
        # (path, line) -> [last allowed at, dropped since]
        self._sources: "OrderedDict[Tuple[str, int], list]" = OrderedDict()
        self.suppressed_total = 0
        self._lock = threading.Lock()

    @property
    def tracked_sources(self) -> int:
        return len(self._sources)

    def __call__(self, record: Dict[str, Any]) -> bool:
        key = (record["file"].path, record["line"])
        now = self._clock()

        with self._lock:
            entry = self._sources.get(key)
            if entry is not None and now - entry[0] < self.time_threshold:
                entry[1] += 1
                self.suppressed_total += 1
                return False

            dropped = entry[1] if entry is not None else 0
            self._sources[key] = [now, 0]
            self._sources.move_to_end(key)
            while len(self._sources) > self.max_history:
                self._sources.popitem(last=False)

        extra = record.setdefault("extra", {})
        extra["repeats"] = f" ({dropped} repeats suppressed)" if dropped else ""
        return True


class LoggerManager:
    """Owns the two loguru sinks and lets the CLI change the file level."""

    def __init__(self):
        cfg = settings.LOGGER
        self.current_level = cfg.default_level.upper()
        self.log_file_path = Path(cfg.file_path)
        self.repeat_filter: Optional[RepeatedLogFilter] = None
        if cfg.filter_enabled:
            self.repeat_filter = RepeatedLogFilter(
                max_history=cfg.filter_max_history,
                time_threshold_seconds=cfg.filter_time_threshold_seconds,
            )
        self._file_sink_id: Optional[int] = None

        logger.remove()
        logger.configure(extra={"repeats": ""})
        # ERROR+ only, so Rich output in the CLI stays readable
        logger.add(sys.stderr, level="ERROR", format=CONSOLE_FORMAT, colorize=True, backtrace=True)
        self._add_file_sink()
        logger.info(f"Logger initialized with level: {self.current_level}")

    def _add_file_sink(self) -> None:
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        if self._file_sink_id is not None:
            logger.remove(self._file_sink_id)
        self._file_sink_id = logger.add(
            str(self.log_file_path),
            level=self.current_level,
            format=FILE_FORMAT,
            rotation=settings.LOGGER.rotation,
            retention=settings.LOGGER.retention,
            compression="zip",
            backtrace=True,
            diagnose=True,
            enqueue=True,
            filter=self.repeat_filter,
        )

    def set_level(self, level: str) -> str:
        """
        Change the file sink level; the console sink is left alone.

        Raises:
            ValueError: If level is not a loguru level name
        """
        level_upper = level.upper()
        if level_upper not in VALID_LEVELS:
            raise ValueError(f"Invalid level '{level}'. Choose from: {', '.join(VALID_LEVELS)}")

        old_level, self.current_level = self.current_level, level_upper
        self._add_file_sink()
        logger.success(f"Log level changed from {old_level} to {level_upper}")
        return self.current_level

    def get_level(self) -> str:
        return self.current_level


logger_manager = LoggerManager()

__all__ = ["logger", "logger_manager", "RepeatedLogFilter", "LoggerManager"]
