"""Logging setup for the chat bridge.

Colored console output through colorlog, a filter keeping OAuth credentials
out of every emitted record, and per-category error tracking that feeds
``errors.handling.log_error`` and the summary printed on exit.
"""

from __future__ import annotations

import atexit
import logging
import os
import re
import sys
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any, TextIO

import colorlog

LOG_FORMAT = (
    "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s"
)
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}
ALERT_RATE_PER_HOUR = 10.0

_CREDENTIAL_RE = re.compile(r"(oauth:|OAuth |access_token=)[^\s&'\"]+")


class TokenRedactingFilter(logging.Filter):
    """Masks bearer tokens that slipped into a log message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _CREDENTIAL_RE.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ErrorAggregator:
    """Tracks error occurrences per category.

    Only the newest ``max_per_type`` entries of a category are retained; the
    hourly rate is computed over at least one hour of runtime so a burst
    right after startup does not trip the alert.
    """

    def __init__(
        self, max_per_type: int = 1000, clock: Callable[[], float] = time.time
    ) -> None:
        self.max_per_type = max_per_type
        self.clock = clock
        self.lock = threading.Lock()
        self.errors: dict[str, deque[dict[str, Any]]] = {}
        self.start_time = clock()

    def record_error(
        self, error_type: str, message: str, context: dict[str, Any] | None = None
    ) -> None:
        entry = {"timestamp": self.clock(), "message": message, "context": dict(context or {})}
        with self.lock:
            entries = self.errors.get(error_type)
            if entries is None:
                entries = self.errors[error_type] = deque(maxlen=self.max_per_type)
            entries.append(entry)

    def get_error_summary(self) -> dict[str, dict[str, Any]]:
        with self.lock:
            now = self.clock()
            hours = max((now - self.start_time) / 3600, 1)
            return {
                error_type: {
                    "total_count": len(entries),
                    "recent_count": sum(1 for e in entries if now - e["timestamp"] < 3600),
                    "rate_per_hour": len(entries) / hours,
                    "last_occurrence": entries[-1] if entries else None,
                }
                for error_type, entries in self.errors.items()
            }

    def should_alert(self, error_type: str, threshold_rate: float = ALERT_RATE_PER_HOUR) -> bool:
        stats = self.get_error_summary().get(error_type)
        return stats is not None and stats["rate_per_hour"] > threshold_rate

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("📊 No errors recorded this run")
            return
        logging.warning(f"📊 Errors recorded this run: {len(summary)} categories")
        for error_type, stats in sorted(summary.items()):
            last = stats["last_occurrence"]
            logging.warning(
                f"   {error_type}: total={stats['total_count']} "
                f"last_hour={stats['recent_count']} "
                f"rate={stats['rate_per_hour']:.1f}/h"
                + (f" last='{last['message']}'" if last else "")
            )

    def reset(self) -> None:
        with self.lock:
            self.errors.clear()
            self.start_time = self.clock()


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log ``message`` tagged with its category and record it for aggregation.

    Args:
        error_type: Category such as ``network``, ``auth`` or ``protocol``.
        message: Human-readable description.
        exception: Exception being reported, if any.
        context: Extra key/value pairs appended to the record.
        level: Logging level of the record.
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception is not None:
        parts.append(f"Exception: {type(exception).__name__}: {str(exception)}")
    if context:
        parts.append("Context: " + " ".join(f"{k}={v}" for k, v in context.items()))
    logging.log(level, " | ".join(parts))

    error_aggregator.record_error(error_type, message, context)
    if error_aggregator.should_alert(error_type):
        rate = error_aggregator.get_error_summary()[error_type]["rate_per_hour"]
        logging.critical(f"🚨 HIGH ERROR RATE ALERT: {error_type} at {rate:.1f}/hour")


def _level_from_env() -> int:
    name = os.environ.get("PIPCHAT_LOG_LEVEL", "").upper()
    if name in logging.getLevelNamesMapping():
        return logging.getLevelNamesMapping()[name]
    if os.environ.get("DEBUG", "").lower() in ("true", "1", "yes"):
        return logging.DEBUG
    return logging.INFO


class LoggerConfigurator:
    """Installs the colored console handler on the root logger.

    The level comes from ``level`` when given, else ``PIPCHAT_LOG_LEVEL``,
    else ``DEBUG`` (``true``/``1``/``yes`` selects DEBUG), else INFO.
    """

    _summary_registered = False

    def __init__(self, level: int | None = None, stream: TextIO | None = None) -> None:
        self.level = level
        self.stream = stream

    def configure(self) -> logging.Handler:
        level = self.level if self.level is not None else _level_from_env()

        handler = colorlog.StreamHandler(self.stream or sys.stderr)
        handler.setFormatter(
            colorlog.ColoredFormatter(
                LOG_FORMAT,
                datefmt="%Y-%m-%d %H:%M:%S",
                log_colors=LOG_COLORS,
                secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
                reset=True,
            )
        )
        handler.addFilter(TokenRedactingFilter())
        logging.basicConfig(level=level, handlers=[handler], force=True)

        # Frame-level chatter is logged by the bridge itself at DEBUG
        logging.getLogger("websockets").setLevel(max(level, logging.INFO))
        logging.getLogger("aiohttp").setLevel(max(level, logging.WARNING))

        if not LoggerConfigurator._summary_registered:
            atexit.register(self._log_final_error_summary)
            LoggerConfigurator._summary_registered = True
        return handler

    @staticmethod
    def _log_final_error_summary() -> None:
        try:
            error_aggregator.log_summary_report()
        except Exception as e:  # noqa: BLE001
            logging.error(f"Failed to log final error summary: {e}")
