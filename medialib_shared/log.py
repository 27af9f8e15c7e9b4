"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

PREFIX: Final[str] = "📂 MediaLib"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class CorrelationFilter(logging.Filter):
    """Inject `request_id` from `request_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.request_id = request_id_var.get("")
        except Exception:
            record.request_id = ""
        return True


class EmojiFormatter(logging.Formatter):
    """Single-line formatter: prefix, level emoji, logger name, optional request id."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "📂")
        rid = str(getattr(record, "request_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        log_format = f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s"
        return logging.Formatter(log_format).format(record)


def _ensure_correlation_filter(logger: logging.Logger) -> None:
    if any(isinstance(f, CorrelationFilter) for f in logger.filters):
        return
    logger.addFilter(CorrelationFilter())


def _short_name(name: str) -> str:
    if name.startswith("__main__"):
        return "main"
    parts = name.split(".")
    if "medialib_backend" in parts:
        return ".".join(parts[parts.index("medialib_backend") + 1:]) or "backend"
    if "medialib_shared" in parts:
        return ".".join(parts[parts.index("medialib_shared"):])
    return name


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger with the MediaLib prefix and emoji indicators.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(f"medialib.{_short_name(name)}")
    _ensure_correlation_filter(logger)

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    return logger


SUCCESS_LEVEL: Final[int] = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str) -> None:
    """Log a success message at the custom SUCCESS level."""
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
