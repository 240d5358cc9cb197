import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from utils.utcnow import utcnow


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Block numbers, balances and addresses are not always JSON-native.
        return json.dumps(log_data, default=str)


class ContextLogger:
    """Logger that carries keyword context into every structured record.

    Keyword arguments passed to a log call are merged with the bound context
    and emitted under ``data`` by :class:`JSONFormatter`::

        log = get_logger("leaderboard").with_context(house="honoo")
        log.warning("Holder enumeration failed", error="timeout")
    """

    def __init__(self, name: str, context: Optional[dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self.logger.name

    def with_context(self, **kwargs: Any) -> "ContextLogger":
        """Return a child logger with extra bound context"""
        return ContextLogger(self.logger.name, {**self._context, **kwargs})

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return

        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", False)
        extra = kwargs.pop("extra", None)

        extra_data: dict[str, Any] = dict(self._context)
        if isinstance(extra, dict):
            extra_data.update(extra)
        elif extra is not None:
            extra_data["extra"] = extra
        extra_data.update(kwargs)

        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            stack_info=stack_info,
            stacklevel=3,  # skip ContextLogger wrappers
            extra={"extra_data": extra_data or None},
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(level: str = "INFO", json_format: bool = True, log_file: Optional[str] = None):
    """Configure application logging"""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Suppress noisy libraries
    for noisy in ("httpx", "httpcore", "asyncio", "aiosqlite", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger"""
    return ContextLogger(name)


# Pre-configured loggers
leaderboard_logger = get_logger("leaderboard")
chain_logger = get_logger("chain")
api_logger = get_logger("api")
