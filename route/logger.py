"""
Route Logging
=============

Every module logs through ``get_logger(__name__)``. The first call sets up
the root logger once:

  - a ``rich`` console handler on stderr that colours addresses, amounts,
    arrows and proposal ids
  - an optional size-rotated file handler under ``logs/route.log``

Level, format and file output default to the values in ``route.constants``
(``.env`` overrides) and can be changed later with ``set_log_level`` or
``apply_logging_config``.
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

if TYPE_CHECKING:
    from .config import LoggingConfig

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "route.log"

ROUTE_THEME = Theme(
    {
        "route.address":  "cyan",
        "route.amount":   "bold white",
        "route.arrow":    "bold yellow",
        "route.proposal": "bold magenta",
        "route.error":    "bold red",
        "route.logger":   "magenta",
        "route.time":     "bold cyan",
    }
)


class RouteHighlighter(RegexHighlighter):
    """Highlights addresses, token amounts and proposal ids in log lines."""

    base_style = "route."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<arrow>→)",
        r"(?P<proposal>#\d+)",
        r"(?P<amount>(?<![\w#.])\d+(?![\w.]))",
        r"(?P<error>\w+Error\b)",
        r"\s-\s(?P<logger>route[\w.]*)\s-\s",
        r"(?P<time>^\S+ UTC)",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """Formatter that drops ANSI escapes and control characters from messages."""

    _unsafe = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"   # CSI sequences
        r"|\x1b[@-Z\\-_]"            # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"  # controls except tab and newline
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


def _usable_formatter(log_format: str, date_format: str) -> TerminalSafeFormatter:
    """Build the formatter, falling back to defaults if either format is broken."""
    probe = logging.LogRecord("route", logging.INFO, "", 0, "probe", (), None)
    try:
        formatter = TerminalSafeFormatter(fmt=str(log_format), datefmt=f"{date_format} UTC")
        formatter.format(probe)
    except (ValueError, KeyError, TypeError) as e:
        print(f"route.logger: invalid log format ({e}), using defaults", file=sys.stderr)
        formatter = TerminalSafeFormatter(
            fmt=str(LOG_FORMAT.default()),
            datefmt=f"{LOG_DATE_FORMAT.default()} UTC",
        )
    formatter.converter = time.gmtime
    return formatter


def _level_number(level: str) -> int:
    number = logging.getLevelName(str(level).upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


class LogManager:
    """
    Process-wide owner of the Route handlers (singleton).

    ``configure`` is idempotent; later level changes go through
    ``set_level`` so handlers stay in step with the root logger.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._handlers = []
                instance._configured = False
                instance._formatter = None
                cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._handlers)

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        file_output: Optional[bool] = None,
    ) -> None:
        with self._lock:
            if self._configured:
                return

            try:
                level = _level_number(log_level or LOG_LEVEL)
            except ValueError:
                level = logging.INFO
            formatter = _usable_formatter(LOG_FORMAT, LOG_DATE_FORMAT)

            if LOG_CONSOLE_HIGHLIGHTING:
                console = RichHandler(
                    console=Console(theme=ROUTE_THEME, highlight=False, stderr=True),
                    highlighter=RouteHighlighter(),
                    show_time=False,
                    show_level=False,
                    show_path=False,
                    markup=False,
                    rich_tracebacks=True,
                )
            else:
                console = logging.StreamHandler(sys.stderr)
            self._handlers.append(console)

            root = logging.getLogger()
            root.handlers.clear()
            console.setFormatter(formatter)
            root.addHandler(console)
            self._formatter = formatter

            if LOG_FILE_OUTPUT if file_output is None else file_output:
                self._add_file_handler(log_file or LOG_FILE_PATH)
            self._apply_level(level)
            self._configured = True

    def _add_file_handler(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(self._formatter)
        handler.setLevel(logging.getLogger().level)
        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def enable_file_output(self, log_file: Optional[Path] = None) -> None:
        """Attach the rotating file handler if it is not already present."""
        with self._lock:
            if any(isinstance(h, logging.handlers.RotatingFileHandler) for h in self._handlers):
                return
            self._add_file_handler(log_file or LOG_FILE_PATH)

    def _apply_level(self, level: int) -> None:
        logging.getLogger().setLevel(level)
        for handler in self._handlers:
            handler.setLevel(level)

    def set_level(self, log_level: str) -> None:
        self._apply_level(_level_number(log_level))

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name* (normally ``__name__``), configuring logging on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    _manager.set_level(log_level)


def apply_logging_config(config: "LoggingConfig") -> None:
    """Apply a ``[logging]`` section: level, plus a file handler if requested."""
    set_log_level(config.level)
    if config.file_output:
        _manager.enable_file_output()


_manager.configure()
