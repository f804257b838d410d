"""
Logging for ShellSense.

Modules log through `logging.getLogger(__name__)`, which lands in the
`shellsense` package logger. The `logger` singleton owns that logger's
handlers and adds helpers for the events worth tracing while completing:
requests and results, cache hits, sources that came back empty, and
configuration that had to be corrected.

Nothing is written until `configure()` is called (the CLI does so for
--debug). Output then goes to one file per level:
  logs/YYYY-MM-DD/debug.log
  logs/YYYY-MM-DD/info.log
  logs/YYYY-MM-DD/warning.log
  logs/YYYY-MM-DD/error.log
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LEVEL_FILES = (
    (logging.DEBUG, "debug.log"),
    (logging.INFO, "info.log"),
    (logging.WARNING, "warning.log"),
    (logging.ERROR, "error.log"),
)

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "component"}


class ShellSenseLogger:
    """Process-wide façade over the `shellsense` logger."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._ready = False
        return cls._instance

    def __init__(self):
        if self._ready:
            return
        self.logger = logging.getLogger("shellsense")
        self.log_dir: Optional[Path] = None
        self._ready = True

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[str] = None,
        json_mode: bool = False,
        enable_logging: bool = True,
    ):
        """
        Start writing log files.

        Args:
            level: Lowest level written (DEBUG, INFO, WARNING, ERROR)
            log_dir: Target directory (default: logs/<today>)
            json_mode: One JSON object per line instead of plain text
            enable_logging: False leaves the logger untouched
        """
        if not enable_logging:
            return

        self.log_dir = Path(log_dir) if log_dir else Path("logs") / datetime.now().strftime("%Y-%m-%d")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        formatter = JsonFormatter() if json_mode else ComponentFormatter(
            "%(asctime)s [%(component)-8s] %(message)s", datefmt="%H:%M:%S"
        )
        threshold = logging.getLevelName(level.upper())
        if not isinstance(threshold, int):
            threshold = logging.INFO

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.setLevel(logging.DEBUG)

        for file_level, filename in LEVEL_FILES:
            if file_level < threshold:
                continue
            handler = logging.FileHandler(self.log_dir / filename, encoding="utf-8")
            handler.setLevel(file_level)
            handler.setFormatter(formatter)
            # Exactly this level in each file
            handler.addFilter(lambda record, wanted=file_level: record.levelno == wanted)
            self.logger.addHandler(handler)

    def _emit(self, level: int, component: str, message: str, **fields):
        self.logger.log(level, message, extra={"component": component.upper(), **fields})

    # ====================
    # Completion
    # ====================

    def completion_request(self, word: str, slot: str, command: Optional[str]):
        self._emit(logging.DEBUG, "complete", f"Request: word={word!r} slot={slot} command={command!r}",
                   word=word, slot=slot, command=command)

    def completion_result(self, word: str, count: int, fuzzy: bool, elapsed_ms: float):
        ordering = "fuzzy" if fuzzy else "priority"
        self._emit(logging.DEBUG, "complete", f"{count} candidates for {word!r} ({ordering}, {elapsed_ms:.1f}ms)",
                   word=word, count=count, fuzzy=fuzzy, elapsed_ms=round(elapsed_ms, 1))

    def cache_hit(self, key: tuple):
        self._emit(logging.DEBUG, "cache", f"Hit: {key!r}", key=list(key))

    # ====================
    # Sources
    # ====================

    def source_failed(self, component: str, source: str, reason: str):
        """A backend, provider or helper produced no data. Never fatal."""
        self._emit(logging.DEBUG, component, f"Source unavailable: {source} ({reason})",
                   source=source, reason=reason)

    def history_loaded(self, source: str, path: str, count: int):
        self._emit(logging.DEBUG, "history", f"Loaded {count} entries from {source} ({path})",
                   source=source, path=path, count=count)

    def history_results(self, source: str, query: str, count: int):
        self._emit(logging.DEBUG, "history", f"{source}: {count} results for {query!r}",
                   source=source, query=query, count=count)

    # ====================
    # Configuration and failures
    # ====================

    def config_mismatch(self, kind: str, name: str, fallback: str):
        self._emit(logging.WARNING, "config", f"Unknown {kind} {name!r}, falling back to {fallback}",
                   kind=kind, requested=name, fallback=fallback)

    def warning(self, component: str, message: str):
        self._emit(logging.WARNING, component, message)

    def error(self, component: str, message: str, exception: Optional[BaseException] = None):
        if exception is not None:
            message = message + "\n" + "".join(traceback.format_exception(
                type(exception), exception, exception.__traceback__))
        self._emit(logging.ERROR, component, message,
                   error=str(exception) if exception is not None else None)


class ComponentFormatter(logging.Formatter):
    """Text formatter; records from plain module loggers get their module as component."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "component"):
            record.component = record.name.rsplit(".", 1)[-1].upper()
        return super().format(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including the structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }
        data.update({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS})
        return json.dumps(data, default=str)


logger = ShellSenseLogger()
