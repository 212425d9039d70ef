"""
Structured logging for edge-adapter.

This module provides:
- ``ContextLogger``: the per-request ``context.log`` with helix-style levels
  (fatal, error, warn, info, verbose, debug, silly), enriching every record
  with the invocation metadata and fanning it out to the targets named in
  ``context.attributes["loggers"]``
- Console emission (Cloudflare): one ``target<TAB>level<TAB>json`` line per
  target on stdout, so tail consumers can filter without parsing JSON
- Native emission (Fastly): one JSON line per named log endpoint
- Formatters and configuration for the adapter's own diagnostics
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .capabilities import get_logger_class
from .concurrency import AsyncOnce
from .config import get_settings
from .errors import LogSinkError

if TYPE_CHECKING:
    from .context import InvocationContext

LEVELS = ("fatal", "error", "warn", "info", "verbose", "debug", "silly")

NO_TARGET = "-"

logger = logging.getLogger("edge_adapter")

# =============================================================================
# Record helpers
# =============================================================================


def normalize_log_data(data: Any) -> dict[str, Any]:
    """Coerce log input into a dict: strings and other scalars become ``message``."""
    if isinstance(data, str):
        return {"message": data}
    if isinstance(data, Mapping):
        return dict(data)
    return {"message": str(data)}


def _iso_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def enrich_log_data(data: Mapping[str, Any], level: str, context: Any) -> dict[str, Any]:
    """
    Add the invocation envelope to a normalized record.

    Fields are read from ``context`` now, not when the logger was created.
    Fields supplied by the caller take precedence over the envelope.
    """
    invocation = getattr(context, "invocation", None)
    func = getattr(context, "func", None)
    runtime = getattr(context, "runtime", None)
    return {
        "timestamp": _iso_timestamp(),
        "level": level,
        "requestId": getattr(invocation, "request_id", None),
        "transactionId": getattr(invocation, "transaction_id", None),
        "functionName": getattr(func, "name", None),
        "functionVersion": getattr(func, "version", None),
        "functionFQN": getattr(func, "fqn", None),
        "region": getattr(runtime, "region", None),
        **data,
    }


def _targets_of(context: Any) -> list[str]:
    attributes = getattr(context, "attributes", None) or {}
    targets = attributes.get("loggers") if isinstance(attributes, Mapping) else None
    if not targets:
        return []
    if isinstance(targets, str):
        return [targets]
    return [str(t) for t in targets]


def _dumps(record: Mapping[str, Any]) -> str:
    return json.dumps(record, default=str)


# =============================================================================
# Stdout channel
# =============================================================================

_console: logging.Logger | None = None


def get_console() -> logging.Logger:
    """The stdout channel request logs are written to (bare message format)."""
    global _console
    if _console is None:
        _console = logging.getLogger("edge_adapter.console")
        _console.setLevel(logging.INFO)
        _console.propagate = False
        if not _console.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter("%(message)s"))
            _console.addHandler(handler)
    return _console


# =============================================================================
# Emitters
# =============================================================================


class ConsoleEmitter:
    """Writes ``target<TAB>level<TAB>json`` lines to stdout (Cloudflare)."""

    def __init__(self, write: Callable[[str], None] | None = None):
        self._write = write or get_console().info

    def emit(self, level: str, record: dict[str, Any], targets: Sequence[str]) -> None:
        body = _dumps(record)
        for target in targets or [NO_TARGET]:
            self._write(f"{target}\t{level}\t{body}")

    async def flush(self) -> None:
        return None


class NativeSinks:
    """
    Process-wide native log endpoints.

    The ``Logger`` class is loaded once per process and each named endpoint is
    constructed once, however many invocation contexts write to it. Failures
    are reported once per endpoint.
    """

    def __init__(self) -> None:
        self.logger_class: AsyncOnce[Any] = AsyncOnce(self._load_class)
        self.sinks: dict[str, Any] = {}
        self.reported: set[str] = set()

    async def _load_class(self) -> Any:
        try:
            logger_class = await get_logger_class()
        except Exception as e:
            self.report("import", f"Failed to import native logger: {e}", e)
            return None
        if logger_class is None:
            self.report("import", "Failed to import native logger: module unavailable")
        return logger_class

    def report(self, key: str, message: str, cause: BaseException | None = None) -> None:
        if key in self.reported:
            return
        self.reported.add(key)
        error = LogSinkError(message, target=None if key == "import" else key, cause=cause)
        logger.error(str(error.message), extra={"error": error.to_dict()})

    def sink(self, logger_class: Any, target: str) -> Any:
        sink = self.sinks.get(target)
        if sink is None:
            sink = logger_class(target)
            self.sinks[target] = sink
        return sink


_native_sinks = NativeSinks()


def get_native_sinks() -> NativeSinks:
    return _native_sinks


def reset_native_sinks() -> None:
    """Forget the loaded logger class and cached endpoints."""
    global _native_sinks
    _native_sinks = NativeSinks()


class NativeEmitter:
    """
    Writes JSON lines to the runtime's named log endpoints (Fastly).

    Endpoints come from the process-wide ``NativeSinks``. While the native
    ``Logger`` class is still loading, each call is queued as a unit and
    written once loading completes, so all targets of one call are emitted
    together. Calls made after loading finished are written immediately and
    may therefore appear before earlier queued ones.
    """

    def __init__(self, write: Callable[[str], None] | None = None, sinks: NativeSinks | None = None):
        self._fallback = write or get_console().info
        self._shared = sinks or get_native_sinks()
        self._pending: set[asyncio.Future[None]] = set()

    def _write(self, logger_class: Any, targets: Sequence[str], record: dict[str, Any]) -> None:
        entry = _dumps(record)
        if not targets:
            self._fallback(entry)
            return
        for target in targets:
            if logger_class is None:
                self._fallback(_dumps({"target": target, **record}))
                continue
            try:
                self._shared.sink(logger_class, target).log(entry)
            except Exception as e:
                self._shared.report(target, f'Failed to log to native logger "{target}": {e}', e)

    def emit(self, level: str, record: dict[str, Any], targets: Sequence[str]) -> None:
        targets = list(targets)
        loading = self._shared.logger_class
        if loading.done:
            self._write(loading.value, targets, record)
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Nothing can be awaited outside an event loop.
            self._write(None, targets, record)
            return
        self._pending.add(asyncio.ensure_future(self._deferred(targets, record)))

    async def _deferred(self, targets: list[str], record: dict[str, Any]) -> None:
        try:
            logger_class = await self._shared.logger_class.get()
        except Exception as e:
            self._shared.report("import", f"Failed to initialize native logger: {e}", e)
            logger_class = None
        self._write(logger_class, targets, record)

    async def flush(self) -> None:
        """Wait until every queued call has been written."""
        while self._pending:
            pending = list(self._pending)
            self._pending.difference_update(pending)
            await asyncio.gather(*pending, return_exceptions=True)


# =============================================================================
# Context logger
# =============================================================================


class ContextLogger:
    """
    The logger bound to one invocation context.

    Example:
        ```python
        context.attributes["loggers"] = ["coralogix", "splunk"]
        context.log.info({"action": "login", "user_id": 42})
        context.log.warn("cache miss")
        ```
    """

    def __init__(self, context: InvocationContext | Any, emitter: ConsoleEmitter | NativeEmitter):
        self._context = context
        self._emitter = emitter

    @property
    def emitter(self) -> ConsoleEmitter | NativeEmitter:
        return self._emitter

    def log(self, level: str, data: Any) -> None:
        if level not in LEVELS:
            raise ValueError(f"Invalid log level: {level}. Must be one of {LEVELS}")
        record = enrich_log_data(normalize_log_data(data), level, self._context)
        try:
            self._emitter.emit(level, record, _targets_of(self._context))
        except Exception as e:
            logger.error(f"Failed to emit log record: {e}")

    def fatal(self, data: Any) -> None:
        self.log("fatal", data)

    def error(self, data: Any) -> None:
        self.log("error", data)

    def warn(self, data: Any) -> None:
        self.log("warn", data)

    def info(self, data: Any) -> None:
        self.log("info", data)

    def verbose(self, data: Any) -> None:
        self.log("verbose", data)

    def debug(self, data: Any) -> None:
        self.log("debug", data)

    def silly(self, data: Any) -> None:
        self.log("silly", data)

    warning = warn

    async def flush(self) -> None:
        await self._emitter.flush()


def create_cloudflare_logger(context: Any, write: Callable[[str], None] | None = None) -> ContextLogger:
    return ContextLogger(context, ConsoleEmitter(write))


def create_fastly_logger(context: Any, write: Callable[[str], None] | None = None) -> ContextLogger:
    return ContextLogger(context, NativeEmitter(write))


# =============================================================================
# Formatters (adapter diagnostics)
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        error = getattr(record, "error", None)
        if error is not None:
            log_data["error"] = error

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        text = f"{timestamp} {record.levelname:8} {record.name} {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def configure_logging(level: str | None = None, json_output: bool | None = None) -> logging.Logger:
    """
    Configure the adapter's diagnostic logger (stdout, JSON or text).

    Unset arguments come from ``get_settings().logging``.
    """
    config = get_settings().logging
    level = level or config.level
    if json_output is None:
        json_output = config.format == "json"
    diagnostics = logging.getLogger("edge_adapter")
    diagnostics.setLevel(getattr(logging, level.upper()))
    for handler in list(diagnostics.handlers):
        if getattr(handler, "_edge_adapter", False):
            diagnostics.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    handler._edge_adapter = True  # type: ignore[attr-defined]
    diagnostics.addHandler(handler)
    return diagnostics


__all__ = [
    "LEVELS",
    "NO_TARGET",
    "normalize_log_data",
    "enrich_log_data",
    "get_console",
    "ConsoleEmitter",
    "NativeEmitter",
    "NativeSinks",
    "get_native_sinks",
    "reset_native_sinks",
    "ContextLogger",
    "create_cloudflare_logger",
    "create_fastly_logger",
    "JSONFormatter",
    "TextFormatter",
    "configure_logging",
]
