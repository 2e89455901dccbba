"""Structured JSON logging with default fields, trace correlation and sampling."""

from __future__ import annotations

import enum
import json
import os
import sys
import threading
import time
import traceback
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Union

from . import tracing
from .contexts import current_user_id

_THIS_FILE = __file__


class Level(enum.IntEnum):
    DEBUG = -1
    INFO = 0
    WARN = 1
    ERROR = 2
    PANIC = 4
    FATAL = 5

    @property
    def label(self) -> str:
        return self.name.lower()


class LogPanic(Exception):
    """Raised after a panic-level entry has been written."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


_ENV_LEVELS = {"debug": Level.DEBUG, "info": Level.INFO, "warn": Level.WARN, "error": Level.ERROR}


def _level_from_env() -> Level:
    return _ENV_LEVELS.get(os.environ.get("LOG_LEVEL", "info"), Level.INFO)


def _console_from_env() -> bool:
    return os.environ.get("CONSOLE_LOGGER", "").lower() == "true"


def _coerce_level(level: Union[Level, str, int]) -> Level:
    if isinstance(level, str):
        return Level[level.upper()]
    return Level(level)


class _StdoutSink:
    """Writes to whatever ``sys.stdout`` is at the time of writing."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            sys.stdout.write(text)

    def flush(self) -> None:
        with self._lock:
            sys.stdout.flush()


class _DiscardSink:
    def write(self, text: str) -> None:
        pass

    def flush(self) -> None:
        pass


class _SampleSink:
    """Passes the first ``first`` writes of a burst, then every ``thereafter``-th one.

    A burst ends when more than ``tick`` has passed since the previous write.
    """

    def __init__(self, tick: Union[timedelta, float], first: int, thereafter: int, target: Any = None) -> None:
        self._tick = tick.total_seconds() if isinstance(tick, timedelta) else float(tick)
        self._first = first
        self._thereafter = thereafter
        self._target = target if target is not None else _StdoutSink()
        self._count = 0
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            now = time.monotonic()
            if self._last is None or now - self._last > self._tick:
                self._count = 0
            self._count += 1
            self._last = now

            if self._count > self._first and self._count % self._thereafter != 0:
                return
            self._target.write(text)

    def flush(self) -> None:
        self._target.flush()


def _sprint(args: tuple) -> str:
    """Join operands, putting a space between two neighbours that are not strings."""
    parts: list[str] = []
    previous_is_str = True
    for index, arg in enumerate(args):
        is_str = isinstance(arg, str)
        if index and not is_str and not previous_is_str:
            parts.append(" ")
        parts.append(str(arg))
        previous_is_str = is_str
    return "".join(parts)


def _sprintf(template: str, args: tuple) -> str:
    if not args:
        return template
    try:
        return template.replace("%v", "%s") % args
    except (TypeError, ValueError):
        return template + " " + " ".join(map(str, args))


def _caller_frame():
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename == _THIS_FILE:
        frame = frame.f_back
    return frame


def _short_caller(frame) -> str:
    if frame is None:
        return "undefined"
    path = frame.f_code.co_filename.replace(os.sep, "/")
    short = "/".join(path.split("/")[-2:])
    return f"{short}:{frame.f_lineno}"


def _timestamp() -> str:
    text = datetime.now().astimezone().replace(microsecond=0).isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _as_pairs(fields: Union[Mapping[str, Any], Iterable[tuple[str, Any]]]) -> tuple:
    if isinstance(fields, Mapping):
        return tuple(fields.items())
    return tuple(fields)


class Logger:
    """An immutable logger; the ``with_*`` methods return new loggers with extra fields."""

    __slots__ = ("_sink", "_level", "_fields", "_console")

    def __init__(
        self,
        sink: Any = None,
        level: Union[Level, str, int, None] = None,
        fields: Iterable[tuple[str, Any]] = (),
        console: Optional[bool] = None,
    ) -> None:
        self._sink = sink if sink is not None else _StdoutSink()
        self._level = _coerce_level(level) if level is not None else _level_from_env()
        self._fields = tuple(fields)
        self._console = _console_from_env() if console is None else console

    def _with(self, extra: Iterable[tuple[str, Any]]) -> "Logger":
        return Logger(self._sink, self._level, self._fields + tuple(extra), self._console)

    def _encode(self, level: Level, message: str, extra: tuple) -> str:
        frame = _caller_frame()
        fields = dict(self._fields + extra)
        stack = "".join(traceback.format_stack(frame)).rstrip() if level >= Level.ERROR and frame else None

        if self._console:
            columns = [_timestamp(), level.label, _short_caller(frame), message]
            if fields:
                columns.append(json.dumps(fields, default=str, ensure_ascii=False))
            line = "\t".join(columns)
            if stack:
                line += "\n" + stack
            return line + "\n"

        entry: dict[str, Any] = {
            "level": level.label,
            "timestamp": _timestamp(),
            "source": _short_caller(frame),
            "message": message,
        }
        entry.update(fields)
        if stack:
            entry["stacktrace"] = stack
        return json.dumps(entry, default=str, ensure_ascii=False) + "\n"

    def _log(self, level: Level, message: str, extra: tuple = ()) -> None:
        if level >= self._level:
            self._sink.write(self._encode(level, message, extra))
        if level is Level.PANIC:
            raise LogPanic(message)
        if level is Level.FATAL:
            raise SystemExit(1)

    def with_field(self, key: str, value: Any) -> "Logger":
        return self._with(((key, value),))

    def with_fields(self, fields: Union[Mapping[str, Any], Iterable[tuple[str, Any]]]) -> "Logger":
        return self._with(_as_pairs(fields))

    def with_error(self, err: BaseException) -> "Logger":
        return self.with_field("error", str(err))

    def with_tracing(self) -> "Logger":
        """Add Datadog trace and span IDs of the current span, if any."""
        span = tracing.current_span()
        if span is None:
            return self
        return self.with_field("dd.trace_id", span.context.datadog_trace_id).with_field(
            "dd.span_id", span.context.datadog_span_id
        )

    def with_client_id(self) -> "Logger":
        """Return this logger; client identity is not added to entries."""
        return self

    def with_user_id(self) -> "Logger":
        user_id = current_user_id()
        if user_id is None:
            return self
        return self.with_field("userId", user_id)

    def only_with_tracing(self) -> "Logger":
        """Return a tracing logger when a span is current, else one that discards output."""
        if tracing.current_span() is None:
            return nop()
        return self.with_tracing()

    def debugf(self, format: str, *args: Any) -> None:
        self._log(Level.DEBUG, _sprintf(format, args))

    def infof(self, format: str, *args: Any) -> None:
        self._log(Level.INFO, _sprintf(format, args))

    def warnf(self, format: str, *args: Any) -> None:
        self._log(Level.WARN, _sprintf(format, args))

    def warningf(self, format: str, *args: Any) -> None:
        self._log(Level.WARN, _sprintf(format, args))

    def errorf(self, format: str, *args: Any) -> None:
        self._log(Level.ERROR, _sprintf(format, args))

    def fatalf(self, format: str, *args: Any) -> None:
        self._log(Level.FATAL, _sprintf(format, args))

    def panicf(self, format: str, *args: Any) -> None:
        self._log(Level.PANIC, _sprintf(format, args))

    def debug(self, *args: Any) -> None:
        self._log(Level.DEBUG, _sprint(args))

    def info(self, *args: Any) -> None:
        self._log(Level.INFO, _sprint(args))

    def warn(self, *args: Any) -> None:
        self._log(Level.WARN, _sprint(args))

    def warning(self, *args: Any) -> None:
        self._log(Level.WARN, _sprint(args))

    def error(self, *args: Any) -> None:
        self._log(Level.ERROR, _sprint(args))

    def fatal(self, *args: Any) -> None:
        self._log(Level.FATAL, _sprint(args))

    def panic(self, *args: Any) -> None:
        self._log(Level.PANIC, _sprint(args))

    def check_write(self, level: Union[Level, str, int], msg: str, **kwargs: Any) -> None:
        """Write ``msg`` with ``kwargs`` as fields if ``level`` is enabled."""
        self._log(_coerce_level(level), msg, tuple(kwargs.items()))

    def sync(self) -> None:
        self._sink.flush()


_default_fields: list[tuple[str, Any]] = []
_base = Logger()


def set_default_service(value: Any) -> None:
    set_default_field("service", value)


def set_default_field(key: str, value: Any) -> None:
    """Add a field to the base logger and to loggers created from now on."""
    global _base
    _default_fields.append((key, value))
    _base = _base.with_field(key, value)


def base() -> Logger:
    return _base


def nop() -> Logger:
    return Logger(sink=_DiscardSink(), level=Level.DEBUG, console=False)


def with_field(key: str, value: Any) -> Logger:
    return _base.with_field(key, value)


def with_fields(fields: Union[Mapping[str, Any], Iterable[tuple[str, Any]]]) -> Logger:
    return _base.with_fields(fields)


def with_error(err: BaseException) -> Logger:
    return _base.with_error(err)


def with_tracing() -> Logger:
    return _base.with_tracing()


def with_client_id() -> Logger:
    return _base.with_client_id()


def with_user_id() -> Logger:
    return _base.with_user_id()


def only_with_tracing() -> Logger:
    return _base.only_with_tracing()


def debugf(format: str, *args: Any) -> None:
    _base.debugf(format, *args)


def infof(format: str, *args: Any) -> None:
    _base.infof(format, *args)


def warnf(format: str, *args: Any) -> None:
    _base.warnf(format, *args)


def warningf(format: str, *args: Any) -> None:
    _base.warningf(format, *args)


def errorf(format: str, *args: Any) -> None:
    _base.errorf(format, *args)


def fatalf(format: str, *args: Any) -> None:
    _base.fatalf(format, *args)


def panicf(format: str, *args: Any) -> None:
    _base.panicf(format, *args)


def debug(*args: Any) -> None:
    _base.debug(*args)


def info(*args: Any) -> None:
    _base.info(*args)


def warn(*args: Any) -> None:
    _base.warn(*args)


def warning(*args: Any) -> None:
    _base.warning(*args)


def error(*args: Any) -> None:
    _base.error(*args)


def fatal(*args: Any) -> None:
    _base.fatal(*args)


def panic(*args: Any) -> None:
    _base.panic(*args)


def check_write(level: Union[Level, str, int], msg: str, **kwargs: Any) -> None:
    _base.check_write(level, msg, **kwargs)


def new_sample_logger(tick: Union[timedelta, float], first: int, thereafter: int) -> Logger:
    """Return a stdout logger that drops entries written too often within ``tick``."""
    return Logger(sink=_SampleSink(tick, first, thereafter), fields=tuple(_default_fields))