"""In-process spans, the current-span context and Datadog text-map propagation."""

from __future__ import annotations

import os
import re
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from . import trace_headers

_TRACE_ID_LENGTH = 16
_SPAN_ID_LENGTH = 8
_SAMPLED = 1
_UINT64_LIMIT = 1 << 64
_DIGITS = re.compile(r"[0-9]+")
_SIGNED_DIGITS = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class SpanContext:
    """Identifiers of a span: a 16-byte trace ID, an 8-byte span ID and trace options."""

    trace_id: bytes = bytes(_TRACE_ID_LENGTH)
    span_id: bytes = bytes(_SPAN_ID_LENGTH)
    trace_options: int = 0

    def __post_init__(self) -> None:
        if len(self.trace_id) != _TRACE_ID_LENGTH:
            raise ValueError(f"trace ID must be {_TRACE_ID_LENGTH} bytes, got {len(self.trace_id)}")
        if len(self.span_id) != _SPAN_ID_LENGTH:
            raise ValueError(f"span ID must be {_SPAN_ID_LENGTH} bytes, got {len(self.span_id)}")
        object.__setattr__(self, "trace_id", bytes(self.trace_id))
        object.__setattr__(self, "span_id", bytes(self.span_id))

    def is_sampled(self) -> bool:
        return bool(self.trace_options & _SAMPLED)

    @property
    def datadog_trace_id(self) -> int:
        """The low 64 bits of the trace ID, as Datadog represents it."""
        return int.from_bytes(self.trace_id[8:], "big")

    @property
    def datadog_span_id(self) -> int:
        return int.from_bytes(self.span_id, "big")


Exporter = Callable[["Span"], None]

_current: ContextVar[Optional["Span"]] = ContextVar("current_span", default=None)
_exporters: list[Exporter] = []


class Span:
    """A timed operation; entering it makes it current, leaving it finishes it."""

    def __init__(
        self,
        name: str,
        context: SpanContext,
        parent: Optional[SpanContext] = None,
        start_time: Optional[datetime] = None,
        tags: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.name = name
        self.context = context
        self.parent = parent
        self.start_time = start_time or datetime.now(timezone.utc)
        self.end_time: Optional[datetime] = None
        self.error: Optional[BaseException] = None
        self.attributes: dict[str, Any] = {}
        self.tags: dict[str, Any] = dict(tags or {})
        self._tokens: list[Any] = []

    def __repr__(self) -> str:
        return f"Span(name={self.name!r}, context={self.context!r})"

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def add_attributes(self, attributes: Mapping[str, Any]) -> None:
        self.attributes.update(attributes)

    def set_name(self, name: str) -> None:
        self.name = name

    def set_tag(self, key: str, value: Any) -> None:
        self.tags[key] = value

    def finish(self, error: Optional[BaseException] = None) -> None:
        """End the span and hand it to the registered exporters; later calls do nothing."""
        if self.finished:
            return
        self.end_time = datetime.now(timezone.utc)
        self.error = error
        for exporter in list(_exporters):
            exporter(self)

    def __enter__(self) -> "Span":
        self._tokens.append(_current.set(self))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _current.reset(self._tokens.pop())
        self.finish(exc)


def current_span() -> Optional[Span]:
    return _current.get()


@contextmanager
def use_span(span: Optional[Span]) -> Iterator[Optional[Span]]:
    """Make ``span`` current for the block without finishing it."""
    token = _current.set(span)
    try:
        yield span
    finally:
        _current.reset(token)


def start_span(
    name: str,
    child_of: Union[Span, SpanContext, None] = None,
    start_time: Optional[datetime] = None,
    **kwargs: Any,
) -> Span:
    """Start a span, a child of ``child_of`` or else of the current span; kwargs become tags."""
    if isinstance(child_of, Span):
        parent: Optional[SpanContext] = child_of.context
    elif child_of is not None:
        parent = child_of
    else:
        active = _current.get()
        parent = active.context if active is not None else None

    if parent is None:
        context = SpanContext(os.urandom(_TRACE_ID_LENGTH), os.urandom(_SPAN_ID_LENGTH), _SAMPLED)
    else:
        context = SpanContext(parent.trace_id, os.urandom(_SPAN_ID_LENGTH), parent.trace_options)

    return Span(name, context, parent=parent, start_time=start_time, tags=kwargs)


def start_span_no_root(name: str, **kwargs: Any) -> Optional[Span]:
    """Start a child of the current span, or return None when there is no current span."""
    if _current.get() is None:
        return None
    return start_span(name, **kwargs)


def inject(span_context: SpanContext, writer: Any) -> None:
    """Write Datadog propagation headers into a mapping or an object with ``set(key, value)``."""
    values = {
        trace_headers.DATADOG_TRACE_ID_HEADER: str(span_context.datadog_trace_id),
        trace_headers.DATADOG_PARENT_ID_HEADER: str(span_context.datadog_span_id),
        trace_headers.DATADOG_SAMPLING_PRIORITY_HEADER: "1" if span_context.is_sampled() else "0",
    }
    setter = getattr(writer, "set", None)
    for key, value in values.items():
        if callable(setter):
            setter(key, value)
        else:
            writer[key] = value


def _pairs(items: Any) -> Iterable[tuple[str, str]]:
    foreach_key = getattr(items, "foreach_key", None)
    if callable(foreach_key):
        collected: list[tuple[str, str]] = []
        foreach_key(lambda key, value: collected.append((key, value)))
        return collected
    if isinstance(items, Mapping):
        return items.items()
    return items


def _parse_uint64(text: Optional[str]) -> Optional[int]:
    if text is None or not _DIGITS.fullmatch(text):
        return None
    value = int(text)
    return value if value < _UINT64_LIMIT else None


def extract(items: Any) -> Optional[SpanContext]:
    """Read a span context from Datadog headers; None when none is carried.

    ``items`` may be a mapping, an iterable of pairs, or an object with
    ``foreach_key(handler)``. A missing sampling priority counts as sampled.
    """
    found: dict[str, str] = {}
    for key, value in _pairs(items):
        found.setdefault(key.lower(), value)

    trace_id = _parse_uint64(found.get(trace_headers.DATADOG_TRACE_ID_HEADER))
    parent_id = _parse_uint64(found.get(trace_headers.DATADOG_PARENT_ID_HEADER))
    if not trace_id or not parent_id:
        return None

    options = _SAMPLED
    priority = found.get(trace_headers.DATADOG_SAMPLING_PRIORITY_HEADER)
    if priority is not None:
        options = _SAMPLED if _SIGNED_DIGITS.fullmatch(priority) and int(priority) >= 1 else 0

    return SpanContext(
        bytes(8) + trace_id.to_bytes(8, "big"),
        parent_id.to_bytes(_SPAN_ID_LENGTH, "big"),
        options,
    )


def register_exporter(exporter: Exporter) -> None:
    """Call ``exporter`` with every span that finishes from now on."""
    _exporters.append(exporter)


def unregister_exporter(exporter: Exporter) -> None:
    _exporters.remove(exporter)