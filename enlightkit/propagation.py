"""Trace propagation over HTTP headers in both B3 and Datadog formats."""

from __future__ import annotations

import re
from typing import Any, Mapping, MutableMapping, Optional

from . import trace_headers
from .tracing import SpanContext

_TRACE_ID_BYTES = 16
_SPAN_ID_BYTES = 8
_UINT64_LIMIT = 1 << 64
_INT64_MAX = (1 << 63) - 1
_INT64_MIN = -(1 << 63)
_PRIORITY_AUTO_KEEP = 1
_DIGITS = re.compile(r"[0-9]+")
_SIGNED_DIGITS = re.compile(r"[+-]?[0-9]+")
_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")


def _header_lookup(headers: Any) -> dict[str, str]:
    found: dict[str, str] = {}
    items = headers.items() if isinstance(headers, Mapping) or hasattr(headers, "items") else headers
    for key, value in items:
        found.setdefault(key.lower(), value)
    return found


def _parse_uint64(text: str) -> Optional[int]:
    if not _DIGITS.fullmatch(text):
        return None
    value = int(text)
    return value if value < _UINT64_LIMIT else None


def _atoi(text: str) -> int:
    """Parse a signed integer; 0 on bad syntax, clamped to 64 bits when out of range."""
    if not _SIGNED_DIGITS.fullmatch(text):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(text)))


def _parse_hex_id(text: str, size: int) -> Optional[bytes]:
    if not text or not _HEX_PAIRS.fullmatch(text):
        return None
    raw = bytes.fromhex(text)
    if len(raw) > size:
        return None
    return raw.rjust(size, b"\0")


class HTTPFormat:
    """Reads and writes span contexts as B3 and Datadog HTTP headers.

    X-B3-ParentId and X-B3-Flags are not used: spans made from incoming
    headers become direct children of the caller's span.
    """

    def span_context_from_request(self, headers: Any) -> Optional[SpanContext]:
        """Return the span context carried by ``headers``, Datadog first, then B3; else None."""
        lookup = _header_lookup(headers)
        return self._from_datadog(lookup) or self._from_b3(lookup)

    @staticmethod
    def _from_datadog(lookup: dict[str, str]) -> Optional[SpanContext]:
        trace_id = _parse_uint64(lookup.get(trace_headers.DATADOG_TRACE_ID_HEADER.lower(), ""))
        if trace_id is None:
            return None
        span_id = _parse_uint64(lookup.get(trace_headers.DATADOG_PARENT_ID_HEADER.lower(), ""))
        if span_id is None:
            return None

        sampled = _atoi(lookup.get(trace_headers.DATADOG_SAMPLING_PRIORITY_HEADER.lower(), ""))
        if sampled >= _PRIORITY_AUTO_KEEP:
            sampled = 1

        return SpanContext(
            bytes(8) + trace_id.to_bytes(8, "big"),
            span_id.to_bytes(_SPAN_ID_BYTES, "big"),
            sampled & 0xFFFFFFFF,
        )

    @staticmethod
    def _from_b3(lookup: dict[str, str]) -> Optional[SpanContext]:
        trace_id = _parse_hex_id(lookup.get(trace_headers.B3_TRACE_ID_HEADER.lower(), ""), _TRACE_ID_BYTES)
        if trace_id is None:
            return None
        span_id = _parse_hex_id(lookup.get(trace_headers.B3_SPAN_ID_HEADER.lower(), ""), _SPAN_ID_BYTES)
        if span_id is None:
            return None

        sampled = lookup.get(trace_headers.B3_SAMPLED_HEADER.lower(), "")
        return SpanContext(trace_id, span_id, 1 if sampled in ("true", "1") else 0)

    def span_context_to_request(self, span_context: SpanContext, headers: MutableMapping[str, str]) -> None:
        """Write B3 and Datadog headers for ``span_context`` into ``headers``."""
        sampled = "1" if span_context.is_sampled() else "0"
        headers[trace_headers.B3_TRACE_ID_HEADER] = span_context.trace_id.hex()
        headers[trace_headers.B3_SPAN_ID_HEADER] = span_context.span_id.hex()
        headers[trace_headers.DATADOG_TRACE_ID_HEADER] = str(span_context.datadog_trace_id)
        headers[trace_headers.DATADOG_PARENT_ID_HEADER] = str(span_context.datadog_span_id)
        headers[trace_headers.B3_SAMPLED_HEADER] = sampled
        headers[trace_headers.DATADOG_SAMPLING_PRIORITY_HEADER] = sampled