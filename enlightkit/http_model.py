"""Shared HTTP header names, MIME values and JSON error bodies."""

from __future__ import annotations

import json

from . import trace_headers

HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CLIENT_ID = "X-Client-ID"
HEADER_CACHE_CONTROL = "Cache-Control"
HEADER_DATADOG_TRACE_ID = trace_headers.DATADOG_TRACE_ID_HEADER
HEADER_DATADOG_PARENT_ID = trace_headers.DATADOG_PARENT_ID_HEADER
HEADER_DATADOG_SAMPLED = trace_headers.DATADOG_SAMPLED_HEADER
HEADER_DATADOG_SAMPLING_PRIORITY = trace_headers.DATADOG_SAMPLING_PRIORITY_HEADER
HEADER_DATADOG_ORIGIN = trace_headers.DATADOG_ORIGIN_HEADER
HEADER_B3_TRACE_ID = trace_headers.B3_TRACE_ID_HEADER
HEADER_B3_SPAN_ID = trace_headers.B3_SPAN_ID_HEADER
HEADER_B3_SAMPLED = trace_headers.B3_SAMPLED_HEADER

CACHE_CONTROL_NO_CACHE = "no-cache"
MIME_JSON = "application/json"
MIME_PARAMETER_UTF8 = "charset=utf-8"

ERR_RESPONSE_UNSUPPORTED_MEDIA_TYPE = b'{"error": {"message": "unsupported media type"}}'
ERR_RESPONSE_INTERNAL_SERVER_ERROR = b'{"error": {"message": "internal server error"}}'
ERR_RESPONSE_BAD_REQUEST = b'{"error": {"message": "bad request"}}'
ERR_RESPONSE_TOO_MANY_REQUESTS = b'{"error": {"message": "Too many requests"}}'
ERR_RESPONSE_UNAUTHORIZED = b'{"error": {"message": "unauthorized"}}'
ERR_RESPONSE_NOT_FOUND = b'{"error": {"message": "not found"}}'
ERR_RESPONSE_METHOD_NOT_ALLOWED = b'{"error": {"message": "method not allowed"}}'

ERR_MESSAGE_INTERNAL_SERVER_ERROR = "internal server error"
ERR_MESSAGE_UNAUTHORIZED = "unauthorized"
ERR_MESSAGE_NOT_FOUND = "not found"

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _compact_json(value: object) -> bytes:
    """Serialise compactly, escaping HTML-sensitive characters."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


class HTTPError(Exception):
    """An error carrying the HTTP status code to answer with."""

    def __init__(self, msg: str, status_code: int) -> None:
        super().__init__(msg)
        self.msg = msg
        self.status_code = status_code

    def __str__(self) -> str:
        return self.msg

    def message(self) -> bytes:
        """Return the JSON error body for this error."""
        return _compact_json({"error": {"message": self.msg}})