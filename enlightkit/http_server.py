"""JSON responses, cache keys and a health endpoint for WSGI services."""

from __future__ import annotations

import gzip
import json
from typing import Any, Callable, Optional, Union

from werkzeug.wrappers import Request, Response

from . import http_model, log

_GZIP_MIN_BODY_SIZE = 1400

Handler = Callable[[Request], Response]


def new_general_cache_key(request: Request) -> str:
    query = request.query_string.decode("latin-1")
    return f"{request.method} :: {request.path} :: {query}"


def unmarshal_request(body: Any) -> Any:
    """Decode a JSON request body given as bytes, text or a readable stream."""
    try:
        raw = body.read() if hasattr(body, "read") else body
        return json.loads(raw)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"failed to unmarshal request body: {exc}") from exc
    finally:
        close = getattr(body, "close", None)
        if callable(close):
            close()


def write_json_response(request: Optional[Request], code: int, body: bytes) -> Response:
    """Build a JSON response, gzipped when the client accepts it and the body is large."""
    response = Response(status=code)
    response.headers["Content-Type"] = http_model.MIME_JSON
    accepts_gzip = request is not None and "gzip" in request.headers.get("Accept-Encoding", "")
    if accepts_gzip and len(body) > _GZIP_MIN_BODY_SIZE:
        response.headers["Content-Encoding"] = "gzip"
        response.set_data(gzip.compress(body))
    else:
        response.set_data(body)
    return response


def marshal_and_write_json_response(request: Optional[Request], code: int, value: Any) -> Response:
    """Serialise ``value`` as JSON; answer 500 if it cannot be serialised."""
    try:
        body = json.dumps(value, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        log.with_error(exc).with_tracing().with_field("type", type(value).__name__).error(
            "Failed to marshal response body"
        )
        code = 500
        body = http_model.ERR_RESPONSE_INTERNAL_SERVER_ERROR
    return write_json_response(request, code, body)


def status_not_found_handler() -> Handler:
    def handler(request: Request) -> Response:
        return write_json_response(request, 404, http_model.ERR_RESPONSE_NOT_FOUND)

    return handler


def method_not_allowed_handler() -> Handler:
    def handler(request: Request) -> Response:
        return write_json_response(request, 405, http_model.ERR_RESPONSE_METHOD_NOT_ALLOWED)

    return handler


def health_app() -> Callable:
    """Return a WSGI application answering ``/health`` with an ok status."""
    not_found = status_not_found_handler()

    def app(environ, start_response):
        request = Request(environ)
        if request.path == "/health":
            response = write_json_response(request, 200, b'{"status": "ok"}')
        else:
            response = not_found(request)
        return response(environ, start_response)

    return app


def start_health_server(port: Union[str, int]) -> None:
    """Serve the health endpoint on ``port`` until the server stops."""
    from werkzeug.serving import run_simple

    log.infof("Starting health server on port %s", port)
    try:
        run_simple("", int(port), health_app())
    except (OSError, ValueError) as exc:
        log.with_error(exc).error("ListenAndServe")