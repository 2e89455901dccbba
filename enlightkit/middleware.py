"""HTTP middleware for CORS, content types, tracing, panic recovery and trailing slashes."""

from __future__ import annotations

from typing import Callable, Iterable

from werkzeug.wrappers import Request, Response

from . import http_model, log, tracing
from .http_server import write_json_response
from .routing import current_route_template, route_vars

Handler = Callable[[Request], Response]

_ALLOW_ORIGIN = "Access-Control-Allow-Origin"
_ALLOW_METHODS = "Access-Control-Allow-Methods"
_ALLOW_HEADERS = "Access-Control-Allow-Headers"


def cors_middleware(next_handler: Handler) -> Handler:
    """Echo the request's Origin header as Access-Control-Allow-Origin."""

    def handler(request: Request) -> Response:
        origin = request.headers.get("Origin", "")
        response = next_handler(request)
        if _ALLOW_ORIGIN not in response.headers:
            response.headers[_ALLOW_ORIGIN] = origin
        return response

    return handler


def options(methods: Iterable[str], headers: Iterable[str]) -> Handler:
    """Return a handler answering preflight requests with the allowed methods and headers."""
    methods_joined = ", ".join(methods)
    headers_joined = ", ".join(headers)

    def handler(request: Request) -> Response:
        response = Response(status=200)
        response.headers[_ALLOW_METHODS] = methods_joined
        response.headers[_ALLOW_HEADERS] = headers_joined
        return response

    return handler


def _unsupported(content_type: str, message: str) -> Response:
    log.with_tracing().with_field("contentType", content_type).warn(message)
    return write_json_response(None, 415, http_model.ERR_RESPONSE_UNSUPPORTED_MEDIA_TYPE)


def content_type(next_handler: Handler, *content_types: str) -> Handler:
    """Reject requests whose Content-Type is not one of ``content_types`` (case-insensitive)."""
    valid = {value.lower() for value in content_types}

    def handler(request: Request) -> Response:
        request_type = request.headers.get(http_model.HEADER_CONTENT_TYPE, "").lower()
        parts = request_type.split(";")

        if parts[0] not in valid:
            return _unsupported(request_type, "Unsupported Content-Type")

        if len(parts) == 1 or parts[1].strip() == http_model.MIME_PARAMETER_UTF8:
            return next_handler(request)

        return _unsupported(request_type, "Unsupported Content-Type Parameter")

    return handler


def opencensus_middleware(next_handler: Handler) -> Handler:
    """Annotate the current span with route variables and query values, and name it by route."""

    def handler(request: Request) -> Response:
        span = tracing.current_span()
        if span is None:
            return next_handler(request)

        span.add_attributes({f"vars.{key}": value for key, value in route_vars(request).items()})

        for key, values in request.args.lists():
            name = f"query.{key}"
            if not values:
                continue
            if len(values) == 1:
                span.add_attributes({name: values[0]})
            else:
                span.add_attributes({f"{name}.{index}": value for index, value in enumerate(values)})

        template = current_route_template(request)
        if template is not None:
            span.set_name(f"{request.method} {template}")

        return next_handler(request)

    return handler


def recovery(next_handler: Handler) -> Handler:
    """Turn an exception raised by the handler into a logged 500 JSON response."""

    def handler(request: Request) -> Response:
        try:
            return next_handler(request)
        except Exception as exc:  # noqa: BLE001
            log.with_tracing().with_field("recover", str(exc)).error("Recovered from a panic")
            return write_json_response(request, 500, http_model.ERR_RESPONSE_INTERNAL_SERVER_ERROR)

    return handler


def trailing_slash_middleware(next_handler: Handler) -> Handler:
    """Remove one trailing slash from the request path, except for the bare root URL."""

    def handler(request: Request) -> Response:
        query = request.query_string.decode("latin-1")
        url = request.path + (f"?{query}" if query else "")
        if url != "/":
            path_info = request.environ.get("PATH_INFO", "")
            if path_info.endswith("/"):
                environ = dict(request.environ)
                environ["PATH_INFO"] = path_info[:-1]
                request = Request(environ)
        return next_handler(request)

    return handler