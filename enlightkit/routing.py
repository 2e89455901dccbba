"""A small WSGI router with path templates, method matching and middleware."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from werkzeug.wrappers import Request, Response

from .http_server import method_not_allowed_handler, status_not_found_handler

Handler = Callable[[Request], Response]
Middleware = Callable[[Handler], Handler]

_VARS_KEY = "enlightkit.route_vars"
_TEMPLATE_KEY = "enlightkit.route_template"
_DEFAULT_VAR_PATTERN = "[^/]+"


def _compile(template: str) -> tuple[re.Pattern, dict[str, str]]:
    """Turn ``/a/{id}`` or ``/a/{id:[0-9]+}`` into a regex and its group-to-name map."""
    parts: list[str] = []
    names: dict[str, str] = {}
    index = 0
    while index < len(template):
        start = template.find("{", index)
        if start < 0:
            parts.append(re.escape(template[index:]))
            break
        parts.append(re.escape(template[index:start]))
        depth, end = 0, start
        while end < len(template):
            if template[end] == "{":
                depth += 1
            elif template[end] == "}":
                depth -= 1
                if depth == 0:
                    break
            end += 1
        if depth != 0:
            raise ValueError(f"unbalanced braces in route template {template!r}")
        name, _, pattern = template[start + 1:end].partition(":")
        if not name:
            raise ValueError(f"missing variable name in route template {template!r}")
        group = f"v{len(names)}"
        names[group] = name
        parts.append(f"(?P<{group}>{pattern or _DEFAULT_VAR_PATTERN})")
        index = end + 1
    return re.compile("".join(parts)), names


@dataclass(frozen=True)
class _Route:
    template: str
    pattern: re.Pattern
    names: dict
    handler: Handler
    methods: Optional[frozenset]


class Router:
    """Matches requests to handlers; middleware wraps handlers of matched routes only."""

    def __init__(self) -> None:
        self._routes: list[_Route] = []
        self._middlewares: list[Middleware] = []

    def handle(self, template: str, handler: Handler, methods: Optional[Iterable[str]] = None) -> "Router":
        pattern, names = _compile(template)
        allowed = frozenset(m.upper() for m in methods) if methods is not None else None
        self._routes.append(_Route(template, pattern, names, handler, allowed))
        return self

    def use(self, *middlewares: Middleware) -> "Router":
        """Add middleware; the first added runs outermost."""
        self._middlewares.extend(middlewares)
        return self

    def dispatch(self, request: Request) -> Response:
        method_mismatch = False
        for route in self._routes:
            match = route.pattern.fullmatch(request.path)
            if match is None:
                continue
            if route.methods is not None and request.method.upper() not in route.methods:
                method_mismatch = True
                continue
            request.environ[_VARS_KEY] = {route.names[g]: v for g, v in match.groupdict().items()}
            request.environ[_TEMPLATE_KEY] = route.template
            handler = route.handler
            for middleware in reversed(self._middlewares):
                handler = middleware(handler)
            return handler(request)

        if method_mismatch:
            return method_not_allowed_handler()(request)
        return status_not_found_handler()(request)

    def __call__(self, environ, start_response):
        return self.dispatch(Request(environ))(environ, start_response)


def route_vars(request: Request) -> dict:
    """Return the path variables of the matched route."""
    return dict(request.environ.get(_VARS_KEY, {}))


def current_route_template(request: Request) -> Optional[str]:
    """Return the template of the matched route, or None when nothing matched."""
    return request.environ.get(_TEMPLATE_KEY)