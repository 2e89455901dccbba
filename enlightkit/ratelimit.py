"""Per-route, per-minute request rate limiting backed by a counter store such as Redis."""

from __future__ import annotations

import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

import redis
from werkzeug.wrappers import Request, Response

from . import http_model, log, tracing
from .http_server import write_json_response
from .routing import current_route_template

Handler = Callable[[Request], Response]
Middleware = Callable[[Handler], Handler]

_SECONDS_TO_EXPIRE = 60
_DEFAULT_REDIS_PORT = 6379
_DIAL_TIMEOUT = 1.0
_IO_TIMEOUT = 1.0


class Connection(Protocol):
    def incr(self, key: str) -> int: ...

    def close(self) -> None: ...


class ConnectionPool(Protocol):
    def connect(self) -> Connection: ...


@dataclass(frozen=True)
class Limit:
    request_per_minute: int
    key: str


@dataclass(frozen=True)
class RouteKey:
    method: str
    path_template: str


LimitGenerator = Callable[[Request], list]


@dataclass
class Limiter:
    """Limits requests per route; when several limits apply, the most restrictive wins.

    Keys are stored in clear text; hash them if they hold personal data.
    """

    pool: Optional[ConnectionPool] = None
    configs: dict = field(default_factory=dict)

    def set_connection_pool(self, pool: ConnectionPool) -> "Limiter":
        self.pool = pool
        return self

    def configure(self, route: RouteKey, generator: LimitGenerator) -> None:
        """Use ``generator`` to produce the limits for requests matching ``route``."""
        self.configs[route] = generator

    def middleware(self) -> Middleware:
        if self.pool is None:
            raise RuntimeError("connectionPool is not configured")

        def wrap(next_handler: Handler) -> Handler:
            def handler(request: Request) -> Response:
                span = tracing.start_span("RateLimitMiddleware/Handler")
                try:
                    with tracing.use_span(span):
                        limited = self._is_limited(request)
                finally:
                    span.finish()

                if limited:
                    return write_json_response(request, 429, http_model.ERR_RESPONSE_TOO_MANY_REQUESTS)
                return next_handler(request)

            return handler

        return wrap

    def _is_limited(self, request: Request) -> bool:
        now = datetime.now()

        template = current_route_template(request)
        if template is None:
            log.with_tracing().errorf(
                "failed to parse mux path template from request: %s", request.path
            )
            return False

        generator = self.configs.get(RouteKey(request.method, template))
        if generator is None:
            return False

        try:
            limits = generator(request)
        except Exception as exc:  # noqa: BLE001
            log.with_tracing().with_error(exc).error("Failed to generate limits")
            return False

        try:
            return self._check_access_counts(limits, now)
        except Exception as exc:  # noqa: BLE001
            log.with_tracing().with_error(exc).errorf("failed to check limit")
            return False

    def _check_access_counts(self, limits: list, now: datetime) -> bool:
        with tracing.start_span("RateLimitMiddleware/checkAccessCounts"):
            connection = self.pool.connect()
            try:
                for limit in limits:
                    key = f"{limit.key}:{now.minute}"
                    try:
                        count = connection.incr(key)
                    except Exception as exc:
                        raise RuntimeError(f"incr failed: {exc}") from exc
                    if count > limit.request_per_minute:
                        return True
                return False
            finally:
                connection.close()


class RedisConnection:
    """A counter connection over a Redis client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def incr(self, key: str) -> int:
        """Increment ``key`` and let it expire a minute after the last increment."""
        count = int(self.client.incr(key))
        self.client.expire(key, _SECONDS_TO_EXPIRE)
        return count

    def close(self) -> None:
        self.client.close()


class RedisPool:
    """Hands out connections from a shared Redis connection pool."""

    def __init__(self, pool: redis.ConnectionPool) -> None:
        self.pool = pool

    def connect(self) -> RedisConnection:
        return RedisConnection(redis.Redis(connection_pool=self.pool))


def get_redis_pool(address: str) -> RedisPool:
    """Return a pool for the Redis server at ``host:port``."""
    host, separator, port = address.rpartition(":")
    if not separator:
        host, port = address, str(_DEFAULT_REDIS_PORT)
    pool = redis.ConnectionPool(
        host=host or "localhost",
        port=int(port),
        socket_connect_timeout=_DIAL_TIMEOUT,
        socket_timeout=_IO_TIMEOUT,
    )
    return RedisPool(pool)


def parse_body(request: Request) -> Any:
    """Decode the JSON body while leaving it readable for later handlers."""
    data = request.get_data(cache=True)
    decoded = json.loads(data)
    request.environ["wsgi.input"] = io.BytesIO(data)
    return decoded