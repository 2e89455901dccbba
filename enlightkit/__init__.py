"""Building blocks for JSON HTTP services: logging, tracing, JWT, rate limiting and helpers."""

__version__ = "2.0.0"

__all__ = [
    "contexts",
    "http_model",
    "http_server",
    "ids",
    "jwk",
    "jwt",
    "log",
    "middleware",
    "pgxcompat",
    "propagation",
    "ratelimit",
    "routing",
    "timeutils",
    "trace_aws",
    "trace_headers",
    "tracing",
]