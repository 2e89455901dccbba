# enlightkit

A toolkit for writing JSON HTTP services in Python. It brings together the
small pieces most services end up needing:

- structured JSON logging with default fields, trace ids and sampling
  (`enlightkit.log`)
- in-process spans and trace propagation in B3 and Datadog header formats
  (`enlightkit.tracing`, `enlightkit.propagation`, `enlightkit.trace_headers`)
- JWK key-set fetching and JWT validation (`enlightkit.jwk`, `enlightkit.jwt`)
- WSGI routing, JSON responses and middleware for CORS, content types,
  span naming, exception recovery and trailing slashes
  (`enlightkit.routing`, `enlightkit.http_server`, `enlightkit.middleware`,
  `enlightkit.http_model`)
- per-route rate limiting backed by Redis (`enlightkit.ratelimit`)
- trace carriers for SQS and SNS message attributes (`enlightkit.trace_aws`)
- request-scoped user ids (`enlightkit.contexts`)
- UUID helpers, a nullable database UUID type and timestamp utilities
  (`enlightkit.ids`, `enlightkit.pgxcompat`, `enlightkit.timeutils`)

It needs Python 3.10 or later.

## Time helpers

Timestamps are plain integers of milliseconds or seconds since the epoch.

```python
from enlightkit.timeutils import get_periods_start_and_end_utc, assert_milliseconds

start, end = get_periods_start_and_end_utc("201805", "201805")
# start == 1525132800000, end == 1527811199999

assert_milliseconds(1550837382666)  # already milliseconds: returned as is
```

`assert_milliseconds` and `assert_seconds` raise `TimestampConversionError`
when a timestamp was in the wrong unit; the converted value is on the
exception's `timestamp` attribute.

## UUIDs

```python
from enlightkit.ids import new_uuid, is_valid, string_list

identifier = new_uuid()
assert identifier.is_valid()
assert is_valid("9f220f42-2fa7-46f9-8a25-f3ba17328a13")
assert string_list() == []
```

`enlightkit.pgxcompat.PgUUID` holds a UUID with a `Status` (undefined, null
or present) and converts it to and from database text, 16-byte binary and
JSON.

## Logging

```python
from enlightkit import log

log.set_default_service("billing")
log.with_field("application", "backend").info("A info msg")
log.with_error(ValueError("boom")).error("Something went wrong")
```

The level comes from the `LOG_LEVEL` environment variable (`debug`, `info`,
`warn`, `error`); `CONSOLE_LOGGER=true` switches from JSON lines to a
tab-separated console format. `log.new_sample_logger(tick, first, thereafter)`
returns a logger that drops messages written too often within one tick.
`panic` and `panicf` raise `LogPanic` after writing the message; `fatal` and
`fatalf` raise `SystemExit`.

## Tracing and propagation

`enlightkit.tracing.start_span(name)` starts a span; used as a context
manager it becomes the current span and is finished on exit. Exporters
registered with `register_exporter` receive every finished span.

`HTTPFormat` reads a span context from incoming headers, trying the Datadog
headers first and then B3, and writes both formats on outgoing requests.

```python
from enlightkit.propagation import HTTPFormat
from enlightkit.trace_headers import all_headers

fmt = HTTPFormat()
span_context = fmt.span_context_from_request(incoming_headers)
fmt.span_context_to_request(span_context, outgoing_headers)

print(all_headers())  # the three B3 and five Datadog header names
```

`enlightkit.trace_aws.append_middleware(client)` registers trace injection on
an AWS client's `before-parameter-build` event, so SendMessage,
SendMessageBatch, Publish and PublishBatch calls carry the current trace in
their message attributes. `SQSMessageCarrier(record).start_span(name)`
continues that trace when a message is received.

## JWT validation

Point the key-set lookup at a stage, then parse tokens:

```python
from enlightkit import jwk, jwt

jwk.configure(jwk.Config(stage="staging"))

parsed = jwt.parse(encoded_jwt)
claims = parsed.get_claims()
```

`jwt.parse` raises `NotValidNowError` for tokens that are expired or not yet
valid, and `ValueError` for anything else wrong with the token or its claims.
A key-set URL can be set directly with `jwk.set_key_set_url(...)`.

## HTTP services

`enlightkit.routing.Router` is a WSGI application that matches path templates
such as `/companies/{companyID:[a-zA-Z0-9-]+}/users` and runs middleware in
the order given to `Router.use`. `enlightkit.http_server.write_json_response`
builds a JSON response, gzip-compressing it when the client accepts it and the
body is larger than one packet.

```python
from enlightkit.routing import Router
from enlightkit import middleware

router = Router()
router.use(
    middleware.trailing_slash_middleware,
    middleware.cors_middleware,
    middleware.opencensus_middleware,
    middleware.recovery,
)
```

`enlightkit.http_server.start_health_server(port)` serves `/health` with an
ok status.

## Rate limiting

`enlightkit.ratelimit.Limiter` counts requests per minute in Redis under keys
chosen per route. Configure a generator of `Limit` values for a `RouteKey`,
set a connection pool from `get_redis_pool("localhost:6379")`, and add
`limiter.middleware()` to the router. Requests over the limit get
`429 Too Many Requests`; if the limits cannot be checked, the request is let
through.

## What it does not do

The package has no wrapper that traces database connections and queries, and
it provides no command-line programs.

## Tests

The test suite uses pytest; the `test` extra lists what it needs.