import pytest

from enlightkit import trace_headers as th
from enlightkit.propagation import HTTPFormat
from enlightkit.tracing import SpanContext

FULL_TRACE = bytes([70, 58, 195, 92, 159, 100, 19, 173, 72, 72, 90, 57, 83, 187, 97, 36])
SPAN = bytes([0, 32, 0, 0, 0, 0, 0, 1])
DD_TRACE = bytes([0, 0, 0, 0, 0, 0, 0, 0, 72, 72, 90, 57, 83, 187, 97, 36])


def b3(trace, span, sampled=None):
    headers = {th.B3_TRACE_ID_HEADER: trace, th.B3_SPAN_ID_HEADER: span}
    if sampled is not None:
        headers[th.B3_SAMPLED_HEADER] = sampled
    return headers


def dd(trace, parent, priority=None):
    headers = {th.DATADOG_TRACE_ID_HEADER: trace, th.DATADOG_PARENT_ID_HEADER: parent}
    if priority is not None:
        headers[th.DATADOG_SAMPLING_PRIORITY_HEADER] = priority
    return headers


@pytest.mark.parametrize(
    "headers, expected",
    [
        (b3("463ac35c9f6413ad48485a3953bb6124", "0020000000000001", "1"), SpanContext(FULL_TRACE, SPAN, 1)),
        (
            b3("000102", "000102", "1"),
            SpanContext(bytes(14) + bytes([1, 2]), bytes(6) + bytes([1, 2]), 1),
        ),
        (
            b3("0020000000000001", "0020000000000001", "0"),
            SpanContext(bytes(8) + SPAN, SPAN, 0),
        ),
        (b3("463ac35c9f6413ad48485a3953bb6124", "0020000000000001"), SpanContext(FULL_TRACE, SPAN, 0)),
        (b3("", "0020000000000001"), None),
        (b3("0020000000000001002000000000000111", "0020000000000001"), None),
        (b3("463ac35c9f6413ad48485a3953bb6124", ""), None),
        (b3("463ac35c9f6413ad48485a3953bb6124", "002000000000000111"), None),
        (b3("463ac35c9f6413ad48485a3953bb6124", "0020000000000001", "true"), SpanContext(FULL_TRACE, SPAN, 1)),
        (b3("463ac35c9f6413ad48485a3953bb6124", "0020000000000001", "false"), SpanContext(FULL_TRACE, SPAN, 0)),
    ],
)
def test_b3_from_request(headers, expected):
    assert HTTPFormat().span_context_from_request(headers) == expected


@pytest.mark.parametrize(
    "headers, expected",
    [
        (dd("5208512171318403364", "9007199254740993", "1"), SpanContext(DD_TRACE, SPAN, 1)),
        (
            dd("258", "258", "1"),
            SpanContext(bytes(14) + bytes([1, 2]), bytes(6) + bytes([1, 2]), 1),
        ),
        (dd("9007199254740993", "9007199254740993", "0"), SpanContext(bytes(8) + SPAN, SPAN, 0)),
        (dd("5208512171318403364", "9007199254740993"), SpanContext(DD_TRACE, SPAN, 0)),
        (dd("", "9007199254740993"), None),
        (dd("18446744073709552000", "9007199254740993"), None),
        (dd("5208512171318403364", ""), None),
        (dd("5208512171318403364", "18446744073709552000"), None),
        (dd("5208512171318403364", "9007199254740993", "2"), SpanContext(DD_TRACE, SPAN, 1)),
        (dd("5208512171318403364", "9007199254740993", "false"), SpanContext(DD_TRACE, SPAN, 0)),
    ],
)
def test_datadog_from_request(headers, expected):
    assert HTTPFormat().span_context_from_request(headers) == expected


@pytest.mark.parametrize(
    "options, sampled",
    [(1, "1"), (0, "0")],
)
def test_to_request(options, sampled):
    headers = {}
    HTTPFormat().span_context_to_request(SpanContext(FULL_TRACE, SPAN, options), headers)
    assert headers == {
        th.B3_TRACE_ID_HEADER: "463ac35c9f6413ad48485a3953bb6124",
        th.B3_SPAN_ID_HEADER: "0020000000000001",
        th.B3_SAMPLED_HEADER: sampled,
        th.DATADOG_TRACE_ID_HEADER: "5208512171318403364",
        th.DATADOG_PARENT_ID_HEADER: "9007199254740993",
        th.DATADOG_SAMPLING_PRIORITY_HEADER: sampled,
    }


def test_header_names_are_case_insensitive():
    headers = {
        "X-Datadog-Trace-Id": "5208512171318403364",
        "X-Datadog-Parent-Id": "9007199254740993",
        "X-Datadog-Sampling-Priority": "1",
    }
    assert HTTPFormat().span_context_from_request(headers) == SpanContext(DD_TRACE, SPAN, 1)


def test_datadog_headers_take_precedence_over_b3():
    headers = {**b3("463ac35c9f6413ad48485a3953bb6124", "0020000000000001", "1"), **dd("258", "258", "0")}
    result = HTTPFormat().span_context_from_request(headers)
    assert result.datadog_trace_id == 258
    assert not result.is_sampled()


def test_round_trip_keeps_full_trace_through_b3():
    original = SpanContext(FULL_TRACE, SPAN, 1)
    headers = {}
    fmt = HTTPFormat()
    fmt.span_context_to_request(original, headers)
    b3_only = {k: v for k, v in headers.items() if k.startswith("X-B3")}
    assert fmt.span_context_from_request(b3_only) == original
    assert fmt.span_context_from_request(headers) == SpanContext(DD_TRACE, SPAN, 1)