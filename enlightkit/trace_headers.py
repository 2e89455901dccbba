"""HTTP header names used to propagate traces."""

B3_TRACE_ID_HEADER = "X-B3-TraceId"
B3_SPAN_ID_HEADER = "X-B3-SpanId"
B3_SAMPLED_HEADER = "X-B3-Sampled"

DATADOG_ORIGIN_HEADER = "x-datadog-origin"
DATADOG_PARENT_ID_HEADER = "x-datadog-parent-id"
DATADOG_SAMPLED_HEADER = "x-datadog-sampled"
DATADOG_SAMPLING_PRIORITY_HEADER = "x-datadog-sampling-priority"
DATADOG_TRACE_ID_HEADER = "x-datadog-trace-id"


def all_b3_headers() -> list[str]:
    return [B3_TRACE_ID_HEADER, B3_SPAN_ID_HEADER, B3_SAMPLED_HEADER]


def all_datadog_headers() -> list[str]:
    return [
        DATADOG_ORIGIN_HEADER,
        DATADOG_PARENT_ID_HEADER,
        DATADOG_SAMPLED_HEADER,
        DATADOG_SAMPLING_PRIORITY_HEADER,
        DATADOG_TRACE_ID_HEADER,
    ]


def all_headers() -> list[str]:
    return all_b3_headers() + all_datadog_headers()