"""Trace propagation through SQS and SNS message attributes."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping, Optional

from . import tracing

STRING_DATA_TYPE = "String"


def _string_attribute(value: str) -> dict:
    return {"DataType": STRING_DATA_TYPE, "StringValue": value}


def _set_attribute(target: MutableMapping[str, Any], key: str, value: str) -> None:
    attributes = target.get("MessageAttributes")
    if attributes is None:
        attributes = target["MessageAttributes"] = {}
    attributes[key] = _string_attribute(value)


@dataclass
class SendMessageInputCarrier:
    """Writes trace headers into SQS SendMessage parameters."""

    params: MutableMapping[str, Any]

    def set(self, key: str, value: str) -> None:
        _set_attribute(self.params, key, value)


@dataclass
class SendMessageBatchInputCarrier:
    """Writes trace headers into every entry of SQS SendMessageBatch parameters."""

    params: MutableMapping[str, Any]

    def set(self, key: str, value: str) -> None:
        for entry in self.params.get("Entries") or []:
            _set_attribute(entry, key, value)


@dataclass
class PublishInputCarrier:
    """Writes trace headers into SNS Publish parameters."""

    params: MutableMapping[str, Any]

    def set(self, key: str, value: str) -> None:
        _set_attribute(self.params, key, value)


@dataclass
class PublishBatchInputCarrier:
    """Writes trace headers into every entry of SNS PublishBatch parameters."""

    params: MutableMapping[str, Any]

    def set(self, key: str, value: str) -> None:
        for entry in self.params.get("PublishBatchRequestEntries") or []:
            _set_attribute(entry, key, value)


_CARRIERS = {
    "SendMessage": SendMessageInputCarrier,
    "SendMessageBatch": SendMessageBatchInputCarrier,
    "Publish": PublishInputCarrier,
    "PublishBatch": PublishBatchInputCarrier,
}


def inject_trace(operation_name: str, params: MutableMapping[str, Any]) -> None:
    """Add the current span's trace headers to the parameters of a send or publish call."""
    span = tracing.current_span()
    carrier_type = _CARRIERS.get(operation_name)
    if span is None or carrier_type is None:
        return
    tracing.inject(span.context, carrier_type(params))


def _before_parameter_build(params: MutableMapping[str, Any], model: Any = None, **kwargs: Any) -> None:
    name = getattr(model, "name", None)
    if name is None:
        name = str(kwargs.get("event_name", "")).rsplit(".", 1)[-1]
    inject_trace(name, params)


def append_middleware(client: Any) -> None:
    """Register trace injection on an AWS client's ``before-parameter-build`` event."""
    client.meta.events.register("before-parameter-build", _before_parameter_build)


def start_span(carrier: Any, operation_name: str, **kwargs: Any) -> tracing.Span:
    """Start a span continuing the trace in ``carrier``, or a regular one if it carries none.

    Keyword arguments become tags of the span.
    """
    parent = tracing.extract(carrier)
    if parent is None or parent.datadog_trace_id == 0:
        return tracing.start_span(operation_name, **kwargs)
    return tracing.start_span(operation_name, child_of=parent, **kwargs)


@dataclass
class SQSMessageCarrier:
    """Reads trace headers from the string attributes of an SQS event record."""

    message: Mapping[str, Any]

    def foreach_key(self, handler: Callable[[str, str], Any]) -> None:
        attributes = self.message.get("messageAttributes") or {}
        for key, attribute in attributes.items():
            value = attribute.get("stringValue")
            if attribute.get("dataType") == STRING_DATA_TYPE and value is not None:
                handler(key, value)

    def start_span(
        self,
        operation_name: str,
        lambda_context: Optional[Any] = None,
        cold_start: Optional[Any] = None,
        **kwargs: Any,
    ) -> tracing.Span:
        """Start a serverless span for this record, tagged with Lambda details when given."""
        tags: dict = {"span.type": "serverless"}
        if lambda_context is not None:
            function_name = getattr(
                lambda_context, "function_name", os.environ.get("AWS_LAMBDA_FUNCTION_NAME", "")
            )
            tags.update(
                {
                    "resource.name": function_name,
                    "cold_start": cold_start,
                    "function_arn": str(getattr(lambda_context, "invoked_function_arn", "")).lower(),
                    "request_id": getattr(lambda_context, "aws_request_id", ""),
                }
            )
        return start_span(self, operation_name, **{**kwargs, **tags})