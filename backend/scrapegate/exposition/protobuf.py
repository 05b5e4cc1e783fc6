"""Prometheus protobuf exposition (``io.prometheus.client.MetricFamily``).

The message types from Prometheus' ``metrics.proto`` are declared here as a
``FileDescriptorProto`` and turned into classes with the protobuf runtime, so
no generated ``_pb2`` module is needed. ``encode_delimited`` writes every
family as a varint length prefix followed by the serialized message.
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf import timestamp_pb2

# Private to protobuf, which has no public varint API.
from google.protobuf.internal.decoder import _DecodeVarint32
from google.protobuf.internal.encoder import _VarintBytes
from prometheus_client.metrics_core import Metric
from prometheus_client.samples import Sample

PACKAGE = "io.prometheus.client"

_Field = descriptor_pb2.FieldDescriptorProto

# MetricType enum values
COUNTER = 0
GAUGE = 1
SUMMARY = 2
UNTYPED = 3
HISTOGRAM = 4
GAUGE_HISTOGRAM = 5


def _field(
    name: str,
    number: int,
    field_type: int,
    type_name: str | None = None,
    repeated: bool = False,
) -> descriptor_pb2.FieldDescriptorProto:
    field = _Field(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name if type_name.startswith(".") else f".{PACKAGE}.{type_name}"
    return field


def _message(name: str, *fields: descriptor_pb2.FieldDescriptorProto) -> descriptor_pb2.DescriptorProto:
    return descriptor_pb2.DescriptorProto(name=name, field=list(fields))


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    timestamp = ".google.protobuf.Timestamp"
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="io/prometheus/client/metrics.proto",
        package=PACKAGE,
        syntax="proto2",
        dependency=["google/protobuf/timestamp.proto"],
    )
    file_proto.enum_type.add(
        name="MetricType",
        value=[
            descriptor_pb2.EnumValueDescriptorProto(name=name, number=number)
            for name, number in (
                ("COUNTER", COUNTER),
                ("GAUGE", GAUGE),
                ("SUMMARY", SUMMARY),
                ("UNTYPED", UNTYPED),
                ("HISTOGRAM", HISTOGRAM),
                ("GAUGE_HISTOGRAM", GAUGE_HISTOGRAM),
            )
        ],
    )
    file_proto.message_type.extend(
        [
            _message(
                "LabelPair",
                _field("name", 1, _Field.TYPE_STRING),
                _field("value", 2, _Field.TYPE_STRING),
            ),
            _message("Gauge", _field("value", 1, _Field.TYPE_DOUBLE)),
            _message(
                "Counter",
                _field("value", 1, _Field.TYPE_DOUBLE),
                _field("exemplar", 2, _Field.TYPE_MESSAGE, "Exemplar"),
                _field("created_timestamp", 3, _Field.TYPE_MESSAGE, timestamp),
            ),
            _message(
                "Quantile",
                _field("quantile", 1, _Field.TYPE_DOUBLE),
                _field("value", 2, _Field.TYPE_DOUBLE),
            ),
            _message(
                "Summary",
                _field("sample_count", 1, _Field.TYPE_UINT64),
                _field("sample_sum", 2, _Field.TYPE_DOUBLE),
                _field("quantile", 3, _Field.TYPE_MESSAGE, "Quantile", repeated=True),
                _field("created_timestamp", 4, _Field.TYPE_MESSAGE, timestamp),
            ),
            _message("Untyped", _field("value", 1, _Field.TYPE_DOUBLE)),
            _message(
                "Histogram",
                _field("sample_count", 1, _Field.TYPE_UINT64),
                _field("sample_sum", 2, _Field.TYPE_DOUBLE),
                _field("bucket", 3, _Field.TYPE_MESSAGE, "Bucket", repeated=True),
                _field("sample_count_float", 4, _Field.TYPE_DOUBLE),
                _field("created_timestamp", 15, _Field.TYPE_MESSAGE, timestamp),
            ),
            _message(
                "Bucket",
                _field("cumulative_count", 1, _Field.TYPE_UINT64),
                _field("upper_bound", 2, _Field.TYPE_DOUBLE),
                _field("exemplar", 3, _Field.TYPE_MESSAGE, "Exemplar"),
                _field("cumulative_count_float", 4, _Field.TYPE_DOUBLE),
            ),
            _message(
                "Exemplar",
                _field("label", 1, _Field.TYPE_MESSAGE, "LabelPair", repeated=True),
                _field("value", 2, _Field.TYPE_DOUBLE),
                _field("timestamp", 3, _Field.TYPE_MESSAGE, timestamp),
            ),
            _message(
                "Metric",
                _field("label", 1, _Field.TYPE_MESSAGE, "LabelPair", repeated=True),
                _field("gauge", 2, _Field.TYPE_MESSAGE, "Gauge"),
                _field("counter", 3, _Field.TYPE_MESSAGE, "Counter"),
                _field("summary", 4, _Field.TYPE_MESSAGE, "Summary"),
                _field("untyped", 5, _Field.TYPE_MESSAGE, "Untyped"),
                _field("timestamp_ms", 6, _Field.TYPE_INT64),
                _field("histogram", 7, _Field.TYPE_MESSAGE, "Histogram"),
            ),
            _message(
                "MetricFamily",
                _field("name", 1, _Field.TYPE_STRING),
                _field("help", 2, _Field.TYPE_STRING),
                _field("type", 3, _Field.TYPE_ENUM, "MetricType"),
                _field("metric", 4, _Field.TYPE_MESSAGE, "Metric", repeated=True),
                _field("unit", 5, _Field.TYPE_STRING),
            ),
        ]
    )
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(timestamp_pb2.DESCRIPTOR.serialized_pb)
_pool.AddSerializedFile(_build_file().SerializeToString())

MetricFamilyMessage = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{PACKAGE}.MetricFamily")
)

# prometheus_client type -> (MetricType, family name suffix)
_TYPE_MAP = {
    "counter": (COUNTER, "_total"),
    "gauge": (GAUGE, ""),
    "summary": (SUMMARY, ""),
    "histogram": (HISTOGRAM, ""),
    "gaugehistogram": (GAUGE_HISTOGRAM, ""),
    "info": (GAUGE, "_info"),
    "stateset": (GAUGE, ""),
    "untyped": (UNTYPED, ""),
    "unknown": (UNTYPED, ""),
}

_STRUCTURAL_LABELS = {"le", "quantile"}


def _series_key(sample: Sample) -> tuple[tuple[str, str], ...]:
    return tuple(
        (name, value)
        for name, value in sample.labels.items()
        if name not in _STRUCTURAL_LABELS
    )


def _set_labels(target, labels: Iterable[tuple[str, str]]) -> None:
    for name, value in labels:
        target.add(name=name, value=value)


def _set_timestamp(target, seconds: float) -> None:
    whole = math.floor(seconds)
    nanos = int(round((seconds - whole) * 1e9))
    if nanos >= 1_000_000_000:
        whole += 1
        nanos -= 1_000_000_000
    target.seconds = int(whole)
    target.nanos = nanos


def _set_count(target, value: float, int_field: str, float_field: str) -> None:
    if float(value).is_integer() and value >= 0:
        setattr(target, int_field, int(value))
    else:
        setattr(target, float_field, value)


def _set_exemplar(target, sample: Sample) -> None:
    exemplar = sample.exemplar
    if exemplar is None:
        return
    _set_labels(target.label, exemplar.labels.items())
    target.value = exemplar.value
    if exemplar.timestamp is not None:
        _set_timestamp(target.timestamp, float(exemplar.timestamp))


def _upper_bound(raw: str) -> float:
    return math.inf if raw == "+Inf" else float(raw)


def _fill_counter(metric, base: str, samples: list[Sample]) -> None:
    for sample in samples:
        if sample.name == f"{base}_created":
            _set_timestamp(metric.counter.created_timestamp, sample.value)
        else:
            metric.counter.value = sample.value
            _set_exemplar(metric.counter.exemplar, sample)


def _fill_summary(metric, base: str, samples: list[Sample]) -> None:
    summary = metric.summary
    for sample in samples:
        if sample.name == f"{base}_count":
            summary.sample_count = int(sample.value)
        elif sample.name == f"{base}_sum":
            summary.sample_sum = sample.value
        elif sample.name == f"{base}_created":
            _set_timestamp(summary.created_timestamp, sample.value)
        elif "quantile" in sample.labels:
            summary.quantile.add(
                quantile=float(sample.labels["quantile"]), value=sample.value
            )


def _fill_histogram(metric, base: str, samples: list[Sample], gauge: bool) -> None:
    histogram = metric.histogram
    count_suffix, sum_suffix = ("_gcount", "_gsum") if gauge else ("_count", "_sum")
    have_count = False
    inf_count: float | None = None
    for sample in samples:
        if sample.name == f"{base}_bucket":
            upper = _upper_bound(sample.labels["le"])
            if math.isinf(upper):
                inf_count = sample.value
            bucket = histogram.bucket.add(upper_bound=upper)
            _set_count(bucket, sample.value, "cumulative_count", "cumulative_count_float")
            _set_exemplar(bucket.exemplar, sample)
        elif sample.name == f"{base}{count_suffix}":
            have_count = True
            _set_count(histogram, sample.value, "sample_count", "sample_count_float")
        elif sample.name == f"{base}{sum_suffix}":
            histogram.sample_sum = sample.value
        elif sample.name == f"{base}_created":
            _set_timestamp(histogram.created_timestamp, sample.value)
    if not have_count and inf_count is not None:
        _set_count(histogram, inf_count, "sample_count", "sample_count_float")


def to_message(family: Metric):
    """Convert one ``prometheus_client`` metric family into a protobuf message."""
    metric_type, suffix = _TYPE_MAP.get(family.type, (UNTYPED, ""))
    message = MetricFamilyMessage(
        name=family.name + suffix, help=family.documentation, type=metric_type
    )
    if family.unit:
        message.unit = family.unit

    if metric_type in (GAUGE, UNTYPED):
        # Every sample is its own series
        for sample in family.samples:
            metric = message.metric.add()
            _set_labels(metric.label, sample.labels.items())
            if metric_type == GAUGE:
                metric.gauge.value = sample.value
            else:
                metric.untyped.value = sample.value
            if sample.timestamp is not None:
                metric.timestamp_ms = int(float(sample.timestamp) * 1000)
        return message

    series: dict[tuple[tuple[str, str], ...], list[Sample]] = {}
    for sample in family.samples:
        series.setdefault(_series_key(sample), []).append(sample)

    for labels, samples in series.items():
        metric = message.metric.add()
        _set_labels(metric.label, labels)
        if metric_type == COUNTER:
            _fill_counter(metric, family.name, samples)
        elif metric_type == SUMMARY:
            _fill_summary(metric, family.name, samples)
        else:
            _fill_histogram(
                metric, family.name, samples, gauge=metric_type == GAUGE_HISTOGRAM
            )
        timestamp = next(
            (sample.timestamp for sample in samples if sample.timestamp is not None),
            None,
        )
        if timestamp is not None:
            metric.timestamp_ms = int(float(timestamp) * 1000)
    return message


def encode_delimited(families: Iterable[Metric]) -> bytes:
    """Serialize families as a stream of length-delimited messages."""
    chunks: list[bytes] = []
    for family in families:
        payload = to_message(family).SerializeToString(deterministic=True)
        chunks.append(_VarintBytes(len(payload)))
        chunks.append(payload)
    return b"".join(chunks)


def decode_delimited(data: bytes) -> Iterator:
    """Parse a length-delimited stream back into ``MetricFamily`` messages."""
    position = 0
    while position < len(data):
        size, position = _DecodeVarint32(data, position)
        message = MetricFamilyMessage()
        message.ParseFromString(data[position : position + size])
        position += size
        yield message


__all__ = [
    "COUNTER",
    "GAUGE",
    "GAUGE_HISTOGRAM",
    "HISTOGRAM",
    "MetricFamilyMessage",
    "SUMMARY",
    "UNTYPED",
    "decode_delimited",
    "encode_delimited",
    "to_message",
]
