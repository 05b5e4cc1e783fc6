"""Wire formats for the scrape endpoint.

Format selection from the ``Accept`` header lives in ``negotiation``; the
encoders live in ``render`` (text formats via ``prometheus_client``) and
``protobuf`` (length-delimited ``MetricFamily`` messages).
"""

from scrapegate.exposition.negotiation import (
    OPENMETRICS,
    PROTOBUF,
    SUPPORTED_FORMATS,
    TEXT,
    ExpositionFormat,
    choose_format,
    formats_from_names,
)
from scrapegate.exposition.render import render

__all__ = [
    "ExpositionFormat",
    "OPENMETRICS",
    "PROTOBUF",
    "SUPPORTED_FORMATS",
    "TEXT",
    "choose_format",
    "formats_from_names",
    "render",
]
