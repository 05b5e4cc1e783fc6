"""Content negotiation for the scrape endpoint.

Client media ranges are scanned in the order they were sent and the first one
that names a supported format wins. ``q`` weights are not used for ordering;
a range with ``q=0`` is treated as a refusal and skipped. Anything that is not
recognized falls back to the Prometheus text format, so a request is never
rejected because of its ``Accept`` header.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from prometheus_client import CONTENT_TYPE_LATEST as TEXT_CONTENT_TYPE
from prometheus_client.openmetrics.exposition import (
    CONTENT_TYPE_LATEST as OPENMETRICS_CONTENT_TYPE,
)

PROTOBUF_MEDIA_TYPE = "application/vnd.google.protobuf"
PROTOBUF_PROTO = "io.prometheus.client.MetricFamily"
PROTOBUF_ENCODING = "delimited"
PROTOBUF_CONTENT_TYPE = (
    f"{PROTOBUF_MEDIA_TYPE}; proto={PROTOBUF_PROTO}; encoding={PROTOBUF_ENCODING}"
)


@dataclass(frozen=True)
class MediaRange:
    """One entry of an ``Accept`` header."""

    media_type: str
    params: Mapping[str, str] = field(default_factory=dict)

    @property
    def refused(self) -> bool:
        q = self.params.get("q")
        if q is None:
            return False
        try:
            return float(q) <= 0
        except ValueError:
            return False


@dataclass(frozen=True)
class ExpositionFormat:
    """A wire format the endpoint can serialize a snapshot into."""

    name: str
    media_type: str
    content_type: str
    required_params: Mapping[str, str] = field(default_factory=dict)

    def accepts(self, media_range: MediaRange) -> bool:
        if media_range.media_type != self.media_type:
            return False
        return all(
            media_range.params.get(key) == value
            for key, value in self.required_params.items()
        )


PROTOBUF = ExpositionFormat(
    name="protobuf",
    media_type=PROTOBUF_MEDIA_TYPE,
    content_type=PROTOBUF_CONTENT_TYPE,
    required_params={"proto": PROTOBUF_PROTO, "encoding": PROTOBUF_ENCODING},
)
OPENMETRICS = ExpositionFormat(
    name="openmetrics",
    media_type="application/openmetrics-text",
    content_type=OPENMETRICS_CONTENT_TYPE,
)
TEXT = ExpositionFormat(
    name="text",
    media_type="text/plain",
    content_type=TEXT_CONTENT_TYPE,
)

# Priority order; TEXT must stay last as the universal fallback.
SUPPORTED_FORMATS: tuple[ExpositionFormat, ...] = (PROTOBUF, OPENMETRICS, TEXT)
FORMATS_BY_NAME = {fmt.name: fmt for fmt in SUPPORTED_FORMATS}


def parse_accept(accept: str | None) -> list[MediaRange]:
    """Split an ``Accept`` header into media ranges, preserving client order."""
    if not accept:
        return []

    ranges: list[MediaRange] = []
    for token in accept.split(","):
        parts = [part.strip() for part in token.split(";")]
        media_type = parts[0].lower()
        if not media_type or "/" not in media_type:
            continue
        params: dict[str, str] = {}
        for part in parts[1:]:
            key, sep, value = part.partition("=")
            if not sep:
                continue
            params[key.strip().lower()] = value.strip().strip('"')
        ranges.append(MediaRange(media_type=media_type, params=params))
    return ranges


def formats_from_names(names: Iterable[str]) -> tuple[ExpositionFormat, ...]:
    """Resolve configured format names, keeping priority order and TEXT."""
    wanted = {name.strip().lower() for name in names}
    unknown = wanted - FORMATS_BY_NAME.keys()
    if unknown:
        raise ValueError(f"Unknown exposition format(s): {', '.join(sorted(unknown))}")
    wanted.add(TEXT.name)
    return tuple(fmt for fmt in SUPPORTED_FORMATS if fmt.name in wanted)


def choose_format(
    accept: str | None,
    formats: Sequence[ExpositionFormat] = SUPPORTED_FORMATS,
) -> ExpositionFormat:
    """Return the format to serialize with for the given ``Accept`` value."""
    for media_range in parse_accept(accept):
        if media_range.refused:
            continue
        for fmt in formats:
            if fmt.accepts(media_range):
                return fmt
    return TEXT


__all__ = [
    "ExpositionFormat",
    "FORMATS_BY_NAME",
    "MediaRange",
    "OPENMETRICS",
    "PROTOBUF",
    "PROTOBUF_CONTENT_TYPE",
    "SUPPORTED_FORMATS",
    "TEXT",
    "choose_format",
    "formats_from_names",
    "parse_accept",
]
