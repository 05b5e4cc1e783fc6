"""Serialize a collected snapshot into the negotiated wire format."""

from __future__ import annotations

from prometheus_client.exposition import generate_latest as generate_text
from prometheus_client.openmetrics.exposition import (
    generate_latest as generate_openmetrics,
)

from scrapegate.collection.registry import Snapshot
from scrapegate.exposition.negotiation import OPENMETRICS, PROTOBUF, TEXT, ExpositionFormat
from scrapegate.exposition.protobuf import encode_delimited


def render(snapshot: Snapshot, fmt: ExpositionFormat) -> bytes:
    """Return the body for ``snapshot`` encoded as ``fmt``.

    The snapshot is only read, so rendering it twice yields identical bytes.
    """
    if fmt.name == PROTOBUF.name:
        return encode_delimited(snapshot)
    if fmt.name == OPENMETRICS.name:
        return generate_openmetrics(snapshot)
    if fmt.name == TEXT.name:
        return generate_text(snapshot)
    raise ValueError(f"No renderer for exposition format '{fmt.name}'")


__all__ = ["render"]
