"""
Core Data Models for Telemetry Events

This module defines the canonical, decoded event structures received from
the telemetry feed. The aggregation engine only ever sees these models; the
raw feed framing is handled by `telemetry_observer.data.feed_decoder`.

Pydantic models are used for data validation and to provide a clear,
self-documenting structure.
"""

from pydantic import BaseModel, Field
from typing import Union, Literal


class NodeAnnounceEvent(BaseModel):
    """
    A node joined the feed (telemetry action 3, AddedNode).

    The ordinal is assigned by the feed for the lifetime of one session and
    is not stable across reconnects.
    """
    event_type: Literal["nodeAnnounce"] = "nodeAnnounce"
    ordinal: int = Field(ge=0)      # Feed-assigned node ordinal
    name: str                       # Announced node name
    node_id: str                    # Announced node identity


class BlockImportEvent(BaseModel):
    """
    A node reported importing a block (telemetry action 6, ImportedBlock).

    A propagation time of 0 means the feed did not know it.
    """
    event_type: Literal["blockImport"] = "blockImport"
    node_ordinal: int = Field(ge=0)
    block_number: int = Field(ge=0)
    block_hash: str
    propagation_time: int = Field(0, ge=0)  # Feed time unit (milliseconds)


# A union of all events the feed decoder can yield.
TelemetryEvent = Union[NodeAnnounceEvent, BlockImportEvent]
