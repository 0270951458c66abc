"""
Telemetry Feed Frame Decoder

Turns raw feed messages into typed events. A feed message is a JSON array of
alternating ``action, payload`` pairs, e.g.::

    [0, 32, 3, [12, ["alice", "polkadot", "1.0", null, "12D3Koo..."], ...], 6, [12, [1001, "0xab..", 6000, 1700000000000, 420]]]

Only two actions matter here:

- ``3`` AddedNode: ``[ordinal, [name, implementation, version, validator, network_id, ...], ...]``
- ``6`` ImportedBlock: ``[ordinal, [height, hash, block_time, block_timestamp, propagation_time]]``

Every other action is skipped. A malformed pair is dropped on its own; a
message that is not a JSON array yields no events.
"""

import json
from typing import Any, List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from telemetry_observer.core.events import BlockImportEvent, NodeAnnounceEvent, TelemetryEvent

ACTION_ADDED_NODE = 3
ACTION_IMPORTED_BLOCK = 6


def _node_id(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(v for v in value if isinstance(v, str))
    if isinstance(value, str):
        return value
    return "unknown"


def decode_node_announce(payload: Any) -> Optional[NodeAnnounceEvent]:
    if not isinstance(payload, list) or len(payload) < 2:
        return None
    ordinal, details = payload[0], payload[1]
    if not isinstance(details, list) or len(details) < 5:
        return None
    name = details[0] if isinstance(details[0], str) else "unknown"
    return NodeAnnounceEvent(ordinal=ordinal, name=name, node_id=_node_id(details[4]))


def decode_block_import(payload: Any) -> Optional[BlockImportEvent]:
    if not isinstance(payload, list) or len(payload) < 2:
        return None
    ordinal, block = payload[0], payload[1]
    if not isinstance(block, list) or len(block) < 5:
        return None
    block_hash = block[1] if isinstance(block[1], str) else ""
    # null propagation time means the feed does not know it
    propagation_time = block[4] if block[4] is not None else 0
    return BlockImportEvent(
        node_ordinal=ordinal,
        block_number=block[0],
        block_hash=block_hash,
        propagation_time=propagation_time,
    )


_DECODERS = {
    ACTION_ADDED_NODE: decode_node_announce,
    ACTION_IMPORTED_BLOCK: decode_block_import,
}


def decode_message(message: Union[str, bytes]) -> List[TelemetryEvent]:
    """
    Decodes one raw feed message into zero or more events, in feed order.

    Args:
        message: The raw websocket payload (text, or UTF-8 bytes).

    Returns:
        The decoded `NodeAnnounceEvent` / `BlockImportEvent` objects.
    """
    if isinstance(message, (bytes, bytearray)):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error(f"Failed to convert binary message to UTF-8: {e}")
            return []

    try:
        data = json.loads(message)
    except (ValueError, RecursionError) as e:
        logger.warning(f"Failed to parse feed message: {e}. Message: {message[:150]}")
        return []

    if not isinstance(data, list):
        logger.warning(f"Message is not an array: {str(data)[:150]}")
        return []

    events: List[TelemetryEvent] = []
    for i in range(0, len(data) - 1, 2):
        action, payload = data[i], data[i + 1]
        decoder = _DECODERS.get(action) if isinstance(action, int) and not isinstance(action, bool) else None
        if decoder is None:
            logger.trace(f"Ignoring message type: {action}")
            continue
        try:
            event = decoder(payload)
        except (ValidationError, TypeError) as e:
            logger.debug(f"Dropping malformed action {action} payload: {e}")
            continue
        if event is None:
            logger.debug(f"Dropping short action {action} payload: {str(payload)[:150]}")
            continue
        events.append(event)
    return events


__all__ = ["decode_message", "decode_node_announce", "decode_block_import",
           "ACTION_ADDED_NODE", "ACTION_IMPORTED_BLOCK"]
