"""Node registry: feed ordinal -> announced identity.

Records are created or overwritten on every announce and never deleted.
Keys are the ordinal rendered as a string so the snapshot is a plain JSON
object.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Tuple, Union

UNKNOWN_NODE_ID = "unknown_id"


def unknown_node_name(ordinal: Union[int, str]) -> str:
    return f"unknown_node_{ordinal}"


@dataclass
class NodeRecord:
    name: str
    node_id: str


class NodeRegistry:
    def __init__(self, records: Optional[Dict[str, NodeRecord]] = None):
        self._records: Dict[str, NodeRecord] = dict(records or {})

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, ordinal) -> bool:
        return str(ordinal) in self._records

    def upsert(self, ordinal: Union[int, str], name: str, node_id: str) -> NodeRecord:
        rec = NodeRecord(name=name, node_id=node_id)
        self._records[str(ordinal)] = rec
        return rec

    def lookup(self, ordinal: Union[int, str]) -> Optional[NodeRecord]:
        return self._records.get(str(ordinal))

    def resolve(self, ordinal: Union[int, str]) -> Tuple[str, str]:
        """Return (name, node_id), substituting placeholders for unannounced nodes."""
        rec = self.lookup(ordinal)
        if rec is None:
            return unknown_node_name(ordinal), UNKNOWN_NODE_ID
        return rec.name, rec.node_id

    # ---------------- Snapshot ------------------------
    def to_snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {k: asdict(v) for k, v in self._records.items()}

    @classmethod
    def from_snapshot(cls, data: Dict[str, Dict[str, Any]]) -> "NodeRegistry":
        return cls({str(k): NodeRecord(name=v["name"], node_id=v["node_id"]) for k, v in data.items()})


__all__ = ["NodeRecord", "NodeRegistry", "UNKNOWN_NODE_ID", "unknown_node_name"]
