"""JSON snapshots of the node registry and block ledger.

Two independent files, each a single JSON object rewritten in full on every
save:

  nodes:  {"<ordinal>": {"name": str, "node_id": str}}
  blocks: {"<hash>": {"block_number": int, "lowest_propagation_time": int|null,
                      "reporters": [{"node_ordinal", "node_name", "node_id", "timestamp"}],
                      "first_seen": int, "report_count": int, "finalized": bool}}

Saves write to a sibling ``.tmp`` file and ``os.replace`` it over the
snapshot, so a reader only ever sees a complete document. No handle is kept
open between saves. Read and write failures are logged and swallowed; a
missing or malformed snapshot loads as an empty store.

The field names are this package's own. Snapshot files written by other
telemetry tools (e.g. with `node_idx`, `lowest_prop_time` or `output` keys)
fail validation and so load as an empty store.
"""
from __future__ import annotations
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from telemetry_observer.ledger.blocks import BlockLedger
from telemetry_observer.ledger.finalization import FinalizationPolicy, DEFAULT_POLICY
from telemetry_observer.ledger.registry import NodeRegistry


class NodeEntry(BaseModel):
    name: str
    node_id: str


class ReporterEntry(BaseModel):
    node_ordinal: int = Field(ge=0)
    node_name: str
    node_id: str
    timestamp: int


class BlockEntry(BaseModel):
    block_number: int = Field(ge=0)
    lowest_propagation_time: Optional[int] = None
    reporters: List[ReporterEntry] = Field(default_factory=list)
    first_seen: int
    report_count: int = Field(0, ge=0)
    finalized: bool = False


_NODES_SCHEMA = TypeAdapter(Dict[str, NodeEntry])
_BLOCKS_SCHEMA = TypeAdapter(Dict[str, BlockEntry])


class SnapshotStore:
    def __init__(self, nodes_file: str, blocks_file: str):
        self.nodes_path = Path(nodes_file)
        self.blocks_path = Path(blocks_file)

    # ---------------- Load ---------------------------
    def _read(self, path: Path, schema: TypeAdapter, label: str) -> Dict[str, Any]:
        if not path.exists():
            logger.info(f"No {label} snapshot at {path}, starting empty")
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
            validated = schema.validate_json(raw) if raw.strip() else {}
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {label} snapshot {path}: {e}")
            return {}
        return {k: v.model_dump() for k, v in validated.items()}

    def load_registry(self) -> NodeRegistry:
        data = self._read(self.nodes_path, _NODES_SCHEMA, "nodes")
        registry = NodeRegistry.from_snapshot(data)
        logger.info(f"Loaded {len(registry)} nodes from {self.nodes_path}")
        return registry

    def load_ledger(self, registry: Optional[NodeRegistry] = None,
                    policy: FinalizationPolicy = DEFAULT_POLICY) -> BlockLedger:
        data = self._read(self.blocks_path, _BLOCKS_SCHEMA, "blocks")
        ledger = BlockLedger.from_snapshot(data, registry=registry, policy=policy)
        logger.info(f"Loaded {len(ledger)} blocks from {self.blocks_path}")
        return ledger

    # ---------------- Save ---------------------------
    def _write(self, path: Path, payload: Dict[str, Any], label: str) -> bool:
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, separators=(",", ":"), ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {label} snapshot to {path}: {e}")
            return False
        return True

    def save_registry(self, registry: NodeRegistry) -> bool:
        return self._write(self.nodes_path, registry.to_snapshot(), "nodes")

    def save_ledger(self, ledger: BlockLedger) -> bool:
        return self._write(self.blocks_path, ledger.to_snapshot(), "blocks")


__all__ = ["SnapshotStore"]
