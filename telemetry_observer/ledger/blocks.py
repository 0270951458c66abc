"""Block ledger: block hash -> aggregation record.

Each record keeps the reporters tied at the lowest propagation time seen for
the block ("likely authors"). Every accepted import runs a finalization sweep
over the whole ledger, so a record can be closed by an event for a different
block (age or height-lag rules). Closed records emit one row per reporter
exactly once.

Lifecycle per hash: absent -> open -> closed, with eviction (see
`retention.py`) possible from either open or closed.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Iterator, List, NamedTuple, Optional, Tuple
from loguru import logger

from .finalization import FinalizationPolicy, DEFAULT_POLICY, should_finalize
from .registry import NodeRegistry


class OutputRow(NamedTuple):
    timestamp: int
    node_name: str
    node_id: str
    block_number: int
    block_hash: str
    propagation_time: int


OUTPUT_COLUMNS: Tuple[str, ...] = OutputRow._fields


@dataclass
class Reporter:
    node_ordinal: int
    node_name: str
    node_id: str
    timestamp: int  # unix seconds at which the report was processed


@dataclass
class BlockRecord:
    block_number: int
    first_seen: int
    # None stands for "infinity": nothing observed yet
    lowest_propagation_time: Optional[int] = None
    reporters: List[Reporter] = field(default_factory=list)
    report_count: int = 0
    finalized: bool = False

    def observe(self, reporter: Reporter, propagation_time: int) -> bool:
        """Count one report and update the tied-lowest reporter set.

        Returns True if the reporter set changed.
        """
        self.report_count += 1
        if self.lowest_propagation_time is None or propagation_time < self.lowest_propagation_time:
            self.lowest_propagation_time = propagation_time
            self.reporters = [reporter]
            return True
        if propagation_time == self.lowest_propagation_time:
            if not any(r.node_ordinal == reporter.node_ordinal for r in self.reporters):
                self.reporters.append(reporter)
                return True
        return False

    def rows(self, block_hash: str) -> List[OutputRow]:
        return [
            OutputRow(r.timestamp, r.node_name, r.node_id, self.block_number, block_hash,
                      self.lowest_propagation_time)
            for r in self.reporters
        ]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BlockRecord":
        return cls(
            block_number=d["block_number"],
            first_seen=d["first_seen"],
            lowest_propagation_time=d.get("lowest_propagation_time"),
            reporters=[Reporter(**r) for r in d.get("reporters") or []],
            report_count=d.get("report_count", 0),
            finalized=d.get("finalized", False),
        )


class BlockLedger:
    def __init__(self, registry: Optional[NodeRegistry] = None,
                 policy: FinalizationPolicy = DEFAULT_POLICY,
                 records: Optional[Dict[str, BlockRecord]] = None):
        self.registry = registry if registry is not None else NodeRegistry()
        self.policy = policy
        self._records: Dict[str, BlockRecord] = dict(records or {})

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, block_hash: str) -> bool:
        return block_hash in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def get(self, block_hash: str) -> Optional[BlockRecord]:
        return self._records.get(block_hash)

    def items(self):
        return self._records.items()

    def remove(self, block_hash: str) -> Optional[BlockRecord]:
        return self._records.pop(block_hash, None)

    def max_block_number(self) -> int:
        return max((r.block_number for r in self._records.values()), default=0)

    def open_count(self) -> int:
        return sum(1 for r in self._records.values() if not r.finalized)

    def handle_block_import(self, node_ordinal: int, block_number: int, block_hash: str,
                            propagation_time: int, now: int) -> List[OutputRow]:
        if not block_hash or not propagation_time:
            logger.debug(f"Dropping block import: hash={block_hash!r} prop_time={propagation_time}")
            return []

        node_name, node_id = self.registry.resolve(node_ordinal)
        record = self._records.get(block_hash)
        if record is None:
            record = BlockRecord(block_number=block_number, first_seen=now)
            self._records[block_hash] = record

        changed = record.observe(
            Reporter(node_ordinal=node_ordinal, node_name=node_name, node_id=node_id, timestamp=now),
            propagation_time,
        )
        logger.debug(
            f"Block {block_number} {block_hash}: node={node_name} prop_time={propagation_time} "
            f"lowest={record.lowest_propagation_time} reports={record.report_count} changed={changed}"
        )
        return self.sweep(now)

    def sweep(self, now: int) -> List[OutputRow]:
        """Finalize every open record that satisfies the policy and return its rows."""
        max_block = self.max_block_number()
        outputs: List[OutputRow] = []
        for block_hash, record in self._records.items():
            if not should_finalize(record, now, max_block, self.policy):
                continue
            logger.debug(
                f"Block {block_hash} ready for output: report_count={record.report_count}, "
                f"age={now - record.first_seen}, block_num={record.block_number}, max_block={max_block}"
            )
            outputs.extend(record.rows(block_hash))
            record.finalized = True
        return outputs

    # ---------------- Snapshot ------------------------
    def to_snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {k: v.to_dict() for k, v in self._records.items()}

    @classmethod
    def from_snapshot(cls, data: Dict[str, Dict[str, Any]], registry: Optional[NodeRegistry] = None,
                      policy: FinalizationPolicy = DEFAULT_POLICY) -> "BlockLedger":
        return cls(registry=registry, policy=policy,
                   records={k: BlockRecord.from_dict(v) for k, v in data.items()})


__all__ = ["OutputRow", "OUTPUT_COLUMNS", "Reporter", "BlockRecord", "BlockLedger"]
