"""Aggregator: applies decoded telemetry events to the registry and ledger.

One event is applied completely before the next: state mutation,
finalization sweep, retention, row emission and snapshot writes all happen
inside `process_event`. The aggregator is meant to have exactly one owner
(see `runner.py`), so it does no locking of its own.
"""
from __future__ import annotations
import time
from typing import List, Optional

from loguru import logger

from telemetry_observer.core.events import BlockImportEvent, NodeAnnounceEvent
from telemetry_observer.io.output_sink import CsvOutputSink
from telemetry_observer.ledger.blocks import BlockLedger, OutputRow
from telemetry_observer.ledger.finalization import FinalizationPolicy
from telemetry_observer.ledger.registry import NodeRegistry
from telemetry_observer.ledger.retention import RetentionManager
from telemetry_observer.persist.snapshot import SnapshotStore


def _now_s() -> int:
    return int(time.time())


class Aggregator:
    def __init__(self, registry: NodeRegistry, ledger: BlockLedger,
                 retention: Optional[RetentionManager] = None,
                 store: Optional[SnapshotStore] = None,
                 sink: Optional[CsvOutputSink] = None):
        self.registry = registry
        self.ledger = ledger
        # the ledger resolves reporter names through the same registry
        self.ledger.registry = registry
        self.retention = retention or RetentionManager()
        self.store = store
        self.sink = sink
        # a restored ledger may exceed the current window
        evicted = self.retention.enforce(self.ledger)
        if evicted:
            logger.info(f"Dropped {len(evicted)} restored blocks beyond retention window {self.retention.window}")

    @classmethod
    def from_settings(cls, settings) -> "Aggregator":
        """Build the full pipeline from settings, restoring any saved snapshots.

        Raises OutputSinkError if the output CSV cannot be prepared.
        """
        storage = settings.storage
        agg = settings.aggregation
        store = SnapshotStore(storage.nodes_file, storage.blocks_file)
        registry = store.load_registry()
        ledger = store.load_ledger(registry=registry, policy=FinalizationPolicy.from_settings(agg))
        sink = CsvOutputSink(storage.output_path)
        return cls(registry, ledger, RetentionManager(agg.retention_window), store, sink)

    def process_event(self, event, now: Optional[int] = None) -> List[OutputRow]:
        if isinstance(event, NodeAnnounceEvent):
            self._on_node_announce(event)
            return []
        if isinstance(event, BlockImportEvent):
            return self._on_block_import(event, _now_s() if now is None else now)
        logger.trace(f"Ignoring event {type(event).__name__}")
        return []

    def _on_node_announce(self, event: NodeAnnounceEvent) -> None:
        logger.info(f"Storing node: idx={event.ordinal}, name={event.name}, id={event.node_id}")
        self.registry.upsert(event.ordinal, event.name, event.node_id)
        if self.store is not None:
            self.store.save_registry(self.registry)

    def _on_block_import(self, event: BlockImportEvent, now: int) -> List[OutputRow]:
        rows = self.ledger.handle_block_import(
            event.node_ordinal, event.block_number, event.block_hash, event.propagation_time, now,
        )
        evicted = self.retention.enforce(self.ledger)
        if evicted:
            logger.debug(f"Evicted {len(evicted)} blocks beyond retention window {self.retention.window}")
        logger.info(f"Tracking {len(self.ledger)} blocks, {self.ledger.open_count()} outputs ready")

        if self.sink is not None and rows:
            self.sink.write_rows(rows)
        if self.store is not None:
            self.store.save_registry(self.registry)
            self.store.save_ledger(self.ledger)
        return rows


__all__ = ["Aggregator"]
