"""Retention window for the block ledger.

Keeps only the `window` highest blocks. Records are dropped whether or not
they were finalized; an open record that falls out of the window is lost and
a later import for the same hash starts from scratch.
"""
from __future__ import annotations
from typing import List
from loguru import logger

from .blocks import BlockLedger

DEFAULT_RETENTION_WINDOW = 100


class RetentionManager:
    def __init__(self, window: int = DEFAULT_RETENTION_WINDOW):
        if window <= 0:
            raise ValueError("retention window must be positive")
        self.window = window

    def enforce(self, ledger: BlockLedger) -> List[str]:
        """Evict everything below the top `window` heights. Returns evicted hashes."""
        if len(ledger) <= self.window:
            return []
        # sorted() is stable: equal heights keep ledger insertion order
        ranked = sorted(ledger.items(), key=lambda kv: kv[1].block_number, reverse=True)
        evicted = [block_hash for block_hash, _ in ranked[self.window:]]
        for block_hash in evicted:
            record = ledger.remove(block_hash)
            if record is not None and not record.finalized:
                logger.debug(f"Evicting open block {record.block_number} {block_hash}")
        return evicted


__all__ = ["RetentionManager", "DEFAULT_RETENTION_WINDOW"]
