"""In-memory aggregation state: node registry, block ledger and their rules.

All structures here are owned by a single `Aggregator` and are not
thread-safe on their own.
"""

from .registry import NodeRecord, NodeRegistry
from .blocks import BlockLedger, BlockRecord, OutputRow, OUTPUT_COLUMNS, Reporter
from .finalization import FinalizationPolicy, should_finalize
from .retention import RetentionManager

__all__ = [
    'NodeRecord',
    'NodeRegistry',
    'BlockLedger',
    'BlockRecord',
    'OutputRow',
    'OUTPUT_COLUMNS',
    'Reporter',
    'FinalizationPolicy',
    'should_finalize',
    'RetentionManager',
]
