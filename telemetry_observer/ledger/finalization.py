"""Finalization rules for block records.

A record is closed (and its reporters emitted) once it has enough reports,
is old enough, or has fallen behind the tallest tracked block. The height-lag
rule can close a block before its true lowest propagation time arrives; that
trade of completeness for latency is intentional.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .blocks import BlockRecord


@dataclass(frozen=True)
class FinalizationPolicy:
    min_reports: int = 3
    max_age_seconds: int = 3
    max_height_lag: int = 1

    @classmethod
    def from_settings(cls, agg) -> "FinalizationPolicy":
        return cls(
            min_reports=int(agg.min_reports),
            max_age_seconds=int(agg.max_age_seconds),
            max_height_lag=int(agg.max_height_lag),
        )


DEFAULT_POLICY = FinalizationPolicy()


def should_finalize(record: "BlockRecord", now: int, max_block_number: int,
                    policy: FinalizationPolicy = DEFAULT_POLICY) -> bool:
    if record.finalized:
        return False
    if record.report_count >= policy.min_reports:
        return True
    if now - record.first_seen > policy.max_age_seconds:
        return True
    return record.block_number < max_block_number - policy.max_height_lag


__all__ = ["FinalizationPolicy", "DEFAULT_POLICY", "should_finalize"]
