"""Append-only CSV sink for likely-author rows.

The header is written once, when the file is missing or empty at startup.
Every batch opens the file in append mode, writes, flushes and closes it.
Failures after startup are logged and the batch is dropped (no retry).
"""
from __future__ import annotations
import csv
from pathlib import Path
from typing import Iterable, Sequence

from loguru import logger

from telemetry_observer.ledger.blocks import OUTPUT_COLUMNS


class OutputSinkError(Exception):
    """The output path could not be prepared at startup."""
    pass


class CsvOutputSink:
    def __init__(self, path: str, columns: Sequence[str] = OUTPUT_COLUMNS):
        self.path = Path(path)
        self.columns = tuple(columns)
        self.rows_written = 0
        self._prepare()

    def _prepare(self) -> None:
        logger.info(f"Initializing CSV writer at {self.path}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            has_content = self.path.exists() and self.path.stat().st_size > 0
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                if not has_content:
                    csv.writer(f).writerow(self.columns)
        except OSError as e:
            raise OutputSinkError(f"Cannot prepare output file {self.path}: {e}") from e

    def write_rows(self, rows: Iterable[Sequence]) -> int:
        rows = list(rows)
        if not rows:
            return 0
        logger.info(f"Writing {len(rows)} records to CSV")
        try:
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                w = csv.writer(f)
                for row in rows:
                    w.writerow(row)
                f.flush()
        except OSError as e:
            logger.error(f"Failed to write {len(rows)} rows to {self.path}: {e}")
            return 0
        self.rows_written += len(rows)
        return len(rows)


__all__ = ["CsvOutputSink", "OutputSinkError"]
