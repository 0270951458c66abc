"""
Tests for the Aggregator: event dispatch, row emission, retention and
write-through persistence across restarts.
"""
import csv
import json
import os

from telemetry_observer.core.events import NodeAnnounceEvent
from telemetry_observer.live.aggregator import Aggregator
from telemetry_observer.ledger.blocks import BlockLedger
from telemetry_observer.ledger.registry import NodeRegistry
from telemetry_observer.ledger.retention import RetentionManager


def _csv_rows(settings):
    with open(settings.storage.output_path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))[1:]


def test_announced_name_used_and_unknown_placeholder(aggregator, make_announce, make_block, settings_fixture):
    aggregator.process_event(make_announce(5, "Alice", "id5"), now=0)
    aggregator.process_event(make_block(5, 30, "0xC5", 12), now=0)
    aggregator.process_event(make_block(9, 31, "0xC9", 12), now=0)
    # age out both records
    rows = aggregator.process_event(make_block(9, 31, "0xC9b", 12), now=10)

    by_hash = {r.block_hash: r for r in rows}
    assert by_hash["0xC5"].node_name == "Alice"
    assert by_hash["0xC5"].node_id == "id5"
    assert by_hash["0xC9"].node_name == "unknown_node_9"
    assert by_hash["0xC9"].node_id == "unknown_id"
    assert len(_csv_rows(settings_fixture)) == 2


def test_scenario_rows_reach_csv_in_order(aggregator, make_announce, make_block, settings_fixture):
    for ordinal in (1, 2, 3):
        aggregator.process_event(make_announce(ordinal, f"node{ordinal}", f"id{ordinal}"))
    aggregator.process_event(make_block(1, 10, "0xAA", 50), now=7)
    aggregator.process_event(make_block(2, 10, "0xAA", 40), now=7)
    rows = aggregator.process_event(make_block(3, 10, "0xAA", 40), now=7)

    assert [(r.node_name, r.propagation_time) for r in rows] == [("node2", 40), ("node3", 40)]
    assert _csv_rows(settings_fixture) == [
        ["7", "node2", "id2", "10", "0xAA", "40"],
        ["7", "node3", "id3", "10", "0xAA", "40"],
    ]


def test_rejected_import_changes_nothing(aggregator, make_block, settings_fixture):
    assert aggregator.process_event(make_block(1, 10, "", 5), now=0) == []
    assert aggregator.process_event(make_block(1, 10, "0x01", 0), now=0) == []
    assert len(aggregator.ledger) == 0
    assert _csv_rows(settings_fixture) == []


def test_unknown_event_kinds_are_ignored(aggregator):
    assert aggregator.process_event({"action": 99}) == []
    assert aggregator.process_event(None) == []
    assert len(aggregator.ledger) == 0
    assert len(aggregator.registry) == 0


def test_ledger_bounded_after_every_event(aggregator, make_block):
    for height in range(1, 151):
        aggregator.process_event(make_block(1, height, f"0x{height}", 10), now=height)
        assert len(aggregator.ledger) <= 100
    heights = {aggregator.ledger.get(h).block_number for h in aggregator.ledger}
    assert heights == set(range(51, 151))


def test_snapshots_written_on_every_mutation(aggregator, make_announce, make_block, settings_fixture):
    aggregator.process_event(make_announce(2, "bob", "idb"))
    with open(settings_fixture.storage.nodes_file, encoding="utf-8") as f:
        assert json.load(f) == {"2": {"name": "bob", "node_id": "idb"}}

    aggregator.process_event(make_block(2, 4, "0x04", 9), now=50)
    with open(settings_fixture.storage.blocks_file, encoding="utf-8") as f:
        blocks = json.load(f)
    assert blocks["0x04"]["report_count"] == 1
    assert blocks["0x04"]["reporters"][0]["node_name"] == "bob"


def test_restart_restores_state_and_never_reemits(settings_fixture, make_announce, make_block):
    first = Aggregator.from_settings(settings_fixture)
    first.process_event(make_announce(1, "a", "ida"))
    for node in (1, 2, 3):
        first.process_event(make_block(node, 10, "0xAA", 40), now=0)
    first.process_event(make_block(1, 11, "0xAB", 40), now=0)

    second = Aggregator.from_settings(settings_fixture)
    assert second.registry.resolve(1) == ("a", "ida")
    assert second.ledger.get("0xAA").finalized is True
    assert second.ledger.get("0xAB").finalized is False

    rows = second.process_event(make_block(2, 11, "0xAB", 40), now=100)
    assert {r.block_hash for r in rows} == {"0xAB"}
    # header + 3 rows for 0xAA + 2 rows for 0xAB, header written once
    with open(settings_fixture.storage.output_path, newline="", encoding="utf-8") as f:
        lines = list(csv.reader(f))
    assert lines[0][0] == "timestamp"
    assert len(lines) == 1 + 3 + 2


def test_aggregator_without_store_or_sink():
    agg = Aggregator(NodeRegistry(), BlockLedger())
    agg.process_event(NodeAnnounceEvent(ordinal=1, name="n", node_id="i"))
    assert agg.ledger.registry.resolve(1) == ("n", "i")


def test_restart_trims_oversized_ledger_before_any_import(settings_fixture, make_announce):
    blocks = {
        f"0x{h:04x}": {
            "block_number": h, "lowest_propagation_time": 10, "reporters": [],
            "first_seen": 0, "report_count": 1, "finalized": False,
        }
        for h in range(1, 151)
    }
    path = settings_fixture.storage.blocks_file
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(blocks, f)

    agg = Aggregator.from_settings(settings_fixture)
    assert len(agg.ledger) == 100
    agg.process_event(make_announce(1, "a", "ida"))
    assert len(agg.ledger) == 100
    assert min(agg.ledger.get(h).block_number for h in agg.ledger) == 51


def test_rejected_import_leaves_oversized_restore_bounded(make_block):
    ledger = BlockLedger()
    for h in range(1, 6):
        ledger.handle_block_import(1, h, f"0x{h}", 10, now=0)
    agg = Aggregator(NodeRegistry(), ledger, RetentionManager(3))
    assert agg.process_event(make_block(1, 9, "", 5), now=0) == []
    assert sorted(agg.ledger.get(h).block_number for h in agg.ledger) == [3, 4, 5]
