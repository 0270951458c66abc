"""
Pytest Fixtures for the Telemetry Observer Test Suite

Shared fixtures: a validated Settings object pointing every file at a
temporary directory, a fully wired Aggregator built from it, and small
event factories.
"""
import pytest

from telemetry_observer.core.config import Settings
from telemetry_observer.core.events import BlockImportEvent, NodeAnnounceEvent
from telemetry_observer.live.aggregator import Aggregator


@pytest.fixture
def settings_fixture(tmp_path) -> Settings:
    """
    Settings with all storage under `tmp_path` so tests never touch ./data.
    """
    test_config = {
        "feed": {
            "telemetry_url": "ws://127.0.0.1:9/feed",
            "genesis_hash": "0xgenesis",
            "reconnect_delay_sec": 5,
        },
        "storage": {
            "output_path": str(tmp_path / "out" / "authors.csv"),
            "nodes_file": str(tmp_path / "state" / "nodes.json"),
            "blocks_file": str(tmp_path / "state" / "blocks.json"),
        },
    }
    return Settings.model_validate(test_config)


@pytest.fixture
def aggregator(settings_fixture) -> Aggregator:
    return Aggregator.from_settings(settings_fixture)


def block(node, height, block_hash, prop):
    return BlockImportEvent(node_ordinal=node, block_number=height, block_hash=block_hash, propagation_time=prop)


def announce(ordinal, name, node_id):
    return NodeAnnounceEvent(ordinal=ordinal, name=name, node_id=node_id)


@pytest.fixture
def make_block():
    return block


@pytest.fixture
def make_announce():
    return announce
