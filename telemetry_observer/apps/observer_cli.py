"""
Telemetry Observer CLI

Main entry point for the observer:

1.  Loads `.env`, then settings from YAML (`--config`, or ./settings.yaml when
    present) + environment, then CLI overrides.
2.  Configures loguru sinks.
3.  Restores the node registry and block ledger snapshots and prepares the
    output CSV.
4.  Streams the telemetry feed forever, writing likely-author rows.

Invalid configuration or an unusable output path exits with status 1.
"""
from __future__ import annotations
import argparse
import asyncio
import os
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger

from telemetry_observer.core.config import ConfigError, load_settings
from telemetry_observer.io.output_sink import OutputSinkError
from telemetry_observer.live.runner import ObserverRunner

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
DEFAULT_CONFIG_PATH = "settings.yaml"


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        prog="telemetry-observer",
        description="Telemetry Observer - monitor block production and propagation times",
    )
    p.add_argument("--config", default=None,
                   help=f"YAML settings file (default: ./{DEFAULT_CONFIG_PATH} if present, else built-in defaults + env)")
    p.add_argument("--genesis-hash", help="Genesis hash of the chain to subscribe to")
    p.add_argument("--telemetry-url", help="Telemetry feed websocket URL")
    p.add_argument("--output-path", help="CSV file receiving likely-author rows")
    p.add_argument("--nodes-file", help="Node registry JSON snapshot")
    p.add_argument("--blocks-file", help="Block ledger JSON snapshot")
    p.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    p.add_argument("--log-file", help="Also log to this file (rotated)")
    return p.parse_args(argv)


def cli_overrides(args) -> Dict[str, Any]:
    mapping = {
        ("feed", "genesis_hash"): args.genesis_hash,
        ("feed", "telemetry_url"): args.telemetry_url,
        ("storage", "output_path"): args.output_path,
        ("storage", "nodes_file"): args.nodes_file,
        ("storage", "blocks_file"): args.blocks_file,
        ("logging", "level"): args.log_level,
        ("logging", "file"): args.log_file,
    }
    overrides: Dict[str, Any] = {}
    for (section, key), value in mapping.items():
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    return overrides


def resolve_config_path(path: Optional[str]) -> Optional[str]:
    if path:
        return path
    return DEFAULT_CONFIG_PATH if os.path.isfile(DEFAULT_CONFIG_PATH) else None


def setup_logging(level: str = "INFO", file: Optional[str] = None, rotation: str = "10 MB"):
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT, colorize=True)
    if file:
        logger.add(file, level="DEBUG", rotation=rotation, enqueue=True)


async def main_loop(settings) -> None:
    runner = ObserverRunner(settings)
    logger.info(
        f"Observer created for {settings.feed.telemetry_url} "
        f"(genesis {settings.feed.genesis_hash}), starting run loop..."
    )
    await runner.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    setup_logging("INFO")

    try:
        settings = load_settings(resolve_config_path(args.config), overrides=cli_overrides(args))
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(settings.logging.level, settings.logging.file, settings.logging.rotation)

    try:
        asyncio.run(main_loop(settings))
    except OutputSinkError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user (Ctrl+C).")
    return 0


def run():
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run()
