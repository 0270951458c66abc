"""
Telemetry Feed WebSocket Client

This module connects to a substrate-style telemetry feed, subscribes to one
chain by genesis hash and yields decoded events.

Features:
- Subscription: Sends ``subscribe:<genesis_hash>`` right after connecting.
- Asynchronous API: Built with `asyncio` and the `websockets` library; events
  are produced by an async generator.
- Fixed-Delay Reconnection: Every connection failure or stream end is followed
  by a constant delay (5 seconds by default) and another attempt. There is no
  retry limit; the client only stops when `stop()` is called.
- Binary Frames: Binary messages are decoded as UTF-8 and handled like text.
"""

import asyncio
from typing import AsyncIterator

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException

from telemetry_observer.core.config import FeedSettings
from telemetry_observer.core.events import TelemetryEvent
from telemetry_observer.data.feed_decoder import decode_message


class TelemetryWSClient:
    """
    Connects to the telemetry feed and yields normalized events.
    """

    def __init__(self, settings: FeedSettings):
        """
        Initializes the client with feed settings.

        Args:
            settings: The validated `feed` section of the application settings.
        """
        self._settings = settings
        self._ws_url = settings.telemetry_url
        self._connection = None
        self._is_running = False
        self.connect_attempts = 0
        self.messages_received = 0

    @property
    def subscribe_message(self) -> str:
        return f"subscribe:{self._settings.genesis_hash}"

    async def start(self) -> AsyncIterator[TelemetryEvent]:
        """
        Connects and yields events until `stop()` is called.

        Yields:
            TelemetryEvent: A decoded `NodeAnnounceEvent` or `BlockImportEvent`.
        """
        self._is_running = True
        while self._is_running:
            self.connect_attempts += 1
            logger.info(f"Attempting WebSocket connection to: {self._ws_url}")
            try:
                async with websockets.connect(
                    self._ws_url,
                    open_timeout=self._settings.open_timeout_sec,
                    ping_interval=self._settings.ping_interval_sec,
                    ping_timeout=self._settings.ping_timeout_sec,
                    max_size=self._settings.max_message_bytes,
                ) as ws:
                    self._connection = ws
                    logger.success("WebSocket connection established!")
                    await ws.send(self.subscribe_message)
                    logger.debug(f"Subscription message sent: {self.subscribe_message}")

                    async for message in ws:
                        self.messages_received += 1
                        logger.trace(f"Received line: {str(message)[:100]}...")
                        for event in decode_message(message):
                            yield event
                logger.info("WebSocket closed")
            except asyncio.TimeoutError:
                logger.warning("WebSocket connection attempt timed out.")
            except (ConnectionClosed, WebSocketException, OSError) as e:
                close_code = getattr(e, 'code', 'N/A')
                logger.error(f"WebSocket error: {e} (Code: {close_code})")
            except Exception as e:
                logger.error(f"An unexpected error occurred in the telemetry client: {e}")
            finally:
                self._connection = None

            if not self._is_running:
                break
            await self._reconnect()

        logger.info("Telemetry client stopped.")

    async def stop(self) -> None:
        """
        Signals the client to shut down and closes any open connection.
        """
        logger.info("Stopping telemetry client...")
        self._is_running = False
        if self._connection is not None:
            await self._connection.close()

    async def _reconnect(self) -> None:
        """Waits the fixed reconnect delay before the next attempt."""
        delay = self._settings.reconnect_delay_sec
        logger.info(f"Connection lost or error occurred. Reconnecting in {delay:g} seconds...")
        await asyncio.sleep(delay)


__all__ = ["TelemetryWSClient"]
