"""
Base WebSocket price feed client.

Connects with `websockets`, sends the provider's subscription
messages, parses every frame into PriceTicks and hands non-empty
batches to an async callback. Dropped connections are retried with a
linearly growing delay, capped at max_reconnect_delay.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidURI

from tickerdesk.domain.trading.entities import PriceTick

logger = logging.getLogger(__name__)

TickHandler = Callable[[list[PriceTick]], Awaitable[None]]


class PriceFeedClient(ABC):
    """Long-running WebSocket subscription for a set of symbols."""

    name = "feed"

    def __init__(
        self,
        url: str,
        symbols: Iterable[str],
        on_ticks: TickHandler,
        reconnect_delay: float = 5.0,
        max_reconnect_delay: float = 60.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self._url = url
        self._symbols: set[str] = {s.upper() for s in symbols}
        self._on_ticks = on_ticks
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._connect = connect
        self._websocket: Optional[Any] = None
        self._running = False
        self.reconnect_count = 0
        self.messages_received = 0

    @property
    def symbols(self) -> set[str]:
        return set(self._symbols)

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    @abstractmethod
    def subscription_messages(self, symbols: Iterable[str]) -> list[dict[str, Any]]:
        """Messages that subscribe the given symbols."""

    @abstractmethod
    def parse(self, raw: Any) -> list[PriceTick]:
        """Turn one frame into ticks; frames without prices yield []."""

    async def start(self) -> None:
        """Run until stop() is called, reconnecting on failure."""
        self._running = True
        logger.info("Starting %s feed for %d symbols", self.name, len(self._symbols))
        while self._running:
            try:
                await self._connect_and_run()
            except asyncio.CancelledError:
                raise
            except (ConnectionClosed, InvalidURI, OSError) as exc:
                logger.warning("%s feed connection lost: %s", self.name, exc)
            except Exception:
                logger.exception("%s feed failed unexpectedly", self.name)
            finally:
                self._websocket = None

            if not self._running:
                break
            self.reconnect_count += 1
            wait_time = min(self._reconnect_delay * self.reconnect_count, self._max_reconnect_delay)
            logger.info(
                "Reconnecting %s feed in %.1fs (attempt %d)",
                self.name,
                wait_time,
                self.reconnect_count,
            )
            await asyncio.sleep(wait_time)

    async def stop(self) -> None:
        self._running = False
        if self._websocket is not None:
            await self._websocket.close()
        logger.info("%s feed stopped", self.name)

    async def update_symbols(self, symbols: Iterable[str]) -> None:
        """Track a new symbol set, subscribing additions on the live socket."""
        wanted = {s.upper() for s in symbols}
        added = wanted - self._symbols
        self._symbols = wanted
        if added and self._websocket is not None:
            for message in self.subscription_messages(sorted(added)):
                await self._websocket.send(json.dumps(message))
            logger.info("%s feed subscribed to %s", self.name, ", ".join(sorted(added)))

    async def _connect_and_run(self) -> None:
        async with self._connect(self._url, ping_interval=20, ping_timeout=10) as websocket:
            self._websocket = websocket
            self.reconnect_count = 0
            logger.info("%s feed connected", self.name)

            for message in self.subscription_messages(sorted(self._symbols)):
                await websocket.send(json.dumps(message))

            async for raw in websocket:
                if not self._running:
                    break
                self.messages_received += 1
                ticks = self.parse(raw)
                if not ticks:
                    continue
                try:
                    await self._on_ticks(ticks)
                except Exception:
                    logger.exception("%s feed tick handler failed", self.name)
