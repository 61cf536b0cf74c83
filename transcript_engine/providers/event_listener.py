"""
Realtime event listener.

Connects to a websocket relay that forwards the realtime API's JSON events,
and feeds each decoded event into a TranscriptSession. When the connection
closes for good the session receives a synthetic `websocket.disconnected`
event, which ends the call.
"""

import asyncio
import json
from typing import Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from ..config import EventSourceConfig
from ..logging_config import get_logger
from ..session import TranscriptSession

logger = get_logger(__name__)

DISCONNECTED_EVENT_TYPE = "websocket.disconnected"


class RealtimeEventListener:
    """Websocket consumer that drives one transcript session."""

    def __init__(
        self,
        session: TranscriptSession,
        config: EventSourceConfig,
        *,
        headers: Optional[Dict[str, str]] = None,
        connect=None,
    ):
        if not config.url:
            raise ValueError("Realtime event source URL is not configured (REALTIME_EVENTS_URL)")
        self.session = session
        self.config = config
        self._headers = headers or {}
        self._connect = connect or websockets.connect
        self._websocket = None
        self._closing = False
        self.events_received = 0

    async def run(self) -> None:
        """
        Consume events until the relay closes or `stop()` is called.

        Dropped connections are retried with exponential backoff; once the
        attempts are exhausted the session is told the websocket disconnected.
        """
        backoff = self.config.reconnect_backoff_sec
        attempt = 0
        try:
            while not self._closing:
                try:
                    self._websocket = await self._connect(self.config.url, additional_headers=self._headers)
                except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                    attempt += 1
                    if attempt > self.config.reconnect_attempts:
                        logger.error("Realtime event relay unreachable; giving up", attempts=attempt, error=str(e))
                        return
                    logger.warning("Realtime event relay connect failed", attempt=attempt, error=str(e))
                    await asyncio.sleep(backoff)
                    backoff = min(6.0, backoff * 2)
                    continue

                attempt = 0
                backoff = self.config.reconnect_backoff_sec
                logger.info("Connected to realtime event relay", url=self.config.url)
                clean_close = await self._receive_loop()
                if clean_close:
                    return
        finally:
            await self._close_websocket()
            self.session.handle_event({"type": DISCONNECTED_EVENT_TYPE, "reason": DISCONNECTED_EVENT_TYPE})

    async def stop(self) -> None:
        self._closing = True
        await self._close_websocket()

    async def _receive_loop(self) -> bool:
        """Returns True when the relay closed the connection normally."""
        assert self._websocket is not None
        try:
            async for message in self._websocket:
                if isinstance(message, bytes):
                    continue
                try:
                    event = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning("Failed to decode realtime event payload", payload_preview=message[:64])
                    continue
                self.events_received += 1
                self.session.handle_event(event)
        except ConnectionClosedOK:
            logger.info("Realtime event relay closed the connection")
            return True
        except ConnectionClosedError as e:
            logger.warning("Realtime event relay connection dropped", code=getattr(e, "code", None))
            return self._closing
        return True

    async def _close_websocket(self) -> None:
        websocket = self._websocket
        self._websocket = None
        if websocket is not None:
            try:
                await websocket.close()
            except WebSocketException:
                logger.debug("Error closing realtime event websocket", exc_info=True)
