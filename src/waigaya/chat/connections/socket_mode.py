"""Slack Socket Mode connection over aiohttp WebSocket."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

import aiohttp

from ...api.slack import SlackApiClient

logger = logging.getLogger(__name__)

EVENTS_API = "events_api"

_CLOSING_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
)

EventHandler = Callable[[dict], Awaitable[None]]


class SocketModeConnection:
    """One Socket Mode session: handshake, ack envelopes, hand events on.

    Envelopes are acknowledged straight from the read loop (Slack redelivers
    anything not acked within 3 seconds). Events are enriched by a separate
    dispatcher task, in arrival order, so slow enrichment never delays acks.
    """

    def __init__(self, api: SlackApiClient, on_event: EventHandler) -> None:
        self._api = api
        self._on_event = on_event
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._queue: asyncio.Queue[dict | None] = asyncio.Queue()
        self.acked = 0

    async def run(self, app_token: str, cancel: asyncio.Event) -> None:
        """Connect and process frames until cancelled or the socket ends.

        Raises ApiClientError or aiohttp.ClientError if the connection can't be
        opened; once the loop is running it only returns.
        """
        url = await self._api.open_connection(app_token)
        logger.info("Socket Mode URL obtained")
        self._ws = await self._api.session.ws_connect(url, autoping=False)
        logger.info("Socket Mode WebSocket connected")

        dispatcher = asyncio.create_task(self._dispatch_loop(cancel))
        try:
            await self._read_loop(cancel)
        finally:
            await self._cleanup()
            # Let already-acked events finish enrichment, then stop the dispatcher
            self._queue.put_nowait(None)
            await dispatcher

    async def _read_loop(self, cancel: asyncio.Event) -> None:
        cancel_wait = asyncio.create_task(cancel.wait())
        receive: asyncio.Task | None = None
        try:
            while not cancel.is_set():
                receive = asyncio.create_task(self._ws.receive())
                done, _ = await asyncio.wait(
                    {receive, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if receive not in done:
                    receive.cancel()
                    logger.info("Socket Mode connection cancelled")
                    break

                try:
                    msg = receive.result()
                except Exception as e:
                    logger.error(f"Socket Mode receive error: {e}")
                    break

                if not await self._handle_frame(msg):
                    break
        finally:
            cancel_wait.cancel()
            if receive is not None and not receive.done():
                receive.cancel()

    async def _handle_frame(self, msg: aiohttp.WSMessage) -> bool:
        """Handle one frame. Returns False when the connection is over."""
        if msg.type == aiohttp.WSMsgType.PING:
            try:
                await self._ws.pong(msg.data)
            except Exception as e:
                logger.error(f"Failed to send pong: {e}")
            return True

        if msg.type == aiohttp.WSMsgType.TEXT:
            await self._handle_envelope(msg.data)
            return True

        if msg.type in _CLOSING_TYPES:
            logger.info("Socket Mode WebSocket closed")
            return False

        if msg.type == aiohttp.WSMsgType.ERROR:
            logger.error(f"Socket Mode WebSocket error: {msg.data}")
            return False

        return True

    async def _handle_envelope(self, raw: str) -> None:
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed Socket Mode frame: {e}")
            return
        if not isinstance(envelope, dict):
            logger.warning("Skipping Socket Mode frame that is not an object")
            return

        envelope_id = envelope.get("envelope_id")
        if envelope_id:
            try:
                await self._ws.send_str(json.dumps({"envelope_id": envelope_id}))
                self.acked += 1
            except Exception as e:
                logger.error(f"Failed to ack envelope {envelope_id}: {e}")

        envelope_type = envelope.get("type")
        if envelope_type == EVENTS_API:
            payload = envelope.get("payload")
            event = payload.get("event") if isinstance(payload, dict) else None
            if isinstance(event, dict):
                self._queue.put_nowait(event)
        elif envelope_type == "hello":
            logger.debug("Socket Mode hello received")
        elif envelope_type == "disconnect":
            logger.info(f"Slack requested disconnect: {envelope.get('reason')}")

    async def _dispatch_loop(self, cancel: asyncio.Event) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            if cancel.is_set():
                # Disconnected or superseded: drop what is still queued
                logger.debug(f"Dropping queued {event.get('type')} event after cancel")
                continue
            try:
                await self._on_event(event)
            except Exception as e:
                logger.error(f"Failed to process {event.get('type')} event: {e}")

    async def _cleanup(self) -> None:
        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error closing Socket Mode WebSocket: {e}")
        self._ws = None
