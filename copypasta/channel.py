"""Channel transport: topics over a Phoenix-style websocket connection."""

import asyncio
import itertools
from typing import AsyncIterator, Optional

import aiohttp

from copypasta.constants import (
    HEARTBEAT,
    HEARTBEAT_INTERVAL_SECONDS,
    JOIN_TIMEOUT_SECONDS,
    PHOENIX_TOPIC,
    PHX_CLOSE,
    PHX_ERROR,
    PHX_JOIN,
    PHX_REPLY,
    PROTOCOL_VSN,
)
from copypasta.exceptions import ChannelError, JoinRejectedError, PastaError, RequestError
from copypasta.logging_config import get_logger
from copypasta.protocol import ChannelEvent, ChannelFrame

logger = get_logger(__name__)

_CLOSED = object()


class Topic:
    """
    A joined topic.

    Events are delivered in arrival order. The sequence returned by
    events() ends when the topic or the connection closes and can only be
    consumed once.
    """

    def __init__(self, connection: 'Connection', name: str):
        self.connection = connection
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._error: Optional[BaseException] = None
        self._consumed = False
        self.closed = False

    async def send(self, kind: str, payload: dict) -> None:
        """Push an application event on this topic. No acknowledgement is awaited."""
        await self.connection.push(self.name, kind, payload)

    async def events(self) -> AsyncIterator[ChannelEvent]:
        if self._consumed:
            raise ChannelError(f"Events of {self.name} were already consumed")
        self._consumed = True
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                if self._error is not None:
                    raise self._error
                return
            yield item

    def _deliver(self, event: ChannelEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def _finish(self, error: Optional[BaseException] = None) -> None:
        if self.closed:
            return
        self.closed = True
        self._error = error
        self._queue.put_nowait(_CLOSED)


class Connection:
    """
    A channel socket connection.

    A reader task routes inbound frames to their topics and resolves join
    replies; a heartbeat task keeps the socket alive.
    """

    def __init__(
        self,
        ws,
        http_session: Optional[aiohttp.ClientSession] = None,
        *,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        join_timeout: float = JOIN_TIMEOUT_SECONDS,
    ):
        self._ws = ws
        self._http_session = http_session
        self._heartbeat_interval = heartbeat_interval
        self._join_timeout = join_timeout
        self._refs = itertools.count(1)
        self._pending: dict[str, asyncio.Future] = {}
        self._topics: dict[str, Topic] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self.closed = False

    def start(self) -> None:
        """Start the reader and heartbeat tasks on the running loop."""
        self._reader_task = asyncio.create_task(self._read_loop())
        if self._heartbeat_interval and self._heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    def next_ref(self) -> str:
        return str(next(self._refs))

    async def push(self, topic: str, event: str, payload: dict, ref: Optional[str] = None) -> None:
        """
        Send one frame.

        Raises:
            ChannelError: If the connection is closed
            RequestError: If the socket write fails
        """
        if self.closed:
            raise ChannelError(f"Connection closed, cannot send {event} on {topic}")
        frame = ChannelFrame(topic=topic, event=event, payload=payload, ref=ref or self.next_ref())
        logger.debug(f"-> {topic} {event} ref={frame.ref}")
        try:
            await self._ws.send_str(frame.to_json())
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise RequestError(f"Failed to send {event} on {topic}", cause=e) from e

    async def join(self, topic_name: str) -> Topic:
        """
        Join a topic and wait for the server's acknowledgement.

        Raises:
            JoinRejectedError: If the server replies with an error status
            ChannelError: If no reply arrives within the join timeout
        """
        if topic_name in self._topics:
            raise ChannelError(f"Already joined {topic_name}")

        topic = Topic(self, topic_name)
        self._topics[topic_name] = topic

        ref = self.next_ref()
        reply = asyncio.get_running_loop().create_future()
        self._pending[ref] = reply

        try:
            await self.push(topic_name, PHX_JOIN, {}, ref=ref)
            payload = await asyncio.wait_for(reply, self._join_timeout)
        except asyncio.TimeoutError as e:
            self._topics.pop(topic_name, None)
            raise ChannelError(f"Timed out joining {topic_name} after {self._join_timeout}s") from e
        except BaseException:
            self._topics.pop(topic_name, None)
            raise
        finally:
            self._pending.pop(ref, None)

        payload = payload if isinstance(payload, dict) else {}
        if payload.get('status') != 'ok':
            self._topics.pop(topic_name, None)
            raise JoinRejectedError(topic_name, payload.get('response'))

        logger.info(f"Joined {topic_name}")
        return topic

    async def _read_loop(self) -> None:
        error: Optional[BaseException] = None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(ChannelFrame.from_json(msg.data))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = RequestError("Channel socket error", cause=self._ws.exception())
                    logger.error(f"{error}")
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break
        except PastaError as e:
            logger.error(f"Channel reader stopped: {e}")
            error = e
        finally:
            self._shutdown(error)

    def _dispatch(self, frame: ChannelFrame) -> None:
        logger.debug(f"<- {frame.topic} {frame.event} ref={frame.ref}")

        if frame.event == PHX_REPLY and frame.ref in self._pending:
            reply = self._pending.pop(frame.ref)
            if not reply.done():
                reply.set_result(frame.payload)
            return

        topic = self._topics.get(frame.topic)
        if topic is None:
            logger.debug(f"Ignoring {frame.event} for unjoined topic {frame.topic}")
            return

        topic._deliver(frame.to_event())
        if frame.event == PHX_CLOSE:
            logger.info(f"Server closed {frame.topic}")
            self._topics.pop(frame.topic, None)
            topic._finish()
        elif frame.event == PHX_ERROR:
            logger.error(f"Server reported an error on {frame.topic}")
            self._topics.pop(frame.topic, None)
            topic._finish(ChannelError(f"Server reported an error on {frame.topic}"))

    async def _heartbeat_loop(self) -> None:
        while not self.closed:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                await self.push(PHOENIX_TOPIC, HEARTBEAT, {})
            except PastaError as e:
                logger.warning(f"Heartbeat failed: {e}")
                return

    def _shutdown(self, error: Optional[BaseException] = None) -> None:
        self.closed = True
        for reply in self._pending.values():
            if not reply.done():
                reply.set_exception(error or ChannelError("Connection closed while waiting for reply"))
        self._pending.clear()
        for topic in self._topics.values():
            topic._finish(error)
        self._topics.clear()

    async def close(self) -> None:
        """Close the socket and stop background tasks."""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
        self.closed = True
        await self._ws.close()
        if self._reader_task is not None:
            await self._reader_task
        self._shutdown()
        if self._http_session is not None:
            await self._http_session.close()
        logger.debug("Channel connection closed")

    async def __aenter__(self) -> 'Connection':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def connect(
    url: str,
    token: Optional[str],
    *,
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    join_timeout: float = JOIN_TIMEOUT_SECONDS,
) -> Connection:
    """
    Open a channel connection.

    Args:
        url: Socket URL (e.g., "ws://localhost:4000/socket")
        token: Bearer token passed as the `token` query parameter

    Raises:
        RequestError: If the websocket handshake fails
    """
    params = {'vsn': PROTOCOL_VSN}
    if token:
        params['token'] = token

    session = aiohttp.ClientSession()
    try:
        ws = await session.ws_connect(f"{url.rstrip('/')}/websocket", params=params)
    except aiohttp.ClientError as e:
        await session.close()
        raise RequestError(f"Cannot connect to {url}", cause=e) from e

    logger.info(f"Connected to {url}")
    connection = Connection(
        ws,
        session,
        heartbeat_interval=heartbeat_interval,
        join_timeout=join_timeout,
    )
    connection.start()
    return connection
