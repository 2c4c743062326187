"""Pull-based binary streaming over a channel topic.

The producer answers each `bytes_requested` with exactly one `bytes` event
(or a final `done`), and the consumer sends one `request_bytes` per `bytes`
it receives, so at most one chunk is ever in flight per direction.

Local stdin reads happen on a daemon thread and stdout writes in a worker
thread; both talk to the state machine through bounded queues, so the
event loop delivering channel frames never blocks on local I/O.
"""

import asyncio
import concurrent.futures
import threading
from contextlib import aclosing
from enum import Enum
from typing import Awaitable, BinaryIO, Callable, Optional

from copypasta.channel import Connection, Topic, connect
from copypasta.constants import (
    BYTES,
    BYTES_REQUESTED,
    CHUNK_SIZE_BYTES,
    CONSUMER_JOIN,
    DONE,
    HEARTBEAT_INTERVAL_SECONDS,
    JOIN_TIMEOUT_SECONDS,
    NO_MORE_DATA,
    PRODUCER_JOIN,
    REQUEST_BYTES,
    WRITE_QUEUE_DEPTH,
)
from copypasta.exceptions import ChannelError
from copypasta.logging_config import get_logger
from copypasta.protocol import ChannelEvent, decode_chunk, done_payload, encode_chunk, topic_for_stream
from copypasta.utils import format_file_size

logger = get_logger(__name__)


class ProducerState(Enum):
    READY_TO_PRODUCE = "ready_to_produce"
    DONE = "done"


class ConsumerState(Enum):
    CONSUMING = "consuming"
    DONE = "done"


class ChunkReader:
    """
    Reads local input on a daemon thread into a bounded queue.

    A daemon thread is used because a read from an interactive stdin can
    block forever; it must not keep the process alive once the transfer
    has ended.
    """

    def __init__(self, source: BinaryIO, chunk_size: int = CHUNK_SIZE_BYTES, depth: int = 1):
        self._source = source
        self._chunk_size = chunk_size
        self._depth = depth
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._depth)
        self._thread = threading.Thread(target=self._pump, name="copypasta-reader", daemon=True)
        self._thread.start()

    def _pump(self) -> None:
        while not self._stopped.is_set():
            try:
                chunk = self._source.read(self._chunk_size)
            except (OSError, ValueError) as e:
                self._put(e)
                return
            if not self._put(chunk) or not chunk:
                return

    def _put(self, item) -> bool:
        try:
            future = asyncio.run_coroutine_threadsafe(self._queue.put(item), self._loop)
            future.result()
        except (RuntimeError, concurrent.futures.CancelledError):
            # event loop closed or shutting down
            return False
        return True

    async def next_chunk(self) -> bytes:
        """
        Next chunk of input; empty bytes at end of input.

        Raises:
            OSError: If reading the input failed
        """
        item = await self._queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self._stopped.set()
        # free a slot so a pending put returns and the thread sees the stop flag
        while self._queue is not None and not self._queue.empty():
            self._queue.get_nowait()


class ChunkWriter:
    """
    Writes chunks to local output from a bounded queue, in arrival order.

    A failed write is remembered and raised from the next write() or from
    close(); later chunks are discarded.
    """

    def __init__(self, sink: BinaryIO, depth: int = WRITE_QUEUE_DEPTH):
        self._sink = sink
        self._depth = depth
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[OSError] = None

    def start(self) -> None:
        self._queue = asyncio.Queue(maxsize=self._depth)
        self._task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                break
            if self._error is not None:
                continue
            try:
                await asyncio.to_thread(self._sink.write, chunk)
            except OSError as e:
                self._error = e
        if self._error is None:
            try:
                await asyncio.to_thread(self._sink.flush)
            except OSError as e:
                self._error = e

    async def write(self, chunk: bytes) -> None:
        if self._error is not None:
            raise self._error
        await self._queue.put(chunk)

    async def close(self) -> None:
        """Wait until every queued chunk is written and flushed."""
        await self._queue.put(None)
        await self._task
        if self._error is not None:
            raise self._error

    def abort(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()


class Producer:
    """Streams local input to a topic, one chunk per `bytes_requested`."""

    def __init__(self, topic: Topic, source: BinaryIO, chunk_size: int = CHUNK_SIZE_BYTES):
        self.topic = topic
        self.state = ProducerState.READY_TO_PRODUCE
        self.chunks_sent = 0
        self.bytes_sent = 0
        self._reader = ChunkReader(source, chunk_size)

    async def run(self) -> ProducerState:
        """
        Announce the producer role and serve pull requests until done.

        Returns:
            Final state; READY_TO_PRODUCE means the channel ended first
        """
        self._reader.start()
        try:
            await self.topic.send(PRODUCER_JOIN, {})
            async with aclosing(self.topic.events()) as events:
                async for event in events:
                    self.state = await self.handle(event)
                    if self.state is ProducerState.DONE:
                        break
        finally:
            self._reader.close()

        logger.info(
            f"Producer finished in state {self.state.value}: "
            f"{self.chunks_sent} chunk(s), {format_file_size(self.bytes_sent)}"
        )
        return self.state

    async def handle(self, event: ChannelEvent) -> ProducerState:
        if self.state is not ProducerState.READY_TO_PRODUCE or not event.is_custom(BYTES_REQUESTED):
            return self.state

        try:
            chunk = await self._reader.next_chunk()
        except (OSError, ValueError) as e:
            logger.error(f"Reading input failed: {e}")
            await self.topic.send(DONE, done_payload(error=True))
            return ProducerState.DONE

        if not chunk:
            logger.debug("End of input")
            await self.topic.send(DONE, done_payload())
            return ProducerState.DONE

        await self.topic.send(BYTES, encode_chunk(chunk))
        self.chunks_sent += 1
        self.bytes_sent += len(chunk)
        logger.debug(f"Sent chunk {self.chunks_sent} ({len(chunk)} bytes)")
        return ProducerState.READY_TO_PRODUCE


class Consumer:
    """Pulls chunks from a topic and writes them to local output."""

    def __init__(self, topic: Topic, sink: BinaryIO):
        self.topic = topic
        self.state = ConsumerState.CONSUMING
        self.chunks_received = 0
        self.bytes_received = 0
        self._writer = ChunkWriter(sink)

    async def run(self) -> ConsumerState:
        """
        Announce the consumer role, prime the pull loop and consume until done.

        Raises:
            FatalProtocolError: If a `bytes` payload is malformed
        """
        self._writer.start()
        try:
            await self.topic.send(CONSUMER_JOIN, {})
            await self.topic.send(REQUEST_BYTES, {})
            async with aclosing(self.topic.events()) as events:
                async for event in events:
                    self.state = await self.handle(event)
                    if self.state is ConsumerState.DONE:
                        break
        except BaseException:
            self._writer.abort()
            raise

        await self._writer.close()
        logger.info(
            f"Consumer finished in state {self.state.value}: "
            f"{self.chunks_received} chunk(s), {format_file_size(self.bytes_received)}"
        )
        return self.state

    async def handle(self, event: ChannelEvent) -> ConsumerState:
        if self.state is not ConsumerState.CONSUMING:
            return self.state

        if event.is_custom(BYTES):
            chunk = decode_chunk(event.payload)
            await self._writer.write(chunk)
            self.chunks_received += 1
            self.bytes_received += len(chunk)
            await self.topic.send(REQUEST_BYTES, {})
            return ConsumerState.CONSUMING

        if event.is_custom(NO_MORE_DATA):
            logger.debug("No more data")
            return ConsumerState.DONE

        return self.state


Connector = Callable[..., Awaitable[Connection]]


async def produce(
    socket_url: str,
    token: Optional[str],
    stream_name: str,
    source: BinaryIO,
    *,
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    join_timeout: float = JOIN_TIMEOUT_SECONDS,
    connector: Connector = connect,
) -> Producer:
    """
    Connect, join the stream's topic and run a producer to completion.

    Raises:
        ChannelError: If the channel ended before the producer was done
    """
    connection = await connector(
        socket_url, token, heartbeat_interval=heartbeat_interval, join_timeout=join_timeout
    )
    async with connection:
        topic = await connection.join(topic_for_stream(stream_name))
        producer = Producer(topic, source)
        state = await producer.run()

    if state is not ProducerState.DONE:
        raise ChannelError(f"Channel closed before stream {stream_name} was fully sent")
    return producer


async def consume(
    socket_url: str,
    token: Optional[str],
    stream_name: str,
    sink: BinaryIO,
    *,
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    join_timeout: float = JOIN_TIMEOUT_SECONDS,
    connector: Connector = connect,
) -> Consumer:
    """
    Connect, join the stream's topic and run a consumer to completion.

    Raises:
        ChannelError: If the channel ended before `no_more_data` arrived
    """
    connection = await connector(
        socket_url, token, heartbeat_interval=heartbeat_interval, join_timeout=join_timeout
    )
    async with connection:
        topic = await connection.join(topic_for_stream(stream_name))
        consumer = Consumer(topic, sink)
        state = await consumer.run()

    if state is not ConsumerState.DONE:
        raise ChannelError(f"Channel closed before stream {stream_name} was fully received")
    return consumer
