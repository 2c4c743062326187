"""Shared pytest fixtures for all tests."""

import asyncio
import functools
import json
from types import SimpleNamespace

import aiohttp
import httpx
import pytest

from copypasta.config import Config
from copypasta.protocol import ChannelEvent

VALID_TOKEN = 'good-token'
LOGIN_URL = 'https://x/auth'


@pytest.fixture
def config_path(tmp_path):
    """Path of a not-yet-existing credential file."""
    return tmp_path / '.pastaconfig'


@pytest.fixture
def temp_config(config_path):
    """Config instance holding a valid token."""
    return Config(config_path, {'token': VALID_TOKEN, 'host': 'test:4000'})


def pasta_api_handler(request):
    """Mock pasta server: GET /api accepts only VALID_TOKEN."""
    authorized = request.headers.get('Authorization') == f'Bearer {VALID_TOKEN}'
    if not authorized:
        return httpx.Response(403, json={'login_url': LOGIN_URL})

    if request.url.path == '/api':
        return httpx.Response(200, json={'username': 'alice'})
    elif request.url.path == '/api/stream':
        return httpx.Response(200, json={'name': 'abc123'})
    elif request.url.path == '/api/latest':
        return httpx.Response(200, json={
            'content': 'hello',
            'copied_count': 2,
            'perma_id': 'p1',
            'id': 7,
            'inserted_at': '2024-01-01T00:00:00',
        })
    elif request.url.path == '/api/list':
        return httpx.Response(200, json=[
            {'content': 'first\nline', 'copied_count': 0, 'perma_id': 'a', 'id': 1,
             'inserted_at': '2024-01-01T00:00:00'},
            {'content': 'second', 'copied_count': 1, 'perma_id': 'b', 'id': 2,
             'inserted_at': '2024-01-02T00:00:00'},
        ])
    elif request.url.path == '/api/create' and request.method == 'POST':
        return httpx.Response(201, json={})

    return httpx.Response(404)


@pytest.fixture
def mock_transport():
    """Mock transport backed by pasta_api_handler."""
    return httpx.MockTransport(pasta_api_handler)


@pytest.fixture
def patched_httpx(monkeypatch, mock_transport):
    """Make every httpx.Client created by the client use the mock transport."""
    monkeypatch.setattr(httpx, 'Client', functools.partial(httpx.Client, transport=mock_transport))
    return mock_transport


class FakeTopic:
    """In-memory topic: records sends, yields fed events."""

    def __init__(self, name='streams:test'):
        self.name = name
        self.sent = []
        self.on_send = None
        self._queue = asyncio.Queue()

    async def send(self, kind, payload):
        self.sent.append((kind, payload))
        if self.on_send is not None:
            self.on_send(kind, payload)

    def feed(self, kind, payload=None):
        self._queue.put_nowait(ChannelEvent(topic=self.name, kind=kind, payload=payload or {}))

    def close(self):
        self._queue.put_nowait(None)

    async def events(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item

    def kinds(self):
        return [kind for kind, _ in self.sent]


class StreamBroker:
    """Relays between a producer and a consumer topic the way the server does."""

    def __init__(self, producer_topic, consumer_topic):
        self.producer_topic = producer_topic
        self.consumer_topic = consumer_topic
        self.log = []
        producer_topic.on_send = self._from_producer
        consumer_topic.on_send = self._from_consumer

    def _from_consumer(self, kind, payload):
        self.log.append(('consumer', kind))
        if kind == 'request_bytes':
            self.producer_topic.feed('bytes_requested')

    def _from_producer(self, kind, payload):
        self.log.append(('producer', kind))
        if kind == 'bytes':
            self.consumer_topic.feed('bytes', payload)
        elif kind == 'done':
            self.consumer_topic.feed('no_more_data')


class FakeWebSocket:
    """Stands in for aiohttp's ClientWebSocketResponse; answers joins."""

    def __init__(self, join_status='ok'):
        self.join_status = join_status
        self.sent = []
        self.closed = False
        self._incoming = asyncio.Queue()

    async def send_str(self, data):
        if self.closed:
            raise ConnectionResetError("socket closed")
        frame = json.loads(data)
        self.sent.append(frame)
        if frame['event'] == 'phx_join' and self.join_status is not None:
            self.server_push(
                frame['topic'], 'phx_reply',
                {'status': self.join_status, 'response': {'reason': 'nope'} if self.join_status != 'ok' else {}},
                ref=frame['ref'],
            )

    def server_push(self, topic, event, payload=None, ref=None):
        self.server_raw(json.dumps({'topic': topic, 'event': event, 'payload': payload or {}, 'ref': ref}))

    def server_raw(self, data):
        self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data))

    def server_close(self):
        self._incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._incoming.get()
        if msg is None:
            raise StopAsyncIteration
        return msg

    async def close(self):
        self.closed = True
        self._incoming.put_nowait(None)

    def exception(self):
        return None

    def frames(self, event):
        return [f for f in self.sent if f['event'] == event]
