"""Tests for CLI command handlers."""

import io
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

import copypasta.commands as commands
from copypasta.api_client import PastaClient
from copypasta.commands import (
    handle_consume,
    handle_default,
    handle_list,
    handle_login,
    handle_produce,
)
from copypasta.exceptions import ServerError
from copypasta.models import (
    ConsumeCommand,
    DefaultCommand,
    ListCommand,
    LoginCommand,
    ProduceCommand,
)
from copypasta.schemas import Pasta

CONFIG = Path('.pastaconfig')


def make_pasta(content, id):
    return Pasta(content=content, id=id, perma_id=f'p{id}', inserted_at='2024-01-01T00:00:00')


class FakeStdin(io.StringIO):
    def __init__(self, text='', tty=False):
        super().__init__(text)
        self.tty = tty

    def isatty(self):
        return self.tty


@pytest.fixture
def mock_client(temp_config):
    client = Mock(spec=PastaClient)
    client.config = temp_config
    client.get_socket_url.return_value = 'ws://test:4000/socket'
    client.get_token.return_value = 'tok'
    return client


def test_handle_login_new(monkeypatch):
    client = Mock(spec=PastaClient)
    monkeypatch.setattr(commands, 'login', lambda path, prompt: (client, False))

    result = handle_login(LoginCommand(config_path=CONFIG), prompt_token=Mock())

    assert result == "You are now logged in"
    client.close.assert_called_once()


def test_handle_login_already(monkeypatch):
    monkeypatch.setattr(commands, 'login', lambda path, prompt: (Mock(spec=PastaClient), True))

    assert handle_login(LoginCommand(config_path=CONFIG), prompt_token=Mock()) == "You are already logged in"


def test_handle_list(mock_client):
    """Test one padded line per pasta with newlines made visible."""
    mock_client.list_pastas.return_value = [
        make_pasta(content='first\nline', id=1),
        make_pasta(content='second', id=42),
    ]

    result = handle_list(ListCommand(config_path=CONFIG), client=mock_client, width=80)

    assert result.splitlines() == ['00001 first\\nline', '00042 second']


def test_handle_list_truncates_to_width(mock_client):
    mock_client.list_pastas.return_value = [make_pasta(content='x' * 200, id=3)]

    result = handle_list(ListCommand(config_path=CONFIG), client=mock_client, width=20)

    assert result == '00003 ' + 'x' * 14
    assert len(result) == 20


def test_handle_default_tty_prints_latest(mock_client):
    mock_client.latest.return_value = make_pasta(content='hello', id=7)

    result = handle_default(DefaultCommand(config_path=CONFIG), client=mock_client, stdin=FakeStdin(tty=True))

    assert result == 'hello'
    mock_client.create_pasta.assert_not_called()


def test_handle_default_pipe_creates_pasta(mock_client):
    result = handle_default(
        DefaultCommand(config_path=CONFIG), client=mock_client, stdin=FakeStdin('piped\ntext\n'),
    )

    assert result is None
    mock_client.create_pasta.assert_called_once_with('piped\ntext\n')
    mock_client.latest.assert_not_called()


def test_handle_produce(mock_client, monkeypatch, capsys):
    """Test the stream name is announced and the producer gets the configured socket."""
    mock_client.create_stream.return_value = 'abc123'
    calls = []

    async def fake_produce(socket_url, token, stream_name, source, **kwargs):
        calls.append((socket_url, token, stream_name, source, kwargs))
        return SimpleNamespace(bytes_sent=5)

    monkeypatch.setattr(commands, 'produce', fake_produce)
    source = io.BytesIO(b'hello')

    assert handle_produce(ProduceCommand(config_path=CONFIG), client=mock_client, source=source) is None

    socket_url, token, stream_name, passed_source, kwargs = calls[0]
    assert (socket_url, token, stream_name) == ('ws://test:4000/socket', 'tok', 'abc123')
    assert passed_source is source
    assert kwargs == {'heartbeat_interval': 30, 'join_timeout': 10}
    err = capsys.readouterr().err
    assert 'Stream: abc123' in err
    assert 'Done producing' in err


def test_handle_consume(mock_client, monkeypatch, capsys):
    calls = []

    async def fake_consume(socket_url, token, stream_name, sink, **kwargs):
        calls.append(stream_name)
        sink.write(b'data')
        return SimpleNamespace(bytes_received=4)

    monkeypatch.setattr(commands, 'consume', fake_consume)
    sink = io.BytesIO()

    handle_consume(ConsumeCommand(config_path=CONFIG, stream_name='abc123'), client=mock_client, sink=sink)

    assert calls == ['abc123']
    assert sink.getvalue() == b'data'
    assert 'Done consuming' in capsys.readouterr().err
    mock_client.create_stream.assert_not_called()


def test_opened_client_is_closed(mock_client, monkeypatch):
    """Test a handler closes the client it opened itself."""
    opened = []

    def fake_open_client(path):
        opened.append(path)
        return mock_client

    monkeypatch.setattr(commands, 'open_client', fake_open_client)
    mock_client.list_pastas.return_value = [make_pasta(content='one', id=1)]

    assert handle_list(ListCommand(config_path=CONFIG), width=80) == '00001 one'

    assert opened == [CONFIG]
    mock_client.close.assert_called_once()


def test_opened_client_closed_on_failure(mock_client, monkeypatch):
    monkeypatch.setattr(commands, 'open_client', lambda path: mock_client)
    mock_client.create_stream.side_effect = ServerError(500)

    with pytest.raises(ServerError):
        handle_produce(ProduceCommand(config_path=CONFIG), source=io.BytesIO(b''))

    mock_client.close.assert_called_once()


def test_injected_client_left_open(mock_client):
    mock_client.latest.return_value = make_pasta(content='hello', id=7)

    handle_default(DefaultCommand(config_path=CONFIG), client=mock_client, stdin=FakeStdin(tty=True))

    mock_client.close.assert_not_called()
