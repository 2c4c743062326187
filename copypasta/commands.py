"""Command handler functions for CLI operations."""

import asyncio
import shutil
import sys
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional, TextIO

from copypasta.api_client import PastaClient
from copypasta.auth import TokenPrompt, login, open_client, prompt_for_token
from copypasta.logging_config import get_logger
from copypasta.models import (
    ConsumeCommand,
    DefaultCommand,
    ListCommand,
    LoginCommand,
    ProduceCommand,
)
from copypasta.streams import consume, produce
from copypasta.utils import format_file_size, format_listing_line

logger = get_logger(__name__)


def handle_login(cmd: LoginCommand, prompt_token: TokenPrompt = prompt_for_token) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with config path
        prompt_token: Token prompt, injectable for testing

    Returns:
        Status message
    """
    client, already_configured = login(cmd.config_path, prompt_token)
    client.close()
    if already_configured:
        return "You are already logged in"
    return "You are now logged in"



@contextmanager
def _client_for(config_path, client: Optional[PastaClient]) -> Iterator[PastaClient]:
    """Yield the injected client, or open one from config_path and close it afterwards."""
    if client is not None:
        yield client
        return

    client = open_client(config_path)
    try:
        yield client
    finally:
        client.close()


def handle_list(cmd: ListCommand, client: Optional[PastaClient] = None, width: Optional[int] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand with config path
        client: Optional PastaClient for dependency injection (testing)
        width: Terminal width; detected when omitted

    Returns:
        One line per pasta
    """
    if width is None:
        width = shutil.get_terminal_size((80, 24)).columns

    with _client_for(cmd.config_path, client) as client:
        pastas = client.list_pastas()

    logger.debug(f"Listing {len(pastas)} pasta(s)")
    return '\n'.join(format_listing_line(p.id, p.content, width) for p in pastas)


def handle_default(
    cmd: DefaultCommand,
    client: Optional[PastaClient] = None,
    stdin: Optional[TextIO] = None,
) -> Optional[str]:
    """
    Handle the default mode: print the latest pasta when stdin is a
    terminal, otherwise store stdin as a new pasta.

    Returns:
        Latest pasta content, or None after storing input
    """
    if stdin is None:
        stdin = sys.stdin

    with _client_for(cmd.config_path, client) as client:
        if stdin.isatty():
            return client.latest().content

        content = stdin.read()
        client.create_pasta(content)
    return None


def handle_produce(
    cmd: ProduceCommand,
    client: Optional[PastaClient] = None,
    source: Optional[BinaryIO] = None,
) -> None:
    """
    Handle 'produce' command: allocate a stream and send stdin through it.

    The stream name is printed on stderr so it can be handed to the consumer.
    """
    if source is None:
        source = sys.stdin.buffer

    with _client_for(cmd.config_path, client) as client:
        stream_name = client.create_stream()
        print(f"Stream: {stream_name}", file=sys.stderr)

        config = client.config
        producer = asyncio.run(produce(
            client.get_socket_url(),
            client.get_token(),
            stream_name,
            source,
            heartbeat_interval=config.get_heartbeat_interval(),
            join_timeout=config.get_join_timeout(),
        ))

    logger.info(f"Produced {format_file_size(producer.bytes_sent)} on {stream_name}")
    print("Done producing", file=sys.stderr)


def handle_consume(
    cmd: ConsumeCommand,
    client: Optional[PastaClient] = None,
    sink: Optional[BinaryIO] = None,
) -> None:
    """
    Handle 'consume' command: write the named stream to stdout.
    """
    if sink is None:
        sink = sys.stdout.buffer

    with _client_for(cmd.config_path, client) as client:
        config = client.config
        consumer = asyncio.run(consume(
            client.get_socket_url(),
            client.get_token(),
            cmd.stream_name,
            sink,
            heartbeat_interval=config.get_heartbeat_interval(),
            join_timeout=config.get_join_timeout(),
        ))

    logger.info(f"Consumed {format_file_size(consumer.bytes_received)} from {cmd.stream_name}")
    print("Done consuming", file=sys.stderr)
