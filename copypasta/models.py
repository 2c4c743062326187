"""Command request data types for the CLI."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal


@dataclass(frozen=True)
class LoginCommand:
    """Log in, creating a configuration if needed."""

    config_path: Path
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class ListCommand:
    """List pastas of the logged-in user."""

    config_path: Path
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class ProduceCommand:
    """Stream stdin through a new server-side stream."""

    config_path: Path
    command: Literal["produce"] = "produce"


@dataclass(frozen=True)
class ConsumeCommand:
    """Write a stream created by another user to stdout."""

    config_path: Path
    stream_name: str
    command: Literal["consume"] = "consume"


@dataclass(frozen=True)
class DefaultCommand:
    """Print the latest pasta, or store piped stdin as a new one."""

    config_path: Path
    command: Literal["default"] = "default"


CommandRequest = (
    LoginCommand
    | ListCommand
    | ProduceCommand
    | ConsumeCommand
    | DefaultCommand
)
