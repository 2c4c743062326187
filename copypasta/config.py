"""Credential store: token and host persisted as a JSON document."""

import json
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from copypasta.constants import (
    DEFAULT_HOST,
    DEFAULT_SCHEME,
    HEARTBEAT_INTERVAL_SECONDS,
    JOIN_TIMEOUT_SECONDS,
)
from copypasta.exceptions import NoConfigFoundError, NoTokenError
from copypasta.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Bearer token and the host it was issued for."""

    token: str
    host: str


class Config:
    """Manages client configuration and credentials stored in a JSON file."""

    def __init__(self, config_path: Path, data: Optional[dict] = None):
        """
        Initialize configuration without touching the filesystem.

        Args:
            config_path: Path of the credential file
            data: Stored values, merged over the defaults
        """
        self.config_path = Path(config_path)
        self.data = self.defaults()
        if data:
            self.data.update(data)

    @staticmethod
    def defaults() -> dict:
        """Default settings, read from the environment at construction time."""
        return {
            "host": os.environ.get("PASTA_HOST", DEFAULT_HOST),
            "scheme": os.environ.get("PASTA_SCHEME", DEFAULT_SCHEME),
            "timeout": 30,
            "join_timeout": JOIN_TIMEOUT_SECONDS,
            "heartbeat_interval": HEARTBEAT_INTERVAL_SECONDS,
        }

    @classmethod
    def load(cls, config_path: Path) -> 'Config':
        """
        Load configuration from an existing file.

        A corrupt file is copied aside to ``<name>.bak`` and reported as
        missing, so the caller falls back to a fresh login.

        Raises:
            NoConfigFoundError: If the file does not exist or cannot be parsed
        """
        config_path = Path(config_path)
        if not config_path.is_file():
            raise NoConfigFoundError(config_path)

        try:
            with open(config_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            cls._back_up_corrupt(config_path, str(e))
            raise NoConfigFoundError(config_path) from e

        if not isinstance(data, dict):
            cls._back_up_corrupt(config_path, f"expected a JSON object, got {type(data).__name__}")
            raise NoConfigFoundError(config_path)

        logger.debug(f"Loaded config from {config_path}")
        return cls(config_path, data)

    @staticmethod
    def _back_up_corrupt(config_path: Path, reason: str) -> None:
        backup_path = config_path.with_name(config_path.name + '.bak')
        shutil.copy(config_path, backup_path)
        logger.warning(f"Config file {config_path} is corrupt ({reason}), backed up to {backup_path}")

    def save(self) -> None:
        """
        Rewrite the whole configuration file.

        Raises:
            NoTokenError: If no credentials are installed
        """
        if not self.data.get('token'):
            raise NoTokenError("Refusing to save a configuration without a token")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.data, f, indent=2)
        logger.debug(f"Saved config to {self.config_path}")

    def get_credentials(self) -> Optional[Credentials]:
        """
        Get installed credentials.

        Returns:
            Credentials or None if no token is set
        """
        token = self.data.get('token')
        if not token:
            return None
        return Credentials(token=token, host=self.get_host())

    def set_credentials(self, credentials: Credentials) -> None:
        """
        Install credentials. Persisting is left to the caller.

        Args:
            credentials: New token and host
        """
        self.data['token'] = credentials.token
        self.data['host'] = credentials.host

    def get_token(self) -> Optional[str]:
        return self.data.get('token') or None

    def get_host(self) -> str:
        return self.data.get('host') or DEFAULT_HOST

    def get_scheme(self) -> str:
        return self.data.get('scheme') or DEFAULT_SCHEME

    def get_base_url(self) -> str:
        """
        Get API base URL.

        Returns:
            Base URL string (e.g., "http://localhost:4000")
        """
        return f"{self.get_scheme()}://{self.get_host()}"

    def get_socket_url(self) -> str:
        """
        Get channel socket URL derived from scheme and host.

        Returns:
            Socket URL string (e.g., "ws://localhost:4000/socket")
        """
        ws_scheme = "wss" if self.get_scheme() == "https" else "ws"
        return f"{ws_scheme}://{self.get_host()}/socket"

    def get_timeout(self) -> float:
        return self.data.get('timeout', 30)

    def get_join_timeout(self) -> float:
        return self.data.get('join_timeout', JOIN_TIMEOUT_SECONDS)

    def get_heartbeat_interval(self) -> float:
        return self.data.get('heartbeat_interval', HEARTBEAT_INTERVAL_SECONDS)
