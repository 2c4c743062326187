"""Login handshake: verify the stored token, prompt for a new one when rejected."""

import sys
from pathlib import Path
from typing import Callable

from prompt_toolkit import prompt

from copypasta.api_client import PastaClient
from copypasta.config import Config
from copypasta.constants import LOGIN_INSTRUCTIONS, STYLE, TOKEN_PROMPT_TEXT
from copypasta.exceptions import AuthChallenge, LoginAbortedError, NoConfigFoundError
from copypasta.logging_config import get_logger

logger = get_logger(__name__)

TokenPrompt = Callable[[str], str]


def prompt_for_token(login_url: str) -> str:
    """
    Show the login URL and read the token the user pastes back.

    Args:
        login_url: URL from the server's auth challenge

    Returns:
        Raw token text

    Raises:
        LoginAbortedError: If input ends before a token is entered
    """
    print(LOGIN_INSTRUCTIONS.format(login_url=login_url), file=sys.stderr)
    try:
        return prompt([("class:prompt", TOKEN_PROMPT_TEXT)], style=STYLE)
    except EOFError as e:
        logger.debug("Token prompt closed without input")
        raise LoginAbortedError(login_url) from e


def verify_login(client: PastaClient, prompt_token: TokenPrompt = prompt_for_token) -> bool:
    """
    Make sure the client holds a valid token.

    On an auth challenge the user is prompted once for a token, which is
    installed for the current host and checked again. A second rejection
    propagates.

    Args:
        client: Client to verify
        prompt_token: Callable receiving the login URL and returning a token

    Returns:
        True if new credentials were installed and need persisting
    """
    try:
        client.authenticate()
        logger.debug("Login successful, token not updated")
        return False
    except AuthChallenge as challenge:
        logger.debug("User not logged in, prompting for token")
        token = prompt_token(challenge.login_url).strip()
        host = client.config.get_host()

        try:
            user = client.complete_login(token, host)
        except Exception:
            logger.warning("Login failed")
            raise

        logger.debug("Login test successful")
        print(f"welcome, {user.username}!", file=sys.stderr)
        return True


def open_client(config_path: Path, prompt_token: TokenPrompt = prompt_for_token) -> PastaClient:
    """
    Build a client from an existing configuration and verify its token.

    Raises:
        NoConfigFoundError: If there is no configuration at config_path
    """
    config = Config.load(config_path)
    client = PastaClient(config)
    try:
        if verify_login(client, prompt_token):
            config.save()
    except Exception:
        client.close()
        raise
    return client


def login(config_path: Path, prompt_token: TokenPrompt = prompt_for_token) -> tuple[PastaClient, bool]:
    """
    Log in, creating a configuration when none exists.

    Returns:
        Tuple of (client, already_configured)
    """
    try:
        return open_client(config_path, prompt_token), True
    except NoConfigFoundError:
        logger.debug("No configuration found, creating one")

    config = Config(config_path)
    client = PastaClient(config)
    try:
        verify_login(client, prompt_token)
        config.save()
    except Exception:
        client.close()
        raise
    return client, False
