"""Exception classes raised by the Copypasta client."""

from typing import Any, Optional


class PastaError(Exception):
    """
    Base exception class for all Copypasta client errors.
    """
    pass


class NoConfigFoundError(PastaError):
    """
    Raised when no persisted credentials exist at the configured path.
    """

    def __init__(self, path):
        self.path = path
        super().__init__(f"No configuration found at {path}")


class NoTokenError(PastaError):
    """
    Raised when credentials are needed but none are installed.
    """

    def __init__(self, message: str = "No token installed"):
        super().__init__(message)


class AuthChallenge(PastaError):
    """
    Raised when the server rejects the bearer token.

    Carries the URL the user must visit to obtain a fresh token.
    """

    def __init__(self, login_url: str):
        self.login_url = login_url
        super().__init__(f"Not logged in, visit {login_url}")


class ServerError(PastaError):
    """
    Raised on any HTTP status other than success or an auth challenge.
    """

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        message = f"Server returned status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RequestError(PastaError):
    """
    Raised when a request fails below HTTP (connection, timeout, websocket).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ChannelError(PastaError):
    """
    Raised when the channel connection cannot serve a topic.
    """
    pass


class JoinRejectedError(ChannelError):
    """
    Raised when the server answers a topic join with an error reply.
    """

    def __init__(self, topic: str, response: Any = None):
        self.topic = topic
        self.response = response
        super().__init__(f"Join of {topic} rejected: {response!r}")


class FatalProtocolError(PastaError):
    """
    Raised when a streaming payload violates the wire contract.

    The transfer is aborted; there is no retry.
    """
    pass


class LoginAbortedError(PastaError):
    """
    Raised when the user closes the token prompt without entering a token.
    """

    def __init__(self, login_url: str):
        self.login_url = login_url
        super().__init__(f"Login aborted, no token entered (visit {login_url} to get one)")
