"""HTTP client for the pasta REST API."""

import uuid
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from copypasta.config import Config, Credentials
from copypasta.exceptions import AuthChallenge, RequestError, ServerError
from copypasta.logging_config import get_logger
from copypasta.schemas import (
    CreatePastaRequest,
    CreateStreamResponse,
    LoginResponse,
    Pasta,
    UserInfo,
)

logger = get_logger(__name__)

ModelT = TypeVar('ModelT', bound=BaseModel)

_PASTA_LIST = TypeAdapter(list[Pasta])


class PastaClient:
    """
    HTTP client for the pasta API.

    Every request carries the bearer token when one is installed. Responses
    collapse to three outcomes: success, AuthChallenge (403 with a login URL)
    or ServerError. Transport failures become RequestError. Nothing is retried.
    """

    def __init__(self, config: Config):
        """
        Initialize pasta client.

        Args:
            config: Configuration instance holding host, scheme and credentials
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized PastaClient [base_url={config.get_base_url()}]")

    def _auth_headers(self) -> dict:
        token = self.config.get_token()
        if not token:
            return {}
        return {'Authorization': f'Bearer {token}'}

    def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with the bearer token attached.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response with a success status

        Raises:
            AuthChallenge: On 403 with a login URL
            ServerError: On any other non-success status
            RequestError: If the request fails below HTTP
        """
        self.request_id = str(uuid.uuid4())
        headers = kwargs.pop('headers', {})
        headers.update(self._auth_headers())
        headers['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        try:
            response = self.session.request(method, endpoint, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {endpoint} error={e!r} [request_id={self.request_id}]")
            raise RequestError(f"{method} {endpoint} failed", cause=e) from e

        logger.debug(
            f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
        )
        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        if response.status_code == 403:
            try:
                login = LoginResponse.model_validate(response.json())
            except (ValueError, ValidationError):
                logger.warning(f"403 without login URL [request_id={self.request_id}]")
                raise ServerError(403, "forbidden without login URL")
            logger.info(f"Token rejected, login required [request_id={self.request_id}]")
            raise AuthChallenge(login.login_url)

        logger.warning(f"Server error: status={response.status_code} [request_id={self.request_id}]")
        raise ServerError(response.status_code, response.text or None)

    def _parse(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ServerError(response.status_code, f"malformed {model.__name__} body: {e}") from e

    def authenticate(self) -> UserInfo:
        """
        Check the installed token against the server.

        Returns:
            Identity of the logged-in user

        Raises:
            AuthChallenge: If the token is missing, invalid or expired
        """
        response = self._request('GET', '/api')
        user = self._parse(response, UserInfo)
        logger.info(f"Authenticated as {user.username}")
        return user

    def complete_login(self, token: str, host: str) -> UserInfo:
        """
        Install a new token/host pair and authenticate with it.

        The credentials stay installed even if authentication fails; the
        caller persists them on success.

        Args:
            token: Token pasted by the user
            host: Host the token was issued for

        Returns:
            Identity of the logged-in user
        """
        self.config.set_credentials(Credentials(token=token, host=host))
        self.session.base_url = self.config.get_base_url()
        logger.debug(f"Installed credentials for host {host}")
        return self.authenticate()

    def latest(self) -> Pasta:
        """Fetch the most recent pasta."""
        response = self._request('GET', '/api/latest')
        return self._parse(response, Pasta)

    def list_pastas(self) -> list[Pasta]:
        """Fetch all pastas of the logged-in user."""
        response = self._request('GET', '/api/list')
        try:
            return _PASTA_LIST.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise ServerError(response.status_code, f"malformed pasta list: {e}") from e

    def create_pasta(self, content: str) -> None:
        """
        Store a new pasta.

        Args:
            content: Snippet text
        """
        body = CreatePastaRequest(content=content)
        self._request('POST', '/api/create', json=body.model_dump())
        logger.info(f"Created pasta ({len(content)} chars)")

    def create_stream(self) -> str:
        """
        Allocate a new server-side stream.

        Returns:
            Stream name to share with the consumer
        """
        response = self._request('GET', '/api/stream')
        stream = self._parse(response, CreateStreamResponse)
        logger.info(f"Created stream {stream.name}")
        return stream.name

    def get_socket_url(self) -> str:
        """Channel socket URL for the current host."""
        return self.config.get_socket_url()

    def get_token(self) -> Optional[str]:
        return self.config.get_token()

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
