"""HTTP provider implementation for the ledger REST API."""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import urljoin

import aiohttp
from aiohttp import ClientTimeout, ClientSession

from ..constants import (
    DEFAULT_ENDPOINT,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_DELAY,
    USER_AGENT,
)
from ..exceptions import (
    NetworkError,
    APIError,
    ProtocolError,
    RateLimitError,
    TimeoutError,
    ValidationError,
)
from ..providers.base import BaseProvider

if TYPE_CHECKING:
    from ..auth import DeviceAuth

__all__ = ["HTTPProvider"]

logger = logging.getLogger(__name__)


class HTTPProvider(BaseProvider[Any]):
    """
    HTTP provider for the ledger REST API.

    Sends JSON bodies, attaches bearer tokens obtained through a
    ``DeviceAuth`` and retries idempotent requests on transport failures.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[ClientSession] = None,
        headers: Optional[dict[str, str]] = None,
        auth: Optional["DeviceAuth"] = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        """
        Initialize HTTP provider.

        Args:
            endpoint: API base URL
            timeout: Request timeout in seconds
            session: Existing aiohttp session to use
            headers: Additional headers for requests
            auth: Source of bearer tokens for authenticated requests
            max_retries: Attempts made for GET requests
            retry_delay: Base delay of the exponential backoff
        """
        super().__init__()

        self.endpoint = endpoint if endpoint.endswith("/") else f"{endpoint}/"
        self.timeout = ClientTimeout(total=timeout)
        self.auth = auth
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

        self.headers = {
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            **(headers or {}),
        }

        self._session = session
        self._owns_session = session is None
        self._connected = False

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self._session is None:
            self._session = ClientSession(
                timeout=self.timeout,
                headers=self.headers,
            )

        self._connected = True
        self._logger.info(f"Connected to {self.endpoint}")

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

        self._connected = False
        self._logger.info("Disconnected from provider")

    @property
    def is_connected(self) -> bool:
        return (
            self._connected
            and self._session is not None
            and not self._session.closed
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        token: Union[str, bool, None] = None,
    ) -> Any:
        """
        Make HTTP request to API.

        Args:
            method: HTTP method
            path: Path relative to the endpoint
            body: JSON body
            token: ``None`` for the cached bearer token, ``False`` for no
                authorization header, or an explicit bearer token

        Returns:
            Parsed JSON response, response text, or None for an empty body

        Raises:
            APIError: On a 4xx response, carrying status and parsed details
            NetworkError: If the request keeps failing at transport level
            RateLimitError: If rate limited
            TimeoutError: If request times out
        """
        if not self.is_connected:
            await self.connect()

        if token is None:
            token = await self._bearer_token()

        url = urljoin(self.endpoint, path.lstrip("/"))
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        data = json.dumps(body) if body is not None else None

        # Only requests without side effects are repeated
        method = method.upper()
        attempts = self.max_retries if method == "GET" else 1

        for attempt in range(attempts):
            try:
                return await self._make_request(method, url, data, headers)
            except NetworkError:
                if attempt == attempts - 1:
                    raise

            # Exponential backoff
            await asyncio.sleep(self.retry_delay * (2 ** attempt))

    async def _bearer_token(self) -> str:
        if self.auth is None:
            raise ValidationError("Pairing not found")
        return await self.auth.get_token(self)

    async def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[str],
        headers: dict[str, str],
    ) -> Any:
        """Make actual HTTP request."""
        try:
            self._logger.debug(f"Request: {method} {url}")

            async with self._session.request(method, url, data=data, headers=headers) as response:
                self._logger.debug(f"Response: {response.status}")
                text = await response.text()

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        "Rate limit exceeded",
                        retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
                    )

                if response.status >= 500:
                    raise NetworkError(
                        f"Server error {response.status}",
                        code=response.status,
                        data=self._error_details(text),
                    )

                if response.status >= 400:
                    raise APIError(
                        f"API Error: {response.status}",
                        code=response.status,
                        data=self._error_details(text),
                    )

                return self._parse_body(response.headers.get("Content-Type"), text)

        except asyncio.TimeoutError as e:
            raise TimeoutError("Request timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error: {e}") from e

    @staticmethod
    def _error_details(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError:
            return text

    @staticmethod
    def _parse_body(content_type: Optional[str], text: str) -> Any:
        """Parse response based on content type."""
        if not text:
            return None
        if content_type and "json" in content_type:
            try:
                return json.loads(text)
            except ValueError as e:
                raise ProtocolError(f"Invalid JSON response: {e}") from e
        return text

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(endpoint={self.endpoint!r})"
