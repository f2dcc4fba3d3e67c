"""Base provider interface for the ledger REST API."""

from abc import ABC, abstractmethod
from typing import Any, Optional, TypeVar, Generic, Union
from urllib.parse import quote
import logging

from ..exceptions import ProtocolError

__all__ = ["BaseProvider", "T", "api_path", "response_data"]

T = TypeVar("T")
logger = logging.getLogger(__name__)


def api_path(template: str, **params: Any) -> str:
    """
    Fill a path template, percent-encoding every parameter.

    Args:
        template: Path with ``{name}`` placeholders
        **params: Values substituted into the placeholders

    Returns:
        Relative request path
    """
    return template.format(**{name: quote(str(value), safe="") for name, value in params.items()})


class BaseProvider(ABC, Generic[T]):
    """
    Abstract base provider for ledger connections.

    This class defines the interface that all providers must implement.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        token: Union[str, bool, None] = None,
    ) -> T:
        """
        Make a request to the provider.

        Args:
            method: HTTP method
            path: Path relative to the provider endpoint
            body: Optional JSON body
            token: ``None`` for the cached bearer token, ``False`` for an
                unauthenticated request, or an explicit bearer token

        Returns:
            Response data from the provider

        Raises:
            ProviderError: If the request fails
        """
        raise NotImplementedError

    @abstractmethod
    async def connect(self) -> None:
        """
        Connect to the provider.

        Raises:
            ProviderError: If connection fails
        """
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Disconnect from the provider.
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if provider is connected.

        Returns:
            True if connected, False otherwise
        """
        raise NotImplementedError

    async def __aenter__(self) -> "BaseProvider[T]":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def response_data(response: Any, context: str) -> Any:
    """Unwrap the ``data`` member of a ledger response envelope."""
    if not isinstance(response, dict) or "data" not in response:
        raise ProtocolError(f"Unexpected response for {context}", data=response)
    return response["data"]
