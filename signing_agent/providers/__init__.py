"""Provider implementations for the ledger REST API."""

from ..providers.base import BaseProvider, api_path, response_data
from ..providers.http import HTTPProvider

__all__ = [
    "BaseProvider",
    "HTTPProvider",
    "api_path",
    "response_data",
]
