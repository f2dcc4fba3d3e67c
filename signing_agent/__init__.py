"""
Signing Agent

Non-custodial signing agent for a forkid transaction ledger: derives child
keys from locally decrypted root keys, signs pending transactions and
follows them through co-signing rounds.
"""

from .client import SigningAgent
from .config import AgentConfig
from .constants import Network
from .exceptions import (
    SigningAgentError,
    CodecError,
    MnemonicError,
    DerivationError,
    CryptoError,
    DecryptionError,
    ValidationError,
    ProtocolError,
    TerminationError,
    ProviderError,
    APIError,
)
from .providers import HTTPProvider
from .crypto import PrivateKey, PublicKey, ExtendedKey
from .types import (
    Transaction,
    PendingTransaction,
    PendingSignature,
    ActivityResult,
)

__version__ = "1.0.0"

__all__ = [
    # Main client
    "SigningAgent",
    "AgentConfig",

    # Network
    "Network",

    # Providers
    "HTTPProvider",

    # Exceptions
    "SigningAgentError",
    "CodecError",
    "MnemonicError",
    "DerivationError",
    "CryptoError",
    "DecryptionError",
    "ValidationError",
    "ProtocolError",
    "TerminationError",
    "ProviderError",
    "APIError",

    # Crypto
    "PrivateKey",
    "PublicKey",
    "ExtendedKey",

    # Types
    "Transaction",
    "PendingTransaction",
    "PendingSignature",
    "ActivityResult",
]


def connect(config_path: str, **kwargs) -> SigningAgent:
    """
    Create a signing agent from a saved configuration.

    Args:
        config_path: Path of the JSON configuration file
        **kwargs: Additional client arguments

    Returns:
        Signing agent instance

    Example:
        >>> agent = signing_agent.connect("secrets.json")
    """
    return SigningAgent.from_file(config_path, **kwargs)
