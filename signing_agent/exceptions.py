"""Signing agent exceptions hierarchy."""

from typing import Any, Optional

__all__ = [
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
    "NetworkError",
    "APIError",
    "TimeoutError",
    "RateLimitError",
]


class SigningAgentError(Exception):
    """Base exception for all signing agent errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class CodecError(SigningAgentError):
    """Raised when binary data is truncated or malformed."""
    kind = "codec"


class MnemonicError(SigningAgentError):
    """Raised for unknown mnemonic words or checksum mismatches."""
    kind = "mnemonic"


class DerivationError(SigningAgentError):
    """Raised when an HD child key cannot be derived."""
    kind = "derivation"


class CryptoError(SigningAgentError):
    """Raised when cryptographic operation fails."""
    kind = "crypto"


class DecryptionError(CryptoError):
    """Raised when an envelope fails authentication."""
    kind = "decrypt"


class ValidationError(SigningAgentError):
    """Raised when validation fails."""
    kind = "validation"


class ProtocolError(SigningAgentError):
    """Raised when the ledger responds with an unexpected shape."""
    kind = "protocol"


class TerminationError(SigningAgentError):
    """Raised when the ledger reports that an activity was terminated."""

    kind = "termination"

    def __init__(
        self,
        activity: str,
        termination_reason: Any,
        txs: Optional[list[str]] = None,
        stage: Optional[str] = None,
    ) -> None:
        self.activity = activity
        self.termination_reason = termination_reason
        self.txs = list(txs or [])
        self.stage = stage
        super().__init__(
            f"Activity {activity} terminated: {termination_reason}",
            code=400,
            data={
                "activity": activity,
                "txs": self.txs,
                "executed": False,
                "termination_reason": termination_reason,
                "stage": stage,
            },
        )

    @property
    def started(self) -> bool:
        """True if at least one transaction was produced before termination."""
        return bool(self.txs)


class ProviderError(SigningAgentError):
    """Raised when provider encounters an error."""
    kind = "provider"


class NetworkError(ProviderError):
    """Raised when network communication fails."""
    pass


class APIError(ProviderError):
    """Raised when API returns an error response."""
    pass


class TimeoutError(NetworkError):
    """Raised when operation times out."""
    pass


class RateLimitError(NetworkError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None
    ) -> None:
        super().__init__(message, code=429)
        self.retry_after = retry_after
