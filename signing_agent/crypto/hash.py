"""SHA-256 based digests and the 32-byte Hash value type."""

import hashlib
from typing import Union

from Crypto.Hash import RIPEMD160

from ..exceptions import ValidationError
from ..utils.encoding import double_sha256 as _double_sha256

__all__ = ["Hash", "sha256", "double_sha256", "hash160"]


class Hash:
    """
    Exactly 32 bytes of digest output.

    ``bytes(h)`` is the digest in the order it was produced. The textual
    form is byte-reversed hex, which is how the ledger displays
    transaction ids.
    """

    SIZE = 32

    __slots__ = ("_value",)

    def __init__(self, value: Union[bytes, bytearray]) -> None:
        value = bytes(value)
        if len(value) != self.SIZE:
            raise ValidationError(f"Hash must be {self.SIZE} bytes, got {len(value)}")
        self._value = value

    @classmethod
    def from_hex(cls, display_hex: str) -> "Hash":
        """Parse the byte-reversed display form."""
        try:
            return cls(bytes.fromhex(display_hex)[::-1])
        except ValueError as e:
            raise ValidationError(f"Invalid hash hex: {e}") from e

    def __bytes__(self) -> bytes:
        return self._value

    def hex(self) -> str:
        return self._value[::-1].hex()

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Hash({self.hex()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Hash):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)


def sha256(data: bytes) -> Hash:
    """Single SHA-256."""
    return Hash(hashlib.sha256(data).digest())


def double_sha256(data: bytes) -> Hash:
    """SHA-256 applied twice, as used for transaction ids and sighashes."""
    return Hash(_double_sha256(data))


def hash160(data: bytes) -> bytes:
    """Perform RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()
