"""Input validation helpers for the signing agent."""

import re
from typing import Union

from ..constants import CURVE_ORDER
from ..exceptions import ValidationError

__all__ = [
    "HEX_PATTERN",
    "is_valid_hex",
    "validate_hex",
    "validate_private_key",
    "validate_public_key",
]

HEX_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2})*$")


def is_valid_hex(value: str) -> bool:
    """Check for an even-length hex string."""
    return isinstance(value, str) and bool(HEX_PATTERN.match(value))


def validate_hex(value: str, field: str = "value") -> bytes:
    """
    Decode a hex field from a ledger response.

    Raises:
        ValidationError: If the value is not even-length hex
    """
    if not is_valid_hex(value):
        raise ValidationError(f"{field} must be hexadecimal")
    return bytes.fromhex(value)


def validate_private_key(key: Union[str, bytes]) -> bytes:
    """
    Validate private key and return as bytes.

    Args:
        key: Private key as hex string or bytes

    Returns:
        Private key as 32 bytes

    Raises:
        ValidationError: If private key is invalid
    """
    if isinstance(key, str):
        if key.startswith("0x"):
            key = key[2:]
        key = validate_hex(key, "Private key")

    if len(key) != 32:
        raise ValidationError(f"Private key must be 32 bytes, got {len(key)}")

    key_int = int.from_bytes(key, "big")

    if key_int == 0:
        raise ValidationError("Private key cannot be zero")
    if key_int >= CURVE_ORDER:
        raise ValidationError("Private key exceeds curve order")

    return bytes(key)


def validate_public_key(key: Union[str, bytes]) -> bytes:
    """
    Validate public key and return as bytes.

    Args:
        key: Public key as hex string or bytes

    Returns:
        Public key bytes (33 or 65 bytes)

    Raises:
        ValidationError: If public key is invalid
    """
    if isinstance(key, str):
        if key.startswith("0x"):
            key = key[2:]
        key = validate_hex(key, "Public key")

    if len(key) == 33:
        if key[0] not in (0x02, 0x03):
            raise ValidationError("Compressed public key must start with 0x02 or 0x03")
    elif len(key) == 65:
        if key[0] != 0x04:
            raise ValidationError("Uncompressed public key must start with 0x04")
    else:
        raise ValidationError(f"Public key must be 33 or 65 bytes, got {len(key)}")

    return bytes(key)
