"""ECDSA signature value type and its DER / compact encodings."""

import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple, Union

from ..constants import CURVE_ORDER
from ..exceptions import CryptoError
from ..types.common import DerSignature

if TYPE_CHECKING:
    from ..crypto.hash import Hash
    from ..crypto.keys import PublicKey

__all__ = [
    "Signature",
    "verify",
    "parse_der_signature",
    "encode_der_signature",
]

HALF_ORDER = CURVE_ORDER // 2


@dataclass(frozen=True)
class Signature:
    """
    secp256k1 ECDSA signature.

    Instances are always canonical low-S: a high S value is replaced by
    ``n - s`` on construction.
    """

    r: int
    s: int

    def __post_init__(self) -> None:
        if not 0 < self.r < CURVE_ORDER or not 0 < self.s < CURVE_ORDER:
            raise CryptoError("Signature values out of range")
        if self.s > HALF_ORDER:
            object.__setattr__(self, "s", CURVE_ORDER - self.s)

    @classmethod
    def from_der(cls, der: bytes) -> "Signature":
        r, s, _ = parse_der_signature(der, has_sighash=False)
        return cls(r, s)

    @classmethod
    def from_compact(cls, data: Union[bytes, str]) -> "Signature":
        """Parse 64 bytes of r || s (or their hex)."""
        if isinstance(data, str):
            try:
                data = bytes.fromhex(data)
            except ValueError as e:
                raise CryptoError(f"Invalid compact signature hex: {e}") from e
        if len(data) != 64:
            raise CryptoError(f"Compact signature must be 64 bytes, got {len(data)}")
        return cls(int.from_bytes(data[:32], "big"), int.from_bytes(data[32:], "big"))

    def to_der(self) -> DerSignature:
        return DerSignature(encode_der_signature(self.r, self.s))

    def to_compact(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big")

    def to_compact_hex(self) -> str:
        return self.to_compact().hex()

    def to_base64(self) -> str:
        return base64.b64encode(self.to_compact()).decode("ascii")

    def __str__(self) -> str:
        return self.to_compact_hex()


def verify(
    signature: Union[Signature, bytes],
    public_key: "PublicKey",
    message_hash: Union["Hash", bytes],
) -> bool:
    """
    Check a signature against a public key and 32-byte digest.

    Pure: never raises for a bad signature, only returns False.
    """
    return public_key.verify(signature, bytes(message_hash))


def parse_der_signature(
    signature: bytes,
    has_sighash: Optional[bool] = None,
) -> Tuple[int, int, Optional[int]]:
    """
    Parse DER-encoded signature.

    Args:
        signature: DER-encoded signature (possibly with sighash type)
        has_sighash: Whether a trailing sighash byte is present; detected
            from the DER length when None

    Returns:
        Tuple of (r, s, sighash_type)

    Raises:
        CryptoError: If signature format is invalid
    """
    try:
        if has_sighash is None:
            has_sighash = len(signature) >= 2 and signature[1] + 3 == len(signature)

        if has_sighash:
            sighash_type = signature[-1]
            signature = signature[:-1]
        else:
            sighash_type = None

        if signature[0] != 0x30:
            raise ValueError("missing sequence tag")

        length = signature[1]
        if length + 2 != len(signature):
            raise ValueError("incorrect length")

        if signature[2] != 0x02:
            raise ValueError("missing r integer tag")

        r_length = signature[3]
        r_bytes = signature[4:4 + r_length]
        r = int.from_bytes(r_bytes, "big")

        s_offset = 4 + r_length
        if signature[s_offset] != 0x02:
            raise ValueError("missing s integer tag")

        s_length = signature[s_offset + 1]
        s_bytes = signature[s_offset + 2:s_offset + 2 + s_length]
        if s_offset + 2 + s_length != len(signature):
            raise ValueError("trailing data")
        s = int.from_bytes(s_bytes, "big")

        return r, s, sighash_type

    except (IndexError, ValueError) as e:
        raise CryptoError(f"Invalid DER signature: {e}") from e


def encode_der_signature(r: int, s: int, sighash_type: Optional[int] = None) -> bytes:
    """
    Encode signature as DER.

    Args:
        r: Signature r value
        s: Signature s value
        sighash_type: Optional sighash type to append

    Returns:
        DER-encoded signature
    """
    r_bytes = r.to_bytes((r.bit_length() + 7) // 8, "big")
    if r_bytes[0] & 0x80:
        r_bytes = b"\x00" + r_bytes
    r_encoded = b"\x02" + bytes([len(r_bytes)]) + r_bytes

    s_bytes = s.to_bytes((s.bit_length() + 7) // 8, "big")
    if s_bytes[0] & 0x80:
        s_bytes = b"\x00" + s_bytes
    s_encoded = b"\x02" + bytes([len(s_bytes)]) + s_bytes

    sequence = r_encoded + s_encoded
    result = b"\x30" + bytes([len(sequence)]) + sequence

    if sighash_type is not None:
        result += bytes([sighash_type])

    return result
