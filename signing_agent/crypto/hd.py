"""Hierarchical Deterministic key derivation (BIP32)."""

import hmac
import hashlib
from dataclasses import dataclass, replace
from typing import Union

from coincurve import PublicKey as SecpPublicKey

from ..constants import (
    BIP32_SEED_KEY,
    CURVE_ORDER,
    HARDENED_OFFSET,
    XPRV_VERSION,
    XPUB_VERSION,
)
from ..crypto.hash import hash160
from ..crypto.keys import PrivateKey, PublicKey
from ..exceptions import DerivationError, ValidationError
from ..utils.buffer import ReadBuffer, WriteBuffer
from ..utils.encoding import decode_base58_check, encode_base58_check

__all__ = [
    "ExtendedKey",
    "PrivateMaterial",
    "PublicMaterial",
    "parse_path",
]

_PAYLOAD_LENGTH = 78
_MAX_DEPTH = 255


@dataclass(frozen=True)
class PrivateMaterial:
    """32-byte private scalar."""
    scalar: bytes

    def __repr__(self) -> str:
        return "PrivateMaterial(...)"


@dataclass(frozen=True)
class PublicMaterial:
    """33-byte compressed public point."""
    point: bytes


KeyMaterial = Union[PrivateMaterial, PublicMaterial]


def parse_path(path: str) -> list[int]:
    """
    Parse a BIP32 path like m/0/1' into child indices.

    A trailing ' (or h) marks a hardened index.

    Raises:
        DerivationError: If the path is malformed
    """
    segments = path.strip().split("/")
    if segments[0] not in ("m", "M"):
        raise DerivationError(f"Derivation path must start with 'm': {path}")

    indices = []
    for segment in segments[1:]:
        hardened = segment.endswith("'") or segment.endswith("h")
        number = segment[:-1] if hardened else segment
        if not (number.isascii() and number.isdigit()):
            raise DerivationError(f"Invalid path segment {segment!r} in {path}")
        index = int(number)
        if index >= HARDENED_OFFSET:
            raise DerivationError(f"Path index out of range: {segment}")
        indices.append(index + HARDENED_OFFSET if hardened else index)
    return indices


@dataclass(frozen=True)
class ExtendedKey:
    """
    BIP32 extended key.

    Key material is either private or public; derivation dispatches on
    which one is present. Neutered (public) keys can only derive
    non-hardened children.
    """

    depth: int
    parent_fingerprint: bytes
    index: int
    chain_code: bytes
    material: KeyMaterial

    @classmethod
    def from_seed(cls, seed: bytes) -> "ExtendedKey":
        """Create master key from seed."""
        h = hmac.new(BIP32_SEED_KEY, seed, hashlib.sha512).digest()

        key_int = int.from_bytes(h[:32], "big")
        if key_int == 0 or key_int >= CURVE_ORDER:
            raise DerivationError("Invalid master key")

        return cls(
            depth=0,
            parent_fingerprint=b"\x00\x00\x00\x00",
            index=0,
            chain_code=h[32:],
            material=PrivateMaterial(h[:32]),
        )

    @classmethod
    def parse(cls, text: str) -> "ExtendedKey":
        """
        Parse an xprv/xpub string.

        Raises:
            ValidationError: If the text is not a valid extended key
        """
        return cls.from_internal_bytes(decode_base58_check(text))

    @classmethod
    def from_internal_bytes(cls, payload: bytes) -> "ExtendedKey":
        if len(payload) != _PAYLOAD_LENGTH:
            raise ValidationError(f"Extended key must be {_PAYLOAD_LENGTH} bytes, got {len(payload)}")

        buf = ReadBuffer(payload)
        version = buf.read(4)
        depth = buf.read_uint8()
        parent_fingerprint = buf.read(4)
        index = buf.read_uint32_be()
        chain_code = buf.read(32)
        key_data = buf.read(33)

        if version == XPRV_VERSION:
            if key_data[0] != 0:
                raise ValidationError("Private extended key data must start with 0x00")
            PrivateKey(key_data[1:])
            material: KeyMaterial = PrivateMaterial(key_data[1:])
        elif version == XPUB_VERSION:
            material = PublicMaterial(PublicKey(key_data).point)
        else:
            raise ValidationError(f"Unknown extended key version: {version.hex()}")

        return cls(depth, parent_fingerprint, index, chain_code, material)

    @property
    def is_private(self) -> bool:
        return isinstance(self.material, PrivateMaterial)

    @property
    def is_hardened(self) -> bool:
        return self.index >= HARDENED_OFFSET

    def key(self) -> PrivateKey:
        """Get private key object."""
        if not isinstance(self.material, PrivateMaterial):
            raise DerivationError("This is a public-only extended key")
        return PrivateKey(self.material.scalar)

    def public_key(self) -> PublicKey:
        if isinstance(self.material, PrivateMaterial):
            return self.key().public_key()
        return PublicKey(self.material.point)

    @property
    def fingerprint(self) -> bytes:
        """First 4 bytes of hash160 of the compressed public key."""
        return hash160(self.public_key().point)[:4]

    def to_public(self) -> "ExtendedKey":
        """Strip private material, keeping the chain code."""
        if not self.is_private:
            return self
        return replace(self, material=PublicMaterial(self.public_key().point))

    def derive_child(self, index: int) -> "ExtendedKey":
        """Derive a single child; indices >= 2**31 are hardened."""
        if not 0 <= index <= 0xFFFFFFFF:
            raise DerivationError(f"Child index out of range: {index}")
        if self.depth >= _MAX_DEPTH:
            raise DerivationError(f"Cannot derive below depth {_MAX_DEPTH}")
        if isinstance(self.material, PrivateMaterial):
            return _derive_private(self, self.material, index)
        return _derive_public(self, self.material, index)

    def derive(self, path: str) -> "ExtendedKey":
        """Derive using a path relative to this key, like m/0/1'."""
        node = self
        for index in parse_path(path):
            node = node.derive_child(index)
        return node

    def to_internal_bytes(self) -> bytes:
        """The 78-byte payload without base58 checksum."""
        buf = WriteBuffer()
        if isinstance(self.material, PrivateMaterial):
            buf.write(XPRV_VERSION)
        else:
            buf.write(XPUB_VERSION)
        buf.write_uint8(self.depth)
        buf.write(self.parent_fingerprint)
        buf.write_uint32_be(self.index)
        buf.write(self.chain_code)
        if isinstance(self.material, PrivateMaterial):
            buf.write(b"\x00" + self.material.scalar)
        else:
            buf.write(self.material.point)
        return buf.to_bytes()

    def __str__(self) -> str:
        return encode_base58_check(self.to_internal_bytes())

    def __repr__(self) -> str:
        kind = "private" if self.is_private else "public"
        return f"ExtendedKey({kind}, depth={self.depth}, index={self.index})"


def _child_hmac(parent: ExtendedKey, data: bytes, index: int) -> tuple[int, bytes]:
    h = hmac.new(parent.chain_code, data + index.to_bytes(4, "big"), hashlib.sha512).digest()
    tweak = int.from_bytes(h[:32], "big")
    if tweak >= CURVE_ORDER:
        raise DerivationError(f"Invalid derived key at index {index}")
    return tweak, h[32:]


def _derive_private(parent: ExtendedKey, material: PrivateMaterial, index: int) -> ExtendedKey:
    parent_key = PrivateKey(material.scalar)
    parent_point = parent_key.public_key().point

    if index >= HARDENED_OFFSET:
        data = b"\x00" + material.scalar
    else:
        data = parent_point

    tweak, chain_code = _child_hmac(parent, data, index)
    child_int = (parent_key.to_int() + tweak) % CURVE_ORDER
    if child_int == 0:
        raise DerivationError(f"Invalid derived key at index {index}")

    return ExtendedKey(
        depth=parent.depth + 1,
        parent_fingerprint=hash160(parent_point)[:4],
        index=index,
        chain_code=chain_code,
        material=PrivateMaterial(child_int.to_bytes(32, "big")),
    )


def _derive_public(parent: ExtendedKey, material: PublicMaterial, index: int) -> ExtendedKey:
    if index >= HARDENED_OFFSET:
        raise DerivationError("Cannot do hardened derivation without private key")

    tweak, chain_code = _child_hmac(parent, material.point, index)
    try:
        child = SecpPublicKey(material.point).add(tweak.to_bytes(32, "big"))
    except ValueError as e:
        raise DerivationError(f"Invalid derived key at index {index}") from e

    return ExtendedKey(
        depth=parent.depth + 1,
        parent_fingerprint=hash160(material.point)[:4],
        index=index,
        chain_code=chain_code,
        material=PublicMaterial(child.format(compressed=True)),
    )
