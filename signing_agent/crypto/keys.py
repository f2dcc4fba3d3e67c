"""secp256k1 key management for the signing agent."""

import secrets
from typing import Tuple, Union

from coincurve import PrivateKey as SecpPrivateKey, PublicKey as SecpPublicKey

from ..constants import WIF_PREFIXES, Network
from ..exceptions import CryptoError, ValidationError
from ..types.common import PrivateKeyBytes, PublicKeyBytes
from ..crypto.hash import Hash, hash160
from ..crypto.signature import Signature
from ..utils.encoding import decode_base58_check, encode_base58_check
from ..utils.validation import validate_private_key, validate_public_key

__all__ = ["PrivateKey", "PublicKey"]


class PrivateKey:
    """
    secp256k1 private key wrapper.

    Signs with RFC 6979 deterministic nonces and always yields low-S
    signatures. Exports to hex and Wallet Import Format.
    """

    def __init__(self, key: Union[bytes, str, "PrivateKey"]) -> None:
        """
        Initialize private key.

        Args:
            key: Private key as 32 bytes, hex string, or another PrivateKey

        Raises:
            ValidationError: If key format is invalid
        """
        if isinstance(key, PrivateKey):
            self._secret = key._secret
            self._key = key._key
            return

        self._secret = PrivateKeyBytes(validate_private_key(key))
        self._key = SecpPrivateKey(self._secret)

    @classmethod
    def create(cls) -> "PrivateKey":
        """Create new random private key."""
        while True:
            key_bytes = secrets.token_bytes(32)
            try:
                return cls(key_bytes)
            except ValidationError:
                continue

    @classmethod
    def from_wif(cls, wif: str) -> Tuple["PrivateKey", bool, Network]:
        """
        Import private key from WIF.

        Args:
            wif: Wallet Import Format string

        Returns:
            Tuple of (private_key, is_compressed, network)

        Raises:
            ValidationError: If WIF is invalid
        """
        data = decode_base58_check(wif)

        if len(data) not in (33, 34):
            raise ValidationError(f"Invalid WIF length: {len(data)}")

        networks = {prefix: network for network, prefix in WIF_PREFIXES.items()}
        network = networks.get(data[0])
        if network is None:
            raise ValidationError(f"Unknown WIF version: {data[0]:#x}")

        key_bytes = data[1:33]
        compressed = len(data) == 34
        if compressed and data[33] != 0x01:
            raise ValidationError(f"Invalid compression flag: {data[33]:#x}")

        return cls(key_bytes), compressed, network

    @property
    def secret(self) -> PrivateKeyBytes:
        """Get private key as bytes."""
        return self._secret

    def to_int(self) -> int:
        return int.from_bytes(self._secret, "big")

    def hex(self) -> str:
        """Get private key as hex string."""
        return self._secret.hex()

    def wif(self, network: Network = Network.MAINNET, compressed: bool = True) -> str:
        """
        Export private key in Wallet Import Format.

        Args:
            network: Target network
            compressed: Use compressed format

        Returns:
            WIF encoded private key
        """
        data = bytes([WIF_PREFIXES[network]]) + self._secret
        if compressed:
            data += b"\x01"

        return encode_base58_check(data)

    def public_key(self) -> "PublicKey":
        """Get the corresponding compressed public key."""
        return PublicKey(self._key.public_key.format(compressed=True))

    def sign(self, message_hash: Union[Hash, bytes]) -> Signature:
        """
        Sign 32-byte message hash.

        Args:
            message_hash: 32-byte digest to sign, in stored byte order

        Returns:
            Low-S signature

        Raises:
            CryptoError: If signing fails
        """
        message_hash = bytes(message_hash)
        if len(message_hash) != 32:
            raise CryptoError("Message hash must be 32 bytes")

        try:
            der = self._key.sign(message_hash, hasher=None)
        except Exception as e:
            raise CryptoError(f"Signing failed: {e}") from e
        return Signature.from_der(der)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrivateKey):
            return False
        return self._secret == other._secret

    def __hash__(self) -> int:
        return hash(self._secret)

    def __repr__(self) -> str:
        # Never render the full secret
        hex_str = self.hex()
        masked = f"{hex_str[:4]}...{hex_str[-4:]}"
        return f"PrivateKey({masked})"


class PublicKey:
    """
    secp256k1 public key wrapper.

    Always held in 33-byte compressed form.
    """

    def __init__(self, key: Union[bytes, str, "PublicKey"]) -> None:
        """
        Initialize public key.

        Args:
            key: Public key as bytes, hex string, or another PublicKey

        Raises:
            ValidationError: If key format is invalid
        """
        if isinstance(key, PublicKey):
            self._point = key._point
            self._key = key._key
            return

        key_bytes = validate_public_key(key)
        try:
            self._key = SecpPublicKey(key_bytes)
        except ValueError as e:
            raise ValidationError(f"Public key is not on the curve: {e}") from e
        self._point = PublicKeyBytes(self._key.format(compressed=True))

    @property
    def point(self) -> PublicKeyBytes:
        """Get compressed public key bytes."""
        return self._point

    def hex(self) -> str:
        return self._point.hex()

    def hash160(self) -> bytes:
        """Get HASH160 of public key."""
        return hash160(self._point)

    def verify(self, signature: Union[Signature, bytes], message_hash: Union[Hash, bytes]) -> bool:
        """
        Verify signature.

        Args:
            signature: Signature or DER bytes
            message_hash: 32-byte digest

        Returns:
            True if signature is valid
        """
        message_hash = bytes(message_hash)
        if len(message_hash) != 32:
            return False

        try:
            if not isinstance(signature, Signature):
                signature = Signature.from_der(signature)
            return self._key.verify(signature.to_der(), message_hash, hasher=None)
        except (CryptoError, ValueError):
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return False
        return self._point == other._point

    def __hash__(self) -> int:
        return hash(self._point)

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"PublicKey({self.hex()})"
