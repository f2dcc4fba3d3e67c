"""AES-256-GCM envelope encryption of root-key entropy at rest.

An envelope is ``IV(16) || ciphertext || tag(16)``. Keys are raw 32-byte
values or AES ``oct`` JWK dicts.
"""

import hashlib
import secrets
from typing import Any, Mapping, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..constants import ENVELOPE_IV_LENGTH, MIN_ENVELOPE_LENGTH
from ..exceptions import CryptoError, DecryptionError, ValidationError
from ..utils.encoding import base64url_decode, base64url_encode

__all__ = [
    "encrypt",
    "decrypt",
    "encrypt_with_password",
    "decrypt_with_password",
    "derive_password_key",
    "create_secret_key",
    "create_secret_jwk",
    "key_from_jwk",
]

SecretKey = Union[bytes, Mapping[str, Any]]


def key_from_jwk(jwk: Mapping[str, Any]) -> bytes:
    """Extract raw key bytes from an AES ``oct`` JWK."""
    if jwk.get("kty") != "oct" or "k" not in jwk:
        raise ValidationError("Encryption secret must be an 'oct' JWK")
    return base64url_decode(jwk["k"])


def _aes(key: SecretKey) -> AESGCM:
    if isinstance(key, Mapping):
        key = key_from_jwk(key)
    try:
        return AESGCM(bytes(key))
    except ValueError as e:
        raise CryptoError(f"Invalid AES key: {e}") from e


def encrypt(plaintext: bytes, key: SecretKey) -> bytes:
    """Encrypt with a fresh random 16-byte IV."""
    iv = secrets.token_bytes(ENVELOPE_IV_LENGTH)
    return iv + _aes(key).encrypt(iv, bytes(plaintext), None)


def decrypt(envelope: bytes, key: SecretKey) -> bytes:
    """
    Decrypt and authenticate an envelope.

    Raises:
        CryptoError: If the envelope is shorter than 64 bytes
        DecryptionError: If authentication fails
    """
    if len(envelope) < MIN_ENVELOPE_LENGTH:
        raise CryptoError(
            f"Invalid data length {len(envelope)} (should be at least 256+128+128 bits)",
            data={"reason": "length"},
        )

    iv = envelope[:ENVELOPE_IV_LENGTH]
    try:
        return _aes(key).decrypt(iv, bytes(envelope[ENVELOPE_IV_LENGTH:]), None)
    except InvalidTag as e:
        raise DecryptionError("Envelope authentication failed") from e


def derive_password_key(password: str) -> bytes:
    """
    SHA-256 of the UTF-8 password.

    This is a single digest, not a slow KDF. Kept for compatibility with
    envelopes already stored this way.
    """
    return hashlib.sha256(password.encode("utf-8")).digest()


def encrypt_with_password(plaintext: bytes, password: str) -> bytes:
    return encrypt(plaintext, derive_password_key(password))


def decrypt_with_password(envelope: bytes, password: str) -> bytes:
    return decrypt(envelope, derive_password_key(password))


def create_secret_key() -> bytes:
    """Random 256-bit AES key."""
    return AESGCM.generate_key(bit_length=256)


def create_secret_jwk() -> dict[str, Any]:
    """Random 256-bit AES key as an exportable JWK."""
    return {
        "kty": "oct",
        "k": base64url_encode(create_secret_key()),
        "alg": "A256GCM",
        "ext": True,
        "key_ops": ["decrypt", "encrypt"],
    }
