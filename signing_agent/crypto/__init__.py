"""Cryptographic primitives for the signing agent."""

from ..crypto.hash import Hash, sha256, double_sha256, hash160
from ..crypto.keys import PrivateKey, PublicKey
from ..crypto.signature import (
    Signature,
    verify,
    parse_der_signature,
    encode_der_signature,
)
from ..crypto.hd import ExtendedKey, PrivateMaterial, PublicMaterial, parse_path
from ..crypto.bip39 import (
    generate_mnemonic,
    entropy_to_mnemonic,
    mnemonic_to_entropy,
    validate_mnemonic,
    normalize_mnemonic,
    mnemonic_to_seed,
)
from ..crypto.envelope import (
    encrypt,
    decrypt,
    encrypt_with_password,
    decrypt_with_password,
    create_secret_key,
    create_secret_jwk,
)

__all__ = [
    # Hashes
    "Hash",
    "sha256",
    "double_sha256",
    "hash160",

    # Keys
    "PrivateKey",
    "PublicKey",
    "ExtendedKey",
    "PrivateMaterial",
    "PublicMaterial",
    "parse_path",

    # Signatures
    "Signature",
    "verify",
    "parse_der_signature",
    "encode_der_signature",

    # Mnemonics
    "generate_mnemonic",
    "entropy_to_mnemonic",
    "mnemonic_to_entropy",
    "validate_mnemonic",
    "normalize_mnemonic",
    "mnemonic_to_seed",

    # Envelopes
    "encrypt",
    "decrypt",
    "encrypt_with_password",
    "decrypt_with_password",
    "create_secret_key",
    "create_secret_jwk",
]
