"""Common type definitions for the signing agent."""

from typing import NewType

__all__ = [
    "HexStr",
    "Satoshi",
    "TxId",
    "DerivationPath",
    "RootKeyId",
    "PrivateKeyBytes",
    "PublicKeyBytes",
    "DerSignature",
]

# Basic types
HexStr = NewType("HexStr", str)
"""Hexadecimal string representation."""

Satoshi = NewType("Satoshi", int)
"""Output value in the smallest unit."""

# Identifiers
TxId = NewType("TxId", str)
"""Transaction ID in display (byte-reversed) hex."""

DerivationPath = NewType("DerivationPath", str)
"""BIP32 path such as m/0/1'."""

RootKeyId = NewType("RootKeyId", str)
"""Server-issued identifier of an encrypted root key."""

# Crypto types
PrivateKeyBytes = NewType("PrivateKeyBytes", bytes)
"""32-byte private key."""

PublicKeyBytes = NewType("PublicKeyBytes", bytes)
"""33-byte compressed public key."""

DerSignature = NewType("DerSignature", bytes)
"""DER-encoded signature, optionally followed by a sighash type byte."""
