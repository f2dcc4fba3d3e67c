"""BIP39 mnemonic implementation for the signing agent."""

import hashlib
import secrets
import unicodedata
from typing import Optional

from ..constants import BIP39_WORDLIST as WORDLIST, PBKDF2_ROUNDS
from ..exceptions import MnemonicError

__all__ = [
    "generate_mnemonic",
    "entropy_to_mnemonic",
    "mnemonic_to_entropy",
    "validate_mnemonic",
    "normalize_mnemonic",
    "mnemonic_to_seed",
]

_WORD_INDEX = {word: index for index, word in enumerate(WORDLIST)}


def _checksum_bits(entropy: bytes, length: int) -> int:
    digest = int.from_bytes(hashlib.sha256(entropy).digest(), "big")
    return digest >> (256 - length)


def generate_mnemonic(strength: int = 256, wordlist: Optional[list[str]] = None) -> str:
    """Generate BIP39 mnemonic phrase."""
    if strength not in (128, 160, 192, 224, 256):
        raise ValueError("Strength must be 128, 160, 192, 224, or 256")

    return entropy_to_mnemonic(secrets.token_bytes(strength // 8), wordlist)


def entropy_to_mnemonic(entropy: bytes, wordlist: Optional[list[str]] = None) -> str:
    """
    Encode entropy as a mnemonic phrase.

    The checksum is the first ``len(entropy) * 8 / 32`` bits of
    SHA-256(entropy), appended to the entropy bits before splitting into
    11-bit word indices.

    Raises:
        MnemonicError: If entropy is empty or not a multiple of 4 bytes
    """
    if wordlist is None:
        wordlist = WORDLIST

    entropy = bytes(entropy)
    if not entropy or len(entropy) % 4:
        raise MnemonicError(f"Entropy length must be a positive multiple of 4 bytes, got {len(entropy)}")

    checksum_length = len(entropy) * 8 // 32
    bits = (int.from_bytes(entropy, "big") << checksum_length) | _checksum_bits(entropy, checksum_length)
    word_count = (len(entropy) * 8 + checksum_length) // 11

    words = []
    for position in reversed(range(word_count)):
        words.append(wordlist[(bits >> (position * 11)) & 0x7FF])

    return " ".join(words)


def mnemonic_to_entropy(mnemonic: str, wordlist: Optional[list[str]] = None) -> bytes:
    """
    Decode a mnemonic phrase back to its entropy, verifying the checksum.

    Raises:
        MnemonicError: On an unknown word, a bad word count, or a checksum
            mismatch
    """
    if wordlist is None:
        index = _WORD_INDEX
    else:
        index = {word: i for i, word in enumerate(wordlist)}

    words = mnemonic.split()
    if not words or len(words) % 3:
        raise MnemonicError(f"Invalid mnemonic word count: {len(words)}")

    bits = 0
    for word in words:
        if word not in index:
            raise MnemonicError(f"Unknown word: {word}")
        bits = (bits << 11) | index[word]

    checksum_length = len(words) * 11 // 33
    entropy_length = checksum_length * 32 // 8

    entropy = (bits >> checksum_length).to_bytes(entropy_length, "big")
    checksum = bits & ((1 << checksum_length) - 1)

    if checksum != _checksum_bits(entropy, checksum_length):
        raise MnemonicError("Mnemonic checksum failed")

    return entropy


def validate_mnemonic(mnemonic: str) -> bool:
    """Check word membership and checksum."""
    try:
        mnemonic_to_entropy(normalize_mnemonic(mnemonic))
        return True
    except MnemonicError:
        return False


def normalize_mnemonic(entered: Optional[str]) -> str:
    """NFKD-normalize, lowercase and collapse whitespace."""
    if not entered:
        return ""
    return " ".join(unicodedata.normalize("NFKD", entered).lower().split())


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """Convert mnemonic to seed using PBKDF2."""
    if not isinstance(passphrase, str):
        raise TypeError("passphrase must be a string")

    mnemonic_bytes = unicodedata.normalize("NFKD", mnemonic).encode("utf-8")
    salt = ("mnemonic" + unicodedata.normalize("NFKD", passphrase)).encode("utf-8")

    return hashlib.pbkdf2_hmac(
        "sha512",
        mnemonic_bytes,
        salt,
        PBKDF2_ROUNDS,
        dklen=64
    )
