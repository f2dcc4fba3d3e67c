"""Forkid signature hashing and input signing."""

from typing import Optional

from ..constants import (
    DEFAULT_SIGHASH_TYPE,
    SIGHASH_ANYONECANPAY,
    SIGHASH_FORKID,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
)
from ..crypto.hash import Hash, double_sha256
from ..crypto.keys import PrivateKey
from ..exceptions import CodecError
from ..types.common import DerSignature
from ..types.pending import PendingSignature
from ..types.transaction import Transaction
from ..utils.buffer import WriteBuffer

__all__ = [
    "sighash",
    "sighash_preimage",
    "sign_input",
    "sign_p2pkh_input",
    "make_pending_transaction_signature",
]

_ZERO_HASH = b"\x00" * 32


def _hash_prevouts(tx: Transaction) -> bytes:
    buf = WriteBuffer()
    for tx_in in tx.inputs:
        tx_in.outpoint.write(buf)
    return bytes(double_sha256(buf.to_bytes()))


def _hash_sequence(tx: Transaction) -> bytes:
    buf = WriteBuffer()
    for tx_in in tx.inputs:
        buf.write_uint32_le(tx_in.sequence)
    return bytes(double_sha256(buf.to_bytes()))


def _hash_outputs(tx: Transaction, index: int, base_type: int) -> bytes:
    if base_type not in (SIGHASH_SINGLE, SIGHASH_NONE):
        buf = WriteBuffer()
        for tx_out in tx.outputs:
            tx_out.write(buf)
        return bytes(double_sha256(buf.to_bytes()))
    if base_type == SIGHASH_SINGLE and index < len(tx.outputs):
        return bytes(double_sha256(tx.outputs[index].to_bytes()))
    return _ZERO_HASH


def sighash_preimage(
    tx: Transaction,
    index: int,
    locking_script: bytes,
    value: int,
    sighash_type: Optional[int] = None,
) -> bytes:
    """
    Build the value-committing (BIP143 style) preimage for one input.

    The forkid flag is always set in the committed sighash type.
    """
    if not 0 <= index < len(tx.inputs):
        raise CodecError(f"Input index {index} out of range for {len(tx.inputs)} inputs")

    if sighash_type is None:
        sighash_type = DEFAULT_SIGHASH_TYPE
    sighash_type |= SIGHASH_FORKID
    base_type = sighash_type & 0x1F
    anyone_can_pay = bool(sighash_type & SIGHASH_ANYONECANPAY)

    hash_prevouts = _ZERO_HASH if anyone_can_pay else _hash_prevouts(tx)
    if anyone_can_pay or base_type in (SIGHASH_SINGLE, SIGHASH_NONE):
        hash_sequence = _ZERO_HASH
    else:
        hash_sequence = _hash_sequence(tx)

    tx_in = tx.inputs[index]

    buf = WriteBuffer()
    buf.write_int32_le(tx.version)
    buf.write(hash_prevouts)
    buf.write(hash_sequence)
    tx_in.outpoint.write(buf)
    buf.write_var_bytes(bytes(locking_script))
    buf.write_uint64_le(value)
    buf.write_uint32_le(tx_in.sequence)
    buf.write(_hash_outputs(tx, index, base_type))
    buf.write_uint32_le(tx.locktime)
    buf.write_uint32_le(sighash_type)
    return buf.to_bytes()


def sighash(
    tx: Transaction,
    index: int,
    locking_script: bytes,
    value: int,
    sighash_type: Optional[int] = None,
) -> Hash:
    """Double SHA-256 of the forkid sighash preimage."""
    return double_sha256(sighash_preimage(tx, index, locking_script, value, sighash_type))


def sign_input(
    tx: Transaction,
    key: PrivateKey,
    index: int,
    locking_script: bytes,
    value: int,
    sighash_type: Optional[int] = None,
) -> DerSignature:
    """
    Sign one input.

    Returns:
        DER-encoded signature with the sighash type byte appended
    """
    if sighash_type is None:
        sighash_type = DEFAULT_SIGHASH_TYPE
    sighash_type |= SIGHASH_FORKID

    digest = sighash(tx, index, locking_script, value, sighash_type)
    signature = key.sign(digest)
    return DerSignature(signature.to_der() + bytes([sighash_type & 0xFF]))


def sign_p2pkh_input(
    tx: Transaction,
    key: PrivateKey,
    index: int,
    locking_script: bytes,
    value: int,
    sighash_type: Optional[int] = None,
) -> DerSignature:
    """Sign one input and install the P2PKH unlocking script <sig> <pubkey>."""
    signature = sign_input(tx, key, index, locking_script, value, sighash_type)

    script = WriteBuffer()
    script.write_push_data(signature)
    script.write_push_data(key.public_key().point)
    tx.inputs[index].script = script.to_bytes()

    return signature


def make_pending_transaction_signature(
    tx: Transaction,
    key: PrivateKey,
    index: int,
    locking_script: bytes,
    value: int,
    signature_index: int,
    sighash_type: Optional[int] = None,
) -> PendingSignature:
    """Sign one input for a pending transaction without modifying it."""
    if sighash_type is None:
        sighash_type = DEFAULT_SIGHASH_TYPE
    signature = sign_input(tx, key, index, locking_script, value, sighash_type)
    return PendingSignature(
        signature_index=signature_index,
        sig_hash_type=sighash_type,
        signature=signature,
    )
