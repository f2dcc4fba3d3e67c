"""Transaction wire model for the signing agent."""

from dataclasses import dataclass, field
from typing import Optional, Union

from ..constants import DEFAULT_SEQUENCE
from ..crypto.hash import Hash, double_sha256
from ..exceptions import CodecError
from ..types.common import Satoshi, TxId
from ..types.pending import InputSupplement, OutputSupplement, PendingTransaction
from ..utils.buffer import ReadBuffer, WriteBuffer

__all__ = [
    "OutPoint",
    "TransactionInput",
    "TransactionOutput",
    "Transaction",
]


@dataclass(frozen=True)
class OutPoint:
    """Transaction output reference."""
    hash: Hash
    index: int

    def write(self, buf: WriteBuffer) -> None:
        buf.write(bytes(self.hash))
        buf.write_uint32_le(self.index)

    def to_bytes(self) -> bytes:
        buf = WriteBuffer()
        self.write(buf)
        return buf.to_bytes()

    def __str__(self) -> str:
        return f"{self.hash}:{self.index}"


@dataclass
class TransactionInput:
    """Transaction input: the outpoint it spends, an unlocking script and a sequence."""
    outpoint: OutPoint
    script: bytes = b""
    sequence: int = DEFAULT_SEQUENCE

    @classmethod
    def read(cls, buf: ReadBuffer) -> "TransactionInput":
        outpoint = OutPoint(Hash(buf.read(32)), buf.read_uint32_le())
        script = buf.read_var_bytes()
        return cls(outpoint=outpoint, script=script, sequence=buf.read_uint32_le())

    def write(self, buf: WriteBuffer) -> None:
        self.outpoint.write(buf)
        buf.write_var_bytes(self.script)
        buf.write_uint32_le(self.sequence)


@dataclass
class TransactionOutput:
    """Transaction output: a value and a locking script."""
    value: Satoshi
    script: bytes = b""

    @classmethod
    def read(cls, buf: ReadBuffer) -> "TransactionOutput":
        value = Satoshi(buf.read_uint64_le())
        return cls(value=value, script=buf.read_var_bytes())

    def write(self, buf: WriteBuffer) -> None:
        buf.write_uint64_le(self.value)
        buf.write_var_bytes(self.script)

    def to_bytes(self) -> bytes:
        buf = WriteBuffer()
        self.write(buf)
        return buf.to_bytes()


@dataclass
class Transaction:
    """
    Bitcoin-style transaction.

    Serialization round-trips byte-exact. Supplements are attached by the
    ledger alongside the raw bytes and are never serialized.
    """
    version: int = 1
    inputs: list[TransactionInput] = field(default_factory=list)
    outputs: list[TransactionOutput] = field(default_factory=list)
    locktime: int = 0
    input_supplements: list[InputSupplement] = field(default_factory=list, compare=False, repr=False)
    output_supplements: list[OutputSupplement] = field(default_factory=list, compare=False, repr=False)

    @classmethod
    def read(cls, buf: ReadBuffer) -> "Transaction":
        version = buf.read_int32_le()
        inputs = [TransactionInput.read(buf) for _ in range(buf.read_varint())]
        outputs = [TransactionOutput.read(buf) for _ in range(buf.read_varint())]
        return cls(version=version, inputs=inputs, outputs=outputs, locktime=buf.read_uint32_le())

    @classmethod
    def from_bytes(cls, data: Union[bytes, str]) -> "Transaction":
        """
        Deserialize a complete transaction.

        Raises:
            CodecError: If the data is truncated or has trailing bytes
        """
        buf = ReadBuffer(data)
        tx = cls.read(buf)
        if buf.remaining:
            raise CodecError(f"{buf.remaining} trailing bytes after transaction")
        return tx

    from_hex = from_bytes

    @classmethod
    def assemble(cls, pending: PendingTransaction) -> "Transaction":
        """Build a transaction from a ledger descriptor, attaching its supplements."""
        tx = cls.from_bytes(pending.tx)
        tx.input_supplements = list(pending.input_supplements)
        tx.output_supplements = list(pending.output_supplements)
        return tx

    def write(self, buf: WriteBuffer) -> None:
        buf.write_int32_le(self.version)
        buf.write_varint(len(self.inputs))
        for tx_in in self.inputs:
            tx_in.write(buf)
        buf.write_varint(len(self.outputs))
        for tx_out in self.outputs:
            tx_out.write(buf)
        buf.write_uint32_le(self.locktime)

    def to_bytes(self) -> bytes:
        buf = WriteBuffer()
        self.write(buf)
        return buf.to_bytes()

    def hex(self) -> str:
        return self.to_bytes().hex()

    def id(self) -> Hash:
        """Double SHA-256 of the serialized transaction."""
        return double_sha256(self.to_bytes())

    @property
    def txid(self) -> TxId:
        """Transaction id in display (byte-reversed) hex."""
        return TxId(str(self.id()))

    def sighash(self, index: int, locking_script: bytes, value: int, sighash_type: Optional[int] = None) -> Hash:
        """Signature hash for one input. See transaction_signing.sighash."""
        from ..crypto.transaction_signing import sighash
        return sighash(self, index, locking_script, value, sighash_type)
