"""Cursor-based binary readers and writers for the wire format."""

import struct
from typing import Union

from ..exceptions import CodecError

__all__ = ["ReadBuffer", "WriteBuffer"]

OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
MAX_DIRECT_PUSH = 0x4B


class ReadBuffer:
    """
    Read-only view over a byte string with a moving offset.

    Every read advances the offset and fails with CodecError if fewer
    bytes remain than requested.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        if isinstance(data, str):
            try:
                data = bytes.fromhex(data)
            except ValueError as e:
                raise CodecError(f"Invalid hex input: {e}") from e
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes."""
        if size < 0:
            raise CodecError(f"Negative read size: {size}")
        if self._offset + size > len(self._data):
            raise CodecError(
                f"Not enough data to read: {self._offset} + {size} > {len(self._data)}"
            )
        value = self._data[self._offset:self._offset + size]
        self._offset += size
        return value

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_uint8(self) -> int:
        return self._unpack("<B")

    def read_uint16_le(self) -> int:
        return self._unpack("<H")

    def read_uint32_le(self) -> int:
        return self._unpack("<I")

    def read_uint32_be(self) -> int:
        return self._unpack(">I")

    def read_int32_le(self) -> int:
        return self._unpack("<i")

    def read_uint64_le(self) -> int:
        return self._unpack("<Q")

    def read_varint(self) -> int:
        """Read a Bitcoin variable length integer (full 64-bit range)."""
        first = self.read_uint8()
        if first == 0xFD:
            return self.read_uint16_le()
        if first == 0xFE:
            return self.read_uint32_le()
        if first == 0xFF:
            return self.read_uint64_le()
        return first

    def read_var_bytes(self) -> bytes:
        """Read a varint length followed by that many bytes."""
        return self.read(self.read_varint())

    def read_push_data(self) -> Union[bytes, int]:
        """
        Read a script push data item.

        Returns:
            The pushed bytes, or the opcode itself when the next item is
            not a push.
        """
        opcode = self.read_uint8()
        if opcode <= MAX_DIRECT_PUSH:
            return self.read(opcode)
        if opcode == OP_PUSHDATA1:
            return self.read(self.read_uint8())
        if opcode == OP_PUSHDATA2:
            return self.read(self.read_uint16_le())
        if opcode == OP_PUSHDATA4:
            return self.read(self.read_uint32_le())
        return opcode


class WriteBuffer:
    """Accumulates sequential writes into a single byte string."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def write(self, data: Union[bytes, bytearray, memoryview]) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise CodecError(f"Cannot write {type(data).__name__} to WriteBuffer")
        self._buf.extend(data)

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self._buf.extend(struct.pack(fmt, value))
        except struct.error as e:
            raise CodecError(f"Value {value} out of range for {fmt}: {e}") from e

    def write_uint8(self, value: int) -> None:
        self._pack("<B", value)

    def write_uint16_le(self, value: int) -> None:
        self._pack("<H", value)

    def write_uint32_le(self, value: int) -> None:
        self._pack("<I", value)

    def write_uint32_be(self, value: int) -> None:
        self._pack(">I", value)

    def write_int32_le(self, value: int) -> None:
        self._pack("<i", value)

    def write_uint64_le(self, value: int) -> None:
        self._pack("<Q", value)

    def write_varint(self, value: int) -> None:
        """
        Write a Bitcoin variable length integer.

        Only values up to 0xffffffff are supported on the write path.
        """
        if value < 0:
            raise CodecError(f"Negative varint: {value}")
        if value < 0xFD:
            self.write_uint8(value)
        elif value <= 0xFFFF:
            self.write_uint8(0xFD)
            self.write_uint16_le(value)
        elif value <= 0xFFFFFFFF:
            self.write_uint8(0xFE)
            self.write_uint32_le(value)
        else:
            raise CodecError("Var int over 32 bits")

    def write_var_bytes(self, data: bytes) -> None:
        self.write_varint(len(data))
        self.write(data)

    def write_push_data(self, data: bytes) -> None:
        """Write a script push data item preceded by its size."""
        size = len(data)
        if size <= MAX_DIRECT_PUSH:
            self.write_uint8(size)
        elif size <= 0xFF:
            self.write_uint8(OP_PUSHDATA1)
            self.write_uint8(size)
        elif size <= 0xFFFF:
            self.write_uint8(OP_PUSHDATA2)
            self.write_uint16_le(size)
        elif size <= 0xFFFFFFFF:
            self.write_uint8(OP_PUSHDATA4)
            self.write_uint32_le(size)
        else:
            raise CodecError("Push data size over 32 bits")
        self.write(data)

    def to_bytes(self) -> bytes:
        return bytes(self._buf)
