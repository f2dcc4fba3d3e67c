import pytest

from signing_agent.exceptions import CodecError, ValidationError
from signing_agent.utils.buffer import ReadBuffer, WriteBuffer
from signing_agent.utils.encoding import (
    base64url_encode, base64url_decode,
    encode_base58, decode_base58, encode_base58_check, decode_base58_check,
)


def test_base58_roundtrip():
    payload = b"hello world"
    encoded = encode_base58(payload)
    assert decode_base58(encoded) == payload
    assert encode_base58(b"\x00\x00\x01") == "112"
    with pytest.raises(ValidationError):
        decode_base58("0OIl")


def test_base58check_roundtrip():
    payload = b"test payload"
    enc = encode_base58_check(payload)
    dec = decode_base58_check(enc)
    assert dec == payload
    with pytest.raises(ValidationError):
        decode_base58_check(enc[:-1] + ("1" if enc[-1] != "1" else "2"))


def test_base64url_is_unpadded():
    assert base64url_encode(b"\xff\xfe") == "__4"
    assert base64url_decode("__4") == b"\xff\xfe"


def test_varint_encoding():
    for value, expected in [
        (0, "00"),
        (0xFC, "fc"),
        (0xFD, "fdfd00"),
        (0xFFFF, "fdffff"),
        (0x10000, "fe00000100"),
        (0xFFFFFFFF, "feffffffff"),
    ]:
        buf = WriteBuffer()
        buf.write_varint(value)
        assert buf.to_bytes().hex() == expected
        assert ReadBuffer(expected).read_varint() == value


def test_varint_over_32_bits():
    buf = WriteBuffer()
    with pytest.raises(CodecError, match="Var int over 32 bits"):
        buf.write_varint(0x100000000)

    # Reading accepts the full 64-bit form
    assert ReadBuffer("ff0000000001000000").read_varint() == 2**32


def test_fixed_width_integers():
    buf = WriteBuffer()
    buf.write_uint16_le(0x0102)
    buf.write_uint32_le(0x01020304)
    buf.write_uint32_be(0x01020304)
    buf.write_int32_le(-1)
    buf.write_uint64_le(161309)
    reader = ReadBuffer(buf.to_bytes())
    assert reader.read_uint16_le() == 0x0102
    assert reader.read_uint32_le() == 0x01020304
    assert reader.read_uint32_be() == 0x01020304
    assert reader.read_int32_le() == -1
    assert reader.read_uint64_le() == 161309
    assert reader.remaining == 0

    with pytest.raises(CodecError):
        WriteBuffer().write_uint8(256)


def test_push_data_sizes():
    for size, prefix in [(0x4B, "4b"), (0x4C, "4c4c"), (0x100, "4d0001")]:
        data = b"\xab" * size
        buf = WriteBuffer()
        buf.write_push_data(data)
        encoded = buf.to_bytes()
        assert encoded.hex().startswith(prefix)
        assert ReadBuffer(encoded).read_push_data() == data


def test_push_data_returns_opcode():
    # OP_DUP is not a push
    assert ReadBuffer("76").read_push_data() == 0x76


def test_truncated_read():
    reader = ReadBuffer(b"\x01\x02")
    reader.read(1)
    with pytest.raises(CodecError, match=r"Not enough data to read: 1 \+ 4 > 2"):
        reader.read_uint32_le()
    with pytest.raises(CodecError):
        ReadBuffer("fd01").read_varint()
    with pytest.raises(CodecError):
        ReadBuffer("05aabb").read_var_bytes()
