import pytest

from signing_agent.constants import CURVE_ORDER, Network
from signing_agent.crypto.hash import sha256
from signing_agent.crypto.keys import PrivateKey, PublicKey
from signing_agent.crypto.signature import Signature, parse_der_signature, encode_der_signature, verify
from signing_agent.exceptions import CryptoError, ValidationError


def test_private_key_wif_roundtrip():
    key = PrivateKey(bytes(sha256(b"seed")))
    wif = key.wif(Network.TESTNET, compressed=True)
    imported, compressed, net = PrivateKey.from_wif(wif)
    assert compressed is True
    assert net == Network.TESTNET
    assert imported == key


def test_wif_vector():
    key, compressed, network = PrivateKey.from_wif("KzKitEMxyBKwY2pXxVjNCxMokjWMWXydSgVBaW53fma6RLzRgc4s")
    assert compressed is True
    assert network == Network.MAINNET
    assert key.public_key().hex() == "03b2087cc4be2c8d103b8122247bd557f3cb76ba2f7ed0279d0246362b03016303"
    assert key.wif() == "KzKitEMxyBKwY2pXxVjNCxMokjWMWXydSgVBaW53fma6RLzRgc4s"


def test_private_key_range():
    with pytest.raises(ValidationError):
        PrivateKey(b"\x00" * 32)
    with pytest.raises(ValidationError):
        PrivateKey(CURVE_ORDER.to_bytes(32, "big"))
    assert PrivateKey((1).to_bytes(32, "big")).to_int() == 1


def test_private_key_repr_hides_secret():
    key = PrivateKey(bytes.fromhex("11" * 32))
    assert "11" * 32 not in repr(key)


def test_public_key_compressed():
    key = PrivateKey((1).to_bytes(32, "big"))
    pub = key.public_key()
    assert pub.hex() == "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    uncompressed = bytes.fromhex(
        "0479be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
    )
    assert PublicKey(uncompressed) == pub


def test_sign_and_verify():
    key = PrivateKey(bytes.fromhex("22" * 32))
    digest = sha256(b"message")
    signature = key.sign(digest)
    assert key.public_key().verify(signature, digest)
    assert verify(signature.to_der(), key.public_key(), digest)
    assert not key.public_key().verify(signature, sha256(b"other"))
    assert not key.public_key().verify(b"\x30\x00", digest)


def test_signing_is_deterministic():
    key = PrivateKey(bytes.fromhex("33" * 32))
    digest = sha256(b"message")
    assert key.sign(digest) == key.sign(digest)
    with pytest.raises(CryptoError):
        key.sign(b"short")


def test_signature_is_low_s():
    high = Signature(1, CURVE_ORDER - 2)
    assert high.s == 2
    key = PrivateKey(bytes.fromhex("44" * 32))
    assert key.sign(sha256(b"x")).s <= CURVE_ORDER // 2


def test_der_signature_roundtrip():
    r = 1
    s = 2
    sig = encode_der_signature(r, s)
    parsed_r, parsed_s, sighash = parse_der_signature(sig)
    assert parsed_r == r
    assert parsed_s == s
    assert sighash is None

    with_type = encode_der_signature(r, s, 0x41)
    assert parse_der_signature(with_type) == (1, 2, 0x41)

    with pytest.raises(CryptoError):
        parse_der_signature(b"\x31\x06\x02\x01\x01\x02\x01\x02")


def test_compact_signature():
    key = PrivateKey(bytes.fromhex("55" * 32))
    signature = key.sign(sha256(b"compact"))
    compact = signature.to_compact()
    assert len(compact) == 64
    assert Signature.from_compact(compact) == signature
    assert Signature.from_compact(str(signature)) == signature
    assert Signature.from_der(signature.to_der()) == signature
    with pytest.raises(CryptoError):
        Signature.from_compact(b"\x01" * 63)
