from dataclasses import replace

import pytest

from signing_agent.constants import HARDENED_OFFSET
from signing_agent.crypto.bip39 import mnemonic_to_seed
from signing_agent.crypto.hd import ExtendedKey, PublicMaterial, parse_path
from signing_agent.exceptions import DerivationError, ValidationError
from signing_agent.modules.rootkeys import RootKeyModule

SEED = bytes.fromhex(
    "371c6987141e30d3a2d7fa35c19bf476bdce121db0f7ed10248b36708a3d3a71"
    "f9c5ef71d1efb31f55567c2a3bc6d8a134212229f05bb0a88828368022468e87"
)
SEED_MNEMONIC = "drift basic fame sight capital seven spot win humble regret alpha shift custom click galaxy"
ROOT = "xprv9s21ZrQH143K3hJk1gVbS5EdekArYf5Rk1xKRDkkZAbpDEaFzWQkfvPEthzgKGsUtoTRV14LZVh4pam8WckasA71ZLWN1MkPf1Sw794kTcw"


def test_from_seed():
    assert str(ExtendedKey.from_seed(SEED)) == ROOT


def test_from_mnemonic_seed():
    assert mnemonic_to_seed(SEED_MNEMONIC) == SEED


def test_parse_root():
    key = ExtendedKey.parse(ROOT)
    assert key.is_private
    assert key.depth == 0
    assert str(key) == ROOT


def test_parse_child_index():
    key = ExtendedKey.parse(
        "xprv9vDE3qgGTP5sDGjTCKBtF46Gf4iBwxbcBmobLakz1yKgMspoVYqKXixTJP2GuSJ1M7uxUD8KWkiFdEvupbqbd1GXGS68Sc6xFQE82viz9H9"
    )
    assert key.is_private
    assert key.index == 5


def test_derive_normal_and_hardened():
    key = ExtendedKey.parse(
        "xprv9w1T359ct1N4vQivGTF2o72r5iKpg9CmCujTcSyGbfMQp341iEja8cn8Xa45o5qdMQscXMxwf4WMzzTXNSqqgKHCmQL2WYCpVRqGkiH2iLn"
    )
    assert key.index == 2 + HARDENED_OFFSET
    assert key.is_hardened

    child = key.derive("m/1")
    assert str(child) == (
        "xprv9xh5e7ijHEoDKmqasgHisgsoqhSrCg1nCkWvJsEdkqnrNcmvsaTjqyJKiSWc8ru7tzmJNh3AKQHvdYGdDnrzqVfJqRTWueD8NQdVV5aE1vu"
    )
    assert child.key().wif() == "KzKitEMxyBKwY2pXxVjNCxMokjWMWXydSgVBaW53fma6RLzRgc4s"
    assert child.public_key().hex() == "03b2087cc4be2c8d103b8122247bd557f3cb76ba2f7ed0279d0246362b03016303"
    assert child.parent_fingerprint == key.fingerprint

    hard_child = child.derive("m/1'")
    assert str(hard_child) == (
        "xprv9zaamjzwnqe4eapXZaLqLfRbEGgkUNh2eNy69ZUb5oU29vZcRzUagwNd1ZcGYYDZVcp4ZxTenNAR3fYfC2QCG4dP38mbLrUEV1xvWfUUjwY"
    )


def test_to_public():
    key = ExtendedKey.parse(
        "xprv9w1T359ct1N75AHd9PPAfjG1eBrcP7UkdFEZYakrhUiss6ToH2SWUUwAB8SbkLZDAXFbtoy7ybssUqsiEFrDutvNuepUiHnfZtNNX55HcbC"
    )
    xpub = key.to_public()
    assert isinstance(xpub.material, PublicMaterial)
    assert str(xpub) == (
        "xpub69zoSagWiNvQHeN6FQvB2sCkCDh6naCbzUAALyAUFpFrjtnwpZkm2HFe2PuVVHbccDDifg5PzCMhNXA2FRz464tbbksXLhwaaegpXvdWX4e"
    )
    assert ExtendedKey.parse(str(xpub)) == xpub


def test_public_derivation_matches_private():
    root = ExtendedKey.from_seed(SEED)
    private_child = root.derive("m/0'/7/3")
    public_child = root.derive("m/0'").to_public().derive("m/7/3")
    assert public_child == private_child.to_public()


def test_hardened_from_public_fails():
    xpub = ExtendedKey.from_seed(SEED).to_public()
    with pytest.raises(DerivationError):
        xpub.derive("m/0'")
    with pytest.raises(DerivationError):
        xpub.key()


def test_internal_bytes():
    root = ExtendedKey.from_seed(SEED)
    payload = root.to_internal_bytes()
    assert len(payload) == 78
    assert ExtendedKey.from_internal_bytes(payload) == root
    with pytest.raises(ValidationError):
        ExtendedKey.from_internal_bytes(b"\x00" * 78)


def test_make_xpub_helpers():
    root = ExtendedKey.from_seed(SEED)
    expected = root.derive("m/44'/0").to_public()
    assert RootKeyModule.make_xpub(SEED_MNEMONIC, "m/44'/0") == str(expected)
    assert RootKeyModule.make_xpub_internal(SEED_MNEMONIC, "m/44'/0") == expected.to_internal_bytes().hex()


def test_parse_path():
    assert parse_path("m") == []
    assert parse_path("m/0/1'/2h") == [0, 1 + HARDENED_OFFSET, 2 + HARDENED_OFFSET]
    for bad in ("0/1", "m/x", "m/2147483648", "m/²", "m/٣'"):
        with pytest.raises(DerivationError):
            parse_path(bad)


def test_derivation_stops_at_max_depth():
    root = ExtendedKey.from_seed(SEED)
    deepest = replace(root.derive("m/1"), depth=254).derive_child(3)
    assert deepest.depth == 255
    assert len(deepest.to_internal_bytes()) == 78

    with pytest.raises(DerivationError):
        deepest.derive_child(0)
    with pytest.raises(DerivationError):
        deepest.to_public().derive("m/0")
