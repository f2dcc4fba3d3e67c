import asyncio

import pytest

from conftest import DEVICE_ID, MNEMONIC, ROOT_KEY_ID
from signing_agent.crypto.bip39 import mnemonic_to_seed
from signing_agent.crypto.hd import ExtendedKey
from signing_agent.crypto.signature import Signature, parse_der_signature
from signing_agent.exceptions import APIError, TerminationError, TimeoutError
from signing_agent.modules import RootKeyModule, SigningModule
from signing_agent.types import ActivityResult, Transaction

PENDING_TX = (
    "01000000019418223c6d8d9e4d3fc5acd4d2641a7021362906bddb14d4ed9bd33b7d5e0cd100"
    "00000000ffffffff0258020000000000001976a914f01354f339b033474c4f607c03036224b5"
    "d9c0bd88acc3230000000000001976a914047ee96e142bb9763e0c4de2688821b4e8c5708888"
    "ac00000000"
)
FOLLOW_UP_TX = (
    "02000000015ae2b5c7ece718c7d2898c44ac80318841586a89dbc9ad25ee552ae8f5f39d6500"
    "00000000ffffffff011d760200000000001976a9145389667241a2bb9a8665a463531171e50a"
    "7f058588ac00000000"
)
LOCKING_SCRIPT = "76a9145315bffb33ab27eac7c4113299ccb020ce4344ee88ac"

SIGNABLE = {
    "id": "pt-1",
    "tx": PENDING_TX,
    "input_supplements": [
        {
            "locking_script": LOCKING_SCRIPT,
            "value": 10000,
            "needed_signatures": [
                {"root_key_id": ROOT_KEY_ID, "derivation_path": "m/0/1", "signature_index": 0},
            ],
        },
    ],
}
FOLLOW_UP = {"id": "pt-2", "tx": FOLLOW_UP_TX, "input_supplements": [{}]}

PROPOSALS = {
    "data": [
        {"handle": "alice", "profile_id": "p-1", "lockbox_id": "lb-1", "is_accepted": True},
        {"handle": "carol", "profile_id": "p-2", "lockbox_id": "lb-2", "is_accepted": False},
    ]
}
ACTIVITY = "profiles/p-1/activity/act-1"


def _activity(*transactions, **fields):
    return {"data": {"transactions": list(transactions), **fields}}


PENDING_ENTRY = {"type": "pending_tx", "pending_transaction_id": "pt-1"}
TX_ENTRY = {"type": "tx", "txid": "aa" * 32}


@pytest.fixture
def signing(provider, stored_root_key, encryption_secret):
    provider.on("GET", "users/@me/rootkeys", {"data": [stored_root_key]})
    provider.on("GET", "proposals", PROPOSALS)
    rootkeys = RootKeyModule(provider, device_id=DEVICE_ID, encryption_secret=encryption_secret)
    return SigningModule(provider, rootkeys, device_id=DEVICE_ID, poll_interval=0, poll_attempts=2)


def _prepare_send(provider):
    provider.on("PUT", "profiles/p-1/send", {"data": {"activity_id": "act-1"}})
    provider.on("GET", "profiles/p-1/pending_transactions/pt-1", {"data": SIGNABLE})
    provider.on("POST", "profiles/p-1/pending_transactions/pt-1", {"data": None})


def test_collect_signatures(signing):
    tx, signatures = asyncio.run(signing.collect_signatures(SIGNABLE))

    assert tx.hex() == PENDING_TX
    assert len(signatures) == 1
    assert signatures[0].signature_index == 0
    assert signatures[0].sig_hash_type == 0x41
    assert signatures[0].signature[-1] == 0x41

    key = ExtendedKey.from_seed(mnemonic_to_seed(MNEMONIC)).derive("m/0/1").key()
    r, s, _ = parse_der_signature(signatures[0].signature)
    digest = tx.sighash(0, bytes.fromhex(LOCKING_SCRIPT), 10000)
    assert key.public_key().verify(Signature(r, s), digest)


def test_collect_without_needed_signatures(signing):
    _, signatures = asyncio.run(signing.collect_signatures(FOLLOW_UP))
    assert signatures == []
    _, signatures = asyncio.run(signing.collect_signatures({"id": "pt-3", "tx": FOLLOW_UP_TX}))
    assert signatures == []


def test_sign_follows_rounds(signing, provider):
    provider.on("POST", "profiles/p-1/pending_transactions/pt-1", {"data": FOLLOW_UP})
    provider.on("POST", "profiles/p-1/pending_transactions/pt-2", {"data": None})

    txids = asyncio.run(signing.sign("p-1", SIGNABLE))

    assert txids == [Transaction.from_hex(PENDING_TX).txid, Transaction.from_hex(FOLLOW_UP_TX).txid]
    first = provider.requests_to("POST", "profiles/p-1/pending_transactions/pt-1")
    second = provider.requests_to("POST", "profiles/p-1/pending_transactions/pt-2")
    assert len(first[0]["signatures"]) == 1
    assert first[0]["signatures"][0]["sig_hash_type"] == 0x41
    assert second == [{"signatures": []}]


def test_send_executes(signing, provider):
    _prepare_send(provider)
    provider.on(
        "GET",
        ACTIVITY,
        _activity(),
        _activity(PENDING_ENTRY),
        _activity(TX_ENTRY, stage="signing"),
        _activity(TX_ENTRY, PENDING_ENTRY, stage="executed"),
    )

    result = asyncio.run(signing.send("alice", "bob", "TOKEN", "5"))

    assert result == ActivityResult(activity="act-1", txs=["aa" * 32], executed=True, stage="executed")
    assert provider.requests_to("PUT", "profiles/p-1/send") == [
        {"lock_box_id": "lb-1", "recipients": [{"handle": "bob", "amount": 5}], "instrument": "TOKEN"}
    ]
    assert len(provider.requests_to("POST", "profiles/p-1/pending_transactions/pt-1")) == 1


def test_send_poll_budget_exhausted(signing, provider):
    _prepare_send(provider)
    provider.on("GET", ACTIVITY, _activity(PENDING_ENTRY), _activity(TX_ENTRY, stage="signing"))

    result = asyncio.run(signing.send("alice", "bob", "TOKEN", 1.5))

    assert result.executed is False
    assert result.txs == ["aa" * 32]
    # One wait for the pending transaction, then the initial poll and two retries
    assert len(provider.requests_to("GET", ACTIVITY)) == 4


def test_send_terminated_after_signing(signing, provider):
    _prepare_send(provider)
    provider.on(
        "GET",
        ACTIVITY,
        _activity(PENDING_ENTRY),
        _activity(TX_ENTRY, stage="terminated", termination_reason="insufficient funds"),
    )

    with pytest.raises(TerminationError) as excinfo:
        asyncio.run(signing.send("alice", "bob", "TOKEN", 5))

    error = excinfo.value
    assert error.termination_reason == "insufficient funds"
    assert error.txs == ["aa" * 32]
    assert error.started
    assert error.data["executed"] is False


def test_send_terminated_before_pending(signing, provider):
    _prepare_send(provider)
    provider.on("GET", ACTIVITY, _activity(termination_reason="rejected"))

    with pytest.raises(TerminationError) as excinfo:
        asyncio.run(signing.send("alice", "bob", "TOKEN", 5))

    assert not excinfo.value.started
    assert provider.requests_to("POST", "profiles/p-1/pending_transactions/pt-1") == []


def test_send_pending_timeout(signing, provider):
    _prepare_send(provider)
    provider.on("GET", ACTIVITY, _activity())

    with pytest.raises(TimeoutError):
        asyncio.run(signing.send("alice", "bob", "TOKEN", 5, pending_timeout=0))


def test_send_failure_codes(signing, provider):
    provider.on("PUT", "profiles/p-1/send", APIError("API Error: 500", code=500, data="boom"))
    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.send("alice", "bob", "TOKEN", 5))
    assert excinfo.value.data == {"code": "SEND_FAILED"}

    provider.on("PUT", "profiles/p-1/send", APIError("API Error: 400", code=400, data={"code": "INSUFFICIENT"}))
    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.send("alice", "bob", "TOKEN", 5))
    assert excinfo.value.data == {"code": "INSUFFICIENT"}


def test_handle_lookup(signing):
    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.send("dave", "bob", "TOKEN", 5))
    assert excinfo.value.data == {"code": "HANDLE_NOT_FOUND"}

    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.send("carol", "bob", "TOKEN", 5))
    assert excinfo.value.data == {"code": "HANDLE_NOT_ACTIVE"}


def test_describe(signing, provider):
    provider.on("GET", ACTIVITY, _activity(TX_ENTRY, stage="executed"))
    result = asyncio.run(signing.describe("alice", "act-1"))
    assert result.executed
    assert result.to_dict()["txs"] == ["aa" * 32]

    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.describe("dave", "act-1"))
    assert excinfo.value.data == {"code": "HANDLE_NOT_FOUND"}


HANDSHAKES = {
    "data": [
        {"id": "hs-1", "request_id": "r-1", "scope": "trade_reject"},
        {"id": "hs-2", "request_id": "r-2", "scope": "reject_proposal"},
        {"id": "hs-3", "request_id": "r-3", "scope": "transfer"},
    ]
}


@pytest.fixture
def handshakes(provider):
    provider.on("GET", "auth/handshakes", HANDSHAKES)
    provider.on("PUT", "auth/handshakes", {"data": {}})


def test_handshake_rejections(signing, provider, handshakes):
    provider.on("POST", "profiles/p-1/requests/r-1/reject", {"data": {}})
    provider.on("POST", "profiles/p-1/pending_transactions/requests/r-2/reject", {"data": {}})

    assert asyncio.run(signing.sign_handshake("alice", "hs-1")) == {"rejected": True}
    assert asyncio.run(signing.sign_handshake("alice", "hs-2")) == {"rejected": True}

    assert provider.requests_to("PUT", "auth/handshakes") == [
        {"handshake_id": "hs-1", "device_id": DEVICE_ID, "status": "approved"},
        {"handshake_id": "hs-2", "device_id": DEVICE_ID, "status": "approved"},
    ]


def test_handshake_signs_pending_transaction(signing, provider, handshakes):
    provider.on("GET", "profiles/p-1/pending_transactions/request_id/r-3", {"data": SIGNABLE})
    provider.on("POST", "profiles/p-1/pending_transactions/pt-1", {"data": None})

    result = asyncio.run(signing.sign_handshake("alice", "hs-3"))

    assert result == {"signed": True, "txids": [Transaction.from_hex(PENDING_TX).txid]}
    assert len(provider.requests_to("PUT", "auth/handshakes")) == 1


def test_handshake_errors(signing, provider, handshakes):
    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.sign_handshake("alice", "hs-9"))
    assert excinfo.value.data == {"code": "HANDSHAKE_NOT_FOUND"}

    provider.on("GET", "profiles/p-1/pending_transactions/request_id/r-3", {"data": None})
    with pytest.raises(APIError) as excinfo:
        asyncio.run(signing.sign_handshake("alice", "hs-3"))
    assert excinfo.value.data == {"code": "PENDING_TRANSACTION_NOT_FOUND"}
    assert provider.requests_to("PUT", "auth/handshakes") == []
