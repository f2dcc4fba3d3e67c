import pytest

from signing_agent.crypto.bip39 import mnemonic_to_entropy
from signing_agent.crypto.envelope import create_secret_jwk, encrypt
from signing_agent.providers.base import BaseProvider

MNEMONIC = (
    "legal winner thank year wave sausage worth useful legal winner thank year "
    "wave sausage worth useful legal winner thank year wave sausage worth title"
)
DEVICE_ID = "dev-1"
ROOT_KEY_ID = "rk-1"


class FakeProvider(BaseProvider):
    """Provider answering from canned responses and recording every request."""

    def __init__(self):
        super().__init__()
        self.routes = {}
        self.calls = []
        self._connected = False

    def on(self, method, path, *responses):
        # The last response repeats once the others are used up
        self.routes[(method, path)] = list(responses)

    def requests_to(self, method, path):
        return [body for m, p, body in self.calls if (m, p) == (method, path)]

    async def request(self, method, path, body=None, token=None):
        self.calls.append((method, path, body))
        if (method, path) not in self.routes:
            raise AssertionError(f"Unexpected request: {method} {path}")
        responses = self.routes[(method, path)]
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def connect(self):
        self._connected = True

    async def disconnect(self):
        self._connected = False

    @property
    def is_connected(self):
        return self._connected


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def encryption_secret():
    return create_secret_jwk()


@pytest.fixture
def stored_root_key(encryption_secret):
    """Root-key listing entry holding MNEMONIC encrypted for DEVICE_ID."""
    envelope = encrypt(mnemonic_to_entropy(MNEMONIC), encryption_secret)
    return {"id": ROOT_KEY_ID, "encrypted": envelope.hex(), "device_id": DEVICE_ID}
