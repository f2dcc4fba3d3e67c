import asyncio
import json

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from signing_agent.auth import (
    DeviceAuth,
    TokenCache,
    create_jwt,
    expired_fraction,
    generate_device_key,
    parse_jwt,
)
from signing_agent.exceptions import ProtocolError, ValidationError
from signing_agent.utils.encoding import base64url_decode, base64url_encode


def _token(payload):
    header = base64url_encode(json.dumps({"alg": "none"}).encode())
    body = base64url_encode(json.dumps(payload).encode())
    return f"{header}.{body}.sig"


def _public_key(jwk):
    x = int.from_bytes(base64url_decode(jwk["x"]), "big")
    y = int.from_bytes(base64url_decode(jwk["y"]), "big")
    return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()


def test_generate_device_key():
    key_id, private_jwk, public_jwk = generate_device_key()
    assert len(key_id) == 64
    assert private_jwk["crv"] == "P-256"
    assert "d" in private_jwk
    assert "d" not in public_jwk
    assert private_jwk["x"] == public_jwk["x"]


def test_create_jwt_verifies():
    key_id, private_jwk, public_jwk = generate_device_key()
    jwt = create_jwt(key_id, private_jwk, {"jti": "1"})

    header, payload = parse_jwt(jwt)
    assert header == {"typ": "JWT", "alg": "ES256", "kid": key_id}
    assert payload == {"jti": "1"}

    signing_input, _, signature = jwt.rpartition(".")
    raw = base64url_decode(signature)
    assert len(raw) == 64
    der = encode_dss_signature(int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:], "big"))
    _public_key(public_jwk).verify(der, signing_input.encode(), ec.ECDSA(hashes.SHA256()))

    with pytest.raises(InvalidSignature):
        _public_key(public_jwk).verify(der, b"tampered", ec.ECDSA(hashes.SHA256()))


def test_create_jwt_requires_private_key():
    _, _, public_jwk = generate_device_key()
    with pytest.raises(ValidationError):
        create_jwt("kid", public_jwk, {})


def test_expired_fraction():
    token = _token({"iat": 1000, "expires": 2000})
    assert expired_fraction(token, now=1000) == 0.0
    assert expired_fraction(token, now=1500) == 0.5
    assert expired_fraction(token, created_at=1200, now=1700) == 0.5

    with pytest.raises(ProtocolError):
        expired_fraction(_token({"iat": 1000}), now=1500)
    with pytest.raises(ProtocolError):
        parse_jwt("not-a-jwt")


def test_token_cache_refresh_threshold():
    now = [1000.0]
    cache = TokenCache(clock=lambda: now[0])
    assert cache.needs_refresh()

    cache.token = _token({"iat": 1000, "exp": 2000})
    cache.refreshed_at = 1000.0
    now[0] = 1400.0
    assert not cache.needs_refresh()
    now[0] = 1600.0
    assert cache.needs_refresh()


def test_token_cache_single_flight():
    calls = []
    token = _token({"iat": 1000, "exp": 10 ** 12})

    async def refresh():
        calls.append(1)
        await asyncio.sleep(0.01)
        return token

    async def main():
        cache = TokenCache(clock=lambda: 1000.0)
        results = await asyncio.gather(*(cache.get(refresh) for _ in range(5)))
        assert results == [token] * 5
        assert await cache.get(refresh) == token

    asyncio.run(main())
    assert len(calls) == 1


def test_token_cache_failed_refresh_is_retried():
    attempts = []
    token = _token({"iat": 1000, "exp": 10 ** 12})

    async def refresh():
        attempts.append(1)
        if len(attempts) == 1:
            raise ProtocolError("boom")
        return token

    async def main():
        cache = TokenCache(clock=lambda: 1000.0)
        with pytest.raises(ProtocolError):
            await cache.get(refresh)
        assert await cache.get(refresh) == token

    asyncio.run(main())
    assert len(attempts) == 2


class _TokenProvider:
    def __init__(self, token):
        self.token = token
        self.requests = []

    async def request(self, method, path, body=None, token=None):
        self.requests.append((method, path, token))
        return {"data": {"token": self.token}}


def test_device_auth_uses_single_use_jwt():
    key_id, private_jwk, _ = generate_device_key()
    bearer = _token({"iat": 1000, "exp": 10 ** 12})
    provider = _TokenProvider(bearer)
    auth = DeviceAuth(key_id, private_jwk, TokenCache(clock=lambda: 1000.0))

    assert asyncio.run(auth.get_token(provider)) == bearer
    method, path, jwt = provider.requests[0]
    assert (method, path) == ("GET", "auth/token/device")
    assert parse_jwt(jwt)[0]["kid"] == key_id


def test_device_auth_requires_pairing():
    with pytest.raises(ValidationError, match="Pairing not found"):
        DeviceAuth(None, None).single_use_jwt()
