"""Device authentication: ES256 device keys, single-use JWTs and token caching."""

import asyncio
import hashlib
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .constants import TOKEN_REFRESH_FRACTION
from .exceptions import ProtocolError, ValidationError
from .utils.encoding import base64url_decode, base64url_encode

if TYPE_CHECKING:
    from .providers.base import BaseProvider

__all__ = [
    "generate_device_key",
    "create_jwt",
    "parse_jwt",
    "expired_fraction",
    "TokenCache",
    "DeviceAuth",
]

logger = logging.getLogger(__name__)


def _int_to_b64(value: int) -> str:
    return base64url_encode(value.to_bytes(32, "big"))


def generate_device_key() -> tuple[str, dict[str, Any], dict[str, Any]]:
    """
    Generate a P-256 device key pair.

    Returns:
        Tuple of (key_id, private_jwk, public_jwk); the key id is the
        SHA-256 hex of the raw uncompressed public point
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    numbers = private_key.private_numbers()
    public_numbers = numbers.public_numbers

    public_jwk = {
        "kty": "EC",
        "crv": "P-256",
        "x": _int_to_b64(public_numbers.x),
        "y": _int_to_b64(public_numbers.y),
        "ext": True,
        "key_ops": ["verify"],
    }
    private_jwk = {**public_jwk, "d": _int_to_b64(numbers.private_value), "key_ops": ["sign"]}

    raw_point = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    key_id = hashlib.sha256(raw_point).hexdigest()

    return key_id, private_jwk, public_jwk


def _load_private_jwk(jwk: Mapping[str, Any]) -> ec.EllipticCurvePrivateKey:
    if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256" or "d" not in jwk:
        raise ValidationError("Device key must be a private P-256 JWK")
    d = int.from_bytes(base64url_decode(jwk["d"]), "big")
    return ec.derive_private_key(d, ec.SECP256R1())


def create_jwt(kid: str, private_jwk: Mapping[str, Any], claims: Mapping[str, Any]) -> str:
    """Create a compact ES256 JWT signed with the device key."""
    header = base64url_encode(json.dumps({"typ": "JWT", "alg": "ES256", "kid": kid}).encode())
    payload = base64url_encode(json.dumps(dict(claims)).encode())
    signing_input = f"{header}.{payload}".encode()

    der = _load_private_jwk(private_jwk).sign(signing_input, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    signature = base64url_encode(r.to_bytes(32, "big") + s.to_bytes(32, "big"))

    return f"{header}.{payload}.{signature}"


def parse_jwt(jwt: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Decode header and payload without verifying the signature."""
    parts = jwt.split(".")
    if len(parts) != 3:
        raise ProtocolError("Malformed JWT")
    try:
        header = json.loads(base64url_decode(parts[0]))
        payload = json.loads(base64url_decode(parts[1]))
    except (ValueError, ValidationError) as e:
        raise ProtocolError(f"Malformed JWT: {e}") from e
    return header, payload


def expired_fraction(jwt: str, created_at: Optional[float] = None, now: Optional[float] = None) -> float:
    """
    Fraction of a token's lifetime that has elapsed.

    The issue time comes from ``iat`` when present, otherwise from the
    local creation time, and vice versa.
    """
    _, payload = parse_jwt(jwt)
    issued = payload.get("iat") or created_at
    created = created_at or payload.get("iat")
    expires = payload.get("expires") or payload.get("exp")
    if issued is None or expires is None:
        raise ProtocolError("Token carries no issue or expiry time")
    if expires <= issued:
        return 1.0
    if now is None:
        now = time.time()
    return (now - created) / (expires - issued)


class TokenCache:
    """
    Bearer token with the time it was obtained.

    Concurrent callers that find the token stale share one in-flight
    refresh.
    """

    def __init__(
        self,
        threshold: float = TOKEN_REFRESH_FRACTION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.token: Optional[str] = None
        self.refreshed_at: Optional[float] = None
        self.threshold = threshold
        self._clock = clock
        self._inflight: Optional[asyncio.Task] = None

    def needs_refresh(self) -> bool:
        if self.token is None:
            return True
        return expired_fraction(self.token, self.refreshed_at, self._clock()) > self.threshold

    def invalidate(self) -> None:
        self.token = None
        self.refreshed_at = None

    async def get(self, refresh: Callable[[], Awaitable[str]]) -> str:
        """Return the cached token, refreshing it first if stale."""
        if not self.needs_refresh():
            return self.token
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh(refresh))
        return await self._inflight

    async def _refresh(self, refresh: Callable[[], Awaitable[str]]) -> str:
        try:
            token = await refresh()
            self.token = token
            self.refreshed_at = self._clock()
            return token
        finally:
            self._inflight = None


class DeviceAuth:
    """Obtains bearer tokens by presenting single-use JWTs signed with the device key."""

    def __init__(
        self,
        key_id: Optional[str],
        private_jwk: Optional[Mapping[str, Any]],
        cache: Optional[TokenCache] = None,
    ) -> None:
        self.key_id = key_id
        self.private_jwk = private_jwk
        self.cache = cache or TokenCache()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def is_paired(self) -> bool:
        return bool(self.key_id and self.private_jwk)

    def single_use_jwt(self) -> str:
        if not self.is_paired:
            raise ValidationError("Pairing not found")
        return create_jwt(self.key_id, self.private_jwk, {"jti": str(int(time.time() * 1000))})

    async def get_token(self, provider: "BaseProvider") -> str:
        """Return a valid bearer token, refreshing it through ``provider`` when stale."""

        async def refresh() -> str:
            self._logger.debug("Refreshing device token")
            response = await provider.request("GET", "auth/token/device", token=self.single_use_jwt())
            try:
                return response["data"]["token"]
            except (KeyError, TypeError) as e:
                raise ProtocolError("Token response missing data.token", data=response) from e

        return await self.cache.get(refresh)
