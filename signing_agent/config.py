"""Agent configuration: endpoint, device pairing and root-key settings."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .constants import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT
from .exceptions import ValidationError

__all__ = ["AgentConfig", "ENV_PREFIX"]

logger = logging.getLogger(__name__)

ENV_PREFIX = "SIGNING_AGENT_"

# Keys written by older agents
_ALIASES = {
    "clientId": "client_id",
    "clientKey": "client_key",
    "keyId": "key_id",
    "privateJWK": "private_jwk",
    "deviceId": "device_id",
    "encryptionSecret": "encryption_secret",
    "rootKeyId": "root_key_id",
}

_JSON_FIELDS = ("private_jwk", "encryption_secret")


@dataclass
class AgentConfig:
    """
    Settings of one paired agent.

    ``private_jwk`` is the P-256 device key and ``encryption_secret`` the
    AES ``oct`` JWK that opens this device's root-key envelopes.
    """
    endpoint: str = DEFAULT_ENDPOINT
    client_id: Optional[str] = None
    client_key: Optional[str] = None
    key_id: Optional[str] = None
    private_jwk: Optional[dict[str, Any]] = None
    device_id: Optional[str] = None
    encryption_secret: Optional[dict[str, Any]] = None
    root_key_id: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT

    @property
    def is_paired(self) -> bool:
        return bool(self.key_id and self.private_jwk and self.device_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentConfig":
        """
        Build a config from a mapping, accepting camelCase keys.

        Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name in known and value is not None:
                values[name] = value

        if "timeout" in values:
            try:
                values["timeout"] = int(values["timeout"])
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid timeout: {values['timeout']!r}") from e

        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AgentConfig":
        """
        Load a config from a JSON file.

        Raises:
            ValidationError: If the file is not a JSON object
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"Config file {path} must contain a JSON object")
        logger.debug(f"Loaded config from {path}")
        return cls.from_dict(data)

    def save(self, path: Union[str, Path]) -> None:
        """Write the config as JSON, readable by the owner only."""
        path = Path(path)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        os.chmod(path, 0o600)
        logger.debug(f"Saved config to {path}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AgentConfig":
        """
        Read ``SIGNING_AGENT_*`` variables, e.g. ``SIGNING_AGENT_DEVICE_ID``.

        JWK values are given as JSON text.
        """
        if environ is None:
            environ = os.environ

        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            if f.name in _JSON_FIELDS:
                try:
                    values[f.name] = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ValidationError(f"{ENV_PREFIX}{f.name.upper()} is not valid JSON") from e
            else:
                values[f.name] = raw

        return cls.from_dict(values)

    def __repr__(self) -> str:
        # Key material is never shown
        return (
            f"AgentConfig(endpoint={self.endpoint!r}, device_id={self.device_id!r}, "
            f"root_key_id={self.root_key_id!r}, paired={self.is_paired})"
        )
