import json
import os
import stat

import pytest

from signing_agent.config import AgentConfig
from signing_agent.constants import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT
from signing_agent.exceptions import ValidationError

JWK = {"kty": "oct", "k": "AAAA"}


def test_defaults():
    config = AgentConfig()
    assert config.endpoint == DEFAULT_ENDPOINT
    assert config.timeout == DEFAULT_TIMEOUT
    assert not config.is_paired


def test_from_dict_aliases():
    config = AgentConfig.from_dict({
        "clientId": "client",
        "keyId": "kid",
        "privateJWK": {"kty": "EC"},
        "deviceId": "device",
        "encryptionSecret": JWK,
        "rootKeyId": "root",
        "timeout": "15",
        "unrelated": 1,
    })
    assert config.client_id == "client"
    assert config.key_id == "kid"
    assert config.device_id == "device"
    assert config.encryption_secret == JWK
    assert config.root_key_id == "root"
    assert config.timeout == 15
    assert config.is_paired


def test_invalid_timeout():
    with pytest.raises(ValidationError):
        AgentConfig.from_dict({"timeout": "soon"})


def test_save_and_load(tmp_path):
    path = tmp_path / "agent.json"
    config = AgentConfig(device_id="device", encryption_secret=JWK, root_key_id="root")
    config.save(path)

    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert AgentConfig.load(path) == config


def test_load_rejects_non_object(tmp_path):
    path = tmp_path / "agent.json"
    path.write_text(json.dumps([1, 2]))
    with pytest.raises(ValidationError):
        AgentConfig.load(path)

    path.write_text("{")
    with pytest.raises(ValidationError):
        AgentConfig.load(path)


def test_from_env():
    config = AgentConfig.from_env({
        "SIGNING_AGENT_ENDPOINT": "https://ledger.test/",
        "SIGNING_AGENT_DEVICE_ID": "device",
        "SIGNING_AGENT_ENCRYPTION_SECRET": json.dumps(JWK),
        "SIGNING_AGENT_TIMEOUT": "5",
        "SIGNING_AGENT_ROOT_KEY_ID": "",
    })
    assert config.endpoint == "https://ledger.test/"
    assert config.device_id == "device"
    assert config.encryption_secret == JWK
    assert config.timeout == 5
    assert config.root_key_id is None

    with pytest.raises(ValidationError):
        AgentConfig.from_env({"SIGNING_AGENT_PRIVATE_JWK": "{not json"})


def test_repr_hides_secrets():
    config = AgentConfig(private_jwk={"d": "very-secret"}, encryption_secret={"k": "also-secret"})
    assert "very-secret" not in repr(config)
    assert "also-secret" not in repr(config)
