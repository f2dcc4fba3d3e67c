"""Main signing agent client."""

import json
import logging
from typing import Any, Optional, Union

from .auth import DeviceAuth, generate_device_key
from .config import AgentConfig
from .constants import PROVIDER_NAME, ROOT_KEY_ENTROPY_LENGTH
from .crypto.bip39 import entropy_to_mnemonic, mnemonic_to_entropy, normalize_mnemonic
from .crypto.envelope import create_secret_jwk, create_secret_key, encrypt
from .exceptions import MnemonicError, ProtocolError, ValidationError
from .modules import RootKeyModule, SigningModule
from .providers import BaseProvider, HTTPProvider, response_data
from .types.common import RootKeyId, TxId
from .types.pending import ActivityResult

__all__ = ["SigningAgent"]

logger = logging.getLogger(__name__)


class SigningAgent:
    """
    Main client of the signing agent.

    Composes the provider with the root-key and signing modules and keeps
    the agent configuration in step with pairing and seed setup.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        provider: Optional[BaseProvider] = None,
    ) -> None:
        """
        Initialize signing agent.

        Args:
            config: Agent configuration (default: unpaired, default endpoint)
            provider: Provider instance (default: HTTPProvider for the
                configured endpoint)
        """
        self.config = config or AgentConfig()
        self.auth = DeviceAuth(self.config.key_id, self.config.private_jwk)
        self._provider = provider or HTTPProvider(
            endpoint=self.config.endpoint,
            timeout=self.config.timeout,
            auth=self.auth,
        )

        self._rootkeys = RootKeyModule(
            self._provider,
            device_id=self.config.device_id,
            encryption_secret=self.config.encryption_secret,
            root_key_id=self.config.root_key_id,
        )
        self._signing = SigningModule(
            self._provider,
            self._rootkeys,
            device_id=self.config.device_id,
        )

        logger.info(f"Initialized signing agent with {self._provider.__class__.__name__}")

    @classmethod
    def from_file(cls, path: str, **kwargs: Any) -> "SigningAgent":
        return cls(AgentConfig.load(path), **kwargs)

    @property
    def provider(self) -> BaseProvider:
        return self._provider

    @property
    def rootkeys(self) -> RootKeyModule:
        return self._rootkeys

    @property
    def signing(self) -> SigningModule:
        return self._signing

    async def connect(self) -> None:
        await self._provider.connect()

    async def disconnect(self) -> None:
        await self._provider.disconnect()

    async def __aenter__(self) -> "SigningAgent":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    def _set_device(self, key_id: str, private_jwk: dict[str, Any], device_id: str) -> None:
        self.config.key_id = key_id
        self.config.private_jwk = private_jwk
        self.config.device_id = device_id
        self.auth.key_id = key_id
        self.auth.private_jwk = private_jwk
        self.auth.cache.invalidate()
        self._rootkeys.device_id = device_id
        self._signing.device_id = device_id

    async def pair(self, pairing_code: str) -> AgentConfig:
        """
        Pair this agent with a user account.

        A fresh device key is generated and its public half registered
        with the pairing code.

        Returns:
            The updated configuration
        """
        key_id, private_jwk, public_jwk = generate_device_key()
        body = {
            "pairing_code": pairing_code,
            "client_key": self.config.client_key,
            "client_id": self.config.client_id,
            "external_id": self.config.client_id,
            "public_key": json.dumps(public_jwk),
            "key_id": key_id,
            "is_active": True,
            "provider_name": PROVIDER_NAME,
            "manufacturer_name": "",
            "device_name": "Pairing",
            "provider_id": "File:-",
        }
        response = await self._provider.request("POST", "users/@me/devices/code", body, token=False)
        try:
            device_id = str(response_data(response, "device pairing")["id"])
        except (KeyError, TypeError) as e:
            raise ProtocolError("Pairing response missing device id", data=response) from e

        self._set_device(key_id, private_jwk, device_id)
        logger.info(f"Paired as device {device_id}")
        return self.config

    async def configure_seed_phrase(
        self,
        seed_phrase: Optional[str] = None,
    ) -> tuple[RootKeyId, str]:
        """
        Store a root key for this device.

        With no ``seed_phrase`` a new one is generated and its xpub
        registered; an existing phrase is first matched against the
        account's root keys.

        Raises:
            MnemonicError: If an existing phrase is invalid or carries
                less than 256 bits of entropy

        Returns:
            Tuple of (root key id, seed phrase)
        """
        encryption_secret = create_secret_jwk()
        root_key_id: Optional[RootKeyId] = None

        if seed_phrase is None:
            entropy = create_secret_key()
            seed_phrase = entropy_to_mnemonic(entropy)
        else:
            seed_phrase = normalize_mnemonic(seed_phrase)
            entropy = mnemonic_to_entropy(seed_phrase)
            # Shorter entropy makes an envelope decrypt() rejects
            if len(entropy) < ROOT_KEY_ENTROPY_LENGTH:
                words = len(seed_phrase.split())
                raise MnemonicError(f"Seed phrase must have 24 words, got {words}", data={"words": words})
            root_key_id = await self._rootkeys.verify_seed_phrase(seed_phrase)

        created = root_key_id is None
        root_key_id = await self._rootkeys.store_encrypted_root_key(
            encrypt(entropy, encryption_secret), root_key_id
        )
        self._rootkeys.encryption_secret = encryption_secret
        if created:
            await self._rootkeys.register_xpub(seed_phrase)

        self.config.root_key_id = root_key_id
        self.config.encryption_secret = encryption_secret
        return root_key_id, seed_phrase

    async def activate(self, handle: str) -> str:
        """Register this device's xpub for a workspace handle it was invited to."""
        if not self.config.root_key_id:
            raise ValidationError("No root key configured")
        seed_phrase = await self._rootkeys.get_seed_phrase(RootKeyId(self.config.root_key_id))
        return await self._rootkeys.register_xpub(seed_phrase, handle)

    async def send(
        self,
        from_handle: str,
        to_handle: str,
        instrument: str,
        amount: Union[int, float, str],
    ) -> ActivityResult:
        return await self._signing.send(from_handle, to_handle, instrument, amount)

    async def sign_handshake(self, from_handle: str, handshake_id: str) -> dict[str, Any]:
        return await self._signing.sign_handshake(from_handle, handshake_id)

    async def describe(self, handle: str, activity_id: str) -> ActivityResult:
        return await self._signing.describe(handle, activity_id)

    async def sign_pending_tx_id(self, profile_id: str, pending_transaction_id: str) -> list[TxId]:
        return await self._signing.sign_pending_tx_id(profile_id, pending_transaction_id)

    def __repr__(self) -> str:
        return (
            f"<SigningAgent "
            f"provider={self._provider.__class__.__name__} "
            f"paired={self.auth.is_paired} "
            f"connected={self._provider.is_connected}>"
        )
