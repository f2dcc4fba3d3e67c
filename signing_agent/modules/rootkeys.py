"""Root-key module: encrypted root-key storage and extended public key registration."""

import logging
from typing import Any, Optional

from ..crypto.bip39 import entropy_to_mnemonic, mnemonic_to_seed
from ..crypto.envelope import SecretKey, decrypt
from ..crypto.hd import ExtendedKey
from ..exceptions import APIError, ProtocolError, SigningAgentError, ValidationError
from ..providers.base import BaseProvider, api_path, response_data
from ..types.common import DerivationPath, RootKeyId

__all__ = ["RootKeyModule"]

logger = logging.getLogger(__name__)


class RootKeyModule:
    """
    Root-key operations.

    Root keys are stored server-side only as AES-GCM envelopes of the
    mnemonic entropy, tagged with the device that created them.
    """

    def __init__(
        self,
        provider: BaseProvider,
        device_id: Optional[str] = None,
        encryption_secret: Optional[SecretKey] = None,
        root_key_id: Optional[RootKeyId] = None,
    ) -> None:
        """
        Initialize root-key module.

        Args:
            provider: Provider instance
            device_id: Id of this paired device
            encryption_secret: Key that opens this device's envelopes
            root_key_id: Default root key for registration
        """
        self._provider = provider
        self.device_id = device_id
        self.encryption_secret = encryption_secret
        self.root_key_id = root_key_id
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @staticmethod
    def make_xpub(seed_phrase: str, path: DerivationPath) -> str:
        """
        Derive the base58check extended public key at ``path``.

        Args:
            seed_phrase: BIP39 mnemonic
            path: Derivation path starting with ``m``

        Returns:
            xpub text
        """
        root = ExtendedKey.from_seed(mnemonic_to_seed(seed_phrase))
        return str(root.derive(path).to_public())

    @staticmethod
    def make_xpub_internal(seed_phrase: str, path: DerivationPath) -> str:
        """Hex of the 78-byte serialization of the extended public key at ``path``."""
        root = ExtendedKey.from_seed(mnemonic_to_seed(seed_phrase))
        return root.derive(path).to_public().to_internal_bytes().hex()

    async def get_rootkeys(self) -> list[dict[str, Any]]:
        """List the root keys registered for the current user."""
        response = await self._provider.request("GET", "users/@me/rootkeys")
        return response_data(response, "root keys") or []

    async def has_rootkeys(self) -> bool:
        return len(await self.get_rootkeys()) > 0

    async def get_encrypted_root_key(self, root_key_id: Optional[RootKeyId] = None) -> bytes:
        """
        Fetch the envelope stored by this device.

        Args:
            root_key_id: Root key to look up; any key of this device if omitted

        Returns:
            Encrypted entropy envelope

        Raises:
            APIError: If no matching root key exists for this device
        """
        for root_key in await self.get_rootkeys():
            if root_key_id and str(root_key.get("id")) != str(root_key_id):
                continue
            if root_key.get("device_id") != self.device_id:
                continue
            try:
                return bytes.fromhex(root_key.get("encrypted") or "")
            except ValueError as e:
                raise ProtocolError("Stored root key is not valid hex", data={"id": root_key.get("id")}) from e

        raise APIError("Root key not found", code=404, data={"code": "ROOT_KEY_NOT_FOUND"})

    async def store_encrypted_root_key(
        self,
        encrypted_entropy: bytes,
        root_key_id: Optional[RootKeyId] = None,
    ) -> RootKeyId:
        """
        Upload an envelope as a new root key.

        Returns:
            Id the ledger assigned to the root key

        Raises:
            APIError: With code 409 if the root key is already registered
        """
        body = {
            "id": root_key_id,
            "encrypted": bytes(encrypted_entropy).hex(),
            "device_id": self.device_id,
        }
        try:
            response = await self._provider.request("POST", "users/@me/rootkeys", body)
        except APIError as e:
            if e.code == 409:
                raise APIError("Root key already registered", code=409, data=e.data) from e
            raise

        new_id = RootKeyId(str(response_data(response, "stored root key")["id"]))
        self.root_key_id = new_id
        self._logger.info(f"Stored root key {new_id}")
        return new_id

    async def get_seed_phrase(self, root_key_id: Optional[RootKeyId] = None) -> str:
        """Decrypt this device's root key and return it as a mnemonic."""
        if self.encryption_secret is None:
            raise ValidationError("No encryption secret configured")
        envelope = await self.get_encrypted_root_key(root_key_id)
        return entropy_to_mnemonic(decrypt(envelope, self.encryption_secret))

    async def verify_seed_phrase(self, seed_phrase: str) -> Optional[RootKeyId]:
        """
        Find the registered root key that ``seed_phrase`` belongs to.

        Each root key exposes a check path; proving the xpub at that path
        identifies the key.

        Returns:
            Matching root key id, or None if the user has no root keys
        """
        for root_key in await self.get_rootkeys():
            root_key_id = RootKeyId(str(root_key["id"]))
            path = api_path("users/@me/rootkeys/{id}/check", id=root_key_id)
            try:
                check = response_data(await self._provider.request("GET", path), "root key check")
                derivation_path = check["derivation_path"]
                xpub = self.make_xpub(seed_phrase, derivation_path)
                await self._provider.request(
                    "POST", path, {"derivation_path": derivation_path, "xpub": xpub}
                )
                return root_key_id
            except APIError as e:
                if e.code == 404:
                    continue
                raise SigningAgentError(f"Unable to verify seed phrase: {e}", code=e.code, data=e.data) from e
            except (SigningAgentError, KeyError, TypeError) as e:
                raise SigningAgentError(f"Unable to verify seed phrase: {e}") from e

        return None

    async def register_xpub(self, seed_phrase: str, handle: Optional[str] = None) -> str:
        """
        Answer a lock-box invitation with the xpub it asks for.

        Args:
            seed_phrase: BIP39 mnemonic of the root key
            handle: Handle of the invitation; the personal profile if omitted

        Returns:
            Handle of the accepted proposal
        """
        if not self.root_key_id:
            raise ValidationError("No root key id configured")

        proposals = response_data(await self._provider.request("GET", "proposals"), "proposals") or []
        personal = next((p for p in proposals if p.get("invited_profile_id")), None)
        if handle:
            proposal = next((p for p in proposals if p.get("handle") == handle), None)
        elif personal:
            proposal = next((p for p in proposals if p.get("id") == personal.get("id")), None)
        else:
            proposal = None

        if not proposal or not proposal.get("lockbox_id") or not personal:
            raise APIError("Invitation not found for handle", code=404, data={"code": "INVITATION_NOT_FOUND"})

        path = api_path(
            "profiles/{pid}/lock_boxes/{lid}/rootkeys/{rkid}/proposal",
            pid=personal["invited_profile_id"],
            lid=proposal["lockbox_id"],
            rkid=self.root_key_id,
        )
        derivation_path = response_data(await self._provider.request("GET", path), "root key proposal")["path"]
        xpub = self.make_xpub(seed_phrase, derivation_path)
        await self._provider.request("POST", path, {"path": derivation_path, "xpub": xpub})

        self._logger.info(f"Registered xpub for {proposal.get('handle')}")
        return proposal.get("handle")
