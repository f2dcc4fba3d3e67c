"""Signing module: multi-round signing of pending transactions."""

import asyncio
import logging
import time
from typing import Any, Mapping, Optional, Union

from ..constants import EXECUTION_POLL_ATTEMPTS, POLL_INTERVAL
from ..crypto.bip39 import mnemonic_to_seed
from ..crypto.hd import ExtendedKey
from ..crypto.transaction_signing import make_pending_transaction_signature
from ..exceptions import APIError, ProtocolError, TerminationError, TimeoutError
from ..modules.rootkeys import RootKeyModule
from ..providers.base import BaseProvider, api_path, response_data
from ..types.common import TxId
from ..types.pending import ActivityResult, InputSupplement, NeededSignature, PendingSignature, PendingTransaction
from ..types.transaction import Transaction

__all__ = ["SigningModule"]

logger = logging.getLogger(__name__)

PendingLike = Union[PendingTransaction, Mapping[str, Any]]


def _pending(data: PendingLike) -> PendingTransaction:
    if isinstance(data, PendingTransaction):
        return data
    return PendingTransaction.from_dict(data)


def _number(amount: Union[int, float, str]) -> Union[int, float]:
    if isinstance(amount, str):
        value = float(amount)
        return int(value) if value.is_integer() else value
    return amount


class SigningModule:
    """
    Signing operations.

    Signs every needed signature of a pending transaction, submits them and
    follows the ledger through further co-signing rounds until no pending
    transaction is returned.
    """

    def __init__(
        self,
        provider: BaseProvider,
        rootkeys: RootKeyModule,
        device_id: Optional[str] = None,
        poll_interval: float = POLL_INTERVAL,
        poll_attempts: int = EXECUTION_POLL_ATTEMPTS,
    ) -> None:
        """
        Initialize signing module.

        Args:
            provider: Provider instance
            rootkeys: Source of the decrypted seed phrases
            device_id: Id of this paired device, used to approve handshakes
            poll_interval: Seconds between activity polls
            poll_attempts: Polls made while waiting for execution
        """
        self._provider = provider
        self._rootkeys = rootkeys
        self.device_id = device_id
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _sign_needed(
        self,
        tx: Transaction,
        index: int,
        supplement: InputSupplement,
        needed: NeededSignature,
    ) -> PendingSignature:
        """Derive the child key for one needed signature and sign with it."""
        seed_phrase = await self._rootkeys.get_seed_phrase(needed.root_key_id)
        root = ExtendedKey.from_seed(mnemonic_to_seed(seed_phrase))
        child = root.derive(needed.derivation_path)
        return make_pending_transaction_signature(
            tx,
            child.key(),
            index,
            supplement.locking_script,
            supplement.value,
            needed.signature_index,
            needed.sig_hash_type,
        )

    async def collect_signatures(self, pending: PendingLike) -> tuple[Transaction, list[PendingSignature]]:
        """
        Produce the signatures of one round.

        Inputs are signed in order; supplements without needed signatures
        are skipped.

        Returns:
            Tuple of (transaction, signatures in submission order)
        """
        pending = _pending(pending)
        tx = Transaction.assemble(pending)

        signatures = []
        for index, supplement in enumerate(pending.input_supplements):
            for needed in supplement.needed_signatures:
                signatures.append(await self._sign_needed(tx, index, supplement, needed))

        return tx, signatures

    async def sign(self, profile_id: str, pending: PendingLike) -> list[TxId]:
        """
        Sign a pending transaction and every follow-up round.

        Args:
            profile_id: Profile the pending transaction belongs to
            pending: Pending transaction descriptor

        Returns:
            Transaction ids, one per round, in round order
        """
        txids: list[TxId] = []
        current: Optional[PendingLike] = pending

        while current:
            current = _pending(current)
            tx, signatures = await self.collect_signatures(current)
            self._logger.info(
                f"Round {len(txids) + 1}: submitting {len(signatures)} signature(s) for {current.id}"
            )

            response = await self._provider.request(
                "POST",
                api_path("profiles/{pid}/pending_transactions/{ptid}", pid=profile_id, ptid=current.id),
                {"signatures": [signature.to_dict() for signature in signatures]},
            )
            txids.append(tx.txid)
            current = response.get("data") if isinstance(response, dict) else None

        return txids

    async def sign_pending_tx_id(self, profile_id: str, pending_transaction_id: str) -> list[TxId]:
        """Fetch a pending transaction by id and sign it."""
        response = await self._provider.request(
            "GET",
            api_path(
                "profiles/{pid}/pending_transactions/{ptid}",
                pid=profile_id,
                ptid=pending_transaction_id,
            ),
        )
        return await self.sign(profile_id, response_data(response, "pending transaction"))

    async def get_handle_proposal(self, handle: str) -> dict[str, Any]:
        """
        Find the accepted proposal for a signing handle.

        Raises:
            APIError: If the handle is unknown or not yet activated
        """
        proposal = await self._find_proposal(handle)
        if not proposal:
            raise APIError("Signing handle not found", code=404, data={"code": "HANDLE_NOT_FOUND"})
        if not proposal.get("is_accepted"):
            raise APIError("Handle not yet activated", code=404, data={"code": "HANDLE_NOT_ACTIVE"})
        return proposal

    async def _find_proposal(self, handle: str) -> Optional[dict[str, Any]]:
        proposals = response_data(await self._provider.request("GET", "proposals"), "proposals") or []
        return next((p for p in proposals if p.get("handle") == handle), None)

    async def _get_activity(self, profile_id: str, activity_id: str) -> dict[str, Any]:
        activity = response_data(
            await self._provider.request(
                "GET",
                api_path("profiles/{pid}/activity/{aid}", pid=profile_id, aid=activity_id),
            ),
            "activity",
        )
        if not isinstance(activity, dict) or not isinstance(activity.get("transactions"), list):
            raise ProtocolError("Activity carries no transaction list", data=activity)
        return activity

    @staticmethod
    def _activity_result(activity_id: str, activity: Mapping[str, Any]) -> ActivityResult:
        txs = [t.get("txid") for t in activity["transactions"] if t.get("type") == "tx"]
        stage = activity.get("stage")
        reason = activity.get("termination_reason")

        if reason:
            raise TerminationError(activity_id, reason, txs=txs, stage=stage)

        return ActivityResult(
            activity=activity_id,
            txs=txs,
            executed=stage == "executed",
            stage=stage,
        )

    async def send(
        self,
        from_handle: str,
        to_handle: str,
        instrument: str,
        amount: Union[int, float, str],
        pending_timeout: Optional[float] = None,
    ) -> ActivityResult:
        """
        Transfer ``amount`` of ``instrument`` and sign the resulting transaction.

        Waits for the ledger to propose a pending transaction, signs it,
        then polls until the activity executes or the poll budget runs out.

        Args:
            from_handle: Sending handle
            to_handle: Receiving handle
            instrument: Instrument to transfer
            amount: Amount to transfer
            pending_timeout: Seconds to wait for the pending transaction;
                waits indefinitely when None

        Returns:
            Activity result; ``executed`` is False if execution was not
            observed within the poll budget

        Raises:
            TerminationError: If the ledger terminated the activity
            TimeoutError: If ``pending_timeout`` elapsed first
        """
        proposal = await self.get_handle_proposal(from_handle)
        profile_id = proposal["profile_id"]

        body = {
            "lock_box_id": proposal.get("lockbox_id"),
            "recipients": [{"handle": to_handle, "amount": _number(amount)}],
            "instrument": instrument,
        }
        try:
            response = await self._provider.request(
                "PUT", api_path("profiles/{pid}/send", pid=profile_id), body
            )
        except APIError as e:
            if isinstance(e.data, dict) and e.data.get("code"):
                raise
            raise APIError("Send failed", code=400, data={"code": "SEND_FAILED"}) from e

        activity_id = response_data(response, "send")["activity_id"]
        self._logger.info(f"Activity {activity_id} started")

        # Unbounded unless pending_timeout is given
        deadline = None if pending_timeout is None else time.monotonic() + pending_timeout
        while True:
            activity = await self._get_activity(profile_id, activity_id)
            pending = [t for t in activity["transactions"] if t.get("type") == "pending_tx"]
            if pending:
                break
            if activity.get("termination_reason"):
                return self._activity_result(activity_id, activity)
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"No pending transaction for activity {activity_id}")
            self._logger.debug("Waiting for pending transactions to sign")
            await asyncio.sleep(self.poll_interval)

        await self.sign_pending_tx_id(profile_id, pending[0]["pending_transaction_id"])

        for attempt in range(self.poll_attempts + 1):
            activity = await self._get_activity(profile_id, activity_id)
            if activity.get("stage") == "executed" or activity.get("termination_reason"):
                break
            if attempt < self.poll_attempts:
                self._logger.debug("Waiting for completion")
                await asyncio.sleep(self.poll_interval)

        return self._activity_result(activity_id, activity)

    async def describe(self, handle: str, activity_id: str) -> ActivityResult:
        """
        Report the current state of an activity.

        Raises:
            APIError: If the handle is unknown
            TerminationError: If the ledger terminated the activity
        """
        proposal = await self._find_proposal(handle)
        if not proposal:
            raise APIError("Handle not found", code=404, data={"code": "HANDLE_NOT_FOUND"})
        activity = await self._get_activity(proposal["profile_id"], activity_id)
        return self._activity_result(activity_id, activity)

    async def sign_handshake(self, from_handle: str, handshake_id: str) -> dict[str, Any]:
        """
        Resolve a device handshake and approve it.

        Rejection scopes reject the referenced request; any other scope
        signs the pending transaction the request refers to.

        Returns:
            ``{"rejected": True}`` or ``{"signed": True, "txids": [...]}``
        """
        proposal = await self.get_handle_proposal(from_handle)
        profile_id = proposal["profile_id"]

        handshakes = response_data(await self._provider.request("GET", "auth/handshakes"), "handshakes") or []
        handshake = next((h for h in handshakes if str(h.get("id")) == str(handshake_id)), None)
        if not handshake:
            raise APIError("Handshake not found", code=404, data={"code": "HANDSHAKE_NOT_FOUND"})

        request_id = handshake.get("request_id")
        scope = handshake.get("scope")

        if scope == "trade_reject":
            await self._provider.request(
                "POST",
                api_path("profiles/{pid}/requests/{rid}/reject", pid=profile_id, rid=request_id),
                {},
            )
            result: dict[str, Any] = {"rejected": True}
        elif scope == "reject_proposal":
            await self._provider.request(
                "POST",
                api_path(
                    "profiles/{pid}/pending_transactions/requests/{rid}/reject",
                    pid=profile_id,
                    rid=request_id,
                ),
                {},
            )
            result = {"rejected": True}
        else:
            response = await self._provider.request(
                "GET",
                api_path(
                    "profiles/{pid}/pending_transactions/request_id/{rid}",
                    pid=profile_id,
                    rid=request_id,
                ),
            )
            pending = response.get("data") if isinstance(response, dict) else None
            if not pending:
                raise APIError(
                    "Pending transaction not found",
                    code=404,
                    data={"code": "PENDING_TRANSACTION_NOT_FOUND"},
                )
            result = {"signed": True, "txids": await self.sign(profile_id, pending)}

        await self._provider.request(
            "PUT",
            "auth/handshakes",
            {"handshake_id": handshake_id, "device_id": self.device_id, "status": "approved"},
        )
        return result
