"""Pending-transaction descriptors exchanged with the ledger service."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..constants import DEFAULT_SIGHASH_TYPE
from ..exceptions import ProtocolError, ValidationError
from ..types.common import DerivationPath, HexStr, RootKeyId, Satoshi
from ..utils.validation import validate_hex

__all__ = [
    "NeededSignature",
    "InputSupplement",
    "OutputSupplement",
    "PendingTransaction",
    "PendingSignature",
    "ActivityResult",
]


def _require(data: Mapping[str, Any], key: str, context: str) -> Any:
    if not isinstance(data, Mapping):
        raise ProtocolError(f"Expected object for {context}, got {type(data).__name__}", data=data)
    if key not in data or data[key] is None:
        raise ProtocolError(f"Missing '{key}' in {context}", data=dict(data))
    return data[key]


@dataclass(frozen=True)
class NeededSignature:
    """One signature the local engine must produce for one input."""
    root_key_id: RootKeyId
    derivation_path: DerivationPath
    signature_index: int
    sig_hash_type: int = DEFAULT_SIGHASH_TYPE
    value: Optional[Satoshi] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NeededSignature":
        context = "needed signature"
        return cls(
            root_key_id=RootKeyId(str(_require(data, "root_key_id", context))),
            derivation_path=DerivationPath(_require(data, "derivation_path", context)),
            signature_index=int(_require(data, "signature_index", context)),
            sig_hash_type=int(data.get("sig_hash_type") or DEFAULT_SIGHASH_TYPE),
            value=Satoshi(int(data["value"])) if data.get("value") is not None else None,
        )


@dataclass(frozen=True)
class InputSupplement:
    """Ledger-supplied data about the output an input spends."""
    locking_script: bytes = b""
    value: Satoshi = Satoshi(0)
    needed_signatures: tuple[NeededSignature, ...] = ()
    key_id: Optional[DerivationPath] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "InputSupplement":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ProtocolError(f"Expected object for input supplement, got {type(data).__name__}")

        needed = tuple(NeededSignature.from_dict(n) for n in data.get("needed_signatures") or ())
        try:
            script = validate_hex(data.get("locking_script") or "", "locking_script")
        except ValidationError as e:
            raise ProtocolError(str(e), data=dict(data)) from e

        if needed and data.get("value") is None:
            raise ProtocolError("Missing 'value' in input supplement", data=dict(data))

        return cls(
            locking_script=script,
            value=Satoshi(int(data.get("value") or 0)),
            needed_signatures=needed,
            key_id=data.get("key_id"),
        )


@dataclass(frozen=True)
class OutputSupplement:
    """Ledger-supplied flags about an output."""
    is_remainder: bool = False
    is_dust: bool = False
    key_id: Optional[DerivationPath] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "OutputSupplement":
        if not data:
            return cls()
        return cls(
            is_remainder=bool(data.get("is_remainder", False)),
            is_dust=bool(data.get("is_dust", False)),
            key_id=data.get("key_id"),
        )


@dataclass(frozen=True)
class PendingTransaction:
    """A server-proposed transaction awaiting signatures."""
    id: str
    tx: HexStr
    input_supplements: tuple[InputSupplement, ...] = ()
    output_supplements: tuple[OutputSupplement, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PendingTransaction":
        context = "pending transaction"
        tx_hex = _require(data, "tx", context)
        if not isinstance(tx_hex, str):
            raise ProtocolError("Pending transaction 'tx' must be a hex string")
        return cls(
            id=str(_require(data, "id", context)),
            tx=HexStr(tx_hex),
            input_supplements=tuple(
                InputSupplement.from_dict(s) for s in data.get("input_supplements") or ()
            ),
            output_supplements=tuple(
                OutputSupplement.from_dict(s) for s in data.get("output_supplements") or ()
            ),
        )

    @property
    def signature_count(self) -> int:
        return sum(len(s.needed_signatures) for s in self.input_supplements)


@dataclass(frozen=True)
class PendingSignature:
    """A signature produced locally for submission."""
    signature_index: int
    sig_hash_type: int
    signature: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature_index": self.signature_index,
            "sig_hash_type": self.sig_hash_type,
            "signature": self.signature.hex(),
        }


@dataclass(frozen=True)
class ActivityResult:
    """Outcome of a transfer activity as reported by the ledger."""
    activity: str
    txs: list[str] = field(default_factory=list)
    executed: bool = False
    stage: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity": self.activity,
            "txs": list(self.txs),
            "executed": self.executed,
            "stage": self.stage,
        }
