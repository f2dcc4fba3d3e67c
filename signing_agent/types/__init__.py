"""Type definitions for the signing agent."""

from ..types.common import (
    HexStr,
    Satoshi,
    TxId,
    DerivationPath,
    RootKeyId,
    PrivateKeyBytes,
    PublicKeyBytes,
    DerSignature,
)
from ..types.pending import (
    NeededSignature,
    InputSupplement,
    OutputSupplement,
    PendingTransaction,
    PendingSignature,
    ActivityResult,
)
from ..types.transaction import (
    OutPoint,
    TransactionInput,
    TransactionOutput,
    Transaction,
)

__all__ = [
    # Common
    "HexStr",
    "Satoshi",
    "TxId",
    "DerivationPath",
    "RootKeyId",
    "PrivateKeyBytes",
    "PublicKeyBytes",
    "DerSignature",

    # Pending transactions
    "NeededSignature",
    "InputSupplement",
    "OutputSupplement",
    "PendingTransaction",
    "PendingSignature",
    "ActivityResult",

    # Transactions
    "OutPoint",
    "TransactionInput",
    "TransactionOutput",
    "Transaction",
]
