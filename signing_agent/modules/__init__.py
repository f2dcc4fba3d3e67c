"""Signing agent API modules."""

from ..modules.rootkeys import RootKeyModule
from ..modules.signing import SigningModule

__all__ = [
    "RootKeyModule",
    "SigningModule",
]
