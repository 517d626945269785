from .errors import (
    AccessDenied,
    ChaincodeError,
    EvidenceExists,
    EvidenceNotFound,
    InvalidStatus,
    UnknownFunction,
    WrongInvocation,
)
from .ledger import LedgerStore
from .runtime import Chaincode

__all__ = [
    "AccessDenied",
    "Chaincode",
    "ChaincodeError",
    "EvidenceExists",
    "EvidenceNotFound",
    "InvalidStatus",
    "LedgerStore",
    "UnknownFunction",
    "WrongInvocation",
]
