class ChaincodeError(Exception):
    """Transaction function rejected the proposal. Nothing is committed."""


class AccessDenied(ChaincodeError):
    pass


class EvidenceNotFound(ChaincodeError):
    pass


class EvidenceExists(ChaincodeError):
    pass


class InvalidStatus(ChaincodeError):
    pass


class UnknownFunction(ChaincodeError):
    pass


class WrongInvocation(ChaincodeError):
    """A query was submitted, or a write was evaluated."""
