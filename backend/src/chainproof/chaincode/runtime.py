"""
Routes invocations to contract transaction functions.

A function is named "<Contract>:<Function>" (e.g. "QueryContract:GetEvidence"
or "query:GetEvidence") or just "<Function>", in which case every contract is
searched in order. Arguments arrive as strings, as they do over the Fabric
gateway, and are converted using the function's annotations.
"""
import inspect
import json
import logging
import re
from typing import get_type_hints

from pydantic import BaseModel

from .access_control import ClientIdentity
from .contracts import CONTRACTS, TransactionContext
from .errors import ChaincodeError, UnknownFunction, WrongInvocation
from .ledger import LedgerStore

logger = logging.getLogger(__name__)

CONTRACT_ALIASES = {
    "whistleblower": "WhistleblowerContract",
    "verifier": "VerifierContract",
    "legal": "LegalContract",
    "query": "QueryContract",
}


def to_snake_case(name: str) -> str:
    name = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).lower()


def _convert(value, hint):
    if hint is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no", ""):
            return False
        raise ChaincodeError(f"invalid boolean argument: {value}")
    if hint is int:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ChaincodeError(f"invalid integer argument: {value}") from e
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def encode_result(result):
    """Transaction payload as bytes, empty for functions with no return value."""
    if result is None:
        return b""
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True).encode("utf-8")
    if isinstance(result, list):
        items = [r.model_dump(by_alias=True) if isinstance(r, BaseModel) else r for r in result]
        return json.dumps(items).encode("utf-8")
    return json.dumps(result).encode("utf-8")


class Chaincode:
    def __init__(self, store: LedgerStore, channel: str = "", name: str = "chainproof"):
        self.store = store
        self.channel = channel
        self.name = name
        self.contracts = {cls.name: cls() for cls in CONTRACTS}

    def resolve(self, function_name: str):
        contract_name, _, fn = function_name.rpartition(":")
        method_name = to_snake_case(fn)
        if contract_name:
            contract_name = CONTRACT_ALIASES.get(contract_name.lower(), contract_name)
            contract = self.contracts.get(contract_name)
            candidates = [contract] if contract else []
        else:
            candidates = list(self.contracts.values())

        for contract in candidates:
            method = getattr(contract, method_name, None)
            if method is not None and getattr(method, "is_transaction", False):
                return method
        raise UnknownFunction(f"unknown transaction function: {function_name}")

    def _bind(self, method, args):
        params = list(inspect.signature(method).parameters.values())[1:]  # drop ctx
        hints = get_type_hints(method)
        required = [p for p in params if p.default is inspect.Parameter.empty]
        if len(args) < len(required) or len(args) > len(params):
            raise ChaincodeError(
                f"{method.__name__} expects {len(required)}-{len(params)} arguments, got {len(args)}"
            )
        return [_convert(arg, hints.get(p.name, str)) for p, arg in zip(params, args)]

    def _resolve_for(self, function_name: str, submit: bool):
        method = self.resolve(function_name)
        if method.is_submit and not submit:
            raise WrongInvocation(f"{function_name} writes to the ledger and must be submitted")
        if submit and not method.is_submit:
            raise WrongInvocation(f"{function_name} is a query and must be evaluated")
        return method

    def submit(self, function_name: str, *args, msp_id: str = ""):
        method = self._resolve_for(function_name, submit=True)
        converted = self._bind(method, args)
        with self.store.transaction(self.channel, self.name, function_name, msp_id) as stub:
            ctx = TransactionContext(stub, ClientIdentity(msp_id))
            result = method(ctx, *converted)
        logger.info("Committed %s as %s (tx %s)", function_name, msp_id, stub.get_tx_id())
        return encode_result(result)

    def evaluate(self, function_name: str, *args, msp_id: str = ""):
        method = self._resolve_for(function_name, submit=False)
        converted = self._bind(method, args)
        with self.store.snapshot() as stub:
            ctx = TransactionContext(stub, ClientIdentity(msp_id))
            return encode_result(method(ctx, *converted))
