# backend/src/chainproof/sepolia_utils.py
"""
Public anchoring of evidence hashes on Sepolia through the ChainProofAnchor
contract. Anchors are keyed by keccak256(evidenceId); the file hash is stored
as bytes32.
"""
import logging
import time
from datetime import datetime, timezone

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError

from . import config

logger = logging.getLogger(__name__)


class SepoliaNotConfigured(RuntimeError):
    pass


def _fn(name, inputs, outputs=(), mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ANCHOR_ABI = [
    _fn("anchorHash", [("evidenceId", "bytes32"), ("fileHash", "bytes32")], mutability="nonpayable"),
    _fn(
        "getAnchor",
        [("evidenceId", "bytes32")],
        [("fileHash", "bytes32"), ("timestamp", "uint256"), ("submitter", "address")],
    ),
    _fn(
        "verifyHash",
        [("evidenceId", "bytes32"), ("fileHashToVerify", "bytes32")],
        [("valid", "bool"), ("storedHash", "bytes32"), ("anchorTimestamp", "uint256")],
    ),
    _fn("isAnchored", [("evidenceId", "bytes32")], [("", "bool")]),
    {
        "type": "event",
        "name": "HashAnchored",
        "anonymous": False,
        "inputs": [
            {"name": "evidenceId", "type": "bytes32", "indexed": True},
            {"name": "fileHash", "type": "bytes32", "indexed": True},
            {"name": "timestamp", "type": "uint256", "indexed": False},
            {"name": "submitter", "type": "address", "indexed": False},
        ],
    },
]

_w3 = None


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _add_hex_prefix(x) -> str:
    if not x:
        return x
    x = str(x)
    return x if x.startswith("0x") else "0x" + x


def _b32(x):
    """Left-pads a hex string (with or without 0x) to 32 bytes."""
    if isinstance(x, bytes):
        return x.rjust(32, b"\x00")
    if isinstance(x, str):
        x = x.lower()
        if x.startswith("0x"):
            x = x[2:]
        if len(x) > 64:
            raise ValueError("value longer than bytes32")
        return bytes.fromhex(x.zfill(64))
    raise ValueError("bad input for bytes32")


def evidence_id_to_bytes32(evidence_id: str) -> bytes:
    return bytes(Web3.keccak(text=evidence_id))


def is_configured() -> bool:
    return bool(config.SEPOLIA_RPC_URL and config.ANCHOR_CONTRACT_ADDRESS)


def _web3():
    global _w3
    if _w3 is None:
        _w3 = Web3(Web3.HTTPProvider(config.SEPOLIA_RPC_URL))
    return _w3


def _load_contract():
    if not config.SEPOLIA_RPC_URL:
        raise SepoliaNotConfigured("SEPOLIA_RPC_URL not configured")
    if not config.ANCHOR_CONTRACT_ADDRESS:
        raise SepoliaNotConfigured("ANCHOR_CONTRACT_ADDRESS not configured - deploy contract first")
    w3 = _web3()
    return w3, w3.eth.contract(
        address=Web3.to_checksum_address(str(config.ANCHOR_CONTRACT_ADDRESS)),
        abi=ANCHOR_ABI,
    )


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _hex(value) -> str:
    return _add_hex_prefix(bytes(value).hex())


# ------------------------------------------------------------
# Contract calls
# ------------------------------------------------------------
def anchor_to_sepolia(evidence_id: str, file_hash: str) -> dict:
    if not config.DEPLOYER_PRIVATE_KEY:
        raise SepoliaNotConfigured("Sepolia not configured for write operations - add DEPLOYER_PRIVATE_KEY")
    w3, contract = _load_contract()
    acct = Account.from_key(config.DEPLOYER_PRIVATE_KEY)

    logger.info("Anchoring evidence %s to Sepolia...", evidence_id)
    tx = contract.functions.anchorHash(
        evidence_id_to_bytes32(evidence_id),
        _b32(file_hash),
    ).build_transaction({
        "from": acct.address,
        "nonce": w3.eth.get_transaction_count(acct.address),
        "gas": config.ANCHOR_GAS,
        "chainId": w3.eth.chain_id,
    })
    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash)

    tx_hex = _add_hex_prefix(receipt["transactionHash"].hex())
    logger.info("Anchored! TX: %s", tx_hex)
    return {
        "txHash": tx_hex,
        "blockNumber": receipt["blockNumber"],
        "timestamp": int(time.time()),
        "explorerUrl": f"{config.SEPOLIA_EXPLORER_URL}{tx_hex}",
    }


def get_anchor(evidence_id: str):
    """None when the contract has no anchor for this id."""
    _, contract = _load_contract()
    try:
        file_hash, timestamp, submitter = contract.functions.getAnchor(
            evidence_id_to_bytes32(evidence_id)
        ).call()
    except ContractLogicError as e:
        if "Evidence not found" in str(e):
            return None
        raise
    return {
        "fileHash": _hex(file_hash),
        "timestamp": int(timestamp),
        "submitter": submitter,
        "anchoredAt": _iso(int(timestamp)),
    }


def verify_anchor(evidence_id: str, file_hash: str) -> dict:
    _, contract = _load_contract()
    valid, stored_hash, anchor_timestamp = contract.functions.verifyHash(
        evidence_id_to_bytes32(evidence_id),
        _b32(file_hash),
    ).call()
    return {
        "valid": bool(valid),
        "storedHash": _hex(stored_hash),
        "anchorTimestamp": int(anchor_timestamp),
        "anchoredAt": _iso(int(anchor_timestamp)),
    }


def is_anchored(evidence_id: str) -> bool:
    if not is_configured():
        return False
    _, contract = _load_contract()
    return bool(contract.functions.isAnchored(evidence_id_to_bytes32(evidence_id)).call())
