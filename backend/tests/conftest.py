import json

import pytest
from fastapi.testclient import TestClient

from chainproof import config, sepolia_utils
from chainproof.chaincode import Chaincode, LedgerStore
from chainproof.db_init import init_db
from chainproof.gateway.fabric import FabricGateway
from chainproof.gateway.main import create_app as create_gateway_app
from chainproof.hash_utils import sha256
from chainproof.ipfs import ipfs_helper
from chainproof.ledger_client import LedgerClient, get_ledger_client
from chainproof.main import create_app

WB = "WhistleblowersOrgMSP"
VERIFIER = "VerifierOrgMSP"
LEGAL = "LegalOrgMSP"

PKH = "a" * 64


class Ledger:
    """Invokes the chaincode the way the gateway does and decodes the payload."""

    def __init__(self, chaincode):
        self.chaincode = chaincode

    def submit(self, fn, *args, msp=WB):
        payload = self.chaincode.submit(fn, *[_arg(a) for a in args], msp_id=msp)
        return json.loads(payload) if payload else None

    def evaluate(self, fn, *args, msp=WB):
        payload = self.chaincode.evaluate(fn, *[_arg(a) for a in args], msp_id=msp)
        return json.loads(payload) if payload else None

    def submit_evidence(self, evidence_id, file_hash=None, category="corruption", pkh=PKH, file_type="image"):
        file_hash = file_hash or sha256(evidence_id.encode())
        self.submit(
            "whistleblower:SubmitEvidence",
            evidence_id, f"Qm{evidence_id}", file_hash, file_type, 1024, category, pkh, "sig", "desc",
        )
        return file_hash


def _arg(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@pytest.fixture
def store(tmp_path):
    return LedgerStore(tmp_path / "ledger.db")


@pytest.fixture
def ledger(store):
    return Ledger(Chaincode(store, channel="test-channel"))


@pytest.fixture
def fabric(tmp_path):
    gateway = FabricGateway(
        ledger_path=tmp_path / "gateway-ledger.db",
        channel="test-channel",
        wallet_path=tmp_path / "wallet",
    )
    gateway.initialize()
    yield gateway
    gateway.close()


@pytest.fixture
def gateway_client(fabric):
    return TestClient(create_gateway_app(fabric))


@pytest.fixture
def db(tmp_path, monkeypatch):
    path = str(tmp_path / "backend.db")
    monkeypatch.setattr(config, "DB_PATH", path)
    init_db()
    return path


@pytest.fixture
def pinned(monkeypatch):
    """In-memory stand-in for Pinata: cid -> bytes."""
    files = {}

    def fake_upload(raw_bytes, filename, metadata=None):
        cid = "Qm" + sha256(raw_bytes)[:44]
        files[cid] = raw_bytes
        return {"cid": cid, "size": len(raw_bytes), "timestamp": "2026-01-01T00:00:00Z"}

    def fake_get(cid):
        if cid not in files:
            raise ipfs_helper.IPFSError("Failed to fetch from IPFS: 404 Not Found")
        return files[cid]

    monkeypatch.setattr(ipfs_helper, "upload_to_ipfs", fake_upload)
    monkeypatch.setattr(ipfs_helper, "get_from_ipfs", fake_get)
    monkeypatch.setattr(sepolia_utils, "is_configured", lambda: False)
    return files


@pytest.fixture
def client(db, pinned, gateway_client):
    app = create_app()
    app.dependency_overrides[get_ledger_client] = lambda: LedgerClient(
        base_url="http://testserver", session=gateway_client
    )
    return TestClient(app)
