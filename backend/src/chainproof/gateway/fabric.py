"""
Fabric network service.

Holds one identity per organization and invokes the ChainProof chaincode as
that identity. Identities come from the org admin's MSP signcert or a wallet
entry written by enroll_admin; without either the org's MSP id is used as is
(local development).
"""
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509

from ..chaincode import Chaincode, LedgerStore
from ..chaincode.access_control import ClientIdentity
from . import config

logger = logging.getLogger(__name__)


class GatewayNotConnected(RuntimeError):
    pass


class UnknownOrg(ValueError):
    pass


def _to_arg(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _decode(payload: bytes):
    if not payload:
        return None
    return json.loads(payload.decode("utf-8"))


def load_certificate(cert_path: Path) -> x509.Certificate:
    cert = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
    if cert.not_valid_after_utc < datetime.now(timezone.utc):
        raise ValueError(f"certificate expired: {cert_path}")
    return cert


def load_identity(org_name: str, orgs=None, wallet_path=None) -> ClientIdentity:
    orgs = orgs or config.ORGS
    wallet_path = Path(wallet_path or config.WALLET_PATH)
    org = orgs.get(org_name)
    if not org:
        raise UnknownOrg(f"Unknown organization: {org_name}")

    identity_file = wallet_path / f"{org['identity_label']}.id"
    if identity_file.exists():
        data = json.loads(identity_file.read_text())
        if data.get("mspId") != org["msp_id"]:
            raise ValueError(
                f"wallet identity {identity_file} belongs to {data.get('mspId')}, expected {org['msp_id']}"
            )
        cert_pem = data.get("credentials", {}).get("certificate", "")
        if cert_pem:
            x509.load_pem_x509_certificate(cert_pem.encode())
        logger.info("Loaded identity from wallet: %s", identity_file)
        return ClientIdentity(org["msp_id"], cert_pem)

    cert_path = Path(org["cert_path"])
    if cert_path.exists():
        cert = load_certificate(cert_path)
        logger.info("Loaded %s signcert (%s)", org_name, cert.subject.rfc4514_string())
        return ClientIdentity(org["msp_id"], cert_path.read_text())

    logger.warning("No MSP credentials for %s, using bare MSP id %s", org_name, org["msp_id"])
    return ClientIdentity(org["msp_id"])


class FabricGateway:
    def __init__(self, ledger_path=None, channel=None, chaincode=None, default_org=None, orgs=None, wallet_path=None):
        self.ledger_path = ledger_path or config.LEDGER_PATH
        self.channel = channel or config.CHANNEL_NAME
        self.chaincode_name = chaincode or config.CHAINCODE_NAME
        self.orgs = orgs or config.ORGS
        self.wallet_path = wallet_path or config.WALLET_PATH
        self.current_org = default_org or config.DEFAULT_ORG
        self._identities = {}
        self._chaincode = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------
    def initialize(self, org_name=None):
        if org_name:
            self._check_org(org_name)
            self.current_org = org_name
        logger.info("Initializing Fabric Gateway for %s...", self.current_org)
        with self._lock:
            if self._chaincode is None:
                store = LedgerStore(self.ledger_path)
                self._chaincode = Chaincode(store, channel=self.channel, name=self.chaincode_name)
        self._identity(self.current_org)
        logger.info("Connected to Fabric as %s", self.current_org)
        return True

    def close(self):
        with self._lock:
            self._chaincode = None
            self._identities.clear()
        logger.info("Gateway disconnected")

    @property
    def connected(self) -> bool:
        return self._chaincode is not None

    def get_current_org(self) -> str:
        return self.current_org

    def switch_org(self, org_name: str):
        self._check_org(org_name)
        self.current_org = org_name
        self._identity(org_name)
        logger.info("Switched to organization: %s", org_name)

    def _check_org(self, org_name):
        if org_name not in self.orgs:
            raise UnknownOrg(
                f"Invalid org. Must be: {', '.join(self.orgs)}"
            )

    def _identity(self, org_name) -> ClientIdentity:
        self._check_org(org_name)
        identity = self._identities.get(org_name)
        if identity is None:
            identity = load_identity(org_name, self.orgs, self.wallet_path)
            self._identities[org_name] = identity
        return identity

    def _contract(self):
        if self._chaincode is None:
            raise GatewayNotConnected("Gateway not initialized. Call initialize() first.")
        return self._chaincode

    # ------------------------------------------------------------
    # Raw invocation
    # ------------------------------------------------------------
    def submit_transaction(self, contract: str, function: str, *args, org=None):
        msp_id = self._identity(org or self.current_org).get_msp_id()
        payload = self._contract().submit(f"{contract}:{function}", *map(_to_arg, args), msp_id=msp_id)
        return _decode(payload)

    def evaluate_transaction(self, contract: str, function: str, *args, org=None):
        msp_id = self._identity(org or self.current_org).get_msp_id()
        payload = self._contract().evaluate(f"{contract}:{function}", *map(_to_arg, args), msp_id=msp_id)
        return _decode(payload)

    # ------------------------------------------------------------
    # WhistleblowerContract
    # ------------------------------------------------------------
    def submit_evidence(self, evidence_id, ipfs_cid, file_hash, file_type, file_size, category,
                        description, public_key_hash, signature, org=None):
        self.submit_transaction(
            "whistleblower", "SubmitEvidence",
            evidence_id, ipfs_cid, file_hash, file_type, file_size, category,
            public_key_hash, signature, description or "",
            org=org,
        )
        return {"evidenceId": evidence_id, "status": "SUBMITTED"}

    def submit_bulk_evidence(self, bulk_submission_id, items, public_key_hash="", signature="", org=None):
        return self.submit_transaction(
            "whistleblower", "SubmitBulkEvidence",
            bulk_submission_id, json.dumps(items), public_key_hash, signature,
            org=org,
        )

    def update_polygon_anchor(self, evidence_id, tx_hash, org=None):
        self.submit_transaction("whistleblower", "UpdatePolygonAnchor", evidence_id, tx_hash, org=org)
        return {"evidenceId": evidence_id, "polygonTxHash": tx_hash}

    def get_notifications(self, public_key_hash, org=None):
        return self.evaluate_transaction("whistleblower", "GetNotifications", public_key_hash, org=org)

    def mark_notification_read(self, notification_id, org=None):
        self.submit_transaction("whistleblower", "MarkNotificationRead", notification_id, org=org)

    def get_reputation(self, public_key_hash, org=None):
        return self.evaluate_transaction("whistleblower", "GetReputation", public_key_hash, org=org)

    # ------------------------------------------------------------
    # VerifierContract
    # ------------------------------------------------------------
    def verify_integrity(self, evidence_id, computed_hash, passed, rejection_comment="", org=None):
        self.submit_transaction(
            "verifier", "VerifyIntegrity", evidence_id, computed_hash, bool(passed), rejection_comment,
            org=org,
        )
        return {"evidenceId": evidence_id, "verified": bool(passed)}

    def add_verification_note(self, evidence_id, note_id, content, hash_comparison="", org=None):
        self.submit_transaction(
            "verifier", "AddVerificationNote", evidence_id, note_id, content, hash_comparison, org=org,
        )
        return {"evidenceId": evidence_id, "noteId": note_id}

    def get_verification_notes(self, evidence_id, org=None):
        return self.evaluate_transaction("verifier", "GetVerificationNotes", evidence_id, org=org)

    # ------------------------------------------------------------
    # LegalContract
    # ------------------------------------------------------------
    def review_evidence(self, evidence_id, review_complete, org=None):
        self.submit_transaction("legal", "ReviewEvidence", evidence_id, bool(review_complete), org=org)
        return {"evidenceId": evidence_id, "reviewComplete": bool(review_complete)}

    def add_legal_comment(self, evidence_id, comment_id, content, court_readiness="NEEDS_REVIEW",
                          recommendation="", org=None):
        self.submit_transaction(
            "legal", "AddLegalComment", evidence_id, comment_id, content, court_readiness, recommendation,
            org=org,
        )
        return {"evidenceId": evidence_id, "commentId": comment_id}

    def get_legal_comments(self, evidence_id, org=None):
        return self.evaluate_transaction("legal", "GetLegalComments", evidence_id, org=org)

    def export_evidence(self, evidence_id, org=None):
        return self.submit_transaction("legal", "ExportEvidence", evidence_id, org=org)

    def query_evidence_by_date_range(self, start, end, page_size=10, bookmark="", org=None):
        return self.evaluate_transaction(
            "legal", "QueryEvidenceByDateRange", start, end, page_size, bookmark, org=org,
        )

    # ------------------------------------------------------------
    # QueryContract
    # ------------------------------------------------------------
    def get_evidence(self, evidence_id, org=None):
        return self.evaluate_transaction("query", "GetEvidence", evidence_id, org=org)

    def get_evidence_history(self, evidence_id, org=None):
        return self.evaluate_transaction("query", "GetEvidenceHistory", evidence_id, org=org)

    def get_all_evidence(self, page_size=10, bookmark="", org=None):
        return self.evaluate_transaction("query", "GetAllEvidence", page_size, bookmark, org=org)

    def query_evidence_by_status(self, status, page_size=10, bookmark="", org=None):
        return self.evaluate_transaction("query", "QueryEvidenceByStatus", status, page_size, bookmark, org=org)

    def query_evidence_by_category(self, category, page_size=10, bookmark="", org=None):
        return self.evaluate_transaction(
            "query", "QueryEvidenceByCategory", category, page_size, bookmark, org=org,
        )

    def query_evidence_by_bulk_submission(self, bulk_submission_id, org=None):
        return self.evaluate_transaction("query", "QueryEvidenceByBulkSubmission", bulk_submission_id, org=org)

    def get_evidence_count(self, org=None):
        return self.evaluate_transaction("query", "GetEvidenceCount", org=org)
