"""HTTP client for the Fabric gateway service."""
import logging

import requests

from . import config

logger = logging.getLogger(__name__)

WHISTLEBLOWERS_ORG = "WhistleblowersOrg"
VERIFIER_ORG = "VerifierOrg"
LEGAL_ORG = "LegalOrg"


class LedgerClientError(Exception):
    def __init__(self, message, status_code=502):
        super().__init__(message)
        self.status_code = status_code


class LedgerClient:
    def __init__(self, base_url=None, session=None, timeout=None):
        self.base_url = (base_url or config.FABRIC_GATEWAY_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or config.FABRIC_GATEWAY_TIMEOUT

    def _request(self, method, path, org, json_body=None, params=None):
        url = f"{self.base_url}/api/fabric{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=json_body,
                params=params,
                headers={"X-Fabric-Org": org},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise LedgerClientError(f"Fabric gateway unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code >= 400:
            message = body.get("error") or f"Fabric gateway error {resp.status_code}"
            logger.warning("Ledger %s %s as %s failed: %s", method, path, org, message)
            raise LedgerClientError(message, status_code=resp.status_code)
        return body.get("data")

    # ------------------------------------------------------------
    # Whistleblower
    # ------------------------------------------------------------
    def submit_evidence(self, evidence: dict):
        return self._request("POST", "/evidence/submit", WHISTLEBLOWERS_ORG, json_body=evidence)

    def submit_bulk_evidence(self, bulk_submission_id, items, public_key_hash="", signature=""):
        return self._request("POST", "/evidence/bulk", WHISTLEBLOWERS_ORG, json_body={
            "bulkSubmissionId": bulk_submission_id,
            "items": items,
            "publicKeyHash": public_key_hash,
            "signature": signature,
        })

    def update_anchor(self, evidence_id, tx_hash):
        return self._request(
            "POST", f"/evidence/{evidence_id}/anchor", WHISTLEBLOWERS_ORG, json_body={"txHash": tx_hash}
        )

    def get_notifications(self, public_key_hash):
        return self._request("GET", f"/notifications/{public_key_hash}", WHISTLEBLOWERS_ORG)

    def mark_notification_read(self, notification_id):
        return self._request("POST", f"/notifications/{notification_id}/read", WHISTLEBLOWERS_ORG)

    def get_reputation(self, public_key_hash):
        return self._request("GET", f"/reputation/{public_key_hash}", WHISTLEBLOWERS_ORG)

    # ------------------------------------------------------------
    # Verifier
    # ------------------------------------------------------------
    def verify_integrity(self, evidence_id, computed_hash, passed, rejection_comment=""):
        return self._request("POST", f"/verify/{evidence_id}", VERIFIER_ORG, json_body={
            "computedHash": computed_hash,
            "passed": passed,
            "rejectionComment": rejection_comment,
        })

    def add_verification_note(self, evidence_id, note_id, content, hash_comparison=""):
        return self._request("POST", f"/verify/{evidence_id}/note", VERIFIER_ORG, json_body={
            "noteId": note_id,
            "content": content,
            "hashComparison": hash_comparison,
        })

    # ------------------------------------------------------------
    # Legal
    # ------------------------------------------------------------
    def review_evidence(self, evidence_id, complete):
        return self._request("POST", f"/legal/{evidence_id}/review", LEGAL_ORG, json_body={"complete": complete})

    def add_legal_comment(self, evidence_id, comment_id, content, court_readiness, recommendation=""):
        return self._request("POST", f"/legal/{evidence_id}/comment", LEGAL_ORG, json_body={
            "commentId": comment_id,
            "content": content,
            "courtReadiness": court_readiness,
            "recommendation": recommendation,
        })

    def export_evidence(self, evidence_id):
        return self._request("POST", f"/legal/{evidence_id}/export", LEGAL_ORG)

    # ------------------------------------------------------------
    # Query
    # ------------------------------------------------------------
    def get_evidence(self, evidence_id, org=LEGAL_ORG):
        return self._request("GET", f"/evidence/{evidence_id}", org)

    def query_by_status(self, status, page_size=10, bookmark="", org=LEGAL_ORG):
        return self._request(
            "GET", f"/query/status/{status}", org, params={"pageSize": page_size, "bookmark": bookmark}
        )

    def get_all_evidence(self, page_size=10, bookmark="", org=LEGAL_ORG):
        return self._request("GET", "/query/all", org, params={"pageSize": page_size, "bookmark": bookmark})


_client = None


def get_ledger_client() -> LedgerClient:
    global _client
    if _client is None:
        _client = LedgerClient()
    return _client
