import logging
import uuid

import requests
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from web3.exceptions import Web3Exception

from . import sepolia_utils
from .hash_utils import hashes_match, sha256
from .http_errors import upstream_status
from .ipfs import ipfs_helper
from .ledger_client import VERIFIER_ORG, LedgerClient, LedgerClientError, get_ledger_client
from .models import evidence as assignments
from .models import records, users
from .schemas import AnchorCheckRequest, IntegrityRequest, RecordVerificationRequest, VerificationNoteRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verify", tags=["Verify"])


def _ledger_error(e: LedgerClientError) -> HTTPException:
    return HTTPException(upstream_status(e.status_code), detail=str(e))


###############################################################
# INTEGRITY
###############################################################
@router.post("/integrity")
def verify_integrity(body: IntegrityRequest):
    """
    Re-download the pinned file, hash it and compare against the hash the
    verifier read from the ledger. The outcome is kept as an anonymous proof;
    committing it to the ledger is a separate step (POST /record).
    """
    if not (body.evidence_id and body.ipfs_cid and body.expected_hash):
        raise HTTPException(400, detail="evidenceId, ipfsCid and expectedHash are required")

    try:
        content = ipfs_helper.get_from_ipfs(body.ipfs_cid)
    except ipfs_helper.IPFSError as e:
        raise HTTPException(502, detail=str(e))

    computed = sha256(content)
    passed = hashes_match(computed, body.expected_hash)
    records.record_verification_proof(computed, passed, body.verifier_org)
    logger.info("Integrity check for %s: %s", body.evidence_id, "passed" if passed else "FAILED")

    return {"success": True, "data": {
        "evidenceId": body.evidence_id,
        "passed": passed,
        "computedHash": computed,
        "expectedHash": body.expected_hash,
        "message": "File integrity verified" if passed else "Hash mismatch - file may have been tampered with",
    }}


@router.post("/record")
def record_verification(body: RecordVerificationRequest, ledger: LedgerClient = Depends(get_ledger_client)):
    if not body.evidence_id or not body.computed_hash or body.passed is None:
        raise HTTPException(400, detail="evidenceId, computedHash and passed are required")
    if not body.passed and not body.rejection_comment.strip():
        raise HTTPException(400, detail="rejectionComment is required when verification fails")

    try:
        result = ledger.verify_integrity(body.evidence_id, body.computed_hash, body.passed, body.rejection_comment)
    except LedgerClientError as e:
        raise _ledger_error(e)

    verified = result["verified"]
    assignments.update_status(body.evidence_id, "VERIFIED" if verified else "REJECTED")
    records.increment_stat("total_verified" if verified else "total_rejected")

    assignment = assignments.get_assignment(body.evidence_id)
    if assignment and assignment["assignedTo"]:
        users.increment_processed(assignment["assignedTo"]["id"])

    return {"success": True, "data": {
        **result,
        "status": "VERIFIED" if verified else "REJECTED",
        "message": "Verification recorded on ledger",
    }}


@router.post("/note")
def add_note(body: VerificationNoteRequest, ledger: LedgerClient = Depends(get_ledger_client)):
    if not body.evidence_id or not body.content.strip():
        raise HTTPException(400, detail="evidenceId and content are required")
    note_id = "NOTE-" + uuid.uuid4().hex[:8].upper()
    try:
        note = ledger.add_verification_note(body.evidence_id, note_id, body.content, body.hash_comparison)
    except LedgerClientError as e:
        raise _ledger_error(e)
    return {"success": True, "data": note}


###############################################################
# PUBLIC CHECKS
###############################################################
@router.post("/file")
def verify_file(file: UploadFile = File(...)):
    """Anyone can check a copy of a file against the anchored hashes."""
    content = file.file.read()
    file_hash = sha256(content)
    anchors = records.find_anchors_by_file_hash(file_hash)
    proofs = records.proofs_for_file_hash(file_hash)
    return {"success": True, "data": {
        "fileHash": file_hash,
        "found": bool(anchors),
        "anchors": anchors,
        "verificationProofs": proofs,
    }}


@router.get("/anchor/{evidence_id}")
def get_anchor(evidence_id: str):
    local = records.get_anchor_record(evidence_id)
    if not sepolia_utils.is_configured():
        return {"success": True, "data": {"evidenceId": evidence_id, "local": local, "sepolia": None}}
    try:
        onchain = sepolia_utils.get_anchor(evidence_id)
    except (Web3Exception, requests.RequestException) as e:
        raise HTTPException(502, detail=f"Sepolia query failed: {e}")
    return {"success": True, "data": {"evidenceId": evidence_id, "local": local, "sepolia": onchain}}


@router.post("/anchor")
def check_anchor(body: AnchorCheckRequest):
    if not body.evidence_id or not body.file_hash:
        raise HTTPException(400, detail="evidenceId and fileHash are required")
    try:
        result = sepolia_utils.verify_anchor(body.evidence_id, body.file_hash)
    except (Web3Exception, requests.RequestException) as e:
        raise HTTPException(502, detail=f"Sepolia query failed: {e}")
    except ValueError:
        raise HTTPException(400, detail="fileHash must be a 32-byte hex string")
    records.record_verification_proof(body.file_hash, result["valid"], VERIFIER_ORG)
    return {"success": True, "data": {"evidenceId": body.evidence_id, **result}}
