import json
import logging
import sqlite3
import uuid
from typing import List, Optional

import requests
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from web3.exceptions import Web3Exception

from . import config, sepolia_utils
from .chaincode.models import CATEGORIES
from .hash_utils import sha256
from .http_errors import upstream_status
from .ipfs import ipfs_helper
from .key_generation.ecc import public_key_hash as jwk_public_key_hash
from .key_generation.ecc import load_public_key, verify_signature
from .ledger_client import LedgerClient, LedgerClientError, get_ledger_client
from .metadata import removed_fields, strip_metadata
from .models import evidence as assignments
from .models import lookup, records, users
from .schemas import AssignRequest, LegalAssignRequest, OwnershipRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/evidence", tags=["Evidence"])


def new_evidence_id() -> str:
    return "EVD-" + uuid.uuid4().hex[:8].upper()


def new_bulk_id() -> str:
    return "BULK-" + uuid.uuid4().hex[:8].upper()


def file_type_for(content_type: Optional[str]) -> str:
    """Map a MIME type onto the ledger's coarse file types."""
    content_type = (content_type or "").lower()
    for prefix in ("image", "video", "audio"):
        if content_type.startswith(prefix + "/"):
            return prefix
    if content_type == "application/pdf" or content_type.startswith("text/") or "word" in content_type:
        return "document"
    return "other"


def _ledger_error(e: LedgerClientError) -> HTTPException:
    return HTTPException(upstream_status(e.status_code), detail=str(e))


def _check_signature(data: str, signature: str, public_key: str, public_key_hash: str):
    try:
        load_public_key(public_key)
    except (ValueError, KeyError, TypeError):
        raise HTTPException(400, detail="Invalid publicKey")
    if not verify_signature(data, signature, public_key):
        raise HTTPException(401, detail="Invalid signature")
    if public_key.strip().startswith("{") and jwk_public_key_hash(json.loads(public_key)) != public_key_hash:
        raise HTTPException(401, detail="publicKey does not match publicKeyHash")


def _prepare_file(raw: bytes, filename: str, category: str, public_key_hash: str) -> dict:
    """Strip metadata, hash the cleaned bytes and pin them."""
    stripped = strip_metadata(raw, filename)
    clean = stripped["buffer"]
    file_hash = sha256(clean)

    try:
        pinned = ipfs_helper.upload_to_ipfs(clean, filename, {
            "category": category,
            "publicKeyHash": public_key_hash[:16],
        })
    except ipfs_helper.IPFSError as e:
        logger.error("IPFS upload failed for %s: %s", filename, e)
        raise HTTPException(502, detail=str(e))

    return {
        "ipfsCid": pinned["cid"],
        "fileHash": file_hash,
        "fileSize": len(clean),
        "removedMetadata": removed_fields(stripped["removedMetadata"]),
        "metadataStripped": stripped["hadIdentifyingData"],
    }


def _anchor(ledger: LedgerClient, evidence_id: str, file_hash: str):
    """
    Best effort: a missing or failing Sepolia anchor never blocks a submission.

    Returns (anchor, failed). failed is only True when Sepolia is configured
    and the anchor transaction could not be sent.
    """
    if not sepolia_utils.is_configured():
        return None, False
    try:
        anchor = sepolia_utils.anchor_to_sepolia(evidence_id, file_hash)
    except (sepolia_utils.SepoliaNotConfigured, Web3Exception, requests.RequestException, ValueError) as e:
        logger.warning("Sepolia anchor failed for %s: %s", evidence_id, e)
        return None, True

    try:
        ledger.update_anchor(evidence_id, anchor["txHash"])
    except LedgerClientError as e:
        logger.warning("Could not record anchor tx for %s on the ledger: %s", evidence_id, e)
    return anchor, False


def _record_locally(evidence_id, prepared, public_key_hash, category, description, anchor, assignee,
                    anchor_failed=False):
    try:
        assignments.save_assignment(
            evidence_id,
            prepared["ipfsCid"],
            public_key_hash,
            assigned_to=assignee["id"] if assignee else None,
            description=description,
            transaction_hash=anchor["txHash"] if anchor else None,
        )
        if assignee:
            users.increment_assigned(assignee["id"])
        lookup.add_evidence_for_user(public_key_hash, evidence_id)
        records.save_anchor(evidence_id, prepared["fileHash"], prepared["ipfsCid"], anchor)
        if anchor_failed:
            records.mark_anchor_failed(evidence_id)
        records.increment_stat("total_submissions", category)
    except sqlite3.Error as e:
        logger.error("Local bookkeeping failed for %s: %s", evidence_id, e)


###############################################################
# SUBMISSION
###############################################################
@router.post("/submit")
def submit_evidence(
    file: Optional[UploadFile] = File(None),
    category: str = Form("other"),
    description: str = Form(""),
    public_key_hash: str = Form("", alias="publicKeyHash"),
    signature: str = Form(""),
    public_key: Optional[str] = Form(None, alias="publicKey"),
    ledger: LedgerClient = Depends(get_ledger_client),
):
    if file is None:
        raise HTTPException(400, detail="No file uploaded")
    if not public_key_hash or not signature:
        raise HTTPException(400, detail="publicKeyHash and signature are required")
    if category not in CATEGORIES:
        raise HTTPException(400, detail=f"Invalid category. Must be one of: {', '.join(CATEGORIES)}")

    raw = file.file.read()
    if len(raw) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(413, detail="File too large")

    # The client signs the hash of the file as selected, before stripping
    if public_key:
        _check_signature(sha256(raw), signature, public_key, public_key_hash)

    filename = file.filename or "evidence"
    prepared = _prepare_file(raw, filename, category, public_key_hash)
    evidence_id = new_evidence_id()
    file_type = file_type_for(file.content_type)

    logger.info("Submitting %s (%s bytes, pkh %s...)", evidence_id, prepared["fileSize"], public_key_hash[:8])
    try:
        ledger.submit_evidence({
            "evidenceId": evidence_id,
            "ipfsCid": prepared["ipfsCid"],
            "fileHash": prepared["fileHash"],
            "fileType": file_type,
            "fileSize": prepared["fileSize"],
            "category": category,
            "description": description,
            "publicKeyHash": public_key_hash,
            "signature": signature,
        })
    except LedgerClientError as e:
        raise _ledger_error(e)

    anchor, anchor_failed = _anchor(ledger, evidence_id, prepared["fileHash"])
    assignee = users.pick_random_user("VerifierOrg")
    if assignee is None:
        logger.warning("No verifier registered, %s left unassigned", evidence_id)
    _record_locally(evidence_id, prepared, public_key_hash, category, description, anchor, assignee,
                    anchor_failed)

    return JSONResponse(status_code=201, content={"success": True, "data": {
        "evidenceId": evidence_id,
        "ipfsCid": prepared["ipfsCid"],
        "fileHash": prepared["fileHash"],
        "fileType": file_type,
        "fileSize": prepared["fileSize"],
        "category": category,
        "description": description,
        "publicKeyHash": public_key_hash,
        "assignedTo": assignee["name"] if assignee else "Unassigned",
        "metadataStripped": prepared["metadataStripped"],
        "removedMetadata": prepared["removedMetadata"],
        "sepoliaAnchor": anchor,
        "message": "Evidence submitted successfully",
    }})


@router.post("/submit/bulk")
def submit_bulk_evidence(
    files: List[UploadFile] = File(...),
    category: str = Form("other"),
    description: str = Form(""),
    public_key_hash: str = Form("", alias="publicKeyHash"),
    signature: str = Form(""),
    public_key: Optional[str] = Form(None, alias="publicKey"),
    ledger: LedgerClient = Depends(get_ledger_client),
):
    if not files:
        raise HTTPException(400, detail="No files uploaded")
    if not public_key_hash or not signature:
        raise HTTPException(400, detail="publicKeyHash and signature are required")
    if category not in CATEGORIES:
        raise HTTPException(400, detail=f"Invalid category. Must be one of: {', '.join(CATEGORIES)}")

    raws = []
    for upload in files:
        raw = upload.file.read()
        if len(raw) > config.MAX_UPLOAD_BYTES:
            raise HTTPException(413, detail=f"File too large: {upload.filename}")
        raws.append(raw)

    # One signature covers the whole batch: the original file hashes joined by commas
    if public_key:
        _check_signature(",".join(sha256(raw) for raw in raws), signature, public_key, public_key_hash)

    bulk_id = new_bulk_id()
    prepared_items = []
    for upload, raw in zip(files, raws):
        prepared = _prepare_file(raw, upload.filename or "evidence", category, public_key_hash)
        prepared["evidenceId"] = new_evidence_id()
        prepared["fileType"] = file_type_for(upload.content_type)
        prepared_items.append(prepared)

    logger.info("Submitting bulk %s with %d files", bulk_id, len(prepared_items))
    try:
        result = ledger.submit_bulk_evidence(
            bulk_id,
            [
                {
                    "evidenceId": p["evidenceId"],
                    "ipfsCid": p["ipfsCid"],
                    "fileHash": p["fileHash"],
                    "fileType": p["fileType"],
                    "fileSize": p["fileSize"],
                    "category": category,
                    "description": description,
                }
                for p in prepared_items
            ],
            public_key_hash,
            signature,
        )
    except LedgerClientError as e:
        raise _ledger_error(e)

    items = []
    for prepared in prepared_items:
        evidence_id = prepared["evidenceId"]
        anchor, anchor_failed = _anchor(ledger, evidence_id, prepared["fileHash"])
        assignee = users.pick_random_user("VerifierOrg")
        _record_locally(evidence_id, prepared, public_key_hash, category, description, anchor, assignee,
                    anchor_failed)
        items.append({
            "evidenceId": evidence_id,
            "ipfsCid": prepared["ipfsCid"],
            "fileHash": prepared["fileHash"],
            "fileType": prepared["fileType"],
            "fileSize": prepared["fileSize"],
            "assignedTo": assignee["name"] if assignee else "Unassigned",
            "metadataStripped": prepared["metadataStripped"],
            "removedMetadata": prepared["removedMetadata"],
            "sepoliaAnchor": anchor,
        })

    return JSONResponse(status_code=201, content={"success": True, "data": {
        "bulkSubmissionId": bulk_id,
        "totalCount": len(items),
        "submittedAt": (result or {}).get("submittedAt"),
        "items": items,
        "message": f"{len(items)} evidence files submitted successfully",
    }})


###############################################################
# ASSIGNMENT
###############################################################
@router.post("/assign")
def assign_evidence(body: AssignRequest):
    if not body.evidence_id:
        raise HTTPException(400, detail="evidenceId is required")
    if body.target_org not in users.ORGANIZATIONS:
        raise HTTPException(400, detail="Invalid organization. Must be VerifierOrg or LegalOrg")

    if body.user_id is not None:
        user = users.get_user(body.user_id)
        if user is None:
            raise HTTPException(404, detail="User not found")
    else:
        user = users.pick_random_user(body.target_org)
        if user is None:
            raise HTTPException(404, detail=f"No users found in {body.target_org}. Cannot assign.")

    assignments.assign_to_user(body.evidence_id, user["id"])
    users.increment_assigned(user["id"])
    logger.info("Assigned %s to user %s", body.evidence_id, user["id"])
    return {"success": True, "data": assignments.get_assignment(body.evidence_id)}


@router.post("/assign/legal")
def assign_to_legal(body: LegalAssignRequest):
    if not body.evidence_id or not body.legal_role:
        raise HTTPException(400, detail="evidenceId and legalRole are required")
    if body.legal_role not in users.LEGAL_ROLES:
        raise HTTPException(400, detail=f"Invalid legal role. Must be one of: {', '.join(users.LEGAL_ROLES)}")

    assignments.forward_to_legal(body.evidence_id, body.legal_role)
    logger.info("Forwarded %s to %s", body.evidence_id, body.legal_role)
    return {"success": True, "data": assignments.get_assignment(body.evidence_id)}


@router.get("/assignments")
def get_assignments():
    return {"success": True, "data": assignments.all_assignments()}


###############################################################
# WHISTLEBLOWER VIEWS
###############################################################
@router.get("/notifications/{public_key_hash}")
def get_notifications(public_key_hash: str, ledger: LedgerClient = Depends(get_ledger_client)):
    try:
        return {"success": True, "data": ledger.get_notifications(public_key_hash)}
    except LedgerClientError as e:
        raise _ledger_error(e)


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(notification_id: str, ledger: LedgerClient = Depends(get_ledger_client)):
    try:
        ledger.mark_notification_read(notification_id)
    except LedgerClientError as e:
        raise _ledger_error(e)
    return {"success": True, "message": "Notification marked as read"}


@router.get("/reputation/{public_key_hash}")
def get_reputation(public_key_hash: str, ledger: LedgerClient = Depends(get_ledger_client)):
    try:
        return {"success": True, "data": ledger.get_reputation(public_key_hash)}
    except LedgerClientError as e:
        raise _ledger_error(e)


@router.get("/lookup/{public_key_hash}")
def lookup_evidence(public_key_hash: str):
    hashes = lookup.get_evidence_for_user(public_key_hash)
    return {"success": True, "data": {"evidenceHashes": hashes, "count": len(hashes)}}


@router.post("/ownership")
def verify_ownership(body: OwnershipRequest):
    if not body.public_key_hash or not body.evidence_id:
        raise HTTPException(400, detail="publicKeyHash and evidenceId are required")
    owns = lookup.verify_ownership(body.public_key_hash, body.evidence_id)
    return {"success": True, "data": {"evidenceId": body.evidence_id, "owns": owns}}


@router.get("/proxy/{cid}")
def proxy_ipfs(cid: str):
    try:
        content, content_type = ipfs_helper.fetch_via_gateways(cid)
    except ipfs_helper.IPFSError as e:
        raise HTTPException(502, detail=str(e))
    return Response(
        content=content,
        media_type=content_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.get("/{evidence_id}")
def get_evidence(evidence_id: str, ledger: LedgerClient = Depends(get_ledger_client)):
    try:
        evidence = ledger.get_evidence(evidence_id)
    except LedgerClientError as e:
        raise _ledger_error(e)
    return {"success": True, "data": {**evidence, "assignment": assignments.get_assignment(evidence_id)}}
