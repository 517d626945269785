import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..schemas import (
    AnchorRequest,
    BulkSubmitRequest,
    CommentRequest,
    NoteRequest,
    ReviewRequest,
    SubmitEvidenceRequest,
    SwitchOrgRequest,
    VerifyRequest,
)
from .fabric import FabricGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fabric", tags=["Fabric"])


def _fabric(request: Request) -> FabricGateway:
    return request.app.state.fabric


def ok(data=None, status_code: int = 200):
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


###############################################################
# ORGANIZATION MANAGEMENT
###############################################################
@router.get("/org")
def get_org(request: Request):
    return {"success": True, "org": _fabric(request).get_current_org()}


@router.post("/org/switch")
def switch_org(body: SwitchOrgRequest, request: Request):
    fabric = _fabric(request)
    if body.org not in fabric.orgs:
        raise HTTPException(400, detail=f"Invalid org. Must be: {', '.join(fabric.orgs)}")
    fabric.switch_org(body.org)
    return {"success": True, "org": body.org}


###############################################################
# WHISTLEBLOWER ENDPOINTS
###############################################################
@router.post("/evidence/submit")
def submit_evidence(body: SubmitEvidenceRequest, request: Request, x_fabric_org: Optional[str] = Header(None)):
    if not (body.evidence_id and body.ipfs_cid and body.file_hash and body.public_key_hash and body.signature):
        raise HTTPException(
            400, detail="Missing required fields: evidenceId, ipfsCid, fileHash, publicKeyHash, signature"
        )

    logger.info("Submitting evidence: %s", body.evidence_id)
    result = _fabric(request).submit_evidence(
        body.evidence_id, body.ipfs_cid, body.file_hash,
        body.file_type or "unknown",
        body.file_size or 0,
        body.category or "other",
        body.description,
        body.public_key_hash,
        body.signature,
        org=x_fabric_org,
    )
    return ok(result, status_code=201)


@router.post("/evidence/bulk")
def submit_bulk_evidence(body: BulkSubmitRequest, request: Request, x_fabric_org: Optional[str] = Header(None)):
    if not body.bulk_submission_id or not body.items:
        raise HTTPException(400, detail="bulkSubmissionId and at least one item are required")

    logger.info("Submitting bulk evidence: %s (%d items)", body.bulk_submission_id, len(body.items))
    result = _fabric(request).submit_bulk_evidence(
        body.bulk_submission_id, body.items, body.public_key_hash, body.signature, org=x_fabric_org,
    )
    return ok(result, status_code=201)


@router.get("/evidence/{evidence_id}")
def get_evidence(evidence_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_evidence(evidence_id, org=x_fabric_org))


@router.get("/evidence/{evidence_id}/history")
def get_evidence_history(evidence_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_evidence_history(evidence_id, org=x_fabric_org))


@router.post("/evidence/{evidence_id}/anchor")
def update_anchor(evidence_id: str, body: AnchorRequest, request: Request,
                  x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).update_polygon_anchor(evidence_id, body.tx_hash, org=x_fabric_org))


@router.get("/notifications/{public_key_hash}")
def get_notifications(public_key_hash: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    result = _fabric(request).get_notifications(public_key_hash, org=x_fabric_org)
    return ok(result or {"notifications": [], "count": 0})


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(notification_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    _fabric(request).mark_notification_read(notification_id, org=x_fabric_org)
    return {"success": True}


@router.get("/reputation/{public_key_hash}")
def get_reputation(public_key_hash: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_reputation(public_key_hash, org=x_fabric_org))


###############################################################
# VERIFIER ENDPOINTS
###############################################################
@router.post("/verify/{evidence_id}")
def verify_integrity(evidence_id: str, body: VerifyRequest, request: Request,
                     x_fabric_org: Optional[str] = Header(None)):
    if not body.computed_hash or body.passed is None:
        raise HTTPException(400, detail="computedHash and passed are required")
    if not body.passed and not body.rejection_comment:
        raise HTTPException(400, detail="rejectionComment is required when verification fails")

    logger.info("Verifying evidence: %s, passed: %s", evidence_id, body.passed)
    result = _fabric(request).verify_integrity(
        evidence_id, body.computed_hash, body.passed, body.rejection_comment, org=x_fabric_org,
    )
    return ok(result)


@router.post("/verify/{evidence_id}/note")
def add_verification_note(evidence_id: str, body: NoteRequest, request: Request,
                          x_fabric_org: Optional[str] = Header(None)):
    result = _fabric(request).add_verification_note(
        evidence_id, body.note_id, body.content, body.hash_comparison, org=x_fabric_org,
    )
    return ok(result)


@router.get("/verify/{evidence_id}/notes")
def get_verification_notes(evidence_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_verification_notes(evidence_id, org=x_fabric_org) or [])


###############################################################
# LEGAL ENDPOINTS
###############################################################
@router.post("/legal/{evidence_id}/review")
def review_evidence(evidence_id: str, body: ReviewRequest, request: Request,
                    x_fabric_org: Optional[str] = Header(None)):
    logger.info("Legal review: %s, complete: %s, verdict: %s", evidence_id, body.complete, body.verdict)
    return ok(_fabric(request).review_evidence(evidence_id, body.complete, org=x_fabric_org))


@router.post("/legal/{evidence_id}/comment")
def add_legal_comment(evidence_id: str, body: CommentRequest, request: Request,
                      x_fabric_org: Optional[str] = Header(None)):
    result = _fabric(request).add_legal_comment(
        evidence_id, body.comment_id, body.content,
        body.court_readiness or "NEEDS_REVIEW",
        body.recommendation,
        org=x_fabric_org,
    )
    return ok(result)


@router.get("/legal/{evidence_id}/comments")
def get_legal_comments(evidence_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_legal_comments(evidence_id, org=x_fabric_org) or [])


@router.post("/legal/{evidence_id}/export")
def export_evidence(evidence_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    logger.info("Exporting evidence: %s", evidence_id)
    return ok(_fabric(request).export_evidence(evidence_id, org=x_fabric_org))


@router.get("/legal/query/date-range")
def query_by_date_range(
    request: Request,
    start: int = Query(...),
    end: int = Query(...),
    page_size: int = Query(10, alias="pageSize"),
    bookmark: str = "",
    x_fabric_org: Optional[str] = Header(None),
):
    if start > end:
        raise HTTPException(400, detail="start must not be after end")
    return ok(_fabric(request).query_evidence_by_date_range(start, end, page_size, bookmark, org=x_fabric_org))


###############################################################
# QUERY ENDPOINTS
###############################################################
@router.get("/query/status/{status}")
def query_by_status(status: str, request: Request, page_size: int = Query(10, alias="pageSize"),
                    bookmark: str = "", x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).query_evidence_by_status(status, page_size, bookmark, org=x_fabric_org))


@router.get("/query/category/{category}")
def query_by_category(category: str, request: Request, page_size: int = Query(10, alias="pageSize"),
                      bookmark: str = "", x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).query_evidence_by_category(category, page_size, bookmark, org=x_fabric_org))


@router.get("/query/bulk/{bulk_submission_id}")
def query_by_bulk(bulk_submission_id: str, request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).query_evidence_by_bulk_submission(bulk_submission_id, org=x_fabric_org))


@router.get("/query/all")
def query_all(request: Request, page_size: int = Query(10, alias="pageSize"), bookmark: str = "",
              x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_all_evidence(page_size, bookmark, org=x_fabric_org))


@router.get("/query/count")
def query_count(request: Request, x_fabric_org: Optional[str] = Header(None)):
    return ok(_fabric(request).get_evidence_count(org=x_fabric_org))
