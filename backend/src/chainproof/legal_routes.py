import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from .http_errors import upstream_status
from .ledger_client import LedgerClient, LedgerClientError, get_ledger_client
from .models import evidence as assignments
from .models import records
from .pdf_report import generate_audit_report
from .schemas import ExportRequest, LegalCommentRequest, LegalReviewRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/legal", tags=["Legal"])

REVIEW_ACTIONS = {"start": False, "complete": True}


def _ledger_error(e: LedgerClientError) -> HTTPException:
    return HTTPException(upstream_status(e.status_code), detail=str(e))


@router.post("/review")
def review_evidence(body: LegalReviewRequest, ledger: LedgerClient = Depends(get_ledger_client)):
    if not body.evidence_id:
        raise HTTPException(400, detail="evidenceId is required")
    if body.action not in REVIEW_ACTIONS:
        raise HTTPException(400, detail="action must be 'start' or 'complete'")

    complete = REVIEW_ACTIONS[body.action]
    try:
        result = ledger.review_evidence(body.evidence_id, complete)
    except LedgerClientError as e:
        raise _ledger_error(e)

    assignments.update_status(body.evidence_id, "REVIEWED" if complete else "UNDER_REVIEW")
    return {"success": True, "data": result}


@router.post("/comment")
def add_comment(body: LegalCommentRequest, ledger: LedgerClient = Depends(get_ledger_client)):
    if not body.evidence_id or not body.content.strip():
        raise HTTPException(400, detail="evidenceId and content are required")

    comment_id = "CMT-" + uuid.uuid4().hex[:8].upper()
    try:
        result = ledger.add_legal_comment(
            body.evidence_id, comment_id, body.content, body.court_readiness, body.recommendation
        )
    except LedgerClientError as e:
        raise _ledger_error(e)
    return {"success": True, "data": result}


@router.get("/report/{evidence_id}")
def download_report(evidence_id: str, ledger: LedgerClient = Depends(get_ledger_client)):
    try:
        evidence = ledger.get_evidence(evidence_id)
    except LedgerClientError as e:
        raise _ledger_error(e)

    pdf, report_hash = generate_audit_report(evidence)
    logger.info("Generated audit report for %s (hash %s)", evidence_id, report_hash[:16])
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="ChainProof_Report_{evidence_id}.pdf"',
            "X-Report-Hash": report_hash,
        },
    )


@router.post("/export")
def export_evidence(body: ExportRequest, ledger: LedgerClient = Depends(get_ledger_client)):
    if not body.evidence_id:
        raise HTTPException(400, detail="evidenceId is required")

    previous = assignments.get_assignment(body.evidence_id)
    try:
        record = ledger.export_evidence(body.evidence_id)
    except LedgerClientError as e:
        raise _ledger_error(e)

    if not previous or previous["status"] != "EXPORTED":
        records.increment_stat("total_exported")
    assignments.update_status(body.evidence_id, "EXPORTED")
    return {"success": True, "data": record}


@router.get("/evidence")
def list_evidence(
    status: str = "VERIFIED",
    legal_role: Optional[str] = Query(None, alias="legalRole"),
    page_size: int = Query(10, alias="pageSize"),
    bookmark: str = "",
    ledger: LedgerClient = Depends(get_ledger_client),
):
    """Ledger records in a status, optionally narrowed to the legal role they were forwarded to."""
    try:
        result = ledger.query_by_status(status, page_size, bookmark)
    except LedgerClientError as e:
        raise _ledger_error(e)

    items = []
    for evidence in result["records"]:
        assignment = assignments.get_assignment(evidence["evidenceId"])
        if legal_role and (not assignment or assignment["targetLegalRole"] != legal_role):
            continue
        items.append({**evidence, "assignment": assignment})

    return {"success": True, "data": {"records": items, "count": len(items), "bookmark": result["bookmark"]}}
