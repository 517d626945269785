"""
ChainProof contracts.

  - WhistleblowerContract: evidence submission (WhistleblowersOrg only)
  - VerifierContract: integrity verification (VerifierOrg only)
  - LegalContract: legal review and export (LegalOrg only)
  - QueryContract: read-only operations (any org)

Transaction functions take a TransactionContext first. Evidence moves
SUBMITTED -> VERIFIED | REJECTED, then VERIFIED -> UNDER_REVIEW -> REVIEWED
-> EXPORTED. Every state change appends exactly one custody log entry.
"""
import hashlib
import json
import logging

from .access_control import (
    LEGAL_PRIVATE_COLLECTION,
    VERIFIER_PRIVATE_COLLECTION,
    WHISTLEBLOWER_PRIVATE_COLLECTION,
    get_client_org_id,
    require_any_org,
    require_legal_org,
    require_verifier_org,
    require_whistleblower_org,
)
from .errors import ChaincodeError, EvidenceExists, EvidenceNotFound, InvalidStatus
from .models import (
    ACTION_ADD_COMMENT,
    ACTION_ADD_NOTE,
    ACTION_ANCHOR,
    ACTION_BULK_SUBMIT,
    ACTION_EXPORT,
    ACTION_REVIEW,
    ACTION_SUBMIT,
    ACTION_VERIFY,
    COURT_NEEDS_REVIEW,
    COURT_READINESS,
    DEFAULT_TRUST_SCORE,
    INTEGRITY_FAILED,
    INTEGRITY_PENDING,
    INTEGRITY_VERIFIED,
    NOTIFY_EXPORTED,
    NOTIFY_REJECTION,
    NOTIFY_REVIEWED,
    NOTIFY_VERIFIED,
    STATUS_EXPORTED,
    STATUS_REJECTED,
    STATUS_REVIEWED,
    STATUS_SUBMITTED,
    STATUS_UNDER_REVIEW,
    STATUS_VERIFIED,
    BulkEvidenceItem,
    BulkSubmissionResult,
    CustodyLog,
    Evidence,
    EvidenceHistory,
    EvidenceQueryResult,
    ExportRecord,
    HistoryEntry,
    LegalComment,
    Notification,
    NotificationQueryResult,
    Reputation,
    VerificationNote,
)

logger = logging.getLogger(__name__)

TRUST_SCORE_MAX = 100
TRUST_SCORE_MIN = 0
TRUST_VERIFIED_DELTA = 10
TRUST_REJECTED_DELTA = 15
BULK_QUERY_PAGE_SIZE = 100

DEFAULT_REJECTION_COMMENT = (
    "Hash verification failed: computed hash does not match stored hash. "
    "Evidence may have been tampered with."
)


class TransactionContext:
    def __init__(self, stub, client_identity):
        self.stub = stub
        self.client_identity = client_identity


def transaction(func=None, *, submit=True):
    """Marks a method as an invokable transaction function."""
    def mark(f):
        f.is_transaction = True
        f.is_submit = submit
        return f
    return mark(func) if func is not None else mark


class Contract:
    name = ""


###############################################################
# Shared helpers
###############################################################
def evidence_exists(ctx, evidence_id: str) -> bool:
    return ctx.stub.get_state(evidence_id) is not None


def get_evidence(ctx, evidence_id: str) -> Evidence:
    raw = ctx.stub.get_state(evidence_id)
    if raw is None:
        raise EvidenceNotFound(f"evidence {evidence_id} does not exist")
    try:
        return Evidence.from_json(raw)
    except ValueError as e:
        raise ChaincodeError(f"failed to unmarshal evidence: {e}") from e


def put_evidence(ctx, evidence: Evidence) -> None:
    ctx.stub.put_state(evidence.evidence_id, evidence.to_json())


def append_custody(evidence: Evidence, action: str, actor_org: str, timestamp: int, description: str) -> None:
    evidence.custody_log.append(
        CustodyLog(action=action, actor_org=actor_org, timestamp=timestamp, description=description)
    )


def _selector(**fields) -> str:
    return json.dumps({"selector": fields})


def get_query_result_with_pagination(ctx, query_string: str, page_size: int, bookmark: str) -> EvidenceQueryResult:
    try:
        results, next_bookmark = ctx.stub.get_query_result_with_pagination(query_string, page_size, bookmark)
    except ValueError as e:
        raise ChaincodeError(str(e)) from e
    records = [Evidence.from_json(raw) for _, raw in results]
    return EvidenceQueryResult(records=records, fetched_records_count=len(records), bookmark=next_bookmark)


def _reputation_key(public_key_hash: str) -> str:
    return "reputation_" + public_key_hash


def _load_reputation(ctx, public_key_hash: str):
    raw = ctx.stub.get_private_data(WHISTLEBLOWER_PRIVATE_COLLECTION, _reputation_key(public_key_hash))
    return Reputation.from_json(raw) if raw else None


def _save_reputation(ctx, reputation: Reputation) -> None:
    ctx.stub.put_private_data(
        WHISTLEBLOWER_PRIVATE_COLLECTION, _reputation_key(reputation.public_key_hash), reputation.to_json()
    )


def update_reputation_on_submit(ctx, public_key_hash: str, timestamp: int, count: int = 1) -> None:
    reputation = _load_reputation(ctx, public_key_hash)
    if reputation is None:
        reputation = Reputation(
            public_key_hash=public_key_hash,
            total_submissions=count,
            trust_score=DEFAULT_TRUST_SCORE,
            first_submission_at=timestamp,
            last_submission_at=timestamp,
            last_updated_at=timestamp,
        )
    else:
        reputation.total_submissions += count
        reputation.last_submission_at = timestamp
        reputation.last_updated_at = timestamp
    _save_reputation(ctx, reputation)


def update_reputation_on_verify(ctx, public_key_hash: str, verified: bool, timestamp: int) -> None:
    if not public_key_hash:
        return  # legacy evidence
    reputation = _load_reputation(ctx, public_key_hash)
    if reputation is None:
        return
    if verified:
        reputation.verified_submissions += 1
        reputation.trust_score = min(TRUST_SCORE_MAX, reputation.trust_score + TRUST_VERIFIED_DELTA)
    else:
        reputation.rejected_submissions += 1
        reputation.trust_score = max(TRUST_SCORE_MIN, reputation.trust_score - TRUST_REJECTED_DELTA)
    reputation.last_updated_at = timestamp
    _save_reputation(ctx, reputation)


def update_reputation_on_export(ctx, public_key_hash: str, timestamp: int) -> None:
    if not public_key_hash:
        return
    reputation = _load_reputation(ctx, public_key_hash)
    if reputation is None:
        return
    reputation.exported_submissions += 1
    reputation.last_updated_at = timestamp
    _save_reputation(ctx, reputation)


def _secondary(update, *args) -> None:
    # Reputation bookkeeping never fails the surrounding transaction.
    try:
        update(*args)
    except (ChaincodeError, ValueError) as e:
        logger.warning("failed to update reputation: %s", e)


def send_notification(ctx, public_key_hash, evidence_id, message_type, message, from_org, timestamp) -> None:
    if not public_key_hash:
        return
    notification_id = f"notif_{evidence_id}_{message_type.lower()}_{timestamp}"
    notification = Notification(
        notification_id=notification_id,
        evidence_id=evidence_id,
        public_key_hash=public_key_hash,
        message_type=message_type,
        message=message,
        from_org=from_org,
        timestamp=timestamp,
    )
    ctx.stub.put_private_data(WHISTLEBLOWER_PRIVATE_COLLECTION, notification_id, notification.to_json())


###############################################################
# WhistleblowerContract
###############################################################
class WhistleblowerContract(Contract):
    name = "WhistleblowerContract"

    @transaction
    def init_ledger(self, ctx):
        logger.info("ChainProof chaincode initialized successfully")

    @transaction
    def submit_evidence(
        self,
        ctx,
        evidence_id: str,
        ipfs_cid: str,
        file_hash: str,
        file_type: str,
        file_size: int,
        category: str,
        public_key_hash: str,
        signature: str,
        description: str = "",
    ):
        require_whistleblower_org(ctx)

        if not evidence_id:
            raise ChaincodeError("evidenceId is required")
        if not public_key_hash:
            raise ChaincodeError("publicKeyHash is required for anonymous identity")
        if not signature:
            raise ChaincodeError("signature is required to prove ownership of keypair")
        if evidence_exists(ctx, evidence_id):
            raise EvidenceExists(f"evidence {evidence_id} already exists")

        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        evidence = Evidence(
            evidence_id=evidence_id,
            ipfs_cid=ipfs_cid,
            file_hash=file_hash,
            file_type=file_type,
            file_size=file_size,
            category=category,
            description=description,
            submitted_at=timestamp,
            status=STATUS_SUBMITTED,
            integrity_status=INTEGRITY_PENDING,
            public_key_hash=public_key_hash,
            signature=signature,
        )
        append_custody(
            evidence, ACTION_SUBMIT, caller_org, timestamp,
            "Evidence submitted anonymously via cryptographic keypair",
        )
        put_evidence(ctx, evidence)

        _secondary(update_reputation_on_submit, ctx, public_key_hash, timestamp)

    @transaction
    def submit_bulk_evidence(
        self,
        ctx,
        bulk_submission_id: str,
        items_json: str,
        public_key_hash: str = "",
        signature: str = "",
    ):
        require_whistleblower_org(ctx)

        try:
            raw_items = json.loads(items_json)
            items = [BulkEvidenceItem.model_validate(item) for item in raw_items]
        except (ValueError, TypeError) as e:
            raise ChaincodeError(f"failed to parse bulk items: {e}") from e
        if not items:
            raise ChaincodeError("bulk submission must contain at least one item")

        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()
        evidence_ids = []

        for idx, item in enumerate(items):
            if evidence_exists(ctx, item.evidence_id):
                raise EvidenceExists(f"evidence {item.evidence_id} already exists")

            evidence = Evidence(
                evidence_id=item.evidence_id,
                ipfs_cid=item.ipfs_cid,
                file_hash=item.file_hash,
                file_type=item.file_type,
                file_size=item.file_size,
                category=item.category,
                description=item.description,
                submitted_at=timestamp,
                status=STATUS_SUBMITTED,
                integrity_status=INTEGRITY_PENDING,
                bulk_submission_id=bulk_submission_id,
                bulk_index=idx,
                public_key_hash=public_key_hash,
                signature=signature,
            )
            append_custody(
                evidence, ACTION_BULK_SUBMIT, caller_org, timestamp,
                f"Bulk submission {bulk_submission_id} - item {idx + 1} of {len(items)}",
            )
            put_evidence(ctx, evidence)
            evidence_ids.append(item.evidence_id)

        if public_key_hash:
            _secondary(update_reputation_on_submit, ctx, public_key_hash, timestamp, len(items))

        return BulkSubmissionResult(
            bulk_submission_id=bulk_submission_id,
            submitted_count=len(items),
            evidence_ids=evidence_ids,
            submitted_at=timestamp,
        )

    @transaction
    def update_polygon_anchor(self, ctx, evidence_id: str, polygon_tx_hash: str):
        require_whistleblower_org(ctx)
        if not polygon_tx_hash:
            raise ChaincodeError("txHash is required")

        evidence = get_evidence(ctx, evidence_id)
        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        evidence.polygon_tx_hash = polygon_tx_hash
        evidence.polygon_anchor_at = timestamp
        append_custody(evidence, ACTION_ANCHOR, caller_org, timestamp, f"Anchored to Polygon: {polygon_tx_hash}")
        put_evidence(ctx, evidence)

    @transaction(submit=False)
    def get_notifications(self, ctx, public_key_hash: str):
        require_whistleblower_org(ctx)
        results = ctx.stub.get_private_data_query_result(
            WHISTLEBLOWER_PRIVATE_COLLECTION,
            json.dumps({
                "selector": {"docType": "notification", "publicKeyHash": public_key_hash},
                "sort": [{"timestamp": "desc"}],
            }),
        )
        notifications = [Notification.from_json(raw) for _, raw in results]
        return NotificationQueryResult(notifications=notifications, count=len(notifications))

    @transaction
    def mark_notification_read(self, ctx, notification_id: str):
        require_whistleblower_org(ctx)
        raw = ctx.stub.get_private_data(WHISTLEBLOWER_PRIVATE_COLLECTION, notification_id)
        if raw is None:
            raise EvidenceNotFound(f"notification {notification_id} not found")
        notification = Notification.from_json(raw)
        notification.read = True
        ctx.stub.put_private_data(WHISTLEBLOWER_PRIVATE_COLLECTION, notification_id, notification.to_json())

    @transaction(submit=False)
    def get_reputation(self, ctx, public_key_hash: str):
        require_whistleblower_org(ctx)
        reputation = _load_reputation(ctx, public_key_hash)
        if reputation is None:
            return Reputation(public_key_hash=public_key_hash, trust_score=DEFAULT_TRUST_SCORE)
        return reputation


###############################################################
# VerifierContract
###############################################################
class VerifierContract(Contract):
    name = "VerifierContract"

    @transaction
    def verify_integrity(self, ctx, evidence_id: str, computed_hash: str, passed: bool, rejection_comment: str = ""):
        require_verifier_org(ctx)

        evidence = get_evidence(ctx, evidence_id)
        if evidence.status != STATUS_SUBMITTED:
            raise InvalidStatus(
                f"evidence status must be {STATUS_SUBMITTED} to verify, current: {evidence.status}"
            )

        if not passed and not rejection_comment:
            rejection_comment = DEFAULT_REJECTION_COMMENT

        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        if passed:
            evidence.integrity_status = INTEGRITY_VERIFIED
            evidence.status = STATUS_VERIFIED
            _secondary(update_reputation_on_verify, ctx, evidence.public_key_hash, True, timestamp)
            send_notification(
                ctx, evidence.public_key_hash, evidence_id, NOTIFY_VERIFIED,
                "Your evidence has been successfully verified. It will now proceed to legal review.",
                caller_org, timestamp,
            )
        else:
            # REJECTED evidence never goes to LegalOrg
            evidence.integrity_status = INTEGRITY_FAILED
            evidence.status = STATUS_REJECTED
            evidence.rejection_comment = rejection_comment
            _secondary(update_reputation_on_verify, ctx, evidence.public_key_hash, False, timestamp)
            send_notification(
                ctx, evidence.public_key_hash, evidence_id, NOTIFY_REJECTION,
                f"Your evidence (ID: {evidence_id}) was REJECTED during verification. "
                f"Reason: {rejection_comment}. You may re-upload the evidence with a new ID.",
                caller_org, timestamp,
            )
        evidence.verified_at = timestamp

        description = (
            f"Integrity check: computed={computed_hash}, stored={evidence.file_hash}, "
            f"result={'true' if passed else 'false'}"
        )
        if not passed:
            description += f" | Rejection: {rejection_comment}"
        append_custody(evidence, ACTION_VERIFY, caller_org, timestamp, description)
        put_evidence(ctx, evidence)

    @transaction
    def add_verification_note(self, ctx, evidence_id: str, note_id: str, content: str, hash_comparison: str = ""):
        require_verifier_org(ctx)
        if not note_id or not content:
            raise ChaincodeError("noteId and content are required")

        evidence = get_evidence(ctx, evidence_id)
        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        note = VerificationNote(
            evidence_id=evidence_id,
            note_id=note_id,
            content=content,
            hash_comparison=hash_comparison,
            created_at=timestamp,
            verifier_org=caller_org,
        )
        ctx.stub.put_private_data(VERIFIER_PRIVATE_COLLECTION, f"note_{evidence_id}_{note_id}", note.to_json())

        append_custody(evidence, ACTION_ADD_NOTE, caller_org, timestamp, "Verification note added (private)")
        put_evidence(ctx, evidence)

    @transaction(submit=False)
    def get_verification_notes(self, ctx, evidence_id: str):
        require_verifier_org(ctx)
        results = ctx.stub.get_private_data_query_result(
            VERIFIER_PRIVATE_COLLECTION, _selector(docType="verification_note", evidenceId=evidence_id)
        )
        return [VerificationNote.from_json(raw) for _, raw in results]


###############################################################
# LegalContract
###############################################################
class LegalContract(Contract):
    name = "LegalContract"

    @transaction
    def review_evidence(self, ctx, evidence_id: str, review_complete: bool):
        require_legal_org(ctx)

        evidence = get_evidence(ctx, evidence_id)
        if evidence.status not in (STATUS_VERIFIED, STATUS_UNDER_REVIEW):
            raise InvalidStatus(
                f"evidence must be VERIFIED or UNDER_REVIEW to review, current: {evidence.status}"
            )

        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        if review_complete:
            evidence.status = STATUS_REVIEWED
            evidence.reviewed_at = timestamp
            description = "Legal review completed"
            send_notification(
                ctx, evidence.public_key_hash, evidence_id, NOTIFY_REVIEWED,
                "Legal review of your evidence has been completed.", caller_org, timestamp,
            )
        else:
            evidence.status = STATUS_UNDER_REVIEW
            description = "Legal review started"

        append_custody(evidence, ACTION_REVIEW, caller_org, timestamp, description)
        put_evidence(ctx, evidence)

    @transaction
    def add_legal_comment(
        self,
        ctx,
        evidence_id: str,
        comment_id: str,
        content: str,
        court_readiness: str = COURT_NEEDS_REVIEW,
        recommendation: str = "",
    ):
        require_legal_org(ctx)
        if not comment_id or not content:
            raise ChaincodeError("commentId and content are required")
        court_readiness = court_readiness or COURT_NEEDS_REVIEW
        if court_readiness not in COURT_READINESS:
            raise ChaincodeError(f"courtReadiness must be one of {list(COURT_READINESS)}")

        evidence = get_evidence(ctx, evidence_id)
        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        comment = LegalComment(
            evidence_id=evidence_id,
            comment_id=comment_id,
            content=content,
            court_readiness=court_readiness,
            recommendation=recommendation,
            created_at=timestamp,
            legal_reviewer_org=caller_org,
        )
        ctx.stub.put_private_data(LEGAL_PRIVATE_COLLECTION, f"comment_{evidence_id}_{comment_id}", comment.to_json())

        append_custody(evidence, ACTION_ADD_COMMENT, caller_org, timestamp, "Legal comment added (private)")
        put_evidence(ctx, evidence)

    @transaction(submit=False)
    def get_legal_comments(self, ctx, evidence_id: str):
        require_legal_org(ctx)
        results = ctx.stub.get_private_data_query_result(
            LEGAL_PRIVATE_COLLECTION, _selector(docType="legal_comment", evidenceId=evidence_id)
        )
        return [LegalComment.from_json(raw) for _, raw in results]

    @transaction
    def export_evidence(self, ctx, evidence_id: str):
        require_legal_org(ctx)

        evidence = get_evidence(ctx, evidence_id)
        if evidence.status not in (STATUS_REVIEWED, STATUS_EXPORTED):
            raise InvalidStatus(f"evidence must be REVIEWED to export, current: {evidence.status}")

        caller_org = get_client_org_id(ctx)
        timestamp = ctx.stub.get_tx_timestamp()

        record = ExportRecord(
            evidence_id=evidence.evidence_id,
            ipfs_cid=evidence.ipfs_cid,
            file_hash=evidence.file_hash,
            file_type=evidence.file_type,
            category=evidence.category,
            submitted_at=evidence.submitted_at,
            verified_at=evidence.verified_at,
            reviewed_at=evidence.reviewed_at,
            exported_at=timestamp,
            polygon_tx_hash=evidence.polygon_tx_hash,
            integrity_status=evidence.integrity_status,
            custody_log=list(evidence.custody_log),
        )
        unsigned = record.model_dump_json(by_alias=True, exclude={"export_hash"})
        record.export_hash = hashlib.sha256(unsigned.encode("utf-8")).hexdigest()

        first_export = evidence.status != STATUS_EXPORTED
        evidence.status = STATUS_EXPORTED
        evidence.exported_at = timestamp
        append_custody(
            evidence, ACTION_EXPORT, caller_org, timestamp,
            f"Evidence exported for court proceedings. Export hash: {record.export_hash}",
        )
        put_evidence(ctx, evidence)

        if first_export:
            _secondary(update_reputation_on_export, ctx, evidence.public_key_hash, timestamp)
            send_notification(
                ctx, evidence.public_key_hash, evidence_id, NOTIFY_EXPORTED,
                "Your evidence has been exported for court proceedings.", caller_org, timestamp,
            )
        return record

    @transaction(submit=False)
    def query_evidence_by_date_range(self, ctx, start_timestamp: int, end_timestamp: int, page_size: int, bookmark: str = ""):
        try:
            require_legal_org(ctx)
        except ChaincodeError as e:
            raise type(e)(f"date range search is restricted to LegalOrg for manual authentication: {e}") from e

        query = json.dumps({
            "selector": {
                "docType": "evidence",
                "submittedAt": {"$gte": start_timestamp, "$lte": end_timestamp},
            },
            "sort": [{"submittedAt": "desc"}],
        })
        return get_query_result_with_pagination(ctx, query, page_size, bookmark)


###############################################################
# QueryContract
###############################################################
class QueryContract(Contract):
    name = "QueryContract"

    @transaction(submit=False)
    def get_evidence(self, ctx, evidence_id: str):
        require_any_org(ctx)
        return get_evidence(ctx, evidence_id)

    @transaction(submit=False)
    def get_all_evidence(self, ctx, page_size: int, bookmark: str = ""):
        require_any_org(ctx)
        return get_query_result_with_pagination(ctx, _selector(docType="evidence"), page_size, bookmark)

    @transaction(submit=False)
    def query_evidence_by_status(self, ctx, status: str, page_size: int, bookmark: str = ""):
        require_any_org(ctx)
        return get_query_result_with_pagination(
            ctx, _selector(docType="evidence", status=status), page_size, bookmark
        )

    @transaction(submit=False)
    def query_evidence_by_category(self, ctx, category: str, page_size: int, bookmark: str = ""):
        require_any_org(ctx)
        return get_query_result_with_pagination(
            ctx, _selector(docType="evidence", category=category), page_size, bookmark
        )

    @transaction(submit=False)
    def query_evidence_by_bulk_submission(self, ctx, bulk_submission_id: str):
        require_any_org(ctx)
        query = json.dumps({
            "selector": {"docType": "evidence", "bulkSubmissionId": bulk_submission_id},
            "sort": [{"bulkIndex": "asc"}],
        })
        return get_query_result_with_pagination(ctx, query, BULK_QUERY_PAGE_SIZE, "")

    @transaction(submit=False)
    def get_evidence_count(self, ctx):
        require_any_org(ctx)
        return len(ctx.stub.get_query_result(_selector(docType="evidence")))

    @transaction(submit=False)
    def get_evidence_history(self, ctx, evidence_id: str):
        require_any_org(ctx)
        history = []
        for entry in ctx.stub.get_history_for_key(evidence_id):
            value = None
            if not entry["is_delete"] and entry["value"] is not None:
                value = Evidence.from_json(entry["value"])
            history.append(
                HistoryEntry(
                    tx_id=entry["tx_id"],
                    timestamp=entry["timestamp"],
                    is_delete=entry["is_delete"],
                    value=value,
                )
            )
        return EvidenceHistory(evidence_id=evidence_id, history=history)


CONTRACTS = (WhistleblowerContract, VerifierContract, LegalContract, QueryContract)
