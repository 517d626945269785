"""
Ledger records for the ChainProof chaincode.

Public records (Evidence and its custody log) live in world state. Notes,
comments, notifications and reputation live in private data collections.
All records serialize with camelCase keys.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LedgerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw):
        return cls.model_validate_json(raw)


# Evidence status
STATUS_SUBMITTED = "SUBMITTED"
STATUS_VERIFIED = "VERIFIED"
STATUS_INTEGRITY_FAILED = "INTEGRITY_FAILED"  # legacy, REJECTED replaces it
STATUS_REJECTED = "REJECTED"
STATUS_UNDER_REVIEW = "UNDER_REVIEW"
STATUS_REVIEWED = "REVIEWED"
STATUS_EXPORTED = "EXPORTED"

ALL_STATUSES = (
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
    STATUS_INTEGRITY_FAILED,
    STATUS_REJECTED,
    STATUS_UNDER_REVIEW,
    STATUS_REVIEWED,
    STATUS_EXPORTED,
)

# Integrity status
INTEGRITY_PENDING = "PENDING"
INTEGRITY_VERIFIED = "VERIFIED"
INTEGRITY_FAILED = "FAILED"

CATEGORIES = (
    "financial_fraud",
    "corruption",
    "abuse",
    "harassment",
    "environmental",
    "safety",
    "other",
)

FILE_TYPES = ("image", "video", "audio", "document", "other")

# Custody actions
ACTION_SUBMIT = "SUBMIT"
ACTION_BULK_SUBMIT = "BULK_SUBMIT"
ACTION_VERIFY = "VERIFY"
ACTION_REVIEW = "REVIEW"
ACTION_EXPORT = "EXPORT"
ACTION_ANCHOR = "ANCHOR"
ACTION_ADD_NOTE = "ADD_NOTE"
ACTION_ADD_COMMENT = "ADD_COMMENT"
ACTION_STATUS_CHANGE = "STATUS_CHANGE"

# Court readiness
COURT_READY = "READY"
COURT_NOT_READY = "NOT_READY"
COURT_NEEDS_REVIEW = "NEEDS_REVIEW"
COURT_READINESS = (COURT_READY, COURT_NOT_READY, COURT_NEEDS_REVIEW)

# Notification types
NOTIFY_REJECTION = "REJECTION"
NOTIFY_HASH_FAILURE = "HASH_FAILURE"
NOTIFY_VERIFIED = "VERIFIED"
NOTIFY_REVIEWED = "REVIEWED"
NOTIFY_EXPORTED = "EXPORTED"
NOTIFY_COMMENT = "COMMENT"

DEFAULT_TRUST_SCORE = 50


class CustodyLog(LedgerModel):
    action: str
    actor_org: str
    timestamp: int
    description: str


class Evidence(LedgerModel):
    doc_type: str = "evidence"
    evidence_id: str
    ipfs_cid: str = ""
    file_hash: str = ""
    file_type: str = ""
    file_size: int = 0
    category: str = ""
    submitted_at: int = 0
    description: str = ""
    status: str = STATUS_SUBMITTED
    polygon_tx_hash: str = ""
    polygon_anchor_at: int = 0
    integrity_status: str = INTEGRITY_PENDING
    verified_at: int = 0
    reviewed_at: int = 0
    exported_at: int = 0
    custody_log: List[CustodyLog] = Field(default_factory=list)
    bulk_submission_id: str = ""
    bulk_index: int = 0
    public_key_hash: str = ""
    signature: str = ""
    rejection_comment: str = ""


class BulkEvidenceItem(LedgerModel):
    evidence_id: str
    ipfs_cid: str
    file_hash: str
    file_type: str = "other"
    file_size: int = 0
    category: str = "other"
    description: str = ""


class BulkSubmissionResult(LedgerModel):
    bulk_submission_id: str
    submitted_count: int
    evidence_ids: List[str]
    submitted_at: int


class VerificationNote(LedgerModel):
    doc_type: str = "verification_note"
    evidence_id: str
    note_id: str
    content: str
    hash_comparison: str = ""
    created_at: int
    verifier_org: str


class LegalComment(LedgerModel):
    doc_type: str = "legal_comment"
    evidence_id: str
    comment_id: str
    content: str
    court_readiness: str = COURT_NEEDS_REVIEW
    recommendation: str = ""
    created_at: int
    legal_reviewer_org: str


class EvidenceQueryResult(LedgerModel):
    records: List[Evidence] = Field(default_factory=list)
    fetched_records_count: int = 0
    bookmark: str = ""


class ExportRecord(LedgerModel):
    evidence_id: str
    ipfs_cid: str
    file_hash: str
    file_type: str
    category: str
    submitted_at: int
    verified_at: int
    reviewed_at: int
    exported_at: int
    polygon_tx_hash: str
    integrity_status: str
    custody_log: List[CustodyLog]
    export_hash: str = ""


class HistoryEntry(LedgerModel):
    tx_id: str
    timestamp: int
    is_delete: bool
    value: Optional[Evidence] = None


class EvidenceHistory(LedgerModel):
    evidence_id: str
    history: List[HistoryEntry] = Field(default_factory=list)


class Notification(LedgerModel):
    doc_type: str = "notification"
    notification_id: str
    evidence_id: str
    public_key_hash: str
    message_type: str
    message: str
    from_org: str
    timestamp: int
    read: bool = False


class NotificationQueryResult(LedgerModel):
    notifications: List[Notification] = Field(default_factory=list)
    count: int = 0


class Reputation(LedgerModel):
    doc_type: str = "reputation"
    public_key_hash: str
    total_submissions: int = 0
    verified_submissions: int = 0
    rejected_submissions: int = 0
    exported_submissions: int = 0
    trust_score: int = DEFAULT_TRUST_SCORE
    first_submission_at: int = 0
    last_submission_at: int = 0
    last_updated_at: int = 0
