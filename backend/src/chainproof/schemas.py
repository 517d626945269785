"""Request bodies shared by the HTTP services. Wire names are camelCase."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


###############################################################
# Fabric gateway
###############################################################
class SwitchOrgRequest(CamelModel):
    org: str = ""


class SubmitEvidenceRequest(CamelModel):
    evidence_id: str = ""
    ipfs_cid: str = ""
    file_hash: str = ""
    file_type: str = "unknown"
    file_size: int = 0
    category: str = "other"
    description: str = ""
    public_key_hash: str = ""
    signature: str = ""


class BulkSubmitRequest(CamelModel):
    bulk_submission_id: str = ""
    items: List[dict] = []
    public_key_hash: str = ""
    signature: str = ""


class AnchorRequest(CamelModel):
    tx_hash: str = ""


class VerifyRequest(CamelModel):
    computed_hash: str = ""
    passed: Optional[bool] = None
    rejection_comment: str = ""


class NoteRequest(CamelModel):
    note_id: str = ""
    content: str = ""
    hash_comparison: str = ""


class ReviewRequest(CamelModel):
    complete: bool = False
    verdict: Optional[str] = None


class CommentRequest(CamelModel):
    comment_id: str = ""
    content: str = ""
    court_readiness: str = "NEEDS_REVIEW"
    recommendation: str = ""


###############################################################
# Client backend
###############################################################
class AssignRequest(CamelModel):
    evidence_id: str = ""
    user_id: Optional[int] = None
    target_org: str = "VerifierOrg"


class LegalAssignRequest(CamelModel):
    evidence_id: str = ""
    legal_role: str = ""


class OwnershipRequest(CamelModel):
    public_key_hash: str = ""
    evidence_id: str = ""


class IntegrityRequest(CamelModel):
    evidence_id: str = ""
    ipfs_cid: str = ""
    expected_hash: str = ""
    verifier_org: str = "VerifierOrg"


class RecordVerificationRequest(CamelModel):
    evidence_id: str = ""
    computed_hash: str = ""
    passed: Optional[bool] = None
    rejection_comment: str = ""


class VerificationNoteRequest(CamelModel):
    evidence_id: str = ""
    content: str = ""
    hash_comparison: str = ""


class AnchorCheckRequest(CamelModel):
    evidence_id: str = ""
    file_hash: str = ""


class LegalReviewRequest(CamelModel):
    evidence_id: str = ""
    action: str = "start"


class LegalCommentRequest(CamelModel):
    evidence_id: str = ""
    content: str = ""
    court_readiness: str = "NEEDS_REVIEW"
    recommendation: str = ""


class ExportRequest(CamelModel):
    evidence_id: str = ""


class RegisterRequest(CamelModel):
    name: str = ""
    aadhaar: str = ""
    organization: str = ""
    legal_role: Optional[str] = None
    role: str = "member"


class LoginRequest(CamelModel):
    name: str = ""
    aadhaar: str = ""
