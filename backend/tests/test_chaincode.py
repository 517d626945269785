import hashlib
import itertools
import json
from types import SimpleNamespace

import pytest

from chainproof.chaincode import AccessDenied, ChaincodeError, EvidenceExists, EvidenceNotFound, InvalidStatus
from chainproof.chaincode import ledger as ledger_module
from chainproof.chaincode.access_control import ClientIdentity, is_legal_org, is_verifier_org, is_whistleblower_org
from chainproof.chaincode.contracts import TransactionContext
from chainproof.chaincode.errors import UnknownFunction, WrongInvocation
from chainproof.chaincode.models import ExportRecord

from conftest import LEGAL, PKH, VERIFIER, WB


def _evidence(ledger, evidence_id, msp=LEGAL):
    return ledger.evaluate("query:GetEvidence", evidence_id, msp=msp)


def _actions(evidence):
    return [entry["action"] for entry in evidence["custodyLog"]]


def _reviewed(ledger, evidence_id):
    ledger.submit_evidence(evidence_id)
    ledger.submit("verifier:VerifyIntegrity", evidence_id, "h", True, "", msp=VERIFIER)
    ledger.submit("legal:ReviewEvidence", evidence_id, False, msp=LEGAL)
    ledger.submit("legal:ReviewEvidence", evidence_id, True, msp=LEGAL)


###############################################################
# Submission
###############################################################
def test_submit_evidence_starts_pending_with_one_custody_entry(ledger):
    file_hash = ledger.submit_evidence("EVD-00000001")

    evidence = _evidence(ledger, "EVD-00000001")
    assert evidence["status"] == "SUBMITTED"
    assert evidence["integrityStatus"] == "PENDING"
    assert evidence["fileHash"] == file_hash
    assert evidence["publicKeyHash"] == PKH
    assert _actions(evidence) == ["SUBMIT"]
    assert evidence["custodyLog"][0]["actorOrg"] == WB


def test_duplicate_submission_is_rejected(ledger):
    ledger.submit_evidence("EVD-00000001")
    with pytest.raises(EvidenceExists):
        ledger.submit_evidence("EVD-00000001")


def test_only_whistleblowers_submit_and_nothing_is_committed(ledger, store):
    before = store.transaction_count()
    with pytest.raises(AccessDenied):
        ledger.submit(
            "whistleblower:SubmitEvidence",
            "EVD-00000002", "Qm", "ff", "image", 1, "other", PKH, "sig", "",
            msp=VERIFIER,
        )
    assert store.transaction_count() == before
    with pytest.raises(EvidenceNotFound):
        _evidence(ledger, "EVD-00000002")


def test_signature_and_public_key_hash_are_required(ledger):
    with pytest.raises(ChaincodeError, match="signature"):
        ledger.submit("whistleblower:SubmitEvidence", "EVD-1", "Qm", "ff", "image", 1, "other", PKH, "", "")
    with pytest.raises(ChaincodeError, match="publicKeyHash"):
        ledger.submit("whistleblower:SubmitEvidence", "EVD-1", "Qm", "ff", "image", 1, "other", "", "sig", "")


def test_polygon_anchor_is_recorded_in_custody(ledger):
    ledger.submit_evidence("EVD-00000003")
    ledger.submit("whistleblower:UpdatePolygonAnchor", "EVD-00000003", "0xabc")

    evidence = _evidence(ledger, "EVD-00000003")
    assert evidence["polygonTxHash"] == "0xabc"
    assert evidence["polygonAnchorAt"] > 0
    assert _actions(evidence) == ["SUBMIT", "ANCHOR"]


###############################################################
# Verification
###############################################################
def test_verify_pass_moves_to_verified_and_rewards_reputation(ledger):
    ledger.submit_evidence("EVD-00000010")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000010", "hash", True, "", msp=VERIFIER)

    evidence = _evidence(ledger, "EVD-00000010")
    assert evidence["status"] == "VERIFIED"
    assert evidence["integrityStatus"] == "VERIFIED"
    assert evidence["verifiedAt"] > 0
    assert _actions(evidence) == ["SUBMIT", "VERIFY"]
    assert "result=true" in evidence["custodyLog"][-1]["description"]

    reputation = ledger.evaluate("whistleblower:GetReputation", PKH)
    assert reputation["totalSubmissions"] == 1
    assert reputation["verifiedSubmissions"] == 1
    assert reputation["trustScore"] == 60


def test_verify_fail_rejects_with_default_comment(ledger):
    ledger.submit_evidence("EVD-00000011")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000011", "other", False, "", msp=VERIFIER)

    evidence = _evidence(ledger, "EVD-00000011")
    assert evidence["status"] == "REJECTED"
    assert evidence["integrityStatus"] == "FAILED"
    assert evidence["rejectionComment"].startswith("Hash verification failed")
    assert "| Rejection:" in evidence["custodyLog"][-1]["description"]

    reputation = ledger.evaluate("whistleblower:GetReputation", PKH)
    assert reputation["rejectedSubmissions"] == 1
    assert reputation["trustScore"] == 35


def test_trust_score_is_clamped(ledger):
    for i in range(7):
        evidence_id = f"EVD-1000000{i}"
        ledger.submit_evidence(evidence_id)
        ledger.submit("verifier:VerifyIntegrity", evidence_id, "h", True, "", msp=VERIFIER)
    assert ledger.evaluate("whistleblower:GetReputation", PKH)["trustScore"] == 100

    for i in range(8):
        evidence_id = f"EVD-2000000{i}"
        ledger.submit_evidence(evidence_id)
        ledger.submit("verifier:VerifyIntegrity", evidence_id, "h", False, "bad", msp=VERIFIER)
    assert ledger.evaluate("whistleblower:GetReputation", PKH)["trustScore"] == 0


def test_evidence_can_only_be_verified_once(ledger):
    ledger.submit_evidence("EVD-00000012")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000012", "h", True, "", msp=VERIFIER)
    with pytest.raises(InvalidStatus):
        ledger.submit("verifier:VerifyIntegrity", "EVD-00000012", "h", True, "", msp=VERIFIER)


def test_verification_notes_are_private_to_verifiers(ledger):
    ledger.submit_evidence("EVD-00000013")
    ledger.submit("verifier:AddVerificationNote", "EVD-00000013", "N1", "looks fine", "match", msp=VERIFIER)

    notes = ledger.evaluate("verifier:GetVerificationNotes", "EVD-00000013", msp=VERIFIER)
    assert [n["noteId"] for n in notes] == ["N1"]
    assert notes[0]["verifierOrg"] == VERIFIER
    with pytest.raises(AccessDenied):
        ledger.evaluate("verifier:GetVerificationNotes", "EVD-00000013", msp=LEGAL)
    assert _actions(_evidence(ledger, "EVD-00000013")) == ["SUBMIT", "ADD_NOTE"]


###############################################################
# Legal review and export
###############################################################
def test_review_requires_verified_evidence(ledger):
    ledger.submit_evidence("EVD-00000020")
    with pytest.raises(InvalidStatus):
        ledger.submit("legal:ReviewEvidence", "EVD-00000020", False, msp=LEGAL)

    ledger.submit("verifier:VerifyIntegrity", "EVD-00000020", "h", False, "tampered", msp=VERIFIER)
    with pytest.raises(InvalidStatus):
        ledger.submit("legal:ReviewEvidence", "EVD-00000020", False, msp=LEGAL)


def test_review_start_then_complete(ledger):
    ledger.submit_evidence("EVD-00000021")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000021", "h", True, "", msp=VERIFIER)

    ledger.submit("legal:ReviewEvidence", "EVD-00000021", False, msp=LEGAL)
    assert _evidence(ledger, "EVD-00000021")["status"] == "UNDER_REVIEW"

    ledger.submit("legal:ReviewEvidence", "EVD-00000021", True, msp=LEGAL)
    evidence = _evidence(ledger, "EVD-00000021")
    assert evidence["status"] == "REVIEWED"
    assert evidence["reviewedAt"] > 0
    assert _actions(evidence) == ["SUBMIT", "VERIFY", "REVIEW", "REVIEW"]


def test_export_before_review_is_rejected(ledger):
    ledger.submit_evidence("EVD-00000022")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000022", "h", True, "", msp=VERIFIER)
    with pytest.raises(InvalidStatus):
        ledger.submit("legal:ExportEvidence", "EVD-00000022", msp=LEGAL)


def test_export_hash_covers_the_record(ledger):
    _reviewed(ledger, "EVD-00000023")

    record = ledger.submit("legal:ExportEvidence", "EVD-00000023", msp=LEGAL)
    unsigned = ExportRecord.model_validate(record).model_dump_json(by_alias=True, exclude={"export_hash"})
    assert record["exportHash"] == hashlib.sha256(unsigned.encode("utf-8")).hexdigest()

    evidence = _evidence(ledger, "EVD-00000023")
    assert evidence["status"] == "EXPORTED"
    assert record["exportHash"] in evidence["custodyLog"][-1]["description"]


def test_re_export_is_allowed_but_counted_once(ledger):
    _reviewed(ledger, "EVD-00000024")
    ledger.submit("legal:ExportEvidence", "EVD-00000024", msp=LEGAL)
    ledger.submit("legal:ExportEvidence", "EVD-00000024", msp=LEGAL)

    assert ledger.evaluate("whistleblower:GetReputation", PKH)["exportedSubmissions"] == 1
    exported = [
        n for n in ledger.evaluate("whistleblower:GetNotifications", PKH)["notifications"]
        if n["messageType"] == "EXPORTED"
    ]
    assert len(exported) == 1
    assert _actions(_evidence(ledger, "EVD-00000024")).count("EXPORT") == 2


def test_legal_comment_validates_court_readiness(ledger):
    ledger.submit_evidence("EVD-00000025")
    with pytest.raises(ChaincodeError, match="courtReadiness"):
        ledger.submit("legal:AddLegalComment", "EVD-00000025", "C1", "text", "MAYBE", "", msp=LEGAL)

    ledger.submit("legal:AddLegalComment", "EVD-00000025", "C1", "admissible", "READY", "proceed", msp=LEGAL)
    comments = ledger.evaluate("legal:GetLegalComments", "EVD-00000025", msp=LEGAL)
    assert comments[0]["courtReadiness"] == "READY"
    assert comments[0]["legalReviewerOrg"] == LEGAL
    with pytest.raises(AccessDenied):
        ledger.evaluate("legal:GetLegalComments", "EVD-00000025", msp=WB)


###############################################################
# Notifications
###############################################################
def test_notifications_follow_the_lifecycle(ledger):
    _reviewed(ledger, "EVD-00000030")
    ledger.submit("legal:ExportEvidence", "EVD-00000030", msp=LEGAL)

    result = ledger.evaluate("whistleblower:GetNotifications", PKH)
    assert result["count"] == 3
    assert [n["messageType"] for n in result["notifications"]] == ["EXPORTED", "REVIEWED", "VERIFIED"]
    assert not any(n["read"] for n in result["notifications"])


def test_notifications_are_newest_first(ledger, monkeypatch):
    clock = itertools.count(1000)
    monkeypatch.setattr(ledger_module, "time", SimpleNamespace(time=lambda: next(clock)))

    ledger.submit_evidence("EVD-00000031")
    ledger.submit_evidence("EVD-00000032")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000032", "h", False, "wrong file", msp=VERIFIER)
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000031", "h", True, "", msp=VERIFIER)

    notifications = ledger.evaluate("whistleblower:GetNotifications", PKH)["notifications"]
    assert [(n["evidenceId"], n["messageType"]) for n in notifications] == [
        ("EVD-00000031", "VERIFIED"),
        ("EVD-00000032", "REJECTION"),
    ]
    assert notifications[0]["timestamp"] > notifications[1]["timestamp"]


def test_mark_notification_read(ledger):
    ledger.submit_evidence("EVD-00000031")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000031", "h", False, "wrong file", msp=VERIFIER)

    notification = ledger.evaluate("whistleblower:GetNotifications", PKH)["notifications"][0]
    assert notification["messageType"] == "REJECTION"
    assert "wrong file" in notification["message"]

    ledger.submit("whistleblower:MarkNotificationRead", notification["notificationId"])
    assert ledger.evaluate("whistleblower:GetNotifications", PKH)["notifications"][0]["read"] is True

    with pytest.raises(EvidenceNotFound):
        ledger.submit("whistleblower:MarkNotificationRead", "notif_missing")


def test_notifications_are_per_submitter(ledger):
    ledger.submit_evidence("EVD-00000032", pkh="b" * 64)
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000032", "h", True, "", msp=VERIFIER)
    assert ledger.evaluate("whistleblower:GetNotifications", PKH)["count"] == 0
    assert ledger.evaluate("whistleblower:GetNotifications", "b" * 64)["count"] == 1


def test_unknown_submitter_gets_default_reputation(ledger):
    reputation = ledger.evaluate("whistleblower:GetReputation", "c" * 64)
    assert reputation["trustScore"] == 50
    assert reputation["totalSubmissions"] == 0


###############################################################
# Bulk submission
###############################################################
def _items(*ids):
    return [{"evidenceId": i, "ipfsCid": f"Qm{i}", "fileHash": i.lower(), "fileType": "document"} for i in ids]


def test_bulk_submission_is_queryable_in_order(ledger):
    result = ledger.submit(
        "whistleblower:SubmitBulkEvidence", "BULK-1", json.dumps(_items("EVD-B3", "EVD-B1", "EVD-B2")), PKH, "sig"
    )
    assert result["submittedCount"] == 3
    assert result["evidenceIds"] == ["EVD-B3", "EVD-B1", "EVD-B2"]

    page = ledger.evaluate("query:QueryEvidenceByBulkSubmission", "BULK-1")
    assert [r["evidenceId"] for r in page["records"]] == ["EVD-B3", "EVD-B1", "EVD-B2"]
    assert [r["bulkIndex"] for r in page["records"]] == [0, 1, 2]
    assert _actions(page["records"][0]) == ["BULK_SUBMIT"]
    assert ledger.evaluate("whistleblower:GetReputation", PKH)["totalSubmissions"] == 3


def test_bulk_submission_is_all_or_nothing(ledger):
    ledger.submit_evidence("EVD-B2")
    with pytest.raises(EvidenceExists):
        ledger.submit("whistleblower:SubmitBulkEvidence", "BULK-2", json.dumps(_items("EVD-B1", "EVD-B2")))
    with pytest.raises(EvidenceNotFound):
        _evidence(ledger, "EVD-B1")

    with pytest.raises(EvidenceExists):
        ledger.submit("whistleblower:SubmitBulkEvidence", "BULK-3", json.dumps(_items("EVD-B5", "EVD-B5")))
    with pytest.raises(EvidenceNotFound):
        _evidence(ledger, "EVD-B5")


def test_bulk_submission_rejects_bad_payload(ledger):
    with pytest.raises(ChaincodeError, match="parse"):
        ledger.submit("whistleblower:SubmitBulkEvidence", "BULK-4", "not json")
    with pytest.raises(ChaincodeError, match="at least one"):
        ledger.submit("whistleblower:SubmitBulkEvidence", "BULK-4", "[]")


###############################################################
# Runtime
###############################################################
def test_unknown_function(ledger):
    with pytest.raises(UnknownFunction):
        ledger.submit("query:DropEverything")


def test_queries_cannot_be_submitted(ledger, store):
    with pytest.raises(WrongInvocation, match="must be evaluated"):
        ledger.submit("query:GetEvidenceCount", msp=VERIFIER)
    assert store.transaction_count() == 0


def test_writes_cannot_be_evaluated(ledger):
    with pytest.raises(WrongInvocation, match="must be submitted"):
        ledger.evaluate(
            "whistleblower:SubmitEvidence",
            "EVD-00000042", "Qm", "ff", "image", 1, "other", PKH, "sig", "",
        )
    assert ledger.evaluate("query:GetEvidenceCount", msp=VERIFIER) == 0


def test_function_names_resolve_without_contract(ledger):
    ledger.submit_evidence("EVD-00000040")
    assert ledger.evaluate("GetEvidenceCount", msp=VERIFIER) == 1
    assert ledger.evaluate("QueryContract:GetEvidence", "EVD-00000040")["evidenceId"] == "EVD-00000040"


def test_bad_boolean_argument(ledger):
    ledger.submit_evidence("EVD-00000041")
    with pytest.raises(ChaincodeError, match="boolean"):
        ledger.submit("verifier:VerifyIntegrity", "EVD-00000041", "h", "perhaps", "", msp=VERIFIER)


def test_history_records_every_write(ledger):
    ledger.submit_evidence("EVD-00000042")
    ledger.submit("verifier:VerifyIntegrity", "EVD-00000042", "h", True, "", msp=VERIFIER)

    history = ledger.evaluate("query:GetEvidenceHistory", "EVD-00000042")["history"]
    assert [h["value"]["status"] for h in history] == ["SUBMITTED", "VERIFIED"]
    assert all(not h["isDelete"] for h in history)


def test_queries_need_a_known_org(ledger):
    ledger.submit_evidence("EVD-00000043")
    with pytest.raises(AccessDenied):
        ledger.evaluate("query:GetEvidence", "EVD-00000043", msp="StrangerMSP")


@pytest.mark.parametrize("msp, expected", [
    (WB, (True, False, False)),
    (VERIFIER, (False, True, False)),
    (LEGAL, (False, False, True)),
    ("StrangerMSP", (False, False, False)),
    ("", (False, False, False)),
])
def test_org_predicates(msp, expected):
    ctx = TransactionContext(None, ClientIdentity(msp))
    assert (is_whistleblower_org(ctx), is_verifier_org(ctx), is_legal_org(ctx)) == expected
