import pytest

from chainproof import config
from chainproof.models import evidence as assignments
from chainproof.models import lookup, records, users


def test_lookup_keys_depend_on_pepper(db, monkeypatch):
    key = lookup.create_lookup_key("a" * 64)
    assert key != "a" * 64
    monkeypatch.setattr(config, "LOOKUP_PEPPER", "another-pepper")
    assert lookup.create_lookup_key("a" * 64) != key


def test_lookup_accumulates_hashed_ids(db):
    lookup.add_evidence_for_user("a" * 64, "EVD-1")
    entry = lookup.add_evidence_for_user("a" * 64, "EVD-2")
    assert entry["submissionCount"] == 2
    assert "EVD-1" not in entry["evidenceHashes"]

    assert lookup.verify_ownership("a" * 64, "EVD-2")
    assert not lookup.verify_ownership("b" * 64, "EVD-2")
    assert lookup.get_evidence_for_user("b" * 64) == []


def test_stats_buckets_and_days(db):
    records.increment_stat("total_submissions", "financial_fraud", date="2024-01-01")
    records.increment_stat("total_submissions", "environmental", date="2024-01-02")
    records.increment_stat("total_verified", date="2024-01-02")

    stats = records.get_stats()
    assert stats["totalSubmissions"] == 2
    assert stats["totalVerified"] == 1
    assert stats["categoryCounts"] == {"corruption": 0, "fraud": 1, "safety": 0, "other": 1}
    assert [d["date"] for d in stats["daily"]] == ["2024-01-01", "2024-01-02"]

    with pytest.raises(ValueError):
        records.increment_stat("total_bogus")


def test_anchor_records(db):
    records.save_anchor("EVD-1", "AB" * 32, "QmOne")
    assert records.get_anchor_record("EVD-1")["status"] == records.ANCHOR_PENDING
    assert records.find_anchors_by_file_hash("ab" * 32)[0]["evidenceId"] == "EVD-1"

    records.mark_anchor_failed("EVD-1")
    assert records.get_anchor_record("EVD-1")["status"] == records.ANCHOR_FAILED

    records.save_anchor("EVD-1", "ab" * 32, "QmOne", sepolia={"txHash": "0x1", "blockNumber": 7, "timestamp": 9})
    anchored = records.get_anchor_record("EVD-1")
    assert anchored["status"] == records.ANCHOR_ANCHORED
    assert anchored["sepoliaBlockNumber"] == 7
    assert records.get_anchor_record("EVD-2") is None


def test_verification_proofs_are_anonymous(db):
    proof = records.record_verification_proof("cd" * 32, True, "VerifierOrg")
    assert len(proof["proofId"]) == 32
    assert proof["verifierOrgHash"] != "VerifierOrg"
    assert records.proofs_for_file_hash("cd" * 32) == [proof]


def test_assignment_workflow(db):
    verifier = users.find_by_public_key_hash(
        users.register_user("Vera", "111122223333", "VerifierOrg")["publicKeyHash"]
    )
    judge = users.find_by_public_key_hash(
        users.register_user("Jai", "444455556666", "LegalOrg", legal_role="Judge")["publicKeyHash"]
    )

    assignments.save_assignment("EVD-1", "QmOne", "a" * 64, assigned_to=verifier["id"])
    assert assignments.get_assignment("EVD-1")["assignedTo"]["name"] == "Vera"

    assignments.update_status("EVD-1", "VERIFIED")
    assignments.forward_to_legal("EVD-1", "Judge")
    forwarded = assignments.get_assignment("EVD-1")
    assert forwarded["targetLegalRole"] == "Judge"
    assert forwarded["assignedTo"] is None

    assignments.assign_to_user("EVD-1", judge["id"])
    assert [a["evidenceId"] for a in assignments.list_assignments(status="VERIFIED")] == ["EVD-1"]
    assert assignments.list_assignments(status="EXPORTED") == []


def test_pick_random_user_respects_role(db):
    assert users.pick_random_user("LegalOrg", legal_role="Judge") is None
    users.register_user("Jai", "444455556666", "LegalOrg", legal_role="Judge")
    users.register_user("Cleo", "777788889999", "LegalOrg", legal_role="Clerk")
    assert users.pick_random_user("LegalOrg", legal_role="Judge")["name"] == "Jai"
