"""
Anchors, verification proofs and aggregated stats.

None of these rows carry user identity: anchors keep hashes only (the CID is
hashed too), proofs use random ids, stats are daily counters.
"""
import secrets
import time
from datetime import datetime, timezone

from ..db_init import db_session
from ..hash_utils import sha256_string

ANCHOR_ANCHORED = "ANCHORED"
ANCHOR_PENDING = "PENDING"
ANCHOR_FAILED = "FAILED"

STAT_FIELDS = ("total_submissions", "total_verified", "total_rejected", "total_exported")

# Ledger category -> stats bucket
CATEGORY_BUCKETS = {
    "corruption": "corruption",
    "financial_fraud": "fraud",
    "fraud": "fraud",
    "safety": "safety",
}


def generate_anonymous_id() -> str:
    return secrets.token_hex(16)


###############################################################
# EvidenceAnchor
###############################################################
def save_anchor(evidence_id, file_hash, ipfs_cid, sepolia=None, db_path=None):
    status = ANCHOR_ANCHORED if sepolia else ANCHOR_PENDING
    with db_session(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO evidence_anchors
                (evidence_id, file_hash, ipfs_cid_hash, sepolia_tx_hash, sepolia_block_number,
                 anchored_at, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                evidence_id,
                file_hash.lower(),
                sha256_string(ipfs_cid),
                sepolia.get("txHash") if sepolia else None,
                sepolia.get("blockNumber") if sepolia else None,
                sepolia.get("timestamp") if sepolia else None,
                status,
                int(time.time()),
            ),
        )


def mark_anchor_failed(evidence_id, db_path=None):
    with db_session(db_path) as conn:
        conn.execute("UPDATE evidence_anchors SET status=? WHERE evidence_id=?", (ANCHOR_FAILED, evidence_id))


def _anchor_dict(row) -> dict:
    return {
        "evidenceId": row["evidence_id"],
        "fileHash": row["file_hash"],
        "ipfsCidHash": row["ipfs_cid_hash"],
        "sepoliaTxHash": row["sepolia_tx_hash"],
        "sepoliaBlockNumber": row["sepolia_block_number"],
        "anchoredAt": row["anchored_at"],
        "status": row["status"],
    }


def get_anchor_record(evidence_id, db_path=None):
    with db_session(db_path) as conn:
        row = conn.execute("SELECT * FROM evidence_anchors WHERE evidence_id=?", (evidence_id,)).fetchone()
    return _anchor_dict(row) if row else None


def find_anchors_by_file_hash(file_hash, db_path=None) -> list:
    with db_session(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM evidence_anchors WHERE file_hash=? ORDER BY created_at", (file_hash.lower(),)
        ).fetchall()
    return [_anchor_dict(r) for r in rows]


###############################################################
# VerificationProof
###############################################################
def record_verification_proof(file_hash, verified, verifier_org=None, db_path=None) -> dict:
    proof = {
        "proofId": generate_anonymous_id(),
        "fileHash": file_hash,
        "verified": bool(verified),
        "verifiedAt": int(time.time()),
        "verifierOrgHash": sha256_string(verifier_org) if verifier_org else None,
    }
    with db_session(db_path) as conn:
        conn.execute(
            "INSERT INTO verification_proofs (proof_id, file_hash, verified, verified_at, verifier_org_hash) "
            "VALUES (?, ?, ?, ?, ?)",
            (proof["proofId"], proof["fileHash"], int(proof["verified"]), proof["verifiedAt"],
             proof["verifierOrgHash"]),
        )
    return proof


def proofs_for_file_hash(file_hash, db_path=None) -> list:
    with db_session(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM verification_proofs WHERE file_hash=? ORDER BY verified_at", (file_hash,)
        ).fetchall()
    return [
        {
            "proofId": r["proof_id"],
            "fileHash": r["file_hash"],
            "verified": bool(r["verified"]),
            "verifiedAt": r["verified_at"],
            "verifierOrgHash": r["verifier_org_hash"],
        }
        for r in rows
    ]


###############################################################
# SystemStats
###############################################################
def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def increment_stat(field, category=None, date=None, db_path=None):
    if field not in STAT_FIELDS:
        raise ValueError(f"unknown stat: {field}")
    date = date or today()
    with db_session(db_path) as conn:
        conn.execute("INSERT OR IGNORE INTO system_stats (date) VALUES (?)", (date,))
        conn.execute(f"UPDATE system_stats SET {field} = {field} + 1 WHERE date=?", (date,))
        if category is not None:
            bucket = CATEGORY_BUCKETS.get(category, "other")
            conn.execute(f"UPDATE system_stats SET {bucket} = {bucket} + 1 WHERE date=?", (date,))


def get_stats(db_path=None) -> dict:
    with db_session(db_path) as conn:
        rows = conn.execute("SELECT * FROM system_stats ORDER BY date").fetchall()

    totals = {
        "totalSubmissions": 0,
        "totalVerified": 0,
        "totalRejected": 0,
        "totalExported": 0,
        "categoryCounts": {"corruption": 0, "fraud": 0, "safety": 0, "other": 0},
    }
    daily = []
    for r in rows:
        totals["totalSubmissions"] += r["total_submissions"]
        totals["totalVerified"] += r["total_verified"]
        totals["totalRejected"] += r["total_rejected"]
        totals["totalExported"] += r["total_exported"]
        for bucket in totals["categoryCounts"]:
            totals["categoryCounts"][bucket] += r[bucket]
        daily.append({
            "date": r["date"],
            "totalSubmissions": r["total_submissions"],
            "totalVerified": r["total_verified"],
            "totalRejected": r["total_rejected"],
            "totalExported": r["total_exported"],
        })
    totals["daily"] = daily
    return totals
