"""
Privacy-preserving key recovery.

A user holding a publicKeyHash can list their evidence without the server
ever storing that hash:

  lookup_key      = HMAC-SHA256(pepper, publicKeyHash)
  evidence_hashes = [SHA-256(evidenceId), ...]

Without the publicKeyHash and the server pepper a lookup row can't be tied
to anyone, and the evidence ids themselves are hashed too.
"""
import json
import time

from .. import config
from ..db_init import db_session
from ..hash_utils import hmac_sha256, sha256_string


def create_lookup_key(public_key_hash: str) -> str:
    return hmac_sha256(config.LOOKUP_PEPPER, public_key_hash)


def hash_evidence_id(evidence_id: str) -> str:
    return sha256_string(evidence_id)


def add_evidence_for_user(public_key_hash, evidence_id, db_path=None) -> dict:
    lookup_key = create_lookup_key(public_key_hash)
    evidence_hash = hash_evidence_id(evidence_id)
    now = int(time.time())

    with db_session(db_path) as conn:
        row = conn.execute(
            "SELECT evidence_hashes, submission_count FROM user_lookup WHERE lookup_key=?", (lookup_key,)
        ).fetchone()
        if row is None:
            hashes = [evidence_hash]
            conn.execute(
                "INSERT INTO user_lookup (lookup_key, evidence_hashes, submission_count, created_at, last_activity_at) "
                "VALUES (?, ?, 1, ?, ?)",
                (lookup_key, json.dumps(hashes), now, now),
            )
            count = 1
        else:
            hashes = json.loads(row["evidence_hashes"]) + [evidence_hash]
            count = row["submission_count"] + 1
            conn.execute(
                "UPDATE user_lookup SET evidence_hashes=?, submission_count=?, last_activity_at=? WHERE lookup_key=?",
                (json.dumps(hashes), count, now, lookup_key),
            )

    return {"lookupKey": lookup_key, "evidenceHashes": hashes, "submissionCount": count}


def get_evidence_for_user(public_key_hash, db_path=None) -> list:
    with db_session(db_path) as conn:
        row = conn.execute(
            "SELECT evidence_hashes FROM user_lookup WHERE lookup_key=?", (create_lookup_key(public_key_hash),)
        ).fetchone()
    return json.loads(row["evidence_hashes"]) if row else []


def verify_ownership(public_key_hash, evidence_id, db_path=None) -> bool:
    return hash_evidence_id(evidence_id) in get_evidence_for_user(public_key_hash, db_path)
