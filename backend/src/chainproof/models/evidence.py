"""Local mirror of evidence assignments (who is working on what)."""
import time

from ..db_init import db_session

ASSIGNMENT_STATUSES = ("SUBMITTED", "VERIFIED", "REJECTED", "UNDER_REVIEW", "REVIEWED", "EXPORTED")


def save_assignment(evidence_id, ipfs_cid, submitted_by, assigned_to=None, description="",
                    transaction_hash=None, organization="WhistleblowersOrg", db_path=None):
    with db_session(db_path) as conn:
        conn.execute(
            """
            INSERT INTO evidence_assignments
                (evidence_id, transaction_hash, ipfs_cid, submitted_by, assigned_to, organization,
                 status, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 'SUBMITTED', ?, ?)
            """,
            (evidence_id, transaction_hash, ipfs_cid, submitted_by, assigned_to, organization,
             description or "", int(time.time())),
        )


def _upsert(conn, evidence_id):
    conn.execute(
        "INSERT OR IGNORE INTO evidence_assignments (evidence_id, created_at) VALUES (?, ?)",
        (evidence_id, int(time.time())),
    )


def assign_to_user(evidence_id, user_id, db_path=None):
    """Creates the row when the evidence only exists on the ledger."""
    with db_session(db_path) as conn:
        _upsert(conn, evidence_id)
        conn.execute("UPDATE evidence_assignments SET assigned_to=? WHERE evidence_id=?", (user_id, evidence_id))


def forward_to_legal(evidence_id, legal_role, user_id=None, db_path=None):
    """Hand verified evidence to a legal role, clearing the verifier's queue."""
    with db_session(db_path) as conn:
        _upsert(conn, evidence_id)
        conn.execute(
            "UPDATE evidence_assignments SET target_legal_role=?, assigned_to=?, status='VERIFIED' "
            "WHERE evidence_id=?",
            (legal_role, user_id, evidence_id),
        )


def update_status(evidence_id, status, db_path=None):
    if status not in ASSIGNMENT_STATUSES:
        raise ValueError(f"invalid status: {status}")
    with db_session(db_path) as conn:
        conn.execute("UPDATE evidence_assignments SET status=? WHERE evidence_id=?", (status, evidence_id))


def _to_dict(row) -> dict:
    assigned = None
    if row["assigned_to"] is not None and row["user_name"] is not None:
        assigned = {"id": row["assigned_to"], "name": row["user_name"], "organization": row["user_org"]}
    return {
        "evidenceId": row["evidence_id"],
        "transactionHash": row["transaction_hash"],
        "ipfsCid": row["ipfs_cid"],
        "assignedTo": assigned,
        "organization": row["organization"],
        "targetLegalRole": row["target_legal_role"],
        "status": row["status"],
        "description": row["description"],
        "createdAt": row["created_at"],
    }


_SELECT = """
    SELECT a.*, u.name AS user_name, u.organization AS user_org
    FROM evidence_assignments a LEFT JOIN users u ON u.id = a.assigned_to
"""


def get_assignment(evidence_id, db_path=None):
    with db_session(db_path) as conn:
        row = conn.execute(_SELECT + " WHERE a.evidence_id=?", (evidence_id,)).fetchone()
    return _to_dict(row) if row else None


def all_assignments(db_path=None) -> dict:
    with db_session(db_path) as conn:
        rows = conn.execute(_SELECT + " ORDER BY a.created_at").fetchall()
    return {row["evidence_id"]: _to_dict(row) for row in rows}


def list_assignments(status=None, db_path=None) -> list:
    with db_session(db_path) as conn:
        if status:
            rows = conn.execute(_SELECT + " WHERE a.status=? ORDER BY a.created_at", (status,)).fetchall()
        else:
            rows = conn.execute(_SELECT + " ORDER BY a.created_at").fetchall()
    return [_to_dict(row) for row in rows]
