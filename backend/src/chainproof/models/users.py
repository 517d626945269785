"""
Verifier and Legal organization staff.

Users log in with name + Aadhaar. Only hashes are kept: the Aadhaar hash and
a public key hash derived from both, which doubles as the user's id for
assignments.
"""
import logging
import random
import re
import time
from datetime import datetime, timezone

from ..db_init import db_session
from ..hash_utils import sha256_string

logger = logging.getLogger(__name__)

ORGANIZATIONS = ("VerifierOrg", "LegalOrg")
LEGAL_ROLES = ("Judge", "Advocate", "Clerk", "Notary", "Prosecutor", "Police", "Other")
ROLES = ("admin", "senior", "member")
STATUSES = ("active", "suspended", "pending")


class UserExistsError(Exception):
    pass


def normalize_aadhaar(aadhaar: str) -> str:
    return re.sub(r"\s", "", aadhaar or "").strip()


def is_valid_aadhaar(aadhaar: str) -> bool:
    return re.fullmatch(r"\d{12}", normalize_aadhaar(aadhaar)) is not None


def generate_hashes(name: str, aadhaar: str):
    """Returns (aadhaar_hash, public_key_hash)."""
    normalized_name = name.lower().strip()
    normalized_aadhaar = normalize_aadhaar(aadhaar)

    aadhaar_hash = sha256_string(normalized_aadhaar)
    public_key_hash = sha256_string(f"{normalized_name}:{normalized_aadhaar}:chainproof")
    return aadhaar_hash, public_key_hash


def login_key(public_key_hash: str) -> str:
    return public_key_hash[:8].upper()


def _iso(ts):
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def to_safe_object(row) -> dict:
    """User fields safe to return to clients (never the Aadhaar hash)."""
    return {
        "id": row["id"],
        "name": row["name"],
        "publicKeyHash": row["public_key_hash"],
        "organization": row["organization"],
        "legalRole": row["legal_role"],
        "role": row["role"],
        "status": row["status"],
        "evidenceAssigned": row["evidence_assigned"],
        "evidenceProcessed": row["evidence_processed"],
        "createdAt": _iso(row["created_at"]),
        "lastLoginAt": _iso(row["last_login_at"]),
    }


def register_user(name, aadhaar, organization, role="member", legal_role=None, db_path=None) -> dict:
    if organization not in ORGANIZATIONS:
        raise ValueError("Invalid organization. Must be VerifierOrg or LegalOrg")
    if role not in ROLES:
        raise ValueError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
    if organization == "LegalOrg":
        if not legal_role:
            raise ValueError("legalRole is required for LegalOrg users")
        if legal_role not in LEGAL_ROLES:
            raise ValueError(f"Invalid legal role. Must be one of: {', '.join(LEGAL_ROLES)}")
    else:
        legal_role = None

    aadhaar_hash, public_key_hash = generate_hashes(name, aadhaar)

    with db_session(db_path) as conn:
        existing = conn.execute(
            "SELECT id FROM users WHERE public_key_hash=? OR aadhaar_hash=?",
            (public_key_hash, aadhaar_hash),
        ).fetchone()
        if existing:
            raise UserExistsError("User with this Aadhaar already registered")

        conn.execute(
            """
            INSERT INTO users (name, aadhaar_hash, public_key_hash, organization, legal_role, role, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (name.strip(), aadhaar_hash, public_key_hash, organization, legal_role, role, int(time.time())),
        )

    logger.info("Registered new %s user (%s...)", organization, public_key_hash[:12])
    return {
        "name": name.strip(),
        "publicKeyHash": public_key_hash,
        "organization": organization,
        "legalRole": legal_role,
        "role": role,
    }


def verify_credentials(name, aadhaar, db_path=None):
    """Returns (True, user) or (False, error message)."""
    aadhaar_hash, public_key_hash = generate_hashes(name, aadhaar)

    with db_session(db_path) as conn:
        user = conn.execute("SELECT * FROM users WHERE public_key_hash=?", (public_key_hash,)).fetchone()
        if not user:
            return False, "User not found"
        if user["aadhaar_hash"] != aadhaar_hash:
            return False, "Invalid credentials"
        if user["status"] != "active":
            return False, "Account is " + user["status"]

        conn.execute("UPDATE users SET last_login_at=? WHERE id=?", (int(time.time()), user["id"]))
        user = conn.execute("SELECT * FROM users WHERE id=?", (user["id"],)).fetchone()

    return True, user


def find_by_public_key_hash(public_key_hash, active_only=False, db_path=None):
    query = "SELECT * FROM users WHERE public_key_hash=?"
    if active_only:
        query += " AND status='active'"
    with db_session(db_path) as conn:
        return conn.execute(query, (public_key_hash,)).fetchone()


def get_user(user_id, db_path=None):
    with db_session(db_path) as conn:
        return conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()


def list_users(organization, active_only=True, legal_role=None, db_path=None):
    query = "SELECT * FROM users WHERE organization=?"
    params = [organization]
    if active_only:
        query += " AND status='active'"
    if legal_role:
        query += " AND legal_role=?"
        params.append(legal_role)
    with db_session(db_path) as conn:
        return conn.execute(query + " ORDER BY id", params).fetchall()


def pick_random_user(organization, legal_role=None, db_path=None):
    # Random for now; workload-based assignment would read evidence_assigned
    users = list_users(organization, legal_role=legal_role, db_path=db_path)
    return random.choice(users) if users else None


def increment_assigned(user_id, db_path=None):
    with db_session(db_path) as conn:
        conn.execute("UPDATE users SET evidence_assigned = evidence_assigned + 1 WHERE id=?", (user_id,))


def increment_processed(user_id, db_path=None):
    with db_session(db_path) as conn:
        conn.execute("UPDATE users SET evidence_processed = evidence_processed + 1 WHERE id=?", (user_id,))
