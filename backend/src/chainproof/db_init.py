# backend/src/chainproof/db_init.py
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from . import config


def get_conn(db_path=None):
    path = db_path or config.DB_PATH
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def db_session(db_path=None):
    conn = get_conn(db_path)
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path=None):
    conn = get_conn(db_path)
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,

    name TEXT NOT NULL,
    aadhaar_hash TEXT UNIQUE NOT NULL,
    public_key_hash TEXT UNIQUE NOT NULL,

    organization TEXT CHECK(organization IN ('VerifierOrg','LegalOrg')) NOT NULL,
    legal_role TEXT,              -- only for LegalOrg
    role TEXT CHECK(role IN ('admin','senior','member')) DEFAULT 'member',
    status TEXT CHECK(status IN ('active','suspended','pending')) DEFAULT 'active',

    evidence_assigned INTEGER DEFAULT 0,
    evidence_processed INTEGER DEFAULT 0,

    created_at INTEGER,
    last_login_at INTEGER
)
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS evidence_assignments (
    evidence_id TEXT PRIMARY KEY,
    transaction_hash TEXT,
    ipfs_cid TEXT,
    submitted_by TEXT,
    assigned_to INTEGER REFERENCES users(id),
    organization TEXT DEFAULT 'WhistleblowersOrg',
    target_legal_role TEXT,
    status TEXT DEFAULT 'SUBMITTED',
    description TEXT DEFAULT '',
    created_at INTEGER
)
    """)

    # lookup_key = HMAC(pepper, publicKeyHash); the raw hash is never stored
    cur.execute("""
    CREATE TABLE IF NOT EXISTS user_lookup (
    lookup_key TEXT PRIMARY KEY,
    evidence_hashes TEXT NOT NULL DEFAULT '[]',
    submission_count INTEGER DEFAULT 0,
    created_at INTEGER,
    last_activity_at INTEGER
)
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS evidence_anchors (
    evidence_id TEXT PRIMARY KEY,
    file_hash TEXT NOT NULL,
    ipfs_cid_hash TEXT NOT NULL,
    sepolia_tx_hash TEXT,
    sepolia_block_number INTEGER,
    anchored_at INTEGER,
    status TEXT CHECK(status IN ('ANCHORED','PENDING','FAILED')) DEFAULT 'PENDING',
    created_at INTEGER
)
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_anchor_file_hash ON evidence_anchors (file_hash)")

    cur.execute("""
    CREATE TABLE IF NOT EXISTS verification_proofs (
    proof_id TEXT PRIMARY KEY,
    file_hash TEXT NOT NULL,
    verified INTEGER NOT NULL,
    verified_at INTEGER,
    verifier_org_hash TEXT
)
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_proof_file_hash ON verification_proofs (file_hash)")

    cur.execute("""
    CREATE TABLE IF NOT EXISTS system_stats (
    date TEXT PRIMARY KEY,        -- YYYY-MM-DD
    total_submissions INTEGER DEFAULT 0,
    total_verified INTEGER DEFAULT 0,
    total_rejected INTEGER DEFAULT 0,
    total_exported INTEGER DEFAULT 0,
    corruption INTEGER DEFAULT 0,
    fraud INTEGER DEFAULT 0,
    safety INTEGER DEFAULT 0,
    other INTEGER DEFAULT 0
)
    """)

    conn.commit()
    conn.close()
