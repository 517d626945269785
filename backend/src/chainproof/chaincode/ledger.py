"""
Local world state for the ChainProof chaincode.

This is a single-node stand-in for a peer's state database: it keeps the
public world state, a per-key history and private data collections in
sqlite. Ordering and endorsement policy stay with Fabric; here every submit
runs inside one sqlite transaction so a failing transaction function leaves
no partial writes behind.
"""
import base64
import json
import logging
import sqlite3
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS world_state (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS key_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        key TEXT NOT NULL,
        tx_id TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        is_delete INTEGER DEFAULT 0,
        value BLOB
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_key_history_key ON key_history (key)",
    """
    CREATE TABLE IF NOT EXISTS private_data (
        collection TEXT NOT NULL,
        key TEXT NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (collection, key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        tx_id TEXT PRIMARY KEY,
        channel TEXT,
        chaincode TEXT,
        function TEXT,
        creator_msp TEXT,
        timestamp INTEGER
    )
    """,
)


###############################################################
# Rich query selectors (CouchDB subset)
###############################################################
def _lookup(doc, field):
    value = doc
    for part in field.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _match_condition(value, condition) -> bool:
    if not isinstance(condition, dict):
        return value == condition

    for op, operand in condition.items():
        if op == "$eq" and not value == operand:
            return False
        if op == "$ne" and not value != operand:
            return False
        if op == "$in" and value not in operand:
            return False
        if op in ("$gt", "$gte", "$lt", "$lte"):
            if value is None:
                return False
            try:
                if op == "$gt" and not value > operand:
                    return False
                if op == "$gte" and not value >= operand:
                    return False
                if op == "$lt" and not value < operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
            except TypeError:
                return False
    return True


def match_selector(doc: dict, selector: dict) -> bool:
    return all(_match_condition(_lookup(doc, field), cond) for field, cond in selector.items())


def _apply_sort(rows, sort_spec):
    # Stable sorts applied last-key-first give multi-key ordering.
    for spec in reversed(sort_spec or []):
        if isinstance(spec, str):
            field, direction = spec, "asc"
        else:
            field, direction = next(iter(spec.items()))
        rows.sort(key=lambda row: _sort_key(row[2], field), reverse=(direction == "desc"))
    return rows


def _sort_key(doc, field):
    value = _lookup(doc, field)
    # Missing fields sort after present ones in ascending order.
    return (value is None, value if value is not None else 0)


def _parse_query(query_string):
    query = json.loads(query_string) if isinstance(query_string, (str, bytes)) else query_string
    return query.get("selector", {}), query.get("sort", [])


def encode_bookmark(offset: int) -> str:
    return base64.urlsafe_b64encode(json.dumps({"offset": offset}).encode()).decode()


def decode_bookmark(bookmark: str) -> int:
    if not bookmark:
        return 0
    try:
        return int(json.loads(base64.urlsafe_b64decode(bookmark.encode()))["offset"])
    except (ValueError, KeyError, TypeError) as e:
        raise ValueError(f"invalid bookmark: {bookmark}") from e


###############################################################
# Transaction stub
###############################################################
class ChaincodeStub:
    """
    Per-transaction view over the store, shaped like Fabric's shim stub.
    Values are bytes; missing keys read as None.
    """

    def __init__(self, conn: sqlite3.Connection, tx_id: str, timestamp: int, read_only: bool = False):
        self._conn = conn
        self._tx_id = tx_id
        self._timestamp = timestamp
        self._read_only = read_only

    def get_tx_id(self) -> str:
        return self._tx_id

    def get_tx_timestamp(self) -> int:
        return self._timestamp

    def _check_writable(self):
        if self._read_only:
            raise PermissionError("write attempted during evaluate")

    @staticmethod
    def _as_bytes(value) -> bytes:
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    # --- public state ---
    def get_state(self, key: str):
        row = self._conn.execute("SELECT value FROM world_state WHERE key=?", (key,)).fetchone()
        return bytes(row[0]) if row else None

    def put_state(self, key: str, value) -> None:
        self._check_writable()
        if not key:
            raise ValueError("key must not be empty")
        value = self._as_bytes(value)
        self._conn.execute(
            "INSERT INTO world_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        self._conn.execute(
            "INSERT INTO key_history (key, tx_id, timestamp, is_delete, value) VALUES (?, ?, ?, 0, ?)",
            (key, self._tx_id, self._timestamp, value),
        )

    def del_state(self, key: str) -> None:
        self._check_writable()
        self._conn.execute("DELETE FROM world_state WHERE key=?", (key,))
        self._conn.execute(
            "INSERT INTO key_history (key, tx_id, timestamp, is_delete, value) VALUES (?, ?, ?, 1, NULL)",
            (key, self._tx_id, self._timestamp),
        )

    def get_history_for_key(self, key: str) -> list:
        """Oldest first."""
        rows = self._conn.execute(
            "SELECT tx_id, timestamp, is_delete, value FROM key_history WHERE key=? ORDER BY id",
            (key,),
        ).fetchall()
        return [
            {
                "tx_id": r[0],
                "timestamp": r[1],
                "is_delete": bool(r[2]),
                "value": bytes(r[3]) if r[3] is not None else None,
            }
            for r in rows
        ]

    def _select(self, rows, query_string):
        selector, sort_spec = _parse_query(query_string)
        matched = []
        for key, raw in rows:
            try:
                doc = json.loads(raw)
            except ValueError:
                continue
            if isinstance(doc, dict) and match_selector(doc, selector):
                matched.append((key, bytes(raw), doc))
        return _apply_sort(matched, sort_spec)

    def get_query_result(self, query_string) -> list:
        rows = self._conn.execute("SELECT key, value FROM world_state ORDER BY key").fetchall()
        return [(key, raw) for key, raw, _ in self._select(rows, query_string)]

    def get_query_result_with_pagination(self, query_string, page_size: int, bookmark: str = ""):
        """Returns (results, next_bookmark). next_bookmark is empty at the end."""
        results = self.get_query_result(query_string)
        offset = decode_bookmark(bookmark)
        if page_size <= 0:
            return results[offset:], ""
        page = results[offset:offset + page_size]
        end = offset + len(page)
        return page, (encode_bookmark(end) if end < len(results) else "")

    # --- private data ---
    def get_private_data(self, collection: str, key: str):
        row = self._conn.execute(
            "SELECT value FROM private_data WHERE collection=? AND key=?", (collection, key)
        ).fetchone()
        return bytes(row[0]) if row else None

    def put_private_data(self, collection: str, key: str, value) -> None:
        self._check_writable()
        if not key:
            raise ValueError("key must not be empty")
        self._conn.execute(
            "INSERT INTO private_data (collection, key, value) VALUES (?, ?, ?) "
            "ON CONFLICT(collection, key) DO UPDATE SET value=excluded.value",
            (collection, key, self._as_bytes(value)),
        )

    def get_private_data_query_result(self, collection: str, query_string) -> list:
        rows = self._conn.execute(
            "SELECT key, value FROM private_data WHERE collection=? ORDER BY key", (collection,)
        ).fetchall()
        return [(key, raw) for key, raw, _ in self._select(rows, query_string)]


###############################################################
# Store
###############################################################
class LedgerStore:
    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._write_lock = threading.Lock()
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)

    def _init_db(self):
        conn = self._connect()
        try:
            for statement in SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()

    @contextmanager
    def transaction(self, channel="", chaincode="", function="", creator_msp=""):
        """
        Yields a writable stub. Commits when the block exits cleanly, rolls
        back everything otherwise.
        """
        tx_id = uuid.uuid4().hex
        timestamp = int(time.time())
        with self._write_lock:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
                stub = ChaincodeStub(conn, tx_id, timestamp)
                try:
                    yield stub
                    conn.execute(
                        "INSERT INTO transactions (tx_id, channel, chaincode, function, creator_msp, timestamp) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (tx_id, channel, chaincode, function, creator_msp, timestamp),
                    )
                    conn.execute("COMMIT")
                except BaseException:
                    conn.execute("ROLLBACK")
                    logger.debug("Rolled back tx %s (%s)", tx_id, function)
                    raise
            finally:
                conn.close()

    @contextmanager
    def snapshot(self):
        """Read-only stub for evaluate/query."""
        conn = self._connect()
        try:
            yield ChaincodeStub(conn, uuid.uuid4().hex, int(time.time()), read_only=True)
        finally:
            conn.close()

    def transaction_count(self) -> int:
        conn = self._connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]
        finally:
            conn.close()
