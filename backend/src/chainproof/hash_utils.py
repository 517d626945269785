import hashlib
import hmac


def sha256(data: bytes) -> str:
    """Hex SHA-256 of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_string(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hmac_sha256(key: str, message: str) -> str:
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def hashes_match(hash1, hash2) -> bool:
    """Case-insensitive compare. Empty values never match."""
    if not hash1 or not hash2:
        return False
    return hmac.compare_digest(str(hash1).lower().encode("utf-8"), str(hash2).lower().encode("utf-8"))
