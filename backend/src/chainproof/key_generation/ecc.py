# backend/src/chainproof/key_generation/ecc.py
import base64
import binascii
import json
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from ..hash_utils import sha256_string

logger = logging.getLogger(__name__)

COORD_SIZE = 32  # P-256


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def generate_ecc_key_pair():
    """
    Generates an ECDSA key pair on P-256 (the curve browsers use for
    WebCrypto ECDSA). Returns (private_key_obj, public_key_obj).
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


def public_key_to_jwk(public_key) -> dict:
    numbers = public_key.public_numbers()
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": _b64url_encode(numbers.x.to_bytes(COORD_SIZE, "big")),
        "y": _b64url_encode(numbers.y.to_bytes(COORD_SIZE, "big")),
    }


def jwk_to_public_key(jwk: dict):
    if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
        raise ValueError("only EC P-256 JWKs are supported")
    x = int.from_bytes(_b64url_decode(jwk["x"]), "big")
    y = int.from_bytes(_b64url_decode(jwk["y"]), "big")
    return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()


def public_key_hash(jwk: dict) -> str:
    """
    Anonymous submitter id: SHA-256 of the compact JSON of {kty, crv, x, y},
    matching JSON.stringify on the client.
    """
    canonical = {k: jwk[k] for k in ("kty", "crv", "x", "y")}
    return sha256_string(json.dumps(canonical, separators=(",", ":")))


def load_public_key(public_key):
    """Accepts a PEM string, a JWK dict, or a JWK JSON string."""
    if isinstance(public_key, dict):
        return jwk_to_public_key(public_key)
    text = str(public_key).strip()
    if text.startswith("{"):
        return jwk_to_public_key(json.loads(text))
    return serialization.load_pem_public_key(text.encode("utf-8"))


def sign_data(private_key, data: str) -> str:
    """Sign like WebCrypto does: base64 of raw r||s."""
    der = private_key.sign(data.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return base64.b64encode(r.to_bytes(COORD_SIZE, "big") + s.to_bytes(COORD_SIZE, "big")).decode("ascii")


def verify_signature(data: str, signature: str, public_key) -> bool:
    """
    Verify a base64 ECDSA/SHA-256 signature. Both raw r||s (WebCrypto) and
    DER encodings are accepted. Returns False on any malformed input.
    """
    try:
        key = load_public_key(public_key)
        sig = base64.b64decode(signature, validate=True)
        if len(sig) == 2 * COORD_SIZE:
            sig = encode_dss_signature(
                int.from_bytes(sig[:COORD_SIZE], "big"),
                int.from_bytes(sig[COORD_SIZE:], "big"),
            )
        key.verify(sig, data.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False
    except (ValueError, TypeError, KeyError, binascii.Error) as e:
        logger.warning("Signature verification error: %s", e)
        return False
