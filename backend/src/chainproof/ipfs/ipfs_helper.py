# backend/src/chainproof/ipfs/ipfs_helper.py
import json
import logging
from datetime import datetime, timezone

import requests

from .. import config

logger = logging.getLogger(__name__)


class IPFSError(Exception):
    pass


def _auth_headers():
    if not config.PINATA_JWT:
        raise IPFSError("PINATA_JWT not configured")
    return {"Authorization": f"Bearer {config.PINATA_JWT}"}


def upload_to_ipfs(raw_bytes: bytes, filename: str, metadata=None) -> dict:
    """
    Pin bytes on IPFS through Pinata.
    Returns {"cid", "size", "timestamp"}.
    """
    pinata_metadata = json.dumps({
        "name": filename,
        "keyvalues": {
            **(metadata or {}),
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        },
    })
    files = {"file": (filename, raw_bytes, "application/octet-stream")}

    try:
        resp = requests.post(
            f"{config.PINATA_API_URL}/pinning/pinFileToIPFS",
            files=files,
            data={"pinataMetadata": pinata_metadata},
            headers=_auth_headers(),
            timeout=config.IPFS_TIMEOUT,
        )
    except requests.RequestException as e:
        raise IPFSError(f"Pinata upload failed: {e}") from e

    if resp.status_code != 200:
        raise IPFSError(f"Pinata upload failed: {resp.status_code} {resp.text}")

    result = resp.json()
    return {
        "cid": result["IpfsHash"],
        "size": result.get("PinSize", len(raw_bytes)),
        "timestamp": result.get("Timestamp"),
    }


def get_from_ipfs(cid: str) -> bytes:
    url = f"{config.PINATA_GATEWAY_URL}{cid}"
    try:
        resp = requests.get(url, timeout=config.IPFS_TIMEOUT)
    except requests.RequestException as e:
        raise IPFSError(f"Failed to fetch from IPFS: {e}") from e

    if resp.status_code != 200:
        raise IPFSError(f"Failed to fetch from IPFS: {resp.status_code} {resp.reason}")
    return resp.content


def check_ipfs_exists(cid: str) -> bool:
    try:
        resp = requests.get(
            f"{config.PINATA_API_URL}/data/pinList",
            params={"hashContains": cid},
            headers=_auth_headers(),
            timeout=config.IPFS_TIMEOUT,
        )
        return resp.json().get("count", 0) > 0
    except (requests.RequestException, IPFSError, ValueError) as e:
        logger.error("Error checking IPFS: %s", e)
        return False


def fetch_via_gateways(cid: str, gateways=None):
    """
    Try each public gateway in turn; the first 2xx wins.
    Returns (content, content_type).
    """
    last_error = None
    for gateway in gateways or config.IPFS_PROXY_GATEWAYS:
        url = f"{gateway}{cid}"
        logger.info("Trying IPFS gateway: %s", url)
        try:
            resp = requests.get(url, timeout=config.IPFS_PROXY_TIMEOUT)
        except requests.RequestException as e:
            logger.warning("Gateway %s error: %s", url, e)
            last_error = str(e)
            continue
        if 200 <= resp.status_code < 300:
            return resp.content, resp.headers.get("content-type")
        logger.warning("Gateway %s failed with status: %s", url, resp.status_code)
        last_error = f"status {resp.status_code}"

    logger.error("All IPFS gateways failed")
    raise IPFSError(f"Failed to fetch IPFS content from all gateways: {last_error}")
