"""
Extract org admin identities from Microfab and save them to the wallet.

Microfab serves pre-enrolled identities from its REST API, so no CA
enrollment is needed. Each identity is written as <Org>-admin.id.
"""
import base64
import json
import logging
import sys
from pathlib import Path

import requests
from cryptography import x509

from . import config

logger = logging.getLogger(__name__)


def fetch_microfab_components(api_url=None):
    resp = requests.get(api_url or config.MICROFAB_API, timeout=30)
    if resp.status_code != 200:
        raise RuntimeError(f"Microfab request failed: {resp.status_code} {resp.text}")
    return resp.json()


def extract_identity(components, display_name, org_name, msp_id, wallet_path=None) -> bool:
    wallet_path = Path(wallet_path or config.WALLET_PATH)
    wallet_path.mkdir(parents=True, exist_ok=True)
    identity_file = wallet_path / f"{org_name}-admin.id"

    if identity_file.exists():
        logger.info("%s admin identity already in wallet", org_name)
        return True

    identity = next(
        (c for c in components if c.get("type") == "identity" and c.get("display_name") == display_name),
        None,
    )
    if identity is None:
        logger.error("Identity not found: %s", display_name)
        return False

    try:
        cert = base64.b64decode(identity["cert"]).decode("utf-8")
        key = base64.b64decode(identity["private_key"]).decode("utf-8")
        x509.load_pem_x509_certificate(cert.encode())
    except (KeyError, ValueError) as e:
        logger.error("Failed to extract %s: %s", org_name, e)
        return False

    identity_file.write_text(json.dumps({
        "credentials": {"certificate": cert, "privateKey": key},
        "mspId": msp_id,
        "type": "X.509",
    }))
    identity_file.chmod(0o600)
    logger.info("Extracted and saved %s admin identity", org_name)
    return True


def enroll_all_admins(api_url=None, wallet_path=None) -> int:
    logger.info("Fetching components from Microfab...")
    components = fetch_microfab_components(api_url)
    logger.info("Found %d components", len(components))

    saved = 0
    for org_name, org in config.ORGS.items():
        if extract_identity(components, f"{org_name} Admin", org_name, org["msp_id"], wallet_path):
            saved += 1
    return saved


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(message)s")
    try:
        saved = enroll_all_admins()
    except (requests.RequestException, RuntimeError) as e:
        logger.error("Failed to fetch from Microfab: %s", e)
        logger.error("Make sure Microfab is running on %s", config.MICROFAB_API)
        sys.exit(1)
    logger.info("Identity extraction complete (%d/%d)", saved, len(config.ORGS))


if __name__ == "__main__":
    main()
