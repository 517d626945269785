# backend/src/chainproof/gateway/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[4]

# --- SERVER ---
PORT = int(os.getenv("GATEWAY_PORT", "5000"))
APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:7000")
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:4000")

# --- FABRIC NETWORK ---
CHANNEL_NAME = os.getenv("FABRIC_CHANNEL", "chainproof-channel")
CHAINCODE_NAME = os.getenv("FABRIC_CHAINCODE", "chainproof")

MSP_BASE_PATH = Path(os.getenv("FABRIC_MSP_PATH", str(PROJECT_ROOT / "_msp")))
WALLET_PATH = Path(os.getenv("FABRIC_WALLET_PATH", str(PROJECT_ROOT / "_wallets")))
LEDGER_PATH = os.getenv("FABRIC_LEDGER_PATH", str(PROJECT_ROOT / "_ledger" / "chainproof-ledger.db"))

MICROFAB_API = os.getenv("MICROFAB_API", "http://localhost:7070/ak/api/v1/components")


def _org(name: str, msp_id: str) -> dict:
    admin = name.lower() + "admin"
    return {
        "msp_id": msp_id,
        "cert_path": MSP_BASE_PATH / name / admin / "msp" / "signcerts" / "cert.pem",
        "key_path": MSP_BASE_PATH / name / admin / "msp" / "keystore" / "cert_sk",
        "identity_label": f"{name}-admin",
    }


ORGS = {
    "WhistleblowersOrg": _org("WhistleblowersOrg", "WhistleblowersOrgMSP"),
    "VerifierOrg": _org("VerifierOrg", "VerifierOrgMSP"),
    "LegalOrg": _org("LegalOrg", "LegalOrgMSP"),
}

DEFAULT_ORG = os.getenv("DEFAULT_ORG", "WhistleblowersOrg")

CORS_ORIGINS = [FRONTEND_URL, BACKEND_URL]
