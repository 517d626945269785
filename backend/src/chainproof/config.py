# backend/src/chainproof/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE = Path(__file__).resolve().parent

# --- SERVER ---
PORT = int(os.getenv("PORT", "4000"))
APP_ENV = os.getenv("APP_ENV", "development")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:7000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- STORAGE ---
DB_PATH = os.getenv("CHAINPROOF_DB_PATH", str(BASE.joinpath("chainproof.db")))

# Server-side secret mixed into lookup keys. Must be overridden in production.
LOOKUP_PEPPER = os.getenv("LOOKUP_PEPPER", "chainproof_pepper_change_in_production")

# --- UPLOADS ---
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))

# --- IPFS / PINATA ---
PINATA_API_URL = os.getenv("PINATA_API_URL", "https://api.pinata.cloud")
PINATA_GATEWAY_URL = os.getenv("PINATA_GATEWAY_URL", "https://gateway.pinata.cloud/ipfs/")
PINATA_JWT = os.getenv("PINATA_JWT")
IPFS_TIMEOUT = int(os.getenv("IPFS_TIMEOUT", "60"))
IPFS_PROXY_TIMEOUT = int(os.getenv("IPFS_PROXY_TIMEOUT", "10"))
IPFS_PROXY_GATEWAYS = [
    "https://ipfs.io/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://dweb.link/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
]

# --- SEPOLIA ---
SEPOLIA_RPC_URL = os.getenv("SEPOLIA_RPC_URL")
ANCHOR_CONTRACT_ADDRESS = os.getenv("ANCHOR_CONTRACT_ADDRESS")
DEPLOYER_PRIVATE_KEY = os.getenv("DEPLOYER_PRIVATE_KEY")
SEPOLIA_EXPLORER_URL = os.getenv("SEPOLIA_EXPLORER_URL", "https://sepolia.etherscan.io/tx/")
ANCHOR_GAS = int(os.getenv("ANCHOR_GAS", "200000"))

# --- FABRIC GATEWAY ---
FABRIC_GATEWAY_URL = os.getenv("FABRIC_GATEWAY_URL", "http://localhost:5000")
FABRIC_GATEWAY_TIMEOUT = int(os.getenv("FABRIC_GATEWAY_TIMEOUT", "30"))
