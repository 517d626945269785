import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .auth_routes import router as auth_router
from .db_init import init_db
from .evidence_routes import router as evidence_router
from .http_errors import error_response, install_error_handlers, upstream_status
from .ipfs.ipfs_helper import IPFSError
from .ledger_client import LedgerClientError
from .legal_routes import router as legal_router
from .models.records import get_stats
from .sepolia_utils import SepoliaNotConfigured
from .verify_routes import router as verify_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    init_db()

    app = FastAPI(title="ChainProof Backend", version="1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL, "http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    @app.exception_handler(LedgerClientError)
    async def ledger_error_handler(request: Request, exc: LedgerClientError):
        return error_response(upstream_status(exc.status_code), str(exc))

    @app.exception_handler(IPFSError)
    async def ipfs_error_handler(request: Request, exc: IPFSError):
        return error_response(502, str(exc))

    @app.exception_handler(SepoliaNotConfigured)
    async def sepolia_error_handler(request: Request, exc: SepoliaNotConfigured):
        return error_response(503, str(exc))

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "service": "ChainProof Backend",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": config.APP_ENV,
        }

    @app.get("/api/stats")
    def stats():
        return {"success": True, "data": get_stats()}

    app.include_router(auth_router)
    app.include_router(evidence_router)
    app.include_router(verify_router)
    app.include_router(legal_router)
    return app


def run():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("ChainProof Backend on port %s (%s)", config.PORT, config.APP_ENV)
    uvicorn.run(create_app(), host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    run()
